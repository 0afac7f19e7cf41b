"""
Application service orchestrating payment use-cases.

Three workflows share one transaction store:
- initiate: validate, allocate an id, call the gateway, record PENDING.
- handle_callback: authenticate a gateway notification and apply it.
- check_status: poll the gateway and merge its state into the local record.

This class depends only on the application PaymentGateway port, the domain
repository contracts and the checksum signer. Concrete adapters are injected
from the composition root (main.lifespan), keeping dependencies one-way.
"""
from __future__ import annotations

import hashlib
import json
import time
from typing import Any, Optional

from application.dtos.payments import (
    CallbackAck,
    InitiatePayment,
    InitiatedPayment,
    PaymentInstrument,
    PayRequest,
)
from application.ports.payment_gateway import PaymentGateway
from core.logging_config import get_logger
from core.settings import PhonePeSettings
from domain.common.exceptions import (
    CallbackAuthenticationException,
    DomainValidationException,
    InvalidTransitionException,
    TransactionIdExhaustedException,
    TransactionNotFoundException,
)
from domain.payment.entity import SnapshotSource, Transaction, TransactionStatus
from domain.payment.repository import CallbackLedger, TransactionRepository
from domain.services.checksum import ChecksumSigner, decode_payload
from domain.services.transaction_id import TransactionIdGenerator
from shared.codes.payment_codes import PHONEPE_STATUS_ENDPOINT


logger = get_logger(__name__)


def _resolve_amount(req: InitiatePayment) -> int:
    if req.amount_minor_units is not None:
        return req.amount_minor_units
    if req.amount is not None:
        minor = req.amount * 100
        if minor != minor.to_integral_value():
            raise DomainValidationException("Amount has more than two decimal places", field="amount")
        return int(minor)
    raise DomainValidationException("Missing required fields", field="amountMinorUnits")


def _validate(req: InitiatePayment) -> int:
    if not req.appointment_id or not req.appointment_id.strip():
        raise DomainValidationException("Missing required fields", field="appointmentId")
    if req.user_details is None:
        raise DomainValidationException("Missing required fields", field="userDetails")
    amount = _resolve_amount(req)
    if amount <= 0:
        raise DomainValidationException("Amount must be positive", field="amountMinorUnits")
    return amount


def _notification_key(encoded_payload: str) -> str:
    return hashlib.sha256(encoded_payload.encode("utf-8")).hexdigest()


class PaymentService:
    def __init__(
        self,
        gateway: PaymentGateway,
        repository: TransactionRepository,
        signer: ChecksumSigner,
        config: PhonePeSettings,
        *,
        frontend_url: str,
        id_generator: Optional[TransactionIdGenerator] = None,
        ledger: Optional[CallbackLedger] = None,
        id_max_attempts: int = 5,
    ) -> None:
        self.gateway = gateway
        self.repository = repository
        self.signer = signer
        self.config = config
        self.frontend_url = frontend_url.rstrip("/")
        self.id_generator = id_generator or TransactionIdGenerator()
        self.ledger = ledger
        self.id_max_attempts = max(1, id_max_attempts)

    # ---- initiation ----

    async def _allocate_transaction_id(self) -> str:
        for attempt in range(1, self.id_max_attempts + 1):
            candidate = self.id_generator.next_id()
            if not await self.repository.exists(candidate):
                return candidate
            logger.warning("transaction_id_collision", transaction_id=candidate, attempt=attempt)
        raise TransactionIdExhaustedException(self.id_max_attempts)

    def _build_pay_request(self, transaction_id: str, amount: int, req: InitiatePayment, callback_url: str) -> PayRequest:
        user = req.user_details or {}
        return PayRequest(
            merchant_id=self.config.merchant_id or "",
            merchant_transaction_id=transaction_id,
            merchant_user_id=str(user.get("userId") or f"USER_{int(time.time() * 1000)}"),
            amount=amount,
            redirect_url=f"{self.frontend_url}/payment-success?transactionId={transaction_id}",
            redirect_mode=self.config.redirect_mode,
            callback_url=self.config.callback_url or callback_url,
            mobile_number=str(user.get("mobile") or self.config.default_mobile),
            payment_instrument=PaymentInstrument(type=self.config.instrument_type),
        )

    async def initiate(self, req: InitiatePayment, *, callback_url: str) -> InitiatedPayment:
        amount = _validate(req)
        transaction_id = await self._allocate_transaction_id()
        pay_request = self._build_pay_request(transaction_id, amount, req, callback_url)
        logger.info(
            "payment_initiate_request",
            transaction_id=transaction_id,
            appointment_id=req.appointment_id,
            amount=amount,
            provider=self.gateway.provider,
        )

        # Gateway errors propagate; no record is created for a rejected payment
        result = await self.gateway.pay(pay_request)

        await self.repository.create(
            Transaction(
                transaction_id=transaction_id,
                appointment_id=req.appointment_id,
                amount=amount,
                user_details=req.user_details,
                appointment_details=req.appointment_details,
                gateway_create_response=result.raw_response,
            )
        )
        logger.info("payment_initiated", transaction_id=transaction_id, provider=self.gateway.provider)
        return InitiatedPayment(transaction_id=transaction_id, redirect_url=result.redirect_url)

    # ---- callback ----

    @staticmethod
    def _extract_encoded(raw_body: bytes) -> str:
        if not raw_body:
            raise CallbackAuthenticationException("No callback data received")
        try:
            body = json.loads(raw_body)
        except ValueError as exc:
            raise CallbackAuthenticationException("No callback data received") from exc
        encoded = body.get("response") if isinstance(body, dict) else None
        if not isinstance(encoded, str) or not encoded.strip():
            raise CallbackAuthenticationException("No callback data received")
        return encoded.strip()

    async def handle_callback(self, raw_body: bytes, header_tag: Optional[str]) -> CallbackAck:
        encoded = self._extract_encoded(raw_body)

        # Authenticate before anything touches the store
        if not self.signer.verify(encoded, PHONEPE_STATUS_ENDPOINT, header_tag):
            logger.error("callback_checksum_mismatch", received=header_tag)
            raise CallbackAuthenticationException("Invalid checksum")

        try:
            payload = decode_payload(encoded)
        except ValueError as exc:
            logger.error("callback_payload_malformed", error=str(exc))
            raise CallbackAuthenticationException("Malformed callback payload") from exc

        transaction_id = payload.get("merchantTransactionId")
        code = payload.get("code")
        logger.info("payment_callback_received", transaction_id=transaction_id, code=code)

        key = _notification_key(encoded)
        if self.ledger is not None and await self.ledger.seen(key):
            logger.info("callback_duplicate_ignored", transaction_id=transaction_id)
            return CallbackAck(transaction_id=transaction_id, duplicate=True)

        if not transaction_id or not await self.repository.exists(str(transaction_id)):
            if self.config.reject_unknown_callbacks:
                logger.warning("callback_unknown_transaction_rejected", transaction_id=transaction_id)
                raise TransactionNotFoundException(str(transaction_id) if transaction_id else None)
            # Acknowledge so the gateway stops redelivering an id we never issued
            logger.warning("callback_unknown_transaction", transaction_id=transaction_id)
            return CallbackAck(transaction_id=transaction_id)

        new_status = TransactionStatus.SUCCESS if code == self.config.success_code else TransactionStatus.FAILED
        try:
            await self.repository.update_status(
                str(transaction_id), new_status, snapshot=payload, source=SnapshotSource.CALLBACK
            )
        except InvalidTransitionException as exc:
            # Stored terminal status stands; redelivery would not change that
            logger.error("transaction_state_conflict", source="callback", **(exc.details or {}))

        if self.ledger is not None:
            await self.ledger.mark(key)
        return CallbackAck(transaction_id=str(transaction_id))

    # ---- reconciliation ----

    async def check_status(self, transaction_id: str) -> dict[str, Any]:
        # Raises TransactionNotFoundException before any gateway traffic
        local = await self.repository.get(transaction_id)
        logger.info("payment_status_check", transaction_id=transaction_id, status=local.status.value)

        result = await self.gateway.query_status(transaction_id)

        new_status = result.status if result.status is not local.status else None
        try:
            local = await self.repository.update_status(
                transaction_id, new_status, snapshot=result.raw_response, source=SnapshotSource.STATUS
            )
        except InvalidTransitionException as exc:
            logger.error("transaction_state_conflict", source="status", **(exc.details or {}))
            local = await self.repository.update_status(
                transaction_id, None, snapshot=result.raw_response, source=SnapshotSource.STATUS
            )

        return {**result.raw_response, "localTransaction": local.to_dict()}

    # ---- diagnostics ----

    async def get_transaction(self, transaction_id: str) -> Transaction:
        return await self.repository.get(transaction_id)

    async def list_transactions(self) -> list[Transaction]:
        return await self.repository.list()

    async def aclose(self) -> None:
        # Best-effort close underlying resources
        close = getattr(self.gateway, "aclose", None)
        if callable(close):
            await close()
