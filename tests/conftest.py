"""Pytest bootstrap configuration.

Ensure mandatory environment variables are set before test collection
and module imports that depend on application settings.
"""
import os

# Gateway credentials for settings validation (sandbox-style values)
os.environ.setdefault("PHONEPE__MERCHANT_ID", "MERCHANTUAT")
os.environ.setdefault("PHONEPE__SALT_KEY", "test-salt-key")
os.environ.setdefault("PHONEPE__SALT_INDEX", "1")
os.environ.setdefault("FRONTEND_URL", "http://localhost:3000")
os.environ.setdefault("RETRY__MAX", "1")
os.environ.setdefault("RETRY__BASE_BACKOFF", "0.01")

from typing import Any, Callable, Optional
import json

import pytest

from application.dtos.payments import PayRequest, PayResult, StatusResult
from application.services.payment_service import PaymentService
from core.settings import PhonePeSettings
from domain.payment.entity import TransactionStatus
from domain.services.checksum import ChecksumSigner, encode_payload
from infrastructure.external.payments.exceptions import PaymentProviderError
from infrastructure.repositories.callback_ledger import InMemoryCallbackLedger
from infrastructure.repositories.transaction_repository import InMemoryTransactionRepository
from shared.codes.payment_codes import PHONEPE_STATUS_ENDPOINT


SALT_KEY = "test-salt-key"
SALT_INDEX = 1


class StubGateway:
    """In-process stand-in for the PhonePe API."""

    provider = "stub"

    def __init__(self) -> None:
        self.pay_calls: list[PayRequest] = []
        self.status_calls: list[str] = []
        self.pay_error: Optional[Exception] = None
        self.status_error: Optional[Exception] = None
        self.upstream_state: str = "PENDING"
        self.closed = False

    async def pay(self, req: PayRequest) -> PayResult:
        self.pay_calls.append(req)
        if self.pay_error is not None:
            raise self.pay_error
        return PayResult(
            redirect_url=f"https://mercury-uat.phonepe.com/transact/pg?token={req.merchant_transaction_id}",
            raw_response={
                "merchantId": req.merchant_id,
                "merchantTransactionId": req.merchant_transaction_id,
                "instrumentResponse": {"type": "PAY_PAGE"},
            },
        )

    async def query_status(self, transaction_id: str) -> StatusResult:
        self.status_calls.append(transaction_id)
        if self.status_error is not None:
            raise self.status_error
        mapped = {"COMPLETED": TransactionStatus.SUCCESS, "FAILED": TransactionStatus.FAILED}.get(self.upstream_state)
        return StatusResult(
            status=mapped,
            upstream_state=self.upstream_state,
            code="PAYMENT_SUCCESS" if mapped is TransactionStatus.SUCCESS else "PAYMENT_PENDING",
            raw_response={
                "merchantTransactionId": transaction_id,
                "state": self.upstream_state,
                "amount": 50000,
            },
        )

    async def aclose(self) -> None:
        self.closed = True


def rejected(message: str = "Bad Request") -> PaymentProviderError:
    return PaymentProviderError(message, provider="stub", provider_code="BAD_REQUEST")


@pytest.fixture
def signer() -> ChecksumSigner:
    return ChecksumSigner(SALT_KEY, SALT_INDEX)


@pytest.fixture
def phonepe_config() -> PhonePeSettings:
    return PhonePeSettings(merchant_id="MERCHANTUAT", salt_key=SALT_KEY, salt_index=SALT_INDEX)


@pytest.fixture
def gateway() -> StubGateway:
    return StubGateway()


@pytest.fixture
def repository() -> InMemoryTransactionRepository:
    return InMemoryTransactionRepository()


@pytest.fixture
def service(gateway, repository, signer, phonepe_config) -> PaymentService:
    return PaymentService(
        gateway=gateway,
        repository=repository,
        signer=signer,
        config=phonepe_config,
        frontend_url="http://localhost:3000",
        ledger=InMemoryCallbackLedger(),
    )


@pytest.fixture
def signed_callback(signer) -> Callable[[dict[str, Any]], tuple[bytes, str]]:
    """Build a callback body and its X-VERIFY header the way PhonePe does."""

    def _build(payload: dict[str, Any]) -> tuple[bytes, str]:
        encoded = encode_payload(payload)
        body = json.dumps({"response": encoded}).encode("utf-8")
        return body, signer.sign(encoded, PHONEPE_STATUS_ENDPOINT)

    return _build
