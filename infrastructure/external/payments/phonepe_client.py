"""
PhonePe PG adapter over plain HTTP (httpx).

Protocol notes:
- Requests carry a JSON payload base64-encoded into ``{"request": <b64>}``.
- ``X-VERIFY`` is ``sha256(b64 + endpoint + salt_key) + "###" + salt_index``.
- Status queries sign an empty payload against
  ``/pg/v1/status/<merchantId>/<merchantTransactionId>`` and add
  ``X-MERCHANT-ID``.
- Every response is an envelope ``{success, code, message, data}``; a
  non-2xx status still carries that envelope.
"""
from __future__ import annotations

from typing import Any, Optional

import httpx

from application.dtos.payments import PayRequest, PayResult, StatusResult
from domain.payment.entity import TransactionStatus
from domain.services.checksum import ChecksumSigner, encode_payload
from infrastructure.external.payments.base import BasePaymentClient
from infrastructure.external.payments.exceptions import PaymentProviderError
from core.settings import PhonePeSettings, payment_settings
from core.config import settings
from core.logging_config import get_logger
from shared.codes.payment_codes import PHONEPE_PAY_ENDPOINT, PHONEPE_STATUS_ENDPOINT


logger = get_logger(__name__)


class PhonePeClient(BasePaymentClient):
    provider = "phonepe"

    def __init__(
        self,
        config: Optional[PhonePeSettings] = None,
        *,
        api_url: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        super().__init__(
            timeouts=payment_settings.timeouts.model_dump(),
            retry={"max": payment_settings.retry.max, "base": payment_settings.retry.base_backoff},
            transport=transport,
        )
        self.config = config or payment_settings.phonepe
        if not self.config.merchant_id:
            raise RuntimeError("PHONEPE__MERCHANT_ID not configured")
        if not self.config.salt_key:
            raise RuntimeError("PHONEPE__SALT_KEY not configured")
        self.merchant_id = self.config.merchant_id
        self.signer = ChecksumSigner(self.config.salt_key, self.config.salt_index)
        self.api_url = (api_url or self.config.api_url(settings.is_production)).rstrip("/")

    def status_endpoint(self, transaction_id: str) -> str:
        return f"{PHONEPE_STATUS_ENDPOINT}/{self.merchant_id}/{transaction_id}"

    @staticmethod
    def _envelope(response: httpx.Response) -> dict[str, Any]:
        try:
            body = response.json()
        except ValueError as exc:
            raise PaymentProviderError(
                f"Invalid response from payment gateway (HTTP {response.status_code})",
                provider="phonepe",
                details={"status_code": response.status_code},
            ) from exc
        if not isinstance(body, dict):
            raise PaymentProviderError(
                "Invalid response from payment gateway",
                provider="phonepe",
                details={"status_code": response.status_code},
            )
        return body

    def _reject(self, body: dict[str, Any], default_message: str) -> PaymentProviderError:
        return PaymentProviderError(
            body.get("message") or default_message,
            provider=self.provider,
            provider_code=body.get("code"),
            raw_response=body,
        )

    async def pay(self, req: PayRequest) -> PayResult:  # type: ignore[override]
        payload = encode_payload(req.to_payload())
        headers = {
            "Content-Type": "application/json",
            "X-VERIFY": self.signer.sign(payload, PHONEPE_PAY_ENDPOINT),
            "accept": "application/json",
        }

        async def _send() -> httpx.Response:
            async with self.client() as http:
                return await http.post(
                    f"{self.api_url}{PHONEPE_PAY_ENDPOINT}",
                    json={"request": payload},
                    headers=headers,
                )

        self._log("phonepe_pay_request", transaction_id=req.merchant_transaction_id, amount=req.amount)
        response = await self._retry(_send)
        body = self._envelope(response)
        self._log(
            "phonepe_pay_response",
            transaction_id=req.merchant_transaction_id,
            http_status=response.status_code,
            success=body.get("success"),
            code=body.get("code"),
        )
        if body.get("success") is not True:
            raise self._reject(body, "Payment initialization failed")

        data = body.get("data") or {}
        try:
            redirect_url = data["instrumentResponse"]["redirectInfo"]["url"]
        except (KeyError, TypeError) as exc:
            raise PaymentProviderError(
                "Payment gateway response missing redirect URL",
                provider=self.provider,
                provider_code=body.get("code"),
                raw_response=body,
            ) from exc
        return PayResult(redirect_url=redirect_url, raw_response=data)

    async def query_status(self, transaction_id: str) -> StatusResult:  # type: ignore[override]
        endpoint = self.status_endpoint(transaction_id)
        headers = {
            "Content-Type": "application/json",
            "X-VERIFY": self.signer.sign("", endpoint),
            "X-MERCHANT-ID": self.merchant_id,
            "accept": "application/json",
        }

        async def _send() -> httpx.Response:
            async with self.client() as http:
                return await http.get(f"{self.api_url}{endpoint}", headers=headers)

        response = await self._retry(_send)
        body = self._envelope(response)
        if body.get("success") is not True:
            self._log("phonepe_status_rejected", transaction_id=transaction_id, code=body.get("code"))
            raise self._reject(body, "Payment status check failed")

        data = body.get("data") or {}
        upstream_state = data.get("state")
        mapped = self._map_status(upstream_state)
        self._log(
            "phonepe_status_response",
            transaction_id=transaction_id,
            state=upstream_state,
            mapped=mapped,
        )
        return StatusResult(
            status=TransactionStatus(mapped) if mapped else None,
            upstream_state=upstream_state,
            code=body.get("code"),
            raw_response=data,
        )
