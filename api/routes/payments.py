"""
PhonePe payment routes.

Keep this thin: the service owns validation, signatures and state;
these handlers only translate HTTP to service calls and back.
"""
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Header, Request
from fastapi.responses import JSONResponse
from starlette import status as http_status

from api.dependencies import get_callback_url, get_payment_service
from application.dtos.payments import InitiatePayment
from application.services.payment_service import PaymentService
from core.response import success_response
from core.logging_config import get_logger
from infrastructure.external.payments.exceptions import PaymentProviderError


router = APIRouter(prefix="/phonepe", tags=["Payments"])
logger = get_logger(__name__)


def _rejected_envelope(exc: PaymentProviderError) -> dict:
    body = dict(exc.raw_response or {})
    body.setdefault("code", exc.provider_code)
    body["success"] = False
    body["message"] = exc.message
    return body


@router.post("/initiate", summary="Initiate payment")
async def initiate_payment(
    payload: InitiatePayment,
    callback_url: str = Depends(get_callback_url),
    service: PaymentService = Depends(get_payment_service),
):
    result = await service.initiate(payload, callback_url=callback_url)
    return success_response(data=result.model_dump(by_alias=True))


@router.post("/callback", name="phonepe_callback", summary="Gateway payment notification")
async def payment_callback(
    request: Request,
    x_verify: Optional[str] = Header(default=None, alias="X-VERIFY"),
    service: PaymentService = Depends(get_payment_service),
):
    raw_body = await request.body()
    ack = await service.handle_callback(raw_body, x_verify)
    logger.info("payment_callback_acknowledged", transaction_id=ack.transaction_id, duplicate=ack.duplicate)
    # Minimal acknowledgement; the gateway only looks at the status code
    return success_response()


@router.post("/status/{transaction_id}", summary="Reconcile payment status")
async def check_payment_status(
    transaction_id: str,
    service: PaymentService = Depends(get_payment_service),
):
    try:
        merged = await service.check_status(transaction_id)
    except PaymentProviderError as exc:
        # Upstream rejection: hand back the gateway envelope (code, data) as received
        logger.warning("payment_status_rejected", transaction_id=transaction_id, provider_code=exc.provider_code)
        return JSONResponse(
            status_code=http_status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=_rejected_envelope(exc),
        )
    return success_response(data=merged)
