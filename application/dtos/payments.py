"""
Payment DTOs (Pydantic v2) used at application boundaries.

Wire names are camelCase to match the client application and PhonePe;
Python attributes stay snake_case (populate_by_name).
"""
from __future__ import annotations

from decimal import Decimal
from typing import Any, Optional
from pydantic import BaseModel, Field, ConfigDict

from domain.payment.entity import TransactionStatus


class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class InitiatePayment(_CamelModel):
    """Client request body. Presence/positivity is checked by the service so
    that missing fields surface as a 400 ValidationError, not a schema error."""

    model_config = ConfigDict(populate_by_name=True, coerce_numbers_to_str=True)

    appointment_id: Optional[str] = Field(default=None, alias="appointmentId")
    amount_minor_units: Optional[int] = Field(default=None, alias="amountMinorUnits")
    # Legacy field in major units (rupees); converted with a factor of 100
    amount: Optional[Decimal] = None
    user_details: Optional[dict[str, Any]] = Field(default=None, alias="userDetails")
    appointment_details: Optional[dict[str, Any]] = Field(default=None, alias="appointmentDetails")


class PaymentInstrument(_CamelModel):
    type: str = "PAY_PAGE"


class PayRequest(_CamelModel):
    """Payload base64-encoded into the `/pg/v1/pay` envelope."""

    merchant_id: str = Field(alias="merchantId")
    merchant_transaction_id: str = Field(alias="merchantTransactionId")
    merchant_user_id: str = Field(alias="merchantUserId")
    amount: int
    redirect_url: str = Field(alias="redirectUrl")
    redirect_mode: str = Field(default="POST", alias="redirectMode")
    callback_url: str = Field(alias="callbackUrl")
    mobile_number: str = Field(alias="mobileNumber")
    payment_instrument: PaymentInstrument = Field(default_factory=PaymentInstrument, alias="paymentInstrument")

    def to_payload(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True)


class PayResult(BaseModel):
    redirect_url: str
    raw_response: dict[str, Any]


class StatusResult(BaseModel):
    # None when the upstream state has no local counterpart
    status: Optional[TransactionStatus] = None
    upstream_state: Optional[str] = None
    code: Optional[str] = None
    raw_response: dict[str, Any] = Field(default_factory=dict)


class InitiatedPayment(_CamelModel):
    transaction_id: str = Field(alias="transactionId")
    redirect_url: str = Field(alias="redirectUrl")


class CallbackAck(BaseModel):
    success: bool = True
    transaction_id: Optional[str] = None
    duplicate: bool = False
