"""
Payment-related settings using pydantic-settings v2 with nested env keys.

This module is isolated so core.config.Settings stays about the service itself.
"""
from __future__ import annotations

from typing import Optional
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import BaseModel, Field

from shared.codes.payment_codes import PHONEPE_SUCCESS_CODE


class PaymentTimeouts(BaseModel):
    connect: float = 2.0
    read: float = 10.0
    write: float = 10.0
    total: float = 15.0


class PaymentRetry(BaseModel):
    max: int = 2
    base_backoff: float = 0.2


class WebhookSettings(BaseModel):
    dedupe_ttl_seconds: int = 86400


class PhonePeSettings(BaseModel):
    merchant_id: Optional[str] = None
    salt_key: Optional[str] = None
    salt_index: int = 1
    test_url: str = "https://api-preprod.phonepe.com/apis/pg-sandbox"
    prod_url: str = "https://api.phonepe.com/apis/hermes"
    # Overrides the callback URL derived from the serving host
    callback_url: Optional[str] = None
    success_code: str = PHONEPE_SUCCESS_CODE
    default_mobile: str = "9999999999"
    instrument_type: str = "PAY_PAGE"
    redirect_mode: str = "POST"
    # Reject callbacks for ids we never issued instead of acknowledging them
    reject_unknown_callbacks: bool = False

    def api_url(self, production: bool) -> str:
        url = self.prod_url if production else self.test_url
        return url.rstrip("/")


class PaymentSettings(BaseSettings):
    default_provider: str = Field(default="phonepe", validation_alias="PAYMENT__DEFAULT_PROVIDER")
    timeouts: PaymentTimeouts = Field(default_factory=PaymentTimeouts)
    retry: PaymentRetry = Field(default_factory=PaymentRetry)
    webhook: WebhookSettings = Field(default_factory=WebhookSettings)
    transaction_id_max_attempts: int = Field(default=5, validation_alias="TRANSACTION_ID_MAX_ATTEMPTS")

    phonepe: PhonePeSettings = Field(default_factory=PhonePeSettings)

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="allow",
        env_nested_delimiter="__",
    )


payment_settings = PaymentSettings()
