"""
Factory for payment gateway clients.
"""
from __future__ import annotations

from typing import Optional

from core.settings import payment_settings
from application.ports.payment_gateway import PaymentGateway


def get_payment_gateway(provider: Optional[str] = None) -> PaymentGateway:
    name = (provider or payment_settings.default_provider).lower()
    if name == "phonepe":
        from .phonepe_client import PhonePeClient
        return PhonePeClient()
    raise ValueError(f"Unsupported payment provider: {name}")
