"""
Factory for payment gateway clients.
"""
from __future__ import annotations

from typing import Optional

from core.settings import payment_settings
from application.ports.payment_gateway import PaymentGateway


def get_payment_gateway(provider: Optional[str] = None) -> PaymentGateway:
    name = (provider or payment_settings.default_provider).lower()
    if name in {"klarna", "klarna_checkout", "kco"}:
        from .klarna_client import KlarnaGateway
        return KlarnaGateway(payment_settings.klarna.model_dump())
    raise ValueError(f"Unsupported payment provider: {name}")
