"""
Exceptions for payment providers mapped to unified BusinessException variants.
"""
from __future__ import annotations

from typing import Optional
from domain.common.exceptions import BusinessException
from shared.codes.payment_codes import PaymentCode


class PaymentProviderError(BusinessException):
    def __init__(
        self,
        message: str,
        *,
        provider: str,
        provider_code: str | None = None,
        http_status: int | None = None,
        details: Optional[dict] = None,
    ):
        full_details = {"provider": provider, "provider_code": provider_code, "http_status": http_status}
        if details:
            full_details.update(details)
        super().__init__(
            code=PaymentCode.PROVIDER_ERROR,
            message=message,
            error_type="PaymentProviderError",
            details=full_details,
        )
        self.provider = provider
        self.provider_code = provider_code
        self.http_status = http_status


class PaymentTimeoutError(PaymentProviderError):
    """Transport gave up (connect/read timeout or connection failure)."""

    def __init__(self, message: str, *, provider: str, details: Optional[dict] = None):
        super().__init__(message, provider=provider, details=details)
        self.code = PaymentCode.TIMEOUT
        self.error_type = "PaymentTimeoutError"
