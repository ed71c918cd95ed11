"""
Payment adapter error taxonomy.

Every failure an adapter operation can produce is one of these (or a
PaymentProviderError raised by the remote client), so callers can tell
configuration, validation, precondition and unsupported-operation failures
apart without parsing messages.
"""
from __future__ import annotations

from typing import Iterable, Optional

from domain.common.exceptions import BusinessException, DomainValidationException
from shared.codes import BusinessCode
from shared.codes.payment_codes import PaymentCode


class GatewayConfigurationError(BusinessException):
    def __init__(self, message: str, *, provider: str, fields: Iterable[str] = (), details: Optional[dict] = None):
        full_details = {"provider": provider, "fields": list(fields)}
        if details:
            full_details.update(details)
        super().__init__(
            code=PaymentCode.CONFIGURATION_ERROR,
            message=message,
            error_type="GatewayConfigurationError",
            details=full_details,
        )


class PaymentValidationError(DomainValidationException):
    """Raised when a per-call input map lacks required keys."""

    def __init__(self, missing: Iterable[str], *, provider: str):
        missing = list(missing)
        super().__init__(
            f"required fields are missing! required: {', '.join(missing)}",
            field=missing[0] if missing else None,
            details={"provider": provider, "missing": missing},
            code=BusinessCode.PARAM_MISSING,
            error_type="PaymentValidationError",
        )
        self.missing = missing


class PaymentPreconditionError(BusinessException):
    def __init__(self, message: str, *, provider: str, details: Optional[dict] = None):
        full_details = {"provider": provider}
        if details:
            full_details.update(details)
        super().__init__(
            code=PaymentCode.PRECONDITION_FAILED,
            message=message,
            error_type="PaymentPreconditionError",
            details=full_details,
        )


class UnsupportedOperationError(BusinessException):
    def __init__(self, operation: str, *, provider: str, reason: str | None = None):
        message = f"{operation} is not supported by {provider}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(
            code=PaymentCode.UNSUPPORTED_OPERATION,
            message=message,
            error_type="UnsupportedOperationError",
            details={"provider": provider, "operation": operation},
        )


class PaymentNotImplementedError(BusinessException, NotImplementedError):
    """Operation is part of the gateway contract but not built yet."""

    def __init__(self, operation: str, *, provider: str):
        super().__init__(
            code=PaymentCode.NOT_IMPLEMENTED,
            message=f"{operation} not implemented for {provider}",
            error_type="PaymentNotImplementedError",
            details={"provider": provider, "operation": operation},
        )
