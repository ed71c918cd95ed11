"""
Payment specific codes and provider status mapping.
"""
from __future__ import annotations

from enum import IntEnum


class PaymentCode(IntEnum):
    # Generic success
    SUCCESS = 0

    # Provider/Network errors (6xxxx)
    PROVIDER_ERROR = 60000
    TIMEOUT = 60003

    # Adapter contract errors (61xxx)
    CONFIGURATION_ERROR = 61000
    PRECONDITION_FAILED = 61001
    UNSUPPORTED_OPERATION = 61002
    NOT_IMPLEMENTED = 61003


# Normalized status vocabulary shared by every gateway
STATUS_AUTHORIZED = "AUTHORIZED"
STATUS_CLEARED = "CLEARED"
STATUS_CANCELLED = "CANCELLED"

# Klarna Checkout v2 order states
KLARNA_CHECKOUT_COMPLETE = "checkout_complete"
KLARNA_CREATED = "created"


# Provider→normalized status mapping; unknown states fall back to STATUS_CANCELLED
PROVIDER_STATUS_TO_NORMALIZED = {
    "klarna": {
        KLARNA_CHECKOUT_COMPLETE: STATUS_AUTHORIZED,
        KLARNA_CREATED: STATUS_CLEARED,
    },
}
