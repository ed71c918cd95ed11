"""
Normalized payment status and the provider status mapper.

The mapper is the single place where provider wording is translated into
the adapter vocabulary; PaymentStatus instances are only built through it.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Mapping, Optional

from shared.codes.payment_codes import (
    PROVIDER_STATUS_TO_NORMALIZED,
    STATUS_AUTHORIZED,
    STATUS_CANCELLED,
    STATUS_CLEARED,
)


class NormalizedStatus(str, Enum):
    AUTHORIZED = STATUS_AUTHORIZED
    CLEARED = STATUS_CLEARED
    CANCELLED = STATUS_CANCELLED


def map_provider_status(provider: str, raw_status: Optional[str]) -> NormalizedStatus:
    """Map a provider order status onto the normalized vocabulary.

    Total: unknown providers, unknown states and missing values all map to
    CANCELLED. Matching is exact (provider states are case sensitive).
    """
    table = PROVIDER_STATUS_TO_NORMALIZED.get(provider, {})
    return NormalizedStatus(table.get(raw_status or "", STATUS_CANCELLED))


def map_capture_status(provider: str, raw_status: Optional[str]) -> NormalizedStatus:
    """Classify the outcome of a capture: anything not cleared counts as failed."""
    code = map_provider_status(provider, raw_status)
    if code is NormalizedStatus.CLEARED:
        return code
    return NormalizedStatus.CANCELLED


@dataclass(frozen=True)
class PaymentStatus:
    merchant_order_id: Optional[str]
    provider_order_id: Optional[str]
    raw_status: Optional[str]
    normalized_code: NormalizedStatus
    additional_data: Mapping[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "additional_data", MappingProxyType(dict(self.additional_data)))

    @classmethod
    def from_provider(
        cls,
        provider: str,
        *,
        merchant_order_id: Optional[str],
        provider_order_id: Optional[str],
        raw_status: Optional[str],
        additional_data: Optional[Mapping[str, str]] = None,
        capture: bool = False,
    ) -> "PaymentStatus":
        mapper = map_capture_status if capture else map_provider_status
        return cls(
            merchant_order_id=merchant_order_id,
            provider_order_id=provider_order_id,
            raw_status=raw_status,
            normalized_code=mapper(provider, raw_status),
            additional_data=additional_data or {},
        )

    @property
    def is_authorized(self) -> bool:
        return self.normalized_code is NormalizedStatus.AUTHORIZED

    @property
    def is_cleared(self) -> bool:
        return self.normalized_code is NormalizedStatus.CLEARED

    def as_dict(self) -> dict:
        return {
            "merchant_order_id": self.merchant_order_id,
            "provider_order_id": self.provider_order_id,
            "raw_status": self.raw_status,
            "normalized_code": self.normalized_code.value,
            "additional_data": dict(self.additional_data),
        }
