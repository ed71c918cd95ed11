"""
Base payment client implementing shared concerns: timeouts, retry config,
input validation and logging.

Concrete providers should subclass and implement provider-specific logic.
"""
from __future__ import annotations

from typing import Any, Mapping, Optional, Sequence

from core.logging_config import get_logger
from domain.payment.exceptions import PaymentValidationError


logger = get_logger(__name__)


class BasePaymentClient:
    provider: str = "base"

    def __init__(
        self,
        *,
        timeouts: Optional[dict[str, float]] = None,
        retry: Optional[dict[str, Any]] = None,
    ) -> None:
        self._timeouts_cfg = timeouts or {"connect": 1.0, "read": 3.0, "write": 3.0, "total": 5.0}
        self._retry_cfg = retry or {"max": 2, "base": 0.2}

    # Helpers
    def _require_fields(self, data: Mapping[str, Any], required: Sequence[str]) -> None:
        """Fail with every missing key, in the order they are required."""
        missing = [key for key in required if key not in data]
        if missing:
            self._log("payment_input_rejected", level="warning", missing=missing)
            raise PaymentValidationError(missing, provider=self.provider)

    def _log(self, event: str, *, level: str = "info", **kwargs) -> None:
        getattr(logger, level)(
            event,
            provider=self.provider,
            **kwargs,
        )
