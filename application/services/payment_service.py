"""
Application service orchestrating payment use-cases.

This class depends only on the application PaymentGateway port and DTOs.
Gateway implementations are provided by infrastructure and must be injected
from the composition root (API/tasks), keeping dependencies one-way.
"""
from __future__ import annotations

from typing import Any, Mapping, Optional

from application.dtos.payments import SnippetResponse, StartPaymentRequest
from application.ports.order_agent import OrderAgent
from application.ports.payment_gateway import PaymentGateway
from core.logging_config import get_logger
from domain.payment.status import PaymentStatus
from domain.payment.value_objects import Price


logger = get_logger(__name__)


class PaymentService:
    def __init__(self, gateway: PaymentGateway) -> None:
        self.gateway = gateway

    def start_payment(self, order_agent: OrderAgent, price: Price, request: StartPaymentRequest) -> SnippetResponse:
        logger.info(
            "payment_start_request",
            provider=self.gateway.provider,
            currency=price.currency.short_name,
            purchase_country=request.purchase_country,
        )
        return self.gateway.start_payment(order_agent, price, request)

    def handle_response(self, response: Any) -> PaymentStatus:
        status = self.gateway.handle_response(response)
        logger.info(
            "payment_response_handled",
            provider=self.gateway.provider,
            provider_order_id=status.provider_order_id,
            status=status.normalized_code.value,
        )
        return status

    def capture(self, *, reference: Optional[str] = None, authorized_data: Optional[Mapping[str, str]] = None) -> PaymentStatus:
        """Capture the session's order, optionally resuming from persisted authorized data."""
        if authorized_data is not None:
            self.gateway.set_authorized_data(authorized_data)
        status = self.gateway.execute_debit(reference=reference)
        logger.info(
            "payment_capture_result",
            provider=self.gateway.provider,
            reference=reference,
            status=status.normalized_code.value,
        )
        return status

    def confirm_and_capture(self, response: Any, *, reference: Optional[str] = None) -> PaymentStatus:
        """Provider push: reconcile the callback, then capture authorized orders."""
        status = self.handle_response(response)
        if status.is_authorized or status.is_cleared:
            return self.capture(reference=reference or status.merchant_order_id)
        logger.info(
            "payment_capture_skipped",
            provider=self.gateway.provider,
            provider_order_id=status.provider_order_id,
            raw_status=status.raw_status,
        )
        return status

    def refund(self, price: Price, reference: str, transaction_id: str) -> PaymentStatus:
        logger.info("payment_refund_request", provider=self.gateway.provider, reference=reference)
        return self.gateway.execute_credit(price, reference, transaction_id)

    def close(self) -> None:
        # Best-effort close underlying resources
        close = getattr(self.gateway, "close", None)
        if callable(close):
            close()
