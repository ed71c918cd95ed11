"""
Payments API routes.

Exposes the Klarna checkout flow over HTTP: open a checkout, handle the
shopper's confirmation redirect and the provider push. Keep this thin: no
SDK details here.
"""
from __future__ import annotations

from typing import Any, Iterator, Optional

from fastapi import APIRouter, Depends, Query

from application.dtos.payments import CheckoutRequest, PaymentStatusDTO
from application.services.payment_service import PaymentService
from core.logging_config import get_logger, log_context
from core.response import success_response
from domain.payment.value_objects import Price
from infrastructure.external.payments import get_payment_gateway


router = APIRouter(prefix="/payments/klarna", tags=["Payments"])
logger = get_logger(__name__)


class RequestOrderAgent:
    """Order agent for a checkout opened over HTTP: the order is the caller's id."""

    def __init__(self, order_id: str) -> None:
        self.order_id = order_id

    def get_order(self) -> Any:
        return {"order_id": self.order_id}


def get_payment_service() -> Iterator[PaymentService]:
    service = PaymentService(gateway=get_payment_gateway("klarna"))
    try:
        yield service
    finally:
        service.close()


def _status_payload(status) -> dict:
    return PaymentStatusDTO(**status.as_dict()).model_dump(mode="json")


@router.post("/checkout", summary="Open Klarna checkout")
def start_checkout(payload: CheckoutRequest, service: PaymentService = Depends(get_payment_service)):
    with log_context(provider=service.gateway.provider, order_id=payload.order_id):
        price = Price.of(payload.amount, payload.currency)
        result = service.start_payment(RequestOrderAgent(payload.order_id), price, payload)
    return success_response(data=result.model_dump(mode="json"), message="Checkout created")


@router.get("/confirmation", summary="Handle checkout confirmation")
def confirmation(
    klarna_order: str = Query(..., description="Klarna checkout order URI"),
    service: PaymentService = Depends(get_payment_service),
):
    with log_context(provider=service.gateway.provider, klarna_order=klarna_order):
        status = service.handle_response({"klarna_order": klarna_order})
    data = _status_payload(status)
    data["authorized_data"] = service.gateway.get_authorized_data()
    return success_response(data=data, message="Checkout status")


@router.post("/push", summary="Klarna push notification")
def push(
    klarna_order: str = Query(..., description="Klarna checkout order URI"),
    reference: Optional[str] = Query(default=None),
    service: PaymentService = Depends(get_payment_service),
):
    with log_context(provider=service.gateway.provider, klarna_order=klarna_order, reference=reference):
        status = service.confirm_and_capture({"klarna_order": klarna_order}, reference=reference)
        logger.info("klarna_push_processed", status=status.normalized_code.value)
    return success_response(data=_status_payload(status), message="Push processed")
