"""
Payment gateway port (application/ports) exposing a replaceable protocol.

Application depends on this Protocol; infrastructure implements adapters.
"""
from __future__ import annotations

from typing import Any, Mapping, Optional, Protocol, runtime_checkable

from application.dtos.payments import SnippetResponse, StartPaymentRequest
from application.ports.order_agent import OrderAgent
from domain.payment.status import PaymentStatus
from domain.payment.value_objects import Price


@runtime_checkable
class PaymentGateway(Protocol):
    """Gateway protocol for checkout-style payment providers.

    One instance serves one payment session: authorized data kept between
    handle_response and execute_debit is per instance. Calls are blocking.
    """

    provider: str

    def get_name(self) -> str: ...

    def init_payment(self, price: Price, config: Mapping[str, Any]) -> str: ...

    def start_payment(self, order_agent: OrderAgent, price: Price, request: StartPaymentRequest) -> SnippetResponse: ...

    def handle_response(self, response: Any) -> PaymentStatus: ...

    def execute_debit(self, price: Optional[Price] = None, reference: Optional[str] = None) -> PaymentStatus: ...

    def execute_credit(self, price: Price, reference: str, transaction_id: str) -> PaymentStatus: ...

    def get_authorized_data(self) -> dict[str, str]: ...

    def set_authorized_data(self, authorized_data: Mapping[str, str]) -> None: ...
