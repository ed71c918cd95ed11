"""
Klarna Checkout gateway.

Drives the checkout order lifecycle (create → confirm → capture) through
KlarnaCheckoutConnector/CheckoutOrder and reports every outcome as a
normalized PaymentStatus. One instance serves one payment session: the
authorized data stored by handle_response is what execute_debit captures.
"""
from __future__ import annotations

import json
from typing import Any, Mapping, Optional, Union

from pydantic import ValidationError

from application.dtos.payments import RemoteOrder, SnippetResponse, StartPaymentRequest
from application.ports.checkout_orders import ConnectorFactory
from application.ports.order_agent import OrderAgent
from core.settings import KlarnaSettings, payment_settings
from domain.payment.exceptions import (
    GatewayConfigurationError,
    PaymentNotImplementedError,
    PaymentPreconditionError,
    UnsupportedOperationError,
)
from domain.payment.status import PaymentStatus
from domain.payment.value_objects import Price
from infrastructure.external.payments.base import BasePaymentClient
from infrastructure.external.payments.exceptions import PaymentProviderError
from infrastructure.external.payments.klarna_checkout import (
    CheckoutOrder,
    KlarnaCheckoutConnector,
    endpoint_for_mode,
)
from shared.codes.payment_codes import KLARNA_CHECKOUT_COMPLETE, KLARNA_CREATED


class KlarnaGateway(BasePaymentClient):
    provider = "klarna"

    REQUIRED_INIT_FIELDS = ("purchase_country", "locale", "merchant_reference")
    REQUIRED_RESPONSE_FIELDS = ("klarna_order",)
    AUTHORIZED_DATA_FIELDS = ("klarna_order",)

    def __init__(
        self,
        options: Union[KlarnaSettings, Mapping[str, Any]],
        *,
        connector_factory: Optional[ConnectorFactory] = None,
        timeouts: Optional[dict[str, float]] = None,
        retry: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(
            timeouts=timeouts or payment_settings.timeouts.model_dump(),
            retry=retry or {"max": payment_settings.retry.max, "base": payment_settings.retry.base_backoff},
        )
        self.options = self._resolve_options(options)
        self.eid = self.options.eid
        self.endpoint = endpoint_for_mode(self.options.mode)
        self._authorized_data: dict[str, str] = {}
        self._connector_factory = connector_factory or self._default_connector
        self._connector = None

    @classmethod
    def _resolve_options(cls, options: Union[KlarnaSettings, Mapping[str, Any]]) -> KlarnaSettings:
        if isinstance(options, KlarnaSettings):
            return options
        try:
            return KlarnaSettings.model_validate(dict(options or {}))
        except ValidationError as exc:
            fields = [".".join(str(p) for p in err["loc"]) for err in exc.errors()]
            raise GatewayConfigurationError(
                f"invalid klarna options: {', '.join(fields)}",
                provider=cls.provider,
                fields=fields,
                details={"errors": [err["msg"] for err in exc.errors()]},
            ) from exc

    def _default_connector(self, shared_secret: str, base_url: str) -> KlarnaCheckoutConnector:
        return KlarnaCheckoutConnector.create(
            shared_secret,
            base_url,
            timeouts=self._timeouts_cfg,
            retry=self._retry_cfg,
        )

    def get_name(self) -> str:
        return "Klarna"

    def create_order(self, uri: Optional[str] = None) -> CheckoutOrder:
        if self._connector is None:
            self._connector = self._connector_factory(self.options.shared_secret_key, self.endpoint)
        return CheckoutOrder(self._connector, uri)

    def init_payment(self, price: Price, config: Mapping[str, Any]) -> str:
        """Create a checkout order and return the snippet the shop renders."""
        self._require_fields(config, self.REQUIRED_INIT_FIELDS)

        params = dict(config)
        params["purchase_currency"] = price.currency.short_name
        params["merchant"] = {**dict(params.get("merchant") or {}), "id": self.eid}

        order = self.create_order()
        order.create(params)
        self._log("klarna_order_created", order_uri=order.location, currency=params["purchase_currency"])

        order.fetch()
        snippet = order.snapshot().snippet
        if not snippet:
            raise PaymentProviderError(
                "klarna order carries no checkout snippet",
                provider=self.provider,
                details={"order_uri": order.location},
            )
        return snippet

    def start_payment(self, order_agent: OrderAgent, price: Price, request: StartPaymentRequest) -> SnippetResponse:
        snippet = self.init_payment(price, request.as_dict())
        return SnippetResponse(order=order_agent.get_order(), snippet=snippet, provider=self.provider)

    def handle_response(self, response: Any) -> PaymentStatus:
        """Reconcile a confirmation/push callback against the remote order.

        Always refetches, so repeated callbacks report the current state.
        """
        data = self._as_mapping(response)
        self._require_fields(data, self.REQUIRED_RESPONSE_FIELDS)

        authorized_data = {key: str(data[key]) for key in self.AUTHORIZED_DATA_FIELDS}
        self.set_authorized_data(authorized_data)

        order = self.create_order(authorized_data["klarna_order"])
        order.fetch()
        remote = order.snapshot()

        status = PaymentStatus.from_provider(
            self.provider,
            merchant_order_id=remote.merchant_order_id,
            provider_order_id=remote.id,
            raw_status=remote.status,
            additional_data={
                **self._audit_data(order, remote),
                "reservation": remote.reservation or "",
                "reference": remote.reference or "",
            },
        )
        self._log(
            "klarna_response_handled",
            order_uri=order.location,
            status=remote.status,
            normalized=status.normalized_code.value,
        )
        return status

    def get_authorized_data(self) -> dict[str, str]:
        return dict(self._authorized_data)

    def set_authorized_data(self, authorized_data: Mapping[str, str]) -> None:
        self._authorized_data = dict(authorized_data)

    def execute_debit(self, price: Optional[Price] = None, reference: Optional[str] = None) -> PaymentStatus:
        """Capture the authorized order.

        Only a ``checkout_complete`` order is moved to ``created``; an order
        that is already ``created`` is reported again without a second update.
        """
        if price is not None:
            raise UnsupportedOperationError(
                "execute_debit",
                provider=self.provider,
                reason="amount-qualified capture",
            )

        order_uri = self._authorized_data.get("klarna_order")
        if not order_uri:
            raise PaymentPreconditionError(
                "no authorized klarna order; handle the checkout response first",
                provider=self.provider,
            )

        order = self.create_order(order_uri)
        order.fetch()
        remote = order.snapshot()

        if remote.status == KLARNA_CHECKOUT_COMPLETE:
            order.update({"status": KLARNA_CREATED})
            remote = order.snapshot()
            self._log("klarna_order_captured", order_uri=order_uri, status=remote.status)
        else:
            self._log("klarna_debit_skipped", order_uri=order_uri, status=remote.status)

        return PaymentStatus.from_provider(
            self.provider,
            merchant_order_id=reference,
            provider_order_id=remote.id,
            raw_status=remote.status,
            additional_data=self._audit_data(order, remote),
            capture=True,
        )

    def execute_credit(self, price: Price, reference: str, transaction_id: str) -> PaymentStatus:
        # TODO: refunds go through the Klarna order management API, not checkout orders
        raise PaymentNotImplementedError("execute_credit", provider=self.provider)

    def close(self) -> None:
        if self._connector is not None:
            try:
                self._connector.close()
            finally:
                self._connector = None

    def __enter__(self) -> "KlarnaGateway":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    @staticmethod
    def _as_mapping(response: Any) -> Mapping[str, Any]:
        if isinstance(response, Mapping):
            return response
        as_dict = getattr(response, "as_dict", None)
        if callable(as_dict):
            return as_dict()
        raise TypeError(f"unsupported callback payload: {type(response).__name__}")

    @staticmethod
    def _audit_data(order: CheckoutOrder, remote: RemoteOrder) -> dict[str, str]:
        return {
            "amount": "" if remote.amount is None else str(remote.amount),
            "marshal": json.dumps(order.marshal(), ensure_ascii=False),
        }
