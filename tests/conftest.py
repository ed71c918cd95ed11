"""Pytest bootstrap configuration.

Ensure payment environment variables are set before test collection
and module imports that depend on application settings.
"""
import json
import os

os.environ.setdefault("KLARNA__EID", "test-eid")
os.environ.setdefault("KLARNA__SHARED_SECRET_KEY", "test-secret")
os.environ.setdefault("KLARNA__MODE", "sandbox")

import httpx
import pytest

from infrastructure.external.payments.klarna_checkout import BASE_TEST_URL, KlarnaCheckoutConnector
from infrastructure.external.payments.klarna_client import KlarnaGateway


class FakeKlarna:
    """In-memory Klarna Checkout v2 endpoint served through httpx.MockTransport."""

    def __init__(self, base_url: str = BASE_TEST_URL) -> None:
        self.base_url = base_url
        self.orders: dict[str, dict] = {}
        self.requests: list[httpx.Request] = []
        self.snippet_enabled = True
        self._next_id = 1

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    def connector_factory(self, shared_secret: str, base_url: str) -> KlarnaCheckoutConnector:
        return KlarnaCheckoutConnector(
            shared_secret,
            base_url,
            retry={"max": 0, "base": 0.1},
            transport=self.transport,
        )

    def seed(self, status: str, **fields) -> str:
        order_id = f"FZ{self._next_id:04d}"
        self._next_id += 1
        uri = f"{self.base_url}/checkout/orders/{order_id}"
        self.orders[uri] = {
            "id": order_id,
            "status": status,
            "merchant_reference": {"orderid1": "M-1", "orderid2": "ORDER-42"},
            "cart": {"total_price_including_tax": 10000, "items": []},
            **fields,
        }
        return uri

    def count(self, method: str, path_suffix: str = "") -> int:
        return sum(
            1
            for r in self.requests
            if r.method == method and str(r.url).endswith(path_suffix)
        )

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        url = str(request.url)
        if request.method == "POST" and url == f"{self.base_url}/checkout/orders":
            body = json.loads(request.content)
            uri = self.seed("checkout_incomplete", **body)
            order = self.orders[uri]
            if self.snippet_enabled:
                order["gui"] = {"layout": "desktop", "snippet": f"<div id=\"klarna-checkout-container\">{order['id']}</div>"}
            return httpx.Response(201, headers={"Location": uri})
        order = self.orders.get(url)
        if order is None:
            return httpx.Response(
                404,
                json={"http_status_code": 404, "http_status_message": "Not Found", "internal_message": "Order not found"},
            )
        if request.method == "GET":
            return httpx.Response(200, json=order)
        order.update(json.loads(request.content))
        if order.get("status") == "created":
            order.setdefault("reservation", "R-123")
            order.setdefault("reference", "REF-123")
        return httpx.Response(200, json=order)


@pytest.fixture
def klarna() -> FakeKlarna:
    return FakeKlarna()


@pytest.fixture
def gateway(klarna):
    gw = KlarnaGateway(
        {"eid": "E1", "shared_secret_key": "S1", "mode": "sandbox"},
        connector_factory=klarna.connector_factory,
    )
    yield gw
    gw.close()
