"""
Klarna Checkout (v2, aggregated order) client over httpx.

A connector is a signed HTTP session bound to one Klarna domain; a
CheckoutOrder is a handle on one remote order resource. Every request body
is signed with ``Authorization: Klarna base64(sha256(body + shared_secret))``.
"""
from __future__ import annotations

import base64
import copy
import hashlib
import json
from dataclasses import dataclass, field
from typing import Any, Mapping, Optional

import httpx
from pydantic import ValidationError
from tenacity import Retrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from application.dtos.payments import RemoteOrder
from core.logging_config import get_logger
from infrastructure.external.payments.exceptions import PaymentProviderError, PaymentTimeoutError


logger = get_logger(__name__)

PROVIDER = "klarna"

BASE_URL = "https://checkout.klarna.com"
BASE_TEST_URL = "https://checkout.testdrive.klarna.com"

CONTENT_TYPE = "application/vnd.klarna.checkout.aggregated-order-v2+json"
USER_AGENT = "klarna-checkout-gateway/1.0 (python; httpx)"


def endpoint_for_mode(mode: str) -> str:
    """Live mode talks to production, everything else to the test drive."""
    if mode == "live":
        return BASE_URL
    return BASE_TEST_URL


def sign_payload(payload: str, shared_secret: str) -> str:
    digest = hashlib.sha256((payload + shared_secret).encode("utf-8")).digest()
    return base64.b64encode(digest).decode("ascii")


@dataclass
class ConnectorResponse:
    status_code: int
    location: Optional[str] = None
    data: dict[str, Any] = field(default_factory=dict)


class KlarnaCheckoutConnector:
    """Signed, blocking session against one Klarna Checkout domain."""

    def __init__(
        self,
        shared_secret: str,
        base_url: str,
        *,
        timeouts: Optional[dict[str, float]] = None,
        retry: Optional[dict[str, Any]] = None,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self._shared_secret = shared_secret
        self._retry_cfg = retry or {"max": 2, "base": 0.2}
        cfg = timeouts or {"connect": 1.0, "read": 3.0, "write": 3.0, "total": 5.0}
        self._client = httpx.Client(
            timeout=httpx.Timeout(
                connect=cfg["connect"],
                read=cfg["read"],
                write=cfg["write"],
                timeout=cfg["total"],
            ),
            transport=transport,
            follow_redirects=True,
        )

    @classmethod
    def create(cls, shared_secret: str, base_url: str, **kwargs: Any) -> "KlarnaCheckoutConnector":
        return cls(shared_secret, base_url, **kwargs)

    def close(self) -> None:
        self._client.close()

    def _headers(self, body: str) -> dict[str, str]:
        headers = {
            "Authorization": f"Klarna {sign_payload(body, self._shared_secret)}",
            "Accept": CONTENT_TYPE,
            "User-Agent": USER_AGENT,
        }
        if body:
            headers["Content-Type"] = CONTENT_TYPE
        return headers

    def _send(self, method: str, url: str, body: str) -> httpx.Response:
        try:
            return self._client.request(method, url, content=body.encode("utf-8") if body else None, headers=self._headers(body))
        except (httpx.InvalidURL, httpx.UnsupportedProtocol, ValueError) as exc:
            # not retried
            raise PaymentProviderError(
                f"invalid klarna order uri: {url!r}",
                provider=PROVIDER,
                details={"url": url, "reason": str(exc)},
            ) from exc
        except httpx.TimeoutException as exc:
            raise PaymentTimeoutError(f"klarna request timed out: {exc}", provider=PROVIDER, details={"url": url}) from exc
        except httpx.TransportError as exc:
            raise PaymentTimeoutError(f"klarna transport failure: {exc}", provider=PROVIDER, details={"url": url}) from exc

    def _send_idempotent(self, method: str, url: str) -> httpx.Response:
        for attempt in Retrying(
            stop=stop_after_attempt(int(self._retry_cfg["max"]) + 1),
            wait=wait_exponential(multiplier=self._retry_cfg["base"], min=0.1, max=2.0),
            retry=retry_if_exception_type(PaymentTimeoutError),
            reraise=True,
        ):
            with attempt:
                return self._send(method, url, "")

    def apply(self, method: str, url: str, payload: Optional[Mapping[str, Any]] = None) -> ConnectorResponse:
        """Send one request; only body-less GETs are retried."""
        method = method.upper()
        self._check_url(url)
        if method == "GET":
            response = self._send_idempotent(method, url)
        else:
            body = json.dumps(payload or {}, ensure_ascii=False, separators=(",", ":"))
            response = self._send(method, url, body)
        logger.debug("klarna_http_response", method=method, url=url, status_code=response.status_code)
        return self._parse(response)

    @staticmethod
    def _check_url(url: str) -> None:
        try:
            parsed = httpx.URL(url)
        except (httpx.InvalidURL, TypeError) as exc:
            raise PaymentProviderError(
                f"invalid klarna order uri: {url!r}",
                provider=PROVIDER,
                details={"url": url, "reason": str(exc)},
            ) from exc
        if parsed.scheme not in ("http", "https") or not parsed.host:
            raise PaymentProviderError(
                f"klarna order uri must be an absolute http(s) url: {url!r}",
                provider=PROVIDER,
                details={"url": url},
            )

    def _parse(self, response: httpx.Response) -> ConnectorResponse:
        if response.status_code >= 400:
            raise self._error_from(response)
        data: dict[str, Any] = {}
        if response.content:
            try:
                decoded = response.json()
            except ValueError as exc:
                raise PaymentProviderError(
                    "klarna returned a non-JSON body",
                    provider=PROVIDER,
                    http_status=response.status_code,
                ) from exc
            if not isinstance(decoded, dict):
                raise PaymentProviderError(
                    "klarna returned an unexpected payload",
                    provider=PROVIDER,
                    http_status=response.status_code,
                )
            data = decoded
        location = response.headers.get("Location")
        if location is None and response.history:
            # followed a redirect: the final URL is the order's current location
            location = str(response.url)
        return ConnectorResponse(status_code=response.status_code, location=location, data=data)

    @staticmethod
    def _error_from(response: httpx.Response) -> PaymentProviderError:
        payload: dict[str, Any] = {}
        try:
            decoded = response.json()
            if isinstance(decoded, dict):
                payload = decoded
        except ValueError:
            pass
        message = (
            payload.get("internal_message")
            or payload.get("http_status_message")
            or response.reason_phrase
            or "klarna request failed"
        )
        return PaymentProviderError(
            str(message),
            provider=PROVIDER,
            provider_code=str(payload["http_status_code"]) if "http_status_code" in payload else None,
            http_status=response.status_code,
            details={"url": str(response.request.url)},
        )


class CheckoutOrder:
    """Handle on one remote checkout order.

    Without a uri the handle can only ``create``; afterwards ``location``
    points at the remote resource and ``fetch``/``update`` work against it.
    """

    base_path = "/checkout/orders"

    def __init__(self, connector: KlarnaCheckoutConnector, uri: Optional[str] = None) -> None:
        self._connector = connector
        self.location = uri
        self._data: dict[str, Any] = {}

    def create(self, params: Mapping[str, Any]) -> None:
        response = self._connector.apply("POST", f"{self._connector.base_url}{self.base_path}", params)
        if not response.location:
            raise PaymentProviderError(
                "klarna created an order without returning its location",
                provider=PROVIDER,
                http_status=response.status_code,
            )
        self.location = response.location
        self._data = dict(params)

    def fetch(self) -> None:
        response = self._connector.apply("GET", self._require_location())
        if response.location:
            self.location = response.location
        self._data = response.data

    def update(self, params: Mapping[str, Any]) -> None:
        response = self._connector.apply("POST", self._require_location(), params)
        if response.data:
            self._data = response.data
        else:
            self._data.update(params)

    def _require_location(self) -> str:
        if not self.location:
            raise PaymentProviderError(
                "checkout order has no location; create it or pass a uri",
                provider=PROVIDER,
            )
        return self.location

    def __getitem__(self, key: str) -> Any:
        return self._data[key]

    def get(self, key: str, default: Any = None) -> Any:
        return self._data.get(key, default)

    def marshal(self) -> dict[str, Any]:
        return copy.deepcopy(self._data)

    def snapshot(self) -> RemoteOrder:
        try:
            return RemoteOrder.model_validate(self._data)
        except ValidationError as exc:
            raise PaymentProviderError(
                "klarna order payload is malformed",
                provider=PROVIDER,
                details={"location": self.location, "errors": exc.errors(include_url=False, include_context=False)},
            ) from exc
