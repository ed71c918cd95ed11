"""
Remote checkout-order client port.

Describes what a gateway needs from the provider SDK: a signed session
bound to one endpoint that sends order requests and hands back the parsed
response. Order handles in infrastructure are built on top of it.
"""
from __future__ import annotations

from typing import Any, Callable, Mapping, Optional, Protocol


class ConnectorResponse(Protocol):
    status_code: int
    location: Optional[str]
    data: dict[str, Any]


class CheckoutConnector(Protocol):
    base_url: str

    def apply(self, method: str, url: str, payload: Optional[Mapping[str, Any]] = None) -> ConnectorResponse: ...

    def close(self) -> None: ...


# (shared_secret, base_url) -> connector
ConnectorFactory = Callable[[str, str], CheckoutConnector]
