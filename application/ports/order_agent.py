"""
Host order-agent port: the gateway only needs to know which order a
checkout belongs to.
"""
from __future__ import annotations

from typing import Any, Protocol, runtime_checkable


@runtime_checkable
class OrderAgent(Protocol):
    def get_order(self) -> Any: ...
