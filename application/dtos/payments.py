"""
Payment DTOs (Pydantic v2) used at application boundaries.
"""
from __future__ import annotations

from typing import Any, Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.types import condecimal

# Common ISO-4217 currencies (extend as needed)
ISO_4217 = {
    "USD", "EUR", "GBP", "SEK", "NOK", "DKK", "CHF", "PLN", "CZK",
}


class KlarnaMerchantReference(BaseModel):
    orderid1: Optional[str] = None
    orderid2: Optional[str] = None

    model_config = ConfigDict(extra="allow", coerce_numbers_to_str=True)


class KlarnaCart(BaseModel):
    total_price_including_tax: Optional[int] = None
    total_price_excluding_tax: Optional[int] = None
    total_tax_amount: Optional[int] = None
    items: list[dict[str, Any]] = Field(default_factory=list)

    model_config = ConfigDict(extra="allow")


class KlarnaGui(BaseModel):
    layout: Optional[str] = None
    snippet: Optional[str] = None

    model_config = ConfigDict(extra="allow")


class RemoteOrder(BaseModel):
    """Typed snapshot of a Klarna checkout order as returned by fetch/update.

    Every wire field is optional; callers that need a field check it at the
    client boundary instead of indexing nested dicts.
    Hosts may send numeric order ids; they are kept as strings.
    """

    id: Optional[str] = None
    status: Optional[str] = None
    reservation: Optional[str] = None
    reference: Optional[str] = None
    purchase_country: Optional[str] = None
    purchase_currency: Optional[str] = None
    locale: Optional[str] = None
    merchant_reference: KlarnaMerchantReference = Field(default_factory=KlarnaMerchantReference)
    cart: KlarnaCart = Field(default_factory=KlarnaCart)
    gui: KlarnaGui = Field(default_factory=KlarnaGui)

    model_config = ConfigDict(extra="allow", coerce_numbers_to_str=True)

    @field_validator("merchant_reference", mode="before")
    @classmethod
    def _wrap_plain_reference(cls, v: Any) -> Any:
        if v is None:
            return {}
        if isinstance(v, str):
            return {"orderid1": v}
        return v

    @property
    def merchant_order_id(self) -> Optional[str]:
        return self.merchant_reference.orderid2

    @property
    def amount(self) -> Optional[int]:
        return self.cart.total_price_including_tax

    @property
    def snippet(self) -> Optional[str]:
        return self.gui.snippet


class StartPaymentRequest(BaseModel):
    """Host request to open a checkout session.

    Only the three keys every Klarna order needs are declared; any further
    Klarna order fields (cart, merchant urls, options) pass through.
    """

    purchase_country: str
    locale: str
    merchant_reference: Any

    model_config = ConfigDict(extra="allow")

    @field_validator("purchase_country")
    @classmethod
    def _upper_country(cls, v: str) -> str:
        u = (v or "").upper()
        if len(u) != 2 or not u.isalpha():
            raise ValueError("purchase_country must be ISO-3166 alpha-2")
        return u

    def as_dict(self) -> dict[str, Any]:
        return self.model_dump(exclude_none=True)


class CheckoutRequest(StartPaymentRequest):
    """HTTP payload for starting a checkout: price plus session config."""

    order_id: str
    amount: condecimal(gt=0)  # type: ignore[valid-type]
    currency: str = Field(default="EUR")

    @field_validator("currency")
    @classmethod
    def _upper_and_validate_currency(cls, v: str) -> str:
        u = (v or "").upper()
        if len(u) != 3 or not u.isalpha():
            raise ValueError("currency must be ISO-4217 alpha-3")
        if u not in ISO_4217:
            raise ValueError("unsupported currency")
        return u

    def as_dict(self) -> dict[str, Any]:
        return self.model_dump(exclude_none=True, exclude={"order_id", "amount", "currency"})


class SnippetResponse(BaseModel):
    """Start-payment result: markup the host embeds on its checkout page."""

    order: Any = None
    snippet: str
    provider: str

    model_config = ConfigDict(arbitrary_types_allowed=True)


class PaymentStatusDTO(BaseModel):
    merchant_order_id: Optional[str] = None
    provider_order_id: Optional[str] = None
    raw_status: Optional[str] = None
    normalized_code: str
    additional_data: dict[str, str] = Field(default_factory=dict)
