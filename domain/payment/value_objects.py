"""
支付值对象 - 金额与货币
"""
from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Union

from domain.common.exceptions import DomainValidationException


@dataclass(frozen=True)
class Currency:
    """ISO-4217 货币"""

    short_name: str

    def __post_init__(self) -> None:
        code = (self.short_name or "").upper()
        if len(code) != 3 or not code.isalpha():
            raise DomainValidationException(
                f"invalid currency code: {self.short_name}",
                field="currency",
            )
        object.__setattr__(self, "short_name", code)

    def __str__(self) -> str:
        return self.short_name


@dataclass(frozen=True)
class Price:
    """金额 + 货币；由宿主系统计算，网关只读"""

    amount: Decimal
    currency: Currency

    def __post_init__(self) -> None:
        try:
            amount = Decimal(str(self.amount))
        except (InvalidOperation, ValueError) as exc:
            raise DomainValidationException(f"invalid amount: {self.amount}", field="amount") from exc
        object.__setattr__(self, "amount", amount)
        if isinstance(self.currency, str):
            object.__setattr__(self, "currency", Currency(self.currency))

    @classmethod
    def of(cls, amount: Union[Decimal, int, str], currency: str) -> "Price":
        return cls(amount=Decimal(str(amount)), currency=Currency(currency))

