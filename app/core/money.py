"""
Fixed-precision money helpers.

Amounts are held as integer cents. Everything public speaks `Decimal`
quantized to 2 places with ROUND_HALF_UP. Percentages and ratios are kept
unrounded until a value is about to be stored or displayed, so chained
operations never accumulate intermediate rounding.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable, Union

CENTS = Decimal("0.01")
HUNDRED = Decimal("100")
ZERO = Decimal("0.00")

Number = Union["Money", Decimal, int, str, float]


def to_decimal(value: Number | None) -> Decimal:
    if value is None:
        return Decimal("0")
    if isinstance(value, Money):
        return value.amount
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        # str() first: Decimal(0.1) carries the binary expansion.
        return Decimal(str(value))
    return Decimal(value)


def round_money(value: Number | None) -> Decimal:
    return to_decimal(value).quantize(CENTS, rounding=ROUND_HALF_UP)


def percent_of(base: Number, rate: Number) -> Decimal:
    """Unrounded `base * rate / 100`."""
    return to_decimal(base) * to_decimal(rate) / HUNDRED


def apportion(amount: Number, part: Number, whole: Number) -> Decimal:
    """Rounded share of `amount` proportional to `part / whole`."""
    whole_value = to_decimal(whole)
    if whole_value <= 0:
        return ZERO
    return round_money(to_decimal(amount) * to_decimal(part) / whole_value)


@dataclass(frozen=True, order=True)
class Money:
    cents: int

    @classmethod
    def of(cls, value: Number | None) -> Money:
        if isinstance(value, Money):
            return value
        rounded = round_money(value)
        return cls(int(rounded * 100))

    @classmethod
    def from_cents(cls, cents: int) -> Money:
        return cls(int(cents))

    @classmethod
    def zero(cls) -> Money:
        return cls(0)

    @classmethod
    def sum(cls, values: Iterable[Number]) -> Money:
        total = 0
        for value in values:
            total += cls.of(value).cents
        return cls(total)

    @property
    def amount(self) -> Decimal:
        return (Decimal(self.cents) / 100).quantize(CENTS)

    def __add__(self, other: Number) -> Money:
        return Money(self.cents + Money.of(other).cents)

    def __sub__(self, other: Number) -> Money:
        return Money(self.cents - Money.of(other).cents)

    def __neg__(self) -> Money:
        return Money(-self.cents)

    def __bool__(self) -> bool:
        return self.cents != 0

    def floor_zero(self) -> Money:
        return self if self.cents > 0 else Money(0)

    def min(self, other: Number) -> Money:
        other_money = Money.of(other)
        return self if self.cents <= other_money.cents else other_money

    def max(self, other: Number) -> Money:
        other_money = Money.of(other)
        return self if self.cents >= other_money.cents else other_money

    def is_positive(self) -> bool:
        return self.cents > 0

    def __str__(self) -> str:
        return str(self.amount)
