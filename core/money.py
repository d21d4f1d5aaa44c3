"""
Fixed-point money arithmetic.

All currency math goes through Money so that floats never accumulate.
Rounding happens only when round() is called, always to cents, half-up.
"""

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Iterable

from core.errors import InvalidAmount

CENT = Decimal("0.01")
HUNDRED = Decimal("100")


def to_decimal(value: Decimal | int | str | float) -> Decimal:
    """
    Convert input to a finite Decimal.

    Floats go through str() so 0.1 becomes Decimal("0.1"), not its binary
    expansion.

    Raises:
        InvalidAmount: On NaN, infinity or unparseable input
    """
    if isinstance(value, bool):
        raise InvalidAmount(f"Not an amount: {value!r}")
    if isinstance(value, float):
        value = str(value)
    try:
        result = value if isinstance(value, Decimal) else Decimal(value)
    except (InvalidOperation, TypeError, ValueError):
        raise InvalidAmount(f"Not an amount: {value!r}")
    if not result.is_finite():
        raise InvalidAmount(f"Amount must be finite, got {value!r}")
    return result


def round_decimal(value: Decimal, places: int = 2) -> Decimal:
    """Half-up rounding for non-money figures (percentages, rates)."""
    return value.quantize(Decimal(1).scaleb(-places), rounding=ROUND_HALF_UP)


@dataclass(frozen=True, order=True)
class Money:
    """Currency amount backed by Decimal."""

    amount: Decimal

    @classmethod
    def of(cls, value: "Money | Decimal | int | str | float") -> "Money":
        if isinstance(value, Money):
            return value
        return cls(to_decimal(value))

    @classmethod
    def zero(cls) -> "Money":
        return cls(Decimal("0"))

    @classmethod
    def from_cents(cls, cents: int) -> "Money":
        return cls(Decimal(cents) * CENT)

    @classmethod
    def sum(cls, amounts: Iterable["Money"]) -> "Money":
        total = cls.zero()
        for amount in amounts:
            total = total.add(amount)
        return total

    @property
    def cents(self) -> int:
        """Amount in integer cents (rounded half-up)."""
        return int(self.round().amount * HUNDRED)

    def add(self, other: "Money") -> "Money":
        return Money(self.amount + other.amount)

    def subtract(self, other: "Money") -> "Money":
        return Money(self.amount - other.amount)

    def multiply_by_quantity(self, quantity: Decimal | int | str | float) -> "Money":
        """Unrounded product; call round() where a line total is fixed."""
        return Money(self.amount * to_decimal(quantity))

    def apply_percent(self, percent: Decimal | int | str | float) -> "Money":
        """`percent` of this amount, unrounded (19 → 19 %)."""
        return Money(self.amount * to_decimal(percent) / HUNDRED)

    def round(self) -> "Money":
        """Round to cents, half-up."""
        return Money(self.amount.quantize(CENT, rounding=ROUND_HALF_UP))

    def is_negative(self) -> bool:
        return self.amount < 0

    def is_positive(self) -> bool:
        return self.amount > 0

    def ensure_non_negative(self, what: str = "amount") -> "Money":
        """
        Return self, or raise if negative.

        Raises:
            InvalidAmount: If the amount is below zero
        """
        if self.is_negative():
            raise InvalidAmount(f"{what} must not be negative, got {self.amount}")
        return self

    def __add__(self, other: "Money") -> "Money":
        return self.add(other)

    def __sub__(self, other: "Money") -> "Money":
        return self.subtract(other)

    def __neg__(self) -> "Money":
        return Money(-self.amount)

    def __str__(self) -> str:
        return f"{self.round().amount:.2f}"
