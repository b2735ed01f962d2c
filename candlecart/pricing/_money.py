"""
Money helpers: Decimal only, half-up rounding at the edges.
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal

from candlecart._types import Money

CENT = Decimal("0.01")
ZERO = Decimal("0")


def money(value: str | int | Decimal) -> Money:
    """Parse an amount. Floats are refused."""
    if isinstance(value, float):
        raise TypeError("money amounts must not be floats")
    return Decimal(value)


def round_money(amount: Money) -> Money:
    return amount.quantize(CENT, rounding=ROUND_HALF_UP)


def to_cents(amount: Money) -> int:
    return int(round_money(amount) * 100)


def from_cents(cents: int) -> Money:
    return (Decimal(cents) / 100).quantize(CENT)


__all__ = ("CENT", "ZERO", "money", "round_money", "to_cents", "from_cents")
