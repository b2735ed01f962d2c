"""
Tax policies: `policy(subtotal, jurisdiction) -> tax`.

    tax = flat_rate(Decimal("0.08"))
    tax = jurisdiction_rates({"WA": Decimal("0.10"), "OR": Decimal("0")}, default=Decimal("0.08"))
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from decimal import Decimal

from candlecart._types import Money

type TaxPolicy = Callable[[Money, str | None], Money]


def flat_rate(rate: Decimal) -> TaxPolicy:
    def policy(subtotal: Money, jurisdiction: str | None = None) -> Money:
        return subtotal * rate
    return policy


def jurisdiction_rates(rates: Mapping[str, Decimal], default: Decimal) -> TaxPolicy:
    """Per-state rate table; unknown or missing jurisdictions use `default`."""
    table = {k.upper(): v for k, v in rates.items()}

    def policy(subtotal: Money, jurisdiction: str | None = None) -> Money:
        rate = table.get((jurisdiction or "").upper(), default)
        return subtotal * rate
    return policy


__all__ = ("TaxPolicy", "flat_rate", "jurisdiction_rates")
