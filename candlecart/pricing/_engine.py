"""
Pricing engine: the only source of truth for prices.

Client-supplied prices are never read. Arithmetic stays exact until
`Totals.rounded()` is called for persistence or display.

    engine = PricingEngine(
        shipping=ShippingRates({"standard": Decimal("5.99"), "express": Decimal("12.99")},
                               free_threshold=Decimal("50")),
        tax=flat_rate(Decimal("0.08")),
    )
    match engine.order_totals(cart.items, "standard", jurisdiction="WA"):
        case Ok(totals):
            print(totals.rounded().total)
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Protocol

from kungfu import Result, Ok, Error

from candlecart._errors import ShopError, ValidationError
from candlecart._types import Money
from candlecart.catalog import Combination, Product, validate
from candlecart.pricing._money import ZERO, round_money
from candlecart.pricing._tax import TaxPolicy


# ═══════════════════════════════════════════════════════════════════════════════
# Inputs
# ═══════════════════════════════════════════════════════════════════════════════

class PricedLine(Protocol):
    @property
    def unit_price(self) -> Money: ...
    @property
    def quantity(self) -> int: ...


@dataclass(frozen=True, slots=True)
class ShippingRates:
    """
    Flat rate per option. Only `free_option` becomes free at the threshold,
    faster options stay chargeable.
    """

    options: Mapping[str, Money] = field(default_factory=lambda: {
        "standard": Decimal("5.99"),
        "express": Decimal("12.99"),
    })
    free_threshold: Money = Decimal("50")
    free_option: str = "standard"

    def quote(self, option: str, subtotal: Money) -> Result[Money, ShopError]:
        price = self.options.get(option)
        if price is None:
            return Error(ValidationError(
                f"unknown shipping option {option!r}",
                {"shipping_option": f"choose one of: {', '.join(sorted(self.options))}"},
            ))
        if option == self.free_option and subtotal >= self.free_threshold:
            return Ok(ZERO)
        return Ok(price)

    def amount_to_free_shipping(self, subtotal: Money) -> Money:
        return max(self.free_threshold - subtotal, ZERO)


# ═══════════════════════════════════════════════════════════════════════════════
# Totals
# ═══════════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True, slots=True)
class Totals:
    subtotal: Money
    tax: Money
    shipping_cost: Money
    total: Money

    def rounded(self) -> Totals:
        """Cent-exact copy. Total is rebuilt from the rounded parts so they always add up."""
        subtotal = round_money(self.subtotal)
        tax = round_money(self.tax)
        shipping = round_money(self.shipping_cost)
        return Totals(subtotal, tax, shipping, subtotal + tax + shipping)


# ═══════════════════════════════════════════════════════════════════════════════
# Engine
# ═══════════════════════════════════════════════════════════════════════════════

def unit_price(product: Product, combination: Combination) -> Result[Money, ShopError]:
    """Base price plus every selected option's surcharge."""
    check = validate(product, combination)
    if not check.is_valid:
        return Error(ValidationError(
            check.reason or "invalid customization",
            {"customizations": check.reason or "invalid customization"},
        ))
    return Ok(product.base_price + check.additional_price)


def line_total(line: PricedLine) -> Money:
    return line.unit_price * line.quantity


def subtotal_of(lines: Iterable[PricedLine]) -> Money:
    return sum((line_total(line) for line in lines), ZERO)


@dataclass(frozen=True, slots=True)
class PricingEngine:
    shipping: ShippingRates
    tax: TaxPolicy

    def unit_price(self, product: Product, combination: Combination) -> Result[Money, ShopError]:
        return unit_price(product, combination)

    def line_total(self, line: PricedLine) -> Money:
        return line_total(line)

    def order_totals(
        self,
        lines: Iterable[PricedLine],
        shipping_option: str,
        jurisdiction: str | None = None,
    ) -> Result[Totals, ShopError]:
        subtotal = subtotal_of(lines)
        match self.shipping.quote(shipping_option, subtotal):
            case Ok(shipping_cost):
                tax = self.tax(subtotal, jurisdiction)
                return Ok(Totals(
                    subtotal=subtotal,
                    tax=tax,
                    shipping_cost=shipping_cost,
                    total=subtotal + tax + shipping_cost,
                ))
            case Error(e):
                return Error(e)


__all__ = (
    "PricedLine",
    "ShippingRates",
    "Totals",
    "unit_price",
    "line_total",
    "subtotal_of",
    "PricingEngine",
)
