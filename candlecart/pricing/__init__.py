"""
Pricing: unit prices, line totals and order totals in exact Decimal money.
"""

from candlecart.pricing._money import (
    CENT,
    ZERO,
    money,
    round_money,
    to_cents,
    from_cents,
)
from candlecart.pricing._tax import TaxPolicy, flat_rate, jurisdiction_rates
from candlecart.pricing._engine import (
    PricedLine,
    ShippingRates,
    Totals,
    unit_price,
    line_total,
    subtotal_of,
    PricingEngine,
)

__all__ = (
    "CENT",
    "ZERO",
    "money",
    "round_money",
    "to_cents",
    "from_cents",
    "TaxPolicy",
    "flat_rate",
    "jurisdiction_rates",
    "PricedLine",
    "ShippingRates",
    "Totals",
    "unit_price",
    "line_total",
    "subtotal_of",
    "PricingEngine",
)
