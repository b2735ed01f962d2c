"""
Customization validation: pure, re-run at add time and at confirm time.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from candlecart._types import Money
from candlecart.catalog._types import KEY_SEPARATOR, Combination, CustomizationOption, Product

OPTION_UNAVAILABLE = "option unavailable"
INCOMPATIBLE_COMBINATION = "incompatible combination"


@dataclass(frozen=True, slots=True)
class Validation:
    is_valid: bool
    additional_price: Money = Decimal("0")
    reason: str | None = None


def resolve(product: Product, combination: Combination) -> list[CustomizationOption] | None:
    """Selected options in scent/color/size order, or None if any id does not resolve."""
    resolved: list[CustomizationOption] = []
    for kind, option_id in combination.selected():
        option = product.option(kind, option_id)
        if option is None:
            return None
        resolved.append(option)
    return resolved


def validate(product: Product, combination: Combination) -> Validation:
    """
    Check a combination against the product's option groups and rules.

    Absent selections are fine and add nothing to the price.
    """
    if any(KEY_SEPARATOR in option_id for _, option_id in combination.selected()):
        return Validation(is_valid=False, reason=OPTION_UNAVAILABLE)

    options = resolve(product, combination)
    if options is None or not all(o.available for o in options):
        return Validation(is_valid=False, reason=OPTION_UNAVAILABLE)

    if product.compatibility.first_conflict(combination.selected()) is not None:
        return Validation(is_valid=False, reason=INCOMPATIBLE_COMBINATION)

    return Validation(
        is_valid=True,
        additional_price=sum((o.additional_price for o in options), Decimal("0")),
    )


def labels(product: Product, combination: Combination) -> dict[str, str]:
    """Human-readable names of the selected options, keyed by kind."""
    named: dict[str, str] = {}
    for kind, option_id in combination.selected():
        option = product.option(kind, option_id)
        named[str(kind)] = option.name if option is not None else option_id
    return named


__all__ = (
    "OPTION_UNAVAILABLE",
    "INCOMPATIBLE_COMBINATION",
    "Validation",
    "resolve",
    "validate",
    "labels",
)
