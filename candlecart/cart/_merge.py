"""
Cart merge resolver: folds a guest cart into the user cart at sign-in.

Planning is pure: it decides, for each guest item, whether it is carried
over (possibly with a capped quantity) or skipped. The store then applies
the plan and drops the guest cart in one atomic step.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass

from kungfu import Ok, Error

from candlecart.cart._types import Cart, CartItem, NewLine
from candlecart.catalog import Product
from candlecart.pricing import unit_price

PRODUCT_GONE = "product no longer available"
OUT_OF_STOCK = "out of stock"


@dataclass(frozen=True, slots=True)
class SkippedItem:
    item: CartItem
    reason: str


@dataclass(frozen=True, slots=True)
class MergePlan:
    lines: tuple[NewLine, ...]
    skipped: tuple[SkippedItem, ...] = ()
    capped: tuple[str, ...] = ()
    """Ids of guest items whose quantity was reduced to what is in stock."""


def plan_merge(
    guest: Cart,
    user: Cart | None,
    products: Mapping[str, Product | None],
) -> MergePlan:
    lines: list[NewLine] = []
    skipped: list[SkippedItem] = []
    capped: list[str] = []

    for item in guest.items:
        product = products.get(item.product_id)
        if product is None:
            skipped.append(SkippedItem(item, PRODUCT_GONE))
            continue
        if not product.inventory.is_in_stock:
            skipped.append(SkippedItem(item, OUT_OF_STOCK))
            continue

        match unit_price(product, item.combination):
            case Error(e):
                skipped.append(SkippedItem(item, e.message))
                continue
            case Ok(price):
                pass

        held = user.by_identity(item.identity) if user is not None else None
        room = product.inventory.quantity - (held.quantity if held else 0)
        if room <= 0:
            skipped.append(SkippedItem(item, OUT_OF_STOCK))
            continue

        quantity = min(item.quantity, room)
        if quantity < item.quantity:
            capped.append(item.id)
        lines.append(NewLine(item.product_id, item.combination, quantity, price))

    return MergePlan(tuple(lines), tuple(skipped), tuple(capped))


@dataclass(frozen=True, slots=True)
class MergeResult:
    cart: Cart
    merged: int
    skipped: tuple[SkippedItem, ...]
    capped: tuple[str, ...]


__all__ = (
    "PRODUCT_GONE",
    "OUT_OF_STOCK",
    "SkippedItem",
    "MergePlan",
    "plan_merge",
    "MergeResult",
)
