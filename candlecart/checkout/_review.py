"""
Review revalidation: the graph run right before an order is placed.

    ReviewInputNode
          │
          ▼
    RevalidatedItemsNode   (every line re-fetched and repriced in parallel)
          │
          ▼
    FreshTotalsNode
          │
          ▼
    AmountCheckNode        (authorized amount == fresh total, cart unchanged)

Each node carries a Result; the first failure flows through untouched.

No `from __future__ import annotations` here: nodnod resolves the
`__compose__` parameters from their runtime annotations.
"""

from dataclasses import dataclass

from kungfu import Result, Ok, Error, LazyCoroResult

import combinators as C
from candlecart import _graph as G
from candlecart._errors import (
    NotFoundError,
    OutOfStockError,
    PriceMismatchError,
    ShopError,
    ValidationError,
)
from candlecart._types import Money
from candlecart.cart import Cart, CartItem
from candlecart.catalog import CatalogStore, Product
from candlecart.checkout._types import CheckoutSession
from candlecart.pricing import PricingEngine, Totals, from_cents, to_cents


@dataclass(frozen=True, slots=True)
class ReviewRequest:
    session: CheckoutSession
    cart: Cart
    catalog: CatalogStore
    pricing: PricingEngine


@dataclass(frozen=True, slots=True)
class ReviewedLine:
    item: CartItem
    product: Product
    unit_price: Money

    @property
    def quantity(self) -> int:
        return self.item.quantity


@dataclass(frozen=True, slots=True)
class Review:
    lines: tuple[ReviewedLine, ...]
    totals: Totals
    amount_cents: int


# ═══════════════════════════════════════════════════════════════════════════════
# Nodes
# ═══════════════════════════════════════════════════════════════════════════════

@G.node
class ReviewInputNode:
    def __init__(self, request: ReviewRequest) -> None:
        self.request = request

    @classmethod
    async def __compose__(cls, request: ReviewRequest) -> "ReviewInputNode":
        return cls(request)


@G.node
class RevalidatedItemsNode:
    """Every cart line must still resolve, be valid, and be covered by stock."""

    def __init__(self, result: Result[tuple[ReviewedLine, ...], ShopError]) -> None:
        self.result = result

    @classmethod
    async def __compose__(cls, input: ReviewInputNode) -> "RevalidatedItemsNode":
        request = input.request
        if request.cart.is_empty:
            return cls(Error(ValidationError("cart is empty", {"cart": "add an item first"})))

        def revalidate(item: CartItem) -> LazyCoroResult[ReviewedLine, ShopError]:
            async def run() -> Result[ReviewedLine, ShopError]:
                match await request.catalog.get(item.product_id):
                    case Ok(product):
                        return _reviewed(request.pricing, item, product)
                    case Error(NotFoundError()):
                        return Error(OutOfStockError(item.product_id, "a product in your cart is no longer sold"))
                    case Error(e):
                        return Error(e)
            return LazyCoroResult(run)

        match await C.traverse_par(list(request.cart.items), revalidate)():
            case Ok(lines):
                return cls(Ok(tuple(lines)))
            case Error(e):
                return cls(Error(e))


def _reviewed(pricing: PricingEngine, item: CartItem, product: Product) -> Result[ReviewedLine, ShopError]:
    if product.inventory.quantity < item.quantity:
        return Error(OutOfStockError(
            product.id, f"only {product.inventory.quantity} of {product.name} left"
        ))
    match pricing.unit_price(product, item.combination):
        case Ok(price):
            return Ok(ReviewedLine(item, product, price))
        case Error(e):
            return Error(e)


@G.node
class FreshTotalsNode:
    def __init__(self, result: Result[tuple[tuple[ReviewedLine, ...], Totals], ShopError]) -> None:
        self.result = result

    @classmethod
    async def __compose__(cls, items: RevalidatedItemsNode, input: ReviewInputNode) -> "FreshTotalsNode":
        session = input.request.session
        match items.result:
            case Ok(lines):
                match input.request.pricing.order_totals(
                    lines, session.shipping_option or "", session.jurisdiction
                ):
                    case Ok(totals):
                        return cls(Ok((lines, totals)))
                    case Error(e):
                        return cls(Error(e))
            case Error(e):
                return cls(Error(e))


@G.node
class AmountCheckNode:
    """Stale totals are refused: the cart must be the one that was authorized, for the same amount."""

    def __init__(self, result: Result[Review, ShopError]) -> None:
        self.result = result

    @classmethod
    async def __compose__(cls, totals: FreshTotalsNode, input: ReviewInputNode) -> "AmountCheckNode":
        session = input.request.session
        cart = input.request.cart
        match totals.result:
            case Ok((lines, fresh)):
                rounded = fresh.rounded()
                amount = to_cents(rounded.total)
                authorized = from_cents(session.authorized_cents) if session.authorized_cents is not None else None
                if session.authorized_revision != cart.revision or session.authorized_cents != amount:
                    return cls(Error(PriceMismatchError(rounded.total, authorized)))
                return cls(Ok(Review(lines, fresh, amount)))
            case Error(e):
                return cls(Error(e))


# ═══════════════════════════════════════════════════════════════════════════════
# Run
# ═══════════════════════════════════════════════════════════════════════════════

async def review(request: ReviewRequest) -> Result[Review, ShopError]:
    checked = await G.compose(AmountCheckNode, request, detail="checkout-review")
    return checked.result


__all__ = (
    "ReviewRequest",
    "ReviewedLine",
    "Review",
    "ReviewInputNode",
    "RevalidatedItemsNode",
    "FreshTotalsNode",
    "AmountCheckNode",
    "review",
)
