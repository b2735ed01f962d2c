"""
Cart aggregate: every cart operation the storefront exposes.

Prices are recomputed server-side on each add and on each read; the
stored unit price is a cache, never the truth.

    carts = CartService(catalog, store, pricing, guest_ttl=timedelta(days=7))

    match await carts.add_item(CartOwner.guest("g_1"), "pillar", 2, Combination(size_id="lg")):
        case Ok(cart):
            print(cart.total_price)
        case Error(e):
            print(e.kind, e.message)
"""

from __future__ import annotations

import logging
from datetime import timedelta

from candlecart._errors import NotFoundError, OutOfStockError, ValidationError
from candlecart._types import Clock, Money, expect, outcome, utcnow
from candlecart.cart._merge import MergeResult, plan_merge
from candlecart.cart._store import CartStore
from candlecart.cart._types import Cart, CartLine, CartOwner, CartView, NewLine
from candlecart.catalog import CatalogStore, Combination, Product, fetch_products, labels, validate
from candlecart.pricing import PricingEngine, Totals, subtotal_of

logger = logging.getLogger(__name__)


def _require_quantity(quantity: int) -> None:
    if quantity < 1:
        raise ValidationError("quantity must be at least 1", {"quantity": "must be at least 1"})


def _require_stock(product: Product, wanted: int) -> None:
    if not product.inventory.is_in_stock:
        raise OutOfStockError(product.id, f"{product.name} is out of stock")
    if wanted > product.inventory.quantity:
        raise ValidationError(
            f"only {product.inventory.quantity} items available",
            {"quantity": f"only {product.inventory.quantity} items available"},
        )


class CartService:
    def __init__(
        self,
        catalog: CatalogStore,
        store: CartStore,
        pricing: PricingEngine,
        guest_ttl: timedelta = timedelta(days=7),
        clock: Clock = utcnow,
    ) -> None:
        self._catalog = catalog
        self._store = store
        self._pricing = pricing
        self._guest_ttl = guest_ttl
        self._clock = clock

    # ─── lifecycle ────────────────────────────────────────────────────────────

    @outcome
    async def get_or_create(self, owner: CartOwner) -> Cart:
        expires_at = self._clock() + self._guest_ttl if owner.is_guest else None
        return expect(await self._store.get_or_create(owner, expires_at))

    @outcome
    async def find(self, owner: CartOwner) -> Cart | None:
        return expect(await self._store.find(owner))

    # ─── mutations ────────────────────────────────────────────────────────────

    @outcome
    async def add_item(
        self,
        owner: CartOwner,
        product_id: str,
        quantity: int,
        combination: Combination,
    ) -> Cart:
        _require_quantity(quantity)
        product = expect(await self._catalog.get(product_id))
        price = expect(self._pricing.unit_price(product, combination))

        cart = expect(await self.get_or_create(owner))
        held = cart.by_identity((product_id, combination.key))
        _require_stock(product, quantity + (held.quantity if held else 0))

        cart = expect(await self._store.add_or_increment(
            cart.id, NewLine(product_id, combination, quantity, price)
        ))
        logger.debug("cart %s: +%d x %s (%s)", cart.id, quantity, product_id, combination.key)
        return cart

    @outcome
    async def update_item(self, owner: CartOwner, item_id: str, quantity: int) -> Cart:
        _require_quantity(quantity)
        cart = expect(await self._store.find(owner))
        if cart is None:
            raise NotFoundError("cart", owner.key)
        item = cart.item(item_id)
        if item is None:
            raise NotFoundError("cart item", item_id)

        product = expect(await self._catalog.get(item.product_id))
        _require_stock(product, quantity)
        return expect(await self._store.set_quantity(cart.id, item_id, quantity))

    @outcome
    async def remove_item(self, owner: CartOwner, item_id: str) -> Cart:
        """Removing an item that is not there is a no-op."""
        cart = expect(await self.get_or_create(owner))
        return expect(await self._store.remove(cart.id, item_id))

    @outcome
    async def clear(self, owner: CartOwner) -> Cart:
        cart = expect(await self.get_or_create(owner))
        return expect(await self._store.clear(cart.id))

    # ─── reads ────────────────────────────────────────────────────────────────

    @outcome
    async def view(self, owner: CartOwner) -> CartView:
        """
        Cart repriced against the live catalog.

        Lines whose product vanished, sold out, or whose options became
        invalid are flagged and left out of the subtotal. Changed prices
        are written back.
        """
        cart = expect(await self.get_or_create(owner))
        products = expect(await fetch_products(self._catalog, (i.product_id for i in cart.items)))

        lines: list[CartLine] = []
        repriced: dict[str, Money] = {}
        for item in cart.items:
            product = products.get(item.product_id)
            if product is None:
                lines.append(CartLine(item, None, {}, False, "product no longer available"))
                continue

            names = labels(product, item.combination)
            check = validate(product, item.combination)
            if not check.is_valid:
                lines.append(CartLine(item, product.name, names, False, check.reason))
                continue
            if not product.inventory.is_in_stock:
                lines.append(CartLine(item, product.name, names, False, "out of stock"))
                continue

            price = product.base_price + check.additional_price
            if price != item.unit_price:
                repriced[item.id] = price
            lines.append(CartLine(item, product.name, names, True))

        if repriced:
            logger.info("cart %s: repriced %d line(s)", cart.id, len(repriced))
            cart = expect(await self._store.set_unit_prices(cart.id, repriced))
            fresh = {i.id: i for i in cart.items}
            lines = [
                CartLine(fresh.get(line.item.id, line.item), line.product_name, line.customizations, line.available, line.issue)
                for line in lines
            ]

        valid = [line.item for line in lines if line.available]
        subtotal = subtotal_of(valid)
        return CartView(
            cart=cart,
            lines=tuple(lines),
            subtotal=subtotal,
            amount_to_free_shipping=self._pricing.shipping.amount_to_free_shipping(subtotal),
        )

    @outcome
    async def totals(
        self,
        owner: CartOwner,
        shipping_option: str = "standard",
        jurisdiction: str | None = None,
    ) -> Totals:
        view = expect(await self.view(owner))
        return expect(self._pricing.order_totals(view.valid_items, shipping_option, jurisdiction))

    # ─── sign-in merge ────────────────────────────────────────────────────────

    @outcome
    async def merge(self, guest_id: str, user_id: str) -> MergeResult:
        """
        Fold the guest cart into the user cart.

        The guest cart is gone only once this returns Ok; on Error the
        client keeps its guest id and may retry.
        """
        guest = CartOwner.guest(guest_id)
        user = CartOwner.user(user_id)

        guest_cart = expect(await self._store.find(guest))
        if guest_cart is None:
            raise NotFoundError("guest cart", guest_id)
        user_cart = expect(await self._store.find(user))

        products = expect(await fetch_products(
            self._catalog, (i.product_id for i in guest_cart.items)
        ))
        plan = plan_merge(guest_cart, user_cart, products)
        merged = expect(await self._store.absorb(guest, user, plan.lines))

        logger.info(
            "merged guest cart %s into %s: %d carried, %d skipped, %d capped",
            guest_cart.id, user.key, len(plan.lines), len(plan.skipped), len(plan.capped),
        )
        return MergeResult(merged, len(plan.lines), plan.skipped, plan.capped)

    @outcome
    async def purge_expired(self) -> int:
        purged = expect(await self._store.purge_expired(self._clock()))
        if purged:
            logger.info("purged %d expired guest cart(s)", purged)
        return purged


__all__ = ("CartService",)
