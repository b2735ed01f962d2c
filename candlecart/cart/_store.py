"""
Cart store: typed storage protocol.

All methods return Result. Mutations that depend on current contents
(add_or_increment, absorb) must be atomic: two concurrent adds of the
same line end up as one line with the summed quantity.
"""

from __future__ import annotations

import asyncio
import uuid
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from datetime import datetime
from typing import Protocol

from kungfu import Result, Ok, Error

from candlecart._errors import NotFoundError, ShopError
from candlecart._types import Clock, Money, utcnow
from candlecart.cart._types import Cart, CartItem, CartOwner, NewLine


def new_cart_id() -> str:
    return f"cart_{uuid.uuid4().hex[:16]}"


def new_item_id() -> str:
    return f"item_{uuid.uuid4().hex[:12]}"


# ═══════════════════════════════════════════════════════════════════════════════
# Protocol
# ═══════════════════════════════════════════════════════════════════════════════

class CartStore(Protocol):
    async def find(self, owner: CartOwner) -> Result[Cart | None, ShopError]:
        """Cart for owner. Ok(None) if there is none (or it expired)."""
        ...

    async def get_or_create(
        self, owner: CartOwner, expires_at: datetime | None
    ) -> Result[Cart, ShopError]:
        """Explicit lazy creation. `expires_at` only applies to a new cart."""
        ...

    async def add_or_increment(self, cart_id: str, line: NewLine) -> Result[Cart, ShopError]:
        """Merge by identity: bump quantity of a matching line, else append."""
        ...

    async def set_quantity(
        self, cart_id: str, item_id: str, quantity: int
    ) -> Result[Cart, ShopError]:
        """NotFoundError if item is absent."""
        ...

    async def remove(self, cart_id: str, item_id: str) -> Result[Cart, ShopError]:
        """Idempotent. A missing item leaves the cart (and revision) unchanged."""
        ...

    async def clear(self, cart_id: str) -> Result[Cart, ShopError]: ...

    async def set_unit_prices(
        self, cart_id: str, prices: Mapping[str, Money]
    ) -> Result[Cart, ShopError]:
        """Persist repriced lines (item id → unit price)."""
        ...

    async def absorb(
        self, guest: CartOwner, user: CartOwner, lines: Sequence[NewLine]
    ) -> Result[Cart, ShopError]:
        """
        Merge `lines` into the user cart and drop the guest cart, atomically.

        With no user cart, the guest cart is handed to the user with `lines`
        as its contents and no expiry.
        """
        ...

    async def delete(self, cart_id: str) -> Result[bool, ShopError]: ...

    async def purge_expired(self, now: datetime) -> Result[int, ShopError]:
        """Delete carts past their expiry. Returns how many."""
        ...


# ═══════════════════════════════════════════════════════════════════════════════
# Memory Store
# ═══════════════════════════════════════════════════════════════════════════════

@dataclass
class _StoredCart:
    """Internal mutable cart for MemoryCartStore."""

    id: str
    owner: CartOwner
    items: list[CartItem]
    created_at: datetime
    updated_at: datetime
    expires_at: datetime | None
    revision: int = 0

    def to_cart(self) -> Cart:
        return Cart(
            id=self.id,
            owner=self.owner,
            items=tuple(self.items),
            revision=self.revision,
            created_at=self.created_at,
            updated_at=self.updated_at,
            expires_at=self.expires_at,
        )

    def merge(self, line: NewLine) -> None:
        for i, item in enumerate(self.items):
            if item.identity == line.identity:
                self.items[i] = CartItem(
                    id=item.id,
                    product_id=item.product_id,
                    quantity=item.quantity + line.quantity,
                    combination=item.combination,
                    unit_price=line.unit_price,
                )
                return
        self.items.append(CartItem(
            id=new_item_id(),
            product_id=line.product_id,
            quantity=line.quantity,
            combination=line.combination,
            unit_price=line.unit_price,
        ))


@dataclass
class MemoryCartStore:
    """
    In-memory cart store.

    Note: single process only. One lock serializes every mutation.
    """

    clock: Clock = utcnow
    _carts: dict[str, _StoredCart] = field(default_factory=dict)
    _by_owner: dict[str, str] = field(default_factory=dict)
    _lock: asyncio.Lock = field(default_factory=asyncio.Lock)

    def _live(self, owner: CartOwner) -> _StoredCart | None:
        cart_id = self._by_owner.get(owner.key)
        if cart_id is None:
            return None
        stored = self._carts[cart_id]
        if stored.expires_at is not None and self.clock() >= stored.expires_at:
            self._drop(stored)
            return None
        return stored

    def _drop(self, stored: _StoredCart) -> None:
        self._carts.pop(stored.id, None)
        if self._by_owner.get(stored.owner.key) == stored.id:
            del self._by_owner[stored.owner.key]

    def _touch(self, stored: _StoredCart) -> Cart:
        stored.revision += 1
        stored.updated_at = self.clock()
        return stored.to_cart()

    def _create(self, owner: CartOwner, expires_at: datetime | None) -> _StoredCart:
        now = self.clock()
        stored = _StoredCart(
            id=new_cart_id(),
            owner=owner,
            items=[],
            created_at=now,
            updated_at=now,
            expires_at=expires_at,
        )
        self._carts[stored.id] = stored
        self._by_owner[owner.key] = stored.id
        return stored

    async def find(self, owner: CartOwner) -> Result[Cart | None, ShopError]:
        async with self._lock:
            stored = self._live(owner)
            return Ok(stored.to_cart() if stored else None)

    async def get_or_create(
        self, owner: CartOwner, expires_at: datetime | None
    ) -> Result[Cart, ShopError]:
        async with self._lock:
            stored = self._live(owner) or self._create(owner, expires_at)
            return Ok(stored.to_cart())

    async def add_or_increment(self, cart_id: str, line: NewLine) -> Result[Cart, ShopError]:
        async with self._lock:
            stored = self._carts.get(cart_id)
            if stored is None:
                return Error(NotFoundError("cart", cart_id))
            stored.merge(line)
            return Ok(self._touch(stored))

    async def set_quantity(
        self, cart_id: str, item_id: str, quantity: int
    ) -> Result[Cart, ShopError]:
        async with self._lock:
            stored = self._carts.get(cart_id)
            if stored is None:
                return Error(NotFoundError("cart", cart_id))
            for i, item in enumerate(stored.items):
                if item.id == item_id:
                    stored.items[i] = CartItem(
                        id=item.id,
                        product_id=item.product_id,
                        quantity=quantity,
                        combination=item.combination,
                        unit_price=item.unit_price,
                    )
                    return Ok(self._touch(stored))
            return Error(NotFoundError("cart item", item_id))

    async def remove(self, cart_id: str, item_id: str) -> Result[Cart, ShopError]:
        async with self._lock:
            stored = self._carts.get(cart_id)
            if stored is None:
                return Error(NotFoundError("cart", cart_id))
            kept = [i for i in stored.items if i.id != item_id]
            if len(kept) == len(stored.items):
                return Ok(stored.to_cart())
            stored.items = kept
            return Ok(self._touch(stored))

    async def clear(self, cart_id: str) -> Result[Cart, ShopError]:
        async with self._lock:
            stored = self._carts.get(cart_id)
            if stored is None:
                return Error(NotFoundError("cart", cart_id))
            stored.items = []
            return Ok(self._touch(stored))

    async def set_unit_prices(
        self, cart_id: str, prices: Mapping[str, Money]
    ) -> Result[Cart, ShopError]:
        async with self._lock:
            stored = self._carts.get(cart_id)
            if stored is None:
                return Error(NotFoundError("cart", cart_id))
            stored.items = [
                CartItem(i.id, i.product_id, i.quantity, i.combination, prices[i.id])
                if i.id in prices else i
                for i in stored.items
            ]
            return Ok(self._touch(stored))

    async def absorb(
        self, guest: CartOwner, user: CartOwner, lines: Sequence[NewLine]
    ) -> Result[Cart, ShopError]:
        async with self._lock:
            guest_cart = self._live(guest)
            if guest_cart is None:
                return Error(NotFoundError("guest cart", guest.guest_id))

            target = self._live(user)
            if target is None:
                # Hand the guest cart over to the user.
                del self._by_owner[guest.key]
                guest_cart.owner = user
                guest_cart.expires_at = None
                guest_cart.items = []
                self._by_owner[user.key] = guest_cart.id
                target = guest_cart
            else:
                self._drop(guest_cart)

            for line in lines:
                target.merge(line)
            return Ok(self._touch(target))

    async def delete(self, cart_id: str) -> Result[bool, ShopError]:
        async with self._lock:
            stored = self._carts.get(cart_id)
            if stored is None:
                return Ok(False)
            self._drop(stored)
            return Ok(True)

    async def purge_expired(self, now: datetime) -> Result[int, ShopError]:
        async with self._lock:
            expired = [
                c for c in self._carts.values()
                if c.expires_at is not None and now >= c.expires_at
            ]
            for stored in expired:
                self._drop(stored)
            return Ok(len(expired))


__all__ = ("CartStore", "MemoryCartStore", "new_cart_id", "new_item_id")
