"""
Cart types.

A cart belongs to exactly one owner: a signed-in user or an anonymous guest.
Items keep insertion order; `revision` moves on every mutation.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from candlecart._types import Money
from candlecart.catalog import Combination
from candlecart.pricing import ZERO, round_money


# ═══════════════════════════════════════════════════════════════════════════════
# Owner
# ═══════════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True, slots=True)
class CartOwner:
    user_id: str | None = None
    guest_id: str | None = None

    def __post_init__(self) -> None:
        if (self.user_id is None) == (self.guest_id is None):
            raise ValueError("a cart owner is either a user or a guest")

    @classmethod
    def user(cls, user_id: str) -> CartOwner:
        return cls(user_id=user_id)

    @classmethod
    def guest(cls, guest_id: str) -> CartOwner:
        return cls(guest_id=guest_id)

    @property
    def is_guest(self) -> bool:
        return self.guest_id is not None

    @property
    def key(self) -> str:
        return f"user:{self.user_id}" if self.user_id is not None else f"guest:{self.guest_id}"

    @classmethod
    def from_key(cls, key: str) -> CartOwner:
        kind, _, value = key.partition(":")
        return cls.user(value) if kind == "user" else cls.guest(value)


# ═══════════════════════════════════════════════════════════════════════════════
# Items
# ═══════════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True, slots=True)
class CartItem:
    id: str
    product_id: str
    quantity: int
    combination: Combination
    unit_price: Money

    @property
    def identity(self) -> tuple[str, str]:
        """Same product + identical combination = same line."""
        return self.product_id, self.combination.key

    @property
    def line_total(self) -> Money:
        return self.unit_price * self.quantity


@dataclass(frozen=True, slots=True)
class NewLine:
    """A line to be merged into a cart by identity."""

    product_id: str
    combination: Combination
    quantity: int
    unit_price: Money

    @property
    def identity(self) -> tuple[str, str]:
        return self.product_id, self.combination.key


# ═══════════════════════════════════════════════════════════════════════════════
# Cart
# ═══════════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True, slots=True)
class Cart:
    id: str
    owner: CartOwner
    items: tuple[CartItem, ...]
    revision: int
    created_at: datetime
    updated_at: datetime
    expires_at: datetime | None = None

    @property
    def total_price(self) -> Money:
        return round_money(sum((i.line_total for i in self.items), ZERO))

    @property
    def is_empty(self) -> bool:
        return not self.items

    @property
    def item_count(self) -> int:
        return sum(i.quantity for i in self.items)

    def item(self, item_id: str) -> CartItem | None:
        return next((i for i in self.items if i.id == item_id), None)

    def by_identity(self, identity: tuple[str, str]) -> CartItem | None:
        return next((i for i in self.items if i.identity == identity), None)

    def is_expired(self, now: datetime) -> bool:
        return self.expires_at is not None and now >= self.expires_at


# ═══════════════════════════════════════════════════════════════════════════════
# Read model
# ═══════════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True, slots=True)
class CartLine:
    """An item as seen after repricing against the live catalog."""

    item: CartItem
    product_name: str | None
    customizations: dict[str, str]
    available: bool
    issue: str | None = None


@dataclass(frozen=True, slots=True)
class CartView:
    cart: Cart
    lines: tuple[CartLine, ...]
    subtotal: Money
    amount_to_free_shipping: Money

    @property
    def valid_items(self) -> tuple[CartItem, ...]:
        return tuple(line.item for line in self.lines if line.available)


__all__ = (
    "CartOwner",
    "CartItem",
    "NewLine",
    "Cart",
    "CartLine",
    "CartView",
)
