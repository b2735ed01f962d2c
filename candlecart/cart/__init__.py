"""
Cart: guest and user carts, merge-by-identity, sign-in merge.

    from candlecart import cart

    owner = cart.CartOwner.guest(guest_id)
    result = await carts.add_item(owner, product_id, 1, combination)
"""

from candlecart.cart._types import (
    CartOwner,
    CartItem,
    NewLine,
    Cart,
    CartLine,
    CartView,
)
from candlecart.cart._store import CartStore, MemoryCartStore, new_cart_id, new_item_id
from candlecart.cart._merge import (
    PRODUCT_GONE,
    OUT_OF_STOCK,
    SkippedItem,
    MergePlan,
    plan_merge,
    MergeResult,
)
from candlecart.cart._service import CartService

__all__ = (
    "CartOwner",
    "CartItem",
    "NewLine",
    "Cart",
    "CartLine",
    "CartView",
    "CartStore",
    "MemoryCartStore",
    "new_cart_id",
    "new_item_id",
    "PRODUCT_GONE",
    "OUT_OF_STOCK",
    "SkippedItem",
    "MergePlan",
    "plan_merge",
    "MergeResult",
    "CartService",
)
