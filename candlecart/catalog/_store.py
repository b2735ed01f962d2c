"""
Catalog store: product lookup and stock reservation.

All methods return Result. `reserve` must be a conditional decrement:
it never drives stock below zero, even under concurrent placements.
"""

from __future__ import annotations

import asyncio
from collections.abc import Iterable
from typing import Protocol

from kungfu import Result, Ok, Error, LazyCoroResult
import combinators as C

from candlecart._errors import NotFoundError, OutOfStockError, ShopError
from candlecart.catalog._types import Product


# ═══════════════════════════════════════════════════════════════════════════════
# Protocol
# ═══════════════════════════════════════════════════════════════════════════════

class CatalogStore(Protocol):
    async def get(self, product_id: str) -> Result[Product, ShopError]:
        """Product by id, or NotFoundError."""
        ...

    async def list_products(self) -> Result[list[Product], ShopError]: ...

    async def put(self, product: Product) -> Result[None, ShopError]: ...

    async def reserve(self, product_id: str, quantity: int) -> Result[None, ShopError]:
        """Atomically take `quantity` units. OutOfStockError if not enough remain."""
        ...

    async def restock(self, product_id: str, quantity: int) -> Result[None, ShopError]:
        """Give units back. Used by placement compensation."""
        ...


# ═══════════════════════════════════════════════════════════════════════════════
# Memory Store
# ═══════════════════════════════════════════════════════════════════════════════

class MemoryCatalog:
    """
    In-memory catalog.

    Note: single process only. The lock makes reserve() a compare-and-decrement.
    """

    def __init__(self, products: list[Product] | None = None) -> None:
        self._products: dict[str, Product] = {p.id: p for p in products or []}
        self._lock = asyncio.Lock()

    async def get(self, product_id: str) -> Result[Product, ShopError]:
        async with self._lock:
            product = self._products.get(product_id)
        if product is None:
            return Error(NotFoundError("product", product_id))
        return Ok(product)

    async def list_products(self) -> Result[list[Product], ShopError]:
        async with self._lock:
            return Ok(list(self._products.values()))

    async def put(self, product: Product) -> Result[None, ShopError]:
        async with self._lock:
            self._products[product.id] = product
            return Ok(None)

    async def reserve(self, product_id: str, quantity: int) -> Result[None, ShopError]:
        async with self._lock:
            product = self._products.get(product_id)
            if product is None:
                return Error(NotFoundError("product", product_id))
            if product.inventory.quantity < quantity:
                return Error(OutOfStockError(
                    product_id,
                    f"only {product.inventory.quantity} of {product.name} left",
                ))
            self._products[product_id] = product.with_stock(product.inventory.quantity - quantity)
            return Ok(None)

    async def restock(self, product_id: str, quantity: int) -> Result[None, ShopError]:
        async with self._lock:
            product = self._products.get(product_id)
            if product is None:
                return Error(NotFoundError("product", product_id))
            self._products[product_id] = product.with_stock(product.inventory.quantity + quantity)
            return Ok(None)


# ═══════════════════════════════════════════════════════════════════════════════
# Bulk lookup
# ═══════════════════════════════════════════════════════════════════════════════

async def fetch_products(
    catalog: CatalogStore,
    product_ids: Iterable[str],
) -> Result[dict[str, Product | None], ShopError]:
    """
    Fetch several products in parallel. Missing products map to None
    instead of failing the whole batch.
    """
    unique = list(dict.fromkeys(product_ids))
    if not unique:
        return Ok({})

    def fetch(product_id: str) -> LazyCoroResult[Product | None, ShopError]:
        async def run() -> Result[Product | None, ShopError]:
            match await catalog.get(product_id):
                case Ok(product):
                    return Ok(product)
                case Error(NotFoundError()):
                    return Ok(None)
                case Error(e):
                    return Error(e)
        return LazyCoroResult(run)

    match await C.traverse_par(unique, fetch)():
        case Ok(products):
            return Ok(dict(zip(unique, products)))
        case Error(e):
            return Error(e)


__all__ = ("CatalogStore", "MemoryCatalog", "fetch_products")
