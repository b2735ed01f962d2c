"""
SQL catalog: products with a stock column.

    UPDATE products SET stock = stock - :n WHERE id = :id AND stock >= :n

is the whole reservation: concurrent placements can never oversell.
"""

from typing import Any, cast

from sqlalchemy import select, update
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.engine import CursorResult
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from kungfu import Result, Ok, Error

from candlecart._errors import NotFoundError, OutOfStockError, ShopError, StoreError
from candlecart.catalog import Product
from candlecart.storage._codec import product_from_row, product_row
from candlecart.storage._tables import ProductTable


class SqlCatalog:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def get(self, product_id: str) -> Result[Product, ShopError]:
        try:
            async with self._session_factory() as session:
                row = await session.get(ProductTable, product_id)
                if row is None:
                    return Error(NotFoundError("product", product_id))
                return Ok(product_from_row(row))

        except Exception as e:
            return Error(StoreError(f"Failed to get product: {e}", e))

    async def list_products(self) -> Result[list[Product], ShopError]:
        try:
            async with self._session_factory() as session:
                rows = await session.scalars(select(ProductTable).order_by(ProductTable.name))
                return Ok([product_from_row(row) for row in rows])

        except Exception as e:
            return Error(StoreError(f"Failed to list products: {e}", e))

    async def put(self, product: Product) -> Result[None, ShopError]:
        try:
            async with self._session_factory() as session:
                values = product_row(product)
                stmt = sqlite_insert(ProductTable).values(**values)
                stmt = stmt.on_conflict_do_update(
                    index_elements=["id"],
                    set_={k: v for k, v in values.items() if k != "id"},
                )
                await session.execute(stmt)
                await session.commit()
                return Ok(None)

        except Exception as e:
            return Error(StoreError(f"Failed to save product: {e}", e))

    async def reserve(self, product_id: str, quantity: int) -> Result[None, ShopError]:
        try:
            async with self._session_factory() as session:
                stmt = (
                    update(ProductTable)
                    .where(ProductTable.id == product_id, ProductTable.stock >= quantity)
                    .values(stock=ProductTable.stock - quantity)
                )
                cursor = cast(CursorResult[Any], await session.execute(stmt))
                await session.commit()
                if cursor.rowcount > 0:
                    return Ok(None)

                row = await session.get(ProductTable, product_id)
                if row is None:
                    return Error(NotFoundError("product", product_id))
                return Error(OutOfStockError(product_id, f"only {row.stock} of {row.name} left"))

        except Exception as e:
            return Error(StoreError(f"Failed to reserve stock: {e}", e))

    async def restock(self, product_id: str, quantity: int) -> Result[None, ShopError]:
        try:
            async with self._session_factory() as session:
                stmt = (
                    update(ProductTable)
                    .where(ProductTable.id == product_id)
                    .values(stock=ProductTable.stock + quantity)
                )
                cursor = cast(CursorResult[Any], await session.execute(stmt))
                await session.commit()
                if cursor.rowcount == 0:
                    return Error(NotFoundError("product", product_id))
                return Ok(None)

        except Exception as e:
            return Error(StoreError(f"Failed to restock: {e}", e))


__all__ = ("SqlCatalog",)
