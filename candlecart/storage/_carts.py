"""
SQL cart store.

Merge-by-identity is enforced by the unique (cart_id, product_id,
combination_key) index; an add is one upsert:

    INSERT ... ON CONFLICT (cart_id, product_id, combination_key)
    DO UPDATE SET quantity = quantity + excluded.quantity
"""

from collections.abc import Mapping, Sequence
from datetime import datetime
from decimal import Decimal
from typing import Any, cast

from sqlalchemy import delete, select, update
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.engine import CursorResult
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from kungfu import Result, Ok, Error

from candlecart._errors import NotFoundError, ShopError, StoreError
from candlecart._types import Clock, Money, utcnow
from candlecart.cart import Cart, CartItem, CartOwner, NewLine, new_cart_id, new_item_id
from candlecart.catalog import Combination
from candlecart.storage._tables import CartItemTable, CartTable, from_db, to_db


def _upsert(cart_id: str, line: NewLine) -> Any:
    stmt = sqlite_insert(CartItemTable).values(
        id=new_item_id(),
        cart_id=cart_id,
        product_id=line.product_id,
        combination_key=line.combination.key,
        quantity=line.quantity,
        unit_price=str(line.unit_price),
    )
    return stmt.on_conflict_do_update(
        index_elements=["cart_id", "product_id", "combination_key"],
        set_={
            "quantity": CartItemTable.quantity + stmt.excluded.quantity,
            "unit_price": stmt.excluded.unit_price,
        },
    )


class SqlCartStore:
    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        clock: Clock = utcnow,
    ) -> None:
        self._session_factory = session_factory
        self._clock = clock

    # ─── helpers ──────────────────────────────────────────────────────────────

    async def _load(self, session: AsyncSession, row: CartTable) -> Cart:
        items = await session.scalars(
            select(CartItemTable).where(CartItemTable.cart_id == row.id).order_by(CartItemTable.seq)
        )
        return Cart(
            id=row.id,
            owner=CartOwner.from_key(row.owner_key),
            items=tuple(
                CartItem(
                    id=i.id,
                    product_id=i.product_id,
                    quantity=i.quantity,
                    combination=Combination.from_key(i.combination_key),
                    unit_price=Decimal(i.unit_price),
                )
                for i in items
            ),
            revision=row.revision,
            created_at=from_db(row.created_at),
            updated_at=from_db(row.updated_at),
            expires_at=from_db(row.expires_at) if row.expires_at else None,
        )

    async def _live(self, session: AsyncSession, owner: CartOwner) -> CartTable | None:
        row = await session.scalar(select(CartTable).where(CartTable.owner_key == owner.key))
        if row is not None and row.expires_at is not None and from_db(row.expires_at) <= self._clock():
            await self._drop(session, row.id)
            return None
        return row

    async def _drop(self, session: AsyncSession, cart_id: str) -> bool:
        await session.execute(delete(CartItemTable).where(CartItemTable.cart_id == cart_id))
        cursor = cast(CursorResult[Any], await session.execute(
            delete(CartTable).where(CartTable.id == cart_id)
        ))
        return cursor.rowcount > 0

    async def _touch(self, session: AsyncSession, cart_id: str) -> Cart:
        await session.execute(
            update(CartTable)
            .where(CartTable.id == cart_id)
            .values(revision=CartTable.revision + 1, updated_at=to_db(self._clock()))
        )
        row = await session.get(CartTable, cart_id, populate_existing=True)
        if row is None:
            raise NotFoundError("cart", cart_id)
        return await self._load(session, row)

    async def _exists(self, session: AsyncSession, cart_id: str) -> bool:
        return await session.get(CartTable, cart_id) is not None

    # ─── protocol ─────────────────────────────────────────────────────────────

    async def find(self, owner: CartOwner) -> Result[Cart | None, ShopError]:
        try:
            async with self._session_factory() as session:
                row = await self._live(session, owner)
                await session.commit()
                return Ok(await self._load(session, row) if row else None)

        except Exception as e:
            return Error(StoreError(f"Failed to find cart: {e}", e))

    async def get_or_create(
        self, owner: CartOwner, expires_at: datetime | None
    ) -> Result[Cart, ShopError]:
        try:
            async with self._session_factory() as session:
                await self._live(session, owner)
                now = to_db(self._clock())
                await session.execute(
                    sqlite_insert(CartTable)
                    .values(
                        id=new_cart_id(),
                        owner_key=owner.key,
                        revision=0,
                        created_at=now,
                        updated_at=now,
                        expires_at=to_db(expires_at) if expires_at else None,
                    )
                    .on_conflict_do_nothing(index_elements=["owner_key"])
                )
                await session.commit()
                row = await session.scalar(select(CartTable).where(CartTable.owner_key == owner.key))
                if row is None:
                    raise NotFoundError("cart", owner.key)
                return Ok(await self._load(session, row))

        except Exception as e:
            return Error(StoreError(f"Failed to create cart: {e}", e))

    async def add_or_increment(self, cart_id: str, line: NewLine) -> Result[Cart, ShopError]:
        try:
            async with self._session_factory() as session:
                if not await self._exists(session, cart_id):
                    return Error(NotFoundError("cart", cart_id))
                await session.execute(_upsert(cart_id, line))
                cart = await self._touch(session, cart_id)
                await session.commit()
                return Ok(cart)

        except Exception as e:
            return Error(StoreError(f"Failed to add item: {e}", e))

    async def set_quantity(
        self, cart_id: str, item_id: str, quantity: int
    ) -> Result[Cart, ShopError]:
        try:
            async with self._session_factory() as session:
                if not await self._exists(session, cart_id):
                    return Error(NotFoundError("cart", cart_id))
                cursor = cast(CursorResult[Any], await session.execute(
                    update(CartItemTable)
                    .where(CartItemTable.cart_id == cart_id, CartItemTable.id == item_id)
                    .values(quantity=quantity)
                ))
                if cursor.rowcount == 0:
                    return Error(NotFoundError("cart item", item_id))
                cart = await self._touch(session, cart_id)
                await session.commit()
                return Ok(cart)

        except Exception as e:
            return Error(StoreError(f"Failed to update item: {e}", e))

    async def remove(self, cart_id: str, item_id: str) -> Result[Cart, ShopError]:
        try:
            async with self._session_factory() as session:
                row = await session.get(CartTable, cart_id)
                if row is None:
                    return Error(NotFoundError("cart", cart_id))
                cursor = cast(CursorResult[Any], await session.execute(
                    delete(CartItemTable)
                    .where(CartItemTable.cart_id == cart_id, CartItemTable.id == item_id)
                ))
                if cursor.rowcount == 0:
                    return Ok(await self._load(session, row))
                cart = await self._touch(session, cart_id)
                await session.commit()
                return Ok(cart)

        except Exception as e:
            return Error(StoreError(f"Failed to remove item: {e}", e))

    async def clear(self, cart_id: str) -> Result[Cart, ShopError]:
        try:
            async with self._session_factory() as session:
                if not await self._exists(session, cart_id):
                    return Error(NotFoundError("cart", cart_id))
                await session.execute(delete(CartItemTable).where(CartItemTable.cart_id == cart_id))
                cart = await self._touch(session, cart_id)
                await session.commit()
                return Ok(cart)

        except Exception as e:
            return Error(StoreError(f"Failed to clear cart: {e}", e))

    async def set_unit_prices(
        self, cart_id: str, prices: Mapping[str, Money]
    ) -> Result[Cart, ShopError]:
        try:
            async with self._session_factory() as session:
                if not await self._exists(session, cart_id):
                    return Error(NotFoundError("cart", cart_id))
                for item_id, price in prices.items():
                    await session.execute(
                        update(CartItemTable)
                        .where(CartItemTable.cart_id == cart_id, CartItemTable.id == item_id)
                        .values(unit_price=str(price))
                    )
                cart = await self._touch(session, cart_id)
                await session.commit()
                return Ok(cart)

        except Exception as e:
            return Error(StoreError(f"Failed to reprice cart: {e}", e))

    async def absorb(
        self, guest: CartOwner, user: CartOwner, lines: Sequence[NewLine]
    ) -> Result[Cart, ShopError]:
        try:
            async with self._session_factory() as session:
                guest_row = await self._live(session, guest)
                if guest_row is None:
                    await session.commit()
                    return Error(NotFoundError("guest cart", guest.guest_id))

                user_row = await self._live(session, user)
                if user_row is None:
                    # Hand the guest cart over to the user.
                    target = guest_row.id
                    await session.execute(delete(CartItemTable).where(CartItemTable.cart_id == target))
                    await session.execute(
                        update(CartTable)
                        .where(CartTable.id == target)
                        .values(owner_key=user.key, expires_at=None)
                    )
                else:
                    target = user_row.id
                    await self._drop(session, guest_row.id)

                for line in lines:
                    await session.execute(_upsert(target, line))
                cart = await self._touch(session, target)
                await session.commit()
                return Ok(cart)

        except Exception as e:
            return Error(StoreError(f"Failed to merge carts: {e}", e))

    async def delete(self, cart_id: str) -> Result[bool, ShopError]:
        try:
            async with self._session_factory() as session:
                dropped = await self._drop(session, cart_id)
                await session.commit()
                return Ok(dropped)

        except Exception as e:
            return Error(StoreError(f"Failed to delete cart: {e}", e))

    async def purge_expired(self, now: datetime) -> Result[int, ShopError]:
        try:
            async with self._session_factory() as session:
                expired = list(await session.scalars(
                    select(CartTable.id).where(
                        CartTable.expires_at.is_not(None),
                        CartTable.expires_at <= to_db(now),
                    )
                ))
                if expired:
                    await session.execute(delete(CartItemTable).where(CartItemTable.cart_id.in_(expired)))
                    await session.execute(delete(CartTable).where(CartTable.id.in_(expired)))
                await session.commit()
                return Ok(len(expired))

        except Exception as e:
            return Error(StoreError(f"Failed to purge carts: {e}", e))


__all__ = ("SqlCartStore",)
