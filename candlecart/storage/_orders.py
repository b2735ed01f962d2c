"""
SQL order store, placement guards and processed payment events.

Claims and event records are `INSERT ... ON CONFLICT DO NOTHING`: the
rowcount says whether this caller was first.
"""

from typing import Any, cast

from sqlalchemy import delete, insert, select, update
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.engine import CursorResult
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from kungfu import Result, Ok, Error

from candlecart._errors import ConflictError, NotFoundError, ShopError, StoreError
from candlecart._types import Clock, utcnow
from candlecart.orders import GuardState, Order, OrderStatus
from candlecart.payments import PaymentEvent
from candlecart.storage._codec import order_from_row, order_row
from candlecart.storage._tables import (
    OrderTable,
    PaymentEventTable,
    PlacementGuardTable,
    from_db,
    to_db,
)


# ═══════════════════════════════════════════════════════════════════════════════
# Orders + placement guards
# ═══════════════════════════════════════════════════════════════════════════════

class SqlOrderStore:
    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        clock: Clock = utcnow,
    ) -> None:
        self._session_factory = session_factory
        self._clock = clock

    async def claim_placement(self, key: str) -> Result[bool, ShopError]:
        try:
            async with self._session_factory() as session:
                stmt = (
                    sqlite_insert(PlacementGuardTable)
                    .values(key=key, status=GuardState.PROCESSING.value, created_at=to_db(self._clock()))
                    .on_conflict_do_nothing(index_elements=["key"])
                )
                cursor = cast(CursorResult[Any], await session.execute(stmt))
                await session.commit()
                return Ok(cursor.rowcount > 0)

        except Exception as e:
            return Error(StoreError(f"Failed to claim placement: {e}", e))

    async def release_placement(self, key: str) -> Result[None, ShopError]:
        try:
            async with self._session_factory() as session:
                await session.execute(
                    delete(PlacementGuardTable).where(
                        PlacementGuardTable.key == key,
                        PlacementGuardTable.status == GuardState.PROCESSING.value,
                    )
                )
                await session.commit()
                return Ok(None)

        except Exception as e:
            return Error(StoreError(f"Failed to release placement: {e}", e))

    async def create(self, order: Order) -> Result[Order, ShopError]:
        try:
            async with self._session_factory() as session:
                await session.execute(insert(OrderTable).values(**order_row(order)))
                if order.placement_key is not None:
                    stmt = sqlite_insert(PlacementGuardTable).values(
                        key=order.placement_key,
                        status=GuardState.COMPLETED.value,
                        created_at=to_db(self._clock()),
                    )
                    await session.execute(stmt.on_conflict_do_update(
                        index_elements=["key"],
                        set_={"status": GuardState.COMPLETED.value},
                    ))
                await session.commit()
                return Ok(order)

        except IntegrityError:
            return Error(ConflictError(f"order number {order.number} is taken"))
        except Exception as e:
            return Error(StoreError(f"Failed to create order: {e}", e))

    async def get(self, number: str) -> Result[Order, ShopError]:
        try:
            async with self._session_factory() as session:
                row = await session.get(OrderTable, number)
                if row is None:
                    return Error(NotFoundError("order", number))
                return Ok(order_from_row(row))

        except Exception as e:
            return Error(StoreError(f"Failed to get order: {e}", e))

    async def find_by_transaction(self, transaction_id: str) -> Result[Order | None, ShopError]:
        try:
            async with self._session_factory() as session:
                row = await session.scalar(
                    select(OrderTable).where(OrderTable.transaction_id == transaction_id)
                )
                return Ok(order_from_row(row) if row else None)

        except Exception as e:
            return Error(StoreError(f"Failed to find order: {e}", e))

    async def list_orders(
        self,
        status: OrderStatus | None = None,
        user_id: str | None = None,
    ) -> Result[list[Order], ShopError]:
        try:
            async with self._session_factory() as session:
                stmt = select(OrderTable).order_by(OrderTable.created_at.desc())
                if status is not None:
                    stmt = stmt.where(OrderTable.status == status.value)
                if user_id is not None:
                    stmt = stmt.where(OrderTable.user_id == user_id)
                rows = await session.scalars(stmt)
                return Ok([order_from_row(row) for row in rows])

        except Exception as e:
            return Error(StoreError(f"Failed to list orders: {e}", e))

    async def update(self, order: Order, expected: Order) -> Result[Order, ShopError]:
        try:
            async with self._session_factory() as session:
                tracking = (
                    OrderTable.tracking_number.is_(None)
                    if expected.tracking_number is None
                    else OrderTable.tracking_number == expected.tracking_number
                )
                stmt = (
                    update(OrderTable)
                    .where(
                        OrderTable.number == order.number,
                        OrderTable.status == expected.status.value,
                        OrderTable.payment_status == expected.payment.status.value,
                        tracking,
                    )
                    .values(
                        status=order.status.value,
                        payment_status=order.payment.status.value,
                        tracking_number=order.tracking_number,
                        updated_at=to_db(order.updated_at),
                    )
                    .execution_options(synchronize_session=False)
                )
                cursor = cast(CursorResult[Any], await session.execute(stmt))
                await session.commit()
                if cursor.rowcount > 0:
                    return Ok(order)

                if await session.get(OrderTable, order.number) is None:
                    return Error(NotFoundError("order", order.number))
                return Error(ConflictError(f"order {order.number} was modified concurrently"))

        except Exception as e:
            return Error(StoreError(f"Failed to update order: {e}", e))


# ═══════════════════════════════════════════════════════════════════════════════
# Payment events
# ═══════════════════════════════════════════════════════════════════════════════

def _event(row: PaymentEventTable) -> PaymentEvent:
    return PaymentEvent(
        id=row.id,
        type=row.type,
        intent_id=row.intent_id,
        received_at=from_db(row.received_at),
        amount_cents=row.amount_cents,
        failure_message=row.failure_message,
    )


class SqlPaymentEventStore:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def record(self, event: PaymentEvent) -> Result[bool, ShopError]:
        try:
            async with self._session_factory() as session:
                stmt = (
                    sqlite_insert(PaymentEventTable)
                    .values(
                        id=event.id,
                        type=event.type,
                        intent_id=event.intent_id,
                        received_at=to_db(event.received_at),
                        amount_cents=event.amount_cents,
                        failure_message=event.failure_message,
                        applied=False,
                    )
                    .on_conflict_do_nothing(index_elements=["id"])
                )
                await session.execute(stmt)
                applied = await session.scalar(
                    select(PaymentEventTable.applied).where(PaymentEventTable.id == event.id)
                )
                await session.commit()
                return Ok(not applied)

        except Exception as e:
            return Error(StoreError(f"Failed to record payment event: {e}", e))

    async def unapplied(self, intent_id: str) -> Result[list[PaymentEvent], ShopError]:
        try:
            async with self._session_factory() as session:
                rows = await session.scalars(
                    select(PaymentEventTable)
                    .where(PaymentEventTable.intent_id == intent_id, PaymentEventTable.applied.is_(False))
                    .order_by(PaymentEventTable.received_at)
                )
                return Ok([_event(row) for row in rows])

        except Exception as e:
            return Error(StoreError(f"Failed to load payment events: {e}", e))

    async def mark_applied(self, event_id: str) -> Result[None, ShopError]:
        try:
            async with self._session_factory() as session:
                await session.execute(
                    update(PaymentEventTable)
                    .where(PaymentEventTable.id == event_id)
                    .values(applied=True)
                )
                await session.commit()
                return Ok(None)

        except Exception as e:
            return Error(StoreError(f"Failed to mark payment event: {e}", e))


__all__ = ("SqlOrderStore", "SqlPaymentEventStore")
