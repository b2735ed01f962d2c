"""
Order store: orders, placement guard records, processed payment events.

Placement guard lifecycle (one record per placement key):

    claim ──► PROCESSING ──► COMPLETED   (order created)
                  │
                  └────────► (released)   (placement failed, shopper may retry)

`claim` is compare-and-swap: exactly one caller sees Ok(True).
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Protocol

from kungfu import Result, Ok, Error

from candlecart._errors import ConflictError, NotFoundError, ShopError
from candlecart.orders._types import Order, OrderStatus
from candlecart.payments import PaymentEvent


class GuardState(StrEnum):
    PROCESSING = "processing"
    COMPLETED = "completed"


# ═══════════════════════════════════════════════════════════════════════════════
# Protocols
# ═══════════════════════════════════════════════════════════════════════════════

class OrderStore(Protocol):
    async def claim_placement(self, key: str) -> Result[bool, ShopError]:
        """Atomically create a PROCESSING guard. Ok(False) if one exists."""
        ...

    async def release_placement(self, key: str) -> Result[None, ShopError]:
        """Drop a PROCESSING guard. COMPLETED guards stay."""
        ...

    async def create(self, order: Order) -> Result[Order, ShopError]:
        """
        Insert a new order and complete its placement guard.
        ConflictError if the order number is taken.
        """
        ...

    async def get(self, number: str) -> Result[Order, ShopError]: ...

    async def find_by_transaction(self, transaction_id: str) -> Result[Order | None, ShopError]: ...

    async def list_orders(
        self,
        status: OrderStatus | None = None,
        user_id: str | None = None,
    ) -> Result[list[Order], ShopError]:
        """Newest first."""
        ...

    async def update(self, order: Order, expected: Order) -> Result[Order, ShopError]:
        """
        Compare-and-set on (status, payment status, tracking number).
        ConflictError if the stored order moved since `expected` was read.
        """
        ...


class PaymentEventStore(Protocol):
    async def record(self, event: PaymentEvent) -> Result[bool, ShopError]:
        """
        Keep the event. Ok(False) once it has been applied, so a redelivery
        of an event whose apply failed is applied again.
        """
        ...

    async def unapplied(self, intent_id: str) -> Result[list[PaymentEvent], ShopError]:
        """Events for an intent that arrived before its order existed, oldest first."""
        ...

    async def mark_applied(self, event_id: str) -> Result[None, ShopError]: ...


def _fingerprint(order: Order) -> tuple[str, str, str | None]:
    return order.status, order.payment.status, order.tracking_number


# ═══════════════════════════════════════════════════════════════════════════════
# Memory Stores
# ═══════════════════════════════════════════════════════════════════════════════

@dataclass
class MemoryOrderStore:
    """
    In-memory order store.

    Note: single process only.
    """

    _orders: dict[str, Order] = field(default_factory=dict)
    _guards: dict[str, GuardState] = field(default_factory=dict)
    _lock: asyncio.Lock = field(default_factory=asyncio.Lock)

    async def claim_placement(self, key: str) -> Result[bool, ShopError]:
        async with self._lock:
            if key in self._guards:
                return Ok(False)
            self._guards[key] = GuardState.PROCESSING
            return Ok(True)

    async def release_placement(self, key: str) -> Result[None, ShopError]:
        async with self._lock:
            if self._guards.get(key) == GuardState.PROCESSING:
                del self._guards[key]
            return Ok(None)

    async def create(self, order: Order) -> Result[Order, ShopError]:
        async with self._lock:
            if order.number in self._orders:
                return Error(ConflictError(f"order number {order.number} is taken"))
            self._orders[order.number] = order
            if order.placement_key is not None:
                self._guards[order.placement_key] = GuardState.COMPLETED
            return Ok(order)

    async def get(self, number: str) -> Result[Order, ShopError]:
        async with self._lock:
            order = self._orders.get(number)
        if order is None:
            return Error(NotFoundError("order", number))
        return Ok(order)

    async def find_by_transaction(self, transaction_id: str) -> Result[Order | None, ShopError]:
        async with self._lock:
            return Ok(next(
                (o for o in self._orders.values() if o.payment.transaction_id == transaction_id),
                None,
            ))

    async def list_orders(
        self,
        status: OrderStatus | None = None,
        user_id: str | None = None,
    ) -> Result[list[Order], ShopError]:
        async with self._lock:
            orders = [
                o for o in self._orders.values()
                if (status is None or o.status == status)
                and (user_id is None or o.user_id == user_id)
            ]
        return Ok(sorted(orders, key=lambda o: o.created_at, reverse=True))

    async def update(self, order: Order, expected: Order) -> Result[Order, ShopError]:
        async with self._lock:
            current = self._orders.get(order.number)
            if current is None:
                return Error(NotFoundError("order", order.number))
            if _fingerprint(current) != _fingerprint(expected):
                return Error(ConflictError(f"order {order.number} was modified concurrently"))
            self._orders[order.number] = order
            return Ok(order)


@dataclass
class _StoredEvent:
    event: PaymentEvent
    applied: bool = False


@dataclass
class MemoryPaymentEventStore:
    _events: dict[str, _StoredEvent] = field(default_factory=dict)
    _lock: asyncio.Lock = field(default_factory=asyncio.Lock)

    async def record(self, event: PaymentEvent) -> Result[bool, ShopError]:
        async with self._lock:
            stored = self._events.setdefault(event.id, _StoredEvent(event))
            return Ok(not stored.applied)

    async def unapplied(self, intent_id: str) -> Result[list[PaymentEvent], ShopError]:
        async with self._lock:
            events = [
                s.event for s in self._events.values()
                if s.event.intent_id == intent_id and not s.applied
            ]
        return Ok(sorted(events, key=lambda e: e.received_at))

    async def mark_applied(self, event_id: str) -> Result[None, ShopError]:
        async with self._lock:
            stored = self._events.get(event_id)
            if stored is not None:
                stored.applied = True
            return Ok(None)


__all__ = (
    "GuardState",
    "OrderStore",
    "PaymentEventStore",
    "MemoryOrderStore",
    "MemoryPaymentEventStore",
)
