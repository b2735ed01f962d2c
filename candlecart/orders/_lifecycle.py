"""
Order lifecycle: admin status updates, tracking, payment webhooks.

    PENDING ──► PROCESSING ──► SHIPPED ──► DELIVERED
       │             │
       └─────────────┴──► CANCELLED

Admins may move an order any number of steps forward, and cancel it
while it has not shipped. Setting the status it already has is a no-op.
An illegal move fails with InvalidTransitionError and stores nothing.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from enum import StrEnum

from kungfu import Ok, Error

from candlecart._errors import (
    ConflictError,
    InvalidTransitionError,
    NotFoundError,
    ValidationError,
)
from candlecart._types import Clock, expect, outcome, utcnow
from candlecart.orders._notify import Notifications
from candlecart.orders._store import OrderStore, PaymentEventStore
from candlecart.orders._types import Order, OrderStatus, PaymentStatus, TrackingView
from candlecart.payments import EventType, PaymentEvent

logger = logging.getLogger(__name__)

RANK = {
    OrderStatus.PENDING: 0,
    OrderStatus.PROCESSING: 1,
    OrderStatus.SHIPPED: 2,
    OrderStatus.DELIVERED: 3,
}
CANCELLABLE = frozenset({OrderStatus.PENDING, OrderStatus.PROCESSING})
TRACKED = frozenset({OrderStatus.SHIPPED, OrderStatus.DELIVERED})
CAS_ATTEMPTS = 3


def check_transition(
    order: Order,
    target: OrderStatus,
    tracking_number: str | None = None,
) -> bool:
    """
    True if `target` is a legal move, False if it is the current status.
    Raises InvalidTransitionError otherwise.
    """
    current = order.status
    if target == current:
        return False

    if target == OrderStatus.CANCELLED:
        if current not in CANCELLABLE:
            raise InvalidTransitionError(current, target, "order can no longer be cancelled")
        return True

    if current == OrderStatus.CANCELLED or RANK[target] < RANK[current]:
        raise InvalidTransitionError(current, target)

    if target == OrderStatus.SHIPPED and not (tracking_number or order.tracking_number):
        raise InvalidTransitionError(current, target, "a tracking number is required")
    return True


class EventOutcome(StrEnum):
    APPLIED = "applied"
    DUPLICATE = "duplicate"
    DEFERRED = "deferred"
    IGNORED = "ignored"


class OrderLifecycle:
    def __init__(
        self,
        orders: OrderStore,
        events: PaymentEventStore,
        notifications: Notifications,
        clock: Clock = utcnow,
    ) -> None:
        self._orders = orders
        self._events = events
        self._notifications = notifications
        self._clock = clock

    # ─── reads ────────────────────────────────────────────────────────────────

    @outcome
    async def get(self, number: str) -> Order:
        return expect(await self._orders.get(number))

    @outcome
    async def list_orders(
        self, status: OrderStatus | None = None, user_id: str | None = None
    ) -> list[Order]:
        return expect(await self._orders.list_orders(status=status, user_id=user_id))

    @outcome
    async def track(self, number: str, email: str) -> TrackingView:
        """Guest lookup. A wrong email looks exactly like a wrong number."""
        order = expect(await self._orders.get(number))
        if order.email.lower() != email.strip().lower():
            raise NotFoundError("order", number)
        return TrackingView.of(order)

    # ─── admin ────────────────────────────────────────────────────────────────

    @outcome
    async def update_status(
        self,
        number: str,
        target: OrderStatus,
        tracking_number: str | None = None,
    ) -> Order:
        order = expect(await self._orders.get(number))
        if not check_transition(order, target, tracking_number):
            return order
        if target not in TRACKED:
            tracking_number = None

        updated = replace(
            order,
            status=target,
            tracking_number=tracking_number or order.tracking_number,
            updated_at=self._clock(),
        )
        saved = expect(await self._orders.update(updated, order))
        logger.info("order %s: %s → %s", number, order.status, target)
        self._notifications.status_changed(saved)
        return saved

    @outcome
    async def update_tracking(self, number: str, tracking_number: str) -> Order:
        """Attach a tracking number. A processing order ships with it."""
        if not tracking_number.strip():
            raise ValidationError("tracking number is required", {"tracking_number": "required"})

        order = expect(await self._orders.get(number))
        match order.status:
            case OrderStatus.PROCESSING:
                return expect(await self.update_status(number, OrderStatus.SHIPPED, tracking_number))
            case OrderStatus.SHIPPED | OrderStatus.DELIVERED:
                updated = replace(order, tracking_number=tracking_number, updated_at=self._clock())
                return expect(await self._orders.update(updated, order))
            case _:
                raise InvalidTransitionError(order.status, OrderStatus.SHIPPED, "order has not shipped")

    # ─── payment webhooks ─────────────────────────────────────────────────────

    @outcome
    async def handle_payment_event(self, event: PaymentEvent) -> EventOutcome:
        """
        Deduplicated by event id once applied; a redelivery of an event whose
        apply failed is applied again. Events for an intent without an order
        yet are kept and applied by `reconcile` once the order exists.
        """
        if not event.is_handled:
            logger.debug("ignoring payment event %s (%s)", event.id, event.type)
            return EventOutcome.IGNORED

        if not expect(await self._events.record(event)):
            logger.info("payment event %s already processed", event.id)
            return EventOutcome.DUPLICATE

        order = expect(await self._orders.find_by_transaction(event.intent_id))
        if order is None:
            logger.info("payment event %s for %s arrived before its order", event.id, event.intent_id)
            return EventOutcome.DEFERRED

        await self._apply(order.number, event)
        expect(await self._events.mark_applied(event.id))
        return EventOutcome.APPLIED

    @outcome
    async def reconcile(self, order: Order) -> Order:
        """Apply payment events that arrived before `order` was created."""
        if order.payment.transaction_id is None:
            return order
        for event in expect(await self._events.unapplied(order.payment.transaction_id)):
            order = await self._apply(order.number, event)
            expect(await self._events.mark_applied(event.id))
        return order

    async def _apply(self, number: str, event: PaymentEvent) -> Order:
        for _ in range(CAS_ATTEMPTS):
            order = expect(await self._orders.get(number))
            updated = self._after(order, event)
            if updated is order:
                return order

            match await self._orders.update(updated, order):
                case Ok(saved):
                    logger.info("order %s: applied %s", number, event.type)
                    if event.type == EventType.PAYMENT_FAILED:
                        self._notifications.payment_failed(saved, event.failure_message)
                    return saved
                case Error(ConflictError()):
                    continue
                case Error(e):
                    raise e
        raise ConflictError(f"order {number} kept changing while applying {event.id}")

    def _after(self, order: Order, event: PaymentEvent) -> Order:
        match event.type:
            case EventType.PAYMENT_SUCCEEDED:
                status = OrderStatus.PROCESSING if order.status == OrderStatus.PENDING else order.status
                if order.payment.status == PaymentStatus.COMPLETED and status == order.status:
                    return order
                return replace(
                    order,
                    status=status,
                    payment=replace(order.payment, status=PaymentStatus.COMPLETED),
                    updated_at=self._clock(),
                )
            case EventType.PAYMENT_FAILED:
                # A late failure never overrides money already taken.
                if order.payment.status in (PaymentStatus.COMPLETED, PaymentStatus.FAILED):
                    return order
                return replace(
                    order,
                    payment=replace(order.payment, status=PaymentStatus.FAILED),
                    updated_at=self._clock(),
                )
            case _:
                return order


__all__ = (
    "RANK",
    "CANCELLABLE",
    "check_transition",
    "EventOutcome",
    "OrderLifecycle",
)
