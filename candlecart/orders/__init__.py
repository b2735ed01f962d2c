"""
Orders: immutable order snapshots and their status lifecycle.

    from candlecart import orders

    match await lifecycle.update_status("ORD-261019-0042", orders.OrderStatus.SHIPPED, "1Z999"):
        case Ok(order):
            ...
        case Error(InvalidTransitionError() as e):
            ...
"""

from candlecart.orders._types import (
    OrderStatus,
    PaymentStatus,
    OrderItem,
    PaymentDetails,
    Order,
    TrackingView,
)
from candlecart.orders._numbers import ORDER_NUMBER, order_number
from candlecart.orders._store import (
    GuardState,
    OrderStore,
    PaymentEventStore,
    MemoryOrderStore,
    MemoryPaymentEventStore,
)
from candlecart.orders._notify import Notifier, LoggingNotifier, Notifications
from candlecart.orders._lifecycle import (
    RANK,
    CANCELLABLE,
    check_transition,
    EventOutcome,
    OrderLifecycle,
)

__all__ = (
    "OrderStatus",
    "PaymentStatus",
    "OrderItem",
    "PaymentDetails",
    "Order",
    "TrackingView",
    "ORDER_NUMBER",
    "order_number",
    "GuardState",
    "OrderStore",
    "PaymentEventStore",
    "MemoryOrderStore",
    "MemoryPaymentEventStore",
    "Notifier",
    "LoggingNotifier",
    "Notifications",
    "RANK",
    "CANCELLABLE",
    "check_transition",
    "EventOutcome",
    "OrderLifecycle",
)
