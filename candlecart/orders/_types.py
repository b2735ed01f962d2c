"""
Order types.

An order is written once, when checkout is confirmed. Its items are frozen
snapshots, so later catalog edits never change a placed order. Afterwards
only status, payment status and tracking move.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import StrEnum

from candlecart._types import Money
from candlecart.address import Address


# ═══════════════════════════════════════════════════════════════════════════════
# Statuses
# ═══════════════════════════════════════════════════════════════════════════════

class OrderStatus(StrEnum):
    """
    Lifecycle:
        PENDING → PROCESSING → SHIPPED → DELIVERED
        PENDING | PROCESSING → CANCELLED
    """

    PENDING = "pending"
    PROCESSING = "processing"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


class PaymentStatus(StrEnum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"
    REFUNDED = "refunded"


# ═══════════════════════════════════════════════════════════════════════════════
# Snapshots
# ═══════════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True, slots=True)
class OrderItem:
    product_id: str
    product_name: str
    quantity: int
    unit_price: Money
    customizations: tuple[tuple[str, str], ...] = ()
    image: str | None = None

    @property
    def line_total(self) -> Money:
        return self.unit_price * self.quantity

    @property
    def labels(self) -> dict[str, str]:
        return dict(self.customizations)


@dataclass(frozen=True, slots=True)
class PaymentDetails:
    method: str
    transaction_id: str | None
    status: PaymentStatus


# ═══════════════════════════════════════════════════════════════════════════════
# Order
# ═══════════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True, slots=True)
class Order:
    number: str
    user_id: str | None
    email: str
    items: tuple[OrderItem, ...]
    shipping_address: Address
    billing_address: Address
    shipping_option: str
    payment: PaymentDetails
    subtotal: Money
    tax: Money
    shipping_cost: Money
    total: Money
    status: OrderStatus
    created_at: datetime
    updated_at: datetime
    tracking_number: str | None = None
    placement_key: str | None = None


@dataclass(frozen=True, slots=True)
class TrackingView:
    """What a guest may see when looking an order up by number + email."""

    number: str
    status: OrderStatus
    items: tuple[OrderItem, ...]
    total: Money
    ship_to: str
    city: str
    state: str
    country: str
    created_at: datetime
    tracking_number: str | None

    @classmethod
    def of(cls, order: Order) -> TrackingView:
        a = order.shipping_address
        return cls(
            number=order.number,
            status=order.status,
            items=order.items,
            total=order.total,
            ship_to=a.full_name,
            city=a.city,
            state=a.state,
            country=a.country,
            created_at=order.created_at,
            tracking_number=order.tracking_number,
        )


__all__ = (
    "OrderStatus",
    "PaymentStatus",
    "OrderItem",
    "PaymentDetails",
    "Order",
    "TrackingView",
)
