"""
Checkout types.

    SHIPPING ──► PAYMENT ──► REVIEW ──► CONFIRMED
        ◄──────────┘ ◄─────────┘   (back, data kept)

A session never holds card data: only the gateway's intent id.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import StrEnum

from candlecart.address import Address
from candlecart.cart import CartOwner
from candlecart.pricing import Totals


class CheckoutStep(StrEnum):
    SHIPPING = "shipping"
    PAYMENT = "payment"
    REVIEW = "review"
    CONFIRMED = "confirmed"


PREVIOUS = {
    CheckoutStep.PAYMENT: CheckoutStep.SHIPPING,
    CheckoutStep.REVIEW: CheckoutStep.PAYMENT,
}

CARD = "card"


@dataclass(frozen=True, slots=True)
class ShippingDetails:
    email: str
    shipping_address: Address
    shipping_option: str
    billing_address: Address | None = None
    same_as_shipping: bool = True


@dataclass(frozen=True, slots=True)
class PaymentSelection:
    """Card payments name the intent the shopper confirmed; other methods don't."""

    method: str = CARD
    intent_id: str | None = None


@dataclass(frozen=True, slots=True)
class CheckoutSession:
    id: str
    owner: CartOwner
    step: CheckoutStep
    created_at: datetime
    updated_at: datetime
    email: str | None = None
    shipping_address: Address | None = None
    billing_address: Address | None = None
    same_as_shipping: bool = True
    shipping_option: str | None = None
    totals: Totals | None = None
    payment_method: str | None = None
    intent_id: str | None = None
    authorized_cents: int | None = None
    authorized_revision: int | None = None

    @property
    def billing(self) -> Address | None:
        return self.shipping_address if self.same_as_shipping else self.billing_address

    @property
    def jurisdiction(self) -> str | None:
        return self.shipping_address.state if self.shipping_address else None


__all__ = (
    "CheckoutStep",
    "PREVIOUS",
    "CARD",
    "ShippingDetails",
    "PaymentSelection",
    "CheckoutSession",
)
