"""
Checkout: shipping, payment, review, confirmation.

    from candlecart import checkout

    machine = checkout.CheckoutMachine(carts, catalog, pricing, checkout.SessionRegistry(), ...)
    session = expect(await machine.start(owner))
"""

from candlecart.checkout._types import (
    CheckoutStep,
    PREVIOUS,
    CARD,
    ShippingDetails,
    PaymentSelection,
    CheckoutSession,
)
from candlecart.checkout._sessions import IDLE_TTL, SessionRegistry
from candlecart.checkout._review import (
    ReviewRequest,
    ReviewedLine,
    Review,
    review,
)
from candlecart.checkout._placement import Placement, snapshot, Placer
from candlecart.checkout._machine import CheckoutMachine

__all__ = (
    "CheckoutStep",
    "PREVIOUS",
    "CARD",
    "ShippingDetails",
    "PaymentSelection",
    "CheckoutSession",
    "IDLE_TTL",
    "SessionRegistry",
    "ReviewRequest",
    "ReviewedLine",
    "Review",
    "review",
    "Placement",
    "snapshot",
    "Placer",
    "CheckoutMachine",
)
