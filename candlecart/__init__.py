"""
candlecart: cart, checkout and order engine for a customizable-candle storefront.

    from candlecart import catalog    # Products, options, combination validation
    from candlecart import pricing    # Unit prices, totals, shipping, tax
    from candlecart import cart       # Guest/user carts, sign-in merge
    from candlecart import checkout   # shipping → payment → review → confirmed
    from candlecart import orders     # Order snapshots, status lifecycle, webhooks
"""

from candlecart import catalog
from candlecart import pricing
from candlecart import cart
from candlecart import payments
from candlecart import orders
from candlecart import checkout
from candlecart._errors import (
    ErrorKind,
    ShopError,
    ValidationError,
    NotFoundError,
    OutOfStockError,
    PaymentDeclinedError,
    PaymentGatewayTimeoutError,
    PaymentGatewayError,
    PriceMismatchError,
    InvalidTransitionError,
    ConflictError,
    InvalidSignatureError,
    ForbiddenError,
    StoreError,
)
from candlecart._types import Money, Outcome, expect, outcome

__version__ = "0.1.0"

__all__ = (
    "catalog",
    "pricing",
    "cart",
    "payments",
    "orders",
    "checkout",
    "ErrorKind",
    "ShopError",
    "ValidationError",
    "NotFoundError",
    "OutOfStockError",
    "PaymentDeclinedError",
    "PaymentGatewayTimeoutError",
    "PaymentGatewayError",
    "PriceMismatchError",
    "InvalidTransitionError",
    "ConflictError",
    "InvalidSignatureError",
    "ForbiddenError",
    "StoreError",
    "Money",
    "Outcome",
    "expect",
    "outcome",
)
