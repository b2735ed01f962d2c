"""
Error taxonomy: every failure the engine reports.

Errors are plain exceptions so they can travel both ways:
as `Error(e)` inside a `kungfu.Result`, or raised and caught at a boundary.

    match await carts.add_item(owner, product_id, 2, combination):
        case Ok(cart):
            ...
        case Error(ValidationError() as e):
            print(e.fields)
"""

from __future__ import annotations

from decimal import Decimal
from enum import StrEnum
from typing import ClassVar


# ═══════════════════════════════════════════════════════════════════════════════
# Kinds
# ═══════════════════════════════════════════════════════════════════════════════

class ErrorKind(StrEnum):
    VALIDATION = "validation"
    NOT_FOUND = "not_found"
    OUT_OF_STOCK = "out_of_stock"
    PAYMENT_DECLINED = "payment_declined"
    GATEWAY_TIMEOUT = "gateway_timeout"
    GATEWAY_ERROR = "gateway_error"
    PRICE_MISMATCH = "price_mismatch"
    INVALID_TRANSITION = "invalid_transition"
    CONFLICT = "conflict"
    INVALID_SIGNATURE = "invalid_signature"
    FORBIDDEN = "forbidden"
    STORAGE = "storage"


# ═══════════════════════════════════════════════════════════════════════════════
# Base
# ═══════════════════════════════════════════════════════════════════════════════

class ShopError(Exception):
    """Base for all engine errors. `kind` and `status_code` drive the HTTP mapping."""

    kind: ClassVar[ErrorKind]
    status_code: ClassVar[int]

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def __str__(self) -> str:
        return self.message


# ═══════════════════════════════════════════════════════════════════════════════
# Concrete errors
# ═══════════════════════════════════════════════════════════════════════════════

class ValidationError(ShopError):
    """Bad input. `fields` maps a field name to its message."""

    kind = ErrorKind.VALIDATION
    status_code = 400

    def __init__(self, message: str, fields: dict[str, str] | None = None) -> None:
        super().__init__(message)
        self.fields = dict(fields or {})


class NotFoundError(ShopError):
    kind = ErrorKind.NOT_FOUND
    status_code = 404

    def __init__(self, entity: str, id: object) -> None:
        super().__init__(f"{entity} {id} not found")
        self.entity = entity
        self.id = id


class OutOfStockError(ShopError):
    kind = ErrorKind.OUT_OF_STOCK
    status_code = 409

    def __init__(self, product_id: str, message: str | None = None) -> None:
        super().__init__(message or f"product {product_id} is out of stock")
        self.product_id = product_id


class PaymentDeclinedError(ShopError):
    kind = ErrorKind.PAYMENT_DECLINED
    status_code = 402


class PaymentGatewayTimeoutError(ShopError):
    kind = ErrorKind.GATEWAY_TIMEOUT
    status_code = 504

    def __init__(self, operation: str, seconds: float) -> None:
        super().__init__(f"payment gateway did not answer {operation} within {seconds}s")
        self.operation = operation
        self.seconds = seconds


class PriceMismatchError(ShopError):
    """Authorized amount differs from the freshly computed total."""

    kind = ErrorKind.PRICE_MISMATCH
    status_code = 409

    def __init__(self, expected: Decimal, authorized: Decimal | None) -> None:
        super().__init__(
            f"order total is now {expected}, payment was authorized for {authorized}"
        )
        self.expected = expected
        self.authorized = authorized


class InvalidTransitionError(ShopError):
    kind = ErrorKind.INVALID_TRANSITION
    status_code = 409

    def __init__(self, current: str, target: str, reason: str | None = None) -> None:
        message = f"cannot move from {current} to {target}"
        super().__init__(f"{message}: {reason}" if reason else message)
        self.current = current
        self.target = target


class ConflictError(ShopError):
    kind = ErrorKind.CONFLICT
    status_code = 409


class PaymentGatewayError(ShopError):
    """Gateway answered, but not with anything usable (5xx, malformed reply)."""

    kind = ErrorKind.GATEWAY_ERROR
    status_code = 502


class InvalidSignatureError(ShopError):
    kind = ErrorKind.INVALID_SIGNATURE
    status_code = 400


class ForbiddenError(ShopError):
    kind = ErrorKind.FORBIDDEN
    status_code = 403


class StoreError(ShopError):
    """Storage backend failure. Carries the original exception."""

    kind = ErrorKind.STORAGE
    status_code = 503

    def __init__(self, message: str, cause: Exception | None = None) -> None:
        super().__init__(message)
        self.cause = cause


# ═══════════════════════════════════════════════════════════════════════════════
# Exports
# ═══════════════════════════════════════════════════════════════════════════════

__all__ = (
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
)
