"""
Signed webhooks.

Header format: `t=<unix seconds>,v1=<hex hmac-sha256 of "<t>.<raw body>">`.
Unsigned, badly signed or stale payloads are rejected before parsing.

    match construct_event(body, request.headers.get("Stripe-Signature"), secret):
        case Ok(event):
            ...
        case Error(e):
            ...  # InvalidSignatureError
"""

from __future__ import annotations

import hashlib
import hmac
import json
import time
from datetime import UTC, datetime

from kungfu import Result, Ok, Error

from candlecart._errors import InvalidSignatureError, ShopError, ValidationError
from candlecart.payments._types import PaymentEvent

DEFAULT_TOLERANCE = 300


def _digest(payload: bytes, secret: str, timestamp: int) -> str:
    signed = f"{timestamp}.".encode() + payload
    return hmac.new(secret.encode(), signed, hashlib.sha256).hexdigest()


def sign(payload: bytes, secret: str, timestamp: int | None = None) -> str:
    """Build a signature header. Used by tests and local tooling."""
    ts = int(time.time()) if timestamp is None else timestamp
    return f"t={ts},v1={_digest(payload, secret, ts)}"


def verify_signature(
    payload: bytes,
    header: str | None,
    secret: str,
    tolerance: int = DEFAULT_TOLERANCE,
    now: float | None = None,
) -> Result[None, ShopError]:
    if not header:
        return Error(InvalidSignatureError("missing webhook signature"))

    timestamp: int | None = None
    signatures: list[str] = []
    for part in header.split(","):
        key, _, value = part.strip().partition("=")
        if key == "t" and value.isdigit():
            timestamp = int(value)
        elif key == "v1":
            signatures.append(value)

    if timestamp is None or not signatures:
        return Error(InvalidSignatureError("malformed webhook signature"))

    current = time.time() if now is None else now
    if abs(current - timestamp) > tolerance:
        return Error(InvalidSignatureError("webhook timestamp outside tolerance"))

    expected = _digest(payload, secret, timestamp)
    if not any(hmac.compare_digest(expected, s) for s in signatures):
        return Error(InvalidSignatureError("webhook signature does not match"))
    return Ok(None)


def parse_event(payload: bytes) -> Result[PaymentEvent, ShopError]:
    try:
        data = json.loads(payload)
        obj = data["data"]["object"]
        failure = obj.get("last_payment_error") or {}
        return Ok(PaymentEvent(
            id=data["id"],
            type=data["type"],
            intent_id=obj["id"],
            received_at=datetime.now(UTC),
            amount_cents=obj.get("amount"),
            failure_message=failure.get("message"),
        ))
    except (ValueError, KeyError, TypeError, AttributeError) as e:
        return Error(ValidationError(f"malformed webhook payload: {e}", {"body": "invalid event"}))


def construct_event(
    payload: bytes,
    header: str | None,
    secret: str,
    tolerance: int = DEFAULT_TOLERANCE,
    now: float | None = None,
) -> Result[PaymentEvent, ShopError]:
    match verify_signature(payload, header, secret, tolerance, now):
        case Ok(_):
            return parse_event(payload)
        case Error(e):
            return Error(e)


__all__ = (
    "DEFAULT_TOLERANCE",
    "sign",
    "verify_signature",
    "parse_event",
    "construct_event",
)
