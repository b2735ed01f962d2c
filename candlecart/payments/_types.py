"""
Payment types: intents and webhook events.

Amounts cross the gateway boundary as integer cents.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum
from typing import Protocol


# ═══════════════════════════════════════════════════════════════════════════════
# Intents
# ═══════════════════════════════════════════════════════════════════════════════

class IntentStatus(StrEnum):
    REQUIRES_PAYMENT_METHOD = "requires_payment_method"
    REQUIRES_CONFIRMATION = "requires_confirmation"
    REQUIRES_ACTION = "requires_action"
    PROCESSING = "processing"
    REQUIRES_CAPTURE = "requires_capture"
    SUCCEEDED = "succeeded"
    CANCELED = "canceled"


@dataclass(frozen=True, slots=True)
class PaymentIntent:
    id: str
    amount_cents: int
    currency: str
    status: IntentStatus
    client_secret: str | None = None
    metadata: dict[str, str] = field(default_factory=dict)

    @property
    def is_authorized(self) -> bool:
        """Card confirmed by the shopper; funds held or already taken."""
        return self.status in (IntentStatus.REQUIRES_CAPTURE, IntentStatus.SUCCEEDED)


# ═══════════════════════════════════════════════════════════════════════════════
# Gateway protocol
# ═══════════════════════════════════════════════════════════════════════════════

class PaymentGateway(Protocol):
    """
    Raw gateway. Implementations raise: PaymentDeclinedError for declines,
    PaymentGatewayError for unusable replies, anything else for transport trouble.
    """

    async def create_payment_intent(
        self, amount_cents: int, currency: str, metadata: dict[str, str]
    ) -> PaymentIntent: ...

    async def retrieve_intent(self, intent_id: str) -> PaymentIntent: ...

    async def confirm_payment(self, intent_id: str) -> PaymentIntent:
        """Capture an authorized intent."""
        ...


# ═══════════════════════════════════════════════════════════════════════════════
# Webhook events
# ═══════════════════════════════════════════════════════════════════════════════

class EventType(StrEnum):
    PAYMENT_SUCCEEDED = "payment_intent.succeeded"
    PAYMENT_FAILED = "payment_intent.payment_failed"


@dataclass(frozen=True, slots=True)
class PaymentEvent:
    id: str
    type: str
    intent_id: str
    received_at: datetime
    amount_cents: int | None = None
    failure_message: str | None = None

    @property
    def is_handled(self) -> bool:
        return self.type in tuple(EventType)


__all__ = (
    "IntentStatus",
    "PaymentIntent",
    "PaymentGateway",
    "EventType",
    "PaymentEvent",
)
