"""
Payments: gateway protocol, resilient client, adapters, signed webhooks.

    from candlecart import payments as P

    client = P.GatewayClient(P.StripeGateway(secret_key), timeout=P.Timeout(10))
    match await client.retrieve(intent_id):
        case Ok(intent) if intent.is_authorized:
            ...
"""

from candlecart.payments._types import (
    IntentStatus,
    PaymentIntent,
    PaymentGateway,
    EventType,
    PaymentEvent,
)
from candlecart.payments._client import Retry, Timeout, GatewayClient
from candlecart.payments._stripe import StripeGateway
from candlecart.payments._memory import MemoryGateway
from candlecart.payments._webhook import (
    DEFAULT_TOLERANCE,
    sign,
    verify_signature,
    parse_event,
    construct_event,
)

__all__ = (
    "IntentStatus",
    "PaymentIntent",
    "PaymentGateway",
    "EventType",
    "PaymentEvent",
    "Retry",
    "Timeout",
    "GatewayClient",
    "StripeGateway",
    "MemoryGateway",
    "DEFAULT_TOLERANCE",
    "sign",
    "verify_signature",
    "parse_event",
    "construct_event",
)
