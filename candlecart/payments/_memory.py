"""
In-memory gateway: for tests and local runs without gateway keys.

    gateway = MemoryGateway()
    intent = await gateway.create_payment_intent(4386, "usd", {})
    gateway.authorize(intent.id)        # what the shopper's browser would do
    await gateway.confirm_payment(intent.id)
"""

from __future__ import annotations

import asyncio
import uuid
from dataclasses import replace

from candlecart._errors import NotFoundError, PaymentDeclinedError
from candlecart.payments._types import IntentStatus, PaymentIntent


class MemoryGateway:
    def __init__(self, delay: float = 0.0) -> None:
        self._intents: dict[str, PaymentIntent] = {}
        self._declines: set[str] = set()
        self.delay = delay
        self.calls: dict[str, int] = {"create": 0, "retrieve": 0, "capture": 0}

    # ─── test controls ────────────────────────────────────────────────────────

    def authorize(self, intent_id: str) -> PaymentIntent:
        intent = replace(self._intents[intent_id], status=IntentStatus.REQUIRES_CAPTURE)
        self._intents[intent_id] = intent
        return intent

    def decline_capture(self, intent_id: str) -> None:
        self._declines.add(intent_id)

    # ─── gateway ──────────────────────────────────────────────────────────────

    async def _pause(self) -> None:
        if self.delay:
            await asyncio.sleep(self.delay)

    def _get(self, intent_id: str) -> PaymentIntent:
        intent = self._intents.get(intent_id)
        if intent is None:
            raise NotFoundError("payment intent", intent_id)
        return intent

    async def create_payment_intent(
        self, amount_cents: int, currency: str, metadata: dict[str, str]
    ) -> PaymentIntent:
        self.calls["create"] += 1
        await self._pause()
        intent_id = f"pi_{uuid.uuid4().hex[:16]}"
        intent = PaymentIntent(
            id=intent_id,
            amount_cents=amount_cents,
            currency=currency,
            status=IntentStatus.REQUIRES_PAYMENT_METHOD,
            client_secret=f"{intent_id}_secret_{uuid.uuid4().hex[:8]}",
            metadata=dict(metadata),
        )
        self._intents[intent_id] = intent
        return intent

    async def retrieve_intent(self, intent_id: str) -> PaymentIntent:
        self.calls["retrieve"] += 1
        await self._pause()
        return self._get(intent_id)

    async def confirm_payment(self, intent_id: str) -> PaymentIntent:
        self.calls["capture"] += 1
        await self._pause()
        intent = self._get(intent_id)
        if intent_id in self._declines:
            raise PaymentDeclinedError("card was declined")
        if intent.status == IntentStatus.SUCCEEDED:
            return intent
        if intent.status != IntentStatus.REQUIRES_CAPTURE:
            raise PaymentDeclinedError(f"intent {intent_id} is not authorized ({intent.status})")
        intent = replace(intent, status=IntentStatus.SUCCEEDED)
        self._intents[intent_id] = intent
        return intent


__all__ = ("MemoryGateway",)
