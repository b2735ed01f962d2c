"""
Gateway client: bounded timeouts and read-only retries around a raw gateway.

Policy:
- every call runs under `flow(...).timeout(...)` → PaymentGatewayTimeoutError
- retrieve_intent also runs under `flow(...).retry(...)`
- create and capture are never retried; a capture that times out is
  reported, not repeated, so a charge can never happen twice

A decline or an unknown intent is a final answer. `retrieve` hands those
back as a value inside the retried flow, so only transport failures are
retried.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

from kungfu import Result, Ok, Error, LazyCoroResult
from combinators import flow, lift as L

from candlecart._errors import (
    NotFoundError,
    PaymentDeclinedError,
    PaymentGatewayError,
    PaymentGatewayTimeoutError,
    ShopError,
)
from candlecart.payments._types import PaymentGateway, PaymentIntent

logger = logging.getLogger(__name__)

_FINAL = (PaymentDeclinedError, NotFoundError)


# ═══════════════════════════════════════════════════════════════════════════════
# Policy
# ═══════════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True, slots=True)
class Retry:
    """Attempts for idempotent reads. Applied via flow().retry(...)."""
    times: int = 3
    delay_seconds: float = 0.1


@dataclass(frozen=True, slots=True)
class Timeout:
    """Per-call budget in seconds. Applied via flow().timeout(...)."""
    seconds: float = 10.0


# ═══════════════════════════════════════════════════════════════════════════════
# Client
# ═══════════════════════════════════════════════════════════════════════════════

class GatewayClient:
    def __init__(
        self,
        gateway: PaymentGateway,
        timeout: Timeout = Timeout(),
        retry: Retry = Retry(),
    ) -> None:
        self._gateway = gateway
        self._timeout = timeout
        self._retry = retry

    def _lift[T](self, operation: str, fn: Callable[[], Awaitable[T]]) -> LazyCoroResult[T, ShopError]:
        def on_error(e: Exception) -> ShopError:
            if isinstance(e, ShopError):
                return e
            logger.warning("payment gateway %s failed: %s", operation, e)
            return PaymentGatewayError(f"payment gateway {operation} failed: {e}")

        return L.catching_async(fn, on_error=on_error)

    async def _bounded[T](self, operation: str, chain: Any) -> Result[T, ShopError]:
        seconds = self._timeout.seconds
        try:
            result = await chain.timeout(seconds=seconds).compile()
        except TimeoutError as e:
            result = Error(e)

        match result:
            case Error(TimeoutError()):
                logger.warning("payment gateway %s timed out after %ss", operation, seconds)
                return Error(PaymentGatewayTimeoutError(operation, seconds))
            case _:
                return result

    async def create_intent(
        self, amount_cents: int, currency: str, metadata: dict[str, str]
    ) -> Result[PaymentIntent, ShopError]:
        call = self._lift(
            "create_payment_intent",
            lambda: self._gateway.create_payment_intent(amount_cents, currency, metadata),
        )
        return await self._bounded("create_payment_intent", flow(call))

    async def retrieve(self, intent_id: str) -> Result[PaymentIntent, ShopError]:
        async def answer() -> Result[PaymentIntent, ShopError]:
            try:
                return Ok(await self._gateway.retrieve_intent(intent_id))
            except _FINAL as e:
                return Error(e)

        chain = flow(self._lift("retrieve_intent", answer)).retry(
            times=self._retry.times,
            delay_seconds=self._retry.delay_seconds,
        )
        match await self._bounded("retrieve_intent", chain):
            case Ok(final):
                return final
            case Error(e):
                return Error(e)

    async def capture(self, intent_id: str) -> Result[PaymentIntent, ShopError]:
        call = self._lift("confirm_payment", lambda: self._gateway.confirm_payment(intent_id))
        return await self._bounded("confirm_payment", flow(call))


__all__ = ("Retry", "Timeout", "GatewayClient")
