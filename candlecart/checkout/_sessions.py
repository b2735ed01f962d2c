"""
Checkout session registry: process-lifetime, in memory.

Sessions are looked up by id *and* owner; someone else's session id
behaves like an unknown one. A session left idle past `idle_ttl` is
dropped. A confirmed session is closed: it disappears, and only the
order number it produced is remembered (for the same idle window) so a
repeated confirmation can be told apart from an unknown session.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta

from kungfu import Result, Ok, Error

from candlecart._errors import NotFoundError, ShopError
from candlecart._types import Clock, utcnow
from candlecart.cart import CartOwner
from candlecart.checkout._types import CheckoutSession, CheckoutStep

logger = logging.getLogger(__name__)

IDLE_TTL = timedelta(hours=1)


@dataclass(frozen=True, slots=True)
class _Closed:
    owner: CartOwner
    order_number: str
    at: datetime


class SessionRegistry:
    def __init__(self, clock: Clock = utcnow, idle_ttl: timedelta = IDLE_TTL) -> None:
        self._sessions: dict[str, CheckoutSession] = {}
        self._closed: dict[str, _Closed] = {}
        self._lock = asyncio.Lock()
        self._clock = clock
        self._idle_ttl = idle_ttl

    def __len__(self) -> int:
        return len(self._sessions)

    def _purge(self, now: datetime) -> None:
        cutoff = now - self._idle_ttl
        idle = [sid for sid, s in self._sessions.items() if s.updated_at < cutoff]
        for sid in idle:
            del self._sessions[sid]
        for sid in [sid for sid, c in self._closed.items() if c.at < cutoff]:
            del self._closed[sid]
        if idle:
            logger.debug("dropped %d idle checkout sessions", len(idle))

    async def open(self, owner: CartOwner) -> CheckoutSession:
        now = self._clock()
        session = CheckoutSession(
            id=f"chk_{uuid.uuid4().hex[:16]}",
            owner=owner,
            step=CheckoutStep.SHIPPING,
            created_at=now,
            updated_at=now,
        )
        async with self._lock:
            self._purge(now)
            self._sessions[session.id] = session
        return session

    async def get(self, session_id: str, owner: CartOwner) -> Result[CheckoutSession, ShopError]:
        async with self._lock:
            self._purge(self._clock())
            session = self._sessions.get(session_id)
        if session is None or session.owner != owner:
            return Error(NotFoundError("checkout session", session_id))
        return Ok(session)

    async def save(self, session: CheckoutSession) -> CheckoutSession:
        async with self._lock:
            self._sessions[session.id] = session
        return session

    async def discard(self, session_id: str) -> bool:
        async with self._lock:
            return self._sessions.pop(session_id, None) is not None

    async def close(self, session: CheckoutSession, order_number: str) -> None:
        """Drop a confirmed session, remembering which order it placed."""
        async with self._lock:
            self._sessions.pop(session.id, None)
            self._closed[session.id] = _Closed(session.owner, order_number, self._clock())

    async def closed_order(self, session_id: str, owner: CartOwner) -> str | None:
        async with self._lock:
            self._purge(self._clock())
            closed = self._closed.get(session_id)
        if closed is None or closed.owner != owner:
            return None
        return closed.order_number


__all__ = ("IDLE_TTL", "SessionRegistry")
