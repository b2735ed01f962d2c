"""
Stripe-compatible REST gateway.

`requests` is blocking, so each call runs in a worker thread. Intents are
created with manual capture: the shopper's confirmation only authorizes,
`confirm_payment` takes the money.
"""

from __future__ import annotations

import asyncio
from typing import Any

import requests

from candlecart._errors import (
    NotFoundError,
    PaymentDeclinedError,
    PaymentGatewayError,
    PaymentGatewayTimeoutError,
)
from candlecart.payments._types import IntentStatus, PaymentIntent


def _to_intent(data: dict[str, Any]) -> PaymentIntent:
    try:
        return PaymentIntent(
            id=data["id"],
            amount_cents=int(data["amount"]),
            currency=data["currency"],
            status=IntentStatus(data["status"]),
            client_secret=data.get("client_secret"),
            metadata=dict(data.get("metadata") or {}),
        )
    except (KeyError, ValueError, TypeError) as e:
        raise PaymentGatewayError(f"unexpected payment intent payload: {e}") from e


class StripeGateway:
    def __init__(
        self,
        secret_key: str,
        base_url: str = "https://api.stripe.com/v1",
        timeout: float = 10.0,
        session: requests.Session | None = None,
    ) -> None:
        self._secret_key = secret_key
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._session = session or requests.Session()

    def _request(self, method: str, path: str, data: dict[str, Any] | None = None) -> PaymentIntent:
        try:
            resp = self._session.request(
                method,
                f"{self._base_url}{path}",
                auth=(self._secret_key, ""),
                data=data,
                timeout=self._timeout,
            )
        except requests.Timeout as e:
            raise PaymentGatewayTimeoutError(f"{method} {path}", self._timeout) from e
        if resp.status_code == 402:
            error = resp.json().get("error", {})
            raise PaymentDeclinedError(error.get("message") or "payment was declined")
        if resp.status_code == 404:
            raise NotFoundError("payment intent", path.removeprefix("/payment_intents/").split("/")[0])
        if resp.status_code >= 300:
            raise PaymentGatewayError(f"gateway returned {resp.status_code}: {resp.text[:200]}")
        return _to_intent(resp.json())

    async def create_payment_intent(
        self, amount_cents: int, currency: str, metadata: dict[str, str]
    ) -> PaymentIntent:
        data: dict[str, Any] = {
            "amount": amount_cents,
            "currency": currency,
            "capture_method": "manual",
        }
        for key, value in metadata.items():
            data[f"metadata[{key}]"] = value
        return await asyncio.to_thread(self._request, "POST", "/payment_intents", data)

    async def retrieve_intent(self, intent_id: str) -> PaymentIntent:
        return await asyncio.to_thread(self._request, "GET", f"/payment_intents/{intent_id}")

    async def confirm_payment(self, intent_id: str) -> PaymentIntent:
        return await asyncio.to_thread(self._request, "POST", f"/payment_intents/{intent_id}/capture")


__all__ = ("StripeGateway",)
