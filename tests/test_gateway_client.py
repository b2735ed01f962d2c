import asyncio
from typing import Any

import pytest
import requests

from candlecart import (
    NotFoundError,
    PaymentDeclinedError,
    PaymentGatewayError,
    PaymentGatewayTimeoutError,
)
from candlecart.payments import (
    GatewayClient,
    IntentStatus,
    MemoryGateway,
    PaymentIntent,
    Retry,
    StripeGateway,
    Timeout,
)
from tests.conftest import err, ok

NO_WAIT = Retry(times=3, delay_seconds=0)


class FlakyGateway:
    """Fails the first `failures` calls of every operation with `error`."""

    def __init__(self, failures: int, error: Exception) -> None:
        self.failures = failures
        self.error = error
        self.calls: dict[str, int] = {"create": 0, "retrieve": 0, "capture": 0}
        self.intent = PaymentIntent("pi_1", 4386, "usd", IntentStatus.REQUIRES_CAPTURE)

    def _hit(self, operation: str) -> PaymentIntent:
        self.calls[operation] += 1
        if self.calls[operation] <= self.failures:
            raise self.error
        return self.intent

    async def create_payment_intent(
        self, amount_cents: int, currency: str, metadata: dict[str, str]
    ) -> PaymentIntent:
        return self._hit("create")

    async def retrieve_intent(self, intent_id: str) -> PaymentIntent:
        return self._hit("retrieve")

    async def confirm_payment(self, intent_id: str) -> PaymentIntent:
        return self._hit("capture")


# ═══════════════════════════════════════════════════════════════════════════════
# GatewayClient
# ═══════════════════════════════════════════════════════════════════════════════

async def test_slow_gateway_times_out() -> None:
    client = GatewayClient(MemoryGateway(delay=0.2), Timeout(0.05), NO_WAIT)

    match err(await client.create_intent(4386, "usd", {})):
        case PaymentGatewayTimeoutError() as e:
            assert e.operation == "create_payment_intent"
            assert e.seconds == 0.05
        case other:
            raise AssertionError(other)


async def test_retrieve_is_retried() -> None:
    gateway = FlakyGateway(failures=2, error=ConnectionError("reset by peer"))
    client = GatewayClient(gateway, Timeout(1.0), NO_WAIT)

    intent = ok(await client.retrieve("pi_1"))

    assert intent.id == "pi_1"
    assert gateway.calls["retrieve"] == 3


async def test_retrieve_gives_up_after_three_attempts() -> None:
    gateway = FlakyGateway(failures=5, error=ConnectionError("reset by peer"))
    client = GatewayClient(gateway, Timeout(1.0), NO_WAIT)

    assert isinstance(err(await client.retrieve("pi_1")), PaymentGatewayError)
    assert gateway.calls["retrieve"] == 3


@pytest.mark.parametrize("error", [NotFoundError("payment intent", "pi_1"), PaymentDeclinedError("no")])
async def test_retrieve_does_not_retry_final_answers(error: Exception) -> None:
    gateway = FlakyGateway(failures=5, error=error)
    client = GatewayClient(gateway, Timeout(1.0), NO_WAIT)

    assert err(await client.retrieve("pi_1")) is error
    assert gateway.calls["retrieve"] == 1


async def test_capture_is_never_retried() -> None:
    gateway = FlakyGateway(failures=1, error=ConnectionError("reset by peer"))
    client = GatewayClient(gateway, Timeout(1.0), NO_WAIT)

    assert isinstance(err(await client.capture("pi_1")), PaymentGatewayError)
    assert gateway.calls["capture"] == 1


async def test_create_is_never_retried() -> None:
    gateway = FlakyGateway(failures=1, error=ConnectionError("reset by peer"))
    client = GatewayClient(gateway, Timeout(1.0), NO_WAIT)

    assert isinstance(err(await client.create_intent(4386, "usd", {})), PaymentGatewayError)
    assert gateway.calls["create"] == 1


async def test_capture_timeout_is_reported_once() -> None:
    class HangingCapture(FlakyGateway):
        async def confirm_payment(self, intent_id: str) -> PaymentIntent:
            self.calls["capture"] += 1
            await asyncio.sleep(1)
            return self.intent

    gateway = HangingCapture(failures=0, error=ConnectionError())
    client = GatewayClient(gateway, Timeout(0.05), NO_WAIT)

    match err(await client.capture("pi_1")):
        case PaymentGatewayTimeoutError() as e:
            assert e.operation == "confirm_payment"
        case other:
            raise AssertionError(other)
    assert gateway.calls["capture"] == 1


async def test_gateway_timeouts_from_the_transport_are_kept() -> None:
    gateway = FlakyGateway(failures=1, error=PaymentGatewayTimeoutError("retrieve_intent", 10.0))
    client = GatewayClient(gateway, Timeout(1.0), NO_WAIT)

    assert ok(await client.retrieve("pi_1")).id == "pi_1"
    assert gateway.calls["retrieve"] == 2


# ═══════════════════════════════════════════════════════════════════════════════
# MemoryGateway
# ═══════════════════════════════════════════════════════════════════════════════

async def test_memory_capture_requires_authorization() -> None:
    gateway = MemoryGateway()
    intent = await gateway.create_payment_intent(4386, "usd", {"checkout_session": "chk_1"})

    with pytest.raises(PaymentDeclinedError):
        await gateway.confirm_payment(intent.id)

    gateway.authorize(intent.id)
    captured = await gateway.confirm_payment(intent.id)
    assert captured.status == IntentStatus.SUCCEEDED
    assert (await gateway.confirm_payment(intent.id)).status == IntentStatus.SUCCEEDED


# ═══════════════════════════════════════════════════════════════════════════════
# StripeGateway
# ═══════════════════════════════════════════════════════════════════════════════

class FakeResponse:
    def __init__(self, status_code: int, payload: dict[str, Any]) -> None:
        self.status_code = status_code
        self._payload = payload
        self.text = str(payload)

    def json(self) -> dict[str, Any]:
        return self._payload


class FakeSession(requests.Session):
    def __init__(self, *responses: FakeResponse | Exception) -> None:
        super().__init__()
        self.responses = list(responses)
        self.sent: list[tuple[str, str, Any]] = []

    def request(self, method: str, url: str, **kwargs: Any) -> Any:  # type: ignore[override]
        self.sent.append((method, url, kwargs.get("data")))
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


INTENT_JSON = {
    "id": "pi_1",
    "amount": 4386,
    "currency": "usd",
    "status": "requires_capture",
    "client_secret": "pi_1_secret",
    "metadata": {"checkout_session": "chk_1"},
}


async def test_stripe_creates_manual_capture_intents() -> None:
    session = FakeSession(FakeResponse(200, INTENT_JSON))
    gateway = StripeGateway("sk_test", base_url="https://gateway.test/v1/", session=session)

    intent = await gateway.create_payment_intent(4386, "usd", {"checkout_session": "chk_1"})

    assert intent.status == IntentStatus.REQUIRES_CAPTURE
    assert intent.metadata == {"checkout_session": "chk_1"}
    method, url, data = session.sent[0]
    assert (method, url) == ("POST", "https://gateway.test/v1/payment_intents")
    assert data == {
        "amount": 4386,
        "currency": "usd",
        "capture_method": "manual",
        "metadata[checkout_session]": "chk_1",
    }


async def test_stripe_maps_error_statuses() -> None:
    gateway = StripeGateway("sk_test", session=FakeSession(
        FakeResponse(402, {"error": {"message": "insufficient funds"}}),
        FakeResponse(404, {"error": {"message": "no such intent"}}),
        FakeResponse(500, {}),
        FakeResponse(200, {"id": "pi_1"}),
        requests.Timeout("read timed out"),
    ))

    with pytest.raises(PaymentDeclinedError, match="insufficient funds"):
        await gateway.confirm_payment("pi_1")
    with pytest.raises(NotFoundError):
        await gateway.retrieve_intent("pi_missing")
    with pytest.raises(PaymentGatewayError):
        await gateway.retrieve_intent("pi_1")
    with pytest.raises(PaymentGatewayError, match="unexpected payment intent payload"):
        await gateway.retrieve_intent("pi_1")
    with pytest.raises(PaymentGatewayTimeoutError):
        await gateway.retrieve_intent("pi_1")
