import json

from kungfu import Error

from candlecart import InvalidSignatureError, ValidationError
from candlecart.payments import EventType, construct_event, sign, verify_signature
from tests.conftest import err, ok

SECRET = "whsec_test"
NOW = 1_792_000_000

BODY = json.dumps({
    "id": "evt_1",
    "type": "payment_intent.payment_failed",
    "data": {"object": {
        "id": "pi_1",
        "amount": 4386,
        "last_payment_error": {"message": "card expired"},
    }},
}).encode()


def test_signed_payload_is_accepted() -> None:
    header = sign(BODY, SECRET, timestamp=NOW)

    event = ok(construct_event(BODY, header, SECRET, now=NOW + 10))

    assert event.id == "evt_1"
    assert event.type == EventType.PAYMENT_FAILED
    assert event.intent_id == "pi_1"
    assert event.amount_cents == 4386
    assert event.failure_message == "card expired"


def test_tampered_payload_is_rejected() -> None:
    header = sign(BODY, SECRET, timestamp=NOW)

    match verify_signature(BODY.replace(b"4386", b"1"), header, SECRET, now=NOW):
        case Error(InvalidSignatureError() as e):
            assert "does not match" in e.message
        case other:
            raise AssertionError(other)


def test_wrong_secret_is_rejected() -> None:
    header = sign(BODY, "whsec_other", timestamp=NOW)

    assert isinstance(err(verify_signature(BODY, header, SECRET, now=NOW)), InvalidSignatureError)


def test_stale_timestamp_is_rejected() -> None:
    header = sign(BODY, SECRET, timestamp=NOW)

    match verify_signature(BODY, header, SECRET, tolerance=300, now=NOW + 301):
        case Error(InvalidSignatureError() as e):
            assert "tolerance" in e.message
        case other:
            raise AssertionError(other)


def test_missing_and_malformed_headers() -> None:
    assert isinstance(err(verify_signature(BODY, None, SECRET, now=NOW)), InvalidSignatureError)
    assert isinstance(err(verify_signature(BODY, "v1=abc", SECRET, now=NOW)), InvalidSignatureError)
    assert isinstance(err(verify_signature(BODY, f"t={NOW}", SECRET, now=NOW)), InvalidSignatureError)


def test_any_matching_signature_is_enough() -> None:
    good = sign(BODY, SECRET, timestamp=NOW).split(",")[1]

    assert ok(verify_signature(BODY, f"t={NOW},v1=deadbeef,{good}", SECRET, now=NOW)) is None


def test_signed_garbage_is_a_validation_error() -> None:
    body = b'{"id": "evt_1"}'

    result = construct_event(body, sign(body, SECRET, timestamp=NOW), SECRET, now=NOW)

    assert isinstance(err(result), ValidationError)
