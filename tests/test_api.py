import json
from collections.abc import Iterator
from decimal import Decimal

import pytest
from fastapi import Request
from fastapi.testclient import TestClient

from candlecart.api import create_app
from candlecart.api._errors import request_error, shop_error
from candlecart.config import ShopSettings
from candlecart.payments import MemoryGateway, sign
from tests.conftest import pillar, votive

GUEST = {"X-Guest-Id": "g_1"}
ADMIN = {"X-Admin-Token": "dev-admin-token"}

SHIPPING = {
    "email": "ada@example.com",
    "shippingAddress": {
        "firstName": "Ada",
        "lastName": "Lovelace",
        "street": "12 Wick Lane",
        "city": "Portland",
        "state": "OR",
        "zipCode": "97201",
    },
    "shippingOption": "standard",
}


@pytest.fixture
def gateway() -> MemoryGateway:
    return MemoryGateway()


@pytest.fixture
def client(gateway: MemoryGateway) -> Iterator[TestClient]:
    settings = ShopSettings(shipping_rates={"standard": Decimal("5.00"), "express": Decimal("12.99")})
    app = create_app(settings=settings, products=[pillar(), votive()], gateway=gateway)
    with TestClient(app) as client:
        yield client


def place_order(client: TestClient, gateway: MemoryGateway) -> tuple[str, str]:
    """Runs a guest checkout; returns the order number and payment intent id."""
    client.post(
        "/cart/items",
        json={"productId": "pillar", "quantity": 2, "customizations": {"sizeId": "md"}},
        headers=GUEST,
    )
    session_id = client.post("/checkout", headers=GUEST).json()["sessionId"]
    client.put(f"/checkout/{session_id}/shipping", json=SHIPPING, headers=GUEST)
    intent_id = client.post(
        f"/checkout/{session_id}/payment-intent", json={}, headers=GUEST
    ).json()["paymentIntentId"]
    gateway.authorize(intent_id)
    client.put(
        f"/checkout/{session_id}/payment",
        json={"method": "card", "paymentIntentId": intent_id},
        headers=GUEST,
    )
    response = client.post("/orders", json={"sessionId": session_id}, headers=GUEST)
    assert response.status_code == 201
    return response.json()["orderNumber"], intent_id


# ═══════════════════════════════════════════════════════════════════════════════
# Products
# ═══════════════════════════════════════════════════════════════════════════════

def test_customization_options(client: TestClient) -> None:
    response = client.get("/products/pillar/customization-options")

    assert response.status_code == 200
    body = response.json()
    assert body["basePrice"] == "15.99"
    assert [s["id"] for s in body["sizes"]] == ["sm", "md", "lg"]
    assert body["scents"][1]["additionalPrice"] == "1.50"
    assert body["scents"][2]["available"] is False
    assert len(body["incompatible"]) == 1


def test_unknown_product_is_404(client: TestClient) -> None:
    response = client.get("/products/nope/customization-options")

    assert response.status_code == 404
    assert response.json()["error"] == "not_found"


def test_validate_customization(client: TestClient) -> None:
    valid = client.post("/products/pillar/validate-customization", json={"scentId": "eucalyptus", "sizeId": "md"})
    assert valid.json() == {"isValid": True, "message": None, "price": "19.49"}

    clash = client.post("/products/pillar/validate-customization", json={"scentId": "eucalyptus", "colorId": "black"})
    assert clash.json()["isValid"] is False
    assert clash.json()["price"] == "15.99"


# ═══════════════════════════════════════════════════════════════════════════════
# Cart
# ═══════════════════════════════════════════════════════════════════════════════

def test_add_and_view_cart(client: TestClient) -> None:
    added = client.post(
        "/cart/items",
        json={"productId": "pillar", "quantity": 2, "customizations": {"sizeId": "md"}},
        headers=GUEST,
    )
    assert added.status_code == 201
    assert added.json()["totalPrice"] == "35.98"

    cart = client.get("/cart", headers=GUEST).json()
    assert cart["itemCount"] == 2
    assert cart["subtotal"] == "35.98"
    assert cart["amountToFreeShipping"] == "14.02"
    assert cart["items"][0]["labels"] == {"size": "Medium"}


def test_owner_header_is_required(client: TestClient) -> None:
    response = client.get("/cart")

    assert response.status_code == 400
    assert response.json()["fields"] == {"owner": "a user or guest id is required"}


def test_engine_validation_errors_carry_fields(client: TestClient) -> None:
    response = client.post("/cart/items", json={"productId": "pillar", "quantity": 0}, headers=GUEST)

    assert response.status_code == 400
    assert response.json() == {
        "error": "validation",
        "message": "quantity must be at least 1",
        "fields": {"quantity": "must be at least 1"},
    }


def test_malformed_requests_are_400(client: TestClient) -> None:
    response = client.post("/cart/items", json={"quantity": 2}, headers=GUEST)

    assert response.status_code == 400
    body = response.json()
    assert body["error"] == "validation"
    assert "productId" in body["fields"]


def test_merge_needs_a_signed_in_user(client: TestClient) -> None:
    client.post("/cart/items", json={"productId": "votive"}, headers=GUEST)

    assert client.post("/cart/merge", json={"guestId": "g_1"}, headers=GUEST).status_code == 400

    merged = client.post("/cart/merge", json={"guestId": "g_1"}, headers={"X-User-Id": "u_1"})
    assert merged.status_code == 200
    assert merged.json()["merged"] == 1
    assert client.get("/cart", headers={"X-User-Id": "u_1"}).json()["itemCount"] == 1


# ═══════════════════════════════════════════════════════════════════════════════
# Checkout
# ═══════════════════════════════════════════════════════════════════════════════

def test_checkout_over_http(client: TestClient, gateway: MemoryGateway) -> None:
    client.post(
        "/cart/items",
        json={"productId": "pillar", "quantity": 2, "customizations": {"sizeId": "md"}},
        headers=GUEST,
    )

    started = client.post("/checkout", headers=GUEST)
    assert started.status_code == 201
    session_id = started.json()["sessionId"]
    assert started.json()["step"] == "shipping"

    shipped = client.put(f"/checkout/{session_id}/shipping", json=SHIPPING, headers=GUEST).json()
    assert shipped["step"] == "payment"
    assert shipped["shippingAddress"]["zipCode"] == "97201"
    assert shipped["totals"] == {"subtotal": "35.98", "tax": "2.88", "shippingCost": "5.00", "total": "43.86"}

    intent = client.post(
        f"/checkout/{session_id}/payment-intent", json={"amount": "1.00"}, headers=GUEST
    ).json()
    assert intent["amount"] == "43.86"
    gateway.authorize(intent["paymentIntentId"])

    reviewed = client.put(
        f"/checkout/{session_id}/payment",
        json={"method": "card", "paymentIntentId": intent["paymentIntentId"]},
        headers=GUEST,
    )
    assert reviewed.json()["step"] == "review"

    placed = client.post("/orders", json={"sessionId": session_id}, headers=GUEST)
    assert placed.status_code == 201
    assert placed.json()["status"] == "processing"
    assert placed.json()["total"] == "43.86"
    assert client.get("/cart", headers=GUEST).json()["items"] == []

    again = client.post("/orders", json={"sessionId": session_id}, headers=GUEST)
    assert again.status_code == 409


def test_incomplete_shipping_names_the_fields(client: TestClient) -> None:
    client.post("/cart/items", json={"productId": "votive"}, headers=GUEST)
    session_id = client.post("/checkout", headers=GUEST).json()["sessionId"]

    response = client.put(
        f"/checkout/{session_id}/shipping",
        json={"email": "ada@example.com", "shippingAddress": {"firstName": "Ada"}},
        headers=GUEST,
    )

    assert response.status_code == 400
    assert "shipping.postal_code" in response.json()["fields"]


def test_checkout_belongs_to_its_owner(client: TestClient) -> None:
    client.post("/cart/items", json={"productId": "votive"}, headers=GUEST)
    session_id = client.post("/checkout", headers=GUEST).json()["sessionId"]

    assert client.get(f"/checkout/{session_id}", headers={"X-Guest-Id": "g_2"}).status_code == 404


# ═══════════════════════════════════════════════════════════════════════════════
# Orders
# ═══════════════════════════════════════════════════════════════════════════════

def test_track_order(client: TestClient, gateway: MemoryGateway) -> None:
    number, _ = place_order(client, gateway)

    tracked = client.get("/orders/track", params={"orderNumber": number, "email": "ada@example.com"})
    assert tracked.status_code == 200
    assert tracked.json()["shipTo"] == "Ada Lovelace"
    assert tracked.json()["destination"] == "Portland, OR, US"

    wrong = client.get("/orders/track", params={"orderNumber": number, "email": "eve@example.com"})
    assert wrong.status_code == 404


def test_admin_endpoints_need_the_token(client: TestClient, gateway: MemoryGateway) -> None:
    number, _ = place_order(client, gateway)

    denied = client.get("/admin/orders")
    assert denied.status_code == 403
    assert denied.json()["error"] == "forbidden"
    assert client.get("/admin/orders", headers={"X-Admin-Token": "guess"}).status_code == 403

    assert [o["orderNumber"] for o in client.get("/admin/orders", headers=ADMIN).json()] == [number]

    shipped = client.put(
        f"/orders/{number}/status",
        json={"status": "shipped", "trackingNumber": "1Z999"},
        headers=ADMIN,
    )
    assert shipped.status_code == 200
    assert shipped.json()["status"] == "shipped"
    assert shipped.json()["trackingNumber"] == "1Z999"

    backwards = client.put(f"/orders/{number}/status", json={"status": "processing"}, headers=ADMIN)
    assert backwards.status_code == 409
    assert backwards.json()["error"] == "invalid_transition"


# ═══════════════════════════════════════════════════════════════════════════════
# Webhooks
# ═══════════════════════════════════════════════════════════════════════════════

def test_webhook_requires_a_valid_signature(client: TestClient) -> None:
    body = json.dumps({"id": "evt_1", "type": "payment_intent.succeeded", "data": {"object": {"id": "pi_1"}}})

    unsigned = client.post("/webhooks/payments", content=body)
    assert unsigned.status_code == 400
    assert unsigned.json()["error"] == "invalid_signature"

    forged = client.post(
        "/webhooks/payments",
        content=body,
        headers={"Stripe-Signature": sign(body.encode(), "whsec_other")},
    )
    assert forged.status_code == 400


def test_webhook_events_are_processed_once(client: TestClient, gateway: MemoryGateway) -> None:
    _, intent_id = place_order(client, gateway)
    body = json.dumps({
        "id": "evt_1",
        "type": "payment_intent.succeeded",
        "data": {"object": {"id": intent_id, "amount": 4386}},
    }).encode()
    headers = {"Stripe-Signature": sign(body, "whsec_dev")}

    first = client.post("/webhooks/payments", content=body, headers=headers)
    assert first.json() == {"received": True, "outcome": "applied"}

    again = client.post("/webhooks/payments", content=body, headers=headers)
    assert again.json()["outcome"] == "duplicate"


# ═══════════════════════════════════════════════════════════════════════════════
# Error handlers
# ═══════════════════════════════════════════════════════════════════════════════

async def test_typed_handlers_answer_foreign_errors_with_500() -> None:
    request = Request({"type": "http", "method": "GET", "path": "/cart", "headers": []})

    for handler in (shop_error, request_error):
        response = await handler(request, RuntimeError("boom"))
        assert response.status_code == 500
        assert json.loads(response.body)["error"] == "internal"
