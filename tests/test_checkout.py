import asyncio
from dataclasses import replace
from datetime import timedelta
from decimal import Decimal

import pytest
from kungfu import Ok, Error

from candlecart import (
    ConflictError,
    InvalidTransitionError,
    NotFoundError,
    OutOfStockError,
    PaymentDeclinedError,
    PaymentGatewayTimeoutError,
    PriceMismatchError,
    ValidationError,
)
from candlecart.cart import CartOwner, CartService
from candlecart.catalog import Combination, MemoryCatalog, Size
from candlecart.checkout import (
    IDLE_TTL,
    CheckoutMachine,
    CheckoutSession,
    CheckoutStep,
    PaymentSelection,
    SessionRegistry,
)
from candlecart.orders import (
    ORDER_NUMBER,
    MemoryOrderStore,
    Notifications,
    Order,
    OrderStatus,
    PaymentStatus,
)
from candlecart.payments import MemoryGateway, PaymentIntent
from tests.conftest import FakeClock, RecordingNotifier, address, err, ok, pillar, shipping


MEDIUM = Combination(size_id="md")


async def fill_cart(carts: CartService, owner: CartOwner) -> None:
    ok(await carts.add_item(owner, "pillar", 2, MEDIUM))


async def to_payment(checkout: CheckoutMachine, owner: CartOwner) -> CheckoutSession:
    session = ok(await checkout.start(owner))
    return ok(await checkout.submit_shipping(session.id, owner, shipping()))


async def to_review(checkout: CheckoutMachine, gateway: MemoryGateway, owner: CartOwner) -> CheckoutSession:
    session = await to_payment(checkout, owner)
    intent = ok(await checkout.create_payment_intent(session.id, owner))
    gateway.authorize(intent.id)
    return ok(await checkout.submit_payment(session.id, owner, PaymentSelection(intent_id=intent.id)))


# ═══════════════════════════════════════════════════════════════════════════════
# Steps
# ═══════════════════════════════════════════════════════════════════════════════

async def test_start_needs_items(checkout: CheckoutMachine, guest: CartOwner) -> None:
    assert isinstance(err(await checkout.start(guest)), ValidationError)


async def test_shipping_moves_to_payment_with_totals(
    checkout: CheckoutMachine, carts: CartService, guest: CartOwner
) -> None:
    await fill_cart(carts, guest)

    session = await to_payment(checkout, guest)

    assert session.step == CheckoutStep.PAYMENT
    assert session.totals is not None
    assert session.totals.rounded().total == Decimal("43.86")
    assert session.email == "ada@example.com"


async def test_shipping_reports_every_bad_field(
    checkout: CheckoutMachine, carts: CartService, guest: CartOwner
) -> None:
    await fill_cart(carts, guest)
    session = ok(await checkout.start(guest))
    details = replace(
        shipping("overnight", city="", postal_code="abc"),
        email="not-an-email",
        same_as_shipping=False,
    )

    match await checkout.submit_shipping(session.id, guest, details):
        case Error(ValidationError() as e):
            assert set(e.fields) == {
                "email",
                "shipping.city",
                "shipping.postal_code",
                "billing",
                "shipping_option",
            }
        case other:
            raise AssertionError(other)

    assert ok(await checkout.get(session.id, guest)).step == CheckoutStep.SHIPPING


async def test_separate_billing_address_is_validated(
    checkout: CheckoutMachine, carts: CartService, guest: CartOwner
) -> None:
    await fill_cart(carts, guest)
    session = ok(await checkout.start(guest))
    details = replace(shipping(), same_as_shipping=False, billing_address=address(street=""))

    match await checkout.submit_shipping(session.id, guest, details):
        case Error(ValidationError() as e):
            assert e.fields == {"billing.street": "Street address is required"}
        case other:
            raise AssertionError(other)


async def test_steps_cannot_be_skipped(
    checkout: CheckoutMachine, carts: CartService, guest: CartOwner
) -> None:
    await fill_cart(carts, guest)
    session = ok(await checkout.start(guest))

    match await checkout.submit_payment(session.id, guest, PaymentSelection(method="paypal")):
        case Error(InvalidTransitionError() as e):
            assert e.current == CheckoutStep.SHIPPING
        case other:
            raise AssertionError(other)

    assert isinstance(err(await checkout.confirm(session.id, guest)), InvalidTransitionError)


async def test_back_keeps_entered_data(
    checkout: CheckoutMachine, carts: CartService, guest: CartOwner
) -> None:
    await fill_cart(carts, guest)
    session = await to_payment(checkout, guest)

    back = ok(await checkout.back(session.id, guest))

    assert back.step == CheckoutStep.SHIPPING
    assert back.shipping_address == address()
    assert back.shipping_option == "standard"

    assert isinstance(err(await checkout.back(session.id, guest)), InvalidTransitionError)


async def test_session_belongs_to_its_owner(
    checkout: CheckoutMachine, carts: CartService, guest: CartOwner
) -> None:
    await fill_cart(carts, guest)
    session = ok(await checkout.start(guest))

    assert isinstance(err(await checkout.get(session.id, CartOwner.guest("g_other"))), NotFoundError)


async def test_abandon_leaves_cart_alone(
    checkout: CheckoutMachine, carts: CartService, guest: CartOwner
) -> None:
    await fill_cart(carts, guest)
    session = ok(await checkout.start(guest))

    assert ok(await checkout.abandon(session.id, guest)) is True
    assert isinstance(err(await checkout.get(session.id, guest)), NotFoundError)
    assert ok(await carts.find(guest)) is not None


# ═══════════════════════════════════════════════════════════════════════════════
# Payment
# ═══════════════════════════════════════════════════════════════════════════════

async def test_intent_amount_is_the_server_total(
    checkout: CheckoutMachine, carts: CartService, guest: CartOwner
) -> None:
    await fill_cart(carts, guest)
    session = await to_payment(checkout, guest)

    intent = ok(await checkout.create_payment_intent(session.id, guest, Decimal("1.00")))

    assert intent.amount_cents == 4386
    assert intent.metadata["checkout_session"] == session.id
    assert ok(await checkout.get(session.id, guest)).intent_id == intent.id


async def test_unauthorized_card_is_declined(
    checkout: CheckoutMachine, carts: CartService, guest: CartOwner
) -> None:
    await fill_cart(carts, guest)
    session = await to_payment(checkout, guest)
    intent = ok(await checkout.create_payment_intent(session.id, guest))

    assert isinstance(err(await checkout.submit_payment(session.id, guest, PaymentSelection(intent_id=intent.id))), PaymentDeclinedError)
    assert ok(await checkout.get(session.id, guest)).step == CheckoutStep.PAYMENT


async def test_unsupported_payment_method(
    checkout: CheckoutMachine, carts: CartService, guest: CartOwner
) -> None:
    await fill_cart(carts, guest)
    session = await to_payment(checkout, guest)

    match await checkout.submit_payment(session.id, guest, PaymentSelection(method="barter")):
        case Error(ValidationError() as e):
            assert "payment_method" in e.fields
        case other:
            raise AssertionError(other)


async def test_authorized_card_moves_to_review(
    checkout: CheckoutMachine, carts: CartService, gateway: MemoryGateway, guest: CartOwner
) -> None:
    await fill_cart(carts, guest)

    session = await to_review(checkout, gateway, guest)

    assert session.step == CheckoutStep.REVIEW
    assert session.authorized_cents == 4386
    assert session.payment_method == "card"


# ═══════════════════════════════════════════════════════════════════════════════
# Confirmation
# ═══════════════════════════════════════════════════════════════════════════════

async def test_confirm_places_the_order(
    checkout: CheckoutMachine,
    carts: CartService,
    catalog: MemoryCatalog,
    gateway: MemoryGateway,
    notifications: Notifications,
    notifier: RecordingNotifier,
    guest: CartOwner,
) -> None:
    await fill_cart(carts, guest)
    session = await to_review(checkout, gateway, guest)

    order = ok(await checkout.confirm(session.id, guest))

    assert ORDER_NUMBER.match(order.number)
    assert order.status == OrderStatus.PROCESSING
    assert order.payment.status == PaymentStatus.COMPLETED
    assert order.payment.transaction_id == session.intent_id
    assert (order.subtotal, order.tax, order.shipping_cost, order.total) == (
        Decimal("35.98"), Decimal("2.88"), Decimal("5.00"), Decimal("43.86"),
    )
    assert order.items[0].labels == {"size": "Medium"}
    assert order.items[0].image == "pillar.jpg"
    assert order.user_id is None

    assert ok(await carts.find(guest)).is_empty
    assert ok(await catalog.get("pillar")).inventory.quantity == 8

    assert isinstance(err(await checkout.get(session.id, guest)), NotFoundError)

    await notifications.drain()
    assert [o.number for o in notifier.confirmations] == [order.number]


async def test_confirm_twice_places_one_order(
    checkout: CheckoutMachine,
    carts: CartService,
    gateway: MemoryGateway,
    orders: MemoryOrderStore,
    guest: CartOwner,
) -> None:
    await fill_cart(carts, guest)
    session = await to_review(checkout, gateway, guest)

    results = await asyncio.gather(
        checkout.confirm(session.id, guest),
        checkout.confirm(session.id, guest),
    )

    placed = [r for r in results if isinstance(r, Ok)]
    refused = [err(r) for r in results if isinstance(r, Error)]
    assert len(placed) == 1
    assert len(refused) == 1
    assert isinstance(refused[0], ConflictError)
    assert len(ok(await orders.list_orders())) == 1
    assert gateway.calls["capture"] == 1


async def test_confirm_after_success_conflicts(
    checkout: CheckoutMachine, carts: CartService, gateway: MemoryGateway, guest: CartOwner
) -> None:
    await fill_cart(carts, guest)
    session = await to_review(checkout, gateway, guest)
    ok(await checkout.confirm(session.id, guest))

    assert isinstance(err(await checkout.confirm(session.id, guest)), ConflictError)


async def test_stale_price_is_refused(
    checkout: CheckoutMachine,
    carts: CartService,
    catalog: MemoryCatalog,
    gateway: MemoryGateway,
    orders: MemoryOrderStore,
    guest: CartOwner,
) -> None:
    await fill_cart(carts, guest)
    session = await to_review(checkout, gateway, guest)
    await catalog.put(replace(pillar(), base_price=Decimal("16.99")))

    match await checkout.confirm(session.id, guest):
        case Error(PriceMismatchError() as e):
            assert e.authorized == Decimal("43.86")
        case other:
            raise AssertionError(other)

    assert ok(await orders.list_orders()) == []
    assert ok(await checkout.get(session.id, guest)).step == CheckoutStep.REVIEW
    assert ok(await catalog.get("pillar")).inventory.quantity == 10
    assert gateway.calls["capture"] == 0


async def test_cart_edit_after_authorization_is_refused(
    checkout: CheckoutMachine, carts: CartService, gateway: MemoryGateway, guest: CartOwner
) -> None:
    await fill_cart(carts, guest)
    session = await to_review(checkout, gateway, guest)
    await carts.add_item(guest, "votive", 1, Combination())

    assert isinstance(err(await checkout.confirm(session.id, guest)), PriceMismatchError)


async def test_stock_gone_at_confirm(
    checkout: CheckoutMachine,
    carts: CartService,
    catalog: MemoryCatalog,
    gateway: MemoryGateway,
    guest: CartOwner,
) -> None:
    await fill_cart(carts, guest)
    session = await to_review(checkout, gateway, guest)
    await catalog.put(pillar().with_stock(1))

    assert isinstance(err(await checkout.confirm(session.id, guest)), OutOfStockError)
    assert ok(await carts.find(guest)).item_count == 2


async def test_declined_capture_restocks_and_allows_retry(
    checkout: CheckoutMachine,
    carts: CartService,
    catalog: MemoryCatalog,
    gateway: MemoryGateway,
    orders: MemoryOrderStore,
    guest: CartOwner,
) -> None:
    await fill_cart(carts, guest)
    session = await to_review(checkout, gateway, guest)
    assert session.intent_id is not None
    gateway.decline_capture(session.intent_id)

    assert isinstance(err(await checkout.confirm(session.id, guest)), PaymentDeclinedError)
    assert ok(await catalog.get("pillar")).inventory.quantity == 10
    assert ok(await orders.list_orders()) == []

    cart = ok(await carts.find(guest))
    assert cart is not None
    key = f"{cart.id}:{session.authorized_revision}"
    assert ok(await orders.claim_placement(key)) is True


async def test_alternate_method_creates_pending_order(
    checkout: CheckoutMachine, carts: CartService, gateway: MemoryGateway, user: CartOwner
) -> None:
    await fill_cart(carts, user)
    session = await to_payment(checkout, user)
    ok(await checkout.submit_payment(session.id, user, PaymentSelection(method="paypal")))

    order = ok(await checkout.confirm(session.id, user))

    assert order.status == OrderStatus.PENDING
    assert order.payment.method == "paypal"
    assert order.payment.status == PaymentStatus.PENDING
    assert order.payment.transaction_id is None
    assert order.user_id == "u_1"
    assert gateway.calls["capture"] == 0


async def test_alternate_method_authorizes_the_repriced_cart(
    checkout: CheckoutMachine, carts: CartService, catalog: MemoryCatalog, guest: CartOwner
) -> None:
    await fill_cart(carts, guest)
    session = await to_payment(checkout, guest)
    await catalog.put(replace(pillar(), base_price=Decimal("16.99")))

    ok(await checkout.submit_payment(session.id, guest, PaymentSelection(method="paypal")))
    order = ok(await checkout.confirm(session.id, guest))

    assert order.subtotal == Decimal("37.98")


async def test_second_session_after_checkout_conflicts(
    checkout: CheckoutMachine, carts: CartService, gateway: MemoryGateway, guest: CartOwner
) -> None:
    await fill_cart(carts, guest)
    first = await to_review(checkout, gateway, guest)
    second = await to_review(checkout, gateway, guest)
    ok(await checkout.confirm(first.id, guest))

    assert isinstance(err(await checkout.confirm(second.id, guest)), ConflictError)
    assert gateway.calls["capture"] == 1


async def test_placed_order_ignores_later_catalog_changes(
    checkout: CheckoutMachine,
    carts: CartService,
    catalog: MemoryCatalog,
    gateway: MemoryGateway,
    orders: MemoryOrderStore,
    guest: CartOwner,
) -> None:
    await fill_cart(carts, guest)
    session = await to_review(checkout, gateway, guest)
    order = ok(await checkout.confirm(session.id, guest))

    await catalog.put(replace(
        pillar(),
        name="Grand Pillar",
        base_price=Decimal("29.99"),
        sizes=(Size("md", "Medium Tall", Decimal("7.00")),),
    ))

    stored = ok(await orders.get(order.number))
    assert stored == order
    assert stored.items[0].product_name == "Pillar Candle"
    assert stored.items[0].unit_price == Decimal("17.99")
    assert stored.items[0].labels == {"size": "Medium"}


async def test_capture_timeout_restocks_and_keeps_review(
    checkout: CheckoutMachine,
    carts: CartService,
    catalog: MemoryCatalog,
    gateway: MemoryGateway,
    orders: MemoryOrderStore,
    guest: CartOwner,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    await fill_cart(carts, guest)
    session = await to_review(checkout, gateway, guest)

    async def hang(intent_id: str) -> PaymentIntent:
        await asyncio.sleep(5)
        raise AssertionError("capture should have timed out")

    monkeypatch.setattr(gateway, "confirm_payment", hang)

    match await checkout.confirm(session.id, guest):
        case Error(PaymentGatewayTimeoutError() as e):
            assert e.operation == "confirm_payment"
        case other:
            raise AssertionError(other)

    assert ok(await checkout.get(session.id, guest)).step == CheckoutStep.REVIEW
    assert ok(await catalog.get("pillar")).inventory.quantity == 10
    assert ok(await orders.list_orders()) == []
    assert ok(await carts.find(guest)).item_count == 2


async def test_unexpected_failure_releases_the_placement(
    checkout: CheckoutMachine,
    carts: CartService,
    gateway: MemoryGateway,
    guest: CartOwner,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    await fill_cart(carts, guest)
    session = await to_review(checkout, gateway, guest)

    async def broken(*args: object) -> Order:
        raise RuntimeError("disk full")

    with monkeypatch.context() as patch:
        patch.setattr(checkout, "_place", broken)
        with pytest.raises(RuntimeError):
            await checkout.confirm(session.id, guest)

    assert ok(await checkout.confirm(session.id, guest)).status == OrderStatus.PROCESSING


# ═══════════════════════════════════════════════════════════════════════════════
# Session registry
# ═══════════════════════════════════════════════════════════════════════════════

async def test_idle_sessions_are_dropped(clock: FakeClock, guest: CartOwner) -> None:
    registry = SessionRegistry(clock)
    idle = await registry.open(guest)
    clock.advance(IDLE_TTL / 2)
    busy = await registry.open(guest)

    clock.advance(IDLE_TTL / 2 + timedelta(seconds=1))

    assert isinstance(err(await registry.get(idle.id, guest)), NotFoundError)
    assert ok(await registry.get(busy.id, guest)) == busy
    assert len(registry) == 1


async def test_closed_session_remembers_its_order(clock: FakeClock, guest: CartOwner) -> None:
    registry = SessionRegistry(clock)
    session = await registry.open(guest)

    await registry.close(session, "ORD-261019-0001")

    assert isinstance(err(await registry.get(session.id, guest)), NotFoundError)
    assert await registry.closed_order(session.id, guest) == "ORD-261019-0001"
    assert await registry.closed_order(session.id, CartOwner.guest("g_other")) is None

    clock.advance(IDLE_TTL + timedelta(seconds=1))
    assert await registry.closed_order(session.id, guest) is None
