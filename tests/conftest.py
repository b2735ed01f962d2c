from dataclasses import replace
from datetime import UTC, datetime, timedelta
from decimal import Decimal

import pytest
from kungfu import Ok, Error, Result

from candlecart.address import Address
from candlecart.cart import CartOwner, CartService, MemoryCartStore
from candlecart.catalog import (
    Color,
    Compatibility,
    Inventory,
    MemoryCatalog,
    OptionKind,
    Product,
    Scent,
    Size,
)
from candlecart.checkout import CheckoutMachine, SessionRegistry, ShippingDetails
from candlecart.orders import (
    MemoryOrderStore,
    MemoryPaymentEventStore,
    Notifications,
    Order,
    OrderItem,
    OrderLifecycle,
    OrderStatus,
    PaymentDetails,
    PaymentStatus,
)
from candlecart.payments import GatewayClient, MemoryGateway, PaymentEvent, Retry, Timeout
from candlecart.pricing import PricingEngine, ShippingRates, flat_rate


# ═══════════════════════════════════════════════════════════════════════════════
# Test doubles
# ═══════════════════════════════════════════════════════════════════════════════

class FakeClock:
    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, delta: timedelta) -> None:
        self.now += delta


class RecordingNotifier:
    def __init__(self) -> None:
        self.confirmations: list[Order] = []
        self.status_updates: list[Order] = []
        self.failures: list[tuple[Order, str | None]] = []

    async def send_order_confirmation(self, order: Order) -> None:
        self.confirmations.append(order)

    async def send_status_update(self, order: Order) -> None:
        self.status_updates.append(order)

    async def send_payment_failed(self, order: Order, reason: str | None) -> None:
        self.failures.append((order, reason))


# ═══════════════════════════════════════════════════════════════════════════════
# Results
# ═══════════════════════════════════════════════════════════════════════════════

def ok[T](result: Result[T, Exception]) -> T:
    match result:
        case Ok(value):
            return value
        case Error(e):
            raise AssertionError(f"expected Ok, got Error({e!r})")


def err[E](result: Result[object, E]) -> E:
    match result:
        case Error(e):
            return e
        case Ok(value):
            raise AssertionError(f"expected Error, got Ok({value!r})")


# ═══════════════════════════════════════════════════════════════════════════════
# Catalog
# ═══════════════════════════════════════════════════════════════════════════════

def pillar() -> Product:
    return Product(
        id="pillar",
        name="Pillar Candle",
        base_price=Decimal("15.99"),
        scents=(
            Scent("lavender", "Lavender", intensity="medium", notes=("floral",)),
            Scent("eucalyptus", "Eucalyptus", Decimal("1.50")),
            Scent("sandalwood", "Sandalwood", Decimal("2.50"), available=False),
        ),
        colors=(
            Color("ivory", "Ivory", hex_code="#FFFFF0"),
            Color("black", "Black", Decimal("0.50"), hex_code="#000000"),
        ),
        sizes=(
            Size("sm", "Small", burn_time="25h"),
            Size("md", "Medium", Decimal("2.00"), burn_time="40h"),
            Size("lg", "Large", Decimal("5.00"), burn_time="60h"),
        ),
        inventory=Inventory(quantity=10),
        compatibility=Compatibility.disallow(
            ((OptionKind.SCENT, "eucalyptus"), (OptionKind.COLOR, "black")),
        ),
        images=("pillar.jpg",),
    )


def votive() -> Product:
    return Product(
        id="votive",
        name="Votive",
        base_price=Decimal("4.50"),
        scents=(Scent("vanilla", "Vanilla"),),
        inventory=Inventory(quantity=3),
    )


def address(**overrides: str) -> Address:
    fields = {
        "first_name": "Ada",
        "last_name": "Lovelace",
        "street": "12 Wick Lane",
        "city": "Portland",
        "state": "OR",
        "postal_code": "97201",
        "country": "US",
    }
    return Address(**(fields | overrides))


def shipping(option: str = "standard", **overrides: str) -> ShippingDetails:
    return ShippingDetails(
        email="ada@example.com",
        shipping_address=address(**overrides),
        shipping_option=option,
    )


# ═══════════════════════════════════════════════════════════════════════════════
# Orders
# ═══════════════════════════════════════════════════════════════════════════════

CREATED = datetime(2026, 10, 19, 9, 30, tzinfo=UTC)


def make_order(
    number: str = "ORD-261019-0001",
    status: OrderStatus = OrderStatus.PROCESSING,
    payment: PaymentDetails = PaymentDetails("card", "pi_1", PaymentStatus.COMPLETED),
    **changes: object,
) -> Order:
    order = Order(
        number=number,
        user_id="u_1",
        email="ada@example.com",
        items=(
            OrderItem("pillar", "Pillar Candle", 2, Decimal("17.99"), (("size", "Medium"),), "pillar.jpg"),
        ),
        shipping_address=address(),
        billing_address=address(),
        shipping_option="standard",
        payment=payment,
        subtotal=Decimal("35.98"),
        tax=Decimal("2.88"),
        shipping_cost=Decimal("5.00"),
        total=Decimal("43.86"),
        status=status,
        created_at=CREATED,
        updated_at=CREATED,
    )
    return replace(order, **changes)


def event(
    type: str,
    intent_id: str = "pi_1",
    id: str = "evt_1",
    received_at: datetime = CREATED,
    **changes: object,
) -> PaymentEvent:
    return PaymentEvent(id=id, type=type, intent_id=intent_id, received_at=received_at, **changes)


# ═══════════════════════════════════════════════════════════════════════════════
# Fixtures
# ═══════════════════════════════════════════════════════════════════════════════

@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(datetime(2026, 10, 19, 12, 0, tzinfo=UTC))


@pytest.fixture
def catalog() -> MemoryCatalog:
    return MemoryCatalog([pillar(), votive()])


@pytest.fixture
def pricing() -> PricingEngine:
    return PricingEngine(
        shipping=ShippingRates(
            {"standard": Decimal("5.00"), "express": Decimal("12.99")},
            free_threshold=Decimal("50"),
        ),
        tax=flat_rate(Decimal("0.08")),
    )


@pytest.fixture
def cart_store(clock: FakeClock) -> MemoryCartStore:
    return MemoryCartStore(clock)


@pytest.fixture
def carts(
    catalog: MemoryCatalog,
    cart_store: MemoryCartStore,
    pricing: PricingEngine,
    clock: FakeClock,
) -> CartService:
    return CartService(catalog, cart_store, pricing, timedelta(days=7), clock)


@pytest.fixture
def gateway() -> MemoryGateway:
    return MemoryGateway()


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def notifications(notifier: RecordingNotifier) -> Notifications:
    return Notifications(notifier)


@pytest.fixture
def orders() -> MemoryOrderStore:
    return MemoryOrderStore()


@pytest.fixture
def events() -> MemoryPaymentEventStore:
    return MemoryPaymentEventStore()


@pytest.fixture
def lifecycle(
    orders: MemoryOrderStore,
    events: MemoryPaymentEventStore,
    notifications: Notifications,
    clock: FakeClock,
) -> OrderLifecycle:
    return OrderLifecycle(orders, events, notifications, clock)


@pytest.fixture
def checkout(
    carts: CartService,
    catalog: MemoryCatalog,
    pricing: PricingEngine,
    orders: MemoryOrderStore,
    lifecycle: OrderLifecycle,
    notifications: Notifications,
    gateway: MemoryGateway,
    clock: FakeClock,
) -> CheckoutMachine:
    return CheckoutMachine(
        carts=carts,
        catalog=catalog,
        pricing=pricing,
        sessions=SessionRegistry(clock),
        orders=orders,
        lifecycle=lifecycle,
        notifications=notifications,
        gateway=GatewayClient(gateway, Timeout(0.2), Retry(times=2, delay_seconds=0)),
        clock=clock,
    )


@pytest.fixture
def guest() -> CartOwner:
    return CartOwner.guest("g_1")


@pytest.fixture
def user() -> CartOwner:
    return CartOwner.user("u_1")
