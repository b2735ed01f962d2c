"""
Composition root.

    shop = await build_shop(ShopSettings(), products=seed_products())
    api = create_app(shop)

Without a database URL every store is in memory; without gateway keys the
in-memory gateway is used.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass

from sqlalchemy.ext.asyncio import AsyncEngine

from candlecart._types import Clock, expect, utcnow
from candlecart.cart import CartService, CartStore, MemoryCartStore
from candlecart.catalog import CatalogStore, MemoryCatalog, Product
from candlecart.checkout import CheckoutMachine, SessionRegistry
from candlecart.config import ShopSettings
from candlecart.orders import (
    LoggingNotifier,
    MemoryOrderStore,
    MemoryPaymentEventStore,
    Notifications,
    Notifier,
    OrderLifecycle,
    OrderStore,
    PaymentEventStore,
)
from candlecart.payments import (
    GatewayClient,
    MemoryGateway,
    PaymentGateway,
    Retry,
    StripeGateway,
    Timeout,
)
from candlecart.pricing import PricingEngine, ShippingRates, jurisdiction_rates
from candlecart.storage import (
    SqlCartStore,
    SqlCatalog,
    SqlOrderStore,
    SqlPaymentEventStore,
    create_database,
)

logger = logging.getLogger(__name__)


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@dataclass(frozen=True, slots=True)
class Shop:
    settings: ShopSettings
    catalog: CatalogStore
    pricing: PricingEngine
    carts: CartService
    checkout: CheckoutMachine
    lifecycle: OrderLifecycle
    notifications: Notifications
    gateway: PaymentGateway
    engine: AsyncEngine | None = None

    async def close(self) -> None:
        await self.notifications.drain()
        if self.engine is not None:
            await self.engine.dispose()


def build_pricing(settings: ShopSettings) -> PricingEngine:
    return PricingEngine(
        shipping=ShippingRates(
            options=dict(settings.shipping_rates),
            free_threshold=settings.free_shipping_threshold,
        ),
        tax=jurisdiction_rates(settings.tax_rates, default=settings.tax_rate),
    )


def build_gateway(settings: ShopSettings) -> PaymentGateway:
    if settings.gateway_secret_key is None:
        logger.warning("no gateway secret key configured, using the in-memory gateway")
        return MemoryGateway()
    return StripeGateway(
        settings.gateway_secret_key,
        base_url=settings.gateway_base_url,
        timeout=settings.gateway_timeout,
    )


async def build_shop(
    settings: ShopSettings | None = None,
    *,
    products: Iterable[Product] = (),
    gateway: PaymentGateway | None = None,
    notifier: Notifier | None = None,
    clock: Clock = utcnow,
) -> Shop:
    settings = settings or ShopSettings()

    engine: AsyncEngine | None = None
    catalog: CatalogStore
    cart_store: CartStore
    orders: OrderStore
    events: PaymentEventStore
    if settings.database_url:
        session_factory, engine = await create_database(settings.database_url)
        catalog = SqlCatalog(session_factory)
        cart_store = SqlCartStore(session_factory, clock)
        orders = SqlOrderStore(session_factory, clock)
        events = SqlPaymentEventStore(session_factory)
    else:
        catalog = MemoryCatalog()
        cart_store = MemoryCartStore(clock)
        orders = MemoryOrderStore()
        events = MemoryPaymentEventStore()

    for product in products:
        expect(await catalog.put(product))

    gateway = gateway or build_gateway(settings)
    client = GatewayClient(
        gateway,
        timeout=Timeout(settings.gateway_timeout),
        retry=Retry(times=settings.gateway_retries),
    )
    pricing = build_pricing(settings)
    notifications = Notifications(notifier or LoggingNotifier())
    carts = CartService(catalog, cart_store, pricing, settings.guest_cart_ttl, clock)
    lifecycle = OrderLifecycle(orders, events, notifications, clock)
    checkout = CheckoutMachine(
        carts=carts,
        catalog=catalog,
        pricing=pricing,
        sessions=SessionRegistry(clock, settings.checkout_idle_ttl),
        orders=orders,
        lifecycle=lifecycle,
        notifications=notifications,
        gateway=client,
        currency=settings.currency,
        alternate_methods=settings.alternate_payment_methods,
        clock=clock,
    )

    logger.info("shop ready (%s storage)", "sql" if engine else "memory")
    return Shop(
        settings=settings,
        catalog=catalog,
        pricing=pricing,
        carts=carts,
        checkout=checkout,
        lifecycle=lifecycle,
        notifications=notifications,
        gateway=gateway,
        engine=engine,
    )


__all__ = ("configure_logging", "Shop", "build_pricing", "build_gateway", "build_shop")
