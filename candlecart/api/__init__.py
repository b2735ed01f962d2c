"""
FastAPI application.

    app = create_app(await build_shop(settings))   # embedding
    app = create_app(settings=settings)            # shop built on startup
    # uvicorn candlecart.api:serve --factory
"""

from collections.abc import AsyncIterator, Iterable
from contextlib import asynccontextmanager

from fastapi import FastAPI

from candlecart.api._errors import install as install_error_handlers
from candlecart.api._routes import router
from candlecart.app import Shop, build_shop, configure_logging
from candlecart.catalog import Product
from candlecart.config import ShopSettings
from candlecart.orders import Notifier
from candlecart.payments import PaymentGateway


def create_app(
    shop: Shop | None = None,
    settings: ShopSettings | None = None,
    *,
    products: Iterable[Product] = (),
    gateway: PaymentGateway | None = None,
    notifier: Notifier | None = None,
) -> FastAPI:
    """
    With no `shop`, one is built when the app starts, inside the server's
    event loop; the keyword arguments are handed to `build_shop`.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        if shop is None:
            app.state.shop = await build_shop(
                settings, products=products, gateway=gateway, notifier=notifier
            )
        try:
            yield
        finally:
            await app.state.shop.close()

    app = FastAPI(title="candlecart", lifespan=lifespan)
    if shop is not None:
        app.state.shop = shop
    install_error_handlers(app)
    app.include_router(router)
    return app


def serve() -> FastAPI:
    settings = ShopSettings()
    configure_logging(settings.log_level)
    return create_app(settings=settings)


__all__ = ("create_app", "serve")
