"""
SQLAlchemy adapters for every store protocol.

    session_factory, engine = await create_database("sqlite+aiosqlite:///shop.db")
    catalog = SqlCatalog(session_factory)
    carts = SqlCartStore(session_factory)
"""

from candlecart.storage._tables import (
    Base,
    ProductTable,
    CartTable,
    CartItemTable,
    OrderTable,
    PlacementGuardTable,
    PaymentEventTable,
    create_database,
)
from candlecart.storage._catalog import SqlCatalog
from candlecart.storage._carts import SqlCartStore
from candlecart.storage._orders import SqlOrderStore, SqlPaymentEventStore

__all__ = (
    "Base",
    "ProductTable",
    "CartTable",
    "CartItemTable",
    "OrderTable",
    "PlacementGuardTable",
    "PaymentEventTable",
    "create_database",
    "SqlCatalog",
    "SqlCartStore",
    "SqlOrderStore",
    "SqlPaymentEventStore",
)
