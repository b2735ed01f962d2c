"""
JSON documents for the parts of a row that are never queried.
"""

from __future__ import annotations

from dataclasses import asdict
from decimal import Decimal
from typing import Any

from candlecart.address import Address
from candlecart.catalog import (
    Color,
    Compatibility,
    Inventory,
    OptionKind,
    Product,
    Scent,
    Size,
)
from candlecart.orders import Order, OrderItem, OrderStatus, PaymentDetails, PaymentStatus
from candlecart.storage._tables import OrderTable, ProductTable, from_db, to_db


# ═══════════════════════════════════════════════════════════════════════════════
# Products
# ═══════════════════════════════════════════════════════════════════════════════

def _option(option: Scent | Color | Size) -> dict[str, Any]:
    data = asdict(option)
    data["additional_price"] = str(option.additional_price)
    return data


def product_row(product: Product) -> dict[str, Any]:
    return {
        "id": product.id,
        "name": product.name,
        "base_price": str(product.base_price),
        "stock": product.inventory.quantity,
        "low_stock_threshold": product.inventory.low_stock_threshold,
        "document": {
            "category": product.category,
            "description": product.description,
            "images": list(product.images),
            "scents": [_option(o) for o in product.scents],
            "colors": [_option(o) for o in product.colors],
            "sizes": [_option(o) for o in product.sizes],
            "disallowed": [
                sorted([kind, option_id] for kind, option_id in pair)
                for pair in product.compatibility.disallowed
            ],
        },
    }


def product_from_row(row: ProductTable) -> Product:
    doc = row.document

    def priced(data: dict[str, Any]) -> dict[str, Any]:
        return {**data, "additional_price": Decimal(data["additional_price"])}

    return Product(
        id=row.id,
        name=row.name,
        base_price=Decimal(row.base_price),
        category=doc.get("category", "candle"),
        scents=tuple(Scent(**{**priced(o), "notes": tuple(o.get("notes", ()))}) for o in doc.get("scents", [])),
        colors=tuple(Color(**priced(o)) for o in doc.get("colors", [])),
        sizes=tuple(Size(**priced(o)) for o in doc.get("sizes", [])),
        inventory=Inventory(row.stock, row.low_stock_threshold),
        compatibility=Compatibility(frozenset(
            frozenset((OptionKind(kind), option_id) for kind, option_id in pair)
            for pair in doc.get("disallowed", [])
        )),
        description=doc.get("description", ""),
        images=tuple(doc.get("images", ())),
    )


# ═══════════════════════════════════════════════════════════════════════════════
# Orders
# ═══════════════════════════════════════════════════════════════════════════════

def _item(item: OrderItem) -> dict[str, Any]:
    return {
        "product_id": item.product_id,
        "product_name": item.product_name,
        "quantity": item.quantity,
        "unit_price": str(item.unit_price),
        "customizations": [list(pair) for pair in item.customizations],
        "image": item.image,
    }


def _item_from(data: dict[str, Any]) -> OrderItem:
    return OrderItem(
        product_id=data["product_id"],
        product_name=data["product_name"],
        quantity=data["quantity"],
        unit_price=Decimal(data["unit_price"]),
        customizations=tuple((k, v) for k, v in data.get("customizations", [])),
        image=data.get("image"),
    )


def order_row(order: Order) -> dict[str, Any]:
    return {
        "number": order.number,
        "placement_key": order.placement_key,
        "user_id": order.user_id,
        "email": order.email,
        "status": order.status.value,
        "payment_status": order.payment.status.value,
        "transaction_id": order.payment.transaction_id,
        "tracking_number": order.tracking_number,
        "created_at": to_db(order.created_at),
        "updated_at": to_db(order.updated_at),
        "document": {
            "items": [_item(i) for i in order.items],
            "shipping_address": asdict(order.shipping_address),
            "billing_address": asdict(order.billing_address),
            "shipping_option": order.shipping_option,
            "payment_method": order.payment.method,
            "subtotal": str(order.subtotal),
            "tax": str(order.tax),
            "shipping_cost": str(order.shipping_cost),
            "total": str(order.total),
        },
    }


def order_from_row(row: OrderTable) -> Order:
    doc = row.document
    return Order(
        number=row.number,
        user_id=row.user_id,
        email=row.email,
        items=tuple(_item_from(i) for i in doc["items"]),
        shipping_address=Address(**doc["shipping_address"]),
        billing_address=Address(**doc["billing_address"]),
        shipping_option=doc["shipping_option"],
        payment=PaymentDetails(
            method=doc["payment_method"],
            transaction_id=row.transaction_id,
            status=PaymentStatus(row.payment_status),
        ),
        subtotal=Decimal(doc["subtotal"]),
        tax=Decimal(doc["tax"]),
        shipping_cost=Decimal(doc["shipping_cost"]),
        total=Decimal(doc["total"]),
        status=OrderStatus(row.status),
        created_at=from_db(row.created_at),
        updated_at=from_db(row.updated_at),
        tracking_number=row.tracking_number,
        placement_key=row.placement_key,
    )


__all__ = ("product_row", "product_from_row", "order_row", "order_from_row")
