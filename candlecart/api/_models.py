"""
Wire models.

Requests expose `to_domain()`, responses `from_domain()`. Field names are
camelCase on the wire; money goes out as decimal strings.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from candlecart.address import Address
from candlecart.cart import Cart, CartItem, CartLine, CartView, MergeResult
from candlecart.catalog import Combination, CustomizationOption, OptionKind, Product, Validation
from candlecart.checkout import CheckoutSession, PaymentSelection, ShippingDetails
from candlecart.orders import Order, OrderItem, OrderStatus, TrackingView
from candlecart.pricing import Totals


class WireModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ═══════════════════════════════════════════════════════════════════════════════
# Catalog
# ═══════════════════════════════════════════════════════════════════════════════

class OptionOut(WireModel):
    id: str
    name: str
    additional_price: Decimal
    available: bool
    intensity: str | None = None
    notes: list[str] = []
    hex_code: str | None = None
    dimensions: str | None = None
    weight: str | None = None
    burn_time: str | None = None

    @classmethod
    def from_domain(cls, option: CustomizationOption) -> OptionOut:
        extras = {
            name: getattr(option, name)
            for name in ("intensity", "hex_code", "dimensions", "weight", "burn_time")
            if hasattr(option, name)
        }
        notes = list(getattr(option, "notes", ()))
        return cls(
            id=option.id,
            name=option.name,
            additional_price=option.additional_price,
            available=option.available,
            notes=notes,
            **extras,
        )


class OptionRefOut(WireModel):
    kind: OptionKind
    id: str


class CustomizationOptionsOut(WireModel):
    product_id: str
    base_price: Decimal
    scents: list[OptionOut]
    colors: list[OptionOut]
    sizes: list[OptionOut]
    incompatible: list[list[OptionRefOut]]

    @classmethod
    def from_domain(cls, product: Product) -> CustomizationOptionsOut:
        return cls(
            product_id=product.id,
            base_price=product.base_price,
            scents=[OptionOut.from_domain(o) for o in product.scents],
            colors=[OptionOut.from_domain(o) for o in product.colors],
            sizes=[OptionOut.from_domain(o) for o in product.sizes],
            incompatible=[
                [OptionRefOut(kind=kind, id=option_id) for kind, option_id in sorted(pair)]
                for pair in product.compatibility.disallowed
            ],
        )


class CombinationIn(WireModel):
    scent_id: str | None = None
    color_id: str | None = None
    size_id: str | None = None

    def to_domain(self) -> Combination:
        return Combination(self.scent_id, self.color_id, self.size_id)


class ValidationOut(WireModel):
    is_valid: bool
    message: str | None = None
    price: Decimal

    @classmethod
    def from_domain(cls, product: Product, check: Validation) -> ValidationOut:
        price = product.base_price + check.additional_price if check.is_valid else product.base_price
        return cls(is_valid=check.is_valid, message=check.reason, price=price)


# ═══════════════════════════════════════════════════════════════════════════════
# Cart
# ═══════════════════════════════════════════════════════════════════════════════

class AddItemIn(WireModel):
    product_id: str
    quantity: int = 1
    customizations: CombinationIn = CombinationIn()


class UpdateItemIn(WireModel):
    quantity: int


class MergeIn(WireModel):
    guest_id: str


class CartItemOut(WireModel):
    id: str
    product_id: str
    product_name: str | None = None
    quantity: int
    customizations: CombinationIn
    labels: dict[str, str] = {}
    unit_price: Decimal
    line_total: Decimal
    available: bool = True
    issue: str | None = None

    @classmethod
    def from_domain(cls, item: CartItem, line: CartLine | None = None) -> CartItemOut:
        c = item.combination
        return cls(
            id=item.id,
            product_id=item.product_id,
            product_name=line.product_name if line else None,
            quantity=item.quantity,
            customizations=CombinationIn(scent_id=c.scent_id, color_id=c.color_id, size_id=c.size_id),
            labels=line.customizations if line else {},
            unit_price=item.unit_price,
            line_total=item.line_total,
            available=line.available if line else True,
            issue=line.issue if line else None,
        )


class CartOut(WireModel):
    id: str
    items: list[CartItemOut]
    item_count: int
    total_price: Decimal
    subtotal: Decimal | None = None
    amount_to_free_shipping: Decimal | None = None
    expires_at: datetime | None = None

    @classmethod
    def from_domain(cls, cart: Cart) -> CartOut:
        return cls(
            id=cart.id,
            items=[CartItemOut.from_domain(i) for i in cart.items],
            item_count=cart.item_count,
            total_price=cart.total_price,
            expires_at=cart.expires_at,
        )

    @classmethod
    def from_view(cls, view: CartView) -> CartOut:
        cart = view.cart
        return cls(
            id=cart.id,
            items=[CartItemOut.from_domain(line.item, line) for line in view.lines],
            item_count=cart.item_count,
            total_price=cart.total_price,
            subtotal=view.subtotal,
            amount_to_free_shipping=view.amount_to_free_shipping,
            expires_at=cart.expires_at,
        )


class SkippedOut(WireModel):
    item_id: str
    product_id: str
    reason: str


class MergeOut(WireModel):
    cart: CartOut
    merged: int
    skipped: list[SkippedOut]
    capped: list[str]

    @classmethod
    def from_domain(cls, result: MergeResult) -> MergeOut:
        return cls(
            cart=CartOut.from_domain(result.cart),
            merged=result.merged,
            skipped=[
                SkippedOut(item_id=s.item.id, product_id=s.item.product_id, reason=s.reason)
                for s in result.skipped
            ],
            capped=list(result.capped),
        )


# ═══════════════════════════════════════════════════════════════════════════════
# Checkout
# ═══════════════════════════════════════════════════════════════════════════════

class AddressIn(WireModel):
    first_name: str = ""
    last_name: str = ""
    street: str = ""
    apartment: str | None = None
    city: str = ""
    state: str = ""
    postal_code: str = Field("", alias="zipCode")
    country: str = "US"
    phone: str | None = None

    def to_domain(self) -> Address:
        return Address(
            first_name=self.first_name,
            last_name=self.last_name,
            street=self.street,
            city=self.city,
            state=self.state,
            postal_code=self.postal_code,
            country=self.country,
            apartment=self.apartment,
            phone=self.phone,
        )

    @classmethod
    def from_domain(cls, address: Address) -> AddressIn:
        return cls(
            first_name=address.first_name,
            last_name=address.last_name,
            street=address.street,
            apartment=address.apartment,
            city=address.city,
            state=address.state,
            postal_code=address.postal_code,
            country=address.country,
            phone=address.phone,
        )


class ShippingIn(WireModel):
    email: str = ""
    shipping_address: AddressIn
    billing_address: AddressIn | None = None
    same_as_shipping: bool = True
    shipping_option: str = "standard"

    def to_domain(self) -> ShippingDetails:
        return ShippingDetails(
            email=self.email,
            shipping_address=self.shipping_address.to_domain(),
            shipping_option=self.shipping_option,
            billing_address=self.billing_address.to_domain() if self.billing_address else None,
            same_as_shipping=self.same_as_shipping,
        )


class PaymentIn(WireModel):
    method: str = "card"
    payment_intent_id: str | None = None

    def to_domain(self) -> PaymentSelection:
        return PaymentSelection(method=self.method, intent_id=self.payment_intent_id)


class PaymentIntentIn(WireModel):
    amount: Decimal | None = None


class PaymentIntentOut(WireModel):
    client_secret: str | None
    payment_intent_id: str
    amount: Decimal


class ShippingQuoteIn(WireModel):
    shipping_option: str = "standard"
    state: str | None = None


class TotalsOut(WireModel):
    subtotal: Decimal
    tax: Decimal
    shipping_cost: Decimal
    total: Decimal

    @classmethod
    def from_domain(cls, totals: Totals) -> TotalsOut:
        t = totals.rounded()
        return cls(subtotal=t.subtotal, tax=t.tax, shipping_cost=t.shipping_cost, total=t.total)


class CheckoutOut(WireModel):
    session_id: str
    step: str
    email: str | None = None
    shipping_address: AddressIn | None = None
    billing_address: AddressIn | None = None
    same_as_shipping: bool
    shipping_option: str | None = None
    payment_method: str | None = None
    totals: TotalsOut | None = None

    @classmethod
    def from_domain(cls, session: CheckoutSession) -> CheckoutOut:
        return cls(
            session_id=session.id,
            step=session.step.value,
            email=session.email,
            shipping_address=AddressIn.from_domain(session.shipping_address) if session.shipping_address else None,
            billing_address=AddressIn.from_domain(session.billing_address) if session.billing_address else None,
            same_as_shipping=session.same_as_shipping,
            shipping_option=session.shipping_option,
            payment_method=session.payment_method,
            totals=TotalsOut.from_domain(session.totals) if session.totals else None,
        )


# ═══════════════════════════════════════════════════════════════════════════════
# Orders
# ═══════════════════════════════════════════════════════════════════════════════

class PlaceOrderIn(WireModel):
    session_id: str


class PlacedOut(WireModel):
    order_number: str
    status: OrderStatus
    total: Decimal

    @classmethod
    def from_domain(cls, order: Order) -> PlacedOut:
        return cls(order_number=order.number, status=order.status, total=order.total)


class StatusIn(WireModel):
    status: OrderStatus
    tracking_number: str | None = None


class TrackingUpdateIn(WireModel):
    tracking_number: str


class OrderItemOut(WireModel):
    product_id: str
    product_name: str
    quantity: int
    unit_price: Decimal
    customizations: dict[str, str]
    image: str | None = None

    @classmethod
    def from_domain(cls, item: OrderItem) -> OrderItemOut:
        return cls(
            product_id=item.product_id,
            product_name=item.product_name,
            quantity=item.quantity,
            unit_price=item.unit_price,
            customizations=item.labels,
            image=item.image,
        )


class OrderOut(WireModel):
    order_number: str
    user_id: str | None
    email: str
    status: OrderStatus
    payment_method: str
    payment_status: str
    items: list[OrderItemOut]
    shipping_address: AddressIn
    subtotal: Decimal
    tax: Decimal
    shipping_cost: Decimal
    total: Decimal
    tracking_number: str | None
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_domain(cls, order: Order) -> OrderOut:
        return cls(
            order_number=order.number,
            user_id=order.user_id,
            email=order.email,
            status=order.status,
            payment_method=order.payment.method,
            payment_status=order.payment.status.value,
            items=[OrderItemOut.from_domain(i) for i in order.items],
            shipping_address=AddressIn.from_domain(order.shipping_address),
            subtotal=order.subtotal,
            tax=order.tax,
            shipping_cost=order.shipping_cost,
            total=order.total,
            tracking_number=order.tracking_number,
            created_at=order.created_at,
            updated_at=order.updated_at,
        )


class TrackingOut(WireModel):
    order_number: str
    status: OrderStatus
    items: list[OrderItemOut]
    total: Decimal
    ship_to: str
    destination: str
    tracking_number: str | None
    created_at: datetime

    @classmethod
    def from_domain(cls, view: TrackingView) -> TrackingOut:
        return cls(
            order_number=view.number,
            status=view.status,
            items=[OrderItemOut.from_domain(i) for i in view.items],
            total=view.total,
            ship_to=view.ship_to,
            destination=f"{view.city}, {view.state}, {view.country}",
            tracking_number=view.tracking_number,
            created_at=view.created_at,
        )


class WebhookOut(WireModel):
    received: bool = True
    outcome: str
