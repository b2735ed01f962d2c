"""
HTTP routes. Thin: parse, call the engine, map the Result.
"""

from typing import Annotated

from fastapi import APIRouter, Header, Query, Request, status

from candlecart._types import expect
from candlecart.api._deps import AdminDep, OwnerDep, ShopDep, UserIdDep
from candlecart.api._models import (
    AddItemIn,
    CartOut,
    CheckoutOut,
    CombinationIn,
    CustomizationOptionsOut,
    MergeIn,
    MergeOut,
    OrderOut,
    PaymentIn,
    PaymentIntentIn,
    PaymentIntentOut,
    PlacedOut,
    PlaceOrderIn,
    ShippingIn,
    ShippingQuoteIn,
    StatusIn,
    TotalsOut,
    TrackingOut,
    TrackingUpdateIn,
    UpdateItemIn,
    ValidationOut,
    WebhookOut,
)
from candlecart.catalog import validate
from candlecart.orders import OrderStatus
from candlecart.payments import construct_event
from candlecart.pricing import from_cents

router = APIRouter()


# ═══════════════════════════════════════════════════════════════════════════════
# Products
# ═══════════════════════════════════════════════════════════════════════════════

@router.get("/products/{product_id}/customization-options")
async def customization_options(product_id: str, shop: ShopDep) -> CustomizationOptionsOut:
    product = expect(await shop.catalog.get(product_id))
    return CustomizationOptionsOut.from_domain(product)


@router.post("/products/{product_id}/validate-customization")
async def validate_customization(
    product_id: str, body: CombinationIn, shop: ShopDep
) -> ValidationOut:
    product = expect(await shop.catalog.get(product_id))
    return ValidationOut.from_domain(product, validate(product, body.to_domain()))


# ═══════════════════════════════════════════════════════════════════════════════
# Cart
# ═══════════════════════════════════════════════════════════════════════════════

@router.get("/cart")
async def get_cart(shop: ShopDep, owner: OwnerDep) -> CartOut:
    return CartOut.from_view(expect(await shop.carts.view(owner)))


@router.post("/cart/items", status_code=status.HTTP_201_CREATED)
async def add_item(body: AddItemIn, shop: ShopDep, owner: OwnerDep) -> CartOut:
    cart = expect(await shop.carts.add_item(
        owner, body.product_id, body.quantity, body.customizations.to_domain()
    ))
    return CartOut.from_domain(cart)


@router.put("/cart/items/{item_id}")
async def update_item(item_id: str, body: UpdateItemIn, shop: ShopDep, owner: OwnerDep) -> CartOut:
    return CartOut.from_domain(expect(await shop.carts.update_item(owner, item_id, body.quantity)))


@router.delete("/cart/items/{item_id}")
async def remove_item(item_id: str, shop: ShopDep, owner: OwnerDep) -> CartOut:
    return CartOut.from_domain(expect(await shop.carts.remove_item(owner, item_id)))


@router.delete("/cart")
async def clear_cart(shop: ShopDep, owner: OwnerDep) -> CartOut:
    return CartOut.from_domain(expect(await shop.carts.clear(owner)))


@router.post("/cart/merge")
async def merge_cart(body: MergeIn, shop: ShopDep, user_id: UserIdDep) -> MergeOut:
    return MergeOut.from_domain(expect(await shop.carts.merge(body.guest_id, user_id)))


# ═══════════════════════════════════════════════════════════════════════════════
# Checkout
# ═══════════════════════════════════════════════════════════════════════════════

@router.post("/checkout", status_code=status.HTTP_201_CREATED)
async def start_checkout(shop: ShopDep, owner: OwnerDep) -> CheckoutOut:
    return CheckoutOut.from_domain(expect(await shop.checkout.start(owner)))


@router.post("/checkout/shipping-quote")
async def shipping_quote(body: ShippingQuoteIn, shop: ShopDep, owner: OwnerDep) -> TotalsOut:
    totals = expect(await shop.carts.totals(owner, body.shipping_option, body.state))
    return TotalsOut.from_domain(totals)


@router.get("/checkout/{session_id}")
async def get_checkout(session_id: str, shop: ShopDep, owner: OwnerDep) -> CheckoutOut:
    return CheckoutOut.from_domain(expect(await shop.checkout.get(session_id, owner)))


@router.put("/checkout/{session_id}/shipping")
async def submit_shipping(
    session_id: str, body: ShippingIn, shop: ShopDep, owner: OwnerDep
) -> CheckoutOut:
    session = expect(await shop.checkout.submit_shipping(session_id, owner, body.to_domain()))
    return CheckoutOut.from_domain(session)


@router.post("/checkout/{session_id}/back")
async def go_back(session_id: str, shop: ShopDep, owner: OwnerDep) -> CheckoutOut:
    return CheckoutOut.from_domain(expect(await shop.checkout.back(session_id, owner)))


@router.post("/checkout/{session_id}/payment-intent")
async def create_payment_intent(
    session_id: str, body: PaymentIntentIn, shop: ShopDep, owner: OwnerDep
) -> PaymentIntentOut:
    intent = expect(await shop.checkout.create_payment_intent(session_id, owner, body.amount))
    return PaymentIntentOut(
        client_secret=intent.client_secret,
        payment_intent_id=intent.id,
        amount=from_cents(intent.amount_cents),
    )


@router.put("/checkout/{session_id}/payment")
async def submit_payment(
    session_id: str, body: PaymentIn, shop: ShopDep, owner: OwnerDep
) -> CheckoutOut:
    session = expect(await shop.checkout.submit_payment(session_id, owner, body.to_domain()))
    return CheckoutOut.from_domain(session)


@router.delete("/checkout/{session_id}", status_code=status.HTTP_204_NO_CONTENT)
async def abandon_checkout(session_id: str, shop: ShopDep, owner: OwnerDep) -> None:
    expect(await shop.checkout.abandon(session_id, owner))


# ═══════════════════════════════════════════════════════════════════════════════
# Orders
# ═══════════════════════════════════════════════════════════════════════════════

@router.post("/orders", status_code=status.HTTP_201_CREATED)
async def place_order(body: PlaceOrderIn, shop: ShopDep, owner: OwnerDep) -> PlacedOut:
    return PlacedOut.from_domain(expect(await shop.checkout.confirm(body.session_id, owner)))


@router.get("/orders")
async def my_orders(shop: ShopDep, user_id: UserIdDep) -> list[OrderOut]:
    orders = expect(await shop.lifecycle.list_orders(user_id=user_id))
    return [OrderOut.from_domain(o) for o in orders]


@router.get("/orders/track")
async def track_order(
    shop: ShopDep,
    order_number: Annotated[str, Query(alias="orderNumber")],
    email: Annotated[str, Query()],
) -> TrackingOut:
    return TrackingOut.from_domain(expect(await shop.lifecycle.track(order_number, email)))


@router.put("/orders/{number}/status", dependencies=[AdminDep])
async def update_status(number: str, body: StatusIn, shop: ShopDep) -> OrderOut:
    order = expect(await shop.lifecycle.update_status(number, body.status, body.tracking_number))
    return OrderOut.from_domain(order)


@router.put("/orders/{number}/tracking", dependencies=[AdminDep])
async def update_tracking(number: str, body: TrackingUpdateIn, shop: ShopDep) -> OrderOut:
    order = expect(await shop.lifecycle.update_tracking(number, body.tracking_number))
    return OrderOut.from_domain(order)


@router.get("/admin/orders", dependencies=[AdminDep])
async def admin_orders(
    shop: ShopDep,
    status_filter: Annotated[OrderStatus | None, Query(alias="status")] = None,
) -> list[OrderOut]:
    orders = expect(await shop.lifecycle.list_orders(status=status_filter))
    return [OrderOut.from_domain(o) for o in orders]


@router.get("/admin/orders/{number}", dependencies=[AdminDep])
async def admin_order(number: str, shop: ShopDep) -> OrderOut:
    return OrderOut.from_domain(expect(await shop.lifecycle.get(number)))


# ═══════════════════════════════════════════════════════════════════════════════
# Webhooks
# ═══════════════════════════════════════════════════════════════════════════════

@router.post("/webhooks/payments")
async def payment_webhook(
    request: Request,
    shop: ShopDep,
    stripe_signature: Annotated[str | None, Header()] = None,
) -> WebhookOut:
    payload = await request.body()
    event = expect(construct_event(
        payload,
        stripe_signature,
        shop.settings.webhook_secret,
        shop.settings.webhook_tolerance,
    ))
    outcome = expect(await shop.lifecycle.handle_payment_event(event))
    return WebhookOut(outcome=outcome.value)


__all__ = ("router",)
