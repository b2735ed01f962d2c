"""
Checkout state machine.

    session = expect(await checkout.start(owner))
    session = expect(await checkout.submit_shipping(session.id, owner, details))
    intent  = expect(await checkout.create_payment_intent(session.id, owner))
    # ... shopper confirms the card in the browser ...
    session = expect(await checkout.submit_payment(session.id, owner, PaymentSelection(intent_id=intent.id)))
    order   = expect(await checkout.confirm(session.id, owner))

Every step returns Result. A failed confirm leaves the session in review
and the cart untouched, so the shopper can fix the problem and try again.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import replace

from kungfu import Error

from candlecart._errors import (
    ConflictError,
    InvalidTransitionError,
    PaymentDeclinedError,
    ValidationError,
)
from candlecart._types import Clock, Money, expect, outcome, utcnow
from candlecart.address import address_errors
from candlecart.cart import Cart, CartOwner, CartService
from candlecart.catalog import CatalogStore
from candlecart.checkout._placement import Placement, Placer
from candlecart.checkout._review import ReviewRequest, review
from candlecart.checkout._sessions import SessionRegistry
from candlecart.checkout._types import (
    CARD,
    PREVIOUS,
    CheckoutSession,
    CheckoutStep,
    PaymentSelection,
    ShippingDetails,
)
from candlecart.orders import Notifications, Order, OrderLifecycle, OrderStore
from candlecart.payments import GatewayClient, PaymentIntent
from candlecart.pricing import PricingEngine, Totals, to_cents

logger = logging.getLogger(__name__)


def _require_step(session: CheckoutSession, step: CheckoutStep, target: CheckoutStep) -> None:
    if session.step != step:
        raise InvalidTransitionError(session.step, target)


def _with_items(cart: Cart | None) -> Cart:
    if cart is None or cart.is_empty:
        raise ValidationError("cart is empty", {"cart": "add an item first"})
    return cart


def _email_errors(email: str) -> dict[str, str]:
    local, _, domain = email.strip().partition("@")
    if not local or "." not in domain:
        return {"email": "Please enter a valid email address"}
    return {}


class CheckoutMachine:
    def __init__(
        self,
        carts: CartService,
        catalog: CatalogStore,
        pricing: PricingEngine,
        sessions: SessionRegistry,
        orders: OrderStore,
        lifecycle: OrderLifecycle,
        notifications: Notifications,
        gateway: GatewayClient,
        currency: str = "usd",
        alternate_methods: Iterable[str] = ("paypal",),
        clock: Clock = utcnow,
    ) -> None:
        self._carts = carts
        self._catalog = catalog
        self._pricing = pricing
        self._sessions = sessions
        self._orders = orders
        self._lifecycle = lifecycle
        self._notifications = notifications
        self._gateway = gateway
        self._currency = currency
        self._alternate_methods = frozenset(alternate_methods)
        self._clock = clock
        self._placer = Placer(catalog, orders, gateway, clock)

    # ─── helpers ──────────────────────────────────────────────────────────────

    async def _session(self, session_id: str, owner: CartOwner) -> CheckoutSession:
        return expect(await self._sessions.get(session_id, owner))

    async def _save(self, session: CheckoutSession, **changes: object) -> CheckoutSession:
        return await self._sessions.save(replace(session, updated_at=self._clock(), **changes))

    async def _cart(self, owner: CartOwner) -> Cart:
        return _with_items(expect(await self._carts.find(owner)))

    async def _fresh_totals(self, session: CheckoutSession) -> Totals:
        return expect(await self._carts.totals(
            session.owner, session.shipping_option or "", session.jurisdiction
        ))

    # ─── steps ────────────────────────────────────────────────────────────────

    @outcome
    async def start(self, owner: CartOwner) -> CheckoutSession:
        await self._cart(owner)
        session = await self._sessions.open(owner)
        logger.debug("checkout %s started for %s", session.id, owner.key)
        return session

    @outcome
    async def get(self, session_id: str, owner: CartOwner) -> CheckoutSession:
        return await self._session(session_id, owner)

    @outcome
    async def submit_shipping(
        self, session_id: str, owner: CartOwner, details: ShippingDetails
    ) -> CheckoutSession:
        """shipping → payment. Every bad field is reported at once."""
        session = await self._session(session_id, owner)
        _require_step(session, CheckoutStep.SHIPPING, CheckoutStep.PAYMENT)

        errors = _email_errors(details.email)
        errors |= address_errors(details.shipping_address, "shipping.")
        if not details.same_as_shipping:
            if details.billing_address is None:
                errors["billing"] = "Billing address is required"
            else:
                errors |= address_errors(details.billing_address, "billing.")
        if details.shipping_option not in self._pricing.shipping.options:
            errors["shipping_option"] = "Please choose a shipping method"
        if errors:
            raise ValidationError("shipping details are incomplete", errors)

        await self._cart(owner)
        staged = replace(
            session,
            email=details.email.strip().lower(),
            shipping_address=details.shipping_address,
            billing_address=None if details.same_as_shipping else details.billing_address,
            same_as_shipping=details.same_as_shipping,
            shipping_option=details.shipping_option,
        )
        totals = await self._fresh_totals(staged)
        return await self._save(staged, step=CheckoutStep.PAYMENT, totals=totals)

    @outcome
    async def back(self, session_id: str, owner: CartOwner) -> CheckoutSession:
        """payment → shipping, review → payment. Entered data is kept."""
        session = await self._session(session_id, owner)
        previous = PREVIOUS.get(session.step)
        if previous is None:
            raise InvalidTransitionError(session.step, "previous step")
        return await self._save(session, step=previous)

    @outcome
    async def create_payment_intent(
        self,
        session_id: str,
        owner: CartOwner,
        client_amount: Money | None = None,
    ) -> PaymentIntent:
        """The amount is always the server's total; a client figure is only compared."""
        session = await self._session(session_id, owner)
        _require_step(session, CheckoutStep.PAYMENT, CheckoutStep.PAYMENT)

        cart = await self._cart(owner)
        totals = await self._fresh_totals(session)
        amount_cents = to_cents(totals.rounded().total)
        if amount_cents <= 0:
            raise ValidationError("nothing to pay", {"amount": "must be greater than zero"})
        if client_amount is not None and to_cents(client_amount) != amount_cents:
            logger.warning(
                "checkout %s: client sent %s, charging server total %s",
                session.id, client_amount, totals.rounded().total,
            )

        intent = expect(await self._gateway.create_intent(
            amount_cents,
            self._currency,
            {"checkout_session": session.id, "cart_id": cart.id},
        ))
        await self._save(session, totals=totals, intent_id=intent.id)
        return intent

    @outcome
    async def submit_payment(
        self, session_id: str, owner: CartOwner, selection: PaymentSelection
    ) -> CheckoutSession:
        """payment → review. Card payments must be authorized by the gateway."""
        session = await self._session(session_id, owner)
        _require_step(session, CheckoutStep.PAYMENT, CheckoutStep.REVIEW)

        if selection.method == CARD:
            cart = await self._cart(owner)
            intent_id = selection.intent_id or session.intent_id
            if intent_id is None:
                raise ValidationError("payment is required", {"payment": "confirm your card first"})
            intent = expect(await self._gateway.retrieve(intent_id))
            if intent.metadata.get("checkout_session", session.id) != session.id:
                raise ValidationError("payment belongs to another checkout", {"payment": "invalid"})
            if not intent.is_authorized:
                raise PaymentDeclinedError(f"payment has not been authorized ({intent.status})")
            return await self._save(
                session,
                step=CheckoutStep.REVIEW,
                payment_method=CARD,
                intent_id=intent.id,
                authorized_cents=intent.amount_cents,
                authorized_revision=cart.revision,
            )

        if selection.method in self._alternate_methods:
            totals = await self._fresh_totals(session)
            cart = await self._cart(owner)
            return await self._save(
                session,
                step=CheckoutStep.REVIEW,
                payment_method=selection.method,
                totals=totals,
                authorized_cents=to_cents(totals.rounded().total),
                authorized_revision=cart.revision,
            )

        raise ValidationError(
            f"unsupported payment method {selection.method!r}",
            {"payment_method": "unsupported"},
        )

    @outcome
    async def confirm(self, session_id: str, owner: CartOwner) -> Order:
        """
        review → confirmed.

        One confirmation per authorized cart: the placement key is claimed
        before anything else is checked, and anyone arriving second gets
        ConflictError. The session is closed once its order exists.
        """
        placed = await self._sessions.closed_order(session_id, owner)
        if placed is not None:
            raise ConflictError(f"checkout {session_id} already placed order {placed}")

        session = await self._session(session_id, owner)
        _require_step(session, CheckoutStep.REVIEW, CheckoutStep.CONFIRMED)
        found = expect(await self._carts.find(owner))
        if found is None:
            raise ValidationError("cart is empty", {"cart": "add an item first"})

        key = f"{found.id}:{session.authorized_revision}"
        if not expect(await self._orders.claim_placement(key)):
            raise ConflictError("an order for this cart is already placed or in progress")

        try:
            order = await self._place(session, _with_items(found), key)
        except Exception:
            expect(await self._orders.release_placement(key))
            raise

        await self._finish(session, owner, order)
        return order

    async def _place(self, session: CheckoutSession, cart: Cart, key: str) -> Order:
        checked = expect(await review(ReviewRequest(session, cart, self._catalog, self._pricing)))
        return expect(await self._placer.place(Placement(session, checked, key)))

    async def _finish(self, session: CheckoutSession, owner: CartOwner, order: Order) -> None:
        await self._sessions.close(session, order.number)
        logger.info("order %s placed (%s, %s)", order.number, order.total, order.payment.method)

        match await self._carts.clear(owner):
            case Error(e):
                logger.error("order %s placed but cart could not be cleared: %s", order.number, e)
            case _:
                pass

        match await self._lifecycle.reconcile(order):
            case Error(e):
                logger.error("order %s: early payment events not applied: %s", order.number, e)
            case _:
                pass

        self._notifications.order_confirmed(order)

    @outcome
    async def abandon(self, session_id: str, owner: CartOwner) -> bool:
        """Drop the session. The cart is left exactly as it was."""
        await self._session(session_id, owner)
        return await self._sessions.discard(session_id)


__all__ = ("CheckoutMachine",)
