"""
Order placement saga.

    reserve stock (line 1) ─► … ─► reserve stock (line n) ─► take payment ─► record order
          ▲ restock                  ▲ restock

Stock reservations are undone if anything later fails. Taking the payment
has no compensation: it is the point of no return, and it is never retried
or cancelled here. A capture that already happened (a retried confirm after
a timeout) is detected and not repeated.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from kungfu import Result, Ok, Error, LazyCoroResult

from candlecart import _saga as S
from candlecart._errors import (
    ConflictError,
    PaymentDeclinedError,
    PriceMismatchError,
    ShopError,
    ValidationError,
)
from candlecart._types import Clock, expect, utcnow
from candlecart.catalog import CatalogStore, labels
from candlecart.checkout._review import Review, ReviewedLine
from candlecart.checkout._types import CARD, CheckoutSession
from candlecart.orders import (
    Order,
    OrderItem,
    OrderStatus,
    OrderStore,
    PaymentDetails,
    PaymentStatus,
    order_number,
)
from candlecart.payments import GatewayClient, IntentStatus
from candlecart.pricing import from_cents

logger = logging.getLogger(__name__)

ORDER_NUMBER_ATTEMPTS = 5


@dataclass(frozen=True, slots=True)
class Placement:
    session: CheckoutSession
    review: Review
    placement_key: str


def snapshot(line: ReviewedLine) -> OrderItem:
    product = line.product
    return OrderItem(
        product_id=product.id,
        product_name=product.name,
        quantity=line.quantity,
        unit_price=line.unit_price,
        customizations=tuple(labels(product, line.item.combination).items()),
        image=product.images[0] if product.images else None,
    )


class Placer:
    def __init__(
        self,
        catalog: CatalogStore,
        orders: OrderStore,
        gateway: GatewayClient,
        clock: Clock = utcnow,
    ) -> None:
        self._catalog = catalog
        self._orders = orders
        self._gateway = gateway
        self._clock = clock

    async def place(self, placement: Placement) -> Result[Order, ShopError]:
        lines = placement.review.lines
        saga: S.SagaExpr[Order, ShopError] = (
            self._reserve_all(lines)
            .then(lambda _: S.step("take payment", self._take_payment(placement)))
            .then(lambda payment: S.step("record order", self._record(placement, payment)))
        )

        match await S.run(saga):
            case Ok(done):
                return Ok(done.value)
            case Error(failed):
                logger.warning(
                    "placement %s failed at %r (%s); undone: %s",
                    placement.placement_key,
                    failed.step,
                    failed.error.kind,
                    ", ".join(failed.undone) or "nothing",
                )
                if not failed.rolled_back:
                    logger.error(
                        "placement %s left stock unrestored for %s",
                        placement.placement_key,
                        ", ".join(failed.undo_failed),
                    )
                return Error(failed.error)

    # ─── steps ────────────────────────────────────────────────────────────────

    def _reserve_all(self, lines: tuple[ReviewedLine, ...]) -> S.SagaExpr[ReviewedLine, ShopError]:
        saga: S.SagaExpr[ReviewedLine, ShopError] = self._reserve(lines[0])
        for line in lines[1:]:
            saga = saga.then(lambda _, line=line: self._reserve(line))
        return saga

    def _reserve(self, line: ReviewedLine) -> S.SagaStep[ReviewedLine, ShopError]:
        async def reserve() -> Result[ReviewedLine, ShopError]:
            match await self._catalog.reserve(line.product.id, line.quantity):
                case Ok(_):
                    return Ok(line)
                case Error(e):
                    return Error(e)

        async def restock(reserved: ReviewedLine) -> None:
            expect(await self._catalog.restock(reserved.product.id, reserved.quantity))

        return S.step(f"reserve {line.product.id}", LazyCoroResult(reserve), undo=restock)

    def _take_payment(self, placement: Placement) -> LazyCoroResult[PaymentDetails, ShopError]:
        session = placement.session
        amount_cents = placement.review.amount_cents

        async def take() -> Result[PaymentDetails, ShopError]:
            method = session.payment_method or CARD
            if method != CARD:
                return Ok(PaymentDetails(method, None, PaymentStatus.PENDING))
            if session.intent_id is None:
                return Error(ValidationError("no payment intent on this checkout", {"payment": "required"}))

            match await self._gateway.retrieve(session.intent_id):
                case Ok(intent):
                    pass
                case Error(e):
                    return Error(e)

            if intent.amount_cents != amount_cents:
                return Error(PriceMismatchError(from_cents(amount_cents), from_cents(intent.amount_cents)))

            if intent.status == IntentStatus.REQUIRES_CAPTURE:
                match await self._gateway.capture(intent.id):
                    case Ok(captured):
                        intent = captured
                    case Error(e):
                        return Error(e)

            if intent.status != IntentStatus.SUCCEEDED:
                return Error(PaymentDeclinedError(f"payment was not completed ({intent.status})"))
            return Ok(PaymentDetails(CARD, intent.id, PaymentStatus.COMPLETED))

        return LazyCoroResult(take)

    def _record(self, placement: Placement, payment: PaymentDetails) -> LazyCoroResult[Order, ShopError]:
        session = placement.session
        totals = placement.review.totals.rounded()

        async def record() -> Result[Order, ShopError]:
            if session.email is None or session.shipping_address is None or session.billing is None:
                return Error(ValidationError("shipping details are missing", {"shipping": "required"}))

            now = self._clock()
            status = OrderStatus.PROCESSING if payment.status == PaymentStatus.COMPLETED else OrderStatus.PENDING
            for _ in range(ORDER_NUMBER_ATTEMPTS):
                order = Order(
                    number=order_number(now),
                    user_id=session.owner.user_id,
                    email=session.email,
                    items=tuple(snapshot(line) for line in placement.review.lines),
                    shipping_address=session.shipping_address,
                    billing_address=session.billing,
                    shipping_option=session.shipping_option or "",
                    payment=payment,
                    subtotal=totals.subtotal,
                    tax=totals.tax,
                    shipping_cost=totals.shipping_cost,
                    total=totals.total,
                    status=status,
                    created_at=now,
                    updated_at=now,
                    placement_key=placement.placement_key,
                )
                match await self._orders.create(order):
                    case Ok(created):
                        return Ok(created)
                    case Error(ConflictError()):
                        continue
                    case Error(e):
                        if payment.status == PaymentStatus.COMPLETED:
                            logger.error("payment %s taken but order could not be stored: %s", payment.transaction_id, e)
                        return Error(e)
            return Error(ConflictError("could not allocate an order number"))

        return LazyCoroResult(record)


__all__ = ("Placement", "snapshot", "Placer")
