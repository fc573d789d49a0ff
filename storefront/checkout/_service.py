"""
Checkout workflow — cart to order + payment, all or nothing.

The workflow is a three-step saga inside one transaction:

    place    graph of placement nodes       compensate: roll back the transaction
    session  open processor checkout        compensate: expire the session
    commit   attach session ids, commit

Offline style skips the processor; ``session`` passes the placement through.
"""

from __future__ import annotations

from dataclasses import dataclass

from kungfu import Result, Ok, Error
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from storefront import graph as G
from storefront import saga as S
from storefront.checkout._nodes import CartNode, CheckoutRequest, PlacedOrder, PlacedOrderNode
from storefront.config import PaymentStyle, Settings
from storefront.db import Transaction, atomically, cart_view, order_view, payment_view
from storefront.domain import (
    CheckoutResult,
    CheckoutSummary,
    Errors,
    OfflineCheckout,
    RedirectCheckout,
    ShopError,
    ShopFailure,
    money,
)
from storefront.logging import get_logger
from storefront.payments import CheckoutSession, LineItem, PaymentProcessor

logger = get_logger("checkout")

MAX_NOTES_LENGTH = 500


@dataclass(frozen=True, slots=True)
class _Opened:
    placed: PlacedOrder
    session: CheckoutSession | None


class CheckoutService:
    """
    Example:
        service = CheckoutService(session_factory, processor, settings)

        match await service.checkout(user_id=1, notes="leave at the door"):
            case Ok(OfflineCheckout(order=order, payment=payment)):
                ...
            case Ok(RedirectCheckout(payment_url=url)):
                ...
            case Error(e):
                ...   # e.kind / e.code / e.message
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        processor: PaymentProcessor,
        settings: Settings,
    ) -> None:
        self._session_factory = session_factory
        self._processor = processor
        self._settings = settings

    # ───────────────────────────────────────────────────────────────────────────
    # checkout
    # ───────────────────────────────────────────────────────────────────────────

    async def checkout(
        self,
        user_id: int,
        cart_id: int | None = None,
        notes: str | None = None,
    ) -> Result[CheckoutResult, ShopError]:
        if notes is not None and len(notes) > MAX_NOTES_LENGTH:
            return Error(Errors.invalid_payload(f"Notes exceed {MAX_NOTES_LENGTH} characters"))

        request = CheckoutRequest(user_id=user_id, cart_id=cart_id, notes=notes)
        log = logger.bind(user_id=user_id, style=self._settings.payment_style.value)

        try:
            async with Transaction(self._session_factory) as tx:
                chain = (
                    S.from_result(
                        lambda: self._place(request, tx),
                        compensate=lambda _: tx.rollback(),
                        name="place",
                    )
                    .then(self._session_step)
                    .then(lambda opened: S.from_async(
                        lambda: self._commit(opened, tx),
                        on_error=_commit_failed,
                        name="commit",
                    ))
                )
                match await S.run(chain):
                    case Ok(done):
                        log.info("checkout_completed", steps=done.steps_executed)
                        return Ok(done.value)
                    case Error(failure):
                        log.info(
                            "checkout_failed",
                            code=failure.error.code,
                            step=failure.step_failed,
                            compensators_run=failure.compensators_run,
                        )
                        return Error(failure.error)
        except SQLAlchemyError as e:
            log.error("checkout_rollback_failed", error=str(e))
            return Error(Errors.integrity_failure())

    async def _place(
        self, request: CheckoutRequest, tx: Transaction
    ) -> Result[PlacedOrder, ShopError]:
        try:
            node = await G.compose(PlacedOrderNode, request, tx, self._settings.payment_style)
        except ShopFailure as e:
            return Error(e.error)
        except SQLAlchemyError as e:
            logger.error("checkout_place_failed", error=str(e), user_id=request.user_id)
            return Error(Errors.integrity_failure())
        return Ok(node.data)

    def _session_step(self, placed: PlacedOrder) -> S.SagaStep[_Opened, ShopError]:
        if self._settings.payment_style is PaymentStyle.OFFLINE:

            async def passthrough() -> Result[_Opened, ShopError]:
                return Ok(_Opened(placed, None))

            return S.from_result(passthrough, name="session")

        async def open_session() -> _Opened:
            session = await self._processor.create_checkout_session(
                [
                    LineItem(name=line.name, unit_amount=line.unit_price, quantity=line.quantity)
                    for line in placed.lines
                ],
                {"order_id": str(placed.order.id), "user_id": str(placed.order.user_id)},
            )
            return _Opened(placed, session)

        async def expire(opened: _Opened) -> None:
            if opened.session is not None:
                await self._processor.expire_session(opened.session.id)
                logger.info("checkout_session_compensated", session_id=opened.session.id)

        return S.from_async(
            open_session,
            on_error=_processor_failed,
            compensate=expire,
            name="session",
        )

    async def _commit(self, opened: _Opened, tx: Transaction) -> CheckoutResult:
        placed = opened.placed
        if opened.session is not None:
            placed.payment.checkout_session_id = opened.session.id
            placed.payment.checkout_url = opened.session.url
            await tx.session.flush()

        result: CheckoutResult
        if opened.session is not None:
            result = RedirectCheckout(
                order_id=placed.order.id,
                payment_url=opened.session.url,
                total=money(placed.order.total),
            )
        else:
            result = OfflineCheckout(
                order=order_view(placed.order),
                payment=payment_view(placed.payment),
            )

        await tx.commit()
        logger.info(
            "order_placed",
            order_id=placed.order.id,
            user_id=placed.order.user_id,
            total=str(money(placed.order.total)),
            items=len(placed.lines),
        )
        return result

    # ───────────────────────────────────────────────────────────────────────────
    # summary
    # ───────────────────────────────────────────────────────────────────────────

    async def summarize(
        self, user_id: int, cart_id: int | None = None
    ) -> Result[CheckoutSummary, ShopError]:
        """What checkout would charge right now. Changes nothing."""
        request = CheckoutRequest(user_id=user_id, cart_id=cart_id)

        async def work(tx: Transaction) -> Result[CheckoutSummary, ShopError]:
            try:
                node = await G.compose(CartNode, request, tx)
            except ShopFailure as e:
                return Error(e.error)

            view = cart_view(node.cart)
            tax = money(view.subtotal * self._settings.tax_rate)
            shipping = money(self._settings.shipping_flat)
            return Ok(CheckoutSummary(
                cart_id=view.id,
                lines=view.lines,
                subtotal=view.subtotal,
                tax=tax,
                shipping=shipping,
                total=money(view.subtotal + tax + shipping),
            ))

        return await atomically(self._session_factory, work)


def _processor_failed(e: Exception) -> ShopError:
    logger.error("checkout_session_failed", error=str(e), error_type=type(e).__name__)
    return Errors.processor_failure()


def _commit_failed(e: Exception) -> ShopError:
    logger.error("checkout_commit_failed", error=str(e), error_type=type(e).__name__)
    return Errors.integrity_failure()


__all__ = ("CheckoutService", "MAX_NOTES_LENGTH")
