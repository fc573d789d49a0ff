"""
Payment reconciliation — processor events and operator actions.

Transitions:

    event               precondition            payment           order        stock
    ─────────────────────────────────────────────────────────────────────────────────
    session completed   payment pending         completed         processing   -
    session expired     payment pending         failed            cancelled    release
    intent succeeded    payment not completed   completed         -            -
    intent failed       -                       failed            cancelled    release
    mark paid           -                       completed/manual  paid         reserve if cancelled
    mark unpaid         order not cancelled     pending           pending      -
    cancel              order not cancelled     cancelled         cancelled    release
    refund              payment completed       refunded          cancelled    release

Each call is one transaction. Replaying an applied event changes nothing.
Stock release goes through ``cancel_and_release`` and happens once per order.
Notifications go out after commit.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import datetime, timedelta

from kungfu import Result, Ok, Error
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from storefront.db import (
    OrderRow,
    PaymentRow,
    Transaction,
    atomically,
    load_order,
    load_payment_by,
    order_view,
)
from storefront.domain import (
    Errors,
    OrderStatus,
    OrderView,
    PaymentMethod,
    PaymentStatus,
    ShopError,
    money,
)
from storefront.logging import get_logger
from storefront.notify import Notifier, dispatch_cancelled, dispatch_paid
from storefront.payments import PaymentProcessor
from storefront.reconcile._transitions import (
    cancel_and_release,
    move_order,
    move_payment,
    reopen_and_reserve,
)

logger = get_logger("reconcile")

DEFAULT_CANCEL_REASON = "Order cancelled by administrator"
DEFAULT_REFUND_REASON = "Payment refunded"
EXPIRED_REASON = "Payment session expired"
FAILED_REASON = "Payment failed"

_OPEN = [s for s in OrderStatus if s is not OrderStatus.CANCELLED]


# ═══════════════════════════════════════════════════════════════════════════════
# Results
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class Applied:
    """Outcome of one transition. ``changed`` is False for a replay."""

    order: OrderView
    changed: bool


@dataclass(frozen=True, slots=True)
class StaleSweep:
    cancelled: tuple[int, ...]
    failed: tuple[int, ...]


type _Notify = Callable[[OrderView], Awaitable[None]] | None


@dataclass(frozen=True, slots=True)
class _Change:
    applied: Applied
    notify: _Notify = None


# ═══════════════════════════════════════════════════════════════════════════════
# Reconciler
# ═══════════════════════════════════════════════════════════════════════════════


class Reconciler:
    """
    Example:
        reconciler = Reconciler(session_factory, processor, LogNotifier())

        match await reconciler.session_completed("cs_123", payment_intent_id="pi_456"):
            case Ok(Applied(order=order, changed=True)):
                ...   # order is now processing
            case Ok(Applied(changed=False)):
                ...   # already applied
            case Error(e):
                ...
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        processor: PaymentProcessor,
        notifier: Notifier,
    ) -> None:
        self._session_factory = session_factory
        self._processor = processor
        self._notifier = notifier

    async def _apply(
        self,
        event: str,
        work: Callable[[Transaction], Awaitable[Result[_Change, ShopError]]],
    ) -> Result[Applied, ShopError]:
        match await atomically(self._session_factory, work):
            case Ok(change):
                applied = change.applied
                logger.info(
                    "transition_applied" if applied.changed else "transition_skipped",
                    transition=event,
                    order_id=applied.order.id,
                    order_status=applied.order.status.value,
                )
                if applied.changed and change.notify is not None:
                    await change.notify(applied.order)
                return Ok(applied)
            case Error(e):
                logger.info("transition_rejected", transition=event, code=e.code)
                return Error(e)

    def _paid(self) -> _Notify:
        return lambda order: dispatch_paid(self._notifier, order)

    def _cancelled(self, reason: str) -> _Notify:
        return lambda order: dispatch_cancelled(self._notifier, order, reason)

    # ───────────────────────────────────────────────────────────────────────────
    # Processor events
    # ───────────────────────────────────────────────────────────────────────────

    async def session_completed(
        self, session_id: str, payment_intent_id: str | None = None
    ) -> Result[Applied, ShopError]:
        async def work(tx: Transaction) -> Result[_Change, ShopError]:
            payment = await load_payment_by(tx.session, session_id=session_id)
            if payment is None:
                return Error(Errors.payment_not_found())
            return await self._complete_session(tx.session, payment, payment_intent_id)

        return await self._apply("session_completed", work)

    async def _complete_session(
        self, session: AsyncSession, payment: PaymentRow, payment_intent_id: str | None
    ) -> Result[_Change, ShopError]:
        columns: dict[str, object] = {}
        if payment_intent_id is not None:
            columns["payment_intent_id"] = payment_intent_id
        changed = await move_payment(
            session,
            payment.id,
            PaymentStatus.COMPLETED,
            only_from=[PaymentStatus.PENDING],
            **columns,
        )
        if changed:
            await move_order(session, payment.order_id, OrderStatus.PROCESSING)
        return await _change(session, payment.order_id, changed, self._paid())

    async def session_expired(self, session_id: str) -> Result[Applied, ShopError]:
        async def work(tx: Transaction) -> Result[_Change, ShopError]:
            payment = await load_payment_by(tx.session, session_id=session_id)
            if payment is None:
                return Error(Errors.payment_not_found())
            changed = await move_payment(
                tx.session, payment.id, PaymentStatus.FAILED, only_from=[PaymentStatus.PENDING]
            )
            if changed:
                await cancel_and_release(tx.session, payment.order_id)
            return await _change(
                tx.session, payment.order_id, changed, self._cancelled(EXPIRED_REASON)
            )

        return await self._apply("session_expired", work)

    async def intent_succeeded(self, payment_intent_id: str) -> Result[Applied, ShopError]:
        async def work(tx: Transaction) -> Result[_Change, ShopError]:
            payment = await load_payment_by(tx.session, intent_id=payment_intent_id)
            if payment is None:
                return Error(Errors.payment_not_found())
            changed = await move_payment(
                tx.session, payment.id, PaymentStatus.COMPLETED, unless=PaymentStatus.COMPLETED
            )
            return await _change(tx.session, payment.order_id, changed)

        return await self._apply("intent_succeeded", work)

    async def intent_failed(self, payment_intent_id: str) -> Result[Applied, ShopError]:
        async def work(tx: Transaction) -> Result[_Change, ShopError]:
            payment = await load_payment_by(tx.session, intent_id=payment_intent_id)
            if payment is None:
                return Error(Errors.payment_not_found())
            await move_payment(tx.session, payment.id, PaymentStatus.FAILED)
            cancelled = await cancel_and_release(tx.session, payment.order_id)
            return await _change(
                tx.session, payment.order_id, cancelled, self._cancelled(FAILED_REASON)
            )

        return await self._apply("intent_failed", work)

    # ───────────────────────────────────────────────────────────────────────────
    # Synchronous verification
    # ───────────────────────────────────────────────────────────────────────────

    async def verify_payment(self, user_id: int, session_id: str) -> Result[Applied, ShopError]:
        """Ask the processor directly instead of waiting for the webhook."""

        async def owner_check(tx: Transaction) -> Result[int, ShopError]:
            payment = await load_payment_by(tx.session, session_id=session_id)
            if payment is None:
                return Error(Errors.payment_not_found())
            order = await tx.session.get(OrderRow, payment.order_id)
            if order is None or order.user_id != user_id:
                return Error(Errors.unauthorized("Unauthorized access to order"))
            return Ok(payment.order_id)

        match await atomically(self._session_factory, owner_check):
            case Error(e):
                return Error(e)
            case Ok(_):
                pass

        try:
            status = await self._processor.retrieve_session(session_id)
        except Exception as e:
            logger.error("verify_payment_lookup_failed", session_id=session_id, error=str(e))
            return Error(Errors.processor_failure())

        if not status.paid:
            return Error(Errors.payment_not_completed())
        return await self.session_completed(session_id, status.payment_intent_id)

    # ───────────────────────────────────────────────────────────────────────────
    # Operator actions
    # ───────────────────────────────────────────────────────────────────────────

    async def mark_paid(self, order_id: int) -> Result[Applied, ShopError]:
        async def work(tx: Transaction) -> Result[_Change, ShopError]:
            order = await load_order(tx.session, order_id)
            if order is None:
                return Error(Errors.order_not_found(order_id))
            # A cancelled order gave its stock back; paying it takes the stock again
            if not await move_order(tx.session, order.id, OrderStatus.PAID, only_from=_OPEN):
                match await reopen_and_reserve(tx.session, order.id, OrderStatus.PAID):
                    case Error(e):
                        return Error(e)
                    case Ok(_):
                        pass
            if order.payment is not None:
                await move_payment(tx.session, order.payment.id, PaymentStatus.COMPLETED)
            else:
                tx.session.add(PaymentRow(
                    order_id=order.id,
                    amount=money(order.total),
                    method=PaymentMethod.MANUAL.value,
                    status=PaymentStatus.COMPLETED.value,
                ))
                await tx.session.flush()
            return await _change(tx.session, order.id, True, self._paid())

        return await self._apply("mark_paid", work)

    async def mark_unpaid(self, order_id: int) -> Result[Applied, ShopError]:
        async def work(tx: Transaction) -> Result[_Change, ShopError]:
            order = await load_order(tx.session, order_id)
            if order is None:
                return Error(Errors.order_not_found(order_id))
            # Stock of a cancelled order is already back on the shelf
            if order.status == OrderStatus.CANCELLED.value:
                return Error(Errors.already_cancelled())
            if order.payment is not None:
                await move_payment(tx.session, order.payment.id, PaymentStatus.PENDING)
            await move_order(tx.session, order.id, OrderStatus.PENDING)
            return await _change(tx.session, order.id, True)

        return await self._apply("mark_unpaid", work)

    async def cancel(self, order_id: int, reason: str | None = None) -> Result[Applied, ShopError]:
        async def work(tx: Transaction) -> Result[_Change, ShopError]:
            order = await load_order(tx.session, order_id)
            if order is None:
                return Error(Errors.order_not_found(order_id))
            if not await cancel_and_release(tx.session, order.id):
                return Error(Errors.already_cancelled())
            if order.payment is not None:
                await move_payment(tx.session, order.payment.id, PaymentStatus.CANCELLED)
            return await _change(
                tx.session, order.id, True, self._cancelled(reason or DEFAULT_CANCEL_REASON)
            )

        return await self._apply("cancel", work)

    async def refund(self, order_id: int, reason: str | None = None) -> Result[Applied, ShopError]:
        async def work(tx: Transaction) -> Result[_Change, ShopError]:
            order = await load_order(tx.session, order_id)
            if order is None:
                return Error(Errors.order_not_found(order_id))
            if order.payment is None:
                return Error(Errors.payment_not_found())
            refunded = await move_payment(
                tx.session,
                order.payment.id,
                PaymentStatus.REFUNDED,
                only_from=[PaymentStatus.COMPLETED],
            )
            if not refunded:
                return Error(Errors.refund_not_allowed())
            await cancel_and_release(tx.session, order.id)
            return await _change(
                tx.session, order.id, True, self._cancelled(reason or DEFAULT_REFUND_REASON)
            )

        return await self._apply("refund", work)

    async def cancel_stale(self, older_than: timedelta = timedelta(days=7)) -> StaleSweep:
        """
        Cancel pending orders created before ``now - older_than``.

        One transaction per order; a failing order does not stop the sweep.
        """
        cutoff = datetime.now() - older_than
        reason = f"Payment not completed within {older_than.days} days"

        async def stale_ids(tx: Transaction) -> Result[list[int], ShopError]:
            rows = await tx.session.execute(
                select(OrderRow.id)
                .where(
                    OrderRow.status == OrderStatus.PENDING.value,
                    OrderRow.created_at < cutoff,
                )
                .order_by(OrderRow.id)
            )
            return Ok(list(rows.scalars()))

        match await atomically(self._session_factory, stale_ids):
            case Ok(ids):
                candidates = ids
            case Error(e):
                logger.error("stale_sweep_failed", code=e.code)
                return StaleSweep(cancelled=(), failed=())

        cancelled: list[int] = []
        failed: list[int] = []
        for order_id in candidates:
            match await self._cancel_stale_one(order_id, reason):
                case Ok(applied) if applied.changed:
                    cancelled.append(order_id)
                case Ok(_):
                    pass
                case Error(_):
                    failed.append(order_id)

        logger.info("stale_sweep_done", cancelled=len(cancelled), failed=len(failed))
        return StaleSweep(cancelled=tuple(cancelled), failed=tuple(failed))

    async def _cancel_stale_one(self, order_id: int, reason: str) -> Result[Applied, ShopError]:
        async def work(tx: Transaction) -> Result[_Change, ShopError]:
            changed = await cancel_and_release(
                tx.session, order_id, only_from=[OrderStatus.PENDING]
            )
            if changed:
                payment = await load_payment_by(tx.session, order_id=order_id)
                if payment is not None:
                    await move_payment(tx.session, payment.id, PaymentStatus.CANCELLED)
            return await _change(tx.session, order_id, changed, self._cancelled(reason))

        return await self._apply("cancel_stale", work)


async def _change(
    session: AsyncSession,
    order_id: int,
    changed: bool,
    notify: _Notify = None,
) -> Result[_Change, ShopError]:
    order = await load_order(session, order_id)
    if order is None:
        return Error(Errors.order_not_found(order_id))
    return Ok(_Change(Applied(order_view(order), changed), notify))


__all__ = (
    "Applied",
    "StaleSweep",
    "Reconciler",
    "DEFAULT_CANCEL_REASON",
    "DEFAULT_REFUND_REASON",
)
