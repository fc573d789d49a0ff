"""
Notifications — fire-and-forget, dispatched after commit.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Protocol

from storefront.domain import OrderView
from storefront.logging import get_logger

logger = get_logger("notify")


class Notifier(Protocol):
    async def order_paid(self, order: OrderView) -> None: ...

    async def order_cancelled(self, order: OrderView, reason: str) -> None: ...


class LogNotifier:
    """Writes notifications to the log. Stand-in for email delivery."""

    async def order_paid(self, order: OrderView) -> None:
        logger.info("notify_order_paid", order_id=order.id, user_id=order.user_id)

    async def order_cancelled(self, order: OrderView, reason: str) -> None:
        logger.info(
            "notify_order_cancelled", order_id=order.id, user_id=order.user_id, reason=reason
        )


@dataclass
class RecordingNotifier:
    """Keeps what it was asked to send."""

    paid: list[int] = field(default_factory=list)
    cancelled: list[tuple[int, str]] = field(default_factory=list)
    fail: bool = False

    async def order_paid(self, order: OrderView) -> None:
        if self.fail:
            raise RuntimeError("mail server down")
        self.paid.append(order.id)

    async def order_cancelled(self, order: OrderView, reason: str) -> None:
        if self.fail:
            raise RuntimeError("mail server down")
        self.cancelled.append((order.id, reason))


async def dispatch_paid(notifier: Notifier, order: OrderView) -> None:
    try:
        await notifier.order_paid(order)
    except Exception:
        logger.exception("notification_failed", kind="order_paid", order_id=order.id)


async def dispatch_cancelled(notifier: Notifier, order: OrderView, reason: str) -> None:
    try:
        await notifier.order_cancelled(order, reason)
    except Exception:
        logger.exception("notification_failed", kind="order_cancelled", order_id=order.id)


__all__ = (
    "Notifier",
    "LogNotifier",
    "RecordingNotifier",
    "dispatch_paid",
    "dispatch_cancelled",
)
