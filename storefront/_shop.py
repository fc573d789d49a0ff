"""
Shop — wires settings, database, processor and services together.
"""

from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from storefront.cart import CartService
from storefront.checkout import CheckoutService
from storefront.config import Settings
from storefront.db import create_database
from storefront.logging import get_logger
from storefront.notify import LogNotifier, Notifier
from storefront.payments import InMemoryProcessor, PaymentProcessor, StripeProcessor
from storefront.reconcile import OrderQueries, Reconciler
from storefront.webhooks import WebhookReceiver, event_store

logger = get_logger("shop")


@dataclass(frozen=True, slots=True)
class Shop:
    settings: Settings
    session_factory: async_sessionmaker[AsyncSession]
    engine: AsyncEngine
    processor: PaymentProcessor
    notifier: Notifier
    carts: CartService
    checkout: CheckoutService
    reconciler: Reconciler
    orders: OrderQueries
    webhooks: WebhookReceiver

    async def close(self) -> None:
        await self.engine.dispose()


async def open_shop(
    settings: Settings | None = None,
    *,
    processor: PaymentProcessor | None = None,
    notifier: Notifier | None = None,
) -> Shop:
    """
    Example:
        shop = await open_shop(Settings.from_env())
        app = create_app(shop)
    """
    settings = settings if settings is not None else Settings.from_env()
    session_factory, engine = await create_database(settings.database_url)

    if processor is None:
        if settings.stripe_secret_key:
            processor = StripeProcessor(
                api_key=settings.stripe_secret_key,
                success_url=settings.success_url,
                cancel_url=settings.cancel_url,
                currency=settings.currency,
            )
        else:
            logger.warning("stripe_not_configured", fallback="in_memory_processor")
            processor = InMemoryProcessor()
    notifier = notifier if notifier is not None else LogNotifier()

    reconciler = Reconciler(session_factory, processor, notifier)
    return Shop(
        settings=settings,
        session_factory=session_factory,
        engine=engine,
        processor=processor,
        notifier=notifier,
        carts=CartService(session_factory),
        checkout=CheckoutService(session_factory, processor, settings),
        reconciler=reconciler,
        orders=OrderQueries(session_factory),
        webhooks=WebhookReceiver(
            reconciler,
            processor,
            event_store(session_factory, engine.dialect.name),
            settings,
        ),
    )


__all__ = ("Shop", "open_shop")
