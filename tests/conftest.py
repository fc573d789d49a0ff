"""Pytest fixtures for storefront tests."""

import json
from decimal import Decimal
from typing import Any

import pytest
from kungfu import Ok, Error
from sqlalchemy import select

from storefront import Settings, open_shop
from storefront.db import OrderRow, PaymentRow, ProductRow
from storefront.notify import RecordingNotifier
from storefront.payments import InMemoryProcessor

WEBHOOK_SECRET = "whsec_test"


@pytest.fixture
def settings():
    """Offline checkout, in-memory database."""
    return Settings(database_url="sqlite+aiosqlite:///:memory:", admin_key="admin-secret")


@pytest.fixture
def processor():
    return InMemoryProcessor()


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
async def shop(settings, processor, notifier):
    shop = await open_shop(settings, processor=processor, notifier=notifier)
    yield shop
    await shop.close()


@pytest.fixture
async def products(shop):
    """Seed the catalog. Returns product ids by short name."""
    rows = {
        "A": ProductRow(name="Widget", price=Decimal("10.00"), stock=5, is_active=True),
        "B": ProductRow(name="Gadget", price=Decimal("5.00"), stock=3, is_active=True),
        "C": ProductRow(name="Gizmo", price=Decimal("2.50"), stock=10, is_active=True),
        "retired": ProductRow(name="Relic", price=Decimal("1.00"), stock=10, is_active=False),
    }
    async with shop.session_factory() as session:
        session.add_all(rows.values())
        await session.commit()
        return {name: row.id for name, row in rows.items()}


# ═══════════════════════════════════════════════════════════════════════════════
# Helpers
# ═══════════════════════════════════════════════════════════════════════════════


async def stock_of(shop, product_id: int) -> int:
    async with shop.session_factory() as session:
        return (
            await session.execute(select(ProductRow.stock).where(ProductRow.id == product_id))
        ).scalar_one()


async def order_status(shop, order_id: int) -> str:
    async with shop.session_factory() as session:
        return (
            await session.execute(select(OrderRow.status).where(OrderRow.id == order_id))
        ).scalar_one()


async def payment_status(shop, order_id: int) -> str:
    async with shop.session_factory() as session:
        return (
            await session.execute(select(PaymentRow.status).where(PaymentRow.order_id == order_id))
        ).scalar_one()


def expect_ok(result):
    match result:
        case Ok(value):
            return value
        case Error(e):
            pytest.fail(f"expected Ok, got Error({e!r})")


def expect_error(result):
    match result:
        case Error(e):
            return e
        case Ok(value):
            pytest.fail(f"expected Error, got Ok({value!r})")


async def fill_cart(shop, user_id: int, *lines: tuple[int, int]) -> None:
    for product_id, quantity in lines:
        expect_ok(await shop.carts.add_item(user_id, product_id, quantity))


async def place_order(shop, user_id: int, *lines: tuple[int, int]):
    """Fill a cart and check out. Returns the checkout result value."""
    await fill_cart(shop, user_id, *lines)
    return expect_ok(await shop.checkout.checkout(user_id))


def event_body(event_id: str, event_type: str, obj: dict[str, Any]) -> bytes:
    return json.dumps({"id": event_id, "type": event_type, "data": {"object": obj}}).encode()
