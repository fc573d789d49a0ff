"""Concurrent checkouts against a shared file database."""

import asyncio
from decimal import Decimal

import pytest
from kungfu import Ok

from storefront.db import ProductRow

from .conftest import expect_ok, fill_cart, stock_of


@pytest.fixture
def settings(settings, tmp_path):
    return settings.with_(database_url=f"sqlite+aiosqlite:///{tmp_path / 'shop.db'}")


@pytest.fixture
async def scarce(shop):
    async with shop.session_factory() as session:
        row = ProductRow(name="Last One", price=Decimal("42.00"), stock=3, is_active=True)
        session.add(row)
        await session.commit()
        return row.id


class TestConcurrentCheckout:
    async def test_stock_never_oversold(self, shop, scarce):
        buyers = range(1, 9)
        for user_id in buyers:
            await fill_cart(shop, user_id, (scarce, 1))

        results = await asyncio.gather(*(shop.checkout.checkout(user_id) for user_id in buyers))

        placed = sum(1 for r in results if isinstance(r, Ok))
        remaining = await stock_of(shop, scarce)
        assert remaining >= 0
        assert placed <= 3
        assert placed + remaining == 3

    async def test_double_cancel_releases_once(self, shop, scarce):
        await fill_cart(shop, 1, (scarce, 2))
        placed = expect_ok(await shop.checkout.checkout(1))

        await asyncio.gather(
            shop.reconciler.cancel(placed.order.id),
            shop.reconciler.cancel(placed.order.id),
            shop.reconciler.cancel(placed.order.id),
        )

        assert await stock_of(shop, scarce) == 3
