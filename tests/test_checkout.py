"""Tests for checkout: placement, reservation and rollback."""

from decimal import Decimal

import pytest
from kungfu import Error
from sqlalchemy import func, select

from storefront import PaymentStyle
from storefront.db import CartRow, OrderRow, PaymentRow, ProductRow, Transaction
from storefront.domain import (
    Errors,
    OfflineCheckout,
    OrderStatus,
    PaymentMethod,
    PaymentStatus,
    RedirectCheckout,
)
from storefront.inventory import InventoryLedger

from .conftest import expect_error, expect_ok, fill_cart, order_status, place_order, stock_of


async def count(shop, model) -> int:
    async with shop.session_factory() as session:
        return (await session.execute(select(func.count()).select_from(model))).scalar_one()


class TestOfflineCheckout:
    async def test_places_order_and_reserves_stock(self, shop, products):
        await fill_cart(shop, 1, (products["A"], 2), (products["B"], 1))

        result = expect_ok(await shop.checkout.checkout(1, notes="leave at door"))

        assert isinstance(result, OfflineCheckout)
        order = result.order
        assert order.total == Decimal("25.00")
        assert order.status is OrderStatus.PENDING
        assert order.notes == "leave at door"
        assert [(i.product_id, i.quantity, i.unit_price) for i in order.items] == [
            (products["A"], 2, Decimal("10.00")),
            (products["B"], 1, Decimal("5.00")),
        ]
        assert result.payment.status is PaymentStatus.PENDING
        assert result.payment.method is PaymentMethod.OFFLINE
        assert result.payment.amount == Decimal("25.00")

        assert await stock_of(shop, products["A"]) == 3
        assert await stock_of(shop, products["B"]) == 2
        assert await count(shop, CartRow) == 0

    async def test_item_prices_are_snapshots(self, shop, products):
        placed = await place_order(shop, 1, (products["A"], 1))

        async with shop.session_factory() as session:
            product = await session.get(ProductRow, products["A"])
            product.price = Decimal("99.00")
            await session.commit()

        order = expect_ok(await shop.orders.get_order(1, placed.order.id))
        assert order.items[0].unit_price == Decimal("10.00")
        assert order.total == Decimal("10.00")

    async def test_checkout_by_cart_id(self, shop, products):
        await fill_cart(shop, 1, (products["C"], 2))
        cart = expect_ok(await shop.carts.view(1))

        result = expect_ok(await shop.checkout.checkout(1, cart_id=cart.id))
        assert result.order.total == Decimal("5.00")


class TestCheckoutRejections:
    async def test_insufficient_stock_changes_nothing(self, shop, products):
        await fill_cart(shop, 1, (products["B"], 4))

        error = expect_error(await shop.checkout.checkout(1))

        assert error.code == "INSUFFICIENT_STOCK"
        assert error.message == "Insufficient stock for Gadget"
        assert await stock_of(shop, products["B"]) == 3
        assert await count(shop, OrderRow) == 0
        assert await count(shop, CartRow) == 1

    async def test_sold_out_product(self, shop, products):
        await fill_cart(shop, 1, (products["C"], 1))
        async with shop.session_factory() as session:
            (await session.get(ProductRow, products["C"])).stock = 0
            await session.commit()

        error = expect_error(await shop.checkout.checkout(1))

        assert error.code == "INSUFFICIENT_STOCK"
        assert await stock_of(shop, products["C"]) == 0
        assert await count(shop, OrderRow) == 0

    async def test_no_cart(self, shop, products):
        error = expect_error(await shop.checkout.checkout(1))
        assert error.code == "CART_NOT_FOUND"

    async def test_empty_cart(self, shop, products):
        await fill_cart(shop, 1, (products["A"], 1))
        await shop.carts.remove_item(1, products["A"])

        error = expect_error(await shop.checkout.checkout(1))
        assert error.code == "CART_EMPTY"

    async def test_someone_elses_cart(self, shop, products):
        await fill_cart(shop, 1, (products["A"], 1))
        cart = expect_ok(await shop.carts.view(1))

        error = expect_error(await shop.checkout.checkout(2, cart_id=cart.id))
        assert error.code == "UNAUTHORIZED"
        assert await stock_of(shop, products["A"]) == 5

    async def test_deactivated_product(self, shop, products):
        await fill_cart(shop, 1, (products["A"], 1))
        async with shop.session_factory() as session:
            (await session.get(ProductRow, products["A"])).is_active = False
            await session.commit()

        error = expect_error(await shop.checkout.checkout(1))
        assert error.code == "PRODUCT_UNAVAILABLE"

    async def test_notes_too_long(self, shop, products):
        await fill_cart(shop, 1, (products["A"], 1))
        error = expect_error(await shop.checkout.checkout(1, notes="x" * 501))
        assert error.code == "INVALID_PAYLOAD"
        assert await count(shop, OrderRow) == 0


class TestAtomicity:
    async def test_third_reservation_failure_rolls_back_everything(
        self, shop, products, monkeypatch
    ):
        await fill_cart(
            shop, 1, (products["A"], 1), (products["B"], 1), (products["C"], 1)
        )
        original = InventoryLedger.reserve

        async def failing_reserve(self, product_id, quantity):
            if product_id == products["C"]:
                return Error(Errors.insufficient_stock("Gizmo"))
            return await original(self, product_id, quantity)

        monkeypatch.setattr(InventoryLedger, "reserve", failing_reserve)

        error = expect_error(await shop.checkout.checkout(1))

        assert error.code == "INSUFFICIENT_STOCK"
        assert await stock_of(shop, products["A"]) == 5
        assert await stock_of(shop, products["B"]) == 3
        assert await stock_of(shop, products["C"]) == 10
        assert await count(shop, OrderRow) == 0
        assert await count(shop, PaymentRow) == 0
        assert await count(shop, CartRow) == 1


class TestRedirectCheckout:
    @pytest.fixture
    def settings(self, settings):
        return settings.with_(payment_style=PaymentStyle.REDIRECT)

    async def test_returns_payment_url(self, shop, products, processor):
        await fill_cart(shop, 1, (products["A"], 2), (products["B"], 1))

        result = expect_ok(await shop.checkout.checkout(1))

        assert isinstance(result, RedirectCheckout)
        assert result.total == Decimal("25.00")
        assert result.payment_url.startswith(processor.base_url)

        session_id = result.payment_url.rsplit("/", 1)[-1]
        assert processor.sessions[session_id].metadata == {
            "order_id": str(result.order_id),
            "user_id": "1",
        }

        payment = expect_ok(await shop.orders.get_payment(result.order_id))
        assert payment.method is PaymentMethod.STRIPE
        assert payment.status is PaymentStatus.PENDING
        assert payment.checkout_session_id == session_id
        assert payment.checkout_url == result.payment_url

    async def test_processor_failure_rolls_back(self, shop, products, processor):
        processor.fail_create = True
        await fill_cart(shop, 1, (products["A"], 2))

        error = expect_error(await shop.checkout.checkout(1))

        assert error.code == "PROCESSOR_FAILURE"
        assert error.message == Errors.processor_failure().message
        assert await stock_of(shop, products["A"]) == 5
        assert await count(shop, OrderRow) == 0
        assert await count(shop, CartRow) == 1
        assert processor.sessions == {}

    async def test_commit_failure_expires_session(self, shop, products, processor, monkeypatch):
        await fill_cart(shop, 1, (products["A"], 1))

        async def broken_commit(self):
            raise RuntimeError("disk full")

        monkeypatch.setattr(Transaction, "commit", broken_commit)

        error = expect_error(await shop.checkout.checkout(1))
        monkeypatch.undo()

        assert error.code == "INTEGRITY_FAILURE"
        assert len(processor.expired) == 1
        assert await stock_of(shop, products["A"]) == 5
        assert await count(shop, OrderRow) == 0


class TestSummary:
    async def test_summary_totals(self, shop, products):
        await fill_cart(shop, 1, (products["A"], 2), (products["B"], 1))

        summary = expect_ok(await shop.checkout.summarize(1))

        assert summary.subtotal == Decimal("25.00")
        assert summary.tax == Decimal("2.50")
        assert summary.shipping == Decimal("0.00")
        assert summary.total == Decimal("27.50")
        assert summary.all_in_stock is True

    async def test_summary_flags_short_stock_without_reserving(self, shop, products):
        await fill_cart(shop, 1, (products["B"], 5))

        summary = expect_ok(await shop.checkout.summarize(1))

        assert summary.all_in_stock is False
        assert await stock_of(shop, products["B"]) == 3

    async def test_summary_empty_cart(self, shop, products):
        error = expect_error(await shop.checkout.summarize(1))
        assert error.code == "CART_NOT_FOUND"


class TestOrderQueries:
    async def test_list_and_get(self, shop, products):
        first = await place_order(shop, 1, (products["A"], 1))
        second = await place_order(shop, 1, (products["B"], 1))
        await place_order(shop, 2, (products["C"], 1))

        orders = expect_ok(await shop.orders.list_orders(1))
        assert {o.id for o in orders} == {first.order.id, second.order.id}

        order = expect_ok(await shop.orders.get_order(1, first.order.id))
        assert order.payment is not None

    async def test_other_users_order_is_not_found(self, shop, products):
        placed = await place_order(shop, 1, (products["A"], 1))

        error = expect_error(await shop.orders.get_order(2, placed.order.id))
        assert error.code == "ORDER_NOT_FOUND"
        assert await order_status(shop, placed.order.id) == "pending"
