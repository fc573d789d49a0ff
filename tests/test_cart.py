"""Tests for the cart service."""

from decimal import Decimal

from .conftest import expect_error, expect_ok


class TestView:
    async def test_no_cart_yet(self, shop, products):
        assert expect_ok(await shop.carts.view(user_id=1)) is None

    async def test_view_after_add(self, shop, products):
        await shop.carts.add_item(1, products["A"], 2)

        cart = expect_ok(await shop.carts.view(1))
        assert cart.user_id == 1
        assert cart.item_count == 2
        assert cart.subtotal == Decimal("20.00")
        assert cart.lines[0].name == "Widget"


class TestAddItem:
    async def test_adding_same_product_accumulates(self, shop, products):
        await shop.carts.add_item(1, products["A"], 2)
        cart = expect_ok(await shop.carts.add_item(1, products["A"], 1))

        assert len(cart.lines) == 1
        assert cart.lines[0].quantity == 3

    async def test_one_cart_per_user(self, shop, products):
        first = expect_ok(await shop.carts.add_item(1, products["A"], 1))
        second = expect_ok(await shop.carts.add_item(1, products["B"], 1))
        other = expect_ok(await shop.carts.add_item(2, products["B"], 1))

        assert first.id == second.id
        assert other.id != first.id

    async def test_zero_quantity_rejected(self, shop, products):
        error = expect_error(await shop.carts.add_item(1, products["A"], 0))
        assert error.code == "INVALID_QUANTITY"

    async def test_unknown_product(self, shop, products):
        error = expect_error(await shop.carts.add_item(1, 9999, 1))
        assert error.code == "PRODUCT_NOT_FOUND"

    async def test_inactive_product(self, shop, products):
        error = expect_error(await shop.carts.add_item(1, products["retired"], 1))
        assert error.code == "PRODUCT_UNAVAILABLE"
        assert error.message == "Product Relic is no longer available"

    async def test_more_than_stock_is_allowed_but_flagged(self, shop, products):
        cart = expect_ok(await shop.carts.add_item(1, products["B"], 10))
        assert cart.lines[0].in_stock is False


class TestUpdateAndRemove:
    async def test_update_sets_quantity(self, shop, products):
        await shop.carts.add_item(1, products["A"], 2)
        cart = expect_ok(await shop.carts.update_item(1, products["A"], 5))
        assert cart.lines[0].quantity == 5

    async def test_update_missing_item(self, shop, products):
        await shop.carts.add_item(1, products["A"], 1)
        error = expect_error(await shop.carts.update_item(1, products["B"], 2))
        assert error.code == "ITEM_NOT_IN_CART"

    async def test_update_without_cart(self, shop, products):
        error = expect_error(await shop.carts.update_item(1, products["A"], 2))
        assert error.code == "CART_NOT_FOUND"

    async def test_remove(self, shop, products):
        await shop.carts.add_item(1, products["A"], 1)
        await shop.carts.add_item(1, products["B"], 1)

        cart = expect_ok(await shop.carts.remove_item(1, products["A"]))
        assert [line.product_id for line in cart.lines] == [products["B"]]

    async def test_remove_missing_item(self, shop, products):
        await shop.carts.add_item(1, products["A"], 1)
        error = expect_error(await shop.carts.remove_item(1, products["C"]))
        assert error.code == "ITEM_NOT_IN_CART"
