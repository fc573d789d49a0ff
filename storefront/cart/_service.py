"""
Cart service — one cart per user, created on first add.
"""

from __future__ import annotations

from kungfu import Result, Ok, Error
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from storefront.db import (
    CartItemRow,
    CartRow,
    ProductRow,
    Transaction,
    atomically,
    cart_view,
    load_cart,
)
from storefront.domain import CartView, ShopError, Errors


class CartService:
    """
    Every call runs in its own transaction.

    Example:
        carts = CartService(session_factory)
        await carts.add_item(user_id=1, product_id=7, quantity=2)
        await carts.add_item(user_id=1, product_id=7, quantity=1)   # now 3
    """

    __slots__ = ("_session_factory",)

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def view(self, user_id: int) -> Result[CartView | None, ShopError]:
        """The user's cart, or None if they never added anything."""

        async def work(tx: Transaction) -> Result[CartView | None, ShopError]:
            cart = await load_cart(tx.session, user_id=user_id)
            return Ok(cart_view(cart) if cart is not None else None)

        return await atomically(self._session_factory, work)

    async def add_item(
        self, user_id: int, product_id: int, quantity: int
    ) -> Result[CartView, ShopError]:
        """Add a product, or bump its quantity if already present."""
        if quantity < 1:
            return Error(Errors.invalid_quantity(quantity))

        async def work(tx: Transaction) -> Result[CartView, ShopError]:
            product = await tx.session.get(ProductRow, product_id)
            if product is None:
                return Error(Errors.product_not_found(product_id))
            if not product.is_active:
                return Error(Errors.product_unavailable(product.name))

            cart = await _cart_for(tx.session, user_id, create=True)
            assert cart is not None
            item = await _item_in(tx.session, cart.id, product_id)
            if item is None:
                tx.session.add(
                    CartItemRow(cart_id=cart.id, product_id=product_id, quantity=quantity)
                )
            else:
                item.quantity += quantity
            await tx.session.flush()
            return await _reloaded(tx.session, cart.id)

        return await atomically(self._session_factory, work)

    async def update_item(
        self, user_id: int, product_id: int, quantity: int
    ) -> Result[CartView, ShopError]:
        """Set the quantity of a product already in the cart."""
        if quantity < 1:
            return Error(Errors.invalid_quantity(quantity))

        async def work(tx: Transaction) -> Result[CartView, ShopError]:
            cart = await _cart_for(tx.session, user_id, create=False)
            if cart is None:
                return Error(Errors.cart_not_found())
            item = await _item_in(tx.session, cart.id, product_id)
            if item is None:
                return Error(Errors.item_not_in_cart(product_id))
            item.quantity = quantity
            await tx.session.flush()
            return await _reloaded(tx.session, cart.id)

        return await atomically(self._session_factory, work)

    async def remove_item(self, user_id: int, product_id: int) -> Result[CartView, ShopError]:
        async def work(tx: Transaction) -> Result[CartView, ShopError]:
            cart = await _cart_for(tx.session, user_id, create=False)
            if cart is None:
                return Error(Errors.cart_not_found())
            item = await _item_in(tx.session, cart.id, product_id)
            if item is None:
                return Error(Errors.item_not_in_cart(product_id))
            await tx.session.delete(item)
            await tx.session.flush()
            return await _reloaded(tx.session, cart.id)

        return await atomically(self._session_factory, work)


# ═══════════════════════════════════════════════════════════════════════════════
# Helpers
# ═══════════════════════════════════════════════════════════════════════════════


async def _cart_for(session: AsyncSession, user_id: int, *, create: bool) -> CartRow | None:
    cart = (
        await session.execute(select(CartRow).where(CartRow.user_id == user_id))
    ).scalar_one_or_none()
    if cart is None and create:
        cart = CartRow(user_id=user_id)
        session.add(cart)
        await session.flush()
    return cart


async def _item_in(session: AsyncSession, cart_id: int, product_id: int) -> CartItemRow | None:
    return (
        await session.execute(
            select(CartItemRow).where(
                CartItemRow.cart_id == cart_id,
                CartItemRow.product_id == product_id,
            )
        )
    ).scalar_one_or_none()


async def _reloaded(session: AsyncSession, cart_id: int) -> Result[CartView, ShopError]:
    cart = await load_cart(session, cart_id=cart_id)
    if cart is None:
        return Error(Errors.cart_not_found())
    return Ok(cart_view(cart))


__all__ = ("CartService",)
