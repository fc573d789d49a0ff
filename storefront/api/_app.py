"""
HTTP surface.

Every handler follows the same shape: decode the request with ``to_domain()``,
run one service call, encode the ``Result`` with ``from_domain()``. Failures
travel as ``ShopFailure`` and are rendered by a single exception handler.

Identity:
    X-User-Id    acting customer (set by the upstream auth layer)
    X-Admin-Key  operator routes
"""

from __future__ import annotations

import hmac
from datetime import timedelta
from typing import Annotated

import fastapi
from fastapi import Header, Request
from fastapi.responses import JSONResponse
from kungfu import Result, Ok, Error

from storefront._shop import Shop
from storefront.api._models import (
    CartItemRequest,
    CartResponse,
    CheckoutRequestBody,
    ErrorResponse,
    OfflineCheckoutResponse,
    OrderActionResponse,
    OrderResponse,
    PaymentResponse,
    ReasonRequest,
    RedirectCheckoutResponse,
    StaleSweepRequest,
    StaleSweepResponse,
    SummaryResponse,
    VerifyPaymentRequest,
    WebhookResponse,
)
from storefront.domain import (
    ErrorKind,
    Errors,
    OfflineCheckout,
    RedirectCheckout,
    ShopError,
    ShopFailure,
)
from storefront.logging import get_logger
from storefront.reconcile import Applied

logger = get_logger("api")


# ═══════════════════════════════════════════════════════════════════════════════
# Error rendering
# ═══════════════════════════════════════════════════════════════════════════════

_STATUS_BY_KIND: dict[ErrorKind, int] = {
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.UNAUTHORIZED: 403,
    ErrorKind.VALIDATION: 422,
    ErrorKind.BUSINESS_RULE: 400,
    ErrorKind.EXTERNAL_SERVICE: 500,
    ErrorKind.INTEGRITY: 500,
}

_BAD_REQUEST_CODES = frozenset({"INVALID_PAYLOAD", "INVALID_SIGNATURE"})


def status_for(error: ShopError) -> int:
    if error.code in _BAD_REQUEST_CODES:
        return 400
    return _STATUS_BY_KIND.get(error.kind, 500)


def unwrap[T](result: Result[T, ShopError]) -> T:
    match result:
        case Ok(value):
            return value
        case Error(e):
            raise ShopFailure(e)


async def _render_failure(request: Request, exc: Exception) -> JSONResponse:
    assert isinstance(exc, ShopFailure)
    status = status_for(exc.error)
    if status >= 500:
        logger.error("request_failed", path=request.url.path, code=exc.error.code)
    return JSONResponse(
        status_code=status,
        content=ErrorResponse.from_domain(exc.error).model_dump(),
    )


# ═══════════════════════════════════════════════════════════════════════════════
# Identity
# ═══════════════════════════════════════════════════════════════════════════════


def acting_user(x_user_id: Annotated[int | None, Header()] = None) -> int:
    if x_user_id is None:
        raise ShopFailure(Errors.unauthorized("Missing user identity"))
    return x_user_id


UserId = Annotated[int, fastapi.Depends(acting_user)]


def _admin_guard(shop: Shop):
    def require_admin(x_admin_key: Annotated[str | None, Header()] = None) -> None:
        expected = shop.settings.admin_key
        if x_admin_key is None or not hmac.compare_digest(x_admin_key, expected):
            raise ShopFailure(Errors.unauthorized("Admin access required"))

    return require_admin


# ═══════════════════════════════════════════════════════════════════════════════
# Application
# ═══════════════════════════════════════════════════════════════════════════════


def create_app(shop: Shop) -> fastapi.FastAPI:
    """
    Example:
        shop = await open_shop(Settings.from_env())
        app = create_app(shop)
    """
    app = fastapi.FastAPI(title="storefront")
    app.state.shop = shop
    app.add_exception_handler(ShopFailure, _render_failure)

    admin = fastapi.APIRouter(prefix="/admin", dependencies=[fastapi.Depends(_admin_guard(shop))])

    # ─── cart ─────────────────────────────────────────────────────────────────

    @app.get("/cart")
    async def get_cart(user_id: UserId) -> CartResponse:
        return CartResponse.from_domain(unwrap(await shop.carts.view(user_id)))

    @app.post("/cart/items", status_code=201)
    async def add_cart_item(req: CartItemRequest, user_id: UserId) -> CartResponse:
        product_id, quantity = req.to_domain()
        return CartResponse.from_domain(
            unwrap(await shop.carts.add_item(user_id, product_id, quantity))
        )

    @app.put("/cart/items")
    async def update_cart_item(req: CartItemRequest, user_id: UserId) -> CartResponse:
        product_id, quantity = req.to_domain()
        return CartResponse.from_domain(
            unwrap(await shop.carts.update_item(user_id, product_id, quantity))
        )

    @app.delete("/cart/items/{product_id}")
    async def remove_cart_item(product_id: int, user_id: UserId) -> CartResponse:
        return CartResponse.from_domain(unwrap(await shop.carts.remove_item(user_id, product_id)))

    # ─── checkout ─────────────────────────────────────────────────────────────

    @app.get("/checkout/summary")
    async def checkout_summary(user_id: UserId, cart_id: int | None = None) -> SummaryResponse:
        return SummaryResponse.from_domain(unwrap(await shop.checkout.summarize(user_id, cart_id)))

    @app.post("/checkout", status_code=201)
    async def place_order(
        req: CheckoutRequestBody, user_id: UserId
    ) -> OfflineCheckoutResponse | RedirectCheckoutResponse:
        cart_id, notes = req.to_domain()
        match unwrap(await shop.checkout.checkout(user_id, cart_id, notes)):
            case OfflineCheckout() as done:
                return OfflineCheckoutResponse.from_domain(done)
            case RedirectCheckout() as done:
                return RedirectCheckoutResponse.from_domain(done)

    @app.post("/checkout/verify-payment")
    async def verify_payment(req: VerifyPaymentRequest, user_id: UserId) -> OrderActionResponse:
        return _action(unwrap(await shop.reconciler.verify_payment(user_id, req.session_id)))

    # ─── webhooks ─────────────────────────────────────────────────────────────

    @app.post("/webhooks/stripe")
    async def stripe_webhook(
        request: Request,
        stripe_signature: Annotated[str | None, Header()] = None,
    ) -> WebhookResponse:
        payload = await request.body()
        return WebhookResponse.from_domain(unwrap(await shop.webhooks.receive(payload, stripe_signature)))

    # ─── orders ───────────────────────────────────────────────────────────────

    @app.get("/orders")
    async def list_orders(user_id: UserId) -> list[OrderResponse]:
        return [OrderResponse.from_domain(o) for o in unwrap(await shop.orders.list_orders(user_id))]

    @app.get("/orders/{order_id}")
    async def get_order(order_id: int, user_id: UserId) -> OrderResponse:
        return OrderResponse.from_domain(unwrap(await shop.orders.get_order(user_id, order_id)))

    # ─── admin ────────────────────────────────────────────────────────────────

    @admin.post("/orders/{order_id}/mark-as-paid")
    async def mark_as_paid(order_id: int) -> OrderActionResponse:
        return _action(unwrap(await shop.reconciler.mark_paid(order_id)))

    @admin.post("/orders/{order_id}/mark-as-unpaid")
    async def mark_as_unpaid(order_id: int) -> OrderActionResponse:
        return _action(unwrap(await shop.reconciler.mark_unpaid(order_id)))

    @admin.post("/orders/{order_id}/cancel")
    async def cancel_order(order_id: int, req: ReasonRequest | None = None) -> OrderActionResponse:
        reason = req.reason if req is not None else None
        return _action(unwrap(await shop.reconciler.cancel(order_id, reason)))

    @admin.post("/orders/{order_id}/payment/refund")
    async def refund_payment(order_id: int, req: ReasonRequest | None = None) -> OrderActionResponse:
        reason = req.reason if req is not None else None
        return _action(unwrap(await shop.reconciler.refund(order_id, reason)))

    @admin.get("/orders/{order_id}/payment")
    async def get_payment(order_id: int) -> PaymentResponse:
        return PaymentResponse.from_domain(unwrap(await shop.orders.get_payment(order_id)))

    @admin.post("/orders/cancel-stale")
    async def cancel_stale(req: StaleSweepRequest | None = None) -> StaleSweepResponse:
        days = req.days if req is not None and req.days is not None else shop.settings.stale_order_days
        sweep = await shop.reconciler.cancel_stale(timedelta(days=days))
        return StaleSweepResponse.from_domain(sweep)

    app.include_router(admin)
    return app


def _action(applied: Applied) -> OrderActionResponse:
    return OrderActionResponse(changed=applied.changed, order=OrderResponse.from_domain(applied.order))


__all__ = ("create_app", "status_for", "unwrap", "acting_user")
