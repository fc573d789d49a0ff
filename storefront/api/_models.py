"""
Request / response codecs.

Requests expose ``to_domain()``, responses ``from_domain()``.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, Field

from storefront.domain import (
    CartLine,
    CartView,
    CheckoutSummary,
    OfflineCheckout,
    OrderView,
    PaymentView,
    RedirectCheckout,
    ShopError,
)
from storefront.reconcile import StaleSweep
from storefront.webhooks import WebhookAck


# ═══════════════════════════════════════════════════════════════════════════════
# Errors
# ═══════════════════════════════════════════════════════════════════════════════


class ErrorResponse(BaseModel):
    success: bool = False
    reason: str
    message: str

    @classmethod
    def from_domain(cls, error: ShopError) -> ErrorResponse:
        return cls(reason=error.code, message=error.message)


# ═══════════════════════════════════════════════════════════════════════════════
# Cart
# ═══════════════════════════════════════════════════════════════════════════════


class CartItemRequest(BaseModel):
    product_id: int
    quantity: int = Field(default=1, ge=1)

    def to_domain(self) -> tuple[int, int]:
        return self.product_id, self.quantity


class CartLineResponse(BaseModel):
    product_id: int
    name: str
    unit_price: Decimal
    quantity: int
    line_total: Decimal
    in_stock: bool
    available_stock: int

    @classmethod
    def from_domain(cls, line: CartLine) -> CartLineResponse:
        return cls(
            product_id=line.product_id,
            name=line.name,
            unit_price=line.unit_price,
            quantity=line.quantity,
            line_total=line.line_total,
            in_stock=line.in_stock,
            available_stock=line.available_stock,
        )


class CartResponse(BaseModel):
    id: int | None
    items: list[CartLineResponse]
    item_count: int
    subtotal: Decimal

    @classmethod
    def from_domain(cls, cart: CartView | None) -> CartResponse:
        if cart is None:
            return cls(id=None, items=[], item_count=0, subtotal=Decimal("0.00"))
        return cls(
            id=cart.id,
            items=[CartLineResponse.from_domain(line) for line in cart.lines],
            item_count=cart.item_count,
            subtotal=cart.subtotal,
        )


class SummaryResponse(BaseModel):
    cart_id: int
    items: list[CartLineResponse]
    subtotal: Decimal
    tax: Decimal
    shipping: Decimal
    total: Decimal
    all_in_stock: bool

    @classmethod
    def from_domain(cls, summary: CheckoutSummary) -> SummaryResponse:
        return cls(
            cart_id=summary.cart_id,
            items=[CartLineResponse.from_domain(line) for line in summary.lines],
            subtotal=summary.subtotal,
            tax=summary.tax,
            shipping=summary.shipping,
            total=summary.total,
            all_in_stock=summary.all_in_stock,
        )


# ═══════════════════════════════════════════════════════════════════════════════
# Orders / Payments
# ═══════════════════════════════════════════════════════════════════════════════


class PaymentResponse(BaseModel):
    id: int
    order_id: int
    amount: Decimal
    payment_method: str
    status: str
    stripe_checkout_session_id: str | None
    stripe_payment_intent_id: str | None
    stripe_checkout_url: str | None
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_domain(cls, payment: PaymentView) -> PaymentResponse:
        return cls(
            id=payment.id,
            order_id=payment.order_id,
            amount=payment.amount,
            payment_method=payment.method.value,
            status=payment.status.value,
            stripe_checkout_session_id=payment.checkout_session_id,
            stripe_payment_intent_id=payment.payment_intent_id,
            stripe_checkout_url=payment.checkout_url,
            created_at=payment.created_at,
            updated_at=payment.updated_at,
        )


class OrderItemResponse(BaseModel):
    product_id: int
    quantity: int
    price: Decimal
    line_total: Decimal


class OrderResponse(BaseModel):
    id: int
    user_id: int
    total: Decimal
    status: str
    notes: str | None
    items: list[OrderItemResponse]
    payment: PaymentResponse | None
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_domain(cls, order: OrderView) -> OrderResponse:
        return cls(
            id=order.id,
            user_id=order.user_id,
            total=order.total,
            status=order.status.value,
            notes=order.notes,
            items=[
                OrderItemResponse(
                    product_id=item.product_id,
                    quantity=item.quantity,
                    price=item.unit_price,
                    line_total=item.line_total,
                )
                for item in order.items
            ],
            payment=PaymentResponse.from_domain(order.payment) if order.payment else None,
            created_at=order.created_at,
            updated_at=order.updated_at,
        )


# ═══════════════════════════════════════════════════════════════════════════════
# Checkout
# ═══════════════════════════════════════════════════════════════════════════════


class CheckoutRequestBody(BaseModel):
    cart_id: int | None = None
    notes: str | None = Field(default=None, max_length=500)

    def to_domain(self) -> tuple[int | None, str | None]:
        return self.cart_id, self.notes


class OfflineCheckoutResponse(BaseModel):
    success: bool = True
    order: OrderResponse
    payment: PaymentResponse

    @classmethod
    def from_domain(cls, result: OfflineCheckout) -> OfflineCheckoutResponse:
        return cls(
            order=OrderResponse.from_domain(result.order),
            payment=PaymentResponse.from_domain(result.payment),
        )


class RedirectCheckoutResponse(BaseModel):
    success: bool = True
    order_id: int
    payment_url: str
    total: Decimal

    @classmethod
    def from_domain(cls, result: RedirectCheckout) -> RedirectCheckoutResponse:
        return cls(order_id=result.order_id, payment_url=result.payment_url, total=result.total)


class VerifyPaymentRequest(BaseModel):
    session_id: str = Field(min_length=1)


class OrderActionResponse(BaseModel):
    success: bool = True
    changed: bool
    order: OrderResponse


# ═══════════════════════════════════════════════════════════════════════════════
# Admin
# ═══════════════════════════════════════════════════════════════════════════════


class ReasonRequest(BaseModel):
    reason: str | None = Field(default=None, max_length=500)


class StaleSweepRequest(BaseModel):
    days: int | None = Field(default=None, ge=1)


class StaleSweepResponse(BaseModel):
    cancelled: list[int]
    failed: list[int]

    @classmethod
    def from_domain(cls, sweep: StaleSweep) -> StaleSweepResponse:
        return cls(cancelled=list(sweep.cancelled), failed=list(sweep.failed))


class WebhookResponse(BaseModel):
    success: bool = True
    status: str

    @classmethod
    def from_domain(cls, ack: WebhookAck) -> WebhookResponse:
        return cls(status=ack.value)


__all__ = (
    "ErrorResponse",
    "CartItemRequest",
    "CartLineResponse",
    "CartResponse",
    "SummaryResponse",
    "PaymentResponse",
    "OrderItemResponse",
    "OrderResponse",
    "CheckoutRequestBody",
    "OfflineCheckoutResponse",
    "RedirectCheckoutResponse",
    "VerifyPaymentRequest",
    "OrderActionResponse",
    "ReasonRequest",
    "StaleSweepRequest",
    "StaleSweepResponse",
    "WebhookResponse",
)
