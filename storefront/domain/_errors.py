"""
Error taxonomy.

Services return ``Result[T, ShopError]``. Graph nodes cannot return a Result,
so they raise ``ShopFailure`` and the service boundary turns it back into
``Error(...)``:

    try:
        placed = await G.compose(PlacedOrderNode, request, tx)
    except ShopFailure as e:
        return Error(e.error)
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, auto


# ═══════════════════════════════════════════════════════════════════════════════
# Kinds
# ═══════════════════════════════════════════════════════════════════════════════


class ErrorKind(Enum):
    NOT_FOUND = auto()
    UNAUTHORIZED = auto()
    VALIDATION = auto()
    BUSINESS_RULE = auto()
    EXTERNAL_SERVICE = auto()
    INTEGRITY = auto()


@dataclass(frozen=True, slots=True)
class ShopError:
    kind: ErrorKind
    code: str
    message: str


class ShopFailure(Exception):
    """Carries a ShopError out of code that cannot return a Result."""

    def __init__(self, error: ShopError) -> None:
        super().__init__(error.message)
        self.error = error


# ═══════════════════════════════════════════════════════════════════════════════
# Factories
# ═══════════════════════════════════════════════════════════════════════════════


class Errors:
    @staticmethod
    def cart_not_found() -> ShopError:
        return ShopError(ErrorKind.NOT_FOUND, "CART_NOT_FOUND", "Cart not found")

    @staticmethod
    def cart_empty() -> ShopError:
        return ShopError(ErrorKind.BUSINESS_RULE, "CART_EMPTY", "Cart is empty")

    @staticmethod
    def item_not_in_cart(product_id: int) -> ShopError:
        return ShopError(
            ErrorKind.NOT_FOUND,
            "ITEM_NOT_IN_CART",
            f"Product {product_id} is not in the cart",
        )

    @staticmethod
    def product_not_found(product_id: int) -> ShopError:
        return ShopError(
            ErrorKind.NOT_FOUND, "PRODUCT_NOT_FOUND", f"Product {product_id} not found"
        )

    @staticmethod
    def product_unavailable(name: str) -> ShopError:
        return ShopError(
            ErrorKind.BUSINESS_RULE,
            "PRODUCT_UNAVAILABLE",
            f"Product {name} is no longer available",
        )

    @staticmethod
    def insufficient_stock(name: str) -> ShopError:
        return ShopError(
            ErrorKind.BUSINESS_RULE,
            "INSUFFICIENT_STOCK",
            f"Insufficient stock for {name}",
        )

    @staticmethod
    def order_not_found(order_id: int) -> ShopError:
        return ShopError(
            ErrorKind.NOT_FOUND, "ORDER_NOT_FOUND", f"Order {order_id} not found"
        )

    @staticmethod
    def payment_not_found() -> ShopError:
        return ShopError(
            ErrorKind.NOT_FOUND,
            "PAYMENT_NOT_FOUND",
            "No payment found for this order",
        )

    @staticmethod
    def unauthorized(message: str = "Unauthorized") -> ShopError:
        return ShopError(ErrorKind.UNAUTHORIZED, "UNAUTHORIZED", message)

    @staticmethod
    def invalid_quantity(quantity: int) -> ShopError:
        return ShopError(
            ErrorKind.VALIDATION,
            "INVALID_QUANTITY",
            f"Quantity must be at least 1, got {quantity}",
        )

    @staticmethod
    def invalid_payload(detail: str = "Invalid payload") -> ShopError:
        return ShopError(ErrorKind.VALIDATION, "INVALID_PAYLOAD", detail)

    @staticmethod
    def invalid_signature() -> ShopError:
        return ShopError(ErrorKind.VALIDATION, "INVALID_SIGNATURE", "Invalid signature")

    @staticmethod
    def already_cancelled() -> ShopError:
        return ShopError(
            ErrorKind.BUSINESS_RULE, "ALREADY_CANCELLED", "Order is already cancelled"
        )

    @staticmethod
    def refund_not_allowed() -> ShopError:
        return ShopError(
            ErrorKind.BUSINESS_RULE,
            "REFUND_NOT_ALLOWED",
            "Only completed payments can be refunded",
        )

    @staticmethod
    def payment_not_completed() -> ShopError:
        return ShopError(
            ErrorKind.BUSINESS_RULE, "PAYMENT_NOT_COMPLETED", "Payment not completed"
        )

    @staticmethod
    def processor_failure() -> ShopError:
        # Details go to the log only
        return ShopError(
            ErrorKind.EXTERNAL_SERVICE,
            "PROCESSOR_FAILURE",
            "Payment processor unavailable, please try again",
        )

    @staticmethod
    def integrity_failure() -> ShopError:
        # Details go to the log only
        return ShopError(
            ErrorKind.INTEGRITY, "INTEGRITY_FAILURE", "Operation failed, nothing was changed"
        )


# ═══════════════════════════════════════════════════════════════════════════════
# Exports
# ═══════════════════════════════════════════════════════════════════════════════

__all__ = ("ErrorKind", "ShopError", "ShopFailure", "Errors")
