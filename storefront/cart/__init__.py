"""
Cart — add / update / remove items.

    from storefront.cart import CartService
"""

from storefront.cart._service import CartService

__all__ = ("CartService",)
