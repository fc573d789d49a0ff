"""
Inventory — reserve / release stock inside a transaction.

    from storefront.inventory import InventoryLedger

    ledger = InventoryLedger(tx.session)
    match await ledger.reserve(product_id, 2):
        case Ok(_): ...
        case Error(e): ...   # PRODUCT_UNAVAILABLE / INSUFFICIENT_STOCK
"""

from storefront.inventory._ledger import InventoryLedger

__all__ = ("InventoryLedger",)
