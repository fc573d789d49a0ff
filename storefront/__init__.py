"""
storefront — order and payment core for a small shop.

    from storefront import open_shop, Settings

    shop = await open_shop(Settings.from_env())
    result = await shop.checkout.checkout(user_id=1)

Namespaces:

    from storefront import saga as S          # compensated steps
    from storefront import graph as G         # dependency graphs
    from storefront import idempotency as I   # once-per-key execution
    from storefront import domain as D        # statuses, snapshots, errors
"""

from storefront import domain
from storefront import graph
from storefront import saga
from storefront import idempotency
from storefront.config import Settings, PaymentStyle
from storefront._shop import Shop, open_shop

__version__ = "0.1.0"

__all__ = (
    "domain",
    "graph",
    "saga",
    "idempotency",
    "Settings",
    "PaymentStyle",
    "Shop",
    "open_shop",
)
