"""
Graph — dependency graphs of nodes.

    from storefront import graph as G

    @G.node
    class LoadCart:
        def __init__(self, cart: CartRow) -> None:
            self.cart = cart

        @classmethod
        async def __compose__(cls, request: CheckoutRequest, tx: Transaction) -> "LoadCart":
            return cls(await load_cart(tx.session, user_id=request.user_id))

    result = await G.compose(LoadCart, request, tx)
"""

from nodnod import scalar_node as node

from storefront.graph._run import TypedScope, Run, run, compose

__all__ = ("node", "TypedScope", "Run", "run", "compose")
