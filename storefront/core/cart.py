"""Cart mutations against the backend and the last fetched cart snapshot.

Every mutation is one round-trip followed by a full ``GET /cart``; quantities
and totals are never patched locally. Per item at most one mutation is in
flight; a second one is rejected, not queued.
"""

from __future__ import annotations

import logging
from typing import AbstractSet, Awaitable, Callable, Optional, Tuple

from storefront.core.gateway import HttpGateway
from storefront.errors import CartRefreshError, DomainError, MutationInProgress, StorefrontError
from storefront.models import Cart, CartItem, unwrap

logger = logging.getLogger(__name__)

Confirm = Callable[[str], Awaitable[bool]]

REMOVE_PROMPT = "Are you sure you want to remove this item from your cart?"


class CartView:
    """Read-only view of the server's cart; only CartController replaces it."""

    def __init__(self) -> None:
        self._cart: Optional[Cart] = None

    @property
    def cart(self) -> Optional[Cart]:
        return self._cart

    @property
    def loaded(self) -> bool:
        return self._cart is not None

    @property
    def items(self) -> Tuple[CartItem, ...]:
        return self._cart.items if self._cart else ()

    @property
    def item_count(self) -> int:
        return self._cart.item_count if self._cart else 0

    @property
    def total_price(self) -> float:
        return self._cart.total_price if self._cart else 0.0

    @property
    def is_empty(self) -> bool:
        return not self.items

    def find(self, item_id: int) -> Optional[CartItem]:
        for item in self.items:
            if item.id == item_id:
                return item
        return None

    def _replace(self, cart: Cart) -> None:
        self._cart = cart

    def _discard(self) -> None:
        self._cart = None


class CartController:
    def __init__(self, gateway: HttpGateway, view: Optional[CartView] = None):
        self.gateway = gateway
        self.view = view or CartView()
        self._pending: set[int] = set()
        self._checking_out = False

    @property
    def pending(self) -> AbstractSet[int]:
        return frozenset(self._pending)

    def is_pending(self, item_id: int) -> bool:
        return item_id in self._pending

    async def load(self) -> Cart:
        body = await self.gateway.send("GET", "/cart")
        cart = Cart.from_dict(body)
        self.view._replace(cart)
        return cart

    @property
    def busy(self) -> bool:
        return bool(self._pending) or self._checking_out

    async def _refresh(self) -> Cart:
        """Refetch after a mutation the backend already applied."""
        try:
            return await self.load()
        except StorefrontError as e:
            logger.warning("Cart refresh after mutation failed: %s", e)
            raise CartRefreshError(e) from e

    async def add_to_cart(self, product_id: int, quantity: int = 1) -> Cart:
        """Add a product and return the refetched cart.

        Raises CartRefreshError when the product was added but the cart
        could not be fetched afterwards.
        """
        # stock and active checks belong to the backend
        await self.gateway.send("POST", "/cart/items", json={"productId": product_id, "quantity": quantity})
        logger.info("Added product_id=%s qty=%s", product_id, quantity)
        return await self._refresh()

    async def update_quantity(self, item_id: int, new_quantity: int, confirm: Confirm) -> bool:
        """Set an item's quantity; anything below 1 is a removal.

        Returns False only when a removal was declined.
        """
        if new_quantity < 1:
            return await self.remove_item(item_id, confirm)

        self._acquire(item_id)
        try:
            await self.gateway.send("PUT", f"/cart/items/{item_id}", json={"quantity": new_quantity})
            logger.info("Updated item_id=%s qty=%s", item_id, new_quantity)
            await self._refresh()
        finally:
            self._pending.discard(item_id)
        return True

    async def remove_item(self, item_id: int, confirm: Confirm) -> bool:
        if item_id in self._pending:
            raise MutationInProgress(item_id)
        if not await confirm(REMOVE_PROMPT):
            return False

        self._acquire(item_id)
        try:
            await self.gateway.send("DELETE", f"/cart/items/{item_id}")
            logger.info("Removed item_id=%s", item_id)
            await self._refresh()
        finally:
            self._pending.discard(item_id)
        return True

    async def checkout(self) -> Optional[int]:
        """Place an order from the current cart.

        Any 2xx answer means the order exists; its id is returned when the
        backend sent one, otherwise None.
        """
        if self.view.is_empty:
            raise DomainError("Your cart is empty!")
        if self._checking_out:
            raise DomainError("Checkout is already in progress")

        self._checking_out = True
        try:
            body = await self.gateway.send("POST", "/cart/checkout")
        finally:
            self._checking_out = False

        data = unwrap(body)
        order_id = data.get("orderId") if isinstance(data, dict) else None
        if order_id is None:
            logger.warning("Checkout succeeded without an order id: %r", body)
        else:
            logger.info("Checked out order_id=%s", order_id)
        # the shopper moves on to order history; the snapshot is stale now
        self.view._discard()
        return order_id

    def _acquire(self, item_id: int) -> None:
        # the confirmation await above may have let another mutation in
        if item_id in self._pending:
            raise MutationInProgress(item_id)
        self._pending.add(item_id)
