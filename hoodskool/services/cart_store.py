"""
In-memory cart state for one cart client.

Guests keep their cart in durable guest storage only. For signed-in users the
remote cart (``CartGateway``) is authoritative and the store mirrors it.
Remote failures are logged and never raised to the caller: local mutations
are applied first and are not rolled back when the remote call fails.
"""
from contextlib import contextmanager
from datetime import datetime
from typing import Any, Awaitable, List, Optional, Set, Tuple, Union
import asyncio
import logging
from pydantic import BaseModel, ValidationError
from hoodskool.config import settings
from hoodskool.core.datetime_utils import utc_now
from hoodskool.models.order import DeliveryType
from hoodskool.schemas.cart import CartItem, CartItemCreate, CartStateResponse
from hoodskool.schemas.order import CheckoutData, CheckoutResult, CreateOrderData, VerifiedOrderItem
from hoodskool.services.cart_utils import (
    remove_undefined,
    is_same_cart_item,
    deduplicate_cart_items,
    clamp_quantity,
    count_items,
    generate_temp_id,
)
from hoodskool.services.guest_storage import GuestCartStorage

logger = logging.getLogger(__name__)


def calculate_totals(subtotal: float, delivery_type: DeliveryType) -> Tuple[float, float, float]:
    """Returns: (tax, shipping_cost, total)"""
    tax = round(subtotal * settings.TAX_RATE, 2)
    if delivery_type == DeliveryType.DELIVERY:
        shipping_cost = 0.0 if subtotal >= settings.FREE_SHIPPING_THRESHOLD else settings.STANDARD_SHIPPING
    else:
        shipping_cost = 0.0
    return tax, shipping_cost, round(subtotal + tax + shipping_cost, 2)


class CartStore:
    """Cart state container with local/remote reconciliation"""

    def __init__(
        self,
        gateway,
        storage: Optional[GuestCartStorage] = None,
        storage_key: Optional[str] = None,
        catalog=None,
        orders=None,
    ):
        self.gateway = gateway
        self.storage = storage
        self.storage_key = storage_key
        self.catalog = catalog
        self.orders = orders

        self.items: List[CartItem] = []
        self.is_loading: bool = False
        self.last_synced: Optional[datetime] = None
        self.item_count: int = 0

        self._in_flight = 0
        self._tasks: Set[asyncio.Task] = set()

    # Internal helpers

    def calculate_item_count(self):
        self.item_count = count_items(self.items)

    @contextmanager
    def _busy(self):
        self._in_flight += 1
        self.is_loading = True
        try:
            yield
        finally:
            self._in_flight -= 1
            self.is_loading = self._in_flight > 0

    async def _call_gateway(self, action: str, call: Awaitable[Any]) -> Optional[Any]:
        """Await a gateway call; None when it raised or reported an error"""
        with self._busy():
            try:
                result = await call
            except Exception as e:
                logger.error(f"[CART] Failed to {action}: {e}", exc_info=True)
                return None
        if result.error:
            logger.error(f"[CART] Failed to {action}: {result.error}")
            return None
        return result

    async def _persist(self, user_id: Optional[str]):
        """Write the guest cart through to guest storage"""
        if user_id or not self.storage or not self.storage_key:
            return
        await self.storage.save(self.storage_key, self.items)

    # Lifecycle

    async def rehydrate(self):
        """Load the persisted guest cart"""
        if not self.storage or not self.storage_key:
            return
        self.items = await self.storage.load(self.storage_key)
        self.calculate_item_count()

    def reset(self):
        """Drop the in-memory cache; durable data is untouched"""
        self.items = []
        self.item_count = 0
        self.last_synced = None

    def dispatch(self, operation: Awaitable[Any]) -> asyncio.Task:
        """Run an operation fire-and-forget, returning its task so callers may await it"""
        task = asyncio.ensure_future(operation)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def wait_pending(self):
        if self._tasks:
            await asyncio.gather(*list(self._tasks))

    def snapshot(self) -> CartStateResponse:
        return CartStateResponse(
            items=list(self.items),
            item_count=self.item_count,
            is_loading=self.is_loading,
            last_synced=self.last_synced,
        )

    # Operations

    async def load_cart(self, user_id: Optional[str] = None) -> bool:
        """Load cart from the remote store, or deduplicate the guest cart; False when the remote read failed"""
        if not user_id:
            deduplicated = deduplicate_cart_items(self.items)
            if len(deduplicated) != len(self.items):
                self.items = deduplicated
                await self._persist(None)
            self.calculate_item_count()
            return True

        result = await self._call_gateway("load cart", self.gateway.get_cart(user_id))
        if result is None:
            return False

        self.items = deduplicate_cart_items(result.items)
        self.last_synced = utc_now()
        self.calculate_item_count()
        return True

    async def add_item(self, item: Union[CartItemCreate, dict], user_id: Optional[str] = None):
        """Add item, merging with an existing entry for the same product configuration"""
        raw = item.model_dump(exclude={"id"}) if isinstance(item, BaseModel) else dict(item)
        raw.pop("id", None)
        try:
            candidate = CartItemCreate.model_validate(remove_undefined(raw))
        except ValidationError as e:
            logger.error(f"[CART] Ignoring invalid cart item: {e}")
            return

        if user_id:
            result = await self._call_gateway("add item to cart", self.gateway.add_to_cart(user_id, candidate))
            if result is None:
                return
            # Server merged or inserted; resync everything
            await self.load_cart(user_id)
            return

        existing_index = next(
            (index for index, existing in enumerate(self.items) if is_same_cart_item(existing, candidate)),
            None
        )
        items = list(self.items)
        if existing_index is not None:
            existing = items[existing_index]
            items[existing_index] = existing.model_copy(update={
                "quantity": clamp_quantity(existing.quantity + candidate.quantity, candidate.max_quantity),
                "max_quantity": candidate.max_quantity,
            })
        else:
            items.append(CartItem(id=generate_temp_id(), **candidate.model_dump()))

        self.items = items
        self.calculate_item_count()
        await self._persist(None)

    async def remove_item(self, cart_item_id: str, user_id: Optional[str] = None):
        """Remove item locally, then remotely for signed-in users (no rollback)"""
        self.items = [item for item in self.items if item.id != cart_item_id]
        self.calculate_item_count()

        if user_id:
            await self._call_gateway("remove item", self.gateway.remove_from_cart(user_id, cart_item_id))
        else:
            await self._persist(None)

    async def update_quantity(self, cart_item_id: str, quantity: int, user_id: Optional[str] = None):
        """Set item quantity; anything below 1 removes the item"""
        if quantity < 1:
            await self.remove_item(cart_item_id, user_id)
            return

        target = next((item for item in self.items if item.id == cart_item_id), None)
        new_quantity = clamp_quantity(quantity, target.max_quantity) if target else quantity
        self.items = [
            item.model_copy(update={"quantity": new_quantity}) if item.id == cart_item_id else item
            for item in self.items
        ]
        self.calculate_item_count()

        if user_id:
            await self._call_gateway(
                "update quantity",
                self.gateway.update_cart_item_quantity(user_id, cart_item_id, new_quantity)
            )
        else:
            await self._persist(None)

    async def clear_cart(self, user_id: Optional[str] = None):
        """Clear entire cart; local state stays cleared even if the remote call fails"""
        self.items = []
        self.item_count = 0

        if user_id:
            await self._call_gateway("clear cart", self.gateway.clear_cart(user_id))
        else:
            await self._persist(None)

    async def sync_with_remote(self, user_id: str) -> bool:
        """
        Merge the guest cart into the user's remote cart on login.

        Guest items that already have a same-item match remotely are dropped,
        their quantity is not added to the remote one. Re-running the merge
        against an already merged remote cart pushes nothing.

        Returns True when the remote cart was read, every needed push succeeded
        and the merged cart was reloaded.
        """
        local_items = list(self.items)

        remote = await self._call_gateway("load remote cart", self.gateway.get_cart(user_id))
        if remote is None:
            return False

        if not local_items:
            self.items = deduplicate_cart_items(remote.items)
            self.last_synced = utc_now()
            self.calculate_item_count()
            return True

        if not remote.items:
            pushed = await self._call_gateway("sync cart", self.gateway.sync_cart(user_id, local_items))
            if pushed is None:
                return False
            return await self.load_cart(user_id)

        unique_local_items = [
            local_item for local_item in local_items
            if not any(is_same_cart_item(remote_item, local_item) for remote_item in remote.items)
        ]
        if unique_local_items:
            pushed = await self._call_gateway("sync cart", self.gateway.sync_cart(user_id, unique_local_items))
            if pushed is None:
                return False

        logger.info(
            f"[CART] Merged guest cart for user {user_id}: {len(unique_local_items)} new, "
            f"{len(local_items) - len(unique_local_items)} already present"
        )
        # Items pushed above are only known by their new remote ids after a reload
        return await self.load_cart(user_id)

    async def remove_duplicates(self, user_id: Optional[str] = None) -> int:
        """Manual deduplication; returns how many entries were folded"""
        deduplicated = deduplicate_cart_items(self.items)
        removed = len(self.items) - len(deduplicated)
        if removed:
            logger.info(f"[CART] Removed {removed} duplicate items")
            self.items = deduplicated
            self.calculate_item_count()
            await self._persist(user_id)
        return removed

    def is_in_cart(self, product_id: str, variant_id: Optional[str] = None) -> bool:
        return any(
            item.product_id == product_id and (not variant_id or item.variant_id == variant_id)
            for item in self.items
        )

    async def refresh_if_stale(self, user_id: Optional[str], max_age_seconds: int) -> bool:
        """Reload a signed-in cart whose last sync is older than max_age_seconds"""
        if not user_id:
            return False
        if self.last_synced and (utc_now() - self.last_synced).total_seconds() < max_age_seconds:
            return False
        await self.load_cart(user_id)
        return True

    # Checkout

    async def _verify_items(self, currency: str) -> Tuple[List[VerifiedOrderItem], Optional[str]]:
        """Re-price every item against the catalog and check stock"""
        verified = []
        for item in self.items:
            product, error = await self.catalog.get_product(item.product_id)
            if error or not product:
                return [], f"Product {item.name} not found or unavailable"

            variant = product.get_variant(item.variant_id) if item.variant_id else None
            price = float(product.price)
            if variant is not None and variant.price is not None:
                price = float(variant.price)

            if round(item.price, 2) != round(price, 2):
                return [], f"Price mismatch for {item.name}. Please refresh your cart."

            if item.variant_id:
                available_stock = variant.stock_count if variant else 0
            else:
                available_stock = product.total_stock

            if available_stock < item.quantity:
                return [], f"Insufficient stock for {item.name}. Only {available_stock} available."

            verified.append(VerifiedOrderItem(
                id=item.id,
                product_id=item.product_id,
                variant_id=item.variant_id,
                name=item.name,
                sku=item.sku,
                price=price,
                currency=currency,
                quantity=item.quantity,
                size=item.size,
                color=item.color,
                image_url=item.image,
            ))
        return verified, None

    async def checkout(self, user_id: str, checkout_data: CheckoutData, currency: str) -> CheckoutResult:
        """Verify prices and stock, create the order and clear the cart"""
        if not self.items:
            return CheckoutResult(success=False, error="Cart is empty")
        if self.catalog is None or self.orders is None:
            return CheckoutResult(success=False, error="Checkout is not available")

        with self._busy():
            try:
                verified_items, error = await self._verify_items(currency)
                if error:
                    return CheckoutResult(success=False, error=error)

                subtotal = round(sum(item.price * item.quantity for item in verified_items), 2)
                tax, shipping_cost, total = calculate_totals(subtotal, checkout_data.delivery_type)

                order_id, error = await self.orders.create_order(CreateOrderData(
                    user_id=user_id,
                    delivery_type=checkout_data.delivery_type,
                    items=verified_items,
                    currency=currency,
                    subtotal=subtotal,
                    tax=tax,
                    shipping_cost=shipping_cost,
                    total=total,
                    shipping_address=checkout_data.shipping_address,
                    customer_name=checkout_data.full_name,
                    customer_email=checkout_data.email,
                    customer_phone=checkout_data.phone,
                ))
            except Exception as e:
                logger.error(f"[CART] Checkout error for user {user_id}: {e}", exc_info=True)
                return CheckoutResult(success=False, error=str(e) or "Checkout failed")

        if error or not order_id:
            return CheckoutResult(success=False, error=error or "Failed to create order")

        await self.clear_cart(user_id)
        logger.info(f"[CART] Checkout complete for user {user_id}: order {order_id}")
        return CheckoutResult(success=True, order_id=order_id)
