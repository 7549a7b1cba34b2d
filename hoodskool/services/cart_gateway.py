"""Remote cart persistence for signed-in users"""
from sqlalchemy import select, delete
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from hoodskool.models.cart import CartItem as CartItemModel
from hoodskool.schemas.cart import (
    CartItem,
    CartItemCreate,
    CartResult,
    AddToCartResult,
    GatewayResult,
)
from hoodskool.services.cart_utils import remove_undefined, is_same_cart_item, clamp_quantity
from hoodskool.core.datetime_utils import utc_now
from datetime import timedelta
from typing import List, Union
import logging

logger = logging.getLogger(__name__)

ITEM_FIELDS = (
    "product_id", "variant_id", "name", "slug", "price", "quantity", "max_quantity",
    "image", "sku", "in_stock", "size", "color",
)


def _to_schema(row: CartItemModel) -> CartItem:
    return CartItem(
        id=row.id,
        product_id=row.product_id,
        variant_id=row.variant_id,
        name=row.name,
        slug=row.slug,
        price=float(row.price),
        quantity=row.quantity,
        max_quantity=row.max_quantity,
        image=row.image,
        sku=row.sku,
        in_stock=row.in_stock,
        size=row.size,
        color=row.color,
    )


def _row_values(item: Union[CartItem, CartItemCreate]) -> dict:
    """Column values for an item; drops the id and any unset attributes"""
    data = remove_undefined(item.model_dump(exclude={"id"}))
    return {field: data[field] for field in ITEM_FIELDS if field in data}


class CartGateway:
    """
    Cart operations against the database.
    Every operation reports failures through the ``error`` field of its result.
    """

    def __init__(self, session_maker: async_sessionmaker[AsyncSession]):
        self.session_maker = session_maker

    async def get_cart(self, user_id: str) -> CartResult:
        """Get user's cart"""
        try:
            async with self.session_maker() as db:
                result = await db.execute(
                    select(CartItemModel)
                    .where(CartItemModel.user_id == user_id)
                    .order_by(CartItemModel.added_at, CartItemModel.id)
                )
                items = [_to_schema(row) for row in result.scalars().all()]
            logger.info(f"[CART] Loaded cart for user {user_id} with {len(items)} items")
            return CartResult(items=items)
        except Exception as e:
            logger.error(f"[CART] Get cart error for user {user_id}: {e}", exc_info=True)
            return CartResult(items=[], error=str(e))

    async def add_to_cart(self, user_id: str, item: CartItemCreate) -> AddToCartResult:
        """
        Add item to cart or increase quantity of the same item
        Returns: AddToCartResult with the id of the inserted or updated row
        """
        try:
            values = _row_values(item)
            async with self.session_maker() as db:
                result = await db.execute(
                    select(CartItemModel).where(
                        CartItemModel.user_id == user_id,
                        CartItemModel.product_id == item.product_id,
                    )
                )
                existing = next(
                    (row for row in result.scalars().all() if is_same_cart_item(_to_schema(row), item)),
                    None
                )

                if existing:
                    existing.max_quantity = item.max_quantity
                    existing.quantity = clamp_quantity(existing.quantity + item.quantity, item.max_quantity)
                    await db.commit()
                    logger.info(f"[CART] Updated cart item quantity: user={user_id}, item={existing.id}, new_qty={existing.quantity}")
                    return AddToCartResult(cart_item_id=existing.id)

                row = CartItemModel(user_id=user_id, **values)
                db.add(row)
                await db.commit()
                await db.refresh(row)
                logger.info(f"[CART] Added item to cart: user={user_id}, product={item.product_id}, qty={row.quantity}")
                return AddToCartResult(cart_item_id=row.id)
        except Exception as e:
            logger.error(f"[CART] Add to cart error for user {user_id}: {e}", exc_info=True)
            return AddToCartResult(error=str(e))

    async def update_cart_item_quantity(self, user_id: str, cart_item_id: str, quantity: int) -> GatewayResult:
        """Update cart item quantity"""
        try:
            async with self.session_maker() as db:
                result = await db.execute(
                    select(CartItemModel).where(
                        CartItemModel.id == cart_item_id,
                        CartItemModel.user_id == user_id,
                    )
                )
                row = result.scalar_one_or_none()
                if not row:
                    return GatewayResult(error="Cart item not found")

                row.quantity = clamp_quantity(quantity, row.max_quantity)
                await db.commit()
            logger.info(f"[CART] Updated cart item quantity: item={cart_item_id}, qty={quantity}")
            return GatewayResult()
        except Exception as e:
            logger.error(f"[CART] Update cart item error for user {user_id}: {e}", exc_info=True)
            return GatewayResult(error=str(e))

    async def remove_from_cart(self, user_id: str, cart_item_id: str) -> GatewayResult:
        """Remove item from cart"""
        try:
            async with self.session_maker() as db:
                await db.execute(
                    delete(CartItemModel).where(
                        CartItemModel.id == cart_item_id,
                        CartItemModel.user_id == user_id,
                    )
                )
                await db.commit()
            logger.info(f"[CART] Removed cart item: user={user_id}, item={cart_item_id}")
            return GatewayResult()
        except Exception as e:
            logger.error(f"[CART] Remove from cart error for user {user_id}: {e}", exc_info=True)
            return GatewayResult(error=str(e))

    async def clear_cart(self, user_id: str) -> GatewayResult:
        """Clear entire cart"""
        try:
            async with self.session_maker() as db:
                result = await db.execute(
                    delete(CartItemModel).where(CartItemModel.user_id == user_id)
                )
                await db.commit()
            logger.info(f"[CART] Cleared cart: user={user_id}, items_removed={result.rowcount}")
            return GatewayResult()
        except Exception as e:
            logger.error(f"[CART] Clear cart error for user {user_id}: {e}", exc_info=True)
            return GatewayResult(error=str(e))

    async def sync_cart(self, user_id: str, items: List[CartItem]) -> GatewayResult:
        """Copy guest cart items into the user's cart in one transaction; each row gets a new id"""
        try:
            async with self.session_maker() as db:
                # Keep the guest ordering when rows are read back by added_at
                started_at = utc_now()
                for position, item in enumerate(items):
                    db.add(CartItemModel(
                        user_id=user_id,
                        added_at=started_at + timedelta(microseconds=position),
                        **_row_values(item)
                    ))
                await db.commit()
            logger.info(f"[CART] Synced {len(items)} guest items into cart of user {user_id}")
            return GatewayResult()
        except Exception as e:
            logger.error(f"[CART] Sync cart error for user {user_id}: {e}", exc_info=True)
            return GatewayResult(error=str(e))
