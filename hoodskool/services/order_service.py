"""Order service for checkout"""
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from hoodskool.models.order import Order, OrderItem
from hoodskool.schemas.order import CreateOrderData
from typing import Optional, Tuple
import logging

logger = logging.getLogger(__name__)


class OrderService:
    """Service for creating orders from verified cart items"""

    def __init__(self, session_maker: async_sessionmaker[AsyncSession]):
        self.session_maker = session_maker

    async def create_order(self, order_data: CreateOrderData) -> Tuple[Optional[str], Optional[str]]:
        """
        Create order with its items
        Returns: (order_id, error_message)
        """
        if not order_data.items:
            return None, "Order has no items"

        try:
            async with self.session_maker() as db:
                order = Order(
                    order_number=Order.generate_order_number(),
                    user_id=order_data.user_id,
                    delivery_type=order_data.delivery_type,
                    currency=order_data.currency,
                    subtotal=order_data.subtotal,
                    tax=order_data.tax,
                    shipping_cost=order_data.shipping_cost,
                    total=order_data.total,
                    customer_name=order_data.customer_name,
                    customer_email=order_data.customer_email,
                    customer_phone=order_data.customer_phone,
                    shipping_address=(
                        order_data.shipping_address.model_dump() if order_data.shipping_address else None
                    ),
                )
                db.add(order)
                await db.flush()  # Get order.id

                for item in order_data.items:
                    db.add(OrderItem(
                        order_id=order.id,
                        cart_item_id=item.id,
                        product_id=item.product_id,
                        variant_id=item.variant_id,
                        name=item.name,
                        sku=item.sku,
                        quantity=item.quantity,
                        price_at_purchase=item.price,
                        size=item.size,
                        color=item.color.model_dump() if item.color else None,
                        image_url=item.image_url,
                    ))

                await db.commit()
                order_id, order_number = order.id, order.order_number
        except Exception as e:
            logger.error(f"Error creating order for user {order_data.user_id}: {e}", exc_info=True)
            return None, str(e) or "Failed to create order"

        logger.info(
            f"Created order {order_number} for user {order_data.user_id}, "
            f"total: {order_data.total:.2f} {order_data.currency}, items: {len(order_data.items)}"
        )
        return order_id, None
