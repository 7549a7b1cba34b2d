from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy import select
from sqlalchemy.orm import selectinload
from hoodskool.models.product import Product
from typing import Optional, Tuple
import logging

logger = logging.getLogger(__name__)


class ProductService:
    """Catalog lookups used to re-price carts at checkout"""

    def __init__(self, session_maker: async_sessionmaker[AsyncSession]):
        self.session_maker = session_maker

    async def get_product(self, product_id: str) -> Tuple[Optional[Product], Optional[str]]:
        """
        Get product with its variants
        Returns: (Product, error_message)
        """
        try:
            async with self.session_maker() as db:
                result = await db.execute(
                    select(Product)
                    .where(Product.id == product_id)
                    .options(selectinload(Product.variants))
                )
                product = result.scalar_one_or_none()
        except Exception as e:
            logger.error(f"Error loading product {product_id}: {e}", exc_info=True)
            return None, str(e)

        if not product:
            return None, "Product not found"
        return product, None
