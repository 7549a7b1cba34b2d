"""Cart item model for signed-in users' carts"""
from __future__ import annotations

from sqlalchemy import String, Integer, Numeric, Boolean, DateTime, JSON
from sqlalchemy.orm import Mapped, mapped_column
from datetime import datetime
import uuid
from hoodskool.database import Base
from hoodskool.core.datetime_utils import utc_now


def _new_id() -> str:
    return uuid.uuid4().hex


class CartItem(Base):
    """One line of a user's cart; the user's cart is the set of rows with their user_id"""
    __tablename__ = "cart_items"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    user_id: Mapped[str] = mapped_column(String(128), nullable=False, index=True)

    product_id: Mapped[str] = mapped_column(String(128), nullable=False, index=True)
    variant_id: Mapped[str | None] = mapped_column(String(128), nullable=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    slug: Mapped[str | None] = mapped_column(String(255), nullable=True)
    price: Mapped[float] = mapped_column(Numeric(10, 2), nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    max_quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    image: Mapped[str | None] = mapped_column(String(1024), nullable=True)
    sku: Mapped[str] = mapped_column(String(100), default="", nullable=False)
    in_stock: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    size: Mapped[str | None] = mapped_column(String(50), nullable=True)
    color: Mapped[dict | None] = mapped_column(JSON, nullable=True)  # {"name": ..., "hex": ...}

    added_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utc_now, nullable=False)

    def __repr__(self):
        return f"<CartItem(id={self.id}, user_id={self.user_id}, product_id={self.product_id}, quantity={self.quantity})>"
