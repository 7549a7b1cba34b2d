"""Cart schemas"""
from pydantic import BaseModel, Field, model_validator
from datetime import datetime
from typing import Optional, List
from hoodskool.config import settings


class CartColor(BaseModel):
    name: str
    hex: Optional[str] = None


class CartItemCreate(BaseModel):
    """Cart line item without an id (assigned by the store or the database)"""
    product_id: str
    variant_id: Optional[str] = None
    name: str
    slug: Optional[str] = None
    price: float = Field(ge=0)
    quantity: int = 1
    max_quantity: int = Field(default=settings.DEFAULT_MAX_QUANTITY, ge=1)
    image: Optional[str] = None
    sku: str = ""
    in_stock: bool = True
    size: Optional[str] = None
    color: Optional[CartColor] = None

    model_config = {"from_attributes": True}

    @model_validator(mode="after")
    def _clamp_quantity(self):
        """Out-of-range quantities are clamped into [1, max_quantity], not rejected"""
        self.quantity = max(1, min(self.quantity, self.max_quantity))
        return self


class CartItem(CartItemCreate):
    id: str


class CartResult(BaseModel):
    """Result of reading a remote cart"""
    items: List[CartItem] = []
    error: Optional[str] = None


class AddToCartResult(BaseModel):
    cart_item_id: Optional[str] = None
    error: Optional[str] = None


class GatewayResult(BaseModel):
    error: Optional[str] = None


class QuantityUpdate(BaseModel):
    # Values below 1 remove the item
    quantity: int


class CartStateResponse(BaseModel):
    items: List[CartItem] = []
    item_count: int = 0
    is_loading: bool = False
    last_synced: Optional[datetime] = None


class CartCountResponse(BaseModel):
    item_count: int


class InCartResponse(BaseModel):
    product_id: str
    variant_id: Optional[str] = None
    in_cart: bool
