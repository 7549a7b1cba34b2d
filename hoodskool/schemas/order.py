"""Checkout and order schemas"""
from pydantic import BaseModel, EmailStr, Field, model_validator
from typing import Optional, List
from hoodskool.models.order import DeliveryType
from hoodskool.schemas.cart import CartColor


class ShippingAddressData(BaseModel):
    street: str
    city: str
    state: str = ""
    zip_code: str
    country: str


class CheckoutData(BaseModel):
    full_name: str = Field(min_length=1, max_length=255)
    email: EmailStr
    phone: str = Field(min_length=3, max_length=50)
    delivery_type: DeliveryType = DeliveryType.DELIVERY
    shipping_address: Optional[ShippingAddressData] = None

    @model_validator(mode="after")
    def _require_address_for_delivery(self):
        if self.delivery_type == DeliveryType.DELIVERY and self.shipping_address is None:
            raise ValueError("Shipping address is required for delivery orders")
        return self


class CheckoutRequest(BaseModel):
    checkout: CheckoutData
    currency: str = "rub"


class VerifiedOrderItem(BaseModel):
    """Cart item re-priced against the catalog"""
    id: str
    product_id: str
    variant_id: Optional[str] = None
    name: str
    sku: str
    price: float
    currency: str
    quantity: int
    size: Optional[str] = None
    color: Optional[CartColor] = None
    image_url: Optional[str] = None


class CreateOrderData(BaseModel):
    user_id: str
    delivery_type: DeliveryType
    items: List[VerifiedOrderItem]
    currency: str
    subtotal: float
    tax: float
    shipping_cost: float
    total: float
    shipping_address: Optional[ShippingAddressData] = None
    customer_name: str
    customer_email: str
    customer_phone: str


class CheckoutResult(BaseModel):
    success: bool
    order_id: Optional[str] = None
    error: Optional[str] = None
