from hoodskool.models.product import Product, ProductVariant
from hoodskool.models.order import Order, OrderItem
from hoodskool.models.cart import CartItem

__all__ = [
    "Product",
    "ProductVariant",
    "Order",
    "OrderItem",
    "CartItem",
]
