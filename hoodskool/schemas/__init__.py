from hoodskool.schemas.cart import (
    CartColor,
    CartItemCreate,
    CartItem,
    CartResult,
    AddToCartResult,
    GatewayResult,
    QuantityUpdate,
    CartStateResponse,
    CartCountResponse,
    InCartResponse,
)
from hoodskool.schemas.order import (
    ShippingAddressData,
    CheckoutData,
    CheckoutRequest,
    VerifiedOrderItem,
    CreateOrderData,
    CheckoutResult,
)

__all__ = [
    "CartColor",
    "CartItemCreate",
    "CartItem",
    "CartResult",
    "AddToCartResult",
    "GatewayResult",
    "QuantityUpdate",
    "CartStateResponse",
    "CartCountResponse",
    "InCartResponse",
    "ShippingAddressData",
    "CheckoutData",
    "CheckoutRequest",
    "VerifiedOrderItem",
    "CreateOrderData",
    "CheckoutResult",
]
