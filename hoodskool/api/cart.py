"""Cart API endpoints for the storefront"""
from fastapi import APIRouter, Depends, HTTPException, Query
from hoodskool.api.deps import get_cart_session, get_current_user_id, get_current_user_id_optional
from hoodskool.config import settings
from hoodskool.services.cart_session import CartSession
from hoodskool.schemas.cart import (
    CartItemCreate,
    QuantityUpdate,
    CartStateResponse,
    CartCountResponse,
    InCartResponse,
)
from hoodskool.schemas.order import CheckoutRequest, CheckoutResult
from typing import Optional
import logging

router = APIRouter()
logger = logging.getLogger(__name__)


@router.get("", response_model=CartStateResponse)
async def get_cart(
    user_id: Optional[str] = Depends(get_current_user_id_optional),
    session: CartSession = Depends(get_cart_session)
):
    """Get cart; signed-in carts are reloaded when the last sync is stale"""
    async with session.lock:
        await session.authenticate(user_id)
        await session.store.refresh_if_stale(session.user_id, settings.CART_RECONCILE_SECONDS)
        return session.store.snapshot()


@router.get("/count", response_model=CartCountResponse)
async def get_cart_count(
    user_id: Optional[str] = Depends(get_current_user_id_optional),
    session: CartSession = Depends(get_cart_session)
):
    async with session.lock:
        await session.authenticate(user_id)
        return CartCountResponse(item_count=session.store.item_count)


@router.get("/contains", response_model=InCartResponse)
async def cart_contains(
    product_id: str = Query(..., min_length=1),
    variant_id: Optional[str] = Query(None),
    user_id: Optional[str] = Depends(get_current_user_id_optional),
    session: CartSession = Depends(get_cart_session)
):
    """Check whether a product (optionally a specific variant) is in the cart"""
    async with session.lock:
        await session.authenticate(user_id)
        return InCartResponse(
            product_id=product_id,
            variant_id=variant_id,
            in_cart=session.store.is_in_cart(product_id, variant_id),
        )


@router.post("/items", response_model=CartStateResponse)
async def add_to_cart(
    item_data: CartItemCreate,
    user_id: Optional[str] = Depends(get_current_user_id_optional),
    session: CartSession = Depends(get_cart_session)
):
    """
    Add product to cart
    If the same product configuration is already in the cart, quantity will be increased
    """
    async with session.lock:
        await session.authenticate(user_id)
        await session.store.add_item(item_data, session.user_id)
        logger.info(f"[CART] Client {session.client_id} added product {item_data.product_id} to cart")
        return session.store.snapshot()


@router.put("/items/{item_id}", response_model=CartStateResponse)
async def update_cart_item(
    item_id: str,
    item_data: QuantityUpdate,
    user_id: Optional[str] = Depends(get_current_user_id_optional),
    session: CartSession = Depends(get_cart_session)
):
    """Update cart item quantity (quantity below 1 removes the item)"""
    async with session.lock:
        await session.authenticate(user_id)
        await session.store.update_quantity(item_id, item_data.quantity, session.user_id)
        logger.info(f"[CART] Client {session.client_id} updated cart item {item_id} quantity to {item_data.quantity}")
        return session.store.snapshot()


@router.delete("/items/{item_id}", response_model=CartStateResponse)
async def remove_cart_item(
    item_id: str,
    user_id: Optional[str] = Depends(get_current_user_id_optional),
    session: CartSession = Depends(get_cart_session)
):
    """Remove item from cart"""
    async with session.lock:
        await session.authenticate(user_id)
        await session.store.remove_item(item_id, session.user_id)
        logger.info(f"[CART] Client {session.client_id} removed cart item {item_id}")
        return session.store.snapshot()


@router.delete("", response_model=CartStateResponse)
async def clear_cart(
    user_id: Optional[str] = Depends(get_current_user_id_optional),
    session: CartSession = Depends(get_cart_session)
):
    """Clear all items from cart"""
    async with session.lock:
        await session.authenticate(user_id)
        await session.store.clear_cart(session.user_id)
        logger.info(f"[CART] Client {session.client_id} cleared cart")
        return session.store.snapshot()


@router.post("/dedupe", response_model=CartStateResponse)
async def remove_duplicates(
    user_id: Optional[str] = Depends(get_current_user_id_optional),
    session: CartSession = Depends(get_cart_session)
):
    """Fold duplicate entries of the same product configuration"""
    async with session.lock:
        await session.authenticate(user_id)
        await session.store.remove_duplicates(session.user_id)
        return session.store.snapshot()


@router.post("/logout", response_model=CartStateResponse)
async def logout(session: CartSession = Depends(get_cart_session)):
    """Sign the client out; it falls back to its guest cart and the stored user cart is kept"""
    async with session.lock:
        await session.authenticate(None)
        return session.store.snapshot()


@router.post("/checkout", response_model=CheckoutResult)
async def checkout(
    request_data: CheckoutRequest,
    user_id: str = Depends(get_current_user_id),
    session: CartSession = Depends(get_cart_session)
):
    """Verify prices and stock, place the order and clear the cart"""
    try:
        async with session.lock:
            await session.authenticate(user_id)
            result = await session.store.checkout(user_id, request_data.checkout, request_data.currency)

        if not result.success:
            raise HTTPException(status_code=400, detail=result.error)

        logger.info(f"[CART] User {user_id} placed order {result.order_id}")
        return result
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"[CART] Error during checkout for user {user_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Checkout failed")
