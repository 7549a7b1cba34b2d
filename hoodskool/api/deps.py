from fastapi import Depends, Header, HTTPException, Request, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from hoodskool.core.security import get_token_user_id
from hoodskool.services.cart_session import CartSession, CartStoreRegistry
from typing import Optional

security = HTTPBearer(auto_error=False)


async def get_current_user_id_optional(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> Optional[str]:
    """
    Get the signed-in user id (None for guests)
    A token that is present but invalid is rejected rather than treated as a guest
    """
    if not credentials:
        return None

    user_id = get_token_user_id(credentials.credentials)
    if not user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
        )
    return user_id


async def get_current_user_id(
    user_id: Optional[str] = Depends(get_current_user_id_optional),
) -> str:
    """Get the signed-in user id, guests are rejected"""
    if not user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
        )
    return user_id


async def get_client_id(
    x_client_id: str = Header(..., alias="X-Client-Id", min_length=1, max_length=128),
) -> str:
    """Opaque id of the browser profile that owns the cart"""
    return x_client_id


def get_cart_registry(request: Request) -> CartStoreRegistry:
    registry = getattr(request.app.state, "cart_registry", None)
    if registry is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Cart service is not ready",
        )
    return registry


async def get_cart_session(
    client_id: str = Depends(get_client_id),
    registry: CartStoreRegistry = Depends(get_cart_registry),
) -> CartSession:
    return registry.get(client_id)
