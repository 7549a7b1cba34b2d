from datetime import timedelta
from typing import Optional
from jose import JWTError, jwt
from hoodskool.config import settings
from hoodskool.core.datetime_utils import utc_now


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    """Create session access token (mirrors what the auth service issues)"""
    to_encode = data.copy()
    if expires_delta:
        expire = utc_now() + expires_delta
    else:
        expire = utc_now() + timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    to_encode.update({"exp": expire, "type": "access"})
    encoded_jwt = jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)
    return encoded_jwt


def verify_token(token: str, token_type: str = "access") -> Optional[dict]:
    """
    Verify session token and return payload.

    Args:
        token: JWT issued by the auth service
        token_type: Expected token type

    Returns:
        Token payload dict or None if invalid
    """
    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
        if payload.get("type") != token_type:
            return None
        return payload
    except JWTError:
        return None


def get_token_user_id(token: str) -> Optional[str]:
    """Extract the user id (Firebase uid) from a session token"""
    payload = verify_token(token, "access")
    if not payload:
        return None
    user_id = payload.get("user_id") or payload.get("sub")
    return str(user_id) if user_id else None
