from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field, field_validator
from typing import List


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False, extra="ignore")

    # App
    APP_NAME: str = "Hoodskool Storefront API"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = True
    API_V1_PREFIX: str = "/api/v1"

    # Database (remote cart, catalog and orders)
    DATABASE_URL: str = Field(
        default="sqlite+aiosqlite:///./hoodskool.db",
        description="Database connection URL"
    )

    # Session tokens are issued by the auth service - REQUIRED from environment
    SECRET_KEY: str = Field(
        ...,
        min_length=32,
        description="Secret key used to verify session tokens (REQUIRED - minimum 32 characters)"
    )
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60

    # Redis (guest cart storage)
    REDIS_URL: str = Field(
        default="redis://redis:6379/0",
        description="Redis connection URL"
    )

    # Cart
    CART_STORAGE_KEY: str = "hoodskool-cart"
    GUEST_CART_TTL_SECONDS: int = 30 * 24 * 3600  # 30 days
    CART_RECONCILE_SECONDS: int = 300  # Full reload of a signed-in cart after 5 minutes
    CART_MAX_SESSIONS: int = 10000
    DEFAULT_MAX_QUANTITY: int = 999

    # Checkout
    TAX_RATE: float = 0.2
    FREE_SHIPPING_THRESHOLD: float = 10000.0
    STANDARD_SHIPPING: float = 500.0

    # CORS
    CORS_ORIGINS: List[str] = Field(default_factory=lambda: [
        "https://hoodskool.com",
        "https://www.hoodskool.com",
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ])

    # Rate limiting
    RATE_LIMIT_PER_MINUTE: str = "120/minute"

    @field_validator("CORS_ORIGINS", mode="before")
    @classmethod
    def _assemble_cors_origins(cls, value):
        """Ensure CORS origins env value always becomes a list of strings."""
        if isinstance(value, str):
            # Support JSON-style lists or simple comma-separated strings
            value = value.strip()
            if value.startswith("[") and value.endswith("]"):
                import json
                return json.loads(value)
            return [origin.strip() for origin in value.split(",") if origin.strip()]
        if isinstance(value, (list, tuple)):
            return list(value)
        return value


settings = Settings()
