from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.util import get_remote_address
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from contextlib import asynccontextmanager
import logging

from hoodskool.config import settings
from hoodskool.database import init_db, close_db, async_session_maker
from hoodskool.core.redis import RedisClient, init_redis, close_redis
from hoodskool.services.cart_gateway import CartGateway
from hoodskool.services.cart_session import CartStoreRegistry
from hoodskool.services.guest_storage import GuestCartStorage
from hoodskool.services.order_service import OrderService
from hoodskool.services.product_service import ProductService

# Import routers
from hoodskool.api import cart

# Configure logging
logging.basicConfig(
    level=logging.INFO if settings.DEBUG else logging.WARNING,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)

# Reduce SQLAlchemy log verbosity
logging.getLogger('sqlalchemy.engine').setLevel(logging.WARNING)

logger = logging.getLogger(__name__)

# Rate limiter
limiter = Limiter(key_func=get_remote_address, default_limits=[settings.RATE_LIMIT_PER_MINUTE])


def create_cart_registry(
    session_maker: async_sessionmaker[AsyncSession],
    redis_client: RedisClient
) -> CartStoreRegistry:
    """Wire the cart stores to their collaborators"""
    storage = GuestCartStorage(
        redis_client,
        prefix=settings.CART_STORAGE_KEY,
        ttl_seconds=settings.GUEST_CART_TTL_SECONDS,
    )
    return CartStoreRegistry(
        gateway=CartGateway(session_maker),
        storage=storage,
        catalog=ProductService(session_maker),
        orders=OrderService(session_maker),
        max_sessions=settings.CART_MAX_SESSIONS,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown events"""
    # Startup
    logger.info("Starting Hoodskool Storefront API...")

    # Initialize database
    await init_db()
    logger.info("Database initialized")

    # Initialize Redis
    redis_client = RedisClient()
    await init_redis(redis_client)
    logger.info("Redis initialized")

    app.state.redis = redis_client
    app.state.cart_registry = create_cart_registry(async_session_maker, redis_client)

    logger.info("Application startup complete")

    yield

    # Shutdown
    logger.info("Shutting down...")
    await app.state.cart_registry.close()
    await close_redis(redis_client)
    await close_db()
    logger.info("Application shutdown complete")


# Create FastAPI app
# Disable docs in production
app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="Hoodskool storefront cart API - guest and signed-in carts, merge on login, checkout",
    lifespan=lifespan,
    docs_url="/docs" if settings.DEBUG else None,
    redoc_url="/redoc" if settings.DEBUG else None,
    openapi_url="/openapi.json" if settings.DEBUG else None
)

# Add rate limiter
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
app.add_middleware(SlowAPIMiddleware)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(cart.router, prefix=f"{settings.API_V1_PREFIX}/cart", tags=["Cart"])


@app.get("/")
async def root():
    """API root"""
    response = {
        "name": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "status": "running"
    }

    # Only show docs links in development
    if settings.DEBUG:
        response["docs"] = "/docs"
        response["redoc"] = "/redoc"

    return response


@app.get("/health")
async def health_check(request: Request):
    """Health check endpoint with database and Redis connectivity"""
    from sqlalchemy import text

    health_status = {
        "status": "ok",
        "service": settings.APP_NAME,
        "version": settings.APP_VERSION
    }

    # Check database connection
    try:
        async with async_session_maker() as db:
            await db.execute(text("SELECT 1"))
        health_status["database"] = "connected"
    except Exception as e:
        health_status["status"] = "unhealthy"
        health_status["database"] = f"disconnected: {str(e)}"
        logger.error(f"Health check failed: {e}")

    redis_client = getattr(request.app.state, "redis", None)
    health_status["redis"] = "connected" if redis_client and redis_client.is_connected else "unavailable"

    registry = getattr(request.app.state, "cart_registry", None)
    health_status["cart_sessions"] = len(registry) if registry is not None else 0

    return health_status


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "hoodskool.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.DEBUG
    )
