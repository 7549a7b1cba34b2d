"""
Redis client used as durable storage for guest carts.
"""
from typing import Any, Optional
import json
import logging
from redis.asyncio import Redis, ConnectionPool
from hoodskool.config import settings

logger = logging.getLogger(__name__)


class RedisClient:
    """Async Redis client wrapper with convenience methods"""

    def __init__(self, redis: Optional[Redis] = None):
        self._redis: Optional[Redis] = redis
        self._pool: Optional[ConnectionPool] = None

    async def connect(self, url: Optional[str] = None):
        """Initialize Redis connection pool"""
        try:
            self._pool = ConnectionPool.from_url(
                url or settings.REDIS_URL,
                decode_responses=True,
                max_connections=10
            )
            self._redis = Redis(connection_pool=self._pool)

            # Test connection
            await self._redis.ping()
            logger.info("✅ Redis connected successfully")
        except Exception as e:
            logger.error(f"❌ Redis connection failed: {e}")
            logger.warning("⚠️ Running without Redis - guest carts will not survive a restart")
            self._redis = None

    async def disconnect(self):
        """Close Redis connection"""
        if self._redis:
            await self._redis.close()
            logger.info("Redis disconnected")

    @property
    def is_connected(self) -> bool:
        """Check if Redis is available"""
        return self._redis is not None

    async def get_json(self, key: str) -> Optional[Any]:
        """Get JSON value stored under key"""
        if not self._redis:
            return None
        try:
            value = await self._redis.get(key)
            if value:
                return json.loads(value)
            return None
        except Exception as e:
            logger.error(f"Failed to get value for {key}: {e}")
            return None

    async def set_json(self, key: str, value: Any, ttl: Optional[int] = None) -> bool:
        """Store JSON value, with TTL when given"""
        if not self._redis:
            return False
        try:
            payload = json.dumps(value)
            if ttl:
                await self._redis.setex(key, ttl, payload)
            else:
                await self._redis.set(key, payload)
            return True
        except Exception as e:
            logger.error(f"Failed to set value for {key}: {e}")
            return False

    async def delete(self, key: str) -> bool:
        """Delete key"""
        if not self._redis:
            return False
        try:
            await self._redis.delete(key)
            return True
        except Exception as e:
            logger.error(f"Failed to delete {key}: {e}")
            return False


async def init_redis(client: RedisClient):
    """Initialize Redis connection on startup"""
    await client.connect()


async def close_redis(client: RedisClient):
    """Close Redis connection on shutdown"""
    await client.disconnect()
