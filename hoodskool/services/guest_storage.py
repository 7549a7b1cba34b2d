"""Durable storage for guest carts"""
from typing import List
import logging
from pydantic import ValidationError
from hoodskool.core.redis import RedisClient
from hoodskool.schemas.cart import CartItem
from hoodskool.services.cart_utils import deduplicate_cart_items

logger = logging.getLogger(__name__)


class GuestCartStorage:
    """
    Keeps a guest's item list under one namespaced key per cart client.
    Only the items are persisted; counters and flags are recomputed on load.
    """

    def __init__(self, redis: RedisClient, prefix: str = "hoodskool-cart", ttl_seconds: int = 0):
        self.redis = redis
        self.prefix = prefix
        self.ttl_seconds = ttl_seconds

    def key_for(self, client_id: str) -> str:
        return f"{self.prefix}:{client_id}"

    async def load(self, key: str) -> List[CartItem]:
        """Read and deduplicate the persisted item list"""
        payload = await self.redis.get_json(key)
        if not payload:
            return []

        try:
            items = [CartItem.model_validate(raw) for raw in payload.get("items", [])]
        except (AttributeError, TypeError, ValidationError) as e:
            logger.error(f"[CART] Discarding malformed guest cart under {key}: {e}")
            return []

        deduplicated = deduplicate_cart_items(items)
        if len(deduplicated) != len(items):
            logger.info(f"[CART] Removed {len(items) - len(deduplicated)} duplicates during rehydration of {key}")
        return deduplicated

    async def save(self, key: str, items: List[CartItem]) -> bool:
        if not self.redis.is_connected:
            logger.warning(f"[CART] Redis unavailable, guest cart {key} kept in memory only")
            return False
        payload = {"items": [item.model_dump(mode="json", exclude_none=True) for item in items]}
        return await self.redis.set_json(key, payload, ttl=self.ttl_seconds or None)

    async def clear(self, key: str) -> bool:
        return await self.redis.delete(key)
