"""Redis cache service for place search pages and geocoding results."""

import hashlib
import json
import logging
from typing import Any

import redis.asyncio as redis

from meetpoint.config import settings

logger = logging.getLogger(__name__)

# TTLs in seconds
TTL_PLACE_SEARCH = 15 * 60        # 15 minutes
TTL_GEOCODE = 24 * 60 * 60        # 24 hours


class CacheService:
    """Redis-backed cache with typed TTLs."""

    def __init__(self, redis_url: str | None = None):
        self._redis_url = redis_url or settings.redis_url
        self._redis: redis.Redis | None = None

    async def _get_redis(self) -> redis.Redis | None:
        if self._redis is None:
            try:
                self._redis = redis.from_url(
                    self._redis_url,
                    encoding="utf-8",
                    decode_responses=True,
                )
                await self._redis.ping()
            except Exception as e:
                logger.warning(f"Redis unavailable, cache disabled: {e}")
                self._redis = None
                return None
        return self._redis

    async def get(self, key: str) -> Any | None:
        """Get a value from cache. Returns None on miss or error."""
        try:
            r = await self._get_redis()
            if r is None:
                return None
            raw = await r.get(key)
            if raw is None:
                return None
            return json.loads(raw)
        except Exception:
            return None

    async def set(self, key: str, value: Any, ttl: int = TTL_PLACE_SEARCH) -> bool:
        """Set a value in cache with TTL. Returns False on error."""
        try:
            r = await self._get_redis()
            if r is None:
                return False
            await r.set(key, json.dumps(value, default=str), ex=ttl)
            return True
        except Exception:
            return False

    # Typed helpers

    def place_search_key(
        self,
        query: str,
        center: str,
        radius_meters: int,
        place_type: str | None,
        page_token: str | None,
    ) -> str:
        # Page tokens are long; hash the variable part to keep keys short
        raw = f"{query}|{center}|{radius_meters}|{place_type or ''}|{page_token or ''}"
        return f"places:search:{hashlib.sha1(raw.encode()).hexdigest()}"

    def geocode_key(self, address: str) -> str:
        return f"geocode:{' '.join(address.lower().split())}"

    async def get_place_search(self, key: str) -> dict | None:
        return await self.get(key)

    async def set_place_search(self, key: str, data: dict):
        await self.set(key, data, TTL_PLACE_SEARCH)

    async def get_geocode(self, address: str) -> dict | None:
        return await self.get(self.geocode_key(address))

    async def set_geocode(self, address: str, data: dict):
        await self.set(self.geocode_key(address), data, TTL_GEOCODE)

    async def close(self):
        if self._redis:
            await self._redis.aclose()
            self._redis = None


cache_service = CacheService()
