"""
Redis caching service for carpool listings.

CACHING STRATEGY
================

What we cache:
  - Active offer listings per event (JSON-serialized response dicts)
  - Key pattern: "{namespace}:{key}", e.g. "offers:event=42"

Why:
  - Event offer listings are the most frequent carpool read
  - Listings only need read-committed freshness; join/leave re-check the
    offer row under its version lock, so a stale listing can never oversell

Bounds:
  - Every entry has a TTL (REDIS_CACHE_TTL) as a safety net
  - Each namespace keeps a sorted-set index "{namespace}:__index__" scored by
    insertion time. Past CACHE_MAX_ENTRIES the oldest entries are evicted,
    so the cache cannot grow without limit

Invalidation:
  - Every seat-ledger mutation drops the whole "offers" namespace through
    the index (no SCAN over the keyspace needed)

The service is an explicit object handed to callers (one per app, stored on
app.state), not module state. If Redis is disabled or unreachable every call
degrades to a miss / no-op.
"""

import json
import time
from typing import Awaitable, Callable, Optional

import redis.asyncio as redis
from redis.exceptions import RedisError

from app.core.config import get_settings
from app.core.logging import get_logger
from app.core.metrics import record_cache_operation
from app.infrastructure.redis_client import get_redis

logger = get_logger(__name__)

OFFERS_NAMESPACE = "offers"

ClientFactory = Callable[[], Awaitable[Optional[redis.Redis]]]


class CacheService:
    """Namespaced, size-bounded JSON cache over Redis."""

    def __init__(
        self,
        client_factory: ClientFactory = get_redis,
        ttl_seconds: Optional[int] = None,
        max_entries: Optional[int] = None,
    ):
        settings = get_settings()
        self._client_factory = client_factory
        self.ttl_seconds = ttl_seconds if ttl_seconds is not None else settings.REDIS_CACHE_TTL
        self.max_entries = max_entries if max_entries is not None else settings.CACHE_MAX_ENTRIES

    @staticmethod
    def _key(namespace: str, key: str) -> str:
        return f"{namespace}:{key}"

    @staticmethod
    def _index(namespace: str) -> str:
        return f"{namespace}:__index__"

    async def get(self, namespace: str, key: str) -> Optional[dict]:
        """Return the cached value or None on miss."""
        client = await self._client_factory()
        if client is None:
            return None

        full_key = self._key(namespace, key)
        try:
            data = await client.get(full_key)
        except RedisError as e:
            logger.error("cache_get_error", key=full_key, error=str(e))
            return None

        record_cache_operation("get", hit=data is not None)
        if data is None:
            logger.debug("cache_miss", key=full_key)
            return None
        logger.debug("cache_hit", key=full_key)
        return json.loads(data)

    async def set(self, namespace: str, key: str, value: dict) -> None:
        """Store value with TTL and evict the oldest entries past the bound."""
        client = await self._client_factory()
        if client is None:
            return

        full_key = self._key(namespace, key)
        index = self._index(namespace)
        try:
            async with client.pipeline(transaction=True) as pipe:
                pipe.setex(full_key, self.ttl_seconds, json.dumps(value, default=str))
                pipe.zadd(index, {full_key: time.time()})
                pipe.expire(index, self.ttl_seconds * 2)
                await pipe.execute()

            overflow = await client.zcard(index) - self.max_entries
            if overflow > 0:
                oldest = await client.zrange(index, 0, overflow - 1)
                if oldest:
                    await client.delete(*oldest)
                    await client.zrem(index, *oldest)
                    logger.info("cache_evicted", namespace=namespace, evicted=len(oldest))
            logger.debug("cache_set", key=full_key, ttl=self.ttl_seconds)
        except RedisError as e:
            logger.error("cache_set_error", key=full_key, error=str(e))

    async def invalidate(self, namespace: str) -> int:
        """Drop every entry in a namespace. Returns the number of keys removed."""
        client = await self._client_factory()
        if client is None:
            return 0

        index = self._index(namespace)
        try:
            keys = await client.zrange(index, 0, -1)
            if keys:
                await client.delete(*keys)
            await client.delete(index)
        except RedisError as e:
            logger.error("cache_invalidation_error", namespace=namespace, error=str(e))
            return 0

        logger.info("cache_invalidated", namespace=namespace, keys_deleted=len(keys))
        return len(keys)

    async def stats(self) -> dict:
        """Redis cache statistics for monitoring."""
        client = await self._client_factory()
        if client is None:
            return {"status": "disabled"}

        try:
            info = await client.info("stats")
        except RedisError as e:
            return {"status": "error", "error": str(e)}

        hits = info.get("keyspace_hits", 0)
        misses = info.get("keyspace_misses", 0)
        return {
            "status": "connected",
            "hits": hits,
            "misses": misses,
            "hit_rate": round(hits / max(hits + misses, 1) * 100, 2),
        }


def event_offers_key(event_id: int) -> str:
    return f"event={event_id}"
