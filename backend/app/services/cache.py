"""
Redis read-through cache for public marketplace responses.

Entries hold JSON-ready response bodies. Every mirror write (sync or
self-heal) drops the whole namespace; the TTL only bounds staleness when an
invalidation is lost. Redis problems degrade to a cache miss.
"""

import hashlib
import json
import logging
from typing import Any, Awaitable, Callable, Optional

import redis.asyncio as redis

from app.core.config import settings

logger = logging.getLogger(__name__)

CACHE_NAMESPACE = "chaintorque:market:"
CACHE_TTL_SECONDS = 60


def cache_key(name: str, **params: Any) -> str:
    if not params:
        return f"{CACHE_NAMESPACE}{name}"
    digest = hashlib.sha1(json.dumps(params, sort_keys=True, default=str).encode()).hexdigest()
    return f"{CACHE_NAMESPACE}{name}:{digest[:12]}"


class CacheService:
    _client: Optional[redis.Redis] = None

    @classmethod
    def client(cls) -> redis.Redis:
        if cls._client is None:
            cls._client = redis.from_url(
                settings.redis_url,
                decode_responses=True,
                socket_connect_timeout=2,
                socket_timeout=2,
            )
        return cls._client

    @classmethod
    async def close(cls):
        if cls._client is not None:
            await cls._client.aclose()
            cls._client = None

    @classmethod
    async def fetch(
        cls,
        name: str,
        build: Callable[[], Awaitable[dict]],
        **params: Any,
    ) -> dict:
        """Cached body for (name, params), or build() it and store the result."""
        if not settings.CACHE_ENABLED:
            return await build()

        key = cache_key(name, **params)
        try:
            hit = await cls.client().get(key)
            if hit is not None:
                logger.debug("Cache hit: %s", key)
                return json.loads(hit)
        except redis.RedisError as e:
            logger.warning("Cache read failed for %s: %s", key, e)

        body = await build()

        try:
            await cls.client().set(key, json.dumps(body), ex=CACHE_TTL_SECONDS)
        except (redis.RedisError, TypeError) as e:
            logger.warning("Cache write failed for %s: %s", key, e)
        return body

    @classmethod
    async def invalidate(cls) -> int:
        """Drop every marketplace entry. Returns the number of keys removed."""
        if not settings.CACHE_ENABLED:
            return 0

        deleted = 0
        try:
            r = cls.client()
            async for key in r.scan_iter(match=f"{CACHE_NAMESPACE}*", count=100):
                deleted += await r.delete(key)
            logger.debug("Cache invalidated (%d keys)", deleted)
        except redis.RedisError as e:
            logger.warning("Cache invalidation failed: %s", e)
        return deleted

    @classmethod
    async def health_check(cls) -> bool:
        if not settings.CACHE_ENABLED:
            return False
        try:
            return bool(await cls.client().ping())
        except redis.RedisError:
            return False
