"""
Redis Cache Module

Caching layer with:
- Connection pooling
- Automatic serialization
- TTL management
- Generation-tagged tracker caches read by the ingestion path, invalidated
  on every configuration change
"""

import json
from typing import Any, Awaitable, Callable, Optional, Union
from datetime import timedelta

import structlog
from redis.asyncio import Redis, ConnectionPool
from redis.exceptions import RedisError

from custom_dimensions.config import get_settings

logger = structlog.get_logger(__name__)

# Errors after which the cache is treated as absent
CACHE_ERRORS = (RedisError, RuntimeError, OSError)

# Global Redis connection
_redis_pool: Optional[ConnectionPool] = None
_redis_client: Optional[Redis] = None


async def init_redis() -> Redis:
    """Initialize Redis connection pool"""
    global _redis_pool, _redis_client

    if _redis_client is not None:
        return _redis_client

    settings = get_settings()
    _redis_pool = ConnectionPool.from_url(
        settings.redis.get_url(),
        max_connections=settings.redis.max_connections,
        socket_timeout=settings.redis.socket_timeout,
        decode_responses=settings.redis.decode_responses,
    )

    _redis_client = Redis(connection_pool=_redis_pool)

    try:
        await _redis_client.ping()
        logger.info("Redis connection established")
    except RedisError as e:
        logger.error("Redis connection failed", error=str(e))
        raise

    return _redis_client


async def close_redis() -> None:
    """Close Redis connection pool"""
    global _redis_pool, _redis_client

    if _redis_client:
        await _redis_client.aclose()
        _redis_client = None

    if _redis_pool:
        await _redis_pool.disconnect()
        _redis_pool = None

    logger.info("Redis connection closed")


def get_redis() -> Redis:
    """Get Redis client instance"""
    if _redis_client is None:
        raise RuntimeError("Redis not initialized. Call init_redis() first.")
    return _redis_client


async def cache_get(key: str, client: Optional[Redis] = None) -> Optional[Any]:
    """
    Get value from cache.

    Returns:
        Cached value or None if not found
    """
    client = client or get_redis()
    value = await client.get(key)

    if value is None:
        return None

    try:
        return json.loads(value)
    except json.JSONDecodeError:
        return value


async def cache_set(
    key: str,
    value: Any,
    ttl: Optional[Union[int, timedelta]] = None,
    client: Optional[Redis] = None,
) -> bool:
    """
    Set value in cache.

    Args:
        key: Cache key
        value: Value to cache (will be JSON serialized)
        ttl: Time-to-live in seconds or timedelta

    Returns:
        True if successful
    """
    client = client or get_redis()

    try:
        serialized = json.dumps(value, default=str)
    except (TypeError, ValueError) as e:
        logger.warning("Failed to serialize value for cache", key=key, error=str(e))
        return False

    if ttl:
        if isinstance(ttl, timedelta):
            ttl = int(ttl.total_seconds())
        await client.setex(key, ttl, serialized)
    else:
        await client.set(key, serialized)

    return True


async def cache_delete(key: str, client: Optional[Redis] = None) -> bool:
    """Delete key from cache"""
    client = client or get_redis()
    result = await client.delete(key)
    return result > 0


async def cache_incr(key: str, client: Optional[Redis] = None) -> int:
    """Atomically increment a counter, creating it at 1"""
    client = client or get_redis()
    return await client.incr(key)


class CacheManager:
    """
    Cache manager with namespace support and automatic key generation.

    Uses the global client unless one is passed in.

    Example:
        cache = CacheManager("tracker:site")
        await cache.set("1", site_snapshot, ttl=3600)
        snapshot = await cache.get("1")
    """

    def __init__(self, namespace: str, default_ttl: int = 3600, client: Optional[Redis] = None):
        self.namespace = namespace
        self.default_ttl = default_ttl
        self._client = client

    def _key(self, key: str) -> str:
        """Generate namespaced key"""
        return f"{self.namespace}:{key}"

    async def get(self, key: str) -> Optional[Any]:
        """Get value from cache"""
        return await cache_get(self._key(key), self._client)

    async def set(
        self,
        key: str,
        value: Any,
        ttl: Optional[int] = None,
    ) -> bool:
        """Set value in cache"""
        return await cache_set(self._key(key), value, ttl or self.default_ttl, self._client)

    async def delete(self, key: str) -> bool:
        """Delete key from cache"""
        return await cache_delete(self._key(key), self._client)

    async def incr(self, key: str) -> int:
        """Increment a counter kept without TTL"""
        return await cache_incr(self._key(key), self._client)


class TrackerCache:
    """
    Snapshots of the dimension configuration read at tracking time.

    The per-site entry lists the site's dimensions with the slot each writes
    into; the general entry maps every dimension id to its slot. Both are
    derived from the configuration store, stored as a single value each and
    deleted (never patched) when the configuration changes.

    Every snapshot is stored with the generation of its key as read before
    loading. ``invalidate`` bumps the generation, so a snapshot loaded before a
    write but stored after its invalidation no longer matches and is reloaded.
    The cache is optional: when Redis fails, snapshots come from the loader.
    """

    GENERAL_KEY = "all"

    def __init__(
        self,
        site_cache: Optional[CacheManager] = None,
        general_cache: Optional[CacheManager] = None,
        client: Optional[Redis] = None,
    ):
        settings = get_settings()
        self.site_cache = site_cache or CacheManager(
            "tracker:site", default_ttl=settings.dimensions.site_cache_ttl, client=client
        )
        self.general_cache = general_cache or CacheManager(
            "tracker:general", default_ttl=settings.dimensions.general_cache_ttl, client=client
        )

    @staticmethod
    def _generation_key(key: str) -> str:
        return f"{key}:generation"

    async def get_site(self, site_id: int, loader: Callable[[], Awaitable[Any]]) -> Any:
        """Per-site snapshot, loaded from the store on a miss"""
        return await self._get_or_load(self.site_cache, str(site_id), loader)

    async def get_general(self, loader: Callable[[], Awaitable[Any]]) -> Any:
        """Process-wide snapshot, loaded from the store on a miss"""
        return await self._get_or_load(self.general_cache, self.GENERAL_KEY, loader)

    async def _get_or_load(
        self,
        cache: CacheManager,
        key: str,
        loader: Callable[[], Awaitable[Any]],
    ) -> Any:
        try:
            generation = await cache.get(self._generation_key(key)) or 0
            entry = await cache.get(key)
        except CACHE_ERRORS as e:
            logger.warning(
                "Tracker cache unavailable, loading snapshot from the store",
                namespace=cache.namespace,
                key=key,
                error=str(e),
                error_type=type(e).__name__,
            )
            return await loader()

        if isinstance(entry, dict) and entry.get("generation") == generation:
            return entry.get("data")

        data = await loader()
        try:
            await cache.set(key, {"generation": generation, "data": data})
        except CACHE_ERRORS as e:
            logger.warning(
                "Tracker cache write failed",
                namespace=cache.namespace,
                key=key,
                error=str(e),
                error_type=type(e).__name__,
            )
        return data

    async def invalidate(self, site_id: int) -> bool:
        """
        Drop the site's snapshot and the general snapshot.

        Never raises: a failure leaves stale snapshots until the next write or
        TTL expiry, which is logged and reported as False.
        """
        try:
            for cache, key in ((self.site_cache, str(site_id)), (self.general_cache, self.GENERAL_KEY)):
                await cache.incr(self._generation_key(key))
                await cache.delete(key)
        except CACHE_ERRORS as e:
            logger.warning(
                "Tracker cache invalidation failed, ingestion may use stale slot mappings",
                site_id=site_id,
                error=str(e),
                error_type=type(e).__name__,
            )
            return False

        logger.debug("Tracker cache invalidated", site_id=site_id)
        return True
