"""Redis implementation of CacheStore.

Values are stored as JSON strings under an optional key prefix, each with
its own TTL. Every round-trip is bounded by a timeout and every failure is
logged and absorbed: the cache is never a hard dependency of a request.
"""

import asyncio
import json
import logging
import time
from typing import Any

import redis.asyncio as redis

from review_analysis.config import get_redis_client, settings
from review_analysis.models import CacheMetrics

logger = logging.getLogger(__name__)

# INFO fields worth exposing through stats()
_MEMORY_FIELDS = ("used_memory", "used_memory_human", "used_memory_peak_human", "maxmemory_human")


class RedisCacheRepository:
    """Fail-open Redis key/value store with per-entry TTL.

    This class satisfies the CacheStore protocol through structural
    typing - no explicit inheritance needed.
    """

    def __init__(
        self,
        redis_client: redis.Redis | None = None,
        key_prefix: str | None = None,
        operation_timeout: float | None = None,
    ) -> None:
        """Initialize the Redis cache repository.

        Args:
            redis_client: Redis client instance. If None, creates default.
            key_prefix: Namespace prepended to every key. Defaults to settings.
            operation_timeout: Seconds allowed per round-trip. Defaults to settings.
        """
        self._client = redis_client or get_redis_client()
        self._prefix = settings.redis_key_prefix if key_prefix is None else key_prefix
        self._timeout = operation_timeout or settings.cache_operation_timeout
        self._metrics = CacheMetrics()

    @classmethod
    def create(
        cls,
        key_prefix: str | None = None,
        operation_timeout: float | None = None,
    ) -> "RedisCacheRepository":
        """Factory method to create RedisCacheRepository with defaults.

        Args:
            key_prefix: Key namespace. If None, uses settings.
            operation_timeout: Round-trip timeout. If None, uses settings.

        Returns:
            Configured RedisCacheRepository
        """
        return cls(key_prefix=key_prefix, operation_timeout=operation_timeout)

    def _key(self, key: str) -> str:
        return f"{self._prefix}:{key}" if self._prefix else key

    async def _call(self, awaitable: Any) -> Any:
        return await asyncio.wait_for(awaitable, timeout=self._timeout)

    async def get(self, key: str) -> dict[str, Any] | None:
        """Read a JSON value; None on miss, decode error or store failure."""
        start_time = time.perf_counter()
        try:
            raw = await self._call(self._client.get(self._key(key)))
        except Exception as e:
            self._metrics.record_error()
            logger.warning("Cache GET failed for %s: %s", key, e)
            return None

        lookup_time_ms = (time.perf_counter() - start_time) * 1000
        if raw is None:
            self._metrics.record_miss(lookup_time_ms)
            logger.debug("Cache miss: %s", key)
            return None

        try:
            value = json.loads(raw)
        except (TypeError, json.JSONDecodeError) as e:
            self._metrics.record_error()
            logger.warning("Discarding undecodable cache value for %s: %s", key, e)
            return None

        self._metrics.record_hit(lookup_time_ms)
        logger.debug("Cache hit: %s", key)
        return value

    async def set_with_ttl(self, key: str, value: dict[str, Any], ttl: int) -> bool:
        """Write a JSON value with expiry; False if the write was lost."""
        try:
            await self._call(self._client.set(self._key(key), json.dumps(value, default=str), ex=ttl))
        except Exception as e:
            self._metrics.record_error()
            logger.warning("Cache SET failed for %s: %s", key, e)
            return False
        logger.debug("Cache SET %s (TTL: %ss)", key, ttl)
        return True

    async def set_if_absent(self, key: str, value: dict[str, Any], ttl: int) -> bool | None:
        """Atomic SET NX EX.

        Returns:
            True if written, False if the key existed, None on store failure
        """
        try:
            written = await self._call(
                self._client.set(self._key(key), json.dumps(value, default=str), ex=ttl, nx=True)
            )
        except Exception as e:
            self._metrics.record_error()
            logger.warning("Cache SET NX failed for %s: %s", key, e)
            return None
        return bool(written)

    async def delete_keys(self, keys: set[str] | list[str]) -> int:
        """Delete keys; missing keys are ignored. Returns the number deleted."""
        if not keys:
            return 0
        try:
            deleted: int = await self._call(self._client.delete(*(self._key(k) for k in keys)))
        except Exception as e:
            self._metrics.record_error()
            logger.warning("Cache DEL failed for %d keys: %s", len(keys), e)
            return 0
        logger.info("Invalidated %d of %d cache keys", deleted, len(keys))
        return deleted

    async def health_check(self) -> dict[str, Any]:
        """PING Redis.

        Returns:
            Healthy status with latency, or unhealthy without latency
        """
        start_time = time.perf_counter()
        try:
            await self._call(self._client.ping())
        except Exception as e:
            logger.warning("Cache health check failed: %s", e)
            return {"status": "unhealthy"}
        return {
            "status": "healthy",
            "latency_ms": round((time.perf_counter() - start_time) * 1000, 3),
        }

    async def stats(self) -> dict[str, Any] | None:
        """Get memory and keyspace statistics.

        Returns:
            Dictionary with stats, or None if Redis could not be queried
        """
        try:
            memory = await self._call(self._client.info("memory"))
            keyspace = await self._call(self._client.info("keyspace"))
            key_count = await self._call(self._client.dbsize())
        except Exception as e:
            logger.warning("Cache stats unavailable: %s", e)
            return None
        return {
            "memory": {name: memory[name] for name in _MEMORY_FIELDS if name in memory},
            "keyspace": keyspace,
            "key_count": key_count,
        }

    async def close(self) -> None:
        """Close the underlying connection pool."""
        await self._client.aclose()

    @property
    def metrics(self) -> CacheMetrics:
        """Hit/miss/error counters since startup."""
        return self._metrics

    @property
    def client(self) -> redis.Redis:
        """Get the Redis client."""
        return self._client
