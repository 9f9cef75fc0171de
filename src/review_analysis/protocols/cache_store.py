"""Cache storage protocol.

Defines the interface for the key/value store backing the analysis
cache. Every method is fail-open: a store outage degrades to a cache miss
or a lost write, never to an exception in the calling request.

Implementations can include:
- Redis (default)
- An in-memory dictionary (tests, single-process development)
"""

from typing import Any, Protocol, runtime_checkable


@runtime_checkable
class CacheStore(Protocol):
    """Protocol for best-effort key/value cache backends.

    Similar to Go's interface pattern - any type that implements these
    methods satisfies the protocol, no explicit inheritance needed.

    Example:
        ```python
        from review_analysis.protocols import CacheStore

        store: CacheStore = RedisCacheRepository.create()
        ```
    """

    async def get(self, key: str) -> dict[str, Any] | None:
        """Read a JSON value.

        Args:
            key: The cache key

        Returns:
            The stored value, or None on miss or store failure
        """
        ...

    async def set_with_ttl(self, key: str, value: dict[str, Any], ttl: int) -> bool:
        """Write a JSON value that expires after ``ttl`` seconds.

        Returns:
            True if stored, False if the write was lost
        """
        ...

    async def set_if_absent(self, key: str, value: dict[str, Any], ttl: int) -> bool | None:
        """Atomically write a value only if the key does not exist.

        Returns:
            True if written, False if the key already existed,
            None if the store could not be reached
        """
        ...

    async def delete_keys(self, keys: set[str] | list[str]) -> int:
        """Delete keys. Missing keys are not an error.

        Returns:
            Number of keys actually deleted
        """
        ...

    async def health_check(self) -> dict[str, Any]:
        """Probe the store with a round-trip.

        Returns:
            ``{"status": "healthy", "latency_ms": float}`` or
            ``{"status": "unhealthy"}``
        """
        ...

    async def stats(self) -> dict[str, Any] | None:
        """Get store statistics (memory, key counts).

        Returns:
            Dictionary with stats (implementation-specific), or None on error
        """
        ...
