from dataclasses import dataclass


@dataclass
class CacheMetrics:
    """Track hit/miss/error counts for cache operations."""

    hits: int = 0
    misses: int = 0
    errors: int = 0
    total_lookup_time_ms: float = 0.0

    @property
    def total_lookups(self) -> int:
        return self.hits + self.misses

    @property
    def hit_rate(self) -> float:
        """Calculate cache hit rate."""
        if self.total_lookups == 0:
            return 0.0
        return self.hits / self.total_lookups

    @property
    def avg_lookup_time_ms(self) -> float:
        """Calculate average lookup time."""
        if self.total_lookups == 0:
            return 0.0
        return self.total_lookup_time_ms / self.total_lookups

    def record_hit(self, lookup_time_ms: float) -> None:
        """Record a cache hit."""
        self.hits += 1
        self.total_lookup_time_ms += lookup_time_ms

    def record_miss(self, lookup_time_ms: float) -> None:
        """Record a cache miss."""
        self.misses += 1
        self.total_lookup_time_ms += lookup_time_ms

    def record_error(self) -> None:
        """Record a failed store round-trip."""
        self.errors += 1

    def to_dict(self) -> dict[str, float | int]:
        """Convert metrics to dictionary."""
        return {
            "hits": self.hits,
            "misses": self.misses,
            "errors": self.errors,
            "hit_rate": self.hit_rate,
            "avg_lookup_time_ms": self.avg_lookup_time_ms,
        }
