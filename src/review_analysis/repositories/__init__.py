"""Repository layer for external collaborators.

This layer abstracts external dependencies (Redis, the analysis service,
realtime transport) behind protocol-based interfaces. This enables:
- Easy swapping of implementations (Redis → in-memory, HTTP → stub, etc.)
- Unit testing with fake implementations
- Clear separation of concerns

The repositories are protocol-based (structural typing), not inheritance-based.
Any class implementing the required methods will satisfy the protocol.
"""

from review_analysis.protocols import CacheStore, JobClient, Notifier

from .http_job_client import HttpJobClient
from .notifiers import BroadcastNotifier, RedisNotifier
from .redis_repository import RedisCacheRepository

__all__ = [
    "CacheStore",
    "JobClient",
    "Notifier",
    "BroadcastNotifier",
    "HttpJobClient",
    "RedisCacheRepository",
    "RedisNotifier",
]
