"""Protocol interfaces for swappable implementations.

This package contains protocol definitions using structural typing.
Protocols enable:
- Easy swapping of implementations (Redis → in-memory, HTTP → stub, etc.)
- Unit testing with fake implementations
- Clear separation of concerns

Usage:
    ```python
    from review_analysis.protocols import CacheStore, JobClient, Notifier

    # Type hints work with any implementation
    store: CacheStore = RedisCacheRepository.create()
    client: JobClient = HttpJobClient.create()
    ```
"""

from .cache_store import CacheStore
from .job_client import JobClient
from .notifier import Notifier

__all__ = [
    "CacheStore",
    "JobClient",
    "Notifier",
]
