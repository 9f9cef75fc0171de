"""Review Analysis - async orchestration of external review analyses.

This package provides a layered architecture for analysis requests:

Layers:
    - protocols: Interface contracts (CacheStore, JobClient, Notifier)
    - repositories: Redis cache, HTTP job client and notifier implementations
    - services: Business logic
    - handlers: HTTP endpoint handlers
    - dto: Data transfer objects (API contracts)
    - entities: Domain models (internal)

Usage:
    ```python
    from review_analysis.repositories import (
        BroadcastNotifier,
        HttpJobClient,
        RedisCacheRepository,
    )
    from review_analysis.services import AnalysisService

    service = AnalysisService.create(
        cache=RedisCacheRepository.create(),
        job_client=HttpJobClient.create(),
        notifier=BroadcastNotifier(),
    )
    ```

For HTTP API:
    ```python
    from review_analysis.api.app import app
    ```
"""

from review_analysis.config import get_redis_client, settings
from review_analysis.dto import AnalyzeRequest, CallbackPayload
from review_analysis.entities import AnalysisResult, AnalysisTask, StatusReport, TaskStatus
from review_analysis.errors import AnalysisError
from review_analysis.handlers import AnalysisHandler
from review_analysis.protocols import CacheStore, JobClient, Notifier
from review_analysis.repositories import (
    BroadcastNotifier,
    HttpJobClient,
    RedisCacheRepository,
    RedisNotifier,
)
from review_analysis.services import AnalysisService

__all__ = [
    # Configuration
    "settings",
    "get_redis_client",
    # Errors
    "AnalysisError",
    # Protocols (interfaces)
    "CacheStore",
    "JobClient",
    "Notifier",
    # Services (business logic)
    "AnalysisService",
    # Handlers (HTTP)
    "AnalysisHandler",
    # Repositories (data access)
    "RedisCacheRepository",
    "HttpJobClient",
    "BroadcastNotifier",
    "RedisNotifier",
    # Entities (domain models)
    "AnalysisResult",
    "AnalysisTask",
    "StatusReport",
    "TaskStatus",
    # DTOs (API contracts)
    "AnalyzeRequest",
    "CallbackPayload",
]
