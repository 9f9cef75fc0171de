"""Service layer for business logic.

This layer contains the core business logic and orchestration.
Services depend on protocols (interfaces), not concrete implementations,
making them testable and flexible.

Architecture:
    Handler -> Service -> Repository
    (HTTP)  -> (Business) -> (Cache / upstream / notifier)

Usage:
    ```python
    from review_analysis.services import AnalysisService

    # Using factory method (recommended)
    service = AnalysisService.create(cache=store, job_client=client, notifier=notifier)

    # Or manual creation with explicit TTLs
    service = AnalysisService(cache=store, job_client=client, notifier=notifier, status_ttl=60)
    ```
"""

from .analysis_service import AnalysisService, CallbackOutcome, SubmittedAnalysis, topic_for

__all__ = [
    "AnalysisService",
    "CallbackOutcome",
    "SubmittedAnalysis",
    "topic_for",
]
