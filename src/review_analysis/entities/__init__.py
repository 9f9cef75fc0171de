"""Domain entities for internal representation.

These are pure dataclasses (frozen) used internally by services
and repositories. They are NOT used for API contracts - use DTOs
from the dto package for that.

Entities should have:
- No JSON serialization logic beyond plain cache records
- No Pydantic validation
- No external dependencies
"""

from .analysis_task import (
    AnalysisResult,
    AnalysisTask,
    Completed,
    Failed,
    Pending,
    Processing,
    StatusReport,
    TaskStatus,
    TaskUpdate,
)
from .job import JobAccepted, JobStatus

__all__ = [
    "AnalysisResult",
    "AnalysisTask",
    "Completed",
    "Failed",
    "JobAccepted",
    "JobStatus",
    "Pending",
    "Processing",
    "StatusReport",
    "TaskStatus",
    "TaskUpdate",
]
