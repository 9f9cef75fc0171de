"""DTOs for the external analysis service's HTTP contract.

The service speaks camelCase JSON. These models validate its responses at
the boundary and convert them into entities.
"""

from pydantic import ConfigDict, Field

from review_analysis.entities import JobAccepted, JobStatus, TaskStatus

from .base import CamelModel


class UpstreamModel(CamelModel):
    """Base for camelCase payloads exchanged with the analysis service."""

    model_config = ConfigDict(extra="ignore")


class StartJobRequest(UpstreamModel):
    """Body of ``POST /analyze``."""

    product_id: str
    url: str | None = None
    keywords: list[str] | None = None
    callback_url: str


class StartJobResponse(UpstreamModel):
    """Response of ``POST /analyze``."""

    task_id: str = Field(..., min_length=1)
    status: TaskStatus = TaskStatus.PENDING
    estimated_time: int | None = Field(None, ge=0)

    def to_entity(self) -> JobAccepted:
        return JobAccepted(
            task_id=self.task_id,
            status=self.status,
            estimated_time=self.estimated_time,
        )


class JobStatusResponse(UpstreamModel):
    """Response of ``GET /status/{productId}``."""

    status: TaskStatus
    progress: int = Field(0, ge=0, le=100)
    estimated_time: int | None = Field(None, ge=0)
    error: str | None = None

    def to_entity(self) -> JobStatus:
        return JobStatus(
            status=self.status,
            progress=self.progress,
            estimated_time=self.estimated_time,
            error=self.error,
        )
