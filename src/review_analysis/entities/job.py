"""Job state as reported by the external analysis service."""

from dataclasses import dataclass

from .analysis_task import TaskStatus


@dataclass(frozen=True)
class JobAccepted:
    """Acknowledgement of a started analysis job.

    Attributes:
        task_id: Identifier issued by the external service
        status: Initial status (normally pending)
        estimated_time: Estimated seconds until completion
    """

    task_id: str
    status: TaskStatus = TaskStatus.PENDING
    estimated_time: int | None = None


@dataclass(frozen=True)
class JobStatus:
    """Result of a live status poll."""

    status: TaskStatus
    progress: int = 0
    estimated_time: int | None = None
    error: str | None = None
