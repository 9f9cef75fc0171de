"""Analysis task domain entities.

An ``AnalysisTask`` moves through a monotone state machine::

    pending -> processing -> completed
                          -> failed

Terminal states are sticky: ``apply`` ignores any update that would leave
one, or that would move a task backwards.
"""

from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Union


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _parse_datetime(value: str | None) -> datetime | None:
    return datetime.fromisoformat(value) if value else None


def _format_datetime(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


class TaskStatus(str, Enum):
    """Wire-compatible task status values."""

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (TaskStatus.COMPLETED, TaskStatus.FAILED)

    @property
    def rank(self) -> int:
        """Position in the state machine; both terminal states share a rank."""
        if self is TaskStatus.PENDING:
            return 0
        if self is TaskStatus.PROCESSING:
            return 1
        return 2


@dataclass(frozen=True)
class AnalysisResult:
    """Outcome of a completed review analysis.

    Attributes:
        sentiment: Share of each sentiment class, e.g. ``{"positive": 70.0}``
        summary: Free-text summary of the reviews
        keywords: Most relevant keywords
        total_reviews: Number of reviews the analysis covered
    """

    sentiment: dict[str, float] = field(default_factory=dict)
    summary: str = ""
    keywords: list[str] = field(default_factory=list)
    total_reviews: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "sentiment": dict(self.sentiment),
            "summary": self.summary,
            "keywords": list(self.keywords),
            "total_reviews": self.total_reviews,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "AnalysisResult":
        return cls(
            sentiment=dict(data.get("sentiment") or {}),
            summary=data.get("summary") or "",
            keywords=list(data.get("keywords") or []),
            total_reviews=int(data.get("total_reviews") or 0),
        )


# Tagged union of state updates delivered by the external service.


@dataclass(frozen=True)
class Pending:
    status = TaskStatus.PENDING


@dataclass(frozen=True)
class Processing:
    progress: int | None = None
    status = TaskStatus.PROCESSING


@dataclass(frozen=True)
class Completed:
    result: AnalysisResult
    status = TaskStatus.COMPLETED


@dataclass(frozen=True)
class Failed:
    error: str
    status = TaskStatus.FAILED


TaskUpdate = Union[Pending, Processing, Completed, Failed]


@dataclass(frozen=True)
class AnalysisTask:
    """One analysis job submitted to the external service for a product.

    Attributes:
        product_id: The analysed product
        task_id: Identifier issued by the external service
        status: Current state
        progress: Advisory completion percentage (0-100)
        estimated_time: Upstream estimate of the remaining seconds
        result: Present only when completed
        error: Present only when failed
        created_at: When the task was submitted
        completed_at: When the task reached a terminal state
    """

    product_id: str
    task_id: str
    status: TaskStatus = TaskStatus.PENDING
    progress: int = 0
    estimated_time: int | None = None
    result: AnalysisResult | None = None
    error: str | None = None
    created_at: datetime = field(default_factory=utcnow)
    completed_at: datetime | None = None

    def __post_init__(self) -> None:
        if not self.task_id:
            raise ValueError("task_id is required")
        if (self.result is not None) != (self.status is TaskStatus.COMPLETED):
            raise ValueError("result must be set if and only if the task is completed")
        if (self.error is not None) != (self.status is TaskStatus.FAILED):
            raise ValueError("error must be set if and only if the task failed")
        object.__setattr__(self, "progress", max(0, min(100, int(self.progress))))

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal

    def apply(self, update: TaskUpdate) -> "AnalysisTask":
        """Return the task after ``update``, or ``self`` if it would regress."""
        if self.is_terminal or update.status.rank < self.status.rank:
            return self

        if isinstance(update, Completed):
            return replace(
                self,
                status=TaskStatus.COMPLETED,
                progress=100,
                estimated_time=0,
                result=update.result,
                completed_at=utcnow(),
            )
        if isinstance(update, Failed):
            return replace(
                self,
                status=TaskStatus.FAILED,
                error=update.error,
                estimated_time=0,
                completed_at=utcnow(),
            )
        if isinstance(update, Processing):
            progress = self.progress if update.progress is None else max(self.progress, update.progress)
            if self.status is TaskStatus.PROCESSING and progress == self.progress:
                return self
            return replace(self, status=TaskStatus.PROCESSING, progress=progress)
        return self

    def to_record(self) -> dict[str, Any]:
        """Serialize for the cache."""
        return {
            "product_id": self.product_id,
            "task_id": self.task_id,
            "status": self.status.value,
            "progress": self.progress,
            "estimated_time": self.estimated_time,
            "result": self.result.to_dict() if self.result else None,
            "error": self.error,
            "created_at": _format_datetime(self.created_at),
            "completed_at": _format_datetime(self.completed_at),
        }

    @classmethod
    def from_record(cls, record: dict[str, Any]) -> "AnalysisTask":
        """Rebuild a task from a cache record.

        Raises:
            ValueError: If the record does not describe a valid task
        """
        try:
            result = record.get("result")
            return cls(
                product_id=record["product_id"],
                task_id=record["task_id"],
                status=TaskStatus(record["status"]),
                progress=record.get("progress") or 0,
                estimated_time=record.get("estimated_time"),
                result=AnalysisResult.from_dict(result) if result is not None else None,
                error=record.get("error"),
                created_at=_parse_datetime(record.get("created_at")) or utcnow(),
                completed_at=_parse_datetime(record.get("completed_at")),
            )
        except (KeyError, TypeError, AttributeError) as e:
            raise ValueError(f"Invalid task record: {e}") from e


@dataclass(frozen=True)
class StatusReport:
    """What the status endpoint reports for a product.

    Built either from a task the service wrote itself (``task_id`` known,
    ``result`` present once completed) or from a live upstream poll, which
    knows the status but never the result.
    """

    product_id: str
    status: TaskStatus
    task_id: str | None = None
    progress: int = 0
    estimated_time: int | None = None
    result: AnalysisResult | None = None
    error: str | None = None
    updated_at: datetime = field(default_factory=utcnow)
    from_cache: bool = False

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal

    @classmethod
    def from_task(cls, task: AnalysisTask) -> "StatusReport":
        return cls(
            product_id=task.product_id,
            status=task.status,
            task_id=task.task_id,
            progress=task.progress,
            estimated_time=task.estimated_time,
            result=task.result,
            error=task.error,
        )

    def to_record(self) -> dict[str, Any]:
        return {
            "product_id": self.product_id,
            "status": self.status.value,
            "task_id": self.task_id,
            "progress": self.progress,
            "estimated_time": self.estimated_time,
            "result": self.result.to_dict() if self.result else None,
            "error": self.error,
            "updated_at": _format_datetime(self.updated_at),
        }

    @classmethod
    def from_record(cls, record: dict[str, Any], from_cache: bool = True) -> "StatusReport":
        """Rebuild a report from a cache record.

        Raises:
            ValueError: If the record does not describe a valid report
        """
        try:
            result = record.get("result")
            return cls(
                product_id=record["product_id"],
                status=TaskStatus(record["status"]),
                task_id=record.get("task_id"),
                progress=record.get("progress") or 0,
                estimated_time=record.get("estimated_time"),
                result=AnalysisResult.from_dict(result) if result is not None else None,
                error=record.get("error"),
                updated_at=_parse_datetime(record.get("updated_at")) or utcnow(),
                from_cache=from_cache,
            )
        except (KeyError, TypeError, AttributeError) as e:
            raise ValueError(f"Invalid status record: {e}") from e
