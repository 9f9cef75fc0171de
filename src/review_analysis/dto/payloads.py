"""Callback payloads pushed by the external analysis service.

The webhook body is a tagged union on ``status``; each variant converts to
the matching ``TaskUpdate`` entity, so a completed callback without a
result is rejected here instead of deep inside the service.
"""

from typing import Annotated, Literal, Union

from pydantic import Field, TypeAdapter

from review_analysis.entities import AnalysisResult, Completed, Failed, Pending, Processing, TaskUpdate

from .base import CamelModel


class AnalysisResultModel(CamelModel):
    """Sentiment breakdown, summary and keywords of a completed analysis."""

    sentiment: dict[str, float] = Field(
        default_factory=dict,
        description="Share of each sentiment class, e.g. {'positive': 70.0}",
    )
    summary: str = Field("", description="Summary of the analysed reviews")
    keywords: list[str] = Field(default_factory=list, description="Most relevant keywords")
    total_reviews: int = Field(0, description="Number of reviews analysed", ge=0)

    def to_entity(self) -> AnalysisResult:
        return AnalysisResult(
            sentiment=dict(self.sentiment),
            summary=self.summary,
            keywords=list(self.keywords),
            total_reviews=self.total_reviews,
        )

    @classmethod
    def from_entity(cls, result: AnalysisResult) -> "AnalysisResultModel":
        return cls(
            sentiment=dict(result.sentiment),
            summary=result.summary,
            keywords=list(result.keywords),
            total_reviews=result.total_reviews,
        )


class _CallbackBase(CamelModel):
    task_id: str = Field(..., description="Task the update is for", min_length=1)


class PendingCallback(_CallbackBase):
    status: Literal["pending"]

    def to_update(self) -> TaskUpdate:
        return Pending()


class ProcessingCallback(_CallbackBase):
    status: Literal["processing"]
    progress: int | None = Field(None, ge=0, le=100)

    def to_update(self) -> TaskUpdate:
        return Processing(progress=self.progress)


class CompletedCallback(_CallbackBase):
    status: Literal["completed"]
    result: AnalysisResultModel

    def to_update(self) -> TaskUpdate:
        return Completed(result=self.result.to_entity())


class FailedCallback(_CallbackBase):
    status: Literal["failed"]
    error: str | None = None

    def to_update(self) -> TaskUpdate:
        return Failed(error=self.error or "Analysis failed")


CallbackPayload = Annotated[
    Union[PendingCallback, ProcessingCallback, CompletedCallback, FailedCallback],
    Field(discriminator="status"),
]

callback_adapter = TypeAdapter(CallbackPayload)
