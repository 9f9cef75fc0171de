"""Response DTOs for API endpoints."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from review_analysis.entities import TaskStatus

from .base import CamelModel
from .payloads import AnalysisResultModel


class AnalyzeResponse(CamelModel):
    """Response DTO for an analysis request."""

    success: bool = True
    task_id: str = Field(..., description="Task tracking the analysis")
    estimated_time_seconds: int | None = Field(None, description="Upstream estimate until completion")
    from_cache: bool = Field(False, description="Whether an existing task was reused")
    message: str = Field(..., description="Human-readable status message")


class StatusResponse(CamelModel):
    """Response DTO for a status lookup."""

    product_id: str
    task_id: str | None = None
    status: TaskStatus
    progress: int = Field(0, ge=0, le=100)
    estimated_time_seconds: int | None = None
    result: AnalysisResultModel | None = None
    error: str | None = None
    updated_at: datetime
    from_cache: bool = False


class ResultResponse(CamelModel):
    """Response DTO for a cached terminal result."""

    success: bool = Field(..., description="True when the analysis completed")
    product_id: str
    task_id: str
    status: TaskStatus
    result: AnalysisResultModel | None = None
    error: str | None = None
    created_at: datetime
    completed_at: datetime | None = None
    from_cache: bool = True


class CallbackAck(CamelModel):
    """Acknowledgement returned to the analysis service for every callback."""

    success: bool = True
    message: str = "Callback processed"


class InvalidateResponse(CamelModel):
    """Response DTO for cache invalidation."""

    success: bool = True
    deleted_count: int = Field(..., ge=0)
    message: str


class CacheHealthResponse(CamelModel):
    """Response DTO for the cache health probe."""

    success: bool
    status: str = Field(..., description="Health status: 'healthy' or 'unhealthy'")
    latency_ms: float | None = Field(None, description="PING round-trip, only when healthy")
    timestamp: datetime


class CacheStatsResponse(CamelModel):
    """Response DTO for cache statistics."""

    success: bool = True
    store: dict[str, Any] | None = Field(None, description="Backend statistics, null if unavailable")
    metrics: dict[str, Any] | None = Field(None, description="Hit/miss/error counters")
    timestamp: datetime


class HealthCheckResponse(BaseModel):
    """Response DTO for health check."""

    status: str = Field(..., description="Health status: 'healthy' or 'degraded'")
    cache_healthy: bool = Field(..., description="Whether the cache backend is reachable")


class ErrorBody(BaseModel):
    code: str = Field(..., description="Stable machine-readable error code")
    message: str = Field(..., description="Human-readable explanation")


class ErrorResponse(BaseModel):
    """Body of every caller-facing error."""

    success: bool = False
    error: ErrorBody
