"""HTTP handlers for analysis operations.

Handlers convert between DTOs (API contracts) and service calls.
They handle HTTP concerns like status codes, error codes and the
always-acknowledge contract of the callback endpoint.
"""

import logging
from collections.abc import Awaitable
from datetime import datetime, timezone
from typing import Any, TypeVar

from fastapi import HTTPException, status
from pydantic import ValidationError as PydanticValidationError

from review_analysis.dto import (
    AnalysisResultModel,
    AnalyzeRequest,
    AnalyzeResponse,
    BatchInvalidateRequest,
    CacheHealthResponse,
    CacheStatsResponse,
    CallbackAck,
    InvalidateResponse,
    ResultResponse,
    StatusResponse,
    callback_adapter,
)
from review_analysis.entities import StatusReport, TaskStatus
from review_analysis.errors import AnalysisError, AnalysisNotFoundError
from review_analysis.services import AnalysisService, CallbackOutcome

logger = logging.getLogger(__name__)

T = TypeVar("T")

_CALLBACK_MESSAGES = {
    CallbackOutcome.APPLIED: "Callback processed",
    CallbackOutcome.DUPLICATE: "Callback already processed",
    CallbackOutcome.UNRESOLVED: "Callback acknowledged, task unknown",
    CallbackOutcome.IGNORED: "Callback acknowledged, state unchanged",
}


def _now() -> datetime:
    return datetime.now(timezone.utc)


def error_exception(error: AnalysisError) -> HTTPException:
    """Render a classified error as an HTTPException carrying ``{code, message}``."""
    return HTTPException(status_code=error.status_code, detail=error.to_dict())


class AnalysisHandler:
    """HTTP handlers for analysis operations.

    This handler delegates business logic to AnalysisService
    and handles HTTP-specific concerns like:
    - Converting entities to DTOs
    - Mapping classified errors to status codes and error codes
    - Acknowledging every callback delivery

    Example:
        ```python
        handler = AnalysisHandler(analysis_service=service)

        @app.post("/api/analyze", response_model=AnalyzeResponse)
        async def analyze(request: AnalyzeRequest):
            return await handler.analyze(request)
        ```
    """

    def __init__(self, analysis_service: AnalysisService) -> None:
        """Initialize the analysis handler.

        Args:
            analysis_service: The analysis service for business logic (required).
        """
        self._service = analysis_service

    async def _call(self, operation: str, awaitable: Awaitable[T]) -> T:
        try:
            return await awaitable
        except AnalysisError as e:
            logger.info("%s failed with %s: %s", operation, e.code, e.message)
            raise error_exception(e) from e
        except Exception as e:
            logger.exception("%s failed unexpectedly", operation)
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail={"code": "INTERNAL_ERROR", "message": f"{operation} failed"},
            ) from e

    async def analyze(self, request: AnalyzeRequest) -> AnalyzeResponse:
        """Handle POST /api/analyze requests.

        Raises:
            HTTPException: VALIDATION_ERROR, EXTERNAL_SERVICE_ERROR, TIMEOUT_ERROR,
                EXTERNAL_AUTH_ERROR or ANALYSIS_REQUEST_REJECTED
        """
        submitted = await self._call(
            "Analysis request",
            self._service.request_analysis(
                product_id=request.product_id,
                url=request.url,
                keywords=request.keywords,
                user_id=request.user_id,
                force=request.force,
            ),
        )
        return AnalyzeResponse(
            task_id=submitted.task_id,
            estimated_time_seconds=submitted.estimated_time,
            from_cache=submitted.from_cache,
            message="Returning existing analysis" if submitted.from_cache else "Analysis started",
        )

    async def get_status(self, product_id: str) -> StatusResponse:
        """Handle GET /api/analyze/status/{product_id} requests.

        Raises:
            HTTPException: ANALYSIS_NOT_FOUND when neither cache nor upstream know the product
        """
        report = await self._call("Status check", self._service.get_status(product_id))
        return self._status_response(report)

    async def get_result(self, product_id: str) -> ResultResponse:
        """Handle GET /api/analyze/result/{product_id} requests.

        Raises:
            HTTPException: ANALYSIS_NOT_FOUND when no terminal result is cached
        """
        task = await self._call("Result lookup", self._service.get_result(product_id))
        if task is None:
            raise error_exception(AnalysisNotFoundError("No cached analysis result for this product"))

        return ResultResponse(
            success=task.status is TaskStatus.COMPLETED,
            product_id=task.product_id,
            task_id=task.task_id,
            status=task.status,
            result=AnalysisResultModel.from_entity(task.result) if task.result else None,
            error=task.error,
            created_at=task.created_at,
            completed_at=task.completed_at,
        )

    async def callback(self, body: Any) -> CallbackAck:
        """Handle POST /api/analyze/callback requests.

        Always acknowledges: the analysis service redelivers on failure, so a
        malformed or unresolvable callback is logged, never rejected.
        """
        try:
            payload = callback_adapter.validate_python(body)
        except PydanticValidationError as e:
            logger.warning("Ignoring malformed analysis callback: %s", e)
            return CallbackAck(message="Callback acknowledged, payload ignored")

        try:
            outcome = await self._service.handle_callback(payload.task_id, payload.to_update())
        except Exception:
            logger.exception("Callback processing failed for task %s", payload.task_id)
            return CallbackAck(message="Callback acknowledged")

        return CallbackAck(message=_CALLBACK_MESSAGES[outcome])

    async def invalidate(self, product_id: str, task_id: str | None = None) -> InvalidateResponse:
        """Handle DELETE /api/analyze/cache/{product_id} requests."""
        deleted = await self._call("Cache invalidation", self._service.invalidate(product_id, task_id))
        return InvalidateResponse(
            deleted_count=deleted,
            message=f"Cache invalidated for product {product_id}",
        )

    async def invalidate_batch(self, request: BatchInvalidateRequest) -> InvalidateResponse:
        """Handle DELETE /api/analyze/cache requests."""
        deleted = await self._call(
            "Batch cache invalidation", self._service.invalidate_many(request.product_ids)
        )
        return InvalidateResponse(
            deleted_count=deleted,
            message=f"Cache invalidated for {len(request.product_ids)} products",
        )

    async def cache_health(self) -> CacheHealthResponse:
        """Handle GET /api/analyze/cache/health requests.

        Raises:
            HTTPException: 503 when the cache is unhealthy
        """
        health = await self._service.cache_health()
        response = CacheHealthResponse(
            success=health.get("status") == "healthy",
            status=health.get("status", "unhealthy"),
            latency_ms=health.get("latency_ms"),
            timestamp=_now(),
        )
        if not response.success:
            raise HTTPException(
                status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
                detail={"code": "CACHE_UNAVAILABLE", "message": "Cache backend is unhealthy"},
            )
        return response

    async def cache_stats(self) -> CacheStatsResponse:
        """Handle GET /api/analyze/cache/stats requests."""
        stats = await self._service.cache_stats()
        return CacheStatsResponse(
            success=stats.get("store") is not None,
            store=stats.get("store"),
            metrics=stats.get("metrics"),
            timestamp=_now(),
        )

    async def health_check(self) -> dict:
        """Handle GET /health requests.

        Returns:
            Dict with health status
        """
        health = await self._service.cache_health()
        is_healthy = health.get("status") == "healthy"

        return {
            "status": "healthy" if is_healthy else "degraded",
            "cache_healthy": is_healthy,
        }

    @staticmethod
    def _status_response(report: StatusReport) -> StatusResponse:
        return StatusResponse(
            product_id=report.product_id,
            task_id=report.task_id,
            status=report.status,
            progress=report.progress,
            estimated_time_seconds=report.estimated_time,
            result=AnalysisResultModel.from_entity(report.result) if report.result else None,
            error=report.error,
            updated_at=report.updated_at,
            from_cache=report.from_cache,
        )
