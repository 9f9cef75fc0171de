"""Data Transfer Objects for API contracts.

These Pydantic models define the external API contract (camelCase on the
wire) and the analysis service's request/response/callback shapes.
They are used for request/response validation and serialization.

Internal domain logic should use entities from the entities package.
"""

from .payloads import (
    AnalysisResultModel,
    CallbackPayload,
    CompletedCallback,
    FailedCallback,
    PendingCallback,
    ProcessingCallback,
    callback_adapter,
)
from .requests import AnalyzeRequest, BatchInvalidateRequest
from .responses import (
    AnalyzeResponse,
    CacheHealthResponse,
    CacheStatsResponse,
    CallbackAck,
    ErrorBody,
    ErrorResponse,
    HealthCheckResponse,
    InvalidateResponse,
    ResultResponse,
    StatusResponse,
)

__all__ = [
    "AnalysisResultModel",
    "AnalyzeRequest",
    "AnalyzeResponse",
    "BatchInvalidateRequest",
    "CacheHealthResponse",
    "CacheStatsResponse",
    "CallbackAck",
    "CallbackPayload",
    "CompletedCallback",
    "ErrorBody",
    "ErrorResponse",
    "FailedCallback",
    "HealthCheckResponse",
    "InvalidateResponse",
    "PendingCallback",
    "ProcessingCallback",
    "ResultResponse",
    "StatusResponse",
    "callback_adapter",
]
