import asyncio
import logging
from typing import Any

from fastapi import FastAPI, Query, Request, WebSocket, WebSocketDisconnect, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from review_analysis.api.dependencies import HandlerDep, NotifierDep, create_lifespan
from review_analysis.config import settings
from review_analysis.dto import (
    AnalyzeRequest,
    AnalyzeResponse,
    BatchInvalidateRequest,
    CacheHealthResponse,
    CacheStatsResponse,
    CallbackAck,
    ErrorResponse,
    HealthCheckResponse,
    InvalidateResponse,
    ResultResponse,
    StatusResponse,
)
from review_analysis.entities import TaskStatus
from review_analysis.protocols import Notifier
from review_analysis.services import AnalysisService, topic_for

logger = logging.getLogger(__name__)

API_VERSION = "0.1.0"
_TERMINAL = {TaskStatus.COMPLETED.value, TaskStatus.FAILED.value}


def _error_response(status_code: int, code: str, message: str) -> JSONResponse:
    body = ErrorResponse(error={"code": code, "message": message})
    return JSONResponse(status_code=status_code, content=body.model_dump())


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Render HTTPExceptions as ``{success: false, error: {code, message}}``."""
    if isinstance(exc.detail, dict) and {"code", "message"} <= exc.detail.keys():
        return _error_response(exc.status_code, exc.detail["code"], exc.detail["message"])
    return _error_response(exc.status_code, "HTTP_ERROR", str(exc.detail))


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Render request validation failures as VALIDATION_ERROR."""
    first = exc.errors()[0] if exc.errors() else {}
    field = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    message = first.get("msg", "Invalid request")
    if field:
        message = f"{field}: {message}"
    return _error_response(status.HTTP_400_BAD_REQUEST, "VALIDATION_ERROR", message)


async def stream_task_events(websocket: WebSocket, notifier: Notifier, task_id: str) -> None:
    """Forward task events to one websocket until a terminal status or disconnect."""
    async with notifier.subscribe(topic_for(task_id)) as queue:
        await websocket.send_json({"type": "subscribed", "taskId": task_id})
        receiver = asyncio.create_task(websocket.receive())
        try:
            while True:
                getter = asyncio.create_task(queue.get())
                done, _ = await asyncio.wait({getter, receiver}, return_when=asyncio.FIRST_COMPLETED)
                if receiver in done:
                    getter.cancel()
                    message = receiver.result()
                    if message["type"] == "websocket.disconnect":
                        return
                    receiver = asyncio.create_task(websocket.receive())
                    continue

                event = getter.result()
                await websocket.send_json(event)
                if event.get("status") in _TERMINAL:
                    await websocket.close()
                    return
        finally:
            receiver.cancel()


def create_app(
    analysis_service: AnalysisService | None = None,
    notifier: Notifier | None = None,
) -> FastAPI:
    """Create the FastAPI application.

    Args:
        analysis_service: Pre-built service (tests); built from settings when None
        notifier: Notifier the pre-built service publishes to

    Returns:
        Configured FastAPI app
    """
    app = FastAPI(
        title="Review Analysis API",
        description="Async review analysis orchestration with a Redis-backed status cache",
        version=API_VERSION,
        lifespan=create_lifespan(analysis_service=analysis_service, notifier=notifier),
    )

    app.add_middleware(
        CORSMiddleware,  # type: ignore[arg-type]
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)

    @app.get("/")
    async def root() -> dict[str, Any]:
        """Root endpoint with API information."""
        return {
            "name": "Review Analysis API",
            "version": API_VERSION,
            "description": "Async review analysis orchestration with a Redis-backed status cache",
            "endpoints": {
                "analyze": "/api/analyze",
                "status": "/api/analyze/status/{product_id}",
                "result": "/api/analyze/result/{product_id}",
                "callback": "/api/analyze/callback",
                "cache": "/api/analyze/cache",
                "websocket": "/ws/analysis/{task_id}",
                "health": "/health",
                "docs": "/docs",
            },
        }

    @app.get("/health", response_model=HealthCheckResponse)
    async def health(handler: HandlerDep) -> dict:
        """Health check endpoint."""
        return await handler.health_check()

    @app.post("/api/analyze", response_model=AnalyzeResponse)
    async def analyze(request: AnalyzeRequest, handler: HandlerDep) -> AnalyzeResponse:
        """Start an analysis, or return the one already running or cached."""
        return await handler.analyze(request)

    @app.get("/api/analyze/status/{product_id}", response_model=StatusResponse)
    async def get_status(product_id: str, handler: HandlerDep) -> StatusResponse:
        """Latest status from cache, falling back to the analysis service."""
        return await handler.get_status(product_id)

    @app.post("/api/analyze/callback", response_model=CallbackAck)
    async def callback(request: Request, handler: HandlerDep) -> CallbackAck:
        """Webhook for the analysis service. Always acknowledged."""
        try:
            body = await request.json()
        except ValueError:
            logger.warning("Ignoring analysis callback with a non-JSON body")
            return CallbackAck(message="Callback acknowledged, payload ignored")
        return await handler.callback(body)

    @app.get("/api/analyze/result/{product_id}", response_model=ResultResponse)
    async def get_result(product_id: str, handler: HandlerDep) -> ResultResponse:
        """Cached terminal result."""
        return await handler.get_result(product_id)

    @app.delete("/api/analyze/cache/{product_id}", response_model=InvalidateResponse)
    async def invalidate(
        product_id: str,
        handler: HandlerDep,
        task_id: str | None = Query(None, description="Also drop this task's index entry"),
    ) -> InvalidateResponse:
        """Drop cached status and result for one product."""
        return await handler.invalidate(product_id, task_id)

    @app.delete("/api/analyze/cache", response_model=InvalidateResponse)
    async def invalidate_batch(request: BatchInvalidateRequest, handler: HandlerDep) -> InvalidateResponse:
        """Drop cached status and result for several products."""
        return await handler.invalidate_batch(request)

    @app.get("/api/analyze/cache/health", response_model=CacheHealthResponse)
    async def cache_health(handler: HandlerDep) -> CacheHealthResponse:
        """Cache backend liveness, 503 when unreachable."""
        return await handler.cache_health()

    @app.get("/api/analyze/cache/stats", response_model=CacheStatsResponse)
    async def cache_stats(handler: HandlerDep) -> CacheStatsResponse:
        """Cache backend statistics and hit/miss counters."""
        return await handler.cache_stats()

    @app.websocket("/ws/analysis/{task_id}")
    async def analysis_events(websocket: WebSocket, task_id: str, notifier: NotifierDep) -> None:
        """Stream updates for one task until it completes or fails."""
        await websocket.accept()
        try:
            await stream_task_events(websocket, notifier, task_id)
        except WebSocketDisconnect:
            logger.debug("Subscriber for task %s disconnected", task_id)

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "review_analysis.api.app:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.api_reload,
    )
