"""Dependency injection configuration for FastAPI app.

Uses FastAPI's app.state pattern for storing service instances.

Pattern:
    - Services stored in app.state during lifespan
    - Dependency functions retrieve from request.app.state
    - Clean separation, no global mutable state
"""

import logging
from contextlib import asynccontextmanager
from typing import Annotated

from fastapi import Depends, FastAPI
from fastapi.requests import HTTPConnection

from review_analysis.config import get_redis_client, settings
from review_analysis.handlers import AnalysisHandler
from review_analysis.protocols import Notifier
from review_analysis.repositories import (
    BroadcastNotifier,
    HttpJobClient,
    RedisCacheRepository,
    RedisNotifier,
)
from review_analysis.services import AnalysisService

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def get_analysis_service(conn: HTTPConnection) -> AnalysisService:
    """Dependency injection for AnalysisService from app.state.

    Args:
        conn: FastAPI Request or WebSocket

    Returns:
        The AnalysisService instance from app.state

    Raises:
        RuntimeError: If service is not initialized
    """
    service = getattr(conn.app.state, "analysis_service", None)
    if service is None:
        raise RuntimeError("AnalysisService not initialized. Check lifespan setup.")
    return service


def get_handler(conn: HTTPConnection) -> AnalysisHandler:
    """Dependency injection for AnalysisHandler from app.state.

    Raises:
        RuntimeError: If handler is not initialized
    """
    handler = getattr(conn.app.state, "analysis_handler", None)
    if handler is None:
        raise RuntimeError("AnalysisHandler not initialized. Check lifespan setup.")
    return handler


def get_notifier(conn: HTTPConnection) -> Notifier:
    """Dependency injection for the realtime Notifier from app.state."""
    notifier = getattr(conn.app.state, "notifier", None)
    if notifier is None:
        raise RuntimeError("Notifier not initialized. Check lifespan setup.")
    return notifier


def build_notifier() -> Notifier:
    """Create the notifier selected by NOTIFIER_BACKEND."""
    if settings.notifier_backend == "redis":
        return RedisNotifier(redis_client=get_redis_client())
    return BroadcastNotifier()


def configure_logging() -> None:
    logging.basicConfig(level=settings.log_level, format=LOG_FORMAT)


def create_lifespan(
    analysis_service: AnalysisService | None = None,
    notifier: Notifier | None = None,
):
    """Build the lifespan context manager for FastAPI app.

    Initializes all layers and stores in app.state:
    1. Repositories (cache, job client, notifier) - created from settings
    2. Service (business logic) - stored in app.state.analysis_service
    3. Handler (HTTP endpoints) - stored in app.state.analysis_handler

    A pre-built service and notifier may be passed in; the lifespan then
    only wires them and leaves their resources to the caller.

    Args:
        analysis_service: Ready service to serve instead of building one
        notifier: Notifier the service publishes to, required with analysis_service

    Returns:
        Lifespan context manager
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        configure_logging()
        owned = analysis_service is None
        cache = job_client = None

        if owned:
            active_notifier = notifier or build_notifier()
            cache = RedisCacheRepository.create()
            job_client = HttpJobClient.create()
            service = AnalysisService.create(
                cache=cache,
                job_client=job_client,
                notifier=active_notifier,
            )
        else:
            active_notifier = notifier or BroadcastNotifier()
            service = analysis_service

        app.state.analysis_service = service
        app.state.analysis_handler = AnalysisHandler(analysis_service=service)
        app.state.notifier = active_notifier

        logger.info("Analysis API starting")
        logger.info("Analysis server: %s", settings.analysis_server_url)
        logger.info("Callback URL: %s", settings.callback_url)
        logger.info("Notifier backend: %s", type(active_notifier).__name__)
        health = await service.cache_health()
        if health.get("status") == "healthy":
            logger.info("Cache connection successful (%.1f ms)", health.get("latency_ms", 0.0))
        else:
            logger.warning("Cache unavailable, serving without cache")

        yield

        if owned:
            await job_client.close()
            await cache.close()
        del app.state.analysis_handler
        del app.state.analysis_service
        del app.state.notifier
        logger.info("Analysis API shut down")

    return lifespan


# Type aliases for cleaner dependency injection
HandlerDep = Annotated[AnalysisHandler, Depends(get_handler)]
ServiceDep = Annotated[AnalysisService, Depends(get_analysis_service)]
NotifierDep = Annotated[Notifier, Depends(get_notifier)]
