"""Analysis service for core business logic.

This service orchestrates review analyses by coordinating the cache
(status and results), the external job client (start and poll) and the
realtime notifier (task updates).

Cache layout (see ``cache_keys``):
    status:{productId}   latest StatusReport       short TTL
    result:{productId}   terminal AnalysisTask     long TTL
    task:{taskId}        taskId -> productId       medium TTL

The cache is fail-open throughout: a store outage turns reads into misses
and drops writes, so status lookups fall back to a live poll.
"""

import logging
from dataclasses import dataclass, replace
from datetime import datetime
from enum import Enum
from typing import Any
from urllib.parse import urlsplit

from review_analysis.config import settings
from review_analysis.entities import (
    AnalysisResult,
    AnalysisTask,
    StatusReport,
    TaskStatus,
    TaskUpdate,
)
from review_analysis.entities.analysis_task import utcnow
from review_analysis.errors import ValidationError
from review_analysis.protocols import CacheStore, JobClient, Notifier

from .cache_keys import callback_key, result_key, status_key, submission_key, task_key

logger = logging.getLogger(__name__)


def topic_for(task_id: str) -> str:
    """Realtime topic carrying updates for one analysis task."""
    return f"analysis:{task_id}"


class CallbackOutcome(str, Enum):
    """What handling a callback did."""

    APPLIED = "applied"
    DUPLICATE = "duplicate"
    UNRESOLVED = "unresolved"
    IGNORED = "ignored"


@dataclass(frozen=True)
class SubmittedAnalysis:
    """Outcome of an analysis request.

    Attributes:
        task_id: Task tracking the analysis
        estimated_time: Upstream estimate in seconds, if known
        from_cache: True when an existing task was reused instead of starting one
    """

    task_id: str
    estimated_time: int | None = None
    from_cache: bool = False


def _result_event(result: AnalysisResult) -> dict[str, Any]:
    return {
        "sentiment": dict(result.sentiment),
        "summary": result.summary,
        "keywords": list(result.keywords),
        "totalReviews": result.total_reviews,
    }


class AnalysisService:
    """Core analysis orchestration service.

    This service depends on PROTOCOLS, not concrete implementations:
    - CacheStore: Redis or any fail-open key/value store
    - JobClient: the HTTP client for the external analysis service
    - Notifier: in-process broadcast or Redis pub/sub

    Example:
        ```python
        from review_analysis.repositories import (
            BroadcastNotifier,
            HttpJobClient,
            RedisCacheRepository,
        )
        from review_analysis.services import AnalysisService

        service = AnalysisService.create(
            cache=RedisCacheRepository.create(),
            job_client=HttpJobClient.create(),
            notifier=BroadcastNotifier(),
        )
        submitted = await service.request_analysis("p1", url="https://shop/p1")
        ```
    """

    def __init__(
        self,
        cache: CacheStore,
        job_client: JobClient,
        notifier: Notifier,
        callback_url: str | None = None,
        result_ttl: int | None = None,
        status_ttl: int | None = None,
        task_ttl: int | None = None,
        submission_guard: bool | None = None,
        submission_guard_ttl: int | None = None,
    ) -> None:
        """Initialize the analysis service.

        Args:
            cache: Cache store backend (required).
            job_client: External analysis service client (required).
            notifier: Realtime notifier (required).
            callback_url: Address the external service posts results to. Defaults to settings.
            result_ttl: Seconds terminal results stay cached. Defaults to settings.
            status_ttl: Seconds status reports stay cached. Defaults to settings.
            task_ttl: Seconds the task index stays cached. Defaults to settings.
            submission_guard: Claim a marker before starting a job. Defaults to settings.
            submission_guard_ttl: Seconds the marker is held at most. Defaults to settings.
        """
        self._cache = cache
        self._jobs = job_client
        self._notifier = notifier
        self._callback_url = callback_url or settings.callback_url
        self._result_ttl = result_ttl or settings.cache_result_ttl
        self._status_ttl = status_ttl or settings.cache_status_ttl
        self._task_ttl = task_ttl or settings.cache_task_ttl
        self._submission_guard = (
            settings.submission_guard_enabled if submission_guard is None else submission_guard
        )
        self._submission_guard_ttl = submission_guard_ttl or settings.submission_guard_ttl

    @classmethod
    def create(
        cls,
        cache: CacheStore,
        job_client: JobClient,
        notifier: Notifier,
        callback_url: str | None = None,
    ) -> "AnalysisService":
        """Factory method to create AnalysisService with settings defaults.

        Args:
            cache: Cache store backend (required).
            job_client: External analysis service client (required).
            notifier: Realtime notifier (required).
            callback_url: Callback address. If None, uses settings.

        Returns:
            Configured AnalysisService instance
        """
        return cls(
            cache=cache,
            job_client=job_client,
            notifier=notifier,
            callback_url=callback_url,
        )

    # Submission

    async def request_analysis(
        self,
        product_id: str,
        url: str | None = None,
        keywords: list[str] | None = None,
        user_id: str | None = None,
        force: bool = False,
    ) -> SubmittedAnalysis:
        """Start an analysis for a product, reusing a cached one if possible.

        Business logic:
        1. Validate input (no network call when invalid)
        2. Reuse a completed result or an in-flight task from the cache,
           unless ``force`` is set, in which case the cache is invalidated
        3. Start a job upstream with our callback address
        4. Cache a pending status report and the task -> product index

        Args:
            product_id: The product to analyse
            url: Optional product page URL
            keywords: Optional keywords to focus on
            user_id: Optional requester, recorded with the task index
            force: Ignore and drop cached state for the product

        Returns:
            SubmittedAnalysis with the task id

        Raises:
            ValidationError: If input is malformed
            UpstreamError: Classified failure from the analysis service
        """
        self._validate_request(product_id, url, keywords)

        if force:
            previous = self._load_report(await self._cache.get(status_key(product_id)))
            # Drop the old task index so its late callbacks no longer resolve
            await self.invalidate(product_id, previous.task_id if previous is not None else None)
        else:
            existing = await self._existing_submission(product_id)
            if existing is not None:
                logger.info("Reusing cached task %s for product %s", existing.task_id, product_id)
                return existing

        claimed = await self._claim_submission(product_id, user_id)
        if claimed is False:
            existing = await self._existing_submission(product_id)
            if existing is not None:
                return existing
            logger.info("Submission for product %s already in flight, starting another", product_id)

        try:
            accepted = await self._jobs.start_job(product_id, url, keywords, self._callback_url)
            task = AnalysisTask(
                product_id=product_id,
                task_id=accepted.task_id,
                estimated_time=accepted.estimated_time,
            )
            # A previous failed result must not shadow the new task
            await self._cache.delete_keys([result_key(product_id)])
            await self._cache.set_with_ttl(
                status_key(product_id), StatusReport.from_task(task).to_record(), self._status_ttl
            )
            # Written last: callbacks only resolve once the pending status exists
            await self._cache.set_with_ttl(
                task_key(task.task_id),
                {
                    "product_id": product_id,
                    "task_id": task.task_id,
                    "user_id": user_id,
                    "created_at": task.created_at.isoformat(),
                },
                self._task_ttl,
            )
        finally:
            if claimed:
                await self._cache.delete_keys([submission_key(product_id)])

        logger.info("Analysis requested for product %s: task %s", product_id, task.task_id)
        return SubmittedAnalysis(task_id=task.task_id, estimated_time=task.estimated_time)

    async def _existing_submission(self, product_id: str) -> SubmittedAnalysis | None:
        task = self._load_task(await self._cache.get(result_key(product_id)))
        if task is not None and task.status is TaskStatus.COMPLETED:
            return SubmittedAnalysis(task_id=task.task_id, estimated_time=0, from_cache=True)

        report = self._load_report(await self._cache.get(status_key(product_id)))
        if report is not None and report.task_id and not report.is_terminal:
            return SubmittedAnalysis(
                task_id=report.task_id,
                estimated_time=report.estimated_time,
                from_cache=True,
            )
        return None

    async def _claim_submission(self, product_id: str, user_id: str | None) -> bool | None:
        """Claim the in-flight marker; None when the guard is off or the store is down."""
        if not self._submission_guard:
            return None
        return await self._cache.set_if_absent(
            submission_key(product_id),
            {"user_id": user_id, "requested_at": utcnow().isoformat()},
            self._submission_guard_ttl,
        )

    # Status and results

    async def get_status(self, product_id: str) -> StatusReport:
        """Get the status of a product's analysis.

        Business logic:
        1. Serve a cached status report, unless the same task already has a
           terminal result, which then wins
        2. Else serve a cached terminal result
        3. Else poll the analysis service and cache its answer, unless a
           callback settled the task during the poll

        Raises:
            ValidationError: If product_id is empty
            UpstreamNotFoundError: If neither cache nor upstream know the product
            UpstreamError: Other classified failures of the live poll
        """
        self._validate_product_id(product_id)

        report = self._load_report(await self._cache.get(status_key(product_id)))
        if report is not None and report.is_terminal:
            return report

        settled = await self._settled_report(product_id, report.task_id if report is not None else None)
        if settled is not None:
            if report is not None:
                # Repair a non-terminal status written after the result
                await self._cache.set_with_ttl(status_key(product_id), settled.to_record(), self._status_ttl)
            return settled
        if report is not None:
            return report

        job = await self._jobs.poll_status(product_id)
        report = StatusReport(
            product_id=product_id,
            status=job.status,
            progress=job.progress,
            estimated_time=job.estimated_time,
            error=job.error if job.status is TaskStatus.FAILED else None,
        )

        # A callback may have settled the task while the poll was in flight
        settled = await self._settled_report(product_id)
        if settled is not None:
            logger.info(
                "Discarding polled status for product %s, task %s already settled", product_id, settled.task_id
            )
            return settled

        await self._cache.set_with_ttl(status_key(product_id), report.to_record(), self._status_ttl)
        logger.info("Polled status for product %s: %s", product_id, job.status.value)
        return report

    async def _settled_report(self, product_id: str, task_id: str | None = None) -> StatusReport | None:
        """Report for a cached terminal result, restricted to ``task_id`` when given."""
        task = self._load_task(await self._cache.get(result_key(product_id)))
        if task is None or not task.is_terminal:
            return None
        if task_id is not None and task.task_id != task_id:
            return None
        return replace(StatusReport.from_task(task), from_cache=True)

    async def get_result(self, product_id: str) -> AnalysisTask | None:
        """Get the cached terminal task for a product, if any."""
        self._validate_product_id(product_id)
        return self._load_task(await self._cache.get(result_key(product_id)))

    # Callbacks

    async def handle_callback(self, task_id: str, update: TaskUpdate) -> CallbackOutcome:
        """Reconcile a state update pushed by the analysis service.

        Never raises for cache or notifier failures: the service may redeliver
        a callback, so every delivery is acknowledged.

        Business logic:
        1. Resolve the product through the task index; unknown -> no-op
        2. A task the product status no longer names -> ignored
           A task already terminal -> duplicate, nothing is published
        3. Apply the update; a regression is ignored
        4. Terminal: claim the callback marker, cache the result
        5. Cache the status report and publish one event

        Args:
            task_id: The task the update is for
            update: Pending, Processing, Completed or Failed

        Returns:
            CallbackOutcome describing what happened
        """
        index = await self._cache.get(task_key(task_id))
        product_id = index.get("product_id") if isinstance(index, dict) else None
        if not product_id:
            logger.warning("Callback for unknown or expired task %s ignored", task_id)
            return CallbackOutcome.UNRESOLVED

        current = await self._current_task(product_id, task_id, index)
        if current is None:
            logger.info("Callback for superseded task %s of product %s ignored", task_id, product_id)
            return CallbackOutcome.IGNORED
        if current.is_terminal:
            logger.info("Duplicate callback for task %s (%s) ignored", task_id, current.status.value)
            return CallbackOutcome.DUPLICATE

        updated = current.apply(update)
        if updated is current:
            logger.info(
                "Callback for task %s would move %s to %s, ignored",
                task_id,
                current.status.value,
                update.status.value,
            )
            return CallbackOutcome.IGNORED

        if updated.is_terminal:
            claimed = await self._cache.set_if_absent(
                callback_key(task_id), {"status": updated.status.value}, self._task_ttl
            )
            if claimed is False:
                logger.info("Concurrent duplicate callback for task %s ignored", task_id)
                return CallbackOutcome.DUPLICATE
            await self._cache.set_with_ttl(result_key(product_id), updated.to_record(), self._result_ttl)

        await self._cache.set_with_ttl(
            status_key(product_id), StatusReport.from_task(updated).to_record(), self._status_ttl
        )
        await self._notify(updated)
        logger.info("Task %s for product %s is now %s", task_id, product_id, updated.status.value)
        return CallbackOutcome.APPLIED

    async def _current_task(self, product_id: str, task_id: str, index: dict[str, Any]) -> AnalysisTask | None:
        """Best known state of a task, starting from pending if nothing is cached.

        None when the product's status already names a different task.
        """
        task = self._load_task(await self._cache.get(result_key(product_id)))
        if task is not None and task.task_id == task_id:
            return task

        try:
            created_at = datetime.fromisoformat(index["created_at"])
        except (KeyError, TypeError, ValueError):
            created_at = utcnow()

        report = self._load_report(await self._cache.get(status_key(product_id)))
        if report is not None and report.task_id == task_id:
            try:
                return AnalysisTask(
                    product_id=product_id,
                    task_id=task_id,
                    status=report.status,
                    progress=report.progress,
                    estimated_time=report.estimated_time,
                    result=report.result,
                    error=report.error,
                    created_at=created_at,
                )
            except ValueError:
                logger.warning("Inconsistent status report for task %s, starting from pending", task_id)
        elif report is not None and report.task_id is not None:
            return None

        return AnalysisTask(product_id=product_id, task_id=task_id, created_at=created_at)

    async def _notify(self, task: AnalysisTask) -> None:
        event: dict[str, Any] = {
            "taskId": task.task_id,
            "productId": task.product_id,
            "status": task.status.value,
            "progress": task.progress,
            "timestamp": utcnow().isoformat(),
        }
        if task.result is not None:
            event["result"] = _result_event(task.result)
        if task.error is not None:
            event["error"] = task.error

        try:
            await self._notifier.publish(topic_for(task.task_id), event)
        except Exception as e:
            logger.warning("Failed to publish update for task %s: %s", task.task_id, e)

    # Invalidation

    async def invalidate(self, product_id: str, task_id: str | None = None) -> int:
        """Drop cached result and status for a product, and the task index if given.

        Returns:
            Number of keys deleted
        """
        self._validate_product_id(product_id)
        keys = {result_key(product_id), status_key(product_id)}
        if task_id:
            keys.add(task_key(task_id))
        return await self._cache.delete_keys(keys)

    async def invalidate_many(self, product_ids: list[str]) -> int:
        """Drop cached result and status for several products.

        Returns:
            Number of keys deleted
        """
        for product_id in product_ids:
            self._validate_product_id(product_id)
        keys = {key for pid in product_ids for key in (result_key(pid), status_key(pid))}
        return await self._cache.delete_keys(keys)

    # Cache introspection

    async def cache_health(self) -> dict[str, Any]:
        """Health of the cache backend (never raises)."""
        return await self._cache.health_check()

    async def cache_stats(self) -> dict[str, Any]:
        """Store statistics plus hit/miss counters where the store keeps them."""
        metrics = getattr(self._cache, "metrics", None)
        return {
            "store": await self._cache.stats(),
            "metrics": metrics.to_dict() if metrics is not None else None,
        }

    # Helpers

    @staticmethod
    def _validate_product_id(product_id: Any) -> None:
        if not isinstance(product_id, str) or not product_id.strip():
            raise ValidationError("Validation failed: Product ID is required")

    def _validate_request(self, product_id: Any, url: Any, keywords: Any) -> None:
        self._validate_product_id(product_id)

        if url is not None:
            if not isinstance(url, str):
                raise ValidationError("Validation failed: Invalid URL format")
            try:
                parts = urlsplit(url)
            except ValueError as e:
                raise ValidationError("Validation failed: Invalid URL format") from e
            if parts.scheme not in ("http", "https") or not parts.netloc:
                raise ValidationError("Validation failed: Invalid URL format")

        if keywords is not None:
            if not isinstance(keywords, list) or not all(isinstance(k, str) for k in keywords):
                raise ValidationError("Validation failed: Keywords must be a list of strings")

    @staticmethod
    def _load_task(record: Any) -> AnalysisTask | None:
        if not isinstance(record, dict):
            return None
        try:
            return AnalysisTask.from_record(record)
        except ValueError as e:
            logger.warning("Ignoring invalid cached task: %s", e)
            return None

    @staticmethod
    def _load_report(record: Any) -> StatusReport | None:
        if not isinstance(record, dict):
            return None
        try:
            return StatusReport.from_record(record)
        except ValueError as e:
            logger.warning("Ignoring invalid cached status: %s", e)
            return None

    @property
    def cache(self) -> CacheStore:
        """Get the underlying cache store (for testing)."""
        return self._cache

    @property
    def job_client(self) -> JobClient:
        """Get the underlying job client (for testing)."""
        return self._jobs
