"""Shared fixtures: in-memory fakes for the cache, job client and notifier."""

import json
from typing import Any

import pytest

from review_analysis.entities import JobAccepted, JobStatus, TaskStatus
from review_analysis.errors import UpstreamNotFoundError
from review_analysis.repositories import BroadcastNotifier
from review_analysis.services import AnalysisService

CALLBACK_URL = "http://testserver/api/analyze/callback"


class InMemoryCacheStore:
    """CacheStore fake. Values go through JSON like they do in Redis."""

    def __init__(self) -> None:
        self.data: dict[str, str] = {}
        self.ttls: dict[str, int] = {}
        self.writes: list[str] = []
        self.down = False

    async def get(self, key: str) -> dict[str, Any] | None:
        if self.down or key not in self.data:
            return None
        return json.loads(self.data[key])

    async def set_with_ttl(self, key: str, value: dict[str, Any], ttl: int) -> bool:
        if self.down:
            return False
        self.data[key] = json.dumps(value, default=str)
        self.ttls[key] = ttl
        self.writes.append(key)
        return True

    async def set_if_absent(self, key: str, value: dict[str, Any], ttl: int) -> bool | None:
        if self.down:
            return None
        if key in self.data:
            return False
        return await self.set_with_ttl(key, value, ttl)

    async def delete_keys(self, keys) -> int:
        if self.down:
            return 0
        deleted = 0
        for key in keys:
            if self.data.pop(key, None) is not None:
                self.ttls.pop(key, None)
                deleted += 1
        return deleted

    async def health_check(self) -> dict[str, Any]:
        if self.down:
            return {"status": "unhealthy"}
        return {"status": "healthy", "latency_ms": 0.1}

    async def stats(self) -> dict[str, Any] | None:
        if self.down:
            return None
        return {"memory": {}, "keyspace": {}, "key_count": len(self.data)}

    def snapshot(self) -> dict[str, Any]:
        return {key: json.loads(value) for key, value in self.data.items()}


class FakeJobClient:
    """JobClient fake returning canned answers and recording calls."""

    def __init__(self) -> None:
        self.started: list[dict[str, Any]] = []
        self.polled: list[str] = []
        self.start_error: Exception | None = None
        self.statuses: dict[str, JobStatus] = {}
        self._next_id = 0

    async def start_job(self, product_id, url, keywords, callback_url) -> JobAccepted:
        self.started.append(
            {"product_id": product_id, "url": url, "keywords": keywords, "callback_url": callback_url}
        )
        if self.start_error is not None:
            raise self.start_error
        self._next_id += 1
        return JobAccepted(task_id=f"task-{self._next_id}", estimated_time=30)

    async def poll_status(self, product_id: str) -> JobStatus:
        self.polled.append(product_id)
        if product_id not in self.statuses:
            raise UpstreamNotFoundError()
        return self.statuses[product_id]


class RecordingNotifier(BroadcastNotifier):
    """BroadcastNotifier that also keeps every published event."""

    def __init__(self) -> None:
        super().__init__(queue_size=10)
        self.published: list[tuple[str, dict[str, Any]]] = []
        self.fail = False

    async def publish(self, topic: str, payload: dict[str, Any]) -> int:
        if self.fail:
            raise RuntimeError("transport down")
        self.published.append((topic, payload))
        return await super().publish(topic, payload)


@pytest.fixture
def cache() -> InMemoryCacheStore:
    return InMemoryCacheStore()


@pytest.fixture
def job_client() -> FakeJobClient:
    return FakeJobClient()


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def service(cache, job_client, notifier) -> AnalysisService:
    return AnalysisService(
        cache=cache,
        job_client=job_client,
        notifier=notifier,
        callback_url=CALLBACK_URL,
        result_ttl=3600,
        status_ttl=300,
        task_ttl=1800,
        submission_guard=False,
    )


@pytest.fixture
def completed_payload():
    """Factory for a completed callback body."""

    def build(task_id: str) -> dict[str, Any]:
        return {
            "taskId": task_id,
            "status": TaskStatus.COMPLETED.value,
            "result": {
                "sentiment": {"positive": 70.0, "negative": 20.0, "neutral": 10.0},
                "summary": "Mostly positive",
                "keywords": ["fast", "cheap"],
                "totalReviews": 120,
            },
        }

    return build
