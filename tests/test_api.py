"""
Tests for the review analysis API.
"""

import pytest
from fastapi.testclient import TestClient

from review_analysis.api.app import create_app
from review_analysis.errors import UpstreamAuthError, UpstreamConnectionError, UpstreamTimeoutError


@pytest.fixture
def client(service, notifier):
    """Create a test client around the in-memory service."""
    app = create_app(analysis_service=service, notifier=notifier)
    with TestClient(app) as client:
        yield client


def submit(client, product_id="p1", **extra):
    return client.post("/api/analyze", json={"productId": product_id, **extra})


def assert_error(response, status_code, code):
    assert response.status_code == status_code
    data = response.json()
    assert data["success"] is False
    assert data["error"]["code"] == code
    assert "Traceback" not in data["error"]["message"]


def test_root(client):
    """Test root endpoint."""
    response = client.get("/")
    assert response.status_code == 200
    data = response.json()
    assert data["name"] == "Review Analysis API"
    assert "analyze" in data["endpoints"]


def test_health(client):
    """Test health check endpoint."""
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "healthy", "cache_healthy": True}


def test_health_degraded(client, cache):
    cache.down = True
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "degraded"


def test_analyze(client, job_client):
    """Test analysis request endpoint."""
    response = submit(client, url="https://shop.example/p1", keywords=["fast"])

    assert response.status_code == 200
    data = response.json()
    assert data["success"] is True
    assert data["taskId"] == "task-1"
    assert data["estimatedTimeSeconds"] == 30
    assert data["fromCache"] is False
    assert job_client.started[0]["keywords"] == ["fast"]


def test_analyze_twice_reuses_task(client, job_client):
    submit(client)
    response = submit(client)

    assert response.json()["fromCache"] is True
    assert response.json()["taskId"] == "task-1"
    assert len(job_client.started) == 1


@pytest.mark.parametrize(
    "body",
    [
        {},
        {"productId": ""},
        {"productId": "p1", "url": "javascript:alert(1)"},
        {"productId": "p1", "keywords": "fast"},
    ],
)
def test_analyze_validation_error(client, job_client, body):
    """Test malformed requests are rejected without calling upstream."""
    response = client.post("/api/analyze", json=body)

    assert_error(response, 400, "VALIDATION_ERROR")
    assert job_client.started == []


@pytest.mark.parametrize(
    "error, status_code, code",
    [
        (UpstreamConnectionError(), 502, "EXTERNAL_SERVICE_ERROR"),
        (UpstreamTimeoutError(), 408, "TIMEOUT_ERROR"),
        (UpstreamAuthError(), 502, "EXTERNAL_AUTH_ERROR"),
    ],
)
def test_analyze_upstream_errors(client, job_client, error, status_code, code):
    """Test upstream failures map to stable error codes."""
    job_client.start_error = error

    assert_error(submit(client), status_code, code)


def test_status_after_submit(client):
    """Test status endpoint serves the cached pending status."""
    submit(client)

    response = client.get("/api/analyze/status/p1")

    assert response.status_code == 200
    data = response.json()
    assert data["productId"] == "p1"
    assert data["taskId"] == "task-1"
    assert data["status"] == "pending"
    assert data["fromCache"] is True


def test_status_not_found(client):
    assert_error(client.get("/api/analyze/status/unknown"), 404, "ANALYSIS_NOT_FOUND")


def test_callback_completes_analysis(client, completed_payload, notifier):
    """Test a completed callback is acknowledged and its result served."""
    submit(client)

    response = client.post("/api/analyze/callback", json=completed_payload("task-1"))
    assert response.status_code == 200
    assert response.json()["success"] is True

    result = client.get("/api/analyze/result/p1")
    assert result.status_code == 200
    data = result.json()
    assert data["success"] is True
    assert data["status"] == "completed"
    assert data["result"]["totalReviews"] == 120
    assert data["result"]["sentiment"]["positive"] == 70.0

    status = client.get("/api/analyze/status/p1").json()
    assert status["status"] == "completed"
    assert status["progress"] == 100

    duplicate = client.post("/api/analyze/callback", json=completed_payload("task-1"))
    assert duplicate.status_code == 200
    assert len(notifier.published) == 1


@pytest.mark.parametrize(
    "kwargs",
    [
        {"content": "not json", "headers": {"Content-Type": "application/json"}},
        {"json": {"status": "completed"}},
        {"json": {"taskId": "task-1", "status": "exploded"}},
        {"json": ["not", "an", "object"]},
    ],
)
def test_callback_malformed_body_is_acknowledged(client, cache, kwargs):
    """Test malformed callbacks still get 200 and change nothing."""
    response = client.post("/api/analyze/callback", **kwargs)

    assert response.status_code == 200
    assert response.json()["success"] is True
    assert cache.writes == []


def test_callback_unknown_task_is_acknowledged(client, completed_payload, notifier):
    response = client.post("/api/analyze/callback", json=completed_payload("nobody"))

    assert response.status_code == 200
    assert response.json()["success"] is True
    assert notifier.published == []


def test_callback_processing_failure_is_acknowledged(client, service, monkeypatch, completed_payload):
    """Test an unexpected failure while handling a callback still returns 200."""

    async def explode(*args, **kwargs):
        raise RuntimeError("unexpected")

    monkeypatch.setattr(service, "handle_callback", explode)

    response = client.post("/api/analyze/callback", json=completed_payload("task-1"))

    assert response.status_code == 200
    assert response.json()["success"] is True


def test_result_not_found(client):
    submit(client)
    assert_error(client.get("/api/analyze/result/p1"), 404, "ANALYSIS_NOT_FOUND")


def test_invalidate_product(client, cache):
    """Test single product invalidation."""
    submit(client)

    response = client.delete("/api/analyze/cache/p1", params={"task_id": "task-1"})

    assert response.status_code == 200
    assert response.json()["deletedCount"] == 2
    assert cache.data == {}


def test_invalidate_batch(client):
    submit(client, "p1")
    submit(client, "p2")

    response = client.request("DELETE", "/api/analyze/cache", json={"productIds": ["p1", "p2"]})

    assert response.status_code == 200
    assert response.json()["deletedCount"] == 2


def test_invalidate_batch_requires_ids(client):
    response = client.request("DELETE", "/api/analyze/cache", json={"productIds": []})
    assert_error(response, 400, "VALIDATION_ERROR")


def test_cache_health(client, cache):
    """Test cache health reports 503 while the store is down."""
    response = client.get("/api/analyze/cache/health")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"

    cache.down = True
    assert_error(client.get("/api/analyze/cache/health"), 503, "CACHE_UNAVAILABLE")


def test_cache_stats(client):
    submit(client)

    response = client.get("/api/analyze/cache/stats")

    assert response.status_code == 200
    assert response.json()["store"]["key_count"] == 2


def test_websocket_streams_until_terminal(client, completed_payload):
    """Test subscribers receive progress and the final result."""
    submit(client)

    with client.websocket_connect("/ws/analysis/task-1") as websocket:
        assert websocket.receive_json() == {"type": "subscribed", "taskId": "task-1"}

        client.post("/api/analyze/callback", json={"taskId": "task-1", "status": "processing", "progress": 50})
        client.post("/api/analyze/callback", json=completed_payload("task-1"))

        processing = websocket.receive_json()
        completed = websocket.receive_json()

    assert processing["status"] == "processing"
    assert processing["progress"] == 50
    assert completed["status"] == "completed"
    assert completed["result"]["totalReviews"] == 120
