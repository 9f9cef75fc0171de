"""
Tests for the Redis cache repository with a mocked asyncio client.
"""

import asyncio
import json
from unittest.mock import AsyncMock

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from review_analysis.repositories import RedisCacheRepository


@pytest.fixture
def client() -> AsyncMock:
    return AsyncMock()


@pytest.fixture
def repository(client) -> RedisCacheRepository:
    return RedisCacheRepository(redis_client=client, key_prefix="ra", operation_timeout=0.2)


@pytest.mark.asyncio
async def test_get_decodes_json_and_counts_hit(repository, client):
    """Test a stored value is decoded and recorded as a hit."""
    client.get.return_value = json.dumps({"status": "pending"})

    value = await repository.get("status:p1")

    assert value == {"status": "pending"}
    client.get.assert_awaited_once_with("ra:status:p1")
    assert repository.metrics.hits == 1


@pytest.mark.asyncio
async def test_get_miss(repository, client):
    """Test a missing key returns None and counts a miss."""
    client.get.return_value = None

    assert await repository.get("status:p1") is None
    assert repository.metrics.misses == 1


@pytest.mark.asyncio
async def test_get_undecodable_value_is_miss(repository, client):
    """Test garbage in Redis is discarded instead of raised."""
    client.get.return_value = "{not json"

    assert await repository.get("status:p1") is None
    assert repository.metrics.errors == 1


@pytest.mark.asyncio
async def test_get_connection_error_is_absorbed(repository, client):
    """Test a Redis outage turns reads into misses."""
    client.get.side_effect = RedisConnectionError("Connection refused")

    assert await repository.get("status:p1") is None
    assert repository.metrics.errors == 1


@pytest.mark.asyncio
async def test_get_times_out(repository, client):
    """Test a stalled Redis read is cut off by the operation timeout."""

    async def stall(*args, **kwargs):
        await asyncio.sleep(5)

    client.get.side_effect = stall

    assert await repository.get("status:p1") is None


@pytest.mark.asyncio
async def test_set_with_ttl(repository, client):
    """Test values are written as JSON with an expiry."""
    assert await repository.set_with_ttl("result:p1", {"status": "completed"}, 3600) is True

    client.set.assert_awaited_once_with("ra:result:p1", json.dumps({"status": "completed"}), ex=3600)


@pytest.mark.asyncio
async def test_set_failure_returns_false(repository, client):
    """Test a lost write is reported, not raised."""
    client.set.side_effect = RedisConnectionError("Connection refused")

    assert await repository.set_with_ttl("result:p1", {}, 60) is False


@pytest.mark.asyncio
async def test_set_if_absent(repository, client):
    """Test SET NX reports whether the key was claimed."""
    client.set.return_value = True
    assert await repository.set_if_absent("callback:t1", {"status": "completed"}, 60) is True
    assert client.set.await_args.kwargs == {"ex": 60, "nx": True}

    client.set.return_value = None
    assert await repository.set_if_absent("callback:t1", {"status": "completed"}, 60) is False

    client.set.side_effect = RedisConnectionError("Connection refused")
    assert await repository.set_if_absent("callback:t1", {"status": "completed"}, 60) is None


@pytest.mark.asyncio
async def test_delete_keys(repository, client):
    """Test deletion prefixes every key and returns the count."""
    client.delete.return_value = 2

    deleted = await repository.delete_keys(["status:p1", "result:p1"])

    assert deleted == 2
    assert set(client.delete.await_args.args) == {"ra:status:p1", "ra:result:p1"}


@pytest.mark.asyncio
async def test_delete_nothing_skips_round_trip(repository, client):
    """Test an empty delete does not reach Redis."""
    assert await repository.delete_keys([]) == 0
    client.delete.assert_not_awaited()


@pytest.mark.asyncio
async def test_delete_failure_returns_zero(repository, client):
    client.delete.side_effect = RedisConnectionError("Connection refused")

    assert await repository.delete_keys(["status:p1"]) == 0


@pytest.mark.asyncio
async def test_health_check(repository, client):
    """Test PING success reports latency, failure reports unhealthy."""
    client.ping.return_value = True
    health = await repository.health_check()
    assert health["status"] == "healthy"
    assert health["latency_ms"] >= 0

    client.ping.side_effect = RedisConnectionError("Connection refused")
    assert await repository.health_check() == {"status": "unhealthy"}


@pytest.mark.asyncio
async def test_stats(repository, client):
    """Test stats keep selected memory fields and the key count."""
    client.info.side_effect = [
        {"used_memory": 1024, "used_memory_human": "1K", "mem_fragmentation_ratio": 1.2},
        {"db0": {"keys": 3, "expires": 3}},
    ]
    client.dbsize.return_value = 3

    stats = await repository.stats()

    assert stats == {
        "memory": {"used_memory": 1024, "used_memory_human": "1K"},
        "keyspace": {"db0": {"keys": 3, "expires": 3}},
        "key_count": 3,
    }


@pytest.mark.asyncio
async def test_stats_unavailable(repository, client):
    client.info.side_effect = RedisConnectionError("Connection refused")

    assert await repository.stats() is None


@pytest.mark.asyncio
async def test_no_prefix():
    """Test keys are used verbatim without a prefix."""
    client = AsyncMock()
    client.get.return_value = None
    repository = RedisCacheRepository(redis_client=client, key_prefix="")

    await repository.get("task:t1")

    client.get.assert_awaited_once_with("task:t1")
