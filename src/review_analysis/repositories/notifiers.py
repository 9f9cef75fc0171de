"""Realtime notifier implementations.

Both satisfy the Notifier protocol: ``publish`` never raises and nothing is
persisted, so subscribers that need durability fall back to polling status.

- BroadcastNotifier: in-process fan-out to asyncio queues (single worker)
- RedisNotifier: Redis PUBLISH/SUBSCRIBE (multiple workers)
"""

import asyncio
import contextlib
import json
import logging
from collections import defaultdict
from collections.abc import AsyncIterator
from typing import Any

import redis.asyncio as redis
from redis.exceptions import RedisError

from review_analysis.config import get_redis_client, settings

logger = logging.getLogger(__name__)


class BroadcastNotifier:
    """In-process publish/subscribe hub.

    Each subscriber gets a bounded queue; when it is full the event is
    dropped for that subscriber only.
    """

    def __init__(self, queue_size: int | None = None) -> None:
        self._queue_size = queue_size or settings.notifier_queue_size
        self._subscribers: defaultdict[str, set[asyncio.Queue]] = defaultdict(set)

    async def publish(self, topic: str, payload: dict[str, Any]) -> int:
        delivered = 0
        for queue in list(self._subscribers.get(topic, ())):
            try:
                queue.put_nowait(payload)
                delivered += 1
            except asyncio.QueueFull:
                logger.warning("Dropping event on %s for a slow subscriber", topic)
        logger.debug("Published to %s (%d subscribers)", topic, delivered)
        return delivered

    @contextlib.asynccontextmanager
    async def subscribe(self, topic: str) -> AsyncIterator[asyncio.Queue]:
        queue: asyncio.Queue = asyncio.Queue(maxsize=self._queue_size)
        self._subscribers[topic].add(queue)
        try:
            yield queue
        finally:
            subscribers = self._subscribers.get(topic)
            if subscribers is not None:
                subscribers.discard(queue)
                if not subscribers:
                    del self._subscribers[topic]

    def subscriber_count(self, topic: str) -> int:
        return len(self._subscribers.get(topic, ()))


class RedisNotifier:
    """Publish task updates on Redis channels."""

    def __init__(
        self,
        redis_client: redis.Redis | None = None,
        channel_prefix: str | None = None,
        queue_size: int | None = None,
    ) -> None:
        """Initialize the Redis notifier.

        Args:
            redis_client: Redis client instance. If None, creates default.
            channel_prefix: Namespace prepended to every channel. Defaults to settings.
            queue_size: Buffer per local subscriber. Defaults to settings.
        """
        self._client = redis_client or get_redis_client()
        self._prefix = settings.redis_key_prefix if channel_prefix is None else channel_prefix
        self._queue_size = queue_size or settings.notifier_queue_size

    def _channel(self, topic: str) -> str:
        return f"{self._prefix}:{topic}" if self._prefix else topic

    async def publish(self, topic: str, payload: dict[str, Any]) -> int:
        try:
            receivers = await asyncio.wait_for(
                self._client.publish(self._channel(topic), json.dumps(payload, default=str)),
                timeout=settings.cache_operation_timeout,
            )
        except Exception as e:
            logger.warning("Failed to publish to %s: %s", topic, e)
            return 0
        logger.debug("Published to %s (%d receivers)", topic, receivers)
        return int(receivers)

    @contextlib.asynccontextmanager
    async def subscribe(self, topic: str) -> AsyncIterator[asyncio.Queue]:
        queue: asyncio.Queue = asyncio.Queue(maxsize=self._queue_size)
        pubsub = self._client.pubsub()
        await pubsub.subscribe(self._channel(topic))

        async def pump() -> None:
            async for message in pubsub.listen():
                if message.get("type") != "message":
                    continue
                try:
                    queue.put_nowait(json.loads(message["data"]))
                except asyncio.QueueFull:
                    logger.warning("Dropping event on %s for a slow subscriber", topic)
                except (TypeError, json.JSONDecodeError) as e:
                    logger.warning("Ignoring undecodable event on %s: %s", topic, e)

        reader = asyncio.create_task(pump())
        try:
            yield queue
        finally:
            reader.cancel()
            with contextlib.suppress(asyncio.CancelledError, RedisError):
                await reader
            await pubsub.unsubscribe(self._channel(topic))
            await pubsub.aclose()
