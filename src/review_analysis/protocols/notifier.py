"""Realtime notifier protocol.

A publish-to-topic primitive. Delivery is fire-and-forget: no
acknowledgement, no persistence, a subscriber that connects after an
event was published never sees it.
"""

import asyncio
from contextlib import AbstractAsyncContextManager
from typing import Any, Protocol, runtime_checkable


@runtime_checkable
class Notifier(Protocol):
    """Protocol for realtime task-update publishers."""

    async def publish(self, topic: str, payload: dict[str, Any]) -> int:
        """Publish an event to a topic. Never raises.

        Returns:
            Number of subscribers the event was handed to (best effort)
        """
        ...

    def subscribe(self, topic: str) -> AbstractAsyncContextManager[asyncio.Queue]:
        """Subscribe to a topic for the lifetime of the context.

        Yields:
            A queue receiving every payload published while subscribed
        """
        ...
