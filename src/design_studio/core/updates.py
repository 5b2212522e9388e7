"""In-process push channel from the pipeline to whatever renders it."""

import asyncio
import logging
from collections.abc import AsyncIterator

logger = logging.getLogger(__name__)

FEED_BATCH = "feed-batch"
REQUEST_STATUS = "request-status"
REQUEST_FEED = "request-feed"
PROJECT_REFRESH = "project-refresh"

CHANNELS = (FEED_BATCH, REQUEST_STATUS, REQUEST_FEED, PROJECT_REFRESH)


class UpdateHub:
    """Fan out published messages to every subscriber queue.

    Publishing never blocks: a subscriber that falls behind loses its
    oldest pending messages.
    """

    def __init__(self, max_pending: int = 1000):
        self.max_pending = max_pending
        self._subscribers: set[asyncio.Queue] = set()

    def publish(self, channel: str, payload) -> None:
        if channel not in CHANNELS:
            raise ValueError(f"Unknown channel: {channel}")
        message = {"channel": channel, "payload": payload}
        for queue in list(self._subscribers):
            if queue.full():
                queue.get_nowait()
                logger.debug("Dropping oldest update for a slow subscriber")
            queue.put_nowait(message)

    def subscribe(self) -> asyncio.Queue:
        queue: asyncio.Queue = asyncio.Queue(maxsize=self.max_pending)
        self._subscribers.add(queue)
        return queue

    def unsubscribe(self, queue: asyncio.Queue) -> None:
        self._subscribers.discard(queue)

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    async def stream(self) -> AsyncIterator[dict]:
        """Yield messages as they arrive until the consumer stops iterating."""
        queue = self.subscribe()
        try:
            while True:
                yield await queue.get()
        finally:
            self.unsubscribe(queue)
