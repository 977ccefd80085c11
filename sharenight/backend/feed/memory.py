"""In-process change feed.

Each subscription owns an unbounded ``asyncio.Queue``; ``publish`` fans the
topic out to every queue registered for it.  Only reaches subscribers in the
same process -- use :class:`RedisChangeFeed` when running several workers.
"""

from __future__ import annotations

import asyncio
from collections import defaultdict
from collections.abc import AsyncIterator

from loguru import logger

_CLOSED = object()


class MemorySubscription:
    def __init__(self, feed: MemoryChangeFeed, topic: str) -> None:
        self._feed = feed
        self.topic = topic
        self._queue: asyncio.Queue[object] = asyncio.Queue()
        self._closed = False

    def _deliver(self, topic: str) -> None:
        if not self._closed:
            self._queue.put_nowait(topic)

    async def __aiter__(self) -> AsyncIterator[str]:
        while True:
            item = await self._queue.get()
            if item is _CLOSED:
                return
            yield item  # type: ignore[misc]

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._feed._discard(self)
        self._queue.put_nowait(_CLOSED)


class MemoryChangeFeed:
    """In-process implementation of the ChangeFeed protocol."""

    def __init__(self) -> None:
        self._subscribers: dict[str, set[MemorySubscription]] = defaultdict(set)

    async def publish(self, topic: str) -> None:
        subscribers = list(self._subscribers.get(topic, ()))
        logger.debug("Feed: publish {} ({} subscribers)", topic, len(subscribers))
        for subscription in subscribers:
            subscription._deliver(topic)

    async def subscribe(self, topic: str) -> MemorySubscription:
        subscription = MemorySubscription(self, topic)
        self._subscribers[topic].add(subscription)
        return subscription

    def subscriber_count(self, topic: str) -> int:
        return len(self._subscribers.get(topic, ()))

    def _discard(self, subscription: MemorySubscription) -> None:
        subscribers = self._subscribers.get(subscription.topic)
        if subscribers is None:
            return
        subscribers.discard(subscription)
        if not subscribers:
            del self._subscribers[subscription.topic]

    async def aclose(self) -> None:
        for subscribers in list(self._subscribers.values()):
            for subscription in list(subscribers):
                await subscription.close()
