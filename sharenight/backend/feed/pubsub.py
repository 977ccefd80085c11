"""Redis pub/sub change feed.

Every subscription gets its own ``PubSub`` connection subscribed to the topic
channel (prefixed with ``sharenight:``), so closing one subscription never
disturbs another.  Lets several uvicorn workers share live updates.
"""

from __future__ import annotations

from collections.abc import AsyncIterator

import redis.asyncio as aioredis
from loguru import logger

CHANNEL_PREFIX = "sharenight:"


class RedisSubscription:
    def __init__(self, pubsub: aioredis.client.PubSub, topic: str) -> None:
        self._pubsub = pubsub
        self.topic = topic
        self._closed = False

    async def __aiter__(self) -> AsyncIterator[str]:
        while not self._closed:
            message = await self._pubsub.get_message(ignore_subscribe_messages=True, timeout=1.0)
            if message is None:
                continue
            yield self.topic

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        await self._pubsub.unsubscribe()
        await self._pubsub.aclose()


class RedisChangeFeed:
    """Redis implementation of the ChangeFeed protocol.

    The client is owned by the caller (the app lifespan); ``aclose`` only
    closes subscriptions opened through this feed.
    """

    def __init__(self, client: aioredis.Redis) -> None:
        self._client = client
        self._subscriptions: set[RedisSubscription] = set()

    async def publish(self, topic: str) -> None:
        receivers = await self._client.publish(CHANNEL_PREFIX + topic, b"changed")
        logger.debug("Feed: publish {} ({} receivers)", topic, receivers)

    async def subscribe(self, topic: str) -> RedisSubscription:
        pubsub = self._client.pubsub()
        await pubsub.subscribe(CHANNEL_PREFIX + topic)
        # Wait for the confirmation so a publish right after this call is seen.
        await pubsub.get_message(timeout=1.0)
        subscription = RedisSubscription(pubsub, topic)
        self._subscriptions.add(subscription)
        return subscription

    async def aclose(self) -> None:
        for subscription in list(self._subscriptions):
            await subscription.close()
        self._subscriptions.clear()
