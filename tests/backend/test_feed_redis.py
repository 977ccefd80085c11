"""Integration tests for the Redis pub/sub change feed."""

from __future__ import annotations

import asyncio

import pytest
import redis.asyncio as aioredis

from sharenight.backend.feed.pubsub import CHANNEL_PREFIX, RedisChangeFeed


async def _next(subscription, timeout: float = 3.0) -> str:
    return await asyncio.wait_for(anext(aiter(subscription)), timeout=timeout)


@pytest.mark.integration
async def test_publish_reaches_subscriber(redis_client: aioredis.Redis) -> None:
    feed = RedisChangeFeed(redis_client)
    subscription = await feed.subscribe("workspaces/ws/comments")

    await feed.publish("workspaces/ws/comments")
    assert await _next(subscription) == "workspaces/ws/comments"
    await feed.aclose()


@pytest.mark.integration
async def test_feeds_share_channels_across_instances(redis_client: aioredis.Redis) -> None:
    """Two feeds on one Redis behave like two workers."""
    worker_a = RedisChangeFeed(redis_client)
    worker_b = RedisChangeFeed(redis_client)
    subscription = await worker_b.subscribe("t")

    await worker_a.publish("t")
    assert await _next(subscription) == "t"
    await worker_b.aclose()


@pytest.mark.integration
async def test_channels_are_prefixed(redis_client: aioredis.Redis) -> None:
    feed = RedisChangeFeed(redis_client)
    subscription = await feed.subscribe("t")

    channels = await redis_client.pubsub_channels()
    assert (CHANNEL_PREFIX + "t").encode() in channels

    await subscription.close()
    await subscription.close()
    await feed.aclose()
