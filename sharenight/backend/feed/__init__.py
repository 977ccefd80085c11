"""Change feed implementations for live collection updates."""

from sharenight.backend.feed.base import ChangeFeed, FeedSubscription, collection_topic
from sharenight.backend.feed.memory import MemoryChangeFeed

__all__ = ["ChangeFeed", "FeedSubscription", "MemoryChangeFeed", "collection_topic"]
