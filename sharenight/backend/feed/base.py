"""Change feed interface for live collection updates.

A change feed carries "something changed" notifications per topic; it never
carries the data itself.  Subscribers react by re-reading the full snapshot
of the collection, so a dropped or coalesced notification can only delay an
update, never corrupt one.

Topics are collection paths: ``workspaces/{workspace_id}/{collection}``.
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from typing import Protocol, runtime_checkable


def collection_topic(workspace_id: str, collection: str) -> str:
    return f"workspaces/{workspace_id}/{collection}"


@runtime_checkable
class FeedSubscription(Protocol):
    """Explicit handle for one subscription.  Iterate to receive topics."""

    def __aiter__(self) -> AsyncIterator[str]: ...

    async def close(self) -> None:
        """Stop receiving notifications.  Idempotent; ends any pending iteration."""
        ...


@runtime_checkable
class ChangeFeed(Protocol):
    async def publish(self, topic: str) -> None:
        """Notify every subscriber of *topic* that it changed."""
        ...

    async def subscribe(self, topic: str) -> FeedSubscription:
        ...

    async def aclose(self) -> None:
        """Release backend resources."""
        ...
