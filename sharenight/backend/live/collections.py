"""Live, continuously-updated views of one workspace collection.

A :class:`LiveCollection` keeps the latest full snapshot of a collection
(participants, screenshots or comments) and re-derives its summary state
whenever the change feed reports a write.  Subscriptions are explicit: the
caller owns the :class:`Subscription` returned by :meth:`LiveCollection.start`
and must close it (or use it as an async context manager).  Nothing is torn
down implicitly.
"""

from __future__ import annotations

import asyncio
import contextlib
from collections.abc import Callable
from typing import TYPE_CHECKING, Any, ClassVar, Generic, TypeVar

from loguru import logger
from sqlalchemy.exc import SQLAlchemyError

from sharenight.backend.feed.base import collection_topic

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

    from sharenight.backend.feed.base import ChangeFeed, FeedSubscription
    from sharenight.backend.models.enums import Collection

T = TypeVar("T")

Listener = Callable[[list[Any]], None]


class Subscription:
    """Handle for a running live collection.  ``close`` is idempotent."""

    def __init__(self, feed_subscription: FeedSubscription, task: asyncio.Task[None]) -> None:
        self._feed_subscription = feed_subscription
        self._task = task
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        await self._feed_subscription.close()
        self._task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._task

    async def __aenter__(self) -> Subscription:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()


class LiveCollection(Generic[T]):
    """Base class for the per-screen state holders.

    Subclasses set ``collection`` and implement :meth:`_load`; they may
    override :meth:`_derive` to recompute summary state after each refresh.
    """

    collection: ClassVar[Collection]

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        feed: ChangeFeed,
        workspace_id: str,
        user_id: str,
    ) -> None:
        self._session_factory = session_factory
        self._feed = feed
        self.workspace_id = workspace_id
        self.user_id = user_id
        self.items: list[T] = []
        self.error_message: str | None = None
        self._listeners: list[Listener] = []

    @property
    def topic(self) -> str:
        return collection_topic(self.workspace_id, self.collection)

    # -- Listeners -------------------------------------------------------------

    def on_change(self, listener: Listener) -> Callable[[], None]:
        """Call *listener* with the full snapshot after every change."""
        self._listeners.append(listener)
        return lambda: self._listeners.remove(listener) if listener in self._listeners else None

    def _publish_local(self) -> None:
        self._derive()
        for listener in list(self._listeners):
            listener(list(self.items))

    # -- Loading ---------------------------------------------------------------

    async def _load(self, db: AsyncSession) -> list[T]:
        raise NotImplementedError

    def _derive(self) -> None:
        """Recompute derived state from ``items``."""

    async def refresh(self) -> list[T]:
        """Reload the full snapshot and notify listeners."""
        try:
            async with self._session_factory() as db:
                self.items = await self._load(db)
        except SQLAlchemyError as exc:
            self.error_message = f"Failed to load {self.collection}: {exc}"
            logger.warning("Live {}: refresh failed: {}", self.topic, exc)
            raise
        self.error_message = None
        self._publish_local()
        return self.items

    async def start(self) -> Subscription:
        """Load the first snapshot and follow the change feed.

        The feed subscription is opened before the first load, so no write can
        slip between the snapshot and the first notification.
        """
        feed_subscription = await self._feed.subscribe(self.topic)
        try:
            await self.refresh()
        except BaseException:
            await feed_subscription.close()
            raise
        task = asyncio.create_task(self._follow(feed_subscription), name=f"live:{self.topic}")
        logger.debug("Live {}: started for user {}", self.topic, self.user_id)
        return Subscription(feed_subscription, task)

    async def _follow(self, feed_subscription: FeedSubscription) -> None:
        async for _topic in feed_subscription:
            # A failed reload keeps the previous snapshot; the next change retries.
            with contextlib.suppress(SQLAlchemyError):
                await self.refresh()
