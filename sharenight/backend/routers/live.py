"""Live collection streams (Server-Sent Events).

``GET /api/workspaces/{workspace_id}/live/{collection}`` sends a ``snapshot``
event with the full collection right away and again after every change.  The
board subscription is owned by the response generator and closed when the
client disconnects.
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator
from typing import Any

from fastapi import APIRouter, Request
from sse_starlette.sse import EventSourceResponse

from sharenight.backend.deps import CurrentUser, Feed, Screenshots, SessionFactory
from sharenight.backend.live.boards import CommentBoard, ParticipantBoard, ScreenshotBoard
from sharenight.backend.live.collections import LiveCollection
from sharenight.backend.models.api import SnapshotEvent
from sharenight.backend.models.enums import Collection

router = APIRouter(prefix="/workspaces/{workspace_id}/live", tags=["live"])


@router.get("/{collection}")
async def stream_collection(
    workspace_id: str,
    collection: Collection,
    request: Request,
    session_factory: SessionFactory,
    feed: Feed,
    manager: Screenshots,
    user_id: CurrentUser,
) -> EventSourceResponse:
    """Stream full snapshots of one collection as they change."""
    board: LiveCollection[Any]
    if collection == Collection.PARTICIPANTS:
        board = ParticipantBoard(session_factory, feed, workspace_id, user_id)
    elif collection == Collection.COMMENTS:
        board = CommentBoard(session_factory, feed, workspace_id, user_id)
    else:
        board = ScreenshotBoard(session_factory, feed, workspace_id, user_id, manager)

    snapshots: asyncio.Queue[list[Any]] = asyncio.Queue()
    board.on_change(snapshots.put_nowait)
    subscription = await board.start()

    async def events() -> AsyncIterator[dict[str, str]]:
        async with subscription:
            while not await request.is_disconnected():
                try:
                    items = await asyncio.wait_for(snapshots.get(), timeout=15.0)
                except TimeoutError:
                    continue
                event = SnapshotEvent(
                    workspace_id=workspace_id,
                    collection=collection,
                    items=[item.model_dump(mode="json") for item in items],
                )
                yield {"event": "snapshot", "data": event.model_dump_json()}

    return EventSourceResponse(events(), ping=15)
