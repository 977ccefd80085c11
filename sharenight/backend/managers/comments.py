"""Comment operations: post and list."""

from __future__ import annotations

import uuid
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from sqlalchemy import select

from sharenight.backend.db.tables import Comment
from sharenight.backend.feed.base import collection_topic
from sharenight.backend.managers.participants import require_participant
from sharenight.backend.models.enums import Collection

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from sharenight.backend.feed.base import ChangeFeed
    from sharenight.backend.models.api import CommentCreate


async def post_comment(
    db: AsyncSession,
    workspace_id: str,
    user_id: str,
    body: CommentCreate,
    *,
    feed: ChangeFeed | None = None,
) -> Comment:
    """Post a comment under the author's current nickname.

    Raises ``NotAParticipantError`` if the author has not joined.
    """
    participant = await require_participant(db, workspace_id, user_id)
    comment = Comment(
        workspace_id=workspace_id,
        comment_id=uuid.uuid4().hex,
        user_id=user_id,
        nickname=participant.nickname,
        text=body.text,
        created_at=datetime.now(UTC),
    )
    db.add(comment)
    await db.commit()
    await db.refresh(comment)
    if feed is not None:
        await feed.publish(collection_topic(workspace_id, Collection.COMMENTS))
    return comment


async def list_comments(db: AsyncSession, workspace_id: str, *, limit: int = 200) -> list[Comment]:
    """Comments, newest first."""
    result = await db.execute(
        select(Comment)
        .where(Comment.workspace_id == workspace_id)
        .order_by(Comment.created_at.desc(), Comment.comment_id)
        .limit(limit)
    )
    return list(result.scalars().all())
