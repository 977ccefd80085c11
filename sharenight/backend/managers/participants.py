"""Participant operations: join a workspace, report status, list members."""

from __future__ import annotations

from datetime import UTC, datetime
from typing import TYPE_CHECKING

from loguru import logger
from sqlalchemy import select

from sharenight.backend.db.tables import Participant
from sharenight.backend.feed.base import collection_topic
from sharenight.backend.managers.workspaces import get_workspace
from sharenight.backend.models.entities import ProgressSummary
from sharenight.backend.models.entities import Participant as ParticipantModel
from sharenight.backend.models.enums import Collection, ParticipantStatus

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from sharenight.backend.feed.base import ChangeFeed
    from sharenight.backend.models.api import JoinRequest


class NotAParticipantError(PermissionError):
    """Raised when a user acts on a workspace they have not joined."""


async def join_workspace(
    db: AsyncSession,
    workspace_id: str,
    user_id: str,
    body: JoinRequest,
    *,
    feed: ChangeFeed | None = None,
) -> Participant:
    """Join (or re-join) a workspace.

    Re-joining updates the nickname and keeps the reported status.  Raises
    ``WorkspaceNotFoundError`` if the workspace does not exist.
    """
    await get_workspace(db, workspace_id)
    nickname = body.nickname.strip()

    participant = await db.get(Participant, (workspace_id, user_id))
    if participant is None:
        participant = Participant(
            workspace_id=workspace_id,
            user_id=user_id,
            nickname=nickname,
            status=ParticipantStatus.NOT_STARTED.value,
            joined_at=datetime.now(UTC),
        )
        db.add(participant)
        logger.info("Workspace {}: user {} joined as {!r}", workspace_id, user_id, nickname)
    else:
        participant.nickname = nickname

    await db.commit()
    await db.refresh(participant)
    if feed is not None:
        await feed.publish(collection_topic(workspace_id, Collection.PARTICIPANTS))
    return participant


async def update_status(
    db: AsyncSession,
    workspace_id: str,
    user_id: str,
    status: ParticipantStatus,
    *,
    feed: ChangeFeed | None = None,
) -> Participant:
    """Set the caller's progress status.  Raises ``NotAParticipantError``."""
    participant = await require_participant(db, workspace_id, user_id)
    participant.status = ParticipantStatus(status).value
    await db.commit()
    await db.refresh(participant)
    if feed is not None:
        await feed.publish(collection_topic(workspace_id, Collection.PARTICIPANTS))
    return participant


async def require_participant(db: AsyncSession, workspace_id: str, user_id: str) -> Participant:
    participant = await db.get(Participant, (workspace_id, user_id))
    if participant is None:
        msg = f"User '{user_id}' has not joined workspace '{workspace_id}'"
        raise NotAParticipantError(msg)
    return participant


async def list_participants(db: AsyncSession, workspace_id: str) -> list[Participant]:
    """Participants in join order."""
    result = await db.execute(
        select(Participant)
        .where(Participant.workspace_id == workspace_id)
        .order_by(Participant.joined_at, Participant.user_id)
    )
    return list(result.scalars().all())


async def progress_summary(db: AsyncSession, workspace_id: str) -> ProgressSummary:
    rows = await list_participants(db, workspace_id)
    return ProgressSummary.from_participants([ParticipantModel.model_validate(row) for row in rows])
