"""Screenshot manager -- ranked leaderboard across PG and the blob store.

The ScreenshotManager is a process-level singleton initialised in the app
lifespan.  It coordinates three backends:

- **PostgreSQL**: screenshot rows (rank, nickname snapshot, object URL)
- **Blob store**: the JPEG payloads, one object per user per workspace
- **Change feed**: "screenshots changed" notifications for live boards

Rank-changing writes (upload, reorder, delete) lock the workspace row first,
so they are serialised per workspace and ranks stay a permutation of 1..N.

Individual methods accept an ``AsyncSession`` (DB) parameter so that database
access follows FastAPI's per-request dependency injection pattern.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import TYPE_CHECKING

from loguru import logger
from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import SQLAlchemyError

from sharenight.backend.db.tables import Screenshot
from sharenight.backend.feed.base import collection_topic
from sharenight.backend.managers.imaging import DEFAULT_JPEG_QUALITY
from sharenight.backend.managers.participants import require_participant
from sharenight.backend.managers.ranking import assign_ranks, next_rank, reorder
from sharenight.backend.managers.uploads import MAX_UPLOAD_BYTES, UploadWorkflow
from sharenight.backend.managers.workspaces import WorkspaceNotFoundError, lock_workspace
from sharenight.backend.models.enums import Collection
from sharenight.backend.store.base import screenshot_key

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from sharenight.backend.feed.base import ChangeFeed
    from sharenight.backend.store.base import BlobStore


class ScreenshotNotFoundError(LookupError):
    """Raised when a screenshot referenced by a reorder is not on the board."""


class ScreenshotManager:
    """Upload, rank and delete screenshots.

    Instantiated once during app lifespan.  Stateless beyond its references
    to the blob store and change feed.
    """

    def __init__(
        self,
        store: BlobStore,
        feed: ChangeFeed,
        *,
        max_upload_bytes: int = MAX_UPLOAD_BYTES,
        jpeg_quality: int = DEFAULT_JPEG_QUALITY,
    ) -> None:
        self._store = store
        self._feed = feed
        self._max_upload_bytes = max_upload_bytes
        self._jpeg_quality = jpeg_quality

    @property
    def store(self) -> BlobStore:
        return self._store

    async def _publish(self, workspace_id: str) -> None:
        await self._feed.publish(collection_topic(workspace_id, Collection.SCREENSHOTS))

    # -- Read ------------------------------------------------------------------

    async def list_screenshots(self, db: AsyncSession, workspace_id: str) -> list[Screenshot]:
        """Screenshots in leaderboard order (rank, then upload order)."""
        result = await db.execute(
            select(Screenshot)
            .where(Screenshot.workspace_id == workspace_id)
            .order_by(Screenshot.rank, Screenshot.uploaded_at, Screenshot.user_id)
        )
        return list(result.scalars().all())

    # -- Upload ----------------------------------------------------------------

    def new_workflow(self, workspace_id: str, user_id: str) -> UploadWorkflow:
        return UploadWorkflow(
            self._store,
            screenshot_key(workspace_id, user_id),
            max_bytes=self._max_upload_bytes,
            quality=self._jpeg_quality,
        )

    async def upload(
        self,
        db: AsyncSession,
        workspace_id: str,
        user_id: str,
        image: bytes,
        comment: str | None = None,
        *,
        workflow: UploadWorkflow | None = None,
    ) -> Screenshot:
        """Run the upload workflow and persist the screenshot row.

        New screenshots go to the bottom of the board (``max(rank) + 1``); a
        re-upload replaces the image and comment but keeps its rank.  Raises
        ``NotAParticipantError`` before touching the store if the uploader has
        not joined, and ``UploadError`` if any workflow stage fails.
        """
        participant = await require_participant(db, workspace_id, user_id)
        nickname = participant.nickname
        had_screenshot = await db.get(Screenshot, (workspace_id, user_id)) is not None
        # Release the read transaction before the (possibly slow) transfer.
        await db.commit()

        workflow = workflow or self.new_workflow(workspace_id, user_id)

        async def persist(image_url: str, normalized_comment: str | None) -> Screenshot:
            try:
                row = await self._save_record(db, workspace_id, user_id, nickname, image_url, normalized_comment)
            except BaseException:
                await db.rollback()
                raise
            return row

        row = await workflow.submit(image, comment, persist, discard_on_failure=not had_screenshot)
        logger.info("Workspace {}: screenshot from {} saved at rank {}", workspace_id, user_id, row.rank)
        await self._publish(workspace_id)
        return row

    async def _save_record(
        self,
        db: AsyncSession,
        workspace_id: str,
        user_id: str,
        nickname: str,
        image_url: str,
        comment: str | None,
    ) -> Screenshot:
        await lock_workspace(db, workspace_id)
        now = datetime.now(UTC)
        row = await db.get(Screenshot, (workspace_id, user_id))
        if row is None:
            max_rank = await db.scalar(
                select(func.max(Screenshot.rank)).where(Screenshot.workspace_id == workspace_id)
            )
            row = Screenshot(
                workspace_id=workspace_id,
                user_id=user_id,
                image_url=image_url,
                nickname=nickname,
                rank=next_rank([max_rank] if max_rank is not None else []),
                comment=comment,
                uploaded_at=now,
            )
            db.add(row)
        else:
            row.image_url = image_url
            row.nickname = nickname
            row.comment = comment
            row.uploaded_at = now
        await db.commit()
        await db.refresh(row)
        return row

    # -- Ranking ---------------------------------------------------------------

    async def move(self, db: AsyncSession, workspace_id: str, source_id: str, target_id: str) -> bool:
        """Apply a drag-and-drop gesture against the current board and persist it."""
        current = await self.list_screenshots(db, workspace_id)
        ids = [row.user_id for row in current]
        for item_id in (source_id, target_id):
            if item_id not in ids:
                raise ScreenshotNotFoundError(item_id)
        ordered = reorder(ids, source_id, target_id, key=lambda item_id: item_id)
        return await self.persist_ranking(db, workspace_id, ordered)

    async def persist_ranking(self, db: AsyncSession, workspace_id: str, ordered_ids: list[str]) -> bool:
        """Rewrite every rank to its 1-based position in *ordered_ids*.

        All updates land in one transaction: either the whole new order is
        stored or nothing is.  The batch is rejected (``False``) when
        *ordered_ids* is not exactly the set of screenshots on the board,
        e.g. because someone uploaded or deleted in the meantime.
        """
        ranks = assign_ranks(ordered_ids)
        try:
            await lock_workspace(db, workspace_id)
            result = await db.execute(select(Screenshot.user_id).where(Screenshot.workspace_id == workspace_id))
            present = set(result.scalars().all())
            if len(ranks) != len(ordered_ids) or set(ranks) != present:
                logger.warning("Workspace {}: ranking rejected, board changed since it was read", workspace_id)
                await db.rollback()
                return False
            for user_id, rank in ranks.items():
                await db.execute(
                    update(Screenshot)
                    .where(Screenshot.workspace_id == workspace_id, Screenshot.user_id == user_id)
                    .values(rank=rank)
                )
            await db.commit()
        except (SQLAlchemyError, WorkspaceNotFoundError) as exc:
            logger.warning("Workspace {}: ranking update failed: {}", workspace_id, exc)
            await db.rollback()
            return False

        # Bulk UPDATE bypasses the identity map; make the next read see new ranks.
        db.expire_all()
        await self._publish(workspace_id)
        return True

    # -- Delete ----------------------------------------------------------------

    async def delete(self, db: AsyncSession, workspace_id: str, user_id: str) -> bool:
        """Delete the user's screenshot: object first, then the record.

        Object deletion is best effort -- a failure is logged and the record is
        removed anyway.  The outcome reflects the record deletion only.  The
        remaining screenshots are re-ranked to stay contiguous.
        """
        if await db.get(Screenshot, (workspace_id, user_id)) is None:
            return False
        await db.commit()

        try:
            await self._store.delete(screenshot_key(workspace_id, user_id))
        except Exception as exc:
            logger.warning("Workspace {}: could not delete object for {}: {}", workspace_id, user_id, exc)

        try:
            await lock_workspace(db, workspace_id)
            result = await db.execute(
                delete(Screenshot).where(Screenshot.workspace_id == workspace_id, Screenshot.user_id == user_id)
            )
            if result.rowcount == 0:
                await db.rollback()
                return False
            remaining = await db.execute(
                select(Screenshot.user_id)
                .where(Screenshot.workspace_id == workspace_id)
                .order_by(Screenshot.rank, Screenshot.uploaded_at, Screenshot.user_id)
            )
            for other_id, rank in assign_ranks(remaining.scalars().all()).items():
                await db.execute(
                    update(Screenshot)
                    .where(Screenshot.workspace_id == workspace_id, Screenshot.user_id == other_id)
                    .values(rank=rank)
                )
            await db.commit()
        except (SQLAlchemyError, WorkspaceNotFoundError) as exc:
            logger.warning("Workspace {}: could not delete screenshot of {}: {}", workspace_id, user_id, exc)
            await db.rollback()
            return False

        db.expire_all()
        logger.info("Workspace {}: screenshot from {} deleted", workspace_id, user_id)
        await self._publish(workspace_id)
        return True
