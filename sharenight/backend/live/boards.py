"""Per-screen state holders for a workspace.

Each board follows one collection live and forwards the user's actions to
the managers.  Actions report a plain ``bool`` outcome; the reason for a
failure is logged and kept in ``error_message``.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from loguru import logger
from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError

from sharenight.backend.live.collections import LiveCollection
from sharenight.backend.managers import comments as comments_manager
from sharenight.backend.managers import participants as participants_manager
from sharenight.backend.managers.ranking import reorder
from sharenight.backend.managers.uploads import UploadError, UploadInProgressError
from sharenight.backend.models.api import CommentCreate, JoinRequest
from sharenight.backend.models.entities import Comment, Participant, ProgressSummary, Screenshot
from sharenight.backend.models.enums import Collection, ParticipantStatus

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

    from sharenight.backend.feed.base import ChangeFeed
    from sharenight.backend.managers.screenshots import ScreenshotManager
    from sharenight.backend.managers.uploads import UploadWorkflow

# Errors an action turns into a ``False`` outcome.
_ACTION_ERRORS = (ValueError, LookupError, PermissionError, SQLAlchemyError)


def _describe(exc: Exception) -> str:
    if isinstance(exc, ValidationError):
        return "; ".join(error["msg"] for error in exc.errors())
    return str(exc)


class ParticipantBoard(LiveCollection[Participant]):
    """Participants of a workspace with per-status counts."""

    collection = Collection.PARTICIPANTS

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        feed: ChangeFeed,
        workspace_id: str,
        user_id: str,
    ) -> None:
        super().__init__(session_factory, feed, workspace_id, user_id)
        self.my_participant: Participant | None = None
        self.summary = ProgressSummary()

    async def _load(self, db: AsyncSession) -> list[Participant]:
        rows = await participants_manager.list_participants(db, self.workspace_id)
        return [Participant.model_validate(row) for row in rows]

    def _derive(self) -> None:
        self.my_participant = next((p for p in self.items if p.user_id == self.user_id), None)
        self.summary = ProgressSummary.from_participants(self.items)

    async def join(self, nickname: str) -> bool:
        try:
            body = JoinRequest(nickname=nickname)
            async with self._session_factory() as db:
                await participants_manager.join_workspace(
                    db, self.workspace_id, self.user_id, body, feed=self._feed
                )
        except _ACTION_ERRORS as exc:
            self.error_message = _describe(exc)
            logger.warning("Workspace {}: join failed for {}: {}", self.workspace_id, self.user_id, exc)
            return False
        return True

    async def change_status(self, status: ParticipantStatus) -> bool:
        try:
            async with self._session_factory() as db:
                await participants_manager.update_status(
                    db, self.workspace_id, self.user_id, ParticipantStatus(status), feed=self._feed
                )
        except _ACTION_ERRORS as exc:
            self.error_message = _describe(exc)
            logger.warning("Workspace {}: status change failed for {}: {}", self.workspace_id, self.user_id, exc)
            return False
        return True


class CommentBoard(LiveCollection[Comment]):
    """Comments of a workspace, newest first."""

    collection = Collection.COMMENTS

    async def _load(self, db: AsyncSession) -> list[Comment]:
        rows = await comments_manager.list_comments(db, self.workspace_id)
        return [Comment.model_validate(row) for row in rows]

    async def post(self, text: str) -> bool:
        try:
            body = CommentCreate(text=text)
            async with self._session_factory() as db:
                await comments_manager.post_comment(db, self.workspace_id, self.user_id, body, feed=self._feed)
        except _ACTION_ERRORS as exc:
            self.error_message = _describe(exc)
            logger.warning("Workspace {}: comment failed for {}: {}", self.workspace_id, self.user_id, exc)
            return False
        return True


class ScreenshotBoard(LiveCollection[Screenshot]):
    """The ranked leaderboard.

    Reordering is a command with acknowledgement: :meth:`move` shows the new
    order immediately, then rolls back to the last stored order if the batch
    write is rejected.
    """

    collection = Collection.SCREENSHOTS

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        feed: ChangeFeed,
        workspace_id: str,
        user_id: str,
        manager: ScreenshotManager,
    ) -> None:
        super().__init__(session_factory, feed, workspace_id, user_id)
        self._manager = manager
        self.my_screenshot: Screenshot | None = None
        self.workflow: UploadWorkflow = manager.new_workflow(workspace_id, user_id)
        self._acknowledged: list[Screenshot] = []

    async def _load(self, db: AsyncSession) -> list[Screenshot]:
        rows = await self._manager.list_screenshots(db, self.workspace_id)
        items = [Screenshot.model_validate(row) for row in rows]
        self._acknowledged = list(items)
        return items

    def _derive(self) -> None:
        self.my_screenshot = next((s for s in self.items if s.user_id == self.user_id), None)

    # -- Derived ---------------------------------------------------------------

    def current_rank(self, user_id: str) -> int:
        """Position on the board as currently shown (0 if absent)."""
        for position, item in enumerate(self.items, start=1):
            if item.user_id == user_id:
                return position
        return 0

    @property
    def is_uploading(self) -> bool:
        return self.workflow.is_uploading

    @property
    def upload_progress(self) -> float:
        return self.workflow.progress

    # -- Actions ---------------------------------------------------------------

    async def move(self, source_id: str, target_id: str) -> bool:
        """Drop *source_id* onto *target_id* and persist the new order."""
        shown = [s.user_id for s in self.items]
        if source_id not in shown or target_id not in shown:
            return False
        provisional = reorder(self.items, source_id, target_id, key=lambda item: item.user_id)
        if [s.user_id for s in provisional] == shown:
            return True

        self.items = [s.model_copy(update={"rank": rank}) for rank, s in enumerate(provisional, start=1)]
        self._publish_local()

        ok = False
        try:
            async with self._session_factory() as db:
                ok = await self._manager.persist_ranking(db, self.workspace_id, [s.user_id for s in provisional])
        except SQLAlchemyError as exc:
            logger.warning("Workspace {}: ranking update failed: {}", self.workspace_id, exc)

        if not ok:
            self.error_message = "Failed to update the ranking"
            # A refresh may have landed while the write was in flight; restore the newest stored order.
            self.items = list(self._acknowledged)
            self._publish_local()
            return False
        self._acknowledged = list(self.items)
        return True

    async def upload(self, image: bytes, comment: str | None = None) -> bool:
        try:
            async with self._session_factory() as db:
                await self._manager.upload(
                    db, self.workspace_id, self.user_id, image, comment, workflow=self.workflow
                )
        except UploadError as exc:
            self.error_message = exc.message
            return False
        except (UploadInProgressError, *_ACTION_ERRORS) as exc:
            self.error_message = _describe(exc)
            logger.warning("Workspace {}: upload failed for {}: {}", self.workspace_id, self.user_id, exc)
            return False
        return True

    async def delete(self) -> bool:
        if self.my_screenshot is None:
            return False
        try:
            async with self._session_factory() as db:
                return await self._manager.delete(db, self.workspace_id, self.user_id)
        except SQLAlchemyError as exc:
            logger.warning("Workspace {}: delete failed for {}: {}", self.workspace_id, self.user_id, exc)
            return False
