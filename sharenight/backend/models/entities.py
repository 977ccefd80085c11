"""Domain records for a shared workspace.

Plain data describing persisted state: workspaces, participants, ranked
screenshots and comments.  Field limits are expressed once here and reused by
the API schemas and the upload workflow.
"""

from __future__ import annotations

from datetime import datetime, timedelta

from pydantic import BaseModel, ConfigDict, Field

from sharenight.backend.models.enums import ParticipantStatus

TITLE_MAX_LENGTH = 50
NICKNAME_MAX_LENGTH = 20
SCREENSHOT_COMMENT_MAX_LENGTH = 50
COMMENT_MAX_LENGTH = 500


def _local(value: datetime, now: datetime) -> datetime:
    if value.tzinfo is not None and now.tzinfo is not None:
        return value.astimezone(now.tzinfo)
    return value


class Workspace(BaseModel):
    """A shared session scoped by an identifier and due date."""

    model_config = ConfigDict(from_attributes=True)

    workspace_id: str
    title: str
    due_date: datetime
    created_at: datetime | None = None

    def is_due_today(self, now: datetime | None = None) -> bool:
        now = now or datetime.now(tz=self.due_date.tzinfo)
        return _local(self.due_date, now).date() == now.date()

    def due_date_display(self, now: datetime | None = None) -> str:
        """Human-readable due date; "today" is called out explicitly."""
        now = now or datetime.now(tz=self.due_date.tzinfo)
        due = _local(self.due_date, now)
        if due.date() == now.date():
            return f"Due today {due:%H:%M}"
        return f"Due {due:%Y/%m/%d %H:%M}"


class Participant(BaseModel):
    """A user's membership and status within a workspace."""

    model_config = ConfigDict(from_attributes=True)

    user_id: str
    nickname: str
    status: ParticipantStatus = ParticipantStatus.NOT_STARTED
    joined_at: datetime | None = None


class Screenshot(BaseModel):
    """A ranked progress screenshot.  ``user_id`` doubles as the record id."""

    model_config = ConfigDict(from_attributes=True)

    user_id: str
    image_url: str
    nickname: str
    rank: int
    comment: str | None = None
    uploaded_at: datetime | None = None


class Comment(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    comment_id: str
    user_id: str
    nickname: str
    text: str
    created_at: datetime

    def relative_time(self, now: datetime | None = None) -> str:
        now = now or datetime.now(tz=self.created_at.tzinfo)
        elapsed = now - _local(self.created_at, now)
        if elapsed < timedelta(minutes=1):
            return "just now"
        if elapsed < timedelta(hours=1):
            return f"{int(elapsed.total_seconds() // 60)} min ago"
        if elapsed < timedelta(days=1):
            return f"{int(elapsed.total_seconds() // 3600)} h ago"
        return f"{elapsed.days} d ago"


class ProgressSummary(BaseModel):
    """Participant counts per status."""

    not_started_count: int = 0
    in_progress_count: int = 0
    completed_count: int = 0
    total: int = Field(default=0, description="Number of participants.")

    @classmethod
    def from_participants(cls, participants: list[Participant]) -> ProgressSummary:
        counts = {status: 0 for status in ParticipantStatus}
        for participant in participants:
            counts[participant.status] += 1
        return cls(
            not_started_count=counts[ParticipantStatus.NOT_STARTED],
            in_progress_count=counts[ParticipantStatus.IN_PROGRESS],
            completed_count=counts[ParticipantStatus.COMPLETED],
            total=len(participants),
        )
