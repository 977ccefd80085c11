"""API request / response schemas.

These thin schemas sit between HTTP and the managers.  Request schemas carry
the field limits so that both the routers and the live boards validate user
input the same way; response schemas serialize ORM rows via
``from_attributes``.
"""

from __future__ import annotations

from datetime import datetime
from typing import Annotated

from pydantic import AfterValidator, AwareDatetime, BaseModel, ConfigDict, Field, model_validator

from sharenight.backend.models.entities import (
    COMMENT_MAX_LENGTH,
    NICKNAME_MAX_LENGTH,
    TITLE_MAX_LENGTH,
    Comment,
    Participant,
    Screenshot,
    Workspace,
)
from sharenight.backend.models.enums import ParticipantStatus


def _not_blank(value: str) -> str:
    if not value.strip():
        msg = "must not be blank"
        raise ValueError(msg)
    return value


NonBlankStr = Annotated[str, AfterValidator(_not_blank)]


# ---------------------------------------------------------------------------
# Auth
# ---------------------------------------------------------------------------


class AnonymousUserResponse(BaseModel):
    user_id: str


# ---------------------------------------------------------------------------
# Workspace
# ---------------------------------------------------------------------------


class WorkspaceCreate(BaseModel):
    """Input for creating a new workspace."""

    workspace_id: str | None = Field(default=None, description="Optional; auto-generated UUID if omitted.")
    title: NonBlankStr = Field(min_length=1, max_length=TITLE_MAX_LENGTH)
    due_date: AwareDatetime


class WorkspaceResponse(BaseModel):
    """Serialized workspace with its display-ready due date."""

    workspace_id: str
    title: str
    due_date: datetime
    created_at: datetime | None = None
    is_due_today: bool = False
    due_date_display: str = ""

    @classmethod
    def from_row(cls, row: object, now: datetime | None = None) -> WorkspaceResponse:
        workspace = Workspace.model_validate(row)
        return cls(
            **workspace.model_dump(),
            is_due_today=workspace.is_due_today(now),
            due_date_display=workspace.due_date_display(now),
        )


# ---------------------------------------------------------------------------
# Participant
# ---------------------------------------------------------------------------


class JoinRequest(BaseModel):
    nickname: NonBlankStr = Field(min_length=1, max_length=NICKNAME_MAX_LENGTH)


class StatusUpdate(BaseModel):
    status: ParticipantStatus


class ParticipantResponse(Participant):
    pass


# ---------------------------------------------------------------------------
# Comment
# ---------------------------------------------------------------------------


class CommentCreate(BaseModel):
    text: NonBlankStr = Field(min_length=1, max_length=COMMENT_MAX_LENGTH)


class CommentResponse(Comment):
    pass


# ---------------------------------------------------------------------------
# Screenshot
# ---------------------------------------------------------------------------


class ScreenshotResponse(Screenshot):
    pass


class ReorderRequest(BaseModel):
    """A drag-and-drop gesture or an explicit full ordering.

    Exactly one form must be provided: ``source_id`` + ``target_id`` moves one
    item onto another; ``ordered_ids`` replaces the whole ordering.
    """

    source_id: str | None = None
    target_id: str | None = None
    ordered_ids: list[str] | None = None

    @model_validator(mode="after")
    def _one_form(self) -> ReorderRequest:
        gesture = self.source_id is not None and self.target_id is not None
        if gesture == (self.ordered_ids is not None):
            msg = "Provide either source_id and target_id, or ordered_ids"
            raise ValueError(msg)
        return self


class ReorderResponse(BaseModel):
    ok: bool
    screenshots: list[ScreenshotResponse]


class DeleteResponse(BaseModel):
    ok: bool


# ---------------------------------------------------------------------------
# Live
# ---------------------------------------------------------------------------


class SnapshotEvent(BaseModel):
    """Full snapshot of a live collection, emitted on every change."""

    model_config = ConfigDict(use_enum_values=True)

    workspace_id: str
    collection: str
    items: list[dict]
