"""Data models for the ShareNight backend."""

from sharenight.backend.models.api import (
    AnonymousUserResponse,
    CommentCreate,
    CommentResponse,
    DeleteResponse,
    JoinRequest,
    ParticipantResponse,
    ReorderRequest,
    ReorderResponse,
    ScreenshotResponse,
    SnapshotEvent,
    StatusUpdate,
    WorkspaceCreate,
    WorkspaceResponse,
)
from sharenight.backend.models.entities import (
    Comment,
    Participant,
    ProgressSummary,
    Screenshot,
    Workspace,
)
from sharenight.backend.models.enums import Collection, ParticipantStatus, UploadState

__all__ = [
    # API schemas
    "AnonymousUserResponse",
    "CommentCreate",
    "CommentResponse",
    "DeleteResponse",
    "JoinRequest",
    "ParticipantResponse",
    "ReorderRequest",
    "ReorderResponse",
    "ScreenshotResponse",
    "SnapshotEvent",
    "StatusUpdate",
    "WorkspaceCreate",
    "WorkspaceResponse",
    # Entities
    "Comment",
    "Participant",
    "ProgressSummary",
    "Screenshot",
    "Workspace",
    # Enums
    "Collection",
    "ParticipantStatus",
    "UploadState",
]
