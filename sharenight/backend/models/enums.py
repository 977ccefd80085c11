"""Shared enumerations used across the backend."""

from __future__ import annotations

from enum import StrEnum

# -- Participant -------------------------------------------------------------


class ParticipantStatus(StrEnum):
    """Self-reported progress of a participant."""

    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"

    @property
    def display_name(self) -> str:
        return _STATUS_DISPLAY_NAMES[self]


_STATUS_DISPLAY_NAMES = {
    ParticipantStatus.NOT_STARTED: "Not started",
    ParticipantStatus.IN_PROGRESS: "In progress",
    ParticipantStatus.COMPLETED: "Completed",
}


# -- Live collections --------------------------------------------------------


class Collection(StrEnum):
    """Workspace-scoped sub-collections that can be watched live."""

    PARTICIPANTS = "participants"
    SCREENSHOTS = "screenshots"
    COMMENTS = "comments"


# -- Upload ------------------------------------------------------------------


class UploadState(StrEnum):
    """States of the screenshot upload workflow.

    ``idle -> validating -> uploading -> persisting -> done``; ``error`` is
    reachable from the three working states.
    """

    IDLE = "idle"
    VALIDATING = "validating"
    UPLOADING = "uploading"
    PERSISTING = "persisting"
    DONE = "done"
    ERROR = "error"
