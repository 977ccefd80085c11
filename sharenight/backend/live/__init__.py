"""Live state holders following workspace collections."""

from sharenight.backend.live.boards import CommentBoard, ParticipantBoard, ScreenshotBoard
from sharenight.backend.live.collections import LiveCollection, Subscription

__all__ = ["CommentBoard", "LiveCollection", "ParticipantBoard", "ScreenshotBoard", "Subscription"]
