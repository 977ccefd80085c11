"""SQLAlchemy ORM models for PostgreSQL.

These are the single source of truth for the database schema.  Alembic reads
``Base.metadata`` to autogenerate migration scripts.

Every per-workspace record is keyed by ``(workspace_id, <id>)`` so that a row
corresponds to the document path ``workspaces/{workspace_id}/{collection}/{id}``.
Participant and screenshot ids are the owning user's id, which gives the
one-per-user-per-workspace rule for free.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, Index, Text, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

# Timezone-aware timestamp type for all datetime columns.
TimestampTZ = DateTime(timezone=True)


class Base(DeclarativeBase):
    """Declarative base with naming convention for constraints."""

    pass


Base.metadata.naming_convention = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}


class Workspace(Base):
    __tablename__ = "workspaces"

    workspace_id: Mapped[str] = mapped_column(primary_key=True)
    title: Mapped[str]
    due_date: Mapped[datetime] = mapped_column(TimestampTZ)
    created_at: Mapped[datetime] = mapped_column(TimestampTZ, server_default=func.now())


class Participant(Base):
    __tablename__ = "participants"

    workspace_id: Mapped[str] = mapped_column(
        ForeignKey("workspaces.workspace_id", name="fk_participants_workspace_id", ondelete="CASCADE"),
        primary_key=True,
    )
    user_id: Mapped[str] = mapped_column(primary_key=True)
    nickname: Mapped[str]
    status: Mapped[str] = mapped_column(server_default="not_started")
    joined_at: Mapped[datetime] = mapped_column(TimestampTZ, server_default=func.now())


class Screenshot(Base):
    __tablename__ = "screenshots"
    __table_args__ = (Index("ix_screenshots_workspace_rank", "workspace_id", "rank"),)

    workspace_id: Mapped[str] = mapped_column(
        ForeignKey("workspaces.workspace_id", name="fk_screenshots_workspace_id", ondelete="CASCADE"),
        primary_key=True,
    )
    user_id: Mapped[str] = mapped_column(primary_key=True)
    image_url: Mapped[str] = mapped_column(Text)
    nickname: Mapped[str]
    rank: Mapped[int]
    comment: Mapped[str | None]
    uploaded_at: Mapped[datetime] = mapped_column(TimestampTZ, server_default=func.now())


class Comment(Base):
    __tablename__ = "comments"
    __table_args__ = (Index("ix_comments_workspace_created", "workspace_id", "created_at"),)

    workspace_id: Mapped[str] = mapped_column(
        ForeignKey("workspaces.workspace_id", name="fk_comments_workspace_id", ondelete="CASCADE"),
        primary_key=True,
    )
    comment_id: Mapped[str] = mapped_column(primary_key=True)
    user_id: Mapped[str]
    nickname: Mapped[str]
    text: Mapped[str] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(TimestampTZ, server_default=func.now())
