"""Comment endpoints (RPC-style)."""

from __future__ import annotations

from fastapi import APIRouter, HTTPException, Query, status

from sharenight.backend.db.tables import Comment
from sharenight.backend.deps import CurrentUser, DbSession, Feed
from sharenight.backend.managers import comments as comments_manager
from sharenight.backend.managers.participants import NotAParticipantError
from sharenight.backend.models.api import CommentCreate, CommentResponse

router = APIRouter(prefix="/workspaces/{workspace_id}/comments", tags=["comments"])


@router.post("/post", response_model=CommentResponse, status_code=status.HTTP_201_CREATED)
async def post_comment(
    workspace_id: str, body: CommentCreate, db: DbSession, feed: Feed, user_id: CurrentUser
) -> Comment:
    """Post a comment.  Only participants may comment."""
    try:
        return await comments_manager.post_comment(db, workspace_id, user_id, body, feed=feed)
    except NotAParticipantError as exc:
        raise HTTPException(status.HTTP_403_FORBIDDEN, detail=str(exc)) from None


@router.get("/list", response_model=list[CommentResponse])
async def list_comments(
    workspace_id: str,
    db: DbSession,
    limit: int = Query(200, ge=1, le=500),
) -> list[Comment]:
    """Comments, newest first."""
    return list(await comments_manager.list_comments(db, workspace_id, limit=limit))
