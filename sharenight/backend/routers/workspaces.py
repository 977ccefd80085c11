"""Workspace and participant endpoints (RPC-style).

All write operations use POST; reads use GET.
"""

from __future__ import annotations

from fastapi import APIRouter, HTTPException, Query, status

from sharenight.backend.db.tables import Participant
from sharenight.backend.deps import CurrentUser, DbSession, Feed
from sharenight.backend.managers import participants as participants_manager
from sharenight.backend.managers import workspaces as workspaces_manager
from sharenight.backend.models.api import (
    JoinRequest,
    ParticipantResponse,
    StatusUpdate,
    WorkspaceCreate,
    WorkspaceResponse,
)
from sharenight.backend.models.entities import ProgressSummary

router = APIRouter(prefix="/workspaces", tags=["workspaces"])


def _not_found(workspace_id: str) -> HTTPException:
    return HTTPException(status.HTTP_404_NOT_FOUND, detail=f"Workspace '{workspace_id}' not found.")


@router.post("/create", response_model=WorkspaceResponse, status_code=status.HTTP_201_CREATED)
async def create_workspace(body: WorkspaceCreate, db: DbSession) -> WorkspaceResponse:
    """Create a new workspace."""
    try:
        workspace = await workspaces_manager.create_workspace(db, body)
    except workspaces_manager.DuplicateWorkspaceError:
        raise HTTPException(
            status.HTTP_409_CONFLICT, detail=f"Workspace '{body.workspace_id}' already exists."
        ) from None
    return WorkspaceResponse.from_row(workspace)


@router.get("/list", response_model=list[WorkspaceResponse])
async def list_workspaces(
    db: DbSession,
    q: str | None = Query(None, description="Case-insensitive title search."),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
) -> list[WorkspaceResponse]:
    """List workspaces by due date, optionally filtered by title."""
    rows = await workspaces_manager.list_workspaces(db, query=q, limit=limit, offset=offset)
    return [WorkspaceResponse.from_row(row) for row in rows]


@router.get("/{workspace_id}/get", response_model=WorkspaceResponse)
async def get_workspace(workspace_id: str, db: DbSession) -> WorkspaceResponse:
    """Get a single workspace by ID."""
    try:
        workspace = await workspaces_manager.get_workspace(db, workspace_id)
    except workspaces_manager.WorkspaceNotFoundError:
        raise _not_found(workspace_id) from None
    return WorkspaceResponse.from_row(workspace)


# ---------------------------------------------------------------------------
# Participants
# ---------------------------------------------------------------------------


@router.post("/{workspace_id}/join", response_model=ParticipantResponse)
async def join_workspace(
    workspace_id: str, body: JoinRequest, db: DbSession, feed: Feed, user_id: CurrentUser
) -> Participant:
    """Join a workspace under a nickname (re-joining renames)."""
    try:
        return await participants_manager.join_workspace(db, workspace_id, user_id, body, feed=feed)
    except workspaces_manager.WorkspaceNotFoundError:
        raise _not_found(workspace_id) from None


@router.post("/{workspace_id}/status", response_model=ParticipantResponse)
async def update_status(
    workspace_id: str, body: StatusUpdate, db: DbSession, feed: Feed, user_id: CurrentUser
) -> Participant:
    """Report the caller's progress status."""
    try:
        return await participants_manager.update_status(db, workspace_id, user_id, body.status, feed=feed)
    except participants_manager.NotAParticipantError as exc:
        raise HTTPException(status.HTTP_403_FORBIDDEN, detail=str(exc)) from None


@router.get("/{workspace_id}/participants/list", response_model=list[ParticipantResponse])
async def list_participants(workspace_id: str, db: DbSession) -> list[Participant]:
    return list(await participants_manager.list_participants(db, workspace_id))


@router.get("/{workspace_id}/participants/summary", response_model=ProgressSummary)
async def participants_summary(workspace_id: str, db: DbSession) -> ProgressSummary:
    """Participant counts per status."""
    return await participants_manager.progress_summary(db, workspace_id)
