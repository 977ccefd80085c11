"""Workspace operations: create, search, get."""

from __future__ import annotations

import uuid

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from sharenight.backend.db.tables import Workspace
from sharenight.backend.models.api import WorkspaceCreate


class DuplicateWorkspaceError(ValueError):
    """The requested workspace id is taken."""


class WorkspaceNotFoundError(LookupError):
    """No workspace has the given id."""


async def create_workspace(db: AsyncSession, body: WorkspaceCreate) -> Workspace:
    """Insert a workspace; without an explicit id a random hex id is assigned."""
    new_id = body.workspace_id or uuid.uuid4().hex
    if await db.get(Workspace, new_id) is not None:
        raise DuplicateWorkspaceError(new_id)

    workspace = Workspace(workspace_id=new_id, title=body.title.strip(), due_date=body.due_date)
    db.add(workspace)
    await db.commit()
    await db.refresh(workspace)
    return workspace


async def list_workspaces(
    db: AsyncSession,
    *,
    query: str | None = None,
    limit: int = 50,
    offset: int = 0,
) -> list[Workspace]:
    """List workspaces ordered by due date.

    *query* filters by case-insensitive title substring; blank queries list
    everything.
    """
    stmt = select(Workspace).order_by(Workspace.due_date, Workspace.workspace_id)
    if query is not None and query.strip():
        pattern = "%" + query.strip().lower().replace("\\", "\\\\").replace("%", r"\%").replace("_", r"\_") + "%"
        stmt = stmt.where(func.lower(Workspace.title).like(pattern, escape="\\"))
    rows = await db.scalars(stmt.limit(limit).offset(offset))
    return list(rows)


async def get_workspace(db: AsyncSession, workspace_id: str) -> Workspace:
    """Fetch one workspace or raise ``WorkspaceNotFoundError``."""
    found = await db.get(Workspace, workspace_id)
    if found is None:
        raise WorkspaceNotFoundError(workspace_id)
    return found


async def lock_workspace(db: AsyncSession, workspace_id: str) -> Workspace:
    """Take a row lock on the workspace for the rest of the transaction.

    Serialises rank-changing writes (uploads, reorders, deletions) within one
    workspace.  Raises ``WorkspaceNotFoundError`` if missing.
    """
    result = await db.execute(select(Workspace).where(Workspace.workspace_id == workspace_id).with_for_update())
    workspace = result.scalar_one_or_none()
    if workspace is None:
        raise WorkspaceNotFoundError(workspace_id)
    return workspace
