"""Screenshot leaderboard endpoints (RPC-style).

All write operations use POST; reads use GET.
"""

from __future__ import annotations

from fastapi import APIRouter, File, Form, HTTPException, UploadFile, status

from sharenight.backend.db.tables import Screenshot
from sharenight.backend.deps import CurrentUser, DbSession, Screenshots
from sharenight.backend.managers.participants import NotAParticipantError
from sharenight.backend.managers.screenshots import ScreenshotNotFoundError
from sharenight.backend.managers.uploads import UploadError
from sharenight.backend.models.api import (
    DeleteResponse,
    ReorderRequest,
    ReorderResponse,
    ScreenshotResponse,
)
from sharenight.backend.models.enums import UploadState

router = APIRouter(prefix="/workspaces/{workspace_id}/screenshots", tags=["screenshots"])


@router.get("/list", response_model=list[ScreenshotResponse])
async def list_screenshots(workspace_id: str, db: DbSession, manager: Screenshots) -> list[Screenshot]:
    """Screenshots in leaderboard order."""
    return await manager.list_screenshots(db, workspace_id)


@router.post("/upload", response_model=ScreenshotResponse, status_code=status.HTTP_201_CREATED)
async def upload_screenshot(
    workspace_id: str,
    db: DbSession,
    manager: Screenshots,
    user_id: CurrentUser,
    image: UploadFile = File(...),
    comment: str | None = Form(None),
) -> Screenshot:
    """Upload (or replace) the caller's screenshot.

    Validation failures map to 422; storage or database failures to 502.
    """
    data = await image.read()
    try:
        return await manager.upload(db, workspace_id, user_id, data, comment)
    except NotAParticipantError as exc:
        raise HTTPException(status.HTTP_403_FORBIDDEN, detail=str(exc)) from None
    except UploadError as exc:
        code = (
            status.HTTP_422_UNPROCESSABLE_ENTITY if exc.stage == UploadState.VALIDATING else status.HTTP_502_BAD_GATEWAY
        )
        raise HTTPException(code, detail=exc.message) from None


@router.post("/reorder", response_model=ReorderResponse)
async def reorder_screenshots(
    workspace_id: str,
    body: ReorderRequest,
    db: DbSession,
    manager: Screenshots,
    _user_id: CurrentUser,
) -> ReorderResponse:
    """Apply a drag-and-drop move (or a full ordering) to the leaderboard.

    ``ok`` is false when the batch was rejected; ``screenshots`` always holds
    the stored order afterwards.
    """
    if body.source_id is not None and body.target_id is not None:
        try:
            ok = await manager.move(db, workspace_id, body.source_id, body.target_id)
        except ScreenshotNotFoundError as exc:
            raise HTTPException(status.HTTP_404_NOT_FOUND, detail=f"Screenshot '{exc}' not found.") from None
    elif body.ordered_ids is not None:
        ok = await manager.persist_ranking(db, workspace_id, body.ordered_ids)
    else:
        raise HTTPException(status.HTTP_422_UNPROCESSABLE_ENTITY, detail="Nothing to reorder.")
    rows = await manager.list_screenshots(db, workspace_id)
    return ReorderResponse(ok=ok, screenshots=[ScreenshotResponse.model_validate(row) for row in rows])


@router.post("/delete", response_model=DeleteResponse)
async def delete_screenshot(
    workspace_id: str, db: DbSession, manager: Screenshots, user_id: CurrentUser
) -> DeleteResponse:
    """Delete the caller's screenshot (object and record)."""
    ok = await manager.delete(db, workspace_id, user_id)
    return DeleteResponse(ok=ok)
