"""Integration tests for the screenshot leaderboard.

HTTP tests go through the upload / reorder / delete endpoints; manager tests
call ScreenshotManager directly against the savepoint-isolated session.
"""

from __future__ import annotations

from datetime import UTC, datetime

import pytest
from httpx import AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from sharenight.backend.app import app
from sharenight.backend.managers import participants as participants_manager
from sharenight.backend.managers import workspaces as workspaces_manager
from sharenight.backend.managers.participants import NotAParticipantError
from sharenight.backend.managers.ranking import is_contiguous
from sharenight.backend.managers.screenshots import ScreenshotManager
from sharenight.backend.managers.uploads import UploadError
from sharenight.backend.models.api import JoinRequest, WorkspaceCreate
from sharenight.backend.models.enums import UploadState
from sharenight.backend.store.base import screenshot_key
from sharenight.backend.store.local import LocalBlobStore

USERS = ["alice", "bob", "carol"]


async def _setup_workspace(db: AsyncSession, users: list[str] = USERS) -> str:
    await workspaces_manager.create_workspace(
        db, WorkspaceCreate(workspace_id="ws", title="W", due_date=datetime(2030, 1, 1, tzinfo=UTC))
    )
    for user in users:
        await participants_manager.join_workspace(db, "ws", user, JoinRequest(nickname=user.title()))
    return "ws"


async def _ids(manager: ScreenshotManager, db: AsyncSession) -> list[str]:
    return [row.user_id for row in await manager.list_screenshots(db, "ws")]


# ---------------------------------------------------------------------------
# HTTP
# ---------------------------------------------------------------------------


async def _upload(client: AsyncClient, user: str, image: bytes, comment: str | None = None):
    data = {"comment": comment} if comment is not None else {}
    return await client.post(
        "/api/workspaces/ws/screenshots/upload",
        files={"image": ("shot.png", image, "image/png")},
        data=data,
        headers={"X-User-Id": user},
    )


@pytest.mark.integration
async def test_upload_reorder_delete_over_http(client: AsyncClient, db_session: AsyncSession, png_bytes: bytes) -> None:
    await _setup_workspace(db_session)

    for user in USERS:
        resp = await _upload(client, user, png_bytes, comment=f"{user} is done")
        assert resp.status_code == 201, resp.text
    assert resp.json()["rank"] == 3
    assert resp.json()["nickname"] == "Carol"
    assert resp.json()["image_url"].endswith("/objects/workspaces/ws/screenshots/carol.jpg")

    resp = await client.get("/api/workspaces/ws/screenshots/list")
    assert [(s["user_id"], s["rank"]) for s in resp.json()] == [("alice", 1), ("bob", 2), ("carol", 3)]

    resp = await client.post(
        "/api/workspaces/ws/screenshots/reorder",
        json={"source_id": "carol", "target_id": "alice"},
        headers={"X-User-Id": "bob"},
    )
    assert resp.status_code == 200
    assert resp.json()["ok"] is True
    assert [(s["user_id"], s["rank"]) for s in resp.json()["screenshots"]] == [
        ("carol", 1),
        ("alice", 2),
        ("bob", 3),
    ]

    resp = await client.post("/api/workspaces/ws/screenshots/delete", headers={"X-User-Id": "carol"})
    assert resp.json() == {"ok": True}

    resp = await client.get("/api/workspaces/ws/screenshots/list")
    assert [(s["user_id"], s["rank"]) for s in resp.json()] == [("alice", 1), ("bob", 2)]

    resp = await client.post("/api/workspaces/ws/screenshots/delete", headers={"X-User-Id": "carol"})
    assert resp.json() == {"ok": False}


@pytest.mark.integration
async def test_reorder_with_full_ordering(client: AsyncClient, db_session: AsyncSession, png_bytes: bytes) -> None:
    await _setup_workspace(db_session)
    for user in USERS:
        await _upload(client, user, png_bytes)

    resp = await client.post(
        "/api/workspaces/ws/screenshots/reorder",
        json={"ordered_ids": ["bob", "carol", "alice"]},
        headers={"X-User-Id": "alice"},
    )
    assert resp.json()["ok"] is True
    assert [s["user_id"] for s in resp.json()["screenshots"]] == ["bob", "carol", "alice"]

    # A stale ordering (missing carol) is rejected and nothing changes.
    resp = await client.post(
        "/api/workspaces/ws/screenshots/reorder",
        json={"ordered_ids": ["alice", "bob"]},
        headers={"X-User-Id": "alice"},
    )
    assert resp.json()["ok"] is False
    assert [s["user_id"] for s in resp.json()["screenshots"]] == ["bob", "carol", "alice"]


@pytest.mark.integration
async def test_reorder_unknown_screenshot(client: AsyncClient, db_session: AsyncSession, png_bytes: bytes) -> None:
    await _setup_workspace(db_session)
    await _upload(client, "alice", png_bytes)

    resp = await client.post(
        "/api/workspaces/ws/screenshots/reorder",
        json={"source_id": "alice", "target_id": "ghost"},
        headers={"X-User-Id": "alice"},
    )
    assert resp.status_code == 404

    resp = await client.post(
        "/api/workspaces/ws/screenshots/reorder", json={"source_id": "alice"}, headers={"X-User-Id": "alice"}
    )
    assert resp.status_code == 422


@pytest.mark.integration
async def test_upload_rejections(client: AsyncClient, db_session: AsyncSession, png_bytes: bytes) -> None:
    await _setup_workspace(db_session)

    resp = await _upload(client, "stranger", png_bytes)
    assert resp.status_code == 403

    resp = await _upload(client, "alice", png_bytes, comment="x" * 51)
    assert resp.status_code == 422
    assert resp.json()["detail"] == "Comment must be 50 characters or fewer"

    resp = await _upload(client, "alice", b"not an image")
    assert resp.status_code == 422
    assert resp.json()["detail"] == "Failed to convert the image"

    resp = await client.get("/api/workspaces/ws/screenshots/list")
    assert resp.json() == []


@pytest.mark.integration
async def test_upload_too_large(
    client: AsyncClient, db_session: AsyncSession, blob_store: LocalBlobStore, feed, png_factory
) -> None:
    await _setup_workspace(db_session)
    app.state.screenshot_manager = ScreenshotManager(blob_store, feed, max_upload_bytes=100)

    resp = await _upload(client, "alice", png_factory(256, 256))
    assert resp.status_code == 422
    assert resp.json()["detail"].startswith("File is too large")
    assert not await blob_store.exists(screenshot_key("ws", "alice"))


# ---------------------------------------------------------------------------
# Manager
# ---------------------------------------------------------------------------


@pytest.mark.integration
async def test_new_uploads_go_to_the_bottom(
    db_session: AsyncSession, screenshot_manager: ScreenshotManager, png_bytes: bytes
) -> None:
    await _setup_workspace(db_session)

    ranks = []
    for user in USERS:
        row = await screenshot_manager.upload(db_session, "ws", user, png_bytes)
        ranks.append(row.rank)
    assert ranks == [1, 2, 3]


@pytest.mark.integration
async def test_reupload_keeps_rank(
    db_session: AsyncSession, screenshot_manager: ScreenshotManager, png_bytes: bytes, png_factory
) -> None:
    await _setup_workspace(db_session)
    for user in USERS:
        await screenshot_manager.upload(db_session, "ws", user, png_bytes, "first try")
    assert await screenshot_manager.move(db_session, "ws", "alice", "carol") is True

    row = await screenshot_manager.upload(db_session, "ws", "alice", png_factory(color=(0, 0, 255, 255)), "")
    assert row.rank == 3
    assert row.comment is None
    assert await _ids(screenshot_manager, db_session) == ["bob", "carol", "alice"]


@pytest.mark.integration
async def test_upload_requires_participant(
    db_session: AsyncSession, screenshot_manager: ScreenshotManager, blob_store: LocalBlobStore, png_bytes: bytes
) -> None:
    await _setup_workspace(db_session)
    with pytest.raises(NotAParticipantError):
        await screenshot_manager.upload(db_session, "ws", "stranger", png_bytes)
    assert not await blob_store.exists(screenshot_key("ws", "stranger"))


@pytest.mark.integration
async def test_upload_validation_leaves_no_trace(
    db_session: AsyncSession, screenshot_manager: ScreenshotManager, blob_store: LocalBlobStore
) -> None:
    await _setup_workspace(db_session)
    with pytest.raises(UploadError) as excinfo:
        await screenshot_manager.upload(db_session, "ws", "alice", b"garbage")
    assert excinfo.value.stage == UploadState.VALIDATING
    assert await _ids(screenshot_manager, db_session) == []
    assert not await blob_store.exists(screenshot_key("ws", "alice"))


@pytest.mark.integration
async def test_every_move_keeps_ranks_contiguous(
    db_session: AsyncSession, screenshot_manager: ScreenshotManager, png_bytes: bytes
) -> None:
    await _setup_workspace(db_session)
    for user in USERS:
        await screenshot_manager.upload(db_session, "ws", user, png_bytes)

    for source, target in [("alice", "carol"), ("carol", "bob"), ("bob", "alice"), ("alice", "alice")]:
        assert await screenshot_manager.move(db_session, "ws", source, target) is True
        rows = await screenshot_manager.list_screenshots(db_session, "ws")
        assert is_contiguous(row.rank for row in rows)
        assert sorted(row.user_id for row in rows) == sorted(USERS)


@pytest.mark.integration
async def test_persist_ranking_rejects_mismatched_sets(
    db_session: AsyncSession, screenshot_manager: ScreenshotManager, png_bytes: bytes
) -> None:
    await _setup_workspace(db_session)
    for user in USERS:
        await screenshot_manager.upload(db_session, "ws", user, png_bytes)

    assert await screenshot_manager.persist_ranking(db_session, "ws", ["alice", "bob"]) is False
    assert await screenshot_manager.persist_ranking(db_session, "ws", ["alice", "bob", "bob"]) is False
    assert await screenshot_manager.persist_ranking(db_session, "ws", ["alice", "bob", "carol", "dave"]) is False
    assert await screenshot_manager.persist_ranking(db_session, "missing", []) is False
    assert await _ids(screenshot_manager, db_session) == USERS


@pytest.mark.integration
async def test_delete_removes_object_and_recompacts(
    db_session: AsyncSession, screenshot_manager: ScreenshotManager, blob_store: LocalBlobStore, png_bytes: bytes
) -> None:
    await _setup_workspace(db_session)
    for user in USERS:
        await screenshot_manager.upload(db_session, "ws", user, png_bytes)

    assert await screenshot_manager.delete(db_session, "ws", "alice") is True
    assert not await blob_store.exists(screenshot_key("ws", "alice"))

    rows = await screenshot_manager.list_screenshots(db_session, "ws")
    assert [(row.user_id, row.rank) for row in rows] == [("bob", 1), ("carol", 2)]

    # The next upload still lands at the bottom.
    row = await screenshot_manager.upload(db_session, "ws", "alice", png_bytes)
    assert row.rank == 3


@pytest.mark.integration
async def test_delete_survives_store_failure(
    db_session: AsyncSession, screenshot_manager: ScreenshotManager, png_bytes: bytes, monkeypatch
) -> None:
    await _setup_workspace(db_session)
    await screenshot_manager.upload(db_session, "ws", "alice", png_bytes)

    async def _broken_delete(key: str) -> None:
        raise ConnectionError("store unreachable")

    monkeypatch.setattr(screenshot_manager.store, "delete", _broken_delete)
    assert await screenshot_manager.delete(db_session, "ws", "alice") is True
    assert await _ids(screenshot_manager, db_session) == []
