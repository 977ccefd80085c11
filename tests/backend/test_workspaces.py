"""Integration tests for workspace and participant endpoints."""

from __future__ import annotations

import pytest
from httpx import AsyncClient

ALICE = {"X-User-Id": "alice"}
BOB = {"X-User-Id": "bob"}


async def _create(client: AsyncClient, workspace_id: str, title: str, due: str = "2030-01-01T23:00:00Z") -> dict:
    resp = await client.post(
        "/api/workspaces/create", json={"workspace_id": workspace_id, "title": title, "due_date": due}
    )
    assert resp.status_code == 201, resp.text
    return resp.json()


@pytest.mark.integration
async def test_workspace_create_get_list(client: AsyncClient) -> None:
    ws = await _create(client, "ws-1", "Thesis night", due="2030-01-02T01:00:00Z")
    assert ws["title"] == "Thesis night"
    assert ws["due_date_display"].startswith("Due ")
    assert ws["is_due_today"] is False

    await _create(client, "ws-2", "Deploy party", due="2030-01-01T01:00:00Z")

    resp = await client.get("/api/workspaces/ws-1/get")
    assert resp.status_code == 200
    assert resp.json()["workspace_id"] == "ws-1"

    resp = await client.get("/api/workspaces/list")
    assert [w["workspace_id"] for w in resp.json()] == ["ws-2", "ws-1"]

    resp = await client.get("/api/workspaces/list", params={"q": "THESIS"})
    assert [w["workspace_id"] for w in resp.json()] == ["ws-1"]

    resp = await client.get("/api/workspaces/list", params={"q": "   "})
    assert len(resp.json()) == 2

    resp = await client.get("/api/workspaces/list", params={"q": "100%"})
    assert resp.json() == []


@pytest.mark.integration
async def test_workspace_generated_id(client: AsyncClient) -> None:
    resp = await client.post("/api/workspaces/create", json={"title": "T", "due_date": "2030-01-01T00:00:00Z"})
    assert resp.status_code == 201
    assert len(resp.json()["workspace_id"]) == 32


@pytest.mark.integration
async def test_workspace_duplicate_and_missing(client: AsyncClient) -> None:
    await _create(client, "ws-dup", "W")
    resp = await client.post(
        "/api/workspaces/create", json={"workspace_id": "ws-dup", "title": "W", "due_date": "2030-01-01T00:00:00Z"}
    )
    assert resp.status_code == 409

    resp = await client.get("/api/workspaces/nope/get")
    assert resp.status_code == 404


@pytest.mark.integration
async def test_workspace_title_validation(client: AsyncClient) -> None:
    resp = await client.post("/api/workspaces/create", json={"title": "x" * 51, "due_date": "2030-01-01T00:00:00Z"})
    assert resp.status_code == 422

    resp = await client.post("/api/workspaces/create", json={"title": "T", "due_date": "2030-01-01T00:00:00"})
    assert resp.status_code == 422


@pytest.mark.integration
async def test_join_status_and_summary(client: AsyncClient) -> None:
    await _create(client, "ws", "W")

    resp = await client.post("/api/workspaces/ws/join", json={"nickname": "Alice"}, headers=ALICE)
    assert resp.status_code == 200
    assert resp.json()["status"] == "not_started"

    resp = await client.post("/api/workspaces/ws/join", json={"nickname": "Bob"}, headers=BOB)
    assert resp.status_code == 200

    resp = await client.post("/api/workspaces/ws/status", json={"status": "completed"}, headers=ALICE)
    assert resp.status_code == 200
    assert resp.json()["status"] == "completed"

    # Re-joining renames but keeps the status.
    resp = await client.post("/api/workspaces/ws/join", json={"nickname": "Alice 2"}, headers=ALICE)
    assert resp.json()["nickname"] == "Alice 2"
    assert resp.json()["status"] == "completed"

    resp = await client.get("/api/workspaces/ws/participants/list")
    assert [(p["user_id"], p["nickname"]) for p in resp.json()] == [("alice", "Alice 2"), ("bob", "Bob")]

    resp = await client.get("/api/workspaces/ws/participants/summary")
    assert resp.json() == {"not_started_count": 1, "in_progress_count": 0, "completed_count": 1, "total": 2}


@pytest.mark.integration
async def test_join_validation_and_errors(client: AsyncClient) -> None:
    await _create(client, "ws", "W")

    resp = await client.post("/api/workspaces/ws/join", json={"nickname": "x" * 21}, headers=ALICE)
    assert resp.status_code == 422
    resp = await client.post("/api/workspaces/ws/join", json={"nickname": "x" * 20}, headers=ALICE)
    assert resp.status_code == 200

    resp = await client.post("/api/workspaces/missing/join", json={"nickname": "A"}, headers=ALICE)
    assert resp.status_code == 404

    resp = await client.post("/api/workspaces/ws/status", json={"status": "in_progress"}, headers=BOB)
    assert resp.status_code == 403

    resp = await client.post("/api/workspaces/ws/status", json={"status": "asleep"}, headers=ALICE)
    assert resp.status_code == 422
