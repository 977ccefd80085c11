"""Shared fixtures for backend tests."""

from __future__ import annotations

import io
from collections.abc import AsyncIterator

import pytest
from httpx import ASGITransport, AsyncClient
from PIL import Image
from sqlalchemy.ext.asyncio import AsyncSession

from sharenight.backend.app import app
from sharenight.backend.deps import get_db, get_session_factory
from sharenight.backend.feed.memory import MemoryChangeFeed
from sharenight.backend.managers.screenshots import ScreenshotManager
from sharenight.backend.store.local import LocalBlobStore


def make_png(width: int = 32, height: int = 24, color: tuple[int, int, int, int] = (200, 40, 90, 255)) -> bytes:
    """A small RGBA PNG, the kind of thing a phone screenshot picker hands over."""
    buffer = io.BytesIO()
    Image.new("RGBA", (width, height), color).save(buffer, format="PNG")
    return buffer.getvalue()


@pytest.fixture
def png_bytes() -> bytes:
    return make_png()


@pytest.fixture
def png_factory():
    return make_png


@pytest.fixture(scope="session")
def bomb_png() -> bytes:
    """A tiny PNG that declares more pixels than Pillow agrees to decode."""
    buffer = io.BytesIO()
    Image.new("1", (20000, 9000)).save(buffer, format="PNG")
    return buffer.getvalue()


@pytest.fixture
def blob_store(tmp_path) -> LocalBlobStore:
    return LocalBlobStore(tmp_path, base_url="http://test", chunk_size=1024)


@pytest.fixture
def feed() -> MemoryChangeFeed:
    return MemoryChangeFeed()


@pytest.fixture
def screenshot_manager(blob_store: LocalBlobStore, feed: MemoryChangeFeed) -> ScreenshotManager:
    return ScreenshotManager(blob_store, feed)


@pytest.fixture
async def client(
    db_session: AsyncSession,
    session_factory,
    blob_store: LocalBlobStore,
    feed: MemoryChangeFeed,
    screenshot_manager: ScreenshotManager,
) -> AsyncIterator[AsyncClient]:
    """Async HTTP client wired to the app with a test DB session.

    Overrides ``get_db`` so every request uses the savepoint-isolated
    ``db_session`` fixture from the root conftest.  The app lifespan does
    NOT run under ``ASGITransport``, so state fields are pre-set here.
    """

    async def _override_get_db() -> AsyncIterator[AsyncSession]:
        yield db_session

    app.dependency_overrides[get_db] = _override_get_db
    app.dependency_overrides[get_session_factory] = lambda: session_factory

    app.state.db_engine = None
    app.state.db_session_factory = None
    app.state.redis = None
    app.state.change_feed = feed
    app.state.blob_store = blob_store
    app.state.screenshot_manager = screenshot_manager

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()
