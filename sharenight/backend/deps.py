"""FastAPI dependency injection for DB sessions, the change feed and users.

Usage in route handlers::

    @router.post("/things")
    async def create_thing(db: DbSession, user_id: CurrentUser) -> ThingResponse:
        ...

Dependencies raise HTTP 503 if the backing service was not configured
(SHARENIGHT_DATABASE_URL unset).
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from typing import Annotated

from fastapi import Depends, Header, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from sharenight.backend.feed.base import ChangeFeed
from sharenight.backend.managers.screenshots import ScreenshotManager

USER_HEADER = "X-User-Id"


def get_session_factory(request: Request) -> async_sessionmaker[AsyncSession]:
    session_factory = request.app.state.db_session_factory
    if session_factory is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Database not configured (SHARENIGHT_DATABASE_URL is unset).",
        )
    return session_factory


async def get_db(request: Request) -> AsyncIterator[AsyncSession]:
    """Yield an async SQLAlchemy session, closing it after the request.

    Managers commit their own writes.  If the handler raises, the session is
    simply closed and the implicit transaction is rolled back.
    """
    session: AsyncSession = get_session_factory(request)()
    try:
        yield session
    finally:
        await session.close()


def get_feed(request: Request) -> ChangeFeed:
    return request.app.state.change_feed


def get_screenshot_manager(request: Request) -> ScreenshotManager:
    manager: ScreenshotManager | None = request.app.state.screenshot_manager
    if manager is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Screenshot storage not configured.",
        )
    return manager


def get_current_user(x_user_id: Annotated[str | None, Header(alias=USER_HEADER)] = None) -> str:
    """Return the caller's user id from the ``X-User-Id`` header."""
    if not x_user_id or not x_user_id.strip():
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=f"Missing {USER_HEADER} header.",
        )
    return x_user_id.strip()


# -- Annotated type aliases for concise route signatures ---------------------

DbSession = Annotated[AsyncSession, Depends(get_db)]
"""Annotated dependency: async SQLAlchemy session (auto-closed after request)."""

SessionFactory = Annotated[async_sessionmaker[AsyncSession], Depends(get_session_factory)]

Feed = Annotated[ChangeFeed, Depends(get_feed)]

Screenshots = Annotated[ScreenshotManager, Depends(get_screenshot_manager)]

CurrentUser = Annotated[str, Depends(get_current_user)]
"""Annotated dependency: the calling user's id."""
