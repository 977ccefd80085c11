"""Fixtures backed by throwaway PostgreSQL and Redis containers.

The containers start once per run.  The schema is created by the same Alembic
revisions ``sharenight db upgrade`` applies, so tests see production DDL.

Every test gets a database session inside an outer transaction that is
rolled back at teardown; code under test may ``commit()`` freely.  Tests that
touch containers carry ``@pytest.mark.integration`` and need Docker.
"""

from __future__ import annotations

import asyncio
import contextlib
import os
from collections.abc import AsyncIterator, Iterator

import pytest
import redis.asyncio as aioredis
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, create_async_engine
from sqlalchemy.pool import NullPool
from testcontainers.postgres import PostgresContainer
from testcontainers.redis import RedisContainer

from sharenight.backend.settings import _get_settings_cached

PG_IMAGE = "postgres:17"
REDIS_IMAGE = "redis:7"


def _export(name: str, value: str) -> None:
    """Expose *value* as a ``SHARENIGHT_*`` variable and drop cached settings."""
    os.environ[f"SHARENIGHT_{name}"] = value
    _get_settings_cached.cache_clear()


# -- containers ---------------------------------------------------------------


@pytest.fixture(scope="session")
def pg_container() -> Iterator[PostgresContainer]:
    container = PostgresContainer(
        image=PG_IMAGE,
        username="sharenight",
        password="sharenight",
        dbname="sharenight_test",
        driver="psycopg",
    )
    with container:
        yield container


@pytest.fixture(scope="session")
def redis_container() -> Iterator[RedisContainer]:
    with RedisContainer(image=REDIS_IMAGE) as container:
        yield container


@pytest.fixture(scope="session")
def pg_url(pg_container: PostgresContainer) -> str:
    """Database URL of the container, migrated to the latest revision."""
    from alembic import command

    from sharenight.cli import _alembic_config

    url = pg_container.get_connection_url()
    _export("DATABASE_URL", url)
    command.upgrade(_alembic_config(), "head")
    return url


@pytest.fixture(scope="session")
def redis_url(redis_container: RedisContainer) -> str:
    address = f"{redis_container.get_container_host_ip()}:{redis_container.get_exposed_port(6379)}"
    url = f"redis://{address}/0"
    _export("REDIS_URL", url)
    return url


# -- database -----------------------------------------------------------------


@pytest.fixture(scope="session")
def async_engine(pg_url: str) -> Iterator[AsyncEngine]:
    # NullPool: each test's event loop owns its own connections.
    engine = create_async_engine(pg_url, poolclass=NullPool)
    try:
        yield engine
    finally:
        engine.sync_engine.dispose()


@pytest.fixture
async def db_session(async_engine: AsyncEngine) -> AsyncIterator[AsyncSession]:
    """Session whose commits become savepoints of a transaction rolled back afterwards."""
    async with async_engine.connect() as conn:
        outer = await conn.begin()
        session = AsyncSession(bind=conn, join_transaction_mode="create_savepoint", expire_on_commit=False)
        try:
            yield session
        finally:
            await session.close()
            await outer.rollback()


@pytest.fixture
def session_factory(db_session: AsyncSession):
    """Callable shaped like ``async_sessionmaker`` that always yields ``db_session``.

    Live boards and the SSE routes open their own sessions; routing them here
    keeps their reads inside the test transaction.  Background refreshes take
    turns on the shared session.
    """
    turn = asyncio.Lock()

    @contextlib.asynccontextmanager
    async def open_session() -> AsyncIterator[AsyncSession]:
        async with turn:
            yield db_session

    return open_session


# -- redis --------------------------------------------------------------------


@pytest.fixture
async def redis_client(redis_url: str) -> AsyncIterator[aioredis.Redis]:
    client = aioredis.from_url(redis_url)
    try:
        yield client
    finally:
        await client.flushdb()
        await client.aclose()
