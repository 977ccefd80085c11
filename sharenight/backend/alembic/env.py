"""Alembic environment for the ShareNight schema.

The target database comes from ``SHARENIGHT_DATABASE_URL``; migrations run on
a short-lived synchronous psycopg engine.  The ORM metadata in
:mod:`sharenight.backend.db.tables` drives autogenerate.
"""

from __future__ import annotations

from logging.config import fileConfig
from typing import Any

from alembic import context
from sqlalchemy import create_engine, pool

from sharenight.backend.db.tables import Base
from sharenight.backend.settings import get_settings

config = context.config
if config.config_file_name is not None:
    fileConfig(config.config_file_name, disable_existing_loggers=False)


def _database_url() -> str:
    url = get_settings().database_url
    if not url:
        msg = "SHARENIGHT_DATABASE_URL is not set; nothing to migrate."
        raise RuntimeError(msg)
    # The app may be configured with an async-only driver; migrations use psycopg.
    return url.replace("postgresql+asyncpg://", "postgresql+psycopg://")


def _only_our_tables(obj: Any, name: str | None, type_: str, reflected: bool, compare_to: Any) -> bool:
    return not (type_ == "table" and reflected and compare_to is None)


_OPTIONS: dict[str, Any] = {
    "target_metadata": Base.metadata,
    "include_object": _only_our_tables,
    "compare_type": True,
    "compare_server_default": True,
}


if context.is_offline_mode():
    context.configure(url=_database_url(), literal_binds=True, dialect_opts={"paramstyle": "named"}, **_OPTIONS)
    with context.begin_transaction():
        context.run_migrations()
else:
    engine = create_engine(_database_url(), poolclass=pool.NullPool)
    try:
        with engine.connect() as connection:
            context.configure(connection=connection, **_OPTIONS)
            with context.begin_transaction():
                context.run_migrations()
    finally:
        engine.dispose()
