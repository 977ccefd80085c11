import asyncio
from datetime import datetime

import click


@click.group()
def main() -> None:
    """ShareNight - shared late-night work sessions."""


@main.command()
@click.option("--host", default=None, help="Bind host (default: SHARENIGHT_HOST).")
@click.option("--port", default=None, type=int, help="Bind port (default: SHARENIGHT_PORT).")
@click.option("--workers", default=1, show_default=True, help="Worker processes; >1 needs SHARENIGHT_REDIS_URL.")
@click.option("--reload", is_flag=True, default=False, help="Enable auto-reload for development.")
def serve(host: str | None, port: int | None, workers: int, reload: bool) -> None:
    """Start the ShareNight API server."""
    import uvicorn

    from sharenight.backend.settings import get_settings

    settings = get_settings()
    if workers > 1 and not settings.redis_url:
        raise click.UsageError("Live updates need SHARENIGHT_REDIS_URL when running more than one worker.")

    uvicorn.run(
        "sharenight.backend.app:app",
        host=host or settings.host,
        port=port or settings.port,
        workers=workers,
        reload=reload,
        log_level="warning",  # access and error logs reach loguru through the intercept handler
        timeout_graceful_shutdown=10,
    )


# ---------------------------------------------------------------------------
# Workspaces
# ---------------------------------------------------------------------------


def _parse_due(value: str) -> datetime:
    try:
        due = datetime.fromisoformat(value)
    except ValueError:
        raise click.BadParameter(f"{value!r} is not an ISO 8601 date-time") from None
    # Naive input is taken as local time.
    return due if due.tzinfo is not None else due.astimezone()


async def _with_session(action):
    from sharenight.backend.db.engine import create_engine, create_session_factory
    from sharenight.backend.settings import get_settings

    settings = get_settings()
    if not settings.database_url:
        raise click.ClickException("SHARENIGHT_DATABASE_URL is not set.")
    engine = create_engine(settings.database_url, pool_size=1, max_overflow=0)
    try:
        async with create_session_factory(engine)() as db:
            return await action(db)
    finally:
        await engine.dispose()


@main.group()
def workspace() -> None:
    """Create and browse workspaces."""


@workspace.command("create")
@click.argument("title")
@click.option("--due", "due", required=True, help="Due date-time, ISO 8601 (e.g. 2026-10-18T23:30).")
@click.option("--id", "workspace_id", default=None, help="Explicit workspace id (default: random).")
def workspace_create(title: str, due: str, workspace_id: str | None) -> None:
    """Create a workspace titled TITLE."""
    from pydantic import ValidationError

    from sharenight.backend.managers import workspaces as workspaces_manager
    from sharenight.backend.models.api import WorkspaceCreate

    try:
        body = WorkspaceCreate(workspace_id=workspace_id, title=title, due_date=_parse_due(due))
    except ValidationError as exc:
        raise click.BadParameter("; ".join(error["msg"] for error in exc.errors()), param_hint="TITLE") from None

    async def action(db):
        try:
            return await workspaces_manager.create_workspace(db, body)
        except workspaces_manager.DuplicateWorkspaceError:
            raise click.ClickException(f"Workspace '{workspace_id}' already exists.") from None

    created = asyncio.run(_with_session(action))
    click.echo(created.workspace_id)


@workspace.command("list")
@click.option("-q", "--query", default=None, help="Case-insensitive title search.")
@click.option("--limit", default=50, show_default=True)
def workspace_list(query: str | None, limit: int) -> None:
    """List workspaces by due date."""
    from sharenight.backend.managers import workspaces as workspaces_manager
    from sharenight.backend.models.entities import Workspace

    async def action(db):
        return await workspaces_manager.list_workspaces(db, query=query, limit=limit)

    for row in asyncio.run(_with_session(action)):
        item = Workspace.model_validate(row)
        click.echo(f"{item.workspace_id}\t{item.due_date_display()}\t{item.title}")


# ---------------------------------------------------------------------------
# Database migrations
# ---------------------------------------------------------------------------


def _alembic_config():
    """Alembic config from the alembic.ini shipped inside the backend package."""
    from pathlib import Path

    from alembic.config import Config

    return Config(str(Path(__file__).parent / "backend" / "alembic.ini"))


@main.group()
def db() -> None:
    """Apply, roll back and inspect schema migrations."""


@db.command()
@click.argument("revision", default="head")
def upgrade(revision: str) -> None:
    """Migrate forward to REVISION (default: head)."""
    from alembic import command

    command.upgrade(_alembic_config(), revision)
    click.echo(f"Schema at {revision}.")


@db.command()
@click.argument("revision", default="-1")
def downgrade(revision: str) -> None:
    """Migrate back to REVISION (default: one step)."""
    from alembic import command

    command.downgrade(_alembic_config(), revision)
    click.echo(f"Schema at {revision}.")


@db.command()
@click.argument("message")
def migrate(message: str) -> None:
    """Autogenerate a revision named MESSAGE from the ORM tables."""
    from alembic import command

    command.revision(_alembic_config(), message=message, autogenerate=True)


@db.command()
@click.option("--history", "show_history", is_flag=True, help="List every revision instead of the current one.")
def status(show_history: bool) -> None:
    """Show the current revision (or the full history)."""
    from alembic import command

    if show_history:
        command.history(_alembic_config(), verbose=True)
    else:
        command.current(_alembic_config(), verbose=True)


if __name__ == "__main__":
    main()
