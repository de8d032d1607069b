"""Daybook operator CLI.

Usage:
    daybook serve                          # Run the API with uvicorn
    daybook init-db                        # Create tables from the ORM models
    daybook create-admin alice             # Create a user with the ADMIN role
    daybook collect-orphans                # Delete entries no user lists
    daybook set-config weather_city Pune   # Upsert an app_config row

These talk to the database directly (DAYBOOK_DATABASE_URL), not to a
running server. create-admin is how the first admin account is made.
"""

from __future__ import annotations

import asyncio
import concurrent.futures

import click

from daybook import __version__
from daybook.auth.jwt import token_service
from daybook.config import settings
from daybook.db.engine import async_session_factory, engine
from daybook.db.models import Base
from daybook.errors import DuplicateUsername, InconsistentState
from daybook.services import app_config
from daybook.services.auth_service import AuthService
from daybook.services.entry_service import EntryService


def _run(coro):
    """Run an async coroutine from a synchronous Click handler.

    Handles nested event loops (e.g. when invoked via Click CliRunner
    inside an existing async context like tests) by offloading to a thread.
    """
    try:
        asyncio.get_running_loop()
    except RuntimeError:
        return asyncio.run(coro)
    else:
        with concurrent.futures.ThreadPoolExecutor(max_workers=1) as pool:
            return pool.submit(asyncio.run, coro).result()


@click.group()
@click.version_option(version=__version__, prog_name="daybook")
def cli():
    """Daybook — personal journal backend."""


@cli.command()
@click.option("--host", default=settings.host, show_default=True)
@click.option("--port", default=settings.port, show_default=True, type=int)
@click.option("--reload", is_flag=True, help="Restart on code changes (dev only).")
def serve(host: str, port: int, reload: bool):
    """Run the HTTP API."""
    import uvicorn

    uvicorn.run("daybook.main:app", host=host, port=port, reload=reload)


@cli.command("init-db")
def init_db():
    """Create all tables that do not exist yet."""

    async def _init():
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    _run(_init())
    click.echo("Database schema is up to date.")


@cli.command("create-admin")
@click.argument("username")
@click.password_option()
def create_admin(username: str, password: str):
    """Create USERNAME with the User and ADMIN roles."""

    async def _create():
        async with async_session_factory() as session:
            return await AuthService(session, token_service).register_admin(
                username, password
            )

    try:
        user = _run(_create())
    except DuplicateUsername:
        raise click.ClickException(f"Username {username!r} is already taken")
    click.echo(f"Created admin {user.username} ({user.id})")


@cli.command("collect-orphans")
def collect_orphans():
    """Delete journal entries that are not in any user's list."""

    async def _collect():
        async with async_session_factory() as session:
            return await EntryService(session).collect_orphans()

    try:
        removed = _run(_collect())
    except InconsistentState as e:
        raise click.ClickException(str(e))
    click.echo(f"Removed {removed} orphaned entr{'y' if removed == 1 else 'ies'}.")


@cli.command("set-config")
@click.argument("key")
@click.argument("value")
def set_config(key: str, value: str):
    """Upsert an app_config row. Running servers pick it up on restart."""

    async def _set():
        async with async_session_factory() as session:
            await app_config.set_value(session, key, value)

    _run(_set())
    click.echo(f"{key} = {value}")


if __name__ == "__main__":
    cli()
