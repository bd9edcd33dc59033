"""Command line entry point (``picks-api``)."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable
from typing import Annotated, TypeVar

import typer
from sqlalchemy import select

from .core.rbac import UserRole
from .core.security.hashing import PASSWORD_MIN_LENGTH, hash_password
from .db.bootstrap import ensure_database_ready
from .db.engine import dispose_engine
from .db.session import session_scope
from .features.users.models import User, canonical_email
from .main import start as start_server
from .settings import Settings, get_settings

T = TypeVar("T")

app = typer.Typer(
    add_completion=False,
    invoke_without_command=True,
    help="Picks API CLI (start, init-db, create-admin).",
)


def _run(work: Awaitable[T]) -> T:
    async def _runner() -> T:
        try:
            return await work
        finally:
            await dispose_engine()

    return asyncio.run(_runner())


@app.callback()
def _main(ctx: typer.Context) -> None:
    if ctx.invoked_subcommand is None:
        typer.echo(ctx.get_help())


@app.command(name="start", help="Serve the API with uvicorn.")
def start(
    host: Annotated[str | None, typer.Option("--host", help="Bind address.")] = None,
    port: Annotated[int | None, typer.Option("--port", help="Bind port.")] = None,
    reload: Annotated[bool, typer.Option("--reload/--no-reload", help="Auto-reload.")] = False,
) -> None:
    start_server(host=host, port=port, reload=reload)


@app.command(name="init-db", help="Create every table in the configured database.")
def init_db() -> None:
    settings = get_settings()
    _run(ensure_database_ready(settings))
    typer.echo(f"Database ready: {settings.database_dsn}")


async def _promote_admin(
    settings: Settings, email: str, password: str, name: str | None
) -> tuple[User, bool]:
    await ensure_database_ready(settings)
    async with session_scope(settings) as session:
        result = await session.execute(select(User).where(User.email == canonical_email(email)))
        user = result.scalar_one_or_none()
        created = user is None
        if user is None:
            user = User(email=email, name=name, password_hash=hash_password(password))
            session.add(user)
        user.role = UserRole.ADMIN
    return user, created


@app.command(name="create-admin", help="Create an administrator or promote an existing user.")
def create_admin(
    email: Annotated[str, typer.Argument(help="Account email.")],
    password: Annotated[str, typer.Argument(help="Password for a new account.")],
    name: Annotated[str | None, typer.Option("--name", help="Display name.")] = None,
) -> None:
    if len(password) < PASSWORD_MIN_LENGTH:
        typer.echo(f"error: password must be at least {PASSWORD_MIN_LENGTH} characters", err=True)
        raise typer.Exit(code=1)
    user, created = _run(_promote_admin(get_settings(), email, password, name))
    verb = "Created" if created else "Promoted"
    typer.echo(f"{verb} administrator {user.email}")


def main() -> None:
    app()


__all__ = ["app", "main"]
