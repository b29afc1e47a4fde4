"""TNKR CLI — run the server and handle one-off admin chores.

Usage:
    tnkr serve                                   # Run the API + WebSocket server
    tnkr init-db                                 # Create tables (dev only; prod uses alembic)
    tnkr create-admin admin@tnkr.app --username admin
    tnkr health                                  # Ask a running server how it's doing
"""

from __future__ import annotations

import asyncio
import concurrent.futures
import json
import os
import sys

import click
import httpx

from tnkr import __version__

# ---------------------------------------------------------------------------
# Config
# ---------------------------------------------------------------------------

DEFAULT_API_URL = "http://localhost:8000"


def _api_url() -> str:
    return os.environ.get("TNKR_API_URL", DEFAULT_API_URL).rstrip("/")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _run(coro):
    """Run an async coroutine from a synchronous Click handler.

    Handles nested event loops (e.g. CliRunner inside an async test) by
    offloading to a thread.
    """
    try:
        asyncio.get_running_loop()
    except RuntimeError:
        return asyncio.run(coro)
    else:
        with concurrent.futures.ThreadPoolExecutor(max_workers=1) as pool:
            return pool.submit(asyncio.run, coro).result()


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


@click.group()
@click.version_option(version=__version__, prog_name="tnkr")
def main():
    """TNKR marketplace backend."""


@main.command()
@click.option("--host", default=None, help="Bind address (default: TNKR_HOST)")
@click.option("--port", default=None, type=int, help="Port (default: TNKR_PORT)")
@click.option("--reload", is_flag=True, help="Auto-reload on code changes")
def serve(host: str | None, port: int | None, reload: bool):
    """Run the HTTP + WebSocket server with uvicorn."""
    import uvicorn

    from tnkr.config import settings

    uvicorn.run(
        "tnkr.main:app",
        host=host or settings.host,
        port=port or settings.port,
        reload=reload,
    )


@main.command("init-db")
def init_db():
    """Create all tables directly from the models."""
    _run(_init_db_impl())
    click.secho("Database tables created", fg="green")


async def _init_db_impl():
    from tnkr.db.engine import engine
    from tnkr.db.models import Base

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    await engine.dispose()


@main.command("create-admin")
@click.argument("email")
@click.option("--username", "-u", required=True)
@click.option("--first-name", default="Admin")
@click.option("--last-name", default="User")
@click.password_option()
def create_admin(email: str, username: str, first_name: str, last_name: str, password: str):
    """Create a verified ADMIN account (admins can't self-register)."""
    if len(password) < 8:
        click.secho("Error: password must be at least 8 characters", fg="red", err=True)
        sys.exit(1)
    try:
        user_id = _run(_create_admin_impl(email, username, first_name, last_name, password))
    except ValueError as e:
        click.secho(f"Error: {e}", fg="red", err=True)
        sys.exit(1)
    click.secho(f"Admin {email} created ({user_id})", fg="green")


async def _create_admin_impl(
    email: str, username: str, first_name: str, last_name: str, password: str
) -> str:
    from sqlalchemy import or_, select

    from tnkr.auth.password import hash_password
    from tnkr.db.engine import async_session_factory, engine
    from tnkr.db.models import User, UserRole

    try:
        async with async_session_factory() as db:
            existing = await db.execute(
                select(User).where(or_(User.email == email, User.username == username))
            )
            if existing.scalars().first():
                raise ValueError("a user with that email or username already exists")

            user = User(
                first_name=first_name,
                last_name=last_name,
                username=username,
                email=email,
                password_hash=hash_password(password),
                role=UserRole.ADMIN.value,
                is_verified=True,
            )
            db.add(user)
            await db.commit()
            return str(user.id)
    finally:
        await engine.dispose()


@main.command()
def health():
    """Query GET /api/v1/health on a running server."""
    try:
        data = _run(_health_impl())
    except httpx.HTTPError as e:
        click.secho(f"Error: cannot reach {_api_url()} ({e})", fg="red", err=True)
        sys.exit(1)
    color = "green" if data.get("status") == "healthy" else "yellow"
    click.secho(data.get("status", "unknown"), fg=color)
    click.echo(json.dumps(data, indent=2, default=str))


async def _health_impl() -> dict:
    async with httpx.AsyncClient(base_url=_api_url(), timeout=10.0) as client:
        r = await client.get("/api/v1/health")
        r.raise_for_status()
        return r.json()


if __name__ == "__main__":
    main()
