"""Noticeboard CLI — run the server, prepare a local database.

Usage:
    noticeboard serve                 # uvicorn on NOTICEBOARD_HOST:NOTICEBOARD_PORT
    noticeboard serve --reload        # auto-reload for development
    noticeboard init-db               # create all tables (local dev only)

Production schemas are managed with Alembic (`alembic upgrade head`).
"""

from __future__ import annotations

import asyncio
from typing import Optional

import click

from noticeboard.config import settings


@click.group()
def cli() -> None:
    """Noticeboard backend."""


@cli.command()
@click.option("--host", default=None, help="Bind address (default: NOTICEBOARD_HOST)")
@click.option("--port", default=None, type=int, help="Port (default: NOTICEBOARD_PORT)")
@click.option("--reload", is_flag=True, help="Reload on code changes")
def serve(host: Optional[str], port: Optional[int], reload: bool) -> None:
    """Run the API server."""
    import uvicorn

    uvicorn.run(
        "noticeboard.main:app",
        host=host or settings.host,
        port=port or settings.port,
        reload=reload,
    )


async def _create_tables() -> None:
    from noticeboard.db.engine import engine
    from noticeboard.db.models import Base

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    await engine.dispose()


@cli.command("init-db")
def init_db() -> None:
    """Create every table from the ORM models."""
    asyncio.run(_create_tables())
    click.secho(f"Tables created ({settings.database_url.split('@')[-1]})", fg="green")


if __name__ == "__main__":
    cli()
