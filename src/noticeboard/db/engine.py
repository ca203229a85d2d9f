"""Async SQLAlchemy engine, session factory and the atomic-unit primitive.

Learn: SQLAlchemy 2.0 async mode — create_async_engine for connection pooling,
AsyncSession for per-request database access, dependency injection via FastAPI.

Every write that touches more than one row goes through atomic(). It opens
one transaction (optionally at a chosen isolation level), commits when the
block finishes and rolls everything back when it raises. Callers never
sequence inserts by hand and hope the second one lands.
"""

from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

import structlog
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm.exc import StaleDataError
from sqlalchemy.pool import NullPool

from noticeboard.config import settings

logger = structlog.get_logger()


class TransactionFailure(Exception):
    """The database aborted an atomic unit. Nothing in it was committed."""

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        super().__init__(message)
        self.cause = cause


class ConcurrentUpdate(TransactionFailure):
    """A row changed between our read and our write (optimistic lock lost)."""


def _pool_options(url: str) -> dict:
    # SQLite (tests, local dev): one connection per checkout, nothing pooled
    if url.startswith("sqlite"):
        return {"poolclass": NullPool}
    # Connection pool: min 5, max 20 connections.
    return {"pool_size": 5, "max_overflow": 15}


engine = create_async_engine(
    settings.database_url,
    echo=settings.debug,
    **_pool_options(settings.database_url),
)

# Session factory — each request gets its own session.
async_session_factory = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


async def get_db() -> AsyncIterator[AsyncSession]:
    """FastAPI dependency — yields a session per request, auto-closes."""
    async with async_session_factory() as session:
        try:
            yield session
        finally:
            await session.close()


@asynccontextmanager
async def atomic(
    db: AsyncSession, isolation_level: Optional[str] = None
) -> AsyncIterator[AsyncSession]:
    """Run the enclosed block as one all-or-nothing transaction.

    Learn: The isolation level has to be set before the transaction touches
    the database, so it is applied right after begin() — the session has
    not checked out a connection yet at that point.

    If the session is already inside a transaction, the block runs in a
    SAVEPOINT instead and the outer owner decides when to commit.

    Raises ConcurrentUpdate when an optimistic version check fails and
    TransactionFailure for any other database error. Non-database
    exceptions raised inside the block roll back and propagate unchanged.
    """
    try:
        if db.in_transaction():
            async with db.begin_nested():
                yield db
        else:
            async with db.begin():
                if isolation_level:
                    await db.connection(
                        execution_options={"isolation_level": isolation_level}
                    )
                yield db
    except StaleDataError as e:
        logger.warning("db.concurrent_update", error=str(e))
        raise ConcurrentUpdate(
            "The record was modified by another request", cause=e
        ) from e
    except SQLAlchemyError as e:
        logger.error("db.transaction_failed", error=str(e))
        raise TransactionFailure("The transaction was rolled back", cause=e) from e
