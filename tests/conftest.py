"""Test fixtures — a fresh SQLite database per test.

Learn: Testing pattern for async SQLAlchemy + FastAPI:

1. Environment is set BEFORE noticeboard is imported, because settings is
   a module-level singleton (cheap bcrypt rounds, a known JWT secret,
   an isolation level SQLite understands).
2. Each test gets its own SQLite file under tmp_path, with all tables
   created from the ORM metadata.
3. get_db is overridden so every request opens its own session on that
   database, exactly like production does with the real engine.
4. The credential strategy is overridden per fixture, so the same app
   is exercised with both the token and the session strategy.
"""

import os
import tempfile

os.environ["NOTICEBOARD_ENVIRONMENT"] = "test"
os.environ["NOTICEBOARD_DATABASE_URL"] = (
    f"sqlite+aiosqlite:///{tempfile.mkdtemp(prefix='noticeboard_test_')}/health.db"
)
os.environ["NOTICEBOARD_JWT_SECRET"] = "test-secret-not-for-production"
os.environ["NOTICEBOARD_BCRYPT_ROUNDS"] = "4"
os.environ["NOTICEBOARD_PROFILE_ISOLATION_LEVEL"] = "SERIALIZABLE"
os.environ["NOTICEBOARD_LOG_LEVEL"] = "WARNING"

import pytest_asyncio  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy import event  # noqa: E402
from sqlalchemy.ext.asyncio import (  # noqa: E402
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from noticeboard.auth.dependencies import get_credential_strategy  # noqa: E402
from noticeboard.auth.strategies import SessionStrategy, TokenStrategy  # noqa: E402
from noticeboard.db.engine import get_db  # noqa: E402
from noticeboard.db.models import Base  # noqa: E402
from noticeboard.main import app  # noqa: E402


@pytest_asyncio.fixture()
async def engine(tmp_path):
    """Per-test SQLite database with every table created."""
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'test.db'}", echo=False
    )

    @event.listens_for(engine.sync_engine, "connect")
    def enable_foreign_keys(dbapi_conn, connection_record):
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    try:
        yield engine
    finally:
        await engine.dispose()


@pytest_asyncio.fixture()
async def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture()
async def db_session(session_factory):
    """A session for arranging data and inspecting results directly."""
    async with session_factory() as session:
        yield session


async def _make_client(session_factory, strategy):
    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_credential_strategy] = lambda: strategy

    transport = ASGITransport(app=app)
    return AsyncClient(transport=transport, base_url="http://test")


@pytest_asyncio.fixture()
async def client(session_factory):
    """HTTP client against the app with the token strategy active."""
    async with await _make_client(session_factory, TokenStrategy()) as ac:
        yield ac
    app.dependency_overrides.clear()


@pytest_asyncio.fixture()
async def session_client(session_factory):
    """HTTP client against the app with the session strategy active."""
    async with await _make_client(session_factory, SessionStrategy()) as ac:
        yield ac
    app.dependency_overrides.clear()


SIGN_UP_BODY = {
    "email": "kim@example.com",
    "password": "correct horse battery",
    "name": "Kim",
    "age": 30,
    "gender": "female",
    "profile_image": "https://img.example.com/kim.png",
}


async def sign_up_and_in(client, **overrides) -> dict:
    """Register + sign in through the API. The client keeps the cookie."""
    body = {**SIGN_UP_BODY, **overrides}
    r = await client.post("/api/sign-up", json=body)
    assert r.status_code == 201, r.text
    r = await client.post(
        "/api/sign-in",
        json={"email": body["email"], "password": body["password"]},
    )
    assert r.status_code == 200, r.text
    return body
