"""Credential strategies — how a cookie value becomes a user id.

Learn: One deployment runs exactly one strategy, chosen by
NOTICEBOARD_AUTH_STRATEGY. Both implement the same three operations:

- issue(user_id)  → cookie value to hand the client after sign-in
- resolve(value)  → user id, or an AuthFailure (absent / invalid / expired)
- revoke(value)   → forget the credential on sign-out

TokenStrategy is stateless: the cookie is "Bearer <jwt>" and nothing is
stored. SessionStrategy keeps a row per sign-in and the cookie only holds
a random id; the row is looked up by the id's sha256 so a database dump
cannot be replayed as live sessions.
"""

import hashlib
import re
import secrets
from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone

import structlog
from sqlalchemy import delete
from sqlalchemy.ext.asyncio import AsyncSession

from noticeboard.auth.errors import (
    CredentialAbsent,
    CredentialExpired,
    CredentialMalformed,
    CredentialSchemeMismatch,
)
from noticeboard.auth.jwt import create_access_token, user_id_from_token
from noticeboard.config import settings
from noticeboard.db.models import UserSession

logger = structlog.get_logger()

BEARER_SCHEME = "Bearer"

# secrets.token_urlsafe(32) → 43 chars of [A-Za-z0-9_-]
_SESSION_ID_RE = re.compile(r"^[A-Za-z0-9_-]{16,128}$")


class CredentialStrategy(ABC):
    """Abstract base for credential strategies."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Short identifier, matches the NOTICEBOARD_AUTH_STRATEGY value."""

    @abstractmethod
    async def issue(self, user_id: int, db: AsyncSession) -> str:
        """Create a fresh credential for user_id and return the cookie value."""

    @abstractmethod
    async def resolve(self, credential: str, db: AsyncSession) -> int:
        """Return the user id behind a cookie value, or raise AuthFailure."""

    async def revoke(self, credential: str, db: AsyncSession) -> None:
        """Invalidate a credential server-side. Default: nothing to forget."""


class TokenStrategy(CredentialStrategy):
    """Signed JWT carried as "Bearer <token>"."""

    name = "token"

    async def issue(self, user_id: int, db: AsyncSession) -> str:
        return f"{BEARER_SCHEME} {create_access_token(user_id)}"

    async def resolve(self, credential: str, db: AsyncSession) -> int:
        scheme, _, token = credential.partition(" ")
        if scheme != BEARER_SCHEME:
            raise CredentialSchemeMismatch()
        token = token.strip()
        if not token:
            raise CredentialAbsent("Bearer credential carries no token")
        return user_id_from_token(token)


class SessionStrategy(CredentialStrategy):
    """Opaque session id mapped to a user in the user_sessions table."""

    name = "session"

    def __init__(self, expire_minutes: int | None = None):
        self.expire_minutes = expire_minutes or settings.session_expire_minutes

    async def issue(self, user_id: int, db: AsyncSession) -> str:
        now = datetime.now(timezone.utc)
        # Sweep this user's dead sessions; nobody will present them again
        await db.execute(
            delete(UserSession).where(
                UserSession.user_id == user_id,
                UserSession.expires_at <= now,
            )
            .execution_options(synchronize_session=False)
        )

        session_id = secrets.token_urlsafe(32)
        db.add(
            UserSession(
                session_hash=hash_session_id(session_id),
                user_id=user_id,
                expires_at=now + timedelta(minutes=self.expire_minutes),
            )
        )
        await db.commit()
        return session_id

    async def resolve(self, credential: str, db: AsyncSession) -> int:
        if not _SESSION_ID_RE.match(credential):
            raise CredentialMalformed("Session id is malformed")

        session = await db.get(UserSession, hash_session_id(credential))
        if session is None:
            raise CredentialAbsent("Session does not exist")

        if _as_utc(session.expires_at) <= datetime.now(timezone.utc):
            await db.delete(session)
            await db.commit()
            logger.info("auth.session_expired", user_id=session.user_id)
            raise CredentialExpired("Session has expired")

        return session.user_id

    async def revoke(self, credential: str, db: AsyncSession) -> None:
        await db.execute(
            delete(UserSession).where(
                UserSession.session_hash == hash_session_id(credential)
            )
        )
        await db.commit()


def hash_session_id(session_id: str) -> str:
    return hashlib.sha256(session_id.encode()).hexdigest()


def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes even for timezone-aware columns
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


_STRATEGIES: dict[str, type[CredentialStrategy]] = {
    TokenStrategy.name: TokenStrategy,
    SessionStrategy.name: SessionStrategy,
}


def get_strategy(name: str | None = None) -> CredentialStrategy:
    """Build the strategy configured for this deployment."""
    key = name or settings.auth_strategy
    try:
        return _STRATEGIES[key]()
    except KeyError:
        raise ValueError(
            f"Unknown auth strategy {key!r} (expected one of {sorted(_STRATEGIES)})"
        )
