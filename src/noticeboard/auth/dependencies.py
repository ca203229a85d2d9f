"""FastAPI auth dependencies — the identity resolver.

Learn: These are used as Depends() in route handlers to extract
and validate the current user from the request.

Flow for every protected route:
1. read the credential cookie (missing → CredentialAbsent)
2. hand it to the active CredentialStrategy → user id
3. load the User row (gone → UserNotFound)

Any AuthFailure escapes to auth_failure_handler, registered on the app,
which answers 401 and deletes the cookie so the client stops replaying a
credential that is known to be bad.
"""

from functools import lru_cache

import structlog
from fastapi import Depends, Request
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from noticeboard.auth.errors import AuthFailure, CredentialAbsent, UserNotFound
from noticeboard.auth.strategies import CredentialStrategy, get_strategy
from noticeboard.config import settings
from noticeboard.db.engine import get_db
from noticeboard.db.models import User

logger = structlog.get_logger()


class IdentityResolver:
    """Turns an inbound request into an authenticated User."""

    def __init__(self, strategy: CredentialStrategy, cookie_name: str | None = None):
        self.strategy = strategy
        self.cookie_name = cookie_name or settings.cookie_name

    def credential_from(self, request: Request) -> str | None:
        return request.cookies.get(self.cookie_name) or None

    async def authenticate(self, request: Request, db: AsyncSession) -> User:
        # The failure handler clears whichever cookie was consulted here
        request.state.credential_cookie = self.cookie_name
        credential = self.credential_from(request)
        if credential is None:
            raise CredentialAbsent("Authentication required")

        user_id = await self.strategy.resolve(credential, db)

        user = await db.get(User, user_id)
        if user is None:
            raise UserNotFound()
        return user


@lru_cache
def get_credential_strategy() -> CredentialStrategy:
    """The strategy selected by NOTICEBOARD_AUTH_STRATEGY (built once)."""
    return get_strategy()


def get_identity_resolver(
    strategy: CredentialStrategy = Depends(get_credential_strategy),
) -> IdentityResolver:
    return IdentityResolver(strategy)


async def get_current_user(
    request: Request,
    resolver: IdentityResolver = Depends(get_identity_resolver),
    db: AsyncSession = Depends(get_db),
) -> User:
    """Resolve the current user (required — 401 if the credential fails)."""
    user = await resolver.authenticate(request, db)
    # Close the read transaction so the handler can open its own atomic unit
    await db.commit()
    structlog.contextvars.bind_contextvars(user_id=user.id)
    return user


async def auth_failure_handler(request: Request, exc: AuthFailure) -> JSONResponse:
    """401 + cleared credential cookie for every AuthFailure."""
    logger.warning(
        "auth.failed",
        kind=exc.kind.value,
        reason=type(exc).__name__,
        path=request.url.path,
    )
    response = JSONResponse(
        status_code=401,
        content={"message": exc.message},
        headers={"WWW-Authenticate": "Bearer"},
    )
    response.delete_cookie(
        getattr(request.state, "credential_cookie", settings.cookie_name)
    )
    return response
