"""JWT token creation and verification.

Learn: JWT (JSON Web Token) provides stateless authentication. The token
carries the user id ("sub"), when it was issued and when it expires,
signed with the process-wide secret. Nothing is stored server-side, so a
token stays valid until it expires.

PyJWT's exceptions are translated into the shared AuthFailure taxonomy:
- ExpiredSignatureError → CredentialExpired
- InvalidSignatureError → CredentialTampered (payload or signature edited)
- anything else        → CredentialMalformed (not a JWT, missing claims)
"""

from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt

from noticeboard.auth.errors import (
    CredentialExpired,
    CredentialMalformed,
    CredentialTampered,
)
from noticeboard.config import settings

TOKEN_TYPE = "access"


def create_access_token(
    user_id: int,
    expires_minutes: Optional[int] = None,
) -> str:
    """Create a JWT access token."""
    now = datetime.now(timezone.utc)
    expires = now + timedelta(
        minutes=expires_minutes
        if expires_minutes is not None
        else settings.access_token_expire_minutes
    )
    payload = {
        "sub": str(user_id),
        "type": TOKEN_TYPE,
        "exp": expires,
        "iat": now,
    }
    return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def verify_token(token: str) -> dict:
    """Verify and decode a JWT token.

    Returns the payload dict on success.
    Raises CredentialExpired / CredentialTampered / CredentialMalformed.
    """
    try:
        payload = jwt.decode(
            token,
            settings.jwt_secret,
            algorithms=[settings.jwt_algorithm],
            options={"require": ["sub", "exp"]},
        )
    except jwt.ExpiredSignatureError:
        raise CredentialExpired("Token has expired")
    except jwt.InvalidSignatureError:
        raise CredentialTampered("Token signature does not match")
    except jwt.InvalidTokenError as e:
        raise CredentialMalformed(f"Invalid token: {e}")

    if payload.get("type") != TOKEN_TYPE:
        raise CredentialMalformed("Not an access token")
    return payload


def user_id_from_token(token: str) -> int:
    """Verify a token and return the user id it was issued for."""
    payload = verify_token(token)
    try:
        return int(payload["sub"])
    except (TypeError, ValueError):
        raise CredentialMalformed("Token subject is not a user id")
