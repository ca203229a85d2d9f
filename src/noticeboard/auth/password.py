"""Password hashing utilities.

Learn: Uses bcrypt for secure password hashing. bcrypt automatically
handles salting and is resistant to rainbow table attacks. The work
factor comes from NOTICEBOARD_BCRYPT_ROUNDS (default 12, ~100ms per hash
on modern hardware); tests turn it down to 4.

bcrypt.checkpw compares in constant time, so verification does not leak
where a mismatch occurs.
"""

from typing import Optional

import bcrypt

from noticeboard.config import settings

# bcrypt only looks at the first 72 bytes of the password
_BCRYPT_MAX_BYTES = 72


class CodecError(Exception):
    """Raised when a password cannot be hashed."""


def hash_password(password: str, rounds: Optional[int] = None) -> str:
    """Hash a password with bcrypt.

    Learn: bcrypt includes a random salt automatically and produces
    hashes starting with "$2b$". Two calls with the same password
    return different digests; verify_password accepts both.
    """
    if not isinstance(password, str):
        raise CodecError(f"Password must be a string, got {type(password).__name__}")
    try:
        pw_bytes = password.encode("utf-8")[:_BCRYPT_MAX_BYTES]
        salt = bcrypt.gensalt(rounds=rounds or settings.bcrypt_rounds)
        return bcrypt.hashpw(pw_bytes, salt).decode("utf-8")
    except (ValueError, TypeError) as e:
        raise CodecError(f"Could not hash password: {e}") from e


def verify_password(password: str, password_hash: str) -> bool:
    """Verify a password against its hash. A malformed hash never matches."""
    try:
        pw_bytes = password.encode("utf-8")[:_BCRYPT_MAX_BYTES]
        hash_bytes = password_hash.encode("utf-8")
        return bcrypt.checkpw(pw_bytes, hash_bytes)
    except (ValueError, TypeError, AttributeError):
        return False
