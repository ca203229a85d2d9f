"""Authentication failure taxonomy.

Learn: Whatever strategy is active, a credential fails in one of
three kinds: ABSENT, INVALID or EXPIRED. Every AuthFailure carries
one of those kinds, so the HTTP layer maps them uniformly (401 +
cookie cleared) without knowing which strategy raised them. The
concrete classes keep the finer detail for messages and logs.
"""

import enum


class FailureKind(str, enum.Enum):
    ABSENT = "absent"
    INVALID = "invalid"
    EXPIRED = "expired"


class AuthFailure(Exception):
    """Base class: the request could not be tied to a user."""

    kind: FailureKind = FailureKind.INVALID
    default_message = "Authentication failed"

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class CredentialAbsent(AuthFailure):
    kind = FailureKind.ABSENT
    default_message = "No credential was provided"


class CredentialSchemeMismatch(CredentialAbsent):
    """Something other than the expected credential scheme was presented."""

    default_message = "Credential is not a Bearer token"


class CredentialMalformed(AuthFailure):
    kind = FailureKind.INVALID
    default_message = "The credential is malformed"


class CredentialTampered(AuthFailure):
    kind = FailureKind.INVALID
    default_message = "The credential has been tampered with"


class CredentialExpired(AuthFailure):
    kind = FailureKind.EXPIRED
    default_message = "The credential has expired"


class UserNotFound(AuthFailure):
    """A valid credential pointing at an account that no longer exists."""

    kind = FailureKind.INVALID
    default_message = "The user for this credential does not exist"
