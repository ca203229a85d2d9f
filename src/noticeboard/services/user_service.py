"""User service — sign-up and sign-in.

Learn: Service layer separates business logic from HTTP routing.
API routes call services, services call the database.

Sign-up writes two rows (users + user_profiles). They go through one
atomic() unit: if the profile insert fails, the user insert is rolled
back with it, so nobody can ever observe an account without a profile.
"""

from typing import Optional

import structlog
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from noticeboard.auth.password import hash_password, verify_password
from noticeboard.db.engine import TransactionFailure, atomic
from noticeboard.db.models import Gender, User, UserProfile

logger = structlog.get_logger()


class DuplicateEmailError(Exception):
    """Raised when signing up with an email that is already registered."""


class InvalidCredentialsError(Exception):
    """Raised when the email is unknown or the password does not match."""


def normalize_email(email: str) -> str:
    return email.strip().lower()


class UserService:
    """Business logic for accounts."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def find_by_email(self, email: str) -> User | None:
        result = await self.db.execute(
            select(User).where(User.email == normalize_email(email))
        )
        return result.scalars().first()

    async def get_user_with_profile(self, user_id: int) -> User | None:
        result = await self.db.execute(
            select(User)
            .where(User.id == user_id)
            .options(selectinload(User.profile))
        )
        return result.scalars().first()

    # ─── Sign-up ────────────────────────────────────────

    async def sign_up(
        self,
        email: str,
        password: str,
        name: str,
        age: Optional[int],
        gender: str,
        profile_image: Optional[str] = None,
    ) -> User:
        """Create a user and its profile as one atomic unit.

        Raises DuplicateEmailError, ValueError (bad gender),
        CodecError (password could not be hashed) or TransactionFailure.
        """
        email = normalize_email(email)
        gender = Gender.normalize(gender)
        # bcrypt is slow on purpose; keep it outside the transaction
        password_hash = hash_password(password)

        try:
            async with atomic(self.db):
                if await self.find_by_email(email):
                    raise DuplicateEmailError(f"Email {email} is already registered")

                user = User(email=email, password_hash=password_hash)
                self.db.add(user)
                await self.db.flush()  # assigns user.id

                await self._create_profile(
                    user,
                    name=name,
                    age=age,
                    gender=gender,
                    profile_image=profile_image,
                )
        except TransactionFailure as e:
            # Lost a race with a concurrent sign-up for the same email
            if isinstance(e.cause, IntegrityError) and await self.find_by_email(email):
                raise DuplicateEmailError(
                    f"Email {email} is already registered"
                ) from e
            raise

        logger.info("user.signed_up", user_id=user.id)
        return user

    async def _create_profile(self, user: User, **fields) -> UserProfile:
        profile = UserProfile(user_id=user.id, **fields)
        self.db.add(profile)
        await self.db.flush()
        return profile

    # ─── Sign-in ────────────────────────────────────────

    async def sign_in(self, email: str, password: str) -> User:
        """Check email + password. The caller issues the credential."""
        user = await self.find_by_email(email)
        if user is None or not verify_password(password, user.password_hash):
            logger.info("user.sign_in_rejected")
            raise InvalidCredentialsError("Invalid email or password")

        logger.info("user.signed_in", user_id=user.id)
        return user
