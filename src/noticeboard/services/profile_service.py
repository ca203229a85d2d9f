"""Profile service — partial profile updates with a field-level audit trail.

Learn: update_profile is the one place a profile changes. It runs as a
single atomic() unit:

1. read the current profile row (fresh from the DB, not the identity map)
2. diff the requested values against it, field by field
3. write the changed fields + one UserHistory row per changed field
4. commit — or roll back the profile write AND every history row

Values are compared by their string form ("30" == 30), which is also how
they are stored in the history table. A field sent with its current value
produces no history row, and a request that changes nothing writes nothing.

Concurrent edits of the same profile are caught by the optimistic version
column: the slower transaction's UPDATE matches zero rows and fails with
ConcurrentUpdate instead of silently overwriting the faster one.
"""

from dataclasses import dataclass
from typing import Any, Mapping, Optional

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from noticeboard.config import settings
from noticeboard.db.engine import atomic
from noticeboard.db.models import Gender, UserHistory, UserProfile

logger = structlog.get_logger()

MUTABLE_FIELDS = ("name", "age", "gender", "profile_image")


class ProfileNotFoundError(Exception):
    """Raised when the user has no profile row."""


@dataclass(frozen=True)
class FieldChange:
    field: str
    old_value: Optional[str]
    new_value: Optional[str]


def stringify(value: Any) -> Optional[str]:
    """Canonical string form used for comparison and storage. None stays None."""
    if value is None:
        return None
    if isinstance(value, Gender):
        return value.value
    return str(value)


def normalize_changes(changes: Mapping[str, Any]) -> dict[str, Any]:
    """Validate field names and coerce values to their column types.

    Raises ValueError for unknown fields, a bad gender or a non-integer age.
    """
    unknown = sorted(set(changes) - set(MUTABLE_FIELDS))
    if unknown:
        raise ValueError(f"Fields cannot be updated: {', '.join(unknown)}")

    normalized: dict[str, Any] = {}
    for field, value in changes.items():
        if field == "gender":
            if value is None:
                raise ValueError("gender cannot be empty")
            value = Gender.normalize(value)
        elif field == "age" and value is not None:
            try:
                value = int(value)
            except (TypeError, ValueError):
                raise ValueError(f"age must be an integer, got {value!r}")
        elif field == "name" and not value:
            raise ValueError("name cannot be empty")
        normalized[field] = value
    return normalized


def diff_profile(profile: UserProfile, changes: Mapping[str, Any]) -> list[FieldChange]:
    """Fields in `changes` whose string form differs from the profile's."""
    diff = []
    for field, value in changes.items():
        old = stringify(getattr(profile, field))
        new = stringify(value)
        if old != new:
            diff.append(FieldChange(field=field, old_value=old, new_value=new))
    return diff


class ProfileService:
    """Business logic for profiles and their history."""

    def __init__(self, db: AsyncSession, isolation_level: Optional[str] = None):
        self.db = db
        self.isolation_level = isolation_level or settings.profile_isolation_level

    async def get_profile(self, user_id: int) -> UserProfile | None:
        result = await self.db.execute(
            select(UserProfile).where(UserProfile.user_id == user_id)
        )
        return result.scalars().first()

    async def list_history(self, user_id: int) -> list[UserHistory]:
        result = await self.db.execute(
            select(UserHistory)
            .where(UserHistory.user_id == user_id)
            .order_by(UserHistory.id.desc())
        )
        return list(result.scalars().all())

    async def update_profile(
        self, user_id: int, changes: Mapping[str, Any]
    ) -> list[UserHistory]:
        """Apply a partial update and record one history row per changed field.

        Returns the history rows written (empty if nothing changed).
        Raises ValueError, ProfileNotFoundError, ConcurrentUpdate or
        TransactionFailure. Nothing is written unless everything is.
        """
        normalized = normalize_changes(changes)

        async with atomic(self.db, self.isolation_level):
            profile = await self._load_profile(user_id)
            if profile is None:
                raise ProfileNotFoundError(f"No profile for user {user_id}")

            entries = []
            for change in diff_profile(profile, normalized):
                setattr(profile, change.field, normalized[change.field])
                entry = UserHistory(
                    user_id=user_id,
                    changed_field=change.field,
                    old_value=change.old_value,
                    new_value=change.new_value,
                )
                self.db.add(entry)
                entries.append(entry)

            await self.db.flush()

        if entries:
            logger.info(
                "profile.updated",
                user_id=user_id,
                fields=[e.changed_field for e in entries],
            )
        return entries

    async def _load_profile(self, user_id: int) -> UserProfile | None:
        result = await self.db.execute(
            select(UserProfile)
            .where(UserProfile.user_id == user_id)
            .execution_options(populate_existing=True)
        )
        return result.scalars().first()
