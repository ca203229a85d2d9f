"""Pydantic schemas for accounts, profiles and profile history."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel

from noticeboard.db.models import Gender


# ─── Sign-up / sign-in ─────────────────────────────────

class SignUpRequest(BaseModel):
    email: str
    password: str
    name: str
    age: Optional[int] = None
    gender: str
    profile_image: Optional[str] = None


class SignInRequest(BaseModel):
    email: str
    password: str


# ─── Profile ───────────────────────────────────────────

class ProfileUpdate(BaseModel):
    """Partial update — only the fields present in the body are applied."""
    name: Optional[str] = None
    age: Optional[int] = None
    gender: Optional[str] = None
    profile_image: Optional[str] = None

    model_config = {"extra": "forbid"}


class ProfileRead(BaseModel):
    name: str
    age: Optional[int] = None
    gender: Gender
    profile_image: Optional[str] = None

    model_config = {"from_attributes": True}


class UserRead(BaseModel):
    id: int
    email: str
    created_at: datetime
    updated_at: datetime
    profile: Optional[ProfileRead] = None

    model_config = {"from_attributes": True}


class HistoryRead(BaseModel):
    id: int
    changed_field: str
    old_value: Optional[str] = None
    new_value: Optional[str] = None
    changed_at: datetime

    model_config = {"from_attributes": True}
