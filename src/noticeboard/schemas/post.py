"""Pydantic schemas for posts and comments."""

from datetime import datetime

from pydantic import BaseModel


class PostCreate(BaseModel):
    title: str
    content: str


class PostSummary(BaseModel):
    """List view — everything except the body."""
    id: int
    user_id: int
    title: str
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class PostRead(PostSummary):
    content: str


class CommentCreate(BaseModel):
    content: str


class CommentRead(BaseModel):
    id: int
    post_id: int
    user_id: int
    content: str
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}
