"""Posts + comments API.

Learn: Reading the board is open; writing needs a signed-in user.
- POST /posts → create a post (auth)
- GET /posts → list posts, newest first
- GET /posts/:id → post detail
- POST /posts/:id/comments → comment on a post (auth)
- GET /posts/:id/comments → comments on a post, newest first
"""

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from noticeboard.auth.dependencies import get_current_user
from noticeboard.db.engine import get_db
from noticeboard.db.models import User
from noticeboard.schemas.common import DataResponse
from noticeboard.schemas.post import (
    CommentCreate,
    CommentRead,
    PostCreate,
    PostRead,
    PostSummary,
)
from noticeboard.services.post_service import PostNotFoundError, PostService

router = APIRouter()


def _get_service(db: AsyncSession = Depends(get_db)) -> PostService:
    return PostService(db)


# ─── Posts ──────────────────────────────────────────────


@router.post("/posts", response_model=DataResponse[PostRead], status_code=201)
async def create_post(
    body: PostCreate,
    user: User = Depends(get_current_user),
    svc: PostService = Depends(_get_service),
):
    post = await svc.create_post(user.id, title=body.title, content=body.content)
    return {"data": post}


@router.get("/posts", response_model=DataResponse[list[PostSummary]])
async def list_posts(svc: PostService = Depends(_get_service)):
    return {"data": await svc.list_posts()}


@router.get("/posts/{post_id}", response_model=DataResponse[PostRead])
async def get_post(post_id: int, svc: PostService = Depends(_get_service)):
    post = await svc.get_post(post_id)
    if post is None:
        raise HTTPException(status_code=404, detail="Post not found")
    return {"data": post}


# ─── Comments ───────────────────────────────────────────


@router.post(
    "/posts/{post_id}/comments",
    response_model=DataResponse[CommentRead],
    status_code=201,
)
async def create_comment(
    post_id: int,
    body: CommentCreate,
    user: User = Depends(get_current_user),
    svc: PostService = Depends(_get_service),
):
    try:
        comment = await svc.create_comment(post_id, user.id, body.content)
    except PostNotFoundError:
        raise HTTPException(status_code=404, detail="Post not found")
    return {"data": comment}


@router.get("/posts/{post_id}/comments", response_model=DataResponse[list[CommentRead]])
async def list_comments(post_id: int, svc: PostService = Depends(_get_service)):
    return {"data": await svc.list_comments(post_id)}
