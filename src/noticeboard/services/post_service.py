"""Post service — board posts and their comments.

Learn: Plain CRUD, one statement per call. Listings are newest first.
"""

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from noticeboard.db.models import Comment, Post


class PostNotFoundError(Exception):
    """Raised when a post id does not exist."""


class PostService:
    def __init__(self, db: AsyncSession):
        self.db = db

    # ─── Posts ──────────────────────────────────────────

    async def create_post(self, user_id: int, title: str, content: str) -> Post:
        post = Post(user_id=user_id, title=title, content=content)
        self.db.add(post)
        await self.db.commit()
        return post

    async def list_posts(self) -> list[Post]:
        result = await self.db.execute(
            select(Post).order_by(Post.created_at.desc(), Post.id.desc())
        )
        return list(result.scalars().all())

    async def get_post(self, post_id: int) -> Post | None:
        return await self.db.get(Post, post_id)

    # ─── Comments ───────────────────────────────────────

    async def create_comment(self, post_id: int, user_id: int, content: str) -> Comment:
        if await self.get_post(post_id) is None:
            raise PostNotFoundError(f"Post {post_id} not found")

        comment = Comment(post_id=post_id, user_id=user_id, content=content)
        self.db.add(comment)
        await self.db.commit()
        return comment

    async def list_comments(self, post_id: int) -> list[Comment]:
        result = await self.db.execute(
            select(Comment)
            .where(Comment.post_id == post_id)
            .order_by(Comment.created_at.desc(), Comment.id.desc())
        )
        return list(result.scalars().all())
