"""API route aggregation.

All routers registered here get mounted in main.py.

Learn: Unlike a router-wide Depends(get_current_user), auth is declared per
handler here, because the posts router mixes open reads with protected
writes. Sign-up, sign-in and health are open.
"""

from fastapi import APIRouter

from noticeboard.api.health import router as health_router
from noticeboard.api.posts import router as posts_router
from noticeboard.api.users import router as users_router

api_router = APIRouter(prefix="/api")

api_router.include_router(health_router, tags=["health"])
api_router.include_router(users_router, tags=["users"])
api_router.include_router(posts_router, tags=["posts", "comments"])
