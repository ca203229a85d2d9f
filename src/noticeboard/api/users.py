"""Users API — sign-up, sign-in, sign-out, profile.

Learn: Routes for the account lifecycle:
- POST /sign-up → create user + profile (one transaction)
- POST /sign-in → email/password → credential cookie
- POST /sign-out → revoke credential, clear cookie
- GET /users → current user with profile
- PATCH /users → partial profile update, audited
- GET /users/history → audit trail of the current user's profile
"""

from fastapi import APIRouter, Depends, HTTPException, Request, Response
from sqlalchemy.ext.asyncio import AsyncSession

from noticeboard.auth.dependencies import (
    IdentityResolver,
    get_current_user,
    get_identity_resolver,
)
from noticeboard.config import settings
from noticeboard.db.engine import get_db
from noticeboard.db.models import User
from noticeboard.schemas.common import DataResponse, MessageResponse
from noticeboard.schemas.user import (
    HistoryRead,
    ProfileUpdate,
    SignInRequest,
    SignUpRequest,
    UserRead,
)
from noticeboard.services.profile_service import ProfileNotFoundError, ProfileService
from noticeboard.services.user_service import (
    DuplicateEmailError,
    InvalidCredentialsError,
    UserService,
)

router = APIRouter()


def _cookie_max_age(resolver: IdentityResolver) -> int:
    if resolver.strategy.name == "session":
        return settings.session_expire_minutes * 60
    return settings.access_token_expire_minutes * 60


# ─── Sign-up ────────────────────────────────────────────


@router.post("/sign-up", response_model=MessageResponse, status_code=201)
async def sign_up(body: SignUpRequest, db: AsyncSession = Depends(get_db)):
    """Create a new account and its profile."""
    svc = UserService(db)
    try:
        await svc.sign_up(
            email=body.email,
            password=body.password,
            name=body.name,
            age=body.age,
            gender=body.gender,
            profile_image=body.profile_image,
        )
    except DuplicateEmailError:
        raise HTTPException(status_code=409, detail="Email is already registered")
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {"message": "Sign-up complete"}


# ─── Sign-in / sign-out ─────────────────────────────────


@router.post("/sign-in", response_model=MessageResponse)
async def sign_in(
    body: SignInRequest,
    response: Response,
    resolver: IdentityResolver = Depends(get_identity_resolver),
    db: AsyncSession = Depends(get_db),
):
    """Check email + password and hand out a fresh credential cookie."""
    try:
        user = await UserService(db).sign_in(body.email, body.password)
    except InvalidCredentialsError:
        raise HTTPException(status_code=401, detail="Invalid email or password")

    credential = await resolver.strategy.issue(user.id, db)
    response.set_cookie(
        resolver.cookie_name,
        credential,
        max_age=_cookie_max_age(resolver),
        httponly=True,
        secure=settings.cookie_secure,
        samesite="lax",
    )
    return {"message": "Signed in"}


@router.post("/sign-out", response_model=MessageResponse)
async def sign_out(
    request: Request,
    response: Response,
    user: User = Depends(get_current_user),
    resolver: IdentityResolver = Depends(get_identity_resolver),
    db: AsyncSession = Depends(get_db),
):
    """Revoke the current credential and clear the cookie."""
    credential = resolver.credential_from(request)
    if credential:
        await resolver.strategy.revoke(credential, db)
    response.delete_cookie(resolver.cookie_name)
    return {"message": "Signed out"}


# ─── Current user ───────────────────────────────────────


@router.get("/users", response_model=DataResponse[UserRead])
async def get_me(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Get the current user with their profile."""
    detail = await UserService(db).get_user_with_profile(user.id)
    if detail is None:
        raise HTTPException(status_code=404, detail="User not found")
    return {"data": detail}


@router.patch("/users", response_model=MessageResponse)
async def update_me(
    body: ProfileUpdate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Partially update the current user's profile.

    Only fields present in the body are considered; each one whose value
    actually changes is recorded in the profile history.
    """
    changes = body.model_dump(exclude_unset=True)
    try:
        await ProfileService(db).update_profile(user.id, changes)
    except ProfileNotFoundError:
        raise HTTPException(status_code=404, detail="Profile not found")
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {"message": "Profile updated"}


@router.get("/users/history", response_model=DataResponse[list[HistoryRead]])
async def get_my_history(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Profile change history of the current user, newest first."""
    history = await ProfileService(db).list_history(user.id)
    return {"data": history}
