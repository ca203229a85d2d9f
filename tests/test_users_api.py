"""Users API tests — sign-up, sign-in, sign-out, profile routes.

Learn: Tests cover:
1. Sign-up + duplicate prevention + atomicity under an injected fault
2. Sign-in → credential cookie (token and session strategies)
3. Protected routes: cookie cleared on every auth failure
4. Profile update → history rows
"""

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import OperationalError

from conftest import SIGN_UP_BODY, sign_up_and_in
from noticeboard.auth.jwt import create_access_token
from noticeboard.config import settings
from noticeboard.db.models import User, UserHistory, UserProfile
from noticeboard.services import user_service
from noticeboard.services.user_service import UserService


async def _count(db, model) -> int:
    return await db.scalar(select(func.count()).select_from(model))


def _cookie_cleared(response) -> bool:
    header = response.headers.get("set-cookie", "")
    return header.startswith(f"{settings.cookie_name}=") and "Max-Age=0" in header


# ═══════════════════════════════════════════════════════════
# Sign-up
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_sign_up_creates_user_and_profile(client, db_session):
    r = await client.post("/api/sign-up", json=SIGN_UP_BODY)
    assert r.status_code == 201
    assert r.json() == {"message": "Sign-up complete"}

    user = await UserService(db_session).get_user_with_profile(1)
    assert user.email == "kim@example.com"
    assert user.password_hash != SIGN_UP_BODY["password"]
    assert user.profile.name == "Kim"
    assert user.profile.gender.value == "FEMALE"  # normalized to upper case


@pytest.mark.asyncio
async def test_sign_up_duplicate_email(client, db_session):
    r1 = await client.post("/api/sign-up", json=SIGN_UP_BODY)
    assert r1.status_code == 201

    r2 = await client.post(
        "/api/sign-up", json={**SIGN_UP_BODY, "email": "KIM@example.com "}
    )
    assert r2.status_code == 409
    assert r2.json() == {"message": "Email is already registered"}

    assert await _count(db_session, User) == 1
    assert await _count(db_session, UserProfile) == 1


@pytest.mark.asyncio
async def test_sign_up_invalid_gender(client, db_session):
    r = await client.post("/api/sign-up", json={**SIGN_UP_BODY, "gender": "robot"})
    assert r.status_code == 400
    assert "gender" in r.json()["message"]
    assert await _count(db_session, User) == 0


@pytest.mark.asyncio
async def test_sign_up_profile_failure_leaves_no_user(client, db_session, monkeypatch):
    """If the profile insert fails, the user insert is rolled back too."""

    async def failing_profile(self, user, **fields):
        raise OperationalError("INSERT INTO user_profiles", {}, Exception("disk I/O error"))

    monkeypatch.setattr(UserService, "_create_profile", failing_profile)

    r = await client.post("/api/sign-up", json=SIGN_UP_BODY)
    assert r.status_code == 500
    assert "message" in r.json()

    assert await _count(db_session, User) == 0
    assert await _count(db_session, UserProfile) == 0


@pytest.mark.asyncio
async def test_sign_up_missing_fields_uses_message_envelope(client, db_session):
    r = await client.post("/api/sign-up", json={"email": "half@example.com"})
    assert r.status_code == 422
    body = r.json()
    assert set(body) == {"message"}
    assert "password: " in body["message"]
    assert await _count(db_session, User) == 0


@pytest.mark.asyncio
async def test_sign_up_hashes_before_the_transaction(db_session, monkeypatch):
    seen = []
    real_hash = user_service.hash_password

    def watching_hash(password):
        seen.append(db_session.in_transaction())
        return real_hash(password)

    monkeypatch.setattr(user_service, "hash_password", watching_hash)

    await UserService(db_session).sign_up(
        email="slow@example.com", password="password_123", name="Slow", age=40, gender="male"
    )
    assert seen == [False]


# ═══════════════════════════════════════════════════════════
# Sign-in
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_sign_in_sets_bearer_cookie(client):
    await client.post("/api/sign-up", json=SIGN_UP_BODY)
    r = await client.post(
        "/api/sign-in",
        json={"email": SIGN_UP_BODY["email"], "password": SIGN_UP_BODY["password"]},
    )
    assert r.status_code == 200
    assert r.json() == {"message": "Signed in"}
    header = r.headers["set-cookie"]
    assert header.startswith(f"{settings.cookie_name}=")
    assert "Bearer " in header
    assert "HttpOnly" in header


@pytest.mark.asyncio
async def test_sign_in_wrong_password(client):
    await client.post("/api/sign-up", json=SIGN_UP_BODY)
    r = await client.post(
        "/api/sign-in",
        json={"email": SIGN_UP_BODY["email"], "password": "wrong_password"},
    )
    assert r.status_code == 401
    assert r.json() == {"message": "Invalid email or password"}
    assert "set-cookie" not in r.headers


@pytest.mark.asyncio
async def test_sign_in_unknown_email(client):
    r = await client.post(
        "/api/sign-in", json={"email": "nobody@example.com", "password": "whatever"}
    )
    assert r.status_code == 401


@pytest.mark.asyncio
async def test_sign_up_then_sign_in_then_me(client):
    body = await sign_up_and_in(client)

    r = await client.get("/api/users")
    assert r.status_code == 200
    data = r.json()["data"]
    assert data["email"] == body["email"]
    assert data["profile"] == {
        "name": "Kim",
        "age": 30,
        "gender": "FEMALE",
        "profile_image": "https://img.example.com/kim.png",
    }

    # Same credential keeps working within its validity window
    assert (await client.get("/api/users")).status_code == 200


# ═══════════════════════════════════════════════════════════
# Auth failures on protected routes
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_me_without_cookie(client):
    r = await client.get("/api/users")
    assert r.status_code == 401
    assert r.json() == {"message": "Authentication required"}
    assert r.headers["WWW-Authenticate"] == "Bearer"
    assert _cookie_cleared(r)


@pytest.mark.asyncio
async def test_me_with_wrong_scheme(client):
    client.cookies.set(settings.cookie_name, "Basic abc")
    r = await client.get("/api/users")
    assert r.status_code == 401
    assert r.json() == {"message": "Credential is not a Bearer token"}
    assert _cookie_cleared(r)


@pytest.mark.asyncio
async def test_me_with_tampered_token(client):
    await sign_up_and_in(client)
    token = create_access_token(1)
    head, payload, signature = token.split(".")
    i = len(signature) // 2
    signature = signature[:i] + ("A" if signature[i] != "A" else "B") + signature[i + 1:]
    client.cookies.clear()
    client.cookies.set(settings.cookie_name, f"Bearer {head}.{payload}.{signature}")

    r = await client.get("/api/users")
    assert r.status_code == 401
    assert r.json() == {"message": "Token signature does not match"}
    assert _cookie_cleared(r)


@pytest.mark.asyncio
async def test_me_with_expired_token(client):
    await sign_up_and_in(client)
    client.cookies.clear()
    client.cookies.set(
        settings.cookie_name, f"Bearer {create_access_token(1, expires_minutes=-1)}"
    )

    r = await client.get("/api/users")
    assert r.status_code == 401
    assert r.json() == {"message": "Token has expired"}
    assert _cookie_cleared(r)


@pytest.mark.asyncio
async def test_me_with_token_for_missing_user(client):
    client.cookies.set(settings.cookie_name, f"Bearer {create_access_token(404)}")
    r = await client.get("/api/users")
    assert r.status_code == 401
    assert r.json() == {"message": "The user for this credential does not exist"}
    assert _cookie_cleared(r)


# ═══════════════════════════════════════════════════════════
# Session strategy
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_session_sign_in_and_out(session_client):
    await sign_up_and_in(session_client)
    session_id = session_client.cookies.get(settings.cookie_name)
    assert session_id and not session_id.startswith("Bearer")

    assert (await session_client.get("/api/users")).status_code == 200

    r = await session_client.post("/api/sign-out")
    assert r.status_code == 200
    assert r.json() == {"message": "Signed out"}

    # Replaying the old session id after sign-out fails
    session_client.cookies.set(settings.cookie_name, session_id)
    r = await session_client.get("/api/users")
    assert r.status_code == 401
    assert r.json() == {"message": "Session does not exist"}
    assert _cookie_cleared(r)


# ═══════════════════════════════════════════════════════════
# Profile update + history
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_update_profile_records_history(client, db_session):
    await sign_up_and_in(client)

    r = await client.patch("/api/users", json={"name": "Kim Ji-won", "age": 30})
    assert r.status_code == 200
    assert r.json() == {"message": "Profile updated"}

    # age was already 30 → only the name change is recorded
    r = await client.get("/api/users/history")
    assert r.status_code == 200
    history = r.json()["data"]
    assert len(history) == 1
    assert history[0]["changed_field"] == "name"
    assert history[0]["old_value"] == "Kim"
    assert history[0]["new_value"] == "Kim Ji-won"

    r = await client.get("/api/users")
    assert r.json()["data"]["profile"]["name"] == "Kim Ji-won"


@pytest.mark.asyncio
async def test_update_profile_same_value_is_noop(client, db_session):
    await sign_up_and_in(client)

    await client.patch("/api/users", json={"name": "Lee"})
    await client.patch("/api/users", json={"name": "Lee"})

    assert await _count(db_session, UserHistory) == 1


@pytest.mark.asyncio
async def test_update_profile_gender_case_is_normalized(client, db_session):
    await sign_up_and_in(client)

    # "Female" is the current value in another case → no change
    await client.patch("/api/users", json={"gender": "Female"})
    assert await _count(db_session, UserHistory) == 0

    await client.patch("/api/users", json={"gender": "other"})
    entry = (await db_session.execute(select(UserHistory))).scalars().one()
    assert (entry.changed_field, entry.old_value, entry.new_value) == (
        "gender",
        "FEMALE",
        "OTHER",
    )


@pytest.mark.asyncio
async def test_update_profile_rejects_unknown_fields(client):
    await sign_up_and_in(client)
    r = await client.patch("/api/users", json={"email": "new@example.com"})
    assert r.status_code == 422
    body = r.json()
    assert "detail" not in body
    assert body["message"].startswith("email: ")


@pytest.mark.asyncio
async def test_update_profile_requires_auth(client, db_session):
    r = await client.patch("/api/users", json={"name": "Nobody"})
    assert r.status_code == 401
    assert await _count(db_session, UserHistory) == 0
