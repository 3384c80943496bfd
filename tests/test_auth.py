"""Tests for account endpoints"""

import pytest
from httpx import AsyncClient
from sqlalchemy import func, select
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.auth import create_reset_token
from app.models.profile import Profile, ProfileRole
from app.models.user import User
from app.ratelimit import limiter


async def count_rows(session_factory, model) -> int:
    async with session_factory() as db:
        result = await db.execute(select(func.count()).select_from(model))
        return result.scalar()


@pytest.mark.asyncio
async def test_sign_up_creates_account_and_profile(client: AsyncClient, session_factory):
    """Test sign up creates the account and a default profile"""
    response = await client.post(
        "/auth/signup",
        json={"email": "Neha@Gmail.com", "password": "secret123", "name": "Neha"},
    )

    assert response.status_code == 201
    data = response.json()
    assert data["success"] is True
    assert data["user"]["email"] == "neha@gmail.com"
    assert data["user"]["display_name"] == "Neha"
    assert data["access_token"]
    assert data["refresh_token"]

    async with session_factory() as db:
        profile = (await db.execute(select(Profile))).scalar_one()

    assert str(profile.uid) == data["user"]["uid"]
    assert profile.role == ProfileRole.CUSTOMER
    assert profile.reservations == []
    assert profile.email_notifications is True
    assert profile.sms_notifications is False


@pytest.mark.asyncio
async def test_sign_up_duplicate_email(client: AsyncClient, test_user, session_factory):
    """Test an already registered email is told to sign in instead"""
    response = await client.post(
        "/auth/signup",
        json={"email": "asha@gmail.com", "password": "another123", "name": "Asha Again"},
    )

    assert response.status_code == 409
    data = response.json()
    assert data["success"] is False
    assert data["code"] == "email-already-in-use"
    assert data["error"] == "This email is already registered. Please sign in instead."

    assert await count_rows(session_factory, User) == 1
    assert await count_rows(session_factory, Profile) == 1


@pytest.mark.asyncio
async def test_sign_up_weak_password(client: AsyncClient, session_factory):
    """Test passwords shorter than six characters are refused"""
    response = await client.post(
        "/auth/signup",
        json={"email": "neha@gmail.com", "password": "12345", "name": "Neha"},
    )

    assert response.status_code == 400
    assert response.json()["error"] == "Password should be at least 6 characters long."
    assert await count_rows(session_factory, User) == 0


@pytest.mark.asyncio
async def test_sign_up_invalid_email(client: AsyncClient):
    """Test malformed emails are refused"""
    response = await client.post(
        "/auth/signup",
        json={"email": "not-an-email", "password": "secret123", "name": "Neha"},
    )

    assert response.status_code == 400
    assert response.json()["code"] == "invalid-email"
    assert response.json()["error"] == "Please enter a valid email address."


@pytest.mark.asyncio
async def test_sign_up_rolls_back_account_on_failure(client: AsyncClient, session_factory, monkeypatch):
    """Test no account is left behind when the write fails"""
    async def failing_commit(self):
        raise OperationalError("COMMIT", {}, Exception("database is unavailable"))

    monkeypatch.setattr(AsyncSession, "commit", failing_commit)

    response = await client.post(
        "/auth/signup",
        json={"email": "neha@gmail.com", "password": "secret123", "name": "Neha"},
    )

    monkeypatch.undo()

    assert response.status_code == 503
    assert response.json()["code"] == "network-request-failed"
    assert await count_rows(session_factory, User) == 0
    assert await count_rows(session_factory, Profile) == 0


@pytest.mark.asyncio
async def test_sign_in(client: AsyncClient, test_user, session_factory):
    """Test sign in returns tokens and records the login time"""
    response = await client.post(
        "/auth/signin",
        json={"email": "asha@gmail.com", "password": "testpass123"},
    )

    assert response.status_code == 200
    data = response.json()
    assert data["success"] is True
    assert data["user"]["uid"] == str(test_user.id)
    assert data["token_type"] == "bearer"

    async with session_factory() as db:
        profile = await db.get(Profile, test_user.id)

    assert profile.last_login is not None


@pytest.mark.asyncio
async def test_sign_in_wrong_password(client: AsyncClient, test_user):
    """Test a wrong password is reported"""
    response = await client.post(
        "/auth/signin",
        json={"email": "asha@gmail.com", "password": "nope12345"},
    )

    assert response.status_code == 401
    assert response.json() == {
        "success": False,
        "error": "Incorrect password. Please try again.",
        "code": "wrong-password",
    }


@pytest.mark.asyncio
async def test_sign_in_unknown_user(client: AsyncClient):
    """Test an unknown email is reported"""
    response = await client.post(
        "/auth/signin",
        json={"email": "nobody@gmail.com", "password": "whatever1"},
    )

    assert response.status_code == 404
    assert response.json()["code"] == "user-not-found"


@pytest.mark.asyncio
async def test_sign_in_disabled_user(client: AsyncClient, test_user, test_db):
    """Test disabled accounts can't sign in"""
    test_user.is_active = False
    await test_db.commit()

    response = await client.post(
        "/auth/signin",
        json={"email": "asha@gmail.com", "password": "testpass123"},
    )

    assert response.status_code == 403
    assert response.json()["code"] == "user-disabled"


@pytest.mark.asyncio
async def test_sign_in_rate_limited(client: AsyncClient, test_user):
    """Test repeated attempts are throttled with the too-many-requests result"""
    limiter.reset()
    limiter.enabled = True
    try:
        statuses = []
        for _ in range(11):
            response = await client.post(
                "/auth/signin",
                json={"email": "asha@gmail.com", "password": "nope12345"},
            )
            statuses.append(response.status_code)
    finally:
        limiter.enabled = False
        limiter.reset()

    assert statuses[:10] == [401] * 10
    assert statuses[10] == 429
    assert response.json()["code"] == "too-many-requests"
    assert response.json()["error"] == "Too many failed attempts. Please try again later."


@pytest.mark.asyncio
async def test_refresh_rotates_token(client: AsyncClient, test_user):
    """Test a refresh token can be used once"""
    signin = await client.post(
        "/auth/signin",
        json={"email": "asha@gmail.com", "password": "testpass123"},
    )
    refresh_token = signin.json()["refresh_token"]

    response = await client.post("/auth/refresh", json={"refresh_token": refresh_token})

    assert response.status_code == 200
    assert response.json()["refresh_token"] != refresh_token

    reused = await client.post("/auth/refresh", json={"refresh_token": refresh_token})
    assert reused.status_code == 401


@pytest.mark.asyncio
async def test_sign_out_invalidates_refresh_token(client: AsyncClient, test_user):
    """Test sign out drops the stored refresh token"""
    signin = (
        await client.post(
            "/auth/signin",
            json={"email": "asha@gmail.com", "password": "testpass123"},
        )
    ).json()

    response = await client.post(
        "/auth/signout",
        headers={"Authorization": f"Bearer {signin['access_token']}"},
    )

    assert response.status_code == 200
    assert response.json()["success"] is True

    refreshed = await client.post("/auth/refresh", json={"refresh_token": signin["refresh_token"]})
    assert refreshed.status_code == 401


@pytest.mark.asyncio
async def test_password_reset_queues_email(client: AsyncClient, test_user, task_queue):
    """Test a reset request is accepted and handed to the worker"""
    response = await client.post("/auth/password-reset", json={"email": "asha@gmail.com"})

    assert response.status_code == 200
    assert response.json()["success"] is True
    assert response.json()["message"] == "Password reset email sent. Please check your inbox."

    task_queue.assert_called_once()
    name = task_queue.call_args.args[0]
    email, token = task_queue.call_args.kwargs["args"]
    assert name == "send_password_reset_email"
    assert email == "asha@gmail.com"
    assert token


@pytest.mark.asyncio
async def test_password_reset_unknown_email(client: AsyncClient, task_queue):
    """Test reset for an unknown email is reported and nothing is queued"""
    response = await client.post("/auth/password-reset", json={"email": "nobody@gmail.com"})

    assert response.status_code == 404
    assert response.json()["code"] == "user-not-found"
    task_queue.assert_not_called()


@pytest.mark.asyncio
async def test_password_reset_confirm(client: AsyncClient, test_user):
    """Test a reset token sets a new password and works only once"""
    token = create_reset_token(test_user)

    response = await client.post(
        "/auth/password-reset/confirm",
        json={"token": token, "new_password": "brandnew123"},
    )
    assert response.status_code == 200
    assert response.json()["success"] is True

    signin = await client.post(
        "/auth/signin",
        json={"email": "asha@gmail.com", "password": "brandnew123"},
    )
    assert signin.status_code == 200

    reused = await client.post(
        "/auth/password-reset/confirm",
        json={"token": token, "new_password": "another123"},
    )
    assert reused.status_code == 400
    assert reused.json()["code"] == "invalid-action-code"


@pytest.mark.asyncio
async def test_access_token_not_accepted_as_reset_token(client: AsyncClient, test_user):
    """Test token types are not interchangeable"""
    from app.api.auth import create_access_token

    response = await client.post(
        "/auth/password-reset/confirm",
        json={"token": create_access_token(test_user), "new_password": "brandnew123"},
    )

    assert response.status_code == 400
    assert response.json()["code"] == "invalid-action-code"
