"""Auth API tests — register, login, refresh, /me, password change.

Learn: Tests cover:
1. Registration + duplicate prevention + input validation
2. Login → JWT tokens, with one generic failure for both bad cases
3. Token refresh (refresh token is echoed back unchanged)
4. Protected /me endpoint with missing, bad and stale tokens
5. Password change and account deletion
"""

import pytest

from daybook.auth.jwt import token_service
from daybook.auth.password import hash_password
from daybook.db.models import User

from conftest import DEFAULT_PASSWORD


# ═══════════════════════════════════════════════════════════
# Registration
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_register_user(client):
    r = await client.post(
        "/api/v1/auth/register",
        json={"username": "alice", "password": DEFAULT_PASSWORD},
    )
    assert r.status_code == 201
    user = r.json()
    assert user["username"] == "alice"
    assert user["roles"] == ["User"]
    assert "id" in user
    assert "password" not in user
    assert "password_hash" not in user


@pytest.mark.asyncio
async def test_register_duplicate_username(client):
    body = {"username": "alice", "password": DEFAULT_PASSWORD}
    r1 = await client.post("/api/v1/auth/register", json=body)
    assert r1.status_code == 201

    r2 = await client.post(
        "/api/v1/auth/register",
        json={"username": "alice", "password": "a-different-password"},
    )
    assert r2.status_code == 409
    assert r2.json()["detail"] == "Username already taken"


@pytest.mark.asyncio
async def test_register_empty_password(client):
    """Any non-empty password is accepted; an empty one is not."""
    r = await client.post(
        "/api/v1/auth/register", json={"username": "alice", "password": ""}
    )
    assert r.status_code == 422

    r = await client.post(
        "/api/v1/auth/register", json={"username": "alice", "password": "pw1"}
    )
    assert r.status_code == 201


@pytest.mark.asyncio
@pytest.mark.parametrize("username", ["al", "has space", "semi;colon", "x" * 51])
async def test_register_rejects_bad_usernames(client, username):
    r = await client.post(
        "/api/v1/auth/register",
        json={"username": username, "password": DEFAULT_PASSWORD},
    )
    assert r.status_code == 422


# ═══════════════════════════════════════════════════════════
# Login
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_login_returns_token_pair(client):
    await client.post(
        "/api/v1/auth/register",
        json={"username": "alice", "password": DEFAULT_PASSWORD},
    )
    r = await client.post(
        "/api/v1/auth/login",
        json={"username": "alice", "password": DEFAULT_PASSWORD},
    )
    assert r.status_code == 200
    data = r.json()
    assert data["token_type"] == "bearer"
    assert data["access_token"]
    assert data["refresh_token"]
    assert data["access_token"] != data["refresh_token"]


@pytest.mark.asyncio
async def test_login_failures_are_indistinguishable(client):
    await client.post(
        "/api/v1/auth/register",
        json={"username": "alice", "password": DEFAULT_PASSWORD},
    )
    wrong_password = await client.post(
        "/api/v1/auth/login", json={"username": "alice", "password": "nope-nope-nope"}
    )
    unknown_user = await client.post(
        "/api/v1/auth/login", json={"username": "mallory", "password": DEFAULT_PASSWORD}
    )
    assert wrong_password.status_code == unknown_user.status_code == 401
    assert wrong_password.json() == unknown_user.json() == {"detail": "Invalid credentials"}


# ═══════════════════════════════════════════════════════════
# Refresh
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_refresh_issues_new_access_token(client):
    await client.post(
        "/api/v1/auth/register",
        json={"username": "alice", "password": DEFAULT_PASSWORD},
    )
    login = await client.post(
        "/api/v1/auth/login",
        json={"username": "alice", "password": DEFAULT_PASSWORD},
    )
    refresh_token = login.json()["refresh_token"]

    r = await client.post("/api/v1/auth/refresh", json={"refresh_token": refresh_token})
    assert r.status_code == 200
    data = r.json()
    assert data["refresh_token"] == refresh_token

    me = await client.get(
        "/api/v1/auth/me", headers={"Authorization": f"Bearer {data['access_token']}"}
    )
    assert me.status_code == 200
    assert me.json()["username"] == "alice"


@pytest.mark.asyncio
async def test_refresh_rejects_access_token(client, signup):
    headers = await signup("alice")
    access_token = headers["Authorization"].removeprefix("Bearer ")
    r = await client.post("/api/v1/auth/refresh", json={"refresh_token": access_token})
    assert r.status_code == 401
    assert r.json()["detail"] == "Invalid or expired token"


@pytest.mark.asyncio
async def test_refresh_rejects_garbage(client):
    r = await client.post("/api/v1/auth/refresh", json={"refresh_token": "garbage"})
    assert r.status_code == 401


# ═══════════════════════════════════════════════════════════
# Current user
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_me_with_token(client, signup):
    headers = await signup("alice")
    await client.post("/api/v1/entries", json={"title": "Day one"}, headers=headers)

    r = await client.get("/api/v1/auth/me", headers=headers)
    assert r.status_code == 200
    me = r.json()
    assert me["username"] == "alice"
    assert me["roles"] == ["User"]
    assert me["entry_count"] == 1


@pytest.mark.asyncio
async def test_me_without_token(client):
    r = await client.get("/api/v1/auth/me")
    assert r.status_code == 401
    assert r.headers["WWW-Authenticate"] == "Bearer"


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "authorization", ["Bearer not-a-jwt", "Basic YWxpY2U6cHc=", "Bearer "]
)
async def test_me_with_bad_authorization(client, authorization):
    r = await client.get("/api/v1/auth/me", headers={"Authorization": authorization})
    assert r.status_code == 401
    assert r.json()["detail"] == "Invalid or expired token"


@pytest.mark.asyncio
async def test_token_of_deleted_user_is_rejected(client, signup):
    headers = await signup("alice")
    r = await client.delete("/api/v1/users/me", headers=headers)
    assert r.status_code == 204

    r = await client.get("/api/v1/auth/me", headers=headers)
    assert r.status_code == 401


# ═══════════════════════════════════════════════════════════
# Password change
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_change_password(client, signup):
    headers = await signup("alice")
    r = await client.put(
        "/api/v1/users/me/password",
        json={"current_password": DEFAULT_PASSWORD, "new_password": "brand-new-secret"},
        headers=headers,
    )
    assert r.status_code == 204

    old = await client.post(
        "/api/v1/auth/login", json={"username": "alice", "password": DEFAULT_PASSWORD}
    )
    assert old.status_code == 401
    new = await client.post(
        "/api/v1/auth/login", json={"username": "alice", "password": "brand-new-secret"}
    )
    assert new.status_code == 200


@pytest.mark.asyncio
async def test_change_password_requires_current_password(client, signup):
    headers = await signup("alice")
    r = await client.put(
        "/api/v1/users/me/password",
        json={"current_password": "not-my-password", "new_password": "brand-new-secret"},
        headers=headers,
    )
    assert r.status_code == 401


@pytest.mark.asyncio
async def test_unknown_stored_role_is_rejected(client, session_factory):
    async with session_factory() as session:
        session.add(
            User(
                username="legacy",
                password_hash=hash_password(DEFAULT_PASSWORD),
                roles=["User", "SUPERUSER"],
            )
        )
        await session.commit()

    token = token_service.issue_access("legacy", roles=["User"])
    r = await client.get("/api/v1/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert r.status_code == 401
    assert r.json()["detail"] == "Invalid or expired token"
