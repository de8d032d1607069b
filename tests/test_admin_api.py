"""Admin API tests — role gate, admin creation, orphan collection."""

import pytest

from daybook.auth.jwt import token_service
from daybook.services.auth_service import AuthService

from conftest import DEFAULT_PASSWORD


@pytest.fixture()
def admin_headers(client, session_factory):
    async def _admin(username: str = "root") -> dict:
        async with session_factory() as session:
            await AuthService(session, token_service).register_admin(
                username, DEFAULT_PASSWORD
            )
        r = await client.post(
            "/api/v1/auth/login",
            json={"username": username, "password": DEFAULT_PASSWORD},
        )
        assert r.status_code == 200, r.text
        return {"Authorization": f"Bearer {r.json()['access_token']}"}

    return _admin


@pytest.mark.asyncio
async def test_admin_routes_forbidden_for_users(client, signup):
    alice = await signup("alice")
    r = await client.get("/api/v1/admin/users", headers=alice)
    assert r.status_code == 403
    assert r.json()["detail"] == "Admin role required"

    r = await client.post(
        "/api/v1/admin/users",
        json={"username": "sneaky", "password": DEFAULT_PASSWORD},
        headers=alice,
    )
    assert r.status_code == 403


@pytest.mark.asyncio
async def test_admin_routes_require_auth(client):
    r = await client.get("/api/v1/admin/users")
    assert r.status_code == 401


@pytest.mark.asyncio
async def test_admin_lists_users(client, signup, admin_headers):
    await signup("alice")
    root = await admin_headers()

    r = await client.get("/api/v1/admin/users", headers=root)
    assert r.status_code == 200
    by_name = {u["username"]: u for u in r.json()}
    assert set(by_name) == {"alice", "root"}
    assert sorted(by_name["root"]["roles"]) == ["ADMIN", "User"]


@pytest.mark.asyncio
async def test_admin_creates_admin(client, admin_headers):
    root = await admin_headers()

    r = await client.post(
        "/api/v1/admin/users",
        json={"username": "second", "password": DEFAULT_PASSWORD},
        headers=root,
    )
    assert r.status_code == 201
    assert sorted(r.json()["roles"]) == ["ADMIN", "User"]

    r = await client.post(
        "/api/v1/admin/users",
        json={"username": "second", "password": DEFAULT_PASSWORD},
        headers=root,
    )
    assert r.status_code == 409


@pytest.mark.asyncio
async def test_admin_collects_orphans(client, admin_headers):
    root = await admin_headers()
    r = await client.post("/api/v1/admin/orphans/collect", headers=root)
    assert r.status_code == 200
    assert r.json() == {"removed": 0}
