"""AuthService tests — uniqueness under races, login logging."""

import pytest
from sqlalchemy import func, select
from structlog.testing import capture_logs

from daybook.auth.jwt import TokenService
from daybook.auth.roles import Role
from daybook.db.models import User
from daybook.errors import DuplicateUsername, InvalidCredentials
from daybook.services.auth_service import AuthService

from conftest import DEFAULT_PASSWORD

SECRET = "service-test-secret-0123456789abcdef"


@pytest.fixture()
def tokens():
    return TokenService(SECRET)


@pytest.mark.asyncio
async def test_register_assigns_default_role(db_session, tokens):
    user = await AuthService(db_session, tokens).register("alice", DEFAULT_PASSWORD)
    assert user.roles == ["User"]
    assert user.password_hash != DEFAULT_PASSWORD


@pytest.mark.asyncio
async def test_register_admin_has_both_roles(db_session, tokens):
    user = await AuthService(db_session, tokens).register_admin("root", DEFAULT_PASSWORD)
    assert Role.parse_all(user.roles) == {Role.USER, Role.ADMIN}


@pytest.mark.asyncio
async def test_concurrent_registration_loses_cleanly(session_factory, tokens, monkeypatch):
    """The unique index decides when two registrations race past the pre-check."""
    async with session_factory() as first:
        await AuthService(first, tokens).register("alice", DEFAULT_PASSWORD)

    async with session_factory() as second:
        svc = AuthService(second, tokens)

        async def nobody(username):
            return None

        # Simulate losing the race: the pre-check saw no "alice" yet
        monkeypatch.setattr(svc.users, "find_by_username", nobody)
        with pytest.raises(DuplicateUsername):
            await svc.register("alice", "another-password")

    async with session_factory() as check:
        count = await check.scalar(
            select(func.count()).select_from(User).where(User.username == "alice")
        )
    assert count == 1


@pytest.mark.asyncio
async def test_login_failure_reason_only_in_log(db_session, tokens):
    svc = AuthService(db_session, tokens)
    await svc.register("alice", DEFAULT_PASSWORD)

    with capture_logs() as logs:
        with pytest.raises(InvalidCredentials) as unknown:
            await svc.login("mallory", DEFAULT_PASSWORD)
        with pytest.raises(InvalidCredentials) as wrong:
            await svc.login("alice", "wrong-password")

    assert str(unknown.value) == str(wrong.value)
    reasons = [e["reason"] for e in logs if e["event"] == "auth.login_failed"]
    assert reasons == ["unknown_user", "bad_password"]


@pytest.mark.asyncio
async def test_login_pair_validates(db_session, tokens):
    svc = AuthService(db_session, tokens)
    await svc.register("alice", DEFAULT_PASSWORD)

    pair = await svc.login("alice", DEFAULT_PASSWORD)
    assert tokens.validate(pair.access_token) == "alice"
    assert tokens.validate(svc.refresh(pair.refresh_token)) == "alice"


@pytest.mark.asyncio
async def test_list_users(db_session, tokens):
    svc = AuthService(db_session, tokens)
    await svc.register("alice", DEFAULT_PASSWORD)
    await svc.register("bob", DEFAULT_PASSWORD)
    assert {u.username for u in await svc.list_users()} == {"alice", "bob"}
