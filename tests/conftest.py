"""Test fixtures — a throwaway SQLite database per test.

Learn: Testing pattern for async SQLAlchemy + FastAPI:

1. Each test gets its own database file under tmp_path, created from
   Base.metadata (aiosqlite driver, foreign keys on via build_engine).
2. get_db is overridden so every HTTP request opens its own session on
   that engine, the same way production requests do.
3. get_speech is overridden with a synthesizer that has no API key, so
   nothing ever calls the real speech provider. Tests that want audio
   swap in one backed by httpx.MockTransport.

Settings are read from the environment at import, so the overrides
below have to happen before anything from daybook is imported.
"""

import os

os.environ.setdefault("DAYBOOK_BCRYPT_ROUNDS", "4")
os.environ.setdefault(
    "DAYBOOK_JWT_SECRET", "test-secret-with-at-least-thirty-two-bytes"
)

import httpx  # noqa: E402
import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker  # noqa: E402

from daybook.auth.dependencies import CurrentPrincipal  # noqa: E402
from daybook.auth.password import hash_password  # noqa: E402
from daybook.auth.roles import Role  # noqa: E402
from daybook.db.engine import build_engine, get_db  # noqa: E402
from daybook.db.models import Base, User  # noqa: E402
from daybook.main import app  # noqa: E402
from daybook.services.speech import SpeechSynthesizer, get_speech  # noqa: E402

DEFAULT_PASSWORD = "correct-horse-battery"

FAKE_MP3 = b"ID3" + b"\x00" * 12_000


def speech_with(handler) -> SpeechSynthesizer:
    """A synthesizer whose HTTP calls are answered by `handler`."""
    return SpeechSynthesizer(
        "http://speech.test/v1/audio/stream",
        "test-key",
        connect_timeout=0.5,
        total_timeout=0.5,
        transport=httpx.MockTransport(handler),
    )


def disabled_speech() -> SpeechSynthesizer:
    return SpeechSynthesizer("http://speech.test/v1/audio/stream", "")


@pytest_asyncio.fixture()
async def engine(tmp_path):
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'daybook.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    try:
        yield engine
    finally:
        await engine.dispose()


@pytest.fixture()
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture()
async def db_session(session_factory):
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture()
async def client(session_factory):
    """HTTP client against the real app, on the per-test database.

    Learn: Auth is NOT overridden. Tests register and log in through
    the API and send real bearer tokens.
    """
    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_speech] = disabled_speech

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest.fixture()
def signup(client):
    """Register + login through the API; returns Authorization headers."""
    async def _signup(username: str, password: str = DEFAULT_PASSWORD) -> dict:
        r = await client.post(
            "/api/v1/auth/register",
            json={"username": username, "password": password},
        )
        assert r.status_code == 201, r.text
        r = await client.post(
            "/api/v1/auth/login",
            json={"username": username, "password": password},
        )
        assert r.status_code == 200, r.text
        return {"Authorization": f"Bearer {r.json()['access_token']}"}

    return _signup


@pytest.fixture()
def make_principal(session_factory):
    """Insert a user directly and return its CurrentPrincipal."""
    async def _make(username: str, roles=(Role.USER,)) -> CurrentPrincipal:
        async with session_factory() as session:
            user = User(
                username=username,
                password_hash=hash_password(DEFAULT_PASSWORD),
                roles=[r.value for r in roles],
            )
            session.add(user)
            await session.commit()
            return CurrentPrincipal(
                user_id=user.id, username=user.username, roles=frozenset(roles)
            )

    return _make
