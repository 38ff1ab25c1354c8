"""Test fixtures — a fresh SQLite database per test.

Learn: Testing pattern for async SQLAlchemy + FastAPI:

1. Settings are read from PEERCONNECT_* env vars at import time, so the
   variables below are set before anything from peerconnect is imported.
2. Each test gets its own file-backed SQLite database (aiosqlite) with the
   schema created from the models. Separate connections per session means
   the API sees exactly what a test committed, like it would in production.
3. get_db is overridden so every request opens its own session against
   the test database.

Tokens are minted directly with create_access_token, so tests don't need
to go through register → verify → login before each case.
"""

import os

os.environ["PEERCONNECT_DATABASE_URL"] = "sqlite+aiosqlite://"
os.environ["PEERCONNECT_ENVIRONMENT"] = "development"
os.environ["PEERCONNECT_BCRYPT_ROUNDS"] = "4"
os.environ["PEERCONNECT_SMTP_HOST"] = ""
os.environ["PEERCONNECT_CLOUDINARY_CLOUD_NAME"] = "demo-cloud"
os.environ["PEERCONNECT_CLOUDINARY_API_KEY"] = "123456789"
os.environ["PEERCONNECT_CLOUDINARY_API_SECRET"] = "cloud-secret"

import json  # noqa: E402
import uuid  # noqa: E402

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy.ext.asyncio import (  # noqa: E402
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from peerconnect.auth.jwt import create_access_token  # noqa: E402
from peerconnect.auth.password import hash_password  # noqa: E402
from peerconnect.db.engine import enable_sqlite_foreign_keys, get_db  # noqa: E402
from peerconnect.db.models import Base, Topic, User, UserRole  # noqa: E402
from peerconnect.main import app  # noqa: E402
from peerconnect.realtime.hub import hub  # noqa: E402

PASSWORD = "correct-horse-battery"


class FakeSocket:
    """Stands in for a WebSocket: records every frame sent to it."""

    def __init__(self):
        self.sent: list[str] = []

    async def send_text(self, data: str) -> None:
        self.sent.append(data)

    def frames(self, type: str | None = None) -> list[dict]:
        decoded = [json.loads(s) for s in self.sent]
        return [f for f in decoded if type is None or f["type"] == type]


@pytest.fixture()
def fake_socket():
    """Factory for sockets that record what the hub sends them."""
    return FakeSocket


@pytest.fixture(autouse=True)
def _reset_hub():
    hub.reset()
    yield
    hub.reset()


@pytest_asyncio.fixture()
async def engine(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'peerconnect.db'}")
    enable_sqlite_foreign_keys(engine)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture()
async def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture()
async def db_session(session_factory):
    """Session for arranging data and checking results directly."""
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture()
async def client(session_factory):
    """HTTP client with get_db pointed at the per-test database.

    Learn: auth is NOT overridden. Requests authenticate with real JWTs
    from the `headers_for` fixture, so role guards run for real.
    """
    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


# ─── Factories ──────────────────────────────────────────


@pytest.fixture()
def make_user(db_session):
    """Create a user directly in the DB (verified unless told otherwise)."""

    async def _make(
        role: UserRole = UserRole.USER,
        email: str | None = None,
        verified: bool = True,
        approved: bool = False,
        first_name: str = "Test",
        last_name: str | None = None,
        profile_completed: bool = False,
    ) -> User:
        user = User(
            email=email or f"{role.lower()}-{uuid.uuid4().hex[:8]}@example.com",
            password_hash=hash_password(PASSWORD),
            first_name=first_name,
            last_name=last_name or role.title(),
            role=role,
            is_email_verified=verified,
            is_approved=approved,
            profile_completed=profile_completed,
        )
        db_session.add(user)
        await db_session.commit()
        return user

    return _make


@pytest.fixture()
def headers_for():
    """Authorization header with a fresh access token for `user`."""

    def _headers(user: User) -> dict:
        token = create_access_token(str(user.id), user.email, user.role)
        return {"Authorization": f"Bearer {token}"}

    return _headers


@pytest_asyncio.fixture()
async def topics(db_session) -> list[Topic]:
    names = ["Anxiety", "Depression", "Grief", "Loneliness", "Stress", "Trauma"]
    rows = [Topic(name=n, description=f"Support for {n.lower()}") for n in names]
    db_session.add_all(rows)
    await db_session.commit()
    return rows


@pytest.fixture()
def topic_ids(topics):
    """String ids of the first `n` topics, as a request body expects them."""

    def _ids(n: int = 3) -> list[str]:
        return [str(t.id) for t in topics[:n]]

    return _ids
