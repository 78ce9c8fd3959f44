"""Pytest configuration and fixtures for backend tests.

Database Handling:
- Every test gets a fresh in-memory SQLite database (aiosqlite) with all
  tables created from the models
- Redis is replaced by InMemoryTokenDenylist and outgoing mail by a
  recording mailer
"""

import os
from collections.abc import AsyncGenerator, Callable
from datetime import UTC, datetime, timedelta

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

# Set test environment variables before importing app modules
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["JWT_SECRET_KEY"] = "test-access-secret-" + "a" * 32
os.environ["JWT_REFRESH_SECRET_KEY"] = "test-refresh-secret-" + "b" * 32
os.environ["CSRF_SECRET_KEY"] = "test-csrf-secret-" + "c" * 32
os.environ["COOKIE_SECURE"] = "false"
os.environ["REDIS_URL"] = ""
os.environ["SMTP_HOST"] = ""
os.environ["FRONTEND_URL"] = "http://frontend.test"
os.environ["CI"] = "true"

TEST_PASSWORD = "Passw0rd!23"
TEST_EMAIL = "ada@example.com"


class RecordingMailer:
    """Mailer that keeps messages in memory."""

    def __init__(self) -> None:
        self.sent = []

    async def send(self, message) -> None:
        self.sent.append(message)


class FakeClock:
    """Settable UTC clock for throttle and token expiry tests.

    Starts at the real current second: PyJWT checks expiry against the
    wall clock, so issued tokens must be fresh.
    """

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime.now(UTC).replace(microsecond=0)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


# --- Database Fixtures ---


@pytest_asyncio.fixture(scope="function")
async def db_engine():
    """Create an in-memory SQLite engine with all tables."""
    from app.core.database import Base
    import app.models  # noqa: F401

    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest.fixture
def session_maker(db_engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture(scope="function")
async def db_session(session_maker) -> AsyncGenerator[AsyncSession, None]:
    """Create a database session for testing."""
    async with session_maker() as session:
        yield session
        await session.rollback()


# --- Collaborator Fixtures ---


@pytest.fixture
def denylist():
    from app.services.token_denylist import InMemoryTokenDenylist

    return InMemoryTokenDenylist()


@pytest.fixture
def mailer() -> RecordingMailer:
    return RecordingMailer()


# --- HTTP Client Fixtures ---


@pytest_asyncio.fixture(scope="function")
async def async_client(
    session_maker, denylist, mailer
) -> AsyncGenerator[AsyncClient, None]:
    """Async test client with database, denylist and mailer overrides.

    Requests go out without a CSRF header; use api_client for that.
    """
    from app.api.deps import get_mailer, get_token_denylist
    from app.core.database import get_db
    from app.main import app

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        async with session_maker() as session:
            try:
                yield session
                await session.commit()
            except BaseException:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_token_denylist] = lambda: denylist
    app.dependency_overrides[get_mailer] = lambda: mailer

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()


@pytest_asyncio.fixture(scope="function")
async def api_client(async_client: AsyncClient) -> AsyncClient:
    """Client holding a CSRF cookie and sending the matching header."""
    response = await async_client.get("/auth/csrf-token")
    assert response.status_code == 200
    async_client.headers["X-CSRF-Token"] = response.json()["csrf_token"]
    return async_client


# --- Test Factories ---


@pytest.fixture
def user_factory(session_maker) -> Callable:
    """Factory for creating committed test users."""
    from app.services.auth import hash_password
    from app.services.users import UserRepository

    async def _create_user(
        email: str = TEST_EMAIL,
        password: str = TEST_PASSWORD,
        first_name: str = "Ada",
        last_name: str = "Lovelace",
        **kwargs,
    ):
        async with session_maker() as session:
            user = await UserRepository(session).create(
                email=email,
                password_hash=hash_password(password),
                first_name=first_name,
                last_name=last_name,
            )
            for key, value in kwargs.items():
                setattr(user, key, value)
            await session.commit()
            return user

    return _create_user


@pytest_asyncio.fixture
async def member(user_factory):
    """A registered, verified member."""
    return await user_factory(is_verified=True)


@pytest_asyncio.fixture
async def member_client(api_client: AsyncClient, member) -> AsyncClient:
    """Client signed in as `member` (session cookies in its jar)."""
    response = await api_client.post(
        "/auth/login", json={"email": TEST_EMAIL, "password": TEST_PASSWORD}
    )
    assert response.status_code == 200
    return api_client
