"""Pytest configuration and shared fixtures for tests."""

import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("SWEEPS_ENABLED", "false")

from collections.abc import AsyncGenerator  # noqa: E402
from dataclasses import dataclass  # noqa: E402
from unittest.mock import AsyncMock  # noqa: E402

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy.ext.asyncio import (  # noqa: E402
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool  # noqa: E402

from gigster.api.deps import get_db, get_notifier  # noqa: E402
from gigster.core.database import session_scope  # noqa: E402
from gigster.main import app  # noqa: E402
from gigster.models import Base, Client, User, UserRole  # noqa: E402
from gigster.notifications.dispatcher import NotificationDispatcher  # noqa: E402
from gigster.notifications.email import EmailProvider  # noqa: E402
from gigster.notifications.sms import SmsProvider  # noqa: E402


@dataclass
class Users:
    admin: User
    alice: User
    bob: User


def auth(user: User) -> dict[str, str]:
    """Headers identifying ``user`` the way the gateway does."""
    return {"X-User-Id": str(user.id)}


@pytest_asyncio.fixture
async def session_factory() -> AsyncGenerator[async_sessionmaker[AsyncSession], None]:
    """Create a fresh in-memory sqlite schema per test."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    factory = async_sessionmaker(engine, expire_on_commit=False, autoflush=False)
    app.state.async_session = factory
    try:
        yield factory
    finally:
        await engine.dispose()


@pytest_asyncio.fixture
async def users(session_factory: async_sessionmaker[AsyncSession]) -> Users:
    """One admin and two regular users."""
    async with session_scope(session_factory) as session:
        admin = User(
            username="admin",
            name="Ada Admin",
            email="admin@example.com",
            role=UserRole.ADMIN,
        )
        alice = User(
            username="alice",
            name="Alice Owner",
            email="alice@example.com",
            role=UserRole.USER,
            phone="+15550001111",
            sms_opt_in=True,
        )
        bob = User(
            username="bob",
            name="Bob Other",
            email="bob@example.com",
            role=UserRole.USER,
            email_opt_in=False,
        )
        session.add_all([admin, alice, bob])
    return Users(admin=admin, alice=alice, bob=bob)


@pytest_asyncio.fixture
async def client_record(session_factory: async_sessionmaker[AsyncSession]) -> Client:
    async with session_scope(session_factory) as session:
        client = Client(name="Acme Corp", email="billing@acme.example.com")
        session.add(client)
    return client


@pytest.fixture
def email_provider() -> AsyncMock:
    """A configured email provider whose ``send`` is recorded, not delivered."""
    provider = AsyncMock(spec=EmailProvider)
    provider.configured = True
    provider.send.return_value = "msg_123"
    return provider


@pytest.fixture
def sms_provider() -> AsyncMock:
    provider = AsyncMock(spec=SmsProvider)
    provider.configured = True
    provider.send.return_value = "SM123"
    return provider


@pytest.fixture
def dispatcher(email_provider: AsyncMock, sms_provider: AsyncMock) -> NotificationDispatcher:
    return NotificationDispatcher(email=email_provider, sms=sms_provider)


@pytest_asyncio.fixture
async def api_client(
    session_factory: async_sessionmaker[AsyncSession],
    dispatcher: NotificationDispatcher,
) -> AsyncGenerator[AsyncClient, None]:
    """API client with DB and notifier dependency overrides."""

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        async with session_scope(session_factory) as session:
            yield session

    async def override_get_notifier() -> NotificationDispatcher:
        return dispatcher

    app.state.notifier = dispatcher
    app.state.redis = None
    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_notifier] = override_get_notifier
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as client:
        yield client
    app.dependency_overrides.clear()
