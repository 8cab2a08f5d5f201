"""Integration tests against live PostgreSQL and Redis.

Run with ``RUN_INTEGRATION_TESTS=1`` and ``DATABASE_URL``/``REDIS_URL``
pointing at real services.
"""

import os
import uuid

import pytest
import pytest_asyncio
from asgi_lifespan import LifespanManager
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient

from gigster.core.config import settings
from gigster.core.redis import acquire_lock
from gigster.main import app

RUN_INTEGRATION = os.getenv("RUN_INTEGRATION_TESTS") == "1"

pytestmark = [
    pytest.mark.integration,
    pytest.mark.skipif(
        not RUN_INTEGRATION, reason="Set RUN_INTEGRATION_TESTS=1 to enable."
    ),
]


@pytest_asyncio.fixture
async def live_app() -> FastAPI:
    async with LifespanManager(app) as manager:
        yield manager.app


@pytest_asyncio.fixture
async def client(live_app: FastAPI) -> AsyncClient:
    async with AsyncClient(
        transport=ASGITransport(app=live_app),
        base_url="http://test",
    ) as ac:
        yield ac


@pytest.mark.asyncio
async def test_health_reports_live_services_and_providers(client: AsyncClient) -> None:
    response = await client.get("/api/health", headers={"X-Request-ID": "live-check"})

    assert response.status_code == 200
    assert response.headers["X-Request-ID"] == "live-check"
    assert response.json() == {
        "status": "ok",
        "db": "connected",
        "redis": "connected",
        "email": "configured" if settings.resend_api_key else "disabled",
        "sms": "configured" if settings.sms_configured else "disabled",
    }


@pytest.mark.asyncio
async def test_lifespan_wires_breakers_when_redis_is_up(live_app: FastAPI) -> None:
    assert live_app.state.redis is not None
    assert set(live_app.state.notifier.breakers) == {"email", "sms"}


@pytest.mark.asyncio
async def test_sweep_lock_admits_one_owner(live_app: FastAPI) -> None:
    key = f"gigster:test-lock:{uuid.uuid4().hex}"
    try:
        assert await acquire_lock(live_app.state.redis, key, "first", 30)
        assert not await acquire_lock(live_app.state.redis, key, "second", 30)
    finally:
        await live_app.state.redis.delete(key)
