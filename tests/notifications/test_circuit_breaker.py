"""Tests for provider circuit breakers with Redis persistence.

These tests require a running Redis instance. They will be skipped
if Redis is not available.
"""

from unittest.mock import AsyncMock

import pytest
import redis

from gigster.notifications.circuit_breaker import (
    CircuitOpenError,
    CircuitState,
    ProviderCircuitBreaker,
    build_provider_breakers,
)


def redis_available() -> bool:
    """Check if Redis is available for testing."""
    try:
        client = redis.from_url("redis://localhost:6379")
        client.ping()
        return True
    except redis.ConnectionError:
        return False


pytestmark = pytest.mark.skipif(
    not redis_available(),
    reason="Redis not available",
)


@pytest.fixture
def redis_client():
    """Provide a Redis client for tests."""
    client = redis.from_url("redis://localhost:6379")
    yield client
    keys = client.keys("gigster:breaker:test_*")
    if keys:
        client.delete(*keys)
    client.close()


@pytest.fixture
def breaker(redis_client):
    cb = ProviderCircuitBreaker(
        "test_email", redis_client, fail_max=2, reset_timeout=30, success_threshold=2
    )
    yield cb
    cb.reset()


class TestProviderCircuitBreaker:
    @pytest.mark.asyncio
    async def test_starts_closed(self, breaker) -> None:
        assert await breaker.state() == CircuitState.CLOSED

    @pytest.mark.asyncio
    async def test_opens_after_fail_max(self, breaker) -> None:
        failing = AsyncMock(side_effect=RuntimeError("down"))

        for _ in range(2):
            with pytest.raises(RuntimeError):
                await breaker.call(failing)

        assert await breaker.state() == CircuitState.OPEN
        with pytest.raises(CircuitOpenError):
            await breaker.call(failing)
        assert failing.await_count == 2

    @pytest.mark.asyncio
    async def test_success_resets_failure_count(self, breaker) -> None:
        failing = AsyncMock(side_effect=RuntimeError("down"))
        working = AsyncMock(return_value="ok")

        with pytest.raises(RuntimeError):
            await breaker.call(failing)
        assert await breaker.call(working) == "ok"
        with pytest.raises(RuntimeError):
            await breaker.call(failing)

        assert await breaker.state() == CircuitState.CLOSED

    @pytest.mark.asyncio
    async def test_state_shared_between_instances(self, breaker, redis_client) -> None:
        failing = AsyncMock(side_effect=RuntimeError("down"))
        for _ in range(2):
            with pytest.raises(RuntimeError):
                await breaker.call(failing)

        other = ProviderCircuitBreaker("test_email", redis_client, fail_max=2)

        assert await other.state() == CircuitState.OPEN


def test_no_breakers_without_redis() -> None:
    assert build_provider_breakers(None) == {}
