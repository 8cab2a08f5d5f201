"""Circuit breakers for outbound providers (email, SMS) with Redis state.

A provider that keeps failing is short-circuited for ``reset_timeout``
seconds so requests stop paying its timeout. State lives in Redis so every
process shares one view of provider health.

Configuration:
    - fail_max: 5 consecutive failures to open circuit
    - reset_timeout: 60 seconds before entering half-open state
    - success_threshold: 2 successes in half-open to close circuit
"""

import asyncio
import time
from enum import Enum
from typing import Awaitable, Callable, ParamSpec, TypeVar

import pybreaker
import redis
import structlog

logger = structlog.get_logger()

P = ParamSpec("P")
T = TypeVar("T")


class CircuitState(str, Enum):
    """Circuit breaker states."""

    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


class CircuitOpenError(Exception):
    """Raised instead of calling a provider whose circuit is open."""

    def __init__(self, provider: str) -> None:
        self.provider = provider
        super().__init__(f"Circuit for provider '{provider}' is open")


class RedisCircuitBreakerStorage(pybreaker.CircuitBreakerStorage):
    """Redis-backed storage for circuit breaker state."""

    BASE_NAME = "gigster:breaker"

    def __init__(self, name: str, redis_client: redis.Redis) -> None:
        super().__init__(name)
        self._redis = redis_client
        self._state_key = f"{self.BASE_NAME}:{name}:state"
        self._counter_key = f"{self.BASE_NAME}:{name}:counter"
        self._opened_at_key = f"{self.BASE_NAME}:{name}:opened_at"

    @property
    def state(self) -> str:
        state = self._redis.get(self._state_key)
        if state is None:
            return pybreaker.STATE_CLOSED
        return state.decode("utf-8") if isinstance(state, bytes) else str(state)

    @state.setter
    def state(self, state: str) -> None:
        self._redis.set(self._state_key, state)

    @property
    def counter(self) -> int:
        counter = self._redis.get(self._counter_key)
        return 0 if counter is None else int(counter)

    @counter.setter
    def counter(self, value: int) -> None:
        self._redis.set(self._counter_key, value)

    def increment_counter(self) -> int:
        return int(self._redis.incr(self._counter_key))

    def reset_counter(self) -> None:
        self._redis.set(self._counter_key, 0)

    @property
    def opened_at(self) -> float | None:
        opened_at = self._redis.get(self._opened_at_key)
        return None if opened_at is None else float(opened_at)

    @opened_at.setter
    def opened_at(self, value: float | None) -> None:
        if value is None:
            self._redis.delete(self._opened_at_key)
        else:
            self._redis.set(self._opened_at_key, value)

    def reset(self) -> None:
        self._redis.delete(self._state_key, self._counter_key, self._opened_at_key)


class ProviderCircuitBreaker:
    """Async circuit breaker around one outbound provider.

    Usage:
        breaker = ProviderCircuitBreaker("email", redis.from_url(url))
        result = await breaker.call(provider.send, message)
    """

    DEFAULT_FAIL_MAX = 5
    DEFAULT_RESET_TIMEOUT = 60
    DEFAULT_SUCCESS_THRESHOLD = 2

    def __init__(
        self,
        name: str,
        redis_client: redis.Redis,
        fail_max: int = DEFAULT_FAIL_MAX,
        reset_timeout: int = DEFAULT_RESET_TIMEOUT,
        success_threshold: int = DEFAULT_SUCCESS_THRESHOLD,
    ) -> None:
        self.name = name
        self.fail_max = fail_max
        self.reset_timeout = reset_timeout
        self.success_threshold = success_threshold
        self._storage = RedisCircuitBreakerStorage(name, redis_client)

    async def state(self) -> CircuitState:
        """Read the shared state from Redis."""
        raw = await asyncio.to_thread(lambda: self._storage.state)
        if raw == pybreaker.STATE_OPEN:
            return CircuitState.OPEN
        if raw == pybreaker.STATE_HALF_OPEN:
            return CircuitState.HALF_OPEN
        return CircuitState.CLOSED

    async def _set(
        self,
        state: str,
        counter: int | None = None,
        opened_at: float | None | bool = False,
    ) -> None:
        def _write() -> None:
            self._storage.state = state
            if counter is not None:
                self._storage.counter = counter
            if opened_at is not False:
                self._storage.opened_at = opened_at

        await asyncio.to_thread(_write)

    async def call(
        self,
        func: Callable[P, Awaitable[T]],
        *args: P.args,
        **kwargs: P.kwargs,
    ) -> T:
        """Call ``func`` unless the circuit is open.

        Raises:
            CircuitOpenError: If the circuit is open and not yet due for a probe.
            Exception: Any exception from the wrapped function.
        """
        state = await self.state()
        if state == CircuitState.OPEN:
            state = await self._maybe_half_open()
            if state == CircuitState.OPEN:
                logger.warning("provider_circuit_rejected", provider=self.name)
                raise CircuitOpenError(self.name)

        try:
            result = await func(*args, **kwargs)
        except Exception:
            await self._on_failure(state)
            raise

        await self._on_success(state)
        return result

    async def _maybe_half_open(self) -> CircuitState:
        opened_at = await asyncio.to_thread(lambda: self._storage.opened_at)
        if opened_at is not None and time.time() - opened_at < self.reset_timeout:
            return CircuitState.OPEN
        await self._set(pybreaker.STATE_HALF_OPEN, counter=0)
        logger.info("provider_circuit_half_open", provider=self.name)
        return CircuitState.HALF_OPEN

    async def _on_success(self, state: CircuitState) -> None:
        if state == CircuitState.HALF_OPEN:
            successes = await asyncio.to_thread(self._storage.increment_counter)
            if successes >= self.success_threshold:
                await self._set(pybreaker.STATE_CLOSED, counter=0, opened_at=None)
                logger.info("provider_circuit_closed", provider=self.name)
        else:
            await asyncio.to_thread(self._storage.reset_counter)

    async def _on_failure(self, state: CircuitState) -> None:
        if state == CircuitState.HALF_OPEN:
            await self._set(pybreaker.STATE_OPEN, counter=0, opened_at=time.time())
            logger.warning("provider_circuit_reopened", provider=self.name)
            return

        failures = await asyncio.to_thread(self._storage.increment_counter)
        if failures >= self.fail_max:
            await self._set(pybreaker.STATE_OPEN, opened_at=time.time())
            logger.warning(
                "provider_circuit_opened", provider=self.name, failure_count=failures
            )

    def reset(self) -> None:
        """Clear shared state (closed, zero failures)."""
        self._storage.reset()


def build_provider_breakers(
    redis_client: redis.Redis | None,
    providers: tuple[str, ...] = ("email", "sms"),
) -> dict[str, ProviderCircuitBreaker]:
    """Create one breaker per provider, or none when Redis is unreachable."""
    if redis_client is None:
        return {}
    try:
        redis_client.ping()
    except redis.RedisError as exc:
        logger.warning("provider_breakers_disabled", error=str(exc))
        return {}
    return {name: ProviderCircuitBreaker(name, redis_client) for name in providers}


__all__ = [
    "CircuitOpenError",
    "CircuitState",
    "ProviderCircuitBreaker",
    "RedisCircuitBreakerStorage",
    "build_provider_breakers",
]
