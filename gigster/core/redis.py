"""Redis connection pool for sweep locks, health checks and breaker state."""

import redis.asyncio as redis

from gigster.core.config import settings
from gigster.core.logging import get_logger

logger = get_logger(__name__)


async def create_redis_pool() -> redis.Redis:
    """Create Redis connection pool.

    Usage in lifespan:
        app.state.redis = await create_redis_pool()
        yield
        await app.state.redis.aclose()

    Returns:
        Redis connection pool configured with settings.
    """
    return redis.Redis.from_url(
        settings.redis_url,
        decode_responses=True,
        max_connections=20,
    )


async def check_redis_health(pool: redis.Redis | None) -> bool:
    """Check if Redis is responding.

    Args:
        pool: Redis connection pool to check.

    Returns:
        True if Redis responds to ping, False otherwise.
    """
    if pool is None:
        return False
    try:
        await pool.ping()
        return True
    except Exception as e:
        logger.exception("redis_health_check_failed", error=str(e))
        return False


async def acquire_lock(
    pool: redis.Redis | None, key: str, owner: str, ttl_seconds: int
) -> bool:
    """Try to take a short-lived exclusive lock.

    Returns True when the lock was acquired, or when Redis is unavailable
    (callers then fall back to single-process behaviour).
    """
    if pool is None:
        return True
    try:
        acquired = await pool.set(key, owner, nx=True, ex=max(ttl_seconds, 1))
    except Exception as e:
        logger.warning("redis_lock_unavailable", key=key, error=str(e))
        return True
    return bool(acquired)
