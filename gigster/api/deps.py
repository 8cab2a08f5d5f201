"""FastAPI dependency injection for database, Redis, notifications and callers."""

from collections.abc import AsyncGenerator
from typing import TYPE_CHECKING

from fastapi import Depends, Header, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from gigster.core.database import session_scope
from gigster.core.logging import user_id_ctx
from gigster.models.user import User
from gigster.notifications.dispatcher import NotificationDispatcher

if TYPE_CHECKING:
    import redis.asyncio as redis


async def get_db(request: Request) -> AsyncGenerator[AsyncSession, None]:
    """Yield a database session from the app's session factory.

    Args:
        request: FastAPI request containing app state.

    Yields:
        AsyncSession that commits when the handler returns and rolls back
        when it raises.
    """
    async with session_scope(request.app.state.async_session) as session:
        yield session


async def get_redis(request: Request) -> "redis.Redis | None":
    """Get Redis connection pool from app state (None when unavailable)."""
    return getattr(request.app.state, "redis", None)


async def get_notifier(request: Request) -> NotificationDispatcher:
    """Get the shared notification dispatcher from app state."""
    return request.app.state.notifier


async def get_current_user(
    x_user_id: str | None = Header(default=None, alias="X-User-Id"),
    db: AsyncSession = Depends(get_db),
) -> User:
    """Resolve the caller from the gateway-supplied ``X-User-Id`` header.

    Raises:
        HTTPException: 401 if the header is missing or names no user.
    """
    if not x_user_id or not x_user_id.strip().isdigit():
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication required",
        )
    user = await db.get(User, int(x_user_id))
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication required",
        )
    user_id_ctx.set(user.id)
    return user


async def require_admin(user: User = Depends(get_current_user)) -> User:
    """Allow only admins through.

    Raises:
        HTTPException: 403 for non-admin callers.
    """
    if not user.is_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin access required",
        )
    return user


def ensure_owner_or_admin(user: User, owner_id: int | None) -> None:
    """Raise 403 unless ``user`` owns the entity or is an admin."""
    if user.is_admin or owner_id == user.id:
        return
    raise HTTPException(
        status_code=status.HTTP_403_FORBIDDEN,
        detail="You do not have access to this resource",
    )
