"""Health check endpoint for infrastructure verification."""

from typing import Annotated

from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from gigster.api.deps import get_db, get_redis
from gigster.core.logging import get_logger
from gigster.core.redis import check_redis_health

logger = get_logger(__name__)

router = APIRouter(prefix="/api", tags=["health"])


class HealthResponse(BaseModel):
    """Health check response model."""

    status: str
    db: str
    redis: str
    email: str
    sms: str


@router.get("/health", response_model=HealthResponse)
async def health_check(
    request: Request,
    db: Annotated[AsyncSession, Depends(get_db)],
) -> HealthResponse:
    """Report database and Redis connectivity plus provider configuration.

    Only the database is required for ``ok``; Redis and the outbound
    providers degrade gracefully and are reported for visibility.
    """
    try:
        await db.execute(text("SELECT 1"))
        db_status = "connected"
    except Exception as e:
        logger.exception("database_health_check_failed", error=str(e))
        db_status = "disconnected"

    redis_pool = await get_redis(request)
    redis_status = "connected" if await check_redis_health(redis_pool) else "disconnected"

    notifier = getattr(request.app.state, "notifier", None)
    email_status = "configured" if notifier and notifier.email.configured else "disabled"
    sms_status = "configured" if notifier and notifier.sms.configured else "disabled"

    return HealthResponse(
        status="ok" if db_status == "connected" else "degraded",
        db=db_status,
        redis=redis_status,
        email=email_status,
        sms=sms_status,
    )
