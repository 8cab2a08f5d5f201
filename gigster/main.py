"""FastAPI application entry point with lifespan management."""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import redis
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from gigster.api import (
    clients_router,
    contracts_router,
    health_router,
    invoices_router,
    payments_router,
    projects_router,
    proposals_router,
    shared_router,
    task_dependencies_router,
    tasks_router,
    templates_router,
    timelogs_router,
)
from gigster.api.errors import register_exception_handlers
from gigster.api.middleware import RequestContextMiddleware
from gigster.core.config import settings
from gigster.core.database import create_engine, create_session_factory
from gigster.core.logging import configure_logging, get_logger
from gigster.core.redis import check_redis_health, create_redis_pool
from gigster.core.sentry import init_sentry
from gigster.notifications.circuit_breaker import build_provider_breakers
from gigster.notifications.dispatcher import NotificationDispatcher
from gigster.workflows.sweeps import PeriodicSweeper

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Manage application lifecycle resources.

    Startup:
        - Configure structured logging
        - Initialize Sentry error tracking
        - Create database engine and session factory
        - Establish Redis connection pool (optional)
        - Build the notification dispatcher and provider circuit breakers
        - Start the periodic invoice/contract sweeps

    Shutdown:
        - Stop the sweeps
        - Close Redis connections
        - Dispose database engine
    """
    configure_logging()
    logger.info("Starting application", environment=settings.environment)

    init_sentry()

    app.state.db_engine = create_engine()
    app.state.async_session = create_session_factory(app.state.db_engine)
    logger.info("Database engine created")

    # Redis only gates sweeps and backs breaker state; the API runs without it.
    app.state.redis = await create_redis_pool()
    if await check_redis_health(app.state.redis):
        logger.info("Redis pool created")
        breaker_client = redis.Redis.from_url(settings.redis_url, decode_responses=True)
    else:
        logger.warning("Redis unavailable, running without locks or breakers")
        await app.state.redis.aclose()
        app.state.redis = None
        breaker_client = None

    app.state.notifier = NotificationDispatcher.from_settings(
        breakers=build_provider_breakers(breaker_client)
    )

    sweeper = None
    if settings.sweeps_enabled:
        sweeper = PeriodicSweeper(
            app.state.async_session,
            app.state.notifier,
            app.state.redis,
            settings.sweep_interval_seconds,
        )
        sweeper.start()

    yield

    logger.info("Shutting down application")

    if sweeper is not None:
        await sweeper.stop()

    if app.state.redis is not None:
        await app.state.redis.aclose()
        logger.info("Redis pool closed")
    if breaker_client is not None:
        breaker_client.close()

    await app.state.db_engine.dispose()
    logger.info("Database engine disposed")


app = FastAPI(
    title="Gigster Garage",
    description="Proposals, invoices, contracts and task tracking for small businesses",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.add_middleware(RequestContextMiddleware)

register_exception_handlers(app)

app.include_router(health_router)
app.include_router(clients_router)
app.include_router(projects_router)
app.include_router(tasks_router)
app.include_router(task_dependencies_router)
app.include_router(timelogs_router)
app.include_router(templates_router)
app.include_router(proposals_router)
app.include_router(shared_router)
app.include_router(invoices_router)
app.include_router(payments_router)
app.include_router(contracts_router)
