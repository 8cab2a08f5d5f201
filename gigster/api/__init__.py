"""API module exports."""

from gigster.api.clients import router as clients_router
from gigster.api.contracts import router as contracts_router
from gigster.api.deps import get_current_user, get_db, get_notifier, get_redis
from gigster.api.health import router as health_router
from gigster.api.invoices import router as invoices_router
from gigster.api.payments import router as payments_router
from gigster.api.projects import router as projects_router
from gigster.api.proposals import router as proposals_router
from gigster.api.shared import router as shared_router
from gigster.api.tasks import dependencies_router as task_dependencies_router
from gigster.api.tasks import router as tasks_router
from gigster.api.templates import router as templates_router
from gigster.api.timelogs import router as timelogs_router

__all__ = [
    "clients_router",
    "contracts_router",
    "get_current_user",
    "get_db",
    "get_notifier",
    "get_redis",
    "health_router",
    "invoices_router",
    "payments_router",
    "projects_router",
    "proposals_router",
    "shared_router",
    "task_dependencies_router",
    "tasks_router",
    "templates_router",
    "timelogs_router",
]
