"""Task dependency edges with circular-dependency detection."""

from collections import defaultdict
from collections.abc import Iterable, Mapping

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from gigster.core.logging import get_logger
from gigster.models.task import Task, TaskDependency
from gigster.workflows.errors import (
    ConflictError,
    DocumentNotFoundError,
    InvalidOperationError,
)

logger = get_logger(__name__)


def would_create_cycle(
    depends_on: Mapping[int, Iterable[int]], task_id: int, depends_on_task_id: int
) -> bool:
    """Whether adding ``task_id -> depends_on_task_id`` closes a cycle.

    Walks everything ``depends_on_task_id`` already (transitively) depends on;
    reaching ``task_id`` means the new edge would loop. A self-edge is a cycle.
    """
    visited: set[int] = set()
    stack = [depends_on_task_id]
    while stack:
        current = stack.pop()
        if current == task_id:
            return True
        if current in visited:
            continue
        visited.add(current)
        stack.extend(depends_on.get(current, ()))
    return False


async def load_dependency_graph(session: AsyncSession) -> dict[int, list[int]]:
    result = await session.execute(
        select(TaskDependency.task_id, TaskDependency.depends_on_task_id)
    )
    graph: dict[int, list[int]] = defaultdict(list)
    for task_id, depends_on_task_id in result.all():
        graph[task_id].append(depends_on_task_id)
    return graph


async def add_dependency(
    session: AsyncSession, task_id: int, depends_on_task_id: int
) -> TaskDependency:
    """Insert an edge after checking both tasks exist and no cycle forms.

    Raises:
        DocumentNotFoundError: If either task is missing.
        InvalidOperationError: If the edge would create a cycle.
        ConflictError: If the edge already exists.
    """
    for identifier in (task_id, depends_on_task_id):
        if await session.get(Task, identifier) is None:
            raise DocumentNotFoundError("Task", identifier)

    graph = await load_dependency_graph(session)
    if depends_on_task_id in graph.get(task_id, ()):
        raise ConflictError("Dependency already exists")
    if would_create_cycle(graph, task_id, depends_on_task_id):
        logger.info(
            "task_dependency_cycle_rejected",
            task_id=task_id,
            depends_on_task_id=depends_on_task_id,
        )
        raise InvalidOperationError("Cannot create circular dependency")

    dependency = TaskDependency(task_id=task_id, depends_on_task_id=depends_on_task_id)
    session.add(dependency)
    await session.flush()
    logger.info(
        "task_dependency_created",
        task_id=task_id,
        depends_on_task_id=depends_on_task_id,
    )
    return dependency
