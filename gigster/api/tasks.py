"""Task management API endpoints (tasks, progress notes, dependencies)."""

import uuid
from datetime import date, datetime

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, Field
from sqlalchemy import delete, func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from gigster.api.deps import get_current_user, get_db, get_notifier, require_admin
from gigster.api.schemas import RequestModel
from gigster.core.logging import get_logger
from gigster.models.base import utcnow
from gigster.models.client import Project
from gigster.models.task import (
    Task,
    TaskDependency,
    TaskPriority,
    TaskStatus,
    TimeLog,
)
from gigster.models.user import User
from gigster.notifications.dispatcher import NotificationDispatcher
from gigster.workflows.dependencies import add_dependency

logger = get_logger(__name__)

router = APIRouter(prefix="/api/tasks", tags=["tasks"])
dependencies_router = APIRouter(prefix="/api/task-dependencies", tags=["tasks"])


class TaskCreateRequest(RequestModel):
    """Payload for creating a task."""

    description: str = Field(min_length=1)
    status: TaskStatus = TaskStatus.PENDING
    priority: TaskPriority = TaskPriority.MEDIUM
    due_date: datetime | None = None
    assigned_to_id: int | None = Field(default=None, gt=0)
    project_id: int | None = Field(default=None, gt=0)
    parent_task_id: int | None = Field(default=None, gt=0)
    notes: str | None = None


class TaskUpdateRequest(RequestModel):
    """Partial update; omitted fields are left unchanged."""

    description: str | None = Field(default=None, min_length=1)
    status: TaskStatus | None = None
    priority: TaskPriority | None = None
    due_date: datetime | None = None
    assigned_to_id: int | None = Field(default=None, gt=0)
    project_id: int | None = Field(default=None, gt=0)
    notes: str | None = None


class ProgressNoteRequest(RequestModel):
    note_date: date = Field(alias="date")
    comment: str = Field(min_length=1)


class TaskResponse(BaseModel):
    """Task response model."""

    id: int
    description: str
    status: str
    priority: str
    due_date: datetime | None
    assigned_to_id: int | None
    created_by_id: int
    project_id: int | None
    parent_task_id: int | None
    notes: str | None
    progress_notes: list[dict]
    created_at: datetime
    updated_at: datetime | None


class TaskListResponse(BaseModel):
    """Paginated task list response."""

    items: list[TaskResponse]
    total: int
    limit: int
    offset: int


class DependencyCreateRequest(RequestModel):
    task_id: int = Field(gt=0)
    depends_on_task_id: int = Field(gt=0)


class DependencyResponse(BaseModel):
    id: int
    task_id: int
    depends_on_task_id: int
    created_at: datetime


def _to_task_response(task: Task) -> TaskResponse:
    """Map SQLAlchemy task model to response model."""
    return TaskResponse(
        id=task.id,
        description=task.description,
        status=task.status.value,
        priority=task.priority.value,
        due_date=task.due_date,
        assigned_to_id=task.assigned_to_id,
        created_by_id=task.created_by_id,
        project_id=task.project_id,
        parent_task_id=task.parent_task_id,
        notes=task.notes,
        progress_notes=list(task.progress_notes or []),
        created_at=task.created_at,
        updated_at=task.updated_at,
    )


async def _get_task_or_404(db: AsyncSession, task_id: int) -> Task:
    """Load task or raise 404."""
    task = await db.get(Task, task_id)
    if task is None:
        raise HTTPException(status_code=404, detail="Task not found")
    return task


def _can_view(user: User, task: Task) -> bool:
    return user.is_admin or user.id in (task.assigned_to_id, task.created_by_id)


def _can_edit(user: User, task: Task) -> bool:
    """Assignee or admin; the creator too while nobody is assigned."""
    if user.is_admin or task.assigned_to_id == user.id:
        return True
    return task.assigned_to_id is None and task.created_by_id == user.id


async def _validate_references(
    db: AsyncSession,
    assigned_to_id: int | None,
    project_id: int | None,
    parent_task_id: int | None = None,
) -> None:
    if assigned_to_id is not None and await db.get(User, assigned_to_id) is None:
        raise HTTPException(status_code=404, detail="Assigned user not found")
    if project_id is not None and await db.get(Project, project_id) is None:
        raise HTTPException(status_code=404, detail="Project not found")
    if parent_task_id is not None and await db.get(Task, parent_task_id) is None:
        raise HTTPException(status_code=404, detail="Parent task not found")


async def _notify_high_priority(
    db: AsyncSession, notifier: NotificationDispatcher, task: Task
) -> None:
    """Commit, then tell the assignee about a high-priority task (best-effort)."""
    if task.priority != TaskPriority.HIGH or task.assigned_to_id is None:
        return
    assignee = await db.get(User, task.assigned_to_id)
    if assignee is None:
        return
    project = await db.get(Project, task.project_id) if task.project_id else None
    await db.commit()
    results = await notifier.notify_high_priority_task(
        assignee, task, project_name=project.name if project else None
    )
    logger.info(
        "high_priority_task_notified",
        task_id=task.id,
        outcomes={r.channel: r.status.value for r in results},
    )


@router.post("", response_model=TaskResponse, status_code=status.HTTP_201_CREATED)
async def create_task(
    payload: TaskCreateRequest,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
    notifier: NotificationDispatcher = Depends(get_notifier),
) -> TaskResponse:
    """Create a task owned by the caller."""
    await _validate_references(
        db, payload.assigned_to_id, payload.project_id, payload.parent_task_id
    )
    task = Task(
        description=payload.description.strip(),
        status=payload.status,
        priority=payload.priority,
        due_date=payload.due_date,
        assigned_to_id=payload.assigned_to_id,
        created_by_id=user.id,
        project_id=payload.project_id,
        parent_task_id=payload.parent_task_id,
        notes=payload.notes,
        progress_notes=[],
    )
    db.add(task)
    await db.flush()
    await _notify_high_priority(db, notifier, task)
    return _to_task_response(task)


@router.get("", response_model=TaskListResponse)
async def list_tasks(
    project_id: int | None = Query(default=None, gt=0),
    status_filter: TaskStatus | None = Query(default=None, alias="status"),
    priority: TaskPriority | None = Query(default=None),
    limit: int = Query(default=20, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
) -> TaskListResponse:
    """List tasks; non-admins see only tasks they created or are assigned."""
    filters = []
    if not user.is_admin:
        filters.append(
            or_(Task.assigned_to_id == user.id, Task.created_by_id == user.id)
        )
    if project_id is not None:
        filters.append(Task.project_id == project_id)
    if status_filter is not None:
        filters.append(Task.status == status_filter)
    if priority is not None:
        filters.append(Task.priority == priority)

    count_stmt = select(func.count(Task.id))
    list_stmt = select(Task).order_by(Task.created_at.desc(), Task.id.desc())
    if filters:
        count_stmt = count_stmt.where(*filters)
        list_stmt = list_stmt.where(*filters)

    total = int((await db.execute(count_stmt)).scalar() or 0)
    tasks = (await db.execute(list_stmt.limit(limit).offset(offset))).scalars().all()

    return TaskListResponse(
        items=[_to_task_response(task) for task in tasks],
        total=total,
        limit=limit,
        offset=offset,
    )


@router.get("/{task_id}", response_model=TaskResponse)
async def get_task(
    task_id: int,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
) -> TaskResponse:
    """Get task by ID."""
    task = await _get_task_or_404(db, task_id)
    if not _can_view(user, task):
        raise HTTPException(status_code=403, detail="Access denied")
    return _to_task_response(task)


@router.get("/{task_id}/subtasks", response_model=list[TaskResponse])
async def list_subtasks(
    task_id: int,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
) -> list[TaskResponse]:
    task = await _get_task_or_404(db, task_id)
    if not _can_view(user, task):
        raise HTTPException(status_code=403, detail="Access denied")
    result = await db.execute(
        select(Task).where(Task.parent_task_id == task_id).order_by(Task.id)
    )
    return [_to_task_response(t) for t in result.scalars().all()]


@router.patch("/{task_id}", response_model=TaskResponse)
async def update_task(
    task_id: int,
    payload: TaskUpdateRequest,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
    notifier: NotificationDispatcher = Depends(get_notifier),
) -> TaskResponse:
    """Partially update a task (assignee or admin)."""
    task = await _get_task_or_404(db, task_id)
    if not _can_edit(user, task):
        raise HTTPException(status_code=403, detail="Access denied")

    updates = payload.model_dump(exclude_unset=True)
    await _validate_references(db, updates.get("assigned_to_id"), updates.get("project_id"))

    was_notifiable = (task.priority, task.assigned_to_id)
    for name, value in updates.items():
        if name in ("description", "status", "priority") and value is None:
            continue
        setattr(task, name, value.strip() if name == "description" else value)
    await db.flush()

    if (task.priority, task.assigned_to_id) != was_notifiable:
        await _notify_high_priority(db, notifier, task)
    return _to_task_response(task)


@router.post("/{task_id}/progress", response_model=TaskResponse)
async def add_progress_note(
    task_id: int,
    payload: ProgressNoteRequest,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
) -> TaskResponse:
    """Append a dated progress note."""
    task = await _get_task_or_404(db, task_id)
    if not _can_edit(user, task):
        raise HTTPException(status_code=403, detail="Access denied")

    comment = payload.comment.strip()
    if not comment:
        raise HTTPException(status_code=400, detail="Date and comment are required")
    note = {
        "id": str(uuid.uuid4()),
        "date": payload.note_date.isoformat(),
        "comment": comment,
        "created_at": utcnow().isoformat(),
    }
    task.progress_notes = [*(task.progress_notes or []), note]
    await db.flush()
    return _to_task_response(task)


@router.delete("/{task_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_task(
    task_id: int,
    db: AsyncSession = Depends(get_db),
    _admin: User = Depends(require_admin),
) -> None:
    """Delete a task and its dependency edges (admin only)."""
    task = await _get_task_or_404(db, task_id)
    await db.execute(
        delete(TaskDependency).where(
            or_(
                TaskDependency.task_id == task_id,
                TaskDependency.depends_on_task_id == task_id,
            )
        )
    )
    await db.execute(
        update(TimeLog).where(TimeLog.task_id == task_id).values(task_id=None)
    )
    await db.delete(task)
    await db.flush()


@router.get("/{task_id}/dependencies", response_model=list[DependencyResponse])
async def list_task_dependencies(
    task_id: int,
    db: AsyncSession = Depends(get_db),
    _user: User = Depends(get_current_user),
) -> list[DependencyResponse]:
    await _get_task_or_404(db, task_id)
    result = await db.execute(
        select(TaskDependency)
        .where(TaskDependency.task_id == task_id)
        .order_by(TaskDependency.id)
    )
    return [_to_dependency_response(dep) for dep in result.scalars().all()]


def _to_dependency_response(dependency: TaskDependency) -> DependencyResponse:
    return DependencyResponse(
        id=dependency.id,
        task_id=dependency.task_id,
        depends_on_task_id=dependency.depends_on_task_id,
        created_at=dependency.created_at,
    )


@dependencies_router.post(
    "", response_model=DependencyResponse, status_code=status.HTTP_201_CREATED
)
async def create_task_dependency(
    payload: DependencyCreateRequest,
    db: AsyncSession = Depends(get_db),
    _user: User = Depends(get_current_user),
) -> DependencyResponse:
    """Add an edge; 400 if it would create a circular dependency."""
    dependency = await add_dependency(db, payload.task_id, payload.depends_on_task_id)
    return _to_dependency_response(dependency)


@dependencies_router.delete("/{dependency_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_task_dependency(
    dependency_id: int,
    db: AsyncSession = Depends(get_db),
    _user: User = Depends(get_current_user),
) -> None:
    dependency = await db.get(TaskDependency, dependency_id)
    if dependency is None:
        raise HTTPException(status_code=404, detail="Dependency not found")
    await db.delete(dependency)
    await db.flush()
