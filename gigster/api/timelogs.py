"""Time tracking API endpoints (start/stop timer and manual edits)."""

from datetime import datetime, timezone

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, Field
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from gigster.api.deps import ensure_owner_or_admin, get_current_user, get_db
from gigster.api.schemas import RequestModel
from gigster.core.logging import get_logger
from gigster.models.base import utcnow
from gigster.models.client import Project
from gigster.models.task import Task, TimeLog
from gigster.models.user import User

logger = get_logger(__name__)

router = APIRouter(prefix="/api/timelogs", tags=["timelogs"])


class TimerStartRequest(RequestModel):
    description: str = Field(min_length=1, max_length=500)
    task_id: int | None = Field(default=None, gt=0)
    project_id: int | None = Field(default=None, gt=0)


class TimeLogUpdateRequest(RequestModel):
    """Manual correction of a logged session."""

    description: str | None = Field(default=None, min_length=1, max_length=500)
    task_id: int | None = Field(default=None, gt=0)
    project_id: int | None = Field(default=None, gt=0)
    start_time: datetime | None = None
    end_time: datetime | None = None


class TimeLogResponse(BaseModel):
    id: int
    user_id: int
    task_id: int | None
    project_id: int | None
    description: str
    start_time: datetime
    end_time: datetime | None
    duration_seconds: int | None
    is_active: bool
    is_manual_entry: bool
    edit_history: list[dict]


class TimeLogListResponse(BaseModel):
    items: list[TimeLogResponse]
    total: int
    limit: int
    offset: int


def _to_timelog_response(log: TimeLog) -> TimeLogResponse:
    return TimeLogResponse(
        id=log.id,
        user_id=log.user_id,
        task_id=log.task_id,
        project_id=log.project_id,
        description=log.description,
        start_time=log.start_time,
        end_time=log.end_time,
        duration_seconds=log.duration_seconds,
        is_active=log.is_active,
        is_manual_entry=log.is_manual_entry,
        edit_history=list(log.edit_history or []),
    )


async def _active_timer(db: AsyncSession, user_id: int) -> TimeLog | None:
    result = await db.execute(
        select(TimeLog)
        .where(TimeLog.user_id == user_id, TimeLog.is_active.is_(True))
        .order_by(TimeLog.start_time.desc())
        .limit(1)
    )
    return result.scalar_one_or_none()


def _naive_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


async def _validate_references(
    db: AsyncSession, task_id: int | None, project_id: int | None
) -> None:
    if task_id is not None and await db.get(Task, task_id) is None:
        raise HTTPException(status_code=404, detail="Task not found")
    if project_id is not None and await db.get(Project, project_id) is None:
        raise HTTPException(status_code=404, detail="Project not found")


def _stop(log: TimeLog) -> None:
    log.end_time = utcnow()
    log.duration_seconds = max(0, int((log.end_time - log.start_time).total_seconds()))
    log.is_active = False


@router.post("/start", response_model=TimeLogResponse, status_code=status.HTTP_201_CREATED)
async def start_timer(
    payload: TimerStartRequest,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
) -> TimeLogResponse:
    """Start a timer, stopping the caller's running one first."""
    await _validate_references(db, payload.task_id, payload.project_id)

    previous = await _active_timer(db, user.id)
    if previous is not None:
        _stop(previous)
        logger.info("timer_stopped", time_log_id=previous.id, reason="superseded")

    log = TimeLog(
        user_id=user.id,
        task_id=payload.task_id,
        project_id=payload.project_id,
        description=payload.description.strip(),
        start_time=utcnow(),
        is_active=True,
        is_manual_entry=False,
        edit_history=[],
    )
    db.add(log)
    await db.flush()
    logger.info("timer_started", time_log_id=log.id)
    return _to_timelog_response(log)


@router.post("/stop", response_model=TimeLogResponse)
async def stop_timer(
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
) -> TimeLogResponse:
    log = await _active_timer(db, user.id)
    if log is None:
        raise HTTPException(status_code=404, detail="No active timer")
    _stop(log)
    await db.flush()
    logger.info("timer_stopped", time_log_id=log.id, duration_seconds=log.duration_seconds)
    return _to_timelog_response(log)


@router.get("/active", response_model=TimeLogResponse | None)
async def get_active_timer(
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
) -> TimeLogResponse | None:
    """The caller's running timer, or ``null``."""
    log = await _active_timer(db, user.id)
    return _to_timelog_response(log) if log else None


@router.get("", response_model=TimeLogListResponse)
async def list_timelogs(
    limit: int = Query(default=20, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
) -> TimeLogListResponse:
    """The caller's time logs, newest first."""
    total = int(
        await db.scalar(select(func.count(TimeLog.id)).where(TimeLog.user_id == user.id))
        or 0
    )
    result = await db.execute(
        select(TimeLog)
        .where(TimeLog.user_id == user.id)
        .order_by(TimeLog.start_time.desc(), TimeLog.id.desc())
        .limit(limit)
        .offset(offset)
    )
    return TimeLogListResponse(
        items=[_to_timelog_response(log) for log in result.scalars().all()],
        total=total,
        limit=limit,
        offset=offset,
    )


async def _get_owned_timelog(db: AsyncSession, time_log_id: int, user: User) -> TimeLog:
    log = await db.get(TimeLog, time_log_id)
    if log is None:
        raise HTTPException(status_code=404, detail="Time log not found")
    ensure_owner_or_admin(user, log.user_id)
    return log


@router.put("/{time_log_id}", response_model=TimeLogResponse)
async def update_timelog(
    time_log_id: int,
    payload: TimeLogUpdateRequest,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
) -> TimeLogResponse:
    """Correct a time log by hand, keeping the previous values in its history.

    Setting ``end_time`` on a running timer stops it.
    """
    log = await _get_owned_timelog(db, time_log_id, user)
    updates = payload.model_dump(exclude_unset=True)
    await _validate_references(db, updates.get("task_id"), updates.get("project_id"))

    start_time = (
        _naive_utc(updates["start_time"]) if updates.get("start_time") else log.start_time
    )
    end_time = _naive_utc(updates["end_time"]) if updates.get("end_time") else log.end_time
    if end_time is not None and end_time < start_time:
        raise HTTPException(status_code=400, detail="end_time must not precede start_time")

    previous = {
        "start_time": log.start_time.isoformat(),
        "end_time": log.end_time.isoformat() if log.end_time else None,
        "duration_seconds": log.duration_seconds,
        "description": log.description,
    }
    log.edit_history = [
        *(log.edit_history or []),
        {
            "timestamp": utcnow().isoformat(),
            "edited_by": user.id,
            "previous_values": previous,
            "reason": "Manual edit",
        },
    ]

    if updates.get("description") is not None:
        log.description = updates["description"].strip()
    for name in ("task_id", "project_id"):
        if name in updates:
            setattr(log, name, updates[name])
    log.start_time = start_time
    log.end_time = end_time
    if end_time is not None:
        log.duration_seconds = int((end_time - start_time).total_seconds())
        log.is_active = False
    log.is_manual_entry = True

    await db.flush()
    logger.info("time_log_edited", time_log_id=log.id, edited_by=user.id)
    return _to_timelog_response(log)


@router.delete("/{time_log_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_timelog(
    time_log_id: int,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
) -> None:
    log = await _get_owned_timelog(db, time_log_id, user)
    await db.delete(log)
    await db.flush()
    logger.info("time_log_deleted", time_log_id=time_log_id, deleted_by=user.id)
