"""Projects API endpoints."""

from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, Field
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from gigster.api.deps import get_current_user, get_db, require_admin
from gigster.api.schemas import RequestModel
from gigster.models.client import Client, Project, ProjectStatus
from gigster.models.proposal import Proposal
from gigster.models.task import Task, TimeLog
from gigster.models.user import User

router = APIRouter(
    prefix="/api/projects",
    tags=["projects"],
    dependencies=[Depends(get_current_user)],
)


class ProjectCreateRequest(RequestModel):
    """Payload for creating a project."""

    name: str = Field(min_length=1, max_length=255)
    description: str | None = None
    status: ProjectStatus = ProjectStatus.ACTIVE
    client_id: int | None = Field(default=None, gt=0)


class ProjectUpdateRequest(RequestModel):
    """Payload for updating a project."""

    name: str | None = Field(default=None, min_length=1, max_length=255)
    description: str | None = None
    status: ProjectStatus | None = None
    client_id: int | None = Field(default=None, gt=0)


class ProjectResponse(BaseModel):
    id: int
    name: str
    description: str | None
    status: str
    client_id: int | None
    created_at: datetime
    updated_at: datetime | None


class ProjectListResponse(BaseModel):
    items: list[ProjectResponse]
    total: int
    limit: int
    offset: int


def _to_project_response(project: Project) -> ProjectResponse:
    return ProjectResponse(
        id=project.id,
        name=project.name,
        description=project.description,
        status=project.status.value,
        client_id=project.client_id,
        created_at=project.created_at,
        updated_at=project.updated_at,
    )


async def _get_project_or_404(db: AsyncSession, project_id: int) -> Project:
    project = await db.get(Project, project_id)
    if project is None:
        raise HTTPException(status_code=404, detail="Project not found")
    return project


async def _ensure_client(db: AsyncSession, client_id: int | None) -> None:
    if client_id is not None and await db.get(Client, client_id) is None:
        raise HTTPException(status_code=404, detail="Client not found")


@router.post("", response_model=ProjectResponse, status_code=status.HTTP_201_CREATED)
async def create_project(
    payload: ProjectCreateRequest,
    db: AsyncSession = Depends(get_db),
) -> ProjectResponse:
    await _ensure_client(db, payload.client_id)
    project = Project(
        name=payload.name.strip(),
        description=payload.description,
        status=payload.status,
        client_id=payload.client_id,
    )
    db.add(project)
    await db.flush()
    return _to_project_response(project)


@router.get("", response_model=ProjectListResponse)
async def list_projects(
    client_id: int | None = Query(default=None, gt=0),
    status_filter: ProjectStatus | None = Query(default=None, alias="status"),
    limit: int = Query(default=20, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
    db: AsyncSession = Depends(get_db),
) -> ProjectListResponse:
    filters = []
    if client_id is not None:
        filters.append(Project.client_id == client_id)
    if status_filter is not None:
        filters.append(Project.status == status_filter)

    count_stmt = select(func.count(Project.id))
    list_stmt = select(Project).order_by(Project.created_at.desc(), Project.id.desc())
    if filters:
        count_stmt = count_stmt.where(*filters)
        list_stmt = list_stmt.where(*filters)

    total = int((await db.execute(count_stmt)).scalar() or 0)
    projects = (await db.execute(list_stmt.limit(limit).offset(offset))).scalars().all()
    return ProjectListResponse(
        items=[_to_project_response(p) for p in projects],
        total=total,
        limit=limit,
        offset=offset,
    )


@router.get("/{project_id}", response_model=ProjectResponse)
async def get_project(
    project_id: int,
    db: AsyncSession = Depends(get_db),
) -> ProjectResponse:
    return _to_project_response(await _get_project_or_404(db, project_id))


@router.patch("/{project_id}", response_model=ProjectResponse)
async def update_project(
    project_id: int,
    payload: ProjectUpdateRequest,
    db: AsyncSession = Depends(get_db),
) -> ProjectResponse:
    project = await _get_project_or_404(db, project_id)
    updates = payload.model_dump(exclude_unset=True)
    if "client_id" in updates:
        await _ensure_client(db, updates["client_id"])
    if updates.get("name") is not None:
        updates["name"] = updates["name"].strip()
    for name, value in updates.items():
        if name in ("name", "status") and value is None:
            continue
        setattr(project, name, value)
    await db.flush()
    return _to_project_response(project)


@router.delete("/{project_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_project(
    project_id: int,
    db: AsyncSession = Depends(get_db),
    _admin: User = Depends(require_admin),
) -> None:
    """Delete a project (admin only)."""
    project = await _get_project_or_404(db, project_id)
    for model in (Task, TimeLog, Proposal):
        count = await db.scalar(
            select(func.count(model.id)).where(model.project_id == project_id)
        )
        if count:
            raise HTTPException(
                status_code=409,
                detail="Project has tasks, time logs or proposals and cannot be deleted",
            )
    await db.delete(project)
    await db.flush()
