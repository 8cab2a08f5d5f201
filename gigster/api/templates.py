"""Document template API endpoints."""

from datetime import datetime
from typing import Any, Literal

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, Field, field_validator
from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from gigster.api.deps import ensure_owner_or_admin, get_current_user, get_db
from gigster.api.schemas import RequestModel
from gigster.models.proposal import Proposal
from gigster.models.template import Template, TemplateType
from gigster.models.user import User

router = APIRouter(prefix="/api/templates", tags=["templates"])

FieldType = Literal["text", "textarea", "number", "date", "email", "phone", "line_items"]


class FieldDefinitionPayload(RequestModel):
    """One template input; stored with a camelCase ``defaultValue`` key."""

    name: str = Field(min_length=1, max_length=100)
    label: str = ""
    type: FieldType = "text"
    required: bool = False
    placeholder: str | None = None
    default_value: Any = None

    def as_stored(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "label": self.label or self.name,
            "type": self.type,
            "required": self.required,
            "placeholder": self.placeholder,
            "defaultValue": self.default_value,
        }


def _unique_names(fields: list[FieldDefinitionPayload]) -> list[FieldDefinitionPayload]:
    seen: set[str] = set()
    for definition in fields:
        if definition.name in seen:
            raise ValueError(f"Duplicate variable name: {definition.name}")
        seen.add(definition.name)
    return fields


class TemplateCreateRequest(RequestModel):
    name: str = Field(min_length=1, max_length=255)
    type: TemplateType
    description: str | None = None
    content: str | None = None
    variables: list[FieldDefinitionPayload] = Field(default_factory=list)
    is_public: bool = False
    tags: list[str] = Field(default_factory=list)
    metadata: dict[str, Any] = Field(default_factory=dict)

    @field_validator("variables")
    @classmethod
    def _check_variables(
        cls, value: list[FieldDefinitionPayload]
    ) -> list[FieldDefinitionPayload]:
        return _unique_names(value)


class TemplateUpdateRequest(RequestModel):
    name: str | None = Field(default=None, min_length=1, max_length=255)
    description: str | None = None
    content: str | None = None
    variables: list[FieldDefinitionPayload] | None = None
    is_public: bool | None = None
    tags: list[str] | None = None
    metadata: dict[str, Any] | None = None

    @field_validator("variables")
    @classmethod
    def _check_variables(
        cls, value: list[FieldDefinitionPayload] | None
    ) -> list[FieldDefinitionPayload] | None:
        return None if value is None else _unique_names(value)


class TemplateResponse(BaseModel):
    id: int
    name: str
    type: str
    description: str | None
    content: str | None
    variables: list[dict[str, Any]]
    is_system: bool
    is_public: bool
    created_by_id: int | None
    tags: list[str]
    metadata: dict[str, Any]
    created_at: datetime
    updated_at: datetime | None


class TemplateListResponse(BaseModel):
    items: list[TemplateResponse]
    total: int
    limit: int
    offset: int


def _to_template_response(template: Template) -> TemplateResponse:
    return TemplateResponse(
        id=template.id,
        name=template.name,
        type=template.type.value,
        description=template.description,
        content=template.content,
        variables=list(template.variables or []),
        is_system=template.is_system,
        is_public=template.is_public,
        created_by_id=template.created_by_id,
        tags=list(template.tags or []),
        metadata=dict(template.metadata_ or {}),
        created_at=template.created_at,
        updated_at=template.updated_at,
    )


async def _get_template_or_404(db: AsyncSession, template_id: int) -> Template:
    template = await db.get(Template, template_id)
    if template is None:
        raise HTTPException(status_code=404, detail="Template not found")
    return template


def _ensure_visible(user: User, template: Template) -> None:
    if template.is_system or template.is_public:
        return
    ensure_owner_or_admin(user, template.created_by_id)


@router.post("", response_model=TemplateResponse, status_code=status.HTTP_201_CREATED)
async def create_template(
    payload: TemplateCreateRequest,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
) -> TemplateResponse:
    template = Template(
        name=payload.name.strip(),
        type=payload.type,
        description=payload.description,
        content=payload.content,
        variables=[definition.as_stored() for definition in payload.variables],
        is_system=False,
        is_public=payload.is_public,
        created_by_id=user.id,
        tags=payload.tags,
        metadata_=payload.metadata,
    )
    db.add(template)
    await db.flush()
    return _to_template_response(template)


@router.get("", response_model=TemplateListResponse)
async def list_templates(
    type_filter: TemplateType | None = Query(default=None, alias="type"),
    limit: int = Query(default=20, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
) -> TemplateListResponse:
    """System, public and the caller's own templates (admins see all)."""
    filters = []
    if not user.is_admin:
        filters.append(
            or_(
                Template.is_system.is_(True),
                Template.is_public.is_(True),
                Template.created_by_id == user.id,
            )
        )
    if type_filter is not None:
        filters.append(Template.type == type_filter)

    count_stmt = select(func.count(Template.id))
    list_stmt = select(Template).order_by(Template.name, Template.id)
    if filters:
        count_stmt = count_stmt.where(*filters)
        list_stmt = list_stmt.where(*filters)

    total = int((await db.execute(count_stmt)).scalar() or 0)
    templates = (await db.execute(list_stmt.limit(limit).offset(offset))).scalars().all()
    return TemplateListResponse(
        items=[_to_template_response(t) for t in templates],
        total=total,
        limit=limit,
        offset=offset,
    )


@router.get("/{template_id}", response_model=TemplateResponse)
async def get_template(
    template_id: int,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
) -> TemplateResponse:
    template = await _get_template_or_404(db, template_id)
    _ensure_visible(user, template)
    return _to_template_response(template)


@router.patch("/{template_id}", response_model=TemplateResponse)
async def update_template(
    template_id: int,
    payload: TemplateUpdateRequest,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
) -> TemplateResponse:
    """Edit a template; system templates are read-only except for admins."""
    template = await _get_template_or_404(db, template_id)
    if template.is_system and not user.is_admin:
        raise HTTPException(status_code=403, detail="System templates are read-only")
    if not template.is_system:
        ensure_owner_or_admin(user, template.created_by_id)

    updates = payload.model_dump(exclude_unset=True)
    if payload.variables is not None:
        template.variables = [definition.as_stored() for definition in payload.variables]
    updates.pop("variables", None)
    if "metadata" in updates:
        template.metadata_ = updates.pop("metadata") or {}
    if updates.get("name") is not None:
        updates["name"] = updates["name"].strip()
    for name, value in updates.items():
        if name in ("name", "is_public", "tags") and value is None:
            continue
        setattr(template, name, value)
    await db.flush()
    return _to_template_response(template)


@router.delete("/{template_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_template(
    template_id: int,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
) -> None:
    template = await _get_template_or_404(db, template_id)
    if template.is_system and not user.is_admin:
        raise HTTPException(status_code=403, detail="System templates are read-only")
    if not template.is_system:
        ensure_owner_or_admin(user, template.created_by_id)
    in_use = await db.scalar(
        select(func.count(Proposal.id)).where(Proposal.template_id == template_id)
    )
    if in_use:
        raise HTTPException(
            status_code=409, detail="Template is used by proposals and cannot be deleted"
        )
    await db.delete(template)
    await db.flush()
