"""Proposal API endpoints."""

import asyncio
from datetime import datetime
from decimal import Decimal
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status
from pydantic import BaseModel, EmailStr, Field, model_validator
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from gigster.api.deps import (
    ensure_owner_or_admin,
    get_current_user,
    get_db,
    get_notifier,
)
from gigster.api.schemas import RequestModel
from gigster.core.logging import document_ctx, get_logger
from gigster.documents.pdf import render_document_pdf
from gigster.documents.renderer import DirectProposal
from gigster.models.proposal import Proposal, ProposalStatus
from gigster.models.user import User
from gigster.notifications.dispatcher import NotificationDispatcher, SideEffectResult
from gigster.workflows.proposals import ProposalWorkflow, share_url_for

logger = get_logger(__name__)

router = APIRouter(prefix="/api/proposals", tags=["proposals"])


class LineItemPayload(RequestModel):
    description: str = ""
    quantity: Decimal = Decimal("1")
    rate: Decimal = Decimal("0")
    amount: Decimal | None = None


class ProposalCreateRequest(RequestModel):
    """Template mode when ``template_id`` is given, direct mode otherwise."""

    title: str = Field(min_length=1, max_length=255)
    client_name: str = Field(min_length=1, max_length=255)
    client_email: EmailStr | None = None
    project_id: int | None = Field(default=None, gt=0)
    expires_in_days: int | None = Field(default=None, ge=1, le=365)

    template_id: int | None = Field(default=None, gt=0)
    variables: dict[str, Any] = Field(default_factory=dict)

    project_description: str | None = None
    total_budget: Decimal | None = Field(default=None, ge=0)
    timeline: str | None = None
    deliverables: str | None = None
    terms: str | None = None
    line_items: list[LineItemPayload] = Field(default_factory=list)
    calculated_total: Decimal | None = Field(default=None, ge=0)

    @model_validator(mode="after")
    def _check_mode(self) -> "ProposalCreateRequest":
        if self.template_id is None and self.variables:
            raise ValueError("variables require a template_id")
        return self


class ProposalUpdateRequest(RequestModel):
    title: str | None = Field(default=None, min_length=1, max_length=255)
    client_name: str | None = Field(default=None, min_length=1, max_length=255)
    client_email: EmailStr | None = None
    content: str | None = None
    project_id: int | None = Field(default=None, gt=0)
    expires_in_days: int | None = Field(default=None, ge=1, le=365)


class ProposalSendRequest(RequestModel):
    client_email: EmailStr | None = None
    message: str | None = Field(default=None, max_length=5000)


class RevisionRequest(RequestModel):
    revision_notes: str | None = Field(default=None, max_length=5000)


class ProposalResponse(BaseModel):
    """Proposal response model."""

    id: int
    title: str
    template_id: int | None
    project_id: int | None
    client_id: int | None
    client_name: str
    client_email: str | None
    content: str
    variables: dict[str, Any]
    line_items: list[dict[str, Any]]
    calculated_total: Decimal | None
    status: str
    shareable_link: str | None
    shareable_url: str | None
    sent_at: datetime | None
    viewed_at: datetime | None
    responded_at: datetime | None
    accepted_at: datetime | None
    expires_at: datetime
    response_message: str | None
    version: int
    parent_proposal_id: int | None
    revision_notes: str | None
    created_by_id: int
    created_at: datetime
    updated_at: datetime | None


class ProposalDeliveryResponse(ProposalResponse):
    notifications: list[dict[str, str | None]]


class ProposalListResponse(BaseModel):
    items: list[ProposalResponse]
    total: int
    limit: int
    offset: int


def to_proposal_response(proposal: Proposal) -> ProposalResponse:
    """Map SQLAlchemy proposal model to response model."""
    link = proposal.shareable_link
    return ProposalResponse(
        id=proposal.id,
        title=proposal.title,
        template_id=proposal.template_id,
        project_id=proposal.project_id,
        client_id=proposal.client_id,
        client_name=proposal.client_name,
        client_email=proposal.client_email,
        content=proposal.content,
        variables=dict(proposal.variables or {}),
        line_items=list(proposal.line_items or []),
        calculated_total=proposal.calculated_total,
        status=proposal.status.value,
        shareable_link=link,
        shareable_url=share_url_for(link) if link else None,
        sent_at=proposal.sent_at,
        viewed_at=proposal.viewed_at,
        responded_at=proposal.responded_at,
        accepted_at=proposal.accepted_at,
        expires_at=proposal.expires_at,
        response_message=proposal.response_message,
        version=proposal.version,
        parent_proposal_id=proposal.parent_proposal_id,
        revision_notes=proposal.revision_notes,
        created_by_id=proposal.created_by_id,
        created_at=proposal.created_at,
        updated_at=proposal.updated_at,
    )


def with_notifications(
    proposal: Proposal, notifications: list[SideEffectResult]
) -> ProposalDeliveryResponse:
    return ProposalDeliveryResponse(
        **to_proposal_response(proposal).model_dump(),
        notifications=[result.as_dict() for result in notifications],
    )


async def _get_owned_proposal(
    workflow: ProposalWorkflow, proposal_id: int, user: User
) -> Proposal:
    proposal = await workflow.get(proposal_id)
    ensure_owner_or_admin(user, proposal.created_by_id)
    document_ctx.set(f"proposal:{proposal.id}")
    return proposal


@router.post("", response_model=ProposalResponse, status_code=status.HTTP_201_CREATED)
async def create_proposal(
    payload: ProposalCreateRequest,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
) -> ProposalResponse:
    """Create a draft proposal from a template or from direct fields."""
    workflow = ProposalWorkflow(db)
    if payload.template_id is not None:
        proposal = await workflow.create_from_template(
            template_id=payload.template_id,
            title=payload.title.strip(),
            client_name=payload.client_name.strip(),
            client_email=payload.client_email,
            variables=payload.variables,
            created_by=user,
            project_id=payload.project_id,
            expires_in_days=payload.expires_in_days,
        )
    else:
        calculated_total = payload.calculated_total
        if calculated_total is None and not payload.line_items:
            calculated_total = payload.total_budget
        direct = DirectProposal(
            title=payload.title.strip(),
            client_name=payload.client_name.strip(),
            client_email=payload.client_email,
            project_description=payload.project_description,
            timeline=payload.timeline,
            deliverables=payload.deliverables,
            terms=payload.terms,
            line_items=[item.model_dump(mode="json") for item in payload.line_items],
            calculated_total=calculated_total,
        )
        proposal = await workflow.create_direct(
            direct,
            created_by=user,
            project_id=payload.project_id,
            expires_in_days=payload.expires_in_days,
        )
    return to_proposal_response(proposal)


@router.get("", response_model=ProposalListResponse)
async def list_proposals(
    status_filter: ProposalStatus | None = Query(default=None, alias="status"),
    client_id: int | None = Query(default=None, gt=0),
    limit: int = Query(default=20, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
) -> ProposalListResponse:
    """List proposals; non-admins see their own."""
    filters = []
    if not user.is_admin:
        filters.append(Proposal.created_by_id == user.id)
    if status_filter is not None:
        filters.append(Proposal.status == status_filter)
    if client_id is not None:
        filters.append(Proposal.client_id == client_id)

    count_stmt = select(func.count(Proposal.id))
    list_stmt = select(Proposal).order_by(Proposal.created_at.desc(), Proposal.id.desc())
    if filters:
        count_stmt = count_stmt.where(*filters)
        list_stmt = list_stmt.where(*filters)

    total = int((await db.execute(count_stmt)).scalar() or 0)
    proposals = (await db.execute(list_stmt.limit(limit).offset(offset))).scalars().all()
    return ProposalListResponse(
        items=[to_proposal_response(p) for p in proposals],
        total=total,
        limit=limit,
        offset=offset,
    )


@router.get("/{proposal_id}", response_model=ProposalResponse)
async def get_proposal(
    proposal_id: int,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
) -> ProposalResponse:
    proposal = await _get_owned_proposal(ProposalWorkflow(db), proposal_id, user)
    return to_proposal_response(proposal)


@router.get("/{proposal_id}/revisions", response_model=list[ProposalResponse])
async def list_revision_chain(
    proposal_id: int,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
) -> list[ProposalResponse]:
    """The proposal's ancestors, oldest first, followed by the proposal itself."""
    workflow = ProposalWorkflow(db)
    proposal = await _get_owned_proposal(workflow, proposal_id, user)
    chain = await workflow.revision_chain(proposal)
    return [to_proposal_response(p) for p in [*chain, proposal]]


@router.patch("/{proposal_id}", response_model=ProposalResponse)
async def update_proposal(
    proposal_id: int,
    payload: ProposalUpdateRequest,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
) -> ProposalResponse:
    """Edit a draft proposal; 409 once it has been sent."""
    workflow = ProposalWorkflow(db)
    proposal = await _get_owned_proposal(workflow, proposal_id, user)
    changes = {
        name: value
        for name, value in payload.model_dump(exclude_unset=True).items()
        if value is not None or name in ("client_email", "project_id")
    }
    proposal = await workflow.update(proposal, changes)
    return to_proposal_response(proposal)


@router.delete("/{proposal_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_proposal(
    proposal_id: int,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
) -> None:
    workflow = ProposalWorkflow(db)
    proposal = await _get_owned_proposal(workflow, proposal_id, user)
    await workflow.delete(proposal)


@router.post("/{proposal_id}/send", response_model=ProposalDeliveryResponse)
async def send_proposal(
    proposal_id: int,
    payload: ProposalSendRequest | None = None,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
    notifier: NotificationDispatcher = Depends(get_notifier),
) -> ProposalDeliveryResponse:
    """Mark sent and deliver the share link; delivery failures are reported, not raised."""
    payload = payload or ProposalSendRequest()
    workflow = ProposalWorkflow(db, notifier)
    proposal = await _get_owned_proposal(workflow, proposal_id, user)
    outcome = await workflow.send(
        proposal,
        recipient=payload.client_email,
        message=payload.message,
        sender_name=user.name,
    )
    logger.info("proposal_sent", proposal_id=proposal.id, share_url=outcome.share_url)
    return with_notifications(outcome.proposal, outcome.notifications)


@router.post(
    "/{proposal_id}/create-revision",
    response_model=ProposalResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_revision(
    proposal_id: int,
    payload: RevisionRequest,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
) -> ProposalResponse:
    workflow = ProposalWorkflow(db)
    proposal = await _get_owned_proposal(workflow, proposal_id, user)
    revision = await workflow.create_revision(
        proposal, notes=payload.revision_notes, created_by=user
    )
    return to_proposal_response(revision)


@router.get("/{proposal_id}/pdf")
async def download_proposal_pdf(
    proposal_id: int,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
) -> Response:
    proposal = await _get_owned_proposal(ProposalWorkflow(db), proposal_id, user)
    try:
        content = await asyncio.to_thread(
            render_document_pdf, proposal.title, proposal.content
        )
    except Exception as exc:
        logger.exception("proposal_pdf_failed", proposal_id=proposal.id, error=str(exc))
        raise HTTPException(status_code=500, detail="Failed to generate PDF") from exc
    return Response(
        content=content,
        media_type="application/pdf",
        headers={
            "Content-Disposition": (
                f'attachment; filename="proposal-{proposal.id}-v{proposal.version}.pdf"'
            )
        },
    )
