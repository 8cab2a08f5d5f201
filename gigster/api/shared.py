"""Public share-link endpoints (no authentication).

A shareable link is an unguessable token granting read and respond access
to exactly one document.
"""

from typing import Literal

from fastapi import APIRouter, Depends
from pydantic import Field
from sqlalchemy.ext.asyncio import AsyncSession

from gigster.api.contracts import ContractResponse, to_contract_response
from gigster.api.deps import get_db, get_notifier
from gigster.api.proposals import (
    ProposalDeliveryResponse,
    ProposalResponse,
    to_proposal_response,
    with_notifications,
)
from gigster.api.schemas import RequestModel
from gigster.core.logging import document_ctx, get_logger
from gigster.models.proposal import ProposalStatus
from gigster.notifications.dispatcher import NotificationDispatcher
from gigster.workflows.contracts import ContractWorkflow
from gigster.workflows.proposals import ProposalWorkflow

logger = get_logger(__name__)

router = APIRouter(prefix="/api/shared", tags=["shared"])


class ProposalRespondRequest(RequestModel):
    response: Literal["accepted", "rejected", "revision_requested"]
    message: str | None = Field(default=None, max_length=5000)


@router.get("/proposals/{shareable_link}", response_model=ProposalResponse)
async def view_shared_proposal(
    shareable_link: str,
    db: AsyncSession = Depends(get_db),
) -> ProposalResponse:
    """Resolve a share link; the first access marks the proposal viewed."""
    proposal = await ProposalWorkflow(db).view(shareable_link)
    document_ctx.set(f"proposal:{proposal.id}")
    return to_proposal_response(proposal)


@router.post(
    "/proposals/{shareable_link}/respond", response_model=ProposalDeliveryResponse
)
async def respond_to_shared_proposal(
    shareable_link: str,
    payload: ProposalRespondRequest,
    db: AsyncSession = Depends(get_db),
    notifier: NotificationDispatcher = Depends(get_notifier),
) -> ProposalDeliveryResponse:
    """Record the client's answer; 400 once the proposal has expired."""
    outcome = await ProposalWorkflow(db, notifier).respond(
        shareable_link, ProposalStatus(payload.response), payload.message
    )
    logger.info(
        "proposal_responded",
        proposal_id=outcome.proposal.id,
        response=payload.response,
    )
    return with_notifications(outcome.proposal, outcome.notifications)


@router.get("/contracts/{share_token}", response_model=ContractResponse)
async def view_shared_contract(
    share_token: str,
    db: AsyncSession = Depends(get_db),
) -> ContractResponse:
    contract = await ContractWorkflow(db).view(share_token)
    document_ctx.set(f"contract:{contract.id}")
    return to_contract_response(contract)
