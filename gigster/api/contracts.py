"""Contract API endpoints."""

import asyncio
from datetime import datetime
from decimal import Decimal
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status
from pydantic import BaseModel, EmailStr, Field
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
from gigster.models.contract import Contract, ContractStatus
from gigster.models.user import User
from gigster.notifications.dispatcher import NotificationDispatcher
from gigster.workflows.contracts import ContractWorkflow, share_url_for

logger = get_logger(__name__)

router = APIRouter(prefix="/api/contracts", tags=["contracts"])


class ContractLineItem(RequestModel):
    description: str = ""
    quantity: Decimal = Field(default=Decimal("1"), ge=0)
    rate: Decimal = Decimal("0")


class ContractCreateRequest(RequestModel):
    client_id: int = Field(gt=0)
    title: str = Field(min_length=1, max_length=255)
    content: str = ""
    line_items: list[ContractLineItem] = Field(default_factory=list)
    contract_value: Decimal | None = Field(default=None, ge=0)
    effective_date: datetime | None = None
    expiration_date: datetime | None = None
    required_signatures: int = Field(default=2, ge=1, le=10)


class ContractUpdateRequest(RequestModel):
    title: str | None = Field(default=None, min_length=1, max_length=255)
    content: str | None = None
    line_items: list[ContractLineItem] | None = None
    contract_value: Decimal | None = Field(default=None, ge=0)
    effective_date: datetime | None = None
    expiration_date: datetime | None = None
    required_signatures: int | None = Field(default=None, ge=1, le=10)


class ContractSendRequest(RequestModel):
    client_email: EmailStr | None = None


class SignRequest(RequestModel):
    signer_name: str = Field(min_length=1, max_length=255)
    signer_email: EmailStr | None = None
    signer_role: str | None = Field(default=None, max_length=100)


class ContractResponse(BaseModel):
    """Contract response model."""

    id: int
    contract_number: str
    title: str
    client_id: int
    content: str
    line_items: list[dict[str, Any]]
    contract_value: Decimal
    status: str
    share_url: str | None
    effective_date: datetime | None
    expiration_date: datetime | None
    required_signatures: int
    signatures: list[dict[str, Any]]
    sent_at: datetime | None
    viewed_at: datetime | None
    fully_signed_at: datetime | None
    executed_at: datetime | None
    created_by_id: int
    created_at: datetime
    updated_at: datetime | None


class ContractDeliveryResponse(ContractResponse):
    notifications: list[dict[str, str | None]]


class ContractListResponse(BaseModel):
    items: list[ContractResponse]
    total: int
    limit: int
    offset: int


class AttentionResponse(BaseModel):
    reason: str
    contract: ContractResponse


def to_contract_response(contract: Contract) -> ContractResponse:
    token = contract.share_token
    return ContractResponse(
        id=contract.id,
        contract_number=contract.contract_number,
        title=contract.title,
        client_id=contract.client_id,
        content=contract.content,
        line_items=list(contract.line_items or []),
        contract_value=contract.contract_value,
        status=contract.status.value,
        share_url=share_url_for(token) if token else None,
        effective_date=contract.effective_date,
        expiration_date=contract.expiration_date,
        required_signatures=contract.required_signatures,
        signatures=list(contract.signatures or []),
        sent_at=contract.sent_at,
        viewed_at=contract.viewed_at,
        fully_signed_at=contract.fully_signed_at,
        executed_at=contract.executed_at,
        created_by_id=contract.created_by_id,
        created_at=contract.created_at,
        updated_at=contract.updated_at,
    )


async def _get_owned_contract(
    workflow: ContractWorkflow, contract_id: int, user: User
) -> Contract:
    contract = await workflow.get(contract_id)
    ensure_owner_or_admin(user, contract.created_by_id)
    document_ctx.set(f"contract:{contract.id}")
    return contract


@router.post("", response_model=ContractResponse, status_code=status.HTTP_201_CREATED)
async def create_contract(
    payload: ContractCreateRequest,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
) -> ContractResponse:
    contract = await ContractWorkflow(db).create(
        client_id=payload.client_id,
        title=payload.title.strip(),
        created_by_id=user.id,
        content=payload.content,
        line_items=[item.model_dump(mode="json") for item in payload.line_items],
        contract_value=payload.contract_value,
        effective_date=payload.effective_date,
        expiration_date=payload.expiration_date,
        required_signatures=payload.required_signatures,
    )
    return to_contract_response(contract)


@router.get("", response_model=ContractListResponse)
async def list_contracts(
    status_filter: ContractStatus | None = Query(default=None, alias="status"),
    client_id: int | None = Query(default=None, gt=0),
    limit: int = Query(default=20, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
) -> ContractListResponse:
    filters = []
    if not user.is_admin:
        filters.append(Contract.created_by_id == user.id)
    if status_filter is not None:
        filters.append(Contract.status == status_filter)
    if client_id is not None:
        filters.append(Contract.client_id == client_id)

    count_stmt = select(func.count(Contract.id))
    list_stmt = select(Contract).order_by(Contract.created_at.desc(), Contract.id.desc())
    if filters:
        count_stmt = count_stmt.where(*filters)
        list_stmt = list_stmt.where(*filters)

    total = int((await db.execute(count_stmt)).scalar() or 0)
    contracts = (await db.execute(list_stmt.limit(limit).offset(offset))).scalars().all()
    return ContractListResponse(
        items=[to_contract_response(c) for c in contracts],
        total=total,
        limit=limit,
        offset=offset,
    )


@router.get("/needs-attention", response_model=list[AttentionResponse])
async def list_contracts_needing_attention(
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
) -> list[AttentionResponse]:
    """Signed contracts nearing expiry and contracts still awaiting signatures."""
    items = await ContractWorkflow(db).needs_attention()
    return [
        AttentionResponse(reason=item.reason, contract=to_contract_response(item.contract))
        for item in items
        if user.is_admin or item.contract.created_by_id == user.id
    ]


@router.get("/{contract_id}", response_model=ContractResponse)
async def get_contract(
    contract_id: int,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
) -> ContractResponse:
    return to_contract_response(
        await _get_owned_contract(ContractWorkflow(db), contract_id, user)
    )


@router.put("/{contract_id}", response_model=ContractResponse)
async def update_contract(
    contract_id: int,
    payload: ContractUpdateRequest,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
) -> ContractResponse:
    """Edit a draft contract; 409 once it has been sent."""
    workflow = ContractWorkflow(db)
    contract = await _get_owned_contract(workflow, contract_id, user)
    changes = payload.model_dump(exclude_unset=True)
    if payload.line_items is not None:
        changes["line_items"] = [
            item.model_dump(mode="json") for item in payload.line_items
        ]
    contract = await workflow.update(contract, changes)
    return to_contract_response(contract)


@router.delete("/{contract_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_contract(
    contract_id: int,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
) -> None:
    workflow = ContractWorkflow(db)
    contract = await _get_owned_contract(workflow, contract_id, user)
    await workflow.delete(contract)


@router.post("/{contract_id}/send", response_model=ContractDeliveryResponse)
async def send_contract(
    contract_id: int,
    payload: ContractSendRequest | None = None,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
    notifier: NotificationDispatcher = Depends(get_notifier),
) -> ContractDeliveryResponse:
    workflow = ContractWorkflow(db, notifier)
    contract = await _get_owned_contract(workflow, contract_id, user)
    outcome = await workflow.send(
        contract, recipient=payload.client_email if payload else None
    )
    logger.info("contract_sent", contract_id=contract.id)
    return ContractDeliveryResponse(
        **to_contract_response(outcome.contract).model_dump(),
        notifications=[result.as_dict() for result in outcome.notifications],
    )


@router.post("/{contract_id}/request-signature", response_model=ContractResponse)
async def request_contract_signature(
    contract_id: int,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
) -> ContractResponse:
    workflow = ContractWorkflow(db)
    contract = await _get_owned_contract(workflow, contract_id, user)
    return to_contract_response(await workflow.request_signature(contract))


@router.post("/{contract_id}/sign", response_model=ContractResponse)
async def sign_contract(
    contract_id: int,
    payload: SignRequest,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
) -> ContractResponse:
    """Record one signature; the last required one completes the contract."""
    workflow = ContractWorkflow(db)
    contract = await _get_owned_contract(workflow, contract_id, user)
    contract = await workflow.sign(
        contract,
        signer_name=payload.signer_name.strip(),
        signer_email=payload.signer_email,
        signer_role=payload.signer_role,
    )
    logger.info(
        "contract_signed",
        contract_id=contract.id,
        signatures=len(contract.signatures),
        status=contract.status.value,
    )
    return to_contract_response(contract)


@router.post("/{contract_id}/execute", response_model=ContractResponse)
async def execute_contract(
    contract_id: int,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
) -> ContractResponse:
    workflow = ContractWorkflow(db)
    contract = await _get_owned_contract(workflow, contract_id, user)
    return to_contract_response(await workflow.execute(contract))


@router.get("/{contract_id}/pdf")
async def download_contract_pdf(
    contract_id: int,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
) -> Response:
    contract = await _get_owned_contract(ContractWorkflow(db), contract_id, user)
    try:
        content = await asyncio.to_thread(
            render_document_pdf, contract.title, contract.content
        )
    except Exception as exc:
        logger.exception("contract_pdf_failed", contract_id=contract.id, error=str(exc))
        raise HTTPException(status_code=500, detail="Failed to generate PDF") from exc
    return Response(
        content=content,
        media_type="application/pdf",
        headers={
            "Content-Disposition": (
                f'attachment; filename="{contract.contract_number}.pdf"'
            )
        },
    )
