"""Clients API endpoints."""

from datetime import datetime
from decimal import Decimal

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, Field
from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from gigster.api.deps import get_current_user, get_db, require_admin
from gigster.api.schemas import RequestModel
from gigster.models.client import Client, ClientStatus
from gigster.models.contract import Contract
from gigster.models.invoice import Invoice, Payment
from gigster.models.proposal import Proposal
from gigster.models.user import User

router = APIRouter(
    prefix="/api/clients",
    tags=["clients"],
    dependencies=[Depends(get_current_user)],
)


class ClientCreateRequest(RequestModel):
    """Payload for creating a client."""

    name: str = Field(min_length=1, max_length=255)
    email: str | None = Field(default=None, max_length=255)
    phone: str | None = Field(default=None, max_length=32)
    company: str | None = Field(default=None, max_length=255)
    status: ClientStatus = ClientStatus.PROSPECT
    notes: str | None = None


class ClientUpdateRequest(RequestModel):
    """Payload for updating a client."""

    name: str | None = Field(default=None, min_length=1, max_length=255)
    email: str | None = Field(default=None, max_length=255)
    phone: str | None = Field(default=None, max_length=32)
    company: str | None = Field(default=None, max_length=255)
    status: ClientStatus | None = None
    notes: str | None = None


class ClientResponse(BaseModel):
    """Client response model."""

    id: int
    name: str
    email: str | None
    phone: str | None
    company: str | None
    status: str
    notes: str | None
    created_at: datetime
    updated_at: datetime | None


class ClientListResponse(BaseModel):
    """Paginated client list response."""

    items: list[ClientResponse]
    total: int
    limit: int
    offset: int


class DocumentSummary(BaseModel):
    """One proposal, invoice, contract or payment belonging to a client."""

    id: int
    kind: str
    title: str
    status: str | None
    amount: Decimal | None
    created_at: datetime


class ClientDocumentsResponse(BaseModel):
    client_id: int
    proposals: list[DocumentSummary]
    invoices: list[DocumentSummary]
    contracts: list[DocumentSummary]
    payments: list[DocumentSummary]


def _to_client_response(client: Client) -> ClientResponse:
    """Map SQLAlchemy client model to response model."""
    return ClientResponse(
        id=client.id,
        name=client.name,
        email=client.email,
        phone=client.phone,
        company=client.company,
        status=client.status.value,
        notes=client.notes,
        created_at=client.created_at,
        updated_at=client.updated_at,
    )


async def _get_client_or_404(db: AsyncSession, client_id: int) -> Client:
    client = await db.get(Client, client_id)
    if client is None:
        raise HTTPException(status_code=404, detail="Client not found")
    return client


@router.post("", response_model=ClientResponse, status_code=status.HTTP_201_CREATED)
async def create_client(
    payload: ClientCreateRequest,
    db: AsyncSession = Depends(get_db),
) -> ClientResponse:
    """Create a new client."""
    client = Client(
        name=payload.name.strip(),
        email=payload.email,
        phone=payload.phone,
        company=payload.company,
        status=payload.status,
        notes=payload.notes,
    )
    db.add(client)
    await db.flush()
    return _to_client_response(client)


@router.get("", response_model=ClientListResponse)
async def list_clients(
    search: str | None = Query(default=None, min_length=1),
    status_filter: ClientStatus | None = Query(default=None, alias="status"),
    limit: int = Query(default=20, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
    db: AsyncSession = Depends(get_db),
) -> ClientListResponse:
    """List clients with optional search and pagination."""
    filters = []
    if search:
        search_pattern = f"%{search.strip().lower()}%"
        filters.append(
            or_(
                func.lower(Client.name).like(search_pattern),
                func.lower(func.coalesce(Client.email, "")).like(search_pattern),
                func.lower(func.coalesce(Client.company, "")).like(search_pattern),
            )
        )
    if status_filter is not None:
        filters.append(Client.status == status_filter)

    count_stmt = select(func.count(Client.id))
    list_stmt = select(Client).order_by(Client.created_at.desc(), Client.id.desc())
    if filters:
        count_stmt = count_stmt.where(*filters)
        list_stmt = list_stmt.where(*filters)

    total = int((await db.execute(count_stmt)).scalar() or 0)
    clients = (await db.execute(list_stmt.limit(limit).offset(offset))).scalars().all()

    return ClientListResponse(
        items=[_to_client_response(client) for client in clients],
        total=total,
        limit=limit,
        offset=offset,
    )


@router.get("/{client_id}", response_model=ClientResponse)
async def get_client(
    client_id: int,
    db: AsyncSession = Depends(get_db),
) -> ClientResponse:
    """Get client by ID."""
    return _to_client_response(await _get_client_or_404(db, client_id))


@router.patch("/{client_id}", response_model=ClientResponse)
async def update_client(
    client_id: int,
    payload: ClientUpdateRequest,
    db: AsyncSession = Depends(get_db),
) -> ClientResponse:
    """Partially update client fields."""
    client = await _get_client_or_404(db, client_id)

    updates = payload.model_dump(exclude_unset=True)
    if updates.get("name") is not None:
        client.name = updates.pop("name").strip()
    if "status" in updates and updates["status"] is None:
        updates.pop("status")
    for name, value in updates.items():
        setattr(client, name, value)

    await db.flush()
    return _to_client_response(client)


@router.delete("/{client_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_client(
    client_id: int,
    db: AsyncSession = Depends(get_db),
    _admin: User = Depends(require_admin),
) -> None:
    """Delete a client with no documents attached (admin only)."""
    client = await _get_client_or_404(db, client_id)
    for model in (Proposal, Invoice, Contract, Payment):
        count = await db.scalar(
            select(func.count(model.id)).where(model.client_id == client_id)
        )
        if count:
            raise HTTPException(
                status_code=409,
                detail="Client has documents and cannot be deleted",
            )
    await db.delete(client)
    await db.flush()


@router.get("/{client_id}/documents", response_model=ClientDocumentsResponse)
async def list_client_documents(
    client_id: int,
    db: AsyncSession = Depends(get_db),
) -> ClientDocumentsResponse:
    """All proposals, invoices, contracts and payments for a client."""
    await _get_client_or_404(db, client_id)

    proposals = (
        await db.execute(
            select(Proposal)
            .where(Proposal.client_id == client_id)
            .order_by(Proposal.created_at.desc(), Proposal.id.desc())
        )
    ).scalars()
    invoices = (
        await db.execute(
            select(Invoice)
            .where(Invoice.client_id == client_id)
            .order_by(Invoice.created_at.desc(), Invoice.id.desc())
        )
    ).scalars()
    contracts = (
        await db.execute(
            select(Contract)
            .where(Contract.client_id == client_id)
            .order_by(Contract.created_at.desc(), Contract.id.desc())
        )
    ).scalars()
    payments = (
        await db.execute(
            select(Payment)
            .where(Payment.client_id == client_id)
            .order_by(Payment.payment_date.desc(), Payment.id.desc())
        )
    ).scalars()

    return ClientDocumentsResponse(
        client_id=client_id,
        proposals=[
            DocumentSummary(
                id=p.id,
                kind="proposal",
                title=f"{p.title} (v{p.version})",
                status=p.status.value,
                amount=p.calculated_total,
                created_at=p.created_at,
            )
            for p in proposals
        ],
        invoices=[
            DocumentSummary(
                id=i.id,
                kind="invoice",
                title=i.invoice_number,
                status=i.status.value,
                amount=i.total_amount,
                created_at=i.created_at,
            )
            for i in invoices
        ],
        contracts=[
            DocumentSummary(
                id=c.id,
                kind="contract",
                title=f"{c.contract_number}: {c.title}",
                status=c.status.value,
                amount=c.contract_value,
                created_at=c.created_at,
            )
            for c in contracts
        ],
        payments=[
            DocumentSummary(
                id=p.id,
                kind="payment",
                title=p.reference or f"Payment {p.id}",
                status=None,
                amount=p.amount,
                created_at=p.created_at,
            )
            for p in payments
        ],
    )
