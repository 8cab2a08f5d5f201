"""Invoice API endpoints."""

import asyncio
from datetime import datetime
from decimal import Decimal
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status
from pydantic import AliasChoices, BaseModel, EmailStr, Field
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
from gigster.documents.pdf import render_invoice_pdf
from gigster.models.invoice import Invoice, InvoiceStatus
from gigster.models.user import User
from gigster.notifications.dispatcher import NotificationDispatcher
from gigster.workflows.invoices import InvoiceWorkflow

logger = get_logger(__name__)

router = APIRouter(prefix="/api/invoices", tags=["invoices"])


class InvoiceLineItem(RequestModel):
    """A billed line; ``amount`` is always recomputed as quantity x rate."""

    description: str = ""
    quantity: Decimal = Field(
        default=Decimal("1"), ge=0, validation_alias=AliasChoices("quantity", "qty")
    )
    rate: Decimal = Decimal("0")


class InvoiceCreateRequest(RequestModel):
    client_id: int = Field(gt=0)
    line_items: list[InvoiceLineItem] = Field(default_factory=list)
    tax_rate: Decimal | None = Field(default=None, ge=0, le=100)
    discount_amount: Decimal | None = Field(default=None, ge=0)
    due_date: datetime | None = None
    notes: str | None = None
    proposal_id: int | None = Field(default=None, gt=0)


class InvoiceUpdateRequest(RequestModel):
    client_id: int | None = Field(default=None, gt=0)
    line_items: list[InvoiceLineItem] | None = None
    tax_rate: Decimal | None = Field(default=None, ge=0, le=100)
    discount_amount: Decimal | None = Field(default=None, ge=0)
    due_date: datetime | None = None
    notes: str | None = None


class InvoiceSendRequest(RequestModel):
    client_email: EmailStr | None = None


class InvoiceResponse(BaseModel):
    """Invoice response model."""

    id: int
    invoice_number: str
    client_id: int
    proposal_id: int | None
    line_items: list[dict[str, Any]]
    subtotal: Decimal
    tax_rate: Decimal
    tax_amount: Decimal
    discount_amount: Decimal
    total_amount: Decimal
    amount_paid: Decimal
    balance_due: Decimal
    status: str
    due_date: datetime
    notes: str | None
    sent_at: datetime | None
    paid_at: datetime | None
    overdue_notified_at: datetime | None
    created_by_id: int
    created_at: datetime
    updated_at: datetime | None


class InvoiceDeliveryResponse(InvoiceResponse):
    notifications: list[dict[str, str | None]]


class InvoiceListResponse(BaseModel):
    items: list[InvoiceResponse]
    total: int
    limit: int
    offset: int


def _to_invoice_response(invoice: Invoice) -> InvoiceResponse:
    return InvoiceResponse(
        id=invoice.id,
        invoice_number=invoice.invoice_number,
        client_id=invoice.client_id,
        proposal_id=invoice.proposal_id,
        line_items=list(invoice.line_items or []),
        subtotal=invoice.subtotal,
        tax_rate=invoice.tax_rate,
        tax_amount=invoice.tax_amount,
        discount_amount=invoice.discount_amount,
        total_amount=invoice.total_amount,
        amount_paid=invoice.amount_paid,
        balance_due=invoice.balance_due,
        status=invoice.status.value,
        due_date=invoice.due_date,
        notes=invoice.notes,
        sent_at=invoice.sent_at,
        paid_at=invoice.paid_at,
        overdue_notified_at=invoice.overdue_notified_at,
        created_by_id=invoice.created_by_id,
        created_at=invoice.created_at,
        updated_at=invoice.updated_at,
    )


async def _get_owned_invoice(
    workflow: InvoiceWorkflow, invoice_id: int, user: User
) -> Invoice:
    invoice = await workflow.get(invoice_id)
    ensure_owner_or_admin(user, invoice.created_by_id)
    document_ctx.set(f"invoice:{invoice.id}")
    return invoice


@router.post("", response_model=InvoiceResponse, status_code=status.HTTP_201_CREATED)
async def create_invoice(
    payload: InvoiceCreateRequest,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
) -> InvoiceResponse:
    """Create a draft invoice with computed totals."""
    invoice = await InvoiceWorkflow(db).create(
        client_id=payload.client_id,
        line_items=[item.model_dump(mode="json") for item in payload.line_items],
        created_by_id=user.id,
        tax_rate=payload.tax_rate,
        discount_amount=payload.discount_amount,
        due_date=payload.due_date,
        notes=payload.notes,
        proposal_id=payload.proposal_id,
    )
    return _to_invoice_response(invoice)


@router.get("", response_model=InvoiceListResponse)
async def list_invoices(
    status_filter: InvoiceStatus | None = Query(default=None, alias="status"),
    client_id: int | None = Query(default=None, gt=0),
    limit: int = Query(default=20, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
) -> InvoiceListResponse:
    filters = []
    if not user.is_admin:
        filters.append(Invoice.created_by_id == user.id)
    if status_filter is not None:
        filters.append(Invoice.status == status_filter)
    if client_id is not None:
        filters.append(Invoice.client_id == client_id)

    count_stmt = select(func.count(Invoice.id))
    list_stmt = select(Invoice).order_by(Invoice.created_at.desc(), Invoice.id.desc())
    if filters:
        count_stmt = count_stmt.where(*filters)
        list_stmt = list_stmt.where(*filters)

    total = int((await db.execute(count_stmt)).scalar() or 0)
    invoices = (await db.execute(list_stmt.limit(limit).offset(offset))).scalars().all()
    return InvoiceListResponse(
        items=[_to_invoice_response(i) for i in invoices],
        total=total,
        limit=limit,
        offset=offset,
    )


@router.get("/overdue", response_model=list[InvoiceResponse])
async def list_overdue_invoices(
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
) -> list[InvoiceResponse]:
    """Overdue invoices plus sent invoices already past their due date."""
    invoices = await InvoiceWorkflow(db).list_overdue()
    if not user.is_admin:
        invoices = [i for i in invoices if i.created_by_id == user.id]
    return [_to_invoice_response(i) for i in invoices]


@router.get("/{invoice_id}", response_model=InvoiceResponse)
async def get_invoice(
    invoice_id: int,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
) -> InvoiceResponse:
    return _to_invoice_response(
        await _get_owned_invoice(InvoiceWorkflow(db), invoice_id, user)
    )


@router.put("/{invoice_id}", response_model=InvoiceResponse)
async def update_invoice(
    invoice_id: int,
    payload: InvoiceUpdateRequest,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
) -> InvoiceResponse:
    """Edit a draft invoice; 409 once sent, with the invoice left unchanged."""
    workflow = InvoiceWorkflow(db)
    invoice = await _get_owned_invoice(workflow, invoice_id, user)
    changes = payload.model_dump(exclude_unset=True)
    if payload.line_items is not None:
        changes["line_items"] = [
            item.model_dump(mode="json") for item in payload.line_items
        ]
    for name in ("tax_rate", "discount_amount"):
        if name in changes and changes[name] is None:
            changes.pop(name)
    invoice = await workflow.update(invoice, changes)
    return _to_invoice_response(invoice)


@router.delete("/{invoice_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_invoice(
    invoice_id: int,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
) -> None:
    workflow = InvoiceWorkflow(db)
    invoice = await _get_owned_invoice(workflow, invoice_id, user)
    await workflow.delete(invoice)


@router.post("/{invoice_id}/send", response_model=InvoiceDeliveryResponse)
async def send_invoice(
    invoice_id: int,
    payload: InvoiceSendRequest | None = None,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
    notifier: NotificationDispatcher = Depends(get_notifier),
) -> InvoiceDeliveryResponse:
    """Mark sent, then email the PDF; delivery failures do not undo the send."""
    workflow = InvoiceWorkflow(db, notifier)
    invoice = await _get_owned_invoice(workflow, invoice_id, user)
    outcome = await workflow.send(
        invoice, recipient=payload.client_email if payload else None
    )
    logger.info("invoice_sent", invoice_id=invoice.id)
    return InvoiceDeliveryResponse(
        **_to_invoice_response(outcome.invoice).model_dump(),
        notifications=[result.as_dict() for result in outcome.notifications],
    )


@router.get("/{invoice_id}/pdf")
async def download_invoice_pdf(
    invoice_id: int,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
) -> Response:
    workflow = InvoiceWorkflow(db)
    invoice = await _get_owned_invoice(workflow, invoice_id, user)
    snapshot, _ = await workflow.snapshot(invoice)
    try:
        content = await asyncio.to_thread(render_invoice_pdf, snapshot)
    except Exception as exc:
        logger.exception("invoice_pdf_failed", invoice_id=invoice.id, error=str(exc))
        raise HTTPException(status_code=500, detail="Failed to generate PDF") from exc
    return Response(
        content=content,
        media_type="application/pdf",
        headers={
            "Content-Disposition": f'attachment; filename="{invoice.invoice_number}.pdf"'
        },
    )
