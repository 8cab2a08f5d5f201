"""Payment API endpoints."""

from datetime import datetime
from decimal import Decimal

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, Field
from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from gigster.api.deps import ensure_owner_or_admin, get_current_user, get_db
from gigster.api.schemas import RequestModel
from gigster.core.logging import document_ctx
from gigster.models.invoice import Invoice, Payment
from gigster.models.user import User
from gigster.workflows.invoices import InvoiceWorkflow

router = APIRouter(
    prefix="/api/payments",
    tags=["payments"],
    dependencies=[Depends(get_current_user)],
)


class PaymentCreateRequest(RequestModel):
    """A payment; ``client_id`` defaults to the invoice's client."""

    amount: Decimal = Field(gt=0)
    invoice_id: int | None = Field(default=None, gt=0)
    client_id: int | None = Field(default=None, gt=0)
    payment_date: datetime | None = None
    method: str | None = Field(default=None, max_length=50)
    reference: str | None = Field(default=None, max_length=255)


class PaymentResponse(BaseModel):
    id: int
    invoice_id: int | None
    client_id: int
    amount: Decimal
    payment_date: datetime
    method: str | None
    reference: str | None
    created_at: datetime


class PaymentListResponse(BaseModel):
    items: list[PaymentResponse]
    total: int
    limit: int
    offset: int


def _to_payment_response(payment: Payment) -> PaymentResponse:
    return PaymentResponse(
        id=payment.id,
        invoice_id=payment.invoice_id,
        client_id=payment.client_id,
        amount=payment.amount,
        payment_date=payment.payment_date,
        method=payment.method,
        reference=payment.reference,
        created_at=payment.created_at,
    )


@router.post("", response_model=PaymentResponse, status_code=status.HTTP_201_CREATED)
async def create_payment(
    payload: PaymentCreateRequest,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
) -> PaymentResponse:
    """Record a payment and credit its invoice in one transaction.

    Only the invoice's owner or an admin may apply a payment to it.
    """
    workflow = InvoiceWorkflow(db)
    if payload.invoice_id is not None:
        invoice = await workflow.get(payload.invoice_id)
        ensure_owner_or_admin(user, invoice.created_by_id)
        document_ctx.set(f"invoice:{invoice.id}")
    payment = await workflow.record_payment(
        amount=payload.amount,
        invoice_id=payload.invoice_id,
        client_id=payload.client_id,
        payment_date=payload.payment_date,
        method=payload.method,
        reference=payload.reference,
        recorded_by_id=user.id,
    )
    return _to_payment_response(payment)


@router.get("", response_model=PaymentListResponse)
async def list_payments(
    invoice_id: int | None = Query(default=None, gt=0),
    client_id: int | None = Query(default=None, gt=0),
    limit: int = Query(default=20, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
) -> PaymentListResponse:
    """Payments the caller recorded or that credit the caller's invoices."""
    filters = []
    if not user.is_admin:
        owned_invoices = select(Invoice.id).where(Invoice.created_by_id == user.id)
        filters.append(
            or_(
                Payment.recorded_by_id == user.id,
                Payment.invoice_id.in_(owned_invoices),
            )
        )
    if invoice_id is not None:
        filters.append(Payment.invoice_id == invoice_id)
    if client_id is not None:
        filters.append(Payment.client_id == client_id)

    count_stmt = select(func.count(Payment.id))
    list_stmt = select(Payment).order_by(Payment.payment_date.desc(), Payment.id.desc())
    if filters:
        count_stmt = count_stmt.where(*filters)
        list_stmt = list_stmt.where(*filters)

    total = int((await db.execute(count_stmt)).scalar() or 0)
    payments = (await db.execute(list_stmt.limit(limit).offset(offset))).scalars().all()
    return PaymentListResponse(
        items=[_to_payment_response(p) for p in payments],
        total=total,
        limit=limit,
        offset=offset,
    )
