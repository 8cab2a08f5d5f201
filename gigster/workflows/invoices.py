"""Invoice lifecycle: totals, draft-only edits, sending and payments."""

import secrets
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from gigster.core.config import settings
from gigster.core.logging import get_logger
from gigster.documents.money import format_quantity, quantize_cents, to_decimal
from gigster.documents.pdf import InvoiceSnapshot
from gigster.models.base import utcnow
from gigster.models.client import Client
from gigster.models.invoice import Invoice, InvoiceStatus, Payment
from gigster.notifications.dispatcher import NotificationDispatcher, SideEffectResult
from gigster.workflows.errors import (
    ConflictError,
    DocumentNotFoundError,
    DraftOnlyError,
    InvalidOperationError,
)
from gigster.workflows.state_machines import create_invoice_machine

logger = get_logger(__name__)

PAYABLE_STATUSES = (InvoiceStatus.SENT, InvoiceStatus.OVERDUE)


@dataclass(frozen=True)
class InvoiceTotals:
    """Derived amounts for an invoice.

    ``amount = quantity x rate`` per line, ``tax = subtotal x rate / 100``,
    ``total = subtotal + tax - discount`` and ``balance = total - paid``,
    each rounded half-up to cents.
    """

    line_items: list[dict[str, str]]
    subtotal: Decimal
    tax_rate: Decimal
    tax_amount: Decimal
    discount_amount: Decimal
    total_amount: Decimal
    amount_paid: Decimal
    balance_due: Decimal


def normalize_line_items(items: Sequence[Mapping[str, Any]]) -> list[dict[str, str]]:
    """Recompute each line's ``amount``; decimals are stored as strings."""
    normalized = []
    for item in items:
        quantity = to_decimal(item.get("quantity", item.get("qty")), Decimal("1"))
        rate = quantize_cents(to_decimal(item.get("rate")))
        normalized.append(
            {
                "description": str(item.get("description") or ""),
                "quantity": format_quantity(quantity),
                "rate": str(rate),
                "amount": str(quantize_cents(quantity * rate)),
            }
        )
    return normalized


def compute_totals(
    line_items: Sequence[Mapping[str, Any]],
    tax_rate: object = None,
    discount_amount: object = None,
    amount_paid: object = None,
) -> InvoiceTotals:
    items = normalize_line_items(line_items)
    # Stored as Numeric(5, 2); tax must come from the rate as persisted.
    rate = quantize_cents(to_decimal(tax_rate))
    discount = quantize_cents(to_decimal(discount_amount))
    paid = quantize_cents(to_decimal(amount_paid))

    subtotal = quantize_cents(sum((Decimal(i["amount"]) for i in items), Decimal("0")))
    tax = quantize_cents(subtotal * rate / Decimal("100"))
    total = subtotal + tax - discount
    return InvoiceTotals(
        line_items=items,
        subtotal=subtotal,
        tax_rate=rate,
        tax_amount=tax,
        discount_amount=discount,
        total_amount=total,
        amount_paid=paid,
        balance_due=total - paid,
    )


def apply_totals(invoice: Invoice, totals: InvoiceTotals) -> None:
    invoice.line_items = totals.line_items
    invoice.subtotal = totals.subtotal
    invoice.tax_rate = totals.tax_rate
    invoice.tax_amount = totals.tax_amount
    invoice.discount_amount = totals.discount_amount
    invoice.total_amount = totals.total_amount
    invoice.amount_paid = totals.amount_paid
    invoice.balance_due = totals.balance_due


def generate_invoice_number(now: datetime | None = None) -> str:
    return f"INV-{(now or utcnow()):%Y%m%d}-{secrets.token_hex(3).upper()}"


@dataclass
class InvoiceOutcome:
    invoice: Invoice
    notifications: list[SideEffectResult] = field(default_factory=list)


class InvoiceWorkflow:
    """Invoice lifecycle controller bound to one unit of work."""

    def __init__(
        self,
        session: AsyncSession,
        dispatcher: NotificationDispatcher | None = None,
    ) -> None:
        self.session = session
        self.dispatcher = dispatcher

    async def get(self, invoice_id: int) -> Invoice:
        invoice = await self.session.get(Invoice, invoice_id)
        if invoice is None:
            raise DocumentNotFoundError("Invoice", invoice_id)
        return invoice

    async def _get_client(self, client_id: int) -> Client:
        client = await self.session.get(Client, client_id)
        if client is None:
            raise DocumentNotFoundError("Client", client_id)
        return client

    async def create(
        self,
        *,
        client_id: int,
        line_items: Sequence[Mapping[str, Any]],
        created_by_id: int,
        tax_rate: Decimal | None = None,
        discount_amount: Decimal | None = None,
        due_date: datetime | None = None,
        notes: str | None = None,
        proposal_id: int | None = None,
    ) -> Invoice:
        await self._get_client(client_id)
        now = utcnow()
        invoice = Invoice(
            invoice_number=generate_invoice_number(now),
            client_id=client_id,
            proposal_id=proposal_id,
            status=InvoiceStatus.DRAFT,
            due_date=due_date or now + timedelta(days=settings.invoice_due_days),
            notes=notes,
            created_by_id=created_by_id,
        )
        apply_totals(
            invoice,
            compute_totals(
                line_items,
                tax_rate=settings.default_tax_rate if tax_rate is None else tax_rate,
                discount_amount=discount_amount,
            ),
        )
        self.session.add(invoice)
        await self.session.flush()
        logger.info(
            "invoice_created",
            invoice_id=invoice.id,
            invoice_number=invoice.invoice_number,
            total_amount=invoice.total_amount,
        )
        return invoice

    async def update(self, invoice: Invoice, changes: Mapping[str, Any]) -> Invoice:
        """Edit a draft invoice, recomputing totals with the edit.

        Raises:
            DraftOnlyError: If the invoice is no longer a draft; nothing changes.
        """
        if invoice.status != InvoiceStatus.DRAFT:
            raise DraftOnlyError("Invoice", invoice.status.value)

        if "client_id" in changes and changes["client_id"] is not None:
            await self._get_client(changes["client_id"])
            invoice.client_id = changes["client_id"]
        if "due_date" in changes and changes["due_date"] is not None:
            invoice.due_date = changes["due_date"]
        if "notes" in changes:
            invoice.notes = changes["notes"]

        apply_totals(
            invoice,
            compute_totals(
                (
                    changes["line_items"]
                    if changes.get("line_items") is not None
                    else invoice.line_items
                ),
                tax_rate=changes.get("tax_rate", invoice.tax_rate),
                discount_amount=changes.get("discount_amount", invoice.discount_amount),
                amount_paid=invoice.amount_paid,
            ),
        )
        await self.session.flush()
        logger.info("invoice_updated", invoice_id=invoice.id, total_amount=invoice.total_amount)
        return invoice

    async def delete(self, invoice: Invoice) -> None:
        if invoice.status != InvoiceStatus.DRAFT:
            raise DraftOnlyError("Invoice", invoice.status.value)
        await self.session.delete(invoice)
        await self.session.flush()
        logger.info("invoice_deleted", invoice_id=invoice.id)

    async def snapshot(self, invoice: Invoice) -> tuple[InvoiceSnapshot, str | None]:
        """Detached PDF data plus the client's email."""
        client = await self.session.get(Client, invoice.client_id)
        snapshot = InvoiceSnapshot(
            invoice_number=invoice.invoice_number,
            client_name=client.name if client else "Valued Client",
            client_email=client.email if client else None,
            line_items=list(invoice.line_items or []),
            subtotal=invoice.subtotal,
            tax_rate=invoice.tax_rate,
            tax_amount=invoice.tax_amount,
            discount_amount=invoice.discount_amount,
            total_amount=invoice.total_amount,
            amount_paid=invoice.amount_paid,
            balance_due=invoice.balance_due,
            due_date=invoice.due_date,
            notes=invoice.notes,
        )
        return snapshot, snapshot.client_email

    async def send(self, invoice: Invoice, recipient: str | None = None) -> InvoiceOutcome:
        """Mark sent and commit, then deliver the PDF by email.

        Raises:
            TransitionNotAllowed: If the invoice is already paid.
        """
        create_invoice_machine(invoice).mark_sent()
        await self.session.flush()
        await self.session.commit()

        outcome = InvoiceOutcome(invoice=invoice)
        if self.dispatcher is not None:
            snapshot, client_email = await self.snapshot(invoice)
            outcome.notifications = await self.dispatcher.deliver_invoice(
                invoice.id, snapshot, recipient or client_email
            )
        return outcome

    async def record_payment(
        self,
        *,
        amount: Decimal,
        invoice_id: int | None = None,
        client_id: int | None = None,
        payment_date: datetime | None = None,
        method: str | None = None,
        reference: str | None = None,
        recorded_by_id: int | None = None,
    ) -> Payment:
        """Record a payment and credit its invoice in the same transaction.

        Raises:
            InvalidOperationError: If the amount is not positive or no client
                can be determined.
            ConflictError: If the invoice is not awaiting payment.
        """
        amount = quantize_cents(to_decimal(amount))
        if amount <= 0:
            raise InvalidOperationError("Payment amount must be positive")

        invoice: Invoice | None = None
        if invoice_id is not None:
            invoice = await self.get(invoice_id)
            if invoice.status not in PAYABLE_STATUSES:
                raise ConflictError(
                    f"Invoice is {invoice.status.value} and cannot accept payments"
                )
            if client_id is not None and client_id != invoice.client_id:
                raise InvalidOperationError("Payment client does not match invoice client")
            client_id = invoice.client_id
        if client_id is None:
            raise InvalidOperationError("client_id is required without an invoice")
        await self._get_client(client_id)

        payment = Payment(
            invoice_id=invoice_id,
            client_id=client_id,
            amount=amount,
            payment_date=payment_date or utcnow(),
            method=method,
            reference=reference,
            recorded_by_id=recorded_by_id,
        )
        self.session.add(payment)

        if invoice is not None:
            invoice.amount_paid = quantize_cents(invoice.amount_paid + amount)
            invoice.balance_due = invoice.total_amount - invoice.amount_paid
            if invoice.balance_due <= 0:
                create_invoice_machine(invoice).mark_paid()

        await self.session.flush()
        logger.info(
            "payment_recorded",
            payment_id=payment.id,
            invoice_id=invoice_id,
            amount=amount,
            balance_due=invoice.balance_due if invoice else None,
        )
        return payment

    async def list_overdue(self, now: datetime | None = None) -> list[Invoice]:
        """Invoices flagged overdue plus sent invoices already past due."""
        now = now or utcnow()
        result = await self.session.execute(
            select(Invoice)
            .where(
                (Invoice.status == InvoiceStatus.OVERDUE)
                | ((Invoice.status == InvoiceStatus.SENT) & (Invoice.due_date < now))
            )
            .order_by(Invoice.due_date.asc(), Invoice.id.asc())
        )
        return list(result.scalars().all())
