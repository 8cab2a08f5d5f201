"""Invoice and payment models."""

import enum
from datetime import datetime
from decimal import Decimal

from sqlalchemy import DateTime, Enum, ForeignKey, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from gigster.models.base import Base, JSONType, Money, TimestampMixin, utcnow


class InvoiceStatus(enum.Enum):
    """Enumeration of invoice lifecycle states."""

    DRAFT = "draft"
    SENT = "sent"
    PAID = "paid"
    OVERDUE = "overdue"


class Invoice(Base, TimestampMixin):
    """A bill issued to a client.

    Stored amounts always satisfy
    ``total_amount == subtotal + tax_amount - discount_amount`` and
    ``balance_due == total_amount - amount_paid``.
    """

    __tablename__ = "invoices"

    id: Mapped[int] = mapped_column(primary_key=True)
    invoice_number: Mapped[str] = mapped_column(String(50), unique=True, nullable=False)
    client_id: Mapped[int] = mapped_column(ForeignKey("clients.id"), nullable=False)
    proposal_id: Mapped[int | None] = mapped_column(ForeignKey("proposals.id"))
    line_items: Mapped[list[dict]] = mapped_column(
        JSONType, default=list, nullable=False
    )
    subtotal: Mapped[Decimal] = mapped_column(Money, default=Decimal("0"), nullable=False)
    tax_rate: Mapped[Decimal] = mapped_column(
        Numeric(5, 2), default=Decimal("0"), nullable=False
    )
    tax_amount: Mapped[Decimal] = mapped_column(
        Money, default=Decimal("0"), nullable=False
    )
    discount_amount: Mapped[Decimal] = mapped_column(
        Money, default=Decimal("0"), nullable=False
    )
    total_amount: Mapped[Decimal] = mapped_column(
        Money, default=Decimal("0"), nullable=False
    )
    amount_paid: Mapped[Decimal] = mapped_column(
        Money, default=Decimal("0"), nullable=False
    )
    balance_due: Mapped[Decimal] = mapped_column(
        Money, default=Decimal("0"), nullable=False
    )
    status: Mapped[InvoiceStatus] = mapped_column(
        Enum(InvoiceStatus), default=InvoiceStatus.DRAFT, nullable=False, index=True
    )
    due_date: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    notes: Mapped[str | None] = mapped_column(Text)
    sent_at: Mapped[datetime | None] = mapped_column(DateTime)
    paid_at: Mapped[datetime | None] = mapped_column(DateTime)
    overdue_notified_at: Mapped[datetime | None] = mapped_column(DateTime)
    created_by_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False)


class Payment(Base):
    """Money received from a client, optionally applied to an invoice."""

    __tablename__ = "payments"

    id: Mapped[int] = mapped_column(primary_key=True)
    invoice_id: Mapped[int | None] = mapped_column(ForeignKey("invoices.id"))
    client_id: Mapped[int] = mapped_column(ForeignKey("clients.id"), nullable=False)
    amount: Mapped[Decimal] = mapped_column(Money, nullable=False)
    payment_date: Mapped[datetime] = mapped_column(
        DateTime, default=utcnow, nullable=False
    )
    method: Mapped[str | None] = mapped_column(String(50))
    reference: Mapped[str | None] = mapped_column(String(255))
    recorded_by_id: Mapped[int | None] = mapped_column(ForeignKey("users.id"))
    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=utcnow, nullable=False
    )
