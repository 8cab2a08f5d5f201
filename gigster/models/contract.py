"""Contract model."""

import enum
from datetime import datetime
from decimal import Decimal

from sqlalchemy import DateTime, Enum, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from gigster.models.base import Base, JSONType, Money, TimestampMixin


class ContractStatus(enum.Enum):
    """Enumeration of contract lifecycle states."""

    DRAFT = "draft"
    SENT = "sent"
    VIEWED = "viewed"
    PENDING_SIGNATURE = "pending_signature"
    PARTIALLY_SIGNED = "partially_signed"
    FULLY_SIGNED = "fully_signed"
    EXECUTED = "executed"


AWAITING_SIGNATURE_STATUSES = (
    ContractStatus.PENDING_SIGNATURE,
    ContractStatus.PARTIALLY_SIGNED,
)
SIGNED_STATUSES = (ContractStatus.FULLY_SIGNED, ContractStatus.EXECUTED)


class Contract(Base, TimestampMixin):
    """An agreement with a client that collects one or more signatures."""

    __tablename__ = "contracts"

    id: Mapped[int] = mapped_column(primary_key=True)
    contract_number: Mapped[str] = mapped_column(
        String(50), unique=True, nullable=False
    )
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    client_id: Mapped[int] = mapped_column(ForeignKey("clients.id"), nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False, default="")
    line_items: Mapped[list[dict]] = mapped_column(
        JSONType, default=list, nullable=False
    )
    contract_value: Mapped[Decimal] = mapped_column(
        Money, default=Decimal("0"), nullable=False
    )
    status: Mapped[ContractStatus] = mapped_column(
        Enum(ContractStatus), default=ContractStatus.DRAFT, nullable=False, index=True
    )
    share_token: Mapped[str | None] = mapped_column(String(64), unique=True)
    effective_date: Mapped[datetime | None] = mapped_column(DateTime)
    expiration_date: Mapped[datetime | None] = mapped_column(DateTime)
    required_signatures: Mapped[int] = mapped_column(Integer, default=2, nullable=False)
    signatures: Mapped[list[dict]] = mapped_column(
        JSONType, default=list, nullable=False
    )
    sent_at: Mapped[datetime | None] = mapped_column(DateTime)
    viewed_at: Mapped[datetime | None] = mapped_column(DateTime)
    fully_signed_at: Mapped[datetime | None] = mapped_column(DateTime)
    executed_at: Mapped[datetime | None] = mapped_column(DateTime)
    created_by_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False)
