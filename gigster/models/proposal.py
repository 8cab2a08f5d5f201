"""Proposal model."""

import enum
from datetime import datetime
from decimal import Decimal

from sqlalchemy import DateTime, Enum, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from gigster.models.base import Base, JSONType, Money, TimestampMixin


class ProposalStatus(enum.Enum):
    """Enumeration of proposal lifecycle states."""

    DRAFT = "draft"
    SENT = "sent"
    VIEWED = "viewed"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    REVISION_REQUESTED = "revision_requested"


class Proposal(Base, TimestampMixin):
    """A proposal sent to a client for acceptance.

    Revisions are separate rows chained through ``parent_proposal_id``; the
    pointer is written once at insert and never updated, so every chain is
    acyclic (a parent always predates its revisions).
    """

    __tablename__ = "proposals"

    id: Mapped[int] = mapped_column(primary_key=True)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    template_id: Mapped[int | None] = mapped_column(ForeignKey("templates.id"))
    project_id: Mapped[int | None] = mapped_column(ForeignKey("projects.id"))
    client_id: Mapped[int | None] = mapped_column(ForeignKey("clients.id"))
    client_name: Mapped[str] = mapped_column(String(255), nullable=False)
    client_email: Mapped[str | None] = mapped_column(String(255))
    content: Mapped[str] = mapped_column(Text, nullable=False, default="")
    variables: Mapped[dict] = mapped_column(JSONType, default=dict, nullable=False)
    line_items: Mapped[list[dict]] = mapped_column(
        JSONType, default=list, nullable=False
    )
    calculated_total: Mapped[Decimal | None] = mapped_column(Money)
    status: Mapped[ProposalStatus] = mapped_column(
        Enum(ProposalStatus), default=ProposalStatus.DRAFT, nullable=False
    )
    shareable_link: Mapped[str | None] = mapped_column(String(64), unique=True)
    sent_at: Mapped[datetime | None] = mapped_column(DateTime)
    viewed_at: Mapped[datetime | None] = mapped_column(DateTime)
    responded_at: Mapped[datetime | None] = mapped_column(DateTime)
    accepted_at: Mapped[datetime | None] = mapped_column(DateTime)
    expires_in_days: Mapped[int] = mapped_column(Integer, nullable=False, default=30)
    expires_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    response_message: Mapped[str | None] = mapped_column(Text)
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    parent_proposal_id: Mapped[int | None] = mapped_column(
        ForeignKey("proposals.id"), index=True
    )
    revision_notes: Mapped[str | None] = mapped_column(Text)
    created_by_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False)
