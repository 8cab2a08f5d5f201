"""Client and project SQLAlchemy models."""

import enum

from sqlalchemy import Enum, ForeignKey, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from gigster.models.base import Base, TimestampMixin


class ClientStatus(enum.Enum):
    """Relationship stage of a client."""

    PROSPECT = "prospect"
    ACTIVE = "active"
    INACTIVE = "inactive"


class ProjectStatus(enum.Enum):
    """Enumeration of project statuses."""

    ACTIVE = "active"
    COMPLETED = "completed"
    ON_HOLD = "on_hold"
    CANCELLED = "cancelled"


class Client(Base, TimestampMixin):
    """Represents a customer that receives proposals, invoices and contracts."""

    __tablename__ = "clients"

    id: Mapped[int] = mapped_column(primary_key=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    # Proposals reuse an existing client on an exact (case-sensitive) match.
    email: Mapped[str | None] = mapped_column(String(255), index=True)
    phone: Mapped[str | None] = mapped_column(String(32))
    company: Mapped[str | None] = mapped_column(String(255))
    status: Mapped[ClientStatus] = mapped_column(
        Enum(ClientStatus), default=ClientStatus.PROSPECT, nullable=False
    )
    notes: Mapped[str | None] = mapped_column(Text)


class Project(Base, TimestampMixin):
    """A body of work grouping tasks, time logs and proposals."""

    __tablename__ = "projects"

    id: Mapped[int] = mapped_column(primary_key=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text)
    status: Mapped[ProjectStatus] = mapped_column(
        Enum(ProjectStatus), default=ProjectStatus.ACTIVE, nullable=False
    )
    client_id: Mapped[int | None] = mapped_column(ForeignKey("clients.id"))
