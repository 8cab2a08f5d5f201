"""Document template model."""

import enum

from sqlalchemy import Boolean, Enum, ForeignKey, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from gigster.models.base import Base, JSONType, TimestampMixin


class TemplateType(enum.Enum):
    """Kind of document a template produces."""

    PROPOSAL = "proposal"
    INVOICE = "invoice"
    CONTRACT = "contract"
    DECK = "deck"


class Template(Base, TimestampMixin):
    """A reusable document definition.

    ``variables`` is an ordered list of field definitions
    (``{name, label, type, required, placeholder, defaultValue}``) with unique
    names. ``content`` is the legacy raw body with ``{{name}}`` placeholders;
    when present it takes precedence over field-by-field rendering.
    """

    __tablename__ = "templates"

    id: Mapped[int] = mapped_column(primary_key=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    type: Mapped[TemplateType] = mapped_column(Enum(TemplateType), nullable=False)
    description: Mapped[str | None] = mapped_column(Text)
    content: Mapped[str | None] = mapped_column(Text)
    variables: Mapped[list[dict]] = mapped_column(JSONType, default=list, nullable=False)
    is_system: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    is_public: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    created_by_id: Mapped[int | None] = mapped_column(ForeignKey("users.id"))
    tags: Mapped[list[str]] = mapped_column(JSONType, default=list, nullable=False)
    metadata_: Mapped[dict] = mapped_column(
        "metadata", JSONType, default=dict, nullable=False
    )
