"""Markdown content rendering for proposals and other generated documents.

Rendering is pure: output depends only on the arguments, never on the clock,
so the same template, values and title always produce identical text.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Any

from gigster.documents.money import (
    format_currency,
    format_quantity,
    quantize_cents,
    to_decimal,
)

if TYPE_CHECKING:
    from gigster.models.template import Template

NOT_SPECIFIED = "Not specified"
NO_LINE_ITEMS = "*No line items specified*"


@dataclass(frozen=True)
class FieldDefinition:
    """One typed input of a template."""

    name: str
    label: str = ""
    type: str = "text"
    required: bool = False
    placeholder: str | None = None
    default_value: Any = None

    @property
    def display_label(self) -> str:
        return self.label or self.name

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> FieldDefinition:
        """Build from the stored JSON shape (camelCase ``defaultValue``)."""
        default = data.get("defaultValue", data.get("default_value"))
        return cls(
            name=str(data["name"]),
            label=str(data.get("label") or ""),
            type=str(data.get("type") or "text"),
            required=bool(data.get("required", False)),
            placeholder=data.get("placeholder"),
            default_value=default,
        )


@dataclass(frozen=True)
class TemplateDefinition:
    """Renderer view of a template, decoupled from the ORM row."""

    name: str = "Untitled"
    type: str = "proposal"
    description: str | None = None
    content: str | None = None
    variables: Sequence[FieldDefinition] = field(default_factory=tuple)

    @classmethod
    def from_model(cls, template: Template) -> TemplateDefinition:
        return cls(
            name=template.name,
            type=template.type.value,
            description=template.description,
            content=template.content,
            variables=tuple(
                FieldDefinition.from_mapping(item) for item in template.variables or []
            ),
        )


@dataclass(frozen=True)
class LineItemRow:
    """A priced row of a line-item table."""

    description: str
    quantity: Decimal
    unit_cost: Decimal

    @property
    def subtotal(self) -> Decimal:
        return self.quantity * self.unit_cost


def parse_line_items(value: object, cost_key: str = "cost") -> list[LineItemRow]:
    """Normalize a raw line-item array; non-mapping entries are ignored."""
    if not isinstance(value, (list, tuple)):
        return []
    rows = []
    for item in value:
        if not isinstance(item, Mapping):
            continue
        rows.append(
            LineItemRow(
                description=str(item.get("description") or "N/A"),
                quantity=to_decimal(item.get("quantity")),
                unit_cost=to_decimal(item.get(cost_key)),
            )
        )
    return rows


def line_items_total(rows: Sequence[LineItemRow]) -> Decimal:
    """Grand total (sum of quantity x cost) rounded to cents."""
    return quantize_cents(sum((row.subtotal for row in rows), Decimal("0")))


def format_long_date(value: object) -> str:
    """Render ISO dates as ``January 5, 2026``; empty values as not specified."""
    if value in (None, ""):
        return NOT_SPECIFIED
    parsed: date | None = None
    if isinstance(value, datetime):
        parsed = value.date()
    elif isinstance(value, date):
        parsed = value
    else:
        text = str(value).strip()
        try:
            parsed = datetime.fromisoformat(text.replace("Z", "+00:00")).date()
        except ValueError:
            return text
    return f"{parsed:%B} {parsed.day}, {parsed.year}"


def _render_line_items(value: object) -> str:
    rows = parse_line_items(value)
    if not rows:
        return f"{NO_LINE_ITEMS}\n\n"

    lines = [
        "",
        "| Description | Qty | Cost | Subtotal |",
        "|-------------|-----|------|----------|",
    ]
    for row in rows:
        lines.append(
            f"| {row.description} | {format_quantity(row.quantity)} "
            f"| {format_currency(row.unit_cost)} | {format_currency(row.subtotal)} |"
        )
    lines.append("")
    lines.append(f"**Total: {format_currency(line_items_total(rows))}**")
    return "\n".join(lines) + "\n\n"


def render_field(definition: FieldDefinition, value: object) -> str:
    """Render one field block (heading plus type-specific body)."""
    block = f"## {definition.display_label}\n"
    kind = definition.type

    if kind == "line_items":
        return block + _render_line_items(value)
    if kind == "number":
        return block + f"**Amount:** {format_currency(value or 0)}\n\n"
    if kind == "date":
        return block + f"**Date:** {format_long_date(value)}\n\n"
    if kind == "email":
        return block + f"**Email:** {_text(value)}\n\n"
    if kind == "phone":
        return block + f"**Phone:** {_text(value)}\n\n"
    return block + f"{_text(value)}\n\n"


def _text(value: object) -> str:
    return "" if value is None else str(value)


def substitute_placeholders(content: str, values: Mapping[str, Any]) -> str:
    """Replace ``{{name}}`` for every supplied key; unknown placeholders stay."""
    result = content
    for key, value in values.items():
        result = result.replace("{{" + key + "}}", _text(value))
    return result


def render(
    template: TemplateDefinition,
    values: Mapping[str, Any],
    title: str,
) -> str:
    """Render a document from a template and field values.

    Templates with legacy raw ``content`` get literal placeholder substitution.
    Otherwise each field in ``template.variables`` becomes a formatted block,
    in declaration order.
    """
    if template.content and template.content.strip():
        return substitute_placeholders(template.content, values)

    parts = [
        f"# {title}\n\n",
        f"**Template:** {template.name}\n",
        f"**Type:** {template.type.capitalize()}\n\n",
    ]
    if template.description:
        parts.append(f"{template.description}\n\n")
    parts.append("---\n\n")

    for definition in template.variables:
        value = values.get(definition.name)
        if value in (None, "", []):
            value = definition.default_value if definition.default_value is not None else value
        parts.append(render_field(definition, value))

    parts.append(f"---\n\n*Generated from the {template.name} template*")
    return "".join(parts)


@dataclass(frozen=True)
class DirectProposal:
    """Fields of a proposal written without a template."""

    title: str
    client_name: str
    client_email: str | None = None
    project_description: str | None = None
    timeline: str | None = None
    deliverables: str | None = None
    terms: str | None = None
    line_items: Sequence[Mapping[str, Any]] = ()
    calculated_total: Decimal | None = None


def render_direct_proposal(proposal: DirectProposal) -> str:
    """Render a free-form proposal (overview, timeline, pricing, terms)."""
    parts = [f"# {proposal.title}\n\n", f"**Prepared for:** {proposal.client_name}\n"]
    if proposal.client_email:
        parts.append(f"**Email:** {proposal.client_email}\n")
    parts.append("\n")

    if proposal.project_description:
        parts.append(f"## Project Overview\n{proposal.project_description}\n\n")
    if proposal.timeline:
        parts.append(f"## Timeline\n{proposal.timeline}\n\n")

    rows = parse_line_items(list(proposal.line_items), cost_key="rate")
    if rows:
        parts.append("## Services & Pricing\n\n")
        parts.append("| Service | Qty | Rate | Amount |\n")
        parts.append("|---------|-----|------|--------|\n")
        for row in rows:
            parts.append(
                f"| {row.description} | {format_quantity(row.quantity)} "
                f"| {format_currency(row.unit_cost)} | {format_currency(row.subtotal)} |\n"
            )
        total = (
            proposal.calculated_total
            if proposal.calculated_total is not None
            else line_items_total(rows)
        )
        parts.append(f"\n**Total: {format_currency(total)}**\n\n")

    if proposal.deliverables:
        parts.append(f"## Deliverables\n{proposal.deliverables}\n\n")
    if proposal.terms:
        parts.append(f"## Terms & Conditions\n{proposal.terms}\n\n")

    parts.append("---\n\n*Prepared with Gigster Garage*")
    return "".join(parts)
