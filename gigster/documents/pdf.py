"""PDF rendering for proposals, contracts and invoices using reportlab.

Proposal and contract bodies are the Markdown produced by the content
renderer; only the subset it emits (headings, bold runs, pipe tables,
horizontal rules, italics lines) is interpreted.
"""

from __future__ import annotations

import io
import re
from collections.abc import Sequence
from dataclasses import dataclass
from decimal import Decimal
from xml.sax.saxutils import escape

from reportlab.lib import colors
from reportlab.lib.pagesizes import letter
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import inch
from reportlab.platypus import (
    Flowable,
    HRFlowable,
    Paragraph,
    SimpleDocTemplate,
    Spacer,
    Table,
    TableStyle,
)

from gigster.documents.money import format_currency, format_quantity, to_decimal
from gigster.documents.renderer import format_long_date

BRAND_COLOR = colors.HexColor("#007BFF")
DARK_GRAY = colors.HexColor("#1e293b")
LIGHT_GRAY = colors.HexColor("#f1f5f9")
MARGIN = 0.75 * inch

_BOLD = re.compile(r"\*\*(.+?)\*\*")
_ITALIC = re.compile(r"(?<!\*)\*(?!\*)(.+?)(?<!\*)\*(?!\*)")
_TABLE_DIVIDER = re.compile(r"^\|[\s\-|:]+\|$")


def _styles() -> dict[str, ParagraphStyle]:
    base = getSampleStyleSheet()
    return {
        "title": ParagraphStyle(
            "DocTitle",
            parent=base["Heading1"],
            fontSize=22,
            textColor=BRAND_COLOR,
            spaceAfter=12,
        ),
        "heading": ParagraphStyle(
            "DocHeading",
            parent=base["Heading2"],
            fontSize=14,
            textColor=DARK_GRAY,
            spaceBefore=14,
            spaceAfter=6,
        ),
        "body": ParagraphStyle(
            "DocBody",
            parent=base["Normal"],
            fontSize=10,
            leading=14,
            textColor=DARK_GRAY,
            spaceAfter=6,
        ),
    }


def _inline(text: str) -> str:
    """Escape XML and translate Markdown emphasis to reportlab markup."""
    markup = _BOLD.sub(r"<b>\1</b>", escape(text))
    return _ITALIC.sub(r"<i>\1</i>", markup)


def _table(rows: list[list[str]], body_style: ParagraphStyle) -> Table:
    data = [[Paragraph(_inline(cell), body_style) for cell in row] for row in rows]
    table = Table(data, repeatRows=1, hAlign="LEFT")
    table.setStyle(
        TableStyle(
            [
                ("BACKGROUND", (0, 0), (-1, 0), LIGHT_GRAY),
                ("GRID", (0, 0), (-1, -1), 0.5, colors.HexColor("#cbd5e1")),
                ("VALIGN", (0, 0), (-1, -1), "TOP"),
            ]
        )
    )
    return table


def markdown_to_flowables(content: str) -> list[Flowable]:
    """Convert rendered document Markdown into reportlab flowables."""
    styles = _styles()
    story: list[Flowable] = []
    pending_rows: list[list[str]] = []

    def flush_table() -> None:
        if pending_rows:
            story.append(_table(list(pending_rows), styles["body"]))
            story.append(Spacer(1, 8))
            pending_rows.clear()

    for raw_line in content.splitlines():
        line = raw_line.strip()
        if line.startswith("|") and line.endswith("|"):
            if not _TABLE_DIVIDER.match(line):
                pending_rows.append([cell.strip() for cell in line.strip("|").split("|")])
            continue
        flush_table()

        if not line:
            continue
        if line == "---":
            story.append(HRFlowable(width="100%", color=LIGHT_GRAY, spaceAfter=8))
        elif line.startswith("# "):
            story.append(Paragraph(_inline(line[2:]), styles["title"]))
        elif line.startswith("## "):
            story.append(Paragraph(_inline(line[3:]), styles["heading"]))
        else:
            story.append(Paragraph(_inline(line), styles["body"]))

    flush_table()
    return story


def _build(story: Sequence[Flowable], title: str) -> bytes:
    buffer = io.BytesIO()
    doc = SimpleDocTemplate(
        buffer,
        pagesize=letter,
        rightMargin=MARGIN,
        leftMargin=MARGIN,
        topMargin=MARGIN,
        bottomMargin=MARGIN,
        title=title,
        author="Gigster Garage",
    )
    doc.build(list(story))
    return buffer.getvalue()


def render_document_pdf(title: str, content: str) -> bytes:
    """Render a proposal or contract body to PDF bytes."""
    story = markdown_to_flowables(content)
    if not story:
        story = [Paragraph(_inline(title), _styles()["title"])]
    return _build(story, title)


@dataclass(frozen=True)
class InvoiceSnapshot:
    """Everything the invoice PDF needs, detached from the ORM session."""

    invoice_number: str
    client_name: str
    client_email: str | None
    line_items: Sequence[dict]
    subtotal: Decimal
    tax_rate: Decimal
    tax_amount: Decimal
    discount_amount: Decimal
    total_amount: Decimal
    amount_paid: Decimal
    balance_due: Decimal
    due_date: object
    notes: str | None = None


def render_invoice_pdf(invoice: InvoiceSnapshot) -> bytes:
    """Render an invoice with a line-item table and a totals block."""
    styles = _styles()
    story: list[Flowable] = [
        Paragraph(f"Invoice {escape(invoice.invoice_number)}", styles["title"]),
        Paragraph(f"<b>Bill to:</b> {escape(invoice.client_name)}", styles["body"]),
    ]
    if invoice.client_email:
        story.append(Paragraph(f"<b>Email:</b> {escape(invoice.client_email)}", styles["body"]))
    story.append(
        Paragraph(f"<b>Due date:</b> {format_long_date(invoice.due_date)}", styles["body"])
    )
    story.append(Spacer(1, 12))

    rows = [["Description", "Qty", "Rate", "Amount"]]
    for item in invoice.line_items:
        rows.append(
            [
                str(item.get("description") or "Service"),
                format_quantity(item.get("quantity")),
                format_currency(item.get("rate")),
                format_currency(item.get("amount")),
            ]
        )
    story.append(_table(rows, styles["body"]))
    story.append(Spacer(1, 12))

    totals = [
        ["Subtotal", format_currency(invoice.subtotal)],
        [f"Tax ({to_decimal(invoice.tax_rate):f}%)", format_currency(invoice.tax_amount)],
        ["Discount", format_currency(-to_decimal(invoice.discount_amount))],
        ["Total", format_currency(invoice.total_amount)],
        ["Paid", format_currency(invoice.amount_paid)],
        ["Balance due", format_currency(invoice.balance_due)],
    ]
    totals_table = Table(totals, hAlign="RIGHT")
    totals_table.setStyle(
        TableStyle(
            [
                ("ALIGN", (1, 0), (1, -1), "RIGHT"),
                ("FONTNAME", (0, -1), (-1, -1), "Helvetica-Bold"),
                ("LINEABOVE", (0, -1), (-1, -1), 0.5, DARK_GRAY),
            ]
        )
    )
    story.append(totals_table)

    if invoice.notes:
        story.append(Spacer(1, 12))
        story.append(Paragraph(_inline(invoice.notes), styles["body"]))

    return _build(story, f"Invoice {invoice.invoice_number}")
