"""Subjects and HTML bodies for outbound notifications."""

from dataclasses import dataclass
from datetime import datetime
from html import escape

from gigster.documents.money import format_currency
from gigster.documents.renderer import format_long_date

BRAND = "Gigster Garage"

_LAYOUT = """<!DOCTYPE html>
<html>
<head><meta charset="UTF-8"></head>
<body style="font-family: Arial, sans-serif; line-height: 1.6; color: #333;">
<div style="max-width: 600px; margin: 0 auto; padding: 20px;">
<div style="background-color: {accent}; color: white; padding: 20px; border-radius: 8px 8px 0 0;">
<h1 style="margin: 0; font-size: 22px;">{heading}</h1>
</div>
<div style="background-color: #f9fafb; padding: 30px; border: 1px solid #e5e7eb;">
{body}
</div>
<div style="background-color: #374151; color: white; padding: 16px; text-align: center; border-radius: 0 0 8px 8px;">
{brand}
</div>
</div>
</body>
</html>"""

_BUTTON = (
    '<p><a href="{url}" style="background-color: #2563eb; color: white; '
    'padding: 12px 24px; text-decoration: none; border-radius: 8px; '
    'display: inline-block; font-weight: bold;">{label}</a></p>'
)


@dataclass(frozen=True)
class RenderedMessage:
    subject: str
    html: str


def _layout(heading: str, body: str, accent: str = "#007BFF") -> str:
    return _LAYOUT.format(
        accent=accent, heading=escape(heading), body=body, brand=BRAND
    )


def _paragraphs(*lines: str | None) -> str:
    return "\n".join(f"<p>{escape(line)}</p>" for line in lines if line)


def proposal_email(
    title: str,
    client_name: str,
    share_url: str,
    sender_name: str | None = None,
    message: str | None = None,
    expires_at: datetime | None = None,
) -> RenderedMessage:
    body = _paragraphs(
        f"Hi {client_name},",
        message
        or f"{sender_name or BRAND} has shared a proposal with you: {title}.",
        f"This proposal is valid until {format_long_date(expires_at)}."
        if expires_at
        else None,
    )
    body += _BUTTON.format(url=escape(share_url, quote=True), label="Review proposal")
    return RenderedMessage(subject=f"Proposal: {title}", html=_layout(title, body))


def proposal_response_email(
    title: str,
    client_name: str,
    response: str,
    message: str | None = None,
) -> RenderedMessage:
    label = response.replace("_", " ")
    body = _paragraphs(
        f"{client_name} responded to your proposal \"{title}\": {label}.",
        f"Their message: {message}" if message else None,
    )
    return RenderedMessage(
        subject=f"Proposal {label}: {title}",
        html=_layout("Proposal response", body),
    )


def invoice_email(
    invoice_number: str,
    client_name: str,
    total_amount: object,
    balance_due: object,
    due_date: datetime,
) -> RenderedMessage:
    body = _paragraphs(
        f"Hi {client_name},",
        f"Please find invoice {invoice_number} attached.",
        f"Total: {format_currency(total_amount)}. "
        f"Balance due: {format_currency(balance_due)}.",
        f"Payment is due by {format_long_date(due_date)}.",
    )
    return RenderedMessage(
        subject=f"Invoice {invoice_number} from {BRAND}",
        html=_layout(f"Invoice {invoice_number}", body),
    )


def overdue_reminder_email(
    invoice_number: str,
    client_name: str,
    balance_due: object,
    due_date: datetime,
) -> RenderedMessage:
    body = _paragraphs(
        f"Hi {client_name},",
        f"Invoice {invoice_number} was due on {format_long_date(due_date)} "
        f"and has an outstanding balance of {format_currency(balance_due)}.",
        "If you have already paid, please disregard this reminder.",
    )
    return RenderedMessage(
        subject=f"Reminder: invoice {invoice_number} is overdue",
        html=_layout("Payment reminder", body, accent="#dc2626"),
    )


def contract_email(
    contract_number: str,
    title: str,
    client_name: str,
    share_url: str,
) -> RenderedMessage:
    body = _paragraphs(
        f"Hi {client_name},",
        f"Contract {contract_number} ({title}) is ready for your review.",
    )
    body += _BUTTON.format(url=escape(share_url, quote=True), label="Review contract")
    return RenderedMessage(
        subject=f"Contract {contract_number}: {title}",
        html=_layout(title, body),
    )


def high_priority_task_email(
    description: str,
    due_date: datetime | None,
    project_name: str | None,
    notes: str | None,
    task_url: str,
) -> RenderedMessage:
    body = _paragraphs(
        f"Description: {description}",
        "Priority: HIGH",
        f"Due date: {format_long_date(due_date) if due_date else 'Not set'}",
        f"Project: {project_name or 'No project assigned'}",
        f"Notes: {notes}" if notes else None,
    )
    body += _BUTTON.format(url=escape(task_url, quote=True), label="View task")
    return RenderedMessage(
        subject="You've Received a High Priority Task",
        html=_layout("High priority task", body, accent="#dc2626"),
    )


def high_priority_task_sms(description: str) -> str:
    return (
        f"High priority task '{description}' assigned to you. "
        f"Check {BRAND} for details."
    )
