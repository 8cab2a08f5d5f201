"""Best-effort delivery of documents and notifications.

Every side effect (PDF render, archive write, email, SMS) is isolated: a
failure is logged, reported to Sentry and returned as a ``SideEffectResult``
but never raised, so the state change that triggered it stands.

Usage:
    dispatcher = NotificationDispatcher.from_settings(breakers=breakers)
    results = await dispatcher.deliver_proposal(proposal, share_url)
    assert all(r.status != DeliveryStatus.FAILED for r in results)
"""

import asyncio
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any

from gigster.core.config import settings
from gigster.core.logging import get_logger
from gigster.core.sentry import capture_side_effect_failure
from gigster.documents.pdf import (
    InvoiceSnapshot,
    render_document_pdf,
    render_invoice_pdf,
)
from gigster.integrations.storage import DocumentArchive
from gigster.notifications import messages
from gigster.notifications.circuit_breaker import ProviderCircuitBreaker
from gigster.notifications.email import EmailAttachment, EmailMessage, EmailProvider
from gigster.notifications.sms import SmsProvider

if TYPE_CHECKING:
    from gigster.models.contract import Contract
    from gigster.models.proposal import Proposal
    from gigster.models.task import Task
    from gigster.models.user import User

logger = get_logger(__name__)


class DeliveryStatus(str, Enum):
    """Outcome of one side effect."""

    DELIVERED = "delivered"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass(frozen=True)
class SideEffectResult:
    """Typed outcome that callers and tests can assert on."""

    channel: str
    status: DeliveryStatus
    detail: str | None = None

    @property
    def ok(self) -> bool:
        return self.status != DeliveryStatus.FAILED

    def as_dict(self) -> dict[str, str | None]:
        return {
            "channel": self.channel,
            "status": self.status.value,
            "detail": self.detail,
        }


def _skipped(channel: str, reason: str) -> SideEffectResult:
    return SideEffectResult(channel, DeliveryStatus.SKIPPED, reason)


class NotificationDispatcher:
    """Composes the email, SMS, PDF and archive adapters."""

    def __init__(
        self,
        email: EmailProvider,
        sms: SmsProvider,
        archive: DocumentArchive | None = None,
        breakers: dict[str, ProviderCircuitBreaker] | None = None,
    ) -> None:
        self.email = email
        self.sms = sms
        self.archive = archive
        self.breakers = breakers or {}

    @classmethod
    def from_settings(
        cls, breakers: dict[str, ProviderCircuitBreaker] | None = None
    ) -> "NotificationDispatcher":
        archive = (
            DocumentArchive(settings.pdf_storage_url)
            if settings.pdf_storage_url
            else None
        )
        return cls(
            email=EmailProvider.from_settings(),
            sms=SmsProvider.from_settings(),
            archive=archive,
            breakers=breakers,
        )

    async def _attempt(
        self,
        channel: str,
        func: Callable[..., Awaitable[Any]],
        *args: Any,
    ) -> tuple[Any, SideEffectResult]:
        breaker = self.breakers.get(channel)
        try:
            if breaker is not None:
                value = await breaker.call(func, *args)
            else:
                value = await func(*args)
        except Exception as exc:
            logger.exception("notification_failed", channel=channel, error=str(exc))
            capture_side_effect_failure(exc, channel)
            return None, SideEffectResult(channel, DeliveryStatus.FAILED, str(exc))
        detail = value if isinstance(value, str) else None
        return value, SideEffectResult(channel, DeliveryStatus.DELIVERED, detail)

    async def render_pdf(
        self, render: Callable[..., bytes], *args: Any
    ) -> tuple[bytes | None, SideEffectResult]:
        """Render a PDF off the event loop; ``None`` bytes on failure."""

        async def _render() -> bytes:
            return await asyncio.to_thread(render, *args)

        content, result = await self._attempt("pdf", _render)
        if result.ok:
            result = SideEffectResult("pdf", DeliveryStatus.DELIVERED, f"{len(content)} bytes")
        return content, result

    async def archive_pdf(self, key: str, content: bytes | None) -> SideEffectResult:
        if self.archive is None:
            return _skipped("archive", "storage not configured")
        if content is None:
            return _skipped("archive", "no pdf")
        _, result = await self._attempt("archive", self.archive.write, key, content)
        return result

    async def send_email(self, message: EmailMessage) -> SideEffectResult:
        if not self.email.configured:
            logger.info("email_skipped", reason="not_configured", subject=message.subject)
            return _skipped("email", "email provider not configured")
        if not message.to:
            return _skipped("email", "no recipient")
        _, result = await self._attempt("email", self.email.send, message)
        return result

    async def send_sms(self, to_phone: str | None, body: str) -> SideEffectResult:
        if not self.sms.configured:
            return _skipped("sms", "sms provider not configured")
        if not to_phone:
            return _skipped("sms", "no phone number")
        _, result = await self._attempt("sms", self.sms.send, to_phone, body)
        return result

    async def deliver_proposal(
        self,
        proposal: "Proposal",
        share_url: str,
        recipient: str | None = None,
        message: str | None = None,
        sender_name: str | None = None,
    ) -> list[SideEffectResult]:
        """Render, archive and email a sent proposal with its share link."""
        pdf, pdf_result = await self.render_pdf(
            render_document_pdf, proposal.title, proposal.content
        )
        results = [pdf_result]
        results.append(
            await self.archive_pdf(
                DocumentArchive.key_for("proposal", proposal.id, proposal.version), pdf
            )
        )

        to = recipient or proposal.client_email
        rendered = messages.proposal_email(
            title=proposal.title,
            client_name=proposal.client_name,
            share_url=share_url,
            sender_name=sender_name,
            message=message,
            expires_at=proposal.expires_at,
        )
        attachments = (
            [EmailAttachment(f"proposal-{proposal.id}.pdf", pdf)] if pdf else []
        )
        results.append(
            await self.send_email(
                EmailMessage(
                    to=[to] if to else [],
                    subject=rendered.subject,
                    html=rendered.html,
                    attachments=attachments,
                )
            )
        )
        _log_outcome("proposal_delivery", proposal.id, results)
        return results

    async def notify_proposal_response(
        self, owner: "User | None", proposal: "Proposal"
    ) -> list[SideEffectResult]:
        """Tell the proposal owner how the client responded."""
        if owner is None or owner.contact_email is None:
            return [_skipped("email", "owner has no notification email")]
        rendered = messages.proposal_response_email(
            title=proposal.title,
            client_name=proposal.client_name,
            response=proposal.status.value,
            message=proposal.response_message,
        )
        result = await self.send_email(
            EmailMessage(
                to=[owner.contact_email], subject=rendered.subject, html=rendered.html
            )
        )
        return [result]

    async def deliver_invoice(
        self,
        invoice_id: int,
        snapshot: InvoiceSnapshot,
        recipient: str | None,
    ) -> list[SideEffectResult]:
        """Render, archive and email an invoice PDF."""
        pdf, pdf_result = await self.render_pdf(render_invoice_pdf, snapshot)
        results = [pdf_result]
        results.append(
            await self.archive_pdf(DocumentArchive.key_for("invoice", invoice_id), pdf)
        )
        rendered = messages.invoice_email(
            invoice_number=snapshot.invoice_number,
            client_name=snapshot.client_name,
            total_amount=snapshot.total_amount,
            balance_due=snapshot.balance_due,
            due_date=snapshot.due_date,
        )
        attachments = (
            [EmailAttachment(f"{snapshot.invoice_number}.pdf", pdf)] if pdf else []
        )
        results.append(
            await self.send_email(
                EmailMessage(
                    to=[recipient] if recipient else [],
                    subject=rendered.subject,
                    html=rendered.html,
                    attachments=attachments,
                )
            )
        )
        _log_outcome("invoice_delivery", invoice_id, results)
        return results

    async def send_overdue_reminder(
        self, invoice_id: int, snapshot: InvoiceSnapshot, recipient: str | None
    ) -> list[SideEffectResult]:
        rendered = messages.overdue_reminder_email(
            invoice_number=snapshot.invoice_number,
            client_name=snapshot.client_name,
            balance_due=snapshot.balance_due,
            due_date=snapshot.due_date,
        )
        result = await self.send_email(
            EmailMessage(
                to=[recipient] if recipient else [],
                subject=rendered.subject,
                html=rendered.html,
            )
        )
        _log_outcome("overdue_reminder", invoice_id, [result])
        return [result]

    async def deliver_contract(
        self,
        contract: "Contract",
        client_name: str,
        share_url: str,
        recipient: str | None,
    ) -> list[SideEffectResult]:
        pdf, pdf_result = await self.render_pdf(
            render_document_pdf, contract.title, contract.content
        )
        results = [pdf_result]
        results.append(
            await self.archive_pdf(DocumentArchive.key_for("contract", contract.id), pdf)
        )
        rendered = messages.contract_email(
            contract_number=contract.contract_number,
            title=contract.title,
            client_name=client_name,
            share_url=share_url,
        )
        attachments = (
            [EmailAttachment(f"{contract.contract_number}.pdf", pdf)] if pdf else []
        )
        results.append(
            await self.send_email(
                EmailMessage(
                    to=[recipient] if recipient else [],
                    subject=rendered.subject,
                    html=rendered.html,
                    attachments=attachments,
                )
            )
        )
        _log_outcome("contract_delivery", contract.id, results)
        return results

    async def notify_high_priority_task(
        self,
        assignee: "User",
        task: "Task",
        project_name: str | None = None,
    ) -> list[SideEffectResult]:
        """Email (and optionally text) the assignee of a high-priority task."""
        results: list[SideEffectResult] = []
        if assignee.contact_email:
            rendered = messages.high_priority_task_email(
                description=task.description,
                due_date=task.due_date,
                project_name=project_name,
                notes=task.notes,
                task_url=f"{settings.app_base_url.rstrip('/')}/?task={task.id}",
            )
            results.append(
                await self.send_email(
                    EmailMessage(
                        to=[assignee.contact_email],
                        subject=rendered.subject,
                        html=rendered.html,
                    )
                )
            )
        else:
            results.append(_skipped("email", "assignee opted out"))

        if assignee.sms_opt_in:
            results.append(
                await self.send_sms(
                    assignee.phone, messages.high_priority_task_sms(task.description)
                )
            )
        else:
            results.append(_skipped("sms", "assignee opted out"))
        return results


def _log_outcome(
    event: str, document_id: int, results: Sequence[SideEffectResult]
) -> None:
    logger.info(
        event,
        document_id=document_id,
        outcomes={r.channel: r.status.value for r in results},
    )
