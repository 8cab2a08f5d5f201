"""Tests for best-effort notification dispatch."""

from datetime import datetime
from decimal import Decimal
from pathlib import Path
from types import SimpleNamespace
from unittest.mock import AsyncMock

import pytest

from gigster.documents.pdf import InvoiceSnapshot
from gigster.integrations.storage import DocumentArchive
from gigster.notifications.circuit_breaker import CircuitOpenError
from gigster.notifications.dispatcher import DeliveryStatus, NotificationDispatcher
from gigster.notifications.email import EmailMessage


def _snapshot() -> InvoiceSnapshot:
    return InvoiceSnapshot(
        invoice_number="INV-20260101-0001",
        client_name="Acme Corp",
        client_email="billing@acme.example.com",
        line_items=[
            {"description": "Design", "quantity": "2", "rate": "50.00", "amount": "100.00"}
        ],
        subtotal=Decimal("100.00"),
        tax_rate=Decimal("10.00"),
        tax_amount=Decimal("10.00"),
        discount_amount=Decimal("0.00"),
        total_amount=Decimal("110.00"),
        amount_paid=Decimal("0.00"),
        balance_due=Decimal("110.00"),
        due_date=datetime(2026, 2, 1),
        notes=None,
    )


class TestSendEmail:
    @pytest.mark.asyncio
    async def test_unconfigured_email_is_skipped(
        self, dispatcher: NotificationDispatcher, email_provider: AsyncMock
    ) -> None:
        email_provider.configured = False

        result = await dispatcher.send_email(
            EmailMessage(to=["a@example.com"], subject="Hi", html="<p>Hi</p>")
        )

        assert result.status == DeliveryStatus.SKIPPED
        email_provider.send.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_missing_recipient_is_skipped(
        self, dispatcher: NotificationDispatcher
    ) -> None:
        result = await dispatcher.send_email(EmailMessage(to=[], subject="Hi", html=""))

        assert result.status == DeliveryStatus.SKIPPED
        assert result.detail == "no recipient"

    @pytest.mark.asyncio
    async def test_provider_error_is_reported_not_raised(
        self, dispatcher: NotificationDispatcher, email_provider: AsyncMock
    ) -> None:
        email_provider.send.side_effect = ConnectionError("timeout")

        result = await dispatcher.send_email(
            EmailMessage(to=["a@example.com"], subject="Hi", html="")
        )

        assert result.status == DeliveryStatus.FAILED
        assert result.ok is False
        assert result.detail == "timeout"

    @pytest.mark.asyncio
    async def test_open_circuit_is_reported_as_failure(
        self, email_provider: AsyncMock, sms_provider: AsyncMock
    ) -> None:
        breaker = AsyncMock()
        breaker.call.side_effect = CircuitOpenError("email")
        dispatcher = NotificationDispatcher(
            email_provider, sms_provider, breakers={"email": breaker}
        )

        result = await dispatcher.send_email(
            EmailMessage(to=["a@example.com"], subject="Hi", html="")
        )

        assert result.status == DeliveryStatus.FAILED
        assert "open" in result.detail
        email_provider.send.assert_not_awaited()


class TestDeliverInvoice:
    @pytest.mark.asyncio
    async def test_pdf_archived_and_attached(
        self,
        email_provider: AsyncMock,
        sms_provider: AsyncMock,
        tmp_path: Path,
    ) -> None:
        dispatcher = NotificationDispatcher(
            email_provider, sms_provider, archive=DocumentArchive(str(tmp_path))
        )

        results = await dispatcher.deliver_invoice(
            7, _snapshot(), "billing@acme.example.com"
        )

        assert [r.channel for r in results] == ["pdf", "archive", "email"]
        assert all(r.status == DeliveryStatus.DELIVERED for r in results)
        archived = tmp_path / "invoice" / "invoice-7-v1.pdf"
        assert archived.read_bytes().startswith(b"%PDF")
        message = email_provider.send.await_args.args[0]
        assert message.attachments[0].content == archived.read_bytes()

    @pytest.mark.asyncio
    async def test_pdf_failure_still_sends_email(
        self,
        dispatcher: NotificationDispatcher,
        email_provider: AsyncMock,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        def broken(*args: object) -> bytes:
            raise RuntimeError("font missing")

        monkeypatch.setattr("gigster.notifications.dispatcher.render_invoice_pdf", broken)

        results = await dispatcher.deliver_invoice(7, _snapshot(), "billing@acme.example.com")

        outcomes = {r.channel: r.status for r in results}
        assert outcomes["pdf"] == DeliveryStatus.FAILED
        assert outcomes["email"] == DeliveryStatus.DELIVERED
        assert email_provider.send.await_args.args[0].attachments == []


class TestHighPriorityTask:
    @pytest.mark.asyncio
    async def test_email_and_sms_for_opted_in_assignee(
        self,
        dispatcher: NotificationDispatcher,
        email_provider: AsyncMock,
        sms_provider: AsyncMock,
    ) -> None:
        assignee = SimpleNamespace(
            contact_email="alice@example.com", sms_opt_in=True, phone="+15550001111"
        )
        task = SimpleNamespace(id=3, description="Fix checkout", due_date=None, notes=None)

        results = await dispatcher.notify_high_priority_task(assignee, task, "Storefront")

        assert [(r.channel, r.status) for r in results] == [
            ("email", DeliveryStatus.DELIVERED),
            ("sms", DeliveryStatus.DELIVERED),
        ]
        assert "Storefront" in email_provider.send.await_args.args[0].html
        sms_provider.send.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_sms_failure_does_not_affect_email(
        self,
        dispatcher: NotificationDispatcher,
        sms_provider: AsyncMock,
    ) -> None:
        sms_provider.send.side_effect = RuntimeError("carrier rejected")
        assignee = SimpleNamespace(
            contact_email="alice@example.com", sms_opt_in=True, phone="+15550001111"
        )
        task = SimpleNamespace(id=3, description="Fix checkout", due_date=None, notes=None)

        results = await dispatcher.notify_high_priority_task(assignee, task)

        assert {r.channel: r.status for r in results} == {
            "email": DeliveryStatus.DELIVERED,
            "sms": DeliveryStatus.FAILED,
        }
