"""Tests for the overdue-invoice and contract-attention sweeps."""

from datetime import timedelta
from decimal import Decimal
from unittest.mock import AsyncMock

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from gigster.core.database import session_scope
from gigster.models.base import utcnow
from gigster.models.client import Client
from gigster.models.contract import ContractStatus
from gigster.models.invoice import Invoice, InvoiceStatus
from gigster.notifications.dispatcher import NotificationDispatcher
from gigster.workflows.contracts import ContractWorkflow
from gigster.workflows.invoices import InvoiceWorkflow
from gigster.workflows.sweeps import (
    PeriodicSweeper,
    sweep_contract_attention,
    sweep_overdue_invoices,
)
from tests.conftest import Users


async def _sent_invoice(
    session_factory: async_sessionmaker[AsyncSession],
    users: Users,
    client: Client,
    due_in_days: int,
) -> int:
    async with session_scope(session_factory) as session:
        workflow = InvoiceWorkflow(session)
        invoice = await workflow.create(
            client_id=client.id,
            line_items=[{"description": "Hosting", "quantity": 1, "rate": 80}],
            created_by_id=users.alice.id,
            tax_rate=Decimal("0"),
            due_date=utcnow() + timedelta(days=due_in_days),
        )
        await workflow.send(invoice)
        return invoice.id


@pytest.mark.asyncio
async def test_overdue_sweep_flips_and_reminds_once(
    session_factory: async_sessionmaker[AsyncSession],
    users: Users,
    client_record: Client,
    dispatcher: NotificationDispatcher,
    email_provider: AsyncMock,
) -> None:
    late = await _sent_invoice(session_factory, users, client_record, due_in_days=-2)
    await _sent_invoice(session_factory, users, client_record, due_in_days=5)

    flipped, notifications = await sweep_overdue_invoices(session_factory, dispatcher)

    assert flipped == [late]
    assert [n.channel for n in notifications] == ["email"]
    message = email_provider.send.await_args.args[0]
    assert message.to == ["billing@acme.example.com"]
    assert "overdue" in message.subject

    async with session_scope(session_factory) as session:
        invoice = await session.get(Invoice, late)
        assert invoice.status == InvoiceStatus.OVERDUE
        assert invoice.overdue_notified_at is not None

    again, _ = await sweep_overdue_invoices(session_factory, dispatcher)
    assert again == []
    assert email_provider.send.await_count == 1


@pytest.mark.asyncio
async def test_overdue_flip_survives_reminder_failure(
    session_factory: async_sessionmaker[AsyncSession],
    users: Users,
    client_record: Client,
    dispatcher: NotificationDispatcher,
    email_provider: AsyncMock,
) -> None:
    email_provider.send.side_effect = RuntimeError("mail relay down")
    late = await _sent_invoice(session_factory, users, client_record, due_in_days=-1)

    flipped, notifications = await sweep_overdue_invoices(session_factory, dispatcher)

    assert flipped == [late]
    assert notifications[0].status.value == "failed"
    async with session_scope(session_factory) as session:
        assert (await session.get(Invoice, late)).status == InvoiceStatus.OVERDUE


@pytest.mark.asyncio
async def test_contract_attention_sweep_is_read_only(
    session_factory: async_sessionmaker[AsyncSession],
    users: Users,
    client_record: Client,
) -> None:
    async with session_scope(session_factory) as session:
        workflow = ContractWorkflow(session)
        contract = await workflow.create(
            client_id=client_record.id,
            title="Support plan",
            created_by_id=users.alice.id,
            required_signatures=1,
            expiration_date=utcnow() - timedelta(days=1),
        )
        await workflow.send(contract)
        await workflow.request_signature(contract)
        await workflow.sign(contract, signer_name="Client")
        contract_id = contract.id

    items = await sweep_contract_attention(session_factory)

    assert [(i.contract.id, i.reason) for i in items] == [(contract_id, "expired")]
    assert items[0].contract.status == ContractStatus.FULLY_SIGNED


@pytest.mark.asyncio
async def test_sweeper_skips_when_lock_held(
    session_factory: async_sessionmaker[AsyncSession],
    users: Users,
    client_record: Client,
    dispatcher: NotificationDispatcher,
) -> None:
    late = await _sent_invoice(session_factory, users, client_record, due_in_days=-2)
    redis_pool = AsyncMock()
    redis_pool.set.return_value = False

    report = await PeriodicSweeper(
        session_factory, dispatcher, redis_pool, interval_seconds=60
    ).run_once()

    assert report.skipped == ["invoice_overdue", "contract_attention"]
    assert report.overdue_invoice_ids == []
    async with session_scope(session_factory) as session:
        assert (await session.get(Invoice, late)).status == InvoiceStatus.SENT


@pytest.mark.asyncio
async def test_sweeper_runs_when_lock_acquired(
    session_factory: async_sessionmaker[AsyncSession],
    users: Users,
    client_record: Client,
    dispatcher: NotificationDispatcher,
) -> None:
    late = await _sent_invoice(session_factory, users, client_record, due_in_days=-2)
    redis_pool = AsyncMock()
    redis_pool.set.return_value = True

    sweeper = PeriodicSweeper(session_factory, dispatcher, redis_pool, interval_seconds=60)
    report = await sweeper.run_once()

    assert report.overdue_invoice_ids == [late]
    assert report.skipped == []
    redis_pool.set.assert_any_await(
        "gigster:sweep:invoice_overdue", sweeper.owner, nx=True, ex=60
    )
