"""Periodic invoice-overdue and contract-attention sweeps.

Each sweep takes a Redis ``SET NX EX`` lock for the length of one interval,
so across several app instances only one runs it per interval. Overdue
invoices are flipped and stamped in one transaction before any reminder is
sent; an invoice already ``overdue`` is never selected again, so each
transition produces exactly one reminder.
"""

import asyncio
import uuid
from dataclasses import dataclass, field
from datetime import datetime

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from gigster.core.database import session_scope
from gigster.core.logging import get_logger
from gigster.core.redis import acquire_lock
from gigster.models.base import utcnow
from gigster.models.invoice import Invoice, InvoiceStatus
from gigster.notifications.dispatcher import NotificationDispatcher, SideEffectResult
from gigster.workflows.contracts import AttentionItem, ContractWorkflow
from gigster.workflows.invoices import InvoiceWorkflow
from gigster.workflows.state_machines import create_invoice_machine

logger = get_logger(__name__)

LOCK_PREFIX = "gigster:sweep"


@dataclass
class SweepReport:
    overdue_invoice_ids: list[int] = field(default_factory=list)
    attention: list[AttentionItem] = field(default_factory=list)
    notifications: list[SideEffectResult] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)


async def sweep_overdue_invoices(
    session_factory: async_sessionmaker[AsyncSession],
    dispatcher: NotificationDispatcher | None = None,
    now: datetime | None = None,
) -> tuple[list[int], list[SideEffectResult]]:
    """Flip past-due ``sent`` invoices to ``overdue`` and send one reminder each."""
    now = now or utcnow()
    reminders = []
    async with session_scope(session_factory) as session:
        result = await session.execute(
            select(Invoice)
            .where(Invoice.status == InvoiceStatus.SENT, Invoice.due_date < now)
            .order_by(Invoice.id)
            .with_for_update(skip_locked=True)
        )
        invoices = list(result.scalars().all())
        workflow = InvoiceWorkflow(session)
        for invoice in invoices:
            create_invoice_machine(invoice).mark_overdue()
            snapshot, client_email = await workflow.snapshot(invoice)
            reminders.append((invoice.id, snapshot, client_email))
        await session.flush()

    flipped = [invoice_id for invoice_id, _, _ in reminders]
    if flipped:
        logger.info("overdue_sweep_flipped", count=len(flipped), invoice_ids=flipped)

    notifications: list[SideEffectResult] = []
    if dispatcher is not None:
        for invoice_id, snapshot, client_email in reminders:
            notifications.extend(
                await dispatcher.send_overdue_reminder(invoice_id, snapshot, client_email)
            )
    return flipped, notifications


async def sweep_contract_attention(
    session_factory: async_sessionmaker[AsyncSession],
    now: datetime | None = None,
) -> list[AttentionItem]:
    """Log contracts that need follow-up; read-only."""
    async with session_scope(session_factory) as session:
        items = await ContractWorkflow(session).needs_attention(now=now)
    for item in items:
        logger.info(
            "contract_needs_attention",
            contract_id=item.contract.id,
            contract_number=item.contract.contract_number,
            status=item.contract.status.value,
            reason=item.reason,
        )
    return items


class PeriodicSweeper:
    """Runs both sweeps every ``interval_seconds`` on the event loop.

    Usage in lifespan:
        sweeper = PeriodicSweeper(session_factory, dispatcher, redis, 3600)
        sweeper.start()
        yield
        await sweeper.stop()
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        dispatcher: NotificationDispatcher | None,
        redis_pool: object | None,
        interval_seconds: int,
    ) -> None:
        self.session_factory = session_factory
        self.dispatcher = dispatcher
        self.redis_pool = redis_pool
        self.interval_seconds = interval_seconds
        self.owner = uuid.uuid4().hex
        self._task: asyncio.Task[None] | None = None

    async def _locked(self, name: str) -> bool:
        acquired = await acquire_lock(
            self.redis_pool,
            f"{LOCK_PREFIX}:{name}",
            self.owner,
            self.interval_seconds,
        )
        if not acquired:
            logger.info("sweep_skipped_locked", sweep=name)
        return acquired

    async def run_once(self, now: datetime | None = None) -> SweepReport:
        report = SweepReport()
        if await self._locked("invoice_overdue"):
            report.overdue_invoice_ids, report.notifications = await sweep_overdue_invoices(
                self.session_factory, self.dispatcher, now=now
            )
        else:
            report.skipped.append("invoice_overdue")

        if await self._locked("contract_attention"):
            report.attention = await sweep_contract_attention(self.session_factory, now=now)
        else:
            report.skipped.append("contract_attention")
        return report

    async def _run_forever(self) -> None:
        while True:
            try:
                await self.run_once()
            except Exception as e:
                logger.exception("sweep_failed", error=str(e))
            await asyncio.sleep(self.interval_seconds)

    def start(self) -> None:
        if self._task is None:
            self._task = asyncio.create_task(self._run_forever())
            logger.info("sweeper_started", interval_seconds=self.interval_seconds)

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("sweeper_stopped")
