"""Contract lifecycle: drafting, delivery and signature collection."""

import secrets
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Any

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from gigster.core.config import settings
from gigster.core.logging import get_logger
from gigster.documents.money import quantize_cents, to_decimal
from gigster.documents.renderer import line_items_total, parse_line_items
from gigster.models.base import utcnow
from gigster.models.client import Client
from gigster.models.contract import (
    AWAITING_SIGNATURE_STATUSES,
    SIGNED_STATUSES,
    Contract,
    ContractStatus,
)
from gigster.notifications.dispatcher import NotificationDispatcher, SideEffectResult
from gigster.workflows.errors import DocumentNotFoundError, DraftOnlyError
from gigster.workflows.state_machines import create_contract_machine

logger = get_logger(__name__)

SHARE_TOKEN_BYTES = 24
EDITABLE_FIELDS = frozenset(
    {
        "title",
        "content",
        "effective_date",
        "expiration_date",
        "required_signatures",
    }
)


def generate_contract_number(now: datetime | None = None) -> str:
    return f"CTR-{(now or utcnow()):%Y%m%d}-{secrets.token_hex(3).upper()}"


def share_url_for(token: str) -> str:
    return f"{settings.app_base_url.rstrip('/')}/shared/contracts/{token}"


def contract_value_for(
    line_items: Sequence[Mapping[str, Any]], explicit: object = None
) -> Decimal:
    """Explicit value when given, else the line-item total (quantity x rate)."""
    if explicit is not None:
        return quantize_cents(to_decimal(explicit))
    return line_items_total(parse_line_items(list(line_items), cost_key="rate"))


@dataclass
class ContractOutcome:
    contract: Contract
    notifications: list[SideEffectResult] = field(default_factory=list)

    @property
    def share_url(self) -> str | None:
        token = self.contract.share_token
        return share_url_for(token) if token else None


@dataclass(frozen=True)
class AttentionItem:
    """A contract that needs follow-up and why."""

    contract: Contract
    reason: str


class ContractWorkflow:
    """Contract lifecycle controller bound to one unit of work."""

    def __init__(
        self,
        session: AsyncSession,
        dispatcher: NotificationDispatcher | None = None,
    ) -> None:
        self.session = session
        self.dispatcher = dispatcher

    async def get(self, contract_id: int) -> Contract:
        contract = await self.session.get(Contract, contract_id)
        if contract is None:
            raise DocumentNotFoundError("Contract", contract_id)
        return contract

    async def get_by_token(self, token: str) -> Contract:
        result = await self.session.execute(
            select(Contract).where(Contract.share_token == token)
        )
        contract = result.scalar_one_or_none()
        if contract is None:
            raise DocumentNotFoundError("Contract", token)
        return contract

    async def create(
        self,
        *,
        client_id: int,
        title: str,
        created_by_id: int,
        content: str = "",
        line_items: Sequence[Mapping[str, Any]] = (),
        contract_value: Decimal | None = None,
        effective_date: datetime | None = None,
        expiration_date: datetime | None = None,
        required_signatures: int = 2,
    ) -> Contract:
        if await self.session.get(Client, client_id) is None:
            raise DocumentNotFoundError("Client", client_id)
        contract = Contract(
            contract_number=generate_contract_number(),
            title=title,
            client_id=client_id,
            content=content,
            line_items=[dict(item) for item in line_items],
            contract_value=contract_value_for(line_items, contract_value),
            status=ContractStatus.DRAFT,
            effective_date=effective_date,
            expiration_date=expiration_date,
            required_signatures=required_signatures,
            signatures=[],
            created_by_id=created_by_id,
        )
        self.session.add(contract)
        await self.session.flush()
        logger.info(
            "contract_created",
            contract_id=contract.id,
            contract_number=contract.contract_number,
        )
        return contract

    async def update(self, contract: Contract, changes: Mapping[str, Any]) -> Contract:
        """Edit a draft contract.

        Raises:
            DraftOnlyError: If the contract left draft; nothing changes.
        """
        if contract.status != ContractStatus.DRAFT:
            raise DraftOnlyError("Contract", contract.status.value)
        for name, value in changes.items():
            if name in EDITABLE_FIELDS and value is not None:
                setattr(contract, name, value)
        if changes.get("line_items") is not None:
            contract.line_items = [dict(item) for item in changes["line_items"]]
        if changes.get("line_items") is not None or changes.get("contract_value") is not None:
            contract.contract_value = contract_value_for(
                contract.line_items, changes.get("contract_value")
            )
        await self.session.flush()
        logger.info("contract_updated", contract_id=contract.id)
        return contract

    async def delete(self, contract: Contract) -> None:
        if contract.status != ContractStatus.DRAFT:
            raise DraftOnlyError("Contract", contract.status.value)
        await self.session.delete(contract)
        await self.session.flush()
        logger.info("contract_deleted", contract_id=contract.id)

    async def send(self, contract: Contract, recipient: str | None = None) -> ContractOutcome:
        create_contract_machine(contract).mark_sent()
        if not contract.share_token:
            contract.share_token = secrets.token_urlsafe(SHARE_TOKEN_BYTES)
        await self.session.flush()
        await self.session.commit()

        outcome = ContractOutcome(contract=contract)
        if self.dispatcher is not None:
            client = await self.session.get(Client, contract.client_id)
            outcome.notifications = await self.dispatcher.deliver_contract(
                contract,
                client_name=client.name if client else "Valued Client",
                share_url=share_url_for(contract.share_token),
                recipient=recipient or (client.email if client else None),
            )
        return outcome

    async def view(self, token: str) -> Contract:
        """Resolve a share token; the first view of a sent contract is recorded."""
        contract = await self.get_by_token(token)
        if contract.status == ContractStatus.SENT and contract.viewed_at is None:
            create_contract_machine(contract).mark_viewed()
            await self.session.flush()
        return contract

    async def request_signature(self, contract: Contract) -> Contract:
        create_contract_machine(contract).request_signature()
        await self.session.flush()
        return contract

    async def sign(
        self,
        contract: Contract,
        *,
        signer_name: str,
        signer_email: str | None = None,
        signer_role: str | None = None,
    ) -> Contract:
        signature = {
            "signer_name": signer_name,
            "signer_email": signer_email,
            "signer_role": signer_role,
            "signed_at": utcnow().isoformat(),
        }
        create_contract_machine(contract).sign(signature=signature)
        await self.session.flush()
        return contract

    async def execute(self, contract: Contract) -> Contract:
        create_contract_machine(contract).execute()
        await self.session.flush()
        return contract

    async def needs_attention(self, now: datetime | None = None) -> list[AttentionItem]:
        """Signed contracts nearing expiry plus contracts awaiting signatures.

        Read-only: nothing is mutated.
        """
        now = now or utcnow()
        horizon = now + timedelta(days=settings.contract_attention_days)
        result = await self.session.execute(
            select(Contract)
            .where(
                or_(
                    Contract.status.in_(AWAITING_SIGNATURE_STATUSES),
                    Contract.status.in_(SIGNED_STATUSES)
                    & Contract.expiration_date.is_not(None)
                    & (Contract.expiration_date <= horizon),
                )
            )
            .order_by(Contract.expiration_date.asc(), Contract.id.asc())
        )
        items = []
        for contract in result.scalars().all():
            if contract.status in AWAITING_SIGNATURE_STATUSES:
                reason = "awaiting_signature"
            elif contract.expiration_date < now:
                reason = "expired"
            else:
                reason = "expiring_soon"
            items.append(AttentionItem(contract=contract, reason=reason))
        return items
