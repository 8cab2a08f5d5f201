"""Proposal lifecycle: create, send, view, respond and revise.

State changes are flushed and committed before any best-effort side effect
(PDF, archive, email) runs, so a delivery failure never undoes a send or a
client response.
"""

import secrets
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from gigster.core.config import settings
from gigster.core.logging import get_logger
from gigster.documents.money import quantize_cents
from gigster.documents.renderer import (
    DirectProposal,
    TemplateDefinition,
    line_items_total,
    parse_line_items,
    render,
    render_direct_proposal,
)
from gigster.models.base import utcnow
from gigster.models.client import Client, ClientStatus
from gigster.models.proposal import Proposal, ProposalStatus
from gigster.models.template import Template
from gigster.models.user import User
from gigster.notifications.dispatcher import NotificationDispatcher, SideEffectResult
from gigster.workflows.errors import (
    ConflictError,
    DocumentNotFoundError,
    DraftOnlyError,
    InvalidOperationError,
    ProposalExpiredError,
)
from gigster.workflows.state_machines import create_proposal_machine

logger = get_logger(__name__)

SHAREABLE_LINK_BYTES = 24

RESPONSE_EVENTS = {
    ProposalStatus.ACCEPTED: "accept",
    ProposalStatus.REJECTED: "reject",
    ProposalStatus.REVISION_REQUESTED: "request_revision",
}

# Free-text fields that may change while a proposal is still a draft.
EDITABLE_FIELDS = frozenset(
    {"title", "client_name", "client_email", "content", "project_id", "expires_in_days"}
)


def share_url_for(link: str) -> str:
    return f"{settings.app_base_url.rstrip('/')}/shared/proposals/{link}"


@dataclass
class ProposalOutcome:
    """A proposal after a transition plus the side effects it triggered."""

    proposal: Proposal
    notifications: list[SideEffectResult] = field(default_factory=list)

    @property
    def share_url(self) -> str | None:
        link = self.proposal.shareable_link
        return share_url_for(link) if link else None


class ProposalWorkflow:
    """Proposal lifecycle controller bound to one unit of work.

    Usage:
        workflow = ProposalWorkflow(session, dispatcher)
        proposal = await workflow.create_from_template(...)
        outcome = await workflow.send(proposal)
    """

    def __init__(
        self,
        session: AsyncSession,
        dispatcher: NotificationDispatcher | None = None,
    ) -> None:
        self.session = session
        self.dispatcher = dispatcher

    async def get(self, proposal_id: int) -> Proposal:
        proposal = await self.session.get(Proposal, proposal_id)
        if proposal is None:
            raise DocumentNotFoundError("Proposal", proposal_id)
        return proposal

    async def get_by_link(self, link: str) -> Proposal:
        result = await self.session.execute(
            select(Proposal).where(Proposal.shareable_link == link)
        )
        proposal = result.scalar_one_or_none()
        if proposal is None:
            raise DocumentNotFoundError("Proposal", link)
        return proposal

    async def resolve_client(self, name: str, email: str | None) -> Client | None:
        """Reuse the client with exactly this email, or create a prospect."""
        if not email:
            return None
        result = await self.session.execute(
            select(Client).where(Client.email == email).order_by(Client.id).limit(1)
        )
        client = result.scalar_one_or_none()
        if client is None:
            client = Client(name=name, email=email, status=ClientStatus.PROSPECT)
            self.session.add(client)
            await self.session.flush()
            logger.info("client_auto_created", client_id=client.id)
        return client

    async def _insert(self, proposal: Proposal) -> Proposal:
        client = await self.resolve_client(proposal.client_name, proposal.client_email)
        if client is not None:
            proposal.client_id = client.id
        self.session.add(proposal)
        await self.session.flush()
        logger.info(
            "proposal_created",
            proposal_id=proposal.id,
            version=proposal.version,
            client_id=proposal.client_id,
        )
        return proposal

    async def create_from_template(
        self,
        *,
        template_id: int,
        title: str,
        client_name: str,
        client_email: str | None,
        variables: Mapping[str, Any],
        created_by: User,
        project_id: int | None = None,
        expires_in_days: int | None = None,
    ) -> Proposal:
        template = await self.session.get(Template, template_id)
        if template is None:
            raise DocumentNotFoundError("Template", template_id)

        definition = TemplateDefinition.from_model(template)
        content = render(definition, variables, title)
        line_items = next(
            (
                variables.get(f.name)
                for f in definition.variables
                if f.type == "line_items" and isinstance(variables.get(f.name), list)
            ),
            [],
        )
        days = expires_in_days or settings.default_proposal_expiry_days

        proposal = Proposal(
            title=title,
            template_id=template.id,
            project_id=project_id,
            client_name=client_name,
            client_email=client_email,
            content=content,
            variables=dict(variables),
            line_items=list(line_items),
            calculated_total=(
                line_items_total(parse_line_items(line_items)) if line_items else None
            ),
            status=ProposalStatus.DRAFT,
            expires_in_days=days,
            expires_at=utcnow() + timedelta(days=days),
            version=1,
            created_by_id=created_by.id,
        )
        return await self._insert(proposal)

    async def create_direct(
        self,
        payload: DirectProposal,
        *,
        created_by: User,
        project_id: int | None = None,
        expires_in_days: int | None = None,
    ) -> Proposal:
        rows = parse_line_items(list(payload.line_items), cost_key="rate")
        total = (
            quantize_cents(payload.calculated_total)
            if payload.calculated_total is not None
            else line_items_total(rows)
        )
        days = expires_in_days or settings.default_proposal_expiry_days

        proposal = Proposal(
            title=payload.title,
            project_id=project_id,
            client_name=payload.client_name,
            client_email=payload.client_email,
            content=render_direct_proposal(payload),
            variables={},
            line_items=[
                {
                    "description": row.description,
                    "quantity": str(row.quantity),
                    "rate": str(quantize_cents(row.unit_cost)),
                    "amount": str(quantize_cents(row.subtotal)),
                }
                for row in rows
            ],
            calculated_total=total,
            status=ProposalStatus.DRAFT,
            expires_in_days=days,
            expires_at=utcnow() + timedelta(days=days),
            version=1,
            created_by_id=created_by.id,
        )
        return await self._insert(proposal)

    async def update(self, proposal: Proposal, changes: Mapping[str, Any]) -> Proposal:
        """Apply free-field edits to a draft.

        Raises:
            DraftOnlyError: If the proposal has already been sent.
        """
        if proposal.status != ProposalStatus.DRAFT:
            raise DraftOnlyError("Proposal", proposal.status.value)
        for name, value in changes.items():
            if name in EDITABLE_FIELDS:
                setattr(proposal, name, value)
        if "expires_in_days" in changes and changes["expires_in_days"]:
            proposal.expires_at = utcnow() + timedelta(days=proposal.expires_in_days)
        await self.session.flush()
        return proposal

    async def delete(self, proposal: Proposal) -> None:
        revisions = await self.session.scalar(
            select(func.count(Proposal.id)).where(
                Proposal.parent_proposal_id == proposal.id
            )
        )
        if revisions:
            raise ConflictError("Proposal has revisions and cannot be deleted")
        await self.session.delete(proposal)
        await self.session.flush()
        logger.info("proposal_deleted", proposal_id=proposal.id)

    async def send(
        self,
        proposal: Proposal,
        *,
        recipient: str | None = None,
        message: str | None = None,
        sender_name: str | None = None,
    ) -> ProposalOutcome:
        """Issue the shareable link (once), mark sent, then deliver.

        Raises:
            TransitionNotAllowed: If the client already responded.
        """
        create_proposal_machine(proposal).mark_sent()
        if not proposal.shareable_link:
            proposal.shareable_link = secrets.token_urlsafe(SHAREABLE_LINK_BYTES)
        await self.session.flush()
        await self.session.commit()

        outcome = ProposalOutcome(proposal=proposal)
        if self.dispatcher is not None:
            outcome.notifications = await self.dispatcher.deliver_proposal(
                proposal,
                share_url_for(proposal.shareable_link),
                recipient=recipient,
                message=message,
                sender_name=sender_name,
            )
        return outcome

    async def view(self, link: str) -> Proposal:
        """Resolve a shareable link, recording the first view."""
        proposal = await self.get_by_link(link)
        if proposal.viewed_at is not None:
            return proposal

        proposal.viewed_at = utcnow()
        machine = create_proposal_machine(proposal)
        if proposal.status == ProposalStatus.SENT:
            machine.mark_viewed()
        await self.session.flush()
        return proposal

    async def respond(
        self,
        link: str,
        response: ProposalStatus,
        message: str | None = None,
    ) -> ProposalOutcome:
        """Record the client's answer and notify the owner.

        Raises:
            InvalidOperationError: If ``response`` is not a response state.
            ProposalExpiredError: If the proposal expired; nothing changes.
            TransitionNotAllowed: If the proposal is a draft or already answered.
        """
        event = RESPONSE_EVENTS.get(response)
        if event is None:
            raise InvalidOperationError(f"Invalid response: {response.value}")

        proposal = await self.get_by_link(link)
        if utcnow() > proposal.expires_at:
            logger.info("proposal_response_expired", proposal_id=proposal.id)
            raise ProposalExpiredError("This proposal has expired")

        create_proposal_machine(proposal).send(event, message=message)
        await self.session.flush()
        await self.session.commit()

        outcome = ProposalOutcome(proposal=proposal)
        if self.dispatcher is not None:
            owner = await self.session.get(User, proposal.created_by_id)
            outcome.notifications = await self.dispatcher.notify_proposal_response(
                owner, proposal
            )
        return outcome

    async def create_revision(
        self,
        proposal: Proposal,
        *,
        notes: str | None,
        created_by: User,
    ) -> Proposal:
        """Derive a new draft one version above ``proposal``; the parent is untouched."""
        revision = Proposal(
            title=proposal.title,
            template_id=proposal.template_id,
            project_id=proposal.project_id,
            client_id=proposal.client_id,
            client_name=proposal.client_name,
            client_email=proposal.client_email,
            content=proposal.content,
            variables=dict(proposal.variables or {}),
            line_items=list(proposal.line_items or []),
            calculated_total=proposal.calculated_total,
            status=ProposalStatus.DRAFT,
            expires_in_days=proposal.expires_in_days,
            expires_at=utcnow() + timedelta(days=proposal.expires_in_days),
            version=proposal.version + 1,
            parent_proposal_id=proposal.id,
            revision_notes=notes,
            created_by_id=created_by.id,
        )
        self.session.add(revision)
        await self.session.flush()
        logger.info(
            "proposal_revision_created",
            proposal_id=revision.id,
            parent_proposal_id=proposal.id,
            version=revision.version,
        )
        return revision

    async def revision_chain(self, proposal: Proposal) -> list[Proposal]:
        """Ancestors of ``proposal`` from the original down to its parent."""
        chain: list[Proposal] = []
        parent_id = proposal.parent_proposal_id
        while parent_id is not None:
            parent = await self.session.get(Proposal, parent_id)
            if parent is None:
                break
            chain.append(parent)
            parent_id = parent.parent_proposal_id
        chain.reverse()
        return chain

