"""Lifecycle state machines for proposals, invoices and contracts.

Each machine is bound to its ORM row (``model=document``,
``state_field="status"``) so the machine starts from the stored status and
writes the new status back on every transition. Transition callbacks stamp
the lifecycle timestamps; persistence is left to the caller's session.
"""

from typing import TYPE_CHECKING

import structlog
from statemachine import State, StateMachine
from statemachine.exceptions import TransitionNotAllowed

from gigster.models.base import utcnow
from gigster.models.contract import ContractStatus
from gigster.models.invoice import InvoiceStatus
from gigster.models.proposal import ProposalStatus

if TYPE_CHECKING:
    from gigster.models.contract import Contract
    from gigster.models.invoice import Invoice
    from gigster.models.proposal import Proposal

logger = structlog.get_logger()


class ProposalStateMachine(StateMachine):
    """State machine for proposal lifecycle management.

    States match ProposalStatus:
    - draft: editable, not yet shared
    - sent: shareable link issued and delivered
    - viewed: the client opened the shareable link
    - accepted / rejected / revision_requested: client response (final)

    Transitions:
    - mark_sent: draft -> sent; re-sending keeps sent/viewed as they are
    - mark_viewed: sent -> viewed
    - accept / reject / request_revision: sent|viewed -> response state
    """

    draft = State(initial=True, value=ProposalStatus.DRAFT)
    sent = State(value=ProposalStatus.SENT)
    viewed = State(value=ProposalStatus.VIEWED)
    accepted = State(final=True, value=ProposalStatus.ACCEPTED)
    rejected = State(final=True, value=ProposalStatus.REJECTED)
    revision_requested = State(final=True, value=ProposalStatus.REVISION_REQUESTED)

    mark_sent = draft.to(sent) | sent.to.itself() | viewed.to.itself()
    mark_viewed = sent.to(viewed)
    accept = sent.to(accepted) | viewed.to(accepted)
    reject = sent.to(rejected) | viewed.to(rejected)
    request_revision = sent.to(revision_requested) | viewed.to(revision_requested)

    def __init__(self, proposal: "Proposal") -> None:
        self.proposal = proposal
        super().__init__(model=proposal, state_field="status")

    def on_mark_sent(self) -> None:
        self.proposal.sent_at = utcnow()
        logger.info("proposal_sent", proposal_id=self.proposal.id)

    def on_mark_viewed(self) -> None:
        logger.info("proposal_viewed", proposal_id=self.proposal.id)

    def _record_response(self, message: str | None) -> None:
        self.proposal.responded_at = utcnow()
        self.proposal.response_message = message

    def on_accept(self, message: str | None = None) -> None:
        self._record_response(message)
        self.proposal.accepted_at = self.proposal.responded_at
        logger.info("proposal_accepted", proposal_id=self.proposal.id)

    def on_reject(self, message: str | None = None) -> None:
        self._record_response(message)
        logger.info("proposal_rejected", proposal_id=self.proposal.id)

    def on_request_revision(self, message: str | None = None) -> None:
        self._record_response(message)
        logger.info("proposal_revision_requested", proposal_id=self.proposal.id)


class InvoiceStateMachine(StateMachine):
    """State machine for invoice lifecycle management.

    - draft -> sent (mark_sent; re-sending keeps sent/overdue)
    - sent -> overdue (mark_overdue, driven by the overdue sweep)
    - sent|overdue -> paid (mark_paid, once balance_due reaches zero)
    """

    draft = State(initial=True, value=InvoiceStatus.DRAFT)
    sent = State(value=InvoiceStatus.SENT)
    overdue = State(value=InvoiceStatus.OVERDUE)
    paid = State(final=True, value=InvoiceStatus.PAID)

    mark_sent = draft.to(sent) | sent.to.itself() | overdue.to.itself()
    mark_overdue = sent.to(overdue)
    mark_paid = sent.to(paid) | overdue.to(paid)

    def __init__(self, invoice: "Invoice") -> None:
        self.invoice = invoice
        super().__init__(model=invoice, state_field="status")

    def on_mark_sent(self) -> None:
        self.invoice.sent_at = utcnow()
        logger.info("invoice_sent", invoice_id=self.invoice.id)

    def on_mark_overdue(self) -> None:
        self.invoice.overdue_notified_at = utcnow()
        logger.warning(
            "invoice_overdue",
            invoice_id=self.invoice.id,
            invoice_number=self.invoice.invoice_number,
            balance_due=self.invoice.balance_due,
        )

    def on_mark_paid(self) -> None:
        self.invoice.paid_at = utcnow()
        logger.info("invoice_paid", invoice_id=self.invoice.id)


class ContractStateMachine(StateMachine):
    """State machine for contract lifecycle and signature collection.

    - draft -> sent -> viewed
    - sent|viewed -> pending_signature (request_signature)
    - pending_signature|partially_signed -> partially_signed|fully_signed
      (sign; fully signed once ``required_signatures`` are collected)
    - fully_signed -> executed (final)
    """

    draft = State(initial=True, value=ContractStatus.DRAFT)
    sent = State(value=ContractStatus.SENT)
    viewed = State(value=ContractStatus.VIEWED)
    pending_signature = State(value=ContractStatus.PENDING_SIGNATURE)
    partially_signed = State(value=ContractStatus.PARTIALLY_SIGNED)
    fully_signed = State(value=ContractStatus.FULLY_SIGNED)
    executed = State(final=True, value=ContractStatus.EXECUTED)

    mark_sent = draft.to(sent) | sent.to.itself()
    mark_viewed = sent.to(viewed)
    request_signature = sent.to(pending_signature) | viewed.to(pending_signature)
    sign = (
        pending_signature.to(fully_signed, cond="signatures_complete")
        | pending_signature.to(partially_signed, unless="signatures_complete")
        | partially_signed.to(fully_signed, cond="signatures_complete")
        | partially_signed.to.itself(unless="signatures_complete")
    )
    execute = fully_signed.to(executed)

    def __init__(self, contract: "Contract") -> None:
        self.contract = contract
        super().__init__(model=contract, state_field="status")

    def signatures_complete(self, signature: dict | None = None) -> bool:
        """Whether the incoming signature completes the required set."""
        collected = len(self.contract.signatures or [])
        if signature is not None:
            collected += 1
        return collected >= self.contract.required_signatures

    def on_mark_sent(self) -> None:
        self.contract.sent_at = utcnow()
        logger.info("contract_sent", contract_id=self.contract.id)

    def on_mark_viewed(self) -> None:
        self.contract.viewed_at = utcnow()
        logger.info("contract_viewed", contract_id=self.contract.id)

    def on_request_signature(self) -> None:
        logger.info("contract_signature_requested", contract_id=self.contract.id)

    def on_sign(self, signature: dict) -> None:
        # Reassign so the JSON column registers the change.
        self.contract.signatures = [*(self.contract.signatures or []), signature]
        logger.info(
            "contract_signed",
            contract_id=self.contract.id,
            signer=signature.get("signer_name"),
            collected=len(self.contract.signatures),
            required=self.contract.required_signatures,
        )

    def on_enter_fully_signed(self) -> None:
        self.contract.fully_signed_at = utcnow()

    def on_execute(self) -> None:
        self.contract.executed_at = utcnow()
        logger.info("contract_executed", contract_id=self.contract.id)


def create_proposal_machine(proposal: "Proposal") -> ProposalStateMachine:
    return ProposalStateMachine(proposal)


def create_invoice_machine(invoice: "Invoice") -> InvoiceStateMachine:
    return InvoiceStateMachine(invoice)


def create_contract_machine(contract: "Contract") -> ContractStateMachine:
    return ContractStateMachine(contract)


__all__ = [
    "ContractStateMachine",
    "InvoiceStateMachine",
    "ProposalStateMachine",
    "TransitionNotAllowed",
    "create_contract_machine",
    "create_invoice_machine",
    "create_proposal_machine",
]
