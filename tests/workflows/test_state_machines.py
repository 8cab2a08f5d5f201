"""Tests for the document lifecycle state machines."""

from datetime import datetime, timedelta
from decimal import Decimal

import pytest
from statemachine.exceptions import TransitionNotAllowed

from gigster.models.contract import Contract, ContractStatus
from gigster.models.invoice import Invoice, InvoiceStatus
from gigster.models.proposal import Proposal, ProposalStatus
from gigster.workflows.state_machines import (
    ContractStateMachine,
    create_contract_machine,
    create_invoice_machine,
    create_proposal_machine,
)


def _proposal(status: ProposalStatus = ProposalStatus.DRAFT) -> Proposal:
    return Proposal(
        id=1,
        title="Website",
        client_name="Acme",
        content="",
        status=status,
        expires_in_days=30,
        expires_at=datetime.now() + timedelta(days=30),
        version=1,
        created_by_id=1,
    )


def _invoice(status: InvoiceStatus = InvoiceStatus.DRAFT) -> Invoice:
    return Invoice(
        id=1,
        invoice_number="INV-1",
        client_id=1,
        status=status,
        due_date=datetime.now(),
        balance_due=Decimal("0"),
        created_by_id=1,
    )


def _contract(
    status: ContractStatus = ContractStatus.DRAFT, required_signatures: int = 2
) -> Contract:
    return Contract(
        id=1,
        contract_number="CTR-1",
        title="Retainer",
        client_id=1,
        status=status,
        required_signatures=required_signatures,
        signatures=[],
        created_by_id=1,
    )


class TestProposalStateMachine:
    """Tests for ProposalStateMachine transitions."""

    def test_starts_from_stored_status(self) -> None:
        sm = create_proposal_machine(_proposal(ProposalStatus.VIEWED))

        assert sm.current_state == sm.viewed

    def test_send_from_draft_stamps_sent_at(self) -> None:
        proposal = _proposal()

        create_proposal_machine(proposal).mark_sent()

        assert proposal.status == ProposalStatus.SENT
        assert proposal.sent_at is not None

    def test_resend_does_not_regress_viewed(self) -> None:
        proposal = _proposal(ProposalStatus.VIEWED)

        create_proposal_machine(proposal).mark_sent()

        assert proposal.status == ProposalStatus.VIEWED

    def test_accept_sets_accepted_at(self) -> None:
        proposal = _proposal(ProposalStatus.VIEWED)

        create_proposal_machine(proposal).accept(message="Looks great")

        assert proposal.status == ProposalStatus.ACCEPTED
        assert proposal.accepted_at is not None
        assert proposal.responded_at == proposal.accepted_at
        assert proposal.response_message == "Looks great"

    def test_reject_leaves_accepted_at_empty(self) -> None:
        proposal = _proposal(ProposalStatus.SENT)

        create_proposal_machine(proposal).reject()

        assert proposal.status == ProposalStatus.REJECTED
        assert proposal.responded_at is not None
        assert proposal.accepted_at is None

    def test_respond_via_event_name(self) -> None:
        proposal = _proposal(ProposalStatus.SENT)

        create_proposal_machine(proposal).send("request_revision", message="Cheaper?")

        assert proposal.status == ProposalStatus.REVISION_REQUESTED
        assert proposal.response_message == "Cheaper?"

    @pytest.mark.parametrize(
        "status",
        [ProposalStatus.DRAFT, ProposalStatus.ACCEPTED, ProposalStatus.REJECTED],
    )
    def test_cannot_respond_outside_sent_or_viewed(self, status: ProposalStatus) -> None:
        proposal = _proposal(status)

        with pytest.raises(TransitionNotAllowed):
            create_proposal_machine(proposal).accept()
        assert proposal.status == status

    def test_final_states_cannot_be_resent(self) -> None:
        with pytest.raises(TransitionNotAllowed):
            create_proposal_machine(_proposal(ProposalStatus.ACCEPTED)).mark_sent()


class TestInvoiceStateMachine:
    def test_send_overdue_paid(self) -> None:
        invoice = _invoice()
        sm = create_invoice_machine(invoice)

        sm.mark_sent()
        sm.mark_overdue()
        sm.mark_paid()

        assert invoice.status == InvoiceStatus.PAID
        assert invoice.sent_at is not None
        assert invoice.overdue_notified_at is not None
        assert invoice.paid_at is not None

    def test_overdue_only_from_sent(self) -> None:
        invoice = _invoice(InvoiceStatus.OVERDUE)

        with pytest.raises(TransitionNotAllowed):
            create_invoice_machine(invoice).mark_overdue()

    def test_draft_cannot_be_paid(self) -> None:
        with pytest.raises(TransitionNotAllowed):
            create_invoice_machine(_invoice()).mark_paid()

    def test_paid_is_final(self) -> None:
        with pytest.raises(TransitionNotAllowed):
            create_invoice_machine(_invoice(InvoiceStatus.PAID)).mark_sent()


class TestContractStateMachine:
    def test_signature_chain(self) -> None:
        contract = _contract(ContractStatus.SENT)
        sm = ContractStateMachine(contract)

        sm.mark_viewed()
        sm.request_signature()
        sm.sign(signature={"signer_name": "Client"})
        assert contract.status == ContractStatus.PARTIALLY_SIGNED

        sm.sign(signature={"signer_name": "Vendor"})
        assert contract.status == ContractStatus.FULLY_SIGNED
        assert contract.fully_signed_at is not None
        assert [s["signer_name"] for s in contract.signatures] == ["Client", "Vendor"]

        sm.execute()
        assert contract.status == ContractStatus.EXECUTED
        assert contract.executed_at is not None

    def test_single_signature_contract_completes_immediately(self) -> None:
        contract = _contract(ContractStatus.PENDING_SIGNATURE, required_signatures=1)

        create_contract_machine(contract).sign(signature={"signer_name": "Client"})

        assert contract.status == ContractStatus.FULLY_SIGNED

    def test_extra_signers_accumulate_while_partial(self) -> None:
        contract = _contract(ContractStatus.PENDING_SIGNATURE, required_signatures=3)
        sm = create_contract_machine(contract)

        sm.sign(signature={"signer_name": "A"})
        sm.sign(signature={"signer_name": "B"})

        assert contract.status == ContractStatus.PARTIALLY_SIGNED
        assert len(contract.signatures) == 2

    def test_cannot_sign_before_request(self) -> None:
        contract = _contract(ContractStatus.SENT)

        with pytest.raises(TransitionNotAllowed):
            create_contract_machine(contract).sign(signature={"signer_name": "A"})
        assert contract.signatures == []

    def test_cannot_execute_partial(self) -> None:
        with pytest.raises(TransitionNotAllowed):
            create_contract_machine(_contract(ContractStatus.PARTIALLY_SIGNED)).execute()
