"""Document lifecycle controllers, state machines and background sweeps."""

from gigster.workflows.contracts import ContractWorkflow
from gigster.workflows.errors import (
    ConflictError,
    DocumentNotFoundError,
    DraftOnlyError,
    InvalidOperationError,
    ProposalExpiredError,
    WorkflowError,
)
from gigster.workflows.invoices import InvoiceWorkflow, compute_totals
from gigster.workflows.proposals import ProposalWorkflow
from gigster.workflows.state_machines import TransitionNotAllowed

__all__ = [
    "ConflictError",
    "ContractWorkflow",
    "DocumentNotFoundError",
    "DraftOnlyError",
    "InvalidOperationError",
    "InvoiceWorkflow",
    "ProposalExpiredError",
    "ProposalWorkflow",
    "TransitionNotAllowed",
    "WorkflowError",
    "compute_totals",
]
