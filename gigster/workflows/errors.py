"""Domain errors raised by the lifecycle controllers.

Routers translate these to HTTP status codes; the controllers stay
transport-agnostic.
"""


class WorkflowError(Exception):
    """Base class for lifecycle errors."""


class DocumentNotFoundError(WorkflowError):
    """A referenced entity does not exist (404)."""

    def __init__(self, kind: str, identifier: object) -> None:
        self.kind = kind
        self.identifier = identifier
        super().__init__(f"{kind} not found")


class ConflictError(WorkflowError):
    """The request conflicts with the current state of the entity (409)."""


class DraftOnlyError(ConflictError):
    """A structural edit was attempted on a document that left draft (409)."""

    def __init__(self, kind: str, status: str) -> None:
        self.kind = kind
        self.status = status
        super().__init__(f"{kind} can only be changed while in draft (status: {status})")


class ProposalExpiredError(WorkflowError):
    """The client tried to respond after the proposal expired (400)."""


class InvalidOperationError(WorkflowError):
    """A request that is well-formed but violates a business rule (400)."""
