"""Document content rendering (Markdown and PDF)."""

from gigster.documents.renderer import (
    DirectProposal,
    FieldDefinition,
    TemplateDefinition,
    render,
    render_direct_proposal,
)

__all__ = [
    "DirectProposal",
    "FieldDefinition",
    "TemplateDefinition",
    "render",
    "render_direct_proposal",
]
