"""SQLAlchemy models for the Gigster Garage application."""

from gigster.models.base import Base
from gigster.models.client import Client, ClientStatus, Project, ProjectStatus
from gigster.models.contract import Contract, ContractStatus
from gigster.models.invoice import Invoice, InvoiceStatus, Payment
from gigster.models.proposal import Proposal, ProposalStatus
from gigster.models.task import (
    Task,
    TaskDependency,
    TaskPriority,
    TaskStatus,
    TimeLog,
)
from gigster.models.template import Template, TemplateType
from gigster.models.user import User, UserRole

__all__ = [
    "Base",
    "User",
    "UserRole",
    "Client",
    "ClientStatus",
    "Project",
    "ProjectStatus",
    "Task",
    "TaskDependency",
    "TaskPriority",
    "TaskStatus",
    "TimeLog",
    "Template",
    "TemplateType",
    "Proposal",
    "ProposalStatus",
    "Invoice",
    "InvoiceStatus",
    "Payment",
    "Contract",
    "ContractStatus",
]
