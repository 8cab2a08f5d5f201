"""initial_schema

Revision ID: 5b2e8c41d0a7
Revises:
Create Date: 2026-10-19 09:12:44.318204

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision: str = '5b2e8c41d0a7'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

MONEY = sa.Numeric(12, 2, asdecimal=True)
JSON = sa.JSON().with_variant(postgresql.JSONB(), "postgresql")


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=True),
    ]


def upgrade() -> None:
    """Create users, clients, projects, tasks, templates and document tables."""
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("username", sa.String(100), nullable=False, unique=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("email", sa.String(255)),
        sa.Column("role", sa.Enum("ADMIN", "USER", name="userrole"), nullable=False),
        sa.Column("notification_email", sa.String(255)),
        sa.Column("phone", sa.String(32)),
        sa.Column("email_opt_in", sa.Boolean(), nullable=False),
        sa.Column("sms_opt_in", sa.Boolean(), nullable=False),
        *_timestamps(),
    )

    op.create_table(
        "clients",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("email", sa.String(255)),
        sa.Column("phone", sa.String(32)),
        sa.Column("company", sa.String(255)),
        sa.Column(
            "status",
            sa.Enum("PROSPECT", "ACTIVE", "INACTIVE", name="clientstatus"),
            nullable=False,
        ),
        sa.Column("notes", sa.Text()),
        *_timestamps(),
    )
    op.create_index("ix_clients_email", "clients", ["email"])

    op.create_table(
        "projects",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("description", sa.Text()),
        sa.Column(
            "status",
            sa.Enum("ACTIVE", "COMPLETED", "ON_HOLD", "CANCELLED", name="projectstatus"),
            nullable=False,
        ),
        sa.Column("client_id", sa.Integer(), sa.ForeignKey("clients.id")),
        *_timestamps(),
    )

    op.create_table(
        "tasks",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column(
            "status",
            sa.Enum("PENDING", "IN_PROGRESS", "COMPLETE", "OVERDUE", name="taskstatus"),
            nullable=False,
        ),
        sa.Column(
            "priority",
            sa.Enum("LOW", "MEDIUM", "HIGH", name="taskpriority"),
            nullable=False,
        ),
        sa.Column("due_date", sa.DateTime()),
        sa.Column("assigned_to_id", sa.Integer(), sa.ForeignKey("users.id")),
        sa.Column("created_by_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("project_id", sa.Integer(), sa.ForeignKey("projects.id")),
        sa.Column("parent_task_id", sa.Integer(), sa.ForeignKey("tasks.id")),
        sa.Column("notes", sa.Text()),
        sa.Column("progress_notes", JSON, nullable=False),
        *_timestamps(),
    )

    op.create_table(
        "task_dependencies",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("task_id", sa.Integer(), sa.ForeignKey("tasks.id"), nullable=False),
        sa.Column(
            "depends_on_task_id", sa.Integer(), sa.ForeignKey("tasks.id"), nullable=False
        ),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.UniqueConstraint("task_id", "depends_on_task_id", name="uq_task_dependency"),
    )

    op.create_table(
        "time_logs",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("task_id", sa.Integer(), sa.ForeignKey("tasks.id")),
        sa.Column("project_id", sa.Integer(), sa.ForeignKey("projects.id")),
        sa.Column("description", sa.String(500), nullable=False),
        sa.Column("start_time", sa.DateTime(), nullable=False),
        sa.Column("end_time", sa.DateTime()),
        sa.Column("duration_seconds", sa.Integer()),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("is_manual_entry", sa.Boolean(), nullable=False),
        sa.Column("edit_history", JSON, nullable=False),
        *_timestamps(),
    )

    op.create_table(
        "templates",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column(
            "type",
            sa.Enum("PROPOSAL", "INVOICE", "CONTRACT", "DECK", name="templatetype"),
            nullable=False,
        ),
        sa.Column("description", sa.Text()),
        sa.Column("content", sa.Text()),
        sa.Column("variables", JSON, nullable=False),
        sa.Column("is_system", sa.Boolean(), nullable=False),
        sa.Column("is_public", sa.Boolean(), nullable=False),
        sa.Column("created_by_id", sa.Integer(), sa.ForeignKey("users.id")),
        sa.Column("tags", JSON, nullable=False),
        sa.Column("metadata", JSON, nullable=False),
        *_timestamps(),
    )

    op.create_table(
        "proposals",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("template_id", sa.Integer(), sa.ForeignKey("templates.id")),
        sa.Column("project_id", sa.Integer(), sa.ForeignKey("projects.id")),
        sa.Column("client_id", sa.Integer(), sa.ForeignKey("clients.id")),
        sa.Column("client_name", sa.String(255), nullable=False),
        sa.Column("client_email", sa.String(255)),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("variables", JSON, nullable=False),
        sa.Column("line_items", JSON, nullable=False),
        sa.Column("calculated_total", MONEY),
        sa.Column(
            "status",
            sa.Enum(
                "DRAFT",
                "SENT",
                "VIEWED",
                "ACCEPTED",
                "REJECTED",
                "REVISION_REQUESTED",
                name="proposalstatus",
            ),
            nullable=False,
        ),
        sa.Column("shareable_link", sa.String(64), unique=True),
        sa.Column("sent_at", sa.DateTime()),
        sa.Column("viewed_at", sa.DateTime()),
        sa.Column("responded_at", sa.DateTime()),
        sa.Column("accepted_at", sa.DateTime()),
        sa.Column("expires_in_days", sa.Integer(), nullable=False),
        sa.Column("expires_at", sa.DateTime(), nullable=False),
        sa.Column("response_message", sa.Text()),
        sa.Column("version", sa.Integer(), nullable=False),
        sa.Column("parent_proposal_id", sa.Integer(), sa.ForeignKey("proposals.id")),
        sa.Column("revision_notes", sa.Text()),
        sa.Column("created_by_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        *_timestamps(),
    )
    op.create_index(
        "ix_proposals_parent_proposal_id", "proposals", ["parent_proposal_id"]
    )

    op.create_table(
        "invoices",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("invoice_number", sa.String(50), nullable=False, unique=True),
        sa.Column("client_id", sa.Integer(), sa.ForeignKey("clients.id"), nullable=False),
        sa.Column("proposal_id", sa.Integer(), sa.ForeignKey("proposals.id")),
        sa.Column("line_items", JSON, nullable=False),
        sa.Column("subtotal", MONEY, nullable=False),
        sa.Column("tax_rate", sa.Numeric(5, 2), nullable=False),
        sa.Column("tax_amount", MONEY, nullable=False),
        sa.Column("discount_amount", MONEY, nullable=False),
        sa.Column("total_amount", MONEY, nullable=False),
        sa.Column("amount_paid", MONEY, nullable=False),
        sa.Column("balance_due", MONEY, nullable=False),
        sa.Column(
            "status",
            sa.Enum("DRAFT", "SENT", "PAID", "OVERDUE", name="invoicestatus"),
            nullable=False,
        ),
        sa.Column("due_date", sa.DateTime(), nullable=False),
        sa.Column("notes", sa.Text()),
        sa.Column("sent_at", sa.DateTime()),
        sa.Column("paid_at", sa.DateTime()),
        sa.Column("overdue_notified_at", sa.DateTime()),
        sa.Column("created_by_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        *_timestamps(),
    )
    op.create_index("ix_invoices_status", "invoices", ["status"])

    op.create_table(
        "payments",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("invoice_id", sa.Integer(), sa.ForeignKey("invoices.id")),
        sa.Column("client_id", sa.Integer(), sa.ForeignKey("clients.id"), nullable=False),
        sa.Column("amount", MONEY, nullable=False),
        sa.Column("payment_date", sa.DateTime(), nullable=False),
        sa.Column("method", sa.String(50)),
        sa.Column("reference", sa.String(255)),
        sa.Column("recorded_by_id", sa.Integer(), sa.ForeignKey("users.id")),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )

    op.create_table(
        "contracts",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("contract_number", sa.String(50), nullable=False, unique=True),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("client_id", sa.Integer(), sa.ForeignKey("clients.id"), nullable=False),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("line_items", JSON, nullable=False),
        sa.Column("contract_value", MONEY, nullable=False),
        sa.Column(
            "status",
            sa.Enum(
                "DRAFT",
                "SENT",
                "VIEWED",
                "PENDING_SIGNATURE",
                "PARTIALLY_SIGNED",
                "FULLY_SIGNED",
                "EXECUTED",
                name="contractstatus",
            ),
            nullable=False,
        ),
        sa.Column("share_token", sa.String(64), unique=True),
        sa.Column("effective_date", sa.DateTime()),
        sa.Column("expiration_date", sa.DateTime()),
        sa.Column("required_signatures", sa.Integer(), nullable=False),
        sa.Column("signatures", JSON, nullable=False),
        sa.Column("sent_at", sa.DateTime()),
        sa.Column("viewed_at", sa.DateTime()),
        sa.Column("fully_signed_at", sa.DateTime()),
        sa.Column("executed_at", sa.DateTime()),
        sa.Column("created_by_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        *_timestamps(),
    )
    op.create_index("ix_contracts_status", "contracts", ["status"])


def downgrade() -> None:
    """Drop all tables and enum types."""
    for table in (
        "contracts",
        "payments",
        "invoices",
        "proposals",
        "templates",
        "time_logs",
        "task_dependencies",
        "tasks",
        "projects",
        "clients",
        "users",
    ):
        op.drop_table(table)

    bind = op.get_bind()
    for enum_name in (
        "contractstatus",
        "invoicestatus",
        "proposalstatus",
        "templatetype",
        "taskpriority",
        "taskstatus",
        "projectstatus",
        "clientstatus",
        "userrole",
    ):
        sa.Enum(name=enum_name).drop(bind, checkfirst=True)
