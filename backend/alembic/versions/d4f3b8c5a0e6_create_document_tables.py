"""create consultation and document tables

Revision ID: d4f3b8c5a0e6
Revises: c3e2a7b4f9d5
Create Date: 2026-09-28 11:05:00.000000
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "d4f3b8c5a0e6"
down_revision: Union[str, None] = "c3e2a7b4f9d5"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

DOCUMENT_STATUSES = "('draft', 'sent', 'accepted', 'declined', 'paid', 'cancelled')"


def _owned_columns() -> list[sa.Column]:
    return [
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("tenant_id", sa.Integer(), sa.ForeignKey("tenants.id", ondelete="RESTRICT"), nullable=False),
        sa.Column(
            "created_by_user_id",
            sa.Integer(),
            sa.ForeignKey("users.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    ]


def _owned_indexes(table: str) -> None:
    op.create_index(op.f(f"ix_{table}_id"), table, ["id"], unique=False)
    op.create_index(op.f(f"ix_{table}_tenant_id"), table, ["tenant_id"], unique=False)
    op.create_index(op.f(f"ix_{table}_created_by_user_id"), table, ["created_by_user_id"], unique=False)


def _drop_owned_indexes(table: str) -> None:
    op.drop_index(op.f(f"ix_{table}_created_by_user_id"), table_name=table)
    op.drop_index(op.f(f"ix_{table}_tenant_id"), table_name=table)
    op.drop_index(op.f(f"ix_{table}_id"), table_name=table)


def upgrade() -> None:
    op.create_table(
        "consultations",
        *_owned_columns(),
        sa.Column("client_name", sa.String(), nullable=False),
        sa.Column("status", sa.String(length=9), nullable=False),
        sa.CheckConstraint(
            "status IN ('draft', 'completed', 'archived', 'converted')",
            name="consultation_status_enum",
        ),
    )
    _owned_indexes("consultations")

    op.create_table(
        "consultation_drafts",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("tenant_id", sa.Integer(), sa.ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False),
        sa.Column(
            "consultation_id",
            sa.Integer(),
            sa.ForeignKey("consultations.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("notes", sa.String(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.UniqueConstraint("consultation_id", "user_id", name="uq_consultation_draft_user"),
    )
    op.create_index(op.f("ix_consultation_drafts_id"), "consultation_drafts", ["id"], unique=False)
    op.create_index(op.f("ix_consultation_drafts_tenant_id"), "consultation_drafts", ["tenant_id"], unique=False)
    op.create_index(
        op.f("ix_consultation_drafts_consultation_id"),
        "consultation_drafts",
        ["consultation_id"],
        unique=False,
    )

    op.create_table(
        "proposals",
        *_owned_columns(),
        sa.Column("proposal_number", sa.String(length=50), nullable=False),
        sa.Column("title", sa.String(), nullable=False),
        sa.Column("status", sa.String(length=9), nullable=False),
        sa.Column(
            "consultation_id",
            sa.Integer(),
            sa.ForeignKey("consultations.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.UniqueConstraint("tenant_id", "proposal_number", name="uq_proposals_tenant_number"),
        sa.CheckConstraint(f"status IN {DOCUMENT_STATUSES}", name="proposal_status_check"),
    )
    _owned_indexes("proposals")

    op.create_table(
        "contracts",
        *_owned_columns(),
        sa.Column("contract_number", sa.String(length=50), nullable=False),
        sa.Column("title", sa.String(), nullable=False),
        sa.Column("status", sa.String(length=9), nullable=False),
        sa.Column("proposal_id", sa.Integer(), sa.ForeignKey("proposals.id", ondelete="SET NULL"), nullable=True),
        sa.UniqueConstraint("tenant_id", "contract_number", name="uq_contracts_tenant_number"),
        sa.CheckConstraint(f"status IN {DOCUMENT_STATUSES}", name="contract_status_check"),
    )
    _owned_indexes("contracts")

    op.create_table(
        "invoices",
        *_owned_columns(),
        sa.Column("invoice_number", sa.String(length=50), nullable=False),
        sa.Column("title", sa.String(), nullable=False),
        sa.Column("status", sa.String(length=9), nullable=False),
        sa.Column("contract_id", sa.Integer(), sa.ForeignKey("contracts.id", ondelete="SET NULL"), nullable=True),
        sa.Column("total_cents", sa.Integer(), nullable=False, server_default="0"),
        sa.UniqueConstraint("tenant_id", "invoice_number", name="uq_invoices_tenant_number"),
        sa.CheckConstraint(f"status IN {DOCUMENT_STATUSES}", name="invoice_status_check"),
    )
    _owned_indexes("invoices")


def downgrade() -> None:
    for table in ("invoices", "contracts", "proposals"):
        _drop_owned_indexes(table)
        op.drop_table(table)
    op.drop_index(op.f("ix_consultation_drafts_consultation_id"), table_name="consultation_drafts")
    op.drop_index(op.f("ix_consultation_drafts_tenant_id"), table_name="consultation_drafts")
    op.drop_index(op.f("ix_consultation_drafts_id"), table_name="consultation_drafts")
    op.drop_table("consultation_drafts")
    _drop_owned_indexes("consultations")
    op.drop_table("consultations")
