"""create memberships and tenant_profiles tables

Revision ID: b2d1f6a3e8c4
Revises: a1c0e5f2d7b3
Create Date: 2026-09-28 10:20:00.000000
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "b2d1f6a3e8c4"
down_revision: Union[str, None] = "a1c0e5f2d7b3"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "memberships",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("tenant_id", sa.Integer(), sa.ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("role", sa.String(length=6), nullable=False),
        sa.Column("status", sa.String(length=9), nullable=False),
        sa.Column(
            "invited_by_user_id",
            sa.Integer(),
            sa.ForeignKey("users.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("accepted_at", sa.DateTime(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.UniqueConstraint("tenant_id", "user_id", name="uq_membership_user_tenant"),
        sa.CheckConstraint("role IN ('owner', 'admin', 'member')", name="membership_role_enum"),
        sa.CheckConstraint(
            "status IN ('active', 'invited', 'suspended')",
            name="membership_status_enum",
        ),
    )
    op.create_index(op.f("ix_memberships_id"), "memberships", ["id"], unique=False)
    op.create_index("ix_memberships_tenant_role", "memberships", ["tenant_id", "role"], unique=False)
    op.create_index("ix_memberships_user_status", "memberships", ["user_id", "status"], unique=False)

    op.create_table(
        "tenant_profiles",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("tenant_id", sa.Integer(), sa.ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False),
        sa.Column("proposal_prefix", sa.String(length=20), nullable=False, server_default="PROP"),
        sa.Column("next_proposal_number", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("contract_prefix", sa.String(length=20), nullable=False, server_default="CON"),
        sa.Column("next_contract_number", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("invoice_prefix", sa.String(length=20), nullable=False, server_default="INV"),
        sa.Column("next_invoice_number", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("quotation_prefix", sa.String(length=20), nullable=False, server_default="QUO"),
        sa.Column("next_quotation_number", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    )
    op.create_index(op.f("ix_tenant_profiles_id"), "tenant_profiles", ["id"], unique=False)
    op.create_index(op.f("ix_tenant_profiles_tenant_id"), "tenant_profiles", ["tenant_id"], unique=True)


def downgrade() -> None:
    op.drop_index(op.f("ix_tenant_profiles_tenant_id"), table_name="tenant_profiles")
    op.drop_index(op.f("ix_tenant_profiles_id"), table_name="tenant_profiles")
    op.drop_table("tenant_profiles")
    op.drop_index("ix_memberships_user_status", table_name="memberships")
    op.drop_index("ix_memberships_tenant_role", table_name="memberships")
    op.drop_index(op.f("ix_memberships_id"), table_name="memberships")
    op.drop_table("memberships")
