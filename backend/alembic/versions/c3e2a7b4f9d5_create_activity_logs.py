"""create activity_logs table

Revision ID: c3e2a7b4f9d5
Revises: b2d1f6a3e8c4
Create Date: 2026-09-28 10:40:00.000000
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision: str = "c3e2a7b4f9d5"
down_revision: Union[str, None] = "b2d1f6a3e8c4"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

JSON_TYPE = postgresql.JSONB().with_variant(sa.JSON(), "sqlite")


def upgrade() -> None:
    op.create_table(
        "activity_logs",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("tenant_id", sa.Integer(), sa.ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False),
        sa.Column("actor_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
        sa.Column("action", sa.String(length=100), nullable=False),
        sa.Column("entity_type", sa.String(length=50), nullable=False),
        sa.Column("entity_id", sa.String(), nullable=True),
        sa.Column("old_values", JSON_TYPE, nullable=True),
        sa.Column("new_values", JSON_TYPE, nullable=True),
        sa.Column("metadata", JSON_TYPE, nullable=False),
        sa.Column("is_impersonated", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("request_id", sa.String(), nullable=True),
        sa.Column("client_ip", sa.Text(), nullable=True),
        sa.Column("user_agent", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_index(op.f("ix_activity_logs_id"), "activity_logs", ["id"], unique=False)
    op.create_index("ix_activity_tenant_time", "activity_logs", ["tenant_id", "created_at"], unique=False)
    op.create_index(
        "ix_activity_tenant_entity",
        "activity_logs",
        ["tenant_id", "entity_type", "entity_id"],
        unique=False,
    )


def downgrade() -> None:
    op.drop_index("ix_activity_tenant_entity", table_name="activity_logs")
    op.drop_index("ix_activity_tenant_time", table_name="activity_logs")
    op.drop_index(op.f("ix_activity_logs_id"), table_name="activity_logs")
    op.drop_table("activity_logs")
