# Append-only tenant activity trail. Rows are never updated or deleted
# by application code; actor_id is null for system-initiated actions.

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Index, Integer, JSON, String, Text
from sqlalchemy.dialects.postgresql import JSONB

from agency.core.db import Base
from agency.core.time import utcnow

JSON_TYPE = JSONB().with_variant(JSON, "sqlite")


class ActivityLog(Base):
    __tablename__ = "activity_logs"
    __table_args__ = (
        Index("ix_activity_tenant_time", "tenant_id", "created_at"),
        Index("ix_activity_tenant_entity", "tenant_id", "entity_type", "entity_id"),
    )

    id = Column(Integer, primary_key=True, index=True)
    tenant_id = Column(Integer, ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False)
    actor_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    action = Column(String(100), nullable=False)
    entity_type = Column(String(50), nullable=False)
    entity_id = Column(String, nullable=True)
    old_values = Column(JSON_TYPE, nullable=True)
    new_values = Column(JSON_TYPE, nullable=True)
    metadata_json = Column("metadata", JSON_TYPE, nullable=False, default=dict)
    is_impersonated = Column(Boolean, nullable=False, default=False)
    request_id = Column(String, nullable=True)
    client_ip = Column(Text, nullable=True)
    user_agent = Column(Text, nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
