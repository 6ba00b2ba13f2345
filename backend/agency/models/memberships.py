# A user's seat in one agency. Only ACTIVE rows count for tenant
# resolution; INVITED rows wait for accept_invitation, SUSPENDED rows
# are what removal leaves behind so history keeps its foreign keys.

from sqlalchemy import Column, DateTime, Enum, ForeignKey, Index, Integer, UniqueConstraint
from sqlalchemy.orm import relationship

from agency.core.db import Base
from agency.models.enums import MembershipStatusEnum, RoleEnum
from agency.models.mixins import TimestampMixin


class Membership(TimestampMixin, Base):
    __tablename__ = "memberships"
    __table_args__ = (
        UniqueConstraint("tenant_id", "user_id", name="uq_membership_user_tenant"),
        # Owner counting for the last-owner guardrail.
        Index("ix_memberships_tenant_role", "tenant_id", "role"),
        # Resolver lookups: active seats for one actor.
        Index("ix_memberships_user_status", "user_id", "status"),
    )

    id = Column(Integer, primary_key=True, index=True)
    tenant_id = Column(Integer, ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    role = Column(
        Enum(RoleEnum, name="membership_role_enum", native_enum=False, validate_strings=True),
        nullable=False,
    )
    status = Column(
        Enum(MembershipStatusEnum, name="membership_status_enum", native_enum=False, validate_strings=True),
        nullable=False,
        default=MembershipStatusEnum.ACTIVE,
    )
    invited_by_user_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    accepted_at = Column(DateTime, nullable=True)

    tenant = relationship("Tenant", back_populates="memberships")
    user = relationship("User", back_populates="memberships", foreign_keys=[user_id])

    @property
    def is_active(self) -> bool:
        return self.status == MembershipStatusEnum.ACTIVE

    def __repr__(self) -> str:
        return f"<Membership tenant={self.tenant_id} user={self.user_id} role={self.role} status={self.status}>"
