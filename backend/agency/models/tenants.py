from sqlalchemy import Column, DateTime, Enum, Integer, String
from sqlalchemy.orm import relationship

from agency.core.db import Base
from agency.models.enums import SubscriptionTierEnum, TenantStatusEnum
from agency.models.mixins import TimestampMixin


class Tenant(TimestampMixin, Base):
    __tablename__ = "tenants"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    slug = Column(String, unique=True, nullable=False, index=True)
    primary_color = Column(String, nullable=True)
    secondary_color = Column(String, nullable=True)
    accent_color = Column(String, nullable=True)
    status = Column(
        Enum(
            TenantStatusEnum,
            name="tenant_status_enum",
            native_enum=False,
            validate_strings=True,
        ),
        nullable=False,
        default=TenantStatusEnum.ACTIVE,
    )
    subscription_tier = Column(
        Enum(
            SubscriptionTierEnum,
            name="subscription_tier_enum",
            native_enum=False,
            validate_strings=True,
        ),
        nullable=False,
        default=SubscriptionTierEnum.FREE,
    )
    # Period-bound usage counter; reset lazily inside the increment statement.
    ai_generations_this_month = Column(Integer, nullable=False, default=0)
    ai_generations_reset_at = Column(DateTime, nullable=True)
    deletion_scheduled_for = Column(DateTime, nullable=True)
    deleted_at = Column(DateTime, nullable=True)

    memberships = relationship("Membership", back_populates="tenant", lazy="selectin")
    profile = relationship(
        "TenantProfile",
        back_populates="tenant",
        uselist=False,
        lazy="selectin",
    )

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None
