from sqlalchemy import Column, Enum, ForeignKey, Integer, String, UniqueConstraint

from agency.core.db import Base
from agency.models.enums import ConsultationStatusEnum
from agency.models.mixins import TenantOwnedMixin, TimestampMixin


class Consultation(TenantOwnedMixin, TimestampMixin, Base):
    __tablename__ = "consultations"

    id = Column(Integer, primary_key=True, index=True)
    client_name = Column(String, nullable=False)
    status = Column(
        Enum(
            ConsultationStatusEnum,
            name="consultation_status_enum",
            native_enum=False,
            validate_strings=True,
        ),
        nullable=False,
        default=ConsultationStatusEnum.DRAFT,
    )


class ConsultationDraft(TimestampMixin, Base):
    """
    Work-in-progress form state. Drafts are private to their author for
    member-role users regardless of consultation permissions.
    """

    __tablename__ = "consultation_drafts"
    __table_args__ = (
        UniqueConstraint("consultation_id", "user_id", name="uq_consultation_draft_user"),
    )
    __owner_attr__ = "user_id"

    id = Column(Integer, primary_key=True, index=True)
    tenant_id = Column(
        Integer,
        ForeignKey("tenants.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    consultation_id = Column(
        Integer,
        ForeignKey("consultations.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    notes = Column(String, nullable=True)
