from sqlalchemy import Column, Enum, ForeignKey, Integer, String, UniqueConstraint

from agency.core.db import Base
from agency.models.enums import DocumentStatusEnum
from agency.models.mixins import TenantOwnedMixin, TimestampMixin


class Proposal(TenantOwnedMixin, TimestampMixin, Base):
    __tablename__ = "proposals"
    __table_args__ = (
        UniqueConstraint("tenant_id", "proposal_number", name="uq_proposals_tenant_number"),
    )

    id = Column(Integer, primary_key=True, index=True)
    proposal_number = Column(String(50), nullable=False)
    title = Column(String, nullable=False)
    status = Column(
        Enum(
            DocumentStatusEnum,
            name="document_status_enum",
            native_enum=False,
            validate_strings=True,
        ),
        nullable=False,
        default=DocumentStatusEnum.DRAFT,
    )
    consultation_id = Column(
        Integer,
        ForeignKey("consultations.id", ondelete="SET NULL"),
        nullable=True,
    )
