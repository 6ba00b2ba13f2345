from sqlalchemy import Column, Enum, ForeignKey, Integer, String, UniqueConstraint

from agency.core.db import Base
from agency.models.enums import DocumentStatusEnum
from agency.models.mixins import TenantOwnedMixin, TimestampMixin


class Contract(TenantOwnedMixin, TimestampMixin, Base):
    __tablename__ = "contracts"
    __table_args__ = (
        UniqueConstraint("tenant_id", "contract_number", name="uq_contracts_tenant_number"),
    )

    id = Column(Integer, primary_key=True, index=True)
    contract_number = Column(String(50), nullable=False)
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
    proposal_id = Column(
        Integer,
        ForeignKey("proposals.id", ondelete="SET NULL"),
        nullable=True,
    )
