from sqlalchemy import Column, Enum, ForeignKey, Integer, String, UniqueConstraint

from agency.core.db import Base
from agency.models.enums import DocumentStatusEnum
from agency.models.mixins import TenantOwnedMixin, TimestampMixin


class Invoice(TenantOwnedMixin, TimestampMixin, Base):
    __tablename__ = "invoices"
    __table_args__ = (
        UniqueConstraint("tenant_id", "invoice_number", name="uq_invoices_tenant_number"),
    )

    id = Column(Integer, primary_key=True, index=True)
    invoice_number = Column(String(50), nullable=False)
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
    contract_id = Column(
        Integer,
        ForeignKey("contracts.id", ondelete="SET NULL"),
        nullable=True,
    )
    total_cents = Column(Integer, nullable=False, default=0)
