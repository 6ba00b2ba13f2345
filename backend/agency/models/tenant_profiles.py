from sqlalchemy import Column, ForeignKey, Integer, String
from sqlalchemy.orm import relationship

from agency.core.db import Base
from agency.models.mixins import TimestampMixin


class TenantProfile(TimestampMixin, Base):
    """
    Per-tenant business profile. Only the document counters matter here:
    every ``next_*_number`` column is advanced by a single UPDATE ... RETURNING.
    """

    __tablename__ = "tenant_profiles"

    id = Column(Integer, primary_key=True, index=True)
    tenant_id = Column(
        Integer,
        ForeignKey("tenants.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
        index=True,
    )
    proposal_prefix = Column(String(20), nullable=False, default="PROP")
    next_proposal_number = Column(Integer, nullable=False, default=1)
    contract_prefix = Column(String(20), nullable=False, default="CON")
    next_contract_number = Column(Integer, nullable=False, default=1)
    invoice_prefix = Column(String(20), nullable=False, default="INV")
    next_invoice_number = Column(Integer, nullable=False, default=1)
    quotation_prefix = Column(String(20), nullable=False, default="QUO")
    next_quotation_number = Column(Integer, nullable=False, default=1)

    tenant = relationship("Tenant", back_populates="profile", lazy="selectin")
