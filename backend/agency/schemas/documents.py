from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from agency.models.enums import DocumentStatusEnum


class ProposalCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    consultation_id: Optional[int] = None


class ProposalRead(BaseModel):
    id: int
    proposal_number: str
    title: str
    status: DocumentStatusEnum
    consultation_id: Optional[int] = None
    created_by_user_id: Optional[int] = None
    created_at: datetime

    class Config:
        from_attributes = True


class StatusUpdate(BaseModel):
    status: DocumentStatusEnum


class InvoiceCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    total_cents: int = Field(0, ge=0)
    contract_id: Optional[int] = None


class InvoiceRead(BaseModel):
    id: int
    invoice_number: str
    title: str
    status: DocumentStatusEnum
    total_cents: int
    contract_id: Optional[int] = None
    created_at: datetime

    class Config:
        from_attributes = True
