from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from agency.models.enums import ConsultationStatusEnum


class ConsultationCreate(BaseModel):
    client_name: str = Field(..., min_length=1, max_length=200)


class ConsultationUpdate(BaseModel):
    client_name: Optional[str] = Field(None, min_length=1, max_length=200)
    status: Optional[ConsultationStatusEnum] = None


class ConsultationRead(BaseModel):
    id: int
    tenant_id: int
    created_by_user_id: Optional[int] = None
    client_name: str
    status: ConsultationStatusEnum
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class DraftUpsert(BaseModel):
    notes: Optional[str] = None


class DraftRead(BaseModel):
    id: int
    consultation_id: int
    user_id: int
    notes: Optional[str] = None
    updated_at: datetime

    class Config:
        from_attributes = True
