from datetime import datetime
from typing import Optional

from pydantic import BaseModel

from agency.models.enums import MembershipStatusEnum, RoleEnum


class MembershipRead(BaseModel):
    id: int
    tenant_id: int
    user_id: int
    role: RoleEnum
    status: MembershipStatusEnum
    created_at: datetime
    accepted_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class MemberInvite(BaseModel):
    user_id: int
    role: RoleEnum = RoleEnum.MEMBER


class MemberRoleUpdate(BaseModel):
    role: RoleEnum
