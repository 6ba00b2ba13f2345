from typing import List, Optional, Union

from pydantic import BaseModel, Field

from agency.models.enums import RoleEnum


class MeTenant(BaseModel):
    id: int
    name: str
    slug: str

    class Config:
        from_attributes = True


class MeMembership(BaseModel):
    tenant: MeTenant
    role: RoleEnum


class TenantContextResponse(BaseModel):
    user_id: int
    email: str
    tenant: MeTenant
    role: RoleEnum
    is_impersonated: bool
    permissions: List[str]
    memberships: List[MeMembership]


class SwitchTenantRequest(BaseModel):
    # Tenant id or slug.
    tenant: Union[int, str] = Field(..., description="Tenant id or slug")


class SwitchTenantResponse(BaseModel):
    tenant: MeTenant
    role: RoleEnum
    set_default: bool = False


class DeletionStatus(BaseModel):
    tenant_id: int
    deletion_scheduled_for: Optional[str] = None
