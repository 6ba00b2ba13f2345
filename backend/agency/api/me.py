from fastapi import APIRouter, Depends, Request, Response

from agency.core.config import settings
from agency.core.db import get_db
from agency.crud.tenants import get_current_tenant, list_tenants_for_user
from agency.crud.users import set_default_tenant
from agency.models.users import User
from agency.schemas.me import (
    MeMembership,
    MeTenant,
    SwitchTenantRequest,
    SwitchTenantResponse,
    TenantContextResponse,
)
from agency.tenancy.context import TenantContext
from agency.tenancy.dependencies import get_current_user, get_resolver, get_tenant_context
from agency.tenancy.permissions import permissions_for_role
from agency.tenancy.resolver import TenantContextResolver

router = APIRouter(prefix="/me", tags=["me"])


@router.get("/context", response_model=TenantContextResponse)
def read_context(
    db=Depends(get_db),
    current_user: User = Depends(get_current_user),
    ctx: TenantContext = Depends(get_tenant_context),
):
    tenant = get_current_tenant(db, ctx)
    memberships = [
        MeMembership(tenant=MeTenant.model_validate(row_tenant), role=role)
        for row_tenant, role in list_tenants_for_user(db, current_user.id)
    ]
    return TenantContextResponse(
        user_id=current_user.id,
        email=current_user.email,
        tenant=MeTenant.model_validate(tenant),
        role=ctx.role,
        is_impersonated=ctx.is_impersonated,
        permissions=permissions_for_role(ctx.role),
        memberships=memberships,
    )


@router.post("/switch-tenant", response_model=SwitchTenantResponse)
def switch_tenant(
    payload: SwitchTenantRequest,
    response: Response,
    request: Request,
    set_default: bool = False,
    db=Depends(get_db),
    current_user: User = Depends(get_current_user),
    resolver: TenantContextResolver = Depends(get_resolver),
):
    ctx = resolver.switch_tenant(current_user.id, payload.tenant)
    request.state.tenant_id = ctx.tenant_id
    if set_default:
        set_default_tenant(db, current_user.id, ctx.tenant_id)
    response.set_cookie(
        settings.TENANT_COOKIE_NAME,
        str(ctx.tenant_id),
        httponly=True,
        samesite="lax",
    )
    tenant = get_current_tenant(db, ctx)
    return SwitchTenantResponse(tenant=MeTenant.model_validate(tenant), role=ctx.role, set_default=set_default)
