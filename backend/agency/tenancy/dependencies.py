"""
FastAPI dependency helpers for tenant context and RBAC.
"""

import logging
from typing import Optional

from fastapi import Depends, HTTPException, Request, status
from sqlalchemy.orm import Session

from agency.core.config import settings
from agency.core.db import get_db
from agency.crud.audit import AuditRecorder
from agency.crud.memberships import SqlMembershipRepository
from agency.models.users import User
from agency.tenancy.context import ResolutionHints, TenantContext
from agency.tenancy.permissions import require_permission as _require_permission
from agency.tenancy.resolver import TenantContextResolver

logger = logging.getLogger(__name__)

_audit_recorder: Optional[AuditRecorder] = None


def _clean(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = value.strip()
    return value or None


def _header_or_cookie(request: Request, header_name: str, cookie_name: str) -> Optional[str]:
    return _clean(request.headers.get(header_name)) or _clean(request.cookies.get(cookie_name))


def get_current_user(request: Request, db: Session = Depends(get_db)) -> User:
    """
    Load the actor named by the upstream authenticator. Token verification
    happens before requests reach this service.
    """
    raw_actor = _clean(request.headers.get(settings.ACTOR_HEADER_NAME))
    if raw_actor is None or not raw_actor.isdigit():
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authenticated")
    user = db.query(User).filter(User.id == int(raw_actor)).first()
    if user is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authenticated")
    request.state.actor_id = user.id
    return user


def get_resolver(db: Session = Depends(get_db)) -> TenantContextResolver:
    return TenantContextResolver(SqlMembershipRepository(db))


def build_resolution_hints(request: Request, user: User) -> ResolutionHints:
    return ResolutionHints(
        tenant_hint=_header_or_cookie(request, settings.TENANT_HEADER_NAME, settings.TENANT_COOKIE_NAME),
        impersonated_tenant_id=_header_or_cookie(
            request,
            settings.IMPERSONATION_HEADER_NAME,
            settings.IMPERSONATION_COOKIE_NAME,
        ),
        is_platform_admin=bool(user.is_platform_admin),
    )


def get_tenant_context(
    request: Request,
    current_user: User = Depends(get_current_user),
    resolver: TenantContextResolver = Depends(get_resolver),
) -> TenantContext:
    ctx = resolver.resolve(current_user.id, build_resolution_hints(request, current_user))
    request.state.tenant_id = ctx.tenant_id
    request.state.actor_id = ctx.actor_id
    request.state.is_impersonated = ctx.is_impersonated
    return ctx


def require_permission(permission: str):
    """
    Dependency enforcing that the resolved context holds ``permission``.
    """

    def dependency(ctx: TenantContext = Depends(get_tenant_context)) -> TenantContext:
        return _require_permission(ctx, permission)

    return dependency


def get_audit_recorder() -> AuditRecorder:
    global _audit_recorder
    if _audit_recorder is None:
        _audit_recorder = AuditRecorder()
    return _audit_recorder
