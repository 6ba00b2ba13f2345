from datetime import datetime

from sqlalchemy.orm import Session

from agency.core.counters import increment_quota
from agency.crud.audit import AuditAction, AuditRecorder, EntityType
from agency.entitlements.enforcement import QuotaStatus, check_quota, enforce_quota
from agency.tenancy.context import TenantContext
from agency.tenancy.permissions import require_permission
from agency.tenancy.scoping import tenant_scoped

AI_QUOTA = "ai_generation"


@tenant_scoped
def get_ai_usage(db: Session, *, ctx: TenantContext, now: datetime | None = None) -> QuotaStatus:
    return check_quota(db, ctx, AI_QUOTA, now=now)


@tenant_scoped
def record_ai_generation(
    db: Session,
    *,
    ctx: TenantContext,
    entity_type: EntityType | str | None = None,
    entity_id=None,
    now: datetime | None = None,
    audit: AuditRecorder | None = None,
    request=None,
) -> QuotaStatus:
    """
    Count one AI generation against the tenant's monthly allowance and
    return the usage after the increment.
    """
    require_permission(ctx, "ai:generate")
    enforce_quota(db, ctx, AI_QUOTA, now=now)
    increment_quota(db, ctx.tenant_id, AI_QUOTA, now=now)
    if audit is not None:
        audit.record(
            ctx,
            AuditAction.AI_GENERATED,
            entity_type or EntityType.AGENCY,
            entity_id if entity_id is not None else ctx.tenant_id,
            request=request,
        )
    return check_quota(db, ctx, AI_QUOTA, now=now)
