from fastapi import APIRouter, Depends, Request

from agency.core.db import get_db
from agency.crud.ai_usage import AI_QUOTA, get_ai_usage, record_ai_generation
from agency.crud.audit import AuditRecorder
from agency.entitlements.enforcement import QuotaStatus
from agency.schemas.usage import QuotaUsageRead
from agency.tenancy.context import TenantContext
from agency.tenancy.dependencies import get_audit_recorder, get_tenant_context

router = APIRouter(prefix="/usage", tags=["usage"])


def _to_read(quota_status: QuotaStatus) -> QuotaUsageRead:
    return QuotaUsageRead(
        quota=AI_QUOTA,
        allowed=quota_status.allowed,
        current=quota_status.current,
        limit=None if quota_status.unlimited else quota_status.limit,
        unlimited=quota_status.unlimited,
        remaining=quota_status.remaining,
        resets_at=quota_status.resets_at,
    )


@router.get("/ai", response_model=QuotaUsageRead)
def read_ai_usage(db=Depends(get_db), ctx: TenantContext = Depends(get_tenant_context)):
    return _to_read(get_ai_usage(db, ctx=ctx))


@router.post("/ai", response_model=QuotaUsageRead)
def record_ai_usage(
    request: Request,
    db=Depends(get_db),
    ctx: TenantContext = Depends(get_tenant_context),
    audit: AuditRecorder = Depends(get_audit_recorder),
):
    return _to_read(record_ai_generation(db, ctx=ctx, audit=audit, request=request))
