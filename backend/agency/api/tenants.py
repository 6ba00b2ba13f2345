from fastapi import APIRouter, Depends

from agency.core.db import get_db
from agency.crud.audit import AuditRecorder
from agency.crud.tenants import cancel_deletion, schedule_deletion
from agency.schemas.me import DeletionStatus
from agency.tenancy.context import TenantContext
from agency.tenancy.dependencies import get_audit_recorder, get_tenant_context

router = APIRouter(prefix="/agency", tags=["agency"])


def _status(tenant) -> DeletionStatus:
    scheduled = tenant.deletion_scheduled_for
    return DeletionStatus(
        tenant_id=tenant.id,
        deletion_scheduled_for=scheduled.isoformat() if scheduled else None,
    )


@router.post("/deletion", response_model=DeletionStatus)
def request_deletion(
    db=Depends(get_db),
    ctx: TenantContext = Depends(get_tenant_context),
    audit: AuditRecorder = Depends(get_audit_recorder),
):
    return _status(schedule_deletion(db, ctx, audit=audit))


@router.delete("/deletion", response_model=DeletionStatus)
def revoke_deletion(
    db=Depends(get_db),
    ctx: TenantContext = Depends(get_tenant_context),
    audit: AuditRecorder = Depends(get_audit_recorder),
):
    return _status(cancel_deletion(db, ctx, audit=audit))
