from typing import List, Optional

from fastapi import APIRouter, Depends, Query

from agency.core.db import get_db
from agency.crud.audit import list_activity
from agency.schemas.audit import ActivityLogRead
from agency.tenancy.context import TenantContext
from agency.tenancy.dependencies import require_permission

# All routes here live under /api/audit.
router = APIRouter(prefix="/audit", tags=["audit"])


@router.get("", response_model=List[ActivityLogRead])
def read_activity(
    entity_type: Optional[str] = None,
    entity_id: Optional[str] = None,
    limit: int = Query(50, ge=1, le=500),
    offset: int = Query(0, ge=0),
    db=Depends(get_db),
    ctx: TenantContext = Depends(require_permission("audit:view")),
):
    return list_activity(
        db,
        ctx,
        limit=limit,
        offset=offset,
        entity_type=entity_type,
        entity_id=entity_id,
    )
