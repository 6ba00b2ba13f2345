from typing import List

from fastapi import APIRouter, Depends, Query, Request, status

from agency.core.db import get_db
from agency.crud import proposals as crud
from agency.crud.audit import AuditRecorder
from agency.schemas.documents import ProposalCreate, ProposalRead, StatusUpdate
from agency.tenancy.context import TenantContext
from agency.tenancy.dependencies import get_audit_recorder, get_tenant_context

router = APIRouter(prefix="/proposals", tags=["proposals"])


@router.get("", response_model=List[ProposalRead])
def list_proposals(
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    db=Depends(get_db),
    ctx: TenantContext = Depends(get_tenant_context),
):
    return crud.list_proposals(db, ctx=ctx, limit=limit, offset=offset)


@router.post("", response_model=ProposalRead, status_code=status.HTTP_201_CREATED)
def create_proposal(
    payload: ProposalCreate,
    request: Request,
    db=Depends(get_db),
    ctx: TenantContext = Depends(get_tenant_context),
    audit: AuditRecorder = Depends(get_audit_recorder),
):
    return crud.create_proposal(
        db,
        ctx=ctx,
        title=payload.title,
        consultation_id=payload.consultation_id,
        audit=audit,
        request=request,
    )


@router.get("/{proposal_id}", response_model=ProposalRead)
def read_proposal(
    proposal_id: int,
    db=Depends(get_db),
    ctx: TenantContext = Depends(get_tenant_context),
):
    return crud.get_proposal(db, proposal_id, ctx=ctx)


@router.post("/{proposal_id}/status", response_model=ProposalRead)
def update_proposal_status(
    proposal_id: int,
    payload: StatusUpdate,
    request: Request,
    db=Depends(get_db),
    ctx: TenantContext = Depends(get_tenant_context),
    audit: AuditRecorder = Depends(get_audit_recorder),
):
    return crud.set_proposal_status(db, proposal_id, payload.status, ctx=ctx, audit=audit, request=request)
