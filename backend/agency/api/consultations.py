from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Request, status

from agency.core.db import get_db
from agency.crud import consultations as crud
from agency.crud.audit import AuditRecorder
from agency.models.enums import ConsultationStatusEnum
from agency.schemas.consultations import (
    ConsultationCreate,
    ConsultationRead,
    ConsultationUpdate,
    DraftRead,
    DraftUpsert,
)
from agency.tenancy.context import TenantContext
from agency.tenancy.dependencies import get_audit_recorder, get_tenant_context

router = APIRouter(prefix="/consultations", tags=["consultations"])


@router.get("", response_model=List[ConsultationRead])
def list_consultations(
    status_filter: Optional[ConsultationStatusEnum] = Query(None, alias="status"),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    db=Depends(get_db),
    ctx: TenantContext = Depends(get_tenant_context),
):
    return crud.list_consultations(db, ctx=ctx, status=status_filter, limit=limit, offset=offset)


@router.post("", response_model=ConsultationRead, status_code=status.HTTP_201_CREATED)
def create_consultation(
    payload: ConsultationCreate,
    request: Request,
    db=Depends(get_db),
    ctx: TenantContext = Depends(get_tenant_context),
    audit: AuditRecorder = Depends(get_audit_recorder),
):
    return crud.create_consultation(db, ctx=ctx, client_name=payload.client_name, audit=audit, request=request)


@router.get("/{consultation_id}", response_model=ConsultationRead)
def read_consultation(
    consultation_id: int,
    db=Depends(get_db),
    ctx: TenantContext = Depends(get_tenant_context),
):
    return crud.get_consultation(db, consultation_id, ctx=ctx)


@router.patch("/{consultation_id}", response_model=ConsultationRead)
def update_consultation(
    consultation_id: int,
    payload: ConsultationUpdate,
    request: Request,
    db=Depends(get_db),
    ctx: TenantContext = Depends(get_tenant_context),
    audit: AuditRecorder = Depends(get_audit_recorder),
):
    return crud.update_consultation(
        db,
        consultation_id,
        ctx=ctx,
        client_name=payload.client_name,
        status=payload.status,
        audit=audit,
        request=request,
    )


@router.delete("/{consultation_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_consultation(
    consultation_id: int,
    request: Request,
    db=Depends(get_db),
    ctx: TenantContext = Depends(get_tenant_context),
    audit: AuditRecorder = Depends(get_audit_recorder),
):
    crud.delete_consultation(db, consultation_id, ctx=ctx, audit=audit, request=request)


@router.put("/{consultation_id}/draft", response_model=DraftRead)
def save_draft(
    consultation_id: int,
    payload: DraftUpsert,
    db=Depends(get_db),
    ctx: TenantContext = Depends(get_tenant_context),
):
    return crud.save_draft(db, consultation_id, ctx=ctx, notes=payload.notes)


@router.get("/{consultation_id}/drafts", response_model=List[DraftRead])
def list_drafts(
    consultation_id: int,
    db=Depends(get_db),
    ctx: TenantContext = Depends(get_tenant_context),
):
    return crud.list_drafts(db, ctx=ctx, consultation_id=consultation_id)
