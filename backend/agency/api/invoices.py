from typing import List

from fastapi import APIRouter, Depends, Query, Request, status

from agency.core.db import get_db
from agency.crud import invoices as crud
from agency.crud.audit import AuditRecorder
from agency.schemas.documents import InvoiceCreate, InvoiceRead, StatusUpdate
from agency.tenancy.context import TenantContext
from agency.tenancy.dependencies import get_audit_recorder, get_tenant_context

router = APIRouter(prefix="/invoices", tags=["invoices"])


@router.get("", response_model=List[InvoiceRead])
def list_invoices(
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    db=Depends(get_db),
    ctx: TenantContext = Depends(get_tenant_context),
):
    return crud.list_invoices(db, ctx=ctx, limit=limit, offset=offset)


@router.post("", response_model=InvoiceRead, status_code=status.HTTP_201_CREATED)
def create_invoice(
    payload: InvoiceCreate,
    request: Request,
    db=Depends(get_db),
    ctx: TenantContext = Depends(get_tenant_context),
    audit: AuditRecorder = Depends(get_audit_recorder),
):
    return crud.create_invoice(
        db,
        ctx=ctx,
        title=payload.title,
        total_cents=payload.total_cents,
        contract_id=payload.contract_id,
        audit=audit,
        request=request,
    )


@router.get("/{invoice_id}", response_model=InvoiceRead)
def read_invoice(
    invoice_id: int,
    db=Depends(get_db),
    ctx: TenantContext = Depends(get_tenant_context),
):
    return crud.get_invoice(db, invoice_id, ctx=ctx)


@router.post("/{invoice_id}/status", response_model=InvoiceRead)
def update_invoice_status(
    invoice_id: int,
    payload: StatusUpdate,
    request: Request,
    db=Depends(get_db),
    ctx: TenantContext = Depends(get_tenant_context),
    audit: AuditRecorder = Depends(get_audit_recorder),
):
    return crud.set_invoice_status(db, invoice_id, payload.status, ctx=ctx, audit=audit, request=request)
