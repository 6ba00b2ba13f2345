from sqlalchemy.orm import Session

from agency.core.counters import allocate_document_number
from agency.crud.audit import AuditAction, AuditRecorder, EntityType
from agency.models.contracts import Contract
from agency.models.enums import DocumentStatusEnum
from agency.models.invoices import Invoice
from agency.tenancy.context import TenantContext
from agency.tenancy.permissions import require_permission
from agency.tenancy.scoping import get_scoped_or_404, scoped_query, tenant_scoped


# Invoices have no per-user ownership: visibility is tenant-wide and
# mutation is reserved for elevated roles.


@tenant_scoped
def create_invoice(
    db: Session,
    *,
    ctx: TenantContext,
    title: str,
    total_cents: int = 0,
    contract_id: int | None = None,
    audit: AuditRecorder | None = None,
    request=None,
) -> Invoice:
    require_permission(ctx, "invoice:create")
    if total_cents < 0:
        raise ValueError("Invoice total cannot be negative.")
    if contract_id is not None:
        get_scoped_or_404(db, Contract, ctx, contract_id)
    number = allocate_document_number(db, ctx.tenant_id, "invoice")
    invoice = Invoice(
        tenant_id=ctx.tenant_id,
        created_by_user_id=ctx.actor_id,
        invoice_number=number,
        title=title,
        total_cents=total_cents,
        contract_id=contract_id,
    )
    db.add(invoice)
    db.commit()
    db.refresh(invoice)
    if audit is not None:
        audit.record(
            ctx,
            AuditAction.INVOICE_CREATED,
            EntityType.INVOICE,
            invoice.id,
            new_values={"invoice_number": number, "total_cents": total_cents},
            request=request,
        )
    return invoice


@tenant_scoped
def get_invoice(db: Session, invoice_id: int, *, ctx: TenantContext) -> Invoice:
    require_permission(ctx, "invoice:view")
    return get_scoped_or_404(db, Invoice, ctx, invoice_id)


@tenant_scoped
def list_invoices(db: Session, *, ctx: TenantContext, limit: int = 50, offset: int = 0) -> list[Invoice]:
    require_permission(ctx, "invoice:view")
    return (
        scoped_query(db, Invoice, ctx)
        .order_by(Invoice.created_at.desc(), Invoice.id.desc())
        .offset(offset)
        .limit(limit)
        .all()
    )


@tenant_scoped
def set_invoice_status(
    db: Session,
    invoice_id: int,
    status: DocumentStatusEnum | str,
    *,
    ctx: TenantContext,
    audit: AuditRecorder | None = None,
    request=None,
) -> Invoice:
    require_permission(ctx, "invoice:edit")
    new_status = DocumentStatusEnum(status)
    invoice = get_scoped_or_404(db, Invoice, ctx, invoice_id)
    previous = DocumentStatusEnum(invoice.status)
    invoice.status = new_status
    db.commit()
    db.refresh(invoice)
    if audit is not None:
        audit.record(
            ctx,
            AuditAction.INVOICE_UPDATED,
            EntityType.INVOICE,
            invoice.id,
            old_values={"status": previous.value},
            new_values={"status": new_status.value},
            request=request,
        )
    return invoice
