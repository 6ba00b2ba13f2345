from sqlalchemy.orm import Session

from agency.core.counters import allocate_document_number
from agency.crud.audit import AuditAction, AuditRecorder, EntityType
from agency.models.contracts import Contract
from agency.models.enums import DocumentStatusEnum
from agency.models.proposals import Proposal
from agency.tenancy.context import TenantContext
from agency.tenancy.permissions import require_ownership, require_permission
from agency.tenancy.scoping import get_accessible_or_404, ownership_scoped_query, tenant_scoped

RESOURCE = "contract"


@tenant_scoped
def create_contract(
    db: Session,
    *,
    ctx: TenantContext,
    title: str,
    proposal_id: int | None = None,
    audit: AuditRecorder | None = None,
    request=None,
) -> Contract:
    require_permission(ctx, "contract:create")
    if proposal_id is not None:
        # Contracts can only be raised from proposals the actor can see.
        get_accessible_or_404(db, Proposal, ctx, proposal_id, "proposal", "view")
    number = allocate_document_number(db, ctx.tenant_id, "contract")
    contract = Contract(
        tenant_id=ctx.tenant_id,
        created_by_user_id=ctx.actor_id,
        contract_number=number,
        title=title,
        proposal_id=proposal_id,
    )
    db.add(contract)
    db.commit()
    db.refresh(contract)
    if audit is not None:
        audit.record(
            ctx,
            AuditAction.CONTRACT_CREATED,
            EntityType.CONTRACT,
            contract.id,
            new_values={"contract_number": number, "title": title},
            request=request,
        )
    return contract


@tenant_scoped
def get_contract(db: Session, contract_id: int, *, ctx: TenantContext) -> Contract:
    return get_accessible_or_404(db, Contract, ctx, contract_id, RESOURCE, "view")


@tenant_scoped
def list_contracts(db: Session, *, ctx: TenantContext, limit: int = 50, offset: int = 0) -> list[Contract]:
    return (
        ownership_scoped_query(db, Contract, ctx, RESOURCE, "view")
        .order_by(Contract.created_at.desc(), Contract.id.desc())
        .offset(offset)
        .limit(limit)
        .all()
    )


@tenant_scoped
def send_contract(
    db: Session,
    contract_id: int,
    *,
    ctx: TenantContext,
    audit: AuditRecorder | None = None,
    request=None,
) -> Contract:
    require_permission(ctx, "contract:send")
    contract = get_accessible_or_404(db, Contract, ctx, contract_id, RESOURCE, "view")
    require_ownership(ctx, RESOURCE, "edit", contract.created_by_user_id)
    previous = DocumentStatusEnum(contract.status)
    contract.status = DocumentStatusEnum.SENT
    db.commit()
    db.refresh(contract)
    if audit is not None:
        audit.record(
            ctx,
            AuditAction.CONTRACT_SENT,
            EntityType.CONTRACT,
            contract.id,
            old_values={"status": previous.value},
            new_values={"status": DocumentStatusEnum.SENT.value},
            request=request,
        )
    return contract


@tenant_scoped
def delete_contract(
    db: Session,
    contract_id: int,
    *,
    ctx: TenantContext,
    audit: AuditRecorder | None = None,
    request=None,
) -> None:
    contract = get_accessible_or_404(db, Contract, ctx, contract_id, RESOURCE, "view")
    require_ownership(ctx, RESOURCE, "delete", contract.created_by_user_id)
    number = contract.contract_number
    db.delete(contract)
    db.commit()
    if audit is not None:
        audit.record(
            ctx,
            AuditAction.CONTRACT_DELETED,
            EntityType.CONTRACT,
            contract_id,
            old_values={"contract_number": number},
            request=request,
        )
