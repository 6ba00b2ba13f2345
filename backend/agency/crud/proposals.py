from sqlalchemy.orm import Session

from agency.core.counters import allocate_document_number
from agency.crud.audit import AuditAction, AuditRecorder, EntityType
from agency.models.consultations import Consultation
from agency.models.enums import DocumentStatusEnum
from agency.models.proposals import Proposal
from agency.tenancy.context import TenantContext
from agency.tenancy.permissions import require_ownership, require_permission
from agency.tenancy.scoping import get_accessible_or_404, get_scoped_or_404, ownership_scoped_query, tenant_scoped

RESOURCE = "proposal"

_STATUS_ACTIONS = {
    DocumentStatusEnum.SENT: AuditAction.PROPOSAL_SENT,
    DocumentStatusEnum.ACCEPTED: AuditAction.PROPOSAL_ACCEPTED,
    DocumentStatusEnum.DECLINED: AuditAction.PROPOSAL_DECLINED,
}


@tenant_scoped
def create_proposal(
    db: Session,
    *,
    ctx: TenantContext,
    title: str,
    consultation_id: int | None = None,
    audit: AuditRecorder | None = None,
    request=None,
) -> Proposal:
    require_permission(ctx, "proposal:create")
    if consultation_id is not None:
        get_scoped_or_404(db, Consultation, ctx, consultation_id)
    # The number is committed before the insert; a failed insert leaves a gap.
    number = allocate_document_number(db, ctx.tenant_id, "proposal")
    proposal = Proposal(
        tenant_id=ctx.tenant_id,
        created_by_user_id=ctx.actor_id,
        proposal_number=number,
        title=title,
        consultation_id=consultation_id,
    )
    db.add(proposal)
    db.commit()
    db.refresh(proposal)
    if audit is not None:
        audit.record(
            ctx,
            AuditAction.PROPOSAL_CREATED,
            EntityType.PROPOSAL,
            proposal.id,
            new_values={"proposal_number": number, "title": title},
            request=request,
        )
    return proposal


@tenant_scoped
def get_proposal(db: Session, proposal_id: int, *, ctx: TenantContext) -> Proposal:
    return get_accessible_or_404(db, Proposal, ctx, proposal_id, RESOURCE, "view")


@tenant_scoped
def list_proposals(db: Session, *, ctx: TenantContext, limit: int = 50, offset: int = 0) -> list[Proposal]:
    return (
        ownership_scoped_query(db, Proposal, ctx, RESOURCE, "view")
        .order_by(Proposal.created_at.desc(), Proposal.id.desc())
        .offset(offset)
        .limit(limit)
        .all()
    )


@tenant_scoped
def set_proposal_status(
    db: Session,
    proposal_id: int,
    status: DocumentStatusEnum | str,
    *,
    ctx: TenantContext,
    audit: AuditRecorder | None = None,
    request=None,
) -> Proposal:
    new_status = DocumentStatusEnum(status)
    proposal = get_accessible_or_404(db, Proposal, ctx, proposal_id, RESOURCE, "view")
    if new_status == DocumentStatusEnum.SENT:
        require_permission(ctx, "proposal:send")
    require_ownership(ctx, RESOURCE, "edit", proposal.created_by_user_id)
    previous = DocumentStatusEnum(proposal.status)
    proposal.status = new_status
    db.commit()
    db.refresh(proposal)
    if audit is not None:
        audit.record(
            ctx,
            _STATUS_ACTIONS.get(new_status, AuditAction.PROPOSAL_UPDATED),
            EntityType.PROPOSAL,
            proposal.id,
            old_values={"status": previous.value},
            new_values={"status": new_status.value},
            request=request,
        )
    return proposal


@tenant_scoped
def delete_proposal(
    db: Session,
    proposal_id: int,
    *,
    ctx: TenantContext,
    audit: AuditRecorder | None = None,
    request=None,
) -> None:
    proposal = get_accessible_or_404(db, Proposal, ctx, proposal_id, RESOURCE, "view")
    require_ownership(ctx, RESOURCE, "delete", proposal.created_by_user_id)
    number = proposal.proposal_number
    db.delete(proposal)
    db.commit()
    if audit is not None:
        audit.record(
            ctx,
            AuditAction.PROPOSAL_DELETED,
            EntityType.PROPOSAL,
            proposal_id,
            old_values={"proposal_number": number},
            request=request,
        )
