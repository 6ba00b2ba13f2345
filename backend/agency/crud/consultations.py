from typing import Any, Optional

from sqlalchemy.orm import Session

from agency.crud.audit import AuditAction, AuditRecorder, EntityType
from agency.entitlements.enforcement import enforce_consultation_limit
from agency.models.consultations import Consultation, ConsultationDraft
from agency.models.enums import ConsultationStatusEnum
from agency.tenancy.context import TenantContext
from agency.tenancy.permissions import require_ownership, require_permission
from agency.tenancy.scoping import (
    actor_scoped_query,
    get_accessible_or_404,
    get_actor_scoped_or_404,
    ownership_scoped_query,
    scoped_query,
    tenant_scoped,
)

RESOURCE = "consultation"


def _snapshot(consultation: Consultation) -> dict[str, Any]:
    return {
        "client_name": consultation.client_name,
        "status": ConsultationStatusEnum(consultation.status).value,
    }


@tenant_scoped
def create_consultation(
    db: Session,
    *,
    ctx: TenantContext,
    client_name: str,
    audit: AuditRecorder | None = None,
    request=None,
) -> Consultation:
    require_permission(ctx, "consultation:create")
    enforce_consultation_limit(db, ctx)
    consultation = Consultation(
        tenant_id=ctx.tenant_id,
        created_by_user_id=ctx.actor_id,
        client_name=client_name,
    )
    db.add(consultation)
    db.commit()
    db.refresh(consultation)
    if audit is not None:
        audit.record(
            ctx,
            AuditAction.CONSULTATION_CREATED,
            EntityType.CONSULTATION,
            consultation.id,
            new_values=_snapshot(consultation),
            request=request,
        )
    return consultation


@tenant_scoped
def get_consultation(db: Session, consultation_id: int, *, ctx: TenantContext) -> Consultation:
    return get_accessible_or_404(db, Consultation, ctx, consultation_id, RESOURCE, "view")


@tenant_scoped
def list_consultations(
    db: Session,
    *,
    ctx: TenantContext,
    status: ConsultationStatusEnum | str | None = None,
    limit: int = 50,
    offset: int = 0,
) -> list[Consultation]:
    query = ownership_scoped_query(db, Consultation, ctx, RESOURCE, "view")
    if status is not None:
        query = query.filter(Consultation.status == ConsultationStatusEnum(status))
    return query.order_by(Consultation.created_at.desc(), Consultation.id.desc()).offset(offset).limit(limit).all()


@tenant_scoped
def update_consultation(
    db: Session,
    consultation_id: int,
    *,
    ctx: TenantContext,
    client_name: Optional[str] = None,
    status: ConsultationStatusEnum | str | None = None,
    audit: AuditRecorder | None = None,
    request=None,
) -> Consultation:
    # Visibility first so another user's row reads as absent, then the edit pair.
    consultation = get_accessible_or_404(db, Consultation, ctx, consultation_id, RESOURCE, "view")
    require_ownership(ctx, RESOURCE, "edit", consultation.created_by_user_id)
    before = _snapshot(consultation)
    if client_name is not None:
        consultation.client_name = client_name
    if status is not None:
        consultation.status = ConsultationStatusEnum(status)
    db.commit()
    db.refresh(consultation)
    if audit is not None:
        after = _snapshot(consultation)
        completed = (
            after["status"] == ConsultationStatusEnum.COMPLETED.value
            and before["status"] != ConsultationStatusEnum.COMPLETED.value
        )
        audit.record(
            ctx,
            AuditAction.CONSULTATION_COMPLETED if completed else AuditAction.CONSULTATION_UPDATED,
            EntityType.CONSULTATION,
            consultation.id,
            old_values=before,
            new_values=after,
            request=request,
        )
    return consultation


@tenant_scoped
def delete_consultation(
    db: Session,
    consultation_id: int,
    *,
    ctx: TenantContext,
    audit: AuditRecorder | None = None,
    request=None,
) -> None:
    consultation = get_accessible_or_404(db, Consultation, ctx, consultation_id, RESOURCE, "view")
    require_ownership(ctx, RESOURCE, "delete", consultation.created_by_user_id)
    before = _snapshot(consultation)
    scoped_query(db, ConsultationDraft, ctx).filter(
        ConsultationDraft.consultation_id == consultation.id
    ).delete(synchronize_session=False)
    db.delete(consultation)
    db.commit()
    if audit is not None:
        audit.record(
            ctx,
            AuditAction.CONSULTATION_DELETED,
            EntityType.CONSULTATION,
            consultation_id,
            old_values=before,
            request=request,
        )


# Drafts


@tenant_scoped
def save_draft(db: Session, consultation_id: int, *, ctx: TenantContext, notes: str | None) -> ConsultationDraft:
    """Upsert the actor's own draft for a consultation they can see."""
    consultation = get_accessible_or_404(db, Consultation, ctx, consultation_id, RESOURCE, "view")
    draft = (
        scoped_query(db, ConsultationDraft, ctx)
        .filter(
            ConsultationDraft.consultation_id == consultation.id,
            ConsultationDraft.user_id == ctx.actor_id,
        )
        .first()
    )
    if draft is None:
        draft = ConsultationDraft(
            tenant_id=ctx.tenant_id,
            consultation_id=consultation.id,
            user_id=ctx.actor_id,
        )
        db.add(draft)
    draft.notes = notes
    db.commit()
    db.refresh(draft)
    return draft


@tenant_scoped
def list_drafts(db: Session, *, ctx: TenantContext, consultation_id: int | None = None) -> list[ConsultationDraft]:
    query = actor_scoped_query(db, ConsultationDraft, ctx)
    if consultation_id is not None:
        query = query.filter(ConsultationDraft.consultation_id == consultation_id)
    return query.order_by(ConsultationDraft.updated_at.desc()).all()


@tenant_scoped
def get_draft(db: Session, draft_id: int, *, ctx: TenantContext) -> ConsultationDraft:
    return get_actor_scoped_or_404(db, ConsultationDraft, ctx, draft_id)


@tenant_scoped
def delete_draft(db: Session, draft_id: int, *, ctx: TenantContext) -> None:
    draft = get_actor_scoped_or_404(db, ConsultationDraft, ctx, draft_id)
    db.delete(draft)
    db.commit()
