import re
from datetime import timedelta
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from agency.core.time import utcnow
from agency.crud.audit import AuditAction, AuditRecorder, EntityType
from agency.crud.memberships import add_membership
from agency.models.enums import MembershipStatusEnum, RoleEnum, SubscriptionTierEnum
from agency.models.memberships import Membership
from agency.models.tenant_profiles import TenantProfile
from agency.models.tenants import Tenant
from agency.models.users import User
from agency.tenancy.context import TenantContext
from agency.tenancy.errors import NotFound
from agency.tenancy.permissions import require_permission

# Grace period between a deletion request and the hard delete.
DELETION_GRACE_DAYS = 30


def slugify(name: str) -> str:
    slug = name.strip().lower()
    slug = re.sub(r"[^a-z0-9]+", "-", slug)
    slug = re.sub(r"-{2,}", "-", slug).strip("-")
    if slug.isdigit():
        # All-digit hints resolve as tenant ids, so a slug must never look like one.
        return f"agency-{slug}"
    return slug or "agency"


def ensure_unique_slug(db: Session, base_slug: str, *, exclude_id: Optional[int] = None) -> str:
    slug = base_slug
    suffix = 2
    while True:
        query = db.query(Tenant.id).filter(Tenant.slug == slug)
        if exclude_id is not None:
            query = query.filter(Tenant.id != exclude_id)
        if query.first() is None:
            return slug
        slug = f"{base_slug}-{suffix}"
        suffix += 1


def create_tenant(
    db: Session,
    *,
    name: str,
    owner_user: User,
    slug: str | None = None,
    subscription_tier: SubscriptionTierEnum | str = SubscriptionTierEnum.FREE,
    audit: AuditRecorder | None = None,
) -> tuple[Tenant, Membership]:
    """
    Provision a tenant with its counter profile and an owner membership in
    one transaction. The owner's default tenant is set when they have none.
    """
    unique_slug = ensure_unique_slug(db, slugify(slug or name))
    tenant = Tenant(
        name=name,
        slug=unique_slug,
        subscription_tier=SubscriptionTierEnum(subscription_tier),
    )
    db.add(tenant)
    db.flush()
    db.add(TenantProfile(tenant_id=tenant.id))
    membership = add_membership(
        db,
        tenant.id,
        owner_user.id,
        RoleEnum.OWNER,
        status=MembershipStatusEnum.ACTIVE,
        commit=False,
    )
    if owner_user.default_tenant_id is None:
        owner_user.default_tenant_id = tenant.id
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise ValueError("Agency slug already exists.") from exc
    db.refresh(tenant)
    db.refresh(membership)
    if audit is not None:
        ctx = TenantContext(tenant_id=tenant.id, actor_id=owner_user.id, role=RoleEnum.OWNER)
        audit.record(
            ctx,
            AuditAction.AGENCY_CREATED,
            EntityType.AGENCY,
            tenant.id,
            new_values={"name": tenant.name, "slug": tenant.slug},
        )
    return tenant, membership


def _tenant_query(db: Session, *, include_deleted: bool = False):
    query = db.query(Tenant)
    if not include_deleted:
        query = query.filter(Tenant.deleted_at.is_(None))
    return query


def get_tenant_by_id(db: Session, tenant_id: int, *, include_deleted: bool = False) -> Tenant | None:
    return _tenant_query(db, include_deleted=include_deleted).filter(Tenant.id == tenant_id).first()


def get_tenant_by_slug(db: Session, slug: str, *, include_deleted: bool = False) -> Tenant | None:
    return _tenant_query(db, include_deleted=include_deleted).filter(Tenant.slug == slug).first()


def get_current_tenant(db: Session, ctx: TenantContext) -> Tenant:
    tenant = get_tenant_by_id(db, ctx.tenant_id)
    if tenant is None:
        raise NotFound("Agency not found")
    return tenant


def list_tenants_for_user(db: Session, user_id: int) -> list[tuple[Tenant, RoleEnum]]:
    return (
        db.query(Tenant, Membership.role)
        .join(Membership, Membership.tenant_id == Tenant.id)
        .filter(
            Membership.user_id == user_id,
            Membership.status == MembershipStatusEnum.ACTIVE,
            Tenant.deleted_at.is_(None),
        )
        .order_by(Tenant.name.asc())
        .all()
    )


def schedule_deletion(
    db: Session,
    ctx: TenantContext,
    *,
    grace_days: int = DELETION_GRACE_DAYS,
    audit: AuditRecorder | None = None,
) -> Tenant:
    """
    Mark the tenant for deletion after a grace period. The tenant stays
    resolvable until ``deleted_at`` is actually set.
    """
    require_permission(ctx, "agency:delete")
    tenant = get_current_tenant(db, ctx)
    tenant.deletion_scheduled_for = utcnow() + timedelta(days=grace_days)
    db.commit()
    db.refresh(tenant)
    if audit is not None:
        audit.record(
            ctx,
            AuditAction.AGENCY_DELETION_SCHEDULED,
            EntityType.AGENCY,
            tenant.id,
            new_values={"deletion_scheduled_for": tenant.deletion_scheduled_for.isoformat()},
        )
    return tenant


def cancel_deletion(db: Session, ctx: TenantContext, *, audit: AuditRecorder | None = None) -> Tenant:
    require_permission(ctx, "agency:delete")
    tenant = get_current_tenant(db, ctx)
    tenant.deletion_scheduled_for = None
    db.commit()
    db.refresh(tenant)
    if audit is not None:
        audit.record(ctx, AuditAction.AGENCY_DELETION_CANCELLED, EntityType.AGENCY, tenant.id)
    return tenant


def finalize_due_deletions(db: Session, *, now=None, audit: AuditRecorder | None = None) -> list[int]:
    """Soft-delete every tenant whose grace period has elapsed."""
    current = now or utcnow()
    due = (
        _tenant_query(db)
        .filter(
            Tenant.deletion_scheduled_for.isnot(None),
            Tenant.deletion_scheduled_for <= current,
        )
        .all()
    )
    for tenant in due:
        tenant.deleted_at = current
    db.commit()
    deleted_ids = [tenant.id for tenant in due]
    if audit is not None:
        for tenant_id in deleted_ids:
            audit.record_system(tenant_id, AuditAction.AGENCY_DELETED, EntityType.AGENCY, tenant_id)
    return deleted_ids
