import logging
from typing import Optional, Sequence, Tuple, Union

from sqlalchemy.orm import Session

from agency.core.time import utcnow
from agency.entitlements.enforcement import enforce_member_limit
from agency.models.enums import MembershipStatusEnum, RoleEnum, TenantStatusEnum
from agency.models.memberships import Membership
from agency.models.tenants import Tenant
from agency.models.users import User
from agency.tenancy.context import TenantContext
from agency.tenancy.errors import NotFound
from agency.tenancy.permissions import is_role_at_least, require_all_permissions, require_permission
from agency.tenancy.scoping import get_scoped_or_404, scoped_query

logger = logging.getLogger(__name__)


class LastOwnerError(ValueError):
    """Raised when a change would leave a tenant without an active owner."""


def _normalize_role(role: RoleEnum | str) -> RoleEnum:
    if isinstance(role, RoleEnum):
        return role
    try:
        return RoleEnum(role)
    except ValueError as exc:
        raise ValueError("Invalid role.") from exc


def _normalize_status(status: MembershipStatusEnum | str) -> MembershipStatusEnum:
    if isinstance(status, MembershipStatusEnum):
        return status
    try:
        return MembershipStatusEnum(status)
    except ValueError as exc:
        raise ValueError("Invalid status.") from exc


def _live_tenants(db: Session):
    return db.query(Tenant).filter(Tenant.deleted_at.is_(None), Tenant.status == TenantStatusEnum.ACTIVE)


class SqlMembershipRepository:
    """
    SQLAlchemy-backed lookups for TenantContextResolver.

    Only active memberships of active tenants without ``deleted_at`` are
    visible; a suspended tenant resolves for nobody, platform admins included.
    """

    def __init__(self, db: Session):
        self.db = db

    def find_live_tenant_id(self, tenant_hint: Union[int, str]) -> Optional[int]:
        if isinstance(tenant_hint, bool):
            return None
        query = _live_tenants(self.db)
        if isinstance(tenant_hint, int):
            tenant = query.filter(Tenant.id == tenant_hint).first()
        else:
            value = tenant_hint.strip()
            if not value:
                return None
            # Slugs are never all digits, so a numeric hint is always an id.
            if value.isdigit():
                tenant = query.filter(Tenant.id == int(value)).first()
            else:
                tenant = query.filter(Tenant.slug == value.lower()).first()
        return tenant.id if tenant else None

    def get_active_role(self, user_id: int, tenant_id: int) -> Optional[RoleEnum]:
        row = (
            self.db.query(Membership.role)
            .join(Tenant, Tenant.id == Membership.tenant_id)
            .filter(
                Membership.user_id == user_id,
                Membership.tenant_id == tenant_id,
                Membership.status == MembershipStatusEnum.ACTIVE,
                Tenant.deleted_at.is_(None),
                Tenant.status == TenantStatusEnum.ACTIVE,
            )
            .first()
        )
        return _normalize_role(row[0]) if row else None

    def get_default_tenant_id(self, user_id: int) -> Optional[int]:
        row = self.db.query(User.default_tenant_id).filter(User.id == user_id).first()
        return row[0] if row else None

    def list_active_memberships(self, user_id: int) -> Sequence[Tuple[int, RoleEnum]]:
        rows = (
            self.db.query(Membership.tenant_id, Membership.role)
            .join(Tenant, Tenant.id == Membership.tenant_id)
            .filter(
                Membership.user_id == user_id,
                Membership.status == MembershipStatusEnum.ACTIVE,
                Tenant.deleted_at.is_(None),
                Tenant.status == TenantStatusEnum.ACTIVE,
            )
            .order_by(Membership.created_at.asc(), Membership.id.asc())
            .all()
        )
        return [(tenant_id, _normalize_role(role)) for tenant_id, role in rows]


def count_owners(db: Session, ctx: TenantContext) -> int:
    return (
        scoped_query(db, Membership, ctx)
        .filter(
            Membership.role == RoleEnum.OWNER,
            Membership.status == MembershipStatusEnum.ACTIVE,
        )
        .count()
    )


def assert_can_remove_or_demote_owner(
    db: Session,
    ctx: TenantContext,
    membership: Membership,
    *,
    new_role: RoleEnum | str | None = None,
) -> None:
    if membership.role != RoleEnum.OWNER or membership.status != MembershipStatusEnum.ACTIVE:
        return
    if new_role is not None and _normalize_role(new_role) == RoleEnum.OWNER:
        return
    if count_owners(db, ctx) <= 1:
        raise LastOwnerError("Cannot remove the last owner from an agency.")


def add_membership(
    db: Session,
    tenant_id: int,
    user_id: int,
    role: RoleEnum | str,
    *,
    status: MembershipStatusEnum | str = MembershipStatusEnum.ACTIVE,
    invited_by_user_id: int | None = None,
    commit: bool = True,
) -> Membership:
    """
    Low-level insert used by tenant provisioning and test setup. Performs no
    permission check; request handlers go through ``invite_member``.
    """
    membership = Membership(
        tenant_id=tenant_id,
        user_id=user_id,
        role=_normalize_role(role),
        status=_normalize_status(status),
        invited_by_user_id=invited_by_user_id,
    )
    db.add(membership)
    if commit:
        db.commit()
        db.refresh(membership)
    else:
        db.flush()
    return membership


def list_memberships(db: Session, ctx: TenantContext) -> list[Membership]:
    require_permission(ctx, "member:view")
    return scoped_query(db, Membership, ctx).order_by(Membership.id).all()


def get_membership(db: Session, ctx: TenantContext, membership_id: int) -> Membership:
    require_permission(ctx, "member:view")
    return get_scoped_or_404(db, Membership, ctx, membership_id)


def invite_member(
    db: Session,
    ctx: TenantContext,
    user_id: int,
    role: RoleEnum | str = RoleEnum.MEMBER,
) -> Membership:
    normalized_role = _normalize_role(role)
    required = ["member:invite"]
    # Only owners may mint new owners; admins invite at or below their rank.
    if not is_role_at_least(ctx.role, normalized_role):
        required.append("member:change_role")
    require_all_permissions(ctx, required)
    if db.query(User.id).filter(User.id == user_id).first() is None:
        raise NotFound("User not found")
    existing = (
        scoped_query(db, Membership, ctx)
        .filter(Membership.user_id == user_id)
        .first()
    )
    if existing is not None and existing.status == MembershipStatusEnum.ACTIVE:
        raise ValueError("User is already a member of this agency.")
    # Seats are checked again on acceptance.
    enforce_member_limit(db, ctx.tenant_id, actor_id=ctx.actor_id)
    if existing is not None:
        existing.role = normalized_role
        existing.status = MembershipStatusEnum.INVITED
        existing.invited_by_user_id = ctx.actor_id
        db.commit()
        db.refresh(existing)
        return existing
    membership = add_membership(
        db,
        ctx.tenant_id,
        user_id,
        normalized_role,
        status=MembershipStatusEnum.INVITED,
        invited_by_user_id=ctx.actor_id,
    )
    logger.info(
        "membership.invited",
        extra={"tenant_id": ctx.tenant_id, "user_id": ctx.actor_id, "invitee_id": user_id},
    )
    return membership


def accept_invitation(db: Session, tenant_id: int, user_id: int) -> Membership:
    """
    Activate a pending invitation. Runs before the invitee has a context in
    the tenant, so it is keyed on (tenant_id, user_id) directly.
    """
    membership = (
        db.query(Membership)
        .join(Tenant, Tenant.id == Membership.tenant_id)
        .filter(
            Membership.tenant_id == tenant_id,
            Membership.user_id == user_id,
            Membership.status == MembershipStatusEnum.INVITED,
            Tenant.deleted_at.is_(None),
        )
        .first()
    )
    if membership is None:
        raise NotFound("Invitation not found")
    enforce_member_limit(db, tenant_id, actor_id=user_id)
    membership.status = MembershipStatusEnum.ACTIVE
    membership.accepted_at = utcnow()
    db.commit()
    db.refresh(membership)
    return membership


def change_member_role(
    db: Session,
    ctx: TenantContext,
    membership_id: int,
    role: RoleEnum | str,
) -> Tuple[Membership, RoleEnum]:
    """Returns the updated membership and its previous role."""
    require_permission(ctx, "member:change_role")
    normalized_role = _normalize_role(role)
    membership = get_scoped_or_404(db, Membership, ctx, membership_id)
    assert_can_remove_or_demote_owner(db, ctx, membership, new_role=normalized_role)
    previous_role = _normalize_role(membership.role)
    membership.role = normalized_role
    db.commit()
    db.refresh(membership)
    return membership, previous_role


def remove_member(db: Session, ctx: TenantContext, membership_id: int) -> Membership:
    require_permission(ctx, "member:remove")
    membership = get_scoped_or_404(db, Membership, ctx, membership_id)
    # Admins cannot remove owners.
    if not is_role_at_least(ctx.role, membership.role):
        require_permission(ctx, "member:change_role")
    assert_can_remove_or_demote_owner(db, ctx, membership)
    membership.status = MembershipStatusEnum.SUSPENDED
    db.commit()
    db.refresh(membership)
    return membership
