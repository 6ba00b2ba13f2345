from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from sqlalchemy import func
from sqlalchemy.orm import Session

from agency.billing.catalog import get_tier_limit, is_unlimited, suggest_upgrade_tier
from agency.core.counters import current_quota_usage, quota_resets_at
from agency.core.time import month_bounds
from agency.models.consultations import Consultation
from agency.models.enums import MembershipStatusEnum
from agency.models.memberships import Membership
from agency.models.tenants import Tenant
from agency.tenancy.context import TenantContext
from agency.tenancy.errors import NotFound

logger = logging.getLogger(__name__)


@dataclass
class QuotaExceeded(Exception):
    quota: str
    message: str
    limit: int
    current_usage: int
    resets_at: datetime | None = None
    upgrade_tier: str | None = None
    code: str = "quota_exceeded"
    status_code: int = 402

    def __post_init__(self) -> None:
        super().__init__(self.message)

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "code": self.code,
            "message": self.message,
            "quota": self.quota,
            "limit": self.limit,
            "current_usage": self.current_usage,
        }
        if self.resets_at is not None:
            payload["resets_at"] = self.resets_at.isoformat()
        if self.upgrade_tier:
            payload["upgrade_tier"] = self.upgrade_tier
        return payload


@dataclass(frozen=True)
class QuotaStatus:
    allowed: bool
    current: int
    limit: int
    unlimited: bool
    # None for allowances that are not tied to a calendar month.
    resets_at: datetime | None

    @property
    def remaining(self) -> int | None:
        if self.unlimited:
            return None
        return max(self.limit - self.current, 0)


MEMBERS_QUOTA = "members"
CONSULTATIONS_QUOTA = "consultations_per_month"

# Allowances measured by counting rows rather than by a stored counter.
MONTHLY_ROW_QUOTAS = {CONSULTATIONS_QUOTA: Consultation}


def _tier_for(db: Session, tenant_id: int):
    row = db.query(Tenant.subscription_tier).filter(Tenant.id == tenant_id).first()
    if row is None:
        raise NotFound("Agency not found")
    return row[0]


def count_active_members(db: Session, tenant_id: int) -> int:
    return (
        db.query(func.count(Membership.id))
        .filter(
            Membership.tenant_id == tenant_id,
            Membership.status == MembershipStatusEnum.ACTIVE,
        )
        .scalar()
        or 0
    )


def _count_created_this_month(db: Session, model, tenant_id: int, now: datetime | None) -> int:
    period_start, period_end = month_bounds(now)
    return (
        db.query(func.count(model.id))
        .filter(
            model.tenant_id == tenant_id,
            model.created_at >= period_start,
            model.created_at < period_end,
        )
        .scalar()
        or 0
    )


def _usage_for(db: Session, tenant_id: int, quota_name: str, now: datetime | None) -> tuple[int, datetime | None]:
    if quota_name == MEMBERS_QUOTA:
        return count_active_members(db, tenant_id), None
    model = MONTHLY_ROW_QUOTAS.get(quota_name)
    if model is not None:
        return _count_created_this_month(db, model, tenant_id, now), quota_resets_at(now)
    return current_quota_usage(db, tenant_id, quota_name, now=now), quota_resets_at(now)


def _check(db: Session, tenant_id: int, quota_name: str, now: datetime | None) -> QuotaStatus:
    tier = _tier_for(db, tenant_id)
    limit = get_tier_limit(tier, quota_name)
    current, resets_at = _usage_for(db, tenant_id, quota_name, now)
    unlimited = is_unlimited(limit)
    return QuotaStatus(
        allowed=unlimited or current < limit,
        current=current,
        limit=limit,
        unlimited=unlimited,
        resets_at=resets_at,
    )


def _limit_message(quota_name: str, status: QuotaStatus) -> str:
    if quota_name == MEMBERS_QUOTA:
        return f"Member limit reached ({status.current}/{status.limit})"
    return f"Monthly limit reached for {quota_name.replace('_', ' ')}"


def _enforce(
    db: Session,
    tenant_id: int,
    actor_id: int | None,
    quota_name: str,
    now: datetime | None,
) -> QuotaStatus:
    status = _check(db, tenant_id, quota_name, now)
    if status.allowed:
        return status
    logger.info(
        "quota.exceeded",
        extra={
            "tenant_id": tenant_id,
            "user_id": actor_id,
            "quota": quota_name,
            "limit": status.limit,
        },
    )
    raise QuotaExceeded(
        quota=quota_name,
        message=_limit_message(quota_name, status),
        limit=status.limit,
        current_usage=status.current,
        resets_at=status.resets_at,
        upgrade_tier=suggest_upgrade_tier(_tier_for(db, tenant_id)),
    )


def check_quota(
    db: Session,
    ctx: TenantContext,
    quota_name: str,
    *,
    now: datetime | None = None,
) -> QuotaStatus:
    """
    Read-only check of the tenant's usage against its tier limit.

    Monthly allowances count the current calendar month; ``members`` counts
    active seats and never resets.
    """
    return _check(db, ctx.tenant_id, quota_name, now)


def enforce_quota(
    db: Session,
    ctx: TenantContext,
    quota_name: str,
    *,
    now: datetime | None = None,
) -> QuotaStatus:
    """
    Raise QuotaExceeded when the tenant has used its allowance.

    The check and the later write are separate statements, so two
    concurrent callers may both pass at ``limit - 1``; the overshoot is
    bounded by concurrency.
    """
    return _enforce(db, ctx.tenant_id, ctx.actor_id, quota_name, now)


def enforce_member_limit(db: Session, tenant_id: int, *, actor_id: int | None = None) -> QuotaStatus:
    """Seat check keyed on the tenant, for callers that hold no context there yet."""
    return _enforce(db, tenant_id, actor_id, MEMBERS_QUOTA, None)


def enforce_consultation_limit(db: Session, ctx: TenantContext, *, now: datetime | None = None) -> QuotaStatus:
    return _enforce(db, ctx.tenant_id, ctx.actor_id, CONSULTATIONS_QUOTA, now)
