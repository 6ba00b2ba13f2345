"""
Race-free per-tenant counters.

Document numbers and period-bound quotas are each advanced by exactly one
UPDATE statement. There is never a read step before the write, so two
concurrent callers can never observe or produce the same value; the store's
row lock serializes them.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Optional, Tuple

from sqlalchemy import case, or_, select, update
from sqlalchemy.orm import Session

from agency.core.config import settings
from agency.core.metrics import record_document_number, record_quota_increment
from agency.core.time import month_bounds, normalize_ts, utcnow
from agency.models.tenant_profiles import TenantProfile
from agency.models.tenants import Tenant
from agency.tenancy.errors import TenantProfileMissing

logger = logging.getLogger(__name__)

# Statements run against the Core tables so the ORM identity map is untouched.
_profiles = TenantProfile.__table__
_tenants = Tenant.__table__

# counter name -> (counter column, sibling prefix column)
DOCUMENT_COUNTERS = {
    "proposal": ("next_proposal_number", "proposal_prefix"),
    "contract": ("next_contract_number", "contract_prefix"),
    "invoice": ("next_invoice_number", "invoice_prefix"),
    "quotation": ("next_quotation_number", "quotation_prefix"),
}

# quota name -> (usage column, reset timestamp column)
QUOTA_COUNTERS = {
    "ai_generation": ("ai_generations_this_month", "ai_generations_reset_at"),
}


def _document_columns(counter_name: str):
    try:
        counter, prefix = DOCUMENT_COUNTERS[counter_name]
    except KeyError as exc:
        raise ValueError(f"Unknown document counter: {counter_name}") from exc
    return _profiles.c[counter], _profiles.c[prefix]


def _quota_columns(quota_name: str):
    try:
        count, reset_at = QUOTA_COUNTERS[quota_name]
    except KeyError as exc:
        raise ValueError(f"Unknown quota: {quota_name}") from exc
    return _tenants.c[count], _tenants.c[reset_at]


def next_document_number(
    db: Session,
    tenant_id: int,
    counter_name: str,
    *,
    commit: bool = True,
) -> Tuple[str, int]:
    """
    Atomically take the next number for ``counter_name`` and advance the counter.

    Returns ``(prefix, number)`` where ``number`` is the pre-increment value.
    Raises TenantProfileMissing when the tenant has no profile row.
    """
    counter_col, prefix_col = _document_columns(counter_name)
    stmt = (
        update(_profiles)
        .where(_profiles.c.tenant_id == tenant_id)
        .values({counter_col: counter_col + 1, _profiles.c.updated_at: utcnow()})
        .returning((counter_col - 1).label("current_number"), prefix_col.label("prefix"))
        .execution_options(synchronize_session=False)
    )
    row = db.execute(stmt).first()
    if row is None:
        db.rollback()
        logger.error(
            "counters.profile_missing",
            extra={"tenant_id": tenant_id, "counter": counter_name},
        )
        raise TenantProfileMissing(tenant_id)
    if commit:
        db.commit()

    prefix = row.prefix or settings.DEFAULT_DOCUMENT_PREFIXES.get(counter_name, counter_name.upper())
    record_document_number(counter_name)
    logger.debug(
        "counters.document_number",
        extra={"tenant_id": tenant_id, "counter": counter_name, "number": row.current_number},
    )
    return prefix, int(row.current_number)


def format_document_number(prefix: str, number: int, year: Optional[int] = None) -> str:
    """PREFIX-YYYY-NNNN, e.g. INV-2026-0005."""
    resolved_year = year if year is not None else utcnow().year
    return f"{prefix}-{resolved_year}-{number:04d}"


def allocate_document_number(
    db: Session,
    tenant_id: int,
    counter_name: str,
    *,
    year: Optional[int] = None,
    commit: bool = True,
) -> str:
    prefix, number = next_document_number(db, tenant_id, counter_name, commit=commit)
    return format_document_number(prefix, number, year)


def increment_quota(
    db: Session,
    tenant_id: int,
    quota_name: str,
    *,
    now: Optional[datetime] = None,
    commit: bool = True,
) -> None:
    """
    Add one unit of usage, rolling the counter over when the stored period is stale.

    Both the rollover and the increment happen inside one conditional UPDATE:
    a stale or missing reset timestamp sets the counter to 1 and stamps
    ``now``; otherwise the counter is incremented and the stamp is kept.
    """
    count_col, reset_col = _quota_columns(quota_name)
    current = normalize_ts(now) or utcnow()
    period_start, _ = month_bounds(current)
    stale = or_(reset_col.is_(None), reset_col < period_start)
    stmt = (
        update(_tenants)
        .where(_tenants.c.id == tenant_id)
        .values(
            {
                count_col: case((stale, 1), else_=count_col + 1),
                reset_col: case((stale, current), else_=reset_col),
            }
        )
        .execution_options(synchronize_session=False)
    )
    result = db.execute(stmt)
    if result.rowcount == 0:
        db.rollback()
        logger.error("counters.quota_tenant_missing", extra={"tenant_id": tenant_id, "quota": quota_name})
        raise TenantProfileMissing(tenant_id)
    if commit:
        db.commit()
    record_quota_increment(quota_name)


def current_quota_usage(
    db: Session,
    tenant_id: int,
    quota_name: str,
    *,
    now: Optional[datetime] = None,
) -> int:
    """
    Read usage for the current period. A value stamped in an earlier period
    reads as zero; nothing is written.
    """
    count_col, reset_col = _quota_columns(quota_name)
    row = db.execute(
        select(count_col.label("used"), reset_col.label("reset_at")).where(_tenants.c.id == tenant_id)
    ).first()
    if row is None:
        raise TenantProfileMissing(tenant_id)
    period_start, _ = month_bounds(now)
    reset_at = normalize_ts(row.reset_at)
    if reset_at is None or reset_at < period_start:
        return 0
    return int(row.used or 0)


def quota_resets_at(now: Optional[datetime] = None) -> datetime:
    _, period_end = month_bounds(now)
    return period_end
