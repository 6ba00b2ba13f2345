import os
from datetime import datetime

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault("SKIP_MIGRATIONS", "1")

from agency.billing.catalog import get_tier_limit, normalize_tier, suggest_upgrade_tier
from agency.core.counters import increment_quota
from agency.core.db import Base
from agency.crud.ai_usage import AI_QUOTA, get_ai_usage, record_ai_generation
from agency.entitlements.enforcement import (
    CONSULTATIONS_QUOTA,
    MEMBERS_QUOTA,
    QuotaExceeded,
    check_quota,
    enforce_consultation_limit,
    enforce_quota,
)
from agency.models.consultations import Consultation
from agency.models.enums import MembershipStatusEnum, RoleEnum, SubscriptionTierEnum
from agency.models.tenants import Tenant
from tests.factories import make_context, make_member_context, make_membership, make_tenant, make_user

NOW = datetime(2026, 4, 10, 12, 0)


@pytest.fixture
def db_session(tmp_path):
    db_url = f"sqlite:///{tmp_path}/quota_test.db"
    engine = create_engine(db_url, future=True)
    TestingSessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)
    Base.metadata.create_all(bind=engine)
    with TestingSessionLocal() as session:
        yield session


def _owner_ctx(db, tier=SubscriptionTierEnum.FREE):
    owner = make_user(db)
    tenant = make_tenant(db, owner=owner, tier=tier)
    return make_context(tenant, owner, RoleEnum.OWNER)


def test_tier_catalog_lookups():
    assert get_tier_limit("free", AI_QUOTA) == 5
    assert get_tier_limit(SubscriptionTierEnum.GROWTH, AI_QUOTA) == 100
    assert normalize_tier("  Starter ") == SubscriptionTierEnum.STARTER
    assert normalize_tier("platinum") == SubscriptionTierEnum.FREE
    assert suggest_upgrade_tier("free") == "starter"
    assert suggest_upgrade_tier("enterprise") is None
    with pytest.raises(ValueError):
        get_tier_limit("free", "storage_gb")


def test_check_quota_reports_usage_and_reset(db_session):
    ctx = _owner_ctx(db_session)
    increment_quota(db_session, ctx.tenant_id, AI_QUOTA, now=NOW)
    increment_quota(db_session, ctx.tenant_id, AI_QUOTA, now=NOW)

    status = check_quota(db_session, ctx, AI_QUOTA, now=NOW)

    assert status.allowed is True
    assert status.current == 2
    assert status.limit == 5
    assert status.remaining == 3
    assert status.resets_at == datetime(2026, 5, 1)


def test_enforce_quota_raises_at_limit(db_session):
    ctx = _owner_ctx(db_session)
    for _ in range(5):
        increment_quota(db_session, ctx.tenant_id, AI_QUOTA, now=NOW)

    with pytest.raises(QuotaExceeded) as excinfo:
        enforce_quota(db_session, ctx, AI_QUOTA, now=NOW)

    exc = excinfo.value
    assert exc.status_code == 402
    assert exc.upgrade_tier == "starter"
    payload = exc.to_payload()
    assert payload["code"] == "quota_exceeded"
    assert payload["limit"] == 5
    assert payload["current_usage"] == 5
    assert payload["resets_at"] == "2026-05-01T00:00:00"


def test_previous_month_usage_does_not_count(db_session):
    ctx = _owner_ctx(db_session)
    for _ in range(5):
        increment_quota(db_session, ctx.tenant_id, AI_QUOTA, now=datetime(2026, 3, 20))

    status = enforce_quota(db_session, ctx, AI_QUOTA, now=NOW)

    assert status.current == 0
    assert status.allowed is True


def test_enterprise_is_unlimited(db_session):
    ctx = _owner_ctx(db_session, SubscriptionTierEnum.ENTERPRISE)
    for _ in range(20):
        increment_quota(db_session, ctx.tenant_id, AI_QUOTA, now=NOW)

    status = enforce_quota(db_session, ctx, AI_QUOTA, now=NOW)

    assert status.unlimited is True
    assert status.remaining is None


def test_record_ai_generation_blocks_sixth_call_on_free_tier(db_session):
    owner = make_user(db_session)
    tenant = make_tenant(db_session, owner=owner)
    _, member_ctx = make_member_context(db_session, tenant)

    for expected in range(1, 6):
        status = record_ai_generation(db_session, ctx=member_ctx, now=NOW)
        assert status.current == expected

    with pytest.raises(QuotaExceeded):
        record_ai_generation(db_session, ctx=member_ctx, now=NOW)

    assert get_ai_usage(db_session, ctx=member_ctx, now=NOW).current == 5


def test_ai_usage_is_tracked_per_tenant(db_session):
    ctx_a = _owner_ctx(db_session)
    ctx_b = _owner_ctx(db_session)

    record_ai_generation(db_session, ctx=ctx_a, now=NOW)

    assert get_ai_usage(db_session, ctx=ctx_a, now=NOW).current == 1
    assert get_ai_usage(db_session, ctx=ctx_b, now=NOW).current == 0


def _add_consultations(db, ctx, count, created_at):
    for i in range(count):
        db.add(
            Consultation(
                tenant_id=ctx.tenant_id,
                created_by_user_id=ctx.actor_id,
                client_name=f"Client {i}",
                created_at=created_at,
            )
        )
    db.commit()


def test_consultation_limit_counts_only_this_month(db_session):
    ctx = _owner_ctx(db_session)
    _add_consultations(db_session, ctx, 10, datetime(2026, 3, 28))
    _add_consultations(db_session, ctx, 9, datetime(2026, 4, 2))

    status = enforce_consultation_limit(db_session, ctx, now=NOW)
    assert status.current == 9
    assert status.remaining == 1
    assert status.resets_at == datetime(2026, 5, 1)

    _add_consultations(db_session, ctx, 1, datetime(2026, 4, 9))
    with pytest.raises(QuotaExceeded) as exc_info:
        enforce_consultation_limit(db_session, ctx, now=NOW)
    assert exc_info.value.quota == CONSULTATIONS_QUOTA
    assert exc_info.value.to_payload()["resets_at"] == "2026-05-01T00:00:00"


def test_consultation_limit_is_per_tenant(db_session):
    ctx_a = _owner_ctx(db_session)
    ctx_b = _owner_ctx(db_session)
    _add_consultations(db_session, ctx_a, 10, datetime(2026, 4, 1))

    assert check_quota(db_session, ctx_a, CONSULTATIONS_QUOTA, now=NOW).allowed is False
    assert check_quota(db_session, ctx_b, CONSULTATIONS_QUOTA, now=NOW).current == 0


def test_member_seats_count_active_memberships_only(db_session):
    ctx = _owner_ctx(db_session, SubscriptionTierEnum.STARTER)
    tenant = db_session.get(Tenant, ctx.tenant_id)
    make_membership(db_session, tenant=tenant, user=make_user(db_session), status=MembershipStatusEnum.INVITED)
    make_membership(db_session, tenant=tenant, user=make_user(db_session), status=MembershipStatusEnum.SUSPENDED)

    status = check_quota(db_session, ctx, MEMBERS_QUOTA)

    assert status.current == 1
    assert status.limit == 3
    assert status.resets_at is None
