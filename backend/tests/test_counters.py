import os
import threading
from datetime import datetime

import pytest
from sqlalchemy import update

os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault("SKIP_MIGRATIONS", "1")

from agency.core.counters import (
    allocate_document_number,
    current_quota_usage,
    format_document_number,
    increment_quota,
    next_document_number,
    quota_resets_at,
)
from agency.core.db import Base, build_engine, build_sessionmaker
from agency.models.tenant_profiles import TenantProfile
from agency.models.tenants import Tenant
from agency.tenancy.errors import TenantProfileMissing
from tests.factories import make_tenant


@pytest.fixture
def session_factory(tmp_path):
    engine = build_engine(f"sqlite:///{tmp_path}/counters_test.db")
    Base.metadata.create_all(bind=engine)
    yield build_sessionmaker(engine)
    engine.dispose()


@pytest.fixture
def db_session(session_factory):
    with session_factory() as session:
        yield session


def _profile(db, tenant):
    db.expire_all()
    return db.query(TenantProfile).filter(TenantProfile.tenant_id == tenant.id).one()


def test_first_number_is_one_with_default_prefix(db_session):
    tenant = make_tenant(db_session)
    assert next_document_number(db_session, tenant.id, "proposal") == ("PROP", 1)
    assert next_document_number(db_session, tenant.id, "proposal") == ("PROP", 2)
    assert _profile(db_session, tenant).next_proposal_number == 3


def test_acme_invoice_numbers_continue_from_stored_counter(db_session):
    tenant = make_tenant(db_session, name="Acme", slug="acme")
    db_session.execute(
        update(TenantProfile)
        .where(TenantProfile.tenant_id == tenant.id)
        .values(invoice_prefix="INV", next_invoice_number=5)
    )
    db_session.commit()

    first = allocate_document_number(db_session, tenant.id, "invoice", year=2026)
    second = allocate_document_number(db_session, tenant.id, "invoice", year=2026)

    assert {first, second} == {"INV-2026-0005", "INV-2026-0006"}
    assert _profile(db_session, tenant).next_invoice_number == 7


def test_counters_are_independent_per_type_and_tenant(db_session):
    tenant_a = make_tenant(db_session)
    tenant_b = make_tenant(db_session)
    next_document_number(db_session, tenant_a.id, "contract")
    next_document_number(db_session, tenant_a.id, "contract")
    assert next_document_number(db_session, tenant_a.id, "quotation") == ("QUO", 1)
    assert next_document_number(db_session, tenant_b.id, "contract") == ("CON", 1)


def test_empty_prefix_falls_back_to_type_default(db_session):
    tenant = make_tenant(db_session)
    db_session.execute(
        update(TenantProfile).where(TenantProfile.tenant_id == tenant.id).values(contract_prefix="")
    )
    db_session.commit()
    assert next_document_number(db_session, tenant.id, "contract") == ("CON", 1)


def test_concurrent_allocations_never_repeat(session_factory):
    with session_factory() as db:
        tenant_id = make_tenant(db).id

    workers = 8
    per_worker = 5
    results: list[int] = []
    errors: list[BaseException] = []
    lock = threading.Lock()
    start = threading.Barrier(workers)

    def worker():
        try:
            start.wait()
            with session_factory() as session:
                for _ in range(per_worker):
                    _, number = next_document_number(session, tenant_id, "invoice")
                    with lock:
                        results.append(number)
        except BaseException as exc:  # surfaced via the errors list below
            with lock:
                errors.append(exc)

    threads = [threading.Thread(target=worker) for _ in range(workers)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert not errors
    total = workers * per_worker
    assert sorted(results) == list(range(1, total + 1))
    with session_factory() as db:
        profile = db.query(TenantProfile).filter(TenantProfile.tenant_id == tenant_id).one()
        assert profile.next_invoice_number == total + 1


def test_missing_profile_raises(db_session):
    tenant = make_tenant(db_session)
    db_session.query(TenantProfile).filter(TenantProfile.tenant_id == tenant.id).delete()
    db_session.commit()
    with pytest.raises(TenantProfileMissing):
        next_document_number(db_session, tenant.id, "proposal")


def test_unknown_counter_name_raises(db_session):
    tenant = make_tenant(db_session)
    with pytest.raises(ValueError):
        next_document_number(db_session, tenant.id, "receipt")


def test_format_document_number_pads_to_four_digits():
    assert format_document_number("PROP", 42, 2025) == "PROP-2025-0042"
    assert format_document_number("INV", 12345, 2025) == "INV-2025-12345"


def test_quota_rolls_over_when_stored_period_is_stale(db_session):
    tenant = make_tenant(db_session)
    db_session.execute(
        update(Tenant)
        .where(Tenant.id == tenant.id)
        .values(ai_generations_this_month=5, ai_generations_reset_at=datetime(2026, 3, 1, 0, 0))
    )
    db_session.commit()
    now = datetime(2026, 4, 2, 9, 0)

    increment_quota(db_session, tenant.id, "ai_generation", now=now)

    db_session.expire_all()
    refreshed = db_session.get(Tenant, tenant.id)
    assert refreshed.ai_generations_this_month == 1
    assert refreshed.ai_generations_reset_at == now


def test_quota_increments_within_period(db_session):
    tenant = make_tenant(db_session)
    first = datetime(2026, 4, 2, 9, 0)
    increment_quota(db_session, tenant.id, "ai_generation", now=first)
    increment_quota(db_session, tenant.id, "ai_generation", now=datetime(2026, 4, 20, 12, 0))

    assert current_quota_usage(db_session, tenant.id, "ai_generation", now=datetime(2026, 4, 30)) == 2
    db_session.expire_all()
    assert db_session.get(Tenant, tenant.id).ai_generations_reset_at == first


def test_stale_quota_reads_as_zero_without_writing(db_session):
    tenant = make_tenant(db_session)
    increment_quota(db_session, tenant.id, "ai_generation", now=datetime(2026, 1, 15))

    assert current_quota_usage(db_session, tenant.id, "ai_generation", now=datetime(2026, 2, 1)) == 0
    db_session.expire_all()
    assert db_session.get(Tenant, tenant.id).ai_generations_this_month == 1


def test_quota_for_missing_tenant_raises(db_session):
    with pytest.raises(TenantProfileMissing):
        increment_quota(db_session, 424242, "ai_generation")
    with pytest.raises(TenantProfileMissing):
        current_quota_usage(db_session, 424242, "ai_generation")


def test_quota_resets_at_start_of_next_month():
    assert quota_resets_at(datetime(2026, 12, 31, 23, 59)) == datetime(2027, 1, 1)
