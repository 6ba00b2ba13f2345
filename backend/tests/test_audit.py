import os

import pytest
from prometheus_client import REGISTRY
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault("SKIP_MIGRATIONS", "1")

from agency.core.db import Base
from agency.core.request_meta import RequestMeta
from agency.crud.audit import AuditAction, AuditRecorder, EntityType, list_activity
from agency.crud.consultations import create_consultation, update_consultation
from agency.models.activity_logs import ActivityLog
from agency.models.enums import RoleEnum
from agency.tenancy.errors import PermissionDenied
from tests.factories import make_context, make_member_context, make_tenant, make_user


@pytest.fixture
def session_factory(tmp_path):
    db_url = f"sqlite:///{tmp_path}/audit_test.db"
    engine = create_engine(db_url, future=True)
    Base.metadata.create_all(bind=engine)
    return sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)


@pytest.fixture
def db_session(session_factory):
    with session_factory() as session:
        yield session


@pytest.fixture
def recorder(session_factory):
    return AuditRecorder(session_factory, enabled=True)


def _failures(action: str) -> float:
    return REGISTRY.get_sample_value("audit_write_failures_total", {"action": action}) or 0.0


def test_record_writes_entry_with_request_meta(db_session, recorder):
    owner = make_user(db_session)
    tenant = make_tenant(db_session, owner=owner)
    ctx = make_context(tenant, owner, RoleEnum.OWNER)
    meta = RequestMeta(
        request_id="req-123",
        client_ip="203.0.113.9",
        user_agent="pytest",
        path="/api/consultations",
        method="POST",
    )

    recorder.record(
        ctx,
        AuditAction.CONSULTATION_CREATED,
        EntityType.CONSULTATION,
        42,
        new_values={"client_name": "Acme"},
        request_meta=meta,
    )

    row = db_session.query(ActivityLog).one()
    assert row.tenant_id == tenant.id
    assert row.actor_id == owner.id
    assert row.action == "consultation.created"
    assert row.entity_type == "consultation"
    assert row.entity_id == "42"
    assert row.new_values == {"client_name": "Acme"}
    assert row.old_values is None
    assert row.request_id == "req-123"
    assert row.client_ip == "203.0.113.9"
    assert row.metadata_json == {"path": "/api/consultations"}
    assert row.is_impersonated is False


def test_record_marks_impersonated_actions(db_session, recorder):
    admin = make_user(db_session, is_platform_admin=True)
    tenant = make_tenant(db_session)
    ctx = make_context(tenant, admin, RoleEnum.OWNER, is_impersonated=True)

    recorder.record(ctx, AuditAction.SETTINGS_UPDATED, EntityType.AGENCY, tenant.id)

    row = db_session.query(ActivityLog).one()
    assert row.is_impersonated is True
    assert row.actor_id == admin.id


def test_record_failure_is_swallowed_and_counted(db_session):
    owner = make_user(db_session)
    tenant = make_tenant(db_session, owner=owner)
    ctx = make_context(tenant, owner, RoleEnum.OWNER)

    def broken_factory():
        raise RuntimeError("database unavailable")

    before = _failures("template.deleted")
    AuditRecorder(broken_factory, enabled=True).record(ctx, AuditAction.TEMPLATE_DELETED, EntityType.TEMPLATE, 1)

    assert _failures("template.deleted") == before + 1


def test_audit_failure_does_not_roll_back_business_write(db_session):
    owner = make_user(db_session)
    tenant = make_tenant(db_session, owner=owner)
    ctx = make_context(tenant, owner, RoleEnum.OWNER)

    def broken_factory():
        raise RuntimeError("database unavailable")

    consultation = create_consultation(
        db_session,
        ctx=ctx,
        client_name="Survives",
        audit=AuditRecorder(broken_factory, enabled=True),
    )

    assert consultation.id is not None
    assert db_session.query(ActivityLog).count() == 0


def test_disabled_recorder_writes_nothing(db_session, session_factory):
    owner = make_user(db_session)
    tenant = make_tenant(db_session, owner=owner)
    ctx = make_context(tenant, owner, RoleEnum.OWNER)

    AuditRecorder(session_factory, enabled=False).record(ctx, AuditAction.LOGIN, EntityType.USER, owner.id)

    assert db_session.query(ActivityLog).count() == 0


def test_record_many_writes_every_entry(db_session, recorder):
    owner = make_user(db_session)
    tenant = make_tenant(db_session, owner=owner)
    ctx = make_context(tenant, owner, RoleEnum.OWNER)

    recorder.record_many(
        ctx,
        [
            {"action": AuditAction.TEMPLATE_CREATED, "entity_type": EntityType.TEMPLATE, "entity_id": 1},
            {"action": AuditAction.TEMPLATE_UPDATED, "entity_type": EntityType.TEMPLATE, "entity_id": 1},
        ],
    )

    actions = sorted(row.action for row in db_session.query(ActivityLog).all())
    assert actions == ["template.created", "template.updated"]


def test_record_many_with_malformed_entry_is_dropped(db_session, recorder):
    owner = make_user(db_session)
    tenant = make_tenant(db_session, owner=owner)
    ctx = make_context(tenant, owner, RoleEnum.OWNER)

    before = _failures("batch")
    recorder.record_many(ctx, [{"entity_type": EntityType.TEMPLATE}])

    assert db_session.query(ActivityLog).count() == 0
    assert _failures("batch") == before + 1


def test_record_with_unmappable_values_does_not_raise(db_session, recorder):
    owner = make_user(db_session)
    tenant = make_tenant(db_session, owner=owner)
    ctx = make_context(tenant, owner, RoleEnum.OWNER)

    before = _failures("consultation.updated")
    recorder.record(
        ctx,
        AuditAction.CONSULTATION_UPDATED,
        EntityType.CONSULTATION,
        1,
        old_values=["status"],
    )

    assert db_session.query(ActivityLog).count() == 0
    assert _failures("consultation.updated") == before + 1


def test_record_many_with_unmappable_values_does_not_raise(db_session, recorder):
    owner = make_user(db_session)
    tenant = make_tenant(db_session, owner=owner)
    ctx = make_context(tenant, owner, RoleEnum.OWNER)

    before = _failures("batch")
    recorder.record_many(
        ctx,
        [{"action": "consultation.updated", "entity_type": "consultation", "old_values": ["status"]}],
    )

    assert db_session.query(ActivityLog).count() == 0
    assert _failures("batch") == before + 1


def test_record_system_with_unmappable_values_does_not_raise(db_session, recorder):
    tenant = make_tenant(db_session)

    before = _failures("agency.updated")
    recorder.record_system(tenant.id, AuditAction.AGENCY_UPDATED, EntityType.AGENCY, tenant.id, new_values=[1, 2])

    assert db_session.query(ActivityLog).count() == 0
    assert _failures("agency.updated") == before + 1


def test_record_system_has_no_actor(db_session, recorder):
    tenant = make_tenant(db_session)

    recorder.record_system(tenant.id, AuditAction.AGENCY_DELETED, EntityType.AGENCY, tenant.id)

    row = db_session.query(ActivityLog).one()
    assert row.actor_id is None
    assert row.action == "agency.deleted"


def test_update_records_old_and_new_values(db_session, recorder):
    owner = make_user(db_session)
    tenant = make_tenant(db_session, owner=owner)
    ctx = make_context(tenant, owner, RoleEnum.OWNER)
    consultation = create_consultation(db_session, ctx=ctx, client_name="Draft name")

    update_consultation(db_session, consultation.id, ctx=ctx, status="completed", audit=recorder)

    row = db_session.query(ActivityLog).one()
    assert row.action == "consultation.completed"
    assert row.old_values["status"] == "draft"
    assert row.new_values["status"] == "completed"


def test_list_activity_is_tenant_scoped_and_newest_first(db_session, recorder):
    owner_a = make_user(db_session)
    owner_b = make_user(db_session)
    tenant_a = make_tenant(db_session, owner=owner_a)
    tenant_b = make_tenant(db_session, owner=owner_b)
    ctx_a = make_context(tenant_a, owner_a, RoleEnum.OWNER)
    ctx_b = make_context(tenant_b, owner_b, RoleEnum.OWNER)

    recorder.record(ctx_a, AuditAction.TEMPLATE_CREATED, EntityType.TEMPLATE, 1)
    recorder.record(ctx_a, AuditAction.TEMPLATE_UPDATED, EntityType.TEMPLATE, 1)
    recorder.record(ctx_b, AuditAction.TEMPLATE_DELETED, EntityType.TEMPLATE, 9)

    entries = list_activity(db_session, ctx_a)
    assert [e.action for e in entries] == ["template.updated", "template.created"]
    assert list_activity(db_session, ctx_a, entity_type=EntityType.TEMPLATE, entity_id=9) == []


def test_list_activity_requires_audit_permission(db_session):
    tenant = make_tenant(db_session)
    _, member_ctx = make_member_context(db_session, tenant)
    with pytest.raises(PermissionDenied):
        list_activity(db_session, member_ctx)
