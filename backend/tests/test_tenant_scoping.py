import os

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault("SKIP_MIGRATIONS", "1")

from agency.core.db import Base
from agency.crud.consultations import (
    create_consultation,
    delete_consultation,
    get_consultation,
    get_draft,
    list_consultations,
    list_drafts,
    save_draft,
    update_consultation,
)
from agency.models.consultations import Consultation
from agency.models.enums import RoleEnum
from agency.tenancy.errors import NoTenantAccess, NotFound, PermissionDenied
from agency.tenancy.scoping import (
    assert_belongs_to_tenant,
    get_scoped_or_404,
    ownership_scoped_query,
    scoped_query,
)
from tests.factories import make_context, make_member_context, make_tenant, make_user


@pytest.fixture
def db_session(tmp_path):
    db_url = f"sqlite:///{tmp_path}/tenant_scoping.db"
    engine = create_engine(db_url, future=True)
    TestingSessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)
    Base.metadata.create_all(bind=engine)
    with TestingSessionLocal() as session:
        yield session


def test_scoped_query_raises_if_model_missing_tenant_id(db_session):
    class Dummy:
        pass

    owner = make_user(db_session)
    tenant = make_tenant(db_session, owner=owner)
    with pytest.raises(ValueError):
        scoped_query(db_session, Dummy, make_context(tenant, owner, RoleEnum.OWNER))


def test_scoped_query_requires_a_context(db_session):
    with pytest.raises(NoTenantAccess):
        scoped_query(db_session, Consultation, None)


def test_cross_tenant_lookup_is_not_found(db_session):
    owner_a = make_user(db_session)
    owner_b = make_user(db_session)
    tenant_a = make_tenant(db_session, owner=owner_a)
    tenant_b = make_tenant(db_session, owner=owner_b)
    ctx_b = make_context(tenant_b, owner_b, RoleEnum.OWNER)
    foreign = create_consultation(db_session, ctx=ctx_b, client_name="Wayne Corp")

    ctx_a = make_context(tenant_a, owner_a, RoleEnum.OWNER)
    with pytest.raises(NotFound) as cross:
        get_consultation(db_session, foreign.id, ctx=ctx_a)
    with pytest.raises(NotFound) as missing:
        get_consultation(db_session, 987654, ctx=ctx_a)
    assert str(cross.value) == str(missing.value)


def test_member_sees_only_own_consultations(db_session):
    owner = make_user(db_session)
    tenant = make_tenant(db_session, owner=owner)
    member_u, member_ctx = make_member_context(db_session, tenant)
    _, other_ctx = make_member_context(db_session, tenant)

    mine = create_consultation(db_session, ctx=member_ctx, client_name="Mine")
    theirs = create_consultation(db_session, ctx=other_ctx, client_name="Theirs")

    listed = list_consultations(db_session, ctx=member_ctx)
    assert [row.id for row in listed] == [mine.id]
    with pytest.raises(NotFound):
        get_consultation(db_session, theirs.id, ctx=member_ctx)
    assert get_consultation(db_session, mine.id, ctx=member_ctx).created_by_user_id == member_u.id


def test_admin_sees_every_consultation_in_tenant(db_session):
    owner = make_user(db_session)
    tenant = make_tenant(db_session, owner=owner)
    _, member_ctx = make_member_context(db_session, tenant)
    _, admin_ctx = make_member_context(db_session, tenant, RoleEnum.ADMIN)

    theirs = create_consultation(db_session, ctx=member_ctx, client_name="Member row")

    assert get_consultation(db_session, theirs.id, ctx=admin_ctx).id == theirs.id
    assert len(list_consultations(db_session, ctx=admin_ctx)) == 1


def test_admin_can_edit_member_row_but_member_cannot_edit_admin_row(db_session):
    owner = make_user(db_session)
    tenant = make_tenant(db_session, owner=owner)
    _, member_ctx = make_member_context(db_session, tenant)
    _, admin_ctx = make_member_context(db_session, tenant, RoleEnum.ADMIN)

    member_row = create_consultation(db_session, ctx=member_ctx, client_name="Before")
    admin_row = create_consultation(db_session, ctx=admin_ctx, client_name="Admin")

    updated = update_consultation(db_session, member_row.id, ctx=admin_ctx, client_name="After")
    assert updated.client_name == "After"
    with pytest.raises(NotFound):
        update_consultation(db_session, admin_row.id, ctx=member_ctx, client_name="Nope")


def test_member_can_delete_own_consultation(db_session):
    owner = make_user(db_session)
    tenant = make_tenant(db_session, owner=owner)
    _, member_ctx = make_member_context(db_session, tenant)
    row = create_consultation(db_session, ctx=member_ctx, client_name="Temp")
    save_draft(db_session, row.id, ctx=member_ctx, notes="wip")

    delete_consultation(db_session, row.id, ctx=member_ctx)

    with pytest.raises(NotFound):
        get_consultation(db_session, row.id, ctx=member_ctx)
    assert list_drafts(db_session, ctx=member_ctx) == []


def test_ownership_scoped_query_rejects_tenant_wide_resource(db_session):
    owner = make_user(db_session)
    tenant = make_tenant(db_session, owner=owner)
    ctx = make_context(tenant, owner, RoleEnum.OWNER)
    with pytest.raises(ValueError):
        ownership_scoped_query(db_session, Consultation, ctx, "invoice")


def test_member_drafts_are_private_but_visible_to_admin(db_session):
    owner = make_user(db_session)
    tenant = make_tenant(db_session, owner=owner)
    _, admin_ctx = make_member_context(db_session, tenant, RoleEnum.ADMIN)
    _, member_a = make_member_context(db_session, tenant)
    _, member_b = make_member_context(db_session, tenant)

    consultation = create_consultation(db_session, ctx=admin_ctx, client_name="Shared")
    # Members cannot see the admin's consultation, so drafts go on their own rows.
    row_a = create_consultation(db_session, ctx=member_a, client_name="A")
    draft_a = save_draft(db_session, row_a.id, ctx=member_a, notes="a notes")
    draft_admin = save_draft(db_session, consultation.id, ctx=admin_ctx, notes="admin notes")

    assert [d.id for d in list_drafts(db_session, ctx=member_a)] == [draft_a.id]
    assert list_drafts(db_session, ctx=member_b) == []
    with pytest.raises(NotFound):
        get_draft(db_session, draft_a.id, ctx=member_b)
    assert {d.id for d in list_drafts(db_session, ctx=admin_ctx)} == {draft_a.id, draft_admin.id}


def test_save_draft_upserts_single_row_per_user(db_session):
    owner = make_user(db_session)
    tenant = make_tenant(db_session, owner=owner)
    ctx = make_context(tenant, owner, RoleEnum.OWNER)
    consultation = create_consultation(db_session, ctx=ctx, client_name="Upsert")

    first = save_draft(db_session, consultation.id, ctx=ctx, notes="one")
    second = save_draft(db_session, consultation.id, ctx=ctx, notes="two")

    assert first.id == second.id
    assert second.notes == "two"


def test_assert_belongs_to_tenant(db_session):
    owner = make_user(db_session)
    tenant = make_tenant(db_session, owner=owner)
    other_owner = make_user(db_session)
    other = make_tenant(db_session, owner=other_owner)
    ctx = make_context(tenant, owner, RoleEnum.OWNER)
    row = create_consultation(db_session, ctx=make_context(other, other_owner, RoleEnum.OWNER), client_name="X")

    with pytest.raises(NotFound):
        assert_belongs_to_tenant(row, ctx)
    assert assert_belongs_to_tenant(None, ctx, not_found_ok=True) is None
    with pytest.raises(NotFound):
        get_scoped_or_404(db_session, Consultation, ctx, row.id)


def test_tenant_scoped_handlers_require_ctx_keyword(db_session):
    with pytest.raises(NoTenantAccess):
        list_consultations(db_session, ctx=None)


def test_member_without_create_grant_is_denied(db_session):
    owner = make_user(db_session)
    tenant = make_tenant(db_session, owner=owner)
    _, member_ctx = make_member_context(db_session, tenant)
    from agency.crud.invoices import create_invoice

    with pytest.raises(PermissionDenied):
        create_invoice(db_session, ctx=member_ctx, title="Nope")
