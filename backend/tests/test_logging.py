import json
import logging
import os

import pytest
from fastapi.testclient import TestClient

os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault("SKIP_MIGRATIONS", "1")

from agency.core.config import settings  # noqa: E402
from agency.core.db import Base, build_engine, build_sessionmaker, get_db  # noqa: E402
from agency.core.logging import JsonLogFormatter  # noqa: E402
from agency.main import app  # noqa: E402
from tests.factories import make_tenant, make_user  # noqa: E402


@pytest.fixture
def session_factory(tmp_path):
    engine = build_engine(f"sqlite:///{tmp_path}/logging_test.db")
    Base.metadata.create_all(bind=engine)
    return build_sessionmaker(engine)


@pytest.fixture
def client(session_factory):
    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


def _completed(caplog):
    return [record for record in caplog.records if record.getMessage() == "request.completed"]


@pytest.fixture
def api_logs(caplog):
    logger = logging.getLogger("api_logger")
    logger.addHandler(caplog.handler)
    try:
        yield caplog
    finally:
        logger.removeHandler(caplog.handler)


def test_logging_includes_request_id(client, api_logs):
    response = client.get("/ping", headers={"X-Request-ID": "req-123"})

    assert response.status_code == 200
    entry = _completed(api_logs)[-1]
    assert entry.request_id == "req-123"
    assert entry.route == "/ping"
    assert entry.status_code == 200
    assert entry.tenant_id is None


def test_logging_includes_resolved_tenant_and_actor(client, session_factory, api_logs):
    with session_factory() as db:
        owner = make_user(db)
        tenant = make_tenant(db, owner=owner)
        owner_id, tenant_id = owner.id, tenant.id

    response = client.get("/api/me/context", headers={settings.ACTOR_HEADER_NAME: str(owner_id)})

    assert response.status_code == 200
    entry = _completed(api_logs)[-1]
    assert entry.tenant_id == tenant_id
    assert entry.user_id == owner_id
    assert entry.route == "/api/me/context"


def test_logging_records_error_code(client, session_factory, api_logs):
    with session_factory() as db:
        loner_id = make_user(db).id

    client.get("/api/me/context", headers={settings.ACTOR_HEADER_NAME: str(loner_id)})

    assert _completed(api_logs)[-1].error_code == "no_tenant_access"


def test_json_formatter_emits_extra_fields():
    record = logging.LogRecord("agency.test", logging.INFO, __file__, 1, "quota.exceeded", None, None)
    record.tenant_id = 7
    record.quota = "ai_generation"
    record.request_id = None

    payload = json.loads(JsonLogFormatter().format(record))

    assert payload["message"] == "quota.exceeded"
    assert payload["level"] == "INFO"
    assert payload["tenant_id"] == 7
    assert payload["quota"] == "ai_generation"
    assert "request_id" in payload
