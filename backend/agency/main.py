# This file bootstraps the FastAPI app, wires up middlewares for
# logging and request context, maps tenancy errors onto HTTP
# responses, and includes all the routers.

import logging
import os

from fastapi import FastAPI, Response
from fastapi.responses import JSONResponse
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from agency.core.db import Base, engine
from agency.core.logging import APILoggingMiddleware
from agency.core.metrics import MetricsMiddleware
from agency.entitlements.enforcement import QuotaExceeded
from agency.tenancy.errors import TenancyError, TenantProfileMissing
from agency.tenancy.middleware import RequestContextMiddleware

# Make sure every model is registered on Base.metadata.
import agency.models  # noqa: F401

from agency.api.audit import router as audit_router
from agency.api.consultations import router as consultations_router
from agency.api.invoices import router as invoices_router
from agency.api.me import router as me_router
from agency.api.memberships import router as memberships_router
from agency.api.proposals import router as proposals_router
from agency.api.tenants import router as tenants_router
from agency.api.usage import router as usage_router

logger = logging.getLogger(__name__)

API_PREFIX = "/api"

# Create DB tables right away for local runs; deployments use alembic.
if os.getenv("SKIP_MIGRATIONS") != "1":
    Base.metadata.create_all(bind=engine)

app = FastAPI(title="Agency Core")


@app.exception_handler(TenancyError)
def handle_tenancy_error(_request, exc: TenancyError):
    message = exc.message
    if isinstance(exc, TenantProfileMissing):
        # Provisioning bug: keep the tenant id in logs, not in the response.
        logger.error("tenancy.profile_missing", extra={"tenant_id": exc.tenant_id})
        message = "Internal error"
    response = JSONResponse(
        status_code=exc.status_code,
        content={"code": exc.code, "detail": message},
    )
    response.headers["X-Error-Code"] = exc.code
    return response


@app.exception_handler(QuotaExceeded)
def handle_quota_exceeded(_request, exc: QuotaExceeded):
    response = JSONResponse(status_code=exc.status_code, content=exc.to_payload())
    response.headers["X-Error-Code"] = exc.code
    return response


routers = [
    me_router,
    consultations_router,
    proposals_router,
    invoices_router,
    usage_router,
    audit_router,
    memberships_router,
    tenants_router,
]

# Mounted directly on the app so every route carries the /api prefix in its path.
for r in routers:
    app.include_router(r, prefix=API_PREFIX)

# Observability layers. Added last-to-first: RequestContextMiddleware runs
# outermost so request_id is set before logging and metrics see the request.
app.add_middleware(APILoggingMiddleware)
app.add_middleware(MetricsMiddleware)
app.add_middleware(RequestContextMiddleware)


# /metrics endpoint (Prometheus scraping)
@app.get("/metrics", include_in_schema=False)
def metrics() -> Response:
    return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)


@app.get("/ping")
def ping():
    return {"message": "pong"}
