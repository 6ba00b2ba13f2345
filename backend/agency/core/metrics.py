# Centralized Prometheus metrics. Middleware below records timing
# and counts for every request; the record_* helpers are called from
# the tenancy core so dashboards can track counters and denials.

from time import monotonic

from fastapi import Request
from prometheus_client import Counter, Histogram
from starlette.middleware.base import BaseHTTPMiddleware

# Generic API latency + request counters labelled by route template.
REQUEST_DURATION_MS = Histogram(
    "agency_request_duration_ms",
    "API request duration in milliseconds",
    ["method", "route"],
    buckets=[5, 10, 25, 50, 100, 250, 500, 1000, 2000, 5000, 10000],
)
REQUESTS_TOTAL = Counter(
    "agency_requests_total",
    "Total API requests",
    ["method", "route", "status_code"],
)

# Document numbers handed out, by document type.
DOCUMENT_NUMBERS_ALLOCATED_TOTAL = Counter(
    "document_numbers_allocated_total",
    "Document numbers allocated",
    ["counter"],
)

# Period-bound quota increments, by quota name.
QUOTA_INCREMENTS_TOTAL = Counter(
    "quota_increments_total",
    "Quota increments applied",
    ["quota"],
)

# Authorization failures keyed by the permission that was missing.
PERMISSION_DENIALS_TOTAL = Counter(
    "permission_denials_total",
    "Authorization checks that denied the caller",
    ["permission"],
)

# Audit writes are best-effort; this is the only place their failures surface.
AUDIT_WRITE_FAILURES_TOTAL = Counter(
    "audit_write_failures_total",
    "Activity log writes that failed and were dropped",
    ["action"],
)


def _label(value: object | None, default: str = "unknown") -> str:
    if value is None:
        return default
    if isinstance(value, str) and not value.strip():
        return default
    return str(value)


def record_document_number(counter: str) -> None:
    DOCUMENT_NUMBERS_ALLOCATED_TOTAL.labels(counter=_label(counter)).inc()


def record_quota_increment(quota: str) -> None:
    QUOTA_INCREMENTS_TOTAL.labels(quota=_label(quota)).inc()


def record_permission_denied(permission: str) -> None:
    PERMISSION_DENIALS_TOTAL.labels(permission=_label(permission)).inc()


def record_audit_failure(action: str | None) -> None:
    AUDIT_WRITE_FAILURES_TOTAL.labels(action=_label(action)).inc()


class MetricsMiddleware(BaseHTTPMiddleware):
    # Wraps every request to capture latency and a labelled count.
    async def dispatch(self, request: Request, call_next):
        start = monotonic()
        response = await call_next(request)
        duration_ms = (monotonic() - start) * 1000.0

        route = request.scope.get("route")
        route_path = getattr(route, "path", None) or request.url.path
        REQUEST_DURATION_MS.labels(request.method, route_path).observe(duration_ms)
        REQUESTS_TOTAL.labels(request.method, route_path, str(response.status_code)).inc()
        return response
