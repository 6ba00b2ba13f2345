"""
Middleware for request-scoped tenancy concerns.
"""

import logging
from uuid import uuid4

from starlette.middleware.base import BaseHTTPMiddleware

from agency.core.request_meta import RequestMeta

logger = logging.getLogger(__name__)


class RequestContextMiddleware(BaseHTTPMiddleware):
    """
    Attaches a request_id and RequestMeta to request.state and echoes the id
    on the response. Tenant fields are filled in later by the resolver.
    """

    async def dispatch(self, request, call_next):
        request_id = (
            getattr(request.state, "request_id", None)
            or request.headers.get("X-Request-ID")
            or str(uuid4())
        )
        request.state.request_id = request_id
        request.state.tenant_id = None
        request.state.actor_id = None
        request.state.is_impersonated = False

        meta = RequestMeta.from_request(request, request_id=request_id)
        request.state.request_meta = meta

        logger.debug(
            "request.start",
            extra={
                "request_id": request_id,
                "path": meta.path,
                "client_ip": meta.client_ip,
            },
        )
        response = await call_next(request)
        response.headers["X-Request-ID"] = request_id
        return response
