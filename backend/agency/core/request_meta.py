"""
Best-effort request metadata attached to activity log entries.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping, Optional
from uuid import uuid4

from fastapi import Request

from agency.core.ip import extract_client_ip


@dataclass(frozen=True)
class RequestMeta:
    request_id: str
    client_ip: Optional[str] = None
    user_agent: Optional[str] = None
    path: Optional[str] = None
    method: Optional[str] = None

    @classmethod
    def from_request(cls, request: Request, *, request_id: Optional[str] = None) -> "RequestMeta":
        return cls(
            request_id=(
                request_id
                or getattr(request.state, "request_id", None)
                or request.headers.get("X-Request-ID")
                or str(uuid4())
            ),
            client_ip=extract_client_ip(request),
            user_agent=request.headers.get("User-Agent"),
            path=request.url.path,
            method=request.method,
        )


def resolve_request_meta(
    request: Optional[Request] = None,
    request_meta: RequestMeta | Mapping[str, Any] | None = None,
) -> Optional[RequestMeta]:
    """
    Prefer explicit metadata, then whatever the middleware stored on the request.
    Absence of both is normal for system-initiated work.
    """
    if isinstance(request_meta, RequestMeta):
        return request_meta
    if request_meta is not None:
        return RequestMeta(
            request_id=str(request_meta.get("request_id") or uuid4()),
            client_ip=request_meta.get("client_ip"),
            user_agent=request_meta.get("user_agent"),
            path=request_meta.get("path"),
            method=request_meta.get("method"),
        )
    if request is None:
        return None
    return getattr(request.state, "request_meta", None)
