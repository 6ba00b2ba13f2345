"""
Client address resolution for activity log entries.
"""

from __future__ import annotations

from ipaddress import ip_address, ip_network
from typing import Iterable, Optional

from fastapi import Request

from agency.core.config import settings


def normalize_ip(value: Optional[str]) -> Optional[str]:
    if not value:
        return None
    try:
        return str(ip_address(value.strip()))
    except ValueError:
        return None


def _forwarded_client(header_value: str) -> Optional[str]:
    # Left-most valid entry is the original client; later hops are proxies.
    for candidate in header_value.split(","):
        parsed = normalize_ip(candidate)
        if parsed:
            return parsed
    return None


def _is_trusted_proxy(peer: Optional[str], trusted: Iterable[str]) -> bool:
    if peer is None:
        return False
    peer_ip = ip_address(peer)
    for entry in trusted:
        try:
            if peer_ip in ip_network(entry, strict=False):
                return True
        except ValueError:
            continue
    return False


def extract_client_ip(request: Request) -> Optional[str]:
    """
    Resolve the caller address, honouring forwarding headers only from trusted proxies.
    """
    peer = normalize_ip(request.client.host if request.client else None)
    if not settings.TRUST_PROXY_HEADERS or not _is_trusted_proxy(peer, settings.TRUSTED_PROXY_IPS):
        return peer

    for header in settings.TRUSTED_IP_HEADERS:
        raw = request.headers.get(header)
        if raw:
            forwarded = _forwarded_client(raw)
            if forwarded:
                return forwarded
    return peer
