import os

from starlette.requests import Request

os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault("SKIP_MIGRATIONS", "1")

from agency.core import ip as ip_module  # noqa: E402
from agency.core.request_meta import RequestMeta, resolve_request_meta  # noqa: E402


def _request(peer="203.0.113.5", headers=None):
    raw_headers = [(k.lower().encode(), v.encode()) for k, v in (headers or {}).items()]
    scope = {
        "type": "http",
        "method": "POST",
        "path": "/api/consultations",
        "headers": raw_headers,
        "client": (peer, 12345),
        "query_string": b"",
        "server": ("testserver", 80),
        "scheme": "http",
    }
    return Request(scope)


def test_normalize_ip():
    assert ip_module.normalize_ip(" 10.0.0.1 ") == "10.0.0.1"
    assert ip_module.normalize_ip("not-an-ip") is None
    assert ip_module.normalize_ip(None) is None


def test_forwarded_headers_ignored_by_default(monkeypatch):
    monkeypatch.setattr(ip_module.settings, "TRUST_PROXY_HEADERS", False)
    request = _request(headers={"X-Forwarded-For": "198.51.100.7"})
    assert ip_module.extract_client_ip(request) == "203.0.113.5"


def test_forwarded_headers_from_trusted_proxy(monkeypatch):
    monkeypatch.setattr(ip_module.settings, "TRUST_PROXY_HEADERS", True)
    monkeypatch.setattr(ip_module.settings, "TRUSTED_PROXY_IPS", ["10.0.0.0/8"])
    monkeypatch.setattr(ip_module.settings, "TRUSTED_IP_HEADERS", ["X-Forwarded-For"])
    request = _request(peer="10.1.2.3", headers={"X-Forwarded-For": "garbage, 198.51.100.7, 10.1.2.3"})
    assert ip_module.extract_client_ip(request) == "198.51.100.7"


def test_untrusted_proxy_cannot_spoof(monkeypatch):
    monkeypatch.setattr(ip_module.settings, "TRUST_PROXY_HEADERS", True)
    monkeypatch.setattr(ip_module.settings, "TRUSTED_PROXY_IPS", ["10.0.0.0/8"])
    request = _request(headers={"X-Forwarded-For": "198.51.100.7"})
    assert ip_module.extract_client_ip(request) == "203.0.113.5"


def test_request_meta_from_request():
    request = _request(headers={"User-Agent": "pytest", "X-Request-ID": "req-9"})
    meta = RequestMeta.from_request(request)
    assert meta.request_id == "req-9"
    assert meta.user_agent == "pytest"
    assert meta.path == "/api/consultations"
    assert meta.method == "POST"


def test_resolve_request_meta_prefers_explicit_mapping():
    meta = resolve_request_meta(request_meta={"request_id": "given", "path": "/x"})
    assert meta.request_id == "given"
    assert meta.path == "/x"
    assert resolve_request_meta() is None
