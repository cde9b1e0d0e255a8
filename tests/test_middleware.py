from unittest.mock import MagicMock

import pytest
from starlette.requests import Request

from luxgen_tenancy.middleware.tenant_middleware import TenantContextMiddleware, extract_tenant_slug


def make_request(path="/", headers=None, query_string=b""):
    scope = {
        "type": "http",
        "method": "GET",
        "path": path,
        "headers": [(k.lower().encode(), v.encode()) for k, v in (headers or {}).items()],
        "query_string": query_string,
    }
    return Request(scope)


@pytest.mark.parametrize(
    "path, headers, query_string, expected",
    [
        ("/api/polls", {"host": "acme.luxgen.com"}, b"", "acme"),
        ("/api/polls", {"host": "acme.luxgen.com:8443", "x-tenant-id": "demo"}, b"", "acme"),
        ("/api/polls", {"host": "www.luxgen.com", "x-tenant-id": "demo"}, b"", "demo"),
        ("/api/polls", {"host": "127.0.0.1:8000", "x-tenant-slug": "test"}, b"", "test"),
        ("/tenant/demo/polls", {"host": "localhost:8000"}, b"", "demo"),
        ("/api/polls", {"host": "localhost", "x-tenant-id": " luxgen "}, b"", "luxgen"),
        ("/api/polls", {"host": "localhost"}, b"tenant=demo", "demo"),
        ("/api/polls", {"host": "localhost"}, b"", None),
        ("/tenant/", {"host": "localhost"}, b"", None),
    ],
)
def test_extract_tenant_slug(path, headers, query_string, expected):
    request = make_request(path, headers, query_string)

    assert extract_tenant_slug(request) == expected


def test_exempt_paths_match_by_prefix():
    middleware = TenantContextMiddleware(MagicMock(), exempt_paths=["/health", "/api/tenant-db/"])

    assert middleware.is_exempt("/health")
    assert middleware.is_exempt("/api/tenant-db")
    assert middleware.is_exempt("/api/tenant-db/stats/luxgen")
    assert not middleware.is_exempt("/healthz")
    assert not middleware.is_exempt("/api/tenant-dbx")
    assert not middleware.is_exempt("/api/polls")


def test_default_exempt_paths_come_from_settings():
    middleware = TenantContextMiddleware(MagicMock())

    assert middleware.is_exempt("/docs")
    assert middleware.is_exempt("/metrics")
