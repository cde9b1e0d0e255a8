"""
Tenant context middleware.

Identifies the tenant of every incoming request and binds a `TenantContext` to
`request.state.tenant_context` before the route runs. The tenant slug is taken from the first of:

1. the subdomain of the `Host` header (`acme.luxgen.com` → `acme`; `www`, `api`, `localhost` and IP
   addresses are ignored),
2. a `/tenant/<slug>/...` path prefix,
3. the `X-Tenant-ID` header, then the `X-Tenant-Slug` header,
4. the `?tenant=` query parameter.

Paths listed in `TENANT_EXEMPT_PATHS` (health checks, docs, the tenant admin API) pass through
untouched. Binding failures are answered directly with the JSON error body of the `TenantError`.
"""

from typing import Callable, Optional, Sequence

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import JSONResponse

from luxgen_tenancy.config import settings
from luxgen_tenancy.exceptions import TenantError
from luxgen_tenancy.managers.logging_manager import get_logger

logger = get_logger(prefix="[TENANT_MIDDLEWARE]")

IGNORED_SUBDOMAINS = {"www", "api", "localhost"}
TENANT_PATH_PREFIX = "/tenant/"


def _subdomain(host: str) -> Optional[str]:
    hostname = host.split(":", 1)[0].strip().lower()
    if "." not in hostname:
        return None
    label = hostname.split(".", 1)[0]
    if not label or label in IGNORED_SUBDOMAINS or label.isdigit():
        return None
    return label


def extract_tenant_slug(request: Request) -> Optional[str]:
    """Return the tenant slug of a request, or None if the request names no tenant."""
    slug = _subdomain(request.headers.get("host", ""))
    if slug:
        return slug

    path = request.url.path
    if path.startswith(TENANT_PATH_PREFIX):
        segment = path[len(TENANT_PATH_PREFIX):].split("/", 1)[0]
        if segment:
            return segment

    for header in ("x-tenant-id", "x-tenant-slug"):
        value = request.headers.get(header)
        if value and value.strip():
            return value.strip()

    query_slug = request.query_params.get("tenant")
    if query_slug and query_slug.strip():
        return query_slug.strip()
    return None


class TenantContextMiddleware(BaseHTTPMiddleware):
    """
    Middleware binding the tenant context of each request.

    Args:
        app: The ASGI application.
        exempt_paths (Optional[Sequence[str]]): Path prefixes that skip tenant binding. Defaults
            to `TENANT_EXEMPT_PATHS`.
    """

    def __init__(self, app, exempt_paths: Optional[Sequence[str]] = None):
        super().__init__(app)
        self.exempt_paths = tuple(exempt_paths if exempt_paths is not None else settings.tenant_exempt_paths_list)

    def is_exempt(self, path: str) -> bool:
        for prefix in self.exempt_paths:
            base = prefix.rstrip("/") or "/"
            if path == base or path.startswith(base.rstrip("/") + "/"):
                return True
        return False

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        if self.is_exempt(request.url.path):
            return await call_next(request)

        manager = getattr(request.app.state, "tenant_manager", None)
        if manager is None:
            logger.error("Tenant manager not initialized; rejecting %s", request.url.path)
            return JSONResponse(status_code=503, content={"success": False, "error": "Tenant manager unavailable"})

        tenant_slug = extract_tenant_slug(request)
        try:
            context = await manager.bind_context(tenant_slug or "")
        except TenantError as e:
            logger.warning("Tenant binding failed for %s: %s", request.url.path, e.message)
            return JSONResponse(status_code=e.status_code, content=e.to_dict())

        request.state.tenant_context = context
        response = await call_next(request)
        response.headers["X-Tenant-ID"] = context.tenant_id
        response.headers["X-Tenant-Slug"] = context.tenant_slug
        return response
