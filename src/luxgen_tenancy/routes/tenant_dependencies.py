"""
# Tenant Dependencies

FastAPI dependencies and the exception handler that connect routes to the `TenantManager`.

## Dependencies

### `get_tenant_manager`
Returns the process-wide manager stored on `app.state` by the lifespan.

### `get_tenant_context`
Returns the `TenantContext` the middleware bound to the request, or binds one on the spot when
the route is exempt from the middleware (or the middleware is not installed).

### `verify_admin_token`
Guards the tenant admin API with the `X-Admin-Token` header when `TENANT_ADMIN_TOKEN` is set.

## Usage Example

```python
@router.get("/polls")
async def list_polls(context: TenantContext = Depends(get_tenant_context)):
    return await context.models.poll.find({"status": "active"})
```
"""

import hmac

from fastapi import Header, HTTPException, Request, status
from starlette.responses import JSONResponse

from luxgen_tenancy.config import settings
from luxgen_tenancy.exceptions import TenantError
from luxgen_tenancy.managers.logging_manager import get_logger
from luxgen_tenancy.managers.tenant_manager import TenantManager
from luxgen_tenancy.middleware.tenant_middleware import extract_tenant_slug
from luxgen_tenancy.services.tenant_context_service import TenantContext

logger = get_logger(prefix="[TENANT_ROUTES]")


def get_tenant_manager(request: Request) -> TenantManager:
    manager = getattr(request.app.state, "tenant_manager", None)
    if manager is None:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Tenant manager unavailable")
    return manager


async def get_tenant_context(request: Request) -> TenantContext:
    """
    Tenant context of the current request.

    Raises:
        TenantContextError: If no context is bound and none can be bound from the request.
    """
    context = getattr(request.state, "tenant_context", None)
    if context is not None:
        return context
    manager = get_tenant_manager(request)
    context = await manager.bind_context(extract_tenant_slug(request) or "")
    request.state.tenant_context = context
    return context


async def verify_admin_token(x_admin_token: str = Header(None, alias="X-Admin-Token")) -> str:
    """
    Verify the tenant admin token.
    """
    if not settings.TENANT_ADMIN_TOKEN:
        # No token configured: admin API open (development)
        return "insecure"

    if not x_admin_token:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing admin token")

    if not hmac.compare_digest(x_admin_token.encode(), settings.TENANT_ADMIN_TOKEN.get_secret_value().encode()):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Invalid admin token")

    return x_admin_token


async def tenant_error_handler(request: Request, exc: TenantError) -> JSONResponse:
    """Render any `TenantError` as `{success: false, error, message, tenant_id, ...}`."""
    if exc.status_code >= 500:
        logger.error(
            "Tenant error on %s %s: %s (%s)", request.method, request.url.path, exc.message, exc.error_type.value
        )
    else:
        logger.info("Tenant request rejected on %s: %s", request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())
