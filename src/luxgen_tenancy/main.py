"""
# Application Entry Point

Builds the FastAPI application around the tenant connection manager.

**Startup:** a `TenantManager` is created, the registry initialized and the background health
monitor started; the manager is stored on `app.state.tenant_manager`.

**Shutdown:** the monitor is stopped and every tenant connection closed; connections that fail to
close are reported in the shutdown log instead of aborting the shutdown.

**Middleware:** CORS, then `TenantContextMiddleware` (binds `request.state.tenant_context` for
every non-exempt path).

**Routes:** `/health` (process liveness), `/api/tenant/context` (the bound tenant),
`/api/tenant-db/*` (tenant database admin API) and `/metrics` (Prometheus).

```bash
uvicorn luxgen_tenancy.main:app --host 0.0.0.0 --port 8000
```
"""

from contextlib import asynccontextmanager
import time
from typing import Callable, Optional

from fastapi import Depends, FastAPI
from prometheus_client import Counter
from prometheus_fastapi_instrumentator import Instrumentator
from starlette.middleware.cors import CORSMiddleware

from luxgen_tenancy import __version__
from luxgen_tenancy.config import settings
from luxgen_tenancy.database.events import TenantEvent
from luxgen_tenancy.exceptions import TenantError
from luxgen_tenancy.managers.logging_manager import get_logger, log_lifecycle_event
from luxgen_tenancy.managers.tenant_manager import TenantManager
from luxgen_tenancy.middleware.tenant_middleware import TenantContextMiddleware
from luxgen_tenancy.routes.tenant_database_routes import router as tenant_database_router
from luxgen_tenancy.routes.tenant_dependencies import get_tenant_context, tenant_error_handler
from luxgen_tenancy.services.tenant_context_service import TenantContext
from luxgen_tenancy.utils.security_utils import redact_uri

logger = get_logger()

TENANT_EVENTS = Counter(
    "luxgen_tenant_events_total", "Tenant connection lifecycle events", ["event_type"]
)


def count_tenant_event(event: TenantEvent) -> None:
    TENANT_EVENTS.labels(event_type=event.type.value).inc()


def create_app(manager_factory: Optional[Callable[[], TenantManager]] = None) -> FastAPI:
    """
    Create the FastAPI application.

    Args:
        manager_factory (Optional[Callable[[], TenantManager]]): Builds the manager at startup.
            Defaults to `TenantManager()` with the global settings.
    """

    @asynccontextmanager
    async def lifespan(_app: FastAPI):
        startup_start_time = time.time()
        log_lifecycle_event(
            "startup_initiated",
            {
                "version": __version__,
                "environment": "production" if settings.is_production else "development",
                "mongodb_url": redact_uri(settings.MONGODB_URL),
            },
        )
        manager = manager_factory() if manager_factory else TenantManager()
        manager.events.subscribe(count_tenant_event)
        await manager.startup()
        _app.state.tenant_manager = manager
        log_lifecycle_event(
            "startup_completed",
            {
                "startup_duration": f"{time.time() - startup_start_time:.3f}s",
                "tenants": [t.id for t in manager.resolver.list_tenants()],
                "health_monitor": manager.monitor.is_running,
            },
        )

        yield

        shutdown_start_time = time.time()
        log_lifecycle_event("shutdown_initiated")
        result = await manager.shutdown()
        log_lifecycle_event(
            "shutdown_completed",
            {
                "shutdown_duration": f"{time.time() - shutdown_start_time:.3f}s",
                "closed": result.closed,
                "failed": result.failed,
            },
        )

    app = FastAPI(
        title="LuxGen Tenancy API",
        description="Per-tenant MongoDB connection lifecycle management",
        version=__version__,
        lifespan=lifespan,
    )

    app.add_middleware(TenantContextMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS", "PATCH"],
        allow_headers=["*"],
    )
    app.add_exception_handler(TenantError, tenant_error_handler)
    routers_config = [
        ("tenant_database", tenant_database_router, "Tenant database administration"),
    ]
    for router_name, router, description in routers_config:
        app.include_router(router)
        logger.info("Included %s router: %s", router_name, description)

    @app.get("/health", tags=["Health"])
    async def health():
        manager = getattr(app.state, "tenant_manager", None)
        return {
            "status": "ok",
            "version": __version__,
            "tenant_connections": len(manager.registry) if manager is not None else 0,
        }

    @app.get("/api/tenant/context", tags=["Tenant"])
    async def tenant_context(context: TenantContext = Depends(get_tenant_context)):
        """Tenant bound to the current request."""
        return {"success": True, "data": context.to_dict()}

    Instrumentator(should_group_status_codes=True, should_ignore_untemplated=True).instrument(app).expose(
        app, include_in_schema=False, endpoint="/metrics"
    )
    return app


app = create_app()


def run() -> None:
    import uvicorn

    uvicorn.run("luxgen_tenancy.main:app", host=settings.HOST, port=settings.PORT, reload=settings.DEBUG)
