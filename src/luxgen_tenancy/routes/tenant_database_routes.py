"""
# Tenant Database Admin Routes

Administrative API over the tenant connection manager, mounted at `/api/tenant-db`.

| Method | Path                          | Action                                          |
|--------|-------------------------------|-------------------------------------------------|
| GET    | `/stats/{tenant_id}`          | Database statistics of an open connection       |
| GET    | `/databases`                  | `tenant_*` databases on the server              |
| GET    | `/health`                     | Probe every cached tenant connection            |
| GET    | `/health/{tenant_id}`         | Probe one tenant                                |
| GET    | `/statistics`                 | Stats and limits of every configured tenant     |
| POST   | `/initialize/{tenant_id}`     | Connect, build models and ensure indexes        |
| DELETE | `/close/{tenant_id}`          | Close a tenant connection                       |
| DELETE | `/drop/{tenant_id}`           | Drop a tenant database                          |
| GET    | `/config/{tenant_id}`         | Tenant configuration                            |
| GET    | `/limits/{tenant_id}`         | Live usage against limits                       |
| GET    | `/tenants`                    | All configured tenants                          |
| DELETE | `/cleanup/{tenant_id}`        | Release a tenant's connection                   |
| DELETE | `/cleanup`                    | Release every tenant connection                 |
| POST   | `/operations/{tenant_slug}`   | Run a typed tenant operation                    |

Successful responses are `{"success": true, "data": ...}` (or `"message"`). Failures are rendered
by the `TenantError` exception handler.
"""

from typing import Any, Dict

from fastapi import APIRouter, Body, Depends, HTTPException
from pydantic import ValidationError

from luxgen_tenancy.managers.logging_manager import get_logger
from luxgen_tenancy.managers.tenant_manager import TenantManager
from luxgen_tenancy.routes.tenant_dependencies import get_tenant_manager, verify_admin_token
from luxgen_tenancy.services.tenant_config_service import TenantConfigResolver
from luxgen_tenancy.services.tenant_operations import parse_operation

logger = get_logger(prefix="[TENANT_ADMIN]")

router = APIRouter(prefix="/api/tenant-db", tags=["Tenant Databases"], dependencies=[Depends(verify_admin_token)])


def _config_id(resolver: TenantConfigResolver, tenant_id: str) -> str:
    return resolver.require(tenant_id).id


@router.get("/stats/{tenant_id}")
async def get_tenant_stats(tenant_id: str, manager: TenantManager = Depends(get_tenant_manager)):
    """Database statistics of one tenant. The tenant must have an open connection (see `/initialize`)."""
    resolved_id = _config_id(manager.resolver, tenant_id)
    stats = await manager.stats(resolved_id)
    return {"success": True, "data": stats.model_dump(mode="json")}


@router.get("/databases")
async def list_tenant_databases(manager: TenantManager = Depends(get_tenant_manager)):
    databases = await manager.list_tenant_databases()
    return {"success": True, "data": [db.model_dump() for db in databases]}


@router.get("/health")
async def health_check_all(manager: TenantManager = Depends(get_tenant_manager)):
    """Probe every cached tenant connection."""
    statuses = await manager.health_check_all()
    return {
        "success": True,
        "data": {
            "total": len(statuses),
            "healthy": sum(1 for s in statuses if s.healthy),
            "tenants": [s.model_dump(mode="json") for s in statuses],
        },
    }


@router.get("/health/{tenant_id}")
async def health_check(tenant_id: str, manager: TenantManager = Depends(get_tenant_manager)):
    health = await manager.health_check(_config_id(manager.resolver, tenant_id))
    return {"success": True, "data": health.model_dump(mode="json")}


@router.get("/statistics")
async def get_statistics(manager: TenantManager = Depends(get_tenant_manager)):
    items = await manager.statistics()
    return {"success": True, "data": [item.model_dump(mode="json") for item in items]}


@router.post("/initialize/{tenant_id}")
async def initialize_tenant(tenant_id: str, manager: TenantManager = Depends(get_tenant_manager)):
    """Connect a tenant and create its indexes."""
    resolved_id = _config_id(manager.resolver, tenant_id)
    entry = await manager.connect(resolved_id)
    logger.info("Tenant %s initialized via admin API", resolved_id)
    return {
        "success": True,
        "message": f"Tenant database initialized for {resolved_id}",
        "data": entry.to_info().model_dump(mode="json"),
    }


@router.delete("/close/{tenant_id}")
async def close_tenant(tenant_id: str, manager: TenantManager = Depends(get_tenant_manager)):
    resolved_id = _config_id(manager.resolver, tenant_id)
    closed = await manager.close(resolved_id)
    return {"success": True, "message": f"Tenant database connection closed for {resolved_id}", "closed": closed}


@router.delete("/drop/{tenant_id}")
async def drop_tenant(tenant_id: str, manager: TenantManager = Depends(get_tenant_manager)):
    resolved_id = _config_id(manager.resolver, tenant_id)
    logger.warning("Dropping database of tenant %s via admin API", resolved_id)
    await manager.drop(resolved_id)
    return {"success": True, "message": f"Tenant database dropped for {resolved_id}"}


@router.get("/config/{tenant_id}")
async def get_tenant_config(tenant_id: str, manager: TenantManager = Depends(get_tenant_manager)):
    config = manager.resolver.require(tenant_id)
    return {"success": True, "data": config.model_dump(mode="json")}


@router.get("/limits/{tenant_id}")
async def get_tenant_limits(tenant_id: str, manager: TenantManager = Depends(get_tenant_manager)):
    limits = await manager.check_limits(tenant_id)
    return {"success": True, "data": limits.model_dump(mode="json")}


@router.get("/tenants")
async def list_tenants(manager: TenantManager = Depends(get_tenant_manager)):
    tenants = manager.resolver.list_tenants()
    return {
        "success": True,
        "data": [
            {
                "id": t.id,
                "slug": t.slug,
                "name": t.name,
                "domain": t.domain,
                "status": t.status,
                "connected": t.id in manager.registry,
            }
            for t in tenants
        ],
    }


@router.delete("/cleanup/{tenant_id}")
async def cleanup_tenant(tenant_id: str, manager: TenantManager = Depends(get_tenant_manager)):
    resolved_id = _config_id(manager.resolver, tenant_id)
    await manager.close(resolved_id)
    return {"success": True, "message": f"Tenant resources cleaned up for {resolved_id}"}


@router.delete("/cleanup")
async def cleanup_all(manager: TenantManager = Depends(get_tenant_manager)):
    result = await manager.close_all()
    return {
        "success": result.success,
        "message": "All tenant resources cleaned up" if result.success else "Some tenant connections failed to close",
        "data": result.model_dump(),
    }


@router.post("/operations/{tenant_slug}")
async def run_operation(
    tenant_slug: str,
    payload: Dict[str, Any] = Body(...),
    manager: TenantManager = Depends(get_tenant_manager),
):
    """Run one typed tenant operation, e.g. `{"kind": "list_records", "model": "user"}`."""
    try:
        operation = parse_operation(payload)
    except ValidationError as e:
        raise HTTPException(
            status_code=422,
            detail=e.errors(include_url=False, include_context=False, include_input=False),
        )
    context = await manager.bind_context(tenant_slug)
    result = await manager.execute(operation, context)
    return {"success": True, "data": result.model_dump(mode="json")}
