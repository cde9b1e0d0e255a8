"""
# Tenant Context Service

Assembles the request-scoped `TenantContext` from a tenant slug:

1. resolve the slug to a `TenantConfig`,
2. `connect` through the registry (cached, created or repaired),
3. probe the connection; an unhealthy connection gets one repair `connect` and one re-probe.

Either a complete context is returned or a `TenantContextError` is raised whose `status_code`
tells the adapter how to answer (400 missing slug, 403 inactive tenant, 404 unknown tenant, 500
connection or health failure). No partial context is ever handed out.
"""

from dataclasses import dataclass
from typing import Any, Dict

from luxgen_tenancy.database.factory import TenantConnection
from luxgen_tenancy.database.health import TenantHealthMonitor
from luxgen_tenancy.database.registry import ConnectionEntry, TenantConnectionRegistry
from luxgen_tenancy.database.tenant_models import ModelSet
from luxgen_tenancy.exceptions import TenantConnectionError, TenantContextError, TenantErrorType, TenantNotFoundError
from luxgen_tenancy.managers.logging_manager import get_logger
from luxgen_tenancy.models.tenant_models import HealthStatus, TenantConfig
from luxgen_tenancy.services.tenant_config_service import TenantConfigResolver

logger = get_logger(prefix="[TENANT_CONTEXT]")


@dataclass(frozen=True)
class TenantContext:
    """Everything a request needs to work against one tenant."""

    tenant_id: str
    tenant_slug: str
    database_name: str
    connection: TenantConnection
    models: ModelSet
    config: TenantConfig
    health: HealthStatus

    def to_dict(self) -> Dict[str, Any]:
        """Client-safe summary (no connection objects)."""
        return {
            "tenant_id": self.tenant_id,
            "tenant_slug": self.tenant_slug,
            "tenant_name": self.config.name,
            "database_name": self.database_name,
            "features": sorted(self.config.features),
            "health": self.health.model_dump(mode="json"),
        }


class TenantContextBinder:
    """Composes resolver, registry and health monitor into a `TenantContext`."""

    def __init__(
        self,
        resolver: TenantConfigResolver,
        registry: TenantConnectionRegistry,
        monitor: TenantHealthMonitor,
    ):
        self.resolver = resolver
        self.registry = registry
        self.monitor = monitor

    async def _connect(self, tenant_id: str) -> ConnectionEntry:
        try:
            return await self.registry.connect(tenant_id)
        except TenantConnectionError as e:
            logger.error("Failed to connect tenant %s while binding context: %s", tenant_id, e.message)
            raise TenantContextError(e.message, tenant_id=tenant_id, status_code=500, cause=e) from e

    async def bind(self, tenant_slug: str) -> TenantContext:
        """
        Build the context for `tenant_slug`.

        Raises:
            TenantContextError: With status 400, 403, 404 or 500; `cause` holds the underlying
                `TenantNotFoundError` or `TenantConnectionError` when there is one.
        """
        if not tenant_slug or not tenant_slug.strip():
            raise TenantContextError("Tenant identifier is required", status_code=400)
        tenant_slug = tenant_slug.strip()

        config = self.resolver.resolve(tenant_slug)
        if config is None:
            not_found = TenantNotFoundError(tenant_slug)
            raise TenantContextError(not_found.message, tenant_id=tenant_slug, status_code=404, cause=not_found)
        if not config.is_active:
            raise TenantContextError(f"Tenant '{config.id}' is {config.status}", tenant_id=config.id, status_code=403)

        entry = await self._connect(config.id)
        health = await self.monitor.probe(config.id)
        if not health.healthy:
            logger.warning("Tenant %s unhealthy after connect (%s), repairing once", config.id, health.error)
            entry = await self._connect(config.id)
            health = await self.monitor.probe(config.id)
            if not health.healthy:
                raise TenantContextError(
                    f"Tenant database for '{config.id}' is unhealthy: {health.error}",
                    tenant_id=config.id,
                    status_code=500,
                    error_type=TenantErrorType.HEALTH_CHECK_FAILED,
                )

        logger.debug("Bound context for tenant %s (slug %s)", config.id, tenant_slug)
        return TenantContext(
            tenant_id=config.id,
            tenant_slug=config.slug,
            database_name=entry.database_name,
            connection=entry.connection,
            models=entry.models,
            config=config,
            health=health,
        )
