"""
# Tenant Manager

`TenantManager` is the single entry point the application uses. It owns, for one process:

- the `TenantConnectionFactory` and `TenantConnectionRegistry`,
- the `TenantHealthMonitor` and its background loop,
- the `TenantConfigResolver`,
- the `TenantContextBinder`,
- the `TenantEventBus` they all publish to.

It is created once at startup (FastAPI lifespan) and reached through `app.state.tenant_manager`;
there is no module-level instance.

```python
manager = TenantManager()
await manager.startup()
context = await manager.bind_context("luxgen")
users = await context.models.user.find({"role": "admin"})
await manager.shutdown()
```
"""

from typing import List, Optional

from luxgen_tenancy.config import Settings, settings as default_settings
from luxgen_tenancy.database.events import TenantEventBus
from luxgen_tenancy.database.factory import TenantConnectionFactory
from luxgen_tenancy.database.health import TenantHealthMonitor
from luxgen_tenancy.database.registry import ConnectionEntry, TenantConnectionRegistry
from luxgen_tenancy.managers.logging_manager import get_logger
from luxgen_tenancy.models.tenant_models import (
    CloseAllResult,
    HealthStatus,
    LimitsResult,
    TenantConfig,
    TenantDatabaseInfo,
    TenantStatisticsItem,
    TenantStats,
)
from luxgen_tenancy.services.tenant_config_service import TenantConfigResolver
from luxgen_tenancy.services.tenant_context_service import TenantContext, TenantContextBinder
from luxgen_tenancy.services.tenant_operations import OperationResult, execute

logger = get_logger(prefix="[TENANT_MANAGER]")


class TenantManager:
    """Facade over the tenant connection components of one process."""

    def __init__(
        self,
        config: Optional[Settings] = None,
        resolver: Optional[TenantConfigResolver] = None,
        factory: Optional[TenantConnectionFactory] = None,
        events: Optional[TenantEventBus] = None,
    ):
        self.config = config or default_settings
        self.events = events or TenantEventBus()
        self.factory = factory or TenantConnectionFactory(self.config)
        self.registry = TenantConnectionRegistry(self.factory, self.events)
        if resolver is None:
            resolver = TenantConfigResolver.load(self.config.TENANT_CONFIG_PATH)
        resolver.registry = self.registry
        self.resolver = resolver
        self.monitor = TenantHealthMonitor(
            self.registry,
            interval=self.config.TENANT_HEALTH_CHECK_INTERVAL,
            probe_timeout=self.config.TENANT_HEALTH_PROBE_TIMEOUT,
        )
        self.binder = TenantContextBinder(self.resolver, self.registry, self.monitor)

    async def startup(self) -> None:
        await self.registry.init()
        if self.config.TENANT_HEALTH_MONITOR_ENABLED:
            self.monitor.start()
        logger.info("Tenant manager started (%d tenants configured)", len(self.resolver.list_tenants()))

    async def shutdown(self) -> CloseAllResult:
        await self.monitor.stop()
        result = await self.registry.shutdown()
        if result.failed:
            logger.warning("Tenant connections failed to close: %s", result.failed)
        logger.info("Tenant manager stopped")
        return result

    def resolve(self, identifier: str) -> Optional[TenantConfig]:
        return self.resolver.resolve(identifier)

    async def bind_context(self, tenant_slug: str) -> TenantContext:
        return await self.binder.bind(tenant_slug)

    async def connect(self, tenant_id: str) -> ConnectionEntry:
        return await self.registry.connect(tenant_id)

    async def health_check(self, tenant_id: str) -> HealthStatus:
        return await self.monitor.probe(tenant_id)

    async def health_check_all(self) -> List[HealthStatus]:
        return await self.monitor.probe_all()

    async def stats(self, tenant_id: str) -> TenantStats:
        return await self.registry.stats(tenant_id)

    async def close(self, tenant_id: str) -> bool:
        return await self.registry.close(tenant_id)

    async def close_all(self) -> CloseAllResult:
        return await self.registry.close_all()

    async def drop(self, tenant_id: str) -> None:
        await self.registry.drop(tenant_id)

    async def check_limits(self, tenant_id: str) -> LimitsResult:
        return await self.resolver.check_limits(tenant_id)

    async def list_tenant_databases(self) -> List[TenantDatabaseInfo]:
        return await self.factory.list_tenant_databases()

    async def statistics(self) -> List[TenantStatisticsItem]:
        return await self.resolver.statistics()

    async def execute(self, operation, context: TenantContext) -> OperationResult:
        return await execute(operation, context, self)
