"""
# Tenant Configuration Service

Static tenant configuration lookups: identifier/domain resolution, feature and workflow flags,
access checks, and the live limits report that combines configured quotas with usage read
through the tenant's models.

Configuration is loaded once, from the JSON file named by `TENANT_CONFIG_PATH` or from the
built-in tenants, and is read-only afterwards. The file holds either a mapping of tenant id to
config or a list of configs; keys may be `snake_case` or `camelCase`.

Resolution never falls back to a default tenant: an unknown identifier resolves to `None`.
"""

import json
import time
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Union

from luxgen_tenancy.config import settings
from luxgen_tenancy.database.events import TenantEventType
from luxgen_tenancy.database.registry import TenantConnectionRegistry
from luxgen_tenancy.default_tenants import DEFAULT_TENANTS
from luxgen_tenancy.exceptions import TenantError, TenantNotFoundError
from luxgen_tenancy.managers.logging_manager import get_logger
from luxgen_tenancy.models.tenant_models import (
    AccessResult,
    LimitsResult,
    TenantConfig,
    TenantStatisticsItem,
    UsageCount,
)

logger = get_logger(prefix="[TENANT_CONFIG]")
perf_logger = get_logger(prefix="[TENANT_PERFORMANCE]")

BYTES_PER_MB = 1024 * 1024


def parse_tenant_configs(data: Union[Dict[str, Any], List[Dict[str, Any]]]) -> List[TenantConfig]:
    """Validate raw tenant configuration data (mapping or list) into `TenantConfig`s."""
    if isinstance(data, dict):
        raw_configs = []
        for tenant_id, raw in data.items():
            raw = dict(raw)
            raw.setdefault("id", tenant_id)
            raw.setdefault("slug", raw["id"])
            raw_configs.append(raw)
    elif isinstance(data, list):
        raw_configs = data
    else:
        raise ValueError("Tenant configuration must be a mapping or a list")
    return [TenantConfig.model_validate(raw) for raw in raw_configs]


class TenantConfigResolver:
    """
    Read-only view over the loaded tenant configurations.

    Args:
        configs (Iterable[TenantConfig]): Tenant configurations; ids and slugs must be unique.
        registry (Optional[TenantConnectionRegistry]): Needed only by the live reports
            (`check_limits`, `statistics`).
    """

    def __init__(self, configs: Iterable[TenantConfig], registry: Optional[TenantConnectionRegistry] = None):
        self.registry = registry
        self._by_id: Dict[str, TenantConfig] = {}
        self._by_slug: Dict[str, TenantConfig] = {}
        for config in configs:
            if config.id in self._by_id:
                raise ValueError(f"Duplicate tenant id: {config.id}")
            if config.slug in self._by_slug:
                raise ValueError(f"Duplicate tenant slug: {config.slug}")
            self._by_id[config.id] = config
            self._by_slug[config.slug] = config

    @classmethod
    def load(
        cls, path: Optional[str] = None, registry: Optional[TenantConnectionRegistry] = None
    ) -> "TenantConfigResolver":
        """
        Load configurations from `path` (default `TENANT_CONFIG_PATH`) or the built-in tenants.

        Raises:
            FileNotFoundError: If a configured path does not exist.
            ValueError / pydantic.ValidationError: If the file content is invalid.
        """
        path = path or settings.TENANT_CONFIG_PATH
        if path:
            config_file = Path(path)
            if not config_file.is_file():
                raise FileNotFoundError(f"Tenant configuration file not found: {path}")
            data = json.loads(config_file.read_text(encoding="utf-8"))
            source = str(config_file)
        else:
            data = DEFAULT_TENANTS
            source = "built-in defaults"
        configs = parse_tenant_configs(data)
        logger.info("Loaded %d tenant configurations from %s", len(configs), source)
        return cls(configs, registry=registry)

    def resolve(self, identifier: str) -> Optional[TenantConfig]:
        """Look a tenant up by id, then by slug. Returns None when neither matches."""
        if not identifier:
            return None
        return self._by_id.get(identifier) or self._by_slug.get(identifier)

    def require(self, identifier: str) -> TenantConfig:
        config = self.resolve(identifier)
        if config is None:
            raise TenantNotFoundError(identifier)
        return config

    def resolve_by_domain(self, domain: str) -> Optional[TenantConfig]:
        """
        Resolve a tenant from a host name.

        An exact `domain` match wins; otherwise the tenant with the longest domain that `domain`
        is a subdomain of.
        """
        if not domain:
            return None
        host = domain.split(":", 1)[0].strip().lower().rstrip(".")
        best = None
        for config in self._by_id.values():
            if not config.domain:
                continue
            tenant_domain = config.domain.lower()
            if host == tenant_domain:
                return config
            if host.endswith("." + tenant_domain) and (best is None or len(tenant_domain) > len(best.domain)):
                best = config
        return best

    def list_tenants(self, active_only: bool = False) -> List[TenantConfig]:
        configs = list(self._by_id.values())
        if active_only:
            configs = [c for c in configs if c.is_active]
        return configs

    def has_feature(self, tenant_id: str, feature: str) -> bool:
        config = self.resolve(tenant_id)
        return config is not None and feature in config.features

    def has_workflow(self, tenant_id: str, workflow: str) -> bool:
        config = self.resolve(tenant_id)
        return config is not None and config.workflows.enabled and workflow in config.workflows.available

    def validate_access(self, tenant_id: str, required_feature: Optional[str] = None) -> AccessResult:
        config = self.resolve(tenant_id)
        if config is None:
            return AccessResult(valid=False, tenant_id=tenant_id, reason="Tenant not found")
        if not config.is_active:
            return AccessResult(valid=False, tenant_id=config.id, reason=f"Tenant is {config.status}")
        if required_feature and required_feature not in config.features:
            return AccessResult(
                valid=False,
                tenant_id=config.id,
                reason=f"Feature '{required_feature}' not available for this tenant",
            )
        return AccessResult(valid=True, tenant_id=config.id)

    def _require_registry(self) -> TenantConnectionRegistry:
        if self.registry is None:
            raise RuntimeError("TenantConfigResolver needs a registry for live reports")
        return self.registry

    async def check_limits(self, tenant_id: str) -> LimitsResult:
        """
        Compare live usage against the tenant's configured limits.

        User count comes from the tenant's User model, storage from `dbStats.dataSize` converted
        to MB. A tenant is within limits while both values are strictly below their maximum.

        Raises:
            TenantNotFoundError: Unknown tenant.
            TenantConnectionError / OperationFailedError: The tenant database is unreachable.
        """
        registry = self._require_registry()
        config = self.require(tenant_id)
        entry = await registry.connect(config.id)
        user_count = await entry.models.user.count()
        stats = await registry.stats(config.id)
        storage_mb = stats.data_size / BYTES_PER_MB

        result = LimitsResult(
            tenant_id=config.id,
            within_limits=user_count < config.limits.max_users and storage_mb < config.limits.max_storage,
            users=UsageCount(current=user_count, max=config.limits.max_users),
            storage=UsageCount(current=round(storage_mb, 3), max=config.limits.max_storage),
        )
        if not result.within_limits:
            logger.warning(
                "Tenant %s exceeds limits (users %d/%d, storage %.3f/%d MB)",
                config.id,
                user_count,
                config.limits.max_users,
                storage_mb,
                config.limits.max_storage,
            )
            await registry.events.emit(
                TenantEventType.LIMIT_EXCEEDED, config.id, result.model_dump(include={"users", "storage"})
            )
        return result

    async def statistics(self) -> List[TenantStatisticsItem]:
        """Stats and limits of every configured tenant. A failing tenant is reported, not raised."""
        registry = self._require_registry()
        start_time = time.time()
        items = []
        for config in self._by_id.values():
            item = TenantStatisticsItem(
                tenant_id=config.id,
                name=config.name,
                slug=config.slug,
                domain=config.domain,
                is_initialized=config.id in registry,
            )
            try:
                item.limits = await self.check_limits(config.id)
                item.database_stats = await registry.stats(config.id)
            except TenantError as e:
                logger.error("Failed to get statistics for tenant %s: %s", config.id, e.message)
                item.error = e.message
            items.append(item)
        perf_logger.info("Collected statistics for %d tenants in %.3fs", len(items), time.time() - start_time)
        return items
