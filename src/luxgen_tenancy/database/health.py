"""
# Tenant Health Monitor

On-demand and periodic liveness probes of cached tenant connections.

The monitor is **advisory**: a failed probe marks the entry `DISCONNECTED` so that the next
`connect` repairs it, but the monitor itself never reconnects, never removes an entry and never
creates one. `probe` never raises; every failure is reported in the returned `HealthStatus`.

The background loop runs every `TENANT_HEALTH_CHECK_INTERVAL` seconds, probes every cached tenant
concurrently and publishes one `HEALTH_CHECK` event per tenant. A failing tenant never aborts the
scan, and an unexpected error never stops the loop.
"""

import asyncio
from datetime import datetime, timezone
from typing import List, Optional

from pymongo.errors import PyMongoError

from luxgen_tenancy.config import settings
from luxgen_tenancy.database.events import TenantEventType
from luxgen_tenancy.database.registry import TenantConnectionRegistry
from luxgen_tenancy.managers.logging_manager import get_logger
from luxgen_tenancy.models.tenant_models import ConnectionState, HealthStatus
from luxgen_tenancy.utils.security_utils import redact_uri

health_logger = get_logger(prefix="[TENANT_HEALTH]")

NO_CONNECTION = "no connection"


class TenantHealthMonitor:
    """
    Probes tenant connections held by a `TenantConnectionRegistry`.

    Attributes:
        registry (TenantConnectionRegistry): Registry whose entries are probed.
        interval (float): Seconds between background scans.
        probe_timeout (float): Upper bound for a single ping.
    """

    def __init__(
        self,
        registry: TenantConnectionRegistry,
        interval: Optional[float] = None,
        probe_timeout: Optional[float] = None,
    ):
        self.registry = registry
        self.interval = interval if interval is not None else settings.TENANT_HEALTH_CHECK_INTERVAL
        self.probe_timeout = probe_timeout if probe_timeout is not None else settings.TENANT_HEALTH_PROBE_TIMEOUT
        self._task: Optional[asyncio.Task] = None

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    def _database_name(self, tenant_id: str) -> str:
        return f"{self.registry.factory.config.TENANT_DATABASE_PREFIX}{tenant_id}"

    async def probe(self, tenant_id: str) -> HealthStatus:
        """Ping the tenant's cached connection. Absent tenants are reported unhealthy and left absent."""
        entry = self.registry.get(tenant_id)
        if entry is None:
            return HealthStatus(
                healthy=False,
                tenant_id=tenant_id,
                database_name=self._database_name(tenant_id),
                connection_state=ConnectionState.DISCONNECTED,
                error=NO_CONNECTION,
            )

        error = None
        latency_ms = None
        try:
            latency_ms = await asyncio.wait_for(entry.connection.ping(), timeout=self.probe_timeout)
        except asyncio.TimeoutError:
            error = f"ping timed out after {self.probe_timeout}s"
        except (PyMongoError, OSError) as e:
            error = redact_uri(str(e)) or type(e).__name__
        except Exception as e:
            health_logger.error("Unexpected error probing tenant %s: %s", tenant_id, e, exc_info=True)
            error = f"{type(e).__name__}: {redact_uri(str(e))}"

        checked_at = datetime.now(timezone.utc)
        # The entry may have been replaced or closed while the ping was in flight
        if self.registry.get(tenant_id) is entry:
            if error is None:
                self.registry.mark_state(tenant_id, entry.state, checked_at)
            else:
                health_logger.warning("Tenant %s failed health check: %s", tenant_id, error)
                self.registry.mark_state(tenant_id, ConnectionState.DISCONNECTED, checked_at)

        return HealthStatus(
            healthy=error is None,
            tenant_id=tenant_id,
            database_name=entry.database_name,
            connection_state=entry.state,
            response_time_ms=round(latency_ms, 2) if latency_ms is not None else None,
            last_checked=checked_at,
            error=error,
        )

    async def probe_all(self) -> List[HealthStatus]:
        """Probe every cached tenant concurrently."""
        tenant_ids = self.registry.tenant_ids()
        if not tenant_ids:
            return []
        return list(await asyncio.gather(*(self.probe(tenant_id) for tenant_id in tenant_ids)))

    async def run_once(self) -> List[HealthStatus]:
        """One monitoring scan: probe all tenants and publish a `HEALTH_CHECK` event for each."""
        statuses = await self.probe_all()
        for status in statuses:
            await self.registry.events.emit(
                TenantEventType.HEALTH_CHECK,
                status.tenant_id,
                {
                    "healthy": status.healthy,
                    "response_time_ms": status.response_time_ms,
                    "connection_state": status.connection_state.value,
                },
                error=status.error,
            )
        unhealthy = [s.tenant_id for s in statuses if not s.healthy]
        if unhealthy:
            health_logger.warning("Health scan: %d/%d tenants unhealthy: %s", len(unhealthy), len(statuses), unhealthy)
        else:
            health_logger.debug("Health scan: %d tenants healthy", len(statuses))
        return statuses

    async def _health_check_loop(self) -> None:
        """Periodic health check of all cached tenants."""
        while True:
            try:
                await asyncio.sleep(self.interval)
                await self.run_once()
            except asyncio.CancelledError:
                health_logger.info("Tenant health monitor loop cancelled")
                break
            except Exception as e:
                health_logger.error("Error in tenant health monitor loop: %s", e, exc_info=True)

    def start(self) -> None:
        if self.is_running:
            return
        self._task = asyncio.create_task(self._health_check_loop())
        health_logger.info("Tenant health monitor started (interval: %ss)", self.interval)

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        health_logger.info("Tenant health monitor stopped")
