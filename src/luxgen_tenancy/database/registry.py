"""
# Tenant Connection Registry

Owns the per-tenant connection entries of one process. Each entry bundles the open
`TenantConnection`, the `ModelSet` built on it, its lifecycle state and timestamps.

## Lifecycle

```
            connect()                    probe failure (monitor)
  (none) ─────────────▶ CONNECTED ─────────────────────────────▶ DISCONNECTED
                           ▲                                          │
                           └────────── connect() (one reconnect) ◀────┘
  close() / drop(): entry removed, handle closed
```

- `connect` returns a CONNECTED entry as-is, reconnects a stale one exactly once, or opens a new
  connection, builds its models and ensures indexes.
- Concurrent first-access callers for the same tenant share one in-flight creation future, so a
  tenant never gets two connections. The creation runs in its own task and is awaited through
  `asyncio.shield`: a caller that is cancelled does not cancel the creation for the others.
- Insertions into and removals from the entry map happen without an await in between, so they
  are atomic with respect to the event loop. No lock is held across I/O.
- Only explicit lifecycle calls add or remove entries. Health probes only change `state`.

Every create/close/drop is logged as a structured lifecycle event and published on the event bus.
"""

import asyncio
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from functools import partial
from typing import Dict, List, Optional

from pymongo.errors import PyMongoError

from luxgen_tenancy.database.events import TenantEventBus, TenantEventType
from luxgen_tenancy.database.factory import TenantConnection, TenantConnectionFactory, validate_tenant_id
from luxgen_tenancy.database.tenant_models import ModelSet, build_models
from luxgen_tenancy.exceptions import OperationFailedError, TenantConnectionError, TenantError
from luxgen_tenancy.managers.logging_manager import get_logger, log_lifecycle_event
from luxgen_tenancy.models.tenant_models import ActiveConnectionInfo, CloseAllResult, ConnectionState, TenantStats
from luxgen_tenancy.utils.security_utils import redact_uri

logger = get_logger(prefix="[TENANT_REGISTRY]")
perf_logger = get_logger(prefix="[TENANT_PERFORMANCE]")


@dataclass
class ConnectionEntry:
    """
    Cached connection state of one tenant.

    Attributes:
        tenant_id (str): Tenant this entry belongs to.
        connection (TenantConnection): Open connection to `tenant_<id>`.
        models (ModelSet): Model handles bound to `connection`.
        state (ConnectionState): Current lifecycle state.
        created_at (datetime): When the connection was established.
        last_health_check (Optional[datetime]): Time of the last probe, if any.
    """

    tenant_id: str
    connection: TenantConnection
    models: ModelSet
    state: ConnectionState
    created_at: datetime
    last_health_check: Optional[datetime] = None

    @property
    def database_name(self) -> str:
        return self.connection.database_name

    def to_info(self) -> ActiveConnectionInfo:
        return ActiveConnectionInfo(
            tenant_id=self.tenant_id,
            database_name=self.database_name,
            connection_state=self.state,
            created_at=self.created_at,
            last_health_check=self.last_health_check,
        )


class TenantConnectionRegistry:
    """
    Per-tenant connection cache with explicit lifecycle operations.

    Construct one per process and pass it to whoever needs it:

    ```python
    registry = TenantConnectionRegistry(TenantConnectionFactory(), TenantEventBus())
    await registry.init()
    entry = await registry.connect("luxgen")
    await entry.models.user.count()
    await registry.shutdown()
    ```
    """

    def __init__(self, factory: Optional[TenantConnectionFactory] = None, events: Optional[TenantEventBus] = None):
        self.factory = factory or TenantConnectionFactory()
        self.events = events or TenantEventBus()
        self._entries: Dict[str, ConnectionEntry] = {}
        self._pending: Dict[str, asyncio.Future] = {}
        self.is_initialized = False

    async def init(self) -> None:
        self.is_initialized = True
        logger.info("Tenant connection registry initialized")

    async def shutdown(self) -> CloseAllResult:
        logger.info("Shutting down tenant connection registry (%d connections)", len(self._entries))
        result = await self.close_all()
        self.is_initialized = False
        logger.info("Tenant connection registry shutdown complete")
        return result

    def get(self, tenant_id: str) -> Optional[ConnectionEntry]:
        """Return the cached entry for `tenant_id` without side effects."""
        return self._entries.get(tenant_id)

    def tenant_ids(self) -> List[str]:
        return list(self._entries)

    def active_connections(self) -> List[ActiveConnectionInfo]:
        return [entry.to_info() for entry in self._entries.values()]

    def mark_state(
        self, tenant_id: str, state: ConnectionState, checked_at: Optional[datetime] = None
    ) -> bool:
        """Set the state of a cached entry. Returns False when the tenant has no entry."""
        entry = self._entries.get(tenant_id)
        if entry is None:
            return False
        if entry.state != state:
            logger.info("Tenant %s state %s -> %s", tenant_id, entry.state.value, state.value)
        entry.state = state
        if checked_at is not None:
            entry.last_health_check = checked_at
        return True

    def __contains__(self, tenant_id: str) -> bool:
        return tenant_id in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    async def connect(self, tenant_id: str) -> ConnectionEntry:
        """
        Return a CONNECTED entry for `tenant_id`, creating or repairing it if necessary.

        Raises:
            ValueError: If `tenant_id` is empty.
            TenantConnectionError: If the connection cannot be established or its indexes cannot
                be created. Nothing is cached for a tenant whose first connection failed.
        """
        validate_tenant_id(tenant_id)
        entry = self._entries.get(tenant_id)
        if entry is not None and entry.state == ConnectionState.CONNECTED:
            return entry

        pending = self._pending.get(tenant_id)
        if pending is None or pending.done():
            pending = asyncio.ensure_future(self._establish(tenant_id))
            self._pending[tenant_id] = pending
            pending.add_done_callback(partial(self._forget_pending, tenant_id))
        else:
            logger.debug("Joining in-flight connection for tenant %s", tenant_id)
        return await asyncio.shield(pending)

    def _forget_pending(self, tenant_id: str, future: asyncio.Future) -> None:
        if self._pending.get(tenant_id) is future:
            del self._pending[tenant_id]
        if not future.cancelled():
            # Mark the outcome as retrieved even when every caller has gone away
            future.exception()

    async def _establish(self, tenant_id: str) -> ConnectionEntry:
        stale = self._entries.get(tenant_id)
        if stale is not None:
            logger.warning("Reconnecting tenant %s (state: %s)", tenant_id, stale.state.value)
            stale.state = ConnectionState.CONNECTING
            self._close_handle_quietly(stale.connection)

        start_time = time.time()
        try:
            connection = await self.factory.open(tenant_id)
            entry = await self._initialize(tenant_id, connection)
        except TenantConnectionError as e:
            if stale is not None:
                stale.state = ConnectionState.ERROR
            log_lifecycle_event(
                "tenant_connect_failed",
                {"tenant_id": tenant_id, "error_type": e.error_type.value, "retryable": e.retryable},
                logger=logger,
            )
            await self.events.emit(TenantEventType.ERROR, tenant_id, {"operation": e.operation}, error=e.message)
            raise

        self._entries[tenant_id] = entry
        duration_ms = (time.time() - start_time) * 1000
        perf_logger.info("Tenant %s connected in %.1fms", tenant_id, duration_ms)
        log_lifecycle_event(
            "tenant_connected",
            {
                "tenant_id": tenant_id,
                "database_name": entry.database_name,
                "reconnect": stale is not None,
                "duration_ms": round(duration_ms, 1),
            },
            logger=logger,
        )
        await self.events.emit(
            TenantEventType.CONNECTED,
            tenant_id,
            {"database_name": entry.database_name, "reconnect": stale is not None},
        )
        return entry

    async def _initialize(self, tenant_id: str, connection: TenantConnection) -> ConnectionEntry:
        """Build models and indexes on a fresh connection; the connection is closed on failure."""
        try:
            models = build_models(connection, tenant_id)
            await models.ensure_indexes()
        except (PyMongoError, OSError) as e:
            connection.close()
            logger.error("Failed to initialize database for tenant %s: %s", tenant_id, redact_uri(str(e)))
            raise TenantConnectionError(tenant_id, e, operation="initialize") from e
        except BaseException:
            connection.close()
            raise
        return ConnectionEntry(
            tenant_id=tenant_id,
            connection=connection,
            models=models,
            state=ConnectionState.CONNECTED,
            created_at=datetime.now(timezone.utc),
        )

    def _close_handle_quietly(self, connection: TenantConnection) -> None:
        try:
            connection.close()
        except (PyMongoError, OSError) as e:
            logger.warning("Error closing stale connection for tenant %s: %s", connection.tenant_id, e)

    async def _wait_pending(self, tenant_id: str) -> None:
        pending = self._pending.get(tenant_id)
        if pending is not None and not pending.done():
            logger.debug("Waiting for in-flight connection of tenant %s", tenant_id)
            await asyncio.wait({pending})

    async def close(self, tenant_id: str) -> bool:
        """
        Close and remove the tenant's entry. Idempotent.

        Returns:
            bool: True if an entry was closed, False if there was nothing to close.

        Raises:
            OperationFailedError: If the driver fails to close the client. The entry is removed
                regardless.
        """
        await self._wait_pending(tenant_id)
        entry = self._entries.pop(tenant_id, None)
        if entry is None:
            logger.debug("Close requested for tenant %s with no cached connection", tenant_id)
            return False

        try:
            entry.connection.close()
        except (PyMongoError, OSError) as e:
            entry.state = ConnectionState.ERROR
            logger.error("Error closing connection for tenant %s: %s", tenant_id, e)
            await self.events.emit(TenantEventType.ERROR, tenant_id, {"operation": "close"}, error=str(e))
            raise OperationFailedError(tenant_id, "close", cause=e) from e

        entry.state = ConnectionState.DISCONNECTED
        log_lifecycle_event(
            "tenant_disconnected", {"tenant_id": tenant_id, "database_name": entry.database_name}, logger=logger
        )
        await self.events.emit(TenantEventType.DISCONNECTED, tenant_id, {"database_name": entry.database_name})
        return True

    async def close_all(self) -> CloseAllResult:
        """Close every cached connection. Each close is attempted even if another one fails."""
        result = CloseAllResult()
        for tenant_id in list(dict.fromkeys(list(self._entries) + list(self._pending))):
            try:
                if await self.close(tenant_id):
                    result.closed.append(tenant_id)
            except TenantError as e:
                result.failed[tenant_id] = e.message
        logger.info("Closed %d tenant connections (%d failed)", len(result.closed), len(result.failed))
        return result

    async def drop(self, tenant_id: str) -> None:
        """
        Drop the tenant's database, then close its connection.

        A transient connection is opened when no connection is cached.

        Raises:
            OperationFailedError: If the database cannot be reached or dropped.
        """
        validate_tenant_id(tenant_id)
        await self._wait_pending(tenant_id)
        entry = self._entries.get(tenant_id)
        transient = None
        if entry is not None and not entry.connection.is_closed:
            connection = entry.connection
        else:
            try:
                transient = await self.factory.open(tenant_id)
            except TenantConnectionError as e:
                raise OperationFailedError(tenant_id, "drop", cause=e) from e
            connection = transient

        try:
            await connection.drop_database()
        except (PyMongoError, OSError) as e:
            logger.error("Failed to drop database for tenant %s: %s", tenant_id, e)
            await self.events.emit(TenantEventType.ERROR, tenant_id, {"operation": "drop"}, error=str(e))
            raise OperationFailedError(tenant_id, "drop", cause=e) from e
        finally:
            if transient is not None:
                self._close_handle_quietly(transient)

        await self.close(tenant_id)
        log_lifecycle_event(
            "tenant_database_dropped",
            {"tenant_id": tenant_id, "database_name": connection.database_name},
            logger=logger,
        )
        await self.events.emit(TenantEventType.DROPPED, tenant_id, {"database_name": connection.database_name})

    async def stats(self, tenant_id: str) -> TenantStats:
        """
        Database statistics of a tenant with a cached connection.

        Raises:
            OperationFailedError: If the tenant has no cached connection or `dbStats` fails.
        """
        entry = self._entries.get(tenant_id)
        if entry is None:
            raise OperationFailedError(
                tenant_id, "stats", message=f"No active connection for tenant '{tenant_id}'"
            )
        try:
            raw = await entry.connection.db_stats()
        except (PyMongoError, OSError) as e:
            raise OperationFailedError(tenant_id, "stats", cause=e) from e

        return TenantStats(
            tenant_id=tenant_id,
            database_name=entry.database_name,
            collections=int(raw.get("collections", 0)),
            data_size=int(raw.get("dataSize", 0)),
            storage_size=int(raw.get("storageSize", 0)),
            indexes=int(raw.get("indexes", 0)),
            object_count=int(raw.get("objects", 0)),
            connection_state=entry.state,
        )
