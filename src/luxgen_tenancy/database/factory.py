"""
# Tenant Connection Factory

Opens one MongoDB connection per tenant. Each tenant's data lives in its own logical database
whose name and address are pure functions of the tenant id:

```
database name : tenant_<id>
address       : <MONGODB_URL>/tenant_<id>
```

Every connection uses the same pool configuration (`maxPoolSize=10`, `minPoolSize=2`,
`serverSelectionTimeoutMS=5000`, `connectTimeoutMS=10000`, `socketTimeoutMS=45000`, retryable
reads and writes). Motor clients connect lazily, so `open` pings the server before returning:
a tenant connection handed out by the factory has been verified at least once.

The factory never retries. Retrying a stale connection is the registry's job.

Module Attributes:
    factory_logger (Logger): `[TENANT_FACTORY]` logger.
    perf_logger (Logger): `[TENANT_PERFORMANCE]` logger for timings.
"""

import time
from typing import Any, Dict, List, Optional

from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorCollection, AsyncIOMotorDatabase
from pymongo.errors import PyMongoError

from luxgen_tenancy.config import Settings, settings as default_settings
from luxgen_tenancy.exceptions import OperationFailedError, TenantConnectionError
from luxgen_tenancy.managers.logging_manager import get_logger
from luxgen_tenancy.models.tenant_models import TenantDatabaseInfo
from luxgen_tenancy.utils.security_utils import build_authenticated_uri, redact_uri

factory_logger = get_logger(prefix="[TENANT_FACTORY]")
perf_logger = get_logger(prefix="[TENANT_PERFORMANCE]")

# Characters MongoDB forbids in database names
_FORBIDDEN_DB_CHARS = set('/\\. "$*<>:|?')


class TenantConnection:
    """
    An open, verified connection to one tenant database.

    Attributes:
        tenant_id (str): Tenant this connection belongs to.
        database_name (str): `tenant_<id>`.
        client (AsyncIOMotorClient): Dedicated client (own pool) for this tenant.
        database (AsyncIOMotorDatabase): Handle on the tenant database.
    """

    def __init__(self, tenant_id: str, client: AsyncIOMotorClient, database_name: str):
        self.tenant_id = tenant_id
        self.client = client
        self.database_name = database_name
        self.database: AsyncIOMotorDatabase = client[database_name]
        self._closed = False

    @property
    def is_closed(self) -> bool:
        return self._closed

    def get_collection(self, name: str) -> AsyncIOMotorCollection:
        return self.database[name]

    async def ping(self) -> float:
        """Round-trip a `ping` command. Returns the latency in milliseconds."""
        start_time = time.time()
        await self.client.admin.command("ping")
        return (time.time() - start_time) * 1000

    async def db_stats(self) -> Dict[str, Any]:
        return await self.database.command("dbStats")

    async def drop_database(self) -> None:
        await self.client.drop_database(self.database_name)

    def close(self) -> None:
        """Close the client and its pool. Closing twice is harmless."""
        if self._closed:
            return
        self.client.close()
        self._closed = True

    def __repr__(self) -> str:
        return (
            f"TenantConnection(tenant_id={self.tenant_id!r}, database_name={self.database_name!r}, "
            f"closed={self._closed})"
        )


def validate_tenant_id(tenant_id: str) -> str:
    """Reject ids that cannot form a database name."""
    if not tenant_id or not tenant_id.strip():
        raise ValueError("Tenant id must be a non-empty string")
    if _FORBIDDEN_DB_CHARS.intersection(tenant_id):
        raise ValueError(f"Tenant id contains characters not allowed in a database name: {tenant_id!r}")
    return tenant_id


class TenantConnectionFactory:
    """
    Builds `TenantConnection`s with the shared pool configuration.

    Example:
        ```python
        factory = TenantConnectionFactory()
        connection = await factory.open("luxgen")
        connection.database_name  # "tenant_luxgen"
        ```
    """

    def __init__(self, config: Optional[Settings] = None):
        self.config = config or default_settings

    def database_name(self, tenant_id: str) -> str:
        return f"{self.config.TENANT_DATABASE_PREFIX}{validate_tenant_id(tenant_id)}"

    def _base_uri(self) -> str:
        base_uri = self.config.MONGODB_URL
        if self.config.MONGODB_USERNAME and self.config.MONGODB_PASSWORD:
            base_uri = build_authenticated_uri(
                base_uri, self.config.MONGODB_USERNAME, self.config.MONGODB_PASSWORD.get_secret_value()
            )
        return base_uri

    def connection_uri(self, tenant_id: str) -> str:
        """`<MONGODB_URL>/tenant_<id>`, keeping any query string of the base URL."""
        base, sep, query = self._base_uri().partition("?")
        return f"{base.rstrip('/')}/{self.database_name(tenant_id)}{sep}{query}"

    def client_options(self) -> Dict[str, Any]:
        options = {
            "maxPoolSize": self.config.MONGODB_MAX_POOL_SIZE,
            "minPoolSize": self.config.MONGODB_MIN_POOL_SIZE,
            "serverSelectionTimeoutMS": self.config.MONGODB_SERVER_SELECTION_TIMEOUT,
            "connectTimeoutMS": self.config.MONGODB_CONNECTION_TIMEOUT,
            "socketTimeoutMS": self.config.MONGODB_SOCKET_TIMEOUT,
            "retryWrites": True,
            "retryReads": True,
        }
        if self.config.MONGODB_USERNAME and self.config.MONGODB_PASSWORD:
            options["authSource"] = self.config.MONGODB_AUTH_SOURCE
        return options

    async def open(self, tenant_id: str) -> TenantConnection:
        """
        Open and verify a connection to the tenant's database.

        Args:
            tenant_id (str): Canonical tenant id.

        Returns:
            TenantConnection: A connection whose first ping succeeded.

        Raises:
            ValueError: If `tenant_id` is empty or cannot form a database name.
            TenantConnectionError: If the client cannot be created or the ping fails. The
                error's `retryable` flag tells timeouts apart from authentication failures.
        """
        database_name = self.database_name(tenant_id)
        uri = self.connection_uri(tenant_id)
        start_time = time.time()
        factory_logger.info("Opening connection for tenant %s to %s", tenant_id, redact_uri(uri))

        client = None
        try:
            client = AsyncIOMotorClient(uri, **self.client_options())
            connection = TenantConnection(tenant_id, client, database_name)
            ping_ms = await connection.ping()
        except (PyMongoError, OSError, TimeoutError) as e:
            duration = time.time() - start_time
            perf_logger.warning("Connection for tenant %s failed after %.3fs", tenant_id, duration)
            factory_logger.error("Failed to connect tenant %s: %s", tenant_id, redact_uri(str(e)))
            if client is not None:
                client.close()
            raise TenantConnectionError(tenant_id, e) from e

        perf_logger.info(
            "Connection for tenant %s established in %.3fs (ping: %.1fms)", tenant_id, time.time() - start_time, ping_ms
        )
        factory_logger.info("Connected tenant %s to database %s", tenant_id, database_name)
        return connection

    async def list_tenant_databases(self) -> List[TenantDatabaseInfo]:
        """
        List every database on the server whose name carries the tenant prefix.

        Uses a short-lived admin client; cached tenant connections are not touched.
        """
        prefix = self.config.TENANT_DATABASE_PREFIX
        client = AsyncIOMotorClient(self._base_uri(), **self.client_options())
        try:
            result = await client.admin.command("listDatabases")
        except (PyMongoError, OSError) as e:
            factory_logger.error("Failed to list tenant databases: %s", redact_uri(str(e)))
            raise OperationFailedError("*", "list_databases", cause=e) from e
        finally:
            client.close()

        databases = []
        for db in result.get("databases", []):
            name = db.get("name", "")
            if not name.startswith(prefix):
                continue
            databases.append(
                TenantDatabaseInfo(
                    name=name,
                    tenant_id=name[len(prefix):],
                    size_on_disk=int(db.get("sizeOnDisk", 0)),
                    empty=bool(db.get("empty", False)),
                )
            )
        factory_logger.debug("Found %d tenant databases", len(databases))
        return databases
