"""
# Multi-Tenancy Models

This module defines the **data structures** shared by the tenant connection manager:

- **TenantIdentity / TenantConfig**: static, read-only tenant descriptors loaded at startup.
- **ConnectionState**: lifecycle state of a cached tenant connection.
- **HealthStatus**: result of a single health probe (transient, never persisted).
- **TenantStats / LimitsResult**: read-only reports about one tenant database.
- **CloseAllResult**: aggregate outcome of closing every cached connection.

## Configuration Format

Tenant configuration files may use either `snake_case` or `camelCase` keys
(`maxUsers`, `dataRetentionDays`, ...):

```json
{
  "luxgen": {
    "id": "luxgen",
    "slug": "luxgen",
    "name": "LuxGen Technologies",
    "domain": "luxgen.com",
    "features": ["user-management", "analytics"],
    "limits": {"maxUsers": 1000, "maxStorage": 1000000}
  }
}
```

## Module Attributes

Attributes:
    DEFAULT_MAX_USERS (int): User limit applied when a config omits `max_users`.
    DEFAULT_MAX_STORAGE_MB (int): Storage limit (MB) applied when a config omits `max_storage`.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, FrozenSet, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

DEFAULT_MAX_USERS = 1000
DEFAULT_MAX_STORAGE_MB = 1000000


class ConnectionState(str, Enum):
    """Lifecycle state of a cached tenant connection."""

    CONNECTING = "connecting"
    CONNECTED = "connected"
    DISCONNECTED = "disconnected"
    ERROR = "error"


class _ConfigModel(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True, alias_generator=to_camel, extra="ignore")


class TenantIdentity(_ConfigModel):
    """Immutable `(id, slug)` pair. `id` is the internal key, `slug` the routing key."""

    id: str = Field(..., min_length=1)
    slug: str = Field(..., min_length=1)


class TenantLimits(_ConfigModel):
    """Static resource limits for a tenant. Storage values are in MB."""

    max_users: int = Field(default=DEFAULT_MAX_USERS, ge=0)
    max_storage: int = Field(default=DEFAULT_MAX_STORAGE_MB, ge=0)
    max_api_calls: int = Field(default=10000, ge=0)
    max_concurrent_sessions: int = Field(default=100, ge=0)
    data_retention_days: int = Field(default=365, ge=0)
    max_job_posts: int = Field(default=100, ge=0)
    max_training_programs: int = Field(default=50, ge=0)
    max_assessments: int = Field(default=200, ge=0)


class TenantWorkflows(_ConfigModel):
    """Workflows a tenant may run."""

    enabled: bool = False
    available: List[str] = Field(default_factory=list)


class TenantConfig(_ConfigModel):
    """Static descriptor of one tenant. Loaded once, read-only thereafter.

    Attributes:
        id (str): Canonical tenant id; the database name is derived from it.
        slug (str): External routing key (subdomain, path segment, header value).
        name (str): Display name.
        domain (Optional[str]): Primary domain used for domain-based resolution.
        status (str): `active`, `suspended`, ...; only active tenants are routable.
        features (FrozenSet[str]): Enabled feature flags.
        limits (TenantLimits): Quotas.
    """

    id: str = Field(..., min_length=1)
    slug: str = Field(..., min_length=1)
    name: str
    domain: Optional[str] = None
    status: str = "active"
    features: FrozenSet[str] = Field(default_factory=frozenset)
    limits: TenantLimits = Field(default_factory=TenantLimits)
    branding: Dict[str, Any] = Field(default_factory=dict)
    security: Dict[str, Any] = Field(default_factory=dict)
    settings: Dict[str, Any] = Field(default_factory=dict)
    data_retention: Dict[str, Any] = Field(default_factory=dict)
    workflows: TenantWorkflows = Field(default_factory=TenantWorkflows)

    @field_validator("id", "slug")
    @classmethod
    def validate_identifier(cls, v):
        """Identifiers become part of a database name, so only URL-safe characters are allowed."""
        v = v.strip()
        if not v.replace("-", "").replace("_", "").isalnum():
            raise ValueError("Tenant identifiers must contain only alphanumeric characters, dashes, and underscores")
        return v

    @property
    def identity(self) -> TenantIdentity:
        return TenantIdentity(id=self.id, slug=self.slug)

    @property
    def is_active(self) -> bool:
        return self.status == "active"


class HealthStatus(BaseModel):
    """Result of one health probe against a tenant connection."""

    healthy: bool
    tenant_id: str
    database_name: str
    connection_state: ConnectionState
    response_time_ms: Optional[float] = None
    last_checked: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    error: Optional[str] = None


class TenantStats(BaseModel):
    """Database statistics for one tenant (MongoDB `dbStats`)."""

    tenant_id: str
    database_name: str
    collections: int = 0
    data_size: int = 0
    storage_size: int = 0
    indexes: int = 0
    object_count: int = 0
    connection_state: ConnectionState
    last_accessed: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class UsageCount(BaseModel):
    """Current usage against a configured maximum."""

    current: float
    max: float


class LimitsResult(BaseModel):
    """Live usage combined with static limits. Storage is reported in MB."""

    tenant_id: str
    within_limits: bool
    users: UsageCount
    storage: UsageCount


class TenantDatabaseInfo(BaseModel):
    """One `tenant_*` database found on the server."""

    name: str
    tenant_id: str
    size_on_disk: int = 0
    empty: bool = False


class ActiveConnectionInfo(BaseModel):
    """Summary of one cached connection."""

    tenant_id: str
    database_name: str
    connection_state: ConnectionState
    created_at: datetime
    last_health_check: Optional[datetime] = None


class CloseAllResult(BaseModel):
    """Aggregate outcome of `close_all`: each tenant is closed independently."""

    closed: List[str] = Field(default_factory=list)
    failed: Dict[str, str] = Field(default_factory=dict)

    @property
    def success(self) -> bool:
        return not self.failed


class AccessResult(BaseModel):
    """Outcome of a tenant access check."""

    valid: bool
    tenant_id: str
    reason: Optional[str] = None


class TenantStatisticsItem(BaseModel):
    """Per-tenant entry of the statistics report. `error` is set instead of raising."""

    tenant_id: str
    name: str
    slug: str
    domain: Optional[str] = None
    database_stats: Optional[TenantStats] = None
    limits: Optional[LimitsResult] = None
    is_initialized: bool = False
    error: Optional[str] = None
