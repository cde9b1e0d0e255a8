"""
# Configuration Management Module

This module provides the **settings layer** for the tenant connection manager. It is built on
**Pydantic Settings** and follows a layered loading hierarchy so the same code runs unchanged in
local development, containers and CI.

## Configuration Loading Hierarchy

```
┌─────────────────────────────────────────────────────────────┐
│         Configuration Loading Hierarchy                     │
│  (Higher layers override lower layers)                      │
├─────────────────────────────────────────────────────────────┤
│  1. Environment Variables (HIGHEST PRIORITY)                │
├─────────────────────────────────────────────────────────────┤
│  2. LUXGEN_TENANCY_CONFIG_PATH                              │
│     - Custom config file path from env var                  │
├─────────────────────────────────────────────────────────────┤
│  3. .luxgen File (Project Root)                             │
├─────────────────────────────────────────────────────────────┤
│  4. .env File (Project Root)                                │
├─────────────────────────────────────────────────────────────┤
│  5. Default Values (LOWEST PRIORITY)                        │
└─────────────────────────────────────────────────────────────┘
```

## Configuration Groups

### Database (MongoDB)
Base address and the fixed pool configuration applied to **every** tenant connection:

```python
MONGODB_URL: str = "mongodb://127.0.0.1:27017"  # Base address, tenant DB is appended
MONGODB_MAX_POOL_SIZE: int = 10
MONGODB_MIN_POOL_SIZE: int = 2
MONGODB_SERVER_SELECTION_TIMEOUT: int = 5000  # ms
MONGODB_CONNECTION_TIMEOUT: int = 10000  # ms
MONGODB_SOCKET_TIMEOUT: int = 45000  # ms
```

### Multi-Tenancy
```python
TENANT_DATABASE_PREFIX: str = "tenant_"  # Database name is <prefix><tenant_id>
TENANT_CONFIG_PATH: Optional[str] = None  # JSON file with tenant configurations
TENANT_HEALTH_CHECK_INTERVAL: int = 30  # seconds between background probes
TENANT_HEALTH_PROBE_TIMEOUT: int = 5  # seconds before a probe counts as failed
```

## Usage

```python
from luxgen_tenancy.config import settings

print(settings.MONGODB_URL)
```

Note:
    This module must not import the logging manager; the logging manager reads
    `DEFAULT_LOG_LEVEL` from here.
"""

import os
from pathlib import Path
from typing import Any, Optional

from dotenv import load_dotenv
from pydantic import SecretStr, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# --- Constants ---
LUXGEN_FILENAME: str = ".luxgen"
DEFAULT_ENV_FILENAME: str = ".env"
CONFIG_ENV_VAR: str = "LUXGEN_TENANCY_CONFIG_PATH"
PROJECT_ROOT: Path = Path(__file__).resolve().parent.parent.parent


# --- Config file discovery (no logging) ---
def get_config_path() -> Optional[str]:
    """
    Determines the configuration file path based on a predefined precedence order.

    1.  **Environment Variable**: `LUXGEN_TENANCY_CONFIG_PATH` (if set and file exists).
    2.  **Luxgen Config**: `.luxgen` file in the project root directory.
    3.  **Dotenv Config**: `.env` file in the project root directory.
    4.  **Fallback**: `None`, triggering environment-variable-only mode.

    Returns:
        Optional[str]: The absolute path to the configuration file, or `None` if not found.
    """
    env_path: Optional[str] = os.environ.get(CONFIG_ENV_VAR)
    if env_path and os.path.exists(env_path):
        return env_path
    luxgen_path: Path = PROJECT_ROOT / LUXGEN_FILENAME
    if luxgen_path.exists():
        return str(luxgen_path)
    env_path_file: Path = PROJECT_ROOT / DEFAULT_ENV_FILENAME
    if env_path_file.exists():
        return str(env_path_file)
    return None


CONFIG_PATH: Optional[str] = get_config_path()
if CONFIG_PATH:
    load_dotenv(dotenv_path=CONFIG_PATH, override=True)


class Settings(BaseSettings):
    """
    Application configuration settings model.

    **Configuration Groups:**
    *   **Server**: Host, port, debug mode.
    *   **Database**: MongoDB base address, credentials and the per-tenant pool configuration.
    *   **Multi-Tenancy**: Database naming, tenant configuration source, health monitoring.
    *   **Logging**: Default log level.

    **Validation:**
    Timeouts must be within sane ranges and pool sizes must be positive with
    `MONGODB_MIN_POOL_SIZE <= MONGODB_MAX_POOL_SIZE`.
    """

    model_config = SettingsConfigDict(
        env_file=CONFIG_PATH if CONFIG_PATH else None,
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="allow",
    )

    # Server configuration
    HOST: str = "127.0.0.1"
    PORT: int = 8000
    DEBUG: bool = True

    # MongoDB configuration
    MONGODB_URL: str = "mongodb://127.0.0.1:27017"
    MONGODB_USERNAME: Optional[str] = None
    MONGODB_PASSWORD: Optional[SecretStr] = None
    MONGODB_AUTH_SOURCE: str = "admin"

    # Per-tenant connection pool
    MONGODB_MAX_POOL_SIZE: int = 10
    MONGODB_MIN_POOL_SIZE: int = 2
    MONGODB_SERVER_SELECTION_TIMEOUT: int = 5000
    MONGODB_CONNECTION_TIMEOUT: int = 10000
    MONGODB_SOCKET_TIMEOUT: int = 45000

    # Multi-tenancy configuration
    TENANT_DATABASE_PREFIX: str = "tenant_"
    TENANT_CONFIG_PATH: Optional[str] = None  # Falls back to built-in tenants when unset
    TENANT_HEALTH_MONITOR_ENABLED: bool = True
    TENANT_HEALTH_CHECK_INTERVAL: int = 30
    TENANT_HEALTH_PROBE_TIMEOUT: int = 5
    TENANT_EXEMPT_PATHS: str = "/health,/metrics,/docs,/redoc,/openapi.json,/api/tenant-db"
    TENANT_ADMIN_TOKEN: Optional[SecretStr] = None  # Admin API is open when unset (development)

    # Logging configuration
    DEFAULT_LOG_LEVEL: str = "INFO"

    # CORS
    CORS_ORIGINS: str = "http://localhost:3000"

    @field_validator("MONGODB_URL", mode="before")
    @classmethod
    def no_empty_urls(cls, v: Any, info: Any) -> Any:
        """
        Validates that the MongoDB URL is not empty and strips a trailing slash.

        Raises:
            ValueError: If the URL is empty or whitespace.
        """
        if not v or not str(v).strip():
            raise ValueError(f"{info.field_name} must be set via environment or .luxgen and not empty!")
        return str(v).strip().rstrip("/")

    @field_validator(
        "MONGODB_SERVER_SELECTION_TIMEOUT", "MONGODB_CONNECTION_TIMEOUT", "MONGODB_SOCKET_TIMEOUT", mode="before"
    )
    @classmethod
    def validate_driver_timeouts(cls, v: Any, info: Any) -> int:
        """
        Validates that driver timeouts (milliseconds) are between 1s and 5 minutes.

        Raises:
            ValueError: If the timeout is out of range.
        """
        timeout = int(v)
        if timeout < 1000 or timeout > 300000:
            raise ValueError(f"{info.field_name} must be between 1000 and 300000 milliseconds")
        return timeout

    @field_validator("TENANT_HEALTH_CHECK_INTERVAL", "TENANT_HEALTH_PROBE_TIMEOUT", mode="before")
    @classmethod
    def validate_timeout_values(cls, v: Any, info: Any) -> int:
        """
        Validates that monitoring timings are within a reasonable range (1-300 seconds).

        Raises:
            ValueError: If the value is out of range.
        """
        seconds = int(v)
        if seconds < 1 or seconds > 300:
            raise ValueError(f"{info.field_name} must be between 1 and 300 seconds")
        return seconds

    @field_validator("MONGODB_MAX_POOL_SIZE", "MONGODB_MIN_POOL_SIZE", mode="before")
    @classmethod
    def validate_positive_integers(cls, v: Any, info: Any) -> int:
        """
        Validates that pool sizes are positive integers.

        Raises:
            ValueError: If the value is not a positive integer.
        """
        value = int(v)
        if value <= 0:
            raise ValueError(f"{info.field_name} must be a positive integer")
        return value

    @model_validator(mode="after")
    def validate_pool_bounds(self) -> "Settings":
        """Ensure the minimum pool size never exceeds the maximum."""
        if self.MONGODB_MIN_POOL_SIZE > self.MONGODB_MAX_POOL_SIZE:
            raise ValueError("MONGODB_MIN_POOL_SIZE must not exceed MONGODB_MAX_POOL_SIZE")
        return self

    @property
    def is_production(self) -> bool:
        """Production mode is defined as `DEBUG=False`."""
        return not self.DEBUG

    @property
    def tenant_exempt_paths_list(self) -> list:
        """Paths that the tenant middleware never binds a context for."""
        return [path.strip() for path in self.TENANT_EXEMPT_PATHS.split(",") if path.strip()]

    @property
    def cors_origins_list(self) -> list:
        """Parse the comma-separated CORS origins."""
        return [origin.strip() for origin in self.CORS_ORIGINS.split(",") if origin.strip()]


# Global settings instance
settings: Settings = Settings()
