"""
# Database Package

The tenant persistence layer, built on **Motor** (async MongoDB driver). Every tenant gets its own
logical database (`tenant_<id>`) and its own client pool.

## Components

- **`factory`**: `TenantConnectionFactory` opens and verifies one connection per tenant.
- **`tenant_collection`**: `TenantAwareCollection` scopes reads and writes to one tenant.
- **`tenant_models`**: `build_models` derives the User/Poll/Activity/Job handles of a connection.
- **`registry`**: `TenantConnectionRegistry` caches connections and owns their lifecycle.
- **`health`**: `TenantHealthMonitor` probes cached connections on demand and in the background.
- **`events`**: `TenantEventBus` for CONNECTED / DISCONNECTED / DROPPED / ERROR / HEALTH_CHECK events.

There is no module-level registry instance: the application builds one at startup (see
`managers.tenant_manager.TenantManager`) and injects it where it is needed.
"""
