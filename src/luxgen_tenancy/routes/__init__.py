"""
# Routes Package

- **`tenant_dependencies`**: `get_tenant_manager`, `get_tenant_context`, `verify_admin_token` and the
  `TenantError` exception handler.
- **`tenant_database_routes`**: Tenant database admin API under `/api/tenant-db`.
"""
