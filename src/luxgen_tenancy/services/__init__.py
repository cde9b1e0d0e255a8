"""
# Services Package

- **`tenant_config_service`**: `TenantConfigResolver`, static tenant configuration and limit checks.
- **`tenant_context_service`**: `TenantContextBinder`, builds the request-scoped `TenantContext`.
- **`tenant_operations`**: Typed operations executed against a bound tenant context.
"""
