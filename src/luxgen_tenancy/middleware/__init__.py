"""
# Middleware Package

- **`tenant_middleware`**: Tenant slug extraction and `TenantContextMiddleware`.
"""
