"""
# Managers Package

- **`logging_manager`**: Prefixed loggers and structured lifecycle logging.
- **`tenant_manager`**: The `TenantManager` facade that owns the registry, health monitor,
  config resolver and context binder for one process.
"""
