"""
# Models Package

- **`tenant_models`**: Tenant configuration, connection state and report shapes.
- **`record_models`**: Shapes of the records stored in each tenant database.
"""
