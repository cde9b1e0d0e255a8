"""
LuxGen Tenancy.

Per-tenant MongoDB connection lifecycle management: tenant configuration, connection registry,
health monitoring and request-scoped tenant context for FastAPI applications.
"""

__version__ = "0.1.0"
