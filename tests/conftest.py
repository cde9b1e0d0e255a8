from unittest.mock import AsyncMock

import pytest

from luxgen_tenancy.config import Settings
from luxgen_tenancy.database.events import TenantEventBus
from luxgen_tenancy.database.factory import TenantConnectionFactory
from luxgen_tenancy.database.registry import TenantConnectionRegistry
from luxgen_tenancy.default_tenants import DEFAULT_TENANTS
from luxgen_tenancy.managers.tenant_manager import TenantManager
from luxgen_tenancy.services.tenant_config_service import TenantConfigResolver, parse_tenant_configs
from tests.fakes import FakeConnection


@pytest.fixture
def test_settings():
    return Settings(TENANT_HEALTH_MONITOR_ENABLED=False, TENANT_CONFIG_PATH=None)


@pytest.fixture
def opened():
    """Every FakeConnection handed out by the `factory` fixture, in order."""
    return []


@pytest.fixture
def factory(test_settings, opened):
    factory = TenantConnectionFactory(test_settings)

    def open_connection(tenant_id):
        connection = FakeConnection(tenant_id)
        opened.append(connection)
        return connection

    factory.open = AsyncMock(side_effect=open_connection)
    return factory


@pytest.fixture
def events():
    return TenantEventBus()


@pytest.fixture
def captured_events(events):
    captured = []
    events.subscribe(captured.append)
    return captured


@pytest.fixture
def registry(factory, events):
    return TenantConnectionRegistry(factory, events)


@pytest.fixture
def tenant_configs():
    configs = parse_tenant_configs(DEFAULT_TENANTS)
    configs += parse_tenant_configs(
        [
            {"id": "acme", "slug": "acme-corp", "name": "Acme Corporation", "domain": "acme.io"},
            {"id": "frozen", "slug": "frozen", "name": "Frozen Ltd", "status": "suspended"},
        ]
    )
    return configs


@pytest.fixture
def resolver(tenant_configs, registry):
    return TenantConfigResolver(tenant_configs, registry=registry)


@pytest.fixture
def manager(test_settings, tenant_configs, factory, events):
    return TenantManager(
        config=test_settings,
        resolver=TenantConfigResolver(tenant_configs),
        factory=factory,
        events=events,
    )
