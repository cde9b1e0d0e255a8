import json
from unittest.mock import patch

import pytest
from bson import ObjectId
from pymongo.errors import ServerSelectionTimeoutError

from luxgen_tenancy.database.events import TenantEventType
from luxgen_tenancy.exceptions import TenantConnectionError, TenantNotFoundError
from luxgen_tenancy.services.tenant_config_service import TenantConfigResolver, parse_tenant_configs
from tests.fakes import MB, FakeConnection


async def _seed_users(registry, tenant_id, count):
    entry = await registry.connect(tenant_id)
    users = entry.connection.get_collection("users")
    users.documents.extend({"_id": ObjectId(), "tenant_id": tenant_id} for _ in range(count))
    return entry


def test_load_built_in_tenants():
    with patch("luxgen_tenancy.services.tenant_config_service.settings") as mock_settings:
        mock_settings.TENANT_CONFIG_PATH = None
        resolver = TenantConfigResolver.load()

    assert {t.id for t in resolver.list_tenants()} == {"luxgen", "demo", "test"}
    assert resolver.require("luxgen").limits.max_users == 1000


def test_load_from_file(tmp_path):
    config_file = tmp_path / "tenants.json"
    config_file.write_text(
        json.dumps(
            [
                {
                    "id": "acme",
                    "slug": "acme-corp",
                    "name": "Acme",
                    "features": ["analytics"],
                    "limits": {"maxUsers": 5, "maxStorage": 100},
                }
            ]
        )
    )

    resolver = TenantConfigResolver.load(str(config_file))

    config = resolver.require("acme-corp")
    assert config.id == "acme"
    assert config.limits.max_users == 5
    assert config.limits.max_storage == 100
    assert config.features == frozenset({"analytics"})


def test_load_missing_file():
    with pytest.raises(FileNotFoundError):
        TenantConfigResolver.load("/nonexistent/tenants.json")


def test_mapping_form_defaults_id_and_slug():
    configs = parse_tenant_configs({"acme": {"name": "Acme"}})

    assert configs[0].id == "acme"
    assert configs[0].slug == "acme"


def test_duplicate_ids_are_rejected():
    configs = parse_tenant_configs([{"id": "a", "slug": "a", "name": "A"}, {"id": "a", "slug": "b", "name": "B"}])

    with pytest.raises(ValueError):
        TenantConfigResolver(configs)


def test_invalid_identifier_is_rejected():
    with pytest.raises(ValueError):
        parse_tenant_configs([{"id": "bad id", "slug": "bad", "name": "Bad"}])


def test_resolve_by_id_and_slug(resolver):
    assert resolver.resolve("acme").id == "acme"
    assert resolver.resolve("acme-corp").id == "acme"
    assert resolver.resolve("unknown") is None
    assert resolver.resolve("") is None
    with pytest.raises(TenantNotFoundError) as exc_info:
        resolver.require("unknown")
    assert exc_info.value.status_code == 404


@pytest.mark.parametrize(
    "host, expected",
    [
        ("demo.luxgen.com", "demo"),
        ("team.demo.luxgen.com", "demo"),
        ("luxgen.com:443", "luxgen"),
        ("www.luxgen.com", "luxgen"),
        ("ACME.IO", "acme"),
        ("example.org", None),
        ("", None),
    ],
)
def test_resolve_by_domain(resolver, host, expected):
    config = resolver.resolve_by_domain(host)

    assert (config.id if config else None) == expected


def test_list_active_tenants(resolver):
    all_ids = {t.id for t in resolver.list_tenants()}
    active_ids = {t.id for t in resolver.list_tenants(active_only=True)}

    assert all_ids - active_ids == {"frozen"}


def test_feature_and_workflow_flags(resolver):
    assert resolver.has_feature("luxgen", "analytics") is True
    assert resolver.has_feature("acme", "analytics") is False
    assert resolver.has_feature("unknown", "analytics") is False
    assert resolver.has_workflow("unknown", "onboarding") is False


def test_validate_access(resolver):
    assert resolver.validate_access("luxgen").valid is True
    assert resolver.validate_access("unknown").reason == "Tenant not found"

    suspended = resolver.validate_access("frozen")
    assert suspended.valid is False
    assert "suspended" in suspended.reason

    missing_feature = resolver.validate_access("acme", required_feature="analytics")
    assert missing_feature.valid is False
    assert "analytics" in missing_feature.reason


@pytest.mark.asyncio
async def test_limits_at_max_users_is_not_within(resolver, registry, captured_events):
    max_users = resolver.require("test").limits.max_users
    await _seed_users(registry, "test", max_users)

    result = await resolver.check_limits("test")

    assert result.within_limits is False
    assert result.users.current == max_users
    assert captured_events[-1].type == TenantEventType.LIMIT_EXCEEDED


@pytest.mark.asyncio
async def test_limits_below_max_users_is_within(resolver, registry):
    max_users = resolver.require("test").limits.max_users
    await _seed_users(registry, "test", max_users - 1)

    result = await resolver.check_limits("test")

    assert result.within_limits is True
    assert result.storage.current == 2.0
    assert result.storage.max == resolver.require("test").limits.max_storage


@pytest.mark.asyncio
async def test_limits_storage_in_megabytes(resolver, registry, factory):
    max_storage = resolver.require("test").limits.max_storage
    factory.open.side_effect = lambda tenant_id: FakeConnection(tenant_id, data_size=max_storage * MB)

    result = await resolver.check_limits("test")

    assert result.storage.current == max_storage
    assert result.within_limits is False


@pytest.mark.asyncio
async def test_limits_of_unknown_tenant(resolver):
    with pytest.raises(TenantNotFoundError):
        await resolver.check_limits("unknown")


@pytest.mark.asyncio
async def test_limits_require_registry(tenant_configs):
    with pytest.raises(RuntimeError):
        await TenantConfigResolver(tenant_configs).check_limits("luxgen")


@pytest.mark.asyncio
async def test_statistics_reports_failures_per_tenant(resolver, factory):
    def open_connection(tenant_id):
        if tenant_id == "demo":
            raise TenantConnectionError(tenant_id, ServerSelectionTimeoutError("down"))
        return FakeConnection(tenant_id)

    factory.open.side_effect = open_connection

    items = {item.tenant_id: item for item in await resolver.statistics()}

    assert set(items) == {"luxgen", "demo", "test", "acme", "frozen"}
    assert items["demo"].error is not None
    assert items["demo"].limits is None
    assert items["luxgen"].error is None
    assert items["luxgen"].database_stats.database_name == "tenant_luxgen"
    assert items["luxgen"].limits.within_limits is True
