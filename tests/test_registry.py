import asyncio
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from pymongo.errors import OperationFailure, ServerSelectionTimeoutError

from luxgen_tenancy.database.events import TenantEventType
from luxgen_tenancy.exceptions import OperationFailedError, TenantConnectionError
from luxgen_tenancy.models.tenant_models import ConnectionState
from tests.fakes import MB, FakeConnection


def _event_types(captured, tenant_id=None):
    return [e.type for e in captured if tenant_id is None or e.tenant_id == tenant_id]


@pytest.mark.asyncio
async def test_connect_creates_entry_with_models_and_indexes(registry, factory, captured_events):
    entry = await registry.connect("luxgen")

    assert entry.state == ConnectionState.CONNECTED
    assert entry.database_name == "tenant_luxgen"
    assert entry.models.user.tenant_id == "luxgen"
    assert entry.connection.collections["users"].indexes
    assert "luxgen" in registry
    assert len(registry) == 1
    factory.open.assert_awaited_once_with("luxgen")
    assert _event_types(captured_events) == [TenantEventType.CONNECTED]


@pytest.mark.asyncio
async def test_connect_returns_cached_entry(registry, factory):
    first = await registry.connect("luxgen")
    second = await registry.connect("luxgen")

    assert first is second
    assert factory.open.await_count == 1


@pytest.mark.asyncio
async def test_concurrent_first_access_opens_one_connection(registry, factory):
    async def slow_open(tenant_id):
        await asyncio.sleep(0.05)
        return FakeConnection(tenant_id)

    factory.open.side_effect = slow_open

    entries = await asyncio.gather(*(registry.connect("demo") for _ in range(10)))

    assert factory.open.await_count == 1
    assert all(entry is entries[0] for entry in entries)
    assert registry.tenant_ids() == ["demo"]


@pytest.mark.asyncio
async def test_cancelled_caller_does_not_cancel_creation(registry, factory):
    async def slow_open(tenant_id):
        await asyncio.sleep(0.05)
        return FakeConnection(tenant_id)

    factory.open.side_effect = slow_open

    first = asyncio.ensure_future(registry.connect("demo"))
    second = asyncio.ensure_future(registry.connect("demo"))
    await asyncio.sleep(0.01)
    first.cancel()

    entry = await second

    assert first.cancelled()
    assert entry.state == ConnectionState.CONNECTED
    assert registry.get("demo") is entry


@pytest.mark.asyncio
async def test_failed_first_connect_caches_nothing(registry, factory, captured_events):
    error = TenantConnectionError("demo", ServerSelectionTimeoutError("No servers found"))
    factory.open.side_effect = [error, FakeConnection("demo")]

    with pytest.raises(TenantConnectionError) as exc_info:
        await registry.connect("demo")

    assert exc_info.value.retryable is True
    assert "demo" not in registry
    assert _event_types(captured_events) == [TenantEventType.ERROR]

    entry = await registry.connect("demo")
    assert entry.state == ConnectionState.CONNECTED


@pytest.mark.asyncio
async def test_connect_rejects_empty_tenant_id(registry, factory):
    with pytest.raises(ValueError):
        await registry.connect("")
    factory.open.assert_not_awaited()


@pytest.mark.asyncio
async def test_index_failure_closes_connection(registry, factory, opened):
    models = MagicMock()
    models.ensure_indexes = AsyncMock(side_effect=OperationFailure("not authorized", code=13))

    with patch("luxgen_tenancy.database.registry.build_models", return_value=models):
        with pytest.raises(TenantConnectionError) as exc_info:
            await registry.connect("luxgen")

    assert exc_info.value.operation == "initialize"
    assert exc_info.value.retryable is False
    assert opened[0].is_closed
    assert "luxgen" not in registry


@pytest.mark.asyncio
async def test_stale_entry_is_reconnected_once(registry, factory, opened, captured_events):
    stale = await registry.connect("luxgen")
    registry.mark_state("luxgen", ConnectionState.DISCONNECTED)

    repaired = await registry.connect("luxgen")

    assert repaired is not stale
    assert repaired.state == ConnectionState.CONNECTED
    assert opened[0].is_closed
    assert repaired.connection is opened[1]
    assert factory.open.await_count == 2
    assert captured_events[-1].data["reconnect"] is True


@pytest.mark.asyncio
async def test_failed_reconnect_leaves_entry_in_error(registry, factory):
    stale = await registry.connect("luxgen")
    registry.mark_state("luxgen", ConnectionState.DISCONNECTED)
    factory.open.side_effect = TenantConnectionError("luxgen", ServerSelectionTimeoutError("down"))

    with pytest.raises(TenantConnectionError):
        await registry.connect("luxgen")

    assert registry.get("luxgen") is stale
    assert stale.state == ConnectionState.ERROR


@pytest.mark.asyncio
async def test_close_is_idempotent(registry, opened, captured_events):
    await registry.connect("luxgen")

    assert await registry.close("luxgen") is True
    assert await registry.close("luxgen") is False

    assert opened[0].close_calls == 1
    assert "luxgen" not in registry
    assert _event_types(captured_events) == [TenantEventType.CONNECTED, TenantEventType.DISCONNECTED]


@pytest.mark.asyncio
async def test_close_failure_removes_entry_and_raises(registry, opened):
    await registry.connect("luxgen")
    opened[0].close = MagicMock(side_effect=OSError("socket closed"))

    with pytest.raises(OperationFailedError):
        await registry.close("luxgen")

    assert "luxgen" not in registry


@pytest.mark.asyncio
async def test_close_all_attempts_every_tenant(registry, opened):
    await registry.connect("luxgen")
    await registry.connect("demo")
    await registry.connect("test")
    opened[1].close = MagicMock(side_effect=OSError("socket closed"))

    result = await registry.close_all()

    assert result.closed == ["luxgen", "test"]
    assert list(result.failed) == ["demo"]
    assert result.success is False
    assert len(registry) == 0


@pytest.mark.asyncio
async def test_shutdown_closes_everything(registry):
    await registry.init()
    await registry.connect("luxgen")

    result = await registry.shutdown()

    assert result.success
    assert result.closed == ["luxgen"]
    assert registry.is_initialized is False


@pytest.mark.asyncio
async def test_stats(registry):
    await registry.connect("luxgen")

    stats = await registry.stats("luxgen")

    assert stats.database_name == "tenant_luxgen"
    assert stats.collections == 4
    assert stats.data_size == 2 * MB
    assert stats.indexes == 13
    assert stats.object_count == 10
    assert stats.connection_state == ConnectionState.CONNECTED


@pytest.mark.asyncio
async def test_stats_without_connection_fails(registry):
    with pytest.raises(OperationFailedError):
        await registry.stats("luxgen")


@pytest.mark.asyncio
async def test_drop_then_stats_fails(registry, opened, captured_events):
    await registry.connect("luxgen")

    await registry.drop("luxgen")

    opened[0].drop_database.assert_awaited_once()
    assert opened[0].is_closed
    assert "luxgen" not in registry
    assert _event_types(captured_events)[-1] == TenantEventType.DROPPED
    with pytest.raises(OperationFailedError):
        await registry.stats("luxgen")


@pytest.mark.asyncio
async def test_drop_without_cached_connection_uses_transient(registry, opened):
    await registry.drop("demo")

    assert len(opened) == 1
    opened[0].drop_database.assert_awaited_once()
    assert opened[0].is_closed
    assert "demo" not in registry


@pytest.mark.asyncio
async def test_drop_failure(registry, opened):
    await registry.connect("luxgen")
    opened[0].drop_database.side_effect = OperationFailure("not authorized", code=13)

    with pytest.raises(OperationFailedError):
        await registry.drop("luxgen")

    assert "luxgen" in registry


def test_mark_state_unknown_tenant(registry):
    assert registry.mark_state("ghost", ConnectionState.DISCONNECTED) is False
    assert registry.get("ghost") is None


@pytest.mark.asyncio
async def test_connect_after_close_opens_a_new_connection(registry, factory, opened):
    first = await registry.connect("luxgen")
    await registry.close("luxgen")

    second = await registry.connect("luxgen")

    assert second is not first
    assert second.connection is opened[1]
    assert second.connection is not first.connection
    assert first.connection.is_closed
    assert not second.connection.is_closed
    assert second.state == ConnectionState.CONNECTED
    assert factory.open.await_count == 2


@pytest.mark.asyncio
async def test_models_of_different_tenants_are_isolated(registry):
    luxgen = await registry.connect("luxgen")
    other = await registry.connect("test")

    await luxgen.models.user.create({"email": "a@x.com", "first_name": "Ada", "last_name": "Lovelace"})

    assert await other.models.user.find({"email": "a@x.com"}) == []
    assert await other.models.user.count() == 0
    assert await luxgen.models.user.count({"email": "a@x.com"}) == 1
    assert luxgen.connection is not other.connection
