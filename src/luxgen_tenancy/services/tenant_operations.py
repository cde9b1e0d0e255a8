"""
# Tenant Operations

The closed set of operations that can be run against a bound tenant context. Each variant is a
pydantic model tagged by `kind`; a request body is parsed into exactly one variant and dispatched
through `OPERATION_HANDLERS`.

Record operations (`model` is one of `user`, `poll`, `activity`, `job`):

- `list_records`, `get_record`, `create_record`, `update_record`, `delete_record`

Tenant administration:

- `get_stats`, `check_health`, `check_limits`, `close_connection`, `drop_database`

```python
operation = parse_operation({"kind": "create_record", "model": "poll", "data": {...}})
result = await execute(operation, context, manager)
```

The handler table is checked against the union when this module is imported, so adding a variant
without a handler fails at startup instead of at request time.
"""

from typing import TYPE_CHECKING, Annotated, Any, Awaitable, Callable, Dict, Literal, Union, get_args

from pydantic import BaseModel, Field, TypeAdapter
from pymongo.errors import PyMongoError

from luxgen_tenancy.database.tenant_models import serialize_document
from luxgen_tenancy.exceptions import OperationFailedError, RecordNotFoundError, RecordValidationError
from luxgen_tenancy.managers.logging_manager import get_logger
from luxgen_tenancy.services.tenant_context_service import TenantContext

if TYPE_CHECKING:
    from luxgen_tenancy.managers.tenant_manager import TenantManager

logger = get_logger(prefix="[TENANT_OPERATIONS]")

ModelName = Literal["user", "poll", "activity", "job"]


class ListRecords(BaseModel):
    kind: Literal["list_records"] = "list_records"
    model: ModelName
    filter: Dict[str, Any] = Field(default_factory=dict, description="Additional query filter")
    limit: int = Field(100, ge=1, le=1000)
    skip: int = Field(0, ge=0)


class GetRecord(BaseModel):
    kind: Literal["get_record"] = "get_record"
    model: ModelName
    record_id: str


class CreateRecord(BaseModel):
    kind: Literal["create_record"] = "create_record"
    model: ModelName
    data: Dict[str, Any]


class UpdateRecord(BaseModel):
    kind: Literal["update_record"] = "update_record"
    model: ModelName
    record_id: str
    changes: Dict[str, Any]


class DeleteRecord(BaseModel):
    kind: Literal["delete_record"] = "delete_record"
    model: ModelName
    record_id: str


class GetStats(BaseModel):
    kind: Literal["get_stats"] = "get_stats"


class CheckHealth(BaseModel):
    kind: Literal["check_health"] = "check_health"


class CheckLimits(BaseModel):
    kind: Literal["check_limits"] = "check_limits"


class CloseConnection(BaseModel):
    kind: Literal["close_connection"] = "close_connection"


class DropDatabase(BaseModel):
    kind: Literal["drop_database"] = "drop_database"


TenantOperation = Annotated[
    Union[
        ListRecords,
        GetRecord,
        CreateRecord,
        UpdateRecord,
        DeleteRecord,
        GetStats,
        CheckHealth,
        CheckLimits,
        CloseConnection,
        DropDatabase,
    ],
    Field(discriminator="kind"),
]

_operation_adapter = TypeAdapter(TenantOperation)


class OperationResult(BaseModel):
    kind: str
    tenant_id: str
    result: Any = None


def parse_operation(data: Dict[str, Any]) -> BaseModel:
    """Parse a raw payload into its operation variant. Raises `pydantic.ValidationError`."""
    return _operation_adapter.validate_python(data)


async def _list_records(operation: ListRecords, context: TenantContext, manager: "TenantManager") -> Any:
    model = context.models.get(operation.model)
    try:
        records = await model.find(operation.filter, limit=operation.limit, skip=operation.skip)
    except ValueError as e:
        raise RecordValidationError(context.tenant_id, operation.model, [{"loc": ["filter"], "msg": str(e)}]) from e
    return [serialize_document(record) for record in records]


async def _get_record(operation: GetRecord, context: TenantContext, manager: "TenantManager") -> Any:
    record = await context.models.get(operation.model).find_by_id(operation.record_id)
    if record is None:
        raise RecordNotFoundError(context.tenant_id, operation.model, operation.record_id)
    return serialize_document(record)


async def _create_record(operation: CreateRecord, context: TenantContext, manager: "TenantManager") -> Any:
    record = await context.models.get(operation.model).create(operation.data)
    return serialize_document(record)


async def _update_record(operation: UpdateRecord, context: TenantContext, manager: "TenantManager") -> Any:
    record = await context.models.get(operation.model).update_by_id(operation.record_id, operation.changes)
    if record is None:
        raise RecordNotFoundError(context.tenant_id, operation.model, operation.record_id)
    return serialize_document(record)


async def _delete_record(operation: DeleteRecord, context: TenantContext, manager: "TenantManager") -> Any:
    deleted = await context.models.get(operation.model).delete_by_id(operation.record_id)
    if not deleted:
        raise RecordNotFoundError(context.tenant_id, operation.model, operation.record_id)
    return {"deleted": True, "record_id": operation.record_id}


async def _get_stats(operation: GetStats, context: TenantContext, manager: "TenantManager") -> Any:
    stats = await manager.stats(context.tenant_id)
    return stats.model_dump(mode="json")


async def _check_health(operation: CheckHealth, context: TenantContext, manager: "TenantManager") -> Any:
    health = await manager.health_check(context.tenant_id)
    return health.model_dump(mode="json")


async def _check_limits(operation: CheckLimits, context: TenantContext, manager: "TenantManager") -> Any:
    limits = await manager.check_limits(context.tenant_id)
    return limits.model_dump(mode="json")


async def _close_connection(operation: CloseConnection, context: TenantContext, manager: "TenantManager") -> Any:
    closed = await manager.close(context.tenant_id)
    return {"closed": closed}


async def _drop_database(operation: DropDatabase, context: TenantContext, manager: "TenantManager") -> Any:
    await manager.drop(context.tenant_id)
    return {"dropped": True, "database_name": context.database_name}


OperationHandler = Callable[[Any, TenantContext, "TenantManager"], Awaitable[Any]]

OPERATION_HANDLERS: Dict[type, OperationHandler] = {
    ListRecords: _list_records,
    GetRecord: _get_record,
    CreateRecord: _create_record,
    UpdateRecord: _update_record,
    DeleteRecord: _delete_record,
    GetStats: _get_stats,
    CheckHealth: _check_health,
    CheckLimits: _check_limits,
    CloseConnection: _close_connection,
    DropDatabase: _drop_database,
}

OPERATION_TYPES = get_args(get_args(TenantOperation)[0])

_unhandled = [variant.__name__ for variant in OPERATION_TYPES if variant not in OPERATION_HANDLERS]
if _unhandled:
    raise RuntimeError(f"Tenant operations without a handler: {', '.join(_unhandled)}")


async def execute(operation: BaseModel, context: TenantContext, manager: "TenantManager") -> OperationResult:
    """
    Run one operation against a bound tenant context.

    Raises:
        TenantError: Any failure. Driver errors that escape a handler are reported as
            `OperationFailedError` for the context's tenant.
    """
    handler = OPERATION_HANDLERS.get(type(operation))
    if handler is None:
        raise TypeError(f"Not a tenant operation: {type(operation).__name__}")
    logger.info("Executing %s for tenant %s", operation.kind, context.tenant_id)
    try:
        result = await handler(operation, context, manager)
    except (PyMongoError, OSError) as e:
        logger.error("Operation %s failed for tenant %s: %s", operation.kind, context.tenant_id, type(e).__name__)
        raise OperationFailedError(context.tenant_id, operation.kind, cause=e) from e
    return OperationResult(kind=operation.kind, tenant_id=context.tenant_id, result=result)
