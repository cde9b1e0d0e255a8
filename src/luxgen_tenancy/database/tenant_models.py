"""
# Tenant Model Builder

Derives the data-access handles (`ModelSet`) for one tenant connection. Each handle pairs a
record shape from `models.record_models` with a `TenantAwareCollection`, so every document it
reads or writes is scoped to the tenant the connection belongs to.

`build_models` is pure: it only binds collections and never talks to the server. Index creation
is a separate, explicit step (`ModelSet.ensure_indexes`) run by the registry when a connection
is first established. Neither step swallows failures.

Record reads and writes report driver failures as tenant errors: a unique-index collision is a
`RecordConflictError` (409), any other driver or socket error an `OperationFailedError` naming
the tenant and the failed operation.

Indexes per collection (all ascending):

- `users`: `tenant_id`; `(tenant_id, email)` unique; `(tenant_id, role)`
- `polls`: `tenant_id`; `(tenant_id, status)`; `(tenant_id, created_by)`
- `activities`: `tenant_id`; `(tenant_id, user_id)`; `(tenant_id, action)`
- `jobs`: `tenant_id`; `(tenant_id, status)`; `(tenant_id, created_by)`
"""

import time
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Iterator, List, Optional, Tuple, Type

from bson import ObjectId
from pydantic import ValidationError
from pymongo.errors import DuplicateKeyError, PyMongoError

from luxgen_tenancy.database.factory import TenantConnection
from luxgen_tenancy.database.tenant_collection import TenantAwareCollection
from luxgen_tenancy.exceptions import OperationFailedError, RecordConflictError, RecordValidationError
from luxgen_tenancy.managers.logging_manager import get_logger
from luxgen_tenancy.models.record_models import Activity, Job, Poll, TenantRecord, User

logger = get_logger(prefix="[TENANT_MODELS]")
perf_logger = get_logger(prefix="[TENANT_PERFORMANCE]")

IndexSpec = Tuple[List[Tuple[str, int]], Dict[str, Any]]

DEFAULT_PAGE_SIZE = 100

MODEL_DEFINITIONS: Dict[str, Tuple[str, Type[TenantRecord], List[IndexSpec]]] = {
    "user": (
        "users",
        User,
        [
            ([("tenant_id", 1)], {}),
            ([("tenant_id", 1), ("email", 1)], {"unique": True}),
            ([("tenant_id", 1), ("role", 1)], {}),
        ],
    ),
    "poll": (
        "polls",
        Poll,
        [
            ([("tenant_id", 1)], {}),
            ([("tenant_id", 1), ("status", 1)], {}),
            ([("tenant_id", 1), ("created_by", 1)], {}),
        ],
    ),
    "activity": (
        "activities",
        Activity,
        [
            ([("tenant_id", 1)], {}),
            ([("tenant_id", 1), ("user_id", 1)], {}),
            ([("tenant_id", 1), ("action", 1)], {}),
        ],
    ),
    "job": (
        "jobs",
        Job,
        [
            ([("tenant_id", 1)], {}),
            ([("tenant_id", 1), ("status", 1)], {}),
            ([("tenant_id", 1), ("created_by", 1)], {}),
        ],
    ),
}


def serialize_document(document: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    """Convert ObjectIds and datetimes to strings so a document can be returned as JSON."""
    if document is None:
        return None
    serialized = {}
    for key, value in document.items():
        if isinstance(value, ObjectId):
            serialized[key] = str(value)
        elif isinstance(value, datetime):
            serialized[key] = value.isoformat()
        elif isinstance(value, dict):
            serialized[key] = serialize_document(value)
        elif isinstance(value, list):
            serialized[key] = [serialize_document(v) if isinstance(v, dict) else v for v in value]
        else:
            serialized[key] = value
    return serialized


def _to_object_id(record_id: Any) -> Optional[ObjectId]:
    if isinstance(record_id, ObjectId):
        return record_id
    if isinstance(record_id, str) and ObjectId.is_valid(record_id):
        return ObjectId(record_id)
    return None


class TenantModel:
    """
    Data-access handle for one record type of one tenant.

    Attributes:
        name (str): Model key (`user`, `poll`, `activity`, `job`).
        record_class (Type[TenantRecord]): Pydantic shape documents are validated against.
        collection (TenantAwareCollection): Tenant-scoped collection.
        indexes (List[IndexSpec]): Index definitions applied by `ensure_indexes`.
    """

    def __init__(
        self,
        name: str,
        record_class: Type[TenantRecord],
        collection: TenantAwareCollection,
        indexes: List[IndexSpec],
    ):
        self.name = name
        self.record_class = record_class
        self.collection = collection
        self.indexes = indexes

    @property
    def tenant_id(self) -> str:
        return self.collection.tenant_id

    def validate(self, data: Dict[str, Any]) -> Dict[str, Any]:
        """
        Validate a payload against the record shape and return the document to store.

        Raises:
            RecordValidationError: If the payload does not match the shape or names another tenant.
        """
        payload = {k: v for k, v in data.items() if k != "_id"}
        owner = payload.setdefault("tenant_id", self.tenant_id)
        if owner != self.tenant_id:
            raise RecordValidationError(
                self.tenant_id,
                self.record_class.__name__,
                [{"loc": ["tenant_id"], "msg": "tenant_id does not match the connection's tenant"}],
            )
        try:
            record = self.record_class.model_validate(payload)
        except ValidationError as e:
            errors = e.errors(include_url=False, include_context=False, include_input=False)
            raise RecordValidationError(self.tenant_id, self.record_class.__name__, errors) from e
        return record.model_dump()

    @contextmanager
    def _driver_errors(self, operation: str) -> Iterator[None]:
        try:
            yield
        except DuplicateKeyError as e:
            key_pattern = (e.details or {}).get("keyPattern") or {}
            fields = [field for field in key_pattern if field != "tenant_id"]
            raise RecordConflictError(self.tenant_id, self.record_class.__name__, fields) from e
        except (PyMongoError, OSError) as e:
            logger.error("%s %s failed for tenant %s: %s", operation, self.name, self.tenant_id, type(e).__name__)
            raise OperationFailedError(self.tenant_id, f"{operation}_{self.name}", cause=e) from e

    async def create(self, data: Dict[str, Any]) -> Dict[str, Any]:
        document = self.validate(data)
        with self._driver_errors("create"):
            result = await self.collection.insert_one(document)
        document["_id"] = result.inserted_id
        logger.debug("Created %s %s for tenant %s", self.name, result.inserted_id, self.tenant_id)
        return document

    async def find(
        self,
        filter: Optional[Dict[str, Any]] = None,
        limit: int = DEFAULT_PAGE_SIZE,
        skip: int = 0,
        sort: Optional[List[Tuple[str, int]]] = None,
    ) -> List[Dict[str, Any]]:
        cursor = self.collection.find(filter)
        if sort:
            cursor = cursor.sort(sort)
        cursor = cursor.skip(skip).limit(limit)
        with self._driver_errors("find"):
            return await cursor.to_list(length=limit)

    async def find_one(self, filter: Optional[Dict[str, Any]] = None) -> Optional[Dict[str, Any]]:
        with self._driver_errors("find"):
            return await self.collection.find_one(filter)

    async def find_by_id(self, record_id: Any) -> Optional[Dict[str, Any]]:
        """Return the record with `_id == record_id`, or `None` if absent or `record_id` is not an ObjectId."""
        object_id = _to_object_id(record_id)
        if object_id is None:
            return None
        with self._driver_errors("find"):
            return await self.collection.find_one({"_id": object_id})

    async def update_by_id(self, record_id: Any, changes: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        """
        Merge `changes` into an existing record, re-validate the result and store it.

        Returns:
            Optional[Dict[str, Any]]: The updated document, or `None` if no such record exists.

        Raises:
            RecordConflictError: If the change collides with a unique index (e.g. an email in use).
        """
        existing = await self.find_by_id(record_id)
        if existing is None:
            return None
        merged = {k: v for k, v in existing.items() if k != "_id"}
        merged.update({k: v for k, v in changes.items() if k not in ("_id", "created_at")})
        merged["updated_at"] = datetime.now(timezone.utc)
        document = self.validate(merged)
        with self._driver_errors("update"):
            await self.collection.update_one({"_id": existing["_id"]}, {"$set": document})
        document["_id"] = existing["_id"]
        return document

    async def delete_by_id(self, record_id: Any) -> bool:
        object_id = _to_object_id(record_id)
        if object_id is None:
            return False
        with self._driver_errors("delete"):
            result = await self.collection.delete_one({"_id": object_id})
        return result.deleted_count > 0

    async def count(self, filter: Optional[Dict[str, Any]] = None) -> int:
        with self._driver_errors("count"):
            return await self.collection.count_documents(filter)

    async def ensure_indexes(self) -> None:
        for keys, options in self.indexes:
            await self.collection.create_index(keys, **options)


@dataclass
class ModelSet:
    """The four model handles bound to one tenant connection."""

    tenant_id: str
    user: TenantModel
    poll: TenantModel
    activity: TenantModel
    job: TenantModel

    def get(self, name: str) -> TenantModel:
        if name not in MODEL_DEFINITIONS:
            raise KeyError(f"Unknown model: {name}")
        return getattr(self, name)

    def all(self) -> List[TenantModel]:
        return [self.user, self.poll, self.activity, self.job]

    async def ensure_indexes(self) -> None:
        """Create every index of every model. Failures propagate to the caller."""
        start_time = time.time()
        for model in self.all():
            await model.ensure_indexes()
        perf_logger.info("Indexes for tenant %s ensured in %.3fs", self.tenant_id, time.time() - start_time)


def build_models(connection: TenantConnection, tenant_id: str) -> ModelSet:
    """
    Bind the model handles of `tenant_id` to `connection`. No I/O is performed.

    Raises:
        ValueError: If the connection belongs to another tenant.
    """
    if connection.tenant_id != tenant_id:
        raise ValueError(f"Connection for tenant {connection.tenant_id!r} cannot serve tenant {tenant_id!r}")
    handles = {}
    for name, (collection_name, record_class, indexes) in MODEL_DEFINITIONS.items():
        collection = TenantAwareCollection(connection.get_collection(collection_name), tenant_id)
        handles[name] = TenantModel(name, record_class, collection, indexes)
    logger.debug("Built %d models for tenant %s", len(handles), tenant_id)
    return ModelSet(tenant_id=tenant_id, **handles)
