"""
# Tenant-Scoped Collection Wrapper

Every tenant already has its own database, but each stored record also carries a mandatory
`tenant_id` field. `TenantAwareCollection` wraps a Motor collection so that this field is
enforced on every read and write:

- **Reads** (`find`, `find_one`, `count_documents`, `aggregate`): `{"tenant_id": ...}` is added
  to the filter, or prepended as a `$match` stage.
- **Writes** (`insert_one`, `insert_many`): `tenant_id` is set on each document.
- **Updates / deletes**: the filter is scoped, and updates may not rewrite `tenant_id`.

A filter or document that names a *different* tenant is rejected with `ValueError` instead of
being silently rewritten.

```python
users = TenantAwareCollection(connection.get_collection("users"), "luxgen")
await users.insert_one({"email": "a@luxgen.com"})
# stored: {"email": "a@luxgen.com", "tenant_id": "luxgen"}
```

Module Attributes:
    logger (Logger): `[Tenant Collection]` logger.
"""

from typing import Any, Dict, List, Optional

from motor.motor_asyncio import AsyncIOMotorCollection, AsyncIOMotorCursor

from luxgen_tenancy.managers.logging_manager import get_logger

logger = get_logger(prefix="[Tenant Collection]")

TENANT_FIELD = "tenant_id"


class TenantAwareCollection:
    """
    A wrapper around `AsyncIOMotorCollection` that scopes every operation to one tenant.

    Attributes:
        _collection (AsyncIOMotorCollection): The underlying Motor collection.
        _tenant_id (str): Tenant this wrapper is bound to.
    """

    def __init__(self, collection: AsyncIOMotorCollection, tenant_id: str):
        if not tenant_id:
            raise ValueError("TenantAwareCollection requires a tenant_id")
        self._collection = collection
        self._tenant_id = tenant_id
        logger.debug("Created tenant-aware collection %s for tenant: %s", collection.name, tenant_id)

    def _check_tenant_value(self, value: Any) -> None:
        if value is not None and value != self._tenant_id:
            raise ValueError(f"Cross-tenant access rejected: {value!r} is not {self._tenant_id!r}")

    def _add_tenant_filter(self, filter_dict: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """Return a copy of `filter_dict` constrained to this tenant."""
        scoped = dict(filter_dict or {})
        self._check_tenant_value(scoped.get(TENANT_FIELD))
        scoped[TENANT_FIELD] = self._tenant_id
        return scoped

    def _add_tenant_to_document(self, document: Dict[str, Any]) -> Dict[str, Any]:
        """Set `tenant_id` on the document in place (so `_id` assigned by the driver is visible to callers)."""
        self._check_tenant_value(document.get(TENANT_FIELD))
        document[TENANT_FIELD] = self._tenant_id
        return document

    def _guard_update(self, update: Dict[str, Any]) -> Dict[str, Any]:
        for operator in ("$set", "$unset", "$rename", "$setOnInsert"):
            fields = update.get(operator)
            if isinstance(fields, dict) and TENANT_FIELD in fields:
                if operator in ("$set", "$setOnInsert"):
                    self._check_tenant_value(fields[TENANT_FIELD])
                else:
                    raise ValueError(f"Updates may not {operator} the {TENANT_FIELD} field")
        return update

    async def find_one(self, filter: Optional[Dict[str, Any]] = None, *args, **kwargs) -> Optional[Dict[str, Any]]:
        filter = self._add_tenant_filter(filter)
        result = await self._collection.find_one(filter, *args, **kwargs)
        logger.debug("find_one for tenant %s: %s", self._tenant_id, "found" if result else "not found")
        return result

    def find(self, filter: Optional[Dict[str, Any]] = None, *args, **kwargs) -> AsyncIOMotorCursor:
        filter = self._add_tenant_filter(filter)
        cursor = self._collection.find(filter, *args, **kwargs)
        logger.debug("find for tenant %s with filter: %s", self._tenant_id, filter)
        return cursor

    async def insert_one(self, document: Dict[str, Any], *args, **kwargs):
        document = self._add_tenant_to_document(document)
        result = await self._collection.insert_one(document, *args, **kwargs)
        logger.debug("insert_one for tenant %s: inserted_id=%s", self._tenant_id, result.inserted_id)
        return result

    async def insert_many(self, documents: List[Dict[str, Any]], *args, **kwargs):
        documents = [self._add_tenant_to_document(doc) for doc in documents]
        result = await self._collection.insert_many(documents, *args, **kwargs)
        logger.debug("insert_many for tenant %s: inserted %d documents", self._tenant_id, len(result.inserted_ids))
        return result

    async def update_one(self, filter: Dict[str, Any], update: Dict[str, Any], *args, **kwargs):
        """
        Update a single document of this tenant.

        Raises:
            ValueError: If the update tries to move the document to another tenant or unset `tenant_id`.
        """
        filter = self._add_tenant_filter(filter)
        update = self._guard_update(update)
        result = await self._collection.update_one(filter, update, *args, **kwargs)
        logger.debug(
            "update_one for tenant %s: matched=%d, modified=%d",
            self._tenant_id,
            result.matched_count,
            result.modified_count,
        )
        return result

    async def find_one_and_update(
        self, filter: Dict[str, Any], update: Dict[str, Any], *args, **kwargs
    ) -> Optional[Dict[str, Any]]:
        filter = self._add_tenant_filter(filter)
        update = self._guard_update(update)
        result = await self._collection.find_one_and_update(filter, update, *args, **kwargs)
        logger.debug("find_one_and_update for tenant %s: %s", self._tenant_id, "found" if result else "not found")
        return result

    async def delete_one(self, filter: Dict[str, Any], *args, **kwargs):
        filter = self._add_tenant_filter(filter)
        result = await self._collection.delete_one(filter, *args, **kwargs)
        logger.debug("delete_one for tenant %s: deleted=%d", self._tenant_id, result.deleted_count)
        return result

    async def delete_many(self, filter: Dict[str, Any], *args, **kwargs):
        filter = self._add_tenant_filter(filter)
        result = await self._collection.delete_many(filter, *args, **kwargs)
        logger.debug("delete_many for tenant %s: deleted=%d", self._tenant_id, result.deleted_count)
        return result

    async def count_documents(self, filter: Optional[Dict[str, Any]] = None, *args, **kwargs) -> int:
        filter = self._add_tenant_filter(filter)
        count = await self._collection.count_documents(filter, *args, **kwargs)
        logger.debug("count_documents for tenant %s: %d", self._tenant_id, count)
        return count

    def aggregate(self, pipeline: List[Dict[str, Any]], *args, **kwargs):
        """Run an aggregation whose first stage restricts input to this tenant's documents."""
        pipeline = [{"$match": {TENANT_FIELD: self._tenant_id}}] + list(pipeline)
        cursor = self._collection.aggregate(pipeline, *args, **kwargs)
        logger.debug("aggregate for tenant %s with %d stages", self._tenant_id, len(pipeline))
        return cursor

    async def create_index(self, keys, **kwargs) -> str:
        return await self._collection.create_index(keys, **kwargs)

    @property
    def name(self) -> str:
        return self._collection.name

    @property
    def tenant_id(self) -> str:
        return self._tenant_id
