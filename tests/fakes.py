"""In-memory stand-ins for Motor collections and tenant connections."""

from types import SimpleNamespace
from unittest.mock import AsyncMock

from bson import ObjectId

MB = 1024 * 1024


def _matches(document, filter_dict):
    return all(document.get(key) == value for key, value in (filter_dict or {}).items())


class FakeCursor:
    """Just enough of AsyncIOMotorCursor for the model handles."""

    def __init__(self, documents):
        self._documents = list(documents)
        self._skip = 0
        self._limit = 0

    def sort(self, keys):
        for key, direction in reversed(keys):
            self._documents.sort(key=lambda d: d.get(key), reverse=direction < 0)
        return self

    def skip(self, count):
        self._skip = count
        return self

    def limit(self, count):
        self._limit = count
        return self

    async def to_list(self, length=None):
        documents = self._documents[self._skip:]
        if self._limit:
            documents = documents[: self._limit]
        return [dict(d) for d in documents]


class FakeCollection:
    """In-memory stand-in for AsyncIOMotorCollection (equality filters, `$set` updates)."""

    def __init__(self, name):
        self.name = name
        self.documents = []
        self.indexes = []
        self.pipelines = []

    async def find_one(self, filter=None, *args, **kwargs):
        for document in self.documents:
            if _matches(document, filter):
                return dict(document)
        return None

    def find(self, filter=None, *args, **kwargs):
        return FakeCursor(d for d in self.documents if _matches(d, filter))

    async def insert_one(self, document, *args, **kwargs):
        document.setdefault("_id", ObjectId())
        self.documents.append(dict(document))
        return SimpleNamespace(inserted_id=document["_id"])

    async def insert_many(self, documents, *args, **kwargs):
        results = [await self.insert_one(document) for document in documents]
        return SimpleNamespace(inserted_ids=[r.inserted_id for r in results])

    async def update_one(self, filter, update, *args, **kwargs):
        for document in self.documents:
            if _matches(document, filter):
                document.update(update.get("$set", {}))
                return SimpleNamespace(matched_count=1, modified_count=1)
        return SimpleNamespace(matched_count=0, modified_count=0)

    async def find_one_and_update(self, filter, update, *args, **kwargs):
        for document in self.documents:
            if _matches(document, filter):
                original = dict(document)
                document.update(update.get("$set", {}))
                return original
        return None

    async def delete_one(self, filter, *args, **kwargs):
        for document in self.documents:
            if _matches(document, filter):
                self.documents.remove(document)
                return SimpleNamespace(deleted_count=1)
        return SimpleNamespace(deleted_count=0)

    async def delete_many(self, filter, *args, **kwargs):
        matching = [d for d in self.documents if _matches(d, filter)]
        for document in matching:
            self.documents.remove(document)
        return SimpleNamespace(deleted_count=len(matching))

    async def count_documents(self, filter=None, *args, **kwargs):
        return sum(1 for d in self.documents if _matches(d, filter))

    def aggregate(self, pipeline, *args, **kwargs):
        self.pipelines.append(pipeline)
        return FakeCursor([])

    async def create_index(self, keys, **kwargs):
        self.indexes.append((keys, kwargs))
        return "_".join(f"{key}_{direction}" for key, direction in keys)


class FakeConnection:
    """Stand-in for TenantConnection backed by FakeCollections."""

    def __init__(self, tenant_id, data_size=2 * MB):
        self.tenant_id = tenant_id
        self.database_name = f"tenant_{tenant_id}"
        self.collections = {}
        self.ping = AsyncMock(return_value=1.5)
        self.db_stats = AsyncMock(
            return_value={
                "collections": 4,
                "dataSize": data_size,
                "storageSize": data_size * 2,
                "indexes": 13,
                "objects": 10,
            }
        )
        self.drop_database = AsyncMock()
        self.close_calls = 0
        self._closed = False

    @property
    def is_closed(self):
        return self._closed

    def get_collection(self, name):
        return self.collections.setdefault(name, FakeCollection(name))

    def close(self):
        self.close_calls += 1
        self._closed = True


