from datetime import datetime
from unittest.mock import AsyncMock

import pytest
from bson import ObjectId
from pymongo.errors import AutoReconnect, DuplicateKeyError

from luxgen_tenancy.database.tenant_models import MODEL_DEFINITIONS, build_models, serialize_document
from luxgen_tenancy.exceptions import OperationFailedError, RecordConflictError, RecordValidationError, TenantErrorType
from tests.fakes import FakeConnection


@pytest.fixture
def connection():
    return FakeConnection("luxgen")


@pytest.fixture
def models(connection):
    return build_models(connection, "luxgen")


def _user(**overrides):
    data = {"email": "Ada@LuxGen.com", "first_name": "Ada", "last_name": "Lovelace"}
    data.update(overrides)
    return data


def test_build_models_binds_collections_without_io(models, connection):
    assert models.tenant_id == "luxgen"
    assert models.user.collection.name == "users"
    assert models.poll.collection.name == "polls"
    assert models.activity.collection.name == "activities"
    assert models.job.collection.name == "jobs"
    assert all(model.tenant_id == "luxgen" for model in models.all())
    assert all(not c.indexes for c in connection.collections.values())


def test_build_models_rejects_foreign_connection(connection):
    with pytest.raises(ValueError):
        build_models(connection, "demo")


def test_get_unknown_model(models):
    assert models.get("poll") is models.poll
    with pytest.raises(KeyError):
        models.get("invoice")


@pytest.mark.asyncio
async def test_ensure_indexes_creates_declared_indexes(models, connection):
    await models.ensure_indexes()

    users = connection.collections["users"].indexes
    assert len(users) == len(MODEL_DEFINITIONS["user"][2])
    assert ([("tenant_id", 1), ("email", 1)], {"unique": True}) in users
    assert ([("tenant_id", 1), ("action", 1)], {}) in connection.collections["activities"].indexes


@pytest.mark.asyncio
async def test_create_validates_and_scopes(models, connection):
    user = await models.user.create(_user())

    assert isinstance(user["_id"], ObjectId)
    assert user["tenant_id"] == "luxgen"
    assert user["email"] == "ada@luxgen.com"
    assert user["role"] == "user"
    assert connection.collections["users"].documents[0]["tenant_id"] == "luxgen"


@pytest.mark.asyncio
async def test_create_rejects_invalid_record(models):
    with pytest.raises(RecordValidationError) as exc_info:
        await models.user.create(_user(email="not-an-email", role="owner"))

    fields = {error["loc"][0] for error in exc_info.value.errors}
    assert fields == {"email", "role"}
    assert exc_info.value.status_code == 422


@pytest.mark.asyncio
async def test_create_rejects_other_tenant(models):
    with pytest.raises(RecordValidationError):
        await models.poll.create(
            {"tenant_id": "demo", "title": "Lunch", "question": "Where?", "poll_type": "single_choice"}
        )


@pytest.mark.asyncio
async def test_find_and_count_only_see_own_tenant(models, connection):
    await models.job.create({"title": "Engineer", "status": "published"})
    await models.job.create({"title": "Designer"})
    connection.collections["jobs"].documents.append({"_id": ObjectId(), "tenant_id": "demo", "title": "Spy"})

    published = await models.job.find({"status": "published"})

    assert [job["title"] for job in published] == ["Engineer"]
    assert await models.job.count() == 2


@pytest.mark.asyncio
async def test_find_pagination(models):
    for i in range(5):
        await models.activity.create({"action": f"login-{i}"})

    page = await models.activity.find(limit=2, skip=1, sort=[("action", 1)])

    assert [a["action"] for a in page] == ["login-1", "login-2"]


@pytest.mark.asyncio
async def test_update_by_id_merges_and_revalidates(models):
    poll = await models.poll.create({"title": "Lunch", "question": "Where?", "poll_type": "single_choice"})

    updated = await models.poll.update_by_id(str(poll["_id"]), {"status": "active"})

    assert updated["status"] == "active"
    assert updated["title"] == "Lunch"
    assert updated["updated_at"] >= poll["updated_at"]
    assert (await models.poll.find_by_id(poll["_id"]))["status"] == "active"

    with pytest.raises(RecordValidationError):
        await models.poll.update_by_id(str(poll["_id"]), {"status": "archived"})


@pytest.mark.asyncio
async def test_missing_records(models):
    assert await models.user.find_by_id("not-an-object-id") is None
    assert await models.user.find_by_id(str(ObjectId())) is None
    assert await models.user.update_by_id(str(ObjectId()), {"first_name": "X"}) is None
    assert await models.user.delete_by_id(str(ObjectId())) is False


@pytest.mark.asyncio
async def test_delete_by_id(models):
    user = await models.user.create(_user())

    assert await models.user.delete_by_id(str(user["_id"])) is True
    assert await models.user.count() == 0


def test_serialize_document():
    object_id = ObjectId()
    created = datetime(2024, 1, 2, 3, 4, 5)

    document = serialize_document(
        {"_id": object_id, "created_at": created, "options": [{"id": object_id}], "meta": {"by": object_id}}
    )

    assert document == {
        "_id": str(object_id),
        "created_at": "2024-01-02T03:04:05",
        "options": [{"id": str(object_id)}],
        "meta": {"by": str(object_id)},
    }
    assert serialize_document(None) is None


def _duplicate_email():
    return DuplicateKeyError(
        "E11000 duplicate key error", code=11000, details={"keyPattern": {"tenant_id": 1, "email": 1}}
    )


@pytest.mark.asyncio
async def test_create_duplicate_email_is_a_conflict(models, connection):
    connection.collections["users"].insert_one = AsyncMock(side_effect=_duplicate_email())

    with pytest.raises(RecordConflictError) as exc_info:
        await models.user.create(_user())

    error = exc_info.value
    assert error.status_code == 409
    assert error.error_type == TenantErrorType.RECORD_CONFLICT
    assert error.tenant_id == "luxgen"
    assert error.fields == ["email"]
    assert "ada@luxgen.com" not in error.message


@pytest.mark.asyncio
async def test_update_into_existing_email_is_a_conflict(models, connection):
    user = await models.user.create(_user())
    connection.collections["users"].update_one = AsyncMock(side_effect=_duplicate_email())

    with pytest.raises(RecordConflictError):
        await models.user.update_by_id(str(user["_id"]), {"email": "grace@luxgen.com"})


@pytest.mark.asyncio
async def test_driver_failure_is_reported_for_the_tenant(models, connection):
    connection.collections["users"].count_documents = AsyncMock(side_effect=AutoReconnect("connection reset"))

    with pytest.raises(OperationFailedError) as exc_info:
        await models.user.count()

    error = exc_info.value
    assert error.tenant_id == "luxgen"
    assert error.operation == "count_user"
    assert error.retryable is True
    assert isinstance(error.cause, AutoReconnect)
