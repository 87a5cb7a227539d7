# ==============================================================================
# MONGODB ADAPTER TESTS
# ==============================================================================
# MongoDBAdapter and the document migration driver against mongomock-motor
# ==============================================================================

import os
from datetime import timedelta

import pytest
import pytest_asyncio
from pymongo.errors import OperationFailure

from conftest import make_settings
from saas_data.core.exceptions import (
    ConnectionUnavailableError,
    MigrationError,
    PersistenceError,
)
from saas_data.core.settings import DatabaseTarget
from saas_data.database.adapters import mongodb_adapter
from saas_data.database.adapters.mongodb_adapter import MongoDBAdapter
from saas_data.database.connection_manager import ConnectionManager
from saas_data.database.entity_manager import EntityManagerService
from saas_data.database.factory import DatabaseFactory
from saas_data.database.migrations import MigrationExecutor
from saas_data.database.migrations.tracker import LOCKS_COLLECTION, MigrationTracker
from saas_data.schemas import FindOptions, Tenant
from saas_data.utils.helpers import generate_uuid, utc_now

mongomock_motor = pytest.importorskip("mongomock_motor")


@pytest.fixture
def mongo_settings(tmp_path):
    return make_settings(
        tmp_path,
        MONGODB_URL="mongodb://localhost:27017",
        MONGODB_DB="saas_data_test",
        DB_AUTO_CREATE_SCHEMA=False,
    )


@pytest.fixture
def mock_motor(monkeypatch):
    monkeypatch.setattr(
        mongodb_adapter, "AsyncIOMotorClient", mongomock_motor.AsyncMongoMockClient
    )


@pytest_asyncio.fixture
async def adapter(mock_motor, mongo_settings):
    adapter = MongoDBAdapter(settings=mongo_settings)
    await adapter.connect()
    yield adapter
    await adapter.disconnect()


@pytest_asyncio.fixture
async def mongo_connections(mock_motor, mongo_settings):
    manager = ConnectionManager(
        mongo_settings,
        adapters={
            DatabaseTarget.POSTGRESQL: DatabaseFactory.create_adapter(
                DatabaseTarget.POSTGRESQL, mongo_settings
            ),
            DatabaseTarget.MONGODB: MongoDBAdapter(settings=mongo_settings),
        },
    )
    await manager.initialize()
    yield manager
    await manager.shutdown()


def tenant_record(name: str, **extra) -> dict:
    return {"id": generate_uuid(), "name": name, "status": "active", **extra}


class TestLifecycle:
    """Tests for connect, health and disconnect."""

    @pytest.mark.asyncio
    async def test_connect_and_health(self, adapter):
        assert adapter.is_connected
        assert await adapter.health_check() is True

    @pytest.mark.asyncio
    async def test_disconnect(self, adapter):
        await adapter.disconnect()

        assert not adapter.is_connected
        assert await adapter.health_check() is False
        with pytest.raises(ConnectionUnavailableError):
            await adapter.get_by_id("tenants", "anything")

    @pytest.mark.asyncio
    async def test_session_requires_connection(self, mock_motor, mongo_settings):
        adapter = MongoDBAdapter(settings=mongo_settings)

        with pytest.raises(ConnectionUnavailableError):
            async with adapter.session():
                pass

    @pytest.mark.asyncio
    async def test_session_failure_is_translated(self, adapter, monkeypatch):
        async def start_session(*args, **kwargs):
            raise OperationFailure("Transaction numbers are only allowed on a replica set member")

        monkeypatch.setattr(adapter._client, "start_session", start_session)

        with pytest.raises(PersistenceError, match="Transaction failed"):
            async with adapter.session():
                pass

    @pytest.mark.asyncio
    async def test_ensure_collections_is_idempotent(self, adapter):
        await adapter.ensure_collections(["tenants", "users"])
        await adapter.ensure_collections(["tenants", "users"])

        names = await adapter.database.list_collection_names()
        assert {"tenants", "users"} <= set(names)


class TestCrud:
    """Tests for document CRUD and the id <-> _id mapping."""

    @pytest.mark.asyncio
    async def test_create_stores_id_as_underscore_id(self, adapter):
        record = tenant_record("Acme")

        created = await adapter.create("tenants", record)

        assert created["id"] == record["id"]
        assert "_id" not in created
        raw = await adapter.database["tenants"].find_one({"_id": record["id"]})
        assert raw["name"] == "Acme"

    @pytest.mark.asyncio
    async def test_get_by_id(self, adapter):
        record = tenant_record("Acme")
        await adapter.create("tenants", record)

        fetched = await adapter.get_by_id("tenants", record["id"])

        assert fetched["id"] == record["id"]
        assert fetched["name"] == "Acme"
        assert await adapter.get_by_id("tenants", generate_uuid()) is None

    @pytest.mark.asyncio
    async def test_duplicate_id(self, adapter):
        record = tenant_record("Acme")
        await adapter.create("tenants", record)

        with pytest.raises(PersistenceError) as exc_info:
            await adapter.create("tenants", record)

        assert exc_info.value.details["operation"] == "create"

    @pytest.mark.asyncio
    async def test_get_all_filters_sorts_and_paginates(self, adapter):
        for name in ["Delta", "Alpha", "Charlie", "Bravo"]:
            await adapter.create("tenants", tenant_record(name))
        await adapter.create("tenants", tenant_record("Echo", status="suspended"))

        page = await adapter.get_all(
            "tenants",
            skip=1,
            limit=2,
            filters={"status": "active"},
            sort_by="name",
        )
        assert [r["name"] for r in page] == ["Bravo", "Charlie"]

        descending = await adapter.get_all("tenants", sort_by="name", sort_order="desc")
        assert [r["name"] for r in descending][:2] == ["Echo", "Delta"]

    @pytest.mark.asyncio
    async def test_find_one_by_id_filter(self, adapter):
        record = tenant_record("Acme")
        await adapter.create("tenants", record)

        found = await adapter.find_one("tenants", {"id": record["id"]})

        assert found["name"] == "Acme"
        assert await adapter.find_one("tenants", {"name": "Missing"}) is None

    @pytest.mark.asyncio
    async def test_update(self, adapter):
        record = tenant_record("Acme")
        await adapter.create("tenants", record)

        updated = await adapter.update("tenants", record["id"], {"id": "ignored", "name": "Acme Two"})

        assert updated["id"] == record["id"]
        assert updated["name"] == "Acme Two"
        assert await adapter.update("tenants", generate_uuid(), {"name": "x"}) is None

    @pytest.mark.asyncio
    async def test_delete_and_count(self, adapter):
        first = tenant_record("Acme")
        await adapter.create("tenants", first)
        await adapter.create("tenants", tenant_record("Globex", status="suspended"))

        assert await adapter.count("tenants") == 2
        assert await adapter.count("tenants", {"status": "active"}) == 1

        assert await adapter.delete("tenants", first["id"]) is True
        assert await adapter.delete("tenants", first["id"]) is False
        assert await adapter.count("tenants") == 1

    @pytest.mark.asyncio
    async def test_conditional_update_and_delete(self, adapter):
        record = tenant_record("Acme")
        await adapter.create("tenants", record)

        assert await adapter.update_matching(
            "tenants", {"id": record["id"], "name": "Other"}, {"name": "Changed"}
        ) == 0
        assert await adapter.update_matching(
            "tenants", {"id": record["id"], "name": "Acme"}, {"name": "Changed"}
        ) == 1
        assert await adapter.delete_matching("tenants", {"id": record["id"], "name": "Acme"}) == 0
        assert await adapter.delete_matching("tenants", {"id": record["id"], "name": "Changed"}) == 1
        assert await adapter.count("tenants") == 0


class TestLocking:
    """Tests for the migration lock on a Motor database."""

    @pytest.mark.asyncio
    async def test_taken_over_lock_survives_old_owner_release(self, adapter):
        tracker = MigrationTracker(adapter, DatabaseTarget.MONGODB, lock_ttl=60)
        await tracker.prepare()

        await tracker.acquire_lock("runner-a")
        await adapter.update(
            LOCKS_COLLECTION, "mongodb", {"acquired_at": utc_now() - timedelta(minutes=5)}
        )
        await tracker.acquire_lock("runner-b")

        assert await tracker.release_lock("runner-a") is False
        lock = await adapter.get_by_id(LOCKS_COLLECTION, "mongodb")
        assert lock["owner"] == "runner-b"

        with pytest.raises(MigrationError, match="already running"):
            await tracker.acquire_lock("runner-c")


class TestEntities:
    """Tests for the entity façade on the document target."""

    @pytest.mark.asyncio
    async def test_repeated_creates_have_unique_ids_and_ordered_timestamps(self, mongo_connections):
        service = EntityManagerService(mongo_connections)
        created = []
        for i in range(20):
            created.append(
                await service.create(
                    "mongodb",
                    Tenant,
                    {"name": f"Tenant {i}", "created_by": "00000000-0000-0000-0000-000000000001"},
                )
            )

        assert len({t.id for t in created}) == 20
        stamps = [t.created_at for t in created]
        assert stamps == sorted(stamps)

        stored = await service.find("mongodb", Tenant, options=FindOptions(order_by="name"))
        assert {t.id for t in stored} == {t.id for t in created}


class TestGenerateDocumentMigration:
    """Tests for generate_migration() on the document target."""

    @pytest.mark.asyncio
    async def test_generate_run_then_nothing_to_generate(self, mongo_connections, mongo_settings):
        executor = MigrationExecutor(mongo_connections, mongo_settings)

        result = await executor.generate_migration("mongodb", "InitDocuments")

        assert result.created is True
        assert result.file_name.endswith("-InitDocuments.py")
        with open(result.path, encoding="utf-8") as f:
            source = f.read()
        assert 'await self.db.create_collection("tenants")' in source
        assert "tenants_domain_idx" in source
        assert "partialFilterExpression" in source

        run = await executor.run_migrations("mongodb")
        assert run.applied == [os.path.splitext(result.file_name)[0]]

        database = mongo_connections.get_connection("mongodb").database
        assert "tenants" in await database.list_collection_names()
        indexes = await database["tenants"].index_information()
        assert indexes["tenants_domain_idx"]["unique"] is True

        again = await executor.generate_migration("mongodb", "Nothing")
        assert again.created is False
