# ==============================================================================
# CONNECTION MANAGER TESTS
# ==============================================================================
# Lifecycle, handle lookup and health of the database registry
# ==============================================================================

import pytest

from conftest import InMemoryDocumentAdapter
from saas_data.core.exceptions import (
    ConnectionUnavailableError,
    InitializationError,
    UnsupportedDatabaseError,
)
from saas_data.core.settings import DatabaseTarget
from saas_data.database.connection_manager import ConnectionManager
from saas_data.database.adapters.sql_adapter import SQLAdapter
from saas_data.schemas import Tenant


def build_manager(test_settings, relational=None, document=None) -> ConnectionManager:
    return ConnectionManager(
        test_settings,
        adapters={
            "postgresql": relational or InMemoryDocumentAdapter(),
            "mongodb": document or InMemoryDocumentAdapter(),
        },
    )


class TestInitialization:
    """Tests for initialize() and shutdown()."""

    @pytest.mark.asyncio
    async def test_initialize_opens_every_target(self, test_settings):
        relational = InMemoryDocumentAdapter()
        document = InMemoryDocumentAdapter()
        manager = build_manager(test_settings, relational, document)

        await manager.initialize()

        assert manager.is_initialized
        assert manager.get_connection(DatabaseTarget.POSTGRESQL) is relational
        assert manager.get_connection("mongodb") is document
        await manager.shutdown()

    @pytest.mark.asyncio
    async def test_initialize_twice_keeps_one_handle(self, test_settings):
        relational = InMemoryDocumentAdapter()
        manager = build_manager(test_settings, relational)

        await manager.initialize()
        await manager.initialize()

        assert relational.connect_calls == 1
        await manager.shutdown()

    @pytest.mark.asyncio
    async def test_initialize_fails_fast_and_closes_opened(self, test_settings):
        relational = InMemoryDocumentAdapter()
        document = InMemoryDocumentAdapter(fail_connect=True)
        manager = build_manager(test_settings, relational, document)

        with pytest.raises(InitializationError) as exc_info:
            await manager.initialize()

        assert exc_info.value.details["database"] == "mongodb"
        assert not manager.is_initialized
        assert not relational.is_connected
        assert relational.disconnect_calls == 1
        with pytest.raises(ConnectionUnavailableError):
            manager.get_connection(DatabaseTarget.POSTGRESQL)

    @pytest.mark.asyncio
    async def test_unreachable_relational_database(self, tmp_path):
        from conftest import make_settings

        settings = make_settings(
            tmp_path,
            POSTGRES_URL=f"sqlite+aiosqlite:///{tmp_path / 'missing' / 'dir' / 'x.db'}",
        )
        document = InMemoryDocumentAdapter()
        manager = ConnectionManager(settings, adapters={"mongodb": document})

        with pytest.raises(InitializationError):
            await manager.initialize()

        assert document.connect_calls == 0

    @pytest.mark.asyncio
    async def test_shutdown_is_best_effort(self, test_settings):
        relational = InMemoryDocumentAdapter(fail_disconnect=True)
        document = InMemoryDocumentAdapter()
        manager = build_manager(test_settings, relational, document)
        await manager.initialize()

        await manager.shutdown()

        assert document.disconnect_calls == 1
        assert not manager.is_initialized
        for target in DatabaseTarget:
            with pytest.raises(ConnectionUnavailableError):
                manager.get_connection(target)

    @pytest.mark.asyncio
    async def test_async_context_manager(self, test_settings):
        manager = build_manager(test_settings)

        async with manager as opened:
            assert opened.is_initialized

        assert not manager.is_initialized


class TestHandleAccess:
    """Tests for get_connection() and get_repository()."""

    def test_get_connection_before_initialize(self, test_settings):
        manager = build_manager(test_settings)

        with pytest.raises(ConnectionUnavailableError) as exc_info:
            manager.get_connection(DatabaseTarget.MONGODB)

        assert exc_info.value.database == "mongodb"

    def test_unsupported_target(self, test_settings):
        manager = build_manager(test_settings)

        with pytest.raises(UnsupportedDatabaseError):
            manager.get_connection("mysql")

    def test_targets_are_case_sensitive(self, test_settings):
        manager = build_manager(test_settings)

        with pytest.raises(UnsupportedDatabaseError):
            manager.get_connection("PostgreSQL")

    @pytest.mark.asyncio
    async def test_factory_builds_relational_adapter(self, connections):
        adapter = connections.get_connection("postgresql")

        assert isinstance(adapter, SQLAdapter)
        assert adapter.is_connected

    @pytest.mark.asyncio
    async def test_get_repository_binds_handle(self, connections, tenant_data):
        repository = connections.get_repository("postgresql", Tenant)

        tenant = await repository.create(tenant_data)

        assert repository.collection_name == "tenants"
        assert await repository.count() == 1
        assert (await repository.get_by_id(tenant.id)).name == "Acme"


class TestHealth:
    """Tests for is_healthy() and get_all_health()."""

    @pytest.mark.asyncio
    async def test_all_healthy(self, connections):
        assert await connections.get_all_health() == {
            "postgresql": True,
            "mongodb": True,
        }

    @pytest.mark.asyncio
    async def test_unhealthy_target(self, connections, document_adapter):
        document_adapter.healthy = False

        assert await connections.is_healthy(DatabaseTarget.POSTGRESQL) is True
        assert await connections.is_healthy(DatabaseTarget.MONGODB) is False

    @pytest.mark.asyncio
    async def test_health_never_raises(self, test_settings):
        manager = build_manager(test_settings)

        assert await manager.is_healthy("postgresql") is False
        assert await manager.is_healthy("oracle") is False
        assert await manager.get_all_health() == {
            "postgresql": False,
            "mongodb": False,
        }
