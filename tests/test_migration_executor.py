# ==============================================================================
# MIGRATION EXECUTOR TESTS
# ==============================================================================
# Running, reverting, generating and reporting migration units
# ==============================================================================

import os
import textwrap
from datetime import timedelta

import pytest
import pytest_asyncio

from conftest import make_settings, open_connections
from saas_data.core.exceptions import MigrationError
from saas_data.core.settings import DatabaseTarget
from saas_data.database.entity_manager import EntityManagerService
from saas_data.database.migrations import MigrationExecutor, MigrationState
from saas_data.database.migrations.tracker import (
    LOCKS_COLLECTION,
    MigrationTracker,
    default_lock_owner,
)
from saas_data.schemas import Tenant
from saas_data.utils.helpers import utc_now

T1 = 1700000000000
T2 = 1700000001000
T3 = 1700000002000


@pytest.fixture
def migration_settings(tmp_path):
    """Settings where entity tables only come from migrations."""
    return make_settings(tmp_path, DB_AUTO_CREATE_SCHEMA=False)


@pytest_asyncio.fixture
async def migration_connections(migration_settings, document_adapter):
    manager = await open_connections(migration_settings, document_adapter)
    yield manager
    await manager.shutdown()


@pytest.fixture
def executor(migration_connections, migration_settings) -> MigrationExecutor:
    return MigrationExecutor(migration_connections, migration_settings)


def write_unit(settings, target, timestamp, name, up, down="pass"):
    """Write a hand-made unit file into the target's migrations directory."""
    directory = os.path.join(settings.MIGRATIONS_PATH, target)
    os.makedirs(directory, exist_ok=True)
    source = (
        "import asyncio\n"
        "\n"
        "from saas_data.database.migrations import Migration\n"
        "\n"
        "\n"
        f"class {name}{timestamp}(Migration):\n"
        "    async def up(self):\n"
        f"{textwrap.indent(textwrap.dedent(up).strip(), ' ' * 8)}\n"
        "\n"
        "    async def down(self):\n"
        f"{textwrap.indent(textwrap.dedent(down).strip(), ' ' * 8)}\n"
    )
    path = os.path.join(directory, f"{timestamp}-{name}.py")
    with open(path, "w", encoding="utf-8") as f:
        f.write(source)
    return path


def write_table_unit(settings, timestamp, name, table):
    return write_unit(
        settings,
        "postgresql",
        timestamp,
        name,
        up=f'await self.execute("CREATE TABLE {table} (id INTEGER PRIMARY KEY)")',
        down=f'await self.execute("DROP TABLE {table}")',
    )


def write_logging_unit(settings, timestamp, name, fail=False):
    """Document unit that records up/down calls in the handed-out database."""
    up = 'self.db.setdefault("log", []).append(("up", self.name))'
    if fail:
        up += '\nraise RuntimeError("boom")'
    return write_unit(
        settings,
        "mongodb",
        timestamp,
        name,
        up=up,
        down='self.db.setdefault("log", []).append(("down", self.name))',
    )


class TestRunMigrations:
    """Tests for run_migrations()."""

    @pytest.mark.asyncio
    async def test_applies_pending_in_timestamp_order(self, executor, migration_settings):
        write_table_unit(migration_settings, T2, "CreateBeta", "beta")
        write_table_unit(migration_settings, T1, "CreateAlpha", "alpha")

        result = await executor.run_migrations("postgresql")

        assert result.applied == [f"{T1}-CreateAlpha", f"{T2}-CreateBeta"]
        assert result.count == 2
        status = await executor.get_migration_status("postgresql")
        assert status.executed == [f"{T1}-CreateAlpha", f"{T2}-CreateBeta"]
        assert status.pending == []

    @pytest.mark.asyncio
    async def test_rerun_applies_nothing(self, executor, migration_settings):
        write_table_unit(migration_settings, T1, "CreateAlpha", "alpha")
        await executor.run_migrations("postgresql")

        result = await executor.run_migrations("postgresql")

        assert result.applied == []
        assert result.count == 0

    @pytest.mark.asyncio
    async def test_missing_directory_means_nothing_pending(self, executor):
        result = await executor.run_migrations("mongodb")

        assert result.count == 0
        assert await executor.list_migrations("mongodb") == []

    @pytest.mark.asyncio
    async def test_ignores_files_outside_the_pattern(self, executor, migration_settings):
        write_logging_unit(migration_settings, T1, "First")
        directory = os.path.join(migration_settings.MIGRATIONS_PATH, "mongodb")
        with open(os.path.join(directory, "README.md"), "w") as f:
            f.write("notes")
        with open(os.path.join(directory, "1700-Short.py"), "w") as f:
            f.write("raise SystemExit")
        with open(os.path.join(directory, f"{T2}-Second.ts"), "w") as f:
            f.write("export class Second {}")

        result = await executor.run_migrations("mongodb")

        assert result.applied == [f"{T1}-First"]

    @pytest.mark.asyncio
    async def test_skips_non_python_units_even_when_pattern_allows_them(
        self, tmp_path, document_adapter
    ):
        settings = make_settings(
            tmp_path,
            DB_AUTO_CREATE_SCHEMA=False,
            MIGRATIONS_PATTERN=r"[0-9]{13}-[A-Za-z][A-Za-z0-9]*\.(py|ts|js)",
        )
        write_logging_unit(settings, T1, "First")
        directory = os.path.join(settings.MIGRATIONS_PATH, "mongodb")
        with open(os.path.join(directory, f"{T2}-Second.ts"), "w") as f:
            f.write("export class Second {}")

        manager = await open_connections(settings, document_adapter)
        try:
            executor = MigrationExecutor(manager, settings)
            result = await executor.run_migrations("mongodb")
            status = await executor.get_migration_status("mongodb")
        finally:
            await manager.shutdown()

        assert result.applied == [f"{T1}-First"]
        assert status.pending == []

    @pytest.mark.asyncio
    async def test_stops_at_first_failure(self, executor, migration_settings, document_adapter):
        write_logging_unit(migration_settings, T1, "First")
        write_logging_unit(migration_settings, T2, "Broken", fail=True)
        write_logging_unit(migration_settings, T3, "Third")

        with pytest.raises(MigrationError) as exc_info:
            await executor.run_migrations("mongodb")

        error = exc_info.value
        assert error.migration == f"{T2}-Broken"
        assert error.details["applied"] == [f"{T1}-First"]
        assert isinstance(error.__cause__, RuntimeError)
        assert document_adapter.database["log"] == [
            ("up", f"{T1}-First"),
            ("up", f"{T2}-Broken"),
        ]

        status = await executor.get_migration_status("mongodb")
        assert status.executed == [f"{T1}-First"]
        assert status.pending == [f"{T2}-Broken", f"{T3}-Third"]

        units = {unit.name: unit for unit in await executor.list_migrations("mongodb")}
        assert units[f"{T1}-First"].status == MigrationState.EXECUTED
        assert units[f"{T1}-First"].executed_at is not None
        assert units[f"{T2}-Broken"].status == MigrationState.FAILED
        assert "boom" in units[f"{T2}-Broken"].error
        assert units[f"{T3}-Third"].status == MigrationState.PENDING

        history = await executor.get_migration_history("mongodb")
        assert [(h.name, h.direction, h.status) for h in history] == [
            (f"{T1}-First", "up", "success"),
            (f"{T2}-Broken", "up", "failed"),
        ]

    @pytest.mark.asyncio
    async def test_rollback_on_failure(self, tmp_path, document_adapter):
        settings = make_settings(tmp_path, MIGRATIONS_ROLLBACK_ON_FAILURE=True)
        write_logging_unit(settings, T1, "Broken", fail=True)
        manager = await open_connections(settings, document_adapter)
        try:
            executor = MigrationExecutor(manager)
            with pytest.raises(MigrationError):
                await executor.run_migrations("mongodb")

            assert document_adapter.database["log"] == [
                ("up", f"{T1}-Broken"),
                ("down", f"{T1}-Broken"),
            ]
            history = await executor.get_migration_history("mongodb")
            assert [(h.direction, h.status) for h in history] == [
                ("up", "failed"),
                ("down", "success"),
            ]
        finally:
            await manager.shutdown()

    @pytest.mark.asyncio
    async def test_unit_timeout(self, tmp_path, document_adapter):
        settings = make_settings(tmp_path, MIGRATIONS_TIMEOUT=0.2)
        write_unit(settings, "mongodb", T1, "Slow", up="await asyncio.sleep(10)")
        manager = await open_connections(settings, document_adapter)
        try:
            executor = MigrationExecutor(manager)
            with pytest.raises(MigrationError, match="timed out"):
                await executor.run_migrations("mongodb")

            status = await executor.get_migration_status("mongodb")
            assert status.executed == []
        finally:
            await manager.shutdown()

    @pytest.mark.asyncio
    async def test_unit_without_migration_class(self, executor, migration_settings):
        directory = os.path.join(migration_settings.MIGRATIONS_PATH, "mongodb")
        os.makedirs(directory)
        with open(os.path.join(directory, f"{T1}-Empty.py"), "w") as f:
            f.write("VALUE = 1\n")

        with pytest.raises(MigrationError, match="exactly one"):
            await executor.run_migrations("mongodb")


class TestLocking:
    """Tests for the per-target migration lock."""

    @pytest.mark.asyncio
    async def test_live_lock_blocks_run(self, executor, migration_settings, document_adapter):
        write_logging_unit(migration_settings, T1, "First")
        await document_adapter.create(
            LOCKS_COLLECTION,
            {"id": "mongodb", "owner": "other-host:1", "acquired_at": utc_now()},
        )

        with pytest.raises(MigrationError, match="already running"):
            await executor.run_migrations("mongodb")

        assert "log" not in document_adapter.database

    @pytest.mark.asyncio
    async def test_stale_lock_is_taken_over(self, executor, migration_settings, document_adapter):
        write_logging_unit(migration_settings, T1, "First")
        await document_adapter.create(
            LOCKS_COLLECTION,
            {
                "id": "mongodb",
                "owner": "crashed-host:1",
                "acquired_at": utc_now() - timedelta(hours=1),
            },
        )

        result = await executor.run_migrations("mongodb")

        assert result.applied == [f"{T1}-First"]
        assert await document_adapter.get_by_id(LOCKS_COLLECTION, "mongodb") is None

    @pytest.mark.asyncio
    async def test_lock_released_after_failure(self, executor, migration_settings, document_adapter):
        write_logging_unit(migration_settings, T1, "Broken", fail=True)

        with pytest.raises(MigrationError):
            await executor.run_migrations("mongodb")

        assert await document_adapter.get_by_id(LOCKS_COLLECTION, "mongodb") is None


@pytest_asyncio.fixture(params=["postgresql", "mongodb"])
async def tracker(request, migration_connections, migration_settings):
    target = DatabaseTarget.parse(request.param)
    tracker = MigrationTracker(
        migration_connections.get_connection(target),
        target,
        lock_ttl=migration_settings.MIGRATIONS_LOCK_TTL,
    )
    await tracker.prepare()
    return tracker


async def age_lock(tracker):
    """Backdate the held lock past its TTL."""
    await tracker.adapter.update(
        LOCKS_COLLECTION,
        tracker.target.value,
        {"acquired_at": utc_now() - timedelta(seconds=tracker.lock_ttl + 60)},
    )


class TestLockOwnership:
    """Tests for owner-aware release and conditional takeover of the lock."""

    @pytest.mark.asyncio
    async def test_previous_owner_cannot_release_taken_over_lock(self, tracker):
        await tracker.acquire_lock("runner-a")
        await age_lock(tracker)
        await tracker.acquire_lock("runner-b")

        assert await tracker.release_lock("runner-a") is False

        lock = await tracker.adapter.get_by_id(LOCKS_COLLECTION, tracker.target.value)
        assert lock is not None
        assert lock["owner"] == "runner-b"

        assert await tracker.release_lock("runner-b") is True
        assert await tracker.adapter.get_by_id(LOCKS_COLLECTION, tracker.target.value) is None

    @pytest.mark.asyncio
    async def test_second_takeover_of_same_stale_lock_fails(self, tracker, monkeypatch):
        await tracker.acquire_lock("runner-a")
        await age_lock(tracker)
        stale = await tracker.adapter.get_by_id(LOCKS_COLLECTION, tracker.target.value)

        await tracker.acquire_lock("runner-b")

        # runner-c read the lock before runner-b replaced it
        async def stale_read(collection, id, session=None):
            return dict(stale)

        monkeypatch.setattr(tracker.adapter, "get_by_id", stale_read)
        with pytest.raises(MigrationError, match="taken over by another runner"):
            await tracker.acquire_lock("runner-c")
        monkeypatch.undo()

        lock = await tracker.adapter.get_by_id(LOCKS_COLLECTION, tracker.target.value)
        assert lock["owner"] == "runner-b"

    @pytest.mark.asyncio
    async def test_lock_context_releases_only_its_own_lock(self, tracker):
        async with tracker.lock():
            await age_lock(tracker)
            await tracker.acquire_lock("runner-b")

        lock = await tracker.adapter.get_by_id(LOCKS_COLLECTION, tracker.target.value)
        assert lock["owner"] == "runner-b"

    def test_default_owners_are_unique(self):
        assert default_lock_owner() != default_lock_owner()


class TestRevert:
    """Tests for revert_last_migration()."""

    @pytest.mark.asyncio
    async def test_reverts_most_recent(self, executor, migration_settings):
        write_table_unit(migration_settings, T1, "CreateAlpha", "alpha")
        write_table_unit(migration_settings, T2, "CreateBeta", "beta")
        await executor.run_migrations("postgresql")

        reverted = await executor.revert_last_migration("postgresql")

        assert reverted == f"{T2}-CreateBeta"
        status = await executor.get_migration_status("postgresql")
        assert status.executed == [f"{T1}-CreateAlpha"]
        assert status.pending == [f"{T2}-CreateBeta"]

        # the table was dropped, so applying again succeeds
        result = await executor.run_migrations("postgresql")
        assert result.applied == [f"{T2}-CreateBeta"]

    @pytest.mark.asyncio
    async def test_nothing_to_revert(self, executor):
        with pytest.raises(MigrationError, match="No executed migrations"):
            await executor.revert_last_migration("mongodb")

    @pytest.mark.asyncio
    async def test_missing_file(self, executor, migration_settings):
        path = write_logging_unit(migration_settings, T1, "First")
        await executor.run_migrations("mongodb")
        os.remove(path)

        with pytest.raises(MigrationError, match="not found"):
            await executor.revert_last_migration("mongodb")

    @pytest.mark.asyncio
    async def test_failed_down(self, executor, migration_settings):
        write_unit(
            migration_settings,
            "mongodb",
            T1,
            "OneWay",
            up="pass",
            down='raise RuntimeError("irreversible")',
        )
        await executor.run_migrations("mongodb")

        with pytest.raises(MigrationError, match="irreversible"):
            await executor.revert_last_migration("mongodb")

        status = await executor.get_migration_status("mongodb")
        assert status.executed == [f"{T1}-OneWay"]


class TestCreateMigration:
    """Tests for create_migration()."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("target", ["postgresql", "mongodb"])
    async def test_blank_unit_is_runnable(self, executor, target):
        created = await executor.create_migration(target, "add plan")

        assert created.created
        assert created.file_name.endswith("-AddPlan.py")
        assert os.path.isfile(created.path)
        assert os.path.dirname(created.path).endswith(target)

        result = await executor.run_migrations(target)
        assert result.applied == [created.file_name[:-3]]

    @pytest.mark.asyncio
    async def test_works_without_connections(self, migration_settings):
        executor = MigrationExecutor(settings=migration_settings)

        created = await executor.create_migration("mongodb", "seed_plans")

        files = executor.registry.discover("mongodb")
        assert [f.name for f in files] == [created.file_name[:-3]]
        migration_class = executor.registry.load(files[0])
        assert migration_class.__name__.startswith("SeedPlans")

    @pytest.mark.asyncio
    @pytest.mark.parametrize("name", ["!!!", "2fast", "", "add.plan"])
    async def test_invalid_names(self, migration_settings, name):
        executor = MigrationExecutor(settings=migration_settings)

        with pytest.raises(MigrationError, match="Invalid migration name"):
            await executor.create_migration("postgresql", name)

    @pytest.mark.asyncio
    async def test_existing_file_is_not_overwritten(self, migration_settings, monkeypatch):
        monkeypatch.setattr(
            "saas_data.database.migrations.executor.current_timestamp",
            lambda: T1,
        )
        executor = MigrationExecutor(settings=migration_settings)
        first = await executor.create_migration("postgresql", "AddPlan")

        with pytest.raises(MigrationError, match="already exists"):
            await executor.create_migration("postgresql", "AddPlan")

        assert first.file_name == f"{T1}-AddPlan.py"

    @pytest.mark.asyncio
    async def test_operations_needing_a_database(self, migration_settings):
        executor = MigrationExecutor(settings=migration_settings)

        with pytest.raises(MigrationError):
            await executor.run_migrations("postgresql")


class TestGenerateMigration:
    """Tests for generate_migration() on the relational target."""

    @pytest.mark.asyncio
    async def test_generate_run_and_regenerate(self, executor, migration_connections):
        generated = await executor.generate_migration("postgresql", "initial schema")

        assert generated.created
        assert generated.file_name.endswith("-InitialSchema.py")
        with open(generated.path, encoding="utf-8") as f:
            source = f.read()
        assert "op.create_table" in source
        assert "tenants" in source
        assert "schema_migrations" not in source

        result = await executor.run_migrations("postgresql")
        assert result.applied == [generated.file_name[:-3]]

        service = EntityManagerService(migration_connections)
        tenant = await service.create(
            "postgresql", Tenant, {"name": "Acme", "created_by": "u-1"}
        )
        assert tenant.id

        again = await executor.generate_migration("postgresql", "nothing new")
        assert again.created is False
        assert again.path is None

    @pytest.mark.asyncio
    async def test_generate_rejects_invalid_name(self, executor):
        with pytest.raises(MigrationError):
            await executor.generate_migration("postgresql", "???")
