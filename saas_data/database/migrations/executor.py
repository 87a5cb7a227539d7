# ==============================================================================
# MIGRATION EXECUTOR - Ordered, Tracked Schema Changes per Target
# ==============================================================================
# Applies, reverts, generates and reports migration units
# ==============================================================================

from __future__ import annotations

import asyncio
import logging
import os
import time
from typing import Any, Awaitable, Dict, List, Optional, Union

from saas_data.core.exceptions import MigrationError
from saas_data.core.settings import DatabaseTarget, Settings, get_settings
from saas_data.database.connection_manager import ConnectionManager
from saas_data.database.migrations.drivers import MigrationDriver, get_migration_driver
from saas_data.database.migrations.models import (
    MigrationFileResult,
    MigrationHistoryRecord,
    MigrationRunResult,
    MigrationState,
    MigrationStatusReport,
    MigrationUnit,
)
from saas_data.database.migrations.registry import MigrationFile, MigrationRegistry
from saas_data.database.migrations.tracker import MigrationTracker
from saas_data.database.migrations.utils import (
    MIGRATION_NAME_RE,
    build_migration_file_name,
    create_file,
    current_timestamp,
    get_migration_template,
    to_pascal_case,
)

logger = logging.getLogger(__name__)

TargetLike = Union[DatabaseTarget, str]


class MigrationExecutor:
    """
    Migration runner for both database targets.

    Units live in ``<MIGRATIONS_PATH>/<target>/`` and run strictly in
    (timestamp, name) order. Applied units, every attempt and the
    per-target advisory lock are recorded in the target database itself.

    Attributes:
        _connections: Connection registry supplying live handles
        _settings: Migration settings (path, pattern, timeout, ...)
        _registry: File discovery and loading

    Example:
        >>> executor = MigrationExecutor(manager)
        >>> result = await executor.run_migrations("postgresql")
        >>> result.applied
        ['1718000000000-CreateTenants']
    """

    def __init__(
        self,
        connections: Optional[ConnectionManager] = None,
        settings: Optional[Settings] = None,
    ) -> None:
        """
        Args:
            connections: Connection registry (only file creation works without)
            settings: Settings (defaults to the registry's, then cached)
        """
        self._connections = connections
        if settings is None:
            settings = connections.settings if connections is not None else get_settings()
        self._settings = settings
        self._registry = MigrationRegistry(
            settings.MIGRATIONS_PATH,
            settings.MIGRATIONS_PATTERN,
        )

    @property
    def registry(self) -> MigrationRegistry:
        return self._registry

    # ==========================================================================
    # INTERNAL HELPERS
    # ==========================================================================

    def _tracker(self, target: DatabaseTarget) -> MigrationTracker:
        if self._connections is None:
            raise MigrationError(
                "A connection manager is required for this operation",
                database=target.value,
            )
        adapter = self._connections.get_connection(target)
        return MigrationTracker(adapter, target, lock_ttl=self._settings.MIGRATIONS_LOCK_TTL)

    async def _prepared_tracker(self, target: DatabaseTarget) -> MigrationTracker:
        tracker = self._tracker(target)
        await tracker.prepare()
        return tracker

    async def _discover(self, target: DatabaseTarget) -> List[MigrationFile]:
        return await asyncio.to_thread(self._registry.discover, target)

    async def _with_timeout(self, step: Awaitable[Any]) -> Any:
        timeout = self._settings.MIGRATIONS_TIMEOUT
        if timeout and timeout > 0:
            return await asyncio.wait_for(step, timeout=timeout)
        return await step

    async def _run_step(
        self,
        driver: MigrationDriver,
        migration_file: MigrationFile,
        direction: str,
    ) -> float:
        """
        Run one unit's ``up`` or ``down`` inside a fresh scope.

        Returns:
            Duration in milliseconds
        """
        migration_class = await asyncio.to_thread(self._registry.load, migration_file)
        started = time.perf_counter()
        async with driver.scope() as scope:
            migration = migration_class(scope, name=migration_file.name)
            step = migration.up() if direction == "up" else migration.down()
            try:
                await self._with_timeout(step)
            except asyncio.TimeoutError:
                raise TimeoutError(
                    f"{direction} of {migration_file.name} timed out after "
                    f"{self._settings.MIGRATIONS_TIMEOUT}s"
                ) from None
        return (time.perf_counter() - started) * 1000

    async def _apply(
        self,
        tracker: MigrationTracker,
        driver: MigrationDriver,
        migration_file: MigrationFile,
        direction: str,
    ) -> None:
        """Run a step and record it (ledger + history)."""
        started = time.perf_counter()
        try:
            duration_ms = await self._run_step(driver, migration_file, direction)
        except Exception as e:
            elapsed = (time.perf_counter() - started) * 1000
            logger.error(
                f"Migration {migration_file.name} ({direction}) failed on "
                f"{tracker.target.value}: {e}"
            )
            await tracker.record_history(migration_file.name, direction, "failed", elapsed, str(e))
            raise

        if direction == "up":
            await tracker.mark_executed(migration_file.name)
        else:
            await tracker.unmark_executed(migration_file.name)
        await tracker.record_history(migration_file.name, direction, "success", duration_ms)

    async def _rollback_failed(
        self,
        tracker: MigrationTracker,
        driver: MigrationDriver,
        migration_file: MigrationFile,
    ) -> None:
        logger.info(f"Rolling back failed migration {migration_file.name}")
        started = time.perf_counter()
        try:
            duration_ms = await self._run_step(driver, migration_file, "down")
        except Exception as e:
            elapsed = (time.perf_counter() - started) * 1000
            logger.error(f"Rollback of {migration_file.name} failed: {e}")
            await tracker.record_history(migration_file.name, "down", "failed", elapsed, str(e))
            return
        await tracker.record_history(migration_file.name, "down", "success", duration_ms)

    # ==========================================================================
    # EXECUTION
    # ==========================================================================

    async def run_migrations(self, target: TargetLike) -> MigrationRunResult:
        """
        Apply every pending unit of a target, oldest first.

        Stops at the first failure; units applied before it stay applied.

        Returns:
            Names applied in this run (empty when nothing was pending)

        Raises:
            MigrationError: If a unit fails, or the target is locked by
                another runner
        """
        target = DatabaseTarget.parse(target)
        tracker = await self._prepared_tracker(target)
        driver = get_migration_driver(target, tracker.adapter)

        async with tracker.lock():
            executed = {record["name"] for record in await tracker.get_executed()}
            pending = [f for f in await self._discover(target) if f.name not in executed]

            if not pending:
                logger.info(f"No pending migrations for {target.value}")
                return MigrationRunResult(target=target, applied=[], count=0)

            logger.info(f"Running {len(pending)} pending migrations on {target.value}")
            applied: List[str] = []
            for migration_file in pending:
                try:
                    await self._apply(tracker, driver, migration_file, "up")
                except Exception as e:
                    if self._settings.MIGRATIONS_ROLLBACK_ON_FAILURE:
                        await self._rollback_failed(tracker, driver, migration_file)
                    raise MigrationError(
                        f"Migration {migration_file.name} failed: {e}",
                        database=target.value,
                        migration=migration_file.name,
                        details={"applied": list(applied)},
                    ) from e
                applied.append(migration_file.name)
                logger.info(f"Applied {migration_file.name} on {target.value}")

        return MigrationRunResult(target=target, applied=applied, count=len(applied))

    async def revert_last_migration(self, target: TargetLike) -> str:
        """
        Revert the most recently executed unit.

        Returns:
            Name of the reverted unit

        Raises:
            MigrationError: If nothing was executed, the unit's file is
                missing, or its ``down`` fails
        """
        target = DatabaseTarget.parse(target)
        tracker = await self._prepared_tracker(target)
        driver = get_migration_driver(target, tracker.adapter)

        async with tracker.lock():
            executed = await tracker.get_executed()
            if not executed:
                raise MigrationError(
                    f"No executed migrations to revert on {target.value}",
                    database=target.value,
                )

            name = executed[-1]["name"]
            files = {f.name: f for f in await self._discover(target)}
            migration_file = files.get(name)
            if migration_file is None:
                raise MigrationError(
                    f"Migration file for {name} not found",
                    database=target.value,
                    migration=name,
                )

            try:
                await self._apply(tracker, driver, migration_file, "down")
            except MigrationError:
                raise
            except Exception as e:
                raise MigrationError(
                    f"Reverting {name} failed: {e}",
                    database=target.value,
                    migration=name,
                ) from e

        logger.info(f"Reverted {name} on {target.value}")
        return name

    # ==========================================================================
    # FILE CREATION
    # ==========================================================================

    def _normalize_name(self, name: str, target: DatabaseTarget) -> str:
        normalized = to_pascal_case(name)
        if not MIGRATION_NAME_RE.fullmatch(normalized):
            raise MigrationError(
                f"Invalid migration name: {name!r}",
                database=target.value,
            )
        return normalized

    async def _write_unit(
        self,
        target: DatabaseTarget,
        name: str,
        upgrade: Optional[str] = None,
        downgrade: Optional[str] = None,
    ) -> MigrationFileResult:
        timestamp = current_timestamp()
        file_name = build_migration_file_name(name, timestamp)
        path = os.path.join(self._registry.directory(target), file_name)
        content = get_migration_template(name, timestamp, target, upgrade, downgrade)

        created = await asyncio.to_thread(create_file, path, content, False)
        if not created:
            raise MigrationError(
                f"Migration file already exists: {path}",
                database=target.value,
                migration=file_name,
            )

        logger.info(f"Created migration {path}")
        return MigrationFileResult(created=True, path=path, file_name=file_name)

    async def generate_migration(self, target: TargetLike, name: str) -> MigrationFileResult:
        """
        Write a unit holding the difference between declared entities and
        the live database.

        Returns:
            ``created=False`` when there is no difference

        Raises:
            MigrationError: If the name is invalid or the comparison fails
        """
        target = DatabaseTarget.parse(target)
        name = self._normalize_name(name, target)
        tracker = self._tracker(target)
        driver = get_migration_driver(target, tracker.adapter)

        try:
            diff = await driver.diff()
        except Exception as e:
            logger.error(f"Schema comparison failed on {target.value}: {e}")
            raise MigrationError(
                f"Schema comparison failed: {e}",
                database=target.value,
            ) from e

        if diff is None:
            logger.info(f"No schema changes detected on {target.value}")
            return MigrationFileResult(created=False)

        upgrade, downgrade = diff
        return await self._write_unit(target, name, upgrade, downgrade)

    async def create_migration(self, target: TargetLike, name: str) -> MigrationFileResult:
        """
        Write a blank unit with placeholder ``up`` / ``down`` bodies.

        Raises:
            MigrationError: If the name is invalid or the file exists
        """
        target = DatabaseTarget.parse(target)
        name = self._normalize_name(name, target)
        return await self._write_unit(target, name)

    # ==========================================================================
    # REPORTING
    # ==========================================================================

    async def get_migration_status(self, target: TargetLike) -> MigrationStatusReport:
        """Pending (file order) and executed (execution order) unit names."""
        target = DatabaseTarget.parse(target)
        tracker = await self._prepared_tracker(target)

        executed = [record["name"] for record in await tracker.get_executed()]
        executed_names = set(executed)
        pending = [f.name for f in await self._discover(target) if f.name not in executed_names]
        return MigrationStatusReport(target=target, pending=pending, executed=executed)

    async def get_migration_history(self, target: TargetLike) -> List[MigrationHistoryRecord]:
        """Every recorded up/down attempt, oldest first."""
        target = DatabaseTarget.parse(target)
        tracker = await self._prepared_tracker(target)
        return [MigrationHistoryRecord.model_validate(r) for r in await tracker.get_history()]

    async def list_migrations(self, target: TargetLike) -> List[MigrationUnit]:
        """
        Every discovered unit with its state.

        A unit whose latest attempt failed and which is not applied is
        reported as ``failed`` together with the error text.
        """
        target = DatabaseTarget.parse(target)
        tracker = await self._prepared_tracker(target)

        executed = {record["name"]: record for record in await tracker.get_executed()}
        last_attempt: Dict[str, Dict[str, Any]] = {}
        for record in await tracker.get_history():
            last_attempt[record["name"]] = record

        units: List[MigrationUnit] = []
        for migration_file in await self._discover(target):
            unit = MigrationUnit(
                name=migration_file.name,
                timestamp=migration_file.timestamp,
                path=migration_file.path,
            )
            attempt = last_attempt.get(migration_file.name)
            if migration_file.name in executed:
                unit.status = MigrationState.EXECUTED
                unit.executed_at = executed[migration_file.name]["executed_at"]
            elif attempt is not None and attempt["status"] == "failed":
                unit.status = MigrationState.FAILED
            if attempt is not None and attempt["status"] == "failed":
                unit.error = attempt.get("error")
            units.append(unit)
        return units
