# ==============================================================================
# MIGRATION BASE - Unit Contract and Execution Scopes
# ==============================================================================
# Every migration file defines one Migration subclass with up() / down()
# ==============================================================================

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, Optional

from alembic.operations import Operations
from alembic.runtime.migration import MigrationContext
from motor.motor_asyncio import AsyncIOMotorDatabase
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncConnection

from saas_data.core.exceptions import MigrationError
from saas_data.core.settings import DatabaseTarget


class MigrationScope(ABC):
    """Database access handed to a running migration unit."""

    target: DatabaseTarget

    @property
    @abstractmethod
    def db(self) -> Any:
        """Raw handle: AsyncConnection or Motor database."""

    @abstractmethod
    async def execute(self, statement: Any, params: Optional[Dict[str, Any]] = None) -> Any:
        """Run one statement / database command."""

    async def run_ops(self, fn: Callable[[Operations], Any]) -> Any:
        raise MigrationError(
            "Schema operations are only available on the relational target",
            database=self.target.value,
        )


class RelationalScope(MigrationScope):
    """
    Scope over one relational connection.

    The connection is inside the transaction opened for the unit, so
    everything the unit does commits or rolls back together (as far as
    the database supports transactional DDL).
    """

    target = DatabaseTarget.POSTGRESQL

    def __init__(self, connection: AsyncConnection) -> None:
        self._connection = connection

    @property
    def db(self) -> AsyncConnection:
        return self._connection

    async def execute(self, statement: Any, params: Optional[Dict[str, Any]] = None) -> Any:
        if isinstance(statement, str):
            statement = text(statement)
        return await self._connection.execute(statement, params or {})

    async def run_ops(self, fn: Callable[[Operations], Any]) -> Any:
        """
        Call ``fn`` with alembic ``Operations`` bound to this connection.

        ``fn`` runs synchronously on the driver's connection, so it may
        use every ``op.*`` directive (create_table, add_column, ...).
        """

        def _run(sync_connection: Any) -> Any:
            context = MigrationContext.configure(sync_connection)
            return fn(Operations(context))

        return await self._connection.run_sync(_run)


class DocumentScope(MigrationScope):
    """Scope over the Motor database of the document target."""

    target = DatabaseTarget.MONGODB

    def __init__(self, database: AsyncIOMotorDatabase) -> None:
        self._database = database

    @property
    def db(self) -> AsyncIOMotorDatabase:
        return self._database

    async def execute(self, statement: Any, params: Optional[Dict[str, Any]] = None) -> Any:
        return await self._database.command(statement, **(params or {}))


class Migration(ABC):
    """
    Base class of a migration unit.

    Subclasses implement ``up`` (apply) and ``down`` (revert). The unit
    name is the file stem (``<timestamp>-<Name>``) and is assigned by the
    runner.

    Example:
        >>> class AddTenantPlan1718000000000(Migration):
        ...     async def up(self) -> None:
        ...         await self.execute("ALTER TABLE tenants ADD COLUMN plan VARCHAR(20)")
        ...
        ...     async def down(self) -> None:
        ...         await self.execute("ALTER TABLE tenants DROP COLUMN plan")
    """

    def __init__(self, scope: MigrationScope, name: Optional[str] = None) -> None:
        self.scope = scope
        self.name = name or type(self).__name__

    @property
    def db(self) -> Any:
        return self.scope.db

    async def execute(self, statement: Any, params: Optional[Dict[str, Any]] = None) -> Any:
        return await self.scope.execute(statement, params)

    async def run_ops(self, fn: Callable[[Operations], Any]) -> Any:
        return await self.scope.run_ops(fn)

    @abstractmethod
    async def up(self) -> None:
        """Apply the change."""

    @abstractmethod
    async def down(self) -> None:
        """Revert the change."""
