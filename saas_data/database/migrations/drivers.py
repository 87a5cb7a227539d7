# ==============================================================================
# MIGRATION DRIVERS - Per-Target Execution Scope and Schema Comparison
# ==============================================================================
# Relational: alembic autogenerate over SQLBase.metadata
# Document: declared collections / single-field indexes vs. live database
# ==============================================================================

from __future__ import annotations

import logging
import textwrap
from abc import ABC, abstractmethod
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, List, Optional, Tuple

from alembic.autogenerate import produce_migrations, render_python_code
from alembic.runtime.migration import MigrationContext

from saas_data.core.settings import DatabaseTarget
from saas_data.database.adapters.base_adapter import BaseDatabaseAdapter
from saas_data.database.migrations.base import (
    DocumentScope,
    MigrationScope,
    RelationalScope,
)
from saas_data.domain_models import ENTITY_TABLES, SQLBase
from saas_data.schemas import ENTITY_KINDS

logger = logging.getLogger(__name__)

# (upgrade body, downgrade body)
SchemaDiff = Tuple[str, str]


class MigrationDriver(ABC):
    """Target-specific half of the migration runner."""

    def __init__(self, adapter: BaseDatabaseAdapter) -> None:
        self.adapter = adapter

    @abstractmethod
    def scope(self) -> Any:
        """Async context manager yielding the MigrationScope for one unit."""

    @abstractmethod
    async def diff(self) -> Optional[SchemaDiff]:
        """
        Compare declared entities with the live database.

        Returns:
            Upgrade / downgrade bodies, or None when nothing differs
        """


def _include_entity_tables(
    obj: Any,
    name: Optional[str],
    type_: str,
    reflected: bool,
    compare_to: Any,
) -> bool:
    # bookkeeping tables live in the same metadata but are not diffed
    if type_ == "table":
        return name in ENTITY_TABLES
    return True


def _flush_left(rendered: str) -> str:
    # alembic strips the indent of the first rendered line only
    return textwrap.dedent("    " + rendered)


class RelationalMigrationDriver(MigrationDriver):
    """Runs units in one engine transaction; diffs via alembic autogenerate."""

    @asynccontextmanager
    async def scope(self) -> AsyncIterator[MigrationScope]:
        async with self.adapter.engine.begin() as connection:
            yield RelationalScope(connection)

    async def diff(self) -> Optional[SchemaDiff]:
        def _compare(sync_connection: Any) -> Optional[SchemaDiff]:
            context = MigrationContext.configure(
                sync_connection,
                opts={
                    "include_object": _include_entity_tables,
                    "compare_type": True,
                },
            )
            script = produce_migrations(context, SQLBase.metadata)
            if script.upgrade_ops.is_empty():
                return None
            return (
                _flush_left(render_python_code(script.upgrade_ops, migration_context=context)),
                _flush_left(render_python_code(script.downgrade_ops, migration_context=context)),
            )

        async with self.adapter.engine.connect() as connection:
            result = await connection.run_sync(_compare)

        if result is None:
            logger.info("Relational schema matches the declared entities")
        return result


class DocumentMigrationDriver(MigrationDriver):
    """
    Runs units against the Motor database; diffs collections and indexes.

    Index names follow ``<collection>_<field>_idx``. Unique indexes only
    cover documents where the field is a string, so optional unique
    fields may be null on many documents.
    """

    @asynccontextmanager
    async def scope(self) -> AsyncIterator[MigrationScope]:
        yield DocumentScope(self.adapter.database)

    async def diff(self) -> Optional[SchemaDiff]:
        database = self.adapter.database
        existing = set(await database.list_collection_names())

        upgrade: List[str] = []
        downgrade: List[str] = []
        for kind in ENTITY_KINDS:
            collection = kind.collection_name
            created = collection not in existing
            live_indexes = {} if created else await database[collection].index_information()

            up_steps: List[str] = []
            down_steps: List[str] = []
            if created:
                up_steps.append(f'await self.db.create_collection("{collection}")')

            for field in kind.indexes:
                index_name = f"{collection}_{field}_idx"
                if index_name in live_indexes:
                    continue
                options = f'name="{index_name}"'
                if field in kind.unique_fields:
                    options += (
                        ", unique=True, "
                        f'partialFilterExpression={{"{field}": {{"$type": "string"}}}}'
                    )
                up_steps.append(
                    f'await self.db["{collection}"].create_index("{field}", {options})'
                )
                if not created:
                    down_steps.insert(
                        0, f'await self.db["{collection}"].drop_index("{index_name}")'
                    )

            if created:
                down_steps.append(f'await self.db.drop_collection("{collection}")')

            upgrade.extend(up_steps)
            downgrade[:0] = down_steps

        if not upgrade:
            logger.info("Document collections match the declared entities")
            return None
        return "\n".join(upgrade), "\n".join(downgrade)


def get_migration_driver(
    target: DatabaseTarget,
    adapter: BaseDatabaseAdapter,
) -> MigrationDriver:
    if target == DatabaseTarget.POSTGRESQL:
        return RelationalMigrationDriver(adapter)
    return DocumentMigrationDriver(adapter)
