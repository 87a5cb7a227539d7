# ==============================================================================
# MIGRATIONS PACKAGE
# ==============================================================================

"""
Migrations
==========

Ordered, tracked schema changes per database target:
- Migration: base class every migration file subclasses
- MigrationExecutor: run / revert / generate / create / report
- utils: file naming, templates and filesystem helpers
"""

from saas_data.database.migrations.base import (
    DocumentScope,
    Migration,
    MigrationScope,
    RelationalScope,
)
from saas_data.database.migrations.executor import MigrationExecutor
from saas_data.database.migrations.models import (
    MigrationFileResult,
    MigrationHistoryRecord,
    MigrationRunResult,
    MigrationState,
    MigrationStatusReport,
    MigrationUnit,
)

__all__ = [
    "Migration",
    "MigrationScope",
    "RelationalScope",
    "DocumentScope",
    "MigrationExecutor",
    "MigrationFileResult",
    "MigrationHistoryRecord",
    "MigrationRunResult",
    "MigrationState",
    "MigrationStatusReport",
    "MigrationUnit",
]
