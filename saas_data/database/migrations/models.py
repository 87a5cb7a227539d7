# ==============================================================================
# MIGRATION MODELS - Runner Results and Reports
# ==============================================================================

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import Field

from saas_data.core.settings import DatabaseTarget
from saas_data.schemas.base import BaseSchema


class MigrationState(str, Enum):
    PENDING = "pending"
    EXECUTED = "executed"
    FAILED = "failed"


class MigrationUnit(BaseSchema):
    """
    A migration file on disk and its state in the target database.

    Attributes:
        name: File stem, ``<timestamp>-<Name>``
        timestamp: 13-digit millisecond timestamp from the file name
        path: File location
        status: pending / executed / failed (last attempt failed)
        executed_at: When it was applied, if executed
        error: Error text of the last failed attempt
    """

    name: str
    timestamp: int
    path: str
    status: MigrationState = MigrationState.PENDING
    executed_at: Optional[datetime] = None
    error: Optional[str] = None


class MigrationHistoryRecord(BaseSchema):
    """One up/down attempt."""

    name: str
    direction: str
    status: str
    executed_at: datetime
    duration_ms: float = 0.0
    error: Optional[str] = None


class MigrationStatusReport(BaseSchema):
    target: DatabaseTarget
    pending: List[str] = Field(default_factory=list)
    executed: List[str] = Field(default_factory=list)


class MigrationRunResult(BaseSchema):
    """Outcome of a successful run; ``applied`` is in execution order."""

    target: DatabaseTarget
    applied: List[str] = Field(default_factory=list)
    count: int = 0


class MigrationFileResult(BaseSchema):
    """
    Outcome of writing a migration file.

    ``created`` is False (and path / file_name None) when a schema
    comparison found nothing to write.
    """

    created: bool
    path: Optional[str] = None
    file_name: Optional[str] = None
