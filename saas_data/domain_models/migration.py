# ==============================================================================
# MIGRATION BOOKKEEPING MODELS
# ==============================================================================
# Applied-unit ledger, run history and the per-target advisory lock
# ==============================================================================

from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime, Float, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from saas_data.domain_models.base import SQLBase
from saas_data.utils.helpers import utc_now


class SchemaMigration(SQLBase):
    """One row per applied migration unit."""

    __tablename__ = "schema_migrations"

    name: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    executed_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utc_now,
        nullable=False,
    )


class MigrationHistory(SQLBase):
    """
    Append-only log of every up/down attempt.

    Attributes:
        direction: "up" or "down"
        status: "success" or "failed"
        duration_ms: Wall-clock time of the attempt
        error: Error text of a failed attempt
    """

    __tablename__ = "migration_history"

    name: Mapped[str] = mapped_column(String(255), index=True, nullable=False)
    direction: Mapped[str] = mapped_column(String(10), nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False)
    executed_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utc_now,
        nullable=False,
    )
    duration_ms: Mapped[float] = mapped_column(Float, default=0.0, nullable=False)
    error: Mapped[Optional[str]] = mapped_column(Text, nullable=True)


class MigrationLock(SQLBase):
    """Advisory lock row; the id is the database target value."""

    __tablename__ = "migration_locks"

    owner: Mapped[str] = mapped_column(String(255), nullable=False)
    acquired_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utc_now,
        nullable=False,
    )
