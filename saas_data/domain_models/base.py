# ==============================================================================
# BASE MODEL - SQLAlchemy Foundation
# ==============================================================================
# Base declarative class and common mixins for all SQL models
# ==============================================================================

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict
from uuid import uuid4

from sqlalchemy import DateTime, MetaData, String
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from saas_data.utils.helpers import ensure_utc, utc_now

# Deterministic constraint names keep autogenerated migrations stable
NAMING_CONVENTION = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}


class SQLBase(DeclarativeBase):
    """
    Base class for all SQLAlchemy models.

    Provides a common foundation with:
    - Automatic UUID primary key generation
    - Dictionary serialization method
    - Type annotations for mapped columns

    All domain models should inherit from this class.

    Example:
        >>> class Tenant(SQLBase):
        ...     __tablename__ = "tenants"
        ...     name: Mapped[str] = mapped_column(String(100))
    """

    metadata = MetaData(naming_convention=NAMING_CONVENTION)

    # Default primary key for all models
    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid4()),
    )

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert model instance to dictionary.

        Datetimes come back timezone-aware even from drivers that drop
        the offset (SQLite).

        Returns:
            Dictionary with all column values
        """
        result: Dict[str, Any] = {}
        for column in self.__table__.columns:
            value = getattr(self, column.key)
            if isinstance(value, datetime):
                value = ensure_utc(value)
            result[column.key] = value
        return result

    def __repr__(self) -> str:
        """Generate readable representation."""
        class_name = self.__class__.__name__
        return f"<{class_name}(id={self.id})>"


class TimestampMixin:
    """
    Mixin providing timestamp tracking.

    Values are assigned in Python so a flushed row never needs a
    refresh round-trip to read its own timestamps.

    Attributes:
        created_at: Timestamp of record creation
        updated_at: Timestamp of last update
    """

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utc_now,
        nullable=False,
    )

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utc_now,
        onupdate=utc_now,
        nullable=False,
    )
