# ==============================================================================
# HELPER UTILITIES
# ==============================================================================
# Common utility functions used across the data layer
# ==============================================================================

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional
from uuid import uuid4


def generate_uuid() -> str:
    """Generate a new UUID string."""
    return str(uuid4())


def utc_now() -> datetime:
    """Get current UTC datetime."""
    return datetime.now(timezone.utc)


def ensure_utc(value: Optional[datetime]) -> Optional[datetime]:
    """
    Attach UTC to naive datetimes.

    Some drivers (SQLite) drop the offset on the way back; every value
    this layer writes is UTC, so a naive value is read as UTC.
    """
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value
