# ==============================================================================
# MIGRATION TRACKER - Applied Units, History and Locking
# ==============================================================================
# Bookkeeping lives in the target database, written through its adapter
# ==============================================================================

from __future__ import annotations

import logging
import os
import socket
import uuid
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, List, Optional

from saas_data.core.exceptions import MigrationError, PersistenceError
from saas_data.core.settings import DatabaseTarget
from saas_data.database.adapters.base_adapter import BaseDatabaseAdapter, Record
from saas_data.utils.helpers import ensure_utc, generate_uuid, utc_now

logger = logging.getLogger(__name__)

MIGRATIONS_COLLECTION = "schema_migrations"
HISTORY_COLLECTION = "migration_history"
LOCKS_COLLECTION = "migration_locks"


def default_lock_owner() -> str:
    """Unique per call: host, pid and a random suffix."""
    return f"{socket.gethostname()}:{os.getpid()}:{uuid.uuid4().hex[:8]}"


def _ordered(records: List[Record]) -> List[Record]:
    return sorted(records, key=lambda r: (ensure_utc(r["executed_at"]), r["name"]))


class MigrationTracker:
    """
    Tracks applied migrations of one target.

    Attributes:
        adapter: Connected adapter of the target
        target: Database target
        lock_ttl: Seconds after which a held lock counts as abandoned
    """

    def __init__(
        self,
        adapter: BaseDatabaseAdapter,
        target: DatabaseTarget,
        lock_ttl: int = 900,
    ) -> None:
        self.adapter = adapter
        self.target = target
        self.lock_ttl = lock_ttl

    async def prepare(self) -> None:
        """Create the bookkeeping tables/collections if they don't exist."""
        await self.adapter.ensure_collections(
            [MIGRATIONS_COLLECTION, HISTORY_COLLECTION, LOCKS_COLLECTION]
        )
        logger.debug(f"Migration bookkeeping verified on {self.target.value}")

    # ==========================================================================
    # APPLIED UNITS
    # ==========================================================================

    async def get_executed(self) -> List[Record]:
        """Applied units, oldest first."""
        return _ordered(await self.adapter.get_all(MIGRATIONS_COLLECTION))

    async def mark_executed(self, name: str) -> None:
        await self.adapter.create(
            MIGRATIONS_COLLECTION,
            {"id": generate_uuid(), "name": name, "executed_at": utc_now()},
        )
        logger.info(f"Marked migration {name} as executed on {self.target.value}")

    async def unmark_executed(self, name: str) -> None:
        record = await self.adapter.find_one(MIGRATIONS_COLLECTION, {"name": name})
        if record is not None:
            await self.adapter.delete(MIGRATIONS_COLLECTION, record["id"])
            logger.info(f"Marked migration {name} as reverted on {self.target.value}")

    # ==========================================================================
    # HISTORY
    # ==========================================================================

    async def record_history(
        self,
        name: str,
        direction: str,
        status: str,
        duration_ms: float,
        error: Optional[str] = None,
    ) -> None:
        await self.adapter.create(
            HISTORY_COLLECTION,
            {
                "id": generate_uuid(),
                "name": name,
                "direction": direction,
                "status": status,
                "executed_at": utc_now(),
                "duration_ms": round(duration_ms, 3),
                "error": error,
            },
        )

    async def get_history(self) -> List[Record]:
        """Every attempt, oldest first."""
        return _ordered(await self.adapter.get_all(HISTORY_COLLECTION))

    # ==========================================================================
    # LOCKING
    # ==========================================================================

    async def acquire_lock(self, owner: str) -> None:
        """
        Take the target's advisory migration lock.

        A lock older than ``lock_ttl`` is taken over with a conditional
        write on the owner and acquisition time that were read, so two
        runners racing for the same stale lock cannot both win.

        Raises:
            MigrationError: If another runner holds a live lock, or won the
                takeover of a stale one
        """
        now = utc_now()
        record: Dict[str, Any] = {"id": self.target.value, "owner": owner, "acquired_at": now}
        try:
            await self.adapter.create(LOCKS_COLLECTION, record)
            logger.debug(f"Migration lock on {self.target.value} acquired by {owner}")
            return
        except PersistenceError:
            existing = await self.adapter.get_by_id(LOCKS_COLLECTION, self.target.value)

        if existing is None:
            await self.adapter.create(LOCKS_COLLECTION, record)
            return

        age = (now - ensure_utc(existing["acquired_at"])).total_seconds()
        if age <= self.lock_ttl:
            raise MigrationError(
                f"Migrations already running on {self.target.value} "
                f"(lock held by {existing['owner']})",
                database=self.target.value,
                details={"owner": existing["owner"]},
            )

        logger.warning(
            f"Taking over stale migration lock on {self.target.value} "
            f"held by {existing['owner']} for {age:.0f}s"
        )
        taken = await self.adapter.update_matching(
            LOCKS_COLLECTION,
            {
                "id": self.target.value,
                "owner": existing["owner"],
                "acquired_at": existing["acquired_at"],
            },
            {"owner": owner, "acquired_at": now},
        )
        if not taken:
            raise MigrationError(
                f"Stale migration lock on {self.target.value} was taken over "
                f"by another runner",
                database=self.target.value,
                details={"owner": existing["owner"]},
            )
        logger.debug(f"Migration lock on {self.target.value} acquired by {owner}")

    async def release_lock(self, owner: str) -> bool:
        """
        Release the lock if ``owner`` still holds it.

        Returns:
            False when the lock was taken over (or already gone)
        """
        released = await self.adapter.delete_matching(
            LOCKS_COLLECTION,
            {"id": self.target.value, "owner": owner},
        )
        if not released:
            logger.warning(
                f"Migration lock on {self.target.value} is no longer held by "
                f"{owner}; leaving it in place"
            )
            return False
        logger.debug(f"Migration lock on {self.target.value} released by {owner}")
        return True

    @asynccontextmanager
    async def lock(self, owner: Optional[str] = None) -> AsyncIterator[None]:
        owner = owner or default_lock_owner()
        await self.acquire_lock(owner)
        try:
            yield
        finally:
            await self.release_lock(owner)
