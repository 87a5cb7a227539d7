# ==============================================================================
# CONFTEST - Pytest Fixtures and Configuration
# ==============================================================================
# Shared fixtures for all tests
# The relational target runs on a temporary SQLite file through SQLAdapter;
# the document target runs on an in-memory adapter with the same contract
# ==============================================================================

from __future__ import annotations

import copy
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, AsyncGenerator, AsyncIterator, Dict, Iterable, List, Optional

import pytest
import pytest_asyncio

from saas_data.core.exceptions import (
    ConnectionUnavailableError,
    DatabaseError,
    PersistenceError,
)
from saas_data.core.settings import DatabaseTarget, Settings
from saas_data.database.adapters.base_adapter import BaseDatabaseAdapter, Record
from saas_data.database.connection_manager import ConnectionManager
from saas_data.database.factory import DatabaseFactory


# ==============================================================================
# IN-MEMORY DOCUMENT ADAPTER
# ==============================================================================

class InMemoryDocumentAdapter(BaseDatabaseAdapter):
    """
    Dictionary-backed adapter for the document target.

    Sessions snapshot every collection and restore it when the block
    raises, which gives unit-of-work tests real rollback semantics.
    """

    def __init__(
        self,
        fail_connect: bool = False,
        fail_disconnect: bool = False,
    ) -> None:
        self.fail_connect = fail_connect
        self.fail_disconnect = fail_disconnect
        self.healthy = True
        self.connect_calls = 0
        self.disconnect_calls = 0
        self._connected = False
        self._collections: Dict[str, Dict[str, Record]] = {}
        # stands in for the Motor database handed to migration units
        self.database: Dict[str, Any] = {}

    # ==========================================================================
    # LIFECYCLE
    # ==========================================================================

    @property
    def is_connected(self) -> bool:
        return self._connected

    async def connect(self) -> None:
        self.connect_calls += 1
        if self.fail_connect:
            raise DatabaseError("in-memory connect refused")
        self._connected = True

    async def disconnect(self) -> None:
        self.disconnect_calls += 1
        self._connected = False
        if self.fail_disconnect:
            raise DatabaseError("in-memory disconnect failed")

    async def health_check(self) -> bool:
        return self._connected and self.healthy

    def _require(self, collection: str) -> Dict[str, Record]:
        if not self._connected:
            raise ConnectionUnavailableError("not connected", database="mongodb")
        return self._collections.setdefault(collection, {})

    @asynccontextmanager
    async def session(self) -> AsyncIterator[Any]:
        if not self._connected:
            raise ConnectionUnavailableError("not connected", database="mongodb")
        snapshot = copy.deepcopy(self._collections)
        try:
            yield object()
        except Exception:
            self._collections = snapshot
            raise

    async def ensure_collections(self, collections: Iterable[str]) -> None:
        for name in collections:
            self._require(name)

    # ==========================================================================
    # CRUD
    # ==========================================================================

    @staticmethod
    def _matches(record: Record, filters: Optional[Dict[str, Any]]) -> bool:
        return all(record.get(key) == value for key, value in (filters or {}).items())

    async def create(self, collection: str, data: Dict[str, Any], session: Any = None) -> Record:
        records = self._require(collection)
        if data["id"] in records:
            raise PersistenceError(
                f"duplicate id {data['id']}",
                details={"collection": collection},
            )
        records[data["id"]] = copy.deepcopy(dict(data))
        return copy.deepcopy(records[data["id"]])

    async def get_by_id(self, collection: str, id: Any, session: Any = None) -> Optional[Record]:
        record = self._require(collection).get(id)
        return copy.deepcopy(record) if record is not None else None

    async def get_all(
        self,
        collection: str,
        skip: int = 0,
        limit: Optional[int] = None,
        filters: Optional[Dict[str, Any]] = None,
        sort_by: Optional[str] = None,
        sort_order: str = "asc",
        session: Any = None,
    ) -> List[Record]:
        records = [r for r in self._require(collection).values() if self._matches(r, filters)]
        if sort_by:
            records.sort(
                key=lambda r: (r.get(sort_by) is None, r.get(sort_by)),
                reverse=sort_order == "desc",
            )
        records = records[skip:]
        if limit is not None:
            records = records[:limit]
        return copy.deepcopy(records)

    async def find_one(self, collection: str, filters: Dict[str, Any], session: Any = None) -> Optional[Record]:
        results = await self.get_all(collection, limit=1, filters=filters)
        return results[0] if results else None

    async def update(
        self,
        collection: str,
        id: Any,
        data: Dict[str, Any],
        session: Any = None,
    ) -> Optional[Record]:
        records = self._require(collection)
        if id not in records:
            return None
        records[id].update({k: copy.deepcopy(v) for k, v in data.items() if k != "id"})
        return copy.deepcopy(records[id])

    async def delete(self, collection: str, id: Any, session: Any = None) -> bool:
        return self._require(collection).pop(id, None) is not None

    async def update_matching(
        self,
        collection: str,
        filters: Dict[str, Any],
        data: Dict[str, Any],
        session: Any = None,
    ) -> int:
        for record in self._require(collection).values():
            if self._matches(record, filters):
                record.update({k: copy.deepcopy(v) for k, v in data.items() if k != "id"})
                return 1
        return 0

    async def delete_matching(self, collection: str, filters: Dict[str, Any], session: Any = None) -> int:
        records = self._require(collection)
        for key, record in list(records.items()):
            if self._matches(record, filters):
                del records[key]
                return 1
        return 0

    async def count(self, collection: str, filters: Optional[Dict[str, Any]] = None, session: Any = None) -> int:
        return len([r for r in self._require(collection).values() if self._matches(r, filters)])


# ==============================================================================
# SETTINGS FIXTURES
# ==============================================================================

def make_settings(tmp_path: Path, **overrides: Any) -> Settings:
    """Settings isolated from the environment's .env file."""
    values: Dict[str, Any] = {
        "POSTGRES_URL": f"sqlite+aiosqlite:///{tmp_path / 'test.db'}",
        "MIGRATIONS_PATH": str(tmp_path / "migrations"),
        "MIGRATIONS_TIMEOUT": 30,
        "DB_AUTO_CREATE_SCHEMA": True,
        "LOG_LEVEL": "DEBUG",
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


@pytest.fixture
def test_settings(tmp_path: Path) -> Settings:
    """Settings with entity tables created on connect."""
    return make_settings(tmp_path)


@pytest.fixture
def document_adapter() -> InMemoryDocumentAdapter:
    return InMemoryDocumentAdapter()


# ==============================================================================
# CONNECTION FIXTURES
# ==============================================================================

async def open_connections(
    settings: Settings,
    document_adapter: InMemoryDocumentAdapter,
) -> ConnectionManager:
    manager = ConnectionManager(
        settings,
        adapters={
            DatabaseTarget.POSTGRESQL: DatabaseFactory.create_adapter(
                DatabaseTarget.POSTGRESQL, settings
            ),
            DatabaseTarget.MONGODB: document_adapter,
        },
    )
    await manager.initialize()
    return manager


@pytest_asyncio.fixture
async def connections(
    test_settings: Settings,
    document_adapter: InMemoryDocumentAdapter,
) -> AsyncGenerator[ConnectionManager, None]:
    """Initialized connection manager (SQLite + in-memory documents)."""
    manager = await open_connections(test_settings, document_adapter)
    yield manager
    await manager.shutdown()


# ==============================================================================
# HELPER FIXTURES
# ==============================================================================

@pytest.fixture
def tenant_data() -> dict:
    return {
        "name": "Acme",
        "domain": "acme.example.com",
        "type": "enterprise",
        "created_by": "00000000-0000-0000-0000-000000000001",
        "config": {"max_users": 50, "features": ["sso"]},
    }


@pytest.fixture
def user_data() -> dict:
    return {
        "username": "alice",
        "email": "alice@example.com",
        "password_hash": "not-a-real-hash",
        "type": "tenant_user",
        "permissions": ["read"],
    }
