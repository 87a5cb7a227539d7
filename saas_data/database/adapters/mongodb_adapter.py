# ==============================================================================
# MONGODB ADAPTER - Motor Async Driver Implementation
# ==============================================================================
# Document-oriented database adapter with full async support
# Uses Motor for non-blocking MongoDB operations
# ==============================================================================

from __future__ import annotations

import functools
import logging
from contextlib import asynccontextmanager
from typing import (
    Any,
    AsyncIterator,
    Awaitable,
    Callable,
    Dict,
    Iterable,
    List,
    Optional,
    TypeVar,
)

from bson import ObjectId
from motor.motor_asyncio import (
    AsyncIOMotorClient,
    AsyncIOMotorClientSession,
    AsyncIOMotorDatabase,
)
from pymongo import ASCENDING, DESCENDING, ReturnDocument
from pymongo.errors import CollectionInvalid, PyMongoError

from saas_data.core.exceptions import (
    ConnectionUnavailableError,
    DatabaseError,
    PersistenceError,
)
from saas_data.core.settings import Settings, get_settings
from saas_data.database.adapters.base_adapter import BaseDatabaseAdapter, Record

logger = logging.getLogger(__name__)

F = TypeVar("F", bound=Callable[..., Awaitable[Any]])


def _translate_errors(func: F) -> F:
    """Re-raise driver failures as PersistenceError."""

    @functools.wraps(func)
    async def wrapper(self: "MongoDBAdapter", collection: str, *args: Any, **kwargs: Any) -> Any:
        try:
            return await func(self, collection, *args, **kwargs)
        except PyMongoError as e:
            logger.error(f"MongoDB {func.__name__} on '{collection}' failed: {e}")
            raise PersistenceError(
                f"{func.__name__} on '{collection}' failed: {e}",
                details={"collection": collection, "operation": func.__name__},
            ) from e

    return wrapper  # type: ignore[return-value]


class MongoDBAdapter(BaseDatabaseAdapter):
    """
    MongoDB database adapter using Motor async driver.

    Documents keep the entity's UUID string as ``_id``; records leave
    the adapter with it exposed as ``id``.

    Features:
        - Async MongoDB operations using Motor
        - ``_id`` <-> ``id`` mapping (legacy ObjectIds accepted on lookup)
        - Timezone-aware datetimes
        - Transaction support with session context

    Attributes:
        _connection_url: MongoDB connection string
        _database_name: Target database name
        _client: Motor async client
        _database: Target database instance

    Example:
        >>> adapter = MongoDBAdapter()
        >>> await adapter.connect()
        >>> doc = await adapter.create("users", {"id": "...", "email": "a@b.c"})
        >>> print(doc["id"])
    """

    def __init__(
        self,
        connection_url: Optional[str] = None,
        database_name: Optional[str] = None,
        settings: Optional[Settings] = None,
    ) -> None:
        """
        Initialize MongoDB adapter.

        Args:
            connection_url: MongoDB connection URI (defaults to settings)
            database_name: Database name (defaults to settings)
            settings: Settings supplying pool options
        """
        self._settings = settings or get_settings()
        self._connection_url = connection_url or self._settings.mongodb_url
        self._database_name = database_name or self._settings.MONGODB_DB
        self._client: Optional[AsyncIOMotorClient] = None
        self._database: Optional[AsyncIOMotorDatabase] = None

    # ==========================================================================
    # ID SERIALIZATION HELPERS
    # ==========================================================================

    @staticmethod
    def _serialize_id(document: Dict[str, Any]) -> Dict[str, Any]:
        """
        Expose ``_id`` as a string ``id``.

        Args:
            document: MongoDB document with _id

        Returns:
            Document with string id field
        """
        if document and "_id" in document:
            document["id"] = str(document.pop("_id"))
        return document

    @staticmethod
    def _deserialize_id(id_value: Any) -> Any:
        """
        Map an ``id`` onto its stored ``_id`` form.

        UUID strings are stored verbatim; only strings that are valid
        ObjectIds are converted.
        """
        if isinstance(id_value, str) and ObjectId.is_valid(id_value):
            return ObjectId(id_value)
        return id_value

    def _build_query(
        self,
        filters: Optional[Dict[str, Any]],
    ) -> Dict[str, Any]:
        """
        Build MongoDB query from filter dictionary.

        Handles id -> _id conversion; operator dictionaries ($gt, $in,
        etc.) pass through unchanged.
        """
        if not filters:
            return {}

        query = {}
        for key, value in filters.items():
            if key == "id":
                query["_id"] = self._deserialize_id(value)
            else:
                query[key] = value

        return query

    def _to_document(self, data: Dict[str, Any]) -> Dict[str, Any]:
        document = {k: v for k, v in data.items() if k != "id"}
        if data.get("id") is not None:
            document["_id"] = data["id"]
        return document

    # ==========================================================================
    # LIFECYCLE METHODS
    # ==========================================================================

    @property
    def is_connected(self) -> bool:
        return self._database is not None

    @property
    def database(self) -> AsyncIOMotorDatabase:
        """
        The live database handle.

        Raises:
            ConnectionUnavailableError: If not connected
        """
        if self._database is None:
            raise ConnectionUnavailableError(
                "MongoDB not connected. Call connect() first.",
                database="mongodb",
            )
        return self._database

    async def connect(self) -> None:
        """
        Initialize MongoDB connection.

        Creates Motor client, selects target database and verifies the
        server with ``ping``.

        Raises:
            DatabaseError: If the server cannot be reached
        """
        if self._client is not None:
            return

        client = AsyncIOMotorClient(
            self._connection_url,
            tz_aware=True,
            maxPoolSize=self._settings.DB_POOL_SIZE,
            minPoolSize=1,
            serverSelectionTimeoutMS=self._settings.DB_CONNECT_TIMEOUT * 1000,
        )
        try:
            await client.admin.command("ping")
        except Exception as e:
            client.close()
            logger.error(f"Failed to connect to MongoDB: {e}")
            raise DatabaseError(
                f"MongoDB connection failed: {e}",
                details={"database": self._database_name},
            ) from e

        self._client = client
        self._database = client[self._database_name]
        logger.info(f"MongoDB adapter connected to {self._database_name}")

    async def disconnect(self) -> None:
        """Close MongoDB connection."""
        if self._client is not None:
            client, self._client = self._client, None
            self._database = None
            client.close()
            logger.info("MongoDB adapter disconnected")

    async def health_check(self) -> bool:
        """
        Verify database connectivity.

        Returns:
            True if connection is healthy
        """
        if self._client is None:
            return False
        try:
            await self._client.admin.command("ping")
            return True
        except Exception as e:
            logger.warning(f"MongoDB health check failed: {e}")
            return False

    async def ensure_collections(self, collections: Iterable[str]) -> None:
        database = self.database
        existing = set(await database.list_collection_names())
        for name in collections:
            if name in existing:
                continue
            try:
                await database.create_collection(name)
                logger.info(f"Created collection '{name}'")
            except CollectionInvalid:
                logger.debug(f"Collection '{name}' created concurrently")

    # ==========================================================================
    # SESSION MANAGEMENT
    # ==========================================================================

    @asynccontextmanager
    async def session(self) -> AsyncIterator[AsyncIOMotorClientSession]:
        """
        Provide transactional session scope.

        MongoDB transactions require a replica set or sharded cluster.
        The transaction commits on clean exit and aborts otherwise.

        Yields:
            AsyncIOMotorClientSession instance

        Raises:
            ConnectionUnavailableError: If database not connected
            PersistenceError: If the transaction cannot start or commit
        """
        if self._client is None:
            raise ConnectionUnavailableError(
                "MongoDB not connected. Call connect() first.",
                database="mongodb",
            )

        try:
            async with await self._client.start_session() as session:
                async with session.start_transaction():
                    yield session
        except PyMongoError as e:
            raise PersistenceError(
                f"Transaction failed: {e}",
                details={"operation": "commit"},
            ) from e

    # ==========================================================================
    # CRUD OPERATIONS
    # ==========================================================================

    @_translate_errors
    async def create(
        self,
        collection: str,
        data: Dict[str, Any],
        session: Optional[AsyncIOMotorClientSession] = None,
    ) -> Record:
        """Create a new document."""
        document = self._to_document(data)
        result = await self.database[collection].insert_one(document, session=session)
        document["_id"] = result.inserted_id
        return self._serialize_id(document)

    @_translate_errors
    async def get_by_id(
        self,
        collection: str,
        id: Any,
        session: Optional[AsyncIOMotorClientSession] = None,
    ) -> Optional[Record]:
        """Retrieve document by ID."""
        document = await self.database[collection].find_one(
            {"_id": self._deserialize_id(id)},
            session=session,
        )
        return self._serialize_id(document) if document else None

    @_translate_errors
    async def get_all(
        self,
        collection: str,
        skip: int = 0,
        limit: Optional[int] = None,
        filters: Optional[Dict[str, Any]] = None,
        sort_by: Optional[str] = None,
        sort_order: str = "asc",
        session: Optional[AsyncIOMotorClientSession] = None,
    ) -> List[Record]:
        """Retrieve multiple documents with pagination."""
        query = self._build_query(filters)
        cursor = self.database[collection].find(query, session=session)

        if sort_by:
            field = "_id" if sort_by == "id" else sort_by
            direction = ASCENDING if sort_order.lower() == "asc" else DESCENDING
            cursor = cursor.sort(field, direction)

        if skip:
            cursor = cursor.skip(skip)
        if limit is not None:
            cursor = cursor.limit(limit)

        documents = await cursor.to_list(length=limit)
        return [self._serialize_id(doc) for doc in documents]

    @_translate_errors
    async def find_one(
        self,
        collection: str,
        filters: Dict[str, Any],
        session: Optional[AsyncIOMotorClientSession] = None,
    ) -> Optional[Record]:
        """Find a single document matching filters."""
        query = self._build_query(filters)
        document = await self.database[collection].find_one(query, session=session)
        return self._serialize_id(document) if document else None

    @_translate_errors
    async def update(
        self,
        collection: str,
        id: Any,
        data: Dict[str, Any],
        session: Optional[AsyncIOMotorClientSession] = None,
    ) -> Optional[Record]:
        """Update an existing document."""
        changes = {k: v for k, v in data.items() if k != "id"}

        result = await self.database[collection].find_one_and_update(
            {"_id": self._deserialize_id(id)},
            {"$set": changes},
            return_document=ReturnDocument.AFTER,
            session=session,
        )
        return self._serialize_id(result) if result else None

    @_translate_errors
    async def delete(
        self,
        collection: str,
        id: Any,
        session: Optional[AsyncIOMotorClientSession] = None,
    ) -> bool:
        """Delete a document by ID."""
        result = await self.database[collection].delete_one(
            {"_id": self._deserialize_id(id)},
            session=session,
        )
        return result.deleted_count > 0

    @_translate_errors
    async def update_matching(
        self,
        collection: str,
        filters: Dict[str, Any],
        data: Dict[str, Any],
        session: Optional[AsyncIOMotorClientSession] = None,
    ) -> int:
        """Single-document conditional ``$set``; returns the matched count."""
        changes = {k: v for k, v in data.items() if k != "id"}

        result = await self.database[collection].update_one(
            self._build_query(filters),
            {"$set": changes},
            session=session,
        )
        return result.matched_count

    @_translate_errors
    async def delete_matching(
        self,
        collection: str,
        filters: Dict[str, Any],
        session: Optional[AsyncIOMotorClientSession] = None,
    ) -> int:
        result = await self.database[collection].delete_one(
            self._build_query(filters),
            session=session,
        )
        return result.deleted_count

    # ==========================================================================
    # QUERY OPERATIONS
    # ==========================================================================

    @_translate_errors
    async def count(
        self,
        collection: str,
        filters: Optional[Dict[str, Any]] = None,
        session: Optional[AsyncIOMotorClientSession] = None,
    ) -> int:
        """Count documents matching filters."""
        query = self._build_query(filters)
        return await self.database[collection].count_documents(query, session=session)
