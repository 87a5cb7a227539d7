# ==============================================================================
# BASE DATABASE ADAPTER - Abstract Interface
# ==============================================================================
# Defines the contract for all database adapters
# Ensures consistent API across the relational and document targets
# ==============================================================================

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import (
    Any,
    AsyncContextManager,
    Dict,
    Iterable,
    List,
    Optional,
)

# Records cross the adapter boundary as plain dictionaries
Record = Dict[str, Any]


class BaseDatabaseAdapter(ABC):
    """
    Abstract Base Class for Database Adapters.

    Provides a unified interface for CRUD operations across different
    database backends. All concrete adapters must implement these methods
    to ensure consistent behavior.

    Every CRUD method accepts an optional ``session`` obtained from
    :meth:`session`. Without one, the call runs in its own short
    transaction; with one, it joins the caller's transaction.

    Design Pattern:
        Implements the Adapter Pattern to provide a uniform interface
        for heterogeneous database systems.

    Example:
        >>> adapter = SQLAdapter("sqlite+aiosqlite:///app.db")
        >>> await adapter.connect()
        >>> tenant = await adapter.create("tenants", {"name": "Acme", ...})
        >>> await adapter.disconnect()
    """

    # ==========================================================================
    # LIFECYCLE METHODS
    # ==========================================================================

    @property
    @abstractmethod
    def is_connected(self) -> bool:
        """True between a successful connect() and disconnect()."""

    @abstractmethod
    async def connect(self) -> None:
        """
        Establish database connection.

        Initializes the database engine/client and verifies it with a
        lightweight round trip. Must be called before any database operations.

        Raises:
            DatabaseError: If connection cannot be established
        """

    @abstractmethod
    async def disconnect(self) -> None:
        """
        Close database connection.

        Releases all connections in the pool and cleans up resources.
        Safe to call on an adapter that is not connected.
        """

    @abstractmethod
    async def health_check(self) -> bool:
        """
        Check if database connection is healthy.

        Returns:
            True if the check succeeded, False otherwise (never raises)
        """

    # ==========================================================================
    # SESSION MANAGEMENT
    # ==========================================================================

    @abstractmethod
    def session(self) -> AsyncContextManager[Any]:
        """
        Provide a transactional session scope.

        Changes are committed on successful exit or rolled back on
        exception, after which the exception propagates.

        Raises:
            ConnectionUnavailableError: If database is not connected

        Example:
            >>> async with adapter.session() as session:
            ...     await adapter.create("users", data, session=session)
        """

    @abstractmethod
    async def ensure_collections(self, collections: Iterable[str]) -> None:
        """
        Create the named tables/collections when they are missing.

        Args:
            collections: Table/collection names
        """

    # ==========================================================================
    # CRUD OPERATIONS
    # ==========================================================================

    @abstractmethod
    async def create(
        self,
        collection: str,
        data: Dict[str, Any],
        session: Optional[Any] = None,
    ) -> Record:
        """
        Create a new record.

        Args:
            collection: Table/collection name
            data: Record data, including its ``id``
            session: Optional shared session

        Returns:
            Created record

        Raises:
            PersistenceError: If creation fails (e.g. duplicate key)
        """

    @abstractmethod
    async def get_by_id(
        self,
        collection: str,
        id: Any,
        session: Optional[Any] = None,
    ) -> Optional[Record]:
        """
        Retrieve a record by its primary identifier.

        Returns:
            Record if found, None otherwise
        """

    @abstractmethod
    async def get_all(
        self,
        collection: str,
        skip: int = 0,
        limit: Optional[int] = None,
        filters: Optional[Dict[str, Any]] = None,
        sort_by: Optional[str] = None,
        sort_order: str = "asc",
        session: Optional[Any] = None,
    ) -> List[Record]:
        """
        Retrieve multiple records with pagination and filtering.

        Args:
            collection: Table/collection name
            skip: Number of records to skip (offset)
            limit: Maximum number of records to return (None for all)
            filters: Field-value pairs, combined with AND
            sort_by: Field name to sort by
            sort_order: Sort direction ("asc" or "desc")
            session: Optional shared session

        Returns:
            List of matching records
        """

    @abstractmethod
    async def find_one(
        self,
        collection: str,
        filters: Dict[str, Any],
        session: Optional[Any] = None,
    ) -> Optional[Record]:
        """
        Find a single record matching filters.

        Returns:
            First matching record, None if no match
        """

    @abstractmethod
    async def update(
        self,
        collection: str,
        id: Any,
        data: Dict[str, Any],
        session: Optional[Any] = None,
    ) -> Optional[Record]:
        """
        Update an existing record.

        Args:
            collection: Table/collection name
            id: Primary key of record to update
            data: Fields to update (partial update supported)
            session: Optional shared session

        Returns:
            Updated record if found, None if it does not exist
        """

    @abstractmethod
    async def delete(
        self,
        collection: str,
        id: Any,
        session: Optional[Any] = None,
    ) -> bool:
        """
        Delete a record by ID.

        Returns:
            True if deleted, False if not found
        """

    @abstractmethod
    async def update_matching(
        self,
        collection: str,
        filters: Dict[str, Any],
        data: Dict[str, Any],
        session: Optional[Any] = None,
    ) -> int:
        """
        Update the record matching every filter, in a single statement.

        The filters are evaluated and the write applied atomically, so the
        call doubles as a compare-and-set on the filtered fields.

        Args:
            collection: Table/collection name
            filters: Field-value pairs, combined with AND
            data: Fields to update
            session: Optional shared session

        Returns:
            Number of records updated (0 when nothing matched)
        """

    @abstractmethod
    async def delete_matching(
        self,
        collection: str,
        filters: Dict[str, Any],
        session: Optional[Any] = None,
    ) -> int:
        """
        Delete the record matching every filter, in a single statement.

        Returns:
            Number of records deleted (0 when nothing matched)
        """

    # ==========================================================================
    # QUERY OPERATIONS
    # ==========================================================================

    @abstractmethod
    async def count(
        self,
        collection: str,
        filters: Optional[Dict[str, Any]] = None,
        session: Optional[Any] = None,
    ) -> int:
        """
        Count records matching filters.

        Returns:
            Number of matching records
        """
