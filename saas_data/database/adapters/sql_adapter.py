# ==============================================================================
# SQL ADAPTER - SQLAlchemy Async Implementation
# ==============================================================================
# Relational adapter for PostgreSQL (asyncpg) and SQLite (aiosqlite)
# Records are mapped through registered declarative models
# ==============================================================================

from __future__ import annotations

import functools
import json
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
    Type,
    TypeVar,
)

from sqlalchemy import and_, delete, func, select, text, update
from sqlalchemy.engine import make_url
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from saas_data.core.exceptions import (
    ConnectionUnavailableError,
    DatabaseError,
    PersistenceError,
    ValidationError,
)
from saas_data.core.settings import Settings, get_settings
from saas_data.database.adapters.base_adapter import BaseDatabaseAdapter, Record
from saas_data.domain_models.base import SQLBase

logger = logging.getLogger(__name__)

F = TypeVar("F", bound=Callable[..., Awaitable[Any]])


def _translate_errors(func: F) -> F:
    """Re-raise SQLAlchemy failures as PersistenceError."""

    @functools.wraps(func)
    async def wrapper(self: "SQLAdapter", collection: str, *args: Any, **kwargs: Any) -> Any:
        try:
            return await func(self, collection, *args, **kwargs)
        except SQLAlchemyError as e:
            logger.error(f"SQL {func.__name__} on '{collection}' failed: {e}")
            raise PersistenceError(
                f"{func.__name__} on '{collection}' failed: {e}",
                details={"collection": collection, "operation": func.__name__},
            ) from e

    return wrapper  # type: ignore[return-value]


def _json_serializer(value: Any) -> str:
    return json.dumps(value, default=str)


class SQLAdapter(BaseDatabaseAdapter):
    """
    Relational database adapter using SQLAlchemy async.

    Works against any async SQLAlchemy URL. PostgreSQL (asyncpg) is the
    production driver; SQLite (aiosqlite) backs local runs and tests.

    Features:
        - Connection pooling with pre-ping
        - Model registry keyed by table name
        - Optional schema creation on connect
        - Shared sessions for unit-of-work transactions

    Attributes:
        _database_url: Async connection URL
        _engine: SQLAlchemy async engine
        _session_factory: Session factory for creating sessions
        _model_registry: Mapping of collection names to model classes

    Example:
        >>> adapter = SQLAdapter("sqlite+aiosqlite:///./app.db")
        >>> adapter.register_model("tenants", TenantModel)
        >>> await adapter.connect()
    """

    def __init__(
        self,
        database_url: Optional[str] = None,
        settings: Optional[Settings] = None,
    ) -> None:
        """
        Initialize SQL adapter.

        Args:
            database_url: Async connection URL (defaults to settings.postgres_url)
            settings: Settings supplying pool and schema options
        """
        self._settings = settings or get_settings()
        self._database_url = database_url or self._settings.postgres_url
        self._engine: Optional[AsyncEngine] = None
        self._session_factory: Optional[async_sessionmaker[AsyncSession]] = None
        self._model_registry: Dict[str, Type[SQLBase]] = {}

    # ==========================================================================
    # MODEL REGISTRY
    # ==========================================================================

    def register_model(self, name: str, model: Type[SQLBase]) -> None:
        """
        Register a SQLAlchemy model for table mapping.

        Args:
            name: Collection/table identifier
            model: SQLAlchemy model class
        """
        self._model_registry[name] = model
        logger.debug(f"Registered model '{name}' -> {model.__name__}")

    def _get_model(self, collection: str) -> Type[SQLBase]:
        """
        Get registered model by collection name.

        Raises:
            ValidationError: If model not registered
        """
        if collection not in self._model_registry:
            raise ValidationError(
                f"Model '{collection}' not registered",
                errors={"available": sorted(self._model_registry)},
            )
        return self._model_registry[collection]

    @staticmethod
    def _column(model: Type[SQLBase], field: str) -> Any:
        if field not in model.__table__.columns:
            raise ValidationError(
                f"Unknown field '{field}' for '{model.__tablename__}'",
                errors={"field": field},
            )
        return getattr(model, field)

    def _conditions(self, model: Type[SQLBase], filters: Optional[Dict[str, Any]]) -> List[Any]:
        return [
            self._column(model, key) == value
            for key, value in (filters or {}).items()
        ]

    # ==========================================================================
    # LIFECYCLE METHODS
    # ==========================================================================

    @property
    def is_connected(self) -> bool:
        return self._engine is not None

    @property
    def engine(self) -> AsyncEngine:
        """
        The live engine.

        Raises:
            ConnectionUnavailableError: If not connected
        """
        if self._engine is None:
            raise ConnectionUnavailableError(
                "SQL database not connected. Call connect() first.",
                database="postgresql",
            )
        return self._engine

    @property
    def safe_url(self) -> str:
        """Connection URL with the password masked."""
        return make_url(self._database_url).render_as_string(hide_password=True)

    async def connect(self) -> None:
        """
        Initialize the engine and verify it with ``SELECT 1``.

        Creates every registered table first when DB_AUTO_CREATE_SCHEMA
        is enabled.

        Raises:
            DatabaseError: If the database cannot be reached
        """
        if self._engine is not None:
            return

        engine_kwargs: Dict[str, Any] = {
            "echo": self._settings.DEBUG,
            "pool_pre_ping": True,
            "json_serializer": _json_serializer,
        }
        if self._database_url.startswith("sqlite"):
            engine_kwargs["connect_args"] = {"check_same_thread": False}
        else:
            engine_kwargs.update(
                pool_size=self._settings.DB_POOL_SIZE,
                max_overflow=self._settings.DB_MAX_OVERFLOW,
                pool_timeout=self._settings.DB_POOL_TIMEOUT,
                pool_recycle=self._settings.DB_POOL_RECYCLE,
            )

        engine = create_async_engine(self._database_url, **engine_kwargs)
        try:
            async with engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
            if self._settings.DB_AUTO_CREATE_SCHEMA:
                async with engine.begin() as conn:
                    await conn.run_sync(SQLBase.metadata.create_all)
        except Exception as e:
            await engine.dispose()
            logger.error(f"Failed to connect to {self.safe_url}: {e}")
            raise DatabaseError(
                f"SQL connection failed: {e}",
                details={"url": self.safe_url},
            ) from e

        self._engine = engine
        self._session_factory = async_sessionmaker(
            bind=engine,
            class_=AsyncSession,
            expire_on_commit=False,
            autoflush=False,
        )
        logger.info(f"SQL adapter connected to {self.safe_url}")

    async def disconnect(self) -> None:
        """Close database connections and dispose engine."""
        if self._engine is not None:
            engine, self._engine = self._engine, None
            self._session_factory = None
            await engine.dispose()
            logger.info("SQL adapter disconnected")

    async def health_check(self) -> bool:
        """
        Verify database connectivity.

        Returns:
            True if connection is healthy
        """
        if self._engine is None:
            return False
        try:
            async with self._engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
            return True
        except Exception as e:
            logger.warning(f"SQL health check failed: {e}")
            return False

    async def ensure_collections(self, collections: Iterable[str]) -> None:
        tables = [self._get_model(name).__table__ for name in collections]
        async with self.engine.begin() as conn:
            await conn.run_sync(
                lambda sync_conn: SQLBase.metadata.create_all(
                    sync_conn, tables=tables, checkfirst=True
                )
            )

    # ==========================================================================
    # SESSION MANAGEMENT
    # ==========================================================================

    @asynccontextmanager
    async def session(self) -> AsyncIterator[AsyncSession]:
        """
        Provide transactional session scope.

        Commits on successful exit, rolls back on exception.

        Yields:
            AsyncSession instance

        Raises:
            ConnectionUnavailableError: If database not connected
            PersistenceError: If the commit fails
        """
        if self._session_factory is None:
            raise ConnectionUnavailableError(
                "SQL database not connected. Call connect() first.",
                database="postgresql",
            )

        session: AsyncSession = self._session_factory()
        try:
            yield session
            await session.commit()
        except SQLAlchemyError as e:
            await session.rollback()
            raise PersistenceError(
                f"Transaction failed: {e}",
                details={"operation": "commit"},
            ) from e
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()

    @asynccontextmanager
    async def _scope(self, session: Optional[AsyncSession]) -> AsyncIterator[AsyncSession]:
        """Join the caller's session, or run in a fresh one."""
        if session is not None:
            yield session
        else:
            async with self.session() as own:
                yield own

    # ==========================================================================
    # CRUD OPERATIONS
    # ==========================================================================

    @_translate_errors
    async def create(
        self,
        collection: str,
        data: Dict[str, Any],
        session: Optional[AsyncSession] = None,
    ) -> Record:
        """Create a new record."""
        model = self._get_model(collection)
        values = {key: value for key, value in data.items() if key in model.__table__.columns}

        async with self._scope(session) as s:
            instance = model(**values)
            s.add(instance)
            await s.flush()
            return instance.to_dict()

    @_translate_errors
    async def get_by_id(
        self,
        collection: str,
        id: Any,
        session: Optional[AsyncSession] = None,
    ) -> Optional[Record]:
        """Retrieve record by primary key."""
        model = self._get_model(collection)

        async with self._scope(session) as s:
            instance = await s.get(model, id)
            return instance.to_dict() if instance is not None else None

    @_translate_errors
    async def get_all(
        self,
        collection: str,
        skip: int = 0,
        limit: Optional[int] = None,
        filters: Optional[Dict[str, Any]] = None,
        sort_by: Optional[str] = None,
        sort_order: str = "asc",
        session: Optional[AsyncSession] = None,
    ) -> List[Record]:
        """Retrieve multiple records with pagination and filtering."""
        model = self._get_model(collection)
        query = select(model)

        conditions = self._conditions(model, filters)
        if conditions:
            query = query.where(and_(*conditions))

        if sort_by:
            order_column = self._column(model, sort_by)
            if sort_order.lower() == "desc":
                order_column = order_column.desc()
            query = query.order_by(order_column)

        if skip:
            query = query.offset(skip)
        if limit is not None:
            query = query.limit(limit)

        async with self._scope(session) as s:
            result = await s.execute(query)
            return [instance.to_dict() for instance in result.scalars().all()]

    @_translate_errors
    async def find_one(
        self,
        collection: str,
        filters: Dict[str, Any],
        session: Optional[AsyncSession] = None,
    ) -> Optional[Record]:
        """Find a single record matching filters."""
        results = await self.get_all(
            collection,
            limit=1,
            filters=filters,
            session=session,
        )
        return results[0] if results else None

    @_translate_errors
    async def update(
        self,
        collection: str,
        id: Any,
        data: Dict[str, Any],
        session: Optional[AsyncSession] = None,
    ) -> Optional[Record]:
        """Update an existing record."""
        model = self._get_model(collection)

        async with self._scope(session) as s:
            instance = await s.get(model, id)
            if instance is None:
                return None

            for key, value in data.items():
                if key != "id" and key in model.__table__.columns:
                    setattr(instance, key, value)

            await s.flush()
            return instance.to_dict()

    @_translate_errors
    async def delete(
        self,
        collection: str,
        id: Any,
        session: Optional[AsyncSession] = None,
    ) -> bool:
        """Delete a record by ID."""
        model = self._get_model(collection)

        async with self._scope(session) as s:
            instance = await s.get(model, id)
            if instance is None:
                return False

            await s.delete(instance)
            await s.flush()
            return True

    @_translate_errors
    async def update_matching(
        self,
        collection: str,
        filters: Dict[str, Any],
        data: Dict[str, Any],
        session: Optional[AsyncSession] = None,
    ) -> int:
        """Conditional ``UPDATE ... WHERE``; returns the affected row count."""
        model = self._get_model(collection)
        values = {
            key: value
            for key, value in data.items()
            if key != "id" and key in model.__table__.columns
        }
        statement = (
            update(model)
            .where(and_(*self._conditions(model, filters)))
            .values(**values)
            .execution_options(synchronize_session=False)
        )

        async with self._scope(session) as s:
            result = await s.execute(statement)
            return result.rowcount

    @_translate_errors
    async def delete_matching(
        self,
        collection: str,
        filters: Dict[str, Any],
        session: Optional[AsyncSession] = None,
    ) -> int:
        """Conditional ``DELETE ... WHERE``; returns the affected row count."""
        model = self._get_model(collection)
        statement = (
            delete(model)
            .where(and_(*self._conditions(model, filters)))
            .execution_options(synchronize_session=False)
        )

        async with self._scope(session) as s:
            result = await s.execute(statement)
            return result.rowcount

    # ==========================================================================
    # QUERY OPERATIONS
    # ==========================================================================

    @_translate_errors
    async def count(
        self,
        collection: str,
        filters: Optional[Dict[str, Any]] = None,
        session: Optional[AsyncSession] = None,
    ) -> int:
        """Count records matching filters."""
        model = self._get_model(collection)
        query = select(func.count()).select_from(model)

        conditions = self._conditions(model, filters)
        if conditions:
            query = query.where(and_(*conditions))

        async with self._scope(session) as s:
            result = await s.execute(query)
            return result.scalar() or 0
