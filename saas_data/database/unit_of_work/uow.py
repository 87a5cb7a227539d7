# ==============================================================================
# UNIT OF WORK - Transaction Coordination
# ==============================================================================
# Manages transactional boundaries across multiple repositories
# Ensures atomic operations and data consistency
# ==============================================================================

from __future__ import annotations

import logging
from typing import (
    Any,
    AsyncContextManager,
    Dict,
    List,
    Mapping,
    Optional,
    Type,
    TypeVar,
    Union,
)

from pydantic import BaseModel

from saas_data.core.settings import DatabaseTarget
from saas_data.database.adapters.base_adapter import BaseDatabaseAdapter
from saas_data.database.repositories.base_repository import EntityRepository
from saas_data.schemas.base import EntitySchema, FindOptions

logger = logging.getLogger(__name__)

EntityT = TypeVar("EntityT", bound=EntitySchema)


class UnitOfWork:
    """
    Concrete Unit of Work implementation.

    Opens one session on the adapter and binds every repository it hands
    out to that session, so all operations share a single transaction.
    The transaction commits on clean exit; on exception it is rolled back
    before the exception propagates.

    Attributes:
        _adapter: Database adapter for operations
        _target: Database target the adapter serves
        _repositories: Repositories created within this unit
        _session: Active database session

    Example:
        >>> async with UnitOfWork(adapter, DatabaseTarget.POSTGRESQL) as uow:
        ...     tenant = await uow.create(Tenant, tenant_data)
        ...     await uow.create(User, {**user_data, "tenant_id": tenant.id})
        ...     # Commits automatically on successful exit
    """

    def __init__(
        self,
        adapter: BaseDatabaseAdapter,
        target: DatabaseTarget,
    ) -> None:
        """
        Initialize Unit of Work.

        Args:
            adapter: Connected database adapter
            target: Target the adapter serves (for logging)
        """
        self._adapter = adapter
        self._target = target
        self._repositories: Dict[Type[EntitySchema], EntityRepository[Any]] = {}
        self._scope: Optional[AsyncContextManager[Any]] = None
        self._session: Any = None

    @property
    def target(self) -> DatabaseTarget:
        return self._target

    @property
    def session(self) -> Any:
        """The live session shared by this unit's repositories."""
        if self._scope is None:
            raise RuntimeError("Unit of work is not active. Use 'async with'.")
        return self._session

    @property
    def is_active(self) -> bool:
        """Check if unit of work has an active session."""
        return self._scope is not None

    # ==========================================================================
    # CONTEXT MANAGEMENT
    # ==========================================================================

    async def __aenter__(self) -> "UnitOfWork":
        """
        Enter transactional context.

        Starts a new database session/transaction.

        Returns:
            Self for context manager usage
        """
        scope = self._adapter.session()
        self._session = await scope.__aenter__()
        self._scope = scope
        logger.debug(f"Unit of work started on {self._target.value}")
        return self

    async def __aexit__(
        self,
        exc_type: Optional[Type[BaseException]],
        exc_val: Optional[BaseException],
        exc_tb: Any,
    ) -> bool:
        """
        Exit transactional context.

        Commits on successful exit, rolls back on exception. Never
        suppresses the exception.
        """
        scope, self._scope = self._scope, None
        self._session = None
        self._repositories.clear()

        if exc_type is not None:
            logger.warning(
                f"Unit of work on {self._target.value} rolled back: {exc_val}"
            )
        if scope is not None:
            await scope.__aexit__(exc_type, exc_val, exc_tb)
        return False

    # ==========================================================================
    # REPOSITORY ACCESS
    # ==========================================================================

    def repository(self, entity_kind: Type[EntityT]) -> EntityRepository[EntityT]:
        """
        Repository for an entity kind bound to this unit's session.

        Args:
            entity_kind: Entity class

        Returns:
            Session-bound repository (one per kind per unit)
        """
        session = self.session
        if entity_kind not in self._repositories:
            self._repositories[entity_kind] = EntityRepository(
                self._adapter,
                entity_kind,
                session=session,
            )
        return self._repositories[entity_kind]

    # ==========================================================================
    # ENTITY OPERATIONS
    # ==========================================================================

    async def create(
        self,
        entity_kind: Type[EntityT],
        data: Union[Mapping[str, Any], BaseModel],
    ) -> EntityT:
        return await self.repository(entity_kind).create(data)

    async def find_one(
        self,
        entity_kind: Type[EntityT],
        filters: Mapping[str, Any],
    ) -> Optional[EntityT]:
        return await self.repository(entity_kind).find_one(filters)

    async def find(
        self,
        entity_kind: Type[EntityT],
        filters: Optional[Mapping[str, Any]] = None,
        options: Optional[FindOptions] = None,
    ) -> List[EntityT]:
        return await self.repository(entity_kind).find(filters, options)

    async def update(self, entity: EntityT) -> EntityT:
        return await self.repository(type(entity)).update(entity)

    async def remove(self, entity: EntitySchema) -> None:
        await self.repository(type(entity)).remove(entity)

    async def count(
        self,
        entity_kind: Type[EntityT],
        filters: Optional[Mapping[str, Any]] = None,
    ) -> int:
        return await self.repository(entity_kind).count(filters)
