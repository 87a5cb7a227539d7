# ==============================================================================
# ENTITY MANAGER SERVICE - Target-Aware Entity Access
# ==============================================================================
# Single entry point for entity CRUD on either database target
# ==============================================================================

from __future__ import annotations

import logging
from typing import (
    Any,
    Awaitable,
    Callable,
    List,
    Mapping,
    Optional,
    Type,
    TypeVar,
    Union,
)

from pydantic import BaseModel

from saas_data.core.settings import DatabaseTarget
from saas_data.database.connection_manager import ConnectionManager, TargetLike
from saas_data.database.repositories.base_repository import EntityRepository
from saas_data.database.unit_of_work.uow import UnitOfWork
from saas_data.schemas.base import EntitySchema, FindOptions

logger = logging.getLogger(__name__)

EntityT = TypeVar("EntityT", bound=EntitySchema)
R = TypeVar("R")


class EntityManagerService:
    """
    Entity access façade over the connection registry.

    Every operation names its database target explicitly and runs on that
    target's live handle. Failures are logged with their context and
    re-raised unchanged.

    Attributes:
        _connections: Connection registry supplying handles

    Example:
        >>> service = EntityManagerService(manager)
        >>> tenant = await service.create("postgresql", Tenant, data)
        >>> await service.count(DatabaseTarget.POSTGRESQL, Tenant)
        1
    """

    def __init__(self, connections: ConnectionManager) -> None:
        self._connections = connections

    def get_repository(
        self,
        target: TargetLike,
        entity_kind: Type[EntityT],
    ) -> EntityRepository[EntityT]:
        """
        Repository for an entity kind on a target.

        Raises:
            ConnectionUnavailableError: If the target has no live handle
        """
        return self._connections.get_repository(target, entity_kind)

    def _log_failure(
        self,
        operation: str,
        target: TargetLike,
        entity_kind: Optional[Type[EntitySchema]],
        error: Exception,
    ) -> None:
        kind = entity_kind.__name__ if entity_kind else "-"
        logger.error(
            f"{operation} failed on {getattr(target, 'value', target)} "
            f"for {kind}: {error}"
        )

    # ==========================================================================
    # CRUD OPERATIONS
    # ==========================================================================

    async def create(
        self,
        target: TargetLike,
        entity_kind: Type[EntityT],
        data: Union[Mapping[str, Any], BaseModel],
    ) -> EntityT:
        """
        Persist a new entity.

        Args:
            target: Database target
            entity_kind: Entity class
            data: Entity fields

        Returns:
            Entity with a fresh id and equal created_at / updated_at

        Raises:
            ValidationError: If data is invalid
            PersistenceError: If the store rejects the write
        """
        try:
            entity = await self.get_repository(target, entity_kind).create(data)
        except Exception as e:
            self._log_failure("create", target, entity_kind, e)
            raise
        logger.debug(f"Created {entity_kind.__name__} {entity.id}")
        return entity

    async def find_one(
        self,
        target: TargetLike,
        entity_kind: Type[EntityT],
        filters: Mapping[str, Any],
    ) -> Optional[EntityT]:
        """
        First entity matching every filter, or None.
        """
        try:
            return await self.get_repository(target, entity_kind).find_one(filters)
        except Exception as e:
            self._log_failure("find_one", target, entity_kind, e)
            raise

    async def find(
        self,
        target: TargetLike,
        entity_kind: Type[EntityT],
        filters: Optional[Mapping[str, Any]] = None,
        options: Optional[FindOptions] = None,
    ) -> List[EntityT]:
        """
        Entities matching filters, paginated and ordered by ``options``.
        """
        try:
            return await self.get_repository(target, entity_kind).find(filters, options)
        except Exception as e:
            self._log_failure("find", target, entity_kind, e)
            raise

    async def update(self, target: TargetLike, entity: EntityT) -> EntityT:
        """
        Write an entity's mutable fields back and stamp ``updated_at``.

        Raises:
            PersistenceError: If the entity no longer exists
        """
        entity_kind = type(entity)
        try:
            return await self.get_repository(target, entity_kind).update(entity)
        except Exception as e:
            self._log_failure("update", target, entity_kind, e)
            raise

    async def remove(self, target: TargetLike, entity: EntitySchema) -> None:
        """
        Delete an entity.

        Raises:
            NotFoundError: If it was already deleted
        """
        entity_kind = type(entity)
        try:
            await self.get_repository(target, entity_kind).remove(entity)
        except Exception as e:
            self._log_failure("remove", target, entity_kind, e)
            raise

    async def count(
        self,
        target: TargetLike,
        entity_kind: Type[EntityT],
        filters: Optional[Mapping[str, Any]] = None,
    ) -> int:
        try:
            return await self.get_repository(target, entity_kind).count(filters)
        except Exception as e:
            self._log_failure("count", target, entity_kind, e)
            raise

    # ==========================================================================
    # TRANSACTIONS
    # ==========================================================================

    async def transaction(
        self,
        target: TargetLike,
        work: Callable[[UnitOfWork], Awaitable[R]],
    ) -> R:
        """
        Run ``work`` inside one transaction on a target.

        Everything ``work`` does through the unit of work it receives is
        committed together when it returns, or rolled back before its
        exception propagates.

        Args:
            target: Database target
            work: Coroutine function taking the UnitOfWork

        Returns:
            Whatever ``work`` returns

        Example:
            >>> async def onboard(uow):
            ...     tenant = await uow.create(Tenant, tenant_data)
            ...     return await uow.create(User, {**user_data, "tenant_id": tenant.id})
            >>> user = await service.transaction("postgresql", onboard)
        """
        try:
            target = DatabaseTarget.parse(target)
            adapter = self._connections.get_connection(target)
            async with UnitOfWork(adapter, target) as uow:
                return await work(uow)
        except Exception as e:
            self._log_failure("transaction", target, None, e)
            raise
