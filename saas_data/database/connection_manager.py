# ==============================================================================
# CONNECTION MANAGER - Database Handle Registry
# ==============================================================================
# Owns exactly one live adapter per database target
# Fail-fast initialization, concurrent health checks, best-effort shutdown
# ==============================================================================

from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, Mapping, Optional, Type, TypeVar, Union

from saas_data.core.exceptions import (
    ConnectionUnavailableError,
    InitializationError,
)
from saas_data.core.settings import DatabaseTarget, Settings, get_settings
from saas_data.database.adapters.base_adapter import BaseDatabaseAdapter
from saas_data.database.factory import DatabaseFactory
from saas_data.database.repositories.base_repository import EntityRepository
from saas_data.schemas.base import EntitySchema

logger = logging.getLogger(__name__)

EntityT = TypeVar("EntityT", bound=EntitySchema)

TargetLike = Union[DatabaseTarget, str]


class ConnectionManager:
    """
    Registry of live database handles, one per target.

    The manager is an explicitly constructed object owned by the
    application (or a test). Handles exist only between a successful
    :meth:`initialize` and :meth:`shutdown`.

    Lifecycle:
        Uninitialized -> initialize() -> Ready -> shutdown() -> Shut down

    Attributes:
        _settings: Settings used to build adapters
        _adapters: Adapter per target (created or injected)
        _connected: Targets whose handle is currently live

    Example:
        >>> manager = ConnectionManager()
        >>> await manager.initialize()
        >>> adapter = manager.get_connection(DatabaseTarget.MONGODB)
        >>> await manager.shutdown()
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        adapters: Optional[Mapping[TargetLike, BaseDatabaseAdapter]] = None,
    ) -> None:
        """
        Initialize the registry without opening anything.

        Args:
            settings: Settings for adapter construction (defaults to cached)
            adapters: Pre-built adapters per target; missing targets are
                created through DatabaseFactory
        """
        self._settings = settings or get_settings()
        self._adapters: Dict[DatabaseTarget, BaseDatabaseAdapter] = {
            DatabaseTarget.parse(target): adapter
            for target, adapter in (adapters or {}).items()
        }
        self._connected: Dict[DatabaseTarget, BaseDatabaseAdapter] = {}
        self._initialized = False

    @property
    def settings(self) -> Settings:
        return self._settings

    @property
    def is_initialized(self) -> bool:
        """True while every target holds a live handle."""
        return self._initialized

    # ==========================================================================
    # LIFECYCLE METHODS
    # ==========================================================================

    async def initialize(self) -> None:
        """
        Open the handle of every database target.

        Targets are opened in declaration order. If any fails, handles
        opened so far are closed again and nothing stays registered.
        Calling this on an initialized manager does nothing.

        Raises:
            InitializationError: If any target cannot be connected
        """
        if self._initialized:
            logger.info("Connection manager already initialized")
            return

        for target in DatabaseTarget:
            adapter = self._adapters.get(target)
            if adapter is None:
                adapter = DatabaseFactory.create_adapter(target, self._settings)
                self._adapters[target] = adapter

            try:
                await adapter.connect()
            except Exception as e:
                logger.error(f"Failed to initialize {target.value} connection: {e}")
                await self._close_connected()
                raise InitializationError(
                    f"Failed to initialize {target.value} connection: {e}",
                    details={"database": target.value},
                ) from e

            self._connected[target] = adapter
            logger.info(f"{target.value} connection established")

        self._initialized = True
        logger.info("All database connections initialized")

    async def shutdown(self) -> None:
        """
        Close every live handle.

        Best-effort: each target is closed in turn, and a failure is
        logged without stopping the others. Afterwards every target is
        unavailable.
        """
        await self._close_connected()
        self._initialized = False
        logger.info("All database connections closed")

    async def _close_connected(self) -> None:
        for target, adapter in list(self._connected.items()):
            try:
                await adapter.disconnect()
                logger.info(f"{target.value} connection closed")
            except Exception as e:
                logger.error(f"Error closing {target.value} connection: {e}")
            finally:
                self._connected.pop(target, None)

    async def __aenter__(self) -> "ConnectionManager":
        await self.initialize()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.shutdown()

    # ==========================================================================
    # HANDLE ACCESS
    # ==========================================================================

    def get_connection(self, target: TargetLike) -> BaseDatabaseAdapter:
        """
        Live adapter of a target.

        Args:
            target: Database target (enum member or its value)

        Returns:
            Connected adapter

        Raises:
            UnsupportedDatabaseError: If the target is not recognized
            ConnectionUnavailableError: If the target has no live handle
        """
        target = DatabaseTarget.parse(target)
        adapter = self._connected.get(target)
        if adapter is None:
            raise ConnectionUnavailableError(
                f"{target.value} connection not available",
                database=target.value,
            )
        return adapter

    def get_repository(
        self,
        target: TargetLike,
        entity_kind: Type[EntityT],
    ) -> EntityRepository[EntityT]:
        """
        Repository for an entity kind bound to a target's handle.

        Raises:
            ConnectionUnavailableError: If the target has no live handle
        """
        return EntityRepository(self.get_connection(target), entity_kind)

    # ==========================================================================
    # HEALTH CHECKS
    # ==========================================================================

    async def is_healthy(self, target: TargetLike) -> bool:
        """
        Probe a target's handle.

        Returns:
            True if the handle is live and answers its health check; never raises
        """
        try:
            adapter = self.get_connection(target)
            return await adapter.health_check()
        except Exception as e:
            logger.warning(f"Health check for {getattr(target, 'value', target)} failed: {e}")
            return False

    async def get_all_health(self) -> Dict[str, bool]:
        """
        Probe every target concurrently.

        Returns:
            Mapping of target value to health
        """
        targets = list(DatabaseTarget)
        results = await asyncio.gather(*(self.is_healthy(t) for t in targets))
        return {target.value: healthy for target, healthy in zip(targets, results)}
