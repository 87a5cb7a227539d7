# ==============================================================================
# DATABASE FACTORY - Adapter Instantiation
# ==============================================================================
# Factory Pattern for building the adapter behind each database target
# ==============================================================================

from __future__ import annotations

import logging
from typing import Optional, Union

from saas_data.core.settings import DatabaseTarget, Settings, get_settings
from saas_data.database.adapters.base_adapter import BaseDatabaseAdapter
from saas_data.database.adapters.mongodb_adapter import MongoDBAdapter
from saas_data.database.adapters.sql_adapter import SQLAdapter
from saas_data.domain_models import MODEL_REGISTRY

logger = logging.getLogger(__name__)


class DatabaseFactory:
    """
    Factory class for creating database adapters.

    Adapters are not cached here; ownership (and the one-handle-per-target
    rule) belongs to the ConnectionManager that requested them.

    Example:
        >>> adapter = DatabaseFactory.create_adapter(DatabaseTarget.MONGODB)
        >>> await adapter.connect()
    """

    @classmethod
    def create_adapter(
        cls,
        target: Union[DatabaseTarget, str],
        settings: Optional[Settings] = None,
    ) -> BaseDatabaseAdapter:
        """
        Create the adapter for a database target.

        The relational adapter comes back with every entity and
        migration bookkeeping model registered.

        Args:
            target: Database target (enum member or its value)
            settings: Settings to configure the adapter with

        Returns:
            Unconnected database adapter

        Raises:
            UnsupportedDatabaseError: If the target is not recognized
        """
        target = DatabaseTarget.parse(target)
        settings = settings or get_settings()

        if target == DatabaseTarget.POSTGRESQL:
            adapter = SQLAdapter(settings=settings)
            for name, model in MODEL_REGISTRY.items():
                adapter.register_model(name, model)
            logger.info("Created SQL adapter")
            return adapter

        logger.info("Created MongoDB adapter")
        return MongoDBAdapter(settings=settings)
