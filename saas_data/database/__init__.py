# ==============================================================================
# DATABASE PACKAGE INITIALIZATION
# ==============================================================================
# Dual-database access layer
# ==============================================================================

"""
Database Module
===============

Provides a unified database access layer over two targets:
- PostgreSQL (relational, SQLAlchemy async)
- MongoDB (document, Motor)

Key Components:
- Adapters: Database-specific implementations
- Factory: Adapter instantiation per target
- ConnectionManager: One live handle per target
- EntityManagerService: Target-aware entity CRUD
- Repositories / Unit of Work: Data access and transactions
- Migrations: Ordered, tracked schema changes
"""

from saas_data.database.adapters.base_adapter import BaseDatabaseAdapter
from saas_data.database.connection_manager import ConnectionManager
from saas_data.database.entity_manager import EntityManagerService
from saas_data.database.factory import DatabaseFactory
from saas_data.database.repositories.base_repository import EntityRepository
from saas_data.database.unit_of_work.uow import UnitOfWork

__all__ = [
    "BaseDatabaseAdapter",
    "ConnectionManager",
    "DatabaseFactory",
    "EntityManagerService",
    "EntityRepository",
    "UnitOfWork",
]
