# ==============================================================================
# DATABASE ADAPTERS PACKAGE
# ==============================================================================

"""
Database Adapters
=================

Provides unified interface implementations for different databases:
- BaseDatabaseAdapter: Abstract interface definition
- SQLAdapter: PostgreSQL / SQLite using SQLAlchemy async
- MongoDBAdapter: MongoDB using Motor async driver
"""

from saas_data.database.adapters.base_adapter import BaseDatabaseAdapter, Record
from saas_data.database.adapters.mongodb_adapter import MongoDBAdapter
from saas_data.database.adapters.sql_adapter import SQLAdapter

__all__ = [
    "BaseDatabaseAdapter",
    "Record",
    "SQLAdapter",
    "MongoDBAdapter",
]
