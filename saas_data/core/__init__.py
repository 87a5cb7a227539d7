# ==============================================================================
# CORE PACKAGE INITIALIZATION
# ==============================================================================
# Core utilities: Settings, Exceptions, Logging
# ==============================================================================

"""
Core Module
===========

Contains core utilities and configuration for the data layer:
- settings: Environment configuration and database targets
- exceptions: Custom exception classes
- logging: Root logger configuration
"""

from saas_data.core.settings import (
    DatabaseTarget,
    Settings,
    get_settings,
    settings,
)
from saas_data.core.exceptions import (
    AppException,
    ConnectionUnavailableError,
    DatabaseError,
    InitializationError,
    MigrationError,
    NotFoundError,
    PersistenceError,
    UnsupportedDatabaseError,
    ValidationError,
)

__all__ = [
    "settings",
    "get_settings",
    "Settings",
    "DatabaseTarget",
    "AppException",
    "DatabaseError",
    "ConnectionUnavailableError",
    "InitializationError",
    "PersistenceError",
    "NotFoundError",
    "ValidationError",
    "MigrationError",
    "UnsupportedDatabaseError",
]
