# ==============================================================================
# UNIT OF WORK PACKAGE INITIALIZATION
# ==============================================================================

"""
Unit of Work Pattern Implementation
===================================

Provides transactional consistency across repository operations:
- UnitOfWork: Coordinates one transaction across repositories
"""

from saas_data.database.unit_of_work.uow import UnitOfWork

__all__ = [
    "UnitOfWork",
]
