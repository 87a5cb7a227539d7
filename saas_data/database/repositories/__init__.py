# ==============================================================================
# REPOSITORIES PACKAGE INITIALIZATION
# ==============================================================================

"""
Repository Pattern Implementation
=================================

Provides data access abstraction through the Repository Pattern:
- EntityRepository: Generic repository over one entity kind and one handle
"""

from saas_data.database.repositories.base_repository import EntityRepository

__all__ = [
    "EntityRepository",
]
