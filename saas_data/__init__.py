# ==============================================================================
# SAAS DATA PACKAGE INITIALIZATION
# ==============================================================================
# Dual-database data layer for a multi-tenant SaaS platform
# Targets: PostgreSQL (SQLAlchemy async), MongoDB (Motor)
# Architecture: Adapter, Repository, Unit of Work, Factory patterns
# ==============================================================================

"""
SaaS Data Layer
===============

Connection registry, entity access and migrations for a platform that
keeps its relational data in PostgreSQL and its document data in MongoDB.

Features:
---------
- One live handle per database target with fail-fast startup
- Target-aware entity CRUD with transactions
- Ordered, tracked migrations with generation from declared entities
- Health endpoint and migration CLI

Usage:
------
    from saas_data.database import ConnectionManager, EntityManagerService

    async with ConnectionManager() as connections:
        service = EntityManagerService(connections)
        tenant = await service.create("postgresql", Tenant, data)
"""

__version__ = "1.0.0"
__all__ = ["__version__"]
