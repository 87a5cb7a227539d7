# ==============================================================================
# DOMAIN MODELS PACKAGE
# ==============================================================================

"""
Relational table mappings.

Entity tables mirror the pydantic entity kinds in ``saas_data.schemas``;
the migration tables hold runner bookkeeping.
"""

from typing import Dict, Type

from saas_data.domain_models.base import SQLBase, TimestampMixin
from saas_data.domain_models.migration import (
    MigrationHistory,
    MigrationLock,
    SchemaMigration,
)
from saas_data.domain_models.organization import OrganizationModel
from saas_data.domain_models.tenant import TenantModel
from saas_data.domain_models.user import UserModel

# Table name -> mapped class, used by the relational adapter
MODEL_REGISTRY: Dict[str, Type[SQLBase]] = {
    model.__tablename__: model
    for model in (
        TenantModel,
        OrganizationModel,
        UserModel,
        SchemaMigration,
        MigrationHistory,
        MigrationLock,
    )
}

# Tables that describe entities (excludes runner bookkeeping)
ENTITY_TABLES = ("tenants", "organizations", "users")

__all__ = [
    "SQLBase",
    "TimestampMixin",
    "TenantModel",
    "OrganizationModel",
    "UserModel",
    "SchemaMigration",
    "MigrationHistory",
    "MigrationLock",
    "MODEL_REGISTRY",
    "ENTITY_TABLES",
]
