# ==============================================================================
# SCHEMAS PACKAGE
# ==============================================================================

"""
Entity Schemas
==============

Pydantic entity kinds shared by both database targets:
- Tenant, Organization, User
- FindOptions for pagination and ordering
"""

from typing import Tuple, Type

from saas_data.schemas.base import (
    BaseSchema,
    EntitySchema,
    FindOptions,
    HealthResponse,
)
from saas_data.schemas.organization import (
    Organization,
    OrganizationStatus,
    OrganizationType,
)
from saas_data.schemas.tenant import Tenant, TenantStatus, TenantType
from saas_data.schemas.user import User, UserStatus, UserType

# Declared entity kinds, in dependency order
ENTITY_KINDS: Tuple[Type[EntitySchema], ...] = (Tenant, Organization, User)

__all__ = [
    "BaseSchema",
    "EntitySchema",
    "FindOptions",
    "HealthResponse",
    "ENTITY_KINDS",
    "Tenant",
    "TenantType",
    "TenantStatus",
    "Organization",
    "OrganizationType",
    "OrganizationStatus",
    "User",
    "UserType",
    "UserStatus",
]
