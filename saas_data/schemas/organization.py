# ==============================================================================
# ORGANIZATION SCHEMA
# ==============================================================================
# Organizational unit inside a tenant, optionally nested
# ==============================================================================

from __future__ import annotations

from enum import Enum
from typing import Any, ClassVar, Dict, List, Optional, Tuple

from pydantic import Field

from saas_data.schemas.base import BaseSchema, EntitySchema


class OrganizationType(str, Enum):
    COMMITTEE = "committee"
    PROJECT_TEAM = "project_team"
    QUALITY_GROUP = "quality_group"
    PERFORMANCE_GROUP = "performance_group"
    DEPARTMENT = "department"


class OrganizationStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    SUSPENDED = "suspended"
    DISSOLVED = "dissolved"


class OrganizationConfig(BaseSchema):
    max_members: Optional[int] = None
    permissions: List[str] = Field(default_factory=list)
    settings: Dict[str, Any] = Field(default_factory=dict)


class Organization(EntitySchema):
    """
    Organization entity.

    ``parent_id``, ``level`` and ``path`` describe the position in the
    tenant's organization tree (``path`` is the slash-joined ancestry).
    """

    collection_name: ClassVar[str] = "organizations"
    indexes: ClassVar[Tuple[str, ...]] = ("name", "tenant_id")

    name: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = None
    type: OrganizationType = OrganizationType.COMMITTEE
    status: OrganizationStatus = OrganizationStatus.ACTIVE
    tenant_id: str
    parent_id: Optional[str] = None
    level: int = Field(0, ge=0)
    path: Optional[str] = Field(None, max_length=500)
    config: Optional[OrganizationConfig] = None
    profile: Optional[Dict[str, Any]] = None
    leader_id: Optional[str] = None
    created_by: str
