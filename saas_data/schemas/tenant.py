# ==============================================================================
# TENANT SCHEMA
# ==============================================================================
# Top-level customer account owning organizations and users
# ==============================================================================

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, ClassVar, Dict, List, Optional, Tuple

from pydantic import Field

from saas_data.schemas.base import BaseSchema, EntitySchema


class TenantType(str, Enum):
    ENTERPRISE = "enterprise"
    COMMUNITY = "community"
    TEAM = "team"
    PERSONAL = "personal"


class TenantStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    SUSPENDED = "suspended"
    EXPIRED = "expired"
    DELETED = "deleted"


class TenantConfig(BaseSchema):
    max_users: Optional[int] = None
    max_storage: Optional[int] = None
    features: List[str] = Field(default_factory=list)
    settings: Dict[str, Any] = Field(default_factory=dict)


class TenantSubscription(BaseSchema):
    plan: Optional[str] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    auto_renew: bool = False


class Tenant(EntitySchema):
    """
    Tenant entity.

    Attributes:
        name: Display name
        domain: Unique custom domain (optional)
        type: Tenant category
        status: Lifecycle status
        config: Quotas and feature flags
        profile: Free-form presentation data (logo, website, contact)
        subscription: Billing plan window
        created_by: Id of the creating user
        admin_id: Id of the administrating user
    """

    collection_name: ClassVar[str] = "tenants"
    indexes: ClassVar[Tuple[str, ...]] = ("name", "domain")
    unique_fields: ClassVar[Tuple[str, ...]] = ("domain",)

    name: str = Field(..., min_length=1, max_length=100)
    domain: Optional[str] = Field(None, max_length=255)
    type: TenantType = TenantType.PERSONAL
    status: TenantStatus = TenantStatus.ACTIVE
    config: Optional[TenantConfig] = None
    profile: Optional[Dict[str, Any]] = None
    subscription: Optional[TenantSubscription] = None
    created_by: str
    admin_id: Optional[str] = None
