# ==============================================================================
# USER SCHEMA
# ==============================================================================
# Platform or tenant account
# ==============================================================================

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, ClassVar, Dict, List, Optional, Tuple

from pydantic import Field

from saas_data.schemas.base import EntitySchema


class UserType(str, Enum):
    PLATFORM_USER = "platform_user"
    TENANT_USER = "tenant_user"
    SYSTEM_USER = "system_user"


class UserStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    PENDING = "pending"
    SUSPENDED = "suspended"
    DELETED = "deleted"


class User(EntitySchema):
    """
    User entity.

    Tenant-scoped users carry ``tenant_id`` and optionally
    ``organization_id`` / ``department_id``; platform users carry neither.
    """

    collection_name: ClassVar[str] = "users"
    indexes: ClassVar[Tuple[str, ...]] = ("username", "email", "tenant_id")
    unique_fields: ClassVar[Tuple[str, ...]] = ("username", "email")

    username: str = Field(..., min_length=1, max_length=50)
    email: str = Field(..., min_length=3, max_length=255)
    password_hash: str = Field(..., max_length=255)
    type: UserType = UserType.PLATFORM_USER
    status: UserStatus = UserStatus.ACTIVE
    tenant_id: Optional[str] = None
    organization_id: Optional[str] = None
    department_id: Optional[str] = None
    role: str = Field("user", max_length=50)
    permissions: List[str] = Field(default_factory=list)
    profile: Optional[Dict[str, Any]] = None
    last_login_at: Optional[datetime] = None
