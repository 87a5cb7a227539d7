# ==============================================================================
# USER MODEL
# ==============================================================================

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import DateTime, JSON, String
from sqlalchemy.orm import Mapped, mapped_column

from saas_data.domain_models.base import SQLBase, TimestampMixin


class UserModel(SQLBase, TimestampMixin):
    """
    Relational mapping of the User entity.

    Attributes:
        username: Unique login name
        email: Unique email address
        password_hash: Opaque credential hash (never hashed here)
        tenant_id: Owning tenant, None for platform users
    """

    __tablename__ = "users"

    username: Mapped[str] = mapped_column(
        String(50),
        unique=True,
        index=True,
        nullable=False,
    )
    email: Mapped[str] = mapped_column(
        String(255),
        unique=True,
        index=True,
        nullable=False,
    )
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)

    type: Mapped[str] = mapped_column(String(20), default="platform_user", nullable=False)
    status: Mapped[str] = mapped_column(String(20), default="active", nullable=False)

    tenant_id: Mapped[Optional[str]] = mapped_column(String(36), index=True, nullable=True)
    organization_id: Mapped[Optional[str]] = mapped_column(String(36), nullable=True)
    department_id: Mapped[Optional[str]] = mapped_column(String(36), nullable=True)

    role: Mapped[str] = mapped_column(String(50), default="user", nullable=False)
    permissions: Mapped[List[str]] = mapped_column(JSON, default=list, nullable=False)
    profile: Mapped[Optional[Dict[str, Any]]] = mapped_column(JSON, nullable=True)

    last_login_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
