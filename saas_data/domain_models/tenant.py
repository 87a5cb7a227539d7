# ==============================================================================
# TENANT MODEL
# ==============================================================================

from __future__ import annotations

from typing import Any, Dict, Optional

from sqlalchemy import JSON, String
from sqlalchemy.orm import Mapped, mapped_column

from saas_data.domain_models.base import SQLBase, TimestampMixin


class TenantModel(SQLBase, TimestampMixin):
    """
    Relational mapping of the Tenant entity.

    Enumerations are stored as their string values; nested structures
    (config, profile, subscription) as JSON.
    """

    __tablename__ = "tenants"

    name: Mapped[str] = mapped_column(String(100), index=True, nullable=False)
    domain: Mapped[Optional[str]] = mapped_column(
        String(255),
        unique=True,
        nullable=True,
    )
    type: Mapped[str] = mapped_column(String(20), default="personal", nullable=False)
    status: Mapped[str] = mapped_column(String(20), default="active", nullable=False)

    config: Mapped[Optional[Dict[str, Any]]] = mapped_column(JSON, nullable=True)
    profile: Mapped[Optional[Dict[str, Any]]] = mapped_column(JSON, nullable=True)
    subscription: Mapped[Optional[Dict[str, Any]]] = mapped_column(JSON, nullable=True)

    created_by: Mapped[str] = mapped_column(String(36), nullable=False)
    admin_id: Mapped[Optional[str]] = mapped_column(String(36), nullable=True)
