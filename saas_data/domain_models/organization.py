# ==============================================================================
# ORGANIZATION MODEL
# ==============================================================================

from __future__ import annotations

from typing import Any, Dict, Optional

from sqlalchemy import ForeignKey, Integer, JSON, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from saas_data.domain_models.base import SQLBase, TimestampMixin


class OrganizationModel(SQLBase, TimestampMixin):
    """Relational mapping of the Organization entity."""

    __tablename__ = "organizations"

    name: Mapped[str] = mapped_column(String(100), index=True, nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    type: Mapped[str] = mapped_column(String(30), default="committee", nullable=False)
    status: Mapped[str] = mapped_column(String(20), default="active", nullable=False)

    tenant_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("tenants.id", ondelete="CASCADE"),
        index=True,
        nullable=False,
    )
    parent_id: Mapped[Optional[str]] = mapped_column(String(36), nullable=True)
    level: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    path: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)

    config: Mapped[Optional[Dict[str, Any]]] = mapped_column(JSON, nullable=True)
    profile: Mapped[Optional[Dict[str, Any]]] = mapped_column(JSON, nullable=True)

    leader_id: Mapped[Optional[str]] = mapped_column(String(36), nullable=True)
    created_by: Mapped[str] = mapped_column(String(36), nullable=False)
