# ==============================================================================
# BASE SCHEMAS - Entity Foundation
# ==============================================================================
# Pydantic base for every entity kind plus query options
# ==============================================================================

from __future__ import annotations

from datetime import datetime
from typing import ClassVar, Dict, Literal, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field


class BaseSchema(BaseModel):
    """
    Base schema with common configuration.

    All schemas inherit from this class to ensure consistent
    serialization behavior.
    """

    model_config = ConfigDict(
        from_attributes=True,
        populate_by_name=True,
        use_enum_values=True,
        validate_assignment=True,
    )


class EntitySchema(BaseSchema):
    """
    Base class for persisted entity kinds.

    An entity kind names its storage location and declares the indexes the
    document store should carry. The same kind is used against both
    database targets.

    Class Attributes:
        collection_name: Table / collection name
        indexes: Single-field indexes to maintain
        unique_fields: Subset of indexes that must be unique

    Attributes:
        id: Globally unique identifier (UUID string, set on create)
        created_at: Creation timestamp (set on create)
        updated_at: Last modification timestamp (set on create and update)
    """

    collection_name: ClassVar[str] = ""
    indexes: ClassVar[Tuple[str, ...]] = ()
    unique_fields: ClassVar[Tuple[str, ...]] = ()

    id: Optional[str] = Field(
        None,
        description="Unique identifier"
    )
    created_at: Optional[datetime] = Field(
        None,
        description="Record creation timestamp"
    )
    updated_at: Optional[datetime] = Field(
        None,
        description="Last update timestamp"
    )


class FindOptions(BaseSchema):
    """
    Pagination and ordering for list queries.

    Attributes:
        offset: Number of records to skip
        limit: Maximum number of records (None for no limit)
        order_by: Field to sort by
        order: Sort direction
    """

    offset: int = Field(0, ge=0)
    limit: Optional[int] = Field(None, ge=1)
    order_by: Optional[str] = None
    order: Literal["asc", "desc"] = "asc"


class HealthResponse(BaseSchema):
    """
    Health check response.

    Attributes:
        status: "healthy" when every database answers, else "degraded"
        version: Application version
        databases: Per-target connectivity ("connected" / "disconnected")
    """

    status: str
    version: str
    databases: Dict[str, str]
