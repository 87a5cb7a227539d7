# ==============================================================================
# ENTITY REPOSITORY - Generic Data Access Abstraction
# ==============================================================================
# Repository Pattern implementation for consistent data access
# Works with both SQL and NoSQL database adapters
# ==============================================================================

from __future__ import annotations

from enum import Enum
from typing import (
    Any,
    Dict,
    Generic,
    List,
    Mapping,
    Optional,
    Type,
    TypeVar,
    Union,
)

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from saas_data.core.exceptions import (
    NotFoundError,
    PersistenceError,
    ValidationError,
)
from saas_data.database.adapters.base_adapter import BaseDatabaseAdapter, Record
from saas_data.schemas.base import EntitySchema, FindOptions
from saas_data.utils.helpers import generate_uuid, utc_now

EntityT = TypeVar("EntityT", bound=EntitySchema)


class EntityRepository(Generic[EntityT]):
    """
    Repository for one entity kind on one database handle.

    Converts between pydantic entities and adapter records, assigns
    identifiers and timestamps, and validates filter fields. Every read
    returns newly constructed entities, so callers never share state
    with each other or with the store.

    Generic Parameters:
        EntityT: Entity kind handled by the repository

    Attributes:
        _adapter: Database adapter for database operations
        _entity_kind: Pydantic entity class
        _session: Shared session when bound to a unit of work

    Example:
        >>> repo = EntityRepository(adapter, Tenant)
        >>> tenant = await repo.create({"name": "Acme", "created_by": user_id})
        >>> await repo.count({"status": "active"})
        1
    """

    def __init__(
        self,
        adapter: BaseDatabaseAdapter,
        entity_kind: Type[EntityT],
        session: Optional[Any] = None,
    ) -> None:
        """
        Initialize repository.

        Args:
            adapter: Database adapter instance
            entity_kind: Entity class whose collection_name is used
            session: Optional shared session (unit of work)
        """
        self._adapter = adapter
        self._entity_kind = entity_kind
        self._session = session

    @property
    def entity_kind(self) -> Type[EntityT]:
        return self._entity_kind

    @property
    def collection_name(self) -> str:
        return self._entity_kind.collection_name

    # ==========================================================================
    # CONVERSION HELPERS
    # ==========================================================================

    def _validate(self, payload: Mapping[str, Any]) -> EntityT:
        try:
            return self._entity_kind.model_validate(dict(payload))
        except PydanticValidationError as e:
            raise ValidationError(
                f"Invalid {self._entity_kind.__name__} data",
                errors=e.errors(include_url=False, include_context=False),
            ) from e

    def _to_entity(self, record: Record) -> EntityT:
        """Build a fresh entity from a stored record."""
        return self._validate(record)

    @staticmethod
    def _to_record(entity: EntitySchema) -> Dict[str, Any]:
        return entity.model_dump()

    def _check_field(self, field: str) -> None:
        if field not in self._entity_kind.model_fields:
            raise ValidationError(
                f"Unknown field '{field}' for {self._entity_kind.__name__}",
                errors={"field": field},
            )

    def _normalize_filters(
        self,
        filters: Optional[Mapping[str, Any]],
    ) -> Dict[str, Any]:
        """
        Validate filter keys and reduce enum values to their stored form.

        Raises:
            ValidationError: If a key is not a field of the entity kind
        """
        normalized: Dict[str, Any] = {}
        for key, value in (filters or {}).items():
            self._check_field(key)
            normalized[key] = value.value if isinstance(value, Enum) else value
        return normalized

    # ==========================================================================
    # CRUD OPERATIONS
    # ==========================================================================

    async def create(self, data: Union[Mapping[str, Any], BaseModel]) -> EntityT:
        """
        Persist a new entity.

        A fresh UUID is assigned and both timestamps are set to the same
        UTC instant; any id or timestamps in ``data`` are ignored.

        Args:
            data: Entity fields (mapping or pydantic model)

        Returns:
            The persisted entity

        Raises:
            ValidationError: If data does not satisfy the entity kind
            PersistenceError: If the store rejects the write
        """
        payload = data.model_dump() if isinstance(data, BaseModel) else dict(data)
        now = utc_now()
        payload.update(id=generate_uuid(), created_at=now, updated_at=now)

        entity = self._validate(payload)
        record = await self._adapter.create(
            self.collection_name,
            self._to_record(entity),
            session=self._session,
        )
        return self._to_entity(record)

    async def get_by_id(self, id: str) -> Optional[EntityT]:
        record = await self._adapter.get_by_id(
            self.collection_name,
            id,
            session=self._session,
        )
        return self._to_entity(record) if record else None

    async def find_one(self, filters: Mapping[str, Any]) -> Optional[EntityT]:
        """
        Find a single entity matching filters.

        Args:
            filters: Field-value pairs for matching (AND)

        Returns:
            First matching entity, None if not found
        """
        record = await self._adapter.find_one(
            self.collection_name,
            self._normalize_filters(filters),
            session=self._session,
        )
        return self._to_entity(record) if record else None

    async def find(
        self,
        filters: Optional[Mapping[str, Any]] = None,
        options: Optional[FindOptions] = None,
    ) -> List[EntityT]:
        """
        Retrieve entities with pagination and ordering.

        Args:
            filters: Field-value pairs for filtering (AND)
            options: Offset, limit and ordering

        Returns:
            List of matching entities (possibly empty)
        """
        options = options or FindOptions()
        if options.order_by:
            self._check_field(options.order_by)

        records = await self._adapter.get_all(
            self.collection_name,
            skip=options.offset,
            limit=options.limit,
            filters=self._normalize_filters(filters),
            sort_by=options.order_by,
            sort_order=options.order,
            session=self._session,
        )
        return [self._to_entity(record) for record in records]

    async def update(self, entity: EntityT) -> EntityT:
        """
        Write every mutable field of an entity back to the store.

        ``updated_at`` is stamped with the current time; ``id`` and
        ``created_at`` are never rewritten.

        Returns:
            The stored entity after the update

        Raises:
            PersistenceError: If the entity has no id or no longer exists
        """
        if not entity.id:
            raise PersistenceError(
                f"Cannot update {self._entity_kind.__name__} without an id",
                details={"collection": self.collection_name},
            )

        changes = self._to_record(entity)
        changes.pop("id", None)
        changes.pop("created_at", None)
        changes["updated_at"] = utc_now()

        record = await self._adapter.update(
            self.collection_name,
            entity.id,
            changes,
            session=self._session,
        )
        if record is None:
            raise PersistenceError(
                f"{self._entity_kind.__name__} {entity.id} no longer exists",
                details={"collection": self.collection_name, "id": entity.id},
            )
        return self._to_entity(record)

    async def remove(self, entity: Union[EntityT, str]) -> None:
        """
        Delete an entity.

        Args:
            entity: Entity instance or its id

        Raises:
            NotFoundError: If nothing was deleted
        """
        entity_id = entity if isinstance(entity, str) else entity.id
        deleted = False
        if entity_id:
            deleted = await self._adapter.delete(
                self.collection_name,
                entity_id,
                session=self._session,
            )
        if not deleted:
            raise NotFoundError(
                f"{self._entity_kind.__name__} not found",
                resource_type=self._entity_kind.__name__,
                resource_id=entity_id,
            )

    # ==========================================================================
    # QUERY OPERATIONS
    # ==========================================================================

    async def count(self, filters: Optional[Mapping[str, Any]] = None) -> int:
        """
        Count entities matching filters.

        Returns:
            Number of matching entities
        """
        return await self._adapter.count(
            self.collection_name,
            self._normalize_filters(filters),
            session=self._session,
        )
