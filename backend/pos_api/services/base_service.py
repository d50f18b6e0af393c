"""
Base Service Classes.

Provides base classes for application services that:
- Read and mutate entities through AppState (never the gateway directly)
- Scope operational entities to the selected site
- Expose validation hooks for business rules

Architecture:
    Router (thin) → Service (business logic) → AppState → PersistenceGateway

Usage:
    from pos_api.services.base_service import BaseCRUDService

    class ZoneService(BaseCRUDService[Zone]):
        def __init__(self, state: AppState):
            super().__init__(state, EntityTable.ZONES, Zone, "Salón", has_site_id=True)

        def _validate_delete(self, entity: Zone) -> None:
            ...
"""

from __future__ import annotations

import uuid
from typing import Any, Generic, Type, TypeVar

from pydantic import ValidationError as PydanticValidationError

from shared.config.constants import GLOBAL_SITE_ID
from shared.config.logging import get_logger
from shared.utils.exceptions import GlobalSiteError, NotFoundError, ValidationError
from shared.utils.schemas import Entity

from pos_api.services.state import AppState

logger = get_logger(__name__)

EntityT = TypeVar("EntityT", bound=Entity)


def pydantic_message(error: PydanticValidationError) -> str:
    """First pydantic error as a short operator-facing message."""
    first = error.errors()[0]
    location = ".".join(str(part) for part in first.get("loc", ()))
    return f"Dato inválido en '{location}': {first.get('msg', 'valor inválido')}"


class BaseService:
    """
    Base service for domain operations.

    Subclasses implement specific business logic while this class
    provides common infrastructure (state access, site context).
    """

    def __init__(self, state: AppState):
        self._state = state

    @property
    def state(self) -> AppState:
        """Application state."""
        return self._state

    def _require_site(self, action: str, site_id: str | None = None) -> str:
        """Concrete site for an operational write; the global view is read-only."""
        site_id = site_id or self._state.selected_site_id
        if not site_id or site_id == GLOBAL_SITE_ID:
            raise GlobalSiteError(action)
        return site_id


class BaseCRUDService(BaseService, Generic[EntityT]):
    """
    Base service for entities with CRUD operations.

    Provides standard CRUD methods that can be overridden for
    custom business logic.

    Responsibilities:
    - Entity validation (pydantic) with short Spanish messages
    - Site scoping for operational entities
    - Business rule hooks before create/update/delete
    """

    def __init__(
        self,
        state: AppState,
        table: str,
        model: Type[EntityT],
        entity_name: str,
        *,
        has_site_id: bool = False,
        id_prefix: str | None = None,
    ):
        super().__init__(state)
        self._table = table
        self._model = model
        self._entity_name = entity_name
        self._has_site_id = has_site_id
        self._id_prefix = id_prefix or table.rstrip("s")

    @property
    def entity_name(self) -> str:
        """Human-readable entity name for messages."""
        return self._entity_name

    # =========================================================================
    # Read Operations
    # =========================================================================

    def get_by_id(self, entity_id: str) -> EntityT:
        """
        Get entity by ID.

        Raises:
            NotFoundError: If entity not found.
        """
        entity = self._state.get(self._table, entity_id)
        if entity is None:
            raise NotFoundError(self._entity_name, entity_id)
        return entity

    def find(self, entity_id: str) -> EntityT | None:
        return self._state.get(self._table, entity_id)

    def list_all(self, site_id: str | None = None) -> list[EntityT]:
        """
        List entities. Site-scoped services filter by `site_id`
        (default: the selected site; the global site sees all).
        """
        if self._has_site_id:
            return self._state.list_for_site(self._table, site_id)
        return self._state.entities(self._table)

    def count(self) -> int:
        return self._state.count(self._table)

    # =========================================================================
    # Write Operations
    # =========================================================================

    def create(self, data: dict[str, Any]) -> EntityT:
        """
        Create new entity.

        Raises:
            ValidationError: If data is invalid.
            GlobalSiteError: If a site-scoped entity is created from the global view.
        """
        data = dict(data)
        if self._has_site_id:
            data["site_id"] = self._require_site(f"crear {self._entity_name.lower()}", data.get("site_id"))
        data.setdefault("id", f"{self._id_prefix}-{uuid.uuid4().hex[:12]}")

        self._validate_create(data)
        entity = self._build(data)

        with self._state.lock:
            self._validate_create_entity(entity)
            stamped = self._state.apply(self._table, entity)
        self._state.persist(self._table, stamped)

        logger.info(f"{self._entity_name} created", entity_id=stamped.id)
        self._after_create(stamped)
        return stamped

    def update(self, entity_id: str, data: dict[str, Any]) -> EntityT:
        """
        Update existing entity (shallow merge of `data`).

        Raises:
            NotFoundError: If entity not found.
            ValidationError: If data is invalid.
        """
        if self._has_site_id:
            self._require_site(f"editar {self._entity_name.lower()}")
        with self._state.lock:
            current = self.get_by_id(entity_id)
            self._validate_update(current, data)
            merged = {**current.model_dump(), **data, "id": entity_id}
            entity = self._build(merged)
            stamped = self._state.apply(self._table, entity)
        self._state.persist(self._table, stamped)

        self._after_update(current, stamped)
        return stamped

    def delete(self, entity_id: str) -> None:
        """
        Delete entity.

        Raises:
            NotFoundError: If entity not found.
            ValidationError: If a business rule forbids the deletion.
        """
        if self._has_site_id:
            self._require_site(f"eliminar {self._entity_name.lower()}")
        with self._state.lock:
            entity = self.get_by_id(entity_id)
            self._validate_delete(entity)
            self._state.remove(self._table, entity_id)

        logger.info(f"{self._entity_name} deleted", entity_id=entity_id)
        self._after_delete(entity)

    def _build(self, data: dict[str, Any]) -> EntityT:
        try:
            return self._model.model_validate(data)
        except PydanticValidationError as e:
            raise ValidationError(pydantic_message(e), entity=self._entity_name) from e

    # =========================================================================
    # Validation Hooks (override in subclasses)
    # =========================================================================

    def _validate_create(self, data: dict[str, Any]) -> None:
        """Validate raw data before create. Raises ValidationError."""
        pass

    def _validate_create_entity(self, entity: EntityT) -> None:
        """Validate the built entity against current state (runs under the lock)."""
        pass

    def _validate_update(self, entity: EntityT, data: dict[str, Any]) -> None:
        """Validate data before update. Raises ValidationError."""
        pass

    def _validate_delete(self, entity: EntityT) -> None:
        """Validate before delete (runs under the lock). Raises ValidationError."""
        pass

    # =========================================================================
    # Lifecycle Hooks (override in subclasses)
    # =========================================================================

    def _after_create(self, entity: EntityT) -> None:
        pass

    def _after_update(self, old: EntityT, new: EntityT) -> None:
        pass

    def _after_delete(self, entity: EntityT) -> None:
        pass
