"""
Application state: the single owned authority over every entity collection.

All collections, order drafts, staged items and user notices live here and
are mutated only through the methods below, under one re-entrant lock.
Readers get copies; nothing outside this module holds a live reference.

Reconciliation replaces whole collections under the same lock, so a local
multi-entity operation (sale completion) and a snapshot overwrite never
interleave.
"""

from __future__ import annotations

import threading
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Iterable, TypeVar

from pydantic import ValidationError as PydanticValidationError

from shared.config.constants import GLOBAL_SITE_ID, EntityTable, SettingKey
from shared.config.logging import get_logger
from shared.config.settings import settings
from shared.utils.schemas import (
    CategoryConfig,
    Customer,
    DeliveryRate,
    Entity,
    Expense,
    InventoryItem,
    LoyaltySettings,
    MenuItem,
    PrinterSettings,
    Role,
    Sale,
    Site,
    Table,
    User,
    Zone,
    parse_order,
    utcnow,
)

from pos_api.services.persistence import PersistenceGateway

logger = get_logger(__name__)

E = TypeVar("E", bound=Entity)

ENTITY_TYPES: dict[str, type[Entity]] = {
    EntityTable.USERS: User,
    EntityTable.ROLES: Role,
    EntityTable.MENU_ITEMS: MenuItem,
    EntityTable.TABLES: Table,
    EntityTable.ZONES: Zone,
    EntityTable.INVENTORY: InventoryItem,
    EntityTable.SALES: Sale,
    EntityTable.CUSTOMERS: Customer,
    EntityTable.EXPENSES: Expense,
    EntityTable.DELIVERY_RATES: DeliveryRate,
    EntityTable.SITES: Site,
}


def parse_entity(table: str, data: dict[str, Any]) -> Entity:
    """Validate persisted JSON into the entity model of `table`."""
    if table == EntityTable.ORDERS:
        return parse_order(data)
    return ENTITY_TYPES[table].model_validate(data)


def parse_rows(table: str, rows: Iterable[dict[str, Any]]) -> list[Entity]:
    """Parse rows, skipping (and logging) the ones that fail validation."""
    parsed = []
    for row in rows:
        try:
            parsed.append(parse_entity(table, row))
        except PydanticValidationError as e:
            logger.warning(
                "Skipping invalid row",
                table=table,
                entity_id=row.get("id") if isinstance(row, dict) else None,
                errors=e.error_count(),
            )
    return parsed


@dataclass(frozen=True)
class Notice:
    """Non-fatal message for the operator (offline mode, tier upgrade, ...)."""

    message: str
    level: str = "info"
    timestamp: datetime = field(default_factory=utcnow)


class AppState:
    """
    Usage:
        state = AppState(gateway)
        with state.lock:
            order = state.get(EntityTable.ORDERS, order_id)
            ...
        state.put(EntityTable.TABLES, table)
    """

    def __init__(self, gateway: PersistenceGateway, clock: Callable[[], datetime] = utcnow):
        self._gateway = gateway
        self._clock = clock
        self._lock = threading.RLock()

        self._collections: dict[str, dict[str, Entity]] = {t: {} for t in EntityTable.ALL}
        self._printer = PrinterSettings()
        self._categories: list[CategoryConfig] = []
        self._loyalty = LoyaltySettings()
        self._expense_categories: list[str] = []

        self._drafts: dict[str, Entity] = {}
        self._staged: dict[str, dict[str, Any]] = {}
        self._notices: deque[Notice] = deque(maxlen=100)

        # (table, id) -> updatedAt of local mutations since the last reconciliation
        self._dirty: dict[tuple[str, str], datetime] = {}
        self._last_reconciled_at: datetime | None = None

        self._selected_site_id: str = settings.default_site_id
        self._current_user: User | None = None

        gateway.set_notice_handler(lambda message: self.notify(message, "warning"))

    # =========================================================================
    # Infrastructure
    # =========================================================================

    @property
    def gateway(self) -> PersistenceGateway:
        return self._gateway

    @property
    def lock(self) -> threading.RLock:
        return self._lock

    def now(self) -> datetime:
        return self._clock()

    # =========================================================================
    # Session context
    # =========================================================================

    @property
    def selected_site_id(self) -> str:
        return self._selected_site_id

    def select_site(self, site_id: str) -> None:
        with self._lock:
            self._selected_site_id = site_id

    @property
    def current_user(self) -> User | None:
        return self._current_user.model_copy(deep=True) if self._current_user else None

    def set_current_user(self, user: User | None) -> None:
        with self._lock:
            self._current_user = user.model_copy(deep=True) if user else None
            if user is not None and user.site_id:
                self._selected_site_id = user.site_id

    # =========================================================================
    # Read-only views
    # =========================================================================

    def get(self, table: str, entity_id: str) -> Any:
        """Copy of one entity, or None."""
        with self._lock:
            entity = self._collections[table].get(entity_id)
            return entity.model_copy(deep=True) if entity is not None else None

    def entities(self, table: str) -> list[Any]:
        """Copies of every entity of `table`, in insertion order."""
        with self._lock:
            return [e.model_copy(deep=True) for e in self._collections[table].values()]

    def list_for_site(self, table: str, site_id: str | None = None) -> list[Any]:
        """
        Entities visible from `site_id` (default: the selected site).

        The global sentinel sees everything; entities without a site id
        (menu items offered everywhere) are visible from every site.
        """
        site_id = site_id or self._selected_site_id
        items = self.entities(table)
        if site_id == GLOBAL_SITE_ID:
            return items
        return [e for e in items if getattr(e, "site_id", None) in (None, site_id)]

    def count(self, table: str) -> int:
        with self._lock:
            return len(self._collections[table])

    # =========================================================================
    # Mutations
    # =========================================================================

    def apply(self, table: str, entity: E) -> E:
        """
        Store `entity` locally (no remote write) and return the stamped copy.

        Use inside `with state.lock:` blocks that must change several
        entities atomically, then call `persist` for each.
        """
        with self._lock:
            stamped = entity.model_copy(deep=True, update={"updated_at": self._clock()})
            self._collections[table][stamped.id] = stamped
            self._dirty[(table, stamped.id)] = stamped.updated_at
            return stamped.model_copy(deep=True)

    def persist(self, table: str, entity: Entity) -> bool:
        """Write `entity` through the gateway. False when the remote refused it."""
        return self._gateway.upsert(table, entity)

    def persist_all(self, writes: Iterable[tuple[str, Entity]]) -> list[tuple[str, str]]:
        """Persist each (table, entity); returns the (table, id) pairs that failed."""
        failed = []
        for table, entity in writes:
            if not self.persist(table, entity):
                failed.append((table, entity.id))
        return failed

    def put(self, table: str, entity: E) -> E:
        """Store locally, then persist (best-effort)."""
        stamped = self.apply(table, entity)
        self.persist(table, stamped)
        return stamped

    def remove(self, table: str, entity_id: str) -> bool:
        """Remove locally and delete remotely. Returns False if it was not present."""
        with self._lock:
            existed = self._collections[table].pop(entity_id, None) is not None
            self._dirty.pop((table, entity_id), None)
        if existed:
            self._gateway.delete(table, entity_id)
        return existed

    # =========================================================================
    # Settings blobs
    # =========================================================================

    @property
    def printer_settings(self) -> PrinterSettings:
        return self._printer.model_copy(deep=True)

    @property
    def category_configs(self) -> list[CategoryConfig]:
        return [c.model_copy() for c in self._categories]

    @property
    def loyalty_settings(self) -> LoyaltySettings:
        return self._loyalty.model_copy(deep=True)

    @property
    def expense_categories(self) -> list[str]:
        return list(self._expense_categories)

    def apply_setting(self, key: str, value: Any) -> None:
        """Replace a settings blob locally from its persisted JSON form."""
        with self._lock:
            try:
                if key == SettingKey.PRINTER:
                    self._printer = PrinterSettings.model_validate(value)
                elif key == SettingKey.CATEGORIES:
                    self._categories = [CategoryConfig.model_validate(v) for v in value]
                elif key == SettingKey.LOYALTY:
                    self._loyalty = LoyaltySettings.model_validate(value)
                elif key == SettingKey.EXPENSE_CATEGORIES:
                    self._expense_categories = [str(v) for v in value]
                else:
                    logger.debug("Ignoring unknown setting", key=key)
            except (PydanticValidationError, TypeError) as e:
                logger.warning("Invalid setting value ignored", key=key, error=str(e))

    def save_setting(self, key: str, value: Any) -> bool:
        """Apply locally and persist."""
        if hasattr(value, "model_dump"):
            value = value.model_dump(mode="json", by_alias=True, exclude_none=True)
        elif isinstance(value, list):
            value = [
                v.model_dump(mode="json", by_alias=True, exclude_none=True) if hasattr(v, "model_dump") else v
                for v in value
            ]
        self.apply_setting(key, value)
        return self._gateway.save_setting(key, value)

    # =========================================================================
    # Order drafts and staged items
    # =========================================================================

    def get_draft(self, order_id: str) -> Any:
        with self._lock:
            draft = self._drafts.get(order_id)
            return draft.model_copy(deep=True) if draft is not None else None

    def put_draft(self, order: E) -> E:
        with self._lock:
            self._drafts[order.id] = order.model_copy(deep=True)
        return order

    def drop_draft(self, order_id: str) -> None:
        with self._lock:
            self._drafts.pop(order_id, None)
            self._staged.pop(order_id, None)

    def drafts(self) -> list[Any]:
        with self._lock:
            return [d.model_copy(deep=True) for d in self._drafts.values()]

    def stage(self, order_id: str, staged: Any) -> None:
        with self._lock:
            self._staged.setdefault(order_id, {})[staged.item.instance_id] = staged

    def take_staged(self, order_id: str, instance_id: str) -> Any:
        with self._lock:
            return self._staged.get(order_id, {}).pop(instance_id, None)

    def staged_items(self, order_id: str) -> list[Any]:
        with self._lock:
            return list(self._staged.get(order_id, {}).values())

    # =========================================================================
    # Notices
    # =========================================================================

    def notify(self, message: str, level: str = "info") -> None:
        with self._lock:
            self._notices.append(Notice(message=message, level=level, timestamp=self._clock()))
        logger.info("Notice", message=message, level=level)

    def notices(self) -> list[Notice]:
        with self._lock:
            return list(self._notices)

    def drain_notices(self) -> list[Notice]:
        with self._lock:
            notices = list(self._notices)
            self._notices.clear()
            return notices

    # =========================================================================
    # Reconciliation support
    # =========================================================================

    @property
    def last_reconciled_at(self) -> datetime | None:
        return self._last_reconciled_at

    def dirty_ids(self, table: str) -> dict[str, datetime]:
        """Entities of `table` modified locally since the last reconciliation."""
        with self._lock:
            return {eid: ts for (t, eid), ts in self._dirty.items() if t == table}

    def replace_collection(self, table: str, entities: Iterable[Entity]) -> None:
        """Overwrite a whole collection (snapshot reconciliation)."""
        with self._lock:
            self._collections[table] = {e.id: e for e in entities}

    def mark_reconciled(self, at: datetime | None = None) -> None:
        with self._lock:
            self._dirty.clear()
            self._last_reconciled_at = at or self._clock()

