"""
Table/Zone Occupancy Tracker.

Keeps table status in step with the dine-in order lifecycle:
- a dine-in order saved while active  -> its table becomes OCCUPIED
- a dine-in order completed/cancelled -> its table becomes AVAILABLE (idempotent)
- operators may set any status by hand (reserved, cleaning, ...)

Also enforces table exclusivity (one active dine-in order per table) and
refuses to delete zones that still have tables.
"""

from __future__ import annotations

from typing import Any

from shared.config.constants import EntityTable, TableStatus
from shared.config.logging import get_logger
from shared.utils.exceptions import (
    ConflictError,
    TableOccupiedError,
    ValidationError,
    ZoneInUseError,
)
from shared.utils.schemas import DineInOrder, Table, Zone

from pos_api.services.base_service import BaseCRUDService
from pos_api.services.state import AppState

logger = get_logger(__name__)


class TableService(BaseCRUDService[Table]):
    """Service for table management and occupancy."""

    def __init__(self, state: AppState):
        super().__init__(state, EntityTable.TABLES, Table, "Mesa", has_site_id=True, id_prefix="table")

    # =========================================================================
    # Occupancy
    # =========================================================================

    def active_order_for_table(self, table_id: str, exclude_order_id: str | None = None) -> DineInOrder | None:
        """The active dine-in order bound to `table_id`, if any."""
        for order in self._state.entities(EntityTable.ORDERS):
            if (
                isinstance(order, DineInOrder)
                and order.table_id == table_id
                and order.is_active
                and order.id != exclude_order_id
            ):
                return order
        return None

    def ensure_available_for(self, order: DineInOrder) -> None:
        """
        Reject saving `order` when another active order holds its table.

        Raises:
            TableOccupiedError: The table already hosts a different active order.
        """
        other = self.active_order_for_table(order.table_id, exclude_order_id=order.id)
        if other is not None:
            raise TableOccupiedError(order.table_id, other.id)

    def open_table(self, table_id: str) -> DineInOrder | None:
        """
        Existing active order for the table, to be edited instead of
        starting a duplicate. None means the caller may start a new one.
        """
        self.get_by_id(table_id)
        return self.active_order_for_table(table_id)

    def _set_status_local(self, table_id: str, status: TableStatus) -> Table | None:
        """Apply a status locally. Returns the changed table, or None if unchanged/unknown."""
        table = self._state.get(EntityTable.TABLES, table_id)
        if table is None:
            logger.warning("Order references unknown table", table_id=table_id)
            return None
        if table.status == status:
            return None
        return self._state.apply(EntityTable.TABLES, table.model_copy(update={"status": status}))

    def occupy_local(self, table_id: str) -> Table | None:
        return self._set_status_local(table_id, TableStatus.OCCUPIED)

    def release_local(self, table_id: str) -> Table | None:
        """Free the table. Releasing an already available table is a no-op."""
        return self._set_status_local(table_id, TableStatus.AVAILABLE)

    def sync_for_order(self, order: Any) -> Table | None:
        """
        Local table change implied by `order`'s status (call under the lock).

        Returns the table to persist, or None.
        """
        if not isinstance(order, DineInOrder):
            return None
        if order.is_active:
            return self.occupy_local(order.table_id)
        return self.release_local(order.table_id)

    def set_status(self, table_id: str, status: TableStatus | str) -> Table:
        """Manual operator override."""
        status = TableStatus(status)
        with self._state.lock:
            table = self.get_by_id(table_id)
            if table.status == status:
                return table
            stamped = self._state.apply(EntityTable.TABLES, table.model_copy(update={"status": status}))
        self._state.persist(EntityTable.TABLES, stamped)
        logger.info("Table status set manually", table_id=table_id, status=status.value)
        return stamped

    # =========================================================================
    # Hooks
    # =========================================================================

    def _validate_create(self, data: dict[str, Any]) -> None:
        zone_id = data.get("zone_id")
        zone = self._state.get(EntityTable.ZONES, zone_id) if zone_id else None
        if zone is None:
            raise ValidationError("Selecciona un salón válido", field="zone_id")
        if zone.site_id != data.get("site_id"):
            raise ValidationError("El salón pertenece a otra sede", field="zone_id")
        data.setdefault("status", TableStatus.AVAILABLE)

    def _validate_update(self, entity: Table, data: dict[str, Any]) -> None:
        if "zone_id" in data and data["zone_id"] != entity.zone_id:
            self._validate_create({"zone_id": data["zone_id"], "site_id": entity.site_id})

    def _validate_delete(self, entity: Table) -> None:
        order = self.active_order_for_table(entity.id)
        if order is not None:
            raise ConflictError(
                "No se puede eliminar una mesa con una orden abierta",
                table_id=entity.id,
                order_id=order.id,
            )


class ZoneService(BaseCRUDService[Zone]):
    """Service for zones (salones) grouping tables."""

    def __init__(self, state: AppState):
        super().__init__(state, EntityTable.ZONES, Zone, "Salón", has_site_id=True, id_prefix="zone")

    def tables_in_zone(self, zone_id: str) -> list[Table]:
        return [t for t in self._state.entities(EntityTable.TABLES) if t.zone_id == zone_id]

    def _validate_delete(self, entity: Zone) -> None:
        tables = self.tables_in_zone(entity.id)
        if tables:
            raise ZoneInUseError(entity.id, len(tables))
