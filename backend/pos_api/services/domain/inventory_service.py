"""
Inventory Service - stock per site.

Stock changes outside a sale are direct operator adjustments; the result is
clamped at zero like any sale deduction.
"""

from __future__ import annotations

from shared.config.constants import EntityTable
from shared.config.logging import get_logger
from shared.utils.schemas import InventoryItem

from pos_api.services.base_service import BaseCRUDService
from pos_api.services.state import AppState

logger = get_logger(__name__)


class InventoryService(BaseCRUDService[InventoryItem]):
    """Service for inventory items."""

    def __init__(self, state: AppState):
        super().__init__(
            state,
            EntityTable.INVENTORY,
            InventoryItem,
            "Insumo",
            has_site_id=True,
            id_prefix="inv",
        )

    def adjust_stock(self, item_id: str, delta: float) -> InventoryItem:
        """Add `delta` (negative to remove) to the stock, never below zero."""
        with self._state.lock:
            item = self.get_by_id(item_id)
            updated = item.model_copy(update={"stock": max(0.0, item.stock + delta)})
            stamped = self._state.apply(EntityTable.INVENTORY, updated)
        self._state.persist(EntityTable.INVENTORY, stamped)
        logger.info("Stock adjusted", item_id=item_id, delta=delta, stock=stamped.stock)
        return stamped

    def low_stock(self, site_id: str | None = None) -> list[InventoryItem]:
        """Items at or below their alert threshold."""
        return [i for i in self.list_all(site_id) if i.is_low]
