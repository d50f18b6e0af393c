"""
Inventory endpoints.
"""

from pos_api.routers.admin._base import (
    APIRouter, AppState, Capability, Depends, get_state, require_capability,
)
from pos_api.routers.pos_schemas import InventoryCreate, InventoryUpdate, StockAdjustRequest
from pos_api.services.domain import InventoryService
from shared.utils.schemas import InventoryItem


router = APIRouter(
    prefix="/inventory",
    tags=["admin-inventory"],
    dependencies=[Depends(require_capability(Capability.INVENTORY))],
)


def get_inventory_service(state: AppState = Depends(get_state)) -> InventoryService:
    return InventoryService(state)


@router.get("", response_model=list[InventoryItem])
def list_inventory(
    site_id: str | None = None,
    inventory: InventoryService = Depends(get_inventory_service),
) -> list[InventoryItem]:
    return inventory.list_all(site_id)


@router.get("/low-stock", response_model=list[InventoryItem])
def low_stock(
    site_id: str | None = None,
    inventory: InventoryService = Depends(get_inventory_service),
) -> list[InventoryItem]:
    return inventory.low_stock(site_id)


@router.post("", response_model=InventoryItem, status_code=201)
def create_item(body: InventoryCreate, inventory: InventoryService = Depends(get_inventory_service)) -> InventoryItem:
    return inventory.create(body.model_dump())


@router.patch("/{item_id}", response_model=InventoryItem)
def update_item(
    item_id: str,
    body: InventoryUpdate,
    inventory: InventoryService = Depends(get_inventory_service),
) -> InventoryItem:
    return inventory.update(item_id, body.model_dump(exclude_unset=True))


@router.post("/{item_id}/adjust", response_model=InventoryItem)
def adjust_stock(
    item_id: str,
    body: StockAdjustRequest,
    inventory: InventoryService = Depends(get_inventory_service),
) -> InventoryItem:
    """Add (or, negative, remove) stock. Never goes below zero."""
    return inventory.adjust_stock(item_id, body.delta)


@router.delete("/{item_id}", status_code=204)
def delete_item(item_id: str, inventory: InventoryService = Depends(get_inventory_service)) -> None:
    inventory.delete(item_id)
