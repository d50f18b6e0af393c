"""
Menu, delivery rate, customer and settings endpoints.
"""

from typing import Any

from fastapi import Body

from pos_api.routers.admin._base import (
    APIRouter, AppState, Capability, Depends, get_state, require_capability,
)
from pos_api.routers.pos_schemas import DeliveryRateCreate, MenuItemCreate, MenuItemUpdate
from pos_api.services.domain import CustomerService, DeliveryRateService, MenuService, SettingsService
from shared.config.constants import GLOBAL_SITE_ID
from shared.utils.schemas import Customer, DeliveryRate, MenuItem


router = APIRouter(tags=["admin-catalog"])


def get_menu_service(state: AppState = Depends(get_state)) -> MenuService:
    return MenuService(state)


# =============================================================================
# Menu
# =============================================================================


@router.get("/menu-items", response_model=list[MenuItem])
def list_menu_items(site_id: str | None = None, menu: MenuService = Depends(get_menu_service)) -> list[MenuItem]:
    """Menu visible from the site (items without site are offered everywhere)."""
    return menu.list_all(site_id)


@router.post(
    "/menu-items",
    response_model=MenuItem,
    status_code=201,
    dependencies=[Depends(require_capability(Capability.MENU))],
)
def create_menu_item(body: MenuItemCreate, menu: MenuService = Depends(get_menu_service)) -> MenuItem:
    return menu.create(body.model_dump())


@router.patch(
    "/menu-items/{item_id}",
    response_model=MenuItem,
    dependencies=[Depends(require_capability(Capability.MENU))],
)
def update_menu_item(item_id: str, body: MenuItemUpdate, menu: MenuService = Depends(get_menu_service)) -> MenuItem:
    return menu.update(item_id, body.model_dump(exclude_unset=True))


@router.delete(
    "/menu-items/{item_id}",
    status_code=204,
    dependencies=[Depends(require_capability(Capability.MENU))],
)
def delete_menu_item(item_id: str, menu: MenuService = Depends(get_menu_service)) -> None:
    menu.delete(item_id)


# =============================================================================
# Delivery rates
# =============================================================================


@router.get("/delivery-rates", response_model=list[DeliveryRate])
def list_delivery_rates(site_id: str | None = None, state: AppState = Depends(get_state)) -> list[DeliveryRate]:
    return DeliveryRateService(state).list_all(site_id)


@router.post(
    "/delivery-rates",
    response_model=DeliveryRate,
    status_code=201,
    dependencies=[Depends(require_capability(Capability.DELIVERIES))],
)
def create_delivery_rate(body: DeliveryRateCreate, state: AppState = Depends(get_state)) -> DeliveryRate:
    data = body.model_dump()
    if state.selected_site_id != GLOBAL_SITE_ID:
        data["site_id"] = state.selected_site_id
    return DeliveryRateService(state).create(data)


@router.delete(
    "/delivery-rates/{rate_id}",
    status_code=204,
    dependencies=[Depends(require_capability(Capability.DELIVERIES))],
)
def delete_delivery_rate(rate_id: str, state: AppState = Depends(get_state)) -> None:
    DeliveryRateService(state).delete(rate_id)


# =============================================================================
# Customers
# =============================================================================


@router.get(
    "/customers",
    response_model=list[Customer],
    dependencies=[Depends(require_capability(Capability.CUSTOMERS))],
)
def list_customers(site_id: str | None = None, state: AppState = Depends(get_state)) -> list[Customer]:
    return CustomerService(state).list_all(site_id)


@router.get(
    "/customers/top",
    response_model=list[Customer],
    dependencies=[Depends(require_capability(Capability.LOYALTY))],
)
def top_customers(limit: int = 10, state: AppState = Depends(get_state)) -> list[Customer]:
    return CustomerService(state).top_by_points(limit)


# =============================================================================
# Settings
# =============================================================================


@router.get("/settings/{key}")
def get_setting(key: str, state: AppState = Depends(get_state)) -> Any:
    return SettingsService(state).get(key)


@router.put("/settings/{key}", dependencies=[Depends(require_capability(Capability.SETTINGS))])
def save_setting(key: str, value: Any = Body(...), state: AppState = Depends(get_state)) -> Any:
    return SettingsService(state).save(key, value)
