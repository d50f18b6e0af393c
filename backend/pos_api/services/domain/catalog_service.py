"""
Catalog services: menu items, delivery rates, customers and settings blobs.
"""

from __future__ import annotations

from typing import Any

from pydantic import ValidationError as PydanticValidationError

from shared.config.constants import EntityTable, SettingKey
from shared.utils.exceptions import NotFoundError, ValidationError
from shared.utils.schemas import (
    CategoryConfig,
    Customer,
    DeliveryRate,
    LoyaltySettings,
    MenuItem,
    PrinterSettings,
)

from pos_api.services.base_service import BaseCRUDService, BaseService
from pos_api.services.persistence.defaults import SUBMENU_CHOICES
from pos_api.services.state import AppState


class MenuService(BaseCRUDService[MenuItem]):
    """Menu items. An item without site id is offered at every site."""

    def __init__(self, state: AppState):
        super().__init__(state, EntityTable.MENU_ITEMS, MenuItem, "Producto", id_prefix="menu")

    def list_all(self, site_id: str | None = None) -> list[MenuItem]:
        return self._state.list_for_site(EntityTable.MENU_ITEMS, site_id)

    def _check_options(self, data: dict[str, Any]) -> None:
        submenu_key = data.get("submenu_key")
        if submenu_key and submenu_key not in SUBMENU_CHOICES:
            raise ValidationError("Submenú desconocido", field="submenu_key", submenu_key=submenu_key)
        for ingredient in data.get("recipe") or []:
            if isinstance(ingredient, dict):
                item_id = ingredient.get("inventory_item_id") or ingredient.get("inventoryItemId")
            else:
                item_id = ingredient.inventory_item_id
            if self._state.get(EntityTable.INVENTORY, item_id) is None:
                raise ValidationError("La receta usa un insumo inexistente", inventory_item_id=item_id)

    def _validate_create(self, data: dict[str, Any]) -> None:
        self._check_options(data)

    def _validate_update(self, entity: MenuItem, data: dict[str, Any]) -> None:
        self._check_options(data)


class DeliveryRateService(BaseCRUDService[DeliveryRate]):
    def __init__(self, state: AppState):
        super().__init__(state, EntityTable.DELIVERY_RATES, DeliveryRate, "Tarifa", id_prefix="rate")

    def list_all(self, site_id: str | None = None) -> list[DeliveryRate]:
        return self._state.list_for_site(EntityTable.DELIVERY_RATES, site_id)


class CustomerService(BaseCRUDService[Customer]):
    """Customers are created by sales; the back office only reads and edits them."""

    def __init__(self, state: AppState):
        super().__init__(state, EntityTable.CUSTOMERS, Customer, "Cliente", id_prefix="customer")

    def list_all(self, site_id: str | None = None) -> list[Customer]:
        return self._state.list_for_site(EntityTable.CUSTOMERS, site_id)

    def top_by_points(self, limit: int = 10, site_id: str | None = None) -> list[Customer]:
        return sorted(self.list_all(site_id), key=lambda c: (-c.loyalty_points, c.name))[:limit]


class SettingsService(BaseService):
    """Settings blobs: printer, category configs, loyalty, expense categories."""

    def get(self, key: str) -> Any:
        if key == SettingKey.PRINTER:
            return self._state.printer_settings.to_data()
        if key == SettingKey.CATEGORIES:
            return [c.to_data() for c in self._state.category_configs]
        if key == SettingKey.LOYALTY:
            return self._state.loyalty_settings.to_data()
        if key == SettingKey.EXPENSE_CATEGORIES:
            return self._state.expense_categories
        raise NotFoundError("Configuración", key)

    def save(self, key: str, value: Any) -> Any:
        if key not in SettingKey.ALL:
            raise NotFoundError("Configuración", key)
        try:
            if key == SettingKey.PRINTER:
                value = PrinterSettings.model_validate(value)
            elif key == SettingKey.CATEGORIES:
                value = [CategoryConfig.model_validate(v) for v in value]
            elif key == SettingKey.LOYALTY:
                value = LoyaltySettings.model_validate(value)
            elif not value or not all(isinstance(v, str) and v.strip() for v in value):
                raise ValidationError("Debe haber al menos una categoría.")
        except (PydanticValidationError, TypeError) as e:
            raise ValidationError("Configuración inválida", key=key, error=str(e)) from e
        self._state.save_setting(key, value)
        return self.get(key)
