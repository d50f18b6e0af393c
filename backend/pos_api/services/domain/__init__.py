"""
Domain Services - order lifecycle, tables, sales and back office.

Structure:
    Router (thin controller)
        ↓
    Service (business logic)  ← YOU ARE HERE
        ↓
    AppState (single authority) → PersistenceGateway

Usage:
    from pos_api.services.domain import POSService

    pos = POSService(state)
    order = pos.open_table(table_id)
"""

from . import order_service
from .order_service import AddItemResult, OptionSelection, StagedItem
from .table_service import TableService, ZoneService
from .sale_service import SaleReceipt, SaleService
from .pos_service import POSService
from .inventory_service import InventoryService
from .admin_service import RoleService, SiteService, UserService
from .expense_service import ExpenseService
from .report_service import ReportService, SalesSummary
from .catalog_service import CustomerService, DeliveryRateService, MenuService, SettingsService

__all__ = [
    "order_service",
    "AddItemResult",
    "OptionSelection",
    "StagedItem",
    "TableService",
    "ZoneService",
    "SaleReceipt",
    "SaleService",
    "POSService",
    "InventoryService",
    "RoleService",
    "SiteService",
    "UserService",
    "ExpenseService",
    "ReportService",
    "SalesSummary",
    "CustomerService",
    "DeliveryRateService",
    "MenuService",
    "SettingsService",
]
