"""
Pydantic schemas for the POS API endpoints.
Centralized to avoid circular imports between routers.

Request bodies accept camelCase (as the till sends them) or snake_case.
"""

from datetime import datetime

from pydantic import Field

from shared.config.constants import (
    Capability,
    DeliveryStatus,
    OrderStatus,
    OrderType,
    PaymentMethod,
    TableStatus,
)
from shared.utils.schemas import (
    CamelModel,
    Customer,
    DeliveryInfo,
    LoyaltyTier,
    Order,
    OrderItem,
    RecipeIngredient,
    Sale,
    Table,
    User,
)


# =============================================================================
# Auth Schemas
# =============================================================================


class LoginRequest(CamelModel):
    username: str
    password: str


class UserOutput(CamelModel):
    id: str
    username: str
    name: str
    role_id: str
    site_id: str

    @classmethod
    def from_user(cls, user: User) -> "UserOutput":
        return cls(
            id=user.id,
            username=user.username,
            name=user.name,
            role_id=user.role_id,
            site_id=user.site_id,
        )


class SessionOutput(CamelModel):
    user: UserOutput
    permissions: list[Capability]
    selected_site_id: str


class SelectSiteRequest(CamelModel):
    site_id: str


# =============================================================================
# Order Schemas
# =============================================================================


class StartOrderRequest(CamelModel):
    order_type: OrderType
    table_id: str | None = None
    delivery_info: DeliveryInfo | None = None
    to_go_name: str | None = None
    to_go_phone: str | None = None


class AddItemRequest(CamelModel):
    menu_item_id: str


class AddItemOutput(CamelModel):
    order: Order
    staged: OrderItem | None = None


class ItemPatch(CamelModel):
    quantity: int | None = Field(default=None, ge=1)
    notes: str | None = None
    selected_wing_sauces: list[str] | None = None
    selected_fry_sauces: list[str] | None = None
    selected_choice: str | None = None
    selected_gelato_flavors: list[str] | None = None


class CustomerRequest(CamelModel):
    name: str
    phone: str = ""
    address: str | None = None
    delivery_cost: int = Field(default=0, ge=0)


class ChatImportRequest(CamelModel):
    text: str


class ImportOutput(CamelModel):
    order: Order
    skipped: list[str]


class StatusRequest(CamelModel):
    status: OrderStatus


class DeliveryStatusRequest(CamelModel):
    delivery_status: DeliveryStatus


class CheckoutRequest(CamelModel):
    payment_method: PaymentMethod


class DeductionOutput(CamelModel):
    inventory_item_id: str
    name: str
    deducted: float
    stock_before: float
    stock_after: float


class ReceiptOutput(CamelModel):
    sale: Sale
    order: Order
    table: Table | None = None
    deductions: list[DeductionOutput] = Field(default_factory=list)
    customer: Customer | None = None
    customer_created: bool = False
    tier_changed: LoyaltyTier | None = None
    failed_writes: list[str] = Field(default_factory=list)


# =============================================================================
# Table / Zone Schemas
# =============================================================================


class ZoneCreate(CamelModel):
    name: str = Field(min_length=1)


class ZoneUpdate(CamelModel):
    name: str | None = Field(default=None, min_length=1)


class TableCreate(CamelModel):
    name: str = Field(min_length=1)
    capacity: int = Field(default=4, ge=1)
    zone_id: str


class TableUpdate(CamelModel):
    name: str | None = Field(default=None, min_length=1)
    capacity: int | None = Field(default=None, ge=1)
    zone_id: str | None = None


class TableStatusRequest(CamelModel):
    status: TableStatus


# =============================================================================
# Catalog Schemas
# =============================================================================


class MenuItemCreate(CamelModel):
    name: str = Field(min_length=1)
    category: str
    price: int = Field(ge=0)
    recipe: list[RecipeIngredient] | None = None
    has_wings: bool = False
    has_fries: bool = False
    submenu_key: str | None = None
    max_choices: int | None = Field(default=None, ge=1)
    site_id: str | None = None


class MenuItemUpdate(CamelModel):
    name: str | None = Field(default=None, min_length=1)
    category: str | None = None
    price: int | None = Field(default=None, ge=0)
    recipe: list[RecipeIngredient] | None = None
    has_wings: bool | None = None
    has_fries: bool | None = None
    submenu_key: str | None = None
    max_choices: int | None = Field(default=None, ge=1)


class DeliveryRateCreate(CamelModel):
    name: str = Field(min_length=1)
    price: int = Field(ge=0)


class InventoryCreate(CamelModel):
    name: str = Field(min_length=1)
    stock: float = Field(default=0, ge=0)
    unit: str = "unidad"
    cost: float = Field(default=0, ge=0)
    alert_threshold: float = Field(default=0, ge=0)


class InventoryUpdate(CamelModel):
    name: str | None = Field(default=None, min_length=1)
    stock: float | None = Field(default=None, ge=0)
    unit: str | None = None
    cost: float | None = Field(default=None, ge=0)
    alert_threshold: float | None = Field(default=None, ge=0)


class StockAdjustRequest(CamelModel):
    delta: float


# =============================================================================
# Expense Schemas
# =============================================================================


class ExpenseCreate(CamelModel):
    description: str = ""
    amount: float = 0
    category: str
    date: datetime | None = None


class ExpenseUpdate(CamelModel):
    description: str | None = None
    amount: float | None = None
    category: str | None = None
    date: datetime | None = None


class CategoryRequest(CamelModel):
    name: str


# =============================================================================
# Administration Schemas
# =============================================================================


class SiteCreate(CamelModel):
    name: str = Field(min_length=1)
    address: str = ""


class SiteUpdate(CamelModel):
    name: str | None = Field(default=None, min_length=1)
    address: str | None = None


class UserCreate(CamelModel):
    username: str
    name: str
    password: str
    role_id: str
    site_id: str


class UserUpdate(CamelModel):
    username: str | None = None
    name: str | None = None
    password: str | None = None
    role_id: str | None = None
    site_id: str | None = None


class RoleCreate(CamelModel):
    name: str = Field(min_length=1)
    permissions: list[Capability] = Field(default_factory=list)


class RoleUpdate(CamelModel):
    name: str | None = Field(default=None, min_length=1)
    permissions: list[Capability] | None = None


# =============================================================================
# Sync Schemas
# =============================================================================


class NoticeOutput(CamelModel):
    message: str
    level: str
    timestamp: datetime


class SyncStatusOutput(CamelModel):
    offline: bool
    remote_configured: bool
    policy: str
    last_reconciled_at: datetime | None = None
    notices: list[NoticeOutput] = Field(default_factory=list)
    breaker: dict = Field(default_factory=dict)
