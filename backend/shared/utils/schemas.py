"""
Entity schemas shared across the POS engine.

Every entity is persisted as the JSON `data` column of a `{id, data}` row,
using camelCase keys. Python code uses snake_case attribute names.

Orders are a tagged union on `orderType`:

    DineInOrder(table_id=...) | DeliveryOrder(delivery_info=...) | ToGoOrder(to_go_name=...)
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, field_validator
from pydantic.alias_generators import to_camel

from shared.config.constants import (
    ACTIVE_ORDER_STATUSES,
    Capability,
    DeliveryStatus,
    OrderStatus,
    OrderType,
    PaymentMethod,
    TableStatus,
)

logger = logging.getLogger(__name__)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


# =============================================================================
# Base classes
# =============================================================================


class CamelModel(BaseModel):
    """Base model serialized with camelCase keys."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_data(self) -> dict[str, Any]:
        """JSON-ready dict in the persisted (camelCase) form."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class Entity(CamelModel):
    """
    Base class for persisted entities.

    `updated_at` is stamped by the application state on every local mutation
    and drives the versioned reconciliation policy.
    """

    id: str
    updated_at: datetime | None = None

    @classmethod
    def from_data(cls, data: dict[str, Any]):
        return cls.model_validate(data)


# =============================================================================
# Sites, zones, tables
# =============================================================================


class Site(Entity):
    name: str
    address: str = ""


class Zone(Entity):
    name: str
    site_id: str


class Table(Entity):
    name: str
    capacity: int = Field(default=4, ge=1)
    zone_id: str
    site_id: str
    status: TableStatus = TableStatus.AVAILABLE


# =============================================================================
# Menu
# =============================================================================


class RecipeIngredient(CamelModel):
    inventory_item_id: str
    quantity: float = Field(gt=0)


class MenuItem(Entity):
    name: str
    category: str
    price: int = Field(ge=0)
    recipe: list[RecipeIngredient] | None = None
    has_wings: bool = False
    has_fries: bool = False
    submenu_key: str | None = None
    max_choices: int | None = Field(default=None, ge=1)
    # None means the item is offered at every site
    site_id: str | None = None

    @property
    def has_options(self) -> bool:
        """True when adding this item requires an options step."""
        return bool(self.has_wings or self.has_fries or self.submenu_key or self.max_choices)


class Sauce(CamelModel):
    key: str
    name: str


# =============================================================================
# Orders
# =============================================================================


class OrderItem(CamelModel):
    """
    A line of an order: a snapshot of the MenuItem taken when it was added.

    The persisted key of `menu_item_id` is `id`, the menu item's id.
    """

    menu_item_id: str = Field(alias="id")
    instance_id: str
    name: str
    category: str = ""
    price: int = Field(ge=0)
    quantity: int = Field(default=1, ge=1)
    recipe: list[RecipeIngredient] | None = None
    has_wings: bool = False
    has_fries: bool = False
    submenu_key: str | None = None
    max_choices: int | None = None
    selected_wing_sauces: list[Sauce] = Field(default_factory=list)
    selected_fry_sauces: list[Sauce] = Field(default_factory=list)
    selected_choice: str | None = None
    selected_gelato_flavors: list[str] = Field(default_factory=list)
    notes: str | None = None
    is_printed: bool = False

    @property
    def subtotal(self) -> int:
        return self.price * self.quantity


class DeliveryInfo(CamelModel):
    name: str
    phone: str
    address: str = ""
    delivery_status: DeliveryStatus = DeliveryStatus.QUOTING
    delivery_cost: int = Field(default=0, ge=0)


class OrderBase(Entity):
    status: OrderStatus
    items: list[OrderItem] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=utcnow)
    ready_at: datetime | None = None
    user_id: str
    site_id: str

    @property
    def is_active(self) -> bool:
        return self.status in ACTIVE_ORDER_STATUSES

    @property
    def items_total(self) -> int:
        return sum(item.subtotal for item in self.items)

    @property
    def delivery_cost(self) -> int:
        return 0

    @property
    def total(self) -> int:
        return self.items_total + self.delivery_cost

    def customer_contact(self) -> tuple[str, str] | None:
        """(name, phone) when the order identifies a customer, else None."""
        return None

    def find_item(self, instance_id: str) -> OrderItem | None:
        for item in self.items:
            if item.instance_id == instance_id:
                return item
        return None


class DineInOrder(OrderBase):
    order_type: Literal["dine-in"] = "dine-in"
    table_id: str


class DeliveryOrder(OrderBase):
    order_type: Literal["delivery"] = "delivery"
    delivery_info: DeliveryInfo

    @property
    def delivery_cost(self) -> int:
        return self.delivery_info.delivery_cost

    def customer_contact(self) -> tuple[str, str] | None:
        info = self.delivery_info
        if info.name.strip() and info.phone.strip():
            return info.name.strip(), info.phone.strip()
        return None


class ToGoOrder(OrderBase):
    order_type: Literal["to-go"] = "to-go"
    to_go_name: str
    to_go_phone: str | None = None

    def customer_contact(self) -> tuple[str, str] | None:
        if self.to_go_name.strip() and self.to_go_phone and self.to_go_phone.strip():
            return self.to_go_name.strip(), self.to_go_phone.strip()
        return None


Order = Annotated[
    Union[DineInOrder, DeliveryOrder, ToGoOrder],
    Field(discriminator="order_type"),
]

OrderAdapter: TypeAdapter[Order] = TypeAdapter(Order)


def parse_order(data: dict[str, Any]) -> DineInOrder | DeliveryOrder | ToGoOrder:
    """Validate persisted order JSON into the matching variant."""
    return OrderAdapter.validate_python(data)


# =============================================================================
# Sales, inventory, customers
# =============================================================================


class Sale(Entity):
    order: Order
    total: int = Field(ge=0)
    timestamp: datetime = Field(default_factory=utcnow)
    payment_method: PaymentMethod
    site_id: str


class InventoryItem(Entity):
    name: str
    stock: float = 0
    unit: str = "unidad"
    cost: float = Field(default=0, ge=0)
    alert_threshold: float = Field(default=0, ge=0)
    site_id: str

    @field_validator("stock")
    @classmethod
    def clamp_stock(cls, value: float) -> float:
        """Stock never goes below zero."""
        return max(0.0, value)

    @property
    def is_low(self) -> bool:
        return self.stock <= self.alert_threshold


class Customer(Entity):
    name: str
    phone: str
    total_spent: int = 0
    visit_count: int = 0
    last_visit: datetime | None = None
    loyalty_points: int = 0
    loyalty_tier_id: str | None = None
    site_id: str | None = None


class LoyaltyTier(CamelModel):
    id: str
    name: str
    min_points: int = Field(ge=0)


class LoyaltySettings(CamelModel):
    enabled: bool = True
    points_per_peso: float = Field(default=0.01, ge=0)
    tiers: list[LoyaltyTier] = Field(default_factory=list)


# =============================================================================
# Users, roles, back office
# =============================================================================


class Role(Entity):
    name: str
    permissions: frozenset[Capability] = frozenset()

    @field_validator("permissions", mode="before")
    @classmethod
    def drop_unknown_permissions(cls, value: Any) -> Any:
        if value is None:
            return frozenset()
        known = {c.value for c in Capability}
        kept = []
        for perm in value:
            raw = perm.value if isinstance(perm, Capability) else str(perm)
            if raw in known:
                kept.append(raw)
            else:
                logger.warning("Ignoring unknown permission %s", raw)
        return frozenset(kept)


class User(Entity):
    username: str
    name: str
    password_hash: str = ""
    role_id: str
    site_id: str


class Expense(Entity):
    description: str = Field(min_length=1)
    amount: float = Field(gt=0)
    category: str
    date: datetime = Field(default_factory=utcnow)
    site_id: str
    receipt_url: str | None = None


class DeliveryRate(Entity):
    name: str
    price: int = Field(ge=0)
    site_id: str | None = None


class PrinterSettings(CamelModel):
    shop_name: str = "Loco Alitas"
    shop_address: str = ""
    shop_nit: str = ""
    shop_phone: str = ""
    footer: str = "¡Gracias por tu compra!"


class CategoryConfig(CamelModel):
    name: str
    color: str = "#6B7280"
    icon: str | None = None


# =============================================================================
# AI order parser result (external collaborator)
# =============================================================================


class ParsedOrderItem(CamelModel):
    menu_item_id: str
    quantity: int = Field(default=1, ge=1)
    notes: str | None = None


class ParsedCustomer(CamelModel):
    name: str = ""
    phone: str = ""
    address: str | None = None


class ParsedOrder(CamelModel):
    items: list[ParsedOrderItem] = Field(default_factory=list)
    customer: ParsedCustomer = Field(default_factory=ParsedCustomer)
