"""
Order Aggregate: pure, synchronous operations over one order value.

Every function takes an order and returns a new one; nothing here touches
the application state or the persistence gateway. Item mutations always
reset `is_printed` on the touched line so a kitchen reprint can detect it.

Flow for items with options:
    result = add_item(order, menu_item)
    if result.staged:            # wings, fries, submenu or gelato options
        order = confirm_options(result.order, result.staged, selection)
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Union

from pydantic import Field

from shared.config.constants import (
    GLOBAL_SITE_ID,
    ORDER_TRANSITIONS,
    DeliveryStatus,
    QUICK_SALE_NAME,
    OrderStatus,
    OrderType,
)
from shared.config.logging import get_logger
from shared.utils.exceptions import (
    EmptyOrderError,
    GlobalSiteError,
    InvalidOptionError,
    InvalidTransitionError,
    ValidationError,
)
from shared.utils.schemas import (
    CamelModel,
    DeliveryInfo,
    DeliveryOrder,
    DineInOrder,
    MenuItem,
    OrderItem,
    ParsedOrder,
    Sauce,
    ToGoOrder,
    utcnow,
)

from pos_api.services.persistence.defaults import (
    FRY_SAUCES,
    GELATO_FLAVORS,
    SUBMENU_CHOICES,
    WING_SAUCES,
)

logger = get_logger(__name__)

AnyOrder = Union[DineInOrder, DeliveryOrder, ToGoOrder]

# Fields an item patch may change
PATCHABLE_ITEM_FIELDS = frozenset({
    "quantity",
    "notes",
    "selected_wing_sauces",
    "selected_fry_sauces",
    "selected_choice",
    "selected_gelato_flavors",
})

# Patch fields where null clears the value; elsewhere null means "unchanged"
NULLABLE_ITEM_FIELDS = frozenset({"notes", "selected_choice"})


def new_id(prefix: str) -> str:
    return f"{prefix}-{uuid.uuid4().hex[:12]}"


class OptionSelection(CamelModel):
    """Operator choices for an item with options. Sauces are catalog keys."""

    wing_sauces: list[str] = Field(default_factory=list)
    fry_sauces: list[str] = Field(default_factory=list)
    choice: str | None = None
    gelato_flavors: list[str] = Field(default_factory=list)
    notes: str | None = None


@dataclass(frozen=True)
class StagedItem:
    """An item waiting for its options step before joining the order."""

    order_id: str
    item: OrderItem


@dataclass(frozen=True)
class AddItemResult:
    order: AnyOrder
    staged: StagedItem | None = None


# =============================================================================
# Creation
# =============================================================================


def start_order(
    order_type: OrderType | str,
    *,
    site_id: str,
    user_id: str,
    table_id: str | None = None,
    delivery_info: DeliveryInfo | None = None,
    to_go_name: str | None = None,
    to_go_phone: str | None = None,
    now: datetime | None = None,
) -> AnyOrder:
    """
    Create a new order with a fresh id.

    Dine-in and to-go orders start OPEN, delivery orders start
    PENDING_CONFIRMATION. The global site cannot take orders.
    """
    if not site_id or site_id == GLOBAL_SITE_ID:
        raise GlobalSiteError("crear una orden")

    order_type = OrderType(order_type)
    common = {
        "id": new_id("order"),
        "items": [],
        "created_at": now or utcnow(),
        "user_id": user_id,
        "site_id": site_id,
    }

    if order_type == OrderType.DINE_IN:
        if not table_id:
            raise ValidationError("Selecciona una mesa para la orden", order_type=order_type.value)
        return DineInOrder(status=OrderStatus.OPEN, table_id=table_id, **common)

    if order_type == OrderType.DELIVERY:
        if delivery_info is None:
            raise ValidationError("Faltan los datos del domicilio", order_type=order_type.value)
        return DeliveryOrder(
            status=OrderStatus.PENDING_CONFIRMATION,
            delivery_info=delivery_info,
            **common,
        )

    name = (to_go_name or "").strip()
    if not name:
        raise ValidationError("Ingresa el nombre del cliente", order_type=order_type.value)
    return ToGoOrder(
        status=OrderStatus.OPEN,
        to_go_name=name,
        to_go_phone=(to_go_phone or "").strip() or None,
        **common,
    )


def quick_sale(*, site_id: str, user_id: str, now: datetime | None = None) -> ToGoOrder:
    """To-go order for walk-in counter sales: no phone, no loyalty."""
    return start_order(
        OrderType.TO_GO,
        site_id=site_id,
        user_id=user_id,
        to_go_name=QUICK_SALE_NAME,
        now=now,
    )


# =============================================================================
# Items
# =============================================================================


def snapshot_item(menu_item: MenuItem) -> OrderItem:
    """Copy name, price, flags and recipe of a menu item into a new line."""
    return OrderItem(
        menu_item_id=menu_item.id,
        instance_id=new_id("line"),
        name=menu_item.name,
        category=menu_item.category,
        price=menu_item.price,
        quantity=1,
        recipe=[r.model_copy() for r in menu_item.recipe] if menu_item.recipe else None,
        has_wings=menu_item.has_wings,
        has_fries=menu_item.has_fries,
        submenu_key=menu_item.submenu_key,
        max_choices=menu_item.max_choices,
    )


def _with_items(order: AnyOrder, items: list[OrderItem]) -> AnyOrder:
    return order.model_copy(update={"items": items}, deep=True)


def add_item(order: AnyOrder, menu_item: MenuItem) -> AddItemResult:
    """
    Append a quantity-1 snapshot of `menu_item`.

    Items with configurable options are staged instead and join the order
    through `confirm_options`.
    """
    _ensure_editable(order)
    item = snapshot_item(menu_item)
    if menu_item.has_options:
        return AddItemResult(order=order, staged=StagedItem(order_id=order.id, item=item))
    return AddItemResult(order=_with_items(order, [*order.items, item]))


def _catalog_sauces(keys: list[str], catalog: list[dict[str, str]], label: str) -> list[Sauce]:
    by_key = {s["key"]: s for s in catalog}
    sauces = []
    seen: set[str] = set()
    for key in keys:
        if key not in by_key:
            raise InvalidOptionError(f"Salsa de {label} desconocida: {key}", sauce=key)
        if key in seen:
            raise InvalidOptionError(f"Salsa de {label} repetida: {key}", sauce=key)
        seen.add(key)
        sauces.append(Sauce(**by_key[key]))
    return sauces


def validate_options(item: OrderItem, selection: OptionSelection) -> dict[str, Any]:
    """
    Check `selection` against the item's flags and limits.

    Returns the item fields to set. Raises InvalidOptionError.
    """
    fields: dict[str, Any] = {}

    if selection.wing_sauces and not item.has_wings:
        raise InvalidOptionError(f"{item.name} no lleva salsas de alitas")
    fields["selected_wing_sauces"] = _catalog_sauces(selection.wing_sauces, WING_SAUCES, "alitas")

    if selection.fry_sauces and not item.has_fries:
        raise InvalidOptionError(f"{item.name} no lleva salsas de papas")
    fields["selected_fry_sauces"] = _catalog_sauces(selection.fry_sauces, FRY_SAUCES, "papas")

    if item.submenu_key:
        choices = SUBMENU_CHOICES.get(item.submenu_key, [])
        if selection.choice not in choices:
            raise InvalidOptionError(
                f"Selecciona una opción válida para {item.name}",
                submenu_key=item.submenu_key,
                choice=selection.choice,
            )
    elif selection.choice:
        raise InvalidOptionError(f"{item.name} no tiene opciones de submenú")
    fields["selected_choice"] = selection.choice if item.submenu_key else None

    if selection.gelato_flavors:
        if not item.max_choices:
            raise InvalidOptionError(f"{item.name} no lleva sabores")
        limit = item.max_choices
        if len(selection.gelato_flavors) > limit:
            raise InvalidOptionError(f"Máximo {limit} sabores para {item.name}", limit=limit)
        unknown = [f for f in selection.gelato_flavors if f not in GELATO_FLAVORS]
        if unknown:
            raise InvalidOptionError(f"Sabor desconocido: {unknown[0]}")
        if len(set(selection.gelato_flavors)) != len(selection.gelato_flavors):
            raise InvalidOptionError("No repitas sabores")
    fields["selected_gelato_flavors"] = list(selection.gelato_flavors)

    return fields


def confirm_options(order: AnyOrder, staged: StagedItem, selection: OptionSelection) -> AnyOrder:
    """Finish the options step: validate, apply and append the staged item."""
    _ensure_editable(order)
    if staged.order_id != order.id:
        raise ValidationError("El producto pertenece a otra orden", order_id=order.id)

    fields = validate_options(staged.item, selection)
    if selection.notes is not None:
        fields["notes"] = selection.notes or None
    item = staged.item.model_copy(update={**fields, "is_printed": False}, deep=True)
    return _with_items(order, [*order.items, item])


def update_item(order: AnyOrder, instance_id: str, patch: dict[str, Any]) -> AnyOrder:
    """
    Apply `patch` to one line. Unknown instance ids are a no-op.

    Option fields in the patch are validated like in the options step.
    """
    _ensure_editable(order)
    unknown = set(patch) - PATCHABLE_ITEM_FIELDS
    if unknown:
        raise ValidationError(f"Campo no editable: {sorted(unknown)[0]}")

    target = order.find_item(instance_id)
    if target is None:
        return order

    update = {k: v for k, v in patch.items() if v is not None or k in NULLABLE_ITEM_FIELDS}
    if not update:
        return order
    if "quantity" in update:
        quantity = int(update["quantity"])
        if quantity < 1:
            return remove_item(order, instance_id)
        update["quantity"] = quantity

    option_keys = {"selected_wing_sauces", "selected_fry_sauces", "selected_choice", "selected_gelato_flavors"}
    if option_keys & set(update):
        selection = OptionSelection(
            wing_sauces=_sauce_keys(update.get("selected_wing_sauces", target.selected_wing_sauces)),
            fry_sauces=_sauce_keys(update.get("selected_fry_sauces", target.selected_fry_sauces)),
            choice=update.get("selected_choice", target.selected_choice),
            gelato_flavors=list(update.get("selected_gelato_flavors", target.selected_gelato_flavors)),
        )
        update.update(validate_options(target, selection))

    update["is_printed"] = False
    items = [
        item.model_copy(update=update, deep=True) if item.instance_id == instance_id else item
        for item in order.items
    ]
    return _with_items(order, items)


def _sauce_keys(value: Any) -> list[str]:
    keys = []
    for sauce in value or []:
        if isinstance(sauce, Sauce):
            keys.append(sauce.key)
        elif isinstance(sauce, dict):
            keys.append(sauce["key"])
        else:
            keys.append(str(sauce))
    return keys


def remove_item(order: AnyOrder, instance_id: str) -> AnyOrder:
    _ensure_editable(order)
    return _with_items(order, [i for i in order.items if i.instance_id != instance_id])


def increment_qty(order: AnyOrder, instance_id: str) -> AnyOrder:
    item = order.find_item(instance_id)
    if item is None:
        return order
    return update_item(order, instance_id, {"quantity": item.quantity + 1})


def decrement_qty(order: AnyOrder, instance_id: str) -> AnyOrder:
    """Quantity - 1; a quantity-1 line is removed. Absent ids are a no-op."""
    item = order.find_item(instance_id)
    if item is None:
        return order
    if item.quantity <= 1:
        return remove_item(order, instance_id)
    return update_item(order, instance_id, {"quantity": item.quantity - 1})


def clear_items(order: AnyOrder) -> AnyOrder:
    """Empty the cart, keeping identity and binding."""
    _ensure_editable(order)
    return _with_items(order, [])


def mark_printed(order: AnyOrder) -> AnyOrder:
    """Flag every line as sent to the kitchen."""
    items = [i.model_copy(update={"is_printed": True}) for i in order.items]
    return _with_items(order, items)


# =============================================================================
# Status and binding
# =============================================================================


def _ensure_editable(order: AnyOrder) -> None:
    if not order.is_active:
        raise InvalidTransitionError("orden", order.status.value, "edición", order_id=order.id)


def ensure_has_items(order: AnyOrder, action: str) -> None:
    """An empty order can be neither saved nor charged."""
    if not order.items:
        raise EmptyOrderError(action, order_id=order.id)


def transition(order: AnyOrder, to_status: OrderStatus | str, now: datetime | None = None) -> AnyOrder:
    """Move `order` to `to_status`, enforcing the lifecycle."""
    to_status = OrderStatus(to_status)
    if to_status == order.status:
        return order
    if to_status not in ORDER_TRANSITIONS[order.status]:
        raise InvalidTransitionError("orden", order.status.value, to_status.value, order_id=order.id)

    update: dict[str, Any] = {"status": to_status}
    if to_status == OrderStatus.READY:
        update["ready_at"] = now or utcnow()
    return order.model_copy(update=update, deep=True)


def _common_fields(order: AnyOrder) -> dict[str, Any]:
    return {
        "id": order.id,
        "items": [i.model_copy(deep=True) for i in order.items],
        "created_at": order.created_at,
        "ready_at": order.ready_at,
        "user_id": order.user_id,
        "site_id": order.site_id,
    }


def attach_customer(
    order: AnyOrder,
    *,
    name: str,
    phone: str = "",
    address: str | None = None,
    delivery_cost: int = 0,
) -> AnyOrder:
    """
    Bind customer details to the order.

    With an address the order becomes a delivery awaiting confirmation,
    back in the quoting step even if it had been confirmed before.
    Without one it becomes (or stays) a to-go order.
    """
    _ensure_editable(order)
    name = name.strip()
    phone = phone.strip()
    if not name:
        raise ValidationError("Ingresa el nombre del cliente", order_id=order.id)

    if address and address.strip():
        previous = order.delivery_info if isinstance(order, DeliveryOrder) else None
        info = DeliveryInfo(
            name=name,
            phone=phone,
            address=address.strip(),
            delivery_status=DeliveryStatus.QUOTING,
            delivery_cost=delivery_cost if delivery_cost else (previous.delivery_cost if previous else 0),
        )
        return DeliveryOrder(
            status=OrderStatus.PENDING_CONFIRMATION,
            delivery_info=info,
            **_common_fields(order),
        )

    return ToGoOrder(
        status=OrderStatus.OPEN,
        to_go_name=name,
        to_go_phone=phone or None,
        **_common_fields(order),
    )


# =============================================================================
# External order parser
# =============================================================================


def import_parsed_order(
    order: AnyOrder,
    parsed: ParsedOrder,
    menu: dict[str, MenuItem],
) -> tuple[AnyOrder, list[str]]:
    """
    Merge a parsed chat order into `order`.

    Known menu items are appended with their quantity and notes (options
    step skipped); unknown ids are returned. Customer details rebind
    delivery/to-go orders; dine-in orders keep their table.
    """
    _ensure_editable(order)
    items = list(order.items)
    skipped: list[str] = []
    for parsed_item in parsed.items:
        menu_item = menu.get(parsed_item.menu_item_id)
        if menu_item is None:
            skipped.append(parsed_item.menu_item_id)
            continue
        item = snapshot_item(menu_item).model_copy(
            update={"quantity": parsed_item.quantity, "notes": parsed_item.notes or None}
        )
        items.append(item)

    if skipped:
        logger.info("Parsed order items not in menu", order_id=order.id, skipped=skipped)

    result = _with_items(order, items)
    customer = parsed.customer
    if not isinstance(result, DineInOrder) and customer.name.strip():
        result = attach_customer(
            result,
            name=customer.name,
            phone=customer.phone,
            address=customer.address,
        )
    return result, skipped
