"""
Sale Completion Workflow.

complete_sale(order, payment_method):
1. total = sum(price * quantity) + delivery cost
2. create the Sale (embeds the completed order)
3. order -> COMPLETED, which releases a dine-in table
4. deduct inventory: recipe ingredients, or a same-site "unidad" item
   matched by name; anything else is skipped
5. loyalty: update or create the customer matched by phone

All local effects are applied under the state lock, so other readers see
either none or all of them. Remote writes run afterwards, independently
and best-effort: the Sale is the anchor and the receipt lists any write
the remote store refused. There is no compensating rollback.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import ROUND_FLOOR, Decimal
from typing import Any

from shared.config.constants import UNIT_PIECE, EntityTable, OrderStatus, PaymentMethod
from shared.config.logging import sales_logger, mask_phone
from shared.utils.exceptions import InvalidTransitionError
from shared.utils.schemas import (
    Customer,
    DineInOrder,
    InventoryItem,
    LoyaltySettings,
    LoyaltyTier,
    Sale,
    Table,
)

from pos_api.services.base_service import BaseService
from pos_api.services.domain import order_service
from pos_api.services.domain.order_service import AnyOrder, new_id
from pos_api.services.domain.table_service import TableService
from pos_api.services.state import AppState

logger = sales_logger


@dataclass(frozen=True)
class InventoryDeduction:
    inventory_item_id: str
    name: str
    deducted: float
    stock_before: float
    stock_after: float


@dataclass
class SaleReceipt:
    """Outcome of a completed sale."""

    sale: Sale
    order: Any
    table: Table | None = None
    deductions: list[InventoryDeduction] = field(default_factory=list)
    customer: Customer | None = None
    customer_created: bool = False
    tier_changed: LoyaltyTier | None = None
    failed_writes: list[tuple[str, str]] = field(default_factory=list)

    @property
    def fully_persisted(self) -> bool:
        return not self.failed_writes


# =============================================================================
# Pure helpers
# =============================================================================


def compute_total(order: AnyOrder) -> int:
    """Sum of line subtotals plus delivery cost, independent of line order."""
    return sum(item.price * item.quantity for item in order.items) + order.delivery_cost


def loyalty_points_for(total: int, points_per_peso: float) -> int:
    """floor(total * points_per_peso), computed in decimal to avoid float drift."""
    points = Decimal(total) * Decimal(str(points_per_peso))
    return int(points.to_integral_value(rounding=ROUND_FLOOR))


def tier_for(points: int, tiers: list[LoyaltyTier]) -> LoyaltyTier | None:
    """Highest tier whose threshold is met."""
    eligible = [t for t in tiers if t.min_points <= points]
    if not eligible:
        return None
    return max(eligible, key=lambda t: t.min_points)


def deduct_stock(item: InventoryItem, amount: float) -> InventoryItem:
    """New stock = max(0, stock - amount)."""
    return item.model_copy(update={"stock": max(0.0, item.stock - amount)})


class SaleService(BaseService):
    """Turns an active order into a sale and applies its side effects."""

    def __init__(self, state: AppState, tables: TableService | None = None):
        super().__init__(state)
        self._tables = tables or TableService(state)

    def complete_sale(self, order: AnyOrder, payment_method: PaymentMethod | str) -> SaleReceipt:
        """
        Complete `order` with `payment_method`.

        Raises:
            EmptyOrderError: The order has no items.
            InvalidTransitionError: The order is already completed or cancelled.
            TableOccupiedError: A different active order holds the dine-in table.
        """
        payment_method = PaymentMethod(payment_method)
        order_service.ensure_has_items(order, "cobrar")
        if not order.is_active:
            raise InvalidTransitionError(
                "orden", order.status.value, OrderStatus.COMPLETED.value, order_id=order.id
            )

        with self._state.lock:
            stored = self._state.get(EntityTable.ORDERS, order.id)
            if stored is not None and not stored.is_active:
                # Closed elsewhere (another till, a concurrent request)
                self._state.drop_draft(order.id)
                raise InvalidTransitionError(
                    "orden", stored.status.value, OrderStatus.COMPLETED.value, order_id=order.id
                )
            if isinstance(order, DineInOrder):
                self._tables.ensure_available_for(order)

            now = self._state.now()
            completed = order_service.transition(order, OrderStatus.COMPLETED, now)
            total = compute_total(completed)

            sale = Sale(
                id=new_id("sale"),
                order=completed,
                total=total,
                timestamp=now,
                payment_method=payment_method,
                site_id=completed.site_id,
            )
            sale = self._state.apply(EntityTable.SALES, sale)
            completed = self._state.apply(EntityTable.ORDERS, completed)
            table = self._tables.sync_for_order(completed)

            touched, deductions = self._deduct_inventory(completed)
            customer, created, tier_changed = self._apply_loyalty(completed, total)

            self._state.drop_draft(completed.id)

        receipt = SaleReceipt(
            sale=sale,
            order=completed,
            table=table,
            deductions=deductions,
            customer=customer,
            customer_created=created,
            tier_changed=tier_changed,
        )

        if tier_changed is not None and customer is not None:
            self._state.notify(f"¡{customer.name} ahora es cliente {tier_changed.name}!")

        receipt.failed_writes = self._persist(receipt, touched)

        logger.info(
            "Sale completed",
            sale_id=sale.id,
            order_id=completed.id,
            order_type=completed.order_type,
            total=total,
            payment_method=payment_method.value,
            deducted_items=len(deductions),
            failed_writes=len(receipt.failed_writes),
        )
        return receipt

    # =========================================================================
    # Inventory
    # =========================================================================

    def _deduct_inventory(self, order: AnyOrder) -> tuple[list[InventoryItem], list[InventoryDeduction]]:
        """Apply every deduction locally. Returns touched items (to persist) and the log."""
        working: dict[str, InventoryItem] = {}
        deductions: list[InventoryDeduction] = []

        def current(item_id: str) -> InventoryItem | None:
            if item_id not in working:
                found = self._state.get(EntityTable.INVENTORY, item_id)
                if found is None:
                    return None
                working[item_id] = found
            return working[item_id]

        def deduct(inv: InventoryItem, amount: float) -> None:
            updated = deduct_stock(inv, amount)
            working[inv.id] = updated
            deductions.append(
                InventoryDeduction(
                    inventory_item_id=inv.id,
                    name=inv.name,
                    deducted=amount,
                    stock_before=inv.stock,
                    stock_after=updated.stock,
                )
            )

        for line in order.items:
            if line.recipe:
                for ingredient in line.recipe:
                    inv = current(ingredient.inventory_item_id)
                    if inv is None:
                        logger.warning(
                            "Recipe references unknown inventory item",
                            inventory_item_id=ingredient.inventory_item_id,
                            menu_item_id=line.menu_item_id,
                        )
                        continue
                    deduct(inv, ingredient.quantity * line.quantity)
                continue

            match = self._find_piece_item(line.name, order.site_id)
            if match is not None:
                deduct(current(match.id) or match, float(line.quantity))

        touched = [self._state.apply(EntityTable.INVENTORY, inv) for inv in working.values()]
        return touched, deductions

    def _find_piece_item(self, name: str, site_id: str) -> InventoryItem | None:
        """Inventory item sold by piece whose name matches the menu line."""
        wanted = name.strip().casefold()
        for inv in self._state.entities(EntityTable.INVENTORY):
            if (
                inv.site_id == site_id
                and inv.unit == UNIT_PIECE
                and inv.name.strip().casefold() == wanted
            ):
                return inv
        return None

    # =========================================================================
    # Loyalty
    # =========================================================================

    def find_customer_by_phone(self, phone: str) -> Customer | None:
        phone = phone.strip()
        for customer in self._state.entities(EntityTable.CUSTOMERS):
            if customer.phone.strip() == phone:
                return customer
        return None

    def _apply_loyalty(self, order: AnyOrder, total: int) -> tuple[Customer | None, bool, LoyaltyTier | None]:
        """Returns (customer, created, new tier if it changed)."""
        settings: LoyaltySettings = self._state.loyalty_settings
        contact = order.customer_contact()
        if not settings.enabled or contact is None:
            return None, False, None

        name, phone = contact
        now = self._state.now()
        earned = loyalty_points_for(total, settings.points_per_peso)
        existing = self.find_customer_by_phone(phone)

        if existing is None:
            tier = tier_for(earned, settings.tiers)
            customer = Customer(
                id=new_id("customer"),
                name=name,
                phone=phone,
                total_spent=total,
                visit_count=1,
                last_visit=now,
                loyalty_points=earned,
                loyalty_tier_id=tier.id if tier else None,
                site_id=order.site_id,
            )
            logger.info("Customer created from sale", phone=mask_phone(phone), points=earned)
            return self._state.apply(EntityTable.CUSTOMERS, customer), True, None

        points = existing.loyalty_points + earned
        tier = tier_for(points, settings.tiers)
        tier_id = tier.id if tier else None
        changed = tier if tier_id != existing.loyalty_tier_id and tier is not None else None

        customer = existing.model_copy(
            update={
                "total_spent": existing.total_spent + total,
                "visit_count": existing.visit_count + 1,
                "last_visit": now,
                "loyalty_points": points,
                "loyalty_tier_id": tier_id,
            }
        )
        return self._state.apply(EntityTable.CUSTOMERS, customer), False, changed

    # =========================================================================
    # Persistence
    # =========================================================================

    def _persist(self, receipt: SaleReceipt, inventory: list[InventoryItem]) -> list[tuple[str, str]]:
        failed: list[tuple[str, str]] = []
        if not self._state.gateway.insert(EntityTable.SALES, receipt.sale):
            failed.append((EntityTable.SALES, receipt.sale.id))

        writes: list[tuple[str, Any]] = [(EntityTable.ORDERS, receipt.order)]
        if receipt.table is not None:
            writes.append((EntityTable.TABLES, receipt.table))
        writes.extend((EntityTable.INVENTORY, inv) for inv in inventory)
        if receipt.customer is not None:
            writes.append((EntityTable.CUSTOMERS, receipt.customer))

        failed.extend(self._state.persist_all(writes))
        if failed:
            logger.warning("Sale partially persisted", sale_id=receipt.sale.id, failed=failed)
        return failed
