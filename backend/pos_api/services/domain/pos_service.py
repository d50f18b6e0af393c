"""
POS Service - order editing, saving and checkout.

Orders are edited as drafts held in the application state: a new order
starts as a draft, and opening a saved order copies it into a draft. Item
mutations only touch the draft; `save_order` persists it and updates
table occupancy, `checkout` hands it to the sale workflow.
"""

from __future__ import annotations

from typing import Any

from shared.config.constants import (
    GLOBAL_SITE_ID,
    DeliveryStatus,
    EntityTable,
    OrderStatus,
    OrderType,
    PaymentMethod,
)
from shared.config.logging import pos_logger
from shared.utils.exceptions import (
    InvalidTransitionError,
    NotFoundError,
    OrderNotFoundError,
    ValidationError,
)
from shared.utils.schemas import (
    DeliveryInfo,
    DeliveryOrder,
    DineInOrder,
    MenuItem,
    ParsedOrder,
    Table,
)

from pos_api.services.base_service import BaseService
from pos_api.services.collaborators import OrderParser, ReceiptPrinter
from pos_api.services.domain import order_service
from pos_api.services.domain.order_service import AddItemResult, AnyOrder, OptionSelection
from pos_api.services.domain.sale_service import SaleReceipt, SaleService
from pos_api.services.domain.table_service import TableService
from pos_api.services.state import AppState

logger = pos_logger


class POSService(BaseService):
    """Facade used by the till: drafts, save, checkout, status changes."""

    def __init__(
        self,
        state: AppState,
        parser: OrderParser | None = None,
        printer: ReceiptPrinter | None = None,
    ):
        super().__init__(state)
        self._tables = TableService(state)
        self._sales = SaleService(state, self._tables)
        self._parser = parser
        self._printer = printer

    @property
    def tables(self) -> TableService:
        return self._tables

    # =========================================================================
    # Context helpers
    # =========================================================================

    def _user_id(self) -> str:
        user = self._state.current_user
        return user.id if user else "system"

    def menu_for_site(self, site_id: str | None = None) -> dict[str, MenuItem]:
        items = self._state.list_for_site(EntityTable.MENU_ITEMS, site_id)
        return {item.id: item for item in items}

    def _menu_item(self, menu_item_id: str, site_id: str) -> MenuItem:
        item = self.menu_for_site(site_id).get(menu_item_id)
        if item is None:
            raise NotFoundError("Producto", menu_item_id)
        return item

    # =========================================================================
    # Drafts
    # =========================================================================

    def get_order(self, order_id: str) -> AnyOrder:
        """Draft if one is open, else the saved order."""
        order = self._state.get_draft(order_id) or self._state.get(EntityTable.ORDERS, order_id)
        if order is None:
            raise OrderNotFoundError(order_id)
        return order

    def _editable(self, order_id: str) -> AnyOrder:
        with self._state.lock:
            draft = self._state.get_draft(order_id)
            if draft is not None:
                return draft
            saved = self._state.get(EntityTable.ORDERS, order_id)
            if saved is None:
                raise OrderNotFoundError(order_id)
            return self._state.put_draft(saved)

    def _store_draft(self, order: AnyOrder) -> AnyOrder:
        return self._state.put_draft(order)

    def start_order(self, order_type: OrderType | str, **binding: Any) -> AnyOrder:
        """New draft for the selected site."""
        if OrderType(order_type) == OrderType.DINE_IN and binding.get("table_id"):
            return self.open_table(binding["table_id"])

        if "delivery_info" in binding and isinstance(binding["delivery_info"], dict):
            binding["delivery_info"] = DeliveryInfo.model_validate(binding["delivery_info"])
        order = order_service.start_order(
            order_type,
            site_id=self._state.selected_site_id,
            user_id=self._user_id(),
            now=self._state.now(),
            **binding,
        )
        logger.info("Order started", order_id=order.id, order_type=order.order_type)
        return self._store_draft(order)

    def open_table(self, table_id: str) -> DineInOrder:
        """
        Order for a table: the active one if it exists, otherwise a new
        dine-in draft.
        """
        existing = self._tables.open_table(table_id)
        if existing is not None:
            draft = self._state.get_draft(existing.id)
            return draft or self._state.put_draft(existing)

        for draft in self._state.drafts():
            if isinstance(draft, DineInOrder) and draft.table_id == table_id and draft.is_active:
                return draft

        table: Table = self._tables.get_by_id(table_id)
        site_id = self._state.selected_site_id
        if site_id != GLOBAL_SITE_ID and table.site_id != site_id:
            raise ValidationError("La mesa pertenece a otra sede", table_id=table_id)
        order = order_service.start_order(
            OrderType.DINE_IN,
            site_id=site_id,
            user_id=self._user_id(),
            table_id=table_id,
            now=self._state.now(),
        )
        logger.info("Dine-in order started", order_id=order.id, table_id=table_id)
        return self._store_draft(order)

    def quick_sale(self) -> AnyOrder:
        order = order_service.quick_sale(
            site_id=self._state.selected_site_id,
            user_id=self._user_id(),
            now=self._state.now(),
        )
        return self._store_draft(order)

    def discard_draft(self, order_id: str) -> None:
        self._state.drop_draft(order_id)

    # =========================================================================
    # Items
    # =========================================================================

    def add_item(self, order_id: str, menu_item_id: str) -> AddItemResult:
        """Add a menu item; items with options come back staged."""
        with self._state.lock:
            order = self._editable(order_id)
            result = order_service.add_item(order, self._menu_item(menu_item_id, order.site_id))
            if result.staged is not None:
                self._state.stage(order_id, result.staged)
            else:
                self._store_draft(result.order)
        return result

    def confirm_options(self, order_id: str, instance_id: str, selection: OptionSelection) -> AnyOrder:
        with self._state.lock:
            staged = self._state.take_staged(order_id, instance_id)
            if staged is None:
                raise NotFoundError("Producto pendiente", instance_id)
            order = self._editable(order_id)
            try:
                updated = order_service.confirm_options(order, staged, selection)
            except ValidationError:
                # Keep the item staged so the operator can correct the selection
                self._state.stage(order_id, staged)
                raise
            return self._store_draft(updated)

    def cancel_staged(self, order_id: str, instance_id: str) -> None:
        self._state.take_staged(order_id, instance_id)

    def _mutate(self, order_id: str, fn, *args: Any) -> AnyOrder:
        with self._state.lock:
            order = self._editable(order_id)
            return self._store_draft(fn(order, *args))

    def update_item(self, order_id: str, instance_id: str, patch: dict[str, Any]) -> AnyOrder:
        return self._mutate(order_id, order_service.update_item, instance_id, patch)

    def remove_item(self, order_id: str, instance_id: str) -> AnyOrder:
        return self._mutate(order_id, order_service.remove_item, instance_id)

    def increment_qty(self, order_id: str, instance_id: str) -> AnyOrder:
        return self._mutate(order_id, order_service.increment_qty, instance_id)

    def decrement_qty(self, order_id: str, instance_id: str) -> AnyOrder:
        return self._mutate(order_id, order_service.decrement_qty, instance_id)

    def clear_items(self, order_id: str) -> AnyOrder:
        return self._mutate(order_id, order_service.clear_items)

    def attach_customer(
        self,
        order_id: str,
        *,
        name: str,
        phone: str = "",
        address: str | None = None,
        delivery_cost: int = 0,
    ) -> AnyOrder:
        return self._mutate(
            order_id,
            lambda order: order_service.attach_customer(
                order, name=name, phone=phone, address=address, delivery_cost=delivery_cost
            ),
        )

    def import_parsed_order(self, order_id: str, parsed: ParsedOrder) -> tuple[AnyOrder, list[str]]:
        with self._state.lock:
            order = self._editable(order_id)
            updated, skipped = order_service.import_parsed_order(order, parsed, self.menu_for_site(order.site_id))
            return self._store_draft(updated), skipped

    def import_chat_message(self, order_id: str, text: str) -> tuple[AnyOrder, list[str]]:
        """Run a chat message through the order parser and import the result."""
        if self._parser is None:
            raise ValidationError("Lector de pedidos no configurado")
        if not text.strip():
            raise ValidationError("El mensaje está vacío", order_id=order_id)
        order = self.get_order(order_id)
        menu = list(self.menu_for_site(order.site_id).values())
        parsed = self._parser.parse(text, menu, order.order_type)
        if parsed is None:
            raise ValidationError("No se pudo interpretar el pedido", order_id=order_id)
        return self.import_parsed_order(order_id, parsed)

    # =========================================================================
    # Save / status
    # =========================================================================

    def _apply_order(self, order: AnyOrder) -> tuple[AnyOrder, list[tuple[str, Any]]]:
        """
        Store `order` with its table effects. Call with the state lock held;
        returns the stored order and the writes to persist once it is released.

        A dine-in order that moved away from a table releases it.
        """
        previous = self._state.get(EntityTable.ORDERS, order.id)
        if previous is not None and not previous.is_active and order.is_active:
            raise InvalidTransitionError(
                "orden", previous.status.value, order.status.value, order_id=order.id
            )
        if isinstance(order, DineInOrder) and order.is_active:
            self._tables.ensure_available_for(order)

        stored = self._state.apply(EntityTable.ORDERS, order)
        touched: list[Table] = []
        if (
            isinstance(previous, DineInOrder)
            and previous.is_active
            and (not isinstance(stored, DineInOrder) or stored.table_id != previous.table_id)
        ):
            released = self._tables.release_local(previous.table_id)
            if released is not None:
                touched.append(released)
        table = self._tables.sync_for_order(stored)
        if table is not None:
            touched.append(table)
        self._state.drop_draft(order.id)
        return stored, [(EntityTable.ORDERS, stored)] + [(EntityTable.TABLES, t) for t in touched]

    def save_order(self, order_id: str) -> AnyOrder:
        """
        Persist the draft.

        Raises:
            EmptyOrderError: The order has no items.
            TableOccupiedError: Another active order holds the table.
        """
        with self._state.lock:
            order = self.get_order(order_id)
            order_service.ensure_has_items(order, "guardar")
            saved, writes = self._apply_order(order)
        self._state.persist_all(writes)
        logger.info("Order saved", order_id=saved.id, items=len(saved.items), total=saved.total)
        return saved

    def set_status(self, order_id: str, status: OrderStatus | str) -> AnyOrder:
        """
        Transition a saved order. Completing goes through `checkout`;
        terminal statuses release the table.
        """
        status = OrderStatus(status)
        if status == OrderStatus.COMPLETED:
            raise ValidationError("Usa cobrar para completar la orden", order_id=order_id)

        with self._state.lock:
            saved = self._state.get(EntityTable.ORDERS, order_id)
            if saved is None:
                draft = self._state.get_draft(order_id)
                if draft is not None and status == OrderStatus.CANCELLED:
                    self._state.drop_draft(order_id)
                    return order_service.transition(draft, status)
                raise OrderNotFoundError(order_id)
            updated = order_service.transition(saved, status, self._state.now())
            result, writes = self._apply_order(updated)
        self._state.persist_all(writes)

        logger.info("Order status changed", order_id=order_id, status=status.value)
        return result

    def cancel_order(self, order_id: str) -> AnyOrder:
        return self.set_status(order_id, OrderStatus.CANCELLED)

    def set_delivery_status(self, order_id: str, delivery_status: DeliveryStatus | str) -> AnyOrder:
        """Advance a delivery; confirming opens an order awaiting confirmation."""
        delivery_status = DeliveryStatus(delivery_status)
        with self._state.lock:
            order = self._state.get(EntityTable.ORDERS, order_id)
            if not isinstance(order, DeliveryOrder):
                raise OrderNotFoundError(order_id)
            info = order.delivery_info.model_copy(update={"delivery_status": delivery_status})
            updated = order.model_copy(update={"delivery_info": info})
            if (
                delivery_status != DeliveryStatus.QUOTING
                and updated.status == OrderStatus.PENDING_CONFIRMATION
            ):
                updated = order_service.transition(updated, OrderStatus.OPEN)
            result, writes = self._apply_order(updated)
        self._state.persist_all(writes)
        return result

    def mark_printed(self, order_id: str) -> AnyOrder:
        """
        Flag every line as sent to the kitchen and persist. The ticket goes
        to the printer when one is configured.
        """
        writes: list[tuple[str, Any]] = []
        with self._state.lock:
            order = self.get_order(order_id)
            order_service.ensure_has_items(order, "guardar")
            order = order_service.mark_printed(order)
            if self._state.get(EntityTable.ORDERS, order_id) is None:
                result = self._store_draft(order)
            else:
                result, writes = self._apply_order(order)
        self._state.persist_all(writes)

        if self._printer is not None:
            self._printer.print_order(result, self._state.printer_settings)
            logger.info("Ticket printed", order_id=order_id, items=len(result.items))
        return result

    # =========================================================================
    # Checkout
    # =========================================================================

    def checkout(self, order_id: str, payment_method: PaymentMethod | str) -> SaleReceipt:
        """Complete the sale for the draft (or saved order)."""
        order = self.get_order(order_id)
        receipt = self._sales.complete_sale(order, payment_method)
        return receipt

    # =========================================================================
    # Queries
    # =========================================================================

    def active_orders(self, site_id: str | None = None) -> list[AnyOrder]:
        orders = self._state.list_for_site(EntityTable.ORDERS, site_id)
        return [o for o in orders if o.is_active]

    def orders_by_status(self, status: OrderStatus | str, site_id: str | None = None) -> list[AnyOrder]:
        status = OrderStatus(status)
        return [o for o in self._state.list_for_site(EntityTable.ORDERS, site_id) if o.status == status]
