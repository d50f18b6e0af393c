"""
Tests for the order aggregate: creation, item mutations, options step,
lifecycle transitions and customer binding.
"""

import pytest

from shared.config.constants import DeliveryStatus, OrderStatus, OrderType, QUICK_SALE_NAME
from shared.utils.exceptions import (
    EmptyOrderError,
    GlobalSiteError,
    InvalidOptionError,
    InvalidTransitionError,
    ValidationError,
)
from shared.utils.schemas import (
    DeliveryInfo,
    DeliveryOrder,
    DineInOrder,
    MenuItem,
    ParsedOrder,
    ToGoOrder,
    parse_order,
)
from pos_api.services.domain import order_service
from pos_api.services.domain.order_service import OptionSelection
from pos_api.services.persistence.defaults import default_table


SITE = "sede-principal"


@pytest.fixture
def menu():
    return {row["id"]: MenuItem.model_validate(row) for row in default_table("menu_items")}


@pytest.fixture
def dine_in():
    return order_service.start_order(OrderType.DINE_IN, site_id=SITE, user_id="user-admin", table_id="table-1")


def _add_plain(order, menu_item):
    result = order_service.add_item(order, menu_item)
    assert result.staged is None
    return result.order


class TestStartOrder:
    """Order creation per type."""

    def test_dine_in_starts_open(self, dine_in):
        assert isinstance(dine_in, DineInOrder)
        assert dine_in.status == OrderStatus.OPEN
        assert dine_in.items == []
        assert dine_in.table_id == "table-1"

    def test_delivery_starts_pending_confirmation(self):
        order = order_service.start_order(
            OrderType.DELIVERY,
            site_id=SITE,
            user_id="u",
            delivery_info=DeliveryInfo(name="Ana", phone="300", address="Calle 1"),
        )
        assert isinstance(order, DeliveryOrder)
        assert order.status == OrderStatus.PENDING_CONFIRMATION

    def test_to_go_requires_name(self):
        with pytest.raises(ValidationError):
            order_service.start_order(OrderType.TO_GO, site_id=SITE, user_id="u", to_go_name="  ")

    def test_dine_in_requires_table(self):
        with pytest.raises(ValidationError):
            order_service.start_order(OrderType.DINE_IN, site_id=SITE, user_id="u")

    def test_global_site_rejected(self):
        with pytest.raises(GlobalSiteError):
            order_service.start_order(OrderType.TO_GO, site_id="global", user_id="u", to_go_name="Juan")

    def test_quick_sale_is_anonymous_to_go(self):
        order = order_service.quick_sale(site_id=SITE, user_id="u")
        assert isinstance(order, ToGoOrder)
        assert order.to_go_name == QUICK_SALE_NAME
        assert order.to_go_phone is None
        assert order.customer_contact() is None

    def test_ids_are_unique(self):
        a = order_service.quick_sale(site_id=SITE, user_id="u")
        b = order_service.quick_sale(site_id=SITE, user_id="u")
        assert a.id != b.id


class TestItems:
    """Adding, editing and removing lines."""

    def test_plain_item_is_appended_as_snapshot(self, dine_in, menu):
        order = _add_plain(dine_in, menu["menu-gaseosa"])
        item = order.items[0]
        assert item.menu_item_id == "menu-gaseosa"
        assert item.price == 5000
        assert item.quantity == 1
        assert item.is_printed is False
        # Input order untouched
        assert dine_in.items == []

    def test_same_product_twice_gives_two_lines(self, dine_in, menu):
        order = _add_plain(dine_in, menu["menu-gaseosa"])
        order = _add_plain(order, menu["menu-gaseosa"])
        assert len(order.items) == 2
        assert order.items[0].instance_id != order.items[1].instance_id

    def test_item_with_options_is_staged(self, dine_in, menu):
        result = order_service.add_item(dine_in, menu["menu-alitas-6"])
        assert result.staged is not None
        assert result.order.items == []
        assert result.staged.item.has_wings is True

    def test_confirm_options_appends_with_sauces(self, dine_in, menu):
        result = order_service.add_item(dine_in, menu["menu-alitas-12"])
        order = order_service.confirm_options(
            result.order,
            result.staged,
            OptionSelection(wing_sauces=["bbq", "teriyaki"], fry_sauces=["ajo"], notes="sin hielo"),
        )
        item = order.items[0]
        assert [s.key for s in item.selected_wing_sauces] == ["bbq", "teriyaki"]
        assert [s.key for s in item.selected_fry_sauces] == ["ajo"]
        assert item.notes == "sin hielo"

    def test_unknown_sauce_rejected(self, dine_in, menu):
        result = order_service.add_item(dine_in, menu["menu-alitas-6"])
        with pytest.raises(InvalidOptionError):
            order_service.confirm_options(result.order, result.staged, OptionSelection(wing_sauces=["mango"]))

    def test_fry_sauce_on_wings_only_item_rejected(self, dine_in, menu):
        result = order_service.add_item(dine_in, menu["menu-alitas-6"])
        with pytest.raises(InvalidOptionError):
            order_service.confirm_options(result.order, result.staged, OptionSelection(fry_sauces=["ajo"]))

    def test_repeated_sauce_rejected(self, dine_in, menu):
        result = order_service.add_item(dine_in, menu["menu-alitas-6"])
        with pytest.raises(InvalidOptionError):
            order_service.confirm_options(
                result.order, result.staged, OptionSelection(wing_sauces=["bbq", "bbq"])
            )

    def test_submenu_choice_required(self, dine_in, menu):
        result = order_service.add_item(dine_in, menu["menu-combo"])
        with pytest.raises(InvalidOptionError):
            order_service.confirm_options(result.order, result.staged, OptionSelection())
        order = order_service.confirm_options(
            result.order, result.staged, OptionSelection(choice="Sprite")
        )
        assert order.items[0].selected_choice == "Sprite"

    def test_gelato_flavor_limit(self, dine_in, menu):
        result = order_service.add_item(dine_in, menu["menu-gelato"])
        with pytest.raises(InvalidOptionError):
            order_service.confirm_options(
                result.order,
                result.staged,
                OptionSelection(gelato_flavors=["Vainilla", "Chocolate", "Fresa"]),
            )
        order = order_service.confirm_options(
            result.order, result.staged, OptionSelection(gelato_flavors=["Vainilla", "Café"])
        )
        assert order.items[0].selected_gelato_flavors == ["Vainilla", "Café"]

    def test_flavors_on_item_without_flavors_rejected(self, dine_in, menu):
        order = _add_plain(dine_in, menu["menu-gaseosa"])
        with pytest.raises(InvalidOptionError):
            order_service.validate_options(order.items[0], OptionSelection(gelato_flavors=["Vainilla"]))

    def test_update_quantity_and_notes(self, dine_in, menu):
        order = _add_plain(dine_in, menu["menu-gaseosa"])
        iid = order.items[0].instance_id
        order = order_service.update_item(order, iid, {"quantity": 3, "notes": "fría"})
        assert order.items[0].quantity == 3
        assert order.items[0].notes == "fría"

    def test_update_ignores_null_values(self, dine_in, menu):
        order = _add_plain(dine_in, menu["menu-gaseosa"])
        iid = order.items[0].instance_id
        assert order_service.update_item(order, iid, {"quantity": None}) == order

        order = order_service.update_item(
            order, iid, {"quantity": None, "selected_gelato_flavors": None, "notes": "fría"}
        )
        assert order.items[0].quantity == 1
        assert order.items[0].notes == "fría"

    def test_update_quantity_zero_removes_line(self, dine_in, menu):
        order = _add_plain(dine_in, menu["menu-gaseosa"])
        order = order_service.update_item(order, order.items[0].instance_id, {"quantity": 0})
        assert order.items == []

    def test_update_unknown_field_rejected(self, dine_in, menu):
        order = _add_plain(dine_in, menu["menu-gaseosa"])
        with pytest.raises(ValidationError):
            order_service.update_item(order, order.items[0].instance_id, {"price": 1})

    def test_update_unknown_instance_is_noop(self, dine_in, menu):
        order = _add_plain(dine_in, menu["menu-gaseosa"])
        assert order_service.update_item(order, "missing", {"quantity": 5}) == order

    def test_increment_and_decrement(self, dine_in, menu):
        order = _add_plain(dine_in, menu["menu-gaseosa"])
        iid = order.items[0].instance_id
        order = order_service.increment_qty(order, iid)
        assert order.items[0].quantity == 2
        order = order_service.decrement_qty(order, iid)
        assert order.items[0].quantity == 1
        order = order_service.decrement_qty(order, iid)
        assert order.items == []

    def test_clear_items_keeps_binding(self, dine_in, menu):
        order = _add_plain(dine_in, menu["menu-gaseosa"])
        cleared = order_service.clear_items(order)
        assert cleared.items == []
        assert cleared.id == dine_in.id
        assert cleared.table_id == "table-1"

    def test_mutation_resets_printed_flag(self, dine_in, menu):
        order = order_service.mark_printed(_add_plain(dine_in, menu["menu-gaseosa"]))
        assert order.items[0].is_printed is True
        order = order_service.increment_qty(order, order.items[0].instance_id)
        assert order.items[0].is_printed is False


class TestLifecycle:
    """Status transitions."""

    def test_open_to_ready_stamps_ready_at(self, dine_in):
        ready = order_service.transition(dine_in, OrderStatus.READY)
        assert ready.status == OrderStatus.READY
        assert ready.ready_at is not None

    def test_terminal_status_is_final(self, dine_in):
        cancelled = order_service.transition(dine_in, OrderStatus.CANCELLED)
        with pytest.raises(InvalidTransitionError):
            order_service.transition(cancelled, OrderStatus.OPEN)

    def test_completed_order_cannot_be_edited(self, dine_in, menu):
        completed = order_service.transition(_add_plain(dine_in, menu["menu-gaseosa"]), OrderStatus.COMPLETED)
        with pytest.raises(InvalidTransitionError):
            order_service.add_item(completed, menu["menu-gaseosa"])

    def test_empty_order_cannot_be_saved(self, dine_in):
        with pytest.raises(EmptyOrderError):
            order_service.ensure_has_items(dine_in, "guardar")


class TestCustomerBinding:
    """attach_customer and parsed order import."""

    def test_address_turns_order_into_delivery(self, menu):
        order = _add_plain(order_service.quick_sale(site_id=SITE, user_id="u"), menu["menu-gaseosa"])
        delivery = order_service.attach_customer(
            order, name="Ana", phone="3001112222", address="Calle 10 #5-20", delivery_cost=4000
        )
        assert isinstance(delivery, DeliveryOrder)
        assert delivery.status == OrderStatus.PENDING_CONFIRMATION
        assert delivery.delivery_info.delivery_status == DeliveryStatus.QUOTING
        assert delivery.id == order.id
        assert len(delivery.items) == 1
        assert delivery.total == 5000 + 4000

    def test_rebinding_confirmed_delivery_returns_to_quoting(self, menu):
        order = _add_plain(order_service.quick_sale(site_id=SITE, user_id="u"), menu["menu-gaseosa"])
        delivery = order_service.attach_customer(
            order, name="Ana", phone="3001112222", address="Calle 10 #5-20", delivery_cost=4000
        )
        confirmed = delivery.model_copy(update={
            "status": OrderStatus.OPEN,
            "delivery_info": delivery.delivery_info.model_copy(
                update={"delivery_status": DeliveryStatus.CONFIRMED}
            ),
        })

        rebound = order_service.attach_customer(confirmed, name="Ana", phone="3001112222", address="Carrera 7 #12-3")

        assert rebound.status == OrderStatus.PENDING_CONFIRMATION
        assert rebound.delivery_info.delivery_status == DeliveryStatus.QUOTING
        assert rebound.delivery_info.delivery_cost == 4000

    def test_without_address_becomes_to_go(self):
        order = order_service.quick_sale(site_id=SITE, user_id="u")
        to_go = order_service.attach_customer(order, name=" Juan ", phone="3001234567")
        assert isinstance(to_go, ToGoOrder)
        assert to_go.customer_contact() == ("Juan", "3001234567")

    def test_import_skips_unknown_items(self, menu):
        order = order_service.quick_sale(site_id=SITE, user_id="u")
        parsed = ParsedOrder.model_validate({
            "items": [
                {"menuItemId": "menu-papas", "quantity": 2, "notes": "bien tostadas"},
                {"menuItemId": "menu-pizza"},
            ],
            "customer": {"name": "Laura", "phone": "3105550000"},
        })
        imported, skipped = order_service.import_parsed_order(order, parsed, menu)
        assert skipped == ["menu-pizza"]
        assert imported.items[0].quantity == 2
        assert imported.items[0].notes == "bien tostadas"
        assert imported.customer_contact() == ("Laura", "3105550000")

    def test_import_keeps_dine_in_table(self, dine_in, menu):
        parsed = ParsedOrder.model_validate({
            "items": [{"menuItemId": "menu-gaseosa"}],
            "customer": {"name": "Laura", "address": "Calle 1"},
        })
        imported, _ = order_service.import_parsed_order(dine_in, parsed, menu)
        assert isinstance(imported, DineInOrder)
        assert imported.table_id == "table-1"


class TestPersistedForm:
    """Orders parse back from their camelCase JSON."""

    def test_discriminated_parse(self, dine_in, menu):
        order = _add_plain(dine_in, menu["menu-gaseosa"])
        data = order.to_data()
        assert data["orderType"] == "dine-in"
        assert data["items"][0]["id"] == "menu-gaseosa"
        parsed = parse_order(data)
        assert isinstance(parsed, DineInOrder)
        assert parsed.items[0].menu_item_id == "menu-gaseosa"
