"""
Property-based Testing with Hypothesis.

Invariants of the order aggregate, sale totals, inventory deduction and
table occupancy that must hold for any input.
"""

import tempfile

from hypothesis import given, settings, strategies as st

from shared.config.constants import EntityTable, OrderStatus, PaymentMethod, TableStatus
from shared.utils.schemas import InventoryItem, LoyaltyTier, MenuItem
from pos_api.services.domain import POSService, TableService, ZoneService, order_service
from pos_api.services.domain.sale_service import compute_total, deduct_stock, loyalty_points_for, tier_for
from pos_api.services.persistence import LocalStore, PersistenceGateway
from pos_api.services.state import AppState
from pos_api.services.sync import ReconciliationLoop


SITE = "sede-principal"

prices = st.integers(min_value=0, max_value=500_000)
quantities = st.integers(min_value=1, max_value=50)


def _order_with(lines):
    """To-go order with one line per (price, quantity)."""
    order = order_service.quick_sale(site_id=SITE, user_id="u")
    for i, (price, quantity) in enumerate(lines):
        item = MenuItem(id=f"menu-{i}", name=f"Producto {i}", category="Varios", price=price)
        order = order_service.add_item(order, item).order
        order = order_service.update_item(order, order.items[-1].instance_id, {"quantity": quantity})
    return order


class TestInventoryProperties:
    @given(
        stock=st.floats(min_value=0, max_value=10_000, allow_nan=False),
        amount=st.floats(min_value=0, max_value=20_000, allow_nan=False),
    )
    def test_stock_never_negative(self, stock, amount):
        """Property: deduction floors at zero and never adds stock."""
        item = InventoryItem(id="inv-1", name="Insumo", stock=stock, site_id=SITE)
        result = deduct_stock(item, amount)
        assert result.stock >= 0
        assert result.stock <= stock
        assert result.stock == max(0.0, stock - amount)


class TestTotalProperties:
    @given(lines=st.lists(st.tuples(prices, quantities), max_size=8), data=st.data())
    def test_total_independent_of_line_order(self, lines, data):
        """Property: permuting the lines does not change the total."""
        order = _order_with(lines)
        shuffled = data.draw(st.permutations(order.items))
        reordered = order.model_copy(update={"items": list(shuffled)})
        assert compute_total(order) == compute_total(reordered)
        assert compute_total(order) == sum(p * q for p, q in lines)

    @given(total=st.integers(min_value=0, max_value=10_000_000))
    def test_points_never_exceed_exact_value(self, total):
        """Property: points are floor(total * rate)."""
        points = loyalty_points_for(total, 0.01)
        assert points == total // 100

    @given(
        thresholds=st.lists(st.integers(min_value=0, max_value=5000), min_size=1, max_size=5, unique=True),
        a=st.integers(min_value=0, max_value=6000),
        b=st.integers(min_value=0, max_value=6000),
    )
    def test_tier_is_monotonic_in_points(self, thresholds, a, b):
        """Property: more points never yield a lower tier."""
        tiers = [LoyaltyTier(id=f"tier-{t}", name=str(t), min_points=t) for t in thresholds]
        low, high = sorted((a, b))
        low_tier, high_tier = tier_for(low, tiers), tier_for(high, tiers)
        if low_tier is not None:
            assert high_tier is not None
            assert high_tier.min_points >= low_tier.min_points


class TestItemProperties:
    @given(quantity=quantities, extra=st.integers(min_value=0, max_value=60))
    def test_decrement_converges_to_removal(self, quantity, extra):
        """Property: decrementing past zero removes the line and then is a no-op."""
        order = _order_with([(1000, quantity)])
        iid = order.items[0].instance_id
        for _ in range(quantity + extra):
            order = order_service.decrement_qty(order, iid)
        assert order.items == []
        assert order_service.decrement_qty(order, iid) == order

    @given(
        op=st.sampled_from(["increment", "decrement", "notes", "quantity"]),
        quantity=st.integers(min_value=2, max_value=10),
    )
    def test_mutation_resets_printed(self, op, quantity):
        """Property: any change to a printed line clears isPrinted."""
        order = order_service.mark_printed(_order_with([(5000, quantity)]))
        iid = order.items[0].instance_id
        if op == "increment":
            order = order_service.increment_qty(order, iid)
        elif op == "decrement":
            order = order_service.decrement_qty(order, iid)
        elif op == "notes":
            order = order_service.update_item(order, iid, {"notes": "sin sal"})
        else:
            order = order_service.update_item(order, iid, {"quantity": quantity + 1})
        assert order.find_item(iid).is_printed is False


class TestOccupancyProperties:
    @settings(max_examples=25, deadline=None)
    @given(
        steps=st.lists(
            st.tuples(st.integers(min_value=0, max_value=2), st.sampled_from(["save", "cancel", "checkout"])),
            max_size=12,
        )
    )
    def test_at_most_one_active_order_per_table(self, steps):
        """Property: whatever the sequence, a table hosts at most one active order
        and is occupied exactly when it does."""
        with tempfile.TemporaryDirectory() as directory:
            state = AppState(PersistenceGateway(LocalStore(directory), None))
            ReconciliationLoop(state, policy="snapshot", interval=0).reconcile_once()
            zone = ZoneService(state).create({"name": "Salón"})
            tables = [
                TableService(state).create({"name": f"Mesa {i}", "zone_id": zone.id}) for i in range(3)
            ]
            pos = POSService(state)

            for index, action in steps:
                table_id = tables[index].id
                order = pos.open_table(table_id)
                if action == "save":
                    pos.add_item(order.id, "menu-gaseosa")
                    pos.save_order(order.id)
                elif action == "cancel":
                    pos.cancel_order(order.id)
                else:
                    pos.add_item(order.id, "menu-gaseosa")
                    pos.checkout(order.id, PaymentMethod.CASH)

            for table in tables:
                active = [
                    o for o in state.entities(EntityTable.ORDERS)
                    if getattr(o, "table_id", None) == table.id and o.status not in (
                        OrderStatus.COMPLETED, OrderStatus.CANCELLED
                    )
                ]
                assert len(active) <= 1
                status = state.get(EntityTable.TABLES, table.id).status
                assert (status == TableStatus.OCCUPIED) == bool(active)
