"""
Tests for the reconciliation loop: snapshot and versioned policies,
settings application and lifecycle.
"""

import time
from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock

import pytest

from shared.config.constants import EntityTable, SettingKey
from shared.utils.schemas import Zone
from pos_api.services.domain import ZoneService
from pos_api.services.persistence import RemoteStoreError, Snapshot
from pos_api.services.state import AppState
from pos_api.services.sync import POLICY_SNAPSHOT, POLICY_VERSIONED, ReconciliationLoop


T0 = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


def _zone(zone_id, name, updated_at=None):
    return {"id": zone_id, "name": name, "siteId": "sede-principal",
            "updatedAt": updated_at.isoformat() if updated_at else None}


def _fake_gateway(gateway, tables, settings=None):
    """Gateway double returning a fixed remote snapshot."""
    fake = MagicMock(wraps=gateway)
    fake.fetch_all_tables.return_value = Snapshot(tables=tables, settings=settings or {}, source="remote")
    return fake


class TestSnapshotPolicy:
    """Non-empty collections replace local ones; empty ones never clear."""

    def test_initial_load_from_remote(self, state):
        assert state.get(EntityTable.USERS, "user-admin") is not None
        assert state.count(EntityTable.MENU_ITEMS) == 6
        assert state.get(EntityTable.INVENTORY, "inv-alitas").stock == 240
        assert state.last_reconciled_at is not None

    def test_empty_collection_does_not_clear_local(self, state, zone):
        fake = _fake_gateway(state.gateway, {EntityTable.ZONES: []})
        ReconciliationLoop(state, fake, policy=POLICY_SNAPSHOT, interval=0).reconcile_once()
        assert state.get(EntityTable.ZONES, zone.id) is not None

    def test_non_empty_collection_replaces_local(self, state, zone):
        fake = _fake_gateway(state.gateway, {EntityTable.ZONES: [_zone("zone-remote", "Salón")]})
        ReconciliationLoop(state, fake, policy=POLICY_SNAPSHOT, interval=0).reconcile_once()
        assert state.get(EntityTable.ZONES, zone.id) is None
        assert state.get(EntityTable.ZONES, "zone-remote").name == "Salón"

    def test_invalid_rows_are_skipped(self, state):
        fake = _fake_gateway(state.gateway, {EntityTable.ZONES: [_zone("zone-ok", "Bar"), {"id": "broken"}]})
        ReconciliationLoop(state, fake, policy=POLICY_SNAPSHOT, interval=0).reconcile_once()
        assert [z.id for z in state.entities(EntityTable.ZONES)] == ["zone-ok"]

    def test_settings_are_applied(self, state):
        fake = _fake_gateway(state.gateway, {}, {SettingKey.EXPENSE_CATEGORIES: ["Gas", "Agua"]})
        ReconciliationLoop(state, fake, policy=POLICY_SNAPSHOT, interval=0).reconcile_once()
        assert state.expense_categories == ["Gas", "Agua"]

    def test_remote_write_visible_after_reconcile(self, state):
        state.gateway.upsert(EntityTable.ZONES, _zone("zone-other-till", "Segundo piso"))
        assert state.get(EntityTable.ZONES, "zone-other-till") is None
        ReconciliationLoop(state, policy=POLICY_SNAPSHOT, interval=0).reconcile_once()
        assert state.get(EntityTable.ZONES, "zone-other-till").name == "Segundo piso"

    def test_refused_write_is_undone_by_next_reconcile(self, state, zone, remote_store, monkeypatch):
        def refuse(table, entity_id, data):
            raise RemoteStoreError("upsert", table, RuntimeError("constraint"))

        monkeypatch.setattr(remote_store, "upsert", refuse)
        ZoneService(state).update(zone.id, {"name": "Patio"})
        assert state.get(EntityTable.ZONES, zone.id).name == "Patio"
        assert not state.gateway.is_offline

        ReconciliationLoop(state, policy=POLICY_SNAPSHOT, interval=0).reconcile_once()

        assert state.get(EntityTable.ZONES, zone.id).name == "Terraza"

    def test_offline_state_uses_defaults(self, offline_state):
        assert offline_state.count(EntityTable.USERS) == 2
        assert offline_state.loyalty_settings.tiers[-1].id == "tier-oro"
        assert "Insumos" in offline_state.expense_categories


class TestVersionedPolicy:
    """Newer updatedAt wins; locally modified entities survive."""

    def _state(self, gateway, clock_value):
        app_state = AppState(gateway, clock=lambda: clock_value)
        return app_state

    def test_newer_remote_wins(self, gateway):
        app_state = self._state(gateway, T0)
        app_state.apply(EntityTable.ZONES, Zone(id="zone-1", name="Local", site_id="sede-principal"))
        fake = _fake_gateway(gateway, {EntityTable.ZONES: [_zone("zone-1", "Remoto", T0 + timedelta(minutes=5))]})

        ReconciliationLoop(app_state, fake, policy=POLICY_VERSIONED, interval=0).reconcile_once()

        assert app_state.get(EntityTable.ZONES, "zone-1").name == "Remoto"

    def test_newer_local_wins(self, gateway):
        app_state = self._state(gateway, T0)
        app_state.apply(EntityTable.ZONES, Zone(id="zone-1", name="Local", site_id="sede-principal"))
        fake = _fake_gateway(gateway, {EntityTable.ZONES: [_zone("zone-1", "Remoto", T0 - timedelta(minutes=5))]})

        ReconciliationLoop(app_state, fake, policy=POLICY_VERSIONED, interval=0).reconcile_once()

        assert app_state.get(EntityTable.ZONES, "zone-1").name == "Local"

    def test_dirty_local_entity_survives_missing_from_snapshot(self, gateway):
        app_state = self._state(gateway, T0)
        app_state.apply(EntityTable.ZONES, Zone(id="zone-new", name="Nuevo", site_id="sede-principal"))
        fake = _fake_gateway(gateway, {EntityTable.ZONES: [_zone("zone-1", "Remoto", T0)]})

        ReconciliationLoop(app_state, fake, policy=POLICY_VERSIONED, interval=0).reconcile_once()

        assert {z.id for z in app_state.entities(EntityTable.ZONES)} == {"zone-1", "zone-new"}

    def test_clean_local_entity_missing_from_snapshot_is_dropped(self, gateway):
        app_state = self._state(gateway, T0)
        app_state.apply(EntityTable.ZONES, Zone(id="zone-old", name="Viejo", site_id="sede-principal"))
        app_state.mark_reconciled()
        fake = _fake_gateway(gateway, {EntityTable.ZONES: [_zone("zone-1", "Remoto", T0)]})

        ReconciliationLoop(app_state, fake, policy=POLICY_VERSIONED, interval=0).reconcile_once()

        assert [z.id for z in app_state.entities(EntityTable.ZONES)] == ["zone-1"]


class TestLifecycle:
    def test_unknown_policy_rejected(self, state):
        with pytest.raises(ValueError):
            ReconciliationLoop(state, policy="latest", interval=0)

    def test_start_subscribes_to_all_tables(self, state):
        fake = _fake_gateway(state.gateway, {})
        subscription = MagicMock()
        fake.subscribe.return_value = subscription
        loop = ReconciliationLoop(state, fake, interval=0)

        loop.start()

        assert loop.running is True
        assert loop.runs == 1
        tables, callback = fake.subscribe.call_args[0]
        assert tables == ["*"]

        callback(MagicMock(table="orders", event="UPDATE"))
        assert loop.runs == 2

        loop.stop()
        subscription.unsubscribe.assert_called_once()
        assert loop.running is False

    def test_start_twice_is_noop(self, state):
        fake = _fake_gateway(state.gateway, {})
        fake.subscribe.return_value = None
        loop = ReconciliationLoop(state, fake, interval=0)
        loop.start()
        loop.start()
        assert loop.runs == 1
        loop.stop()

    def test_polling_thread(self, state):
        fake = _fake_gateway(state.gateway, {})
        fake.subscribe.return_value = None
        loop = ReconciliationLoop(state, fake, interval=0.01)
        loop.start()
        try:
            deadline = time.monotonic() + 2
            while loop.runs < 3 and time.monotonic() < deadline:
                time.sleep(0.01)
        finally:
            loop.stop()
        assert loop.runs >= 3
