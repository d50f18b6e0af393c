"""
Tests for the persistence gateway: local mirror, offline mode, transport
failures and write refusals.
"""

from unittest.mock import MagicMock

import pytest
from sqlalchemy.orm import sessionmaker

from shared.config.constants import EntityTable, SettingKey
from shared.config.settings import Settings
from shared.infrastructure.db import build_engine
from shared.infrastructure.events import CircuitState
from shared.utils.exceptions import TransportError
from pos_api.services.persistence import (
    OFFLINE_NOTICE,
    ONLINE_NOTICE,
    LocalStore,
    PersistenceGateway,
    RemoteStore,
    RemoteStoreError,
    build_gateway,
)
from pos_api.services.persistence.defaults import default_table


ORDER_ROW = {
    "id": "order-1",
    "orderType": "to-go",
    "status": "open",
    "items": [],
    "userId": "user-admin",
    "siteId": "sede-principal",
    "toGoName": "Juan",
}


def _failing_remote(exc):
    remote = MagicMock(spec=RemoteStore)
    for name in ("fetch_all", "fetch_one", "count", "insert", "upsert", "bulk_upsert",
                 "update_fields", "delete", "insert_many", "fetch_settings", "save_setting",
                 "create_schema"):
        getattr(remote, name).side_effect = exc
    return remote


class TestLocalStore:
    """JSON file store under the offline_ prefix."""

    def test_missing_key_returns_default(self, local_store):
        assert local_store.get("nothing", default=[]) == []

    def test_set_and_get(self, local_store):
        assert local_store.set("session", {"id": "u1", "name": "Ana"}) is True
        assert local_store.get("session") == {"id": "u1", "name": "Ana"}
        assert (local_store.directory / "session.json").exists()

    def test_corrupt_file_returns_default(self, local_store):
        local_store.directory.mkdir(parents=True, exist_ok=True)
        (local_store.directory / "offline_orders.json").write_text("{not json", encoding="utf-8")
        assert local_store.load_table("orders") == []

    def test_unsafe_key_rejected(self, local_store):
        with pytest.raises(ValueError):
            local_store.get("../etc/passwd")

    def test_upsert_rows_keeps_order(self, local_store):
        local_store.save_table("zones", [{"id": "a", "name": "A"}, {"id": "b", "name": "B"}])
        local_store.upsert_rows("zones", [{"id": "a", "name": "A2"}, {"id": "c", "name": "C"}])
        assert [r["name"] for r in local_store.load_table("zones")] == ["A2", "B", "C"]


class TestOfflineMode:
    """No remote configured: the mirror serves everything."""

    def test_is_offline(self, offline_gateway):
        assert offline_gateway.is_offline is True
        assert offline_gateway.remote_configured is False

    def test_reads_seed_defaults(self, offline_gateway):
        users = offline_gateway.get_all(EntityTable.USERS)
        assert {u["username"] for u in users} == {"admin", "cajero"}
        assert offline_gateway.get_all(EntityTable.ORDERS) == []

    def test_write_then_read_round_trip(self, offline_gateway):
        assert offline_gateway.upsert(EntityTable.ORDERS, ORDER_ROW) is True
        assert offline_gateway.get_all(EntityTable.ORDERS) == [ORDER_ROW]
        assert offline_gateway.get_by_id(EntityTable.ORDERS, "order-1") == ORDER_ROW

    def test_write_survives_new_gateway(self, offline_gateway, local_store):
        offline_gateway.upsert(EntityTable.ORDERS, ORDER_ROW)
        reopened = PersistenceGateway(LocalStore(local_store.directory), None)
        assert reopened.get_by_id(EntityTable.ORDERS, "order-1") == ORDER_ROW

    def test_delete_and_update_fields(self, offline_gateway):
        offline_gateway.upsert(EntityTable.ORDERS, ORDER_ROW)
        offline_gateway.update_fields(EntityTable.ORDERS, "order-1", {"status": "ready"})
        assert offline_gateway.get_by_id(EntityTable.ORDERS, "order-1")["status"] == "ready"
        offline_gateway.delete(EntityTable.ORDERS, "order-1")
        assert offline_gateway.get_all(EntityTable.ORDERS) == []

    def test_default_rows_can_be_overwritten(self, offline_gateway):
        offline_gateway.update_fields(EntityTable.INVENTORY, "inv-papas", {"stock": 3})
        rows = {r["id"]: r for r in offline_gateway.get_all(EntityTable.INVENTORY)}
        assert rows["inv-papas"]["stock"] == 3
        assert rows["inv-alitas"]["stock"] == 240

    def test_single_offline_notice(self, local_store):
        notices = []
        gateway = PersistenceGateway(local_store, None, on_notice=notices.append)
        gateway.get_all(EntityTable.USERS)
        gateway.upsert(EntityTable.ORDERS, ORDER_ROW)
        gateway.fetch_all_tables()
        assert notices == [OFFLINE_NOTICE]

    def test_snapshot_is_local_with_default_settings(self, offline_gateway):
        snapshot = offline_gateway.fetch_all_tables()
        assert snapshot.source == "local"
        assert snapshot.settings[SettingKey.EXPENSE_CATEGORIES][0] == "Insumos"
        assert len(snapshot.tables[EntityTable.MENU_ITEMS]) == len(default_table(EntityTable.MENU_ITEMS))

    def test_seed_and_schema_are_noops(self, offline_gateway):
        assert offline_gateway.create_schema() is False
        assert offline_gateway.seed_table(EntityTable.USERS, default_table(EntityTable.USERS)) is False


class TestOnlineMode:
    """Remote store reachable."""

    def test_write_goes_remote_and_local(self, gateway, remote_store, local_store):
        assert gateway.upsert(EntityTable.ORDERS, ORDER_ROW) is True
        assert remote_store.fetch_one(EntityTable.ORDERS, "order-1") == ORDER_ROW
        assert local_store.load_table(EntityTable.ORDERS) == [ORDER_ROW]

    def test_read_remirrors(self, gateway, remote_store, local_store):
        remote_store.upsert(EntityTable.ORDERS, "order-1", ORDER_ROW)
        assert local_store.load_table(EntityTable.ORDERS) == []

        assert gateway.get_all(EntityTable.ORDERS) == [ORDER_ROW]
        assert local_store.load_table(EntityTable.ORDERS) == [ORDER_ROW]

    def test_seed_only_when_empty(self, gateway, remote_store):
        rows = default_table(EntityTable.ROLES)
        assert gateway.seed_table(EntityTable.ROLES, rows) is True
        assert gateway.seed_table(EntityTable.ROLES, rows) is False
        assert remote_store.count(EntityTable.ROLES) == len(rows)

    def test_duplicate_insert_is_refused(self, gateway):
        assert gateway.insert(EntityTable.SALES, {"id": "sale-1", "total": 100}) is True
        assert gateway.insert(EntityTable.SALES, {"id": "sale-1", "total": 200}) is False
        # A refusal is not a transport failure
        assert gateway.is_offline is False

    def test_update_fields_on_missing_row_is_refused(self, gateway):
        assert gateway.update_fields(EntityTable.ORDERS, "order-x", {"status": "ready"}) is False

    def test_settings_round_trip(self, gateway, remote_store):
        gateway.save_setting(SettingKey.EXPENSE_CATEGORIES, ["Insumos"])
        assert remote_store.fetch_settings() == {SettingKey.EXPENSE_CATEGORIES: ["Insumos"]}
        snapshot = gateway.fetch_all_tables()
        assert snapshot.source == "remote"
        assert snapshot.settings[SettingKey.EXPENSE_CATEGORIES] == ["Insumos"]

    def test_snapshot_fills_unsaved_settings_with_defaults(self, gateway):
        snapshot = gateway.fetch_all_tables()
        assert snapshot.settings[SettingKey.LOYALTY]["pointsPerPeso"] == 0.01

    def test_publishes_change_after_write(self, local_store, remote_store, breaker):
        feed = MagicMock()
        gateway = PersistenceGateway(local_store, remote_store, feed, breaker)
        gateway.upsert(EntityTable.ORDERS, ORDER_ROW)
        feed.publish.assert_called_once_with(EntityTable.ORDERS, "UPDATE", "order-1")

    def test_refused_write_is_not_published(self, local_store, remote_store, breaker):
        feed = MagicMock()
        gateway = PersistenceGateway(local_store, remote_store, feed, breaker)
        gateway.update_fields(EntityTable.ORDERS, "order-x", {"status": "ready"})
        feed.publish.assert_not_called()


class TestTransportFailure:
    """A connection failure degrades to offline mode once."""

    def test_failure_switches_to_mirror(self, local_store, breaker):
        notices = []
        remote = _failing_remote(TransportError("fetch_all", "users", ConnectionError("refused")))
        gateway = PersistenceGateway(local_store, remote, breaker=breaker, on_notice=notices.append)

        # The failing call itself reports no data
        assert gateway.get_all(EntityTable.USERS) is None
        assert gateway.is_offline is True
        assert breaker.state == CircuitState.OPEN

        # Subsequent calls are served from the mirror without touching the remote
        remote.fetch_all.reset_mock()
        assert len(gateway.get_all(EntityTable.USERS)) == 2
        remote.fetch_all.assert_not_called()
        assert notices == [OFFLINE_NOTICE]

    def test_writes_land_locally_while_degraded(self, local_store, breaker):
        remote = _failing_remote(TransportError("upsert", "orders"))
        gateway = PersistenceGateway(local_store, remote, breaker=breaker)

        assert gateway.upsert(EntityTable.ORDERS, ORDER_ROW) is True
        assert gateway.upsert(EntityTable.ORDERS, {**ORDER_ROW, "status": "ready"}) is True
        assert remote.upsert.call_count == 1
        assert local_store.load_table(EntityTable.ORDERS)[0]["status"] == "ready"

    def test_snapshot_falls_back_to_local(self, local_store, breaker):
        remote = _failing_remote(TransportError("fetch_all", "users"))
        gateway = PersistenceGateway(local_store, remote, breaker=breaker)
        snapshot = gateway.fetch_all_tables()
        assert snapshot.source == "local"
        assert len(snapshot.tables[EntityTable.USERS]) == 2

    def test_recovers_after_timeout(self, local_store, remote_store, breaker, clock):
        notices = []
        flaky = MagicMock(wraps=remote_store)
        flaky.fetch_all.side_effect = [TransportError("fetch_all", "orders"), []]
        gateway = PersistenceGateway(local_store, flaky, breaker=breaker, on_notice=notices.append)

        assert gateway.get_all(EntityTable.ORDERS) is None
        clock.advance(31)
        assert gateway.get_all(EntityTable.ORDERS) == []
        assert gateway.is_offline is False
        assert notices == [OFFLINE_NOTICE, ONLINE_NOTICE]

    def test_critical_table_failure_uses_local_snapshot(self, local_store, remote_store, breaker):
        def fetch_all(table):
            if table == EntityTable.ROLES:
                raise RemoteStoreError("fetch_all", table, RuntimeError("boom"))
            return []

        remote = MagicMock(wraps=remote_store)
        remote.fetch_all.side_effect = fetch_all
        gateway = PersistenceGateway(local_store, remote, breaker=breaker)

        snapshot = gateway.fetch_all_tables()

        assert snapshot.source == "local"
        assert len(snapshot.tables[EntityTable.ROLES]) == len(default_table(EntityTable.ROLES))


class TestBuildGateway:
    """Wiring from settings."""

    def test_remote_uses_configured_database(self, tmp_path):
        url = f"sqlite:///{tmp_path / 'sede.db'}"
        config = Settings(database_url=url, redis_url="", offline_store_dir=str(tmp_path / "offline"))
        direct = RemoteStore(sessionmaker(bind=build_engine(url)))
        direct.create_schema()

        gateway = build_gateway(config)

        assert gateway.remote_configured is True
        assert gateway.upsert(EntityTable.ORDERS, ORDER_ROW) is True
        assert direct.fetch_one(EntityTable.ORDERS, "order-1")["toGoName"] == "Juan"

    def test_without_database_url_runs_offline(self, tmp_path):
        config = Settings(database_url="", redis_url="", offline_store_dir=str(tmp_path / "offline"))

        gateway = build_gateway(config)

        assert gateway.remote_configured is False
        assert gateway.is_offline is True
