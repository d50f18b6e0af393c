"""
Persistence Gateway.

Uniform CRUD + bulk + subscribe interface over the remote store, with an
automatic per-table local mirror.

ONLINE:  every write goes to the remote store (and the mirror); every
         successful read re-mirrors into the local store.
OFFLINE: remote not configured, or the transport breaker is open. Writes
         land in the mirror only; reads come from the mirror, seeded with
         built-in defaults.

Write errors are logged and swallowed: callers keep their local state and
the next reconciliation reflects whatever actually landed.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Iterable

from pydantic import BaseModel

from shared.config.constants import ChangeEvent, EntityTable, SettingKey
from shared.config.logging import get_logger
from shared.config.settings import settings
from shared.infrastructure.events import (
    ChangeFeed,
    ChangeSubscription,
    CircuitBreaker,
    CircuitState,
)
from shared.utils.exceptions import TransportError

from .defaults import default_setting, default_table
from .local_store import LocalStore
from .remote_store import RemoteStore, RemoteStoreError

logger = get_logger(__name__)

OFFLINE_NOTICE = "Sin conexión con el servidor. Trabajando en modo local."
ONLINE_NOTICE = "Conexión restablecida."

SETTINGS_TABLE = "settings"

# Remote call not attempted (unconfigured or breaker open)
_SKIPPED = object()
# Remote call attempted and hit a transport failure
_FAILED = object()


@dataclass
class Snapshot:
    """Result of fetch_all_tables."""

    tables: dict[str, list[dict[str, Any]]] = field(default_factory=dict)
    settings: dict[str, Any] = field(default_factory=dict)
    source: str = "remote"  # "remote" | "local"


def _to_data(item: BaseModel | dict[str, Any]) -> dict[str, Any]:
    if isinstance(item, BaseModel):
        return item.model_dump(mode="json", by_alias=True, exclude_none=True)
    return dict(item)


class PersistenceGateway:
    """
    Usage:
        gateway = PersistenceGateway(LocalStore(dir), RemoteStore(factory), feed)
        gateway.upsert(EntityTable.ORDERS, order)
        rows = gateway.get_all(EntityTable.ORDERS)
    """

    def __init__(
        self,
        local: LocalStore,
        remote: RemoteStore | None = None,
        feed: ChangeFeed | None = None,
        breaker: CircuitBreaker | None = None,
        on_notice: Callable[[str], None] | None = None,
    ):
        self._local = local
        self._remote = remote
        self._feed = feed
        self._breaker = breaker or CircuitBreaker(
            "remote_store",
            failure_threshold=settings.transport_failure_threshold,
            recovery_timeout=settings.transport_recovery_timeout,
        )
        self._on_notice = on_notice
        self._offline_notified = False

    # =========================================================================
    # Mode
    # =========================================================================

    @property
    def local(self) -> LocalStore:
        return self._local

    @property
    def remote_configured(self) -> bool:
        return self._remote is not None

    @property
    def breaker(self) -> CircuitBreaker:
        return self._breaker

    @property
    def is_offline(self) -> bool:
        """True when calls are currently served by the local mirror."""
        return self._remote is None or self._breaker.state != CircuitState.CLOSED

    def set_notice_handler(self, handler: Callable[[str], None] | None) -> None:
        self._on_notice = handler

    def _notice(self, message: str) -> None:
        if self._on_notice is not None:
            try:
                self._on_notice(message)
            except Exception as e:
                logger.error("Notice handler failed", error=str(e))

    def _go_offline(self, reason: str) -> None:
        if self._offline_notified:
            return
        self._offline_notified = True
        logger.warning("Persistence gateway offline, using local mirror", reason=reason)
        self._notice(OFFLINE_NOTICE)

    def _call_remote(self, operation: str, table: str | None, fn: Callable[[RemoteStore], Any]) -> Any:
        """
        Run `fn` against the remote store.

        Returns _SKIPPED when the call was not made and _FAILED when it hit
        a transport failure. RemoteStoreError propagates to the caller.
        """
        if self._remote is None:
            self._go_offline("remote store not configured")
            return _SKIPPED
        if not self._breaker.can_execute():
            return _SKIPPED

        try:
            result = fn(self._remote)
        except TransportError as e:
            self._breaker.record_failure()
            logger.warning(
                "Remote transport failure",
                operation=operation,
                table=table,
                error=str(e.cause or e),
            )
            self._go_offline(str(e))
            return _FAILED

        if self._breaker.record_success() and self._offline_notified:
            self._offline_notified = False
            logger.info("Persistence gateway back online")
            self._notice(ONLINE_NOTICE)
        return result

    def _publish(self, table: str, event: str, entity_id: str | None) -> None:
        if self._feed is not None:
            self._feed.publish(table, event, entity_id)

    # =========================================================================
    # Reads
    # =========================================================================

    def get_all(self, table: str) -> list[dict[str, Any]] | None:
        """
        All rows of `table`.

        Returns None when this call hit a transport failure (distinct from an
        empty table). While offline, returns the local mirror.
        """
        rows = self._fetch_rows(table)
        if rows is _SKIPPED:
            return self._local.load_table(table, default_table(table))
        return rows

    def _fetch_rows(self, table: str) -> Any:
        """Remote rows (re-mirrored), None on failure, or _SKIPPED."""
        try:
            rows = self._call_remote("fetch_all", table, lambda r: r.fetch_all(table))
        except RemoteStoreError as e:
            logger.error("Error fetching table", table=table, error=str(e.cause))
            return None
        if rows is _FAILED:
            return None
        if rows is not _SKIPPED:
            self._local.save_table(table, rows)
        return rows

    def get_by_id(self, table: str, entity_id: str) -> dict[str, Any] | None:
        try:
            row = self._call_remote("fetch_one", table, lambda r: r.fetch_one(table, entity_id))
        except RemoteStoreError as e:
            logger.error("Error fetching row", table=table, entity_id=entity_id, error=str(e.cause))
            return None
        if row is _SKIPPED or row is _FAILED:
            for local_row in self._local.load_table(table, default_table(table)):
                if local_row.get("id") == entity_id:
                    return local_row
            return None
        return row

    def fetch_all_tables(self) -> Snapshot:
        """
        Every entity table plus settings.

        Online, a failed fetch of a critical table (users, roles) discards
        the remote result and falls back to the local snapshot. Other failed
        tables come back empty, which reconciliation treats as "no data".
        """
        snapshot = self._fetch_remote_snapshot()
        if snapshot is not None:
            return snapshot

        logger.info("Loading local snapshot")
        return self._load_local_snapshot()

    def _fetch_remote_snapshot(self) -> Snapshot | None:
        tables: dict[str, list[dict[str, Any]]] = {}
        for table in EntityTable.ALL:
            rows = self._fetch_rows(table)
            if rows is _SKIPPED:
                return None
            if rows is None:
                if table in EntityTable.CRITICAL:
                    logger.warning("Critical table fetch failed", table=table)
                    return None
                rows = []
            tables[table] = rows

        try:
            remote_settings = self._call_remote(
                "fetch_settings", SETTINGS_TABLE, lambda r: r.fetch_settings()
            )
        except RemoteStoreError as e:
            logger.error("Error fetching settings", error=str(e.cause))
            remote_settings = {}
        if remote_settings is _SKIPPED or remote_settings is _FAILED:
            remote_settings = {}

        for key, value in remote_settings.items():
            self._local.save_setting(key, value)

        # Keys never saved remotely keep their mirrored (or built-in) value
        merged_settings = {
            key: self._local.load_setting(key, default_setting(key)) for key in SettingKey.ALL
        }
        merged_settings.update(remote_settings)
        return Snapshot(tables=tables, settings=merged_settings, source="remote")

    def _load_local_snapshot(self) -> Snapshot:
        tables = {
            table: self._local.load_table(table, default_table(table))
            for table in EntityTable.ALL
        }
        local_settings = {
            key: self._local.load_setting(key, default_setting(key))
            for key in SettingKey.ALL
        }
        return Snapshot(tables=tables, settings=local_settings, source="local")

    # =========================================================================
    # Writes
    # =========================================================================

    def _write(
        self,
        operation: str,
        table: str,
        mirror: Callable[[], Any],
        remote_fn: Callable[[RemoteStore], Any],
        event: str,
        entity_id: str | None,
    ) -> bool:
        """
        Mirror locally, then write remotely.

        Returns False only when the remote store refused the write.
        """
        mirror()
        try:
            result = self._call_remote(operation, table, remote_fn)
        except RemoteStoreError as e:
            logger.error(
                "Remote write failed",
                operation=operation,
                table=table,
                entity_id=entity_id,
                error=str(e.cause),
            )
            return False
        if result is not _SKIPPED and result is not _FAILED:
            self._publish(table, event, entity_id)
        return True

    def insert(self, table: str, item: BaseModel | dict[str, Any]) -> bool:
        data = _to_data(item)
        entity_id = data["id"]
        return self._write(
            "insert",
            table,
            lambda: self._local.upsert_rows(table, [data], default_table(table)),
            lambda r: r.insert(table, entity_id, data),
            ChangeEvent.INSERT,
            entity_id,
        )

    def upsert(self, table: str, item: BaseModel | dict[str, Any]) -> bool:
        data = _to_data(item)
        entity_id = data["id"]
        return self._write(
            "upsert",
            table,
            lambda: self._local.upsert_rows(table, [data], default_table(table)),
            lambda r: r.upsert(table, entity_id, data),
            ChangeEvent.UPDATE,
            entity_id,
        )

    def bulk_upsert(self, table: str, items: Iterable[BaseModel | dict[str, Any]]) -> bool:
        rows = [_to_data(item) for item in items]
        if not rows:
            return True
        return self._write(
            "bulk_upsert",
            table,
            lambda: self._local.upsert_rows(table, rows, default_table(table)),
            lambda r: r.bulk_upsert(table, [(row["id"], row) for row in rows]),
            ChangeEvent.UPDATE,
            None,
        )

    def delete(self, table: str, entity_id: str) -> bool:
        return self._write(
            "delete",
            table,
            lambda: self._local.delete_row(table, entity_id, default_table(table)),
            lambda r: r.delete(table, entity_id),
            ChangeEvent.DELETE,
            entity_id,
        )

    def update_fields(self, table: str, entity_id: str, fields: dict[str, Any]) -> bool:
        """Shallow-merge `fields` into an existing entity. Missing rows are logged and skipped."""

        def mirror() -> None:
            rows = self._local.load_table(table, default_table(table))
            for row in rows:
                if row.get("id") == entity_id:
                    row.update(fields)
                    self._local.save_table(table, rows)
                    return

        def remote_update(remote: RemoteStore) -> dict[str, Any] | None:
            merged = remote.update_fields(table, entity_id, fields)
            if merged is None:
                raise RemoteStoreError("update_fields", table, LookupError(entity_id))
            return merged

        return self._write("update_fields", table, mirror, remote_update, ChangeEvent.UPDATE, entity_id)

    def save_setting(self, key: str, value: Any) -> bool:
        value = _to_data(value) if isinstance(value, BaseModel) else value
        return self._write(
            "save_setting",
            SETTINGS_TABLE,
            lambda: self._local.save_setting(key, value),
            lambda r: r.save_setting(key, value),
            ChangeEvent.UPDATE,
            key,
        )

    def create_schema(self) -> bool:
        """Create the remote tables if missing. False when offline."""
        try:
            done = self._call_remote("create_schema", None, lambda r: r.create_schema())
        except RemoteStoreError as e:
            logger.error("Error creating remote schema", error=str(e.cause))
            return False
        return done is not _SKIPPED and done is not _FAILED

    def seed_table(self, table: str, items: Iterable[BaseModel | dict[str, Any]]) -> bool:
        """
        Insert `items` only if the remote table is empty.

        Returns True when rows were inserted. Offline this is a no-op: the
        mirror is already seeded with defaults on read.
        """
        rows = [_to_data(item) for item in items]
        try:
            count = self._call_remote("count", table, lambda r: r.count(table))
            if count is _SKIPPED or count is _FAILED or count > 0:
                return False
            logger.info("Seeding initial data", table=table, rows=len(rows))
            done = self._call_remote(
                "seed", table, lambda r: r.insert_many(table, [(row["id"], row) for row in rows])
            )
        except RemoteStoreError as e:
            logger.error("Error seeding table", table=table, error=str(e.cause))
            return False
        return done is not _SKIPPED and done is not _FAILED

    # =========================================================================
    # Change notifications
    # =========================================================================

    def subscribe(
        self, tables: Iterable[str], on_change: Callable[[Any], Any]
    ) -> ChangeSubscription | None:
        """
        Deliver a notification on any change to `tables` (or "*").

        Calling again replaces the previous subscription. Returns None when
        no change feed is configured.
        """
        if self._feed is None:
            logger.info("Realtime change feed not configured, subscription skipped")
            return None
        return self._feed.subscribe(tables, on_change)

    def close(self) -> None:
        if self._feed is not None:
            self._feed.close()
