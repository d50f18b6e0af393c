"""
Reconciliation loop: pulls the full remote snapshot into the application state.

Runs once at startup, again on every change notification, and optionally on
a fixed interval. Two policies:

- snapshot (default): every fetched collection that is non-empty replaces
  the local collection wholesale. An empty collection never clears local
  data.
- versioned: per-entity merge. The copy with the newer updatedAt wins, and
  entities modified locally since the last reconciliation survive a
  snapshot that does not contain them.
"""

from __future__ import annotations

import threading
from datetime import datetime
from typing import Any

from shared.config.constants import WILDCARD_TABLE, EntityTable
from shared.config.logging import sync_logger
from shared.config.settings import settings

from pos_api.services.persistence import PersistenceGateway, Snapshot
from pos_api.services.state import AppState, parse_rows

logger = sync_logger

POLICY_SNAPSHOT = "snapshot"
POLICY_VERSIONED = "versioned"
POLICIES = (POLICY_SNAPSHOT, POLICY_VERSIONED)


def _newer(a: datetime | None, b: datetime | None) -> bool:
    """True when `a` is strictly newer than `b` (None is oldest)."""
    if a is None:
        return False
    if b is None:
        return True
    return a > b


class ReconciliationLoop:
    """
    Usage:
        loop = ReconciliationLoop(state, gateway)
        loop.start()   # initial pull + realtime subscription (+ polling)
        ...
        loop.stop()
    """

    def __init__(
        self,
        state: AppState,
        gateway: PersistenceGateway | None = None,
        policy: str | None = None,
        interval: float | None = None,
    ):
        self._state = state
        self._gateway = gateway or state.gateway
        self._policy = policy or settings.reconcile_policy
        if self._policy not in POLICIES:
            raise ValueError(f"Unknown reconcile policy: {self._policy}")
        self._interval = settings.reconcile_interval_seconds if interval is None else interval

        self._run_lock = threading.Lock()
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None
        self._subscription: Any = None
        self._running = False
        self.runs = 0

    @property
    def policy(self) -> str:
        return self._policy

    @property
    def running(self) -> bool:
        return self._running

    # =========================================================================
    # Reconciliation
    # =========================================================================

    def reconcile_once(self) -> Snapshot:
        """Fetch everything and apply it to the state."""
        with self._run_lock:
            snapshot = self._gateway.fetch_all_tables()
            with self._state.lock:
                for table in EntityTable.ALL:
                    rows = snapshot.tables.get(table) or []
                    if not rows:
                        continue
                    entities = parse_rows(table, rows)
                    if not entities:
                        continue
                    if self._policy == POLICY_VERSIONED:
                        self._merge_versioned(table, entities)
                    else:
                        self._state.replace_collection(table, entities)

                for key, value in snapshot.settings.items():
                    if value is not None:
                        self._state.apply_setting(key, value)

                self._state.mark_reconciled()
            self.runs += 1

        logger.debug(
            "Reconciled",
            source=snapshot.source,
            policy=self._policy,
            tables=sum(1 for rows in snapshot.tables.values() if rows),
        )
        return snapshot

    def _merge_versioned(self, table: str, remote: list[Any]) -> None:
        local = {e.id: e for e in self._state.entities(table)}
        dirty = self._state.dirty_ids(table)
        merged: dict[str, Any] = {}

        for entity in remote:
            current = local.get(entity.id)
            if current is not None and _newer(current.updated_at, entity.updated_at):
                merged[entity.id] = current
            else:
                merged[entity.id] = entity

        for entity_id in dirty:
            if entity_id not in merged and entity_id in local:
                merged[entity_id] = local[entity_id]

        self._state.replace_collection(table, merged.values())

    def _on_change(self, notification: Any) -> None:
        logger.debug(
            "Change notification",
            table=getattr(notification, "table", None),
            event=getattr(notification, "event", None),
        )
        self.reconcile_once()

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def start(self) -> None:
        """Initial reconciliation, realtime subscription and optional polling."""
        if self._running:
            logger.warning("Reconciliation loop already running")
            return

        self._running = True
        self._stop.clear()
        self.reconcile_once()
        self._subscription = self._gateway.subscribe([WILDCARD_TABLE], self._on_change)

        if self._interval and self._interval > 0:
            self._thread = threading.Thread(
                target=self._poll, name="reconciliation-poll", daemon=True
            )
            self._thread.start()

        logger.info(
            "Reconciliation loop started",
            policy=self._policy,
            realtime=self._subscription is not None,
            interval=self._interval,
        )

    def _poll(self) -> None:
        while not self._stop.wait(self._interval):
            try:
                self.reconcile_once()
            except Exception as e:
                logger.error("Reconciliation poll failed", error=str(e))

    def stop(self) -> None:
        if not self._running:
            return
        self._running = False
        self._stop.set()
        if self._subscription is not None:
            self._subscription.unsubscribe()
            self._subscription = None
        if self._thread is not None:
            self._thread.join(timeout=5)
            self._thread = None
        logger.info("Reconciliation loop stopped")
