"""
Realtime change feed over Redis pub/sub.

The persistence gateway publishes one notification per successful remote
write; reconciliation subscribes to the same channel. A feed holds at most
one live subscription: subscribing again replaces the previous listener.
"""

from __future__ import annotations

import json
import threading
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Iterable

import redis

from shared.config.constants import WILDCARD_TABLE
from shared.config.logging import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class ChangeNotification:
    """One row change on a remote table."""

    table: str
    event: str
    id: str | None = None
    timestamp: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())

    def to_json(self) -> str:
        return json.dumps(asdict(self))

    @classmethod
    def from_json(cls, raw: str | bytes) -> "ChangeNotification":
        data = json.loads(raw)
        if not isinstance(data, dict) or not data.get("table") or not data.get("event"):
            raise ValueError("Change notification requires 'table' and 'event'")
        return cls(
            table=str(data["table"]),
            event=str(data["event"]),
            id=data.get("id"),
            timestamp=data.get("timestamp") or datetime.now(timezone.utc).isoformat(),
        )


ChangeCallback = Callable[[ChangeNotification], Any]


def matches_tables(tables: Iterable[str], table: str) -> bool:
    """True when `table` is whitelisted (or the wildcard is)."""
    wanted = set(tables)
    return WILDCARD_TABLE in wanted or table in wanted


class ChangeSubscription:
    """Handle returned by ChangeFeed.subscribe."""

    def __init__(self, feed: "ChangeFeed", pubsub: Any, thread: Any, tables: tuple[str, ...]):
        self._feed = feed
        self._pubsub = pubsub
        self._thread = thread
        self._tables = tables
        self._active = True

    @property
    def active(self) -> bool:
        return self._active

    @property
    def tables(self) -> tuple[str, ...]:
        return self._tables

    def unsubscribe(self) -> None:
        """Stop the listener thread and release the connection. Idempotent."""
        if not self._active:
            return
        self._active = False
        try:
            self._thread.stop()
            self._pubsub.close()
        except redis.RedisError as e:
            logger.warning("Error closing change subscription", error=str(e))
        self._feed._forget(self)


class ChangeFeed:
    """
    Publish/subscribe row-change notifications on one Redis channel.

    Usage:
        feed = ChangeFeed(get_redis_sync_client(), "pos:db-changes")
        feed.publish("orders", ChangeEvent.UPDATE, order.id)
        sub = feed.subscribe(["*"], lambda change: loop.reconcile())
        ...
        sub.unsubscribe()
    """

    def __init__(self, client: redis.Redis, channel: str, poll_interval: float = 0.5):
        self._client = client
        self._channel = channel
        self._poll_interval = poll_interval
        self._lock = threading.Lock()
        self._subscription: ChangeSubscription | None = None

    @property
    def channel(self) -> str:
        return self._channel

    @property
    def subscription(self) -> ChangeSubscription | None:
        return self._subscription

    def publish(self, table: str, event: str, entity_id: str | None = None) -> int:
        """
        Publish a change notification.

        Returns the number of receivers. Publishing failures are logged and
        swallowed: the write itself already succeeded.
        """
        notification = ChangeNotification(table=table, event=event, id=entity_id)
        try:
            return int(self._client.publish(self._channel, notification.to_json()))
        except redis.RedisError as e:
            logger.warning(
                "Change notification publish failed",
                channel=self._channel,
                table=table,
                error=str(e),
            )
            return 0

    def subscribe(self, tables: Iterable[str], on_change: ChangeCallback) -> ChangeSubscription:
        """
        Listen for changes on `tables` (or "*") in a background thread.

        Replaces any previous subscription of this feed.
        """
        tables = tuple(tables)
        with self._lock:
            previous = self._subscription
        if previous is not None:
            logger.info("Replacing existing change subscription", channel=self._channel)
            previous.unsubscribe()

        handler = self._make_handler(tables, on_change)
        pubsub = self._client.pubsub(ignore_subscribe_messages=True)
        pubsub.subscribe(**{self._channel: handler})
        thread = pubsub.run_in_thread(
            sleep_time=self._poll_interval,
            daemon=True,
            exception_handler=self._on_listener_error,
        )

        subscription = ChangeSubscription(self, pubsub, thread, tables)
        with self._lock:
            self._subscription = subscription
        logger.info("Change subscription started", channel=self._channel, tables=list(tables))
        return subscription

    def close(self) -> None:
        with self._lock:
            current = self._subscription
        if current is not None:
            current.unsubscribe()

    def _forget(self, subscription: ChangeSubscription) -> None:
        with self._lock:
            if self._subscription is subscription:
                self._subscription = None

    def _make_handler(self, tables: tuple[str, ...], on_change: ChangeCallback) -> Callable[[dict], None]:
        def handle(message: dict) -> None:
            if message.get("type") != "message":
                return
            try:
                notification = ChangeNotification.from_json(message["data"])
            except (ValueError, TypeError, KeyError) as e:
                logger.warning("Invalid change notification", error=str(e))
                return

            if not matches_tables(tables, notification.table):
                return

            try:
                on_change(notification)
            except Exception as e:
                # A failing callback must not kill the listener thread
                logger.error(
                    "Error handling change notification",
                    table=notification.table,
                    error=str(e),
                    exc_info=True,
                )

        return handle

    def _on_listener_error(self, error: BaseException, pubsub: Any, thread: Any) -> None:
        logger.error("Change listener stopped", channel=self._channel, error=str(error))
        thread.stop()
        with self._lock:
            current = self._subscription
        if current is not None and current._thread is thread:
            current._active = False
            self._forget(current)
