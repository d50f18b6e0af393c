"""
Tests for the Redis change feed.

Redis is mocked: the tests drive the registered pub/sub handler directly.
"""

import json
from unittest.mock import MagicMock

import pytest
import redis

from shared.infrastructure.events import ChangeFeed, ChangeNotification, matches_tables


CHANNEL = "pos:db-changes"


@pytest.fixture
def redis_client():
    client = MagicMock()
    client.pubsub.side_effect = lambda **kwargs: MagicMock()
    client.publish.return_value = 1
    return client


@pytest.fixture
def feed(redis_client):
    return ChangeFeed(redis_client, CHANNEL, poll_interval=0.01)


def _handler(pubsub):
    """The message handler registered on a mocked pubsub."""
    _, kwargs = pubsub.subscribe.call_args
    return kwargs[CHANNEL]


def _message(table, event="UPDATE", entity_id="x"):
    return {"type": "message", "channel": CHANNEL, "data": json.dumps({"table": table, "event": event, "id": entity_id})}


class TestPublish:
    def test_publishes_json_notification(self, feed, redis_client):
        assert feed.publish("orders", "INSERT", "order-1") == 1

        channel, payload = redis_client.publish.call_args[0]
        assert channel == CHANNEL
        data = json.loads(payload)
        assert data["table"] == "orders"
        assert data["event"] == "INSERT"
        assert data["id"] == "order-1"
        assert data["timestamp"]

    def test_publish_failure_is_swallowed(self, feed, redis_client):
        redis_client.publish.side_effect = redis.ConnectionError("down")
        assert feed.publish("orders", "UPDATE", "order-1") == 0


class TestSubscribe:
    def test_callback_receives_matching_changes(self, feed):
        received = []
        sub = feed.subscribe(["orders"], received.append)
        handle = _handler(sub._pubsub)

        handle(_message("orders", entity_id="order-1"))
        handle(_message("tables"))

        assert [n.id for n in received] == ["order-1"]
        assert isinstance(received[0], ChangeNotification)

    def test_wildcard_receives_everything(self, feed):
        received = []
        sub = feed.subscribe(["*"], received.append)
        handle = _handler(sub._pubsub)

        handle(_message("orders"))
        handle(_message("sedes"))

        assert [n.table for n in received] == ["orders", "sedes"]

    def test_malformed_messages_are_ignored(self, feed):
        received = []
        sub = feed.subscribe(["*"], received.append)
        handle = _handler(sub._pubsub)

        handle({"type": "message", "data": "not json"})
        handle({"type": "message", "data": json.dumps({"event": "UPDATE"})})
        handle({"type": "subscribe", "data": 1})

        assert received == []

    def test_callback_error_does_not_propagate(self, feed):
        def boom(notification):
            raise RuntimeError("handler failed")

        sub = feed.subscribe(["*"], boom)
        _handler(sub._pubsub)(_message("orders"))
        assert sub.active is True

    def test_resubscribe_replaces_previous(self, feed, redis_client):
        first = feed.subscribe(["orders"], lambda n: None)
        second = feed.subscribe(["tables"], lambda n: None)

        assert first.active is False
        first._thread.stop.assert_called_once()
        first._pubsub.close.assert_called_once()
        assert feed.subscription is second
        assert redis_client.pubsub.call_count == 2

    def test_listener_runs_in_daemon_thread(self, feed):
        sub = feed.subscribe(["*"], lambda n: None)
        _, kwargs = sub._pubsub.run_in_thread.call_args
        assert kwargs["daemon"] is True
        assert kwargs["sleep_time"] == 0.01

    def test_unsubscribe_is_idempotent(self, feed):
        sub = feed.subscribe(["*"], lambda n: None)
        sub.unsubscribe()
        sub.unsubscribe()
        sub._pubsub.close.assert_called_once()
        assert feed.subscription is None

    def test_close_stops_active_subscription(self, feed):
        sub = feed.subscribe(["*"], lambda n: None)
        feed.close()
        assert sub.active is False


class TestNotificationFormat:
    def test_round_trip(self):
        original = ChangeNotification(table="orders", event="DELETE", id="order-9")
        assert ChangeNotification.from_json(original.to_json()) == original

    def test_requires_table_and_event(self):
        with pytest.raises(ValueError):
            ChangeNotification.from_json(json.dumps({"table": "orders"}))

    def test_matches_tables(self):
        assert matches_tables(["*"], "orders")
        assert matches_tables(["orders", "tables"], "tables")
        assert not matches_tables(["orders"], "sales")
