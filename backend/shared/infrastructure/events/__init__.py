"""
Realtime change notifications via Redis pub/sub.

- circuit_breaker.py: Circuit breaker used to detect an unreachable transport
- redis_pool.py: Shared synchronous connection pool
- change_feed.py: Publish/subscribe row-change notifications
"""

from .circuit_breaker import CircuitBreaker, CircuitState
from .redis_pool import get_redis_sync_client, close_redis_pool
from .change_feed import (
    ChangeFeed,
    ChangeNotification,
    ChangeSubscription,
    matches_tables,
)

__all__ = [
    "CircuitBreaker",
    "CircuitState",
    "get_redis_sync_client",
    "close_redis_pool",
    "ChangeFeed",
    "ChangeNotification",
    "ChangeSubscription",
    "matches_tables",
]
