"""
Infrastructure module: remote database and Redis change feed.

Provides:
- Optional remote store engine and sessions (db.py)
- Redis pub/sub change notifications and the transport circuit breaker (events/)
"""

from shared.infrastructure.db import (
    build_engine,
    get_session_factory,
    session_factory_for,
    dispose_engine,
    session_scope,
    safe_commit,
)
from shared.infrastructure.events import (
    ChangeFeed,
    CircuitBreaker,
    get_redis_sync_client,
    close_redis_pool,
)

__all__ = [
    # db
    "build_engine",
    "get_session_factory",
    "session_factory_for",
    "dispose_engine",
    "session_scope",
    "safe_commit",
    # events (Redis)
    "ChangeFeed",
    "CircuitBreaker",
    "get_redis_sync_client",
    "close_redis_pool",
]
