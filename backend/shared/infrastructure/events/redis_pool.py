"""
Redis Connection Pool Management.

The change feed uses the synchronous client: publishes happen inline with
gateway writes and subscriptions run in a background listener thread.
"""

from __future__ import annotations

import threading

import redis

from shared.config.settings import settings
from shared.config.logging import get_logger

logger = get_logger(__name__)


_redis_sync_pool: redis.ConnectionPool | None = None
_sync_pool_lock = threading.Lock()


def _get_redis_sync_pool(url: str) -> redis.ConnectionPool:
    """Get or create the synchronous Redis connection pool."""
    global _redis_sync_pool
    if _redis_sync_pool is None:
        with _sync_pool_lock:
            if _redis_sync_pool is None:
                _redis_sync_pool = redis.ConnectionPool.from_url(
                    url,
                    decode_responses=True,
                    socket_connect_timeout=settings.redis_socket_timeout,
                    socket_timeout=None,  # pub/sub listeners block on read
                    health_check_interval=30,
                )
                logger.info("Redis sync pool initialized", timeout=settings.redis_socket_timeout)
    return _redis_sync_pool


def get_redis_sync_client(url: str | None = None) -> redis.Redis:
    """
    Get a Redis client from the shared connection pool.

    Each call returns a client backed by the same pool.
    """
    return redis.Redis(connection_pool=_get_redis_sync_pool(url or settings.redis_url))


def close_redis_pool() -> None:
    """Disconnect the pool. Call on application shutdown."""
    global _redis_sync_pool
    with _sync_pool_lock:
        if _redis_sync_pool is not None:
            _redis_sync_pool.disconnect()
            _redis_sync_pool = None
            logger.info("Redis sync pool closed")
