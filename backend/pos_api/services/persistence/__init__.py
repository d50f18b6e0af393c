"""
Persistence layer: remote store, local mirror, gateway.

Usage:
    from pos_api.services.persistence import build_gateway
    gateway = build_gateway()
"""

from __future__ import annotations

from typing import Callable

from shared.config.logging import get_logger
from shared.config.settings import Settings, settings as default_settings
from shared.infrastructure.db import session_factory_for
from shared.infrastructure.events import ChangeFeed, CircuitBreaker, get_redis_sync_client

from .gateway import PersistenceGateway, Snapshot, OFFLINE_NOTICE, ONLINE_NOTICE
from .local_store import LocalStore
from .remote_store import RemoteStore, RemoteStoreError

logger = get_logger(__name__)


def build_gateway(
    config: Settings | None = None,
    on_notice: Callable[[str], None] | None = None,
) -> PersistenceGateway:
    """Wire a gateway from settings: remote store and change feed are optional."""
    config = config or default_settings

    local = LocalStore(config.offline_store_dir, config.offline_key_prefix)

    remote = None
    factory = session_factory_for(config)
    if factory is not None:
        remote = RemoteStore(factory)

    feed = None
    if config.realtime_configured:
        feed = ChangeFeed(get_redis_sync_client(config.redis_url), config.realtime_channel)

    breaker = CircuitBreaker(
        "remote_store",
        failure_threshold=config.transport_failure_threshold,
        recovery_timeout=config.transport_recovery_timeout,
    )

    logger.info(
        "Persistence gateway configured",
        remote=remote is not None,
        realtime=feed is not None,
        offline_dir=config.offline_store_dir,
    )
    return PersistenceGateway(local, remote, feed, breaker, on_notice)


__all__ = [
    "build_gateway",
    "PersistenceGateway",
    "Snapshot",
    "LocalStore",
    "RemoteStore",
    "RemoteStoreError",
    "OFFLINE_NOTICE",
    "ONLINE_NOTICE",
]
