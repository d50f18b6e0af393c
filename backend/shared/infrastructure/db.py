"""
Database configuration and session management for the remote store.

The remote store is optional: with an empty DATABASE_URL no engine is built
and the persistence gateway runs against the local mirror only.
"""

from collections.abc import Generator
from contextlib import contextmanager
import os
import threading

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import StaticPool

from shared.config.settings import Settings, settings
from shared.config.logging import get_logger

logger = get_logger(__name__)


def _calculate_pool_size() -> int:
    """(2 * CPU cores) + 1, capped at 20."""
    cores = os.cpu_count() or 4
    return min(cores * 2 + 1, 20)


def build_engine(url: str, connect_timeout: int | None = None) -> Engine:
    """
    Create an engine for `url`.

    SQLite (tests, single-till installs) gets a static pool shared across
    threads; server databases get a sized pool with connect timeouts.
    """
    if url.startswith("sqlite"):
        return create_engine(
            url,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
            echo=False,
        )

    return create_engine(
        url,
        pool_pre_ping=True,  # Verify connections before using
        pool_size=_calculate_pool_size(),
        max_overflow=15,
        pool_timeout=30,
        pool_recycle=1800,
        connect_args={"connect_timeout": connect_timeout or settings.database_connect_timeout},
        echo=False,
    )


_engine: Engine | None = None
_session_factory: sessionmaker | None = None
_engine_lock = threading.Lock()


def get_session_factory() -> sessionmaker | None:
    """
    Session factory for the configured DATABASE_URL, or None when the
    remote store is not configured.
    """
    global _engine, _session_factory
    if not settings.remote_configured:
        return None
    if _session_factory is None:
        with _engine_lock:
            if _session_factory is None:
                _engine = build_engine(settings.database_url)
                _session_factory = sessionmaker(bind=_engine, autoflush=False, autocommit=False)
                logger.info("Remote store engine created", dialect=_engine.dialect.name)
    return _session_factory


def session_factory_for(config: Settings) -> sessionmaker | None:
    """
    Session factory for `config.database_url`. The process-wide factory is
    reused when `config` is the global settings; any other config gets its
    own engine, which the caller owns.
    """
    if config is settings:
        return get_session_factory()
    if not config.remote_configured:
        return None
    engine = build_engine(config.database_url, config.database_connect_timeout)
    logger.info("Remote store engine created", dialect=engine.dialect.name)
    return sessionmaker(bind=engine, autoflush=False, autocommit=False)


def dispose_engine() -> None:
    """Close pooled connections. Call on application shutdown."""
    global _engine, _session_factory
    with _engine_lock:
        if _engine is not None:
            _engine.dispose()
        _engine = None
        _session_factory = None


@contextmanager
def session_scope(factory: sessionmaker) -> Generator[Session, None, None]:
    """
    Context manager for a short-lived session.

    Usage:
        with session_scope(factory) as db:
            db.execute(...)
            safe_commit(db)
    """
    db = factory()
    try:
        yield db
    finally:
        db.close()


def safe_commit(db: Session) -> None:
    """
    Commit with automatic rollback on failure.

    Raises the original exception after rolling back.
    """
    try:
        db.commit()
    except Exception:
        db.rollback()
        raise
