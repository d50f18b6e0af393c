"""
Remote store: `{id, data}` entity tables and the `settings` table in a
relational database, accessed through SQLAlchemy.

Connection-level failures raise TransportError so the gateway can switch
to offline mode. Any other database error raises RemoteStoreError: the
remote is reachable but refused that particular write.
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import Any, Generator, Iterable

from sqlalchemy import delete, func, select
from sqlalchemy.exc import (
    DisconnectionError,
    InterfaceError,
    OperationalError,
    SQLAlchemyError,
    TimeoutError as PoolTimeoutError,
)
from sqlalchemy.orm import Session, sessionmaker

from shared.config.logging import get_logger
from shared.infrastructure.db import safe_commit, session_scope
from shared.utils.exceptions import TransportError

from pos_api.models import Base, SettingRow, row_model_for

logger = get_logger(__name__)

_TRANSPORT_ERRORS = (OperationalError, InterfaceError, DisconnectionError, PoolTimeoutError)


class RemoteStoreError(Exception):
    """The remote store rejected an operation (constraint, bad data, ...)."""

    def __init__(self, operation: str, table: str | None, cause: Exception):
        self.operation = operation
        self.table = table
        self.cause = cause
        super().__init__(f"Remote {operation} failed on {table}: {cause}")


class RemoteStore:
    """
    Synchronous remote store.

    Usage:
        store = RemoteStore(get_session_factory())
        rows = store.fetch_all("orders")
        store.upsert("orders", order.id, order.to_data())
    """

    def __init__(self, session_factory: sessionmaker):
        self._factory = session_factory

    @contextmanager
    def _session(self, operation: str, table: str | None = None) -> Generator[Session, None, None]:
        try:
            with session_scope(self._factory) as db:
                yield db
        except _TRANSPORT_ERRORS as e:
            raise TransportError(operation, table, e) from e
        except SQLAlchemyError as e:
            raise RemoteStoreError(operation, table, e) from e

    def create_schema(self) -> None:
        """Create missing tables (idempotent)."""
        with self._session("create_schema") as db:
            Base.metadata.create_all(bind=db.get_bind())

    # =========================================================================
    # Entity tables
    # =========================================================================

    def fetch_all(self, table: str) -> list[dict[str, Any]]:
        model = row_model_for(table)
        with self._session("fetch_all", table) as db:
            return [dict(data) for data in db.scalars(select(model.data)).all()]

    def fetch_one(self, table: str, entity_id: str) -> dict[str, Any] | None:
        model = row_model_for(table)
        with self._session("fetch_one", table) as db:
            row = db.get(model, entity_id)
            return dict(row.data) if row is not None else None

    def count(self, table: str) -> int:
        model = row_model_for(table)
        with self._session("count", table) as db:
            return int(db.scalar(select(func.count()).select_from(model)) or 0)

    def insert(self, table: str, entity_id: str, data: dict[str, Any]) -> None:
        model = row_model_for(table)
        with self._session("insert", table) as db:
            db.add(model(id=entity_id, data=data))
            safe_commit(db)

    def upsert(self, table: str, entity_id: str, data: dict[str, Any]) -> None:
        self.bulk_upsert(table, [(entity_id, data)])

    def bulk_upsert(self, table: str, rows: Iterable[tuple[str, dict[str, Any]]]) -> None:
        model = row_model_for(table)
        with self._session("upsert", table) as db:
            for entity_id, data in rows:
                db.merge(model(id=entity_id, data=data))
            safe_commit(db)

    def update_fields(self, table: str, entity_id: str, fields: dict[str, Any]) -> dict[str, Any] | None:
        """
        Shallow-merge `fields` into the stored entity.

        Returns the merged data, or None when the row does not exist.
        """
        model = row_model_for(table)
        with self._session("update_fields", table) as db:
            row = db.get(model, entity_id)
            if row is None:
                return None
            merged = {**row.data, **fields}
            # Reassign so the JSON column is flagged dirty
            row.data = merged
            safe_commit(db)
            return merged

    def delete(self, table: str, entity_id: str) -> None:
        model = row_model_for(table)
        with self._session("delete", table) as db:
            db.execute(delete(model).where(model.id == entity_id))
            safe_commit(db)

    def insert_many(self, table: str, rows: Iterable[tuple[str, dict[str, Any]]]) -> None:
        model = row_model_for(table)
        with self._session("seed", table) as db:
            db.add_all([model(id=entity_id, data=data) for entity_id, data in rows])
            safe_commit(db)

    # =========================================================================
    # Settings
    # =========================================================================

    def fetch_settings(self) -> dict[str, Any]:
        with self._session("fetch_settings", "settings") as db:
            return {row.key: row.value for row in db.scalars(select(SettingRow)).all()}

    def save_setting(self, key: str, value: Any) -> None:
        with self._session("save_setting", "settings") as db:
            db.merge(SettingRow(key=key, value=value))
            safe_commit(db)
