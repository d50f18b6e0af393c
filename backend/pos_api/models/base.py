"""
Base class and row mixins for the remote store's ORM models.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from sqlalchemy import JSON, DateTime, String, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Base class for all models."""

    pass


class EntityRowMixin:
    """
    Generic entity row: the full entity is serialized into `data`.

    Fields added:
    - id: Entity id (same value as data["id"])
    - data: Entity JSON in its camelCase form
    - modified_at: Server-side write timestamp
    """

    id: Mapped[str] = mapped_column(String(128), primary_key=True)
    data: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)
    modified_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=True,
    )

    def __repr__(self) -> str:
        return f"<{type(self).__name__} id={self.id!r}>"
