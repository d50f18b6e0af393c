"""
Persisted login session.

The logged-in user is kept under the `session` key of the local store so a
restart resumes the session. A stored value is trusted only when it carries
both an id and a name; anything else is discarded.
"""

from __future__ import annotations

from typing import Any

from pydantic import ValidationError as PydanticValidationError

from shared.config.constants import SESSION_KEY
from shared.config.logging import auth_logger as logger
from shared.utils.schemas import User

from pos_api.services.persistence import LocalStore


class SessionStore:
    def __init__(self, local: LocalStore):
        self._local = local

    def save(self, user: User) -> None:
        data = user.model_dump(mode="json", by_alias=True, exclude={"password_hash"})
        self._local.set(SESSION_KEY, data)

    def load(self) -> User | None:
        raw: Any = self._local.get(SESSION_KEY)
        if raw is None:
            return None
        if not isinstance(raw, dict) or not raw.get("id") or not raw.get("name"):
            logger.warning("Discarding malformed session")
            self.clear()
            return None
        try:
            return User.model_validate(raw)
        except PydanticValidationError:
            logger.warning("Discarding invalid session", user_id=raw.get("id"))
            self.clear()
            return None

    def clear(self) -> None:
        self._local.delete(SESSION_KEY)
