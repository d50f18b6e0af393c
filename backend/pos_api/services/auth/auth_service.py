"""
Auth Service - login and logout for till users.

Credentials are checked against the bcrypt hashes of the users collection.
While the users collection is empty (first start against a fresh remote
store) the built-in default users are accepted. The support credential is
only available when both MASTER_USERNAME and MASTER_PASSWORD_HASH are set.
"""

from __future__ import annotations

from shared.config.constants import EntityTable
from shared.config.logging import auth_logger as logger, mask_username
from shared.config.settings import Settings, settings as default_settings
from shared.security.password import verify_password
from shared.utils.exceptions import UnauthorizedError
from shared.utils.schemas import User

from pos_api.services.auth.session import SessionStore
from pos_api.services.persistence.defaults import ADMIN_ROLE_ID, default_table
from pos_api.services.state import AppState, parse_rows

INVALID_CREDENTIALS = "Credenciales inválidas"
MASTER_USER_ID = "master-user"


class AuthService:
    def __init__(self, state: AppState, config: Settings | None = None):
        self._state = state
        self._config = config or default_settings
        self._sessions = SessionStore(state.gateway.local)

    @property
    def sessions(self) -> SessionStore:
        return self._sessions

    def _master_user(self, username: str, password: str) -> User | None:
        config = self._config
        if not config.master_credential_enabled or username != config.master_username:
            return None
        if not verify_password(password, config.master_password_hash):
            return None
        logger.warning("Support credential used", username=mask_username(username))
        return User(
            id=MASTER_USER_ID,
            username=username,
            name="Soporte Técnico",
            role_id=ADMIN_ROLE_ID,
            site_id=config.default_site_id,
        )

    def _candidates(self) -> list[User]:
        users = self._state.entities(EntityTable.USERS)
        if users:
            return users
        logger.info("No users stored, accepting default users")
        return parse_rows(EntityTable.USERS, default_table(EntityTable.USERS))

    def authenticate(self, username: str, password: str) -> User | None:
        username = username.strip()
        master = self._master_user(username, password)
        if master is not None:
            return master

        wanted = username.casefold()
        for user in self._candidates():
            if user.username.strip().casefold() == wanted and verify_password(password, user.password_hash):
                return user
        return None

    def login(self, username: str, password: str) -> User:
        """
        Authenticate and open the session.

        Raises:
            UnauthorizedError: Unknown user or wrong password.
        """
        user = self.authenticate(username, password)
        if user is None:
            logger.warning("LOGIN_FAILED", username=mask_username(username))
            raise UnauthorizedError(INVALID_CREDENTIALS)

        self._state.set_current_user(user)
        self._sessions.save(user)
        logger.info("Login", user_id=user.id, site_id=user.site_id)
        return self._state.current_user

    def restore(self) -> User | None:
        """Resume a stored session, if any."""
        user = self._sessions.load()
        if user is not None:
            self._state.set_current_user(user)
            logger.info("Session restored", user_id=user.id)
        return user

    def logout(self) -> None:
        user = self._state.current_user
        self._state.set_current_user(None)
        self._sessions.clear()
        logger.info("Logout", user_id=user.id if user else None)
