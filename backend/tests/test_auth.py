"""
Tests for authentication: password hashing, login, session persistence,
the support credential and capability checks.
"""

import pytest

from shared.config.constants import SESSION_KEY, Capability, EntityTable
from shared.config.settings import Settings
from shared.security.password import hash_password, verify_password
from shared.utils.exceptions import MissingCapabilityError, UnauthorizedError
from pos_api.services.auth import (
    INVALID_CREDENTIALS,
    MASTER_USER_ID,
    AuthService,
    PermissionContext,
)
from pos_api.services.state import AppState


class TestPasswordHashing:
    """Test password hashing utilities."""

    def test_hash_password_returns_bcrypt_hash(self):
        hashed = hash_password("mypassword", rounds=4)
        assert hashed.startswith("$2b$")

    def test_verify_password_correct(self):
        hashed = hash_password("mypassword", rounds=4)
        assert verify_password("mypassword", hashed) is True

    def test_verify_password_incorrect(self):
        hashed = hash_password("mypassword", rounds=4)
        assert verify_password("wrongpassword", hashed) is False

    def test_plain_text_never_matches(self):
        """Values that are not bcrypt hashes are rejected, even when equal."""
        assert verify_password("plaintext", "plaintext") is False
        assert verify_password("admin", "") is False

    def test_malformed_hash_is_rejected(self):
        assert verify_password("admin", "$2b$not-a-real-hash") is False


class TestLogin:
    """Login against the users collection."""

    def test_login_success(self, state):
        auth = AuthService(state)
        user = auth.login("admin", "admin")
        assert user.id == "user-admin"
        assert state.current_user.id == "user-admin"
        assert state.selected_site_id == user.site_id

    def test_username_is_case_insensitive_and_trimmed(self, state):
        user = AuthService(state).login("  ADMIN ", "admin")
        assert user.username == "admin"

    def test_wrong_password(self, state):
        with pytest.raises(UnauthorizedError) as exc_info:
            AuthService(state).login("admin", "nope")
        assert exc_info.value.detail == INVALID_CREDENTIALS

    def test_unknown_user(self, state):
        with pytest.raises(UnauthorizedError):
            AuthService(state).login("ghost", "admin")

    def test_defaults_accepted_while_users_empty(self, offline_gateway):
        """A fresh store with no users still lets the default admin in."""
        app_state = AppState(offline_gateway)
        assert app_state.count(EntityTable.USERS) == 0
        user = AuthService(app_state).login("cajero", "cajero")
        assert user.id == "user-cajero"

    def test_stored_users_replace_defaults(self, state):
        admin = state.get(EntityTable.USERS, "user-admin")
        state.apply(EntityTable.USERS, admin.model_copy(update={"password_hash": hash_password("nueva", rounds=4)}))
        auth = AuthService(state)
        with pytest.raises(UnauthorizedError):
            auth.login("admin", "admin")
        assert auth.login("admin", "nueva").id == "user-admin"


class TestSession:
    """The logged-in user survives restarts through the local store."""

    def test_session_is_persisted_without_hash(self, state):
        AuthService(state).login("admin", "admin")
        stored = state.gateway.local.get(SESSION_KEY)
        assert stored["id"] == "user-admin"
        assert stored["name"] == "Administrador"
        assert "passwordHash" not in stored

    def test_restore_resumes_session(self, state):
        AuthService(state).login("admin", "admin")
        state.set_current_user(None)

        restored = AuthService(state).restore()

        assert restored.id == "user-admin"
        assert state.current_user.id == "user-admin"

    def test_restore_without_session(self, state):
        state.set_current_user(None)
        assert AuthService(state).restore() is None
        assert state.current_user is None

    @pytest.mark.parametrize("raw", [{"id": "user-admin"}, {"name": "Ana"}, ["user-admin"], "admin"])
    def test_malformed_session_is_discarded(self, state, raw):
        state.set_current_user(None)
        state.gateway.local.set(SESSION_KEY, raw)

        assert AuthService(state).restore() is None
        assert state.gateway.local.get(SESSION_KEY) is None

    def test_logout_clears_session(self, state):
        auth = AuthService(state)
        auth.login("admin", "admin")
        auth.logout()
        assert state.current_user is None
        assert state.gateway.local.get(SESSION_KEY) is None


class TestMasterCredential:
    """Support credential configured through the environment."""

    def test_disabled_by_default(self, state):
        config = Settings(master_username="", master_password_hash="")
        with pytest.raises(UnauthorizedError):
            AuthService(state, config).login("soporte", "secreto")

    def test_login_with_configured_credential(self, state):
        config = Settings(master_username="soporte", master_password_hash=hash_password("secreto", rounds=4))
        user = AuthService(state, config).login("soporte", "secreto")
        assert user.id == MASTER_USER_ID
        assert user.role_id == "role-admin"

    def test_wrong_master_password_falls_through(self, state):
        config = Settings(master_username="soporte", master_password_hash=hash_password("secreto", rounds=4))
        with pytest.raises(UnauthorizedError):
            AuthService(state, config).login("soporte", "otro")

    def test_production_rejects_master_credential(self):
        config = Settings(
            environment="production",
            database_url="postgresql+psycopg://pos@db/pos",
            allowed_origins="https://pos.example.com",
            master_username="soporte",
            master_password_hash=hash_password("secreto", rounds=4),
        )
        errors = config.validate_production_secrets()
        assert any("MASTER_USERNAME" in e for e in errors)


class TestPermissions:
    """Capabilities come from the user's role."""

    def test_admin_has_every_capability(self, state):
        ctx = PermissionContext.for_user(state, state.current_user)
        assert ctx.capabilities == frozenset(Capability)
        ctx.require(Capability.SETTINGS)

    def test_cashier_lacks_back_office(self, state):
        cashier = state.get(EntityTable.USERS, "user-cajero")
        ctx = PermissionContext.for_user(state, cashier)

        assert ctx.can(Capability.POS)
        assert ctx.can("EXPENSES")
        assert not ctx.can(Capability.INVENTORY)
        with pytest.raises(MissingCapabilityError) as exc_info:
            ctx.require(Capability.USERS)
        assert exc_info.value.status_code == 403
        assert "USERS" in exc_info.value.detail

    def test_unknown_role_grants_nothing(self, state):
        user = state.get(EntityTable.USERS, "user-cajero").model_copy(update={"role_id": "role-missing"})
        ctx = PermissionContext.for_user(state, user)
        assert ctx.capabilities == frozenset()

    def test_anonymous_is_unauthorized(self, state):
        with pytest.raises(UnauthorizedError):
            PermissionContext.for_user(state, None)
