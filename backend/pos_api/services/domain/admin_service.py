"""
Administrative services: sites, users, roles.

Guards:
- the last site, user or role can never be deleted
- usernames are unique (case-insensitive)
- a role still assigned to users cannot be deleted
- passwords are stored only as bcrypt hashes
"""

from __future__ import annotations

from typing import Any

from shared.config.constants import EntityTable
from shared.config.logging import get_logger, mask_username
from shared.security.password import hash_password
from shared.utils.exceptions import (
    DuplicateEntityError,
    LastEntityError,
    ValidationError,
)
from shared.utils.schemas import Role, Site, User

from pos_api.services.base_service import BaseCRUDService
from pos_api.services.state import AppState

logger = get_logger(__name__)


class SiteService(BaseCRUDService[Site]):
    """Service for sites (sedes)."""

    def __init__(self, state: AppState):
        super().__init__(state, EntityTable.SITES, Site, "Sede", id_prefix="sede")

    def _validate_delete(self, entity: Site) -> None:
        if self.count() <= 1:
            raise LastEntityError("la última sede", site_id=entity.id)


class UserService(BaseCRUDService[User]):
    """Service for till users."""

    def __init__(self, state: AppState):
        super().__init__(state, EntityTable.USERS, User, "Usuario", id_prefix="user")

    def find_by_username(self, username: str) -> User | None:
        wanted = username.strip().casefold()
        for user in self._state.entities(EntityTable.USERS):
            if user.username.strip().casefold() == wanted:
                return user
        return None

    def _hash_password_field(self, data: dict[str, Any]) -> None:
        password = data.pop("password", None)
        if password is not None:
            if len(password) < 4:
                raise ValidationError("La contraseña debe tener al menos 4 caracteres", field="password")
            data["password_hash"] = hash_password(password)

    def _check_references(self, data: dict[str, Any]) -> None:
        role_id = data.get("role_id")
        if role_id is not None and self._state.get(EntityTable.ROLES, role_id) is None:
            raise ValidationError("Rol inválido", field="role_id")
        site_id = data.get("site_id")
        if site_id is not None and self._state.get(EntityTable.SITES, site_id) is None:
            raise ValidationError("Sede inválida", field="site_id")

    def _validate_create(self, data: dict[str, Any]) -> None:
        if not data.get("password"):
            raise ValidationError("La contraseña es obligatoria", field="password")
        username = (data.get("username") or "").strip()
        if not username:
            raise ValidationError("El usuario es obligatorio", field="username")
        if self.find_by_username(username) is not None:
            raise DuplicateEntityError("Usuario", username)
        data["username"] = username
        self._check_references(data)
        self._hash_password_field(data)

    def _validate_update(self, entity: User, data: dict[str, Any]) -> None:
        if "username" in data:
            other = self.find_by_username(data["username"])
            if other is not None and other.id != entity.id:
                raise DuplicateEntityError("Usuario", data["username"])
        self._check_references(data)
        self._hash_password_field(data)

    def _validate_delete(self, entity: User) -> None:
        if self.count() <= 1:
            raise LastEntityError("al último usuario", user_id=entity.id)
        current = self._state.current_user
        if current is not None and current.id == entity.id:
            raise ValidationError("No puedes eliminar tu propio usuario.", user_id=entity.id)

    def _after_create(self, entity: User) -> None:
        logger.info("User created", username=mask_username(entity.username), role_id=entity.role_id)


class RoleService(BaseCRUDService[Role]):
    """Service for roles and their capability sets."""

    def __init__(self, state: AppState):
        super().__init__(state, EntityTable.ROLES, Role, "Rol", id_prefix="role")

    def _validate_delete(self, entity: Role) -> None:
        if self.count() <= 1:
            raise LastEntityError("el último rol", role_id=entity.id)
        assigned = [u for u in self._state.entities(EntityTable.USERS) if u.role_id == entity.id]
        if assigned:
            raise ValidationError(
                "No se puede eliminar un rol asignado a usuarios.",
                role_id=entity.id,
                users=len(assigned),
            )
