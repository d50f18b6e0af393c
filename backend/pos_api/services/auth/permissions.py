"""
Permission Context - capability checks for the logged-in user.

A role grants a set of `Capability` values; access is plain set membership.
"""

from __future__ import annotations

from typing import Iterable

from shared.config.constants import Capability, EntityTable
from shared.utils.exceptions import MissingCapabilityError, UnauthorizedError
from shared.utils.schemas import Role, User

from pos_api.services.state import AppState


class PermissionContext:
    """
    Usage:
        ctx = PermissionContext.for_user(state, user)
        if ctx.can(Capability.INVENTORY):
            ...
        ctx.require(Capability.SETTINGS)  # raises MissingCapabilityError
    """

    def __init__(self, user: User, capabilities: Iterable[Capability | str] = ()):
        self._user = user
        self._capabilities = frozenset(Capability(c) for c in capabilities)

    @classmethod
    def for_user(cls, state: AppState, user: User | None) -> "PermissionContext":
        if user is None:
            raise UnauthorizedError()
        role: Role | None = state.get(EntityTable.ROLES, user.role_id)
        return cls(user, role.permissions if role else ())

    @property
    def user(self) -> User:
        return self._user

    @property
    def user_id(self) -> str:
        return self._user.id

    @property
    def capabilities(self) -> frozenset[Capability]:
        return self._capabilities

    def can(self, capability: Capability | str) -> bool:
        return Capability(capability) in self._capabilities

    def require(self, capability: Capability | str) -> None:
        capability = Capability(capability)
        if capability not in self._capabilities:
            raise MissingCapabilityError(capability.value, user_id=self._user.id)
