"""
FastAPI dependencies: runtime access, current user and capability checks.

The API serves a single till: the logged-in user lives in the application
state, the same way the till front-end keeps one session.
"""

from __future__ import annotations

from typing import Callable

from fastapi import Depends, Request

from shared.config.constants import Capability
from shared.utils.exceptions import UnauthorizedError
from shared.utils.schemas import User

from pos_api.core.lifespan import Runtime
from pos_api.services.auth import AuthService, PermissionContext
from pos_api.services.domain import POSService
from pos_api.services.state import AppState


def get_runtime(request: Request) -> Runtime:
    return request.app.state.runtime


def get_state(runtime: Runtime = Depends(get_runtime)) -> AppState:
    return runtime.state


def get_auth(runtime: Runtime = Depends(get_runtime)) -> AuthService:
    return runtime.auth


def current_user(state: AppState = Depends(get_state)) -> User:
    user = state.current_user
    if user is None:
        raise UnauthorizedError()
    return user


def current_permissions(
    state: AppState = Depends(get_state),
    user: User = Depends(current_user),
) -> PermissionContext:
    return PermissionContext.for_user(state, user)


def require_capability(capability: Capability) -> Callable[..., PermissionContext]:
    """
    Usage:
        @router.get("/", dependencies=[Depends(require_capability(Capability.INVENTORY))])
    """

    def checker(ctx: PermissionContext = Depends(current_permissions)) -> PermissionContext:
        ctx.require(capability)
        return ctx

    return checker


def get_pos_service(runtime: Runtime = Depends(get_runtime)) -> POSService:
    return POSService(runtime.state, parser=runtime.parser, printer=runtime.printer)
