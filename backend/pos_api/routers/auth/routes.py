"""
Authentication router.
Handles login, logout and the active session.
"""

from fastapi import APIRouter, Depends

from shared.config.constants import GLOBAL_SITE_ID, EntityTable
from shared.utils.exceptions import NotFoundError
from shared.utils.schemas import User
from pos_api.core.dependencies import current_permissions, current_user, get_auth, get_state
from pos_api.routers.pos_schemas import LoginRequest, SelectSiteRequest, SessionOutput, UserOutput
from pos_api.services.auth import AuthService, PermissionContext
from pos_api.services.state import AppState


router = APIRouter(prefix="/api/auth", tags=["auth"])


def _session_output(state: AppState, ctx: PermissionContext) -> SessionOutput:
    return SessionOutput(
        user=UserOutput.from_user(ctx.user),
        permissions=sorted(ctx.capabilities, key=lambda c: c.value),
        selected_site_id=state.selected_site_id,
    )


@router.post("/login", response_model=SessionOutput)
def login(
    body: LoginRequest,
    auth: AuthService = Depends(get_auth),
    state: AppState = Depends(get_state),
) -> SessionOutput:
    """Authenticate a till user and open the session."""
    user = auth.login(body.username, body.password)
    return _session_output(state, PermissionContext.for_user(state, user))


@router.post("/logout")
def logout(auth: AuthService = Depends(get_auth)) -> dict:
    auth.logout()
    return {"success": True, "message": "Sesión cerrada"}


@router.get("/me", response_model=SessionOutput)
def me(
    state: AppState = Depends(get_state),
    ctx: PermissionContext = Depends(current_permissions),
) -> SessionOutput:
    return _session_output(state, ctx)


@router.post("/site", response_model=SessionOutput)
def select_site(
    body: SelectSiteRequest,
    state: AppState = Depends(get_state),
    user: User = Depends(current_user),
) -> SessionOutput:
    """Switch the working site; "global" is the read-only aggregate view."""
    if body.site_id != GLOBAL_SITE_ID and state.get(EntityTable.SITES, body.site_id) is None:
        raise NotFoundError("Sede", body.site_id)
    state.select_site(body.site_id)
    return _session_output(state, PermissionContext.for_user(state, user))
