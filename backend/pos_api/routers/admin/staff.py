"""
Site, user and role management endpoints.
"""

from pos_api.routers.admin._base import (
    APIRouter, AppState, Capability, Depends, get_state, require_capability,
)
from pos_api.routers.pos_schemas import (
    RoleCreate,
    RoleUpdate,
    SiteCreate,
    SiteUpdate,
    UserCreate,
    UserOutput,
    UserUpdate,
)
from pos_api.services.domain import RoleService, SiteService, UserService
from shared.utils.schemas import Role, Site


router = APIRouter(tags=["admin-staff"])


# =============================================================================
# Sites
# =============================================================================


@router.get("/sites", response_model=list[Site])
def list_sites(state: AppState = Depends(get_state)) -> list[Site]:
    return SiteService(state).list_all()


@router.post(
    "/sites",
    response_model=Site,
    status_code=201,
    dependencies=[Depends(require_capability(Capability.SITES))],
)
def create_site(body: SiteCreate, state: AppState = Depends(get_state)) -> Site:
    return SiteService(state).create(body.model_dump())


@router.patch(
    "/sites/{site_id}",
    response_model=Site,
    dependencies=[Depends(require_capability(Capability.SITES))],
)
def update_site(site_id: str, body: SiteUpdate, state: AppState = Depends(get_state)) -> Site:
    return SiteService(state).update(site_id, body.model_dump(exclude_unset=True))


@router.delete(
    "/sites/{site_id}",
    status_code=204,
    dependencies=[Depends(require_capability(Capability.SITES))],
)
def delete_site(site_id: str, state: AppState = Depends(get_state)) -> None:
    SiteService(state).delete(site_id)


# =============================================================================
# Users
# =============================================================================


@router.get(
    "/users",
    response_model=list[UserOutput],
    dependencies=[Depends(require_capability(Capability.USERS))],
)
def list_users(state: AppState = Depends(get_state)) -> list[UserOutput]:
    return [UserOutput.from_user(u) for u in UserService(state).list_all()]


@router.post(
    "/users",
    response_model=UserOutput,
    status_code=201,
    dependencies=[Depends(require_capability(Capability.USERS))],
)
def create_user(body: UserCreate, state: AppState = Depends(get_state)) -> UserOutput:
    return UserOutput.from_user(UserService(state).create(body.model_dump()))


@router.patch(
    "/users/{user_id}",
    response_model=UserOutput,
    dependencies=[Depends(require_capability(Capability.USERS))],
)
def update_user(user_id: str, body: UserUpdate, state: AppState = Depends(get_state)) -> UserOutput:
    return UserOutput.from_user(UserService(state).update(user_id, body.model_dump(exclude_unset=True)))


@router.delete(
    "/users/{user_id}",
    status_code=204,
    dependencies=[Depends(require_capability(Capability.USERS))],
)
def delete_user(user_id: str, state: AppState = Depends(get_state)) -> None:
    UserService(state).delete(user_id)


# =============================================================================
# Roles
# =============================================================================


@router.get(
    "/roles",
    response_model=list[Role],
    dependencies=[Depends(require_capability(Capability.USERS))],
)
def list_roles(state: AppState = Depends(get_state)) -> list[Role]:
    return RoleService(state).list_all()


@router.post(
    "/roles",
    response_model=Role,
    status_code=201,
    dependencies=[Depends(require_capability(Capability.USERS))],
)
def create_role(body: RoleCreate, state: AppState = Depends(get_state)) -> Role:
    return RoleService(state).create(body.model_dump())


@router.patch(
    "/roles/{role_id}",
    response_model=Role,
    dependencies=[Depends(require_capability(Capability.USERS))],
)
def update_role(role_id: str, body: RoleUpdate, state: AppState = Depends(get_state)) -> Role:
    return RoleService(state).update(role_id, body.model_dump(exclude_unset=True))


@router.delete(
    "/roles/{role_id}",
    status_code=204,
    dependencies=[Depends(require_capability(Capability.USERS))],
)
def delete_role(role_id: str, state: AppState = Depends(get_state)) -> None:
    RoleService(state).delete(role_id)
