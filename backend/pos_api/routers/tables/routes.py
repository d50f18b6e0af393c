"""
Table and zone management endpoints.

All writes are scoped to the selected site; the global view is read-only.
"""

from fastapi import APIRouter, Depends

from shared.config.constants import Capability
from shared.utils.schemas import Table, Zone
from pos_api.core.dependencies import get_state, require_capability
from pos_api.routers.pos_schemas import (
    TableCreate,
    TableStatusRequest,
    TableUpdate,
    ZoneCreate,
    ZoneUpdate,
)
from pos_api.services.domain import TableService, ZoneService
from pos_api.services.state import AppState


router = APIRouter(
    prefix="/api",
    tags=["tables"],
    dependencies=[Depends(require_capability(Capability.TABLES))],
)


def get_table_service(state: AppState = Depends(get_state)) -> TableService:
    return TableService(state)


def get_zone_service(state: AppState = Depends(get_state)) -> ZoneService:
    return ZoneService(state)


# =============================================================================
# Zones
# =============================================================================


@router.get("/zones", response_model=list[Zone])
def list_zones(site_id: str | None = None, zones: ZoneService = Depends(get_zone_service)) -> list[Zone]:
    return zones.list_all(site_id)


@router.post("/zones", response_model=Zone, status_code=201)
def create_zone(body: ZoneCreate, zones: ZoneService = Depends(get_zone_service)) -> Zone:
    return zones.create(body.model_dump())


@router.patch("/zones/{zone_id}", response_model=Zone)
def update_zone(zone_id: str, body: ZoneUpdate, zones: ZoneService = Depends(get_zone_service)) -> Zone:
    return zones.update(zone_id, body.model_dump(exclude_unset=True))


@router.delete("/zones/{zone_id}", status_code=204)
def delete_zone(zone_id: str, zones: ZoneService = Depends(get_zone_service)) -> None:
    """Rejected while tables reference the zone."""
    zones.delete(zone_id)


# =============================================================================
# Tables
# =============================================================================


@router.get("/tables", response_model=list[Table])
def list_tables(site_id: str | None = None, tables: TableService = Depends(get_table_service)) -> list[Table]:
    return tables.list_all(site_id)


@router.post("/tables", response_model=Table, status_code=201)
def create_table(body: TableCreate, tables: TableService = Depends(get_table_service)) -> Table:
    return tables.create(body.model_dump())


@router.patch("/tables/{table_id}", response_model=Table)
def update_table(table_id: str, body: TableUpdate, tables: TableService = Depends(get_table_service)) -> Table:
    return tables.update(table_id, body.model_dump(exclude_unset=True))


@router.put("/tables/{table_id}/status", response_model=Table)
def set_table_status(
    table_id: str,
    body: TableStatusRequest,
    tables: TableService = Depends(get_table_service),
) -> Table:
    """Manual override (reserved, cleaning, ...)."""
    return tables.set_status(table_id, body.status)


@router.delete("/tables/{table_id}", status_code=204)
def delete_table(table_id: str, tables: TableService = Depends(get_table_service)) -> None:
    tables.delete(table_id)
