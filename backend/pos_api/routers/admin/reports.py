"""
Sales listing and summary endpoints.
"""

from datetime import date

from pos_api.routers.admin._base import (
    APIRouter, AppState, Capability, Depends, get_state, require_capability,
)
from pos_api.services.domain import ReportService
from shared.utils.schemas import Sale


router = APIRouter(
    tags=["admin-reports"],
    dependencies=[Depends(require_capability(Capability.REPORTS))],
)


@router.get("/sales", response_model=list[Sale])
def list_sales(
    site_id: str | None = None,
    start: date | None = None,
    end: date | None = None,
    state: AppState = Depends(get_state),
) -> list[Sale]:
    sales = ReportService(state).sales_in_range(site_id, start, end)
    return sorted(sales, key=lambda s: s.timestamp, reverse=True)


@router.get("/reports/summary")
def sales_summary(
    site_id: str | None = None,
    start: date | None = None,
    end: date | None = None,
    top: int = 5,
    state: AppState = Depends(get_state),
) -> dict:
    """Totals by payment method and day, best sellers, expenses and net."""
    return ReportService(state).summary(site_id, start, end, top).to_dict()
