"""
Admin API router - combines all back-office sub-routers.

- catalog: menu items, delivery rates, customers, settings blobs
- inventory: stock items and adjustments
- expenses: expenses and expense categories
- reports: sales listing and summaries
- staff: sites, users and roles

All routes are prefixed with /api/admin
"""

from fastapi import APIRouter, Depends

from pos_api.core.dependencies import current_user

from .catalog import router as catalog_router
from .inventory import router as inventory_router
from .expenses import router as expenses_router
from .reports import router as reports_router
from .staff import router as staff_router


router = APIRouter(prefix="/api/admin", dependencies=[Depends(current_user)])

router.include_router(catalog_router)
router.include_router(inventory_router)
router.include_router(expenses_router)
router.include_router(reports_router)
router.include_router(staff_router)

__all__ = ["router"]
