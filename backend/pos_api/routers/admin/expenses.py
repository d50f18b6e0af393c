"""
Expense and expense category endpoints.
"""

from fastapi import Body

from pos_api.core.dependencies import get_runtime
from pos_api.core.lifespan import Runtime
from pos_api.routers.admin._base import APIRouter, Capability, Depends, require_capability
from pos_api.routers.pos_schemas import CategoryRequest, ExpenseCreate, ExpenseUpdate
from pos_api.services.domain import ExpenseService
from shared.utils.schemas import Expense


router = APIRouter(
    prefix="/expenses",
    tags=["admin-expenses"],
    dependencies=[Depends(require_capability(Capability.EXPENSES))],
)


def get_expense_service(runtime: Runtime = Depends(get_runtime)) -> ExpenseService:
    return ExpenseService(runtime.state, runtime.images)


@router.get("", response_model=list[Expense])
def list_expenses(site_id: str | None = None, expenses: ExpenseService = Depends(get_expense_service)) -> list[Expense]:
    return sorted(expenses.list_all(site_id), key=lambda e: e.date, reverse=True)


@router.get("/totals")
def expense_totals(site_id: str | None = None, expenses: ExpenseService = Depends(get_expense_service)) -> dict:
    """Spent today and in the current month."""
    return expenses.totals(site_id)


@router.post("", response_model=Expense, status_code=201)
def create_expense(body: ExpenseCreate, expenses: ExpenseService = Depends(get_expense_service)) -> Expense:
    return expenses.create(body.model_dump(exclude_none=True))


@router.patch("/{expense_id}", response_model=Expense)
def update_expense(
    expense_id: str,
    body: ExpenseUpdate,
    expenses: ExpenseService = Depends(get_expense_service),
) -> Expense:
    return expenses.update(expense_id, body.model_dump(exclude_unset=True))


@router.post("/{expense_id}/receipt", response_model=Expense)
def attach_receipt(
    expense_id: str,
    filename: str = "recibo.jpg",
    content: bytes = Body(..., media_type="application/octet-stream"),
    expenses: ExpenseService = Depends(get_expense_service),
) -> Expense:
    """Upload the receipt picture (raw request body) and link it."""
    return expenses.attach_receipt(expense_id, content, filename)


@router.delete("/{expense_id}", status_code=204)
def delete_expense(expense_id: str, expenses: ExpenseService = Depends(get_expense_service)) -> None:
    expenses.delete(expense_id)


# =============================================================================
# Categories
# =============================================================================


@router.get("/categories", response_model=list[str])
def list_categories(expenses: ExpenseService = Depends(get_expense_service)) -> list[str]:
    return expenses.categories()


@router.post("/categories", response_model=list[str], status_code=201)
def add_category(body: CategoryRequest, expenses: ExpenseService = Depends(get_expense_service)) -> list[str]:
    return expenses.add_category(body.name)


@router.delete("/categories/{name}", response_model=list[str])
def remove_category(name: str, expenses: ExpenseService = Depends(get_expense_service)) -> list[str]:
    return expenses.remove_category(name)
