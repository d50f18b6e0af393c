"""
Expense Service - expenses per site and their categories.

Categories are a settings blob (`expense_categories`): unique names, at
least one must remain, and a category with expenses cannot be removed.
"""

from __future__ import annotations

from datetime import date, datetime
from typing import Any

from shared.config.constants import EntityTable, SettingKey
from shared.config.logging import get_logger
from shared.utils.exceptions import DuplicateEntityError, LastEntityError, ValidationError
from shared.utils.schemas import Expense

from pos_api.services.base_service import BaseCRUDService
from pos_api.services.collaborators import ReceiptImageStore
from pos_api.services.state import AppState

logger = get_logger(__name__)


class ExpenseService(BaseCRUDService[Expense]):
    """Service for expenses and expense categories."""

    def __init__(self, state: AppState, images: ReceiptImageStore | None = None):
        super().__init__(state, EntityTable.EXPENSES, Expense, "Gasto", has_site_id=True, id_prefix="expense")
        self._images = images

    # =========================================================================
    # Expenses
    # =========================================================================

    def _check_required(self, data: dict[str, Any]) -> None:
        description = (data.get("description") or "").strip()
        amount = data.get("amount")
        if not description or not amount:
            raise ValidationError("Descripción y monto son obligatorios.")
        data["description"] = description

    def _check_category(self, category: str | None) -> None:
        if category not in self._state.expense_categories:
            raise ValidationError("Selecciona una categoría válida", field="category", category=category)

    def _validate_create(self, data: dict[str, Any]) -> None:
        self._check_required(data)
        self._check_category(data.get("category"))

    def _validate_update(self, entity: Expense, data: dict[str, Any]) -> None:
        if "description" in data or "amount" in data:
            self._check_required({
                "description": data.get("description", entity.description),
                "amount": data.get("amount", entity.amount),
            })
        if "category" in data:
            self._check_category(data["category"])
        if self._images and entity.receipt_url and data.get("receipt_url", entity.receipt_url) != entity.receipt_url:
            self._images.delete(entity.receipt_url)

    def _after_delete(self, entity: Expense) -> None:
        if self._images and entity.receipt_url:
            self._images.delete(entity.receipt_url)

    def attach_receipt(self, expense_id: str, content: bytes, filename: str) -> Expense:
        """Upload a receipt picture and link it to the expense."""
        if self._images is None:
            raise ValidationError("Almacenamiento de imágenes no configurado")
        url = self._images.upload(content, filename)
        if url is None:
            raise ValidationError("No se pudo subir la imagen del recibo")
        return self.update(expense_id, {"receipt_url": url})

    def totals(self, site_id: str | None = None, today: date | None = None) -> dict[str, float]:
        """Spent today and in the current month."""
        today = today or self._state.now().date()
        day_total = 0.0
        month_total = 0.0
        for expense in self.list_all(site_id):
            spent_on = expense.date.date() if isinstance(expense.date, datetime) else expense.date
            if spent_on == today:
                day_total += expense.amount
            if (spent_on.year, spent_on.month) == (today.year, today.month):
                month_total += expense.amount
        return {"today": day_total, "month": month_total}

    # =========================================================================
    # Categories
    # =========================================================================

    def categories(self) -> list[str]:
        return self._state.expense_categories

    def add_category(self, name: str) -> list[str]:
        name = name.strip()
        if not name:
            raise ValidationError("El nombre de la categoría es obligatorio")
        with self._state.lock:
            current = self._state.expense_categories
            if name.casefold() in {c.casefold() for c in current}:
                raise DuplicateEntityError("Categoría", name)
            updated = [*current, name]
            self._state.apply_setting(SettingKey.EXPENSE_CATEGORIES, updated)
        self._state.gateway.save_setting(SettingKey.EXPENSE_CATEGORIES, updated)
        return updated

    def remove_category(self, name: str) -> list[str]:
        with self._state.lock:
            current = self._state.expense_categories
            if name not in current:
                return current
            if any(e.category == name for e in self._state.entities(EntityTable.EXPENSES)):
                raise ValidationError(
                    f'No se puede eliminar "{name}" porque tiene gastos asociados.',
                    category=name,
                )
            if len(current) <= 1:
                raise LastEntityError("la última categoría", category=name)
            updated = [c for c in current if c != name]
            self._state.apply_setting(SettingKey.EXPENSE_CATEGORIES, updated)
        self._state.gateway.save_setting(SettingKey.EXPENSE_CATEGORIES, updated)
        return updated
