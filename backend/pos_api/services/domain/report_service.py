"""
Report Service - sales and expense summaries for a site and a date range.
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date, datetime

from shared.config.constants import EntityTable, PaymentMethod
from shared.utils.schemas import Expense, Sale

from pos_api.services.base_service import BaseService


def _day(value: datetime | date) -> date:
    return value.date() if isinstance(value, datetime) else value


@dataclass
class SalesSummary:
    """Aggregated figures for a period."""

    sales_count: int = 0
    sales_total: int = 0
    by_payment_method: dict[str, int] = field(default_factory=dict)
    by_day: dict[str, int] = field(default_factory=dict)
    top_items: list[tuple[str, int]] = field(default_factory=list)
    expenses_total: float = 0.0

    @property
    def average_ticket(self) -> float:
        return self.sales_total / self.sales_count if self.sales_count else 0.0

    @property
    def net(self) -> float:
        return self.sales_total - self.expenses_total

    def to_dict(self) -> dict:
        return {
            "salesCount": self.sales_count,
            "salesTotal": self.sales_total,
            "averageTicket": self.average_ticket,
            "byPaymentMethod": self.by_payment_method,
            "byDay": self.by_day,
            "topItems": [{"name": n, "quantity": q} for n, q in self.top_items],
            "expensesTotal": self.expenses_total,
            "net": self.net,
        }


class ReportService(BaseService):
    """Read-only summaries over the sales and expenses in state."""

    def sales_in_range(
        self, site_id: str | None = None, start: date | None = None, end: date | None = None
    ) -> list[Sale]:
        sales = self._state.list_for_site(EntityTable.SALES, site_id)
        return [
            s for s in sales
            if (start is None or _day(s.timestamp) >= start) and (end is None or _day(s.timestamp) <= end)
        ]

    def expenses_in_range(
        self, site_id: str | None = None, start: date | None = None, end: date | None = None
    ) -> list[Expense]:
        expenses = self._state.list_for_site(EntityTable.EXPENSES, site_id)
        return [
            e for e in expenses
            if (start is None or _day(e.date) >= start) and (end is None or _day(e.date) <= end)
        ]

    def summary(
        self,
        site_id: str | None = None,
        start: date | None = None,
        end: date | None = None,
        top: int = 5,
    ) -> SalesSummary:
        sales = self.sales_in_range(site_id, start, end)
        result = SalesSummary()
        result.by_payment_method = {m.value: 0 for m in PaymentMethod}
        by_day: dict[str, int] = defaultdict(int)
        items: dict[str, int] = defaultdict(int)

        for sale in sales:
            result.sales_count += 1
            result.sales_total += sale.total
            method = PaymentMethod(sale.payment_method).value
            result.by_payment_method[method] += sale.total
            by_day[_day(sale.timestamp).isoformat()] += sale.total
            for item in sale.order.items:
                items[item.name] += item.quantity

        result.by_day = dict(sorted(by_day.items()))
        result.top_items = sorted(items.items(), key=lambda kv: (-kv[1], kv[0]))[:top]
        result.expenses_total = sum(e.amount for e in self.expenses_in_range(site_id, start, end))
        return result
