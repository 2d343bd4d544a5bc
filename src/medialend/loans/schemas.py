"""Pydantic schemas for loan records."""

from datetime import date
from typing import Optional

from pydantic import BaseModel

from ..items.models import ItemKind
from .models import LoanState


class LoanSummary(BaseModel):
    """Summary of an active loan for listing."""

    item_code: str
    item_title: str
    item_kind: ItemKind
    last_name: str
    first_name: str
    loan_date: date
    due_date: date
    state: LoanState
    reminder_date: Optional[date]
    fee: float
    days_overdue: int


class SweepReport(BaseModel):
    """Outcome of one daily overdue sweep."""

    day: date
    checked: int = 0
    newly_overdue: list[str] = []
    escalated: list[str] = []

    @property
    def changed(self) -> bool:
        return bool(self.newly_overdue or self.escalated)


class OverdueReport(BaseModel):
    """Report of overdue loans."""

    loans: list[LoanSummary]
    total_overdue: int
    oldest_overdue_days: int
