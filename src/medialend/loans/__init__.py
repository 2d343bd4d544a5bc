"""Loan records module.

Provides functionality for:
- Opening a loan (item lent, then borrower charged)
- Overdue detection, first reminder and re-escalation
- Due date re-evaluation after a category change
- Closing a loan on return
"""

from .models import LoanRecord, LoanState
from .schemas import LoanSummary, OverdueReport, SweepReport

__all__ = [
    "LoanRecord",
    "LoanState",
    "LoanSummary",
    "OverdueReport",
    "SweepReport",
]
