"""Borrowers module.

Provides functionality for:
- Borrower categories (quota, annual fee, duration and fee multipliers)
- Borrowers keyed by (last name, first name)
- Quota and overdue bookkeeping guarded by the borrower invariant
"""

from .models import Borrower, BorrowerCategory, BorrowerKey, check_discount_code, round_days
from .schemas import (
    BorrowerCreate,
    BorrowerSummary,
    BorrowerUpdate,
    CategoryCreate,
    CategoryUpdate,
)

__all__ = [
    "Borrower",
    "BorrowerCategory",
    "BorrowerKey",
    "check_discount_code",
    "round_days",
    "BorrowerCreate",
    "BorrowerSummary",
    "BorrowerUpdate",
    "CategoryCreate",
    "CategoryUpdate",
]
