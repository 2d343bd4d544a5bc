"""Borrower categories and borrowers.

A category is pure policy data. A borrower keeps its own loan counters
and re-validates them after every mutation:

    overdue_count <= active_count <= category.max_loans
"""

import logging
import math
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import TYPE_CHECKING, NamedTuple, Optional

from ..errors import InvalidOperation, InvariantBroken

if TYPE_CHECKING:
    from ..loans.models import LoanRecord

logger = logging.getLogger(__name__)


@dataclass
class BorrowerCategory:
    """Named policy bundle governing quota, duration and pricing."""

    name: str
    max_loans: int = field(compare=False)
    annual_fee: float = field(compare=False)
    duration_multiplier: float = field(compare=False)
    fee_multiplier: float = field(compare=False)
    requires_discount_code: bool = field(default=False, compare=False)

    def __str__(self) -> str:
        return self.name


class BorrowerKey(NamedTuple):
    """Lookup key of a borrower: exact, case-sensitive name pair."""

    last_name: str
    first_name: str

    def __str__(self) -> str:
        return f"{self.last_name} {self.first_name}"


def round_days(days: float) -> int:
    """Round a fractional day count half-up to whole days."""
    return int(math.floor(days + 0.5))


def check_discount_code(category: BorrowerCategory, discount_code: Optional[int]) -> None:
    """Reject a discount code the category does not expect, or a missing one."""
    if category.requires_discount_code and discount_code is None:
        raise InvalidOperation(f"Category {category.name} requires a discount code")
    if not category.requires_discount_code and discount_code is not None:
        raise InvalidOperation(f"Category {category.name} does not use a discount code")


@dataclass(eq=False)
class Borrower:
    """Enrolled member of the library."""

    last_name: str
    first_name: str
    address: str
    category: BorrowerCategory
    enrolled_on: date
    renewal_on: date
    discount_code: Optional[int] = None

    # Counters
    active_count: int = field(default=0, init=False)
    overdue_count: int = field(default=0, init=False)
    lifetime_loans: int = field(default=0, init=False)

    loans: list["LoanRecord"] = field(default_factory=list, init=False, repr=False)

    def __post_init__(self) -> None:
        if not self.last_name or not self.first_name:
            raise InvalidOperation("Borrower needs a last name and a first name")
        if self.address is None:
            raise InvalidOperation(f"Borrower {self.key} needs an address")
        check_discount_code(self.category, self.discount_code)

    @property
    def key(self) -> BorrowerKey:
        return BorrowerKey(self.last_name, self.first_name)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Borrower):
            return NotImplemented
        return self.key == other.key

    def __hash__(self) -> int:
        return hash(self.key)

    def __str__(self) -> str:
        text = (
            f"{self.last_name} {self.first_name} ({self.category.name}) "
            f"active={self.active_count} overdue={self.overdue_count}"
        )
        if self.discount_code is not None:
            text += f" discount={self.discount_code}"
        return text

    # -------------------------------------------------------------------------
    # Policy
    # -------------------------------------------------------------------------

    def may_borrow(self) -> bool:
        """True if the borrower has no overdue loan and quota left."""
        return self.overdue_count == 0 and self.active_count < self.category.max_loans

    def has_active_loans(self) -> bool:
        return self.active_count > 0

    def due_date_for(self, loan_date: date, nominal_duration: int) -> date:
        """Due date of a loan starting on ``loan_date`` under this borrower's category."""
        days = round_days(nominal_duration * self.category.duration_multiplier)
        return loan_date + timedelta(days=days)

    def fee_for(self, nominal_fee: float) -> float:
        """Fee actually charged for an item with the given nominal fee."""
        return nominal_fee * self.category.fee_multiplier

    # -------------------------------------------------------------------------
    # Invariant
    # -------------------------------------------------------------------------

    def invariant(self) -> bool:
        return (
            0 <= self.overdue_count <= self.active_count <= self.category.max_loans
            and self.active_count == len(self.loans)
        )

    def _check_invariant(self) -> None:
        if not self.invariant():
            raise InvariantBroken(
                f"Borrower {self.key}: overdue={self.overdue_count} "
                f"active={self.active_count} loans={len(self.loans)} "
                f"max={self.category.max_loans}"
            )

    # -------------------------------------------------------------------------
    # Loan bookkeeping
    # -------------------------------------------------------------------------

    def record_new_loan(self, loan: "LoanRecord") -> None:
        """Register a freshly opened loan."""
        if not self.may_borrow():
            raise InvalidOperation(f"Borrower {self.key} is not allowed to borrow")
        self.lifetime_loans += 1
        self.active_count += 1
        self.loans.append(loan)
        self._check_invariant()

    def mark_overdue(self) -> None:
        """Count one more overdue loan."""
        if self.overdue_count + 1 > self.active_count:
            raise InvariantBroken(
                f"Borrower {self.key}: overdue count would exceed active count "
                f"({self.active_count})"
            )
        self.overdue_count += 1
        self._check_invariant()

    def record_return(self, loan: "LoanRecord") -> None:
        """Release a returned loan, overdue or not."""
        was_overdue = loan.overdue
        if self.active_count == 0:
            raise InvalidOperation(f"Borrower {self.key} has no active loan to return")
        if was_overdue and self.overdue_count == 0:
            raise InvalidOperation(f"Borrower {self.key} has no overdue loan to return")
        if loan not in self.loans:
            raise InvalidOperation(f"Loan of {loan.item.code} is not held by {self.key}")
        self.active_count -= 1
        if was_overdue:
            self.overdue_count -= 1
        self.loans.remove(loan)
        self._check_invariant()

    def change_category(
        self,
        new_category: BorrowerCategory,
        discount_code: Optional[int],
        today: date,
    ) -> None:
        """Move to another category and re-evaluate every active loan.

        Loans that stop being overdue release their overdue mark; loans
        that become overdue under the shorter duration gain one.
        """
        check_discount_code(new_category, discount_code)
        if self.active_count > new_category.max_loans:
            raise InvalidOperation(
                f"Borrower {self.key} holds {self.active_count} loans, "
                f"category {new_category.name} allows {new_category.max_loans}"
            )

        old_category = self.category
        self.category = new_category
        self.discount_code = discount_code

        for loan in self.loans:
            was_overdue = loan.reevaluate_for_category_change(today)
            if was_overdue and not loan.overdue:
                self.overdue_count -= 1
            elif loan.overdue and not was_overdue:
                self.overdue_count += 1

        self._check_invariant()
        logger.info(
            "Borrower %s moved from %s to %s", self.key, old_category.name, new_category.name
        )

    def change_discount_code(self, discount_code: int) -> None:
        if not self.category.requires_discount_code:
            raise InvalidOperation(
                f"Category {self.category.name} does not use a discount code"
            )
        self.discount_code = discount_code

    def restore_counters(self, active: int, overdue: int, lifetime: int) -> None:
        """Reinstate counters read back from a snapshot (loans must be attached first)."""
        self.active_count = active
        self.overdue_count = overdue
        self.lifetime_loans = lifetime
        self._check_invariant()
