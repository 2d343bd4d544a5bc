"""Loan records.

A loan binds one borrower to one item for a bounded period:

    ON_TIME --(first reminder)--> OVERDUE --(return)--> closed
    ON_TIME --(return)--> closed

Closing a loan is the destruction of the record by the registry.
"""

import logging
from dataclasses import dataclass
from datetime import date
from enum import Enum
from typing import Optional

from ..borrowers.models import Borrower
from ..clock import days_between
from ..errors import InvalidOperation, InvariantBroken, LendingError
from ..items.models import LendableItem

logger = logging.getLogger(__name__)


class LoanState(str, Enum):
    """State of an active loan."""

    ON_TIME = "on_time"
    OVERDUE = "overdue"


@dataclass(eq=False)
class LoanRecord:
    """Active loan of one item by one borrower."""

    borrower: Borrower
    item: LendableItem
    loan_date: date
    due_date: date
    overdue: bool = False
    reminder_date: Optional[date] = None

    def __repr__(self) -> str:
        return (
            f"<LoanRecord(item={self.item.code}, borrower={self.borrower.key}, "
            f"due={self.due_date}, overdue={self.overdue})>"
        )

    def __str__(self) -> str:
        text = f'"{self.item.code}" by {self.borrower.key} on {self.loan_date} due {self.due_date}'
        if self.overdue:
            text += " (overdue)"
        return text

    # -------------------------------------------------------------------------
    # Creation
    # -------------------------------------------------------------------------

    @classmethod
    def open(cls, borrower: Borrower, item: LendableItem, today: date) -> "LoanRecord":
        """Open a loan: the item is lent first, then the borrower records it.

        Every precondition is checked before either side is touched. If the
        borrower side still fails, the item side is rolled back.
        """
        if not item.lendable:
            raise InvalidOperation(f"Item {item.code} is not lendable")
        if item.on_loan:
            raise InvalidOperation(f"Item {item.code} is already on loan")
        if not borrower.may_borrow():
            raise InvalidOperation(f"Borrower {borrower.key} is not allowed to borrow")

        loan = cls(
            borrower=borrower,
            item=item,
            loan_date=today,
            due_date=borrower.due_date_for(today, item.nominal_duration()),
        )

        item.lend()
        try:
            borrower.record_new_loan(loan)
        except LendingError:
            item.cancel_lend()
            raise

        logger.info(
            "Loan of %s to %s until %s, fee %.2f",
            item.code,
            borrower.key,
            loan.due_date,
            loan.fee,
        )
        return loan

    # -------------------------------------------------------------------------
    # Derived values
    # -------------------------------------------------------------------------

    @property
    def state(self) -> LoanState:
        return LoanState.OVERDUE if self.overdue else LoanState.ON_TIME

    @property
    def fee(self) -> float:
        """Fee for this loan, computed from the item and the borrower's category."""
        return self.borrower.fee_for(self.item.nominal_fee())

    @property
    def duration_days(self) -> int:
        """Days between loan date and due date."""
        return days_between(self.loan_date, self.due_date)

    def matches(self, borrower: Borrower, item: LendableItem) -> bool:
        """True if this record binds exactly this borrower and this item."""
        return self.borrower == borrower and self.item == item

    def days_overdue(self, today: date) -> int:
        return max(0, days_between(self.due_date, today))

    # -------------------------------------------------------------------------
    # Overdue handling
    # -------------------------------------------------------------------------

    def check_overdue(self, today: date) -> bool:
        """True if the loan is detected overdue for the first time.

        Does not change any state.
        """
        if self.overdue:
            return False
        return self.due_date < today

    def mark_first_reminder(self, today: date) -> bool:
        """Flag the loan overdue and mark the borrower, only once.

        Returns:
            The overdue flag
        """
        if not self.overdue:
            self.borrower.mark_overdue()
            self.overdue = True
            self.reminder_date = today
            logger.info(
                "First reminder: %s is overdue for %s since %s",
                self.item.code,
                self.borrower.key,
                self.due_date,
            )
        return self.overdue

    def escalate(self, today: date, interval_days: int) -> bool:
        """Re-notify an overdue borrower once ``interval_days`` have passed.

        Returns:
            True if the reminder date moved to ``today``
        """
        if not self.overdue or self.reminder_date is None:
            return False
        if days_between(self.reminder_date, today) >= interval_days:
            self.reminder_date = today
            logger.info("Reminder re-sent to %s for %s", self.borrower.key, self.item.code)
            return True
        return False

    def reevaluate_for_category_change(self, today: date) -> bool:
        """Recompute the due date under the borrower's current category.

        The overdue flag is cleared, the due date recomputed, then the
        overdue check re-run. The caller adjusts the borrower's counter.

        Returns:
            Whether the loan was overdue before the recomputation
        """
        was_overdue = self.overdue
        self.overdue = False
        self.due_date = self.borrower.due_date_for(self.loan_date, self.item.nominal_duration())
        if self.check_overdue(today):
            self.overdue = True
            if not was_overdue or self.reminder_date is None:
                self.reminder_date = today
        else:
            self.reminder_date = None
        return was_overdue

    # -------------------------------------------------------------------------
    # Closing
    # -------------------------------------------------------------------------

    def close(self) -> None:
        """Return the item: borrower side first, then the item side."""
        self.borrower.record_return(self)
        try:
            self.item.return_item()
        except InvalidOperation as exc:
            raise InvariantBroken(
                f"Borrower {self.borrower.key} released {self.item.code} "
                f"but the item could not be returned: {exc}"
            ) from exc
        logger.info("Loan of %s by %s closed", self.item.code, self.borrower.key)
