"""Lending registry - the aggregate owning every catalog.

External callers only talk to the registry. Each composite operation
first resolves and checks everything it needs (pure reads), then mutates
entities in a fixed order:

- borrow: item lent, then borrower charged, then the loan is recorded
- return: borrower released, then item returned, then the loan is dropped
"""

import logging
from collections import Counter
from contextlib import contextmanager
from typing import Generator, Optional

from ..borrowers.models import Borrower, BorrowerCategory, BorrowerKey, check_discount_code
from ..borrowers.schemas import (
    BorrowerCreate,
    BorrowerSummary,
    BorrowerUpdate,
    CategoryCreate,
    CategoryUpdate,
)
from ..catalog.models import Genre, Location
from ..clock import Clock, SystemClock
from ..config import DEFAULT_ESCALATION_DAYS, DEFAULT_MEMBERSHIP_DAYS
from ..errors import InvalidOperation, InvariantBroken
from ..items.models import ITEM_TYPES, Audio, Book, ItemKind, LendableItem, Video
from ..items.schemas import ItemCreate, ItemSummary
from ..loans.models import LoanRecord
from ..loans.schemas import LoanSummary, OverdueReport, SweepReport
from .schemas import (
    BorrowerState,
    CategoryState,
    GenreState,
    ItemState,
    LoanRecordState,
    LocationState,
    RegistrySnapshot,
    RegistryStats,
)

logger = logging.getLogger(__name__)


class LendingRegistry:
    """Coordinates genres, locations, categories, items, borrowers and loans."""

    def __init__(
        self,
        name: str = "mediatheque",
        clock: Optional[Clock] = None,
        escalation_days: int = DEFAULT_ESCALATION_DAYS,
        membership_days: int = DEFAULT_MEMBERSHIP_DAYS,
    ):
        """Initialize an empty registry.

        Args:
            name: Name of the library
            clock: Date provider (system date by default)
            escalation_days: Days between two reminders of an overdue loan
            membership_days: Days between enrollment and renewal
        """
        if escalation_days <= 0:
            raise InvalidOperation(f"escalation_days must be positive, got {escalation_days}")
        self.name = name
        self.clock = clock or SystemClock()
        self.escalation_days = escalation_days
        self.membership_days = membership_days

        self._genres: list[Genre] = []
        self._locations: list[Location] = []
        self._categories: list[BorrowerCategory] = []
        self._items: dict[str, LendableItem] = {}
        self._borrowers: dict[BorrowerKey, Borrower] = {}
        self._loans: list[LoanRecord] = []

        self._total_loans = 0
        self._loans_by_kind: Counter[ItemKind] = Counter()

    @contextmanager
    def _operation(self, name: str) -> Generator[None, None, None]:
        """Prefix errors raised during a composite operation with its name."""
        try:
            yield
        except InvalidOperation as exc:
            raise InvalidOperation(f"{name}: {exc}", operation=name) from exc
        except InvariantBroken as exc:
            logger.error("Invariant broken during %s: %s", name, exc)
            raise InvariantBroken(f"{name}: {exc}") from exc

    # -------------------------------------------------------------------------
    # Genres
    # -------------------------------------------------------------------------

    def find_genre(self, name: str) -> Optional[Genre]:
        for genre in self._genres:
            if genre.name == name:
                return genre
        return None

    def add_genre(self, name: str) -> Genre:
        with self._operation("add genre"):
            if not name:
                raise InvalidOperation("Genre name must not be empty")
            if self.find_genre(name):
                raise InvalidOperation(f"Genre {name} already exists")
            genre = Genre(name)
            self._genres.append(genre)
            return genre

    def rename_genre(self, old_name: str, new_name: str) -> Genre:
        with self._operation("rename genre"):
            genre = self._require_genre(old_name)
            if not new_name:
                raise InvalidOperation("Genre name must not be empty")
            if new_name != old_name and self.find_genre(new_name):
                raise InvalidOperation(f"Genre {new_name} already exists")
            genre.rename(new_name)
            return genre

    def remove_genre(self, name: str) -> None:
        with self._operation("remove genre"):
            genre = self._require_genre(name)
            if any(item.genre is genre for item in self._items.values()):
                raise InvalidOperation(f"Genre {name} is used by at least one item")
            self._genres.remove(genre)

    def list_genres(self) -> list[Genre]:
        return list(self._genres)

    def genre_count(self) -> int:
        return len(self._genres)

    def genre_at(self, index: int) -> Genre:
        return self._genres[index]

    def _require_genre(self, name: str) -> Genre:
        genre = self.find_genre(name)
        if genre is None:
            raise InvalidOperation(f"Genre {name} not found")
        return genre

    # -------------------------------------------------------------------------
    # Locations
    # -------------------------------------------------------------------------

    def find_location(self, room: str, shelf: str) -> Optional[Location]:
        for location in self._locations:
            if location.room == room and location.shelf == shelf:
                return location
        return None

    def add_location(self, room: str, shelf: str) -> Location:
        with self._operation("add location"):
            if not room or not shelf:
                raise InvalidOperation("Location needs a room and a shelf")
            if self.find_location(room, shelf):
                raise InvalidOperation(f"Location {room}/{shelf} already exists")
            location = Location(room, shelf)
            self._locations.append(location)
            return location

    def move_location(self, room: str, shelf: str, new_room: str, new_shelf: str) -> Location:
        with self._operation("move location"):
            location = self._require_location(room, shelf)
            if not new_room or not new_shelf:
                raise InvalidOperation("Location needs a room and a shelf")
            if (new_room, new_shelf) != (room, shelf) and self.find_location(new_room, new_shelf):
                raise InvalidOperation(f"Location {new_room}/{new_shelf} already exists")
            location.move(new_room, new_shelf)
            return location

    def remove_location(self, room: str, shelf: str) -> None:
        with self._operation("remove location"):
            location = self._require_location(room, shelf)
            if any(item.location is location for item in self._items.values()):
                raise InvalidOperation(f"Location {location} holds at least one item")
            self._locations.remove(location)

    def list_locations(self) -> list[Location]:
        return list(self._locations)

    def location_count(self) -> int:
        return len(self._locations)

    def location_at(self, index: int) -> Location:
        return self._locations[index]

    def _require_location(self, room: str, shelf: str) -> Location:
        location = self.find_location(room, shelf)
        if location is None:
            raise InvalidOperation(f"Location {room}/{shelf} not found")
        return location

    # -------------------------------------------------------------------------
    # Borrower categories
    # -------------------------------------------------------------------------

    def find_category(self, name: str) -> Optional[BorrowerCategory]:
        for category in self._categories:
            if category.name == name:
                return category
        return None

    def add_category(self, data: CategoryCreate) -> BorrowerCategory:
        with self._operation("add category"):
            if self.find_category(data.name):
                raise InvalidOperation(f"Category {data.name} already exists")
            category = BorrowerCategory(**data.model_dump())
            self._categories.append(category)
            return category

    def modify_category(self, name: str, data: CategoryUpdate) -> BorrowerCategory:
        """Change policy values of a category.

        Due dates of loans already open are kept; they only move when a
        borrower changes category.
        """
        with self._operation("modify category"):
            category = self._require_category(name)
            changes = data.model_dump(exclude_unset=True, exclude_none=True)
            members = [b for b in self._borrowers.values() if b.category is category]

            new_name = changes.get("name", name)
            if new_name != name and self.find_category(new_name):
                raise InvalidOperation(f"Category {new_name} already exists")
            new_max = changes.get("max_loans", category.max_loans)
            crowded = [b for b in members if b.active_count > new_max]
            if crowded:
                raise InvalidOperation(
                    f"{len(crowded)} borrower(s) of {name} hold more than {new_max} loans"
                )
            requires = changes.get("requires_discount_code", category.requires_discount_code)
            if requires != category.requires_discount_code and members:
                raise InvalidOperation(
                    f"Cannot toggle the discount code of {name} while it has members"
                )

            for field_name, value in changes.items():
                setattr(category, field_name, value)
            return category

    def remove_category(self, name: str) -> None:
        with self._operation("remove category"):
            category = self._require_category(name)
            if any(b.category is category for b in self._borrowers.values()):
                raise InvalidOperation(f"Category {name} still has borrowers")
            self._categories.remove(category)

    def list_categories(self) -> list[BorrowerCategory]:
        return list(self._categories)

    def category_count(self) -> int:
        return len(self._categories)

    def category_at(self, index: int) -> BorrowerCategory:
        return self._categories[index]

    def _require_category(self, name: str) -> BorrowerCategory:
        category = self.find_category(name)
        if category is None:
            raise InvalidOperation(f"Category {name} not found")
        return category

    # -------------------------------------------------------------------------
    # Items
    # -------------------------------------------------------------------------

    def find_item(self, code: str) -> Optional[LendableItem]:
        return self._items.get(code)

    def add_item(self, data: ItemCreate) -> LendableItem:
        """Add a new, not yet lendable, item to the catalog."""
        with self._operation("add item"):
            if data.code in self._items:
                raise InvalidOperation(f"Item {data.code} already exists")
            genre = self._require_genre(data.genre)
            location = self._require_location(data.room, data.shelf)
            item = self._build_item(data.kind, data.model_dump(), genre, location)
            self._items[item.code] = item
            return item

    @staticmethod
    def _build_item(kind: ItemKind, values: dict, genre: Genre, location: Location) -> LendableItem:
        common = dict(
            code=values["code"],
            title=values["title"],
            author=values["author"],
            year=values["year"],
            genre=genre,
            location=location,
        )
        item_cls = ITEM_TYPES[kind]
        if item_cls is Book:
            return Book(**common, page_count=values.get("page_count") or 0)
        if item_cls is Audio:
            return Audio(**common, classification=values.get("classification") or "")
        return Video(
            **common,
            film_minutes=values.get("film_minutes") or 0,
            legal_notice=values.get("legal_notice") or "",
        )

    def remove_item(self, code: str) -> None:
        with self._operation("remove item"):
            item = self._require_item(code)
            if item.on_loan:
                raise InvalidOperation(f"Item {code} is on loan")
            del self._items[code]

    def make_lendable(self, code: str) -> LendableItem:
        with self._operation("make lendable"):
            item = self._require_item(code)
            item.make_lendable()
            return item

    def make_consultable(self, code: str) -> LendableItem:
        with self._operation("make consultable"):
            item = self._require_item(code)
            item.make_consultable_only()
            return item

    def list_items(self) -> list[LendableItem]:
        return list(self._items.values())

    def item_count(self) -> int:
        return len(self._items)

    def item_at(self, index: int) -> LendableItem:
        return self.list_items()[index]

    def _require_item(self, code: str) -> LendableItem:
        item = self._items.get(code)
        if item is None:
            raise InvalidOperation(f"Item {code} not found")
        return item

    # -------------------------------------------------------------------------
    # Borrowers
    # -------------------------------------------------------------------------

    def find_borrower(self, last_name: str, first_name: str) -> Optional[Borrower]:
        return self._borrowers.get(BorrowerKey(last_name, first_name))

    def register_borrower(self, data: BorrowerCreate) -> float:
        """Enroll a borrower.

        Returns:
            Annual fee due for the borrower's category
        """
        with self._operation("register borrower"):
            key = BorrowerKey(data.last_name, data.first_name)
            if key in self._borrowers:
                raise InvalidOperation(f"Borrower {key} already registered")
            category = self._require_category(data.category)
            check_discount_code(category, data.discount_code)

            today = self.clock.today()
            borrower = Borrower(
                last_name=data.last_name,
                first_name=data.first_name,
                address=data.address,
                category=category,
                enrolled_on=today,
                renewal_on=self.clock.add_days(today, self.membership_days),
                discount_code=data.discount_code,
            )
            self._borrowers[key] = borrower
            logger.info("Borrower %s registered in %s", key, category.name)
            return category.annual_fee

    def cancel_membership(self, last_name: str, first_name: str) -> int:
        """Remove a borrower who holds no loan.

        Returns:
            Lifetime number of loans of that borrower
        """
        with self._operation("cancel membership"):
            borrower = self._require_borrower(last_name, first_name)
            if borrower.has_active_loans():
                raise InvalidOperation(f"Borrower {borrower.key} has not returned every item")
            del self._borrowers[borrower.key]
            logger.info(
                "Borrower %s left after %d loans", borrower.key, borrower.lifetime_loans
            )
            return borrower.lifetime_loans

    def update_borrower(self, last_name: str, first_name: str, data: BorrowerUpdate) -> Borrower:
        """Change address or name; a new name re-keys the borrower."""
        with self._operation("update borrower"):
            borrower = self._require_borrower(last_name, first_name)
            old_key = borrower.key
            new_key = BorrowerKey(
                data.last_name or borrower.last_name,
                data.first_name or borrower.first_name,
            )
            if new_key != old_key and new_key in self._borrowers:
                raise InvalidOperation(f"Borrower {new_key} already registered")

            if data.address is not None:
                borrower.address = data.address
            if new_key != old_key:
                borrower.last_name, borrower.first_name = new_key
                del self._borrowers[old_key]
                self._borrowers[new_key] = borrower
            return borrower

    def change_borrower_category(
        self,
        last_name: str,
        first_name: str,
        category_name: str,
        discount_code: Optional[int] = None,
    ) -> Borrower:
        """Move a borrower to another category and re-evaluate their loans."""
        with self._operation("change category"):
            borrower = self._require_borrower(last_name, first_name)
            category = self._require_category(category_name)
            borrower.change_category(category, discount_code, self.clock.today())
            return borrower

    def change_discount_code(self, last_name: str, first_name: str, discount_code: int) -> Borrower:
        with self._operation("change discount code"):
            borrower = self._require_borrower(last_name, first_name)
            borrower.change_discount_code(discount_code)
            return borrower

    def list_borrowers(self) -> list[Borrower]:
        return list(self._borrowers.values())

    def borrower_count(self) -> int:
        return len(self._borrowers)

    def borrower_at(self, index: int) -> Borrower:
        return self.list_borrowers()[index]

    def _require_borrower(self, last_name: str, first_name: str) -> Borrower:
        borrower = self.find_borrower(last_name, first_name)
        if borrower is None:
            raise InvalidOperation(f"Borrower {last_name} {first_name} not found")
        return borrower

    # -------------------------------------------------------------------------
    # Loans
    # -------------------------------------------------------------------------

    def borrow(self, last_name: str, first_name: str, code: str) -> LoanRecord:
        """Lend an item to a borrower."""
        with self._operation("borrow"):
            borrower = self._require_borrower(last_name, first_name)
            item = self._require_item(code)
            if not borrower.may_borrow():
                raise InvalidOperation(f"Borrower {borrower.key} is not allowed to borrow")
            if not item.lendable:
                raise InvalidOperation(f"Item {code} is not lendable")
            if item.on_loan:
                raise InvalidOperation(f"Item {code} is already on loan")

            loan = LoanRecord.open(borrower, item, self.clock.today())
            self._loans.append(loan)
            self._total_loans += 1
            self._loans_by_kind[item.kind] += 1
            return loan

    def return_item(self, last_name: str, first_name: str, code: str) -> LoanRecord:
        """Take back an item from a borrower and close the loan."""
        with self._operation("return"):
            borrower = self._require_borrower(last_name, first_name)
            item = self._require_item(code)
            loan = self._find_loan(borrower, item)
            if loan is None:
                raise InvalidOperation(f"No loan of {code} by {borrower.key}")
            loan.close()
            self._loans.remove(loan)
            return loan

    def daily_sweep(self) -> SweepReport:
        """Detect newly overdue loans and re-escalate old ones."""
        today = self.clock.today()
        report = SweepReport(day=today)
        with self._operation("daily sweep"):
            for loan in list(self._loans):
                report.checked += 1
                if loan.overdue:
                    if loan.escalate(today, self.escalation_days):
                        report.escalated.append(loan.item.code)
                elif loan.check_overdue(today):
                    loan.mark_first_reminder(today)
                    report.newly_overdue.append(loan.item.code)
        logger.debug(
            "Sweep %s: %d checked, %d newly overdue, %d escalated",
            today,
            report.checked,
            len(report.newly_overdue),
            len(report.escalated),
        )
        return report

    def find_loan(self, last_name: str, first_name: str, code: str) -> Optional[LoanRecord]:
        borrower = self.find_borrower(last_name, first_name)
        item = self.find_item(code)
        if borrower is None or item is None:
            return None
        return self._find_loan(borrower, item)

    def _find_loan(self, borrower: Borrower, item: LendableItem) -> Optional[LoanRecord]:
        for loan in self._loans:
            if loan.matches(borrower, item):
                return loan
        return None

    def list_loans(self) -> list[LoanRecord]:
        return list(self._loans)

    def loan_count(self) -> int:
        return len(self._loans)

    def loan_at(self, index: int) -> LoanRecord:
        return self._loans[index]

    def active_loans_for(self, last_name: str, first_name: str) -> list[LoanRecord]:
        borrower = self._require_borrower(last_name, first_name)
        return list(borrower.loans)

    def overdue_loans(self) -> list[LoanRecord]:
        return [loan for loan in self._loans if loan.overdue]

    # -------------------------------------------------------------------------
    # Statistics and Reports
    # -------------------------------------------------------------------------

    @property
    def total_loans(self) -> int:
        return self._total_loans

    def loans_by_kind(self) -> dict[ItemKind, int]:
        return {kind: self._loans_by_kind.get(kind, 0) for kind in ItemKind}

    def stats(self) -> RegistryStats:
        return RegistryStats(
            total_loans=self._total_loans,
            loans_by_kind=self.loans_by_kind(),
            loans_by_genre={genre.name: genre.loan_count for genre in self._genres},
            active_loans=len(self._loans),
            overdue_loans=len(self.overdue_loans()),
            total_items=len(self._items),
            lendable_items=sum(1 for item in self._items.values() if item.lendable),
            total_borrowers=len(self._borrowers),
            total_categories=len(self._categories),
            total_genres=len(self._genres),
            total_locations=len(self._locations),
        )

    def summarize_item(self, item: LendableItem) -> ItemSummary:
        return ItemSummary(
            code=item.code,
            kind=item.kind,
            title=item.title,
            author=item.author,
            year=item.year,
            genre=item.genre.name,
            location=str(item.location),
            lendable=item.lendable,
            on_loan=item.on_loan,
            loan_count=item.loan_count,
            loan_days=item.nominal_duration(),
            fee=item.nominal_fee(),
        )

    def summarize_borrower(self, borrower: Borrower) -> BorrowerSummary:
        return BorrowerSummary(
            last_name=borrower.last_name,
            first_name=borrower.first_name,
            address=borrower.address,
            category=borrower.category.name,
            discount_code=borrower.discount_code,
            enrolled_on=borrower.enrolled_on,
            renewal_on=borrower.renewal_on,
            active_count=borrower.active_count,
            overdue_count=borrower.overdue_count,
            lifetime_loans=borrower.lifetime_loans,
            may_borrow=borrower.may_borrow(),
        )

    def summarize_loan(self, loan: LoanRecord) -> LoanSummary:
        return LoanSummary(
            item_code=loan.item.code,
            item_title=loan.item.title,
            item_kind=loan.item.kind,
            last_name=loan.borrower.last_name,
            first_name=loan.borrower.first_name,
            loan_date=loan.loan_date,
            due_date=loan.due_date,
            state=loan.state,
            reminder_date=loan.reminder_date,
            fee=loan.fee,
            days_overdue=loan.days_overdue(self.clock.today()),
        )

    def overdue_report(self) -> OverdueReport:
        summaries = [self.summarize_loan(loan) for loan in self.overdue_loans()]
        return OverdueReport(
            loans=summaries,
            total_overdue=len(summaries),
            oldest_overdue_days=max((s.days_overdue for s in summaries), default=0),
        )

    # -------------------------------------------------------------------------
    # Consistency
    # -------------------------------------------------------------------------

    def verify(self) -> None:
        """Check every cross-entity invariant of the registry.

        Raises:
            InvariantBroken: on the first inconsistency found
        """
        for item in self._items.values():
            if not item.invariant():
                raise InvariantBroken(f"Item {item.code} breaks its invariant")
            if item.genre not in self._genres or item.location not in self._locations:
                raise InvariantBroken(f"Item {item.code} refers to an unknown genre or location")

        for borrower in self._borrowers.values():
            if not borrower.invariant():
                raise InvariantBroken(f"Borrower {borrower.key} breaks its invariant")
            if borrower.category not in self._categories:
                raise InvariantBroken(f"Borrower {borrower.key} has an unknown category")
            if borrower.overdue_count != sum(1 for loan in borrower.loans if loan.overdue):
                raise InvariantBroken(f"Borrower {borrower.key} overdue count is out of sync")

        loaned_codes = Counter(loan.item.code for loan in self._loans)
        for loan in self._loans:
            if self._items.get(loan.item.code) is not loan.item:
                raise InvariantBroken(f"Loan {loan!r} refers to an unknown item")
            if self._borrowers.get(loan.borrower.key) is not loan.borrower:
                raise InvariantBroken(f"Loan {loan!r} refers to an unknown borrower")
            if not loan.item.on_loan:
                raise InvariantBroken(f"Loan {loan!r} refers to an item not on loan")
            holders = [b for b in self._borrowers.values() if any(l is loan for l in b.loans)]
            if len(holders) != 1:
                raise InvariantBroken(f"Loan {loan!r} is held by {len(holders)} borrowers")

        for item in self._items.values():
            if item.on_loan and loaned_codes[item.code] != 1:
                raise InvariantBroken(
                    f"Item {item.code} is on loan with {loaned_codes[item.code]} loan records"
                )

    # -------------------------------------------------------------------------
    # Snapshots
    # -------------------------------------------------------------------------

    def to_snapshot(self) -> RegistrySnapshot:
        """Capture the whole registry state."""
        return RegistrySnapshot(
            name=self.name,
            genres=[GenreState(name=g.name, loan_count=g.loan_count) for g in self._genres],
            locations=[LocationState(room=l.room, shelf=l.shelf) for l in self._locations],
            categories=[
                CategoryState(
                    name=c.name,
                    max_loans=c.max_loans,
                    annual_fee=c.annual_fee,
                    duration_multiplier=c.duration_multiplier,
                    fee_multiplier=c.fee_multiplier,
                    requires_discount_code=c.requires_discount_code,
                )
                for c in self._categories
            ],
            items=[
                ItemState(
                    kind=item.kind,
                    code=item.code,
                    title=item.title,
                    author=item.author,
                    year=item.year,
                    genre=item.genre.name,
                    room=item.location.room,
                    shelf=item.location.shelf,
                    lendable=item.lendable,
                    on_loan=item.on_loan,
                    loan_count=item.loan_count,
                    **item.details(),
                )
                for item in self._items.values()
            ],
            borrowers=[
                BorrowerState(
                    last_name=b.last_name,
                    first_name=b.first_name,
                    address=b.address,
                    category=b.category.name,
                    discount_code=b.discount_code,
                    enrolled_on=b.enrolled_on,
                    renewal_on=b.renewal_on,
                    active_count=b.active_count,
                    overdue_count=b.overdue_count,
                    lifetime_loans=b.lifetime_loans,
                )
                for b in self._borrowers.values()
            ],
            loans=[
                LoanRecordState(
                    item_code=loan.item.code,
                    last_name=loan.borrower.last_name,
                    first_name=loan.borrower.first_name,
                    loan_date=loan.loan_date,
                    due_date=loan.due_date,
                    overdue=loan.overdue,
                    reminder_date=loan.reminder_date,
                )
                for loan in self._loans
            ],
            total_loans=self._total_loans,
            loans_by_kind=self.loans_by_kind(),
        )

    @classmethod
    def from_snapshot(
        cls,
        snapshot: RegistrySnapshot,
        clock: Optional[Clock] = None,
        escalation_days: int = DEFAULT_ESCALATION_DAYS,
        membership_days: int = DEFAULT_MEMBERSHIP_DAYS,
    ) -> "LendingRegistry":
        """Rebuild a registry from a snapshot and verify it.

        Raises:
            InvalidOperation: if the snapshot refers to missing entries
            InvariantBroken: if the rebuilt registry is inconsistent
        """
        registry = cls(
            name=snapshot.name,
            clock=clock,
            escalation_days=escalation_days,
            membership_days=membership_days,
        )
        with registry._operation("load snapshot"):
            for g in snapshot.genres:
                registry.add_genre(g.name).loan_count = g.loan_count
            for l in snapshot.locations:
                registry.add_location(l.room, l.shelf)
            for c in snapshot.categories:
                registry.add_category(CategoryCreate(**c.model_dump()))

            for state in snapshot.items:
                if state.code in registry._items:
                    raise InvalidOperation(f"Item {state.code} appears twice")
                item = cls._build_item(
                    state.kind,
                    state.model_dump(),
                    registry._require_genre(state.genre),
                    registry._require_location(state.room, state.shelf),
                )
                item.restore_state(state.lendable, state.on_loan, state.loan_count)
                registry._items[item.code] = item

            for state in snapshot.borrowers:
                key = BorrowerKey(state.last_name, state.first_name)
                if key in registry._borrowers:
                    raise InvalidOperation(f"Borrower {key} appears twice")
                registry._borrowers[key] = Borrower(
                    last_name=state.last_name,
                    first_name=state.first_name,
                    address=state.address,
                    category=registry._require_category(state.category),
                    enrolled_on=state.enrolled_on,
                    renewal_on=state.renewal_on,
                    discount_code=state.discount_code,
                )

            for state in snapshot.loans:
                borrower = registry._require_borrower(state.last_name, state.first_name)
                loan = LoanRecord(
                    borrower=borrower,
                    item=registry._require_item(state.item_code),
                    loan_date=state.loan_date,
                    due_date=state.due_date,
                    overdue=state.overdue,
                    reminder_date=state.reminder_date,
                )
                borrower.loans.append(loan)
                registry._loans.append(loan)

            for state in snapshot.borrowers:
                registry._borrowers[BorrowerKey(state.last_name, state.first_name)].restore_counters(
                    active=state.active_count,
                    overdue=state.overdue_count,
                    lifetime=state.lifetime_loans,
                )

            registry._total_loans = snapshot.total_loans
            registry._loans_by_kind = Counter(snapshot.loans_by_kind)
            registry.verify()

        logger.debug(
            "Loaded %s: %d items, %d borrowers, %d active loans",
            registry.name,
            len(registry._items),
            len(registry._borrowers),
            len(registry._loans),
        )
        return registry
