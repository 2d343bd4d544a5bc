"""Lendable item variants.

Items come in a closed set of kinds (book, audio, video). Each kind fixes
a nominal loan duration and a nominal fee and carries its own attributes.

Invariant (all kinds): an item on loan is lendable.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import ClassVar

from ..catalog.models import Genre, Location
from ..errors import InvalidOperation, InvariantBroken

logger = logging.getLogger(__name__)

DAYS_IN_WEEK = 7


class ItemKind(str, Enum):
    """Kind of lendable item."""

    BOOK = "book"
    AUDIO = "audio"
    VIDEO = "video"


@dataclass(frozen=True)
class KindPolicy:
    """Nominal lending terms for one kind of item."""

    loan_days: int
    fee: float


KIND_POLICIES: dict[ItemKind, KindPolicy] = {
    ItemKind.BOOK: KindPolicy(loan_days=6 * DAYS_IN_WEEK, fee=0.5),
    ItemKind.AUDIO: KindPolicy(loan_days=4 * DAYS_IN_WEEK, fee=1.0),
    ItemKind.VIDEO: KindPolicy(loan_days=2 * DAYS_IN_WEEK, fee=1.5),
}


@dataclass(eq=False)
class LendableItem:
    """One physical item of the library.

    Items are created consultable only (not lendable). Equality and
    hashing use the code alone.
    """

    kind: ClassVar[ItemKind]

    code: str
    title: str
    author: str
    year: str
    genre: Genre
    location: Location

    # Lending state
    lendable: bool = field(default=False, init=False)
    on_loan: bool = field(default=False, init=False)
    loan_count: int = field(default=0, init=False)

    def __post_init__(self) -> None:
        for name in ("code", "title", "author", "year"):
            if not getattr(self, name):
                raise InvalidOperation(f"{self.kind.value} {name} must not be empty")
        if self.genre is None or self.location is None:
            raise InvalidOperation(f"{self.kind.value} {self.code} needs a genre and a location")

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, LendableItem):
            return NotImplemented
        return self.code == other.code

    def __hash__(self) -> int:
        return hash(self.code)

    def __str__(self) -> str:
        return f'[{self.kind.value}] "{self.code}" {self.title} ({self.author}, {self.year})'

    # -------------------------------------------------------------------------
    # Lending terms
    # -------------------------------------------------------------------------

    def nominal_duration(self) -> int:
        """Nominal loan duration in days."""
        return KIND_POLICIES[self.kind].loan_days

    def nominal_fee(self) -> float:
        """Nominal loan fee before the borrower's category multiplier."""
        return KIND_POLICIES[self.kind].fee

    # -------------------------------------------------------------------------
    # Invariant
    # -------------------------------------------------------------------------

    def invariant(self) -> bool:
        """Safety property: on loan implies lendable."""
        return not (self.on_loan and not self.lendable) and self.loan_count >= 0

    def _check_invariant(self) -> None:
        if not self.invariant():
            raise InvariantBroken(
                f"Item {self.code}: on_loan={self.on_loan} lendable={self.lendable} "
                f"loan_count={self.loan_count}"
            )

    # -------------------------------------------------------------------------
    # Transitions
    # -------------------------------------------------------------------------

    def make_lendable(self) -> None:
        """Allow the item to be lent."""
        if self.lendable:
            raise InvalidOperation(f"Item {self.code} is already lendable")
        self.lendable = True
        self._check_invariant()

    def make_consultable_only(self) -> None:
        """Restrict the item to on-site consultation."""
        if not self.lendable:
            raise InvalidOperation(f"Item {self.code} is already consultable only")
        if self.on_loan:
            raise InvalidOperation(f"Item {self.code} is on loan")
        self.lendable = False
        self._check_invariant()

    def lend(self) -> bool:
        """Mark the item as lent and update loan counters.

        Returns:
            True once the item is on loan
        """
        if not self.lendable:
            raise InvalidOperation(f"Item {self.code} is not lendable")
        if self.on_loan:
            raise InvalidOperation(f"Item {self.code} is already on loan")
        self.on_loan = True
        self.loan_count += 1
        self.genre.record_loan()
        self._check_invariant()
        return True

    def cancel_lend(self) -> None:
        """Undo the last ``lend()`` when the borrower side refused the loan."""
        if not self.on_loan:
            raise InvariantBroken(f"Item {self.code}: cannot cancel a loan it does not have")
        self.on_loan = False
        self.loan_count -= 1
        self.genre.cancel_loan()
        self._check_invariant()

    def return_item(self) -> None:
        """Mark the item as back in the library."""
        if not self.lendable:
            raise InvalidOperation(f"Item {self.code} is not lendable, it cannot be returned")
        if not self.on_loan:
            raise InvalidOperation(f"Item {self.code} is not on loan")
        self.on_loan = False
        self._check_invariant()
        logger.info('Item "%s" ready to be reshelved at %s', self.title, self.location)

    def restore_state(self, lendable: bool, on_loan: bool, loan_count: int) -> None:
        """Reinstate lending state read back from a snapshot."""
        self.lendable = lendable
        self.on_loan = on_loan
        self.loan_count = loan_count
        self._check_invariant()

    def details(self) -> dict:
        """Kind-specific attributes."""
        return {}


@dataclass(eq=False)
class Book(LendableItem):
    """Printed book."""

    kind: ClassVar[ItemKind] = ItemKind.BOOK

    page_count: int = 0

    def __post_init__(self) -> None:
        super().__post_init__()
        if self.page_count <= 0:
            raise InvalidOperation(f"Book {self.code}: page count must be positive")

    def invariant(self) -> bool:
        return self.page_count > 0 and super().invariant()

    def details(self) -> dict:
        return {"page_count": self.page_count}


@dataclass(eq=False)
class Audio(LendableItem):
    """Audio recording."""

    kind: ClassVar[ItemKind] = ItemKind.AUDIO

    classification: str = ""

    def __post_init__(self) -> None:
        super().__post_init__()
        if not self.classification:
            raise InvalidOperation(f"Audio {self.code}: classification is required")

    def details(self) -> dict:
        return {"classification": self.classification}


@dataclass(eq=False)
class Video(LendableItem):
    """Film on physical media; every loan repeats its legal notice."""

    kind: ClassVar[ItemKind] = ItemKind.VIDEO

    film_minutes: int = 0
    legal_notice: str = ""

    def __post_init__(self) -> None:
        super().__post_init__()
        if self.film_minutes <= 0:
            raise InvalidOperation(f"Video {self.code}: film length must be positive")
        if not self.legal_notice:
            raise InvalidOperation(f"Video {self.code}: legal notice is required")

    def invariant(self) -> bool:
        return self.film_minutes > 0 and super().invariant()

    def lend(self) -> bool:
        super().lend()
        logger.warning("Legal notice for %s: %s", self.code, self.legal_notice)
        return True

    def details(self) -> dict:
        return {"film_minutes": self.film_minutes, "legal_notice": self.legal_notice}


ITEM_TYPES: dict[ItemKind, type[LendableItem]] = {
    ItemKind.BOOK: Book,
    ItemKind.AUDIO: Audio,
    ItemKind.VIDEO: Video,
}
