"""Genre and shelf location records.

Both are plain, name-keyed data with no lifecycle of their own; the
registry enforces uniqueness and blocks removal while referenced.
"""

from dataclasses import dataclass, field


@dataclass
class Genre:
    """Genre of an item, counting loans of items in that genre."""

    name: str
    loan_count: int = field(default=0, compare=False)

    def record_loan(self) -> None:
        """Count one more loan of an item of this genre."""
        self.loan_count += 1

    def cancel_loan(self) -> None:
        self.loan_count -= 1

    def rename(self, new_name: str) -> None:
        self.name = new_name

    def __str__(self) -> str:
        return self.name


@dataclass
class Location:
    """Place in the building where an item is shelved."""

    room: str
    shelf: str

    def move(self, room: str, shelf: str) -> None:
        self.room = room
        self.shelf = shelf

    def __str__(self) -> str:
        return f"{self.room}/{self.shelf}"
