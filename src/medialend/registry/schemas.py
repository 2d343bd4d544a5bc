"""Pydantic schemas for registry snapshots and statistics.

A snapshot holds everything needed to rebuild a registry: catalogs,
counters and active loans. Its storage format is up to the persistence
layer (SQLite tables or a JSON file).
"""

from datetime import date
from typing import Optional

from pydantic import BaseModel, Field

from ..items.models import ItemKind

SNAPSHOT_VERSION = "1.0"


class GenreState(BaseModel):
    name: str
    loan_count: int = 0


class LocationState(BaseModel):
    room: str
    shelf: str


class CategoryState(BaseModel):
    name: str
    max_loans: int
    annual_fee: float
    duration_multiplier: float
    fee_multiplier: float
    requires_discount_code: bool = False


class ItemState(BaseModel):
    kind: ItemKind
    code: str
    title: str
    author: str
    year: str
    genre: str
    room: str
    shelf: str
    lendable: bool = False
    on_loan: bool = False
    loan_count: int = 0

    # Kind-specific
    page_count: Optional[int] = None
    classification: Optional[str] = None
    film_minutes: Optional[int] = None
    legal_notice: Optional[str] = None


class BorrowerState(BaseModel):
    last_name: str
    first_name: str
    address: str
    category: str
    discount_code: Optional[int] = None
    enrolled_on: date
    renewal_on: date
    active_count: int = 0
    overdue_count: int = 0
    lifetime_loans: int = 0


class LoanRecordState(BaseModel):
    item_code: str
    last_name: str
    first_name: str
    loan_date: date
    due_date: date
    overdue: bool = False
    reminder_date: Optional[date] = None


class RegistrySnapshot(BaseModel):
    """Full state of a lending registry."""

    version: str = SNAPSHOT_VERSION
    name: str
    genres: list[GenreState] = Field(default_factory=list)
    locations: list[LocationState] = Field(default_factory=list)
    categories: list[CategoryState] = Field(default_factory=list)
    items: list[ItemState] = Field(default_factory=list)
    borrowers: list[BorrowerState] = Field(default_factory=list)
    loans: list[LoanRecordState] = Field(default_factory=list)

    # Lifetime counters
    total_loans: int = 0
    loans_by_kind: dict[ItemKind, int] = Field(default_factory=dict)


class RegistryStats(BaseModel):
    """Overall lending statistics."""

    total_loans: int
    loans_by_kind: dict[ItemKind, int]
    loans_by_genre: dict[str, int]
    active_loans: int
    overdue_loans: int
    total_items: int
    lendable_items: int
    total_borrowers: int
    total_categories: int
    total_genres: int
    total_locations: int
