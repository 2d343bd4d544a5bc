"""Pytest configuration and shared fixtures.

This module provides fixtures for testing the medialend registry,
including a simulated clock, a stocked registry and an in-memory database.
"""

from datetime import date

import pytest

from medialend.borrowers.schemas import BorrowerCreate, CategoryCreate
from medialend.catalog.models import Genre, Location
from medialend.clock import SimulatedClock
from medialend.db.sqlite import Database
from medialend.items.models import ItemKind
from medialend.items.schemas import ItemCreate
from medialend.registry.manager import LendingRegistry

START_DAY = date(2025, 3, 3)
LEGAL_NOTICE = "Private family viewing only"


# ============================================================================
# Clock and Database Fixtures
# ============================================================================


@pytest.fixture
def clock() -> SimulatedClock:
    """Create a clock pinned to a known Monday."""
    return SimulatedClock(START_DAY)


@pytest.fixture
def db() -> Database:
    """Create an in-memory database for testing."""
    database = Database(":memory:")
    database.create_tables()
    return database


# ============================================================================
# Entity Fixtures
# ============================================================================


@pytest.fixture
def genre() -> Genre:
    return Genre("Fiction")


@pytest.fixture
def location() -> Location:
    return Location("Main", "A1")


# ============================================================================
# Registry Fixtures
# ============================================================================


def video_data(code: str, title: str = "A Film") -> ItemCreate:
    """Item creation data for a video in the stocked registry."""
    return ItemCreate(
        kind=ItemKind.VIDEO,
        code=code,
        title=title,
        author="Director",
        year="1999",
        genre="Fiction",
        room="Main",
        shelf="A1",
        film_minutes=120,
        legal_notice=LEGAL_NOTICE,
    )


@pytest.fixture
def registry(clock: SimulatedClock) -> LendingRegistry:
    """Create an empty registry driven by the simulated clock."""
    return LendingRegistry(name="test library", clock=clock)


@pytest.fixture
def stocked_registry(registry: LendingRegistry) -> LendingRegistry:
    """Create a registry with one category, one borrower and lendable items.

    - category TarifNormal: 2 loans max, multipliers 1.0
    - borrower Dupont Jean in TarifNormal
    - videos V1, V2, V3, a book B1 and an audio A1, all lendable
    """
    registry.add_genre("Fiction")
    registry.add_location("Main", "A1")
    registry.add_category(
        CategoryCreate(
            name="TarifNormal",
            max_loans=2,
            annual_fee=30.0,
            duration_multiplier=1.0,
            fee_multiplier=1.0,
        )
    )
    registry.register_borrower(
        BorrowerCreate(last_name="Dupont", first_name="Jean", address="1 rue Haute", category="TarifNormal")
    )

    for code in ("V1", "V2", "V3"):
        registry.add_item(video_data(code, title=f"Film {code}"))
    registry.add_item(
        ItemCreate(
            kind=ItemKind.BOOK,
            code="B1",
            title="A Novel",
            author="Writer",
            year="2001",
            genre="Fiction",
            room="Main",
            shelf="A1",
            page_count=320,
        )
    )
    registry.add_item(
        ItemCreate(
            kind=ItemKind.AUDIO,
            code="A1",
            title="An Album",
            author="Band",
            year="2010",
            genre="Fiction",
            room="Main",
            shelf="A1",
            classification="Rock",
        )
    )
    for code in ("V1", "V2", "V3", "B1", "A1"):
        registry.make_lendable(code)
    return registry


@pytest.fixture
def make_video():
    """Factory for video creation data."""
    return video_data
