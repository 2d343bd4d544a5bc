"""SQLAlchemy ORM models for the local SQLite database.

Tables:
- genres, locations, borrower_categories: reference catalogs
- items: every item kind in one table, kind-specific columns nullable
- borrowers: enrolled members and their counters
- loan_records: active loans
- registry_meta: single row holding the registry name and lifetime counters
"""

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import Boolean, Float, Integer, String, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Base class for all ORM models."""

    pass


class GenreRow(Base):
    __tablename__ = "genres"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False, unique=True)
    loan_count: Mapped[int] = mapped_column(Integer, default=0)


class LocationRow(Base):
    __tablename__ = "locations"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    room: Mapped[str] = mapped_column(String(200), nullable=False)
    shelf: Mapped[str] = mapped_column(String(200), nullable=False)


class CategoryRow(Base):
    __tablename__ = "borrower_categories"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False, unique=True)
    max_loans: Mapped[int] = mapped_column(Integer, nullable=False)
    annual_fee: Mapped[float] = mapped_column(Float, default=0.0)
    duration_multiplier: Mapped[float] = mapped_column(Float, default=1.0)
    fee_multiplier: Mapped[float] = mapped_column(Float, default=1.0)
    requires_discount_code: Mapped[bool] = mapped_column(Boolean, default=False)


class ItemRow(Base):
    """Item model - one row per item, whatever its kind."""

    __tablename__ = "items"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    code: Mapped[str] = mapped_column(String(50), nullable=False, unique=True, index=True)
    kind: Mapped[str] = mapped_column(String(10), nullable=False, index=True)
    title: Mapped[str] = mapped_column(String(500), nullable=False)
    author: Mapped[str] = mapped_column(String(500), nullable=False)
    year: Mapped[str] = mapped_column(String(20), nullable=False)

    # References by natural key
    genre: Mapped[str] = mapped_column(String(200), nullable=False)
    room: Mapped[str] = mapped_column(String(200), nullable=False)
    shelf: Mapped[str] = mapped_column(String(200), nullable=False)

    # Lending state
    lendable: Mapped[bool] = mapped_column(Boolean, default=False)
    on_loan: Mapped[bool] = mapped_column(Boolean, default=False)
    loan_count: Mapped[int] = mapped_column(Integer, default=0)

    # Kind-specific
    page_count: Mapped[Optional[int]] = mapped_column(Integer)
    classification: Mapped[Optional[str]] = mapped_column(String(200))
    film_minutes: Mapped[Optional[int]] = mapped_column(Integer)
    legal_notice: Mapped[Optional[str]] = mapped_column(Text)

    def __repr__(self) -> str:
        return f"<ItemRow(code='{self.code}', kind='{self.kind}')>"


class BorrowerRow(Base):
    __tablename__ = "borrowers"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    last_name: Mapped[str] = mapped_column(String(200), nullable=False, index=True)
    first_name: Mapped[str] = mapped_column(String(200), nullable=False)
    address: Mapped[str] = mapped_column(String(500), default="")
    category: Mapped[str] = mapped_column(String(100), nullable=False)
    discount_code: Mapped[Optional[int]] = mapped_column(Integer)
    enrolled_on: Mapped[str] = mapped_column(String(10), nullable=False)  # ISO date
    renewal_on: Mapped[str] = mapped_column(String(10), nullable=False)

    # Counters
    active_count: Mapped[int] = mapped_column(Integer, default=0)
    overdue_count: Mapped[int] = mapped_column(Integer, default=0)
    lifetime_loans: Mapped[int] = mapped_column(Integer, default=0)

    def __repr__(self) -> str:
        return f"<BorrowerRow(last_name='{self.last_name}', first_name='{self.first_name}')>"


class LoanRecordRow(Base):
    __tablename__ = "loan_records"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    item_code: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    last_name: Mapped[str] = mapped_column(String(200), nullable=False)
    first_name: Mapped[str] = mapped_column(String(200), nullable=False)
    loan_date: Mapped[str] = mapped_column(String(10), nullable=False)  # ISO date
    due_date: Mapped[str] = mapped_column(String(10), nullable=False)
    overdue: Mapped[bool] = mapped_column(Boolean, default=False)
    reminder_date: Mapped[Optional[str]] = mapped_column(String(10))


class RegistryMetaRow(Base):
    __tablename__ = "registry_meta"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    version: Mapped[str] = mapped_column(String(10), nullable=False)
    total_loans: Mapped[int] = mapped_column(Integer, default=0)
    loans_by_kind: Mapped[str] = mapped_column(Text, default="{}")  # JSON object
    saved_at: Mapped[str] = mapped_column(
        String(30), default=lambda: datetime.now(timezone.utc).isoformat()
    )
