"""SQLite database operations.

Handles database connection, session management and saving or loading
a whole registry snapshot.
"""

import json
import logging
import os
from contextlib import contextmanager
from datetime import date, datetime, timezone
from pathlib import Path
from typing import Generator, Optional

from sqlalchemy import create_engine, delete, select
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from ..registry.schemas import (
    BorrowerState,
    CategoryState,
    GenreState,
    ItemState,
    LoanRecordState,
    LocationState,
    RegistrySnapshot,
)
from .models import (
    Base,
    BorrowerRow,
    CategoryRow,
    GenreRow,
    ItemRow,
    LoanRecordRow,
    LocationRow,
    RegistryMetaRow,
)

logger = logging.getLogger(__name__)

META_ID = 1

# Child tables first so a full replace never leaves dangling rows
_STATE_TABLES = (
    LoanRecordRow,
    BorrowerRow,
    ItemRow,
    CategoryRow,
    LocationRow,
    GenreRow,
    RegistryMetaRow,
)


def _iso(value: Optional[date]) -> Optional[str]:
    return value.isoformat() if value else None


def _from_iso(value: Optional[str]) -> Optional[date]:
    return date.fromisoformat(value) if value else None


class Database:
    """Database connection and registry persistence."""

    def __init__(self, db_path: Optional[str] = None):
        """Initialize database connection.

        Args:
            db_path: Path to SQLite database file. If None, uses
                     MEDIALEND_DB_PATH env var or default location.
        """
        if db_path is None:
            db_path = os.environ.get(
                "MEDIALEND_DB_PATH",
                str(Path.home() / ".medialend" / "medialend.db"),
            )

        self.db_path = Path(db_path)
        self._is_memory = str(db_path) == ":memory:"

        if not self._is_memory:
            self._ensure_directory()

        # In-memory databases share one connection so every session sees the same data
        if self._is_memory:
            self.engine = create_engine(
                "sqlite:///:memory:",
                echo=False,
                connect_args={"check_same_thread": False},
                poolclass=StaticPool,
            )
        else:
            self.engine = create_engine(
                f"sqlite:///{self.db_path}",
                echo=False,
                connect_args={"check_same_thread": False},
            )
        self.SessionLocal = sessionmaker(bind=self.engine, autocommit=False, autoflush=False)

    def _ensure_directory(self) -> None:
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

    def create_tables(self) -> None:
        """Create all database tables."""
        Base.metadata.create_all(self.engine)

    @contextmanager
    def get_session(self) -> Generator[Session, None, None]:
        """Get a database session context manager."""
        session = self.SessionLocal()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    # ========================================================================
    # Registry State
    # ========================================================================

    def has_state(self, session: Optional[Session] = None) -> bool:
        """True once a registry has been saved."""

        def _has(s: Session) -> bool:
            return s.get(RegistryMetaRow, META_ID) is not None

        if session:
            return _has(session)
        with self.get_session() as s:
            return _has(s)

    def save_state(self, snapshot: RegistrySnapshot) -> bool:
        """Replace the stored registry with ``snapshot`` in one transaction.

        Returns:
            True once committed
        """
        with self.get_session() as session:
            for table in _STATE_TABLES:
                session.execute(delete(table))

            session.add(
                RegistryMetaRow(
                    id=META_ID,
                    name=snapshot.name,
                    version=snapshot.version,
                    total_loans=snapshot.total_loans,
                    loans_by_kind=json.dumps(
                        {kind.value: count for kind, count in snapshot.loans_by_kind.items()}
                    ),
                    saved_at=datetime.now(timezone.utc).isoformat(),
                )
            )
            session.add_all(GenreRow(**g.model_dump()) for g in snapshot.genres)
            session.add_all(LocationRow(**l.model_dump()) for l in snapshot.locations)
            session.add_all(CategoryRow(**c.model_dump()) for c in snapshot.categories)
            session.add_all(
                ItemRow(**item.model_dump(exclude={"kind"}), kind=item.kind.value)
                for item in snapshot.items
            )
            session.add_all(
                BorrowerRow(
                    **b.model_dump(exclude={"enrolled_on", "renewal_on"}),
                    enrolled_on=_iso(b.enrolled_on),
                    renewal_on=_iso(b.renewal_on),
                )
                for b in snapshot.borrowers
            )
            session.add_all(
                LoanRecordRow(
                    **loan.model_dump(exclude={"loan_date", "due_date", "reminder_date"}),
                    loan_date=_iso(loan.loan_date),
                    due_date=_iso(loan.due_date),
                    reminder_date=_iso(loan.reminder_date),
                )
                for loan in snapshot.loans
            )

        logger.info(
            "Saved %s to %s (%d items, %d borrowers, %d loans)",
            snapshot.name,
            self.db_path,
            len(snapshot.items),
            len(snapshot.borrowers),
            len(snapshot.loans),
        )
        return True

    def load_state(self) -> Optional[RegistrySnapshot]:
        """Read the stored registry back.

        Returns:
            The snapshot, or None if nothing has been saved yet
        """
        with self.get_session() as session:
            meta = session.get(RegistryMetaRow, META_ID)
            if meta is None:
                return None

            def rows(model):
                return session.execute(select(model).order_by(model.id)).scalars().all()

            snapshot = RegistrySnapshot(
                version=meta.version,
                name=meta.name,
                total_loans=meta.total_loans,
                loans_by_kind=json.loads(meta.loans_by_kind or "{}"),
                genres=[GenreState(name=r.name, loan_count=r.loan_count) for r in rows(GenreRow)],
                locations=[LocationState(room=r.room, shelf=r.shelf) for r in rows(LocationRow)],
                categories=[
                    CategoryState(
                        name=r.name,
                        max_loans=r.max_loans,
                        annual_fee=r.annual_fee,
                        duration_multiplier=r.duration_multiplier,
                        fee_multiplier=r.fee_multiplier,
                        requires_discount_code=r.requires_discount_code,
                    )
                    for r in rows(CategoryRow)
                ],
                items=[
                    ItemState(
                        kind=r.kind,
                        code=r.code,
                        title=r.title,
                        author=r.author,
                        year=r.year,
                        genre=r.genre,
                        room=r.room,
                        shelf=r.shelf,
                        lendable=r.lendable,
                        on_loan=r.on_loan,
                        loan_count=r.loan_count,
                        page_count=r.page_count,
                        classification=r.classification,
                        film_minutes=r.film_minutes,
                        legal_notice=r.legal_notice,
                    )
                    for r in rows(ItemRow)
                ],
                borrowers=[
                    BorrowerState(
                        last_name=r.last_name,
                        first_name=r.first_name,
                        address=r.address,
                        category=r.category,
                        discount_code=r.discount_code,
                        enrolled_on=_from_iso(r.enrolled_on),
                        renewal_on=_from_iso(r.renewal_on),
                        active_count=r.active_count,
                        overdue_count=r.overdue_count,
                        lifetime_loans=r.lifetime_loans,
                    )
                    for r in rows(BorrowerRow)
                ],
                loans=[
                    LoanRecordState(
                        item_code=r.item_code,
                        last_name=r.last_name,
                        first_name=r.first_name,
                        loan_date=_from_iso(r.loan_date),
                        due_date=_from_iso(r.due_date),
                        overdue=r.overdue,
                        reminder_date=_from_iso(r.reminder_date),
                    )
                    for r in rows(LoanRecordRow)
                ],
            )

        logger.info("Loaded %s from %s", snapshot.name, self.db_path)
        return snapshot


# Global database instance
_db: Optional[Database] = None


def get_db(db_path: Optional[str] = None) -> Database:
    """Get or create the global database instance."""
    global _db
    if _db is None:
        _db = Database(db_path)
        _db.create_tables()
    return _db


def reset_db() -> None:
    """Reset the global database instance. Used for testing."""
    global _db
    _db = None
