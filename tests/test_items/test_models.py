"""Tests for lendable item variants."""

import logging

import pytest

from medialend.errors import InvalidOperation, InvariantBroken
from medialend.items.models import Audio, Book, ItemKind, Video


@pytest.fixture
def book(genre, location) -> Book:
    return Book(
        code="B1",
        title="A Novel",
        author="Writer",
        year="2001",
        genre=genre,
        location=location,
        page_count=320,
    )


@pytest.fixture
def video(genre, location) -> Video:
    return Video(
        code="V1",
        title="A Film",
        author="Director",
        year="1999",
        genre=genre,
        location=location,
        film_minutes=95,
        legal_notice="Private viewing only",
    )


class TestCreation:
    """Tests for item construction."""

    def test_new_item_is_consultable_only(self, book: Book):
        """Test a new item is neither lendable nor on loan."""
        assert not book.lendable
        assert not book.on_loan
        assert book.loan_count == 0
        assert book.invariant()

    def test_empty_title_rejected(self, genre, location):
        """Test required text fields must not be empty."""
        with pytest.raises(InvalidOperation, match="title"):
            Book(code="B2", title="", author="W", year="2001", genre=genre, location=location, page_count=10)

    def test_book_needs_pages(self, genre, location):
        """Test a book with no pages is rejected."""
        with pytest.raises(InvalidOperation, match="page count"):
            Book(code="B2", title="T", author="W", year="2001", genre=genre, location=location)

    def test_audio_needs_classification(self, genre, location):
        """Test an audio item without classification is rejected."""
        with pytest.raises(InvalidOperation, match="classification"):
            Audio(code="A1", title="T", author="W", year="2001", genre=genre, location=location)

    def test_video_needs_length_and_notice(self, genre, location):
        """Test a video needs a positive length and a legal notice."""
        with pytest.raises(InvalidOperation, match="film length"):
            Video(code="V2", title="T", author="W", year="2001", genre=genre, location=location,
                  legal_notice="notice")
        with pytest.raises(InvalidOperation, match="legal notice"):
            Video(code="V2", title="T", author="W", year="2001", genre=genre, location=location,
                  film_minutes=90)

    def test_equality_by_code(self, book: Book, genre, location):
        """Test items with the same code are equal."""
        twin = Book(code="B1", title="Other", author="X", year="1990", genre=genre,
                    location=location, page_count=5)
        assert twin == book
        assert hash(twin) == hash(book)


class TestLendingTerms:
    """Tests for nominal duration and fee per kind."""

    def test_book_terms(self, book: Book):
        """Test books lend for six weeks at 0.5."""
        assert book.kind == ItemKind.BOOK
        assert book.nominal_duration() == 42
        assert book.nominal_fee() == 0.5

    def test_audio_terms(self, genre, location):
        """Test audio lends for four weeks at 1.0."""
        audio = Audio(code="A1", title="T", author="W", year="2001", genre=genre,
                      location=location, classification="Rock")
        assert audio.nominal_duration() == 28
        assert audio.nominal_fee() == 1.0

    def test_video_terms(self, video: Video):
        """Test videos lend for two weeks at 1.5."""
        assert video.nominal_duration() == 14
        assert video.nominal_fee() == 1.5


class TestTransitions:
    """Tests for the lendable / on loan state machine."""

    def test_make_lendable_twice_rejected(self, book: Book):
        """Test making an item lendable twice fails."""
        book.make_lendable()
        with pytest.raises(InvalidOperation):
            book.make_lendable()

    def test_lend_not_lendable_rejected(self, book: Book):
        """Test lending a consultable item fails without side effect."""
        with pytest.raises(InvalidOperation, match="not lendable"):
            book.lend()
        assert book.loan_count == 0
        assert book.genre.loan_count == 0

    def test_lend_counts(self, book: Book):
        """Test lending updates item and genre counters."""
        book.make_lendable()
        assert book.lend() is True
        assert book.on_loan
        assert book.loan_count == 1
        assert book.genre.loan_count == 1

    def test_lend_twice_rejected(self, book: Book):
        """Test an item on loan cannot be lent again."""
        book.make_lendable()
        book.lend()
        with pytest.raises(InvalidOperation, match="already on loan"):
            book.lend()
        assert book.loan_count == 1

    def test_consultable_while_on_loan_rejected(self, book: Book):
        """Test an item on loan stays lendable."""
        book.make_lendable()
        book.lend()
        with pytest.raises(InvalidOperation, match="on loan"):
            book.make_consultable_only()
        assert book.lendable

    def test_cancel_lend(self, book: Book):
        """Test cancelling a lend restores every counter."""
        book.make_lendable()
        book.lend()
        book.cancel_lend()
        assert not book.on_loan
        assert book.loan_count == 0
        assert book.genre.loan_count == 0

    def test_cancel_lend_without_loan(self, book: Book):
        """Test cancelling a lend that never happened is a defect."""
        book.make_lendable()
        with pytest.raises(InvariantBroken):
            book.cancel_lend()

    def test_return_item(self, book: Book, caplog):
        """Test a returned item is announced for reshelving."""
        book.make_lendable()
        book.lend()
        with caplog.at_level(logging.INFO, logger="medialend"):
            book.return_item()
        assert not book.on_loan
        assert "ready to be reshelved at Main/A1" in caplog.text

    def test_return_not_on_loan_rejected(self, book: Book):
        """Test returning an item that is on the shelf fails."""
        book.make_lendable()
        with pytest.raises(InvalidOperation, match="not on loan"):
            book.return_item()

    def test_video_lend_logs_legal_notice(self, video: Video, caplog):
        """Test each video loan emits its legal notice."""
        video.make_lendable()
        with caplog.at_level(logging.WARNING, logger="medialend"):
            video.lend()
        assert "Private viewing only" in caplog.text


class TestRestoreState:
    """Tests for restoring lending state."""

    def test_restore(self, book: Book):
        """Test a consistent state is restored."""
        book.restore_state(lendable=True, on_loan=True, loan_count=4)
        assert book.on_loan
        assert book.loan_count == 4

    def test_restore_inconsistent(self, book: Book):
        """Test on loan without lendable is refused."""
        with pytest.raises(InvariantBroken):
            book.restore_state(lendable=False, on_loan=True, loan_count=1)

    def test_details(self, book: Book, video: Video):
        """Test kind-specific attributes."""
        assert book.details() == {"page_count": 320}
        assert video.details() == {"film_minutes": 95, "legal_notice": "Private viewing only"}
