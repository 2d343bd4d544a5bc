"""Tests for the CLI interface."""

import os
import tempfile
from pathlib import Path

import pytest
from typer.testing import CliRunner

from medialend.cli import app
from medialend.config import reset_config
from medialend.db.sqlite import reset_db


def set_today(day: str) -> None:
    """Move the simulated date used by the next command."""
    os.environ["MEDIALEND_TODAY"] = day
    reset_config()


@pytest.fixture(autouse=True)
def setup_test_db():
    """Set up a test database for each test."""
    reset_db()
    reset_config()

    with tempfile.NamedTemporaryFile(suffix=".db", delete=False) as f:
        db_path = f.name

    os.environ["MEDIALEND_DB_PATH"] = db_path
    set_today("2025-03-03")

    yield

    # Cleanup
    reset_db()
    reset_config()
    for name in ("MEDIALEND_DB_PATH", "MEDIALEND_TODAY"):
        if name in os.environ:
            del os.environ[name]
    if Path(db_path).exists():
        Path(db_path).unlink()


@pytest.fixture
def runner():
    """Create a CLI test runner."""
    return CliRunner()


@pytest.fixture
def stocked(runner: CliRunner):
    """Create a genre, a location, a category, two videos and a borrower."""
    commands = [
        ["genre", "add", "Fiction"],
        ["location", "add", "Main", "A1"],
        ["category", "add", "TarifNormal", "--max-loans", "2", "--annual-fee", "30"],
        ["item", "add-video", "V1", "Film One", "Director", "1999",
         "-g", "Fiction", "-r", "Main", "-s", "A1", "-m", "120", "-n", "Private viewing only"],
        ["item", "add-video", "V2", "Film Two", "Director", "2001",
         "-g", "Fiction", "-r", "Main", "-s", "A1", "-m", "95", "-n", "Private viewing only"],
        ["item", "lendable", "V1"],
        ["item", "lendable", "V2"],
        ["borrower", "register", "Dupont", "Jean", "-c", "TarifNormal"],
    ]
    for command in commands:
        result = runner.invoke(app, command)
        assert result.exit_code == 0, result.stdout
    return runner


class TestCLIBasics:
    """Tests for basic CLI functionality."""

    def test_help(self, runner: CliRunner):
        """Test that help command works."""
        result = runner.invoke(app, ["--help"])
        assert result.exit_code == 0
        assert "Lend books" in result.stdout

    def test_version(self, runner: CliRunner):
        """Test version command."""
        result = runner.invoke(app, ["version"])
        assert result.exit_code == 0
        assert "0.1.0" in result.stdout

    def test_empty_lists(self, runner: CliRunner):
        """Test listing an empty registry."""
        result = runner.invoke(app, ["genre", "list"])
        assert result.exit_code == 0
        assert "No genres yet" in result.stdout


class TestCatalogCommands:
    """Tests for genre, location and category commands."""

    def test_genre_add_and_list(self, runner: CliRunner):
        runner.invoke(app, ["genre", "add", "Jazz"])
        result = runner.invoke(app, ["genre", "list"])
        assert result.exit_code == 0
        assert "Jazz" in result.stdout

    def test_duplicate_genre(self, runner: CliRunner):
        """Test a rejected operation exits with code 1."""
        runner.invoke(app, ["genre", "add", "Jazz"])
        result = runner.invoke(app, ["genre", "add", "Jazz"])
        assert result.exit_code == 1
        assert "Error:" in result.stdout

    def test_remove_genre_in_use(self, stocked: CliRunner):
        result = stocked.invoke(app, ["genre", "remove", "Fiction"])
        assert result.exit_code == 1

    def test_category_list(self, stocked: CliRunner):
        result = stocked.invoke(app, ["category", "list"])
        assert result.exit_code == 0
        assert "TarifNormal" in result.stdout

    def test_category_modify(self, stocked: CliRunner):
        result = stocked.invoke(app, ["category", "modify", "TarifNormal", "--max-loans", "3"])
        assert result.exit_code == 0
        result = stocked.invoke(app, ["category", "list"])
        assert "3" in result.stdout

    def test_genre_rename_to_empty(self, stocked: CliRunner):
        """Test an empty new name is refused and the database still loads."""
        result = stocked.invoke(app, ["genre", "rename", "Fiction", ""])
        assert result.exit_code == 1
        result = stocked.invoke(app, ["genre", "list"])
        assert result.exit_code == 0
        assert "Fiction" in result.stdout

    def test_category_modify_discount_code(self, stocked: CliRunner):
        """Test the discount code requirement can be set on an empty category."""
        stocked.invoke(app, ["category", "add", "Staff", "--max-loans", "5"])
        result = stocked.invoke(app, ["category", "modify", "Staff", "--requires-discount-code"])
        assert result.exit_code == 0
        result = stocked.invoke(app, ["category", "list"])
        assert "yes" in result.stdout

    def test_category_modify_discount_code_with_members(self, stocked: CliRunner):
        result = stocked.invoke(
            app, ["category", "modify", "TarifNormal", "--requires-discount-code"]
        )
        assert result.exit_code == 1
        assert "Error:" in result.stdout

    def test_invalid_category_input(self, runner: CliRunner):
        """Test schema validation errors are reported."""
        result = runner.invoke(app, ["category", "add", "Bad", "--max-loans", "-1"])
        assert result.exit_code == 1
        assert "Invalid input" in result.stdout


class TestItemCommands:
    """Tests for item commands."""

    def test_item_list(self, stocked: CliRunner):
        result = stocked.invoke(app, ["item", "list"])
        assert result.exit_code == 0
        assert "V1" in result.stdout
        assert "V2" in result.stdout

    def test_add_book_unknown_location(self, stocked: CliRunner):
        result = stocked.invoke(app, [
            "item", "add-book", "B1", "Novel", "Writer", "2001",
            "-g", "Fiction", "-r", "Annex", "-s", "Z9", "-p", "100",
        ])
        assert result.exit_code == 1
        assert "not found" in result.stdout


class TestLoanCommands:
    """Tests for borrow, return, sweep and loans."""

    def test_register_shows_fee(self, runner: CliRunner):
        runner.invoke(app, ["category", "add", "TarifNormal", "--max-loans", "2", "--annual-fee", "30"])
        result = runner.invoke(app, ["borrower", "register", "Dupont", "Jean", "-c", "TarifNormal"])
        assert result.exit_code == 0
        assert "Annual fee due: 30.00" in result.stdout

    def test_borrow(self, stocked: CliRunner):
        """Test a video is lent for two weeks."""
        result = stocked.invoke(app, ["borrow", "Dupont", "Jean", "V1"])
        assert result.exit_code == 0
        assert "Due: 2025-03-17" in result.stdout
        assert "Fee: 1.50" in result.stdout

    def test_borrow_state_is_saved(self, stocked: CliRunner):
        """Test a loan survives between commands."""
        stocked.invoke(app, ["borrow", "Dupont", "Jean", "V1"])
        result = stocked.invoke(app, ["borrow", "Dupont", "Jean", "V1"])
        assert result.exit_code == 1
        assert "already on loan" in result.stdout

    def test_overdue_flow(self, stocked: CliRunner):
        """Test a late loan is reminded, blocks borrowing and is returned late."""
        stocked.invoke(app, ["borrow", "Dupont", "Jean", "V1"])

        set_today("2025-03-20")
        result = stocked.invoke(app, ["sweep"])
        assert result.exit_code == 0
        assert "First reminder" in result.stdout

        result = stocked.invoke(app, ["borrow", "Dupont", "Jean", "V2"])
        assert result.exit_code == 1

        result = stocked.invoke(app, ["loans", "--overdue"])
        assert result.exit_code == 0
        assert "Overdue Loans: 1" in result.stdout

        result = stocked.invoke(app, ["return", "Dupont", "Jean", "V1"])
        assert result.exit_code == 0
        assert "returned late" in result.stdout

        result = stocked.invoke(app, ["borrow", "Dupont", "Jean", "V2"])
        assert result.exit_code == 0

    def test_sweep_nothing(self, stocked: CliRunner):
        result = stocked.invoke(app, ["sweep"])
        assert result.exit_code == 0
        assert "Nothing to remind" in result.stdout

    def test_change_category(self, stocked: CliRunner):
        """Test moving to a shorter category makes a loan overdue."""
        stocked.invoke(app, ["category", "add", "Short", "--max-loans", "2", "-d", "0.5"])
        stocked.invoke(app, ["borrow", "Dupont", "Jean", "V1"])
        set_today("2025-03-13")
        result = stocked.invoke(app, ["borrower", "change-category", "Dupont", "Jean", "Short"])
        assert result.exit_code == 0
        assert "overdue under the new category" in result.stdout

    def test_cancel_with_loan(self, stocked: CliRunner):
        stocked.invoke(app, ["borrow", "Dupont", "Jean", "V1"])
        result = stocked.invoke(app, ["borrower", "cancel", "Dupont", "Jean"])
        assert result.exit_code == 1

    def test_stats(self, stocked: CliRunner):
        stocked.invoke(app, ["borrow", "Dupont", "Jean", "V1"])
        result = stocked.invoke(app, ["stats"])
        assert result.exit_code == 0
        assert "Total: 1" in result.stdout
        assert "video: 1" in result.stdout


class TestExportCommands:
    """Tests for export and import."""

    def test_export_import(self, stocked: CliRunner, tmp_path: Path):
        stocked.invoke(app, ["borrow", "Dupont", "Jean", "V1"])
        output = tmp_path / "registry.json"

        result = stocked.invoke(app, ["export", str(output)])
        assert result.exit_code == 0
        assert output.exists()

        stocked.invoke(app, ["return", "Dupont", "Jean", "V1"])
        result = stocked.invoke(app, ["import", str(output)])
        assert result.exit_code == 0

        result = stocked.invoke(app, ["loans"])
        assert "V1" in result.stdout

    def test_import_missing_file(self, runner: CliRunner, tmp_path: Path):
        result = runner.invoke(app, ["import", str(tmp_path / "missing.json")])
        assert result.exit_code == 1
        assert "Import failed" in result.stdout
