"""Command-line interface for medialend.

Built with Typer for commands and Rich for output. Every command loads
the registry from the database, performs one operation and saves it back.
"""

from contextlib import contextmanager
from pathlib import Path
from typing import Generator, Optional

import typer
from pydantic import ValidationError
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from .borrowers.schemas import BorrowerCreate, BorrowerUpdate, CategoryCreate, CategoryUpdate
from .config import get_config
from .db import get_db
from .errors import InvalidOperation
from .items.models import ItemKind
from .items.schemas import ItemCreate
from .log import configure_logging
from .registry import LendingRegistry

# Create the main app
app = typer.Typer(
    name="medialend",
    help="Lend books, audio and video to library members.",
    no_args_is_help=True,
)

# Create sub-apps for command groups
genre_app = typer.Typer(help="Manage genres.")
app.add_typer(genre_app, name="genre")

location_app = typer.Typer(help="Manage shelf locations.")
app.add_typer(location_app, name="location")

category_app = typer.Typer(help="Manage borrower categories.")
app.add_typer(category_app, name="category")

item_app = typer.Typer(help="Manage lendable items.")
app.add_typer(item_app, name="item")

borrower_app = typer.Typer(help="Manage borrowers.")
app.add_typer(borrower_app, name="borrower")

# Rich console for pretty output
console = Console()


# ============================================================================
# Helper Functions
# ============================================================================


def print_error(message: str) -> None:
    """Print an error message."""
    console.print(f"[bold red]Error:[/bold red] {message}")


def print_success(message: str) -> None:
    """Print a success message."""
    console.print(f"[bold green]Success:[/bold green] {message}")


def print_warning(message: str) -> None:
    """Print a warning message."""
    console.print(f"[bold yellow]Warning:[/bold yellow] {message}")


def print_info(message: str) -> None:
    """Print an info message."""
    console.print(f"[dim]{message}[/dim]")


@contextmanager
def open_registry(save: bool = True) -> Generator[LendingRegistry, None, None]:
    """Load the registry, hand it to a command, then save it.

    Rejected operations print an error and exit with code 1; nothing is
    saved in that case.
    """
    config = get_config()
    errors = config.validate()
    if errors:
        for error in errors:
            print_error(error)
        raise typer.Exit(1)

    db = get_db(str(config.db_path))
    snapshot = db.load_state()
    try:
        if snapshot is None:
            registry = LendingRegistry(
                name=config.library_name,
                clock=config.make_clock(),
                escalation_days=config.escalation_days,
                membership_days=config.membership_days,
            )
        else:
            registry = LendingRegistry.from_snapshot(
                snapshot,
                clock=config.make_clock(),
                escalation_days=config.escalation_days,
                membership_days=config.membership_days,
            )
        yield registry
    except InvalidOperation as e:
        print_error(str(e))
        raise typer.Exit(1)
    except ValidationError as e:
        print_error(f"Invalid input: {e.errors()[0]['msg']}")
        raise typer.Exit(1)

    if save:
        db.save_state(registry.to_snapshot())


@app.callback()
def main_callback() -> None:
    """Lend books, audio and video to library members."""
    configure_logging(get_config().log_level)


# ============================================================================
# Genre Commands
# ============================================================================


@genre_app.command("add")
def genre_add(name: str = typer.Argument(..., help="Genre name")) -> None:
    """Add a genre."""
    with open_registry() as registry:
        registry.add_genre(name)
    print_success(f"Genre added: {name}")


@genre_app.command("rename")
def genre_rename(
    old_name: str = typer.Argument(..., help="Current name"),
    new_name: str = typer.Argument(..., help="New name"),
) -> None:
    """Rename a genre."""
    with open_registry() as registry:
        registry.rename_genre(old_name, new_name)
    print_success(f"Genre renamed: {old_name} -> {new_name}")


@genre_app.command("remove")
def genre_remove(name: str = typer.Argument(..., help="Genre name")) -> None:
    """Remove a genre no item uses."""
    with open_registry() as registry:
        registry.remove_genre(name)
    print_success(f"Genre removed: {name}")


@genre_app.command("list")
def genre_list() -> None:
    """List genres with their loan counts."""
    with open_registry(save=False) as registry:
        genres = registry.list_genres()

    if not genres:
        print_info("No genres yet")
        return

    table = Table(title="Genres", show_header=True, header_style="bold magenta")
    table.add_column("Genre", style="cyan")
    table.add_column("Loans", justify="right")
    for genre in genres:
        table.add_row(genre.name, str(genre.loan_count))
    console.print(table)


# ============================================================================
# Location Commands
# ============================================================================


@location_app.command("add")
def location_add(
    room: str = typer.Argument(..., help="Room"),
    shelf: str = typer.Argument(..., help="Shelf"),
) -> None:
    """Add a shelf location."""
    with open_registry() as registry:
        location = registry.add_location(room, shelf)
    print_success(f"Location added: {location}")


@location_app.command("move")
def location_move(
    room: str = typer.Argument(..., help="Current room"),
    shelf: str = typer.Argument(..., help="Current shelf"),
    new_room: str = typer.Argument(..., help="New room"),
    new_shelf: str = typer.Argument(..., help="New shelf"),
) -> None:
    """Rename a location; items stored there follow it."""
    with open_registry() as registry:
        location = registry.move_location(room, shelf, new_room, new_shelf)
    print_success(f"Location moved to {location}")


@location_app.command("remove")
def location_remove(
    room: str = typer.Argument(..., help="Room"),
    shelf: str = typer.Argument(..., help="Shelf"),
) -> None:
    """Remove an empty location."""
    with open_registry() as registry:
        registry.remove_location(room, shelf)
    print_success(f"Location removed: {room}/{shelf}")


@location_app.command("list")
def location_list() -> None:
    """List shelf locations."""
    with open_registry(save=False) as registry:
        locations = registry.list_locations()

    if not locations:
        print_info("No locations yet")
        return

    table = Table(title="Locations", show_header=True, header_style="bold magenta")
    table.add_column("Room", style="cyan")
    table.add_column("Shelf")
    for location in locations:
        table.add_row(location.room, location.shelf)
    console.print(table)


# ============================================================================
# Category Commands
# ============================================================================


@category_app.command("add")
def category_add(
    name: str = typer.Argument(..., help="Category name"),
    max_loans: int = typer.Option(..., "--max-loans", "-m", help="Maximum simultaneous loans"),
    annual_fee: float = typer.Option(0.0, "--annual-fee", "-a", help="Annual membership fee"),
    duration_multiplier: float = typer.Option(
        1.0, "--duration-multiplier", "-d", help="Multiplier applied to loan durations"
    ),
    fee_multiplier: float = typer.Option(
        1.0, "--fee-multiplier", "-f", help="Multiplier applied to loan fees"
    ),
    requires_discount_code: bool = typer.Option(
        False, "--requires-discount-code", help="Members must give a discount code"
    ),
) -> None:
    """Add a borrower category."""
    with open_registry() as registry:
        registry.add_category(
            CategoryCreate(
                name=name,
                max_loans=max_loans,
                annual_fee=annual_fee,
                duration_multiplier=duration_multiplier,
                fee_multiplier=fee_multiplier,
                requires_discount_code=requires_discount_code,
            )
        )
    print_success(f"Category added: {name}")


@category_app.command("modify")
def category_modify(
    name: str = typer.Argument(..., help="Category name"),
    new_name: Optional[str] = typer.Option(None, "--name", "-n", help="New name"),
    max_loans: Optional[int] = typer.Option(None, "--max-loans", "-m", help="Maximum loans"),
    annual_fee: Optional[float] = typer.Option(None, "--annual-fee", "-a", help="Annual fee"),
    duration_multiplier: Optional[float] = typer.Option(
        None, "--duration-multiplier", "-d", help="Duration multiplier"
    ),
    fee_multiplier: Optional[float] = typer.Option(
        None, "--fee-multiplier", "-f", help="Fee multiplier"
    ),
    requires_discount_code: Optional[bool] = typer.Option(
        None,
        "--requires-discount-code/--no-discount-code",
        help="Whether members must give a discount code",
    ),
) -> None:
    """Change the policy values of a category."""
    with open_registry() as registry:
        registry.modify_category(
            name,
            CategoryUpdate(
                name=new_name,
                max_loans=max_loans,
                annual_fee=annual_fee,
                duration_multiplier=duration_multiplier,
                fee_multiplier=fee_multiplier,
                requires_discount_code=requires_discount_code,
            ),
        )
    print_success(f"Category updated: {new_name or name}")


@category_app.command("remove")
def category_remove(name: str = typer.Argument(..., help="Category name")) -> None:
    """Remove a category no borrower belongs to."""
    with open_registry() as registry:
        registry.remove_category(name)
    print_success(f"Category removed: {name}")


@category_app.command("list")
def category_list() -> None:
    """List borrower categories."""
    with open_registry(save=False) as registry:
        categories = registry.list_categories()

    if not categories:
        print_info("No categories yet")
        return

    table = Table(title="Categories", show_header=True, header_style="bold magenta")
    table.add_column("Name", style="cyan")
    table.add_column("Max", justify="right")
    table.add_column("Fee/year", justify="right")
    table.add_column("Duration x", justify="right")
    table.add_column("Fee x", justify="right")
    table.add_column("Code", justify="center")
    for category in categories:
        table.add_row(
            category.name,
            str(category.max_loans),
            f"{category.annual_fee:.2f}",
            f"{category.duration_multiplier:g}",
            f"{category.fee_multiplier:g}",
            "yes" if category.requires_discount_code else "-",
        )
    console.print(table)


# ============================================================================
# Item Commands
# ============================================================================


def _add_item(kind: ItemKind, **fields) -> None:
    with open_registry() as registry:
        item = registry.add_item(ItemCreate(kind=kind, **fields))
    print_success(f"Added {item.kind.value} {item.code}: {item.title}")
    print_info("New items are consultable only; use 'medialend item lendable' to lend them")


@item_app.command("add-book")
def item_add_book(
    code: str = typer.Argument(..., help="Item code"),
    title: str = typer.Argument(..., help="Title"),
    author: str = typer.Argument(..., help="Author"),
    year: str = typer.Argument(..., help="Publication year"),
    genre: str = typer.Option(..., "--genre", "-g", help="Genre name"),
    room: str = typer.Option(..., "--room", "-r", help="Room"),
    shelf: str = typer.Option(..., "--shelf", "-s", help="Shelf"),
    pages: int = typer.Option(..., "--pages", "-p", help="Page count"),
) -> None:
    """Add a book."""
    _add_item(
        ItemKind.BOOK,
        code=code, title=title, author=author, year=year,
        genre=genre, room=room, shelf=shelf, page_count=pages,
    )


@item_app.command("add-audio")
def item_add_audio(
    code: str = typer.Argument(..., help="Item code"),
    title: str = typer.Argument(..., help="Title"),
    author: str = typer.Argument(..., help="Author"),
    year: str = typer.Argument(..., help="Release year"),
    genre: str = typer.Option(..., "--genre", "-g", help="Genre name"),
    room: str = typer.Option(..., "--room", "-r", help="Room"),
    shelf: str = typer.Option(..., "--shelf", "-s", help="Shelf"),
    classification: str = typer.Option(..., "--classification", "-c", help="Classification"),
) -> None:
    """Add an audio recording."""
    _add_item(
        ItemKind.AUDIO,
        code=code, title=title, author=author, year=year,
        genre=genre, room=room, shelf=shelf, classification=classification,
    )


@item_app.command("add-video")
def item_add_video(
    code: str = typer.Argument(..., help="Item code"),
    title: str = typer.Argument(..., help="Title"),
    author: str = typer.Argument(..., help="Director"),
    year: str = typer.Argument(..., help="Release year"),
    genre: str = typer.Option(..., "--genre", "-g", help="Genre name"),
    room: str = typer.Option(..., "--room", "-r", help="Room"),
    shelf: str = typer.Option(..., "--shelf", "-s", help="Shelf"),
    minutes: int = typer.Option(..., "--minutes", "-m", help="Film length in minutes"),
    notice: str = typer.Option(..., "--notice", "-n", help="Legal notice shown on every loan"),
) -> None:
    """Add a video."""
    _add_item(
        ItemKind.VIDEO,
        code=code, title=title, author=author, year=year,
        genre=genre, room=room, shelf=shelf, film_minutes=minutes, legal_notice=notice,
    )


@item_app.command("lendable")
def item_lendable(code: str = typer.Argument(..., help="Item code")) -> None:
    """Allow an item to be lent."""
    with open_registry() as registry:
        registry.make_lendable(code)
    print_success(f"Item {code} is now lendable")


@item_app.command("consultable")
def item_consultable(code: str = typer.Argument(..., help="Item code")) -> None:
    """Restrict an item to on-site consultation."""
    with open_registry() as registry:
        registry.make_consultable(code)
    print_success(f"Item {code} is now consultable only")


@item_app.command("remove")
def item_remove(code: str = typer.Argument(..., help="Item code")) -> None:
    """Remove an item that is not on loan."""
    with open_registry() as registry:
        registry.remove_item(code)
    print_success(f"Item removed: {code}")


@item_app.command("list")
def item_list(
    kind: Optional[ItemKind] = typer.Option(None, "--kind", "-k", help="Only this kind"),
) -> None:
    """List items."""
    with open_registry(save=False) as registry:
        items = [
            registry.summarize_item(item)
            for item in registry.list_items()
            if kind is None or item.kind == kind
        ]

    if not items:
        print_info("No items found")
        return

    table = Table(title="Items", show_header=True, header_style="bold magenta")
    table.add_column("Code", style="cyan")
    table.add_column("Kind")
    table.add_column("Title", max_width=30)
    table.add_column("Genre")
    table.add_column("Location")
    table.add_column("Status")
    table.add_column("Loans", justify="right")
    for item in items:
        if item.on_loan:
            status = "[yellow]on loan[/yellow]"
        elif item.lendable:
            status = "[green]lendable[/green]"
        else:
            status = "[dim]consultable[/dim]"
        table.add_row(
            item.code,
            item.kind.value,
            item.title,
            item.genre,
            item.location,
            status,
            str(item.loan_count),
        )
    console.print(table)


# ============================================================================
# Borrower Commands
# ============================================================================


@borrower_app.command("register")
def borrower_register(
    last_name: str = typer.Argument(..., help="Last name"),
    first_name: str = typer.Argument(..., help="First name"),
    category: str = typer.Option(..., "--category", "-c", help="Borrower category"),
    address: str = typer.Option("", "--address", "-a", help="Postal address"),
    discount_code: Optional[int] = typer.Option(
        None, "--discount-code", "-d", help="Discount code, for categories requiring one"
    ),
) -> None:
    """Enroll a borrower."""
    with open_registry() as registry:
        fee = registry.register_borrower(
            BorrowerCreate(
                last_name=last_name,
                first_name=first_name,
                address=address,
                category=category,
                discount_code=discount_code,
            )
        )
    print_success(f"Registered {last_name} {first_name}")
    console.print(f"Annual fee due: {fee:.2f}")


@borrower_app.command("update")
def borrower_update(
    last_name: str = typer.Argument(..., help="Last name"),
    first_name: str = typer.Argument(..., help="First name"),
    new_last_name: Optional[str] = typer.Option(None, "--last-name", help="New last name"),
    new_first_name: Optional[str] = typer.Option(None, "--first-name", help="New first name"),
    address: Optional[str] = typer.Option(None, "--address", "-a", help="New address"),
) -> None:
    """Change a borrower's name or address."""
    with open_registry() as registry:
        borrower = registry.update_borrower(
            last_name,
            first_name,
            BorrowerUpdate(last_name=new_last_name, first_name=new_first_name, address=address),
        )
    print_success(f"Updated {borrower.key}")


@borrower_app.command("cancel")
def borrower_cancel(
    last_name: str = typer.Argument(..., help="Last name"),
    first_name: str = typer.Argument(..., help="First name"),
) -> None:
    """Cancel the membership of a borrower with no active loan."""
    with open_registry() as registry:
        lifetime = registry.cancel_membership(last_name, first_name)
    print_success(f"Membership of {last_name} {first_name} cancelled after {lifetime} loans")


@borrower_app.command("change-category")
def borrower_change_category(
    last_name: str = typer.Argument(..., help="Last name"),
    first_name: str = typer.Argument(..., help="First name"),
    category: str = typer.Argument(..., help="New category"),
    discount_code: Optional[int] = typer.Option(
        None, "--discount-code", "-d", help="Discount code, for categories requiring one"
    ),
) -> None:
    """Move a borrower to another category; due dates are recomputed."""
    with open_registry() as registry:
        borrower = registry.change_borrower_category(
            last_name, first_name, category, discount_code
        )
        overdue = borrower.overdue_count
    print_success(f"{last_name} {first_name} is now in {category}")
    if overdue:
        print_warning(f"{overdue} loan(s) overdue under the new category")


@borrower_app.command("discount")
def borrower_discount(
    last_name: str = typer.Argument(..., help="Last name"),
    first_name: str = typer.Argument(..., help="First name"),
    code: int = typer.Argument(..., help="New discount code"),
) -> None:
    """Change a borrower's discount code."""
    with open_registry() as registry:
        registry.change_discount_code(last_name, first_name, code)
    print_success(f"Discount code of {last_name} {first_name} changed")


@borrower_app.command("list")
def borrower_list() -> None:
    """List borrowers."""
    with open_registry(save=False) as registry:
        borrowers = [registry.summarize_borrower(b) for b in registry.list_borrowers()]

    if not borrowers:
        print_info("No borrowers yet")
        return

    table = Table(title="Borrowers", show_header=True, header_style="bold magenta")
    table.add_column("Name", style="cyan")
    table.add_column("Category")
    table.add_column("Active", justify="right")
    table.add_column("Overdue", justify="right")
    table.add_column("Renewal")
    table.add_column("May borrow", justify="center")
    for b in borrowers:
        table.add_row(
            f"{b.last_name} {b.first_name}",
            b.category,
            str(b.active_count),
            f"[red]{b.overdue_count}[/red]" if b.overdue_count else "0",
            b.renewal_on.isoformat(),
            "[green]yes[/green]" if b.may_borrow else "[red]no[/red]",
        )
    console.print(table)


# ============================================================================
# Loan Commands
# ============================================================================


@app.command()
def borrow(
    last_name: str = typer.Argument(..., help="Borrower last name"),
    first_name: str = typer.Argument(..., help="Borrower first name"),
    code: str = typer.Argument(..., help="Item code"),
) -> None:
    """Lend an item to a borrower."""
    with open_registry() as registry:
        loan = registry.borrow(last_name, first_name, code)
        due, fee = loan.due_date, loan.fee
    print_success(f"{code} lent to {last_name} {first_name}")
    console.print(f"Due: {due.isoformat()}  Fee: {fee:.2f}")


@app.command("return")
def return_item(
    last_name: str = typer.Argument(..., help="Borrower last name"),
    first_name: str = typer.Argument(..., help="Borrower first name"),
    code: str = typer.Argument(..., help="Item code"),
) -> None:
    """Take an item back from a borrower."""
    with open_registry() as registry:
        loan = registry.return_item(last_name, first_name, code)
        was_overdue = loan.overdue
    print_success(f"{code} returned by {last_name} {first_name}")
    if was_overdue:
        print_warning("The item was returned late")


@app.command()
def sweep() -> None:
    """Run the daily overdue check."""
    with open_registry() as registry:
        report = registry.daily_sweep()

    console.print(f"[bold]Sweep of {report.day.isoformat()}[/bold]: {report.checked} loan(s) checked")
    for code in report.newly_overdue:
        console.print(f"  [red]First reminder:[/red] {code}")
    for code in report.escalated:
        console.print(f"  [yellow]Reminder sent again:[/yellow] {code}")
    if not report.changed:
        print_info("Nothing to remind")


@app.command()
def loans(
    overdue: bool = typer.Option(False, "--overdue", "-o", help="Show only overdue loans"),
) -> None:
    """List active loans."""
    with open_registry(save=False) as registry:
        if overdue:
            report = registry.overdue_report()
            summaries = report.loans
        else:
            summaries = [registry.summarize_loan(loan) for loan in registry.list_loans()]

    if overdue:
        if not summaries:
            print_success("No overdue loans!")
            return
        console.print(Panel(
            f"[bold red]Overdue Loans: {report.total_overdue}[/bold red]\n"
            f"Oldest: {report.oldest_overdue_days} days overdue",
            style="red",
        ))
    elif not summaries:
        print_info("No active loans")
        return

    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("Item", style="cyan")
    table.add_column("Borrower")
    table.add_column("Loaned")
    table.add_column("Due")
    table.add_column("State")
    table.add_column("Fee", justify="right")
    for loan in summaries:
        if loan.days_overdue:
            state = f"[bold red]{loan.state.value} ({loan.days_overdue}d)[/bold red]"
        else:
            state = loan.state.value
        table.add_row(
            loan.item_code,
            f"{loan.last_name} {loan.first_name}",
            loan.loan_date.isoformat(),
            loan.due_date.isoformat(),
            state,
            f"{loan.fee:.2f}",
        )
    console.print(table)


@app.command()
def stats() -> None:
    """Show lending statistics."""
    with open_registry(save=False) as registry:
        registry_stats = registry.stats()
        name = registry.name

    console.print(Panel(f"[bold]Lending Statistics: {name}[/bold]", style="cyan"))

    console.print("\n[bold]Loans:[/bold]")
    console.print(f"  Total: {registry_stats.total_loans}")
    console.print(f"  Active: {registry_stats.active_loans}")
    if registry_stats.overdue_loans > 0:
        console.print(f"  [red]Overdue: {registry_stats.overdue_loans}[/red]")
    for kind, count in registry_stats.loans_by_kind.items():
        console.print(f"  {kind.value}: {count}")

    if registry_stats.loans_by_genre:
        console.print("\n[bold]By genre:[/bold]")
        for genre, count in registry_stats.loans_by_genre.items():
            console.print(f"  {genre}: {count}")

    console.print(
        f"\n[bold]Catalog:[/bold] {registry_stats.total_items} items "
        f"({registry_stats.lendable_items} lendable), "
        f"{registry_stats.total_borrowers} borrowers"
    )


# ============================================================================
# Export Commands
# ============================================================================


@app.command("export")
def export_json(
    output: Path = typer.Argument(..., help="Output JSON file"),
    compact: bool = typer.Option(False, "--compact", help="Do not pretty-print"),
) -> None:
    """Export the registry to a JSON file."""
    from .export import JSONExporter

    config = get_config()
    result = JSONExporter(get_db(str(config.db_path))).export_snapshot(output, pretty=not compact)
    if not result.success:
        print_error(f"Export failed: {result.error}")
        raise typer.Exit(1)
    print_success(
        f"Exported {result.items_exported} items, {result.borrowers_exported} borrowers, "
        f"{result.loans_exported} loans to {result.file_path}"
    )


@app.command("import")
def import_json(
    source: Path = typer.Argument(..., help="JSON file written by 'medialend export'"),
) -> None:
    """Replace the registry with the content of a JSON file."""
    from .export import JSONExporter

    config = get_config()
    result = JSONExporter(get_db(str(config.db_path))).import_snapshot(source)
    if not result.success:
        print_error(f"Import failed: {result.error}")
        raise typer.Exit(1)
    print_success(
        f"Imported {result.items_exported} items, {result.borrowers_exported} borrowers, "
        f"{result.loans_exported} loans"
    )


# ============================================================================
# Version Command
# ============================================================================


@app.command()
def version() -> None:
    """Show version information."""
    from . import __version__

    console.print(f"medialend version {__version__}")


# ============================================================================
# Main Entry Point
# ============================================================================


def main() -> None:
    """Main entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
