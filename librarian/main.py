import logging
from pathlib import Path
from typing import NoReturn, Optional

import typer

from librarian import storage
from librarian.book import Book, BookCategory
from librarian.config import settings
from librarian.library import LibraryState
from librarian.reader import Reader
from librarian.settings_store import SettingsStore
from librarian.ui_helpers import (
    print_book_details,
    print_book_list,
    print_reader_details,
    print_reader_list,
    print_records,
    print_reservations,
    print_stats_result,
    set_output_mode,
)
from librarian.validators import IdValidator, TextValidator, format_date, parse_date

logging.basicConfig(level=getattr(logging, settings.log_level.upper(), logging.WARNING))
logger = logging.getLogger(__name__)


class Session:
    """One CLI run: the library state plus where it is loaded from and saved to.

    Settings are applied first and the data file second, so a simulated date
    stored in the data file wins. The data file is only rewritten when a
    command actually changed something.
    """

    def __init__(self, data_path: Path) -> None:
        self.data_path = data_path
        self.settings_store = SettingsStore(data_path.parent / settings.settings_file)
        self.state = LibraryState()
        self.dirty = False

    def open(self) -> None:
        self.settings_store.apply_to(self.state)
        if self.data_path.exists():
            self.state.load_from_file(self.data_path)
        self.state.on_data_changed(self._mark_dirty)

    def _mark_dirty(self) -> None:
        self.dirty = True

    def close(self) -> None:
        if self.dirty and not self.state.save_to_file(self.data_path):
            print(f"Could not save library data to {self.data_path}")
        self.settings_store.capture_from(self.state)


def _session(ctx: typer.Context) -> Session:
    return ctx.find_root().obj


def _fail(message: str) -> NoReturn:
    print(message)
    raise typer.Exit(code=1)


def _require_id(value: str, what: str) -> str:
    if not IdValidator.is_valid_id(value):
        _fail(f"Invalid {what} id: {value!r}")
    return value.strip()


def _require_text(value: Optional[str], what: str, required: bool = True) -> str:
    if not TextValidator.validate_field(value, required=required):
        _fail(f"Invalid {what}: values must be non-empty and must not contain commas or line breaks.")
    return TextValidator.sanitize(value)


def _parse_category(value: str) -> BookCategory:
    try:
        return BookCategory.parse(value)
    except ValueError:
        choices = ", ".join(c.name.lower() for c in BookCategory)
        _fail(f"Unknown category {value!r}. Choose one of: {choices}")


def _parse_day(value: Optional[str]):
    if value is None:
        return None
    try:
        return parse_date(value)
    except ValueError:
        _fail(f"Invalid date {value!r}, expected YYYY-MM-DD")


# --- Typer CLI application ---
app = typer.Typer(help="Library management CLI")
book_app = typer.Typer(help="Manage the book catalog")
reader_app = typer.Typer(help="Manage readers")
clock_app = typer.Typer(help="Inspect or simulate the current date")
app.add_typer(book_app, name="book")
app.add_typer(reader_app, name="reader")
app.add_typer(clock_app, name="clock")


@app.callback()
def _global_options(
    ctx: typer.Context,
    output: Optional[str] = typer.Option(
        None, "--output", "-o", help="Output format: plain | json | rich (default: plain)",
    ),
    data_file: Optional[Path] = typer.Option(
        None, "--data-file", "-d", help="Library data file (default: the app data directory)",
    ),
):
    """Global options (output mode, data file)."""
    if output:
        set_output_mode(output)
    session = Session(data_file or storage.default_data_path())
    session.open()
    ctx.obj = session
    ctx.call_on_close(session.close)


# ------------------------- Books ------------------------- #
@book_app.command("add")
def book_add(
    ctx: typer.Context,
    book_id: str = typer.Argument(..., help="Unique book id, e.g. B0001"),
    title: str = typer.Argument(...),
    author: str = typer.Argument(...),
    category: str = typer.Option("other", "--category", "-c", help="science, technology, literature, history, art, other"),
    copies: int = typer.Option(1, "--copies", "-n", min=0, help="Number of copies owned"),
):
    """Add a book to the catalog."""
    state = _session(ctx).state
    book = Book(_require_id(book_id, "book"), _require_text(title, "title"), _require_text(author, "author"),
                _parse_category(category), copies, copies)
    if not state.add_book(book):
        _fail(f"Book with id {book.id} already exists.")
    print(f"Successfully added: {book.title} by {book.author}")


@book_app.command("remove")
def book_remove(ctx: typer.Context, book_id: str):
    """Remove a book by id."""
    if _session(ctx).state.remove_book(book_id):
        print(f"Book with id {book_id} has been removed.")
    else:
        _fail(f"Book with id {book_id} not found.")


@book_app.command("update")
def book_update(
    ctx: typer.Context,
    book_id: str,
    title: Optional[str] = typer.Option(None, "--title", "-t"),
    author: Optional[str] = typer.Option(None, "--author", "-a"),
    category: Optional[str] = typer.Option(None, "--category", "-c"),
    copies: Optional[int] = typer.Option(None, "--copies", "-n", min=0, help="New total number of copies"),
    lost: Optional[bool] = typer.Option(None, "--lost/--found", help="Mark the book as lost or found"),
):
    """Edit a book's details. Changing --copies shifts the available count by the same amount."""
    state = _session(ctx).state
    existing = state.find_book(book_id)
    if existing is None:
        _fail(f"Book with id {book_id} not found.")

    total = existing.total_copies if copies is None else copies
    available = existing.available_copies + (total - existing.total_copies)
    if available < 0:
        _fail(f"Cannot reduce copies to {total}: {existing.total_copies - existing.available_copies} are on loan.")

    updated = Book(
        existing.id,
        existing.title if title is None else _require_text(title, "title"),
        existing.author if author is None else _require_text(author, "author"),
        existing.category if category is None else _parse_category(category),
        total,
        available,
        reserved=existing.reserved,
        lost=existing.lost if lost is None else lost,
    )
    state.update_book(updated)
    print(f"Book {book_id} updated.")


@book_app.command("find")
def book_find(ctx: typer.Context, book_id: str):
    """Show one book."""
    state = _session(ctx).state
    book = state.find_book(book_id)
    if book is None:
        _fail(f"Book with id {book_id} not found.")
    print_book_details(book, state.reservers_of(book_id))


@book_app.command("list")
def book_list(ctx: typer.Context):
    """List every book."""
    print_book_list(_session(ctx).state.list_books())


@book_app.command("search")
def book_search(
    ctx: typer.Context,
    keyword: str = typer.Argument("", help="Text to look for in title and/or author"),
    category: str = typer.Option("any", "--category", "-c", help="Category filter, or 'any'"),
    by_title: bool = typer.Option(True, "--title/--no-title", help="Match against titles"),
    by_author: bool = typer.Option(True, "--author/--no-author", help="Match against authors"),
):
    """Search books by keyword and category."""
    wanted = None if category.strip().lower() == "any" else _parse_category(category)
    books = _session(ctx).state.search_books(keyword, wanted, by_title, by_author)
    print_book_list(books, empty_message="No books match the criteria.")


@book_app.command("history")
def book_history(ctx: typer.Context, book_id: str):
    """Show the borrow history of a book."""
    state = _session(ctx).state
    if state.find_book(book_id) is None:
        _fail(f"Book with id {book_id} not found.")
    print_records(state.records_for_book(book_id), state.current_date(),
                  empty_message=f"Book {book_id} has never been borrowed.", title=f"History of {book_id}")


# ------------------------- Readers ------------------------- #
@reader_app.command("add")
def reader_add(
    ctx: typer.Context,
    reader_id: str = typer.Argument(..., help="Unique reader id, e.g. R1001"),
    name: str = typer.Argument(...),
    dept: str = typer.Option("", "--dept"),
    phone: str = typer.Option("", "--phone"),
):
    """Register a reader. The registration date is the current (possibly simulated) date."""
    state = _session(ctx).state
    reader = Reader(_require_id(reader_id, "reader"), _require_text(name, "name"),
                    _require_text(dept, "department", required=False),
                    _require_text(phone, "phone", required=False),
                    register_date=state.current_date())
    if not state.add_reader(reader):
        _fail(f"Reader with id {reader.id} already exists.")
    print(f"Successfully registered: {reader.name} ({reader.id})")


@reader_app.command("remove")
def reader_remove(ctx: typer.Context, reader_id: str):
    """Remove a reader by id."""
    if _session(ctx).state.remove_reader(reader_id):
        print(f"Reader with id {reader_id} has been removed.")
    else:
        _fail(f"Reader with id {reader_id} not found.")


@reader_app.command("update")
def reader_update(
    ctx: typer.Context,
    reader_id: str,
    name: Optional[str] = typer.Option(None, "--name"),
    dept: Optional[str] = typer.Option(None, "--dept"),
    phone: Optional[str] = typer.Option(None, "--phone"),
    valid: Optional[bool] = typer.Option(None, "--valid/--invalid"),
):
    """Edit a reader's details."""
    state = _session(ctx).state
    existing = state.find_reader(reader_id)
    if existing is None:
        _fail(f"Reader with id {reader_id} not found.")
    updated = Reader(
        existing.id,
        existing.name if name is None else _require_text(name, "name"),
        existing.dept if dept is None else _require_text(dept, "department", required=False),
        existing.phone if phone is None else _require_text(phone, "phone", required=False),
        register_date=existing.register_date,
        is_valid=existing.is_valid if valid is None else valid,
    )
    state.update_reader(updated)
    print(f"Reader {reader_id} updated.")


@reader_app.command("find")
def reader_find(ctx: typer.Context, reader_id: str):
    """Show one reader."""
    reader = _session(ctx).state.find_reader(reader_id)
    if reader is None:
        _fail(f"Reader with id {reader_id} not found.")
    print_reader_details(reader)


@reader_app.command("list")
def reader_list(ctx: typer.Context):
    """List every reader."""
    print_reader_list(_session(ctx).state.list_readers())


@reader_app.command("search")
def reader_search(ctx: typer.Context, keyword: str = typer.Argument("")):
    """Search readers by id, name, department or phone."""
    print_reader_list(_session(ctx).state.search_readers(keyword), empty_message="No readers match the criteria.")


@reader_app.command("records")
def reader_records(ctx: typer.Context, reader_id: str):
    """Show every loan of a reader."""
    state = _session(ctx).state
    if state.find_reader(reader_id) is None:
        _fail(f"Reader with id {reader_id} not found.")
    print_records(state.records_for_reader(reader_id), state.current_date(),
                  empty_message=f"Reader {reader_id} has no borrow records.", title=f"Loans of {reader_id}")


# ------------------------- Lending ------------------------- #
@app.command("borrow")
def cli_borrow(
    ctx: typer.Context,
    reader_id: str,
    book_id: str,
    on: Optional[str] = typer.Option(None, "--date", help="Borrow date YYYY-MM-DD (default: current date)"),
):
    """Lend one copy of a book to a reader."""
    state = _session(ctx).state
    borrowed_on = _parse_day(on)
    if state.find_reader(reader_id) is None:
        _fail(f"Reader with id {reader_id} not found.")
    book = state.find_book(book_id)
    if book is None:
        _fail(f"Book with id {book_id} not found.")
    if not state.borrow_book(reader_id, book_id, borrowed_on):
        _fail(f"No copies of {book_id} are available.")
    record = state.records_for_reader(reader_id)[-1]
    print(f"{reader_id} borrowed {book.title}; due {format_date(record.due_date)}.")


@app.command("return")
def cli_return(
    ctx: typer.Context,
    reader_id: str,
    book_id: str,
    on: Optional[str] = typer.Option(None, "--date", help="Return date YYYY-MM-DD (default: current date)"),
):
    """Take back a copy a reader borrowed."""
    state = _session(ctx).state
    returned_on = _parse_day(on)
    if state.find_book(book_id) is None:
        _fail(f"Book with id {book_id} not found.")
    if not state.return_book(reader_id, book_id, returned_on):
        _fail(f"{reader_id} has no open loan of {book_id}.")
    print(f"{reader_id} returned {book_id}.")


@app.command("reserve")
def cli_reserve(ctx: typer.Context, reader_id: str, book_id: str):
    """Reserve a book that has no copies left."""
    state = _session(ctx).state
    if state.find_reader(reader_id) is None:
        _fail(f"Reader with id {reader_id} not found.")
    book = state.find_book(book_id)
    if book is None:
        _fail(f"Book with id {book_id} not found.")
    if not state.reserve_book(reader_id, book_id):
        if book.available_copies > 0:
            _fail(f"{book_id} still has copies available; borrow it instead.")
        _fail(f"{book_id} is already reserved.")
    print(f"{reader_id} reserved {book_id}.")


@app.command("records")
def cli_records(ctx: typer.Context):
    """List every borrow record."""
    state = _session(ctx).state
    print_records(state.list_records(), state.current_date())


@app.command("overdue")
def cli_overdue(ctx: typer.Context):
    """List open loans past their due date."""
    state = _session(ctx).state
    print_records(state.get_overdue_records(), state.current_date(),
                  empty_message="No overdue loans.", title="Overdue Loans")


@app.command("reservations")
def cli_reservations(ctx: typer.Context):
    """List every reservation."""
    print_reservations(_session(ctx).state.list_reservations())


@app.command("stats")
def cli_stats(ctx: typer.Context):
    """Show library statistics."""
    print_stats_result(_session(ctx).state.get_statistics())


# ------------------------- Clock ------------------------- #
@clock_app.command("show")
def clock_show(ctx: typer.Context):
    """Print the current date and whether it is simulated."""
    state = _session(ctx).state
    mode = "simulated" if state.is_using_custom_time else "system"
    print(f"Current date: {format_date(state.current_date())} ({mode})")


@clock_app.command("set")
def clock_set(ctx: typer.Context, day: str = typer.Argument(..., help="YYYY-MM-DD")):
    """Pretend today is DAY."""
    state = _session(ctx).state
    state.set_current_date(_parse_day(day))
    print(f"Current date set to {format_date(state.current_date())}.")


@clock_app.command("reset")
def clock_reset(ctx: typer.Context):
    """Go back to the system date."""
    state = _session(ctx).state
    state.reset_to_real_time()
    print(f"Using the system date ({format_date(state.current_date())}).")


# ------------------------- Files ------------------------- #
@app.command("new")
def cli_new(
    ctx: typer.Context,
    yes: bool = typer.Option(False, "--yes", "-y", help="Do not ask for confirmation"),
):
    """Discard all books, readers, loans and reservations."""
    if not yes and not typer.confirm("Discard all library data?"):
        _fail("Aborted.")
    _session(ctx).state.clear_all_data()
    print("All library data cleared.")


@app.command("open")
def cli_open(ctx: typer.Context, path: Path):
    """Replace the working data with the contents of PATH."""
    session = _session(ctx)
    if not session.state.load_from_file(path):
        # Keep the working data file as it was.
        session.dirty = False
        _fail(f"Could not open {path}.")
    print(f"Loaded library data from {path}.")


@app.command("save-as")
def cli_save_as(ctx: typer.Context, path: Path):
    """Write the working data to PATH."""
    if not _session(ctx).state.save_to_file(path):
        _fail(f"Could not save to {path}.")
    print(f"Library data saved to {path}.")


if __name__ == "__main__":
    app()
