import json
import os
from datetime import date
from typing import Any, Dict, List, Optional

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from librarian.book import Book
from librarian.borrow_record import BorrowRecord, Reservation
from librarian.config import settings
from librarian.reader import Reader
from librarian.validators import format_date

# Environment variable to control CLI output mode
# Allowed values: 'plain' (default), 'json', 'rich'
OUTPUT_MODE_ENV = "LIB_CLI_OUTPUT"

_console = Console()


def set_output_mode(mode: str) -> None:
    mode = (mode or "").lower().strip()
    if mode in {"plain", "json", "rich"}:
        os.environ[OUTPUT_MODE_ENV] = mode


def get_output_mode() -> str:
    return os.environ.get(OUTPUT_MODE_ENV, settings.output_mode).lower()


def _print_json(payload: Any) -> None:
    print(json.dumps(payload, ensure_ascii=False))


def print_book_list(books: List[Book], empty_message: str = "No books in library.") -> None:
    """Print books in the current output mode.
    - plain: 'ID - Title by Author [Category] available/total Status' lines
    - json: array of book dicts
    - rich: table
    """
    mode = get_output_mode()

    if not books:
        print(empty_message)
        return

    if mode == "json":
        _print_json([b.to_dict() for b in books])
    elif mode == "rich":
        table = Table(title="📚 Books", show_lines=True, header_style="bold cyan")
        table.add_column("ID", style="magenta", no_wrap=True)
        table.add_column("Title")
        table.add_column("Author")
        table.add_column("Category")
        table.add_column("Copies", justify="right")
        table.add_column("Status")
        for b in books:
            table.add_row(b.id, b.title, b.author, b.category.label,
                          f"{b.available_copies}/{b.total_copies}", b.status.label)
        _console.print(table)
    else:
        for b in books:
            print(f"{b.id} - {b.title} by {b.author} [{b.category.label}] "
                  f"{b.available_copies}/{b.total_copies} {b.status.label}")


def print_book_details(book: Book, reservers: Optional[List[str]] = None) -> None:
    mode = get_output_mode()
    if mode == "json":
        payload = book.to_dict()
        payload["reserved_by"] = reservers or []
        _print_json(payload)
        return
    lines = [
        f"ID: {book.id}",
        f"Title: {book.title}",
        f"Author: {book.author}",
        f"Category: {book.category.label}",
        f"Copies: {book.available_copies}/{book.total_copies}",
        f"Status: {book.status.label}",
    ]
    if reservers:
        lines.append(f"Reserved by: {', '.join(reservers)}")
    if mode == "rich":
        _console.print(Panel.fit("\n".join(lines), title="📖 Book", border_style="blue"))
    else:
        print("Book Found")
        for line in lines:
            print(line)


def print_reader_list(readers: List[Reader], empty_message: str = "No readers registered.") -> None:
    mode = get_output_mode()

    if not readers:
        print(empty_message)
        return

    if mode == "json":
        _print_json([r.to_dict() for r in readers])
    elif mode == "rich":
        table = Table(title="👥 Readers", show_lines=True, header_style="bold cyan")
        table.add_column("ID", style="magenta", no_wrap=True)
        table.add_column("Name")
        table.add_column("Department")
        table.add_column("Phone")
        table.add_column("Registered")
        table.add_column("Valid")
        for r in readers:
            table.add_row(r.id, r.name, r.dept, r.phone, format_date(r.register_date),
                          "yes" if r.is_valid else "no")
        _console.print(table)
    else:
        for r in readers:
            print(f"{r.id} - {r.name} ({r.dept}) {r.phone} registered {format_date(r.register_date)}")


def print_reader_details(reader: Reader) -> None:
    mode = get_output_mode()
    if mode == "json":
        _print_json(reader.to_dict())
        return
    lines = [
        f"ID: {reader.id}",
        f"Name: {reader.name}",
        f"Department: {reader.dept}",
        f"Phone: {reader.phone}",
        f"Registered: {format_date(reader.register_date)}",
        f"Valid: {'yes' if reader.is_valid else 'no'}",
    ]
    if mode == "rich":
        _console.print(Panel.fit("\n".join(lines), title="👤 Reader", border_style="blue"))
    else:
        print("Reader Found")
        for line in lines:
            print(line)


def print_records(records: List[BorrowRecord], today: date,
                  empty_message: str = "No borrow records.", title: str = "Borrow Records") -> None:
    """Print loans; open loans past due show how many days late they are."""
    mode = get_output_mode()

    if not records:
        print(empty_message)
        return

    if mode == "json":
        payload = []
        for rec in records:
            item = rec.to_dict()
            item["overdue_days"] = rec.overdue_days(today)
            payload.append(item)
        _print_json(payload)
    elif mode == "rich":
        table = Table(title=f"📋 {title}", show_lines=True, header_style="bold cyan")
        for column in ("Reader", "Book", "Borrowed", "Due", "Returned", "Overdue"):
            table.add_column(column)
        for rec in records:
            late = rec.overdue_days(today)
            table.add_row(rec.reader_id, rec.book_id, format_date(rec.borrow_date),
                          format_date(rec.due_date), format_date(rec.return_date) or "-",
                          f"[red]{late} days[/]" if late else "")
        _console.print(table)
    else:
        for rec in records:
            line = (f"{rec.reader_id} -> {rec.book_id} borrowed {format_date(rec.borrow_date)} "
                    f"due {format_date(rec.due_date)}")
            if rec.is_returned:
                line += f" returned {format_date(rec.return_date)}"
            late = rec.overdue_days(today)
            if late:
                line += f" overdue {late} days"
            print(line)


def print_reservations(reservations: List[Reservation]) -> None:
    mode = get_output_mode()

    if not reservations:
        print("No reservations.")
        return

    if mode == "json":
        _print_json([res._asdict() for res in reservations])
    elif mode == "rich":
        table = Table(title="🔖 Reservations", header_style="bold cyan")
        table.add_column("Reader")
        table.add_column("Book")
        for res in reservations:
            table.add_row(res.reader_id, res.book_id)
        _console.print(table)
    else:
        for res in reservations:
            print(f"{res.reader_id} reserved {res.book_id}")


def print_stats_result(stats: Dict[str, Any]) -> None:
    """Print statistics in the current output mode.
    - plain: one 'Label: value' line per metric, then per-category lines
    - json: the stats dict
    - rich: panel with the main metrics
    """
    mode = get_output_mode()

    if not stats:
        print("No statistics available.")
        return

    if mode == "json":
        _print_json(stats)
        return

    lines = [
        f"Total Copies: {stats.get('total_copies', 0)}",
        f"Available Copies: {stats.get('available_copies', 0)}",
        f"Borrowed Copies: {stats.get('borrowed_copies', 0)}",
        f"Categories In Use: {stats.get('category_count', 0)}",
        f"Readers: {stats.get('reader_count', 0)}",
        f"Overdue Loans: {stats.get('overdue_count', 0)}",
    ]
    by_category = stats.get("by_category", {})
    if mode == "rich":
        content = "\n".join(f"[bold]{line.split(':')[0]}:[/]{line.split(':', 1)[1]}" for line in lines)
        if by_category:
            content += "\n\n" + "\n".join(f"  {name}: {count}" for name, count in by_category.items())
        _console.print(Panel.fit(content, title="📊 Stats", border_style="blue"))
    else:
        for line in lines:
            print(line)
        for name, count in by_category.items():
            print(f"  {name}: {count}")
