"""Tagged-section text format for library snapshots.

A file is a series of sections, each a marker line, a count line and that
many comma-separated rows::

    #BOOKS
    <count>
    id,title,author,categoryIndex,totalCopies,availableCopies,statusIndex
    #READERS
    <count>
    id,name,dept,phone,registerDate,isValid(0|1)
    #BORROWS
    <count>
    readerId,bookId,borrowDate,dueDate,returnDate(empty when open)
    #RESERVATIONS
    <count>
    readerId,bookId
    #SETTINGS
    <0|1>
    [customDate]

Fields are not escaped: a comma inside a value breaks that row on reload.
Rows that are too short or do not parse are skipped.

Reservations are replayed on load: a book with no copies on the shelf and a
pending reservation comes back Reserved, even if it showed Borrowed when it
was saved (the reservation was made while copies were still available).
"""

from __future__ import annotations

import logging
from datetime import date
from pathlib import Path
from typing import TYPE_CHECKING, Iterator, List, Optional, TextIO, Union

from librarian.book import Book, BookCategory, BookStatus
from librarian.borrow_record import BorrowRecord, Reservation
from librarian.config import settings
from librarian.reader import Reader
from librarian.validators import format_date, parse_date

if TYPE_CHECKING:
    from librarian.library import LibraryState

logger = logging.getLogger(__name__)

BOOKS_MARKER = "#BOOKS"
READERS_MARKER = "#READERS"
BORROWS_MARKER = "#BORROWS"
RESERVATIONS_MARKER = "#RESERVATIONS"
SETTINGS_MARKER = "#SETTINGS"


def default_data_path() -> Path:
    return settings.data_path


# ------------------------- Rows ------------------------- #
def book_to_row(book: Book) -> str:
    return ",".join([
        book.id, book.title, book.author, str(int(book.category)),
        str(book.total_copies), str(book.available_copies), str(int(book.status)),
    ])


def book_from_row(line: str) -> Optional[Book]:
    fields = line.split(",")
    if len(fields) < 7:
        return None
    try:
        total = int(fields[4])
        available = max(0, min(int(fields[5]), total))
        status = BookStatus(int(fields[6]))
        return Book(
            id=fields[0], title=fields[1], author=fields[2],
            category=BookCategory(int(fields[3])),
            total_copies=total, available_copies=available,
            reserved=status == BookStatus.RESERVED,
            lost=status == BookStatus.LOST,
        )
    except ValueError:
        return None


def reader_to_row(reader: Reader) -> str:
    return ",".join([
        reader.id, reader.name, reader.dept, reader.phone,
        format_date(reader.register_date), "1" if reader.is_valid else "0",
    ])


def reader_from_row(line: str) -> Optional[Reader]:
    fields = line.split(",")
    if len(fields) < 6:
        return None
    try:
        registered = parse_date(fields[4])
    except ValueError:
        return None
    return Reader(id=fields[0], name=fields[1], dept=fields[2], phone=fields[3],
                  register_date=registered, is_valid=fields[5].strip() == "1")


def record_to_row(record: BorrowRecord) -> str:
    return ",".join([
        record.reader_id, record.book_id, format_date(record.borrow_date),
        format_date(record.due_date), format_date(record.return_date),
    ])


def record_from_row(line: str) -> Optional[BorrowRecord]:
    fields = line.split(",")
    if len(fields) < 5:
        return None
    try:
        borrowed = parse_date(fields[2])
        due = parse_date(fields[3])
        returned = parse_date(fields[4]) if fields[4].strip() else None
    except ValueError:
        return None
    return BorrowRecord(fields[0], fields[1], borrowed, due, returned)


def reservation_from_row(line: str) -> Optional[Reservation]:
    fields = line.split(",")
    if len(fields) < 2:
        return None
    return Reservation(fields[0], fields[1])


# ------------------------- Streams ------------------------- #
def dump(state: "LibraryState", out: TextIO) -> None:
    """Write every section of ``state`` to ``out``."""
    books = state.list_books()
    out.write(f"{BOOKS_MARKER}\n{len(books)}\n")
    for book in books:
        out.write(book_to_row(book) + "\n")

    readers = state.list_readers()
    out.write(f"{READERS_MARKER}\n{len(readers)}\n")
    for reader in readers:
        out.write(reader_to_row(reader) + "\n")

    records = state.list_records()
    out.write(f"{BORROWS_MARKER}\n{len(records)}\n")
    for record in records:
        out.write(record_to_row(record) + "\n")

    reservations = state.list_reservations()
    out.write(f"{RESERVATIONS_MARKER}\n{len(reservations)}\n")
    for reservation in reservations:
        out.write(f"{reservation.reader_id},{reservation.book_id}\n")

    out.write(f"{SETTINGS_MARKER}\n")
    if state.is_using_custom_time:
        out.write(f"1\n{format_date(state.custom_date)}\n")
    else:
        out.write("0\n")


def _take_rows(lines: Iterator[str], marker: str) -> List[str]:
    """Read the count line after ``marker`` and then that many rows."""
    count_line = next(lines, "")
    try:
        count = int(count_line.strip())
    except ValueError:
        logger.debug("Bad row count %r after %s", count_line, marker)
        return []
    rows = []
    for _ in range(max(count, 0)):
        line = next(lines, None)
        if line is None:
            logger.debug("%s ended after %d of %d rows", marker, len(rows), count)
            break
        rows.append(line)
    return rows


def _parse_rows(rows: List[str], parse, marker: str) -> list:
    parsed = []
    for row in rows:
        item = parse(row)
        if item is None:
            logger.debug("Skipping malformed %s row: %r", marker, row)
            continue
        parsed.append(item)
    return parsed


def load(state: "LibraryState", src: TextIO) -> None:
    """Replace ``state`` with the snapshot read from ``src``.

    Sections are dispatched by marker, so their order does not matter.
    Copy counters are re-derived from the open loans once everything is read.
    """
    books: List[Book] = []
    readers: List[Reader] = []
    records: List[BorrowRecord] = []
    reservations: List[Reservation] = []
    custom_date: Optional[date] = None

    lines = (line.rstrip("\r\n") for line in src)
    for line in lines:
        marker = line.strip()
        if not marker:
            continue
        if marker == BOOKS_MARKER:
            books.extend(_parse_rows(_take_rows(lines, marker), book_from_row, marker))
        elif marker == READERS_MARKER:
            readers.extend(_parse_rows(_take_rows(lines, marker), reader_from_row, marker))
        elif marker == BORROWS_MARKER:
            records.extend(_parse_rows(_take_rows(lines, marker), record_from_row, marker))
        elif marker == RESERVATIONS_MARKER:
            reservations.extend(_parse_rows(_take_rows(lines, marker), reservation_from_row, marker))
        elif marker == SETTINGS_MARKER:
            if next(lines, "0").strip() == "1":
                try:
                    custom_date = parse_date(next(lines, ""))
                except ValueError:
                    logger.debug("Ignoring unreadable simulated date")
        else:
            logger.debug("Ignoring stray line: %r", line)

    state.restore(books, readers, records, reservations, custom_date)


# ------------------------- Files ------------------------- #
def save_file(state: "LibraryState", path: Union[str, Path]) -> None:
    """Write ``state`` to ``path``; raises OSError if the file cannot be written."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8", newline="\n") as f:
        dump(state, f)
    logger.info("Library data saved to %s", path)


def load_file(state: "LibraryState", path: Union[str, Path]) -> None:
    """Read ``path`` into ``state``; raises OSError if it cannot be opened."""
    with open(path, "r", encoding="utf-8") as f:
        load(state, f)
    logger.info("Library data loaded from %s", path)
