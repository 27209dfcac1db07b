from __future__ import annotations

import logging
from datetime import date
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Union

from librarian import storage
from librarian.book import Book, BookCategory
from librarian.borrow_record import BorrowRecord, Reservation
from librarian.reader import Reader

logger = logging.getLogger(__name__)

DataChangedCallback = Callable[[], None]
DateChangedCallback = Callable[[date], None]


class LibraryState:
    """Owns the catalogs, loans and reservations and enforces the lending rules.

    Every mutating call returns ``True`` on success and ``False`` when the
    target is missing or a lending rule forbids it; nothing is raised for
    those cases. Observers registered with :meth:`on_data_changed` run after
    each successful mutation.
    """

    def __init__(self, today: Callable[[], date] = date.today) -> None:
        self._today = today
        self._books: Dict[str, Book] = {}
        self._readers: Dict[str, Reader] = {}
        self._records: List[BorrowRecord] = []
        self._reservations: List[Reservation] = []
        self._custom_date: Optional[date] = None
        self._use_custom_time = False
        self._data_observers: List[DataChangedCallback] = []
        self._date_observers: List[DateChangedCallback] = []

    # ------------------------- Observers ------------------------- #
    def on_data_changed(self, callback: DataChangedCallback) -> Callable[[], None]:
        """Register ``callback``; the returned function unregisters it."""
        self._data_observers.append(callback)
        return lambda: self._unsubscribe(self._data_observers, callback)

    def on_current_date_changed(self, callback: DateChangedCallback) -> Callable[[], None]:
        self._date_observers.append(callback)
        return lambda: self._unsubscribe(self._date_observers, callback)

    @staticmethod
    def _unsubscribe(observers: list, callback: Callable) -> None:
        if callback in observers:
            observers.remove(callback)

    def _emit_data_changed(self) -> None:
        for callback in list(self._data_observers):
            callback()

    def _emit_date_changed(self, new_date: date) -> None:
        for callback in list(self._date_observers):
            callback(new_date)

    # ------------------------- Books ------------------------- #
    def add_book(self, book: Book) -> bool:
        if book.id in self._books:
            return False
        self._books[book.id] = book.copy()
        self._emit_data_changed()
        return True

    def remove_book(self, book_id: str) -> bool:
        if self._books.pop(book_id, None) is None:
            return False
        self._emit_data_changed()
        return True

    def update_book(self, book: Book) -> bool:
        """Overwrite the stored book with the same id, keeping the stored object."""
        existing = self._books.get(book.id)
        if existing is None:
            return False
        existing.assign(book)
        self._emit_data_changed()
        return True

    def find_book(self, book_id: str) -> Optional[Book]:
        return self._books.get(book_id)

    def list_books(self) -> List[Book]:
        return list(self._books.values())

    def search_books(self, keyword: str = "", category: Optional[BookCategory] = None,
                     by_title: bool = True, by_author: bool = True) -> List[Book]:
        """Filter books by keyword (title and/or author) and category.

        ``category=None`` means any category. An empty keyword leaves only
        the category filter in effect.
        """
        needle = (keyword or "").lower()
        results = []
        for book in self._books.values():
            if category is not None and book.category != category:
                continue
            if needle:
                hit = (by_title and needle in book.title.lower()) or \
                      (by_author and needle in book.author.lower())
                if not hit:
                    continue
            results.append(book)
        return results

    # ------------------------- Readers ------------------------- #
    def add_reader(self, reader: Reader) -> bool:
        if reader.id in self._readers:
            return False
        self._readers[reader.id] = reader.copy()
        self._emit_data_changed()
        return True

    def remove_reader(self, reader_id: str) -> bool:
        if self._readers.pop(reader_id, None) is None:
            return False
        self._emit_data_changed()
        return True

    def update_reader(self, reader: Reader) -> bool:
        existing = self._readers.get(reader.id)
        if existing is None:
            return False
        existing.assign(reader)
        self._emit_data_changed()
        return True

    def find_reader(self, reader_id: str) -> Optional[Reader]:
        return self._readers.get(reader_id)

    def list_readers(self) -> List[Reader]:
        return list(self._readers.values())

    def search_readers(self, keyword: str = "") -> List[Reader]:
        if not keyword:
            return self.list_readers()
        return [r for r in self._readers.values() if r.matches(keyword)]

    # ------------------------- Lending ------------------------- #
    def borrow_book(self, reader_id: str, book_id: str, on: Optional[date] = None) -> bool:
        book = self._books.get(book_id)
        if book is None or not book.take_copy():
            return False
        borrowed_on = on or self.current_date()
        self._records.append(BorrowRecord(reader_id, book_id, borrowed_on))
        self._emit_data_changed()
        return True

    def return_book(self, reader_id: str, book_id: str, on: Optional[date] = None) -> bool:
        """Close the oldest open loan of ``book_id`` by ``reader_id``.

        The copy counter only moves when such a loan exists.
        """
        book = self._books.get(book_id)
        if book is None or book.available_copies >= book.total_copies:
            return False
        record = self._open_record(reader_id, book_id)
        if record is None:
            return False
        book.put_back_copy()
        record.return_date = on or self.current_date()
        self._emit_data_changed()
        return True

    def reserve_book(self, reader_id: str, book_id: str) -> bool:
        book = self._books.get(book_id)
        if book is None or not book.mark_reserved():
            return False
        self._reservations.append(Reservation(reader_id, book_id))
        self._emit_data_changed()
        return True

    def _open_record(self, reader_id: str, book_id: str) -> Optional[BorrowRecord]:
        for record in self._records:
            if record.reader_id == reader_id and record.book_id == book_id and not record.is_returned:
                return record
        return None

    def add_borrow_record(self, record: BorrowRecord) -> None:
        """Append a prebuilt record as-is. Copy counters are not touched."""
        self._records.append(record.copy())
        self._emit_data_changed()

    # ------------------------- Queries ------------------------- #
    def list_records(self) -> List[BorrowRecord]:
        return [r.copy() for r in self._records]

    def records_for_book(self, book_id: str) -> List[BorrowRecord]:
        return [r.copy() for r in self._records if r.book_id == book_id]

    def records_for_reader(self, reader_id: str) -> List[BorrowRecord]:
        return [r.copy() for r in self._records if r.reader_id == reader_id]

    def get_overdue_records(self) -> List[BorrowRecord]:
        today = self.current_date()
        return [r.copy() for r in self._records if r.is_overdue(today)]

    def list_reservations(self) -> List[Reservation]:
        return list(self._reservations)

    def reservers_of(self, book_id: str) -> List[str]:
        return [res.reader_id for res in self._reservations if res.book_id == book_id]

    # ------------------------- Clock ------------------------- #
    def current_date(self) -> date:
        if self._use_custom_time and self._custom_date is not None:
            return self._custom_date
        return self._today()

    @property
    def is_using_custom_time(self) -> bool:
        return self._use_custom_time

    @property
    def custom_date(self) -> Optional[date]:
        return self._custom_date if self._use_custom_time else None

    def set_current_date(self, new_date: date) -> None:
        self._custom_date = new_date
        self._use_custom_time = True
        logger.info("Simulated date set to %s", new_date.isoformat())
        self._emit_date_changed(new_date)
        self._emit_data_changed()

    def reset_to_real_time(self) -> None:
        self._use_custom_time = False
        self._custom_date = None
        logger.info("Switched back to the system date")
        self._emit_date_changed(self._today())
        self._emit_data_changed()

    # ------------------------- Statistics ------------------------- #
    def total_copies(self) -> int:
        return sum(book.total_copies for book in self._books.values())

    def available_copies(self) -> int:
        return sum(book.available_copies for book in self._books.values())

    def borrowed_copies(self) -> int:
        return self.total_copies() - self.available_copies()

    def category_statistics(self) -> Dict[BookCategory, int]:
        stats = {category: 0 for category in BookCategory}
        for book in self._books.values():
            stats[book.category] += book.total_copies
        return stats

    def category_count(self) -> int:
        return sum(1 for copies in self.category_statistics().values() if copies > 0)

    def reader_count(self) -> int:
        return len(self._readers)

    def get_statistics(self) -> Dict[str, Any]:
        """Everything the statistics view shows, in one dict."""
        return {
            "total_copies": self.total_copies(),
            "available_copies": self.available_copies(),
            "borrowed_copies": self.borrowed_copies(),
            "category_count": self.category_count(),
            "reader_count": self.reader_count(),
            "overdue_count": len(self.get_overdue_records()),
            "by_category": {category.label: copies for category, copies in self.category_statistics().items()},
        }

    # ------------------------- Bulk ------------------------- #
    def clear_all_data(self) -> None:
        self._clear()
        logger.info("All library data cleared")
        self._emit_data_changed()

    def _clear(self) -> None:
        self._books.clear()
        self._readers.clear()
        self._records.clear()
        self._reservations.clear()
        self._use_custom_time = False
        self._custom_date = None

    def restore(self, books: List[Book], readers: List[Reader], records: List[BorrowRecord],
                reservations: List[Reservation], custom_date: Optional[date]) -> None:
        """Replace the whole state in one step, re-deriving copy counters.

        Used by the loader. Each book's available count becomes its total
        minus its open loans, so a consistent snapshot round-trips unchanged.
        """
        self._clear()
        for book in books:
            self._books[book.id] = book
        for reader in readers:
            self._readers[reader.id] = reader
        self._records.extend(records)
        self._reservations.extend(reservations)

        open_loans: Dict[str, int] = {}
        for record in self._records:
            if not record.is_returned:
                open_loans[record.book_id] = open_loans.get(record.book_id, 0) + 1
        for book in self._books.values():
            derived = book.total_copies - open_loans.get(book.id, 0)
            book.available_copies = max(0, min(book.total_copies, derived))
            if book.available_copies > 0:
                book.reserved = False
        for reservation in self._reservations:
            book = self._books.get(reservation.book_id)
            if book is not None and book.available_copies == 0:
                book.mark_reserved()

        if custom_date is not None:
            self._custom_date = custom_date
            self._use_custom_time = True
        self._emit_data_changed()

    # ------------------------- Persistence ------------------------- #
    def save_to_file(self, path: Union[str, Path]) -> bool:
        try:
            storage.save_file(self, path)
        except OSError as exc:
            logger.error("Could not write library data to %s: %s", path, exc)
            return False
        return True

    def load_from_file(self, path: Union[str, Path]) -> bool:
        """Replace the state with the contents of ``path``.

        On failure the state is left empty.
        """
        try:
            storage.load_file(self, path)
        except (OSError, UnicodeDecodeError) as exc:
            logger.error("Could not read library data from %s: %s", path, exc)
            self.clear_all_data()
            return False
        return True

