from __future__ import annotations

from datetime import date, timedelta
from typing import NamedTuple, Optional

LOAN_PERIOD_DAYS = 30


class BorrowRecord:
    """One loan of one copy. Only ``return_date`` changes after creation."""

    __slots__ = ("_reader_id", "_book_id", "_borrow_date", "_due_date", "return_date")

    def __init__(self, reader_id: str, book_id: str, borrow_date: date,
                 due_date: Optional[date] = None, return_date: Optional[date] = None) -> None:
        self._reader_id = reader_id
        self._book_id = book_id
        self._borrow_date = borrow_date
        self._due_date = due_date or borrow_date + timedelta(days=LOAN_PERIOD_DAYS)
        self.return_date = return_date

    @property
    def reader_id(self) -> str:
        return self._reader_id

    @property
    def book_id(self) -> str:
        return self._book_id

    @property
    def borrow_date(self) -> date:
        return self._borrow_date

    @property
    def due_date(self) -> date:
        return self._due_date

    @property
    def is_returned(self) -> bool:
        return self.return_date is not None

    def is_overdue(self, today: date) -> bool:
        return not self.is_returned and self.due_date < today

    def overdue_days(self, today: date) -> int:
        """Days past the due date as of ``today``; 0 if returned or not yet due."""
        if not self.is_overdue(today):
            return 0
        return (today - self.due_date).days

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, BorrowRecord):
            return NotImplemented
        return self.to_dict() == other.to_dict()

    def __repr__(self) -> str:  # pragma: no cover
        return (f"BorrowRecord({self.reader_id!r}, {self.book_id!r}, {self.borrow_date}, "
                f"{self.due_date}, {self.return_date})")

    def copy(self) -> "BorrowRecord":
        return BorrowRecord(self.reader_id, self.book_id, self.borrow_date, self.due_date, self.return_date)

    def to_dict(self) -> dict:
        return {
            "reader_id": self.reader_id,
            "book_id": self.book_id,
            "borrow_date": self.borrow_date.isoformat(),
            "due_date": self.due_date.isoformat(),
            "return_date": self.return_date.isoformat() if self.return_date else None,
        }


class Reservation(NamedTuple):
    reader_id: str
    book_id: str
