from __future__ import annotations

from enum import IntEnum


class BookCategory(IntEnum):
    """Shelf category. The integer value is what the data file stores."""

    SCIENCE = 0
    TECHNOLOGY = 1
    LITERATURE = 2
    HISTORY = 3
    ART = 4
    OTHER = 5

    @property
    def label(self) -> str:
        return self.name.title()

    @classmethod
    def parse(cls, raw: str) -> "BookCategory":
        """Accept a name ("science"), a label ("Science") or an index ("0")."""
        text = (raw or "").strip()
        if text.isdigit():
            return cls(int(text))
        try:
            return cls[text.upper()]
        except KeyError:
            raise ValueError(f"Unknown category: {raw}") from None


class BookStatus(IntEnum):
    AVAILABLE = 0
    BORROWED = 1
    RESERVED = 2
    LOST = 3

    @property
    def label(self) -> str:
        return self.name.title()


class Book:
    """A single catalog entry with its copy counters.

    ``status`` is never stored directly: it is projected from the counters and
    the ``reserved`` / ``lost`` flags every time it is read.
    """

    def __init__(self, id: str, title: str, author: str,
                 category: BookCategory = BookCategory.OTHER,
                 total_copies: int = 1, available_copies: int | None = None,
                 reserved: bool = False, lost: bool = False) -> None:
        if available_copies is None:
            available_copies = total_copies
        if total_copies < 0:
            raise ValueError("Total copies cannot be negative")
        if not 0 <= available_copies <= total_copies:
            raise ValueError(
                f"Available copies must be between 0 and {total_copies}, got {available_copies}"
            )
        self.id = id.strip()
        self.title = title.strip()
        self.author = author.strip()
        self.category = BookCategory(category)
        self.total_copies = total_copies
        self.available_copies = available_copies
        self.reserved = reserved
        self.lost = lost

    def __str__(self) -> str:  # pragma: no cover - string formatting trivial
        return f"{self.title} by {self.author} ({self.id})"

    def __repr__(self) -> str:  # pragma: no cover
        return (f"Book({self.id!r}, {self.title!r}, {self.author!r}, {self.category.name}, "
                f"{self.total_copies}, {self.available_copies})")

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Book):
            return NotImplemented
        return self.to_dict() == other.to_dict()

    @property
    def status(self) -> BookStatus:
        if self.lost:
            return BookStatus.LOST
        if self.available_copies > 0:
            return BookStatus.AVAILABLE
        if self.reserved:
            return BookStatus.RESERVED
        return BookStatus.BORROWED

    # Copy counters. Callers go through LibraryState, which also keeps the
    # borrow records in step. A successful borrow, return or reservation
    # replaces a Lost status.
    def take_copy(self) -> bool:
        if self.available_copies > 0:
            self.available_copies -= 1
            self.lost = False
            return True
        return False

    def put_back_copy(self) -> bool:
        if self.available_copies < self.total_copies:
            self.available_copies += 1
            self.reserved = False
            self.lost = False
            return True
        return False

    def mark_reserved(self) -> bool:
        if self.available_copies == 0 and self.status != BookStatus.RESERVED:
            self.reserved = True
            self.lost = False
            return True
        return False

    def assign(self, other: "Book") -> None:
        """Take over every field of ``other`` while keeping this object."""
        self.id = other.id
        self.title = other.title
        self.author = other.author
        self.category = other.category
        self.total_copies = other.total_copies
        self.available_copies = other.available_copies
        self.reserved = other.reserved
        self.lost = other.lost

    def copy(self) -> "Book":
        return Book.from_dict(self.to_dict())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "title": self.title,
            "author": self.author,
            "category": self.category.name,
            "total_copies": self.total_copies,
            "available_copies": self.available_copies,
            "status": self.status.name,
        }

    @staticmethod
    def from_dict(data: dict) -> "Book":
        status = data.get("status")
        if isinstance(status, str):
            status = BookStatus[status]
        return Book(
            id=data["id"],
            title=data["title"],
            author=data["author"],
            category=BookCategory[data["category"]] if isinstance(data.get("category"), str)
            else BookCategory(data.get("category", BookCategory.OTHER)),
            total_copies=data.get("total_copies", 1),
            available_copies=data.get("available_copies"),
            reserved=status == BookStatus.RESERVED,
            lost=status == BookStatus.LOST,
        )
