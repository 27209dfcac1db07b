from datetime import date

import pytest

from librarian.book import Book, BookCategory
from librarian.library import LibraryState
from librarian.reader import Reader

TODAY = date(2024, 3, 1)


@pytest.fixture(autouse=True)
def _isolated_env(tmp_path, monkeypatch):
    # every test starts in plain mode with its own app data dir
    monkeypatch.setenv("LIB_CLI_OUTPUT", "plain")
    monkeypatch.setattr("librarian.config.settings.data_dir", str(tmp_path / "appdata"))


@pytest.fixture
def lib():
    """A state engine whose system clock is pinned to TODAY."""
    return LibraryState(today=lambda: TODAY)


@pytest.fixture
def stocked(lib):
    lib.add_book(Book("B0001", "Dune", "Frank Herbert", BookCategory.LITERATURE, 3, 3))
    lib.add_book(Book("B0002", "A Brief History of Time", "Stephen Hawking", BookCategory.SCIENCE, 1, 1))
    lib.add_book(Book("B0003", "The Pragmatic Programmer", "Andrew Hunt", BookCategory.TECHNOLOGY, 2, 2))
    lib.add_reader(Reader("R1001", "Ada Lovelace", "Mathematics", "13800000001", register_date=TODAY))
    lib.add_reader(Reader("R1002", "Alan Turing", "Computer Science", "13800000002", register_date=TODAY))
    return lib


@pytest.fixture
def data_file(tmp_path):
    return tmp_path / "library_data.lib"


@pytest.fixture
def today():
    return TODAY
