from datetime import date, timedelta

import pytest

from librarian.book import Book, BookCategory, BookStatus
from librarian.borrow_record import BorrowRecord, Reservation
from librarian.library import LibraryState
from librarian.reader import Reader


def assert_counters_consistent(lib):
    for book in lib.list_books():
        assert 0 <= book.available_copies <= book.total_copies


def test_add_list_and_find(lib):
    assert lib.list_books() == []

    book = Book("B0001", "Ulysses", "James Joyce", BookCategory.LITERATURE, 2, 2)
    assert lib.add_book(book) is True

    assert lib.find_book("B0001") is not None
    assert len(lib.list_books()) == 1
    assert lib.list_books()[0].title == "Ulysses"
    assert lib.find_book("missing") is None


def test_add_duplicate_id(lib):
    book = Book("B0001", "Test Book", "Test Author")
    assert lib.add_book(book) is True
    assert lib.add_book(Book("B0001", "Other", "Someone")) is False
    assert len(lib.list_books()) == 1
    assert lib.find_book("B0001").title == "Test Book"


def test_add_stores_a_copy(lib):
    book = Book("B0001", "Original", "Author")
    lib.add_book(book)
    book.title = "Changed outside"
    assert lib.find_book("B0001").title == "Original"


def test_remove(lib):
    lib.add_book(Book("B0001", "Test", "Author"))
    assert lib.remove_book("B0001") is True
    assert lib.remove_book("B0001") is False
    assert lib.find_book("B0001") is None


def test_update_book_keeps_stored_object(lib):
    lib.add_book(Book("B0001", "Old Title", "Old Author", BookCategory.ART, 2, 2))
    stored = lib.find_book("B0001")

    assert lib.update_book(Book("B0001", "New Title", "New Author", BookCategory.HISTORY, 4, 4)) is True
    assert stored is lib.find_book("B0001")
    assert stored.title == "New Title"
    assert stored.author == "New Author"
    assert stored.category == BookCategory.HISTORY
    assert stored.total_copies == 4


def test_update_book_not_found(lib):
    assert lib.update_book(Book("nope", "T", "A")) is False
    assert lib.list_books() == []


def test_update_book_carries_lost_flag(lib):
    lib.add_book(Book("B0001", "Title", "Author", total_copies=1))
    assert lib.update_book(Book("B0001", "Title", "Author", total_copies=1, lost=True)) is True
    assert lib.find_book("B0001").status == BookStatus.LOST


def test_search_books(stocked):
    titles = lambda books: sorted(b.id for b in books)

    assert titles(stocked.search_books("dune")) == ["B0001"]
    assert titles(stocked.search_books("HAWKING")) == ["B0002"]
    assert titles(stocked.search_books("hawking", by_author=False)) == []
    assert titles(stocked.search_books("dune", by_title=False)) == []
    assert titles(stocked.search_books("", BookCategory.SCIENCE)) == ["B0002"]
    assert titles(stocked.search_books("")) == ["B0001", "B0002", "B0003"]
    assert titles(stocked.search_books("the", BookCategory.TECHNOLOGY)) == ["B0003"]
    assert titles(stocked.search_books("the", None)) == ["B0003"]
    assert titles(stocked.search_books("dune", BookCategory.ART)) == []


def test_reader_crud_and_search(stocked, today):
    assert stocked.add_reader(Reader("R1001", "Dup", register_date=today)) is False
    assert stocked.reader_count() == 2

    assert [r.id for r in stocked.search_readers("turing")] == ["R1002"]
    assert [r.id for r in stocked.search_readers("r1001")] == ["R1001"]
    assert [r.id for r in stocked.search_readers("mathem")] == ["R1001"]
    assert [r.id for r in stocked.search_readers("0002")] == ["R1002"]
    assert len(stocked.search_readers("")) == 2

    assert stocked.update_reader(Reader("R1002", "A. M. Turing", "CS", "1", register_date=today)) is True
    assert stocked.find_reader("R1002").name == "A. M. Turing"
    assert stocked.update_reader(Reader("R9999", "Ghost")) is False

    assert stocked.remove_reader("R1002") is True
    assert stocked.remove_reader("R1002") is False
    assert stocked.find_reader("R1002") is None


def test_update_reader_keeps_stored_object(stocked, today):
    stored = stocked.find_reader("R1001")
    replacement = Reader("R1001", "Ada King", "Analytics", "555", register_date=date(2023, 12, 10), is_valid=False)

    assert stocked.update_reader(replacement) is True
    assert stocked.find_reader("R1001") is stored
    assert stored is not replacement
    assert stored == replacement


def test_borrow_until_exhausted(lib, today):
    lib.add_book(Book("B0001", "T", "A", BookCategory.SCIENCE, 3, 3))

    assert lib.borrow_book("R1", "B0001") is True
    book = lib.find_book("B0001")
    assert book.available_copies == 2
    assert book.status == BookStatus.AVAILABLE
    records = lib.list_records()
    assert len(records) == 1
    assert records[0].borrow_date == today
    assert records[0].due_date == today + timedelta(days=30)
    assert not records[0].is_returned

    assert lib.borrow_book("R1", "B0001") is True
    assert lib.borrow_book("R1", "B0001") is True
    assert book.available_copies == 0
    assert book.status == BookStatus.BORROWED

    assert lib.borrow_book("R1", "B0001") is False
    assert len(lib.list_records()) == 3
    assert_counters_consistent(lib)


def test_borrow_unknown_book(lib):
    assert lib.borrow_book("R1", "missing") is False
    assert lib.list_records() == []


def test_borrow_with_explicit_date(stocked):
    on = date(2023, 12, 1)
    assert stocked.borrow_book("R1001", "B0001", on) is True
    record = stocked.records_for_book("B0001")[0]
    assert record.borrow_date == on
    assert record.due_date == date(2023, 12, 31)


def test_borrow_then_return_restores_availability(stocked, today):
    before = stocked.find_book("B0001").available_copies
    stocked.borrow_book("R1001", "B0001")
    assert stocked.return_book("R1001", "B0001") is True

    assert stocked.find_book("B0001").available_copies == before
    returned = [r for r in stocked.list_records() if r.is_returned]
    assert len(returned) == 1
    assert returned[0].return_date == today


def test_return_without_open_loan_changes_nothing(stocked):
    stocked.borrow_book("R1001", "B0001")
    book = stocked.find_book("B0001")
    assert book.available_copies == 2

    # the book has a copy out, but not to this reader
    assert stocked.return_book("R1002", "B0001") is False
    assert book.available_copies == 2
    assert not any(r.is_returned for r in stocked.list_records())


def test_return_when_all_copies_on_shelf(stocked):
    assert stocked.return_book("R1001", "B0001") is False
    assert stocked.return_book("R1001", "missing") is False


def test_return_closes_oldest_open_loan(stocked):
    first, second = date(2024, 1, 1), date(2024, 2, 1)
    stocked.borrow_book("R1001", "B0001", first)
    stocked.borrow_book("R1001", "B0001", second)

    stocked.return_book("R1001", "B0001", date(2024, 2, 15))
    records = stocked.records_for_reader("R1001")
    assert records[0].return_date == date(2024, 2, 15)
    assert records[1].return_date is None


def test_reserve_requires_no_copies(stocked):
    assert stocked.reserve_book("R1001", "B0002") is False
    assert stocked.list_reservations() == []

    stocked.borrow_book("R1001", "B0002")
    assert stocked.reserve_book("R1002", "B0002") is True
    assert stocked.find_book("B0002").status == BookStatus.RESERVED
    assert stocked.list_reservations() == [Reservation("R1002", "B0002")]
    assert stocked.reservers_of("B0002") == ["R1002"]

    # already reserved
    assert stocked.reserve_book("R1001", "B0002") is False
    assert len(stocked.list_reservations()) == 1

    assert stocked.reserve_book("R1001", "missing") is False


def test_return_clears_reserved_status_but_keeps_reservation(stocked):
    stocked.borrow_book("R1001", "B0002")
    stocked.reserve_book("R1002", "B0002")

    assert stocked.return_book("R1001", "B0002") is True
    assert stocked.find_book("B0002").status == BookStatus.AVAILABLE
    assert stocked.list_reservations() == [Reservation("R1002", "B0002")]


def test_overdue_follows_simulated_clock(stocked, today):
    stocked.borrow_book("R1001", "B0001")
    stocked.borrow_book("R1002", "B0003")
    stocked.return_book("R1002", "B0003")
    assert stocked.get_overdue_records() == []

    due = today + timedelta(days=30)
    stocked.set_current_date(due)
    assert stocked.get_overdue_records() == []

    books_before = [b.to_dict() for b in stocked.list_books()]
    stocked.set_current_date(due + timedelta(days=1))
    overdue = stocked.get_overdue_records()
    assert [(r.reader_id, r.book_id) for r in overdue] == [("R1001", "B0001")]
    assert overdue[0].overdue_days(stocked.current_date()) == 1
    assert [b.to_dict() for b in stocked.list_books()] == books_before


def test_clock_override_and_reset(lib, today):
    assert lib.current_date() == today
    assert lib.is_using_custom_time is False
    assert lib.custom_date is None

    lib.set_current_date(date(2030, 1, 1))
    assert lib.current_date() == date(2030, 1, 1)
    assert lib.is_using_custom_time is True
    assert lib.custom_date == date(2030, 1, 1)

    lib.reset_to_real_time()
    assert lib.current_date() == today
    assert lib.is_using_custom_time is False


def test_clock_notifications(lib, today):
    events = []
    lib.on_current_date_changed(lambda d: events.append(("date", d)))
    lib.on_data_changed(lambda: events.append(("data", None)))

    lib.set_current_date(date(2030, 1, 1))
    lib.reset_to_real_time()

    assert events == [
        ("date", date(2030, 1, 1)),
        ("data", None),
        ("date", today),
        ("data", None),
    ]


def test_data_changed_only_on_success(lib):
    calls = []
    unsubscribe = lib.on_data_changed(lambda: calls.append(1))

    lib.add_book(Book("B0001", "T", "A", total_copies=1))
    lib.add_book(Book("B0001", "T", "A"))
    lib.borrow_book("R1", "B0001")
    lib.borrow_book("R1", "B0001")
    lib.remove_book("missing")
    assert len(calls) == 2

    unsubscribe()
    lib.remove_book("B0001")
    assert len(calls) == 2


def test_statistics(stocked):
    stocked.borrow_book("R1001", "B0001")
    stocked.borrow_book("R1002", "B0002")

    assert stocked.total_copies() == 6
    assert stocked.available_copies() == 4
    assert stocked.borrowed_copies() == 2
    assert stocked.category_count() == 3
    assert stocked.reader_count() == 2

    by_category = stocked.category_statistics()
    assert set(by_category) == set(BookCategory)
    assert by_category[BookCategory.LITERATURE] == 3
    assert by_category[BookCategory.ART] == 0

    stats = stocked.get_statistics()
    assert stats["total_copies"] == 6
    assert stats["borrowed_copies"] == 2
    assert stats["overdue_count"] == 0
    assert stats["by_category"]["Science"] == 1


def test_clear_all_data(stocked):
    stocked.borrow_book("R1001", "B0002")
    stocked.reserve_book("R1002", "B0002")
    stocked.set_current_date(date(2030, 1, 1))
    calls = []
    stocked.on_data_changed(lambda: calls.append(1))

    stocked.clear_all_data()

    assert stocked.list_books() == []
    assert stocked.list_readers() == []
    assert stocked.list_records() == []
    assert stocked.list_reservations() == []
    assert stocked.is_using_custom_time is False
    assert calls == [1]


def test_add_borrow_record_leaves_counters(stocked):
    record = BorrowRecord("R1001", "B0001", date(2024, 1, 1))
    stocked.add_borrow_record(record)
    assert stocked.find_book("B0001").available_copies == 3
    assert stocked.list_records() == [record]


def test_records_are_returned_as_copies(stocked):
    stocked.borrow_book("R1001", "B0001")
    stocked.list_records()[0].return_date = date(2024, 1, 1)
    assert stocked.list_records()[0].return_date is None


def test_counters_hold_across_mixed_operations(stocked):
    ops = [
        lambda: stocked.borrow_book("R1001", "B0002"),
        lambda: stocked.borrow_book("R1002", "B0002"),
        lambda: stocked.reserve_book("R1002", "B0002"),
        lambda: stocked.return_book("R1002", "B0002"),
        lambda: stocked.return_book("R1001", "B0002"),
        lambda: stocked.return_book("R1001", "B0002"),
        lambda: stocked.borrow_book("R1001", "B0003"),
    ]
    for op in ops:
        op()
        assert_counters_consistent(stocked)


def test_default_clock_is_system_date():
    assert LibraryState().current_date() == date.today()


@pytest.mark.parametrize("total, available", [(2, 3), (1, -1), (-1, 0)])
def test_book_rejects_bad_counters(total, available):
    with pytest.raises(ValueError):
        Book("B1", "T", "A", BookCategory.OTHER, total, available)
