"""Library App - core package

This package contains:
- Domain types (book.py, reader.py, borrow_record.py)
- Library state engine (library.py)
- Data file format (storage.py)
- Settings store (settings_store.py)
- CLI interface (main.py, ui_helpers.py)
"""
