"""Bookshelf - Library Catalog Package

This package contains the catalog modules:
- Book records and store limits (book.py)
- Record store (library.py)
- Title search and result filters (search.py)
- Borrow/return desk (circulation.py)
- Text file persistence (storage.py)
- CLI interface (main.py) and HTTP API (api.py)
"""

__version__ = "1.0.0"
