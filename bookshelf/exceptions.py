"""Errors raised by the catalog core."""

from bookshelf.book import printable


class LibraryError(Exception):
    """Base class for catalog errors."""


class CapacityExceededError(LibraryError):
    def __init__(self, capacity: int) -> None:
        super().__init__(f"Library is full ({capacity} books). Cannot add more books.")
        self.capacity = capacity


class BookNotFoundError(LibraryError, LookupError):
    def __init__(self, book_id: int) -> None:
        super().__init__(f"Book with ID {book_id} not found.")
        self.book_id = book_id


class AlreadyBorrowedError(LibraryError, ValueError):
    def __init__(self, book) -> None:
        super().__init__(f'The book "{printable(book.title)}" is already borrowed.')
        self.book = book


class NotBorrowedError(LibraryError, ValueError):
    def __init__(self, book) -> None:
        super().__init__(f'The book "{printable(book.title)}" is not currently borrowed.')
        self.book = book


class StorageError(LibraryError, OSError):
    """The data file could not be written."""


class IncompleteLoadError(LibraryError):
    """Saving would drop records that were never loaded from the file."""

    def __init__(self, path: str, skipped_lines: int) -> None:
        if skipped_lines:
            detail = f"{path} was only partly loaded ({skipped_lines} line(s) not read)"
        else:
            detail = f"{path} could not be read"
        super().__init__(f"{detail}; refusing to overwrite it.")
        self.path = path
        self.skipped_lines = skipped_lines
