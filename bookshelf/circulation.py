import logging
from typing import List

from bookshelf.book import Book
from bookshelf.exceptions import AlreadyBorrowedError, NotBorrowedError
from bookshelf.library import Library

logger = logging.getLogger(__name__)


class CirculationDesk:
    """Borrow and return books held by a library."""

    def __init__(self, library: Library) -> None:
        self.library = library

    def borrow_book(self, book_id: int) -> Book:
        """Mark an available book as borrowed.

        Raises BookNotFoundError or AlreadyBorrowedError, leaving the book untouched.
        """
        book = self.library.books[self.library.index_of(book_id)]
        if book.borrowed:
            raise AlreadyBorrowedError(book)
        book.borrowed = True
        logger.info(f"Book {book.id} borrowed")
        return book

    def return_book(self, book_id: int) -> Book:
        book = self.library.books[self.library.index_of(book_id)]
        if not book.borrowed:
            raise NotBorrowedError(book)
        book.borrowed = False
        logger.info(f"Book {book.id} returned")
        return book

    def list_available(self) -> List[Book]:
        return [book for book in self.library.books if not book.borrowed]

    def list_borrowed(self) -> List[Book]:
        return [book for book in self.library.books if book.borrowed]
