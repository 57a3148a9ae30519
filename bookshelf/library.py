import logging
from typing import Dict, Iterable, List, Optional

from bookshelf.book import Book, MAX_BOOKS
from bookshelf.exceptions import BookNotFoundError, CapacityExceededError, IncompleteLoadError
from bookshelf.storage import LoadResult, load_books, save_books

logger = logging.getLogger(__name__)


def next_id(books: Iterable[Book]) -> int:
    """Return 1 for an empty collection, otherwise one past the highest id."""
    return max((book.id for book in books), default=0) + 1


class Library:
    """Owns the book collection and id generation for one session."""

    def __init__(self, data_file: Optional[str] = None, capacity: int = MAX_BOOKS) -> None:
        self.data_file = data_file
        self.capacity = capacity
        self.books: List[Book] = []
        self._next_id = 1
        self.last_load: Optional[LoadResult] = None
        if data_file:
            self.load(data_file)

    # ------------------------- Core operations ------------------------- #
    def add_book(self, title: str, author: str, year: int) -> Book:
        """Append a new available book and return it."""
        if self.is_full():
            raise CapacityExceededError(self.capacity)
        book = Book(id=self._next_id, title=title, author=author, year=year)
        self._next_id += 1
        self.books.append(book)
        logger.info(f"Added book {book.id}: {book.title!r} by {book.author!r}")
        return book

    def index_of(self, book_id: int) -> int:
        for index, book in enumerate(self.books):
            if book.id == book_id:
                return index
        raise BookNotFoundError(book_id)

    def find_book(self, book_id: int) -> Optional[Book]:
        try:
            return self.books[self.index_of(book_id)]
        except BookNotFoundError:
            return None

    def remove_book(self, book_id: int, confirmed: bool = True) -> bool:
        """Remove a book by id.

        Nothing happens unless ``confirmed`` is true. Survivors keep their
        relative order. Raises BookNotFoundError when the id is unknown.
        """
        index = self.index_of(book_id)
        if not confirmed:
            logger.info(f"Removal of book {book_id} cancelled")
            return False
        removed = self.books.pop(index)
        logger.info(f"Removed book {removed.id}: {removed.title!r}")
        return True

    def list_books(self) -> List[Book]:
        return list(self.books)

    def count_summary(self) -> Dict[str, int]:
        borrowed = sum(1 for book in self.books if book.borrowed)
        return {
            "total": len(self.books),
            "available": len(self.books) - borrowed,
            "borrowed": borrowed,
        }

    def is_full(self) -> bool:
        return len(self.books) >= self.capacity

    @property
    def next_id(self) -> int:
        """Id the next added book will receive."""
        return self._next_id

    def __len__(self) -> int:
        return len(self.books)

    # ------------------------- Persistence ------------------------- #
    def load(self, data_file: Optional[str] = None) -> LoadResult:
        """Replace the collection with the contents of the data file."""
        path = data_file or self.data_file
        if not path:
            raise ValueError("No data file configured.")
        result = load_books(path, capacity=self.capacity)
        self.data_file = path
        self.books = result.books
        # Never hand out an id this process already used
        self._next_id = max(self._next_id, next_id(self.books))
        self.last_load = result
        return result

    def save(self, data_file: Optional[str] = None, force: bool = False) -> None:
        """Write the collection to the data file.

        Raises IncompleteLoadError instead of overwriting the file the last load
        could not fully read, unless ``force`` is given.
        """
        path = data_file or self.data_file
        if not path:
            raise ValueError("No data file configured.")
        last = self.last_load
        if not force and last is not None and not last.complete and path == self.data_file:
            logger.warning(f"Refusing to overwrite partly loaded {path}")
            raise IncompleteLoadError(path, last.skipped_lines)
        save_books(path, self.books)
        if last is not None and not last.complete and path == self.data_file:
            # The file now holds exactly this collection
            self.last_load = LoadResult(books=self.books)
