import logging
from typing import Iterator, List, Optional, Sequence

from bookshelf.book import Book, MAX_RESULTS
from bookshelf.library import Library

logger = logging.getLogger(__name__)


class SearchResults(Sequence):
    """Copied books matched by a title search, in catalog order.

    An empty instance is falsy, which is how callers tell "no matches" apart
    from a usable subset.
    """

    def __init__(self, query: str, books: List[Book], total_matches: int) -> None:
        self.query = query
        self._books = books
        self.total_matches = total_matches

    @property
    def truncated(self) -> bool:
        return self.total_matches > len(self._books)

    def __getitem__(self, index):
        return self._books[index]

    def __len__(self) -> int:
        return len(self._books)

    def __iter__(self) -> Iterator[Book]:
        return iter(self._books)

    def filter_by_author(self, author: str) -> List[Book]:
        return filter_by_author(self, author)

    def filter_by_year(self, year: int) -> List[Book]:
        return filter_by_year(self, year)


def search_by_title(books: Sequence[Book], query: str, limit: int = MAX_RESULTS) -> SearchResults:
    """Case-insensitive title substring search.

    Matches past ``limit`` are dropped; ``total_matches`` still counts them.
    """
    needle = query.lower()
    matches: List[Book] = []
    total = 0
    for book in books:
        if needle in book.title.lower():
            total += 1
            if len(matches) < limit:
                matches.append(book.copy())
    if total > limit:
        logger.info(f"Title search {query!r} matched {total} books, keeping the first {limit}")
    return SearchResults(query, matches, total)


def filter_by_author(results: Sequence[Book], author: str) -> List[Book]:
    """Case-sensitive author substring filter over a search result subset."""
    return [book for book in results if author in book.author]


def filter_by_year(results: Sequence[Book], year: int) -> List[Book]:
    return [book for book in results if book.year == year]


class SearchService:
    """Runs title searches against a library and keeps the latest subset."""

    def __init__(self, library: Library, limit: int = MAX_RESULTS) -> None:
        self.library = library
        self.limit = limit
        self.last_results: Optional[SearchResults] = None

    def search_by_title(self, query: str) -> SearchResults:
        self.last_results = search_by_title(self.library.books, query, limit=self.limit)
        return self.last_results

    def filter_by_author(self, author: str) -> List[Book]:
        return filter_by_author(self._current(), author)

    def filter_by_year(self, year: int) -> List[Book]:
        return filter_by_year(self._current(), year)

    def invalidate(self) -> None:
        self.last_results = None

    def _current(self) -> SearchResults:
        if self.last_results is None:
            raise LookupError("No search results to filter. Search by title first.")
        return self.last_results
