"""Plain text persistence for the catalog.

One book per line, five semicolon separated fields::

    id;title;author;year;borrowed

``borrowed`` is written as ``0`` or ``1``. Backslash, semicolon, newline and
carriage return inside title/author are escaped so any text survives a save and
load cycle. Text without those characters is written verbatim.

Files are read and written as UTF-8 with ``surrogateescape``: bytes that are
not valid UTF-8 (a Latin-1 title, say) load as lone surrogates and are written
back unchanged.
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Iterable, List, Optional, Set

from bookshelf.book import Book, MAX_BOOKS
from bookshelf.exceptions import StorageError

logger = logging.getLogger(__name__)

FIELD_SEPARATOR = ";"
FIELD_COUNT = 5
ENCODING = "utf-8"
ENCODING_ERRORS = "surrogateescape"

_ESCAPES = {"\\": "\\\\", ";": "\\;", "\n": "\\n", "\r": "\\r"}
_UNESCAPES = {"\\": "\\", ";": ";", "n": "\n", "r": "\r"}
_INTEGER = re.compile(r"-?[0-9]+")


@dataclass
class LoadResult:
    """Outcome of reading a data file."""

    books: List[Book] = field(default_factory=list)
    found: bool = True
    # False when the file exists but could not be opened or read
    readable: bool = True
    # Lines left unread because parsing stopped early (bad line included)
    skipped_lines: int = 0
    # 1-based line number of the first malformed record, if any
    first_bad_line: Optional[int] = None

    @property
    def count(self) -> int:
        return len(self.books)

    @property
    def complete(self) -> bool:
        """True when every record in the file made it into ``books``."""
        return self.readable and self.skipped_lines == 0


def escape_field(text: str) -> str:
    return "".join(_ESCAPES.get(ch, ch) for ch in text)


def split_fields(line: str) -> List[str]:
    """Split a record line on unescaped separators and decode escapes."""
    fields: List[str] = []
    current: List[str] = []
    chars = iter(line)
    for ch in chars:
        if ch == "\\":
            nxt = next(chars, None)
            if nxt is None:
                current.append(ch)
            elif nxt in _UNESCAPES:
                current.append(_UNESCAPES[nxt])
            else:
                # Unknown sequence, keep it literally
                current.append(ch)
                current.append(nxt)
        elif ch == FIELD_SEPARATOR:
            fields.append("".join(current))
            current = []
        else:
            current.append(ch)
    fields.append("".join(current))
    return fields


def parse_line(line: str) -> Optional[Book]:
    """Parse one record line. Returns None when the line does not have the record shape.

    id and year must be plain decimal integers (an optional leading minus,
    nothing else) and the flag must be exactly ``0`` or ``1``.
    """
    fields = split_fields(line)
    if len(fields) != FIELD_COUNT:
        return None
    raw_id, title, author, raw_year, raw_flag = fields
    if not (_INTEGER.fullmatch(raw_id) and _INTEGER.fullmatch(raw_year)):
        return None
    book_id = int(raw_id)
    if book_id < 1 or raw_flag not in ("0", "1"):
        return None
    return Book(id=book_id, title=title, author=author, year=int(raw_year), borrowed=raw_flag == "1")


def format_line(book: Book) -> str:
    return FIELD_SEPARATOR.join([
        str(book.id),
        escape_field(book.title),
        escape_field(book.author),
        str(book.year),
        "1" if book.borrowed else "0",
    ])


def _count_records(lines: List[str]) -> int:
    return sum(1 for line in lines if line.strip())


def load_books(path: str, capacity: int = MAX_BOOKS) -> LoadResult:
    """Read books from ``path``.

    A missing or unreadable file gives an empty result. Reading stops at the
    first malformed line, at a repeated id, or once ``capacity`` books are
    loaded; whatever is left is counted in ``skipped_lines``.
    """
    try:
        with open(path, "r", encoding=ENCODING, errors=ENCODING_ERRORS, newline="") as f:
            lines = f.read().split("\n")
    except FileNotFoundError:
        logger.info(f"Data file {path} not found, starting with an empty catalog")
        return LoadResult(found=False)
    except OSError as e:
        logger.warning(f"Could not read data file {path}: {e}")
        return LoadResult(readable=False)

    result = LoadResult()
    seen_ids: Set[int] = set()
    for index, raw in enumerate(lines):
        line = raw[:-1] if raw.endswith("\r") else raw
        if not line.strip():
            continue
        if result.count >= capacity:
            remaining = _count_records(lines[index:])
            result.skipped_lines = remaining
            logger.warning(f"{path}: capacity of {capacity} books reached, {remaining} line(s) not loaded")
            break
        book = parse_line(line)
        if book is None or book.id in seen_ids:
            remaining = _count_records(lines[index:])
            result.skipped_lines = remaining
            result.first_bad_line = index + 1
            reason = "malformed record" if book is None else f"duplicate id {book.id}"
            logger.warning(
                f"{path}:{index + 1}: {reason}, stopped loading ({remaining} line(s) skipped)"
            )
            break
        seen_ids.add(book.id)
        result.books.append(book)

    logger.info(f"Loaded {result.count} books from {path}")
    return result


def save_books(path: str, books: Iterable[Book]) -> None:
    """Overwrite ``path`` with one line per book.

    The text is encoded before the file is opened, so a record that cannot be
    written leaves the old file in place.
    """
    books = list(books)
    text = "".join(format_line(book) + "\n" for book in books)
    try:
        data = text.encode(ENCODING, ENCODING_ERRORS)
    except UnicodeEncodeError as e:
        logger.error(f"Cannot encode catalog for {path}: {e}")
        raise StorageError(f"Could not save catalog to {path}: {e}") from e
    try:
        with open(path, "wb") as f:
            f.write(data)
    except OSError as e:
        logger.error(f"Error writing {path}: {e}")
        raise StorageError(f"Could not save catalog to {path}: {e}") from e
    logger.info(f"Saved {len(books)} books to {path}")
