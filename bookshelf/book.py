from __future__ import annotations

MAX_BOOKS = 800
MAX_RESULTS = 100
MAX_TITLE_LEN = 199
MAX_AUTHOR_LEN = 199


def printable(text: str) -> str:
    """Return ``text`` with bytes that were not valid UTF-8 shown as U+FFFD."""
    try:
        return text.encode("utf-8", "surrogateescape").decode("utf-8", "replace")
    except UnicodeEncodeError:
        return text.encode("utf-8", "replace").decode("utf-8")


class Book:
    """Represents a single catalog entry."""

    def __init__(self, id: int, title: str, author: str, year: int, borrowed: bool = False) -> None:
        self.id = int(id)
        # Same bounds at runtime and on load
        self.title = title[:MAX_TITLE_LEN]
        self.author = author[:MAX_AUTHOR_LEN]
        self.year = int(year)
        self.borrowed = bool(borrowed)

    def __str__(self) -> str:  # pragma: no cover - string formatting trivial
        return f"{self.title} by {self.author} ({self.year})"

    def __repr__(self) -> str:
        return (
            f"Book(id={self.id!r}, title={self.title!r}, author={self.author!r}, "
            f"year={self.year!r}, borrowed={self.borrowed!r})"
        )

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Book):
            return NotImplemented
        return self.to_dict() == other.to_dict()

    def __hash__(self) -> int:
        # Equal books share an id
        return hash(self.id)

    @property
    def status(self) -> str:
        return "Borrowed" if self.borrowed else "Available"

    def copy(self) -> "Book":
        return Book(self.id, self.title, self.author, self.year, self.borrowed)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "title": self.title,
            "author": self.author,
            "year": self.year,
            "borrowed": self.borrowed,
        }

    @staticmethod
    def from_dict(data: dict) -> "Book":
        return Book(
            id=data["id"],
            title=data["title"],
            author=data["author"],
            year=data["year"],
            borrowed=data.get("borrowed", False),
        )
