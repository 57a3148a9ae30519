import os
import json
from typing import Any, Dict, Sequence
from rich.console import Console
from rich.table import Table
from rich.panel import Panel
from rich.markup import escape

from bookshelf.book import Book, printable

# Environment variable to control CLI output mode
# Allowed values: 'plain' (default), 'json', 'rich'
OUTPUT_MODE_ENV = "LIB_CLI_OUTPUT"

_console = Console()


def set_output_mode(mode: str) -> None:
    mode = (mode or "").lower().strip()
    if mode in {"plain", "json", "rich"}:
        os.environ[OUTPUT_MODE_ENV] = mode


def get_output_mode() -> str:
    return os.environ.get(OUTPUT_MODE_ENV, "plain").lower()


def _display_dict(book: Book) -> Dict[str, Any]:
    data = book.to_dict()
    data["title"] = printable(book.title)
    data["author"] = printable(book.author)
    return data


def format_book_line(book: Book) -> str:
    return f"ID: {book.id} | {printable(book.title)} by {printable(book.author)} ({book.year}) - {book.status}"


def format_book_details(book: Book) -> str:
    return (
        f"ID: {book.id}\n"
        f"Title: {printable(book.title)}\n"
        f"Author: {printable(book.author)}\n"
        f"Year: {book.year}\n"
        f"Status: {book.status}"
    )


def books_table(books: Sequence[Book], title: str) -> Table:
    table = Table(title=title, show_lines=True, header_style="bold cyan")
    table.add_column("ID", style="magenta", no_wrap=True, justify="right")
    table.add_column("Title", style="white")
    table.add_column("Author", style="white")
    table.add_column("Year", style="white", justify="right")
    table.add_column("Status", style="white")
    for b in books:
        status = "[yellow]Borrowed[/]" if b.borrowed else "[green]Available[/]"
        table.add_row(str(b.id), escape(printable(b.title)), escape(printable(b.author)), str(b.year), status)
    return table


def print_list_result(books: Sequence[Book], empty_message: str = "No books in the library.", title: str = "📚 Books") -> None:
    """Print a list of books in the current output mode.
    - plain: one 'ID: n | Title by Author (Year) - Status' line per book
    - json: JSON array of book objects
    - rich: Rich table
    """
    mode = get_output_mode()

    if not books:
        # Same empty message in every mode
        print(empty_message)
        return

    if mode == "json":
        print(json.dumps([_display_dict(b) for b in books], ensure_ascii=False))
    elif mode == "rich":
        _console.print(books_table(books, title))
    else:
        for b in books:
            print(format_book_line(b))


def print_book_result(book: Book, heading: str = "Book") -> None:
    mode = get_output_mode()
    if mode == "json":
        print(json.dumps(_display_dict(book), ensure_ascii=False))
    elif mode == "rich":
        _console.print(Panel.fit(escape(format_book_details(book)), title=heading, border_style="green"))
    else:
        print(format_book_details(book))


def print_stats_result(stats: Dict[str, Any]) -> None:
    """Print the count summary in the current output mode.
    - plain: three lines (total, available, borrowed)
    - json: JSON object
    - rich: Panel with the counts
    """
    mode = get_output_mode()

    total = stats.get("total", 0)
    available = stats.get("available", 0)
    borrowed = stats.get("borrowed", 0)

    if mode == "json":
        print(json.dumps({"total": total, "available": available, "borrowed": borrowed}, ensure_ascii=False))
    elif mode == "rich":
        content = (
            f"[bold]Total books:[/] {total}\n"
            f"[bold]Available books:[/] {available}\n"
            f"[bold]Borrowed books:[/] {borrowed}"
        )
        _console.print(Panel.fit(content, title="📊 Book Count", border_style="blue"))
    else:
        print(f"Total books in library: {total}")
        print(f"Available books: {available}")
        print(f"Borrowed books: {borrowed}")
