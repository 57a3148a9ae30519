import logging
import os
import subprocess
import sys
from typing import Optional

import typer
from rich import box
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.prompt import Confirm, IntPrompt, Prompt
from rich.table import Table

from bookshelf.circulation import CirculationDesk
from bookshelf.config import settings
from bookshelf.book import printable
from bookshelf.exceptions import IncompleteLoadError, LibraryError, StorageError
from bookshelf.library import Library
from bookshelf.search import SearchService
from bookshelf.ui_helpers import (
    books_table,
    format_book_details,
    print_book_result,
    print_list_result,
    print_stats_result,
    set_output_mode,
)

logging.basicConfig(level=settings.log_level)
logger = logging.getLogger(__name__)

APP_NAME = settings.app_name

console = Console()


class LibrarySession:
    """One interactive session: a library plus the search and borrow desks bound to it."""

    _data_file: Optional[str] = None
    _force: bool = False

    def __init__(self, data_file: Optional[str] = None) -> None:
        self.data_file = data_file or self.current_data_file()
        self.library = Library(capacity=settings.max_books)
        self.search = SearchService(self.library)
        self.desk = CirculationDesk(self.library)
        logger.debug(f"Session opened on {self.data_file}")
        self.reload()

    @classmethod
    def use_data_file(cls, data_file: Optional[str]) -> None:
        cls._data_file = data_file

    @classmethod
    def current_data_file(cls) -> str:
        return cls._data_file or settings.data_file

    @classmethod
    def use_force(cls, force: bool) -> None:
        cls._force = force

    @property
    def fully_loaded(self) -> bool:
        return self.library.last_load is None or self.library.last_load.complete

    def reload(self) -> None:
        result = self.library.load(self.data_file)
        self.search.invalidate()
        if not result.readable:
            print(f"Warning: could not read {self.data_file}; no books were loaded.", file=sys.stderr)
        elif result.skipped_lines:
            print(
                f"Warning: stopped reading {self.data_file} at line {result.first_bad_line or '?'}; "
                f"{result.skipped_lines} line(s) were not loaded.",
                file=sys.stderr,
            )

    def save(self, force: Optional[bool] = None) -> bool:
        """Write the catalog back; a partly loaded file is only overwritten when forced."""
        try:
            self.library.save(self.data_file, force=self._force if force is None else force)
            return True
        except IncompleteLoadError as e:
            print(f"Error: {e} Use --force to save anyway.")
            return False
        except StorageError as e:
            print(f"Error: {e}")
            return False


# --- Typer CLI Application ---
app = typer.Typer(help="Library catalog CLI")


@app.callback()
def _global_options(
    output: Optional[str] = typer.Option(
        None,
        "--output",
        "-o",
        help="Output format: plain | json | rich (default: plain)",
    ),
    data_file: Optional[str] = typer.Option(
        None,
        "--data-file",
        "-d",
        help="Catalog data file (default: LIBRARY_DATA_FILE or books.txt)",
    ),
    force: bool = typer.Option(
        False,
        "--force",
        "-f",
        help="Save even if the data file could not be fully loaded (unread lines are lost)",
    ),
):
    """Global CLI options (output mode, data file, forced save)."""
    if output:
        set_output_mode(output)
    LibrarySession.use_data_file(data_file)
    LibrarySession.use_force(force)


@app.command("list")
def cli_list():
    """List every book in the catalog."""
    session = LibrarySession()
    print_list_result(session.library.list_books(), title="📚 All Books")


@app.command("available")
def cli_available():
    """List books that can be borrowed."""
    session = LibrarySession()
    print_list_result(
        session.desk.list_available(),
        empty_message="No books are currently available for borrowing.",
        title="📗 Available Books",
    )


@app.command("borrowed")
def cli_borrowed():
    """List books that are currently borrowed."""
    session = LibrarySession()
    print_list_result(
        session.desk.list_borrowed(),
        empty_message="No books are currently borrowed.",
        title="📕 Borrowed Books",
    )


@app.command("stats")
def cli_stats():
    """Show total, available and borrowed counts."""
    session = LibrarySession()
    print_stats_result(session.library.count_summary())


@app.command("find")
def cli_find(book_id: int):
    """Show the details of a book by ID."""
    session = LibrarySession()
    book = session.library.find_book(book_id)
    if book:
        print_book_result(book, heading="🔍 Book Found")
    else:
        print(f"Book with ID {book_id} not found.")


@app.command("add")
def cli_add(title: str, author: str, year: int):
    """Add a book to the catalog."""
    session = LibrarySession()
    try:
        book = session.library.add_book(title, author, year)
    except LibraryError as e:
        print(f"Error: {e}")
        return
    if session.save():
        print(f"Book added successfully! (ID: {book.id})")


@app.command("remove")
def cli_remove(
    book_id: int,
    yes: bool = typer.Option(False, "--yes", "-y", help="Remove without asking for confirmation"),
):
    """Remove a book by ID (asks for confirmation)."""
    session = LibrarySession()
    book = session.library.find_book(book_id)
    if not book:
        print(f"Book with ID {book_id} not found.")
        return
    print(f'Book was found: "{printable(book.title)}" by {printable(book.author)}')
    confirmed = yes or typer.confirm("Are you sure you want to remove this book?", default=False)
    if not session.library.remove_book(book_id, confirmed=confirmed):
        print("Book removal canceled.")
        return
    if session.save():
        print(f"Book with ID {book_id} removed successfully.")


@app.command("borrow")
def cli_borrow(book_id: int):
    """Borrow a book by ID."""
    session = LibrarySession()
    try:
        book = session.desk.borrow_book(book_id)
    except LibraryError as e:
        print(e)
        return
    if session.save():
        print(f'The book "{printable(book.title)}" by {printable(book.author)} is borrowed successfully.')


@app.command("return")
def cli_return(book_id: int):
    """Return a borrowed book by ID."""
    session = LibrarySession()
    try:
        book = session.desk.return_book(book_id)
    except LibraryError as e:
        print(e)
        return
    if session.save():
        print(f'The book "{printable(book.title)}" by {printable(book.author)} is returned successfully.')


@app.command("search")
def cli_search(
    query: str = typer.Argument(..., help="Text to look for in titles (case-insensitive)"),
    author: Optional[str] = typer.Option(None, "--author", "-a", help="Keep results whose author contains this text (case-sensitive)"),
    year: Optional[int] = typer.Option(None, "--year", "-y", help="Keep results published in this year"),
):
    """Search titles, then optionally narrow the results by author or year."""
    if author is not None and year is not None:
        print("Error: choose either --author or --year, not both.")
        raise typer.Exit(code=2)

    session = LibrarySession()
    results = session.search.search_by_title(query)
    if not results:
        print(f'No books found with title containing "{printable(query)}".')
        return
    if results.truncated:
        print(f"Showing the first {len(results)} of {results.total_matches} matches.", file=sys.stderr)

    if author is not None:
        filtered = session.search.filter_by_author(author)
        print_list_result(filtered, empty_message="No books found by that author in the search results.")
    elif year is not None:
        filtered = session.search.filter_by_year(year)
        print_list_result(filtered, empty_message="No books found from that year in the search results.")
    else:
        print_list_result(results, title=f"🔎 Results for '{printable(query)}'")


@app.command("serve")
def cli_serve(
    host: Optional[str] = typer.Option(None, "--host", help="Bind address"),
    port: Optional[int] = typer.Option(None, "--port", help="Port"),
):
    """Start the HTTP API using uvicorn."""
    host = host or settings.api_host
    port = int(port or settings.api_port)
    print(f"Starting API on http://{host}:{port}/")
    args = [
        sys.executable,
        "-m", "uvicorn",
        "bookshelf.api:app",
        "--host", host,
        "--port", str(port),
    ]
    try:
        subprocess.run(args, env=dict(os.environ, LIBRARY_DATA_FILE=LibrarySession.current_data_file()))
    except FileNotFoundError:
        print("Error: could not start uvicorn. Make sure it is installed in your environment.")


# --- Interactive menu ---
def _render_menu(title: str, items) -> None:
    table = Table.grid(padding=(0, 2))
    table.add_column(justify="right", style="bold cyan", width=4)
    table.add_column(justify="left", style="white")
    for key, label, icon in items:
        table.add_row(f"[reverse]{key}[/]", f"{icon} {label}")

    console.print(Panel(table, title=title, border_style="cyan", box=box.HEAVY, padding=(1, 2)))


def _show_books(books, empty_message: str, title: str) -> None:
    if not books:
        console.print(f"[yellow]{empty_message}[/]")
        return
    console.print(books_table(books, title))


def add_book(session: LibrarySession) -> None:
    """Prompt for a new book and add it."""
    if session.library.is_full():
        console.print("[bold red]Library is full and you cannot add more books.[/]")
        return
    title = Prompt.ask("Enter the book title")
    author = Prompt.ask("Enter author name")
    year = IntPrompt.ask("Enter publication year")
    try:
        book = session.library.add_book(title, author, year)
    except LibraryError as e:
        console.print(f"[bold red]Error:[/] {escape(str(e))}")
        return
    console.print(f"[green]Book added successfully! (ID: {book.id})[/]")


def remove_book(session: LibrarySession) -> None:
    """Remove a book after confirmation."""
    if not session.library.books:
        console.print("[yellow]No books in this library to remove.[/]")
        return
    book_id = IntPrompt.ask("Enter book ID to remove")
    book = session.library.find_book(book_id)
    if not book:
        console.print(f"[yellow]Book with ID {book_id} not found.[/]")
        return

    console.print(Panel(escape(format_book_details(book)), title="📚 Book to remove", border_style="yellow"))
    confirmed = Confirm.ask("Are you sure you want to remove this book?", default=False)
    if session.library.remove_book(book_id, confirmed=confirmed):
        console.print(f"[green]Book with ID {book_id} removed successfully.[/]")
    else:
        console.print("[blue]Book removal canceled.[/]")


def count_books(session: LibrarySession) -> None:
    stats = session.library.count_summary()
    console.print(Panel.fit(
        f"[bold]Total books in library:[/] {stats['total']}\n"
        f"[bold]Available books:[/] {stats['available']}\n"
        f"[bold]Borrowed books:[/] {stats['borrowed']}",
        title="📊 Book Count",
        border_style="blue",
    ))


def save_catalog(session: LibrarySession) -> None:
    force = None
    if not session.fully_loaded:
        console.print(f"[bold yellow]{escape(session.data_file)} was not fully loaded; saving drops the unread lines.[/]")
        force = Confirm.ask("Overwrite it anyway?", default=False)
        if not force:
            console.print("[blue]Catalog not saved.[/]")
            return
    if session.save(force=force):
        console.print(f"[green]Catalog saved to {escape(session.data_file)}[/]")


def borrow_book(session: LibrarySession) -> None:
    if not session.library.books:
        console.print("[yellow]No books in the library.[/]")
        return
    book_id = IntPrompt.ask("Enter the book ID you want to borrow")
    try:
        book = session.desk.borrow_book(book_id)
    except LibraryError as e:
        console.print(f"[yellow]{escape(str(e))}[/]")
        return
    console.print(f'[green]The book "{escape(printable(book.title))}" by {escape(printable(book.author))} is borrowed successfully.[/]')


def return_book(session: LibrarySession) -> None:
    if not session.library.books:
        console.print("[yellow]No books in the library.[/]")
        return
    book_id = IntPrompt.ask("Enter the book ID you want to return")
    try:
        book = session.desk.return_book(book_id)
    except LibraryError as e:
        console.print(f"[yellow]{escape(str(e))}[/]")
        return
    console.print(f'[green]The book "{escape(printable(book.title))}" by {escape(printable(book.author))} is returned successfully.[/]')


def search_books(session: LibrarySession) -> None:
    """Title search followed by at most one filter."""
    query = Prompt.ask("Enter the book title to search", default="")
    console.print(f"[dim]Searching through {len(session.library)} books...[/]")
    results = session.search.search_by_title(query)
    if not results:
        console.print(f'[yellow]No books found with title containing "{escape(query)}".[/]')
        return
    console.print(books_table(results, f"🔎 Results for '{escape(query)}'"))
    if results.truncated:
        console.print(f"[dim]Showing the first {len(results)} of {results.total_matches} matches.[/]")

    console.print("Filter search results:\n1. By Author\n2. By Year\n3. Exit")
    choice = Prompt.ask("Choice", choices=["1", "2", "3"], default="3")
    if choice == "1":
        author = Prompt.ask("Enter author's name to filter")
        _show_books(
            session.search.filter_by_author(author),
            "No books found by that author in the search results.",
            "Filtered by author",
        )
    elif choice == "2":
        year = IntPrompt.ask("Enter publication year to filter")
        _show_books(
            session.search.filter_by_year(year),
            "No books found from that year in the search results.",
            "Filtered by year",
        )


def admin_menu(session: LibrarySession) -> None:
    items = [
        ("1", "Add book", "➕"),
        ("2", "Remove book", "🗑️"),
        ("3", "View all books", "📚"),
        ("4", "Count total books", "📊"),
        ("5", "View borrowed books", "📕"),
        ("6", "Save catalog", "💾"),
        ("0", "Back", "↩️"),
    ]
    while True:
        _render_menu(f"{APP_NAME} - Admin", items)
        choice = Prompt.ask("Enter your choice", choices=[key for key, _, _ in items], default="0")
        if choice == "1":
            add_book(session)
        elif choice == "2":
            remove_book(session)
        elif choice == "3":
            _show_books(session.library.list_books(), "No books in the library.", "📚 All Books")
        elif choice == "4":
            count_books(session)
        elif choice == "5":
            _show_books(session.desk.list_borrowed(), "No books are currently borrowed.", "📕 Borrowed Books")
        elif choice == "6":
            save_catalog(session)
        else:
            break
        print()


def patron_menu(session: LibrarySession) -> None:
    items = [
        ("1", "View available books", "📗"),
        ("2", "Borrow a book", "📥"),
        ("3", "Return a book", "📤"),
        ("4", "Search by title", "🔎"),
        ("0", "Back", "↩️"),
    ]
    while True:
        _render_menu(f"{APP_NAME} - Patron", items)
        choice = Prompt.ask("Enter your choice", choices=[key for key, _, _ in items], default="0")
        if choice == "1":
            _show_books(
                session.desk.list_available(),
                "No books are currently available for borrowing.",
                "📗 Available Books",
            )
        elif choice == "2":
            borrow_book(session)
        elif choice == "3":
            return_book(session)
        elif choice == "4":
            search_books(session)
        else:
            break
        print()


def run_menu(session: Optional[LibrarySession] = None) -> None:
    """Interactive menu; loads the catalog at start and saves it on exit."""
    session = session or LibrarySession()
    items = [
        ("1", "Admin mode", "🛠️"),
        ("2", "Patron mode", "👤"),
        ("0", "Exit", "🚪"),
    ]
    while True:
        _render_menu(APP_NAME, items)
        choice = Prompt.ask("Please choose an option", choices=["1", "2", "0"], default="0")
        if choice == "1":
            admin_menu(session)
        elif choice == "2":
            patron_menu(session)
        else:
            save_catalog(session)
            console.print("[green]Goodbye![/]")
            break


def run() -> None:
    if len(sys.argv) > 1:
        app()
    else:
        run_menu()


if __name__ == "__main__":
    run()
