import logging
from contextlib import asynccontextmanager
from threading import RLock
from typing import List, Optional

from fastapi import Depends, FastAPI, HTTPException, Query, Security
from fastapi.security import APIKeyHeader
from pydantic import BaseModel, Field

from bookshelf.book import Book, printable
from bookshelf.circulation import CirculationDesk
from bookshelf.config import settings
from bookshelf.exceptions import (
    AlreadyBorrowedError,
    BookNotFoundError,
    CapacityExceededError,
    IncompleteLoadError,
    NotBorrowedError,
    StorageError,
)
from bookshelf.library import Library
from bookshelf.search import SearchService

logging.basicConfig(level=settings.log_level)
logger = logging.getLogger(__name__)


# --- Models ---
class BookModel(BaseModel):
    id: int
    title: str
    author: str
    year: int
    borrowed: bool


class BookCreateModel(BaseModel):
    title: str = Field(..., description="Stored as given, cut to the catalog title limit")
    author: str
    year: int


class StatsModel(BaseModel):
    total: int
    available: int
    borrowed: int


class SearchResponse(BaseModel):
    query: str
    total_matches: int
    truncated: bool
    results: List[BookModel]


def _to_model(book: Book) -> BookModel:
    data = book.to_dict()
    data["title"] = printable(book.title)
    data["author"] = printable(book.author)
    return BookModel(**data)


# --- Security ---
api_key_header = APIKeyHeader(name="X-API-Key")


def get_api_key(api_key: str = Security(api_key_header)):
    """Dependency that checks the API key."""
    if api_key == settings.api_key:
        return api_key
    raise HTTPException(status_code=403, detail="Could not validate credentials")


def _bind(app: FastAPI, library: Library) -> None:
    app.state.library = library
    app.state.search = SearchService(library)
    app.state.desk = CirculationDesk(library)


def create_app(library: Optional[Library] = None) -> FastAPI:
    """Build the API around one library.

    Without a library, the catalog configured in settings is loaded when the
    app starts up, not when it is built. Every handler holds the same lock, so
    requests touch the store one at a time.
    """
    lock = RLock()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if app.state.library is None:
            _bind(app, Library(settings.data_file, capacity=settings.max_books))
            logger.info(f"Catalog loaded from {settings.data_file}")
        yield

    app = FastAPI(title=f"{settings.app_name} API", lifespan=lifespan)
    app.state.library = None
    if library is not None:
        _bind(app, library)

    def _library() -> Library:
        if app.state.library is None:
            raise HTTPException(status_code=503, detail="Catalog is not loaded yet.")
        return app.state.library

    def _not_found(e: BookNotFoundError) -> HTTPException:
        return HTTPException(status_code=404, detail=str(e))

    @app.get("/health")
    def health():
        with lock:
            library = _library()
            return {"status": "ok", "books": len(library), "data_file": library.data_file}

    @app.get("/books", response_model=List[BookModel])
    def list_books():
        with lock:
            return [_to_model(b) for b in _library().list_books()]

    @app.get("/books/available", response_model=List[BookModel])
    def list_available():
        with lock:
            _library()
            return [_to_model(b) for b in app.state.desk.list_available()]

    @app.get("/books/borrowed", response_model=List[BookModel])
    def list_borrowed():
        with lock:
            _library()
            return [_to_model(b) for b in app.state.desk.list_borrowed()]

    @app.get("/books/{book_id}", response_model=BookModel)
    def get_book(book_id: int):
        with lock:
            book = _library().find_book(book_id)
            if not book:
                raise HTTPException(status_code=404, detail=f"Book with ID {book_id} not found.")
            return _to_model(book)

    @app.get("/stats", response_model=StatsModel)
    def get_stats():
        with lock:
            return _library().count_summary()

    @app.post("/books", response_model=BookModel, status_code=201, dependencies=[Depends(get_api_key)])
    def add_book(payload: BookCreateModel):
        with lock:
            try:
                book = _library().add_book(payload.title, payload.author, payload.year)
            except CapacityExceededError as e:
                raise HTTPException(status_code=507, detail=str(e))
            return _to_model(book)

    @app.delete("/books/{book_id}", dependencies=[Depends(get_api_key)])
    def delete_book(book_id: int, confirm: bool = Query(False)):
        with lock:
            try:
                removed = _library().remove_book(book_id, confirmed=confirm)
            except BookNotFoundError as e:
                raise _not_found(e)
            if not removed:
                raise HTTPException(status_code=409, detail="Removal not confirmed. Pass confirm=true.")
            return {"message": f"Book with ID {book_id} removed successfully."}

    @app.post("/books/{book_id}/borrow", response_model=BookModel)
    def borrow_book(book_id: int):
        with lock:
            _library()
            try:
                return _to_model(app.state.desk.borrow_book(book_id))
            except BookNotFoundError as e:
                raise _not_found(e)
            except AlreadyBorrowedError as e:
                raise HTTPException(status_code=409, detail=str(e))

    @app.post("/books/{book_id}/return", response_model=BookModel)
    def return_book(book_id: int):
        with lock:
            _library()
            try:
                return _to_model(app.state.desk.return_book(book_id))
            except BookNotFoundError as e:
                raise _not_found(e)
            except NotBorrowedError as e:
                raise HTTPException(status_code=409, detail=str(e))

    @app.get("/search", response_model=SearchResponse)
    def search_books(
        title: str = Query("", description="Case-insensitive title substring"),
        author: Optional[str] = Query(None, description="Case-sensitive author substring, applied to the title matches"),
        year: Optional[int] = Query(None, description="Exact year, applied to the title matches"),
    ):
        if author is not None and year is not None:
            raise HTTPException(status_code=400, detail="Filter by author or by year, not both.")
        with lock:
            _library()
            search = app.state.search
            results = search.search_by_title(title)
            if author is not None:
                books = search.filter_by_author(author)
            elif year is not None:
                books = search.filter_by_year(year)
            else:
                books = list(results)
            return SearchResponse(
                query=title,
                total_matches=results.total_matches,
                truncated=results.truncated,
                results=[_to_model(b) for b in books],
            )

    @app.post("/save", dependencies=[Depends(get_api_key)])
    def save_catalog(force: bool = Query(False, description="Overwrite a data file that was not fully loaded")):
        with lock:
            library = _library()
            try:
                library.save(force=force)
            except IncompleteLoadError as e:
                raise HTTPException(status_code=409, detail=f"{e} Pass force=true to save anyway.")
            except StorageError as e:
                raise HTTPException(status_code=500, detail=str(e))
            return {"message": f"Saved {len(library)} books to {library.data_file}"}

    return app


app = create_app()
