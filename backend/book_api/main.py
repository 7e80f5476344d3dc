import logging
import re
from contextlib import asynccontextmanager
from dataclasses import replace
from http import HTTPStatus
from typing import Annotated, Optional

import uvicorn
from dotenv import load_dotenv
from fastapi import Depends, FastAPI, HTTPException, Request, status
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from book_api.book_request import (
    INT64_MAX,
    FullBookRequest,
    MalformedBookRequestError,
    decode_full_book_request,
    validate_full_book_request,
)
from book_api.book_store import Book, BookNotFoundError, Stores, new_stores
from book_api.config import load_settings
from book_api.db import initialize_database, open_database

load_dotenv()
logger = logging.getLogger(__name__)

VERSION = "1.0.0"
BOOK_ID_PATTERN = re.compile(r"[+-]?[0-9]+")
LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"


class HealthResponse(BaseModel):
    """Liveness response."""

    status: str
    version: str


class BookResponse(BaseModel):
    """Book response. Empty author and zero year are left out of the body."""

    id: int
    title: str
    author: Optional[str] = None
    year: Optional[int] = None


class BooksResponse(BaseModel):
    """Book list response."""

    books: list[BookResponse]


def _build_error_response(status_code: int) -> JSONResponse:
    """Build an error response carrying only the status phrase."""
    return JSONResponse(
        status_code=status_code,
        content={"detail": HTTPStatus(status_code).phrase},
    )


def _build_validation_error_response(errors: dict[str, str]) -> JSONResponse:
    """Build the 422 response listing field errors."""
    return JSONResponse(
        status_code=422,
        content={"errors": errors},
    )


def _to_book_response(book: Book) -> BookResponse:
    """Convert a stored book to its wire shape."""
    return BookResponse(
        id=book.id,
        title=book.title,
        author=book.author or None,
        year=book.year or None,
    )


def _parse_book_id(raw_book_id: str) -> int:
    """Parse a path id as a signed 64-bit integer, raising 404 when it cannot name a book."""
    if BOOK_ID_PATTERN.fullmatch(raw_book_id) is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND)

    book_id = int(raw_book_id)
    if book_id < 1 or book_id > INT64_MAX:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND)

    return book_id


async def _read_full_book_request(request: Request) -> FullBookRequest:
    """Decode the request body, raising 400 when it is not a valid payload."""
    raw_body = await request.body()
    try:
        return decode_full_book_request(raw_body)
    except MalformedBookRequestError as error:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST) from error


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Open, migrate and seed the store once at startup, closing it on shutdown."""
    runtime_settings = load_settings()
    database = open_database(runtime_settings)

    try:
        initialize_database(database, seed=runtime_settings.seed_demo_books)
        app.state.stores = new_stores(database)
        yield
    finally:
        database.close()


app = FastAPI(
    title="Book Catalog API",
    description="JSON API for a small catalog of books",
    version=VERSION,
    lifespan=lifespan,
)


def get_stores(request: Request) -> Stores:
    """Provide the stores created at startup."""
    return request.app.state.stores


@app.exception_handler(BookNotFoundError)
async def handle_book_not_found(_request: Request, _exception: BookNotFoundError) -> JSONResponse:
    """Map a missing book to 404."""
    return _build_error_response(status.HTTP_404_NOT_FOUND)


@app.exception_handler(Exception)
async def handle_unexpected_exception(_request: Request, _exception: Exception) -> JSONResponse:
    """Log unexpected failures and answer 500 without internal details."""
    logger.exception("Unexpected error while handling request.")
    return _build_error_response(status.HTTP_500_INTERNAL_SERVER_ERROR)


@app.get("/healthz", response_model=HealthResponse)
async def healthcheck():
    """Report liveness and the API version."""
    return HealthResponse(status="ok", version=VERSION)


@app.get("/books", response_model=BooksResponse, response_model_exclude_none=True)
async def list_books(stores: Annotated[Stores, Depends(get_stores)]):
    """Return every book ordered by id."""
    books = await run_in_threadpool(stores.books.get_all)
    return BooksResponse(books=[_to_book_response(book) for book in books])


@app.get("/books/{book_id}", response_model=BookResponse, response_model_exclude_none=True)
async def show_book(book_id: str, stores: Annotated[Stores, Depends(get_stores)]):
    """Return one book by id."""
    parsed_book_id = _parse_book_id(book_id)
    book = await run_in_threadpool(stores.books.get, parsed_book_id)
    return _to_book_response(book)


@app.post(
    "/books",
    response_model=BookResponse,
    response_model_exclude_none=True,
    status_code=status.HTTP_201_CREATED,
)
async def create_book(request: Request, stores: Annotated[Stores, Depends(get_stores)]):
    """Validate the payload and store a new book."""
    book_request = await _read_full_book_request(request)

    validation_errors = validate_full_book_request(book_request)
    if len(validation_errors) > 0:
        return _build_validation_error_response(validation_errors)

    book = Book(title=book_request.title, author=book_request.author, year=book_request.year)
    saved_book = await run_in_threadpool(stores.books.insert, book)
    return _to_book_response(saved_book)


@app.put("/books/{book_id}", response_model=BookResponse, response_model_exclude_none=True)
async def put_book(book_id: str, request: Request, stores: Annotated[Stores, Depends(get_stores)]):
    """Replace title, author and year of an existing book. The id comes from the path."""
    parsed_book_id = _parse_book_id(book_id)
    book_request = await _read_full_book_request(request)

    validation_errors = validate_full_book_request(book_request)
    if len(validation_errors) > 0:
        return _build_validation_error_response(validation_errors)

    existing_book = await run_in_threadpool(stores.books.get, parsed_book_id)
    replacement = replace(
        existing_book,
        title=book_request.title,
        author=book_request.author,
        year=book_request.year,
    )
    updated_book = await run_in_threadpool(stores.books.update, replacement)
    return _to_book_response(updated_book)


def run() -> None:
    """Start the API server."""
    runtime_settings = load_settings()
    logging.basicConfig(level=runtime_settings.log_level, format=LOG_FORMAT)
    logger.info(
        "Starting server. host=%s port=%s", runtime_settings.api_host, runtime_settings.api_port
    )

    uvicorn.run(
        "book_api.main:app",
        host=runtime_settings.api_host,
        port=runtime_settings.api_port,
        reload=runtime_settings.api_reload,
    )


if __name__ == "__main__":
    run()
