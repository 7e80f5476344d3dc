import logging
from collections.abc import Sequence
from dataclasses import dataclass, replace
from typing import Any

from book_api.db import Database

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Book:
    """A book row from the catalog."""

    id: int = 0
    title: str = ""
    author: str = ""
    year: int = 0


class BookNotFoundError(LookupError):
    """No book row matches the requested id."""

    def __init__(self, book_id: int) -> None:
        super().__init__(f"book not found: id={book_id}")
        self.book_id = book_id


def _row_to_book(row: Sequence[Any]) -> Book:
    """Decode a ``(id, title, author, year)`` row, reading NULL author/year as empty values."""
    book_id, title, author, year = row
    if not isinstance(book_id, int) or not isinstance(title, str):
        raise ValueError(f"malformed book row: {row!r}")

    return Book(
        id=book_id,
        title=title,
        author=str(author) if author is not None else "",
        year=int(year) if year is not None else 0,
    )


class BookStore:
    """All SQL for the books table."""

    def __init__(self, database: Database) -> None:
        self._database = database

    def get_all(self) -> list[Book]:
        """Return every book ordered by ascending id."""
        with self._database.session() as connection:
            rows = connection.execute(
                """
                SELECT id, title, author, year
                FROM books
                ORDER BY id;
                """
            ).fetchall()

        return [_row_to_book(row) for row in rows]

    def get(self, book_id: int) -> Book:
        """Return the book with ``book_id`` or raise ``BookNotFoundError``."""
        # AUTOINCREMENT ids start at 1.
        if book_id < 1:
            raise BookNotFoundError(book_id)

        with self._database.session() as connection:
            row = connection.execute(
                """
                SELECT id, title, author, year
                FROM books
                WHERE id = ?;
                """,
                (book_id,),
            ).fetchone()

        if row is None:
            raise BookNotFoundError(book_id)

        return _row_to_book(row)

    def insert(self, book: Book) -> Book:
        """Persist ``book`` and return a copy carrying the assigned id."""
        with self._database.session() as connection:
            cursor = connection.execute(
                """
                INSERT INTO books (title, author, year)
                VALUES (?, ?, ?);
                """,
                (book.title, book.author, book.year),
            )
            book_id = cursor.lastrowid

        if book_id is None or book_id < 1:
            raise RuntimeError("failed to read the id assigned to the inserted book")

        saved_book = replace(book, id=book_id)
        logger.info("Inserted book: %s", saved_book)
        return saved_book

    def update(self, book: Book) -> Book:
        """Overwrite title, author and year of an existing book and return the stored row.

        The affected-row count decides whether the id exists; the row is then
        read back inside the same session.
        """
        if book.id < 1:
            raise BookNotFoundError(book.id)

        with self._database.session() as connection:
            cursor = connection.execute(
                """
                UPDATE books
                SET title = ?, author = ?, year = ?
                WHERE id = ?;
                """,
                (book.title, book.author, book.year, book.id),
            )
            if cursor.rowcount == 0:
                raise BookNotFoundError(book.id)

            row = connection.execute(
                """
                SELECT id, title, author, year
                FROM books
                WHERE id = ?;
                """,
                (book.id,),
            ).fetchone()

        if row is None:
            raise BookNotFoundError(book.id)

        updated_book = _row_to_book(row)
        logger.info("Updated book: %s", updated_book)
        return updated_book


@dataclass(frozen=True)
class Stores:
    """Every data store the handlers depend on."""

    books: BookStore


def new_stores(database: Database) -> Stores:
    """Build the stores sharing one database."""
    return Stores(books=BookStore(database))
