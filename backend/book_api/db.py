import logging
import sqlite3
import threading
import time
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Optional

from book_api.config import Settings, load_settings

logger = logging.getLogger(__name__)

PROGRESS_HANDLER_INSTRUCTIONS = 1000
BOOKS_TABLE_DDL = """
CREATE TABLE IF NOT EXISTS books (
  id     INTEGER PRIMARY KEY AUTOINCREMENT,
  title  TEXT NOT NULL,
  author TEXT,
  year   INTEGER
);
"""
DEMO_BOOKS = (
    ("The Go Programming Language", "Alan Donovan", 2015),
    ("Designing Data-Intensive Applications", "Martin Kleppmann", 2017),
)


class DatabaseTimeoutError(TimeoutError):
    """A store call did not finish within its deadline."""


class Database:
    """One shared SQLite connection used by every store call.

    SQLite allows a single writer at a time, so all reads and writes are
    serialized through one connection guarded by a lock. Each call made
    through ``session()`` runs under a deadline: waiting for the lock and
    executing statements both count against it, and a running statement is
    interrupted once the deadline passes.
    """

    def __init__(self, connection: sqlite3.Connection, query_timeout: float) -> None:
        self._connection = connection
        self._query_timeout = query_timeout
        self._lock = threading.Lock()
        self._closed = False

    @contextmanager
    def session(self) -> Iterator[sqlite3.Connection]:
        """Yield the shared connection, committing on success and rolling back on failure."""
        deadline = time.monotonic() + self._query_timeout

        if not self._lock.acquire(timeout=self._query_timeout):
            raise DatabaseTimeoutError(
                f"timed out after {self._query_timeout}s waiting for the database connection"
            )

        try:
            if self._closed:
                raise sqlite3.ProgrammingError("Cannot operate on a closed database.")

            self._connection.set_progress_handler(
                lambda: time.monotonic() > deadline, PROGRESS_HANDLER_INSTRUCTIONS
            )
            try:
                yield self._connection
                self._connection.commit()
            except sqlite3.OperationalError as error:
                self._connection.rollback()
                if time.monotonic() > deadline:
                    raise DatabaseTimeoutError(
                        f"database call exceeded {self._query_timeout}s deadline"
                    ) from error
                raise
            except Exception:
                self._connection.rollback()
                raise
            finally:
                self._connection.set_progress_handler(None, 0)
        finally:
            self._lock.release()

    def close(self) -> None:
        """Close the shared connection once no call is using it."""
        with self._lock:
            if self._closed:
                return

            self._connection.close()
            self._closed = True


def connect(settings: Settings) -> sqlite3.Connection:
    """Create the SQLite connection with the configured busy timeout."""
    connection = sqlite3.connect(
        settings.db_path,
        timeout=settings.busy_timeout_ms / 1000,
        check_same_thread=False,
    )
    connection.execute(f"PRAGMA busy_timeout = {int(settings.busy_timeout_ms)};")
    return connection


def check_database_connection(database: Database) -> None:
    """Verify connectivity with a lightweight query."""
    with database.session() as connection:
        connection.execute("SELECT 1;").fetchone()


def open_database(settings: Optional[Settings] = None) -> Database:
    """Open the store and ping it, closing the connection again if the ping fails."""
    runtime_settings = settings if settings is not None else load_settings()

    if not runtime_settings.is_memory_database:
        runtime_settings.db_path.parent.mkdir(parents=True, exist_ok=True)

    database = Database(
        connect(runtime_settings), query_timeout=runtime_settings.query_timeout_seconds
    )

    try:
        check_database_connection(database)
    except Exception:
        database.close()
        raise

    logger.info("Opened database. path=%s", runtime_settings.db_path)
    return database


def migrate(database: Database) -> None:
    """Create the books table if it does not exist yet."""
    with database.session() as connection:
        connection.execute(BOOKS_TABLE_DDL)

    logger.info("Applied books schema.")


def seed_if_empty(database: Database) -> int:
    """Insert the demo books when the table is empty and return how many rows were added."""
    with database.session() as connection:
        count = connection.execute("SELECT COUNT(*) FROM books;").fetchone()[0]
        if count > 0:
            return 0

        connection.executemany(
            "INSERT INTO books (title, author, year) VALUES (?, ?, ?);",
            DEMO_BOOKS,
        )

    logger.info("Seeded demo books. count=%s", len(DEMO_BOOKS))
    return len(DEMO_BOOKS)


def initialize_database(database: Database, seed: bool = True) -> None:
    """Apply the schema and optionally seed demo rows."""
    migrate(database)
    if seed:
        seed_if_empty(database)
