import argparse
import json
import time
from dataclasses import asdict
from pathlib import Path
from typing import Any, Optional

from book_api.book_store import Book, BookStore
from book_api.config import Settings, load_settings
from book_api.db import initialize_database, open_database


def build_smoke_book() -> Book:
    """Build a sample book whose title is unlikely to collide with earlier runs."""
    stamp = str(int(time.time() * 1000))
    return Book(title=f"Smoke Test Book {stamp}", author="Smoke Author", year=2024)


def run_insert_and_fetch_smoke(
    log_path: Optional[Path] = None, settings: Optional[Settings] = None
) -> dict[str, Any]:
    """Insert a book and read it back through the store."""
    runtime_settings = settings if settings is not None else load_settings()
    database = open_database(runtime_settings)

    try:
        initialize_database(database, seed=runtime_settings.seed_demo_books)
        store = BookStore(database)
        saved_book = store.insert(build_smoke_book())
        fetched_book = store.get(saved_book.id)
    finally:
        database.close()

    if fetched_book != saved_book:
        raise RuntimeError(f"Fetched book does not match inserted book: {fetched_book}")

    result = {"status": "ok", "book": asdict(fetched_book)}

    if log_path is not None:
        log_path.parent.mkdir(parents=True, exist_ok=True)
        log_path.write_text(
            json.dumps(result, ensure_ascii=False, indent=2) + "\n", encoding="utf-8"
        )

    return result


def parse_args() -> argparse.Namespace:
    """Read command-line arguments."""
    parser = argparse.ArgumentParser(
        description="Smoke check: insert a book into the configured store and fetch it back"
    )
    parser.add_argument(
        "--log-path", type=Path, default=None, help="file to write the result JSON to"
    )
    return parser.parse_args()


def main() -> None:
    """Run the smoke check and print its result."""
    args = parse_args()
    result = run_insert_and_fetch_smoke(log_path=args.log_path)

    print(json.dumps(result, ensure_ascii=False, indent=2))
    if args.log_path is not None:
        print(f"log saved: {args.log_path}")


if __name__ == "__main__":
    main()
