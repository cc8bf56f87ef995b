"""SQLite-backed metadata store.

Uses the ``books`` table layout of the original ingestion pipeline. Batch
replacement runs in a single transaction so readers on other connections see
either the full previous set or the full new set (WAL isolation).
"""

from __future__ import annotations

from collections.abc import Iterable
import logging
from pathlib import Path
import sqlite3

from booksearch.adapters.metadata_store import AbstractMetadataStore, MetadataPredicate
from booksearch.domain.model import BookMetadata
from booksearch.errors import MetadataNotFoundError
from booksearch.search.sqlite_storage import SQLiteConnectionPool


logger = logging.getLogger(__name__)

_BOOK_COLUMNS = ("book_id", "title", "author", "language", "year", "path")

_SCHEMA = (
    """
    CREATE TABLE IF NOT EXISTS books (
        book_id INTEGER PRIMARY KEY,
        title TEXT NOT NULL,
        author TEXT,
        language TEXT,
        year INTEGER,
        path TEXT
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_author ON books(author)",
)

_SELECT = f"SELECT {', '.join(_BOOK_COLUMNS)} FROM books"
_UPSERT = f"INSERT OR REPLACE INTO books ({', '.join(_BOOK_COLUMNS)}) VALUES (?, ?, ?, ?, ?, ?)"

# Stay well below SQLITE_MAX_VARIABLE_NUMBER on older builds.
_IN_CHUNK = 500


def _row_to_metadata(row: sqlite3.Row | tuple) -> BookMetadata:
    return BookMetadata(**dict(zip(_BOOK_COLUMNS, row, strict=True)))


def _metadata_to_row(record: BookMetadata) -> tuple:
    return (record.book_id, record.title, record.author, record.language, record.year, record.path)


class SqliteMetadataStore(AbstractMetadataStore):
    """Metadata rows in a ``books`` table."""

    def __init__(self, db_path: str | Path) -> None:
        self.db_path = Path(db_path)
        self._pool = SQLiteConnectionPool(self.db_path)
        with self._pool.write_connection() as conn:
            for statement in _SCHEMA:
                conn.execute(statement)

    def get(self, book_id: int) -> BookMetadata:
        with self._pool.read_connection() as conn:
            row = conn.execute(f"{_SELECT} WHERE book_id = ?", (book_id,)).fetchone()
        if row is None:
            raise MetadataNotFoundError(book_id)
        return _row_to_metadata(row)

    def get_many(self, book_ids: Iterable[int]) -> dict[int, BookMetadata]:
        ids = list(dict.fromkeys(book_ids))
        found: dict[int, BookMetadata] = {}
        with self._pool.read_connection() as conn:
            for start in range(0, len(ids), _IN_CHUNK):
                chunk = ids[start : start + _IN_CHUNK]
                placeholders = ",".join("?" * len(chunk))
                for row in conn.execute(f"{_SELECT} WHERE book_id IN ({placeholders})", chunk):
                    record = _row_to_metadata(row)
                    found[record.book_id] = record
        return found

    def upsert_all(self, records: Iterable[BookMetadata]) -> None:
        rows = sorted((_metadata_to_row(record) for record in records), key=lambda row: row[0])
        with self._pool.write_connection() as conn:
            conn.execute("DELETE FROM books")
            conn.executemany(_UPSERT, rows)
        logger.debug("Replaced metadata with %s records in %s", len(rows), self.db_path)

    def upsert_one(self, record: BookMetadata) -> None:
        with self._pool.write_connection() as conn:
            conn.execute(_UPSERT, _metadata_to_row(record))

    def filter(self, predicate: MetadataPredicate | None = None) -> list[BookMetadata]:
        with self._pool.read_connection() as conn:
            rows = conn.execute(f"{_SELECT} ORDER BY book_id").fetchall()
        records = (_row_to_metadata(row) for row in rows)
        return [record for record in records if predicate is None or predicate(record)]

    def count(self) -> int:
        with self._pool.read_connection() as conn:
            (total,) = conn.execute("SELECT COUNT(*) FROM books").fetchone()
        return int(total)

    def close(self) -> None:
        self._pool.close_all()
