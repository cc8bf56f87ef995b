"""SQLite persistence for index snapshots.

The postings table is a clustered ``WITHOUT ROWID`` table keyed by
``(term, book_id)``. A save replaces the whole table inside one transaction,
so a crash mid-write leaves the previous snapshot intact.
"""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Iterator
from contextlib import closing, contextmanager
import logging
from pathlib import Path
import sqlite3
import threading

from booksearch.errors import SnapshotCorruptedError
from booksearch.search.snapshot import SNAPSHOT_FORMAT, IndexSnapshot


logger = logging.getLogger(__name__)

_SNAPSHOT_SCHEMA = (
    """
    CREATE TABLE IF NOT EXISTS postings (
        term TEXT NOT NULL,
        book_id INTEGER NOT NULL,
        PRIMARY KEY (term, book_id)
    ) WITHOUT ROWID
    """,
    """
    CREATE TABLE IF NOT EXISTS index_meta (
        key TEXT PRIMARY KEY,
        value TEXT NOT NULL
    ) WITHOUT ROWID
    """,
)

_BUSY_TIMEOUT_MS = 30000
_CACHE_SIZE_KB = -16000


def _tune_reader(conn: sqlite3.Connection) -> None:
    conn.execute(f"PRAGMA busy_timeout = {_BUSY_TIMEOUT_MS}")
    conn.execute(f"PRAGMA cache_size = {_CACHE_SIZE_KB}")
    conn.execute("PRAGMA query_only = 1")


def _tune_writer(conn: sqlite3.Connection) -> None:
    conn.execute(f"PRAGMA busy_timeout = {_BUSY_TIMEOUT_MS}")
    conn.execute("PRAGMA journal_mode = WAL")
    conn.execute("PRAGMA synchronous = NORMAL")
    conn.execute(f"PRAGMA cache_size = {_CACHE_SIZE_KB}")


class SQLiteConnectionPool:
    """Thread-local read connections plus serialized write connections."""

    def __init__(self, db_path: Path) -> None:
        self.db_path = db_path
        self._local = threading.local()
        self._write_lock = threading.Lock()
        self._connections: list[sqlite3.Connection] = []
        self._connections_lock = threading.Lock()

    @contextmanager
    def read_connection(self) -> Iterator[sqlite3.Connection]:
        """Yield this thread's read-only connection, creating it on first use."""
        conn = getattr(self._local, "connection", None)
        if conn is None:
            conn = sqlite3.connect(self.db_path, check_same_thread=False)
            _tune_reader(conn)
            self._local.connection = conn
            with self._connections_lock:
                self._connections.append(conn)
        yield conn

    @contextmanager
    def write_connection(self) -> Iterator[sqlite3.Connection]:
        """Yield a short-lived write connection; commits on success, rolls back on error."""
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        with self._write_lock, closing(sqlite3.connect(self.db_path)) as conn:
            _tune_writer(conn)
            with conn:
                yield conn

    def close_all(self) -> None:
        with self._connections_lock:
            for conn in self._connections:
                try:
                    conn.close()
                except sqlite3.Error:
                    logger.debug("Ignoring error while closing %s", self.db_path)
            self._connections.clear()
        self._local = threading.local()


class SqliteSnapshotPersistence:
    """Persist the inverted index as ``(term, book_id)`` rows."""

    def __init__(self, db_path: str | Path) -> None:
        self.db_path = Path(db_path)
        self._pool = SQLiteConnectionPool(self.db_path)
        with self._pool.write_connection() as conn:
            for statement in _SNAPSHOT_SCHEMA:
                conn.execute(statement)

    def save(self, snapshot: IndexSnapshot) -> None:
        rows = [(term, book_id) for term in sorted(snapshot.postings) for book_id in sorted(snapshot.postings[term])]
        with self._pool.write_connection() as conn:
            conn.execute("DELETE FROM postings")
            conn.executemany("INSERT INTO postings (term, book_id) VALUES (?, ?)", rows)
            conn.execute(
                "INSERT OR REPLACE INTO index_meta (key, value) VALUES ('format', ?)",
                (SNAPSHOT_FORMAT,),
            )
        logger.debug("Persisted snapshot v%s (%s postings rows) to %s", snapshot.version, len(rows), self.db_path)

    def load(self) -> IndexSnapshot | None:
        with self._pool.read_connection() as conn:
            row = conn.execute("SELECT value FROM index_meta WHERE key = 'format'").fetchone()
            if row is None:
                return None
            if row[0] != SNAPSHOT_FORMAT:
                raise SnapshotCorruptedError(f"Unsupported snapshot format: {row[0]!r}")
            postings: dict[str, set[int]] = defaultdict(set)
            for term, book_id in conn.execute("SELECT term, book_id FROM postings ORDER BY term, book_id"):
                postings[term].add(int(book_id))
        payload = {"format": SNAPSHOT_FORMAT, "terms": {term: sorted(ids) for term, ids in postings.items()}}
        return IndexSnapshot.from_payload(payload)

    def close(self) -> None:
        self._pool.close_all()
