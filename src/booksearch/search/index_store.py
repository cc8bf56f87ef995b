"""Live inverted index behind a single swappable reference.

``IndexStore`` owns the snapshot that queries read. Publishing a new snapshot
is one attribute assignment, so a reader sees either the old snapshot or the
new one, never a mix. Durability is handled afterwards on a dedicated writer
thread; queries are never blocked on disk I/O.
"""

from __future__ import annotations

from collections.abc import Iterable
from concurrent.futures import Future, ThreadPoolExecutor, wait
import itertools
import logging
import sqlite3
import threading

from booksearch.domain.model import BookMetadata
from booksearch.observability.metrics import INDEX_DOC_COUNT, SNAPSHOT_PERSIST_COUNT
from booksearch.search.snapshot import IndexSnapshot
from booksearch.search.storage import SnapshotPersistence


logger = logging.getLogger(__name__)


class IndexStore:
    """Owns the published ``IndexSnapshot`` and its persistence.

    Args:
        persistence: Optional durable backend. When omitted the index lives
            in memory only and ``publish`` never schedules a write.
        collection: Label used in logs and metrics.
    """

    def __init__(self, persistence: SnapshotPersistence | None = None, *, collection: str = "default") -> None:
        self.collection = collection
        self._persistence = persistence
        self._snapshot = IndexSnapshot.empty()
        self._versions = itertools.count(1)
        self._version_lock = threading.Lock()
        self._executor: ThreadPoolExecutor | None = None
        self._pending: list[Future] = []
        self._pending_lock = threading.Lock()
        self.last_persist_error: str | None = None

    def current(self) -> IndexSnapshot:
        """Return the published snapshot; hold on to it for the whole read."""
        return self._snapshot

    def term_postings(self, term: str) -> frozenset[int]:
        return self._snapshot.term_postings(term)

    def next_version(self) -> int:
        with self._version_lock:
            return next(self._versions)

    def load_snapshot(self) -> IndexSnapshot:
        """Read the last persisted snapshot, or an empty one when none exists."""
        if self._persistence is None:
            return IndexSnapshot.empty()
        loaded = self._persistence.load()
        if loaded is None:
            return IndexSnapshot.empty()
        return IndexSnapshot(
            postings=loaded.postings,
            document_terms=loaded.document_terms,
            version=self.next_version(),
        )

    def bootstrap(self, records: Iterable[BookMetadata] = ()) -> IndexSnapshot:
        """Publish the persisted snapshot, with ``records`` attached, without rewriting it."""
        snapshot = self.load_snapshot().with_records(records)
        self.publish(snapshot, persist=False)
        logger.info(
            "Loaded index for %s: %s documents, %s terms, %s metadata records",
            self.collection,
            snapshot.doc_count,
            snapshot.term_count,
            len(snapshot.records),
        )
        return snapshot

    def publish(self, snapshot: IndexSnapshot, *, persist: bool = True) -> Future | None:
        """Swap in ``snapshot`` and queue a durability write.

        Returns the future of the queued write, or None when nothing is
        persisted.
        """
        self._snapshot = snapshot
        INDEX_DOC_COUNT.labels(collection=self.collection).set(snapshot.doc_count)
        logger.debug("Published snapshot v%s for %s", snapshot.version, self.collection)
        if not persist or self._persistence is None:
            return None
        future = self._get_executor().submit(self._persist, snapshot)
        with self._pending_lock:
            self._pending = [pending for pending in self._pending if not pending.done()]
            self._pending.append(future)
        return future

    def flush(self, timeout: float | None = None) -> bool:
        """Wait for queued writes; return False if any is still running after ``timeout``."""
        with self._pending_lock:
            pending = list(self._pending)
        if not pending:
            return True
        _done, not_done = wait(pending, timeout=timeout)
        return not not_done

    def close(self) -> None:
        self.flush()
        if self._executor is not None:
            self._executor.shutdown(wait=True)
            self._executor = None
        close = getattr(self._persistence, "close", None)
        if callable(close):
            close()

    def _get_executor(self) -> ThreadPoolExecutor:
        if self._executor is None:
            self._executor = ThreadPoolExecutor(
                max_workers=1, thread_name_prefix=f"booksearch-persist-{self.collection}"
            )
        return self._executor

    def _persist(self, snapshot: IndexSnapshot) -> None:
        if self._persistence is None:
            return
        if snapshot is not self._snapshot:
            # A newer snapshot was published; its own write supersedes this one.
            SNAPSHOT_PERSIST_COUNT.labels(collection=self.collection, status="superseded").inc()
            return
        try:
            self._persistence.save(snapshot)
        except (OSError, sqlite3.Error) as exc:
            self.last_persist_error = str(exc)
            SNAPSHOT_PERSIST_COUNT.labels(collection=self.collection, status="failed").inc()
            logger.error("Failed to persist snapshot v%s: %s", snapshot.version, exc, exc_info=True)
            return
        self.last_persist_error = None
        SNAPSHOT_PERSIST_COUNT.labels(collection=self.collection, status="ok").inc()
