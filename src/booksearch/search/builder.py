"""Full rebuild and single-document update of the inverted index.

Writes are serialized by a per-collection build lock with a fail-fast policy:
a rebuild or update requested while another one is running raises
``BuildInProgressError`` immediately instead of queueing. Readers are never
blocked; they keep using whatever snapshot the ``IndexStore`` has published.

Postings and metadata records of one generation are published together in a
single snapshot swap. The metadata store is written afterwards and only serves
as durable storage for the next bootstrap.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from functools import partial
import logging
import sqlite3
import threading
import time
from typing import Any, Union

from booksearch.adapters.document_source import AbstractDocumentSource
from booksearch.adapters.metadata_store import AbstractMetadataStore
from booksearch.domain.model import BookMetadata, RawDocument
from booksearch.errors import BuildInProgressError, DocumentNotFoundError, DocumentReadError, RebuildCancelledError
from booksearch.observability.context import bind_log_context
from booksearch.observability.metrics import BUILD_COUNT, BUILD_LATENCY
from booksearch.observability.tracing import create_span
from booksearch.search.index_store import IndexStore
from booksearch.search.metadata_extractor import MetadataExtractor
from booksearch.search.snapshot import IndexSnapshot, SnapshotWriter
from booksearch.search.tokenizer import TermSet, tokenize


logger = logging.getLogger(__name__)

DocumentLoader = Callable[[], RawDocument]
DocumentInput = Union[RawDocument, tuple[int, str, str, str], DocumentLoader]


@dataclass(frozen=True)
class BuildResult:
    """Outcome of a rebuild or update that published a snapshot."""

    operation: str
    documents_indexed: int
    documents_skipped: int
    errors: tuple[str, ...]
    snapshot_version: int
    duration_seconds: float


def materialize(item: DocumentInput) -> RawDocument:
    """Turn a rebuild input into a ``RawDocument``.

    Loaders are called here, so acquisition errors surface per document.

    Raises:
        DocumentReadError: When header or body is not text.
        DocumentNotFoundError: When a loader cannot find its document.
    """
    if callable(item) and not isinstance(item, (RawDocument, tuple)):
        item = item()
    if isinstance(item, tuple):
        book_id, header, body, path = item
        item = RawDocument(book_id=book_id, header=header, body=body, path=path)
    if not isinstance(item, RawDocument):
        raise DocumentReadError(f"Unsupported document input: {type(item).__name__}")
    if not isinstance(item.header, str) or not isinstance(item.body, str):
        raise DocumentReadError(f"Document {item.book_id} has unreadable header or body text")
    if not isinstance(item.book_id, int) or item.book_id <= 0:
        raise DocumentReadError(f"Invalid document id: {item.book_id!r}")
    return item


class IndexBuilder:
    """Coordinates tokenizer, extractor and both stores for one collection."""

    def __init__(
        self,
        index_store: IndexStore,
        metadata_store: AbstractMetadataStore,
        *,
        extractor: MetadataExtractor | None = None,
        tokenizer: Callable[[str], TermSet] = tokenize,
    ) -> None:
        self.index_store = index_store
        self.metadata_store = metadata_store
        self.extractor = extractor or MetadataExtractor()
        self.tokenizer = tokenizer
        self._build_lock = threading.Lock()
        self._running: str | None = None

    @property
    def collection(self) -> str:
        return self.index_store.collection

    @property
    def building(self) -> bool:
        return self._build_lock.locked()

    @property
    def running_operation(self) -> str | None:
        return self._running

    @contextmanager
    def _exclusive(self, operation: str) -> Iterator[None]:
        if not self._build_lock.acquire(blocking=False):
            BUILD_COUNT.labels(collection=self.collection, operation=operation, status="busy").inc()
            raise BuildInProgressError(self._running)
        self._running = operation
        try:
            with bind_log_context(collection=self.collection, operation=operation):
                yield
        finally:
            self._running = None
            self._build_lock.release()

    def bootstrap(self) -> IndexSnapshot:
        """Publish the persisted index together with the stored metadata records.

        Runs under the build lock so a snapshot read from disk can never
        replace one published by a concurrent rebuild or update.

        Raises:
            BuildInProgressError: A rebuild or update is running.
            SnapshotCorruptedError: The persisted index is unreadable.
        """
        with self._exclusive("bootstrap"):
            return self.index_store.bootstrap(self.metadata_store.all())

    def _store_metadata(self, write: Callable[[Any], None], payload: Any) -> str | None:
        # Runs after publish; the in-memory snapshot stays authoritative.
        try:
            write(payload)
        except (OSError, sqlite3.Error) as exc:
            logger.error("Failed to store metadata for %s: %s", self.collection, exc, exc_info=True)
            return f"metadata not stored: {exc}"
        return None

    def analyze(self, document: RawDocument) -> tuple[TermSet, BookMetadata]:
        """Compute the term set over header and body plus metadata from the header."""
        terms = self.tokenizer(document.full_text)
        metadata = self.extractor.extract(document.book_id, document.header, document.path)
        return terms, metadata

    def rebuild_all(
        self,
        documents: Iterable[DocumentInput],
        *,
        cancel_event: threading.Event | None = None,
    ) -> BuildResult:
        """Replace the whole index and metadata set with ``documents``.

        Unreadable documents are logged and left out of the new snapshot.
        Nothing is published if the rebuild is cancelled or fails.

        Raises:
            BuildInProgressError: Another rebuild or update is running.
            RebuildCancelledError: ``cancel_event`` was set before publishing.
        """
        with self._exclusive("rebuild"), create_span("index.rebuild", attributes={"collection": self.collection}):
            start = time.perf_counter()
            status = "failed"
            try:
                result = self._rebuild(documents, cancel_event, start)
                status = "completed"
                return result
            except RebuildCancelledError:
                status = "cancelled"
                raise
            finally:
                BUILD_COUNT.labels(collection=self.collection, operation="rebuild", status=status).inc()
                BUILD_LATENCY.labels(collection=self.collection, operation="rebuild").observe(
                    time.perf_counter() - start
                )

    def _rebuild(
        self,
        documents: Iterable[DocumentInput],
        cancel_event: threading.Event | None,
        start: float,
    ) -> BuildResult:
        writer = SnapshotWriter()
        records: dict[int, BookMetadata] = {}
        errors: list[str] = []
        processed = 0
        skipped = 0

        for item in documents:
            if cancel_event is not None and cancel_event.is_set():
                logger.info("Rebuild of %s cancelled after %s documents", self.collection, processed)
                raise RebuildCancelledError(processed)
            processed += 1
            try:
                document = materialize(item)
            except (OSError, DocumentNotFoundError) as exc:
                logger.warning("Excluding document from rebuild: %s", exc)
                errors.append(str(exc))
                skipped += 1
                continue
            terms, metadata = self.analyze(document)
            writer.add_document(document.book_id, terms, metadata)
            records[document.book_id] = metadata

        if cancel_event is not None and cancel_event.is_set():
            raise RebuildCancelledError(processed)

        snapshot = writer.build(version=self.index_store.next_version())
        self.index_store.publish(snapshot)
        ordered = [records[book_id] for book_id in sorted(records)]
        stored = self._store_metadata(self.metadata_store.upsert_all, ordered)
        if stored is not None:
            errors.append(stored)

        duration = time.perf_counter() - start
        logger.info(
            "Rebuilt %s: %s documents indexed, %s skipped, %s terms (v%s) in %.3fs",
            self.collection,
            len(records),
            skipped,
            snapshot.term_count,
            snapshot.version,
            duration,
        )
        return BuildResult(
            operation="rebuild",
            documents_indexed=len(records),
            documents_skipped=skipped,
            errors=tuple(errors),
            snapshot_version=snapshot.version,
            duration_seconds=duration,
        )

    def rebuild_from_source(
        self,
        source: AbstractDocumentSource,
        *,
        book_ids: Iterable[int] | None = None,
        cancel_event: threading.Event | None = None,
    ) -> BuildResult:
        """Rebuild from every document the source lists (or from ``book_ids``)."""
        ids = list(book_ids) if book_ids is not None else source.list_documents()
        loaders = [partial(source.get_text, book_id) for book_id in ids]
        return self.rebuild_all(loaders, cancel_event=cancel_event)

    def update_one(self, book_id: int, header: str, body: str, path: str = "") -> BuildResult:
        """Re-index a single document without touching any other.

        The document's id is added to the postings of its current terms and
        removed from postings of terms it no longer contains. On failure the
        previous state of the document is left as it was.

        Raises:
            BuildInProgressError: Another rebuild or update is running.
            DocumentReadError: Header or body is not readable text.
        """
        with self._exclusive("update"), create_span(
            "index.update", attributes={"collection": self.collection, "book_id": book_id}
        ):
            start = time.perf_counter()
            status = "failed"
            try:
                document = materialize((book_id, header, body, path))
                terms, metadata = self.analyze(document)
                current = self.index_store.current()
                snapshot = current.with_document(
                    book_id, terms, version=self.index_store.next_version(), record=metadata
                )
                self.index_store.publish(snapshot)
                stored = self._store_metadata(self.metadata_store.upsert_one, metadata)
                status = "completed"
            finally:
                BUILD_COUNT.labels(collection=self.collection, operation="update", status=status).inc()
                BUILD_LATENCY.labels(collection=self.collection, operation="update").observe(
                    time.perf_counter() - start
                )

            duration = time.perf_counter() - start
            logger.info(
                "Updated book %s in %s: %s terms (v%s)",
                book_id,
                self.collection,
                len(terms),
                snapshot.version,
            )
            return BuildResult(
                operation="update",
                documents_indexed=1,
                documents_skipped=0,
                errors=(stored,) if stored is not None else (),
                snapshot_version=snapshot.version,
                duration_seconds=duration,
            )

    def update_from_source(self, source: AbstractDocumentSource, book_id: int) -> BuildResult:
        """Fetch one document from ``source`` and re-index it.

        Raises:
            DocumentNotFoundError: The source does not know ``book_id``.
        """
        document = source.get_text(book_id)
        return self.update_one(document.book_id, document.header, document.body, document.path)
