"""Orchestrator-facing surface of the indexing-and-query engine.

Every trigger resolves to an ``OperationResult``; core exceptions are turned
into ``failed``/``busy``/``cancelled`` results here and never reach the caller.
The synchronous core runs on worker threads so the event loop stays free for
concurrent queries while a rebuild is in flight.
"""

from __future__ import annotations

import asyncio
from collections.abc import Iterable, Mapping
import logging
import threading
import time
from typing import Any

from booksearch.adapters.document_source import AbstractDocumentSource, DatalakeDocumentSource
from booksearch.adapters.metadata_store import AbstractMetadataStore
from booksearch.config import Settings
from booksearch.domain.operations import OperationResult, ServiceStatus
from booksearch.domain.search import SearchFilters, SearchResponse
from booksearch.errors import BookSearchError, BuildInProgressError, RebuildCancelledError, SnapshotCorruptedError
from booksearch.search.builder import BuildResult, DocumentInput, IndexBuilder
from booksearch.search.index_store import IndexStore
from booksearch.search.metadata_extractor import MetadataExtractor
from booksearch.search.query_engine import QueryEngine
from booksearch.search.storage_factory import create_stores


logger = logging.getLogger(__name__)


class IndexingService:
    """Wires the document source, both stores, the builder and the query engine."""

    def __init__(
        self,
        settings: Settings,
        *,
        document_source: AbstractDocumentSource,
        metadata_store: AbstractMetadataStore,
        index_store: IndexStore,
        builder: IndexBuilder | None = None,
        query_engine: QueryEngine | None = None,
    ):
        """Initialize the service.

        Args:
            settings: Settings instance with all configuration
            document_source: Where rebuilds and updates read document text from
            metadata_store: Durable metadata written by the builder and read at bootstrap
            index_store: Owner of the published snapshot
            builder: Optional pre-built builder (tests inject their own)
            query_engine: Optional pre-built query engine
        """
        self.settings = settings
        self.document_source = document_source
        self.metadata_store = metadata_store
        self.index_store = index_store
        self.builder = builder or IndexBuilder(
            index_store,
            metadata_store,
            extractor=MetadataExtractor(
                scan_lines=settings.header_scan_lines,
                max_length=settings.metadata_max_length,
            ),
        )
        self.query_engine = query_engine or QueryEngine(
            index_store,
            default_limit=settings.default_search_limit,
            max_limit=settings.max_search_limit,
        )
        self._cancel_events: set[threading.Event] = set()
        self._last_result: OperationResult | None = None

    @property
    def last_result(self) -> OperationResult | None:
        return self._last_result

    async def bootstrap(self) -> OperationResult:
        """Publish the last persisted index and metadata records.

        An unreadable index leaves the engine empty until the next rebuild. A
        bootstrap requested while a rebuild or update runs is rejected as busy.
        """
        start = time.perf_counter()
        try:
            snapshot = await asyncio.to_thread(self.builder.bootstrap)
        except BuildInProgressError as exc:
            return self._busy("bootstrap", exc)
        except SnapshotCorruptedError as exc:
            logger.error("Persisted index is unreadable, starting empty until the next rebuild: %s", exc)
            return self._failed("bootstrap", exc, start)
        return self._record(
            OperationResult(
                operation="bootstrap",
                status="completed",
                documents_indexed=snapshot.doc_count,
                snapshot_version=snapshot.version,
                duration_seconds=time.perf_counter() - start,
            )
        )

    async def trigger_rebuild(self, documents: Iterable[DocumentInput] | None = None) -> OperationResult:
        """Rebuild from ``documents``, or from everything the document source lists."""
        cancel_event = threading.Event()
        self._cancel_events.add(cancel_event)
        start = time.perf_counter()
        try:
            if documents is None:
                build = await asyncio.to_thread(
                    self.builder.rebuild_from_source,
                    self.document_source,
                    cancel_event=cancel_event,
                )
            else:
                build = await asyncio.to_thread(self.builder.rebuild_all, documents, cancel_event=cancel_event)
        except BuildInProgressError as exc:
            return self._busy("rebuild", exc)
        except RebuildCancelledError as exc:
            return self._record(
                OperationResult(
                    operation="rebuild",
                    status="cancelled",
                    reason=str(exc),
                    duration_seconds=time.perf_counter() - start,
                )
            )
        except (BookSearchError, OSError) as exc:
            logger.error("Rebuild failed, previous index kept: %s", exc, exc_info=True)
            return self._failed("rebuild", exc, start)
        except Exception as exc:
            logger.exception("Unexpected error during rebuild, previous index kept")
            return self._failed("rebuild", exc, start)
        finally:
            self._cancel_events.discard(cancel_event)
        return self._record(self._completed(build))

    async def trigger_update(self, book_id: int) -> OperationResult:
        """Re-index one document fetched from the document source."""
        start = time.perf_counter()
        try:
            build = await asyncio.to_thread(self.builder.update_from_source, self.document_source, book_id)
        except BuildInProgressError as exc:
            return self._busy("update", exc)
        except (BookSearchError, OSError) as exc:
            logger.warning("Update of book %s failed: %s", book_id, exc)
            return self._failed("update", exc, start)
        except Exception as exc:
            logger.exception("Unexpected error while updating book %s", book_id)
            return self._failed("update", exc, start)
        return self._record(self._completed(build))

    def cancel_rebuild(self) -> bool:
        """Ask running rebuilds to stop at the next document boundary."""
        events = list(self._cancel_events)
        for event in events:
            event.set()
        if events:
            logger.info("Cancellation requested for %s running rebuild(s)", len(events))
        return bool(events)

    async def query(
        self,
        text: str | None,
        filters: SearchFilters | Mapping[str, Any] | None = None,
        limit: int | None = None,
        offset: int = 0,
    ) -> SearchResponse:
        return await asyncio.to_thread(self.query_engine.search, text, filters, limit, offset)

    def status(self) -> ServiceStatus:
        snapshot = self.index_store.current()
        return ServiceStatus(
            building=self.builder.building,
            running_operation=self.builder.running_operation,
            snapshot_version=snapshot.version,
            document_count=snapshot.doc_count,
            term_count=snapshot.term_count,
            metadata_count=len(snapshot.records),
            last_result=self._last_result,
        )

    async def close(self) -> None:
        """Wait for pending snapshot writes and release storage handles."""
        await asyncio.to_thread(self.index_store.close)
        self.metadata_store.close()

    def _record(self, result: OperationResult) -> OperationResult:
        self._last_result = result
        return result

    @staticmethod
    def _completed(build: BuildResult) -> OperationResult:
        return OperationResult(
            operation=build.operation,  # type: ignore[arg-type]
            status="completed",
            documents_indexed=build.documents_indexed,
            documents_skipped=build.documents_skipped,
            errors=list(build.errors),
            snapshot_version=build.snapshot_version,
            duration_seconds=build.duration_seconds,
        )

    @staticmethod
    def _busy(operation: str, exc: BuildInProgressError) -> OperationResult:
        # Not recorded as last_result; the running build reports its own outcome.
        logger.info("Rejected %s: %s", operation, exc)
        return OperationResult(operation=operation, status="busy", reason=str(exc))  # type: ignore[arg-type]

    def _failed(self, operation: str, exc: Exception, start: float) -> OperationResult:
        return self._record(
            OperationResult(
                operation=operation,  # type: ignore[arg-type]
                status="failed",
                reason=str(exc),
                errors=[f"{type(exc).__name__}: {exc}"],
                duration_seconds=time.perf_counter() - start,
            )
        )


def build_service(settings: Settings | None = None) -> IndexingService:
    """Create a service backed by the configured datalake and storage backend."""
    settings = settings or Settings()
    metadata_store, persistence = create_stores(settings)
    index_store = IndexStore(persistence)
    source = DatalakeDocumentSource(settings.datalake_path, bucket_size=settings.datalake_bucket_size)
    return IndexingService(
        settings,
        document_source=source,
        metadata_store=metadata_store,
        index_store=index_store,
    )
