"""Ranked term search and metadata browsing over the published snapshot.

Scores count distinct matched query terms (presence, not frequency). Ties are
broken by ascending book id so pagination is reproducible. Each search
dereferences the published snapshot once and ranks, filters and hydrates
against that one generation of postings and metadata.
"""

from __future__ import annotations

from collections import Counter
from collections.abc import Mapping
import logging
from typing import Any

from opentelemetry.trace import SpanKind
from pydantic import ValidationError

from booksearch.domain.search import SearchFilters, SearchHit, SearchResponse
from booksearch.observability.metrics import SEARCH_COUNT, SEARCH_LATENCY, track_latency
from booksearch.observability.tracing import create_span
from booksearch.search.index_store import IndexStore
from booksearch.search.snapshot import IndexSnapshot
from booksearch.search.tokenizer import tokenize_query


logger = logging.getLogger(__name__)

DEFAULT_LIMIT = 20
MAX_LIMIT = 100


class QueryEngine:
    """Read-only query surface; holds no state besides its collaborators."""

    def __init__(
        self,
        index_store: IndexStore,
        *,
        default_limit: int = DEFAULT_LIMIT,
        max_limit: int = MAX_LIMIT,
    ) -> None:
        self.index_store = index_store
        self.default_limit = default_limit
        self.max_limit = max_limit

    @property
    def collection(self) -> str:
        return self.index_store.collection

    def resolve_limit(self, limit: Any) -> int:
        """Clamp ``limit`` to ``[0, max_limit]``; missing or non-numeric values use the default."""
        if limit is None:
            return self.default_limit
        try:
            requested = int(limit)
        except (TypeError, ValueError):
            logger.debug("Ignoring non-numeric limit %r", limit)
            return self.default_limit
        return max(0, min(requested, self.max_limit))

    @staticmethod
    def resolve_offset(offset: Any) -> int:
        try:
            return max(0, int(offset or 0))
        except (TypeError, ValueError):
            return 0

    def search(
        self,
        query_text: str | None,
        filters: SearchFilters | Mapping[str, Any] | None = None,
        limit: int | None = None,
        offset: int = 0,
    ) -> SearchResponse:
        """Search for ``query_text`` and return one page of ranked hits.

        A query without any indexable term lists every document that passes the
        filters, ordered by id, with a score of 0. Filter values that cannot be
        interpreted match nothing instead of raising.
        """
        terms = tokenize_query(query_text)
        page_size = self.resolve_limit(limit)
        start = self.resolve_offset(offset)
        mode = "terms" if terms else "browse"

        with (
            create_span(
                "search.query",
                kind=SpanKind.INTERNAL,
                attributes={
                    "search.query": (query_text or "")[:100],
                    "search.mode": mode,
                    "search.limit": page_size,
                    "search.offset": start,
                },
            ) as span,
            track_latency(SEARCH_LATENCY, collection=self.collection),
        ):
            SEARCH_COUNT.labels(collection=self.collection, mode=mode).inc()
            snapshot = self.index_store.current()

            resolved = self._resolve_filters(filters)
            if resolved is None:
                span.set_attribute("search.result_count", 0)
                return SearchResponse(
                    hits=[],
                    total=0,
                    query_terms=terms,
                    limit=page_size,
                    offset=start,
                    snapshot_version=snapshot.version,
                )

            if terms:
                ranked = self._rank(snapshot, terms, resolved)
            else:
                predicate = None if resolved.is_empty() else resolved.matches
                ranked = [
                    SearchHit(book_id=record.book_id, metadata=record, score=0)
                    for record in snapshot.browse(predicate)
                ]

            page = ranked[start : start + page_size]
            span.set_attribute("search.result_count", len(page))
            logger.debug(
                "Search %r (%s): %s matches, returning %s",
                query_text,
                mode,
                len(ranked),
                len(page),
            )
            return SearchResponse(
                hits=page,
                total=len(ranked),
                query_terms=terms,
                limit=page_size,
                offset=start,
                snapshot_version=snapshot.version,
            )

    @staticmethod
    def _rank(snapshot: IndexSnapshot, terms: list[str], filters: SearchFilters) -> list[SearchHit]:
        scores: Counter[int] = Counter()
        for term in terms:
            scores.update(snapshot.term_postings(term))

        hits: list[SearchHit] = []
        for book_id, score in scores.items():
            record = snapshot.record(book_id)
            if record is None:
                # Index entry without a metadata row.
                logger.debug("Skipping book %s: no metadata record", book_id)
                continue
            if filters.matches(record):
                hits.append(SearchHit(book_id=book_id, metadata=record, score=score))
        hits.sort(key=lambda hit: (-hit.score, hit.book_id))
        return hits

    @staticmethod
    def _resolve_filters(filters: SearchFilters | Mapping[str, Any] | None) -> SearchFilters | None:
        if filters is None:
            return SearchFilters()
        if isinstance(filters, SearchFilters):
            return filters
        try:
            return SearchFilters.model_validate(dict(filters))
        except ValidationError as exc:
            logger.info("Ignoring search with malformed filters: %s", exc.errors(include_url=False))
            return None
