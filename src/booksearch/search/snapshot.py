"""Immutable inverted-index snapshots.

An ``IndexSnapshot`` is never mutated after construction. It holds the
postings and the metadata records of the same generation, so a reader that
dereferences it once ranks, filters and hydrates against one consistent state.
Writers assemble a new one with ``SnapshotWriter`` (full rebuild) or ``IndexSnapshot.with_document``
(single-document update) and hand it to the index store, which publishes it
by swapping one reference. Readers that grabbed the previous snapshot keep a
consistent view until they finish.

Serialized layout (sorted keys, ids and terms sorted)::

    {"format": "booksearch-index/v1", "terms": {"alice": [11, 12], ...}}

Per-document term sets are not persisted; they are derived from the postings
on load. Metadata records are persisted by the metadata store and attached with
``with_records`` at bootstrap.
"""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field, replace
from types import MappingProxyType
from typing import Any

from booksearch.domain.model import BookMetadata
from booksearch.errors import SnapshotCorruptedError
from booksearch.search.tokenizer import TermSet, is_term


SNAPSHOT_FORMAT = "booksearch-index/v1"

_EMPTY: frozenset[int] = frozenset()


def _freeze_postings(postings: Mapping[str, Iterable[int]]) -> Mapping[str, frozenset[int]]:
    return MappingProxyType({term: frozenset(ids) for term, ids in postings.items() if ids})


def _invert(postings: Mapping[str, frozenset[int]]) -> Mapping[int, frozenset[str]]:
    document_terms: dict[int, set[str]] = defaultdict(set)
    for term, ids in postings.items():
        for book_id in ids:
            document_terms[book_id].add(term)
    return MappingProxyType({book_id: frozenset(terms) for book_id, terms in document_terms.items()})


@dataclass(frozen=True, slots=True)
class IndexSnapshot:
    """Point-in-time term → document-id mapping, its inverse and the metadata records."""

    postings: Mapping[str, frozenset[int]] = field(default_factory=lambda: MappingProxyType({}))
    document_terms: Mapping[int, frozenset[str]] = field(default_factory=lambda: MappingProxyType({}))
    records: Mapping[int, BookMetadata] = field(default_factory=lambda: MappingProxyType({}))
    version: int = 0

    @classmethod
    def empty(cls, version: int = 0) -> IndexSnapshot:
        return cls(version=version)

    @classmethod
    def from_postings(cls, postings: Mapping[str, Iterable[int]], *, version: int = 0) -> IndexSnapshot:
        frozen = _freeze_postings(postings)
        return cls(postings=frozen, document_terms=_invert(frozen), version=version)

    @property
    def doc_count(self) -> int:
        return len(self.document_terms)

    @property
    def term_count(self) -> int:
        return len(self.postings)

    def term_postings(self, term: str) -> frozenset[int]:
        """Return the ids of documents containing ``term`` (empty when unknown)."""
        return self.postings.get(term, _EMPTY)

    def terms_for(self, book_id: int) -> TermSet:
        return self.document_terms.get(book_id, frozenset())

    def contains_document(self, book_id: int) -> bool:
        return book_id in self.document_terms

    def record(self, book_id: int) -> BookMetadata | None:
        return self.records.get(book_id)

    def browse(self, predicate: Callable[[BookMetadata], bool] | None = None) -> list[BookMetadata]:
        """Records accepted by ``predicate``, ordered by ascending book id."""
        records = self.records
        return [records[book_id] for book_id in sorted(records) if predicate is None or predicate(records[book_id])]

    def with_records(self, records: Iterable[BookMetadata]) -> IndexSnapshot:
        return replace(self, records=MappingProxyType({record.book_id: record for record in records}))

    def with_document(
        self,
        book_id: int,
        terms: TermSet,
        *,
        version: int,
        record: BookMetadata | None = None,
    ) -> IndexSnapshot:
        """Return a copy where ``book_id`` is associated with exactly ``terms``.

        When ``record`` is given it replaces the document's metadata record.

        Only the postings of terms gained or lost by the document are rebuilt;
        every other postings set is shared with this snapshot.
        """
        previous = self.terms_for(book_id)
        postings = dict(self.postings)
        for term in previous - terms:
            remaining = postings.get(term, _EMPTY) - {book_id}
            if remaining:
                postings[term] = remaining
            else:
                postings.pop(term, None)
        for term in terms - previous:
            postings[term] = postings.get(term, _EMPTY) | {book_id}

        document_terms = dict(self.document_terms)
        if terms:
            document_terms[book_id] = frozenset(terms)
        else:
            document_terms.pop(book_id, None)

        records = self.records
        if record is not None:
            records = MappingProxyType({**records, book_id: record})

        return IndexSnapshot(
            postings=MappingProxyType(postings),
            document_terms=MappingProxyType(document_terms),
            records=records,
            version=version,
        )

    def to_payload(self) -> dict[str, Any]:
        """Serialize with sorted terms and sorted id lists for byte-stable output."""
        return {
            "format": SNAPSHOT_FORMAT,
            "terms": {term: sorted(self.postings[term]) for term in sorted(self.postings)},
        }

    @classmethod
    def from_payload(cls, data: Mapping[str, Any], *, version: int = 0) -> IndexSnapshot:
        """Rebuild a snapshot from ``to_payload`` output, validating every entry."""
        if not isinstance(data, Mapping):
            raise SnapshotCorruptedError("Snapshot payload must be a JSON object")
        fmt = data.get("format")
        if fmt != SNAPSHOT_FORMAT:
            raise SnapshotCorruptedError(f"Unsupported snapshot format: {fmt!r}")
        raw_terms = data.get("terms")
        if not isinstance(raw_terms, Mapping):
            raise SnapshotCorruptedError("Snapshot payload is missing the 'terms' mapping")

        postings: dict[str, frozenset[int]] = {}
        for term, ids in raw_terms.items():
            if not isinstance(term, str) or not is_term(term):
                raise SnapshotCorruptedError(f"Invalid term in snapshot: {term!r}")
            if not isinstance(ids, list) or not all(isinstance(i, int) and i > 0 for i in ids):
                raise SnapshotCorruptedError(f"Invalid postings for term {term!r}")
            postings[term] = frozenset(ids)
        return cls.from_postings(postings, version=version)


class SnapshotWriter:
    """Accumulates documents for a full rebuild in an isolated working copy."""

    def __init__(self) -> None:
        self._postings: dict[str, set[int]] = defaultdict(set)
        self._document_terms: dict[int, frozenset[str]] = {}
        self._records: dict[int, BookMetadata] = {}

    def __len__(self) -> int:
        return len(self._document_terms)

    def add_document(self, book_id: int, terms: TermSet, record: BookMetadata | None = None) -> None:
        """Record ``terms`` (and ``record``) for ``book_id``; a repeated id replaces the earlier entry."""
        if record is not None:
            self._records[book_id] = record
        previous = self._document_terms.get(book_id)
        if previous is not None:
            for term in previous - terms:
                self._postings[term].discard(book_id)
        for term in terms:
            self._postings[term].add(book_id)
        if terms:
            self._document_terms[book_id] = frozenset(terms)
        else:
            self._document_terms.pop(book_id, None)

    def build(self, *, version: int) -> IndexSnapshot:
        postings = _freeze_postings(self._postings)
        return IndexSnapshot(
            postings=postings,
            document_terms=MappingProxyType(dict(self._document_terms)),
            records=MappingProxyType(dict(self._records)),
            version=version,
        )
