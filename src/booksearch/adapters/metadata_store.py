"""Metadata store abstractions and in-process implementations.

Defines the narrow contract the indexing core relies on. Implementations can
keep records in memory, in a JSON file or in SQLite; the core never sees the
difference.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Callable, Iterable, Mapping
import logging
from pathlib import Path
import threading
from types import MappingProxyType

from pydantic import ValidationError

from booksearch.domain.model import BookMetadata
from booksearch.errors import MetadataNotFoundError, SnapshotCorruptedError
from booksearch.search.storage import atomic_write_bytes, load_json_payload, serialize_json_payload


logger = logging.getLogger(__name__)

MetadataPredicate = Callable[[BookMetadata], bool]


class AbstractMetadataStore(ABC):
    """Durable mapping of book id to bibliographic metadata."""

    @abstractmethod
    def get(self, book_id: int) -> BookMetadata:
        """Return the record for ``book_id`` or raise ``MetadataNotFoundError``."""
        raise NotImplementedError

    @abstractmethod
    def upsert_all(self, records: Iterable[BookMetadata]) -> None:
        """Atomically replace every stored record with ``records``."""
        raise NotImplementedError

    @abstractmethod
    def upsert_one(self, record: BookMetadata) -> None:
        """Insert or replace a single record."""
        raise NotImplementedError

    @abstractmethod
    def filter(self, predicate: MetadataPredicate | None = None) -> list[BookMetadata]:
        """Return records accepted by ``predicate`` ordered by ascending book id."""
        raise NotImplementedError

    @abstractmethod
    def count(self) -> int:
        raise NotImplementedError

    def get_many(self, book_ids: Iterable[int]) -> dict[int, BookMetadata]:
        """Return the known records among ``book_ids``; unknown ids are omitted."""
        found: dict[int, BookMetadata] = {}
        for book_id in book_ids:
            try:
                found[book_id] = self.get(book_id)
            except MetadataNotFoundError:
                continue
        return found

    def all(self) -> list[BookMetadata]:
        return self.filter(None)

    def close(self) -> None:
        """Optional hook for releasing backend resources."""


class InMemoryMetadataStore(AbstractMetadataStore):
    """Records held in an immutable mapping that writers replace wholesale.

    Readers dereference the mapping once per call and never take a lock.
    """

    def __init__(self, records: Iterable[BookMetadata] = ()) -> None:
        self._records: Mapping[int, BookMetadata] = MappingProxyType({r.book_id: r for r in records})
        self._write_lock = threading.Lock()

    def get(self, book_id: int) -> BookMetadata:
        try:
            return self._records[book_id]
        except KeyError:
            raise MetadataNotFoundError(book_id) from None

    def get_many(self, book_ids: Iterable[int]) -> dict[int, BookMetadata]:
        records = self._records
        return {book_id: records[book_id] for book_id in book_ids if book_id in records}

    def upsert_all(self, records: Iterable[BookMetadata]) -> None:
        replacement = MappingProxyType({record.book_id: record for record in records})
        with self._write_lock:
            self._commit(replacement)

    def upsert_one(self, record: BookMetadata) -> None:
        with self._write_lock:
            updated = dict(self._records)
            updated[record.book_id] = record
            self._commit(MappingProxyType(updated))

    def filter(self, predicate: MetadataPredicate | None = None) -> list[BookMetadata]:
        records = self._records
        return [records[book_id] for book_id in sorted(records) if predicate is None or predicate(records[book_id])]

    def count(self) -> int:
        return len(self._records)

    def _commit(self, records: Mapping[int, BookMetadata]) -> None:
        self._records = records


class JsonMetadataStore(InMemoryMetadataStore):
    """In-memory view backed by one JSON object keyed by book id.

    The file is rewritten atomically before the in-memory mapping is swapped,
    so a failed write leaves both the file and the readers' view unchanged.
    An unreadable file is logged and treated as empty; the next rebuild
    overwrites it.
    """

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)
        self.load_error: str | None = None
        try:
            records = self._load()
        except SnapshotCorruptedError as exc:
            logger.error("Metadata file is unreadable, starting empty until the next rebuild: %s", exc)
            self.load_error = str(exc)
            records = []
        super().__init__(records)

    def _load(self) -> list[BookMetadata]:
        if not self.path.exists():
            return []
        payload = load_json_payload(self.path)
        if not isinstance(payload, dict):
            raise SnapshotCorruptedError(f"Metadata file {self.path} must contain a JSON object")
        try:
            records = [BookMetadata.model_validate(entry) for entry in payload.values()]
        except ValidationError as exc:
            raise SnapshotCorruptedError(f"Invalid metadata record in {self.path}: {exc}") from exc
        logger.info("Loaded %s metadata records from %s", len(records), self.path)
        return records

    def _commit(self, records: Mapping[int, BookMetadata]) -> None:
        payload = {str(book_id): records[book_id].to_record() for book_id in sorted(records)}
        atomic_write_bytes(self.path, serialize_json_payload(payload))
        super()._commit(records)
