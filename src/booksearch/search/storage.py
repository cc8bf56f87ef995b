"""JSON persistence for index snapshots.

Snapshots are written as minified JSON with sorted keys so that two rebuilds
over the same documents produce byte-identical files. Writes go to a sibling
temporary file that is then renamed over the target, so a reader of the file
never sees a half-written snapshot.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Protocol, cast

import orjson

from booksearch.errors import SnapshotCorruptedError
from booksearch.search.snapshot import IndexSnapshot


logger = logging.getLogger(__name__)


def load_json_payload(path: Path) -> Any:
    try:
        return orjson.loads(path.read_bytes())
    except orjson.JSONDecodeError as exc:
        raise SnapshotCorruptedError(f"Unreadable JSON in {path}: {exc}") from exc


def serialize_json_payload(payload: Any) -> bytes:
    return orjson.dumps(payload, option=orjson.OPT_SORT_KEYS)


def atomic_write_bytes(path: Path, data: bytes) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp_path = path.with_suffix(path.suffix + ".tmp") if path.suffix else path.with_name(path.name + ".tmp")
    tmp_path.write_bytes(data)
    tmp_path.replace(path)


class SnapshotPersistence(Protocol):
    """Durable home for the latest published snapshot."""

    def save(self, snapshot: IndexSnapshot) -> None: ...

    def load(self) -> IndexSnapshot | None: ...


class JsonSnapshotPersistence:
    """Persist the inverted index as one JSON object keyed by term."""

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)

    def save(self, snapshot: IndexSnapshot) -> None:
        atomic_write_bytes(self.path, serialize_json_payload(snapshot.to_payload()))
        logger.debug("Persisted snapshot v%s (%s terms) to %s", snapshot.version, snapshot.term_count, self.path)

    def load(self) -> IndexSnapshot | None:
        if not self.path.exists():
            return None
        payload = cast("dict[str, Any]", load_json_payload(self.path))
        return IndexSnapshot.from_payload(payload)
