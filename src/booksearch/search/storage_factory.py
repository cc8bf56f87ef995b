"""Pick metadata and snapshot backends from settings."""

from __future__ import annotations

import logging

from booksearch.adapters.metadata_store import AbstractMetadataStore, JsonMetadataStore
from booksearch.adapters.sqlite_metadata_store import SqliteMetadataStore
from booksearch.config import Settings
from booksearch.search.sqlite_storage import SqliteSnapshotPersistence
from booksearch.search.storage import JsonSnapshotPersistence, SnapshotPersistence


logger = logging.getLogger(__name__)


def create_stores(settings: Settings) -> tuple[AbstractMetadataStore, SnapshotPersistence]:
    """Return ``(metadata_store, snapshot_persistence)`` for ``settings.storage_backend``."""
    paths = settings.get_index_paths()
    settings.index_dir.mkdir(parents=True, exist_ok=True)
    if settings.storage_backend == "sqlite":
        metadata_store: AbstractMetadataStore = SqliteMetadataStore(paths["metadata"])
        persistence: SnapshotPersistence = SqliteSnapshotPersistence(paths["index"])
    else:
        metadata_store = JsonMetadataStore(paths["metadata"])
        persistence = JsonSnapshotPersistence(paths["index"])
    logger.info("Using %s storage under %s", settings.storage_backend, settings.index_dir)
    return metadata_store, persistence
