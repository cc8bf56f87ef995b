"""Adapters layer - storage and document source implementations.

Abstracts metadata storage and document acquisition behind narrow interfaces
so the indexing core never depends on a concrete backend.
"""

from .document_source import (
    AbstractDocumentSource,
    DatalakeDocumentSource,
    InMemoryDocumentSource,
    split_header_body,
)
from .metadata_store import (
    AbstractMetadataStore,
    InMemoryMetadataStore,
    JsonMetadataStore,
)
from .sqlite_metadata_store import SqliteMetadataStore


__all__ = [
    "AbstractDocumentSource",
    "AbstractMetadataStore",
    "DatalakeDocumentSource",
    "InMemoryDocumentSource",
    "InMemoryMetadataStore",
    "JsonMetadataStore",
    "SqliteMetadataStore",
    "split_header_body",
]
