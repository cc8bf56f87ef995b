"""Domain layer - pure value objects with no infrastructure dependencies.

This layer contains:
- Bibliographic metadata and raw document text handed over by the source
- Search filters, hits and paginated responses
- Operation results reported back to the orchestrator
"""

from booksearch.domain.model import (
    DEFAULT_LANGUAGE,
    UNKNOWN_AUTHOR,
    BookMetadata,
    RawDocument,
    unknown_title,
)
from booksearch.domain.operations import OperationResult, ServiceStatus
from booksearch.domain.search import SearchFilters, SearchHit, SearchResponse


__all__ = [
    "DEFAULT_LANGUAGE",
    "UNKNOWN_AUTHOR",
    "BookMetadata",
    "OperationResult",
    "RawDocument",
    "SearchFilters",
    "SearchHit",
    "SearchResponse",
    "ServiceStatus",
    "unknown_title",
]
