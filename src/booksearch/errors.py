"""Typed failures raised by the indexing-and-query core.

Callers outside the core (the service layer, the CLI) translate these into
structured ``OperationResult`` values instead of letting them escape.
"""

from __future__ import annotations


class BookSearchError(Exception):
    """Base class for every error raised by booksearch."""


class DocumentNotFoundError(BookSearchError, LookupError):
    """Raised when the document source does not know a document id."""

    def __init__(self, book_id: int) -> None:
        super().__init__(f"Document {book_id} is not available from the document source")
        self.book_id = book_id


class DocumentReadError(BookSearchError, OSError):
    """Raised when a document exists but its text is unreadable or malformed."""


class MetadataNotFoundError(BookSearchError, LookupError):
    """Raised when no metadata row exists for a document id."""

    def __init__(self, book_id: int) -> None:
        super().__init__(f"No metadata stored for book {book_id}")
        self.book_id = book_id


class BuildInProgressError(BookSearchError):
    """Raised when a rebuild or update is requested while another write is running.

    The condition is retryable: the caller should try again once the running
    build has finished.
    """

    retryable = True

    def __init__(self, running_operation: str | None = None) -> None:
        detail = f" ({running_operation})" if running_operation else ""
        super().__init__(f"Build already in progress{detail}")
        self.running_operation = running_operation


class RebuildCancelledError(BookSearchError):
    """Raised when a rebuild observed a cancellation request and published nothing."""

    def __init__(self, processed: int) -> None:
        super().__init__(f"Rebuild cancelled after {processed} documents; previous index kept")
        self.processed = processed


class SnapshotCorruptedError(BookSearchError, ValueError):
    """Raised when a persisted index snapshot cannot be decoded."""
