"""Unit tests for domain value objects and error types."""

from pydantic import ValidationError
import pytest

from booksearch.domain import BookMetadata, OperationResult, RawDocument, SearchFilters, unknown_title
from booksearch.errors import (
    BookSearchError,
    BuildInProgressError,
    DocumentNotFoundError,
    DocumentReadError,
    RebuildCancelledError,
)


pytestmark = pytest.mark.unit

CARROLL = BookMetadata(book_id=11, title="Alice", author="Lewis Carroll", language="en", year=1865)


class TestBookMetadata:
    def test_frozen(self):
        with pytest.raises(ValidationError):
            CARROLL.title = "Other"  # type: ignore[misc]

    @pytest.mark.parametrize(
        "fields",
        [
            {"book_id": 0, "title": "t", "author": "a"},
            {"book_id": 1, "title": "", "author": "a"},
            {"book_id": 1, "title": "t", "author": ""},
        ],
    )
    def test_invariants(self, fields):
        with pytest.raises(ValidationError):
            BookMetadata(**fields)

    def test_defaults(self):
        record = BookMetadata(book_id=3, title="t", author="a")
        assert record.language == "en"
        assert record.year is None
        assert record.to_record() == {
            "book_id": 3,
            "title": "t",
            "author": "a",
            "language": "en",
            "year": None,
            "path": "",
        }

    def test_unknown_title(self):
        assert unknown_title(42) == "Unknown Title (Book 42)"


class TestRawDocument:
    def test_full_text_joins_header_and_body(self):
        assert RawDocument(1, "header line", "body line").full_text == "header line\nbody line"


class TestSearchFilters:
    def test_empty(self):
        assert SearchFilters().is_empty()
        assert SearchFilters().matches(CARROLL)

    def test_author_substring(self):
        assert SearchFilters(author="carr").matches(CARROLL)
        assert not SearchFilters(author="austen").matches(CARROLL)

    def test_language_is_exact(self):
        assert SearchFilters(language=" EN ").matches(CARROLL)
        assert not SearchFilters(language="eng").matches(CARROLL)

    def test_year(self):
        assert SearchFilters(year=1865).matches(CARROLL)
        assert SearchFilters(year=" 1865 ").matches(CARROLL)
        assert not SearchFilters(year="1865a").matches(CARROLL)
        assert not SearchFilters(year=1866).matches(CARROLL)

    def test_year_filter_excludes_records_without_year(self):
        record = BookMetadata(book_id=2, title="t", author="a")
        assert not SearchFilters(year=1865).matches(record)


class TestOperationResult:
    def test_completed_is_ok(self):
        result = OperationResult(operation="rebuild", status="completed")
        assert result.ok
        assert not result.retryable

    def test_busy_is_retryable(self):
        assert OperationResult(operation="update", status="busy").retryable


class TestErrors:
    def test_hierarchy(self):
        assert issubclass(DocumentNotFoundError, LookupError)
        assert issubclass(DocumentReadError, OSError)
        for error in (DocumentNotFoundError, DocumentReadError, BuildInProgressError, RebuildCancelledError):
            assert issubclass(error, BookSearchError)

    def test_build_in_progress_message(self):
        error = BuildInProgressError("update")
        assert str(error) == "Build already in progress (update)"
        assert error.retryable

    def test_cancelled_reports_progress(self):
        assert RebuildCancelledError(3).processed == 3
