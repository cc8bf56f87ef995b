"""Domain models for search functionality.

Value objects are immutable (frozen=True). Filters accept loosely typed input
so that a malformed value from a caller narrows the result set instead of
failing the request.
"""

from pydantic import BaseModel, ConfigDict, Field

from booksearch.domain.model import BookMetadata


class SearchFilters(BaseModel):
    """Optional metadata constraints applied after term matching.

    ``year`` keeps whatever the caller sent; a value that is not an integer
    matches no document.
    """

    model_config = ConfigDict(frozen=True)

    author: str | None = None
    language: str | None = None
    year: int | str | None = None

    def is_empty(self) -> bool:
        return self.author is None and self.language is None and self.year is None

    def matches(self, metadata: BookMetadata) -> bool:
        """Apply author, language and year constraints in that order."""
        if self.author is not None and self.author.lower() not in metadata.author.lower():
            return False
        if self.language is not None and self.language.strip().lower() != metadata.language.lower():
            return False
        if self.year is not None:
            wanted = _parse_year(self.year)
            if wanted is None or metadata.year != wanted:
                return False
        return True


def _parse_year(value: int | str) -> int | None:
    if isinstance(value, int):
        return value
    try:
        return int(value.strip())
    except ValueError:
        return None


class SearchHit(BaseModel):
    """Value object for a single ranked result.

    ``score`` counts the distinct query terms found in the document; browse
    listings (queries without terms) report a score of 0.
    """

    model_config = ConfigDict(frozen=True)

    book_id: int
    metadata: BookMetadata
    score: int = Field(ge=0)


class SearchResponse(BaseModel):
    """Value object for a complete, paginated search response."""

    model_config = ConfigDict(frozen=True)

    hits: list[SearchHit]
    total: int = Field(ge=0, description="Matches before offset/limit were applied")
    query_terms: list[str] = Field(default_factory=list)
    limit: int
    offset: int = 0
    snapshot_version: int = 0

    @property
    def is_browse(self) -> bool:
        return not self.query_terms
