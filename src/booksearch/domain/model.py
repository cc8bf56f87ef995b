"""Domain model - documents and bibliographic metadata.

Value objects are immutable and validated at construction. Nothing here
touches storage or the filesystem.
"""

from dataclasses import dataclass

from pydantic import BaseModel, ConfigDict, Field


UNKNOWN_AUTHOR = "Unknown Author"
DEFAULT_LANGUAGE = "en"


def unknown_title(book_id: int) -> str:
    """Placeholder title used when a header carries no ``Title:`` line."""
    return f"Unknown Title (Book {book_id})"


class BookMetadata(BaseModel):
    """Bibliographic record for one indexed book.

    Title and author are never empty; the extractor substitutes placeholders
    before a record is constructed. ``year`` stays ``None`` when the header has
    no parseable release year.
    """

    model_config = ConfigDict(frozen=True)

    book_id: int = Field(gt=0)
    title: str = Field(min_length=1)
    author: str = Field(min_length=1)
    language: str = DEFAULT_LANGUAGE
    year: int | None = None
    path: str = ""

    def to_record(self) -> dict:
        """Serialize with stable key order for persistence."""
        return self.model_dump(mode="json")


@dataclass(frozen=True, slots=True)
class RawDocument:
    """Text handed over by the document source for one book."""

    book_id: int
    header: str
    body: str
    path: str = ""

    @property
    def full_text(self) -> str:
        return f"{self.header}\n{self.body}"
