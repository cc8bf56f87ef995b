"""Bibliographic metadata extraction from Project Gutenberg style headers.

Extraction is driven by an ordered rule table. Each header line is checked
once against every rule whose field is still unresolved; the first line that
yields a non-empty value wins. The extractor never raises: missing or
unparseable fields fall back to fixed placeholders so that every indexed
document has a usable record.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
import logging
import re

from booksearch.domain.model import DEFAULT_LANGUAGE, UNKNOWN_AUTHOR, BookMetadata, unknown_title


logger = logging.getLogger(__name__)

DEFAULT_SCAN_LINES = 100
DEFAULT_MAX_LENGTH = 300
ELLIPSIS = "..."

_WHITESPACE = re.compile(r"\s+")
_YEAR = re.compile(r"\d{4}")


def clean_value(value: str, max_length: int = DEFAULT_MAX_LENGTH) -> str:
    """Collapse whitespace and truncate long values with an ellipsis marker."""
    cleaned = _WHITESPACE.sub(" ", value).strip()
    if len(cleaned) > max_length:
        cleaned = cleaned[: max_length - len(ELLIPSIS)] + ELLIPSIS
    return cleaned


def _parse_text(value: str, max_length: int) -> str | None:
    return clean_value(value, max_length) or None


def _parse_language(value: str, max_length: int) -> str | None:
    cleaned = clean_value(value, max_length)
    return cleaned.lower() or None


def _parse_year(value: str, max_length: int) -> int | None:
    match = _YEAR.search(value)
    if match is None:
        return None
    try:
        return int(match.group(0))
    except ValueError:
        logger.warning("Failed to parse year: %s", match.group(0))
        return None


@dataclass(frozen=True, slots=True)
class FieldRule:
    """One row of the extraction table: where to look and how to parse."""

    label: str
    field: str
    parse: Callable[[str, int], str | int | None]

    def apply(self, line: str, max_length: int) -> str | int | None:
        position = line.lower().find(self.label.lower())
        if position == -1:
            return None
        return self.parse(line[position + len(self.label) :], max_length)


FIELD_RULES: tuple[FieldRule, ...] = (
    FieldRule("Title:", "title", _parse_text),
    FieldRule("Author:", "author", _parse_text),
    FieldRule("Language:", "language", _parse_language),
    FieldRule("Release Date:", "year", _parse_year),
)


class MetadataExtractor:
    """Stateless, reentrant header parser."""

    def __init__(
        self,
        *,
        scan_lines: int = DEFAULT_SCAN_LINES,
        max_length: int = DEFAULT_MAX_LENGTH,
        rules: tuple[FieldRule, ...] = FIELD_RULES,
    ) -> None:
        self.scan_lines = scan_lines
        self.max_length = max_length
        self.rules = rules

    def extract_fields(self, header: str | None) -> dict[str, str | int]:
        """Return the raw fields found in the first ``scan_lines`` header lines."""
        found: dict[str, str | int] = {}
        if not header:
            return found
        pending = list(self.rules)
        for line in header.splitlines()[: self.scan_lines]:
            for rule in list(pending):
                value = rule.apply(line, self.max_length)
                if value is None:
                    continue
                found[rule.field] = value
                pending.remove(rule)
            if not pending:
                break
        return found

    def extract(self, book_id: int, header: str | None, path: str = "") -> BookMetadata:
        """Build a complete metadata record, substituting placeholders as needed."""
        fields = self.extract_fields(header)
        metadata = BookMetadata(
            book_id=book_id,
            title=str(fields.get("title") or unknown_title(book_id)),
            author=str(fields.get("author") or UNKNOWN_AUTHOR),
            language=str(fields.get("language") or DEFAULT_LANGUAGE),
            year=fields.get("year"),  # type: ignore[arg-type]
            path=path,
        )
        logger.debug("Extracted metadata for book %s: %s", book_id, metadata)
        return metadata


_default_extractor = MetadataExtractor()


def extract_metadata(book_id: int, header: str | None, path: str = "") -> BookMetadata:
    """Extract metadata with the default scan window and value length."""
    return _default_extractor.extract(book_id, header, path)
