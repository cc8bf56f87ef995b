"""Document source adapters.

The acquisition component downloads books and leaves them in a bucketed
datalake on disk; the indexing core only reads from it through
``AbstractDocumentSource``.

Datalake layout::

    <root>/downloaded_books.txt          one book id per line, sorted
    <root>/bucket_<id // bucket_size>/<id>_header.txt
    <root>/bucket_<id // bucket_size>/<id>_body.txt
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Iterable
import logging
from pathlib import Path
import re

from booksearch.domain.model import RawDocument
from booksearch.errors import DocumentNotFoundError, DocumentReadError


logger = logging.getLogger(__name__)

START_MARKER = "*** START OF"
END_MARKER = "*** END OF"
TRACKING_FILENAME = "downloaded_books.txt"

_START_LINE = re.compile(r"\*\*\* START OF[^\n]*(?:\n|$)")


def split_header_body(content: str) -> tuple[str, str]:
    """Split a raw Gutenberg text into its header and body.

    The header is everything before the ``*** START OF`` marker; the body is
    the text between the marker line and ``*** END OF``.

    Raises:
        DocumentReadError: When a marker is missing or either part is empty.
    """
    start = content.find(START_MARKER)
    if start == -1:
        raise DocumentReadError(
            "Invalid book format: START marker not found. "
            "This book may not be in plain text format or may be corrupted."
        )
    end = content.find(END_MARKER, start)
    if end == -1:
        raise DocumentReadError("Invalid book format: END marker not found. This book may be incomplete or corrupted.")

    header = content[:start].strip()
    body = _START_LINE.sub("", content[start:end].strip(), count=1).strip()

    if not header:
        raise DocumentReadError("Invalid book format: Header is empty")
    if not body:
        raise DocumentReadError("Invalid book format: Body is empty")
    return header, body


class AbstractDocumentSource(ABC):
    """Read-only view of the documents the acquisition component has fetched."""

    @abstractmethod
    def list_documents(self) -> list[int]:
        """Return known document ids in ascending order."""
        raise NotImplementedError

    @abstractmethod
    def get_text(self, book_id: int) -> RawDocument:
        """Return header and body text, or raise ``DocumentNotFoundError``."""
        raise NotImplementedError


class InMemoryDocumentSource(AbstractDocumentSource):
    """Documents held in a dict; used by tests and embedding callers."""

    def __init__(self, documents: Iterable[RawDocument] = ()) -> None:
        self._documents: dict[int, RawDocument] = {doc.book_id: doc for doc in documents}

    def add(self, document: RawDocument) -> None:
        self._documents[document.book_id] = document

    def list_documents(self) -> list[int]:
        return sorted(self._documents)

    def get_text(self, book_id: int) -> RawDocument:
        try:
            return self._documents[book_id]
        except KeyError:
            raise DocumentNotFoundError(book_id) from None


class DatalakeDocumentSource(AbstractDocumentSource):
    """Bucketed header/body files plus a tracking file of downloaded ids."""

    def __init__(self, root: str | Path, *, bucket_size: int = 10) -> None:
        if bucket_size < 1:
            raise ValueError("bucket_size must be at least 1")
        self.root = Path(root)
        self.bucket_size = bucket_size
        self.tracking_file = self.root / TRACKING_FILENAME

    def bucket_path(self, book_id: int) -> Path:
        return self.root / f"bucket_{book_id // self.bucket_size}"

    def list_documents(self) -> list[int]:
        if not self.tracking_file.exists():
            return []
        books: set[int] = set()
        for line in self.tracking_file.read_text(encoding="utf-8").splitlines():
            line = line.strip()
            if not line:
                continue
            try:
                books.add(int(line))
            except ValueError:
                logger.warning("Invalid book ID in tracking file: %s", line)
        return sorted(books)

    def get_text(self, book_id: int) -> RawDocument:
        bucket = self.bucket_path(book_id)
        header_path = bucket / f"{book_id}_header.txt"
        body_path = bucket / f"{book_id}_body.txt"
        if not header_path.exists() or not body_path.exists():
            raise DocumentNotFoundError(book_id)
        try:
            header = header_path.read_text(encoding="utf-8")
            body = body_path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            raise DocumentReadError(f"Failed to read book {book_id} from {bucket}: {exc}") from exc
        return RawDocument(book_id=book_id, header=header, body=body, path=str(bucket))

    def save_book(self, book_id: int, header: str, body: str) -> Path:
        """Write a book into its bucket and record it in the tracking file."""
        bucket = self.bucket_path(book_id)
        bucket.mkdir(parents=True, exist_ok=True)
        (bucket / f"{book_id}_header.txt").write_text(header, encoding="utf-8")
        (bucket / f"{book_id}_body.txt").write_text(body, encoding="utf-8")
        self._track(book_id)
        logger.info("Saved book %s to bucket %s", book_id, bucket)
        return bucket

    def _track(self, book_id: int) -> None:
        books = set(self.list_documents())
        books.add(book_id)
        self.root.mkdir(parents=True, exist_ok=True)
        self.tracking_file.write_text("".join(f"{book}\n" for book in sorted(books)), encoding="utf-8")
