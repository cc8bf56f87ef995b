"""Command line entry point for rebuilding, updating and querying the index.

Usage::

    booksearch rebuild
    booksearch update 1342
    booksearch ingest 1342 pg1342.txt
    booksearch search "pride prejudice" --author austen --limit 5
    booksearch status

Each command prints one JSON document to stdout. Logs go to stderr. When
``METRICS_TEXTFILE`` is set, the Prometheus metrics of the run are written
there for a node_exporter textfile collector.
"""

from __future__ import annotations

import argparse
import asyncio
from collections.abc import Sequence
import logging
from pathlib import Path
import sys

from pydantic import BaseModel, ValidationError

from booksearch.adapters.document_source import split_header_body
from booksearch.config import Settings
from booksearch.errors import BookSearchError
from booksearch.observability.logging import configure_logging
from booksearch.observability.metrics import init_metrics, write_metrics_textfile
from booksearch.observability.tracing import init_tracing
from booksearch.service_layer.indexing_service import IndexingService, build_service


logger = logging.getLogger(__name__)


def build_argument_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="booksearch",
        description="Index public-domain books and search them by term and metadata",
    )
    commands = parser.add_subparsers(dest="command", required=True)

    commands.add_parser("rebuild", help="Rebuild the whole index from the datalake")

    update = commands.add_parser("update", help="Re-index one book from the datalake")
    update.add_argument("book_id", type=int, help="Book id as assigned by the acquisition component")

    ingest = commands.add_parser("ingest", help="Store a raw Gutenberg text in the datalake and index it")
    ingest.add_argument("book_id", type=int, help="Book id to store the text under")
    ingest.add_argument("path", type=Path, help="Raw text containing *** START OF / *** END OF markers")

    search = commands.add_parser("search", help="Search the index")
    search.add_argument("text", nargs="?", default="", help="Query text; omit to browse by metadata")
    search.add_argument("--author", help="Case-insensitive author substring")
    search.add_argument("--language", help="Exact language code, e.g. en")
    search.add_argument("--year", help="Exact release year")
    search.add_argument("--limit", type=int, help="Maximum results to return")
    search.add_argument("--offset", type=int, default=0, help="Results to skip")

    commands.add_parser("status", help="Show index status")
    return parser


def _emit(model: BaseModel) -> None:
    sys.stdout.write(model.model_dump_json() + "\n")


async def _run(service: IndexingService, args: argparse.Namespace) -> int:
    await service.bootstrap()
    try:
        if args.command == "rebuild":
            result = await service.trigger_rebuild()
            _emit(result)
            return 0 if result.ok else 1

        if args.command in ("update", "ingest"):
            if args.command == "ingest":
                header, body = split_header_body(args.path.read_text(encoding="utf-8"))
                service.document_source.save_book(args.book_id, header, body)  # type: ignore[attr-defined]
            result = await service.trigger_update(args.book_id)
            _emit(result)
            return 0 if result.ok else 1

        if args.command == "search":
            filters = {
                key: value
                for key, value in (("author", args.author), ("language", args.language), ("year", args.year))
                if value is not None
            }
            response = await service.query(args.text, filters or None, args.limit, args.offset)
            _emit(response)
            return 0

        _emit(service.status())
        return 0
    finally:
        await service.close()


def main(argv: Sequence[str] | None = None) -> int:
    parser = build_argument_parser()
    args = parser.parse_args(argv)

    try:
        settings = Settings()
    except ValidationError as exc:
        sys.stderr.write(f"Invalid configuration: {exc}\n")
        return 1
    configure_logging(level=settings.log_level, json_output=settings.log_json)
    init_metrics(service_name="booksearch")
    init_tracing(service_name="booksearch")

    try:
        service = build_service(settings)
        return asyncio.run(_run(service, args))
    except (BookSearchError, OSError) as exc:
        logger.error("%s failed: %s", args.command, exc)
        return 1
    finally:
        if settings.metrics_textfile is not None:
            _write_metrics(settings.metrics_textfile)


def _write_metrics(path: Path) -> None:
    try:
        write_metrics_textfile(path)
    except OSError as exc:
        logger.error("Could not write metrics to %s: %s", path, exc)


if __name__ == "__main__":
    sys.exit(main())
