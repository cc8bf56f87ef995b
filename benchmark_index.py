#!/usr/bin/env python3
"""Performance benchmark for tokenizing, indexing and searching.

Usage::

    python benchmark_index.py [--iterations 20] [--output benchmark_results.json]
"""

import argparse
from pathlib import Path
import random
import statistics
import sys
import tempfile
import time

import orjson

from booksearch.config import Settings
from booksearch.domain.model import RawDocument
from booksearch.search.builder import IndexBuilder
from booksearch.search.index_store import IndexStore
from booksearch.search.query_engine import QueryEngine
from booksearch.search.storage_factory import create_stores
from booksearch.search.tokenizer import tokenize


VOCABULARY = [
    "adventure", "castle", "daughter", "evening", "forest", "garden", "harbour", "island",
    "journey", "kingdom", "letter", "marriage", "night", "ocean", "prince", "queen",
    "river", "sailor", "thunder", "village", "war", "whale", "winter", "yellow",
]
AUTHORS = ["Jane Austen", "Herman Melville", "Lewis Carroll", "Mary Shelley", "Leo Tolstoy"]
LANGUAGES = ["English", "French", "German"]
QUERIES = ["whale", "castle garden", "prince queen kingdom", "night ocean sailor thunder"]
WORD_COUNTS = (100, 1_000, 10_000)
BOOK_COUNTS = (10, 100, 1_000)
BACKENDS = ("json", "sqlite")


def generate_text(rng: random.Random, word_count: int) -> str:
    return " ".join(rng.choice(VOCABULARY) for _ in range(word_count))


def generate_books(count: int, words_per_book: int = 500, seed: int = 42) -> list[RawDocument]:
    rng = random.Random(seed)
    books = []
    for book_id in range(1, count + 1):
        header = "\n".join(
            [
                f"Title: Book {book_id}",
                f"Author: {rng.choice(AUTHORS)}",
                f"Release Date: January 1, {rng.randint(1800, 1950)} [EBook #{book_id}]",
                f"Language: {rng.choice(LANGUAGES)}",
            ]
        )
        books.append(RawDocument(book_id, header, generate_text(rng, words_per_book), f"bench/{book_id}"))
    return books


def summarize(latencies: list[float]) -> dict:
    """Summarize latencies given in milliseconds."""
    summary = {
        "mean_ms": statistics.mean(latencies),
        "median_ms": statistics.median(latencies),
        "min_ms": min(latencies),
        "max_ms": max(latencies),
        "samples": len(latencies),
    }
    if len(latencies) >= 2:
        summary["p95_ms"] = statistics.quantiles(latencies, n=20)[18]
        summary["stdev_ms"] = statistics.stdev(latencies)
    return summary


def timed(func, iterations: int) -> dict:
    latencies = []
    for _ in range(iterations):
        start = time.perf_counter()
        func()
        latencies.append((time.perf_counter() - start) * 1000)
    return summarize(latencies)


def benchmark_tokenize(iterations: int) -> dict:
    rng = random.Random(7)
    results = {}
    for word_count in WORD_COUNTS:
        text = generate_text(rng, word_count)
        results[f"{word_count}_words"] = timed(lambda text=text: tokenize(text), iterations)
    return results


def benchmark_backend(backend: str, book_count: int, iterations: int) -> dict:
    """Time rebuild, single-book update and search for one backend and library size."""
    books = generate_books(book_count)
    with tempfile.TemporaryDirectory(prefix="booksearch-bench-") as tmp:
        settings = Settings(index_dir=Path(tmp), storage_backend=backend)
        metadata_store, persistence = create_stores(settings)
        index_store = IndexStore(persistence, collection=f"bench-{backend}")
        builder = IndexBuilder(index_store, metadata_store)
        engine = QueryEngine(index_store)
        try:
            # Rebuilds include the background snapshot write.
            def rebuild():
                builder.rebuild_all(books)
                index_store.flush()

            rebuild_stats = timed(rebuild, max(1, iterations // 4))

            target = books[len(books) // 2]
            update_stats = timed(
                lambda: builder.update_one(target.book_id, target.header, target.body, target.path),
                iterations,
            )
            index_store.flush()

            search_stats = {}
            for query in QUERIES:
                search_stats[query] = timed(lambda query=query: engine.search(query, limit=10), iterations)
            search_stats["filtered"] = timed(
                lambda: engine.search("whale", {"author": "melville", "language": "english"}, limit=10),
                iterations,
            )
        finally:
            index_store.close()
            metadata_store.close()
    return {"rebuild_all": rebuild_stats, "update_one": update_stats, "search": search_stats}


def print_stats(label: str, stats: dict) -> None:
    print(
        f"  {label:<36} mean {stats['mean_ms']:9.3f} ms"
        f"  median {stats['median_ms']:9.3f} ms  max {stats['max_ms']:9.3f} ms"
    )


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument("--iterations", type=int, default=20, help="Repetitions per measurement")
    parser.add_argument("--output", type=Path, default=Path("benchmark_results.json"), help="Where to save results")
    args = parser.parse_args(argv)
    iterations = max(1, args.iterations)

    print("Running booksearch benchmarks...")
    results = {"timestamp": time.time(), "iterations": iterations, "tokenize": {}, "backends": {}}

    print("\nTokenization:")
    results["tokenize"] = benchmark_tokenize(iterations)
    for label, stats in results["tokenize"].items():
        print_stats(label, stats)

    for backend in BACKENDS:
        results["backends"][backend] = {}
        for book_count in BOOK_COUNTS:
            print(f"\n{backend} backend, {book_count} books:")
            stats = benchmark_backend(backend, book_count, iterations)
            results["backends"][backend][f"{book_count}_books"] = stats
            print_stats("rebuild_all", stats["rebuild_all"])
            print_stats("update_one", stats["update_one"])
            for query, query_stats in stats["search"].items():
                print_stats(f"search '{query}'", query_stats)

    args.output.write_bytes(orjson.dumps(results, option=orjson.OPT_INDENT_2))
    print(f"\nResults saved to {args.output}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
