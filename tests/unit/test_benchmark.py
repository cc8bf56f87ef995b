"""Smoke tests for the benchmark script."""

import orjson
import pytest

import benchmark_index


pytestmark = pytest.mark.unit


class TestBenchmark:
    def test_generated_books_are_deterministic(self):
        first = benchmark_index.generate_books(3, words_per_book=20)
        second = benchmark_index.generate_books(3, words_per_book=20)
        assert first == second
        assert [book.book_id for book in first] == [1, 2, 3]
        assert first[0].header.startswith("Title: Book 1\nAuthor: ")

    def test_summary_of_single_sample(self):
        summary = benchmark_index.summarize([2.0])
        assert summary["mean_ms"] == summary["max_ms"] == 2.0
        assert summary["samples"] == 1
        assert "p95_ms" not in summary

    def test_tokenize_covers_every_size(self):
        results = benchmark_index.benchmark_tokenize(iterations=1)
        assert sorted(results) == ["10000_words", "1000_words", "100_words"]

    @pytest.mark.parametrize("backend", ["json", "sqlite"])
    def test_backend_run(self, backend):
        stats = benchmark_index.benchmark_backend(backend, 10, iterations=2)
        assert stats["rebuild_all"]["samples"] == 1
        assert stats["update_one"]["samples"] == 2
        assert set(stats["search"]) == {*benchmark_index.QUERIES, "filtered"}

    def test_main_saves_results(self, tmp_path, monkeypatch, capsys):
        monkeypatch.setattr(benchmark_index, "BOOK_COUNTS", (5,))
        monkeypatch.setattr(benchmark_index, "WORD_COUNTS", (100,))
        output = tmp_path / "results.json"
        assert benchmark_index.main(["--iterations", "1", "--output", str(output)]) == 0
        results = orjson.loads(output.read_bytes())
        assert set(results["backends"]) == {"json", "sqlite"}
        assert "5_books" in results["backends"]["sqlite"]
        assert "Results saved" in capsys.readouterr().out
