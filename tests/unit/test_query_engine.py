"""Unit tests for ranked search, filters, browsing and pagination."""

import pytest

from booksearch.domain.model import RawDocument
from booksearch.domain.search import SearchFilters
from booksearch.search.query_engine import QueryEngine


pytestmark = pytest.mark.unit


def _ids(response):
    return [hit.book_id for hit in response.hits]


class TestEndToEndScenarios:
    def test_fox_and_the(self, builder, engine):
        builder.rebuild_all(
            [
                RawDocument(1, "", "the quick brown fox"),
                RawDocument(2, "", "the lazy dog"),
            ]
        )
        fox = engine.search("fox")
        assert [(hit.book_id, hit.score) for hit in fox.hits] == [(1, 1)]

        the = engine.search("the")
        assert [(hit.book_id, hit.score) for hit in the.hits] == [(1, 1), (2, 1)]

    def test_update_changes_results(self, builder, engine):
        builder.rebuild_all([RawDocument(1, "", "the quick brown fox"), RawDocument(2, "", "the lazy dog")])
        builder.update_one(1, "", "the lazy cat")
        assert _ids(engine.search("fox")) == []
        assert _ids(engine.search("lazy")) == [1, 2]


@pytest.mark.usefixtures("indexed_library")
class TestRanking:
    def test_partial_matches_surface(self, engine):
        response = engine.search("alice rabbit")
        assert [(hit.book_id, hit.score) for hit in response.hits] == [(11, 2), (12, 1)]
        assert response.query_terms == ["alice", "rabbit"]

    def test_ties_break_by_ascending_id(self, engine):
        assert _ids(engine.search("the")) == [11, 12, 19942]

    def test_repeated_query_terms_count_once(self, engine):
        response = engine.search("rabbit rabbit RABBIT")
        assert [(hit.book_id, hit.score) for hit in response.hits] == [(11, 1)]

    def test_unknown_terms_contribute_nothing(self, engine):
        assert _ids(engine.search("zebra")) == []
        assert [(hit.book_id, hit.score) for hit in engine.search("zebra candide").hits] == [(19942, 1)]

    def test_header_terms_are_searchable(self, engine):
        assert _ids(engine.search("austen")) == [1342]

    def test_deterministic(self, engine):
        first = engine.search("alice the rabbit glass")
        second = engine.search("alice the rabbit glass")
        assert first.hits == second.hits

    def test_hits_carry_metadata(self, engine):
        hit = engine.search("wonderland").hits[0]
        assert hit.metadata.title == "Alice's Adventures in Wonderland"
        assert hit.metadata.author == "Lewis Carroll"
        assert hit.metadata.year == 2008


@pytest.mark.usefixtures("indexed_library")
class TestFilters:
    def test_author_substring_case_insensitive(self, engine):
        assert _ids(engine.search("alice", {"author": "carroll"})) == [11, 12]
        assert _ids(engine.search("alice", {"author": "CARROLL"})) == [11, 12]

    def test_author_filter_excludes_other_authors(self, engine):
        assert _ids(engine.search("alice", {"author": "austen"})) == []

    def test_language_exact_case_insensitive(self, engine):
        assert _ids(engine.search("the", {"language": "FR"})) == [19942]
        assert _ids(engine.search("the", {"language": "f"})) == []

    def test_year_exact(self, engine):
        assert _ids(engine.search("alice", {"year": 1991})) == [12]
        assert _ids(engine.search("alice", {"year": "1991"})) == [12]

    def test_non_numeric_year_matches_nothing(self, engine):
        response = engine.search("alice", {"year": "nineteen"})
        assert response.hits == []
        assert response.total == 0

    def test_malformed_filters_return_empty_results(self, engine):
        response = engine.search("alice", {"author": ["carroll"]})
        assert response.hits == []

    def test_filters_combine(self, engine):
        filters = SearchFilters(author="carroll", language="en", year=1991)
        assert _ids(engine.search("alice", filters)) == [12]

    def test_empty_filters_mapping(self, engine):
        assert _ids(engine.search("alice", {})) == [11, 12]


@pytest.mark.usefixtures("indexed_library")
class TestBrowse:
    def test_empty_query_lists_everything_by_id(self, engine):
        response = engine.search("")
        assert _ids(response) == [11, 12, 1342, 19942]
        assert all(hit.score == 0 for hit in response.hits)
        assert response.is_browse

    def test_query_without_terms_browses(self, engine):
        assert _ids(engine.search("a an of 42")) == [11, 12, 1342, 19942]

    def test_browse_with_filters(self, engine):
        assert _ids(engine.search(None, {"author": "carroll"})) == [11, 12]
        assert _ids(engine.search("", {"language": "fr"})) == [19942]


@pytest.mark.usefixtures("indexed_library")
class TestPagination:
    def test_limit_and_total(self, engine):
        response = engine.search("the", limit=2)
        assert _ids(response) == [11, 12]
        assert response.total == 3
        assert response.limit == 2

    def test_offset(self, engine):
        assert _ids(engine.search("the", limit=2, offset=2)) == [19942]
        assert _ids(engine.search("the", offset=10)) == []

    def test_negative_offset_is_clamped(self, engine):
        response = engine.search("the", offset=-5)
        assert response.offset == 0
        assert _ids(response) == [11, 12, 19942]

    def test_default_limit(self, index_store, builder):
        builder.rebuild_all([RawDocument(book_id, "", "common words") for book_id in range(1, 31)])
        response = QueryEngine(index_store).search("common")
        assert len(response.hits) == 20
        assert response.total == 30

    def test_limit_is_capped(self, index_store):
        engine = QueryEngine(index_store, default_limit=5, max_limit=10)
        assert engine.search("the", limit=500).limit == 10
        assert engine.search("the").limit == 5

    def test_zero_limit(self, engine):
        response = engine.search("the", limit=0)
        assert response.hits == []
        assert response.total == 3

    def test_numeric_strings_are_accepted(self, engine):
        response = engine.search("the", limit="2", offset="1")
        assert (response.limit, response.offset) == (2, 1)
        assert _ids(response) == [12, 19942]

    @pytest.mark.parametrize("limit", ["many", [5], object()])
    def test_unusable_limit_falls_back_to_default(self, engine, limit):
        response = engine.search("the", limit=limit)
        assert response.limit == 20
        assert _ids(response) == [11, 12, 19942]

    def test_unusable_offset_starts_at_zero(self, engine):
        assert engine.search("the", offset="later").offset == 0


class TestConsistency:
    def test_index_entry_without_metadata_is_skipped(self, index_store, builder, engine):
        builder.rebuild_all([RawDocument(1, "", "the quick fox")])
        orphan = index_store.current().with_document(99, frozenset({"fox"}), version=index_store.next_version())
        index_store.publish(orphan)
        assert _ids(engine.search("fox")) == [1]

    def test_rebuild_swaps_postings_and_metadata_together(
        self, index_store, metadata_store, builder, engine, monkeypatch
    ):
        builder.rebuild_all([RawDocument(1, "Author: Alice Smith", "the quick fox")])
        observed = []

        def _authors(text, author):
            return [(hit.book_id, hit.metadata.author) for hit in engine.search(text, {"author": author}).hits]

        def _observe(label):
            observed.append((label, _authors("fox", "bob"), _authors("fox", "alice"), _authors("dog", "bob")))

        real_publish = index_store.publish
        real_upsert_all = metadata_store.upsert_all

        def publish(snapshot, **kwargs):
            _observe("before swap")
            return real_publish(snapshot, **kwargs)

        def upsert_all(records):
            _observe("metadata write")
            real_upsert_all(records)

        monkeypatch.setattr(index_store, "publish", publish)
        monkeypatch.setattr(metadata_store, "upsert_all", upsert_all)
        builder.rebuild_all([RawDocument(1, "Author: Bob Jones", "the lazy dog")])

        assert observed == [
            ("before swap", [], [(1, "Alice Smith")], []),
            ("metadata write", [], [], [(1, "Bob Jones")]),
        ]
        assert _authors("dog", "bob") == [(1, "Bob Jones")]

    def test_update_swaps_postings_and_metadata_together(
        self, index_store, metadata_store, builder, engine, monkeypatch
    ):
        builder.rebuild_all([RawDocument(1, "Author: Alice Smith", "the quick fox")])
        observed = []
        real_upsert_one = metadata_store.upsert_one

        def upsert_one(record):
            hits = engine.search("dog", {"author": "bob"}).hits
            observed.append([(hit.book_id, hit.metadata.author) for hit in hits])
            real_upsert_one(record)

        monkeypatch.setattr(metadata_store, "upsert_one", upsert_one)
        builder.update_one(1, "Author: Bob Jones", "the lazy dog")
        assert observed == [[(1, "Bob Jones")]]
        assert _ids(engine.search("fox", {"author": "bob"})) == []

    def test_response_reports_snapshot_version(self, builder, engine, index_store):
        builder.rebuild_all([RawDocument(1, "", "the quick fox")])
        assert engine.search("fox").snapshot_version == index_store.current().version
