"""Unit tests for metadata store backends."""

import orjson
import pytest

from booksearch.adapters.metadata_store import InMemoryMetadataStore, JsonMetadataStore
from booksearch.adapters.sqlite_metadata_store import SqliteMetadataStore
from booksearch.domain.model import BookMetadata
from booksearch.errors import MetadataNotFoundError, SnapshotCorruptedError


pytestmark = pytest.mark.unit


def _record(book_id, author="Lewis Carroll", language="en", year=1865):
    return BookMetadata(
        book_id=book_id,
        title=f"Book {book_id}",
        author=author,
        language=language,
        year=year,
        path=f"bucket_{book_id // 10}",
    )


@pytest.fixture(params=["memory", "json", "sqlite"])
def store(request, tmp_path):
    if request.param == "memory":
        instance = InMemoryMetadataStore()
    elif request.param == "json":
        instance = JsonMetadataStore(tmp_path / "metadata.json")
    else:
        instance = SqliteMetadataStore(tmp_path / "booksearch.db")
    yield instance
    instance.close()


class TestMetadataStoreContract:
    def test_get_missing_raises(self, store):
        with pytest.raises(MetadataNotFoundError) as exc_info:
            store.get(99)
        assert exc_info.value.book_id == 99

    def test_upsert_one_then_get(self, store):
        record = _record(11)
        store.upsert_one(record)
        assert store.get(11) == record
        assert store.count() == 1

    def test_upsert_one_replaces(self, store):
        store.upsert_one(_record(11))
        store.upsert_one(_record(11, author="Charles Dodgson"))
        assert store.get(11).author == "Charles Dodgson"
        assert store.count() == 1

    def test_upsert_all_replaces_everything(self, store):
        store.upsert_all([_record(1), _record(2), _record(3)])
        store.upsert_all([_record(3), _record(4)])
        assert [record.book_id for record in store.all()] == [3, 4]
        with pytest.raises(MetadataNotFoundError):
            store.get(1)

    def test_filter_orders_by_id(self, store):
        store.upsert_all([_record(30, author="Austen"), _record(2), _record(11, author="Austen")])
        austen = store.filter(lambda record: record.author == "Austen")
        assert [record.book_id for record in austen] == [11, 30]
        assert [record.book_id for record in store.filter()] == [2, 11, 30]

    def test_get_many_omits_unknown(self, store):
        store.upsert_all([_record(1), _record(2)])
        found = store.get_many([2, 5, 1])
        assert set(found) == {1, 2}
        assert found[2].book_id == 2

    def test_year_absent_round_trips(self, store):
        store.upsert_one(_record(7, year=None))
        assert store.get(7).year is None


class TestJsonMetadataStore:
    def test_reloads_from_disk(self, tmp_path):
        path = tmp_path / "metadata.json"
        JsonMetadataStore(path).upsert_all([_record(2), _record(1)])
        reloaded = JsonMetadataStore(path)
        assert [record.book_id for record in reloaded.all()] == [1, 2]

    def test_file_is_keyed_by_id_in_order(self, tmp_path):
        path = tmp_path / "metadata.json"
        JsonMetadataStore(path).upsert_all([_record(2), _record(1)])
        payload = orjson.loads(path.read_bytes())
        assert list(payload) == ["1", "2"]
        assert payload["1"]["author"] == "Lewis Carroll"

    def test_non_object_file_starts_empty(self, tmp_path):
        path = tmp_path / "metadata.json"
        path.write_bytes(b"[1, 2]")
        store = JsonMetadataStore(path)
        assert store.count() == 0
        assert "must contain a JSON object" in store.load_error

    def test_invalid_record_starts_empty(self, tmp_path):
        path = tmp_path / "metadata.json"
        path.write_bytes(b'{"1": {"book_id": 1, "title": "", "author": "x"}}')
        store = JsonMetadataStore(path)
        assert store.count() == 0
        assert "Invalid metadata record" in store.load_error

    def test_truncated_file_is_replaced_by_next_write(self, tmp_path):
        path = tmp_path / "metadata.json"
        path.write_bytes(b"{trunc")
        store = JsonMetadataStore(path)
        assert store.all() == []
        assert store.load_error is not None

        store.upsert_all([_record(3)])
        reloaded = JsonMetadataStore(path)
        assert reloaded.load_error is None
        assert [record.book_id for record in reloaded.all()] == [3]

    def test_loader_reports_corruption(self, tmp_path):
        path = tmp_path / "metadata.json"
        store = JsonMetadataStore(path)
        path.write_bytes(b"{trunc")
        with pytest.raises(SnapshotCorruptedError):
            store._load()

    def test_failed_write_keeps_previous_view(self, tmp_path, monkeypatch):
        from booksearch.adapters import metadata_store as module

        store = JsonMetadataStore(tmp_path / "metadata.json")
        store.upsert_one(_record(1))

        def _fail(_path, _data):
            raise OSError("read-only filesystem")

        monkeypatch.setattr(module, "atomic_write_bytes", _fail)
        with pytest.raises(OSError):
            store.upsert_all([_record(5)])
        assert [record.book_id for record in store.all()] == [1]


class TestInMemoryMetadataStore:
    def test_initial_records(self):
        store = InMemoryMetadataStore([_record(4), _record(3)])
        assert store.count() == 2
        assert [record.book_id for record in store.all()] == [3, 4]

    def test_reader_view_is_not_mutated_by_upsert_all(self):
        store = InMemoryMetadataStore([_record(1)])
        before = store.all()
        store.upsert_all([_record(2)])
        assert [record.book_id for record in before] == [1]


class TestSqliteMetadataStore:
    def test_persists_across_instances(self, tmp_path):
        db_path = tmp_path / "booksearch.db"
        first = SqliteMetadataStore(db_path)
        first.upsert_all([_record(1), _record(2, language="fr")])
        first.close()

        second = SqliteMetadataStore(db_path)
        assert second.get(2).language == "fr"
        assert second.count() == 2
        second.close()

    def test_get_many_handles_large_batches(self, tmp_path):
        store = SqliteMetadataStore(tmp_path / "booksearch.db")
        store.upsert_all([_record(book_id) for book_id in range(1, 1201)])
        found = store.get_many(range(1, 1301))
        assert len(found) == 1200
        store.close()
