"""Unit tests for the config module."""

import os
from pathlib import Path
from unittest.mock import patch

from pydantic import ValidationError
import pytest

from booksearch.config import Settings


pytestmark = pytest.mark.unit


class TestConfig:
    """Test configuration loading and validation."""

    def test_defaults_from_test_environment(self):
        """Values come from the environment set up in conftest.py."""
        settings = Settings()
        assert settings.datalake_path == Path("datalake")
        assert settings.datalake_bucket_size == 10
        assert settings.storage_backend == "json"
        assert settings.default_search_limit == 20
        assert settings.max_search_limit == 100
        assert settings.header_scan_lines == 100
        assert settings.metadata_max_length == 300
        assert settings.log_json is False

    @patch.dict(os.environ, {"STORAGE_BACKEND": "sqlite", "INDEX_DIR": "/var/lib/booksearch"}, clear=False)
    def test_environment_overrides(self):
        settings = Settings()
        assert settings.storage_backend == "sqlite"
        assert settings.index_dir == Path("/var/lib/booksearch")

    @patch.dict(os.environ, {"storage_backend": "json", "DATALAKE_BUCKET_SIZE": "25"}, clear=False)
    def test_case_insensitive_names(self):
        assert Settings().datalake_bucket_size == 25

    @patch.dict(os.environ, {"STORAGE_BACKEND": "mongodb"}, clear=False)
    def test_unknown_backend_is_rejected(self):
        with pytest.raises(ValidationError):
            Settings()

    def test_default_limit_must_not_exceed_max(self):
        with pytest.raises(ValidationError, match="DEFAULT_SEARCH_LIMIT"):
            Settings(default_search_limit=50, max_search_limit=10)

    def test_bucket_size_must_be_positive(self):
        with pytest.raises(ValidationError):
            Settings(datalake_bucket_size=0)

    def test_unrelated_environment_is_ignored(self):
        with patch.dict(os.environ, {"ACQUISITION_WORKERS": "4"}, clear=False):
            Settings()


class TestIndexPaths:
    def test_json_paths(self, tmp_path):
        paths = Settings(index_dir=tmp_path).get_index_paths()
        assert paths == {
            "index": tmp_path / "inverted_index.json",
            "metadata": tmp_path / "metadata.json",
        }

    def test_sqlite_paths_share_one_database(self, tmp_path):
        paths = Settings(index_dir=tmp_path, storage_backend="sqlite").get_index_paths()
        assert paths["index"] == paths["metadata"] == tmp_path / "booksearch.db"


class TestMetricsTextfile:
    def test_disabled_by_default(self):
        assert Settings().metrics_textfile is None

    def test_read_from_environment(self, monkeypatch, tmp_path):
        monkeypatch.setenv("METRICS_TEXTFILE", str(tmp_path / "booksearch.prom"))
        assert Settings().metrics_textfile == tmp_path / "booksearch.prom"
