"""Shared test fixtures and configuration."""

import os

import pytest


# Complete test environment that overrides every config value
TEST_ENV = {
    "DATALAKE_PATH": "datalake",
    "DATALAKE_BUCKET_SIZE": "10",
    "INDEX_DIR": "index",
    "STORAGE_BACKEND": "json",
    "DEFAULT_SEARCH_LIMIT": "20",
    "MAX_SEARCH_LIMIT": "100",
    "HEADER_SCAN_LINES": "100",
    "METADATA_MAX_LENGTH": "300",
    "LOG_LEVEL": "info",
    "LOG_JSON": "false",
}


# Set environment variables immediately when conftest.py is loaded
for key, value in TEST_ENV.items():
    os.environ[key] = value

# Now we can safely import config-dependent modules
from booksearch.adapters.metadata_store import InMemoryMetadataStore
from booksearch.config import Settings
from booksearch.domain.model import RawDocument
from booksearch.search.builder import IndexBuilder
from booksearch.search.index_store import IndexStore
from booksearch.search.query_engine import QueryEngine


ALICE_HEADER = """The Project Gutenberg eBook of Alice's Adventures in Wonderland

Title: Alice's Adventures in Wonderland
Author: Lewis Carroll
Release Date: June 27, 2008 [eBook #11]
Language: English
"""

LOOKING_GLASS_HEADER = """Title: Through the Looking-Glass
Author: Lewis Carroll
Release Date: 1991
Language: en
"""

PRIDE_HEADER = """Title: Pride and Prejudice
Author: Jane Austen
Release Date: June, 1998 [eBook #1342]
Language: en
"""

CANDIDE_HEADER = """Title: Candide
Author: Voltaire
Release Date: 2006
Language: fr
"""


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch):
    """Reset configuration environment variables to test defaults."""
    for key, value in TEST_ENV.items():
        monkeypatch.setenv(key, value)


@pytest.fixture
def settings(tmp_path):
    """Settings pointing at per-test datalake and index directories."""
    return Settings(datalake_path=tmp_path / "datalake", index_dir=tmp_path / "index")


@pytest.fixture
def library():
    """Four books with overlapping vocabulary and distinct metadata."""
    return [
        RawDocument(11, ALICE_HEADER, "alice fell down the rabbit hole with the white rabbit", "bucket_1"),
        RawDocument(12, LOOKING_GLASS_HEADER, "alice walked through the looking glass", "bucket_1"),
        RawDocument(1342, PRIDE_HEADER, "it is a truth universally acknowledged", "bucket_134"),
        RawDocument(19942, CANDIDE_HEADER, "candide was driven from the castle", "bucket_1994"),
    ]


@pytest.fixture
def metadata_store():
    return InMemoryMetadataStore()


@pytest.fixture
def index_store():
    store = IndexStore()
    yield store
    store.close()


@pytest.fixture
def builder(index_store, metadata_store):
    return IndexBuilder(index_store, metadata_store)


@pytest.fixture
def engine(index_store):
    return QueryEngine(index_store)


@pytest.fixture
def indexed_library(builder, library):
    """Builder with ``library`` already rebuilt into its stores."""
    builder.rebuild_all(library)
    return builder
