"""
Indexing and query engine package.

This package provides the in-process inverted index:
- tokenizer: Term normalization shared by indexing and querying
- metadata_extractor: Rule table that reads bibliographic fields from headers
- snapshot: Immutable inverted index snapshots and the rebuild accumulator
- index_store: Published snapshot behind one swappable reference
- storage / sqlite_storage: JSON and SQLite snapshot persistence
- builder: Full rebuild and single-document update under the build lock
- query_engine: Ranked term search and metadata browsing
"""
