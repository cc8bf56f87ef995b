"""Centralized configuration for booksearch using Pydantic Settings."""

from pathlib import Path
from typing import Literal

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Strictly typed configuration loaded from environment variables.

    All values are validated at startup. Unknown environment variables are
    ignored so the engine can share a process environment with the
    acquisition component and the orchestrator.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        validate_default=True,
        extra="ignore",
    )

    # Document source (datalake written by the acquisition component)
    datalake_path: Path = Field(default=Path("datalake"), description="Root directory of downloaded books")
    datalake_bucket_size: int = Field(default=10, ge=1, description="Books per datalake bucket directory")

    # Index persistence
    index_dir: Path = Field(default=Path("index"), description="Directory holding persisted snapshots")
    storage_backend: Literal["json", "sqlite"] = Field(
        default="json", description="Persistence backend for metadata and index snapshots"
    )

    # Query settings
    default_search_limit: int = Field(default=20, ge=1, description="Results returned when no limit is given")
    max_search_limit: int = Field(default=100, ge=1, description="Upper bound applied to caller-supplied limits")

    # Extraction settings
    header_scan_lines: int = Field(default=100, ge=1, description="Header lines scanned for metadata labels")
    metadata_max_length: int = Field(default=300, ge=4, description="Maximum length of extracted metadata values")

    # Logging
    log_level: str = Field(default="info", description="Logging level")
    log_json: bool = Field(default=True, description="Emit structured JSON logs")

    # Metrics
    metrics_textfile: Path | None = Field(
        default=None, description="Prometheus text file written after each CLI command (textfile collector)"
    )

    @model_validator(mode="after")
    def _check_limits(self) -> "Settings":
        if self.default_search_limit > self.max_search_limit:
            raise ValueError(
                "DEFAULT_SEARCH_LIMIT must not exceed MAX_SEARCH_LIMIT "
                f"({self.default_search_limit} > {self.max_search_limit})"
            )
        return self

    def get_index_paths(self) -> dict[str, Path]:
        """Return the snapshot and metadata locations for the configured backend.

        Returns:
            Mapping with ``index`` and ``metadata`` keys. Both point at the same
            database file for the SQLite backend.
        """
        if self.storage_backend == "sqlite":
            db_path = self.index_dir / "booksearch.db"
            return {"index": db_path, "metadata": db_path}
        return {
            "index": self.index_dir / "inverted_index.json",
            "metadata": self.index_dir / "metadata.json",
        }
