"""Outcome models returned to the orchestrator.

Every trigger on the service layer resolves to an ``OperationResult`` rather
than raising, so a caller can poll or retry without parsing exceptions.
"""

from datetime import datetime, timezone
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


OperationStatus = Literal["completed", "failed", "busy", "cancelled"]


class OperationResult(BaseModel):
    """Completion signal or failure reason for one bootstrap, rebuild or update request."""

    model_config = ConfigDict(frozen=True)

    operation: Literal["rebuild", "update", "bootstrap"]
    status: OperationStatus
    documents_indexed: int = 0
    documents_skipped: int = 0
    errors: list[str] = Field(default_factory=list)
    reason: str | None = None
    snapshot_version: int | None = None
    duration_seconds: float = 0.0
    finished_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def ok(self) -> bool:
        return self.status == "completed"

    @property
    def retryable(self) -> bool:
        return self.status == "busy"


class ServiceStatus(BaseModel):
    """Point-in-time view of the engine for status polling."""

    model_config = ConfigDict(frozen=True)

    building: bool
    running_operation: str | None = None
    snapshot_version: int
    document_count: int
    term_count: int
    metadata_count: int
    last_result: OperationResult | None = None
