"""Service layer - use case orchestration.

Runs rebuilds, updates and queries against the core and reports every
outcome as a typed ``OperationResult``.
"""

from .indexing_service import IndexingService, build_service


__all__ = [
    "IndexingService",
    "build_service",
]
