"""Review and commit services for a provider import."""

from .commit_orchestrator import CommitOrchestrator, CommitState, RowTimeoutError
from .import_session import ImportSession, build_import_rows

__all__ = [
    "CommitOrchestrator",
    "CommitState",
    "ImportSession",
    "RowTimeoutError",
    "build_import_rows",
]
