"""Fatal error classification raised to the ingestion orchestrator."""

from __future__ import annotations


class RepoMemoryError(Exception):
    """Base class for errors that abort an ingestion run."""

    kind = "error"

    def __init__(self, repository_id: str, message: str) -> None:
        super().__init__(message)
        self.repository_id = repository_id
        self.message = message

    def to_dict(self) -> dict[str, str]:
        return {"kind": self.kind, "repository_id": self.repository_id, "message": self.message}


class ScanFailure(RepoMemoryError):
    """The repository tree could not be listed; nothing was written."""

    kind = "scan_failure"


class PersistenceFailure(RepoMemoryError):
    """The final memory write failed; the run is not complete."""

    kind = "persistence_failure"


class IngestionConflict(RepoMemoryError):
    """Another writer holds the repository lease."""

    kind = "conflict"


class IngestionCancelled(RepoMemoryError):
    """A cancellation signal was observed between batches."""

    kind = "cancelled"


__all__ = [
    "RepoMemoryError",
    "ScanFailure",
    "PersistenceFailure",
    "IngestionConflict",
    "IngestionCancelled",
]
