"""Common ingestion data structures."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Literal

TreeItemKind = Literal["blob", "tree"]
ChunkKind = Literal["file", "function", "class", "module", "section"]
ChangeStatus = Literal["added", "modified", "removed"]
IngestionPhase = Literal["scanning", "analyzing", "embedding", "summarizing", "complete"]


@dataclass(slots=True, frozen=True)
class TreeItem:
    """One entry of a repository tree listing."""

    path: str
    kind: TreeItemKind
    content_hash: str
    size: int | None = None


@dataclass(slots=True, frozen=True)
class FileContent:
    """Decoded file body returned by a source tree."""

    content: str
    size: int


@dataclass(slots=True)
class CodeChunk:
    """Addressable slice of a file prepared for embedding."""

    content: str
    content_hash: str
    start_line: int
    end_line: int
    kind: ChunkKind
    name: str | None = None
    language: str | None = None
    imports: list[str] = field(default_factory=list)
    exports: list[str] = field(default_factory=list)
    chunk_index: int = 0

    def metadata(self) -> dict[str, Any]:
        return {
            "type": self.kind,
            "name": self.name,
            "language": self.language,
            "imports": list(self.imports),
            "exports": list(self.exports),
            "start_line": self.start_line,
            "end_line": self.end_line,
            "chunk_index": self.chunk_index,
        }


@dataclass(slots=True, frozen=True)
class ChangedFile:
    """A file touched by a push, tagged with how it changed."""

    path: str
    status: ChangeStatus


@dataclass(slots=True, frozen=True)
class FileError:
    """Non-fatal error recorded during ingestion."""

    file: str
    error: str

    def to_dict(self) -> dict[str, str]:
        return {"file": self.file, "error": self.error}


@dataclass(slots=True)
class IngestionProgress:
    """Progress event delivered to an external observer."""

    phase: IngestionPhase
    total_files: int
    processed_files: int
    errors: list[FileError]
    current_file: str | None = None


ProgressCallback = Callable[[IngestionProgress], None]


@dataclass(slots=True)
class PreparedChunk:
    """Chunk bound to its file, waiting for the embedding stage."""

    file_path: str
    chunk: CodeChunk
    metadata: dict[str, Any]


@dataclass(slots=True)
class IngestionResult:
    """Outcome of a full ingestion run."""

    repository_id: str
    files_processed: int = 0
    embeddings_created: int = 0
    embeddings_unchanged: int = 0
    languages_detected: list[str] = field(default_factory=list)
    frameworks_detected: list[str] = field(default_factory=list)
    patterns_identified: int = 0
    summary: str = ""
    errors: list[FileError] = field(default_factory=list)
    skipped: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "repository_id": self.repository_id,
            "files_processed": self.files_processed,
            "embeddings_created": self.embeddings_created,
            "embeddings_unchanged": self.embeddings_unchanged,
            "languages_detected": list(self.languages_detected),
            "frameworks_detected": list(self.frameworks_detected),
            "patterns_identified": self.patterns_identified,
            "summary": self.summary,
            "errors": [error.to_dict() for error in self.errors],
            "skipped": self.skipped,
        }


@dataclass(slots=True)
class UpdateResult:
    """Outcome of an incremental update."""

    updated: int = 0
    removed: int = 0
    errors: list[FileError] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "updated": self.updated,
            "removed": self.removed,
            "errors": [error.to_dict() for error in self.errors],
        }


__all__ = [
    "TreeItem",
    "FileContent",
    "CodeChunk",
    "ChangedFile",
    "FileError",
    "IngestionPhase",
    "IngestionProgress",
    "ProgressCallback",
    "PreparedChunk",
    "IngestionResult",
    "UpdateResult",
]
