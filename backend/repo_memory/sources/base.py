"""Source tree capability consumed by the ingestion pipeline."""

from __future__ import annotations

from typing import Protocol

from repo_memory.ingest.types import FileContent, TreeItem


class SourceTree(Protocol):
    """Read access to one repository at some revision."""

    default_branch: str

    def list_tree(self, ref: str | None = None) -> list[TreeItem]: ...

    def get_file_content(self, path: str, ref: str | None = None) -> FileContent: ...

    def get_language_stats(self) -> dict[str, int]: ...


__all__ = ["SourceTree"]
