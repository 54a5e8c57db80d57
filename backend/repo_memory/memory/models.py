"""Persistent repository memory records."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Literal

PatternCategory = Literal["architecture", "naming", "testing", "error-handling", "state", "api"]
RepositoryStatus = Literal["pending", "indexing", "analyzing", "ready", "error"]

PATTERN_CATEGORIES: tuple[str, ...] = ("architecture", "naming", "testing", "error-handling", "state", "api")
REPOSITORY_STATUSES: tuple[str, ...] = ("pending", "indexing", "analyzing", "ready", "error")


@dataclass(slots=True)
class DetectedPattern:
    """A named convention observed in a repository."""

    category: PatternCategory
    name: str
    description: str
    confidence: float
    examples: list[dict[str, str]] = field(default_factory=list)

    def __post_init__(self) -> None:
        if self.category not in PATTERN_CATEGORIES:
            raise ValueError(f"Unknown pattern category: {self.category}")
        if not 0.0 <= self.confidence <= 1.0:
            raise ValueError(f"Pattern confidence must be within [0, 1], got {self.confidence}")

    def to_dict(self) -> dict[str, Any]:
        return {
            "category": self.category,
            "name": self.name,
            "description": self.description,
            "confidence": self.confidence,
            "examples": [dict(example) for example in self.examples],
        }


@dataclass(slots=True)
class RepositoryMemory:
    repository_id: str
    primary_languages: list[str] = field(default_factory=list)
    frameworks: list[str] = field(default_factory=list)
    build_tools: list[str] = field(default_factory=list)
    testing_frameworks: list[str] = field(default_factory=list)
    package_manager: str | None = None
    directory_map: dict[str, dict[str, Any]] = field(default_factory=dict)
    key_files: list[dict[str, str]] = field(default_factory=list)
    entry_points: list[str] = field(default_factory=list)
    repo_summary: str = ""
    architecture_summary: str = ""
    tree_hash: str | None = None
    last_full_scan_at: int | None = None
    patterns: list[DetectedPattern] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "repository_id": self.repository_id,
            "primary_languages": list(self.primary_languages),
            "frameworks": list(self.frameworks),
            "build_tools": list(self.build_tools),
            "testing_frameworks": list(self.testing_frameworks),
            "package_manager": self.package_manager,
            "directory_map": self.directory_map,
            "key_files": list(self.key_files),
            "entry_points": list(self.entry_points),
            "repo_summary": self.repo_summary,
            "architecture_summary": self.architecture_summary,
            "tree_hash": self.tree_hash,
            "last_full_scan_at": self.last_full_scan_at,
            "patterns": [pattern.to_dict() for pattern in self.patterns],
        }


# Fields that ``MemoryStore.patch`` may overwrite.
PATCHABLE_FIELDS: frozenset[str] = frozenset(
    {
        "primary_languages",
        "frameworks",
        "build_tools",
        "testing_frameworks",
        "package_manager",
        "directory_map",
        "key_files",
        "entry_points",
        "repo_summary",
        "architecture_summary",
        "tree_hash",
    }
)

__all__ = [
    "PatternCategory",
    "RepositoryStatus",
    "DetectedPattern",
    "RepositoryMemory",
    "PATCHABLE_FIELDS",
    "REPOSITORY_STATUSES",
]
