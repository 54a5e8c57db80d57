"""Pydantic DTOs exposed via API."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, Field, model_validator


class GitHubRepositoryRef(BaseModel):
    owner: str
    repo: str


class SourceSelector(BaseModel):
    """Where to read the repository from: a local checkout or GitHub."""

    path: str | None = Field(default=None, description="Local checkout directory")
    github: GitHubRepositoryRef | None = None
    ref: str | None = Field(default=None, description="Branch, tag, or commit to read")

    @model_validator(mode="after")
    def _exactly_one_source(self) -> "SourceSelector":
        if (self.path is None) == (self.github is None):
            raise ValueError("Provide exactly one of 'path' or 'github'")
        return self


class IngestRequest(SourceSelector):
    force: bool = Field(default=False, description="Ignore the freshness guard")


class FileErrorModel(BaseModel):
    file: str
    error: str


class IngestResponse(BaseModel):
    repository_id: str
    files_processed: int
    embeddings_created: int
    embeddings_unchanged: int
    languages_detected: list[str]
    frameworks_detected: list[str]
    patterns_identified: int
    summary: str
    errors: list[FileErrorModel]
    skipped: bool


class ChangedFileModel(BaseModel):
    path: str
    status: Literal["added", "modified", "removed"]


class ChangesRequest(SourceSelector):
    changed_files: list[ChangedFileModel]
    tree_hash: str | None = None


class ChangesResponse(BaseModel):
    updated: int
    removed: int
    errors: list[FileErrorModel]
    outdated_suggestions: int = 0


class ContextRequest(BaseModel):
    query: str | None = None
    affected_files: list[str] = Field(default_factory=list)
    limit: int | None = Field(default=None, ge=1, le=100)
    include_prior_suggestions: bool = True


class ContextChunk(BaseModel):
    path: str
    chunk_index: int
    content: str
    similarity: float | None
    metadata: dict[str, Any]


class PatternSummary(BaseModel):
    category: str
    name: str
    description: str


class SuggestionResponse(BaseModel):
    id: str
    type: str
    title: str
    affected_files: list[str]
    outcome: str
    created_at: int | None


class ContextResponse(BaseModel):
    memory: dict[str, Any] | None
    patterns: list[PatternSummary]
    relevant_files: list[ContextChunk]
    prior_suggestions: list[SuggestionResponse]
    prompt: str


class FileSummaryRequest(BaseModel):
    paths: list[str] = Field(min_length=1)


class FileSummaryEntry(BaseModel):
    path: str
    language: str | None
    imports: list[str]
    exports: list[str]


class FileSummaryResponse(BaseModel):
    files: list[FileSummaryEntry]
    common_imports: list[str]
    directory: str | None


class SuggestionRequest(BaseModel):
    type: str
    title: str
    affected_files: list[str] = Field(default_factory=list)


class NoveltyResponse(BaseModel):
    is_novel: bool
    conflict: SuggestionResponse | None = None
    overlap: float | None = None


class OutcomeRequest(BaseModel):
    outcome: Literal["accepted", "partially_accepted", "ignored", "rejected", "outdated"]
    user_feedback: str | None = None


class PatternModel(BaseModel):
    category: str
    name: str
    description: str
    confidence: float
    examples: list[dict[str, str]] = Field(default_factory=list)


class PatternSuggestionModel(BaseModel):
    pattern: str
    reason: str
    priority: Literal["high", "medium", "low"]


class MemoryResponse(BaseModel):
    repository_id: str
    primary_languages: list[str]
    frameworks: list[str]
    build_tools: list[str]
    testing_frameworks: list[str]
    package_manager: str | None
    directory_map: dict[str, dict[str, Any]]
    key_files: list[dict[str, str]]
    entry_points: list[str]
    repo_summary: str
    architecture_summary: str
    tree_hash: str | None
    last_full_scan_at: datetime | None
    patterns: list[PatternModel]
    pattern_suggestions: list[PatternSuggestionModel] = Field(default_factory=list)


class StatusResponse(BaseModel):
    repository_id: str
    status: Literal["pending", "indexing", "analyzing", "ready", "error"]
    detail: str | None = None
    updated_at: datetime | None = None
    lease: dict[str, Any] | None = None
    jobs: list[dict[str, Any]] = Field(default_factory=list)


__all__ = [
    "GitHubRepositoryRef",
    "SourceSelector",
    "IngestRequest",
    "IngestResponse",
    "FileErrorModel",
    "ChangedFileModel",
    "ChangesRequest",
    "ChangesResponse",
    "ContextRequest",
    "ContextChunk",
    "ContextResponse",
    "PatternSummary",
    "FileSummaryRequest",
    "FileSummaryEntry",
    "FileSummaryResponse",
    "SuggestionRequest",
    "SuggestionResponse",
    "NoveltyResponse",
    "OutcomeRequest",
    "PatternModel",
    "PatternSuggestionModel",
    "MemoryResponse",
    "StatusResponse",
]
