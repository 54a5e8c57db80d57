"""Context assembly for downstream analysis."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Sequence

from repo_memory.core.logging import get_logger
from repo_memory.core.metrics import CONTEXT_LATENCY
from repo_memory.ingest.embeddings import Embedder
from repo_memory.ingest.filters import parent_directory
from repo_memory.memory.store import MemoryStore
from repo_memory.retrieval.suggestions import PriorSuggestion, SuggestionStore
from repo_memory.retrieval.vector_store import StoredChunk, VectorStore

logger = get_logger(__name__)

EXACT_MATCH_SCORE = 1.0
DIRECTORY_MATCH_SCORE = 0.5
PROMPT_FILE_LIMIT = 5
PROMPT_CONTENT_CHARS = 1000
PATTERN_LIMIT = 10


@dataclass(slots=True)
class RepositoryContext:
    memory: dict[str, Any] | None
    patterns: list[dict[str, Any]] = field(default_factory=list)
    relevant_files: list[StoredChunk] = field(default_factory=list)
    prior_suggestions: list[PriorSuggestion] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "memory": self.memory,
            "patterns": list(self.patterns),
            "relevant_files": [chunk.to_dict() for chunk in self.relevant_files],
            "prior_suggestions": [suggestion.to_dict() for suggestion in self.prior_suggestions],
        }


class ContextBuilder:
    """Retrieve stored chunks relevant to a query and/or a set of affected files."""

    def __init__(
        self,
        vector_store: VectorStore,
        embedder: Embedder,
        memory_store: MemoryStore | None = None,
        suggestions: SuggestionStore | None = None,
        default_limit: int = 10,
    ) -> None:
        self.vector_store = vector_store
        self.embedder = embedder
        self.memory_store = memory_store
        self.suggestions = suggestions
        self.default_limit = default_limit

    def get_context(
        self,
        repository_id: str,
        query: str | None = None,
        affected_files: Sequence[str] | None = None,
        limit: int | None = None,
    ) -> list[StoredChunk]:
        """Ranked chunks, highest similarity first.

        Affected files are returned first at similarity 1.0. If room remains
        and a query is given, the query is embedded and other files are ranked
        by cosine similarity; an embedding failure only skips this tier. Any
        remaining room is filled with files from the affected files'
        directories at 0.5.
        """
        if limit is None:
            limit = self.default_limit
        affected = list(dict.fromkeys(affected_files or []))
        with CONTEXT_LATENCY.time():
            results: list[StoredChunk] = []
            for chunk in self.vector_store.get_by_paths(repository_id, affected):
                chunk.similarity = EXACT_MATCH_SCORE
                results.append(chunk)

            if query and len(results) < limit:
                results.extend(self._semantic_matches(repository_id, query, affected, results, limit))

            if affected and len(results) < limit:
                directories = list(dict.fromkeys(parent_directory(path) for path in affected))
                seen = set(affected) | {chunk.file_path for chunk in results}
                for chunk in self.vector_store.query_by_path_prefix(
                    repository_id,
                    directories,
                    exclude_paths=seen,
                    limit=limit - len(results),
                ):
                    chunk.similarity = DIRECTORY_MATCH_SCORE
                    results.append(chunk)

            results.sort(key=lambda chunk: chunk.similarity or 0.0, reverse=True)
            return results[:limit]

    def _semantic_matches(
        self,
        repository_id: str,
        query: str,
        affected: Sequence[str],
        results: Sequence[StoredChunk],
        limit: int,
    ) -> list[StoredChunk]:
        try:
            vector = self.embedder.embed_batch([query])[0].vector
        except Exception as exc:
            logger.warning(
                "Query embedding failed; skipping semantic matches: %s",
                exc,
                extra={"ctx_repository_id": repository_id},
            )
            return []
        exclude = set(affected) | {chunk.file_path for chunk in results}
        return self.vector_store.query_by_similarity(
            repository_id,
            vector,
            exclude_paths=exclude,
            limit=limit - len(results),
        )

    def find_files_matching_pattern(self, repository_id: str, description: str, limit: int = 5) -> list[str]:
        vector = self.embedder.embed_batch([description])[0].vector
        paths: list[str] = []
        # over-fetch since several chunks of one file may rank together
        for chunk in self.vector_store.query_by_similarity(repository_id, vector, limit=limit * 4):
            if chunk.file_path not in paths:
                paths.append(chunk.file_path)
            if len(paths) >= limit:
                break
        return paths

    def file_context_summary(self, repository_id: str, paths: Sequence[str]) -> dict[str, Any]:
        """Per-file metadata, imports shared by several files, and their common directory."""
        files: dict[str, dict[str, Any]] = {}
        for chunk in self.vector_store.get_by_paths(repository_id, list(dict.fromkeys(paths))):
            if chunk.file_path in files:
                continue
            files[chunk.file_path] = {
                "path": chunk.file_path,
                "language": chunk.metadata.get("language"),
                "imports": list(chunk.metadata.get("imports") or []),
                "exports": list(chunk.metadata.get("exports") or []),
            }

        counts: dict[str, int] = {}
        for info in files.values():
            for name in set(info["imports"]):
                counts[name] = counts.get(name, 0) + 1
        common_imports = sorted(name for name, count in counts.items() if count > 1)

        return {
            "files": list(files.values()),
            "common_imports": common_imports,
            "directory": common_directory([parent_directory(path) for path in paths]),
        }

    def repository_context(
        self,
        repository_id: str,
        query: str | None = None,
        affected_files: Sequence[str] | None = None,
        max_relevant_files: int | None = None,
        include_prior_suggestions: bool = True,
    ) -> RepositoryContext:
        memory_payload: dict[str, Any] | None = None
        patterns: list[dict[str, Any]] = []
        if self.memory_store is not None:
            memory = self.memory_store.get(repository_id)
            if memory is not None:
                memory_payload = {
                    "primary_languages": memory.primary_languages,
                    "frameworks": memory.frameworks,
                    "architecture_summary": memory.architecture_summary,
                    "repo_summary": memory.repo_summary,
                }
                patterns = [
                    {"category": p.category, "name": p.name, "description": p.description}
                    for p in memory.patterns[:PATTERN_LIMIT]
                ]

        affected = list(affected_files or [])
        relevant: list[StoredChunk] = []
        if query or affected:
            relevant = self.get_context(repository_id, query=query, affected_files=affected, limit=max_relevant_files)

        prior: list[PriorSuggestion] = []
        if include_prior_suggestions and affected and self.suggestions is not None:
            prior = self.suggestions.suggestions_for_files(repository_id, affected)

        return RepositoryContext(
            memory=memory_payload,
            patterns=patterns,
            relevant_files=relevant,
            prior_suggestions=prior,
        )


def common_directory(directories: Sequence[str]) -> str | None:
    """Longest directory shared by every entry, by whole path segments."""
    if not directories:
        return None
    split = [directory.split("/") if directory else [] for directory in directories]
    shared: list[str] = []
    for parts in zip(*split):
        if any(part != parts[0] for part in parts):
            break
        shared.append(parts[0])
    return "/".join(shared) or None


def build_context_prompt(context: RepositoryContext) -> str:
    """Render a repository context as markdown for the analysis step."""
    parts: list[str] = []
    if context.memory:
        parts.append("## Repository Context")
        parts.append(f"Languages: {', '.join(context.memory.get('primary_languages') or [])}")
        parts.append(f"Frameworks: {', '.join(context.memory.get('frameworks') or [])}")
        if context.memory.get("architecture_summary"):
            parts.append(f"Architecture: {context.memory['architecture_summary']}")
        parts.append("")

    if context.patterns:
        parts.append("## Established Patterns")
        for pattern in context.patterns:
            parts.append(f"- **{pattern['name']}** ({pattern['category']}): {pattern['description']}")
        parts.append("")

    if context.prior_suggestions:
        parts.append("## Prior Suggestions (avoid repeating)")
        for suggestion in context.prior_suggestions:
            parts.append(f"- [{suggestion.outcome}] {suggestion.title}")
        parts.append("")

    if context.relevant_files:
        parts.append("## Relevant Code")
        for chunk in context.relevant_files[:PROMPT_FILE_LIMIT]:
            body = chunk.content[:PROMPT_CONTENT_CHARS]
            if len(chunk.content) > PROMPT_CONTENT_CHARS:
                body += "\n..."
            parts.append(f"### {chunk.file_path}")
            parts.append("```")
            parts.append(body)
            parts.append("```")
            parts.append("")

    return "\n".join(parts)


__all__ = ["ContextBuilder", "RepositoryContext", "build_context_prompt", "common_directory"]
