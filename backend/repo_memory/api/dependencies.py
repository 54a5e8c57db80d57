"""Shared FastAPI dependencies."""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from fastapi import HTTPException

from repo_memory.core.config import Settings, get_settings
from repo_memory.db.sqlite import SQLiteDatabase
from repo_memory.ingest.embeddings import Embedder, build_embedder
from repo_memory.ingest.pipeline import IngestPipeline
from repo_memory.memory.store import MemoryStore
from repo_memory.models.dto import SourceSelector
from repo_memory.retrieval import ContextBuilder, NoveltyDetector, SQLiteVectorStore, SuggestionStore
from repo_memory.sources.base import SourceTree
from repo_memory.sources.github import GitHubSourceTree
from repo_memory.sources.local import LocalSourceTree

_DB: SQLiteDatabase | None = None
_EMBEDDER: Embedder | None = None
_MEMORY_STORE: MemoryStore | None = None
_VECTOR_STORE: SQLiteVectorStore | None = None
_SUGGESTION_STORE: SuggestionStore | None = None
_PIPELINE: IngestPipeline | None = None
_CONTEXT_BUILDER: ContextBuilder | None = None


@lru_cache(maxsize=1)
def get_app_settings() -> Settings:
    return get_settings()


def get_database() -> SQLiteDatabase:
    global _DB
    if _DB is None:
        settings = get_app_settings()
        db = SQLiteDatabase(settings.db_path)
        db.ensure_schema()
        _DB = db
    return _DB


def get_embedder() -> Embedder:
    global _EMBEDDER
    if _EMBEDDER is None:
        settings = get_app_settings()
        _EMBEDDER = build_embedder(
            settings.embedding_backend,
            settings.embedding_model,
            settings.embedding_dim,
            settings.embedding_timeout_s,
        )
    return _EMBEDDER


def get_memory_store() -> MemoryStore:
    global _MEMORY_STORE
    if _MEMORY_STORE is None:
        _MEMORY_STORE = MemoryStore(get_database())
    return _MEMORY_STORE


def get_vector_store() -> SQLiteVectorStore:
    global _VECTOR_STORE
    if _VECTOR_STORE is None:
        _VECTOR_STORE = SQLiteVectorStore(get_database())
    return _VECTOR_STORE


def get_suggestion_store() -> SuggestionStore:
    global _SUGGESTION_STORE
    if _SUGGESTION_STORE is None:
        _SUGGESTION_STORE = SuggestionStore(get_database())
    return _SUGGESTION_STORE


def get_ingest_pipeline() -> IngestPipeline:
    global _PIPELINE
    if _PIPELINE is None:
        _PIPELINE = IngestPipeline(
            memory_store=get_memory_store(),
            vector_store=get_vector_store(),
            embedder=get_embedder(),
            settings=get_app_settings(),
        )
    return _PIPELINE


def get_context_builder() -> ContextBuilder:
    global _CONTEXT_BUILDER
    if _CONTEXT_BUILDER is None:
        _CONTEXT_BUILDER = ContextBuilder(
            vector_store=get_vector_store(),
            embedder=get_embedder(),
            memory_store=get_memory_store(),
            suggestions=get_suggestion_store(),
            default_limit=get_app_settings().context_limit,
        )
    return _CONTEXT_BUILDER


def get_novelty_detector() -> NoveltyDetector:
    return NoveltyDetector(get_suggestion_store(), threshold=get_app_settings().novelty_threshold)


def resolve_source(selector: SourceSelector, settings: Settings) -> SourceTree:
    """Build the source tree a request points at."""
    if selector.path is not None:
        try:
            return LocalSourceTree(Path(selector.path))
        except NotADirectoryError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc
    assert selector.github is not None
    return GitHubSourceTree(
        selector.github.owner,
        selector.github.repo,
        api_url=settings.github_api_url,
        timeout_s=settings.github_timeout_s,
        token=settings.github_token,
    )


def reset_dependencies() -> None:
    """Drop cached singletons so the next request rebuilds them from fresh settings."""
    global _DB, _EMBEDDER, _MEMORY_STORE, _VECTOR_STORE, _SUGGESTION_STORE, _PIPELINE, _CONTEXT_BUILDER
    if _DB is not None:
        _DB.close()
    _DB = None
    _EMBEDDER = None
    _MEMORY_STORE = None
    _VECTOR_STORE = None
    _SUGGESTION_STORE = None
    _PIPELINE = None
    _CONTEXT_BUILDER = None
    get_app_settings.cache_clear()
    get_settings.cache_clear()


__all__ = [
    "get_app_settings",
    "get_database",
    "get_embedder",
    "get_memory_store",
    "get_vector_store",
    "get_suggestion_store",
    "get_ingest_pipeline",
    "get_context_builder",
    "get_novelty_detector",
    "resolve_source",
    "reset_dependencies",
]
