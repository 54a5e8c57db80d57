"""Retrieval components."""

from .vector_store import SQLiteVectorStore, StoredChunk, VectorStore
from .suggestions import PriorSuggestion, SuggestionStore
from .novelty import CandidateSuggestion, NoveltyDetector, NoveltyResult
from .context import ContextBuilder, RepositoryContext, build_context_prompt

__all__ = [
    "SQLiteVectorStore",
    "StoredChunk",
    "VectorStore",
    "PriorSuggestion",
    "SuggestionStore",
    "CandidateSuggestion",
    "NoveltyDetector",
    "NoveltyResult",
    "ContextBuilder",
    "RepositoryContext",
    "build_context_prompt",
]
