"""Tests for context assembly."""

from typing import Sequence

from repo_memory.ingest.embeddings import EmbeddingResult, HashedEmbeddingModel
from repo_memory.memory.models import DetectedPattern, RepositoryMemory
from repo_memory.retrieval import ContextBuilder, RepositoryContext, SQLiteVectorStore, build_context_prompt
from repo_memory.retrieval.context import common_directory
from repo_memory.retrieval.vector_store import StoredChunk


class BrokenEmbedder:
    dim = 64

    def embed_batch(self, texts: Sequence[str]) -> list[EmbeddingResult]:
        raise RuntimeError("provider down")


def _index(store: SQLiteVectorStore, embedder: HashedEmbeddingModel, files: dict[str, str]) -> None:
    for path, content in files.items():
        vector = embedder.embed_batch([content])[0].vector
        imports = ["react"] if path.endswith(".tsx") else ["zod"]
        metadata = {"language": "typescript", "imports": imports + [path], "exports": []}
        store.upsert_embedding("repo-1", path, 0, content, f"h-{path}", metadata, vector)


FILES = {
    "src/auth/login.ts": "login user password session token",
    "src/auth/logout.ts": "logout session clear token",
    "src/billing/invoice.ts": "invoice amount currency tax",
    "src/billing/refund.ts": "refund amount invoice payment",
    "src/ui/Button.tsx": "button click render props",
}


def test_affected_files_come_first_at_full_score(vector_store, embedder) -> None:
    _index(vector_store, embedder, FILES)
    builder = ContextBuilder(vector_store, embedder)
    results = builder.get_context("repo-1", affected_files=["src/billing/invoice.ts"], limit=3)
    assert results[0].file_path == "src/billing/invoice.ts"
    assert results[0].similarity == 1.0
    assert [chunk.similarity for chunk in results[1:]] == [0.5]
    assert results[1].file_path == "src/billing/refund.ts"


def test_semantic_tier_ranks_by_query(vector_store, embedder) -> None:
    _index(vector_store, embedder, FILES)
    builder = ContextBuilder(vector_store, embedder)
    results = builder.get_context("repo-1", query="refund payment amount", limit=2)
    assert results[0].file_path == "src/billing/refund.ts"
    assert results == sorted(results, key=lambda chunk: chunk.similarity, reverse=True)


def test_results_are_sorted_and_truncated(vector_store, embedder) -> None:
    _index(vector_store, embedder, FILES)
    builder = ContextBuilder(vector_store, embedder)
    results = builder.get_context(
        "repo-1",
        query="session token",
        affected_files=["src/auth/login.ts"],
        limit=3,
    )
    assert len(results) == 3
    scores = [chunk.similarity for chunk in results]
    assert scores == sorted(scores, reverse=True)
    assert len({chunk.file_path for chunk in results}) == 3


def test_embedding_failure_skips_semantic_tier(vector_store, embedder) -> None:
    _index(vector_store, embedder, FILES)
    builder = ContextBuilder(vector_store, BrokenEmbedder())
    results = builder.get_context("repo-1", query="refund", affected_files=["src/auth/login.ts"], limit=5)
    assert [chunk.file_path for chunk in results] == ["src/auth/login.ts", "src/auth/logout.ts"]


def test_no_inputs_returns_nothing(vector_store, embedder) -> None:
    _index(vector_store, embedder, FILES)
    assert ContextBuilder(vector_store, embedder).get_context("repo-1") == []


def test_explicit_zero_limit_is_respected(vector_store, embedder) -> None:
    _index(vector_store, embedder, FILES)
    builder = ContextBuilder(vector_store, embedder, default_limit=2)
    assert builder.get_context("repo-1", query="invoice", affected_files=["src/auth/login.ts"], limit=0) == []
    assert len(builder.get_context("repo-1", query="invoice", affected_files=["src/auth/login.ts"])) == 2


def test_file_context_summary(vector_store, embedder) -> None:
    _index(vector_store, embedder, FILES)
    builder = ContextBuilder(vector_store, embedder)
    summary = builder.file_context_summary("repo-1", ["src/auth/login.ts", "src/auth/logout.ts"])
    assert [entry["path"] for entry in summary["files"]] == ["src/auth/login.ts", "src/auth/logout.ts"]
    assert summary["common_imports"] == ["zod"]
    assert summary["directory"] == "src/auth"


def test_common_directory_uses_whole_segments() -> None:
    assert common_directory(["src/api", "src/apiary"]) == "src"
    assert common_directory(["src/a/b", "src/a/c"]) == "src/a"
    assert common_directory(["", "src"]) is None
    assert common_directory([]) is None


def test_find_files_matching_pattern(vector_store, embedder) -> None:
    _index(vector_store, embedder, FILES)
    builder = ContextBuilder(vector_store, embedder)
    assert builder.find_files_matching_pattern("repo-1", "invoice amount currency tax", limit=1) == [
        "src/billing/invoice.ts"
    ]


def test_repository_context_and_prompt(vector_store, embedder, memory_store, suggestion_store) -> None:
    _index(vector_store, embedder, FILES)
    memory_store.upsert_full_scan(
        RepositoryMemory(
            repository_id="repo-1",
            primary_languages=["typescript"],
            frameworks=["react"],
            architecture_summary="Feature folders.",
            patterns=[DetectedPattern(category="naming", name="Barrel Exports", description="index", confidence=0.9)],
        )
    )
    suggestion_store.record_suggestion("repo-1", "refactor", "Extract token helper", ["src/auth/login.ts"])
    builder = ContextBuilder(vector_store, embedder, memory_store=memory_store, suggestions=suggestion_store)
    context = builder.repository_context("repo-1", affected_files=["src/auth/login.ts"])
    assert context.memory["frameworks"] == ["react"]
    assert context.patterns == [{"category": "naming", "name": "Barrel Exports", "description": "index"}]
    assert [s.title for s in context.prior_suggestions] == ["Extract token helper"]

    prompt = build_context_prompt(context)
    assert "## Repository Context" in prompt
    assert "Languages: typescript" in prompt
    assert "- **Barrel Exports** (naming): index" in prompt
    assert "- [pending] Extract token helper" in prompt
    assert "### src/auth/login.ts" in prompt


def test_prompt_truncates_long_content() -> None:
    chunk = StoredChunk(file_path="big.ts", chunk_index=0, content="x" * 1500, content_hash="h", similarity=1.0)
    prompt = build_context_prompt(RepositoryContext(memory=None, relevant_files=[chunk]))
    assert "x" * 1000 + "\n..." in prompt
    assert "x" * 1001 not in prompt
