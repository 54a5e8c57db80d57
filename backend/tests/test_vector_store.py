"""Tests for the SQLite vector store."""

from repo_memory.retrieval import SQLiteVectorStore


def _put(store: SQLiteVectorStore, path: str, index: int, vector: list[float], repo: str = "repo-1") -> None:
    store.upsert_embedding(repo, path, index, f"{path}#{index}", f"hash-{path}-{index}", {"language": "ts"}, vector)


def test_upsert_is_keyed_by_path_and_chunk_index(vector_store: SQLiteVectorStore) -> None:
    _put(vector_store, "src/a.ts", 0, [1.0, 0.0])
    _put(vector_store, "src/a.ts", 1, [0.0, 1.0])
    _put(vector_store, "src/a.ts", 0, [0.5, 0.5])
    assert vector_store.count("repo-1") == 2
    assert vector_store.stored_hashes("repo-1", "src/a.ts") == {0: "hash-src/a.ts-0", 1: "hash-src/a.ts-1"}


def test_delete_chunks_from_trims_stale_rows(vector_store: SQLiteVectorStore) -> None:
    for index in range(4):
        _put(vector_store, "src/a.ts", index, [1.0, 0.0])
    assert vector_store.delete_chunks_from("repo-1", "src/a.ts", 2) == 2
    assert sorted(vector_store.stored_hashes("repo-1", "src/a.ts")) == [0, 1]


def test_refresh_metadata_keeps_content_and_vector(vector_store: SQLiteVectorStore) -> None:
    _put(vector_store, "src/a.ts", 0, [1.0, 0.0])
    _put(vector_store, "src/a.ts", 1, [0.0, 1.0])
    assert vector_store.refresh_metadata("repo-1", [("src/a.ts", 1, {"start_line": 12}), ("src/gone.ts", 0, {})]) == 1
    chunks = vector_store.get_by_paths("repo-1", ["src/a.ts"])
    assert [chunk.metadata for chunk in chunks] == [{"language": "ts"}, {"start_line": 12}]
    assert vector_store.stored_hashes("repo-1", "src/a.ts") == {0: "hash-src/a.ts-0", 1: "hash-src/a.ts-1"}
    assert vector_store.query_by_similarity("repo-1", [0.0, 1.0], limit=1)[0].chunk_index == 1
    assert vector_store.refresh_metadata("repo-1", []) == 0


def test_delete_embedding_removes_every_chunk(vector_store: SQLiteVectorStore) -> None:
    _put(vector_store, "src/a.ts", 0, [1.0, 0.0])
    _put(vector_store, "src/a.ts", 1, [1.0, 0.0])
    _put(vector_store, "src/b.ts", 0, [1.0, 0.0])
    assert vector_store.delete_embedding("repo-1", "src/a.ts") == 2
    assert vector_store.list_paths("repo-1") == ["src/b.ts"]


def test_repositories_are_isolated(vector_store: SQLiteVectorStore) -> None:
    _put(vector_store, "src/a.ts", 0, [1.0, 0.0], repo="repo-1")
    _put(vector_store, "src/a.ts", 0, [1.0, 0.0], repo="repo-2")
    assert vector_store.delete_repository("repo-1") == 1
    assert vector_store.count("repo-2") == 1


def test_similarity_ranking_and_exclusions(vector_store: SQLiteVectorStore) -> None:
    _put(vector_store, "src/exact.ts", 0, [1.0, 0.0])
    _put(vector_store, "src/close.ts", 0, [0.9, 0.1])
    _put(vector_store, "src/far.ts", 0, [0.0, 1.0])
    results = vector_store.query_by_similarity("repo-1", [1.0, 0.0], exclude_paths={"src/exact.ts"}, limit=2)
    assert [chunk.file_path for chunk in results] == ["src/close.ts", "src/far.ts"]
    assert results[0].similarity > results[1].similarity
    assert results[0].metadata == {"language": "ts"}


def test_similarity_skips_mismatched_dimensions(vector_store: SQLiteVectorStore) -> None:
    _put(vector_store, "src/old.ts", 0, [1.0, 0.0, 0.0])
    _put(vector_store, "src/new.ts", 0, [1.0, 0.0])
    results = vector_store.query_by_similarity("repo-1", [1.0, 0.0])
    assert [chunk.file_path for chunk in results] == ["src/new.ts"]


def test_path_prefix_query_matches_whole_segments(vector_store: SQLiteVectorStore) -> None:
    _put(vector_store, "README.md", 0, [1.0, 0.0])
    _put(vector_store, "src/api/users.ts", 0, [1.0, 0.0])
    _put(vector_store, "src/api/v2/posts.ts", 0, [1.0, 0.0])
    _put(vector_store, "src/apiary/bees.ts", 0, [1.0, 0.0])
    under_api = vector_store.query_by_path_prefix("repo-1", ["src/api"], exclude_paths={"src/api/users.ts"})
    assert [chunk.file_path for chunk in under_api] == ["src/api/v2/posts.ts"]
    root = vector_store.query_by_path_prefix("repo-1", [""])
    assert [chunk.file_path for chunk in root] == ["README.md"]


def test_get_by_paths_orders_chunks(vector_store: SQLiteVectorStore) -> None:
    _put(vector_store, "src/b.ts", 1, [1.0, 0.0])
    _put(vector_store, "src/b.ts", 0, [1.0, 0.0])
    _put(vector_store, "src/a.ts", 0, [1.0, 0.0])
    chunks = vector_store.get_by_paths("repo-1", ["src/b.ts", "src/a.ts"])
    assert [(c.file_path, c.chunk_index) for c in chunks] == [("src/a.ts", 0), ("src/b.ts", 0), ("src/b.ts", 1)]
    assert vector_store.get_by_paths("repo-1", []) == []
