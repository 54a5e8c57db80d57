"""Chunk embedding storage with brute-force cosine search."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, Protocol, Sequence

import orjson

from repo_memory.core.logging import get_logger
from repo_memory.db.sqlite import SQLiteDatabase
from repo_memory.ingest.embeddings import bytes_to_vector, cosine_similarity, vector_to_bytes
from repo_memory.utils.ids import new_id
from repo_memory.utils.time import now_ms

logger = get_logger(__name__)


@dataclass(slots=True)
class StoredChunk:
    file_path: str
    chunk_index: int
    content: str
    content_hash: str
    metadata: dict[str, Any] = field(default_factory=dict)
    similarity: float | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "path": self.file_path,
            "chunk_index": self.chunk_index,
            "content": self.content,
            "content_hash": self.content_hash,
            "metadata": self.metadata,
            "similarity": self.similarity,
        }


class VectorStore(Protocol):
    """Storage capability used by the ingestion pipeline and the context builder."""

    def upsert_embedding(
        self,
        repository_id: str,
        file_path: str,
        chunk_index: int,
        content: str,
        content_hash: str,
        metadata: dict[str, Any],
        vector: Sequence[float],
    ) -> None: ...

    def delete_embedding(self, repository_id: str, file_path: str) -> int: ...

    def delete_chunks_from(self, repository_id: str, file_path: str, first_stale_index: int) -> int: ...

    def stored_hashes(self, repository_id: str, file_path: str) -> dict[int, str]: ...

    def refresh_metadata(
        self, repository_id: str, entries: Sequence[tuple[str, int, dict[str, Any]]]
    ) -> int: ...

    def list_paths(self, repository_id: str) -> list[str]: ...

    def get_by_paths(self, repository_id: str, paths: Sequence[str]) -> list[StoredChunk]: ...

    def query_by_similarity(
        self,
        repository_id: str,
        vector: Sequence[float],
        exclude_paths: Iterable[str] = (),
        limit: int = 10,
    ) -> list[StoredChunk]: ...

    def query_by_path_prefix(
        self,
        repository_id: str,
        directories: Sequence[str],
        exclude_paths: Iterable[str] = (),
        limit: int = 10,
    ) -> list[StoredChunk]: ...


class SQLiteVectorStore:
    """Vectors stored as float32 blobs in ``code_embeddings``, scanned per query."""

    def __init__(self, database: SQLiteDatabase, clock: Callable[[], int] = now_ms) -> None:
        self.db = database
        self._clock = clock

    def upsert_embedding(
        self,
        repository_id: str,
        file_path: str,
        chunk_index: int,
        content: str,
        content_hash: str,
        metadata: dict[str, Any],
        vector: Sequence[float],
    ) -> None:
        now = self._clock()
        self.db.execute(
            """
            INSERT INTO code_embeddings (
              id, repository_id, file_path, chunk_index, content, content_hash,
              metadata_json, dim, vector, created_at, updated_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT (repository_id, file_path, chunk_index) DO UPDATE SET
              content = excluded.content,
              content_hash = excluded.content_hash,
              metadata_json = excluded.metadata_json,
              dim = excluded.dim,
              vector = excluded.vector,
              updated_at = excluded.updated_at
            """,
            [
                new_id("emb"),
                repository_id,
                file_path,
                chunk_index,
                content,
                content_hash,
                orjson.dumps(metadata).decode("utf-8"),
                len(vector),
                vector_to_bytes(vector),
                now,
                now,
            ],
        )
        self.db.commit()

    def delete_embedding(self, repository_id: str, file_path: str) -> int:
        """Remove every chunk row of a file."""
        cursor = self.db.execute(
            "DELETE FROM code_embeddings WHERE repository_id = ? AND file_path = ?",
            [repository_id, file_path],
        )
        self.db.commit()
        return cursor.rowcount

    def delete_chunks_from(self, repository_id: str, file_path: str, first_stale_index: int) -> int:
        """Remove rows left over from a previous version that had more chunks."""
        cursor = self.db.execute(
            "DELETE FROM code_embeddings WHERE repository_id = ? AND file_path = ? AND chunk_index >= ?",
            [repository_id, file_path, first_stale_index],
        )
        self.db.commit()
        return cursor.rowcount

    def delete_repository(self, repository_id: str) -> int:
        cursor = self.db.execute("DELETE FROM code_embeddings WHERE repository_id = ?", [repository_id])
        self.db.commit()
        return cursor.rowcount

    def stored_hashes(self, repository_id: str, file_path: str) -> dict[int, str]:
        rows = self.db.query(
            "SELECT chunk_index, content_hash FROM code_embeddings WHERE repository_id = ? AND file_path = ?",
            [repository_id, file_path],
        )
        return {row["chunk_index"]: row["content_hash"] for row in rows}

    def refresh_metadata(self, repository_id: str, entries: Sequence[tuple[str, int, dict[str, Any]]]) -> int:
        """Rewrite metadata of rows whose content is unchanged; vectors are left alone."""
        if not entries:
            return 0
        now = self._clock()
        cursor = self.db.executemany(
            """
            UPDATE code_embeddings SET metadata_json = ?, updated_at = ?
            WHERE repository_id = ? AND file_path = ? AND chunk_index = ?
            """,
            [
                (orjson.dumps(metadata).decode("utf-8"), now, repository_id, file_path, chunk_index)
                for file_path, chunk_index, metadata in entries
            ],
        )
        self.db.commit()
        return cursor.rowcount

    def count(self, repository_id: str, file_path: str | None = None) -> int:
        sql = "SELECT COUNT(*) AS count FROM code_embeddings WHERE repository_id = ?"
        params: list[Any] = [repository_id]
        if file_path is not None:
            sql += " AND file_path = ?"
            params.append(file_path)
        row = self.db.execute(sql, params).fetchone()
        return int(row["count"]) if row else 0

    def list_paths(self, repository_id: str) -> list[str]:
        rows = self.db.query(
            "SELECT DISTINCT file_path FROM code_embeddings WHERE repository_id = ? ORDER BY file_path",
            [repository_id],
        )
        return [row["file_path"] for row in rows]

    def get_by_paths(self, repository_id: str, paths: Sequence[str]) -> list[StoredChunk]:
        if not paths:
            return []
        placeholders = ",".join("?" for _ in paths)
        rows = self.db.query(
            f"""
            SELECT file_path, chunk_index, content, content_hash, metadata_json
            FROM code_embeddings
            WHERE repository_id = ? AND file_path IN ({placeholders})
            ORDER BY file_path, chunk_index
            """,
            [repository_id, *paths],
        )
        return [_row_to_chunk(row) for row in rows]

    def query_by_similarity(
        self,
        repository_id: str,
        vector: Sequence[float],
        exclude_paths: Iterable[str] = (),
        limit: int = 10,
    ) -> list[StoredChunk]:
        if limit <= 0:
            return []
        excluded = set(exclude_paths)
        rows = self.db.query(
            """
            SELECT file_path, chunk_index, content, content_hash, metadata_json, dim, vector
            FROM code_embeddings WHERE repository_id = ?
            """,
            [repository_id],
        )
        scored: list[tuple[float, str, int, Any]] = []
        for row in rows:
            if row["file_path"] in excluded:
                continue
            if row["dim"] != len(vector):
                logger.warning(
                    "Skipping %s#%s: stored dimension %s does not match query dimension %s",
                    row["file_path"],
                    row["chunk_index"],
                    row["dim"],
                    len(vector),
                )
                continue
            score = cosine_similarity(vector, bytes_to_vector(row["vector"]))
            scored.append((score, row["file_path"], row["chunk_index"], row))
        scored.sort(key=lambda item: (-item[0], item[1], item[2]))
        results = []
        for score, _, _, row in scored[:limit]:
            chunk = _row_to_chunk(row)
            chunk.similarity = score
            results.append(chunk)
        return results

    def query_by_path_prefix(
        self,
        repository_id: str,
        directories: Sequence[str],
        exclude_paths: Iterable[str] = (),
        limit: int = 10,
    ) -> list[StoredChunk]:
        """Chunks of files under any of ``directories``; ``""`` selects root-level files only."""
        if limit <= 0 or not directories:
            return []
        excluded = set(exclude_paths)
        wanted = set(directories)
        rows = self.db.query(
            """
            SELECT file_path, chunk_index, content, content_hash, metadata_json
            FROM code_embeddings WHERE repository_id = ?
            ORDER BY file_path, chunk_index
            """,
            [repository_id],
        )
        results: list[StoredChunk] = []
        for row in rows:
            path = row["file_path"]
            if path in excluded:
                continue
            if not any(_under(path, directory) for directory in wanted):
                continue
            results.append(_row_to_chunk(row))
            if len(results) >= limit:
                break
        return results


def _under(path: str, directory: str) -> bool:
    if not directory:
        return "/" not in path
    return path.startswith(directory.rstrip("/") + "/")


def _row_to_chunk(row: Any) -> StoredChunk:
    return StoredChunk(
        file_path=row["file_path"],
        chunk_index=row["chunk_index"],
        content=row["content"],
        content_hash=row["content_hash"],
        metadata=orjson.loads(row["metadata_json"]),
    )


__all__ = ["StoredChunk", "VectorStore", "SQLiteVectorStore"]
