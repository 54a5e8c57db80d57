"""Test fixtures for repository memory."""

from __future__ import annotations

import sys
import threading
from pathlib import Path
from typing import Sequence

import pytest

BACKEND_ROOT = Path(__file__).resolve().parents[1]
if str(BACKEND_ROOT) not in sys.path:
    sys.path.insert(0, str(BACKEND_ROOT))

from repo_memory.core.config import Settings  # noqa: E402
from repo_memory.db.sqlite import SQLiteDatabase  # noqa: E402
from repo_memory.ingest.embeddings import EmbeddingResult, HashedEmbeddingModel  # noqa: E402
from repo_memory.ingest.types import FileContent, TreeItem  # noqa: E402
from repo_memory.memory.store import MemoryStore  # noqa: E402
from repo_memory.retrieval import SQLiteVectorStore, SuggestionStore  # noqa: E402
from repo_memory.utils.hashing import git_blob_sha  # noqa: E402


class FakeClock:
    """Millisecond clock advanced by hand."""

    def __init__(self, start: int = 1_700_000_000_000) -> None:
        self.now = start

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> None:
        self.now += ms


class FakeSource:
    """In-memory repository tree keyed by path."""

    def __init__(
        self,
        files: dict[str, str | bytes],
        languages: dict[str, int] | None = None,
        default_branch: str = "main",
    ) -> None:
        self.files = dict(files)
        self.languages = languages
        self.default_branch = default_branch
        self.fail_tree = False
        self.fail_languages = False
        self.fail_paths: set[str] = set()
        self.fetched: list[str] = []
        self._lock = threading.Lock()

    def list_tree(self, ref: str | None = None) -> list[TreeItem]:
        if self.fail_tree:
            raise ConnectionError("tree listing unavailable")
        items: dict[str, TreeItem] = {}
        for path, body in sorted(self.files.items()):
            data = body if isinstance(body, bytes) else body.encode("utf-8")
            parts = path.split("/")
            for depth in range(1, len(parts)):
                directory = "/".join(parts[:depth])
                items.setdefault(directory, TreeItem(path=directory, kind="tree", content_hash=""))
            items[path] = TreeItem(path=path, kind="blob", content_hash=git_blob_sha(data), size=len(data))
        return sorted(items.values(), key=lambda item: item.path)

    def get_file_content(self, path: str, ref: str | None = None) -> FileContent:
        with self._lock:
            self.fetched.append(path)
        if path in self.fail_paths:
            raise OSError(f"cannot read {path}")
        body = self.files[path]
        data = body if isinstance(body, bytes) else body.encode("utf-8")
        return FileContent(content=data.decode("utf-8", errors="replace"), size=len(data))

    def get_language_stats(self) -> dict[str, int]:
        if self.fail_languages or self.languages is None:
            raise ConnectionError("language statistics unavailable")
        return dict(self.languages)


class FailingEmbedder:
    """Embedder that fails on selected calls and delegates otherwise."""

    def __init__(self, fail_calls: Sequence[int] = (), dim: int = 64) -> None:
        self._inner = HashedEmbeddingModel(dim=dim)
        self.fail_calls = set(fail_calls)
        self.calls = 0

    @property
    def dim(self) -> int:
        return self._inner.dim

    def embed_batch(self, texts: Sequence[str]) -> list[EmbeddingResult]:
        self.calls += 1
        if self.calls in self.fail_calls:
            raise RuntimeError("embedding provider unavailable")
        return self._inner.embed_batch(texts)


@pytest.fixture(autouse=True)
def reset_state(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    """Reset global singletons and environment between tests."""
    monkeypatch.setenv("REPOMEM_DB_PATH", str(tmp_path / "memory.db"))
    monkeypatch.setenv("REPOMEM_EMBEDDING_BACKEND", "hashed")
    monkeypatch.setenv("REPOMEM_FILE_BATCH_DELAY_S", "0")
    monkeypatch.setenv("REPOMEM_EMBEDDING_BATCH_DELAY_S", "0")
    monkeypatch.delenv("REPOMEM_CONFIG", raising=False)

    from repo_memory.api import dependencies as deps

    deps.reset_dependencies()
    yield
    deps.reset_dependencies()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def database(tmp_path: Path) -> SQLiteDatabase:
    db = SQLiteDatabase(tmp_path / "store.db")
    db.ensure_schema()
    yield db
    db.close()


@pytest.fixture
def memory_store(database: SQLiteDatabase, clock: FakeClock) -> MemoryStore:
    return MemoryStore(database, clock=clock)


@pytest.fixture
def vector_store(database: SQLiteDatabase, clock: FakeClock) -> SQLiteVectorStore:
    return SQLiteVectorStore(database, clock=clock)


@pytest.fixture
def suggestion_store(database: SQLiteDatabase, clock: FakeClock) -> SuggestionStore:
    return SuggestionStore(database, clock=clock)


@pytest.fixture
def embedder() -> HashedEmbeddingModel:
    return HashedEmbeddingModel(dim=64)


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    return Settings(
        db_path=tmp_path / "settings.db",
        embedding_dim=64,
        file_batch_delay_s=0,
        embedding_batch_delay_s=0,
        fetch_workers=4,
    )
