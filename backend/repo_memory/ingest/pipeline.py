"""Ingest pipeline orchestration."""

from __future__ import annotations

import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeout
from dataclasses import dataclass, field
from typing import Callable, Iterator, Sequence, TypeVar

from repo_memory.core.config import Settings
from repo_memory.core.errors import (
    IngestionCancelled,
    IngestionConflict,
    PersistenceFailure,
    RepoMemoryError,
    ScanFailure,
)
from repo_memory.core.logging import get_logger
from repo_memory.core.metrics import EMBEDDINGS_WRITTEN, FILES_PROCESSED, INGEST_DURATION, INGEST_ERRORS
from repo_memory.ingest.analyzer import analyze_patterns
from repo_memory.ingest.chunker import ChunkOptions, chunk_file
from repo_memory.ingest.embeddings import Embedder, prepare_code_for_embedding
from repo_memory.ingest.filters import in_skipped_directory, infer_language, is_eligible, is_eligible_path
from repo_memory.ingest.scanner import ScanResult, detect_manifest_frameworks, scan_repository
from repo_memory.ingest.types import (
    ChangedFile,
    FileError,
    IngestionPhase,
    IngestionProgress,
    IngestionResult,
    PreparedChunk,
    ProgressCallback,
    TreeItem,
    UpdateResult,
)
from repo_memory.memory.models import RepositoryMemory
from repo_memory.memory.store import MemoryStore
from repo_memory.retrieval.vector_store import VectorStore
from repo_memory.sources.base import SourceTree
from repo_memory.utils.hashing import tree_fingerprint
from repo_memory.utils.ids import new_id
from repo_memory.utils.time import now_ms

logger = get_logger(__name__)

T = TypeVar("T")
CancelSignal = Callable[[], bool] | threading.Event

_NON_CODE_LANGUAGES = frozenset({"json", "yaml", "markdown"})


@dataclass(slots=True)
class _Run:
    """Mutable bookkeeping for a single ingestion run."""

    repository_id: str
    on_progress: ProgressCallback | None
    cancel: CancelSignal | None
    phase: IngestionPhase = "scanning"
    total_files: int = 0
    processed_files: int = 0
    errors: list[FileError] = field(default_factory=list)

    def emit(self, phase: IngestionPhase, current_file: str | None = None) -> None:
        self.phase = phase
        if self.on_progress is None:
            return
        self.on_progress(
            IngestionProgress(
                phase=phase,
                total_files=self.total_files,
                processed_files=self.processed_files,
                errors=list(self.errors),
                current_file=current_file,
            )
        )

    def record(self, file: str, error: str, stage: str) -> None:
        self.errors.append(FileError(file=file, error=error))
        INGEST_ERRORS.labels(stage=stage).inc()

    def check_cancel(self) -> None:
        if self.cancel is None:
            return
        cancelled = self.cancel.is_set() if isinstance(self.cancel, threading.Event) else self.cancel()
        if cancelled:
            raise IngestionCancelled(self.repository_id, f"Ingestion cancelled during {self.phase}")


class IngestPipeline:
    """Coordinate scanning, chunking, embeddings, pattern analysis, and persistence.

    ``sleep`` is injectable so tests can run the rate-limited stages without
    waiting.
    """

    def __init__(
        self,
        memory_store: MemoryStore,
        vector_store: VectorStore,
        embedder: Embedder,
        settings: Settings,
        chunk_options: ChunkOptions | None = None,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        self.memory_store = memory_store
        self.vector_store = vector_store
        self.embedder = embedder
        self.settings = settings
        self.chunk_options = chunk_options or ChunkOptions(
            max_chunk_size=settings.max_chunk_size,
            min_chunk_size=settings.min_chunk_size,
            overlap_lines=settings.overlap_lines,
        )
        self._sleep = sleep
        self._clock = clock

    # Full ingestion ---------------------------------------------------

    def ingest(
        self,
        repository_id: str,
        source: SourceTree,
        ref: str | None = None,
        force: bool = False,
        on_progress: ProgressCallback | None = None,
        cancel: CancelSignal | None = None,
    ) -> IngestionResult:
        """Build or rebuild the memory of one repository.

        Skips work when the memory was refreshed within ``freshness_hours``
        unless ``force`` is set. Per-file and per-batch failures are collected
        in ``IngestionResult.errors``; a failed tree listing raises
        ``ScanFailure`` and a failed memory write raises ``PersistenceFailure``.
        """
        if not force and self.memory_store.is_fresh(repository_id, self.settings.freshness_hours):
            logger.info("Memory for %s is fresh; skipping full scan", repository_id)
            return IngestionResult(repository_id=repository_id, summary="Repository memory is fresh", skipped=True)

        holder = new_id("ingest")
        if not self.memory_store.acquire_lease(repository_id, holder, self.settings.lease_ttl_s):
            raise IngestionConflict(repository_id, "Another ingestion holds the repository lease")

        job_id = self.memory_store.start_job(repository_id, "full")
        run = _Run(repository_id=repository_id, on_progress=on_progress, cancel=cancel)
        started = time.perf_counter()
        try:
            result = self._run_full(run, source, ref)
        except RepoMemoryError as exc:
            logger.error(
                "Ingestion of %s failed: %s",
                repository_id,
                exc,
                extra={"ctx_repository_id": repository_id, "ctx_phase": run.phase},
            )
            self.memory_store.set_status(repository_id, "error", exc.message)
            self.memory_store.finish_job(job_id, exc.kind, _stats(run), detail=exc.message)
            raise
        except Exception as exc:
            logger.exception("Ingestion of %s failed unexpectedly: %s", repository_id, exc)
            self.memory_store.set_status(repository_id, "error", str(exc))
            self.memory_store.finish_job(job_id, "failed", _stats(run), detail=str(exc))
            raise
        finally:
            self.memory_store.release_lease(repository_id, holder)
            INGEST_DURATION.labels(mode="full").observe(time.perf_counter() - started)
        self.memory_store.finish_job(job_id, "completed", result.to_dict())
        return result

    def _run_full(self, run: _Run, source: SourceTree, ref: str | None) -> IngestionResult:
        repository_id = run.repository_id
        self.memory_store.set_status(repository_id, "indexing")
        run.emit("scanning")

        try:
            branch = ref or source.default_branch
            tree = source.list_tree(ref)
        except Exception as exc:
            raise ScanFailure(repository_id, f"Could not list repository tree: {exc}") from exc

        scan_items = [item for item in tree if not in_skipped_directory(item.path)]
        eligible = [item for item in scan_items if is_eligible(item, self.settings.max_file_size)]
        run.total_files = len(eligible)
        run.emit("analyzing")

        languages = self._primary_languages(run, source, eligible)
        scan = scan_repository(scan_items, branch)
        self._merge_manifest(run, source, ref, scan)

        prepared, chunk_counts = self._prepare_files(run, source, ref, eligible)
        for path, count in chunk_counts.items():
            self.vector_store.delete_chunks_from(repository_id, path, count)
        self._forget_vanished(repository_id, {item.path for item in eligible})

        run.emit("embedding")
        created, unchanged = self._embed_chunks(run, prepared)

        run.emit("summarizing")
        self.memory_store.set_status(repository_id, "analyzing")
        patterns = analyze_patterns(scan.directories, scan.key_files, languages)

        memory = RepositoryMemory(
            repository_id=repository_id,
            primary_languages=languages,
            frameworks=scan.frameworks,
            build_tools=scan.build_tools,
            testing_frameworks=scan.testing_frameworks,
            package_manager=scan.package_manager,
            directory_map=scan.directory_map,
            key_files=[key_file.to_dict() for key_file in scan.key_files],
            entry_points=scan.entry_points,
            repo_summary=scan.summary,
            architecture_summary=scan.architecture_summary,
            tree_hash=tree_fingerprint((item.path, item.content_hash) for item in tree if item.kind == "blob"),
            last_full_scan_at=self._clock(),
            patterns=patterns,
        )
        try:
            self.memory_store.upsert_full_scan(memory)
        except Exception as exc:
            raise PersistenceFailure(repository_id, f"Could not store repository memory: {exc}") from exc

        self.memory_store.set_status(repository_id, "ready")
        run.emit("complete")
        logger.info(
            "Ingested %s: %s files, %s embeddings, %s errors",
            repository_id,
            len(chunk_counts),
            created,
            len(run.errors),
            extra={"ctx_repository_id": repository_id},
        )
        return IngestionResult(
            repository_id=repository_id,
            files_processed=len(chunk_counts),
            embeddings_created=created,
            embeddings_unchanged=unchanged,
            languages_detected=languages,
            frameworks_detected=list(scan.frameworks),
            patterns_identified=len(patterns),
            summary=scan.summary or "Repository ingested successfully",
            errors=list(run.errors),
        )

    def _primary_languages(self, run: _Run, source: SourceTree, eligible: Sequence[TreeItem]) -> list[str]:
        try:
            stats = source.get_language_stats()
        except Exception as exc:
            logger.warning("Language statistics unavailable for %s: %s", run.repository_id, exc)
            run.record("language-stats", str(exc), "languages")
            stats = {}
            for item in eligible:
                language = infer_language(item.path)
                if language and language not in _NON_CODE_LANGUAGES:
                    stats[language] = stats.get(language, 0) + (item.size or 0)
        ranked = sorted(stats.items(), key=lambda pair: -pair[1])
        return [name for name, _ in ranked[: self.settings.max_primary_languages]]

    def _merge_manifest(self, run: _Run, source: SourceTree, ref: str | None, scan: ScanResult) -> None:
        if "package.json" not in scan.files:
            return
        try:
            manifest = source.get_file_content("package.json", ref)
            frameworks, testing = detect_manifest_frameworks(manifest.content)
        except Exception as exc:
            logger.warning("Could not read package.json for %s: %s", run.repository_id, exc)
            run.record("package.json", str(exc), "manifest")
            return
        scan.frameworks = list(dict.fromkeys([*scan.frameworks, *frameworks]))
        scan.testing_frameworks = list(dict.fromkeys([*scan.testing_frameworks, *testing]))

    def _prepare_files(
        self,
        run: _Run,
        source: SourceTree,
        ref: str | None,
        eligible: Sequence[TreeItem],
    ) -> tuple[list[PreparedChunk], dict[str, int]]:
        prepared: list[PreparedChunk] = []
        chunk_counts: dict[str, int] = {}
        batches = list(_batched(eligible, self.settings.file_batch_size))
        # a fetch that outlives its timeout keeps its worker; the run does not wait for it
        pool = ThreadPoolExecutor(max_workers=self.settings.fetch_workers, thread_name_prefix="repomem-fetch")
        try:
            for position, batch in enumerate(batches):
                run.check_cancel()
                futures: list[tuple[TreeItem, Future[list[PreparedChunk]]]] = [
                    (item, pool.submit(self._prepare_file, source, item, ref)) for item in batch
                ]
                for item, future in futures:
                    run.emit("analyzing", current_file=item.path)
                    try:
                        chunks = future.result(timeout=self.settings.fetch_timeout_s)
                    except FutureTimeout:
                        future.cancel()
                        logger.warning("Timed out fetching %s", item.path)
                        run.record(item.path, f"Timed out after {self.settings.fetch_timeout_s}s", "fetch")
                    except Exception as exc:
                        logger.exception("Failed to prepare %s: %s", item.path, exc)
                        run.record(item.path, str(exc) or type(exc).__name__, "fetch")
                    else:
                        prepared.extend(chunks)
                        chunk_counts[item.path] = len(chunks)
                        FILES_PROCESSED.inc()
                    run.processed_files += 1
                if position + 1 < len(batches):
                    self._sleep(self.settings.file_batch_delay_s)
        finally:
            pool.shutdown(wait=False, cancel_futures=True)
        return prepared, chunk_counts

    def _prepare_file(self, source: SourceTree, item: TreeItem, ref: str | None) -> list[PreparedChunk]:
        content = source.get_file_content(item.path, ref)
        if content.size > self.settings.max_file_size:
            raise ValueError(f"File is {content.size} bytes, above the {self.settings.max_file_size} byte limit")
        chunks = chunk_file(content.content, item.path, options=self.chunk_options)
        return [
            PreparedChunk(file_path=item.path, chunk=chunk, metadata={**chunk.metadata(), "sha": item.content_hash})
            for chunk in chunks
        ]

    def _forget_vanished(self, repository_id: str, live_paths: set[str]) -> None:
        for path in self.vector_store.list_paths(repository_id):
            if path not in live_paths:
                self.vector_store.delete_embedding(repository_id, path)
                logger.debug("Removed embeddings of vanished file %s", path)

    def _embed_chunks(self, run: _Run, prepared: Sequence[PreparedChunk]) -> tuple[int, int]:
        stored: dict[str, dict[int, str]] = {}
        pending: list[PreparedChunk] = []
        unchanged: list[tuple[str, int, dict]] = []
        for item in prepared:
            if item.file_path not in stored:
                stored[item.file_path] = self.vector_store.stored_hashes(run.repository_id, item.file_path)
            if stored[item.file_path].get(item.chunk.chunk_index) == item.chunk.content_hash:
                unchanged.append((item.file_path, item.chunk.chunk_index, item.metadata))
            else:
                pending.append(item)
        # line numbers and blob sha move even when a chunk's text does not
        try:
            self.vector_store.refresh_metadata(run.repository_id, unchanged)
        except Exception as exc:
            logger.exception("Refreshing metadata of unchanged chunks failed: %s", exc)
            run.record("metadata-refresh", str(exc) or type(exc).__name__, "embedding")

        created = 0
        batches = list(_batched(pending, self.settings.embedding_batch_size))
        for position, batch in enumerate(batches):
            run.check_cancel()
            try:
                created += self._embed_batch(run.repository_id, batch)
            except Exception as exc:
                logger.exception("Embedding batch %s of %s failed: %s", position + 1, len(batches), exc)
                run.record("embedding-batch", str(exc) or type(exc).__name__, "embedding")
            if position + 1 < len(batches):
                self._sleep(self.settings.embedding_batch_delay_s)
        return created, len(unchanged)

    def _embed_batch(self, repository_id: str, batch: Sequence[PreparedChunk]) -> int:
        texts = [
            prepare_code_for_embedding(item.chunk.content, item.file_path, item.chunk.language) for item in batch
        ]
        results = self.embedder.embed_batch(texts)
        if len(results) != len(batch):
            raise ValueError(f"Embedder returned {len(results)} vectors for {len(batch)} texts")
        for item, embedded in zip(batch, results):
            self.vector_store.upsert_embedding(
                repository_id,
                item.file_path,
                item.chunk.chunk_index,
                item.chunk.content,
                item.chunk.content_hash,
                item.metadata,
                embedded.vector,
            )
        EMBEDDINGS_WRITTEN.inc(len(batch))
        return len(batch)

    # Incremental updates ------------------------------------------------

    def update_from_change(
        self,
        repository_id: str,
        source: SourceTree,
        changed_files: Sequence[ChangedFile],
        ref: str | None = None,
        tree_hash: str | None = None,
    ) -> UpdateResult:
        """Apply a push: drop removed files, re-chunk and re-embed added or modified ones."""
        holder = new_id("update")
        if not self.memory_store.acquire_lease(repository_id, holder, self.settings.lease_ttl_s):
            raise IngestionConflict(repository_id, "Another ingestion holds the repository lease")
        job_id = self.memory_store.start_job(repository_id, "incremental")
        started = time.perf_counter()
        result = UpdateResult()
        try:
            for change in changed_files:
                try:
                    if change.status == "removed":
                        self.vector_store.delete_embedding(repository_id, change.path)
                        result.removed += 1
                    elif self._refresh_file(repository_id, source, change.path, ref):
                        result.updated += 1
                except Exception as exc:
                    logger.exception("Failed to update %s: %s", change.path, exc)
                    result.errors.append(FileError(file=change.path, error=str(exc) or type(exc).__name__))
                    INGEST_ERRORS.labels(stage="update").inc()
            if tree_hash is not None:
                self.memory_store.patch(repository_id, {"tree_hash": tree_hash})
        except Exception as exc:
            self.memory_store.finish_job(job_id, "failed", result.to_dict(), detail=str(exc))
            raise
        finally:
            self.memory_store.release_lease(repository_id, holder)
            INGEST_DURATION.labels(mode="incremental").observe(time.perf_counter() - started)
        self.memory_store.finish_job(job_id, "completed", result.to_dict())
        logger.info(
            "Updated %s: %s updated, %s removed, %s errors",
            repository_id,
            result.updated,
            result.removed,
            len(result.errors),
            extra={"ctx_repository_id": repository_id},
        )
        return result

    def _refresh_file(self, repository_id: str, source: SourceTree, path: str, ref: str | None) -> bool:
        if not is_eligible_path(path):
            logger.debug("Skipping ineligible file %s", path)
            return False
        content = source.get_file_content(path, ref)
        if content.size > self.settings.max_file_size:
            logger.debug("Skipping oversized file %s (%s bytes)", path, content.size)
            return False
        chunks = chunk_file(content.content, path, options=self.chunk_options)
        prepared = [PreparedChunk(file_path=path, chunk=chunk, metadata=chunk.metadata()) for chunk in chunks]
        for batch in _batched(prepared, self.settings.embedding_batch_size):
            self._embed_batch(repository_id, batch)
        self.vector_store.delete_chunks_from(repository_id, path, len(chunks))
        FILES_PROCESSED.inc()
        return True


def _batched(items: Sequence[T], size: int) -> Iterator[Sequence[T]]:
    for start in range(0, len(items), size):
        yield items[start : start + size]


def _stats(run: _Run) -> dict[str, object]:
    return {
        "total_files": run.total_files,
        "processed_files": run.processed_files,
        "errors": [error.to_dict() for error in run.errors],
    }


__all__ = ["IngestPipeline"]
