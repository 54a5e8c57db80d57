"""Filesystem watcher that turns checkout edits into incremental updates."""

from __future__ import annotations

import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Dict

from watchdog.events import FileSystemEvent, PatternMatchingEventHandler
from watchdog.observers import Observer
from watchdog.observers.api import BaseObserver

from repo_memory.core.logging import get_logger
from repo_memory.ingest.filters import SKIP_DIRECTORIES, in_skipped_directory
from repo_memory.ingest.types import ChangedFile, ChangeStatus
from repo_memory.sources.local import LocalSourceTree

logger = get_logger(__name__)

ChangeCallback = Callable[[str, ChangedFile], None]


@dataclass
class WatchedRepository:
    repository_id: str
    source: LocalSourceTree
    callback: ChangeCallback


class RepositoryEventHandler(PatternMatchingEventHandler):
    """Translate watchdog events into ``ChangedFile`` notifications."""

    def __init__(self, watched: WatchedRepository) -> None:
        super().__init__(
            patterns=["*"],
            ignore_patterns=[f"*/{name}/*" for name in sorted(SKIP_DIRECTORIES)],
            ignore_directories=True,
            case_sensitive=True,
        )
        self.watched = watched

    def on_created(self, event: FileSystemEvent) -> None:
        self._dispatch(event.src_path, "added")

    def on_modified(self, event: FileSystemEvent) -> None:
        self._dispatch(event.src_path, "modified")

    def on_deleted(self, event: FileSystemEvent) -> None:
        self._dispatch(event.src_path, "removed")

    def on_moved(self, event: FileSystemEvent) -> None:
        self._dispatch(event.src_path, "removed")
        self._dispatch(event.dest_path, "added")

    def _dispatch(self, raw_path: str | bytes, status: ChangeStatus) -> None:
        path = raw_path.decode() if isinstance(raw_path, bytes) else raw_path
        rel = self.watched.source.relative_path(Path(path))
        if rel is None or in_skipped_directory(rel):
            return
        logger.debug("Detected %s file %s", status, rel, extra={"ctx_repository_id": self.watched.repository_id})
        self.watched.callback(self.watched.repository_id, ChangedFile(path=rel, status=status))


class Watcher:
    """High-level wrapper around watchdog observers, one schedule per repository."""

    def __init__(self) -> None:
        self._observer: BaseObserver = Observer()
        self._lock = threading.Lock()
        self._repositories: Dict[str, WatchedRepository] = {}
        self._started = False

    def add_repository(self, repository_id: str, source: LocalSourceTree, callback: ChangeCallback) -> None:
        watched = WatchedRepository(repository_id=repository_id, source=source, callback=callback)
        handler = RepositoryEventHandler(watched)
        with self._lock:
            self._observer.schedule(event_handler=handler, path=str(source.root), recursive=True)
            self._repositories[repository_id] = watched

    def remove_repository(self, repository_id: str) -> None:
        with self._lock:
            watched = self._repositories.pop(repository_id, None)
            if watched is None:
                return
            self._observer.unschedule_all()
            for remaining in self._repositories.values():
                handler = RepositoryEventHandler(remaining)
                self._observer.schedule(handler, str(remaining.source.root), recursive=True)

    @property
    def repositories(self) -> list[str]:
        with self._lock:
            return sorted(self._repositories)

    def start(self) -> None:
        with self._lock:
            if self._started:
                return
            self._observer.start()
            self._started = True

    def stop(self) -> None:
        with self._lock:
            if not self._started:
                return
            self._observer.stop()
            self._observer.join(timeout=5)
            self._started = False

    def close(self) -> None:
        self.stop()
        with self._lock:
            self._observer.unschedule_all()
            self._repositories.clear()


__all__ = ["Watcher", "ChangeCallback", "RepositoryEventHandler"]
