"""Tests for the checkout watcher."""

from __future__ import annotations

from pathlib import Path

from watchdog.events import FileCreatedEvent, FileDeletedEvent, FileModifiedEvent, FileMovedEvent

from repo_memory.ingest.types import ChangedFile
from repo_memory.ingest.watcher import RepositoryEventHandler, Watcher, WatchedRepository
from repo_memory.sources.local import LocalSourceTree


def _handler(root: Path) -> tuple[RepositoryEventHandler, list[tuple[str, ChangedFile]]]:
    seen: list[tuple[str, ChangedFile]] = []
    watched = WatchedRepository("repo-1", LocalSourceTree(root), lambda repo, change: seen.append((repo, change)))
    return RepositoryEventHandler(watched), seen


def test_events_map_to_change_statuses(tmp_path: Path) -> None:
    handler, seen = _handler(tmp_path)
    handler.on_created(FileCreatedEvent(str(tmp_path / "src" / "new.ts")))
    handler.on_modified(FileModifiedEvent(str(tmp_path / "src" / "app.ts")))
    handler.on_deleted(FileDeletedEvent(str(tmp_path / "old.ts")))
    handler.on_moved(FileMovedEvent(str(tmp_path / "a.ts"), str(tmp_path / "lib" / "a.ts")))
    assert seen == [
        ("repo-1", ChangedFile("src/new.ts", "added")),
        ("repo-1", ChangedFile("src/app.ts", "modified")),
        ("repo-1", ChangedFile("old.ts", "removed")),
        ("repo-1", ChangedFile("a.ts", "removed")),
        ("repo-1", ChangedFile("lib/a.ts", "added")),
    ]


def test_skipped_directories_and_outside_paths_are_ignored(tmp_path: Path) -> None:
    root = tmp_path / "repo"
    root.mkdir()
    handler, seen = _handler(root)
    handler.on_created(FileCreatedEvent(str(root / "node_modules" / "dep" / "index.js")))
    handler.on_modified(FileModifiedEvent(str(root / ".git" / "HEAD")))
    handler.on_created(FileCreatedEvent(str(tmp_path / "elsewhere.ts")))
    assert seen == []


def test_watcher_tracks_repositories(tmp_path: Path) -> None:
    first = tmp_path / "one"
    second = tmp_path / "two"
    first.mkdir()
    second.mkdir()
    watcher = Watcher()
    watcher.add_repository("one", LocalSourceTree(first), lambda repo, change: None)
    watcher.add_repository("two", LocalSourceTree(second), lambda repo, change: None)
    assert watcher.repositories == ["one", "two"]
    watcher.remove_repository("one")
    watcher.remove_repository("missing")
    assert watcher.repositories == ["two"]
    watcher.close()
    assert watcher.repositories == []
