"""Tests for the repository memory store."""

import pytest

from repo_memory.memory.models import DetectedPattern, RepositoryMemory
from repo_memory.memory.store import MemoryStore
from repo_memory.utils.time import MS_PER_HOUR


def _memory(repository_id: str = "repo-1", **overrides) -> RepositoryMemory:
    values = dict(
        repository_id=repository_id,
        primary_languages=["typescript", "javascript"],
        frameworks=["react"],
        directory_map={"src": {"responsibility": "Main source code", "files": ["index.ts"], "exports": []}},
        key_files=[{"path": "package.json", "importance": "critical", "reason": "Project configuration"}],
        repo_summary="Summary",
        patterns=[
            DetectedPattern(category="naming", name="Barrel Exports", description="index files", confidence=0.9),
            DetectedPattern(category="architecture", name="Service Layer Pattern", description="s", confidence=0.7),
        ],
    )
    values.update(overrides)
    return RepositoryMemory(**values)


def test_missing_repository(memory_store: MemoryStore) -> None:
    assert memory_store.get("nope") is None
    assert memory_store.get_primary_languages("nope") == []
    assert memory_store.is_fresh("nope") is False
    assert memory_store.patch("nope", {"repo_summary": "x"}) is None


def test_full_scan_round_trip(memory_store: MemoryStore, clock) -> None:
    stored = memory_store.upsert_full_scan(_memory())
    assert stored.primary_languages == ["typescript", "javascript"]
    assert stored.directory_map["src"]["files"] == ["index.ts"]
    assert stored.last_full_scan_at == clock.now
    assert [p.name for p in stored.patterns] == ["Barrel Exports", "Service Layer Pattern"]
    assert memory_store.get_primary_languages("repo-1") == ["typescript", "javascript"]
    assert [p.name for p in memory_store.get_patterns("repo-1", category="architecture")] == [
        "Service Layer Pattern"
    ]


def test_full_scan_replaces_patterns(memory_store: MemoryStore) -> None:
    memory_store.upsert_full_scan(_memory())
    replacement = DetectedPattern(category="testing", name="Colocated Tests", description="t", confidence=0.9)
    stored = memory_store.upsert_full_scan(_memory(patterns=[replacement]))
    assert [p.name for p in stored.patterns] == ["Colocated Tests"]


def test_last_full_scan_never_moves_backwards(memory_store: MemoryStore, clock) -> None:
    memory_store.upsert_full_scan(_memory(last_full_scan_at=clock.now))
    stored = memory_store.upsert_full_scan(_memory(last_full_scan_at=clock.now - 10_000))
    assert stored.last_full_scan_at == clock.now


def test_patch_updates_selected_fields(memory_store: MemoryStore, clock) -> None:
    memory_store.upsert_full_scan(_memory())
    clock.advance(1000)
    patched = memory_store.patch("repo-1", {"tree_hash": "abc", "frameworks": ["vue"]})
    assert patched is not None
    assert patched.tree_hash == "abc"
    assert patched.frameworks == ["vue"]
    assert patched.last_full_scan_at == clock.now - 1000
    assert [p.name for p in patched.patterns] == ["Barrel Exports", "Service Layer Pattern"]


def test_patch_rejects_protected_fields(memory_store: MemoryStore) -> None:
    memory_store.upsert_full_scan(_memory())
    with pytest.raises(ValueError):
        memory_store.patch("repo-1", {"last_full_scan_at": 0})


def test_freshness_window(memory_store: MemoryStore, clock) -> None:
    memory_store.upsert_full_scan(_memory())
    assert memory_store.is_fresh("repo-1", max_age_hours=24)
    clock.advance(25 * MS_PER_HOUR)
    assert not memory_store.is_fresh("repo-1", max_age_hours=24)


def test_pattern_confidence_is_validated() -> None:
    with pytest.raises(ValueError):
        DetectedPattern(category="naming", name="x", description="y", confidence=1.5)
    with pytest.raises(ValueError):
        DetectedPattern(category="style", name="x", description="y", confidence=0.5)


def test_lease_allows_single_holder(memory_store: MemoryStore, clock) -> None:
    assert memory_store.acquire_lease("repo-1", "worker-a", ttl_s=60)
    assert not memory_store.acquire_lease("repo-1", "worker-b", ttl_s=60)
    assert memory_store.get_lease("repo-1")["holder"] == "worker-a"
    memory_store.release_lease("repo-1", "worker-a")
    assert memory_store.acquire_lease("repo-1", "worker-b", ttl_s=60)


def test_expired_lease_can_be_taken_over(memory_store: MemoryStore, clock) -> None:
    assert memory_store.acquire_lease("repo-1", "worker-a", ttl_s=60)
    clock.advance(61_000)
    assert memory_store.acquire_lease("repo-1", "worker-b", ttl_s=60)


def test_status_defaults_and_validation(memory_store: MemoryStore) -> None:
    assert memory_store.get_status("repo-1")["status"] == "pending"
    memory_store.set_status("repo-1", "indexing")
    assert memory_store.get_status("repo-1")["status"] == "indexing"
    with pytest.raises(ValueError):
        memory_store.set_status("repo-1", "sleeping")


def test_job_log(memory_store: MemoryStore) -> None:
    job_id = memory_store.start_job("repo-1", "full")
    memory_store.finish_job(job_id, "completed", {"files_processed": 3})
    (job,) = memory_store.list_jobs("repo-1")
    assert job["status"] == "completed"
    assert job["mode"] == "full"
    assert job["stats"]["stats"] == {"files_processed": 3}


def test_delete_removes_memory_and_patterns(memory_store: MemoryStore) -> None:
    memory_store.upsert_full_scan(_memory())
    memory_store.delete("repo-1")
    assert memory_store.get("repo-1") is None
    assert memory_store.get_patterns("repo-1") == []
