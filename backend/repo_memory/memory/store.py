"""Durable per-repository memory backed by SQLite."""

from __future__ import annotations

import sqlite3
from typing import Any, Callable, Mapping

import orjson

from repo_memory.core.logging import get_logger
from repo_memory.db.sqlite import SQLiteDatabase
from repo_memory.memory.models import (
    PATCHABLE_FIELDS,
    REPOSITORY_STATUSES,
    DetectedPattern,
    RepositoryMemory,
)
from repo_memory.utils.ids import new_id
from repo_memory.utils.time import MS_PER_HOUR, now_ms

logger = get_logger(__name__)

_JSON_COLUMNS = (
    "primary_languages",
    "frameworks",
    "build_tools",
    "testing_frameworks",
    "directory_map",
    "key_files",
    "entry_points",
)


class MemoryStore:
    """Read and write ``RepositoryMemory`` records plus run bookkeeping.

    Besides the memory record itself the store keeps the repository status,
    an ingestion lease that admits one writer per repository, and a job log.
    """

    def __init__(self, database: SQLiteDatabase, clock: Callable[[], int] = now_ms) -> None:
        self.db = database
        self._clock = clock

    # Memory record ----------------------------------------------------

    def get(self, repository_id: str) -> RepositoryMemory | None:
        row = self.db.execute(
            "SELECT * FROM repository_memory WHERE repository_id = ?",
            [repository_id],
        ).fetchone()
        if row is None:
            return None
        memory = _row_to_memory(row)
        memory.patterns = self.get_patterns(repository_id)
        return memory

    def upsert_full_scan(self, memory: RepositoryMemory) -> RepositoryMemory:
        """Replace the record and its patterns; ``last_full_scan_at`` only moves forward."""
        now = self._clock()
        with self.db.transaction() as cur:
            existing = cur.execute(
                "SELECT last_full_scan_at, created_at FROM repository_memory WHERE repository_id = ?",
                [memory.repository_id],
            ).fetchone()
            scanned_at = memory.last_full_scan_at if memory.last_full_scan_at is not None else now
            created_at = now
            if existing is not None:
                created_at = existing["created_at"]
                if existing["last_full_scan_at"] is not None:
                    scanned_at = max(scanned_at, existing["last_full_scan_at"])
            cur.execute("DELETE FROM repository_patterns WHERE repository_id = ?", [memory.repository_id])
            cur.execute(
                """
                INSERT OR REPLACE INTO repository_memory (
                  repository_id, primary_languages, frameworks, build_tools, testing_frameworks,
                  package_manager, directory_map, key_files, entry_points, repo_summary,
                  architecture_summary, tree_hash, last_full_scan_at, created_at, updated_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                [
                    memory.repository_id,
                    _dumps(memory.primary_languages),
                    _dumps(memory.frameworks),
                    _dumps(memory.build_tools),
                    _dumps(memory.testing_frameworks),
                    memory.package_manager,
                    _dumps(memory.directory_map),
                    _dumps(memory.key_files),
                    _dumps(memory.entry_points),
                    memory.repo_summary,
                    memory.architecture_summary,
                    memory.tree_hash,
                    scanned_at,
                    created_at,
                    now,
                ],
            )
            cur.executemany(
                """
                INSERT INTO repository_patterns (
                  id, repository_id, category, name, description, examples_json, confidence, created_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                """,
                [
                    (
                        new_id("pat"),
                        memory.repository_id,
                        pattern.category,
                        pattern.name,
                        pattern.description,
                        _dumps(pattern.examples),
                        pattern.confidence,
                        now,
                    )
                    for pattern in memory.patterns
                ],
            )
        logger.info(
            "Stored memory for %s with %s patterns",
            memory.repository_id,
            len(memory.patterns),
            extra={"ctx_repository_id": memory.repository_id},
        )
        stored = self.get(memory.repository_id)
        assert stored is not None
        return stored

    def patch(self, repository_id: str, fields: Mapping[str, Any]) -> RepositoryMemory | None:
        """Overwrite selected fields of an existing record; returns ``None`` when there is none."""
        unknown = set(fields) - PATCHABLE_FIELDS
        if unknown:
            raise ValueError(f"Fields cannot be patched: {', '.join(sorted(unknown))}")
        if not fields:
            return self.get(repository_id)
        assignments = ", ".join(f"{name} = ?" for name in fields)
        values = [_dumps(value) if name in _JSON_COLUMNS else value for name, value in fields.items()]
        cursor = self.db.execute(
            f"UPDATE repository_memory SET {assignments}, updated_at = ? WHERE repository_id = ?",
            [*values, self._clock(), repository_id],
        )
        self.db.commit()
        if cursor.rowcount == 0:
            return None
        return self.get(repository_id)

    def get_primary_languages(self, repository_id: str) -> list[str]:
        row = self.db.execute(
            "SELECT primary_languages FROM repository_memory WHERE repository_id = ?",
            [repository_id],
        ).fetchone()
        return orjson.loads(row["primary_languages"]) if row else []

    def get_patterns(self, repository_id: str, category: str | None = None) -> list[DetectedPattern]:
        sql = "SELECT * FROM repository_patterns WHERE repository_id = ?"
        params: list[Any] = [repository_id]
        if category:
            sql += " AND category = ?"
            params.append(category)
        sql += " ORDER BY confidence DESC, name"
        return [
            DetectedPattern(
                category=row["category"],
                name=row["name"],
                description=row["description"],
                confidence=row["confidence"],
                examples=orjson.loads(row["examples_json"]),
            )
            for row in self.db.query(sql, params)
        ]

    def is_fresh(self, repository_id: str, max_age_hours: float = 24.0) -> bool:
        row = self.db.execute(
            "SELECT last_full_scan_at FROM repository_memory WHERE repository_id = ?",
            [repository_id],
        ).fetchone()
        if row is None or row["last_full_scan_at"] is None:
            return False
        return self._clock() - row["last_full_scan_at"] < max_age_hours * MS_PER_HOUR

    def delete(self, repository_id: str) -> None:
        with self.db.transaction() as cur:
            cur.execute("DELETE FROM repository_memory WHERE repository_id = ?", [repository_id])
            cur.execute("DELETE FROM repository_status WHERE repository_id = ?", [repository_id])

    # Lease --------------------------------------------------------------

    def acquire_lease(self, repository_id: str, holder: str, ttl_s: int = 3600) -> bool:
        """Take the writer lease unless a different holder has an unexpired one."""
        now = self._clock()
        with self.db.transaction() as cur:
            row = cur.execute(
                "SELECT holder, expires_at FROM ingestion_leases WHERE repository_id = ?",
                [repository_id],
            ).fetchone()
            if row is not None and row["holder"] != holder and row["expires_at"] > now:
                logger.info("Lease for %s held by %s", repository_id, row["holder"])
                return False
            cur.execute(
                "INSERT OR REPLACE INTO ingestion_leases (repository_id, state, holder, expires_at) VALUES (?, ?, ?, ?)",
                [repository_id, "running", holder, now + ttl_s * 1000],
            )
        return True

    def release_lease(self, repository_id: str, holder: str) -> None:
        self.db.execute(
            "DELETE FROM ingestion_leases WHERE repository_id = ? AND holder = ?",
            [repository_id, holder],
        )
        self.db.commit()

    def get_lease(self, repository_id: str) -> dict[str, Any] | None:
        row = self.db.execute(
            "SELECT state, holder, expires_at FROM ingestion_leases WHERE repository_id = ?",
            [repository_id],
        ).fetchone()
        return dict(row) if row else None

    # Status -------------------------------------------------------------

    def set_status(self, repository_id: str, status: str, detail: str | None = None) -> None:
        if status not in REPOSITORY_STATUSES:
            raise ValueError(f"Unknown repository status: {status}")
        self.db.execute(
            "INSERT OR REPLACE INTO repository_status (repository_id, status, detail, updated_at) VALUES (?, ?, ?, ?)",
            [repository_id, status, detail, self._clock()],
        )
        self.db.commit()

    def get_status(self, repository_id: str) -> dict[str, Any]:
        row = self.db.execute(
            "SELECT status, detail, updated_at FROM repository_status WHERE repository_id = ?",
            [repository_id],
        ).fetchone()
        if row is None:
            return {"repository_id": repository_id, "status": "pending", "detail": None, "updated_at": None}
        return {"repository_id": repository_id, **dict(row)}

    # Job log ------------------------------------------------------------

    def start_job(self, repository_id: str, mode: str) -> str:
        job_id = new_id("job")
        self.db.execute(
            "INSERT INTO ingest_jobs (id, repository_id, mode, started_at, status) VALUES (?, ?, ?, ?, ?)",
            [job_id, repository_id, mode, self._clock(), "running"],
        )
        self.db.commit()
        return job_id

    def finish_job(
        self,
        job_id: str,
        status: str,
        stats: Mapping[str, Any] | None = None,
        detail: str | None = None,
    ) -> None:
        payload = {"detail": detail, "stats": dict(stats or {})}
        self.db.execute(
            "UPDATE ingest_jobs SET finished_at = ?, status = ?, stats_json = ? WHERE id = ?",
            [self._clock(), status, _dumps(payload), job_id],
        )
        self.db.commit()

    def list_jobs(self, repository_id: str, limit: int = 20) -> list[dict[str, Any]]:
        rows = self.db.query(
            "SELECT * FROM ingest_jobs WHERE repository_id = ? ORDER BY started_at DESC, rowid DESC LIMIT ?",
            [repository_id, limit],
        )
        jobs = []
        for row in rows:
            job = dict(row)
            job["stats"] = orjson.loads(job.pop("stats_json")) if row["stats_json"] else None
            jobs.append(job)
        return jobs


def _dumps(value: Any) -> str:
    return orjson.dumps(value).decode("utf-8")


def _row_to_memory(row: sqlite3.Row) -> RepositoryMemory:
    return RepositoryMemory(
        repository_id=row["repository_id"],
        primary_languages=orjson.loads(row["primary_languages"]),
        frameworks=orjson.loads(row["frameworks"]),
        build_tools=orjson.loads(row["build_tools"]),
        testing_frameworks=orjson.loads(row["testing_frameworks"]),
        package_manager=row["package_manager"],
        directory_map=orjson.loads(row["directory_map"]),
        key_files=orjson.loads(row["key_files"]),
        entry_points=orjson.loads(row["entry_points"]),
        repo_summary=row["repo_summary"] or "",
        architecture_summary=row["architecture_summary"] or "",
        tree_hash=row["tree_hash"],
        last_full_scan_at=row["last_full_scan_at"],
    )


__all__ = ["MemoryStore"]
