"""Suggestion history used for novelty checks and prompt context."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Literal, Protocol, Sequence

import orjson

from repo_memory.core.logging import get_logger
from repo_memory.db.sqlite import SQLiteDatabase
from repo_memory.utils.ids import new_id
from repo_memory.utils.time import now_ms

logger = get_logger(__name__)

Outcome = Literal["pending", "accepted", "partially_accepted", "ignored", "rejected", "outdated"]
OUTCOMES: tuple[str, ...] = ("pending", "accepted", "partially_accepted", "ignored", "rejected", "outdated")

MS_PER_DAY = 24 * 60 * 60 * 1000


@dataclass(slots=True)
class PriorSuggestion:
    id: str
    type: str
    title: str
    affected_files: list[str] = field(default_factory=list)
    outcome: Outcome = "pending"
    created_at: int | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type,
            "title": self.title,
            "affected_files": list(self.affected_files),
            "outcome": self.outcome,
            "created_at": self.created_at,
        }


class SuggestionHistory(Protocol):
    def find_prior_suggestions(
        self,
        repository_id: str,
        suggestion_type: str,
        affected_files: Sequence[str],
        limit: int = 5,
    ) -> list[PriorSuggestion]: ...


class SuggestionStore:
    """SQLite-backed suggestion log with outcome tracking."""

    def __init__(self, database: SQLiteDatabase, clock: Callable[[], int] = now_ms) -> None:
        self.db = database
        self._clock = clock

    def record_suggestion(
        self,
        repository_id: str,
        suggestion_type: str,
        title: str,
        affected_files: Sequence[str],
    ) -> PriorSuggestion:
        suggestion = PriorSuggestion(
            id=new_id("sug"),
            type=suggestion_type,
            title=title,
            affected_files=list(dict.fromkeys(affected_files)),
            outcome="pending",
            created_at=self._clock(),
        )
        self.db.execute(
            """
            INSERT INTO suggestions (id, repository_id, type, title, affected_files_json, outcome, created_at)
            VALUES (?, ?, ?, ?, ?, ?, ?)
            """,
            [
                suggestion.id,
                repository_id,
                suggestion.type,
                suggestion.title,
                orjson.dumps(suggestion.affected_files).decode("utf-8"),
                suggestion.outcome,
                suggestion.created_at,
            ],
        )
        self.db.commit()
        return suggestion

    def record_outcome(self, suggestion_id: str, outcome: str, user_feedback: str | None = None) -> None:
        if outcome not in OUTCOMES or outcome == "pending":
            raise ValueError(f"Invalid suggestion outcome: {outcome}")
        cursor = self.db.execute(
            "UPDATE suggestions SET outcome = ?, user_feedback = ?, resolved_at = ? WHERE id = ?",
            [outcome, user_feedback, self._clock(), suggestion_id],
        )
        self.db.commit()
        if cursor.rowcount == 0:
            raise LookupError(f"Unknown suggestion: {suggestion_id}")

    def get(self, suggestion_id: str) -> PriorSuggestion | None:
        row = self.db.execute("SELECT * FROM suggestions WHERE id = ?", [suggestion_id]).fetchone()
        return _row_to_suggestion(row) if row else None

    def find_prior_suggestions(
        self,
        repository_id: str,
        suggestion_type: str,
        affected_files: Sequence[str],
        limit: int = 5,
    ) -> list[PriorSuggestion]:
        """Most recent non-outdated suggestions of a type sharing at least one affected file."""
        wanted = set(affected_files)
        if not wanted:
            return []
        rows = self.db.query(
            """
            SELECT * FROM suggestions
            WHERE repository_id = ? AND type = ? AND outcome != 'outdated'
            ORDER BY created_at DESC, rowid DESC
            """,
            [repository_id, suggestion_type],
        )
        matches: list[PriorSuggestion] = []
        for row in rows:
            suggestion = _row_to_suggestion(row)
            if wanted.intersection(suggestion.affected_files):
                matches.append(suggestion)
                if len(matches) >= limit:
                    break
        return matches

    def suggestions_for_files(
        self,
        repository_id: str,
        affected_files: Sequence[str],
        limit: int = 20,
    ) -> list[PriorSuggestion]:
        """Recent suggestions of any type and outcome touching ``affected_files``."""
        wanted = set(affected_files)
        if not wanted:
            return []
        rows = self.db.query(
            "SELECT * FROM suggestions WHERE repository_id = ? ORDER BY created_at DESC, rowid DESC",
            [repository_id],
        )
        matches = [s for s in map(_row_to_suggestion, rows) if wanted.intersection(s.affected_files)]
        return matches[:limit]

    def mark_outdated(self, repository_id: str, changed_files: Sequence[str], older_than_days: int = 7) -> int:
        """Retire pending suggestions on changed files once they are older than ``older_than_days``."""
        changed = set(changed_files)
        if not changed:
            return 0
        now = self._clock()
        cutoff = now - older_than_days * MS_PER_DAY
        rows = self.db.query(
            """
            SELECT id, affected_files_json FROM suggestions
            WHERE repository_id = ? AND outcome = 'pending' AND created_at < ?
            """,
            [repository_id, cutoff],
        )
        stale = [row["id"] for row in rows if changed.intersection(orjson.loads(row["affected_files_json"]))]
        if stale:
            self.db.executemany(
                "UPDATE suggestions SET outcome = 'outdated', resolved_at = ? WHERE id = ?",
                [(now, suggestion_id) for suggestion_id in stale],
            )
            self.db.commit()
            logger.info("Marked %s suggestions outdated for %s", len(stale), repository_id)
        return len(stale)

    def suggestion_stats(self, repository_id: str) -> dict[str, Any]:
        rows = self.db.query("SELECT type, outcome FROM suggestions WHERE repository_id = ?", [repository_id])
        by_outcome: dict[str, int] = {}
        by_type: dict[str, int] = {}
        for row in rows:
            by_outcome[row["outcome"]] = by_outcome.get(row["outcome"], 0) + 1
            by_type[row["type"]] = by_type.get(row["type"], 0) + 1
        accepted = by_outcome.get("accepted", 0) + by_outcome.get("partially_accepted", 0)
        resolved = sum(count for outcome, count in by_outcome.items() if outcome not in ("pending", "outdated"))
        return {
            "total": len(rows),
            "by_outcome": by_outcome,
            "by_type": by_type,
            "acceptance_rate": accepted / resolved if resolved else 0.0,
        }


def _row_to_suggestion(row: Any) -> PriorSuggestion:
    return PriorSuggestion(
        id=row["id"],
        type=row["type"],
        title=row["title"],
        affected_files=orjson.loads(row["affected_files_json"]),
        outcome=row["outcome"],
        created_at=row["created_at"],
    )


__all__ = ["Outcome", "OUTCOMES", "PriorSuggestion", "SuggestionHistory", "SuggestionStore"]
