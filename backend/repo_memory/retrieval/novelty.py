"""Duplicate suppression for candidate suggestions."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Sequence

from repo_memory.core.logging import get_logger
from repo_memory.core.metrics import NOVELTY_DECISIONS
from repo_memory.retrieval.suggestions import PriorSuggestion, SuggestionHistory

logger = get_logger(__name__)

DEFAULT_THRESHOLD = 0.70
MAX_CANDIDATES = 5


@dataclass(slots=True)
class CandidateSuggestion:
    type: str
    title: str
    affected_files: list[str] = field(default_factory=list)


@dataclass(slots=True)
class NoveltyResult:
    is_novel: bool
    conflict: PriorSuggestion | None = None
    overlap: float | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "is_novel": self.is_novel,
            "conflict": self.conflict.to_dict() if self.conflict else None,
            "overlap": self.overlap,
        }


def normalize_title(title: str) -> str:
    return title.strip().casefold()


def token_overlap(a: str, b: str) -> float:
    """``|A & B| / max(|A|, |B|)`` over whitespace tokens of two normalized titles."""
    left = set(a.split())
    right = set(b.split())
    denominator = max(len(left), len(right))
    if denominator == 0:
        return 0.0
    return len(left & right) / denominator


class NoveltyDetector:
    """Decide whether a candidate suggestion repeats a recent one.

    Only prior suggestions of the same type that share an affected file and
    are not outdated are compared. A trimmed case-insensitive title match is a
    duplicate; otherwise titles whose token overlap is strictly above
    ``threshold`` are duplicates.
    """

    def __init__(self, history: SuggestionHistory, threshold: float = DEFAULT_THRESHOLD) -> None:
        self.history = history
        self.threshold = threshold

    def check_novelty(self, repository_id: str, candidate: CandidateSuggestion) -> NoveltyResult:
        priors = self.history.find_prior_suggestions(
            repository_id,
            candidate.type,
            candidate.affected_files,
            limit=MAX_CANDIDATES,
        )
        result = self._compare(candidate, priors)
        NOVELTY_DECISIONS.labels(novel=str(result.is_novel).lower()).inc()
        if not result.is_novel and result.conflict is not None:
            logger.debug(
                "Suggestion %r duplicates %s",
                candidate.title,
                result.conflict.id,
                extra={"ctx_repository_id": repository_id},
            )
        return result

    def _compare(self, candidate: CandidateSuggestion, priors: Sequence[PriorSuggestion]) -> NoveltyResult:
        title = normalize_title(candidate.title)
        for prior in priors:
            existing = normalize_title(prior.title)
            if title == existing:
                return NoveltyResult(is_novel=False, conflict=prior, overlap=1.0)
            overlap = token_overlap(title, existing)
            if overlap > self.threshold:
                return NoveltyResult(is_novel=False, conflict=prior, overlap=overlap)
        return NoveltyResult(is_novel=True)


__all__ = ["CandidateSuggestion", "NoveltyResult", "NoveltyDetector", "normalize_title", "token_overlap"]
