"""Tests for suggestion history and novelty detection."""

import pytest

from repo_memory.retrieval import CandidateSuggestion, NoveltyDetector, SuggestionStore
from repo_memory.retrieval.novelty import normalize_title, token_overlap
from repo_memory.retrieval.suggestions import MS_PER_DAY


def _title(shared: int, total: int, prefix: str) -> str:
    words = [f"common{i}" for i in range(shared)] + [f"{prefix}{i}" for i in range(total - shared)]
    return " ".join(words)


def test_token_overlap_uses_larger_set() -> None:
    assert token_overlap("a b c d", "a b") == 0.5
    assert token_overlap("", "") == 0.0
    assert normalize_title("  Add Retry Logic ") == "add retry logic"


def test_no_history_is_novel(suggestion_store: SuggestionStore) -> None:
    detector = NoveltyDetector(suggestion_store)
    result = detector.check_novelty("repo-1", CandidateSuggestion("refactor", "Split module", ["src/a.ts"]))
    assert result.is_novel
    assert result.conflict is None


def test_exact_title_match_is_duplicate(suggestion_store: SuggestionStore) -> None:
    prior = suggestion_store.record_suggestion("repo-1", "refactor", "Extract Helper", ["src/a.ts"])
    detector = NoveltyDetector(suggestion_store)
    result = detector.check_novelty("repo-1", CandidateSuggestion("refactor", "  extract helper ", ["src/a.ts"]))
    assert not result.is_novel
    assert result.conflict.id == prior.id
    assert result.overlap == 1.0


def test_overlap_at_threshold_is_novel(suggestion_store: SuggestionStore) -> None:
    suggestion_store.record_suggestion("repo-1", "refactor", _title(7, 10, "old"), ["src/a.ts"])
    detector = NoveltyDetector(suggestion_store)
    result = detector.check_novelty("repo-1", CandidateSuggestion("refactor", _title(7, 10, "new"), ["src/a.ts"]))
    assert result.is_novel


def test_overlap_above_threshold_is_duplicate(suggestion_store: SuggestionStore) -> None:
    suggestion_store.record_suggestion("repo-1", "refactor", _title(71, 100, "old"), ["src/a.ts"])
    detector = NoveltyDetector(suggestion_store)
    result = detector.check_novelty("repo-1", CandidateSuggestion("refactor", _title(71, 100, "new"), ["src/a.ts"]))
    assert not result.is_novel
    assert result.overlap == pytest.approx(0.71)


def test_only_same_type_and_overlapping_files_compared(suggestion_store: SuggestionStore) -> None:
    suggestion_store.record_suggestion("repo-1", "security", "Extract helper", ["src/a.ts"])
    suggestion_store.record_suggestion("repo-1", "refactor", "Extract helper", ["src/other.ts"])
    suggestion_store.record_suggestion("repo-2", "refactor", "Extract helper", ["src/a.ts"])
    detector = NoveltyDetector(suggestion_store)
    result = detector.check_novelty("repo-1", CandidateSuggestion("refactor", "Extract helper", ["src/a.ts"]))
    assert result.is_novel


def test_outdated_suggestions_are_ignored(suggestion_store: SuggestionStore) -> None:
    prior = suggestion_store.record_suggestion("repo-1", "refactor", "Extract helper", ["src/a.ts"])
    suggestion_store.record_outcome(prior.id, "outdated")
    detector = NoveltyDetector(suggestion_store)
    result = detector.check_novelty("repo-1", CandidateSuggestion("refactor", "Extract helper", ["src/a.ts"]))
    assert result.is_novel


def test_only_five_most_recent_priors_considered(suggestion_store: SuggestionStore, clock) -> None:
    suggestion_store.record_suggestion("repo-1", "refactor", "Extract helper", ["src/a.ts"])
    for index in range(5):
        clock.advance(1000)
        suggestion_store.record_suggestion("repo-1", "refactor", f"Unrelated idea {index}", ["src/a.ts"])
    detector = NoveltyDetector(suggestion_store)
    result = detector.check_novelty("repo-1", CandidateSuggestion("refactor", "Extract helper", ["src/a.ts"]))
    assert result.is_novel


def test_record_outcome_validation(suggestion_store: SuggestionStore) -> None:
    prior = suggestion_store.record_suggestion("repo-1", "refactor", "Extract helper", ["src/a.ts"])
    with pytest.raises(ValueError):
        suggestion_store.record_outcome(prior.id, "pending")
    with pytest.raises(ValueError):
        suggestion_store.record_outcome(prior.id, "loved")
    with pytest.raises(LookupError):
        suggestion_store.record_outcome("sug_missing", "accepted")
    suggestion_store.record_outcome(prior.id, "accepted", "nice")
    assert suggestion_store.get(prior.id).outcome == "accepted"


def test_mark_outdated_only_touches_old_pending(suggestion_store: SuggestionStore, clock) -> None:
    old = suggestion_store.record_suggestion("repo-1", "refactor", "Old idea", ["src/a.ts"])
    accepted = suggestion_store.record_suggestion("repo-1", "refactor", "Accepted idea", ["src/a.ts"])
    suggestion_store.record_outcome(accepted.id, "accepted")
    clock.advance(8 * MS_PER_DAY)
    fresh = suggestion_store.record_suggestion("repo-1", "refactor", "Fresh idea", ["src/a.ts"])
    other = suggestion_store.record_suggestion("repo-1", "refactor", "Other file", ["src/b.ts"])

    assert suggestion_store.mark_outdated("repo-1", ["src/a.ts"]) == 1
    assert suggestion_store.get(old.id).outcome == "outdated"
    assert suggestion_store.get(accepted.id).outcome == "accepted"
    assert suggestion_store.get(fresh.id).outcome == "pending"
    assert suggestion_store.get(other.id).outcome == "pending"


def test_suggestion_stats(suggestion_store: SuggestionStore) -> None:
    first = suggestion_store.record_suggestion("repo-1", "refactor", "One", ["a"])
    second = suggestion_store.record_suggestion("repo-1", "security", "Two", ["b"])
    suggestion_store.record_suggestion("repo-1", "refactor", "Three", ["c"])
    suggestion_store.record_outcome(first.id, "accepted")
    suggestion_store.record_outcome(second.id, "rejected")
    stats = suggestion_store.suggestion_stats("repo-1")
    assert stats["total"] == 3
    assert stats["by_type"] == {"refactor": 2, "security": 1}
    assert stats["by_outcome"] == {"accepted": 1, "rejected": 1, "pending": 1}
    assert stats["acceptance_rate"] == 0.5
