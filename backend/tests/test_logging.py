"""Tests for structured log output."""

from __future__ import annotations

import logging

import orjson

from repo_memory.core.logging import JsonFormatter, configure_logging


def _record(**extra) -> logging.LogRecord:
    record = logging.LogRecord("repo_memory.ingest", logging.INFO, __file__, 1, "batch %d done", (3,), None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_context_extras_are_grouped() -> None:
    payload = orjson.loads(JsonFormatter().format(_record(ctx_repo_id="web", ctx_phase="embedding", other=1)))
    assert payload["message"] == "batch 3 done"
    assert payload["level"] == "INFO"
    assert payload["logger"] == "repo_memory.ingest"
    assert payload["context"] == {"repo_id": "web", "phase": "embedding"}
    assert "other" not in payload


def test_records_without_context_omit_the_key() -> None:
    payload = orjson.loads(JsonFormatter().format(_record()))
    assert "context" not in payload


def test_configure_logging_quiets_noisy_libraries() -> None:
    root = logging.getLogger()
    saved_handlers, saved_level = root.handlers[:], root.level
    try:
        configure_logging("DEBUG", use_json=False)
        assert len(root.handlers) == 1
        assert not isinstance(root.handlers[0].formatter, JsonFormatter)
        assert logging.getLogger("LiteLLM").level == logging.WARNING
    finally:
        root.handlers = saved_handlers
        root.setLevel(saved_level)
