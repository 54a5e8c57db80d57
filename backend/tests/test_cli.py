"""Tests for the repomem CLI."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import pytest
from typer.testing import CliRunner

from repo_memory.cli import main as cli

runner = CliRunner()


class FakeResponse:
    def __init__(self, payload: Any, status_code: int = 200) -> None:
        self._payload = payload
        self.status_code = status_code
        self.text = json.dumps(payload)

    @property
    def ok(self) -> bool:
        return self.status_code < 400

    def json(self) -> Any:
        return self._payload


class FakeTransport:
    def __init__(self) -> None:
        self.calls: list[dict[str, Any]] = []
        self.responses: dict[str, FakeResponse] = {}

    def request(self, method: str, url: str, timeout=None, **kwargs) -> FakeResponse:
        self.calls.append({"method": method, "url": url, **kwargs})
        return self.responses.get(url, FakeResponse({"prompt": "## Repository Context", "ok": True}))


@pytest.fixture
def transport(monkeypatch: pytest.MonkeyPatch) -> FakeTransport:
    fake = FakeTransport()
    monkeypatch.setattr(cli.requests, "request", fake.request)
    monkeypatch.delenv("REPOMEM_HOST", raising=False)
    return fake


def test_ingest_local_checkout(transport, tmp_path: Path) -> None:
    result = runner.invoke(cli.app, ["ingest", "web", "--path", str(tmp_path), "--force"])
    assert result.exit_code == 0, result.output
    assert transport.calls[0]["method"] == "POST"
    assert transport.calls[0]["url"] == "http://127.0.0.1:5180/repos/web/ingest"
    assert transport.calls[0]["json"] == {"ref": None, "path": str(tmp_path.resolve()), "force": True}


def test_ingest_github_with_host_override(transport) -> None:
    result = runner.invoke(
        cli.app,
        ["ingest", "web", "--github", "acme/web", "--ref", "main", "--host", "http://memory:9000/"],
    )
    assert result.exit_code == 0, result.output
    assert transport.calls[0]["url"] == "http://memory:9000/repos/web/ingest"
    assert transport.calls[0]["json"]["github"] == {"owner": "acme", "repo": "web"}


def test_source_selection_is_validated(transport, tmp_path: Path) -> None:
    both = runner.invoke(cli.app, ["ingest", "web", "--path", str(tmp_path), "--github", "acme/web"])
    assert both.exit_code == 2
    malformed = runner.invoke(cli.app, ["ingest", "web", "--github", "acme"])
    assert malformed.exit_code == 2
    assert transport.calls == []


def test_changes_builds_file_list(transport, tmp_path: Path) -> None:
    result = runner.invoke(
        cli.app,
        ["changes", "web", "--path", str(tmp_path), "--added", "a.ts", "--modified", "b.ts", "--removed", "c.ts"],
    )
    assert result.exit_code == 0, result.output
    assert transport.calls[0]["json"]["changed_files"] == [
        {"path": "a.ts", "status": "added"},
        {"path": "b.ts", "status": "modified"},
        {"path": "c.ts", "status": "removed"},
    ]


def test_context_prompt_only(transport) -> None:
    result = runner.invoke(cli.app, ["context", "web", "-q", "auth flow", "-f", "src/auth.ts", "--prompt"])
    assert result.exit_code == 0, result.output
    assert result.output.strip() == "## Repository Context"
    assert transport.calls[0]["json"] == {"query": "auth flow", "affected_files": ["src/auth.ts"]}


def test_failed_request_exits_nonzero(transport) -> None:
    transport.responses["http://127.0.0.1:5180/repos/web/memory"] = FakeResponse(
        {"detail": "Repository memory not found"}, status_code=404
    )
    result = runner.invoke(cli.app, ["memory", "web"])
    assert result.exit_code == 1


def test_suggestion_commands(transport) -> None:
    check = runner.invoke(cli.app, ["suggestions", "check", "web", "Extract helper", "--type", "refactor", "-f", "a.ts"])
    assert check.exit_code == 0, check.output
    assert transport.calls[0]["url"].endswith("/repos/web/novelty")
    assert transport.calls[0]["json"] == {"type": "refactor", "title": "Extract helper", "affected_files": ["a.ts"]}

    outcome = runner.invoke(cli.app, ["suggestions", "outcome", "sug_1", "accepted", "--feedback", "thanks"])
    assert outcome.exit_code == 0, outcome.output
    assert transport.calls[1]["url"].endswith("/suggestions/sug_1/outcome")
    assert transport.calls[1]["json"] == {"outcome": "accepted", "user_feedback": "thanks"}
