"""CLI entrypoint for repository memory."""

from __future__ import annotations

import json
import os
import time
from pathlib import Path
from typing import List, Optional

import requests
import typer

from repo_memory.ingest.types import ChangedFile
from repo_memory.ingest.watcher import Watcher
from repo_memory.sources.local import LocalSourceTree

app = typer.Typer(name="repomem", help="Repository memory command-line interface")
suggestions_app = typer.Typer(name="suggestions")
app.add_typer(suggestions_app, name="suggestions")

DEFAULT_HOST = "http://127.0.0.1:5180"
REQUEST_TIMEOUT_S = 600


def _resolve_host(override: Optional[str]) -> str:
    if override:
        return override.rstrip("/")
    env_host = os.environ.get("REPOMEM_HOST")
    if env_host:
        return env_host.rstrip("/")
    return DEFAULT_HOST


def _request(method: str, path: str, host: Optional[str] = None, **kwargs) -> requests.Response:
    base = _resolve_host(host)
    url = f"{base}{path}"
    resp = requests.request(method, url, timeout=REQUEST_TIMEOUT_S, **kwargs)
    if not resp.ok:
        try:
            detail = resp.json()
        except ValueError:
            detail = resp.text
        typer.echo(f"Request failed ({resp.status_code}): {detail}", err=True)
        raise typer.Exit(code=1)
    return resp


def _source_body(path: Optional[Path], github: Optional[str], ref: Optional[str]) -> dict[str, object]:
    if (path is None) == (github is None):
        typer.echo("Provide exactly one of --path or --github OWNER/REPO", err=True)
        raise typer.Exit(code=2)
    body: dict[str, object] = {"ref": ref}
    if path is not None:
        body["path"] = str(path.expanduser().resolve())
    else:
        owner, _, repo = (github or "").partition("/")
        if not owner or not repo:
            typer.echo("--github expects OWNER/REPO", err=True)
            raise typer.Exit(code=2)
        body["github"] = {"owner": owner, "repo": repo}
    return body


def _echo(resp: requests.Response) -> None:
    typer.echo(json.dumps(resp.json(), indent=2))


@app.command()
def ingest(
    repository_id: str = typer.Argument(..., help="Repository identifier"),
    path: Optional[Path] = typer.Option(None, "--path", help="Local checkout to ingest"),
    github: Optional[str] = typer.Option(None, "--github", help="GitHub repository as OWNER/REPO"),
    ref: Optional[str] = typer.Option(None, "--ref", help="Branch, tag, or commit"),
    force: bool = typer.Option(False, "--force", help="Ignore the freshness guard"),
    host: Optional[str] = typer.Option(None, "--host", help="Override backend host"),
) -> None:
    """Build or rebuild the memory of a repository."""
    body = _source_body(path, github, ref)
    body["force"] = force
    _echo(_request("POST", f"/repos/{repository_id}/ingest", host=host, json=body))


@app.command()
def changes(
    repository_id: str = typer.Argument(..., help="Repository identifier"),
    added: List[str] = typer.Option([], "--added", help="Added file path (repeatable)"),
    modified: List[str] = typer.Option([], "--modified", help="Modified file path (repeatable)"),
    removed: List[str] = typer.Option([], "--removed", help="Removed file path (repeatable)"),
    path: Optional[Path] = typer.Option(None, "--path", help="Local checkout"),
    github: Optional[str] = typer.Option(None, "--github", help="GitHub repository as OWNER/REPO"),
    ref: Optional[str] = typer.Option(None, "--ref", help="Branch, tag, or commit"),
    host: Optional[str] = typer.Option(None, "--host", help="Override backend host"),
) -> None:
    """Apply added, modified, and removed files incrementally."""
    body = _source_body(path, github, ref)
    body["changed_files"] = (
        [{"path": item, "status": "added"} for item in added]
        + [{"path": item, "status": "modified"} for item in modified]
        + [{"path": item, "status": "removed"} for item in removed]
    )
    _echo(_request("POST", f"/repos/{repository_id}/changes", host=host, json=body))


@app.command()
def context(
    repository_id: str = typer.Argument(..., help="Repository identifier"),
    query: Optional[str] = typer.Option(None, "--query", "-q", help="Free-text query"),
    files: List[str] = typer.Option([], "--file", "-f", help="Affected file path (repeatable)"),
    limit: Optional[int] = typer.Option(None, "--limit", help="Maximum relevant chunks"),
    prompt: bool = typer.Option(False, "--prompt", help="Print only the rendered prompt"),
    host: Optional[str] = typer.Option(None, "--host", help="Override backend host"),
) -> None:
    """Retrieve context for a query and/or a set of files."""
    payload: dict[str, object] = {"query": query, "affected_files": files}
    if limit is not None:
        payload["limit"] = limit
    resp = _request("POST", f"/repos/{repository_id}/context", host=host, json=payload)
    if prompt:
        typer.echo(resp.json()["prompt"])
    else:
        _echo(resp)


@app.command()
def memory(
    repository_id: str = typer.Argument(..., help="Repository identifier"),
    host: Optional[str] = typer.Option(None, "--host", help="Override backend host"),
) -> None:
    """Show the stored repository memory."""
    _echo(_request("GET", f"/repos/{repository_id}/memory", host=host))


@app.command()
def status(
    repository_id: str = typer.Argument(..., help="Repository identifier"),
    host: Optional[str] = typer.Option(None, "--host", help="Override backend host"),
) -> None:
    """Show ingestion status and recent jobs."""
    _echo(_request("GET", f"/repos/{repository_id}/status", host=host))


@app.command()
def watch(
    repository_id: str = typer.Argument(..., help="Repository identifier"),
    path: Path = typer.Option(Path("."), "--path", help="Local checkout to watch"),
    host: Optional[str] = typer.Option(None, "--host", help="Override backend host"),
) -> None:
    """Push every edit under a checkout to the backend until interrupted."""
    source = LocalSourceTree(path)

    def forward(repo_id: str, change: ChangedFile) -> None:
        body = {"path": str(source.root), "changed_files": [{"path": change.path, "status": change.status}]}
        _echo(_request("POST", f"/repos/{repo_id}/changes", host=host, json=body))

    watcher = Watcher()
    watcher.add_repository(repository_id, source, forward)
    watcher.start()
    typer.echo(f"Watching {source.root} (Ctrl+C to stop)")
    try:
        while True:
            time.sleep(1)
    except KeyboardInterrupt:
        typer.echo("Stopping watcher")
    finally:
        watcher.close()


@suggestions_app.command("check")
def check_suggestion(
    repository_id: str = typer.Argument(..., help="Repository identifier"),
    title: str = typer.Argument(..., help="Suggestion title"),
    suggestion_type: str = typer.Option(..., "--type", help="Suggestion type"),
    files: List[str] = typer.Option([], "--file", "-f", help="Affected file path (repeatable)"),
    host: Optional[str] = typer.Option(None, "--host", help="Override backend host"),
) -> None:
    """Check whether a suggestion repeats a recent one."""
    payload = {"type": suggestion_type, "title": title, "affected_files": files}
    _echo(_request("POST", f"/repos/{repository_id}/novelty", host=host, json=payload))


@suggestions_app.command("record")
def record_suggestion(
    repository_id: str = typer.Argument(..., help="Repository identifier"),
    title: str = typer.Argument(..., help="Suggestion title"),
    suggestion_type: str = typer.Option(..., "--type", help="Suggestion type"),
    files: List[str] = typer.Option([], "--file", "-f", help="Affected file path (repeatable)"),
    host: Optional[str] = typer.Option(None, "--host", help="Override backend host"),
) -> None:
    """Record a suggestion that was shown."""
    payload = {"type": suggestion_type, "title": title, "affected_files": files}
    _echo(_request("POST", f"/repos/{repository_id}/suggestions", host=host, json=payload))


@suggestions_app.command("outcome")
def record_outcome(
    suggestion_id: str = typer.Argument(..., help="Suggestion identifier"),
    outcome: str = typer.Argument(..., help="accepted, partially_accepted, ignored, rejected, or outdated"),
    feedback: Optional[str] = typer.Option(None, "--feedback", help="Free-text feedback"),
    host: Optional[str] = typer.Option(None, "--host", help="Override backend host"),
) -> None:
    """Record how a suggestion was received."""
    payload = {"outcome": outcome, "user_feedback": feedback}
    _echo(_request("POST", f"/suggestions/{suggestion_id}/outcome", host=host, json=payload))


if __name__ == "__main__":
    app()
