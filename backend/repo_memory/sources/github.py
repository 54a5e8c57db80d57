"""Source tree backed by the GitHub REST API."""

from __future__ import annotations

import base64
from urllib.parse import quote
from typing import Any, Callable

import requests

from repo_memory.core.logging import get_logger
from repo_memory.ingest.types import FileContent, TreeItem
from repo_memory.utils.cache import TTLCache

logger = get_logger(__name__)

TokenRefresher = Callable[[], tuple[str, int]]


class GitHubSourceTree:
    """Read a repository through ``api.github.com``.

    Installation tokens come from ``refresh_token`` and are kept in the
    injected ``token_cache`` under ``installation_id`` until shortly before
    they expire. A static ``token`` may be passed instead for personal access
    tokens.
    """

    def __init__(
        self,
        owner: str,
        repo: str,
        *,
        api_url: str = "https://api.github.com",
        timeout_s: float = 30.0,
        token: str | None = None,
        installation_id: int | None = None,
        refresh_token: TokenRefresher | None = None,
        token_cache: TTLCache[str] | None = None,
        session: requests.Session | None = None,
        default_branch: str | None = None,
    ) -> None:
        if installation_id is not None and (refresh_token is None or token_cache is None):
            raise ValueError("installation_id requires refresh_token and token_cache")
        self.owner = owner
        self.repo = repo
        self.api_url = api_url.rstrip("/")
        self.timeout_s = timeout_s
        self._token = token
        self._installation_id = installation_id
        self._refresh_token = refresh_token
        self._token_cache = token_cache
        self._session = session or requests.Session()
        self._default_branch = default_branch

    @property
    def default_branch(self) -> str:
        if self._default_branch is None:
            info = self._get_json(f"/repos/{self.owner}/{self.repo}")
            self._default_branch = str(info.get("default_branch") or "main")
        return self._default_branch

    def list_tree(self, ref: str | None = None) -> list[TreeItem]:
        revision = ref or self.default_branch
        payload = self._get_json(
            f"/repos/{self.owner}/{self.repo}/git/trees/{revision}",
            params={"recursive": "1"},
        )
        if payload.get("truncated"):
            logger.warning("Tree listing for %s/%s@%s was truncated by the API", self.owner, self.repo, revision)
        items = []
        for entry in payload.get("tree", []):
            kind = entry.get("type")
            if kind not in ("blob", "tree"):
                continue
            items.append(
                TreeItem(
                    path=entry["path"],
                    kind=kind,
                    content_hash=entry.get("sha", ""),
                    size=entry.get("size"),
                )
            )
        return items

    def get_file_content(self, path: str, ref: str | None = None) -> FileContent:
        params = {"ref": ref} if ref else None
        payload = self._get_json(f"/repos/{self.owner}/{self.repo}/contents/{quote(path)}", params=params)
        if isinstance(payload, list) or payload.get("type") != "file":
            raise ValueError(f"{path} is not a file")
        if payload.get("encoding") != "base64":
            raise ValueError(f"{path} has unsupported encoding {payload.get('encoding')!r}")
        data = base64.b64decode(payload.get("content", ""))
        try:
            text = data.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise ValueError(f"{path} is not valid UTF-8 text") from exc
        return FileContent(content=text, size=int(payload.get("size", len(data))))

    def get_language_stats(self) -> dict[str, int]:
        payload = self._get_json(f"/repos/{self.owner}/{self.repo}/languages")
        stats = {name.lower(): int(count) for name, count in payload.items()}
        return dict(sorted(stats.items(), key=lambda pair: (-pair[1], pair[0])))

    def _auth_token(self) -> str | None:
        if self._installation_id is not None and self._token_cache is not None and self._refresh_token is not None:
            return self._token_cache.get_or_refresh(self._installation_id, self._refresh_token)
        return self._token

    def _get_json(self, path: str, params: dict[str, str] | None = None) -> Any:
        headers = {"Accept": "application/vnd.github+json", "X-GitHub-Api-Version": "2022-11-28"}
        token = self._auth_token()
        if token:
            headers["Authorization"] = f"Bearer {token}"
        resp = self._session.get(f"{self.api_url}{path}", headers=headers, params=params, timeout=self.timeout_s)
        if resp.status_code == 401 and self._installation_id is not None and self._token_cache is not None:
            self._token_cache.invalidate(self._installation_id)
        resp.raise_for_status()
        return resp.json()


__all__ = ["GitHubSourceTree"]
