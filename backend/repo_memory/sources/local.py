"""Source tree over a directory checkout."""

from __future__ import annotations

import os
from pathlib import Path

from repo_memory.core.logging import get_logger
from repo_memory.ingest.filters import SKIP_DIRECTORIES, infer_language, is_eligible_path
from repo_memory.ingest.types import FileContent, TreeItem
from repo_memory.utils.hashing import git_blob_sha

logger = get_logger(__name__)

# languages GitHub reports as data or prose rather than code
_NON_CODE_LANGUAGES = frozenset({"json", "yaml", "markdown"})


class LocalSourceTree:
    """Serve tree listings and file bodies from the working copy under ``root``.

    The working copy has a single revision, so ``ref`` arguments are accepted
    for interface compatibility and ignored.
    """

    def __init__(self, root: Path, default_branch: str = "main") -> None:
        self.root = root.expanduser().resolve()
        self.default_branch = default_branch
        if not self.root.is_dir():
            raise NotADirectoryError(f"Repository root does not exist: {self.root}")

    def list_tree(self, ref: str | None = None) -> list[TreeItem]:
        items: list[TreeItem] = []
        for dirpath, dirnames, filenames in os.walk(self.root):
            dirnames[:] = sorted(name for name in dirnames if name not in SKIP_DIRECTORIES)
            base = Path(dirpath)
            for name in dirnames:
                rel = (base / name).relative_to(self.root).as_posix()
                items.append(TreeItem(path=rel, kind="tree", content_hash=""))
            for name in sorted(filenames):
                full = base / name
                if full.is_symlink() or not full.is_file():
                    continue
                data = full.read_bytes()
                rel = full.relative_to(self.root).as_posix()
                items.append(TreeItem(path=rel, kind="blob", content_hash=git_blob_sha(data), size=len(data)))
        items.sort(key=lambda item: item.path)
        logger.debug("Listed %s entries under %s", len(items), self.root)
        return items

    def get_file_content(self, path: str, ref: str | None = None) -> FileContent:
        full = (self.root / path).resolve()
        if self.root not in full.parents:
            raise ValueError(f"Path escapes repository root: {path}")
        data = full.read_bytes()
        try:
            text = data.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise ValueError(f"{path} is not valid UTF-8 text") from exc
        return FileContent(content=text, size=len(data))

    def get_language_stats(self) -> dict[str, int]:
        """Bytes per language, largest first."""
        totals: dict[str, int] = {}
        for item in self.list_tree():
            if item.kind != "blob" or not is_eligible_path(item.path):
                continue
            language = infer_language(item.path)
            if language is None or language in _NON_CODE_LANGUAGES:
                continue
            totals[language] = totals.get(language, 0) + (item.size or 0)
        return dict(sorted(totals.items(), key=lambda pair: (-pair[1], pair[0])))

    def relative_path(self, path: Path) -> str | None:
        """Repository-relative form of an absolute path, or ``None`` if outside the root."""
        try:
            return path.resolve().relative_to(self.root).as_posix()
        except ValueError:
            return None


__all__ = ["LocalSourceTree"]
