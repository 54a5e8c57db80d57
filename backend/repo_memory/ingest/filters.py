"""Eligibility filters and path helpers shared by scanning and chunking."""

from __future__ import annotations

from repo_memory.ingest.types import TreeItem

SKIP_EXTENSIONS = frozenset(
    {
        ".png", ".jpg", ".jpeg", ".gif", ".ico", ".svg", ".webp", ".bmp",
        ".mp4", ".webm", ".mov", ".avi", ".mp3", ".wav",
        ".zip", ".tar", ".gz", ".rar", ".7z",
        ".pdf", ".doc", ".docx", ".xls", ".xlsx",
        ".woff", ".woff2", ".ttf", ".eot", ".otf",
        ".lock", ".log",
        ".min.js", ".min.css",
        ".map",
    }
)

SKIP_DIRECTORIES = frozenset(
    {
        "node_modules",
        ".git",
        "dist",
        "build",
        ".next",
        "__pycache__",
        ".venv",
        "venv",
        "vendor",
        ".cache",
        "coverage",
        ".nyc_output",
    }
)

DEFAULT_MAX_FILE_SIZE = 100 * 1024

_EXTENSION_LANGUAGES = {
    "ts": "typescript",
    "tsx": "typescript",
    "js": "javascript",
    "jsx": "javascript",
    "mjs": "javascript",
    "cjs": "javascript",
    "py": "python",
    "rb": "ruby",
    "go": "go",
    "rs": "rust",
    "java": "java",
    "kt": "kotlin",
    "swift": "swift",
    "cs": "csharp",
    "cpp": "cpp",
    "c": "c",
    "h": "c",
    "hpp": "cpp",
    "php": "php",
    "vue": "vue",
    "svelte": "svelte",
    "sql": "sql",
    "graphql": "graphql",
    "gql": "graphql",
    "yaml": "yaml",
    "yml": "yaml",
    "json": "json",
    "md": "markdown",
    "sh": "shell",
    "bash": "shell",
}


def file_extension(path: str) -> str:
    """Return the lower-cased extension, treating ``.min.js``/``.min.css`` as one."""
    name = path.rsplit("/", 1)[-1]
    dot = name.rfind(".")
    if dot <= 0:
        return ""
    ext = name[dot:].lower()
    if ext in (".js", ".css") and name.lower().endswith(".min" + ext):
        return ".min" + ext
    return ext


def file_name(path: str) -> str:
    return path.rsplit("/", 1)[-1]


def parent_directory(path: str) -> str:
    """Directory portion of a repository path; ``""`` for root-level files."""
    return path.rsplit("/", 1)[0] if "/" in path else ""


def infer_language(path: str) -> str | None:
    ext = file_extension(path).lstrip(".")
    return _EXTENSION_LANGUAGES.get(ext)


def in_skipped_directory(path: str) -> bool:
    return any(part in SKIP_DIRECTORIES for part in path.split("/")[:-1])


def is_eligible_path(path: str) -> bool:
    """Extension and directory filters; size is checked separately."""
    if file_extension(path) in SKIP_EXTENSIONS:
        return False
    return not in_skipped_directory(path)


def is_eligible(item: TreeItem, max_file_size: int = DEFAULT_MAX_FILE_SIZE) -> bool:
    if item.kind != "blob":
        return False
    if item.size is not None and item.size > max_file_size:
        return False
    return is_eligible_path(item.path)


__all__ = [
    "SKIP_EXTENSIONS",
    "SKIP_DIRECTORIES",
    "DEFAULT_MAX_FILE_SIZE",
    "file_extension",
    "file_name",
    "parent_directory",
    "infer_language",
    "in_skipped_directory",
    "is_eligible_path",
    "is_eligible",
]
