"""Chunking utilities for source files."""

from __future__ import annotations

import math
import re
from dataclasses import dataclass, replace
from typing import Sequence

from repo_memory.ingest.filters import file_name, infer_language
from repo_memory.ingest.types import ChunkKind, CodeChunk
from repo_memory.utils.hashing import content_hash

_JS_IMPORT_RE = re.compile(r"""^import\s+.*from\s+['"]([^'"]+)['"]""")
_JS_SIDE_EFFECT_IMPORT_RE = re.compile(r"""^import\s+['"]([^'"]+)['"]""")
_PY_IMPORT_RE = re.compile(r"^(?:from\s+(\S+)\s+)?import\s+(\S+)")
_GO_IMPORT_RE = re.compile(r'^\s*(?:import\s+)?(?:\w+\s+)?"([^"]+)"')
_JS_EXPORT_RE = re.compile(r"^export\s+(?:default\s+)?(?:async\s+)?(?:const|function|class|interface|type)\s+(\w+)")


@dataclass(slots=True, frozen=True)
class ChunkOptions:
    max_chunk_size: int = 2000
    min_chunk_size: int = 100
    overlap_lines: int = 3


@dataclass(slots=True, frozen=True)
class Boundary:
    """A declaration pattern that opens a new chunk."""

    pattern: re.Pattern[str]
    kind: ChunkKind

    def match(self, line: str) -> str | None:
        found = self.pattern.match(line)
        if found is None:
            return None
        return found.group("name") or "anonymous"


def _b(pattern: str, kind: ChunkKind) -> Boundary:
    return Boundary(re.compile(pattern), kind)


class LanguageChunker:
    """Regex boundary table for one language family."""

    languages: tuple[str, ...] = ()
    boundaries: tuple[Boundary, ...] = ()

    def can_chunk(self, language: str | None) -> bool:
        return language is not None and language.lower() in self.languages

    def find_boundaries(self, lines: Sequence[str]) -> list[tuple[int, str, ChunkKind]]:
        found: list[tuple[int, str, ChunkKind]] = []
        for index, line in enumerate(lines):
            stripped = line.strip()
            if not stripped:
                continue
            for boundary in self.boundaries:
                name = boundary.match(stripped)
                if name is not None:
                    found.append((index, name, boundary.kind))
                    break
        return found


class ScriptChunker(LanguageChunker):
    languages = ("javascript", "typescript")
    boundaries = (
        _b(r"^export\s+(?:default\s+)?(?:async\s+)?function\s*\*?\s*(?P<name>\w+)", "function"),
        _b(r"^export\s+const\s+(?P<name>\w+)\s*=", "function"),
        _b(r"^export\s+(?:default\s+)?(?:abstract\s+)?class\s+(?P<name>\w+)", "class"),
        _b(r"^export\s+interface\s+(?P<name>\w+)", "class"),
        _b(r"^export\s+type\s+(?P<name>\w+)", "class"),
        _b(r"^(?:async\s+)?function\s*\*?\s*(?P<name>\w+)", "function"),
        _b(r"^const\s+(?P<name>\w+)\s*=\s*(?:async\s+)?\(", "function"),
        _b(r"^(?:abstract\s+)?class\s+(?P<name>\w+)", "class"),
        _b(r"^interface\s+(?P<name>\w+)", "class"),
        _b(r"^type\s+(?P<name>\w+)", "class"),
    )


class PythonChunker(LanguageChunker):
    languages = ("python",)
    boundaries = (
        _b(r"^(?:async\s+)?def\s+(?P<name>\w+)", "function"),
        _b(r"^class\s+(?P<name>\w+)", "class"),
    )


class GoChunker(LanguageChunker):
    languages = ("go",)
    boundaries = (
        _b(r"^func\s+\(\w+\s+\*?\w+\)\s+(?P<name>\w+)", "function"),
        _b(r"^func\s+(?P<name>\w+)", "function"),
        _b(r"^type\s+(?P<name>\w+)\s+(?:struct|interface)", "class"),
    )


class RubyChunker(LanguageChunker):
    languages = ("ruby",)
    boundaries = (
        _b(r"^def\s+(?:self\.)?(?P<name>\w+[?!]?)", "function"),
        _b(r"^class\s+(?P<name>[\w:]+)", "class"),
        _b(r"^module\s+(?P<name>[\w:]+)", "module"),
    )


class JvmChunker(LanguageChunker):
    languages = ("java", "kotlin")
    boundaries = (
        _b(r"^(?:(?:public|private|protected|internal|abstract|final|open|data)\s+)*class\s+(?P<name>\w+)", "class"),
        _b(r"^(?:(?:public|private|protected|internal)\s+)*interface\s+(?P<name>\w+)", "class"),
        _b(r"^(?:(?:public|private|protected|internal|override|suspend)\s+)*fun\s+(?P<name>\w+)", "function"),
        _b(
            r"^(?:(?:public|private|protected)\s+)?(?:static\s+)?(?:final\s+)?"
            r"(?!return\b|new\b|else\b|throw\b)[\w<>\[\],]+\s+(?P<name>\w+)\s*\(",
            "function",
        ),
    )


class ChunkerRegistry:
    """Registry that selects a boundary table for a language."""

    def __init__(self) -> None:
        self._chunkers: list[LanguageChunker] = [
            ScriptChunker(),
            PythonChunker(),
            GoChunker(),
            RubyChunker(),
            JvmChunker(),
        ]

    def register(self, chunker: LanguageChunker) -> None:
        self._chunkers.insert(0, chunker)

    def for_language(self, language: str | None) -> LanguageChunker | None:
        for chunker in self._chunkers:
            if chunker.can_chunk(language):
                return chunker
        return None


DEFAULT_REGISTRY = ChunkerRegistry()


def chunk_file(
    content: str,
    path: str,
    language: str | None = None,
    options: ChunkOptions | None = None,
    registry: ChunkerRegistry | None = None,
) -> list[CodeChunk]:
    """Split a file into ordered chunks.

    Files no larger than ``max_chunk_size`` become a single ``file`` chunk.
    Larger files are cut at declaration boundaries for the file's language,
    oversized pieces are split into overlapping line windows, and pieces below
    ``min_chunk_size`` are dropped. When no boundary produces a chunk the whole
    file is split into line windows instead. The result depends only on the
    arguments.
    """
    opts = options or ChunkOptions()
    lang = language or infer_language(path)
    lines = content.split("\n")

    if len(content) <= opts.max_chunk_size:
        chunks = [
            CodeChunk(
                content=content,
                content_hash=content_hash(content),
                start_line=1,
                end_line=len(lines),
                kind="file",
                name=file_name(path),
            )
        ]
    else:
        chunker = (registry or DEFAULT_REGISTRY).for_language(lang)
        chunks = _semantic_chunks(lines, path, chunker, opts) if chunker else []
        if not chunks:
            chunks = _line_windows(lines, 0, opts, name_prefix=file_name(path))

    imports = extract_imports(content, lang)
    exports = extract_exports(content)
    return [
        replace(chunk, chunk_index=index, language=lang, imports=list(imports), exports=list(exports))
        for index, chunk in enumerate(chunks)
    ]


def _semantic_chunks(
    lines: list[str],
    path: str,
    chunker: LanguageChunker,
    opts: ChunkOptions,
) -> list[CodeChunk]:
    boundaries = chunker.find_boundaries(lines)
    if not boundaries:
        return []

    chunks: list[CodeChunk] = []
    first_line = boundaries[0][0]
    if first_line > 0:
        preamble = "\n".join(lines[:first_line])
        if len(preamble.strip()) >= opts.min_chunk_size:
            chunks.extend(_bounded_chunk(lines[:first_line], 0, "module", file_name(path), opts))

    for position, (start, name, kind) in enumerate(boundaries):
        end = boundaries[position + 1][0] if position + 1 < len(boundaries) else len(lines)
        chunks.extend(_bounded_chunk(lines[start:end], start, kind, name, opts))
    return chunks


def _bounded_chunk(
    span: list[str],
    offset: int,
    kind: ChunkKind,
    name: str,
    opts: ChunkOptions,
) -> list[CodeChunk]:
    text = "\n".join(span)
    if len(text) < opts.min_chunk_size:
        return []
    if len(text) > opts.max_chunk_size:
        return [replace(chunk, name=name) for chunk in _line_windows(span, offset, opts)]
    return [
        CodeChunk(
            content=text,
            content_hash=content_hash(text),
            start_line=offset + 1,
            end_line=offset + len(span),
            kind=kind,
            name=name,
        )
    ]


def _line_windows(
    lines: list[str],
    offset: int,
    opts: ChunkOptions,
    name_prefix: str | None = None,
) -> list[CodeChunk]:
    if not lines:
        return []
    total_chars = len("\n".join(lines))
    avg_line_length = max(total_chars / len(lines), 1.0)
    lines_per_chunk = max(math.floor(opts.max_chunk_size / avg_line_length), opts.overlap_lines + 1)
    step = lines_per_chunk - opts.overlap_lines

    chunks: list[CodeChunk] = []
    start = 0
    while start < len(lines):
        end = min(start + lines_per_chunk, len(lines))
        text = "\n".join(lines[start:end])
        if len(text) >= opts.min_chunk_size:
            first, last = offset + start + 1, offset + end
            chunks.append(
                CodeChunk(
                    content=text,
                    content_hash=content_hash(text),
                    start_line=first,
                    end_line=last,
                    kind="section",
                    name=f"{name_prefix}:{first}-{last}" if name_prefix else None,
                )
            )
        if end == len(lines):
            break
        start += step
    return chunks


def extract_imports(content: str, language: str | None = None) -> list[str]:
    """Module specifiers imported by a file, in first-seen order."""
    imports: list[str] = []
    in_go_block = False
    for line in content.split("\n"):
        match = _JS_IMPORT_RE.match(line) or _JS_SIDE_EFFECT_IMPORT_RE.match(line)
        if match:
            imports.append(match.group(1))
            continue
        if language == "go":
            stripped = line.strip()
            if stripped.startswith("import ("):
                in_go_block = True
                continue
            if in_go_block and stripped == ")":
                in_go_block = False
                continue
            if in_go_block or stripped.startswith("import "):
                go_match = _GO_IMPORT_RE.match(stripped)
                if go_match:
                    imports.append(go_match.group(1))
            continue
        if language in (None, "python"):
            py_match = _PY_IMPORT_RE.match(line)
            if py_match:
                imports.append(py_match.group(1) or py_match.group(2).rstrip(","))
    return list(dict.fromkeys(imports))


def extract_exports(content: str) -> list[str]:
    exports: list[str] = []
    for line in content.split("\n"):
        match = _JS_EXPORT_RE.match(line)
        if match:
            exports.append(match.group(1))
    return list(dict.fromkeys(exports))


__all__ = [
    "ChunkOptions",
    "LanguageChunker",
    "ChunkerRegistry",
    "DEFAULT_REGISTRY",
    "chunk_file",
    "extract_imports",
    "extract_exports",
]
