"""Hashing utilities."""

from __future__ import annotations

import hashlib
from typing import Iterable

CHUNK_HASH_LENGTH = 16


def sha256_bytes(data: bytes) -> str:
    """Return hex digest for bytes input."""
    return hashlib.sha256(data).hexdigest()


def content_hash(text: str) -> str:
    """Short, position-independent digest of chunk text."""
    return sha256_bytes(text.encode("utf-8"))[:CHUNK_HASH_LENGTH]


def git_blob_sha(data: bytes) -> str:
    """Return the object id git assigns to a blob with this content."""
    h = hashlib.sha1()
    h.update(f"blob {len(data)}\0".encode("ascii"))
    h.update(data)
    return h.hexdigest()


def tree_fingerprint(entries: Iterable[tuple[str, str]]) -> str:
    """Fingerprint a repository state from (path, content hash) pairs."""
    h = hashlib.sha256()
    for path, digest in sorted(entries):
        h.update(path.encode("utf-8"))
        h.update(b"\0")
        h.update(digest.encode("ascii", errors="ignore"))
        h.update(b"\n")
    return h.hexdigest()
