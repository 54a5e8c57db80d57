"""Embedding utilities."""

from __future__ import annotations

import hashlib
import logging
import math
import re
from array import array
from dataclasses import dataclass
from typing import Protocol, Sequence

import litellm

logger = logging.getLogger(__name__)

_TOKEN_RE = re.compile(r"\w+")
_COMMENT_PREFIXES = ("//", "#", "/*", "*")
_DECLARATION_RE = re.compile(
    r"^(export\s+)?(default\s+)?(async\s+)?(function|class|interface|type|const|let|var|def|func|fn|struct|module)\s+\w+"
)
_MEMBER_RE = re.compile(r"^(public|private|protected)\s+(static\s+)?(async\s+)?\w+")
_FALLBACK_LINES = 20


@dataclass(slots=True)
class EmbeddingResult:
    vector: list[float]
    token_count: int


class Embedder(Protocol):
    """Capability that turns a batch of texts into fixed-dimension vectors."""

    @property
    def dim(self) -> int: ...

    def embed_batch(self, texts: Sequence[str]) -> list[EmbeddingResult]: ...


class HashedEmbeddingModel:
    """Lightweight hashed embedding model with deterministic output."""

    def __init__(self, model_name: str = "hashed", dim: int = 384) -> None:
        self.model_name = model_name
        self._dim = dim

    @property
    def dim(self) -> int:
        return self._dim

    @property
    def backend(self) -> str:
        return "hashed"

    def embed_batch(self, texts: Sequence[str]) -> list[EmbeddingResult]:
        results: list[EmbeddingResult] = []
        for text in texts:
            tokens = _tokenize(text)
            vector = [0.0] * self._dim
            for token in tokens:
                vector[_hash_token(token, self._dim)] += 1.0
            _normalize(vector)
            results.append(EmbeddingResult(vector=vector, token_count=len(tokens)))
        return results


class LiteLLMEmbedder:
    """Embedding capability backed by ``litellm.embedding``."""

    def __init__(self, model: str, dim: int, timeout_s: float = 60.0) -> None:
        self.model = model
        self._dim = dim
        self.timeout_s = timeout_s

    @property
    def dim(self) -> int:
        return self._dim

    @property
    def backend(self) -> str:
        return "litellm"

    def embed_batch(self, texts: Sequence[str]) -> list[EmbeddingResult]:
        if not texts:
            return []
        response = litellm.embedding(
            model=self.model,
            input=list(texts),
            dimensions=self._dim,
            timeout=self.timeout_s,
        )
        usage = getattr(response, "usage", None)
        total_tokens = getattr(usage, "total_tokens", None) or 0
        per_input = total_tokens // len(texts)
        data = sorted(response.data, key=lambda item: item["index"])
        if len(data) != len(texts):
            raise ValueError(f"Embedding response returned {len(data)} vectors for {len(texts)} inputs")
        logger.debug("Embedded %s texts with %s (%s tokens)", len(texts), self.model, total_tokens)
        return [EmbeddingResult(vector=list(item["embedding"]), token_count=per_input) for item in data]


def build_embedder(backend: str, model: str, dim: int, timeout_s: float = 60.0) -> Embedder:
    if backend == "litellm":
        return LiteLLMEmbedder(model=model, dim=dim, timeout_s=timeout_s)
    if backend == "hashed":
        return HashedEmbeddingModel(dim=dim)
    raise ValueError(f"Unknown embedding backend: {backend}")


def prepare_code_for_embedding(code: str, file_path: str, language: str | None = None) -> str:
    """Reduce a chunk to a header plus its comment and declaration lines.

    Chunks with neither fall back to their first lines so the text is never
    just the header.
    """
    significant: list[str] = []
    for line in code.split("\n"):
        stripped = line.strip()
        if not stripped:
            continue
        if stripped.startswith(_COMMENT_PREFIXES):
            significant.append(stripped)
        elif _DECLARATION_RE.match(stripped) or _MEMBER_RE.match(stripped):
            significant.append(stripped)
    if not significant:
        significant = [line.strip() for line in code.split("\n") if line.strip()][:_FALLBACK_LINES]
    header = f"File: {file_path} ({language})" if language else f"File: {file_path}"
    return header + "\n\n" + "\n".join(significant)


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    if len(a) != len(b):
        raise ValueError(f"Vectors must have the same dimension ({len(a)} != {len(b)})")
    dot = sum(x * y for x, y in zip(a, b))
    norm_a = math.sqrt(sum(x * x for x in a))
    norm_b = math.sqrt(sum(y * y for y in b))
    if norm_a == 0 or norm_b == 0:
        return 0.0
    return dot / (norm_a * norm_b)


def vector_to_bytes(vector: Sequence[float]) -> bytes:
    return array("f", vector).tobytes()


def bytes_to_vector(blob: bytes) -> list[float]:
    arr = array("f")
    arr.frombytes(blob)
    return arr.tolist()


def _tokenize(text: str) -> list[str]:
    return _TOKEN_RE.findall(text.lower())


def _hash_token(token: str, dim: int) -> int:
    digest = hashlib.blake2b(token.encode("utf-8"), digest_size=8).digest()
    return int.from_bytes(digest, "big") % dim


def _normalize(vector: list[float]) -> None:
    norm = math.sqrt(sum(value * value for value in vector))
    if norm == 0:
        return
    inv = 1.0 / norm
    for idx, value in enumerate(vector):
        vector[idx] = value * inv


__all__ = [
    "EmbeddingResult",
    "Embedder",
    "HashedEmbeddingModel",
    "LiteLLMEmbedder",
    "build_embedder",
    "prepare_code_for_embedding",
    "cosine_similarity",
    "vector_to_bytes",
    "bytes_to_vector",
]
