"""Prometheus metrics instrumentation."""

from __future__ import annotations

from fastapi import Response
from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    Histogram,
    generate_latest,
)

REGISTRY = CollectorRegistry()

INGEST_DURATION = Histogram(
    "repomem_ingest_duration_seconds",
    "Duration of ingestion runs",
    labelnames=("mode",),
    registry=REGISTRY,
)

FILES_PROCESSED = Counter(
    "repomem_files_processed_total",
    "Files fetched and chunked during ingestion",
    registry=REGISTRY,
)

EMBEDDINGS_WRITTEN = Counter(
    "repomem_embeddings_written_total",
    "Chunk embeddings upserted into the vector store",
    registry=REGISTRY,
)

INGEST_ERRORS = Counter(
    "repomem_ingest_errors_total",
    "Non-fatal ingestion errors by stage",
    labelnames=("stage",),
    registry=REGISTRY,
)

CONTEXT_LATENCY = Histogram(
    "repomem_context_latency_seconds",
    "Latency of context retrieval",
    registry=REGISTRY,
)

NOVELTY_DECISIONS = Counter(
    "repomem_novelty_decisions_total",
    "Novelty checks by outcome",
    labelnames=("novel",),
    registry=REGISTRY,
)


def metrics_response() -> Response:
    """Return Prometheus metrics as an HTTP response."""
    payload = generate_latest(REGISTRY)
    return Response(content=payload, media_type=CONTENT_TYPE_LATEST)


__all__ = [
    "REGISTRY",
    "INGEST_DURATION",
    "FILES_PROCESSED",
    "EMBEDDINGS_WRITTEN",
    "INGEST_ERRORS",
    "CONTEXT_LATENCY",
    "NOVELTY_DECISIONS",
    "metrics_response",
]
