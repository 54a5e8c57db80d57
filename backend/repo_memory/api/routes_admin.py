"""Administrative routes for repository memory."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException

from repo_memory.api.dependencies import get_memory_store, get_vector_store
from repo_memory.core.metrics import metrics_response
from repo_memory.ingest.analyzer import suggest_patterns
from repo_memory.memory.store import MemoryStore
from repo_memory.models.dto import MemoryResponse, PatternModel, PatternSuggestionModel, StatusResponse
from repo_memory.retrieval import SQLiteVectorStore
from repo_memory.utils.time import ms_to_datetime

router = APIRouter()


@router.get("/repos/{repository_id}/memory", response_model=MemoryResponse, summary="Stored repository memory")
async def get_memory(repository_id: str, store: MemoryStore = Depends(get_memory_store)) -> MemoryResponse:
    memory = store.get(repository_id)
    if memory is None:
        raise HTTPException(status_code=404, detail="Repository memory not found")
    payload = memory.to_dict()
    payload["last_full_scan_at"] = ms_to_datetime(memory.last_full_scan_at)
    payload["patterns"] = [PatternModel(**pattern) for pattern in payload["patterns"]]
    payload["pattern_suggestions"] = [
        PatternSuggestionModel(**suggestion.to_dict())
        for suggestion in suggest_patterns(memory.patterns, memory.primary_languages)
    ]
    return MemoryResponse(**payload)


@router.get("/repos/{repository_id}/status", response_model=StatusResponse, summary="Ingestion status")
async def get_status(repository_id: str, store: MemoryStore = Depends(get_memory_store)) -> StatusResponse:
    status = store.get_status(repository_id)
    return StatusResponse(
        repository_id=repository_id,
        status=status["status"],
        detail=status["detail"],
        updated_at=ms_to_datetime(status["updated_at"]),
        lease=store.get_lease(repository_id),
        jobs=store.list_jobs(repository_id, limit=5),
    )


@router.delete("/repos/{repository_id}", summary="Forget a repository")
async def delete_repository(
    repository_id: str,
    store: MemoryStore = Depends(get_memory_store),
    vectors: SQLiteVectorStore = Depends(get_vector_store),
) -> dict[str, object]:
    if store.get(repository_id) is None:
        raise HTTPException(status_code=404, detail="Repository memory not found")
    store.delete(repository_id)
    removed = vectors.delete_repository(repository_id)
    return {"status": "ok", "embeddings_deleted": removed}


@router.get("/metrics", summary="Prometheus metrics")
async def get_metrics():
    return metrics_response()


__all__ = ["router"]
