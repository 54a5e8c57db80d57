"""Ingest API routes."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException

from repo_memory.api.dependencies import (
    get_app_settings,
    get_ingest_pipeline,
    get_suggestion_store,
    resolve_source,
)
from repo_memory.core.config import Settings
from repo_memory.core.errors import (
    IngestionCancelled,
    IngestionConflict,
    PersistenceFailure,
    RepoMemoryError,
    ScanFailure,
)
from repo_memory.ingest.pipeline import IngestPipeline
from repo_memory.ingest.types import ChangedFile
from repo_memory.models.dto import ChangesRequest, ChangesResponse, IngestRequest, IngestResponse
from repo_memory.retrieval.suggestions import SuggestionStore

router = APIRouter()

_STATUS_CODES: dict[type[RepoMemoryError], int] = {
    IngestionConflict: 409,
    IngestionCancelled: 409,
    ScanFailure: 502,
    PersistenceFailure: 500,
}


def _http_error(exc: RepoMemoryError) -> HTTPException:
    return HTTPException(status_code=_STATUS_CODES.get(type(exc), 500), detail=exc.to_dict())


@router.post("/repos/{repository_id}/ingest", response_model=IngestResponse, summary="Run a full ingestion")
def trigger_ingest(
    repository_id: str,
    request: IngestRequest,
    pipeline: IngestPipeline = Depends(get_ingest_pipeline),
    settings: Settings = Depends(get_app_settings),
) -> IngestResponse:
    source = resolve_source(request, settings)
    try:
        result = pipeline.ingest(repository_id, source, ref=request.ref, force=request.force)
    except RepoMemoryError as exc:
        raise _http_error(exc) from exc
    return IngestResponse(**result.to_dict())


@router.post("/repos/{repository_id}/changes", response_model=ChangesResponse, summary="Apply pushed changes")
def apply_changes(
    repository_id: str,
    request: ChangesRequest,
    pipeline: IngestPipeline = Depends(get_ingest_pipeline),
    suggestions: SuggestionStore = Depends(get_suggestion_store),
    settings: Settings = Depends(get_app_settings),
) -> ChangesResponse:
    source = resolve_source(request, settings)
    changes = [ChangedFile(path=item.path, status=item.status) for item in request.changed_files]
    try:
        result = pipeline.update_from_change(
            repository_id,
            source,
            changes,
            ref=request.ref,
            tree_hash=request.tree_hash,
        )
    except RepoMemoryError as exc:
        raise _http_error(exc) from exc
    outdated = suggestions.mark_outdated(repository_id, [change.path for change in changes])
    return ChangesResponse(**result.to_dict(), outdated_suggestions=outdated)


__all__ = ["router"]
