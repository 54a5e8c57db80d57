"""Context and novelty API routes."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException

from repo_memory.api.dependencies import get_context_builder, get_novelty_detector, get_suggestion_store
from repo_memory.models.dto import (
    ContextRequest,
    ContextResponse,
    FileSummaryRequest,
    FileSummaryResponse,
    NoveltyResponse,
    OutcomeRequest,
    SuggestionRequest,
    SuggestionResponse,
)
from repo_memory.retrieval import ContextBuilder, NoveltyDetector, SuggestionStore, build_context_prompt
from repo_memory.retrieval.novelty import CandidateSuggestion

router = APIRouter()


@router.post("/repos/{repository_id}/context", response_model=ContextResponse, summary="Assemble analysis context")
def get_context(
    repository_id: str,
    request: ContextRequest,
    builder: ContextBuilder = Depends(get_context_builder),
) -> ContextResponse:
    context = builder.repository_context(
        repository_id,
        query=request.query,
        affected_files=request.affected_files,
        max_relevant_files=request.limit,
        include_prior_suggestions=request.include_prior_suggestions,
    )
    return ContextResponse(**context.to_dict(), prompt=build_context_prompt(context))


@router.post(
    "/repos/{repository_id}/context/summary",
    response_model=FileSummaryResponse,
    summary="Summarise a set of files",
)
async def summarize_files(
    repository_id: str,
    request: FileSummaryRequest,
    builder: ContextBuilder = Depends(get_context_builder),
) -> FileSummaryResponse:
    return FileSummaryResponse(**builder.file_context_summary(repository_id, request.paths))


@router.post("/repos/{repository_id}/novelty", response_model=NoveltyResponse, summary="Check a suggestion for novelty")
async def check_novelty(
    repository_id: str,
    request: SuggestionRequest,
    detector: NoveltyDetector = Depends(get_novelty_detector),
) -> NoveltyResponse:
    candidate = CandidateSuggestion(type=request.type, title=request.title, affected_files=request.affected_files)
    return NoveltyResponse(**detector.check_novelty(repository_id, candidate).to_dict())


@router.post("/repos/{repository_id}/suggestions", response_model=SuggestionResponse, summary="Record a suggestion")
async def record_suggestion(
    repository_id: str,
    request: SuggestionRequest,
    store: SuggestionStore = Depends(get_suggestion_store),
) -> SuggestionResponse:
    suggestion = store.record_suggestion(repository_id, request.type, request.title, request.affected_files)
    return SuggestionResponse(**suggestion.to_dict())


@router.post("/suggestions/{suggestion_id}/outcome", response_model=SuggestionResponse, summary="Record an outcome")
async def record_outcome(
    suggestion_id: str,
    request: OutcomeRequest,
    store: SuggestionStore = Depends(get_suggestion_store),
) -> SuggestionResponse:
    try:
        store.record_outcome(suggestion_id, request.outcome, request.user_feedback)
    except LookupError as exc:
        raise HTTPException(status_code=404, detail="Suggestion not found") from exc
    suggestion = store.get(suggestion_id)
    if suggestion is None:
        raise HTTPException(status_code=404, detail="Suggestion not found")
    return SuggestionResponse(**suggestion.to_dict())


__all__ = ["router"]
