"""FastAPI application setup for repository memory."""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI

from repo_memory.api.dependencies import (
    get_app_settings,
    get_context_builder,
    get_database,
    get_embedder,
    get_ingest_pipeline,
)
from repo_memory.api.routes_admin import router as admin_router
from repo_memory.api.routes_ingest import router as ingest_router
from repo_memory.api.routes_query import router as query_router
from repo_memory.core.logging import configure_logging

configure_logging()


@asynccontextmanager
async def lifespan(_: FastAPI) -> AsyncIterator[None]:
    """Warm up core singletons on startup."""
    get_app_settings()
    get_database()
    get_embedder()
    get_ingest_pipeline()
    get_context_builder()
    yield


app = FastAPI(
    title="Repository Memory",
    version="0.1.0",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

app.include_router(ingest_router, prefix="", tags=["ingest"])
app.include_router(query_router, prefix="", tags=["query"])
app.include_router(admin_router, prefix="", tags=["admin"])


@app.get("/health", tags=["admin"])
def health() -> dict[str, bool]:
    """Simple liveness check."""
    return {"ok": True}
