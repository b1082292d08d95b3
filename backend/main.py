"""FastAPI application — HTTP surface over the domain vector store.

The lifespan is the composition root: it builds the single VectorStore
(or takes one injected by ``create_app``), preloads the embedding model,
and hangs the store on ``app.state``.  Routes only translate between
HTTP and the store's operations; store errors map to status codes:

    InvalidDomain      404
    UntrainedDomain    409
    EmbeddingFailure   502
    CorruptStore       500
    PersistenceError   500
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import List, Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from exceptions import (
    CorruptStore,
    EmbeddingFailure,
    InvalidDomain,
    PersistenceError,
    UntrainedDomain,
    VectorStoreError,
)
from settings import settings
from vector_store import VectorStore, create_store

logging.basicConfig(level=settings.LOG_LEVEL.upper())
logger = logging.getLogger(__name__)

_STATUS_CODES = {
    InvalidDomain: 404,
    UntrainedDomain: 409,
    EmbeddingFailure: 502,
    CorruptStore: 500,
    PersistenceError: 500,
}


# ---------------------------------------------------------------------------
#  Request / response models
# ---------------------------------------------------------------------------

class TrainRequest(BaseModel):
    chunks: List[str]


class TrainResponse(BaseModel):
    domain: str
    count: int


class SearchRequest(BaseModel):
    query: str
    domain: str
    top_n: int = Field(default=settings.SEARCH_TOP_N, ge=0)
    with_scores: bool = False


class ScoredResult(BaseModel):
    text: str
    similarity: float


# ---------------------------------------------------------------------------
#  App factory
# ---------------------------------------------------------------------------

def create_app(store: Optional[VectorStore] = None, preload: Optional[bool] = None) -> FastAPI:
    """Build the app.  *store* defaults to ``create_store()`` at startup."""
    if preload is None:
        preload = settings.PRELOAD_MODEL

    @asynccontextmanager
    async def lifespan(app: FastAPI):  # noqa: D401
        """Build the store, preload the model, serve, then shut down."""
        app.state.store = store or create_store()
        if preload:
            await app.state.store.initialize()
        logger.info(f"Vector store ready (domains: {', '.join(app.state.store.domains)})")
        trained = app.state.store.get_available_documents()
        if not trained:
            logger.warning("No domain is trained yet. POST /train/{domain} or run: python cli.py train")
        yield

    app = FastAPI(title="Domain Vector Store", version="1.0.0", lifespan=lifespan)

    @app.exception_handler(VectorStoreError)
    async def _store_error(request: Request, exc: VectorStoreError):
        status = next((code for cls, code in _STATUS_CODES.items() if isinstance(exc, cls)), 500)
        if status >= 500:
            logger.error(f"{exc.operation or 'request'} failed for {exc.domain}: {exc}")
        return JSONResponse(
            status_code=status,
            content={"detail": str(exc), "domain": exc.domain, "operation": exc.operation},
        )

    @app.get("/health")
    async def health():
        return {"status": "ok"}

    @app.get("/documents")
    async def available_documents(request: Request):
        store: VectorStore = request.app.state.store
        return {"available": store.get_available_documents(), "domains": list(store.domains)}

    @app.post("/train/{domain}", response_model=TrainResponse)
    async def train(domain: str, req: TrainRequest, request: Request):
        store: VectorStore = request.app.state.store
        count = await store.add_documents(req.chunks, domain)
        return TrainResponse(domain=domain, count=count)

    @app.post("/search")
    async def search(req: SearchRequest, request: Request):
        store: VectorStore = request.app.state.store
        if req.with_scores:
            scored = await store.search_with_scores(req.query, req.domain, req.top_n)
            return {"results": [ScoredResult(text=t, similarity=s) for t, s in scored]}
        return {"results": await store.search(req.query, req.domain, req.top_n)}

    return app


app = create_app()
