"""RAG API routes - build, query and inspect the index."""

import logging

from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import BaseModel, Field

from ragrelay.api.dependencies import get_rag_use_case, limiter
from ragrelay.application.rag.use_case import BuildStatus, RagUseCase
from ragrelay.domain.errors import BuildInProgressError, EmbeddingError, ModelMismatchError
from ragrelay.domain.ports.rag import IndexInfo, RagResult, RagSource

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/rag", tags=["rag"])


class IndexRequest(BaseModel):
    """Request to (re)build the index from sources."""

    sources: list[RagSource] = Field(..., min_length=1)
    embedding_model: str = Field(..., min_length=1, max_length=255)


class QueryRequest(BaseModel):
    """Request for RAG query."""

    query: str = Field(..., min_length=1, max_length=20_000)
    top_k: int | None = Field(None, ge=1, le=100)  # clamped to [1, 20] by the retriever
    embedding_model: str | None = Field(None, max_length=255)


class QueryResponse(BaseModel):
    """Ranked results."""

    results: list[RagResult]


@router.post("/index", status_code=202)
@limiter.limit("10/minute")
async def start_index(
    request: Request,
    body: IndexRequest,
    rag: RagUseCase = Depends(get_rag_use_case),
) -> BuildStatus:
    """Start a background build. Poll /rag/index/status for the outcome."""
    try:
        return rag.start_build(body.sources, body.embedding_model)
    except BuildInProgressError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.get("/index/status")
@limiter.limit("120/minute")
async def index_status(
    request: Request,
    rag: RagUseCase = Depends(get_rag_use_case),
) -> BuildStatus:
    """State of the running or most recent build."""
    return rag.status()


@router.post("/index/cancel")
@limiter.limit("30/minute")
async def cancel_index(
    request: Request,
    rag: RagUseCase = Depends(get_rag_use_case),
) -> dict:
    """Cancel the running build; the previous index stays in place."""
    return {"cancelled": rag.cancel_build()}


@router.get("/info")
@limiter.limit("60/minute")
async def index_info(
    request: Request,
    rag: RagUseCase = Depends(get_rag_use_case),
) -> IndexInfo:
    """Entry count, build time and embedding model of the stored index."""
    return rag.info()


@router.post("/query")
@limiter.limit("60/minute")
async def query_index(
    request: Request,
    body: QueryRequest,
    rag: RagUseCase = Depends(get_rag_use_case),
) -> QueryResponse:
    """Rank stored chunks by cosine similarity to the query."""
    try:
        results = await rag.query(body.query, body.top_k, body.embedding_model)
    except ModelMismatchError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except EmbeddingError as e:
        logger.warning("RAG query embedding failed: %s", e)
        raise HTTPException(status_code=502, detail=str(e))
    return QueryResponse(results=results)


@router.post("/clear")
@limiter.limit("10/minute")
async def clear_index(
    request: Request,
    rag: RagUseCase = Depends(get_rag_use_case),
) -> IndexInfo:
    """Reset the index to empty."""
    try:
        return rag.clear()
    except BuildInProgressError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except OSError:
        logger.exception("Failed to clear RAG index")
        raise HTTPException(status_code=500, detail="Failed to clear index")
