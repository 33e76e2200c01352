"""Application entry point."""

from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from ragrelay import __version__
from ragrelay.api.container import get_container
from ragrelay.api.dependencies import default_rate_limit, limiter
from ragrelay.api.routes.chat import router as chat_router
from ragrelay.api.routes.models import router as models_router
from ragrelay.api.routes.rag import router as rag_router
from ragrelay.shared.logging import setup_logging

log = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup: apply logging config, load the index. Shutdown: close clients."""
    container = get_container()
    c = container.config
    setup_logging(
        level=c.log_level,
        file_path=c.log_file or "",
        rotation_max_mb=c.log_rotation_max_mb,
        rotation_backups=c.log_rotation_backups,
    )
    info = container.index_store.info()
    log.info(
        "startup_complete",
        index_entries=info.count,
        embedding_model=info.embedding_model,
        ollama_host=c.ollama.host,
    )
    yield
    log.info("shutdown_begin")
    await container.aclose()
    log.info("shutdown_complete")


app = FastAPI(
    title="ragrelay",
    version=__version__,
    description="Local RAG index/query engine and streaming chat relay",
    lifespan=lifespan,
)

# Rate limiting
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=get_container().config.security.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(chat_router)
app.include_router(models_router)
app.include_router(rag_router)


@app.get("/health")
@limiter.limit(default_rate_limit)
async def health(request: Request) -> dict:
    """Health check with local inference availability and index summary."""
    container = get_container()
    ollama_available = await container.ollama.is_available()
    info = container.rag_use_case.info()
    return {
        "status": "ok",
        "service": "ragrelay",
        "ollama_available": ollama_available,
        "index_entries": info.count,
        "build_state": container.rag_use_case.status().state,
    }
