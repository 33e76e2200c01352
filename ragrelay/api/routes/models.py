"""Model listing routes for the two provider kinds."""

from fastapi import APIRouter, Request
from pydantic import BaseModel

from ragrelay.api.container import get_container
from ragrelay.api.dependencies import limiter
from ragrelay.domain.ports.llm import ApiProviderConfig

router = APIRouter(prefix="/models", tags=["models"])


class ProviderModelsRequest(BaseModel):
    """Provider to ask; ``model`` is not needed for listing."""

    base_url: str
    api_key: str = ""


@router.get("/ollama")
@limiter.limit("30/minute")
async def list_ollama_models(request: Request) -> dict:
    """Models installed on the local inference server ([] when unreachable)."""
    models = await get_container().ollama.list_models()
    return {"models": models}


@router.post("/api")
@limiter.limit("30/minute")
async def list_api_models(request: Request, body: ProviderModelsRequest) -> dict:
    """Models exposed by an OpenAI-compatible provider ([] on failure)."""
    provider = ApiProviderConfig(base_url=body.base_url, api_key=body.api_key, model="-")
    models = await get_container().api_adapter(provider).list_models()
    return {"models": models}
