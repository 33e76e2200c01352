"""FastAPI dependencies - resolved from the DI container."""

from slowapi import Limiter
from slowapi.util import get_remote_address

from ragrelay.api.container import get_container
from ragrelay.application.chat.use_case import ChatUseCase
from ragrelay.application.rag.use_case import RagUseCase
from ragrelay.domain.ports.config import AppConfig

limiter = Limiter(key_func=get_remote_address)


def get_config() -> AppConfig:
    """Config of the active container."""
    return get_container().config


def get_rag_use_case() -> RagUseCase:
    """Shared RAG use case (one store, one build at a time)."""
    return get_container().rag_use_case


def get_chat_use_case() -> ChatUseCase:
    """Shared chat relay (tracks active streams per conversation)."""
    return get_container().chat_use_case


def default_rate_limit() -> str:
    """Per-client limit from [security] config, e.g. "100/minute"."""
    return f"{get_config().security.rate_limit_requests_per_minute}/minute"
