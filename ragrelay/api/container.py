"""Dependency Injection Container - centralized service management."""

from functools import cached_property
from pathlib import Path
from typing import TYPE_CHECKING

from ragrelay.domain.ports.config import AppConfig
from ragrelay.domain.ports.embeddings import EmbeddingsPort
from ragrelay.domain.ports.llm import ApiProviderConfig
from ragrelay.infrastructure.config import load_config

if TYPE_CHECKING:
    from ragrelay.application.chat.use_case import ChatUseCase
    from ragrelay.application.rag.use_case import RagUseCase
    from ragrelay.infrastructure.llm.ollama import OllamaAdapter
    from ragrelay.infrastructure.llm.openai_compatible import OpenAICompatibleAdapter
    from ragrelay.infrastructure.rag.index_store import JsonIndexStore


class Container:
    """Dependency Injection Container with lazy initialization.

    All dependencies are created on first access and cached. The index store
    is created once here and handed to every collaborator explicitly.

    Usage:
        container = Container()
        rag = container.rag_use_case
    """

    def __init__(self, config: AppConfig | None = None):
        """Initialize container with optional config override."""
        self._config_override = config

    @cached_property
    def config(self) -> AppConfig:
        """Application configuration."""
        if self._config_override:
            return self._config_override
        return load_config()

    @cached_property
    def ollama(self) -> "OllamaAdapter":
        """Local inference chat adapter (NDJSON stream)."""
        from ragrelay.infrastructure.llm.ollama import OllamaAdapter

        return OllamaAdapter(self.config.ollama, max_line_bytes=self.config.stream.max_line_bytes)

    def api_adapter(self, provider: ApiProviderConfig) -> "OpenAICompatibleAdapter":
        """OpenAI-compatible adapter for one provider (SSE-style stream)."""
        from ragrelay.infrastructure.llm.openai_compatible import OpenAICompatibleAdapter

        return OpenAICompatibleAdapter(
            provider,
            timeout=float(self.config.ollama.timeout),
            max_line_bytes=self.config.stream.max_line_bytes,
        )

    @cached_property
    def embeddings(self) -> EmbeddingsPort:
        """Embeddings adapter."""
        from ragrelay.infrastructure.embeddings.ollama import OllamaEmbeddingsAdapter

        return OllamaEmbeddingsAdapter(self.config.ollama)

    @cached_property
    def index_store(self) -> "JsonIndexStore":
        """The single persisted RAG index."""
        from ragrelay.infrastructure.rag.index_store import JsonIndexStore

        return JsonIndexStore(Path(self.config.rag.index_path))

    @cached_property
    def rag_use_case(self) -> "RagUseCase":
        """RAG build/query use case over the index store."""
        from ragrelay.application.rag.use_case import RagUseCase
        from ragrelay.infrastructure.rag.pdf import PypdfTextExtractor

        return RagUseCase(
            store=self.index_store,
            embeddings=self.embeddings,
            config=self.config.rag,
            extractor=PypdfTextExtractor(),
        )

    @cached_property
    def chat_use_case(self) -> "ChatUseCase":
        """Chat relay with RAG context injection."""
        from ragrelay.application.chat.use_case import ChatUseCase

        return ChatUseCase(
            ollama=self.ollama,
            api_adapter_factory=self.api_adapter,
            rag=self.rag_use_case,
        )

    async def aclose(self) -> None:
        """Close shared clients; cancel a running build."""
        if "rag_use_case" in self.__dict__:
            self.rag_use_case.cancel_build()
        if "ollama" in self.__dict__:
            await self.ollama.close()

    def reset(self) -> None:
        """Reset all cached instances (useful for testing)."""
        for attr in list(self.__dict__.keys()):
            if not attr.startswith("_"):
                delattr(self, attr)


# Global container instance
_container: Container | None = None


def get_container() -> Container:
    """Get or create global container instance."""
    global _container
    if _container is None:
        _container = Container()
    return _container


def set_container(container: Container) -> None:
    """Install a container (tests, embedding in another app)."""
    global _container
    _container = container


def reset_container() -> None:
    """Reset global container (for testing)."""
    global _container
    if _container:
        _container.reset()
    _container = None
