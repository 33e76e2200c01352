"""Embeddings Port - interface for embedding providers."""

from typing import Protocol


class EmbeddingsPort(Protocol):
    """Interface for embedding providers (Ollama)."""

    async def embed(self, model: str, text: str) -> list[float]:
        """Embed a single text with *model*. Raises EmbeddingError on failure."""
        ...
