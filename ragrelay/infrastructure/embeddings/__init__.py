"""Embeddings adapters - Ollama."""

from ragrelay.infrastructure.embeddings.ollama import OllamaEmbeddingsAdapter

__all__ = ["OllamaEmbeddingsAdapter"]
