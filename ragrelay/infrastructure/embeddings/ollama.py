"""Ollama embeddings adapter - POST /api/embeddings.

One request per text, no retry: a failure surfaces as EmbeddingError and
aborts whatever build or query issued it.
"""

import logging
import math

import httpx

from ragrelay.domain.errors import EmbeddingError
from ragrelay.domain.ports.config import OllamaConfig

logger = logging.getLogger(__name__)


class OllamaEmbeddingsAdapter:
    """Ollama embeddings via POST /api/embeddings {model, prompt} -> {embedding}."""

    def __init__(self, config: OllamaConfig) -> None:
        """Initialize with Ollama config."""
        self._host = config.host.rstrip("/")
        self._timeout = config.timeout

    async def embed(self, model: str, text: str) -> list[float]:
        """Embed a single text.

        Raises:
            EmbeddingError: endpoint unreachable, non-2xx status, or response
                without a numeric ``embedding`` list.

        """
        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                resp = await client.post(
                    f"{self._host}/api/embeddings",
                    json={"model": model, "prompt": text},
                )
        except httpx.TimeoutException as e:
            logger.warning("Ollama embedding timed out after %ss", self._timeout)
            raise EmbeddingError(f"Ollama embeddings timed out after {self._timeout}s") from e
        except httpx.HTTPError as e:
            logger.warning("Ollama embedding network error: %s", e)
            raise EmbeddingError(f"Ollama embeddings unreachable: {e}") from e

        if resp.status_code >= 400:
            err_text = resp.text
            logger.error("Ollama embedding error %s: %s", resp.status_code, err_text[:200])
            raise EmbeddingError(
                f"Ollama embeddings error ({resp.status_code}): {err_text[:200]}",
                status_code=resp.status_code,
            )

        try:
            data = resp.json()
        except ValueError as e:
            raise EmbeddingError("Ollama embeddings response is not JSON.") from e

        embedding = data.get("embedding") if isinstance(data, dict) else None
        if not isinstance(embedding, list) or not all(_is_number(v) for v in embedding):
            raise EmbeddingError("Ollama embeddings response missing embedding array.")
        return [float(v) for v in embedding]


def _is_number(value: object) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool) and math.isfinite(value)
