"""Retriever - brute-force cosine ranking over the stored index."""

import logging
import math
from collections.abc import Sequence

from ragrelay.domain.errors import ModelMismatchError
from ragrelay.domain.ports.embeddings import EmbeddingsPort
from ragrelay.domain.ports.rag import IndexStorePort, RagResult

logger = logging.getLogger(__name__)

DEFAULT_TOP_K = 5
MAX_TOP_K = 20


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """dot(a, b) / (|a| * |b|). 0.0 for empty, zero-norm or mismatched vectors."""
    if not a or len(a) != len(b):
        return 0.0
    dot = 0.0
    norm_a = 0.0
    norm_b = 0.0
    for x, y in zip(a, b):
        dot += x * y
        norm_a += x * x
        norm_b += y * y
    if not norm_a or not norm_b:
        return 0.0
    score = dot / (math.sqrt(norm_a) * math.sqrt(norm_b))
    # Rounding can push |score| a hair past 1
    return max(-1.0, min(1.0, score))


def clamp_top_k(top_k: int | None) -> int:
    """Default 5, clamped to [1, 20]."""
    if top_k is None:
        return DEFAULT_TOP_K
    return max(1, min(MAX_TOP_K, int(top_k)))


class Retriever:
    """Embeds a query and ranks every stored entry by cosine similarity."""

    def __init__(self, store: IndexStorePort, embeddings: EmbeddingsPort) -> None:
        self._store = store
        self._embeddings = embeddings

    async def query(
        self,
        text: str,
        top_k: int | None = DEFAULT_TOP_K,
        embedding_model: str | None = None,
    ) -> list[RagResult]:
        """Return the top_k entries most similar to *text*.

        An empty index returns []. A caller model that differs from the index
        model raises ModelMismatchError; the corpus is never re-embedded.
        Ties keep index insertion order.
        """
        index = self._store.read()
        if index.is_empty:
            return []

        requested = embedding_model or None
        if requested and index.embedding_model and requested != index.embedding_model:
            raise ModelMismatchError(requested, index.embedding_model)
        model = requested or index.embedding_model
        if not model:
            raise ModelMismatchError(None, None)

        query_vector = await self._embeddings.embed(model, text)
        scored = [
            RagResult(
                source_path=entry.source_path,
                content=entry.content,
                score=cosine_similarity(query_vector, entry.embedding),
            )
            for entry in index.entries
        ]
        # sorted() is stable: equal scores keep insertion order
        ranked = sorted(scored, key=lambda r: r.score, reverse=True)
        limit = clamp_top_k(top_k)
        logger.debug("RAG query scored %d entries, returning %d", len(scored), min(limit, len(ranked)))
        return ranked[:limit]
