"""RAG use case - background index builds plus query/info/clear over one store."""

import asyncio
import logging
import time
from collections.abc import Iterable
from pathlib import Path
from typing import Literal

from pydantic import BaseModel

from ragrelay.domain.errors import BuildInProgressError
from ragrelay.domain.ports.config import RAGConfig
from ragrelay.domain.ports.embeddings import EmbeddingsPort
from ragrelay.domain.ports.rag import (
    BuildReport,
    IndexInfo,
    IndexStorePort,
    RagResult,
    RagSource,
    TextExtractorPort,
)
from ragrelay.infrastructure.rag.indexer import RagIndexer
from ragrelay.infrastructure.rag.retriever import Retriever

logger = logging.getLogger(__name__)

BuildState = Literal["idle", "running", "succeeded", "failed", "cancelled"]


class BuildStatus(BaseModel):
    """State of the current or most recent build."""

    state: BuildState = "idle"
    embedding_model: str | None = None
    started_at: int | None = None
    finished_at: int | None = None
    chunks_done: int = 0
    max_chunks: int = 0
    current_file: str | None = None
    report: BuildReport | None = None
    error: str | None = None


def _now_ms() -> int:
    return int(time.time() * 1000)


class RagUseCase:
    """Owns the store handle, runs at most one build at a time as an asyncio task.

    Queries read one index snapshot, so a query racing a build sees either the
    pre-build or the post-build index, never a mix.
    """

    def __init__(
        self,
        store: IndexStorePort,
        embeddings: EmbeddingsPort,
        config: RAGConfig | None = None,
        extractor: TextExtractorPort | None = None,
    ) -> None:
        self._store = store
        self._config = config or RAGConfig()
        self._indexer = RagIndexer(store, embeddings, self._config, extractor)
        self._retriever = Retriever(store, embeddings)
        self._task: asyncio.Task[BuildReport] | None = None
        self._status = BuildStatus()

    @property
    def is_building(self) -> bool:
        return self._task is not None and not self._task.done()

    def status(self) -> BuildStatus:
        return self._status.model_copy()

    def start_build(
        self,
        sources: Iterable[RagSource | str | Path],
        embedding_model: str,
    ) -> BuildStatus:
        """Schedule a build on the running loop and return immediately.

        Raises:
            BuildInProgressError: a build is already running.
            ValueError: no sources or no model.

        """
        if self.is_building:
            raise BuildInProgressError()
        source_list = list(sources)
        if not embedding_model:
            raise ValueError("Missing embedding model.")
        if not source_list:
            raise ValueError("No sources provided.")

        self._status = BuildStatus(
            state="running",
            embedding_model=embedding_model,
            started_at=_now_ms(),
            max_chunks=self._config.max_chunks,
        )
        self._task = asyncio.create_task(
            self._indexer.build(source_list, embedding_model, on_progress=self._on_progress),
            name="rag-build",
        )
        self._task.add_done_callback(self._on_build_done)
        logger.info("RAG build scheduled: %d sources, model=%s", len(source_list), embedding_model)
        return self.status()

    async def build(
        self,
        sources: Iterable[RagSource | str | Path],
        embedding_model: str,
    ) -> BuildReport:
        """Run a build and wait for it. Errors (EmbeddingError, ...) propagate."""
        self.start_build(sources, embedding_model)
        assert self._task is not None
        return await self._task

    async def wait_for_build(self) -> BuildStatus:
        """Wait for the running build (if any) without raising its error."""
        task = self._task
        if task is not None and not task.done():
            await asyncio.wait({task})
        return self.status()

    def cancel_build(self) -> bool:
        """Cancel the running build. The store keeps its previous index."""
        if not self.is_building:
            return False
        assert self._task is not None
        self._task.cancel()
        logger.info("RAG build cancellation requested")
        return True

    def _on_progress(self, chunks_done: int, max_chunks: int, current_file: str) -> None:
        self._status.chunks_done = chunks_done
        self._status.max_chunks = max_chunks
        self._status.current_file = current_file

    def _on_build_done(self, task: "asyncio.Task[BuildReport]") -> None:
        self._status.finished_at = _now_ms()
        self._status.current_file = None
        if task.cancelled():
            self._status.state = "cancelled"
            logger.info("RAG build cancelled")
            return
        exc = task.exception()
        if exc is not None:
            self._status.state = "failed"
            self._status.error = str(exc)
            logger.error("RAG build failed: %s", exc)
            return
        self._status.state = "succeeded"
        self._status.report = task.result()

    async def query(
        self,
        text: str,
        top_k: int | None = None,
        embedding_model: str | None = None,
    ) -> list[RagResult]:
        """Rank stored chunks against *text*. See Retriever.query."""
        return await self._retriever.query(
            text,
            top_k if top_k is not None else self._config.top_k,
            embedding_model,
        )

    def info(self) -> IndexInfo:
        return self._store.info()

    def clear(self) -> IndexInfo:
        """Reset the index. Refused while a build is running."""
        if self.is_building:
            raise BuildInProgressError()
        self._store.clear()
        return self.info()
