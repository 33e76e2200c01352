"""RAG Indexer - collect, chunk, embed and store as one sequential pipeline."""

import asyncio
import logging
import time
from collections.abc import Callable, Iterable
from pathlib import Path

from ragrelay.domain.errors import RagRelayError
from ragrelay.domain.ports.config import RAGConfig
from ragrelay.domain.ports.embeddings import EmbeddingsPort
from ragrelay.domain.ports.rag import (
    BuildReport,
    IndexEntry,
    IndexStorePort,
    RagIndex,
    RagSource,
    TextExtractorPort,
)
from ragrelay.infrastructure.rag.file_collector import chunk_text, collect_files, load_text

logger = logging.getLogger(__name__)

# (entries_so_far, max_chunks, current_file)
ProgressCallback = Callable[[int, int, str], None]


class RagIndexer:
    """Builds a fresh index from sources and swaps it into the store.

    Files are processed in collected order, chunks in order, one embedding
    call at a time. The chunk budget is global to the build, so late files
    may be truncated or skipped. Any EmbeddingError aborts the build and the
    store keeps its previous index.
    """

    def __init__(
        self,
        store: IndexStorePort,
        embeddings: EmbeddingsPort,
        config: RAGConfig | None = None,
        extractor: TextExtractorPort | None = None,
    ) -> None:
        self._store = store
        self._embeddings = embeddings
        self._config = config or RAGConfig()
        self._extractor = extractor

    async def build(
        self,
        sources: Iterable[RagSource | str | Path],
        embedding_model: str,
        on_progress: ProgressCallback | None = None,
    ) -> BuildReport:
        """Index all sources with *embedding_model* and replace the stored index."""
        if not embedding_model:
            raise ValueError("Missing embedding model.")
        cfg = self._config
        # filesystem work stays off the event loop
        files = await asyncio.to_thread(collect_files, list(sources))
        logger.info("RAG build started: %d files, model=%s", len(files), embedding_model)

        entries: list[IndexEntry] = []
        files_indexed = 0
        files_skipped = 0
        truncated = False

        for position, file_path in enumerate(files):
            remaining = cfg.max_chunks - len(entries)
            if remaining <= 0:
                truncated = True
                logger.info("RAG chunk budget exhausted, %d files not indexed", len(files) - position)
                break
            try:
                text = await asyncio.to_thread(load_text, Path(file_path), self._extractor, cfg.max_file_bytes)
            except RagRelayError as e:
                if e.fatal:
                    raise
                logger.warning("RAG indexing skipped file: %s", e)
                files_skipped += 1
                continue
            if text is None:
                files_skipped += 1
                continue

            chunks = chunk_text(text, cfg.chunk_size, cfg.chunk_overlap)
            if len(chunks) > remaining:
                chunks = chunks[:remaining]
                truncated = True
            for chunk_index, chunk in enumerate(chunks):
                # EmbeddingError propagates: one failed chunk aborts the whole build
                embedding = await self._embeddings.embed(embedding_model, chunk)
                entries.append(
                    IndexEntry(
                        id=IndexEntry.make_id(file_path, chunk_index),
                        source_path=file_path,
                        chunk_index=chunk_index,
                        content=chunk,
                        embedding=tuple(embedding),
                    )
                )
                if on_progress is not None:
                    on_progress(len(entries), cfg.max_chunks, file_path)
            if chunks:
                files_indexed += 1

        index = RagIndex(
            entries=tuple(entries),
            indexed_at=int(time.time() * 1000),
            embedding_model=embedding_model,
        )
        await asyncio.to_thread(self._store.save, index)
        logger.info(
            "RAG build finished: %d chunks from %d files (%d skipped, truncated=%s)",
            len(entries),
            files_indexed,
            files_skipped,
            truncated,
        )
        return BuildReport(
            count=len(entries),
            indexed_at=index.indexed_at,
            embedding_model=embedding_model,
            files_seen=len(files),
            files_indexed=files_indexed,
            files_skipped=files_skipped,
            truncated=truncated,
        )
