"""Index Store - the single persisted RAG index.

Whole-replace semantics: ``save`` swaps the in-memory reference in one
assignment and writes the JSON file via temp file + rename. Stored RagIndex
objects are frozen, so a reader holding a snapshot never sees it change.
"""

import json
import logging
import threading
from pathlib import Path

from pydantic import ValidationError

from ragrelay.domain.ports.rag import IndexInfo, RagIndex

logger = logging.getLogger(__name__)


class JsonIndexStore:
    """RAG index held in memory and mirrored to a JSON file (or memory only)."""

    def __init__(self, index_file: Path | str | None = None) -> None:
        """Initialize store; load from file if present. ``None`` keeps it in memory only."""
        self._file = Path(index_file) if index_file else None
        self._index: RagIndex = RagIndex.empty()
        self._write_lock = threading.Lock()
        self._load()

    def _load(self) -> None:
        """Load index from disk. Missing or corrupt file = empty index."""
        if self._file is None or not self._file.exists():
            return
        try:
            raw = self._file.read_text(encoding="utf-8")
            self._index = RagIndex.model_validate(json.loads(raw))
            logger.info("Loaded RAG index: %d entries from %s", len(self._index.entries), self._file)
        except (json.JSONDecodeError, ValidationError) as e:
            logger.warning("Corrupted RAG index file %s: %s, starting empty", self._file, e)
        except OSError as e:
            logger.warning("Cannot read RAG index file %s: %s", self._file, e)

    def _persist(self, index: RagIndex) -> None:
        """Write to temp file first, then atomic rename."""
        if self._file is None:
            return
        self._file.parent.mkdir(parents=True, exist_ok=True)
        tmp_file = self._file.with_suffix(self._file.suffix + ".tmp")
        payload = index.model_dump(mode="json", by_alias=True)
        try:
            tmp_file.write_text(json.dumps(payload, ensure_ascii=False), encoding="utf-8")
            tmp_file.replace(self._file)
        except OSError:
            tmp_file.unlink(missing_ok=True)
            raise

    def save(self, index: RagIndex) -> None:
        """Replace the stored index. Persist first so a failed write leaves the old index live."""
        with self._write_lock:
            self._persist(index)
            self._index = index
        logger.info(
            "RAG index saved: %d entries, model=%s",
            len(index.entries),
            index.embedding_model,
        )

    def read(self) -> RagIndex:
        """Current index snapshot (never mutated afterwards)."""
        return self._index

    def clear(self) -> None:
        """Reset to the empty sentinel."""
        self.save(RagIndex.empty())

    def info(self) -> IndexInfo:
        """Count, timestamp and model of the stored index."""
        index = self._index
        return IndexInfo(
            count=len(index.entries),
            indexed_at=index.indexed_at,
            embedding_model=index.embedding_model,
        )
