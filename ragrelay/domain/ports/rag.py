"""RAG Port - index records and the interfaces around them."""

import time
import uuid
from pathlib import Path
from typing import Literal, Protocol

from pydantic import BaseModel, ConfigDict, Field


class RagSource(BaseModel):
    """A user-declared file or folder root. Immutable once created."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    path: str = Field(..., min_length=1)
    type: Literal["file", "folder"]
    added_at: int = Field(default_factory=lambda: int(time.time() * 1000))  # epoch milliseconds

    @classmethod
    def from_path(cls, path: str) -> "RagSource":
        """Create a source for *path*, detecting file vs folder from the filesystem."""
        p = Path(path).expanduser()
        return cls(path=str(p.resolve()), type="folder" if p.is_dir() else "file")


class IndexEntry(BaseModel):
    """One embedded chunk. Persisted with camelCase keys."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str
    source_path: str = Field(alias="sourcePath")
    chunk_index: int = Field(alias="chunkIndex")
    content: str
    embedding: tuple[float, ...]

    @staticmethod
    def make_id(source_path: str, chunk_index: int) -> str:
        return f"{source_path}:{chunk_index}"


class RagIndex(BaseModel):
    """The whole persisted index. Replaced as a unit, never merged."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    entries: tuple[IndexEntry, ...] = ()
    indexed_at: int | None = Field(None, alias="indexedAt")  # epoch milliseconds
    embedding_model: str | None = Field(None, alias="embeddingModel")

    @classmethod
    def empty(cls) -> "RagIndex":
        return cls()

    @property
    def is_empty(self) -> bool:
        return not self.entries


class RagResult(BaseModel):
    """A ranked retrieval hit."""

    source_path: str
    content: str
    score: float


class IndexInfo(BaseModel):
    """Summary of the stored index."""

    count: int = 0
    indexed_at: int | None = None
    embedding_model: str | None = None


class BuildReport(BaseModel):
    """Outcome of one index build."""

    count: int
    indexed_at: int
    embedding_model: str
    files_seen: int = 0
    files_indexed: int = 0
    files_skipped: int = 0
    truncated: bool = False  # chunk budget ran out before all files were consumed


class IndexStorePort(Protocol):
    """Holds the single RAG index with whole-replace semantics."""

    def save(self, index: RagIndex) -> None:
        """Replace the stored index atomically."""
        ...

    def read(self) -> RagIndex:
        """Return the current index, or the empty sentinel."""
        ...

    def clear(self) -> None:
        """Reset to the empty sentinel."""
        ...

    def info(self) -> IndexInfo:
        """Count, timestamp and model of the stored index."""
        ...


class TextExtractorPort(Protocol):
    """Extracts plain text from a document format we cannot read directly (PDF)."""

    def extract(self, path: Path, data: bytes) -> str:
        """Return the document text. Raises ExtractionError on failure."""
        ...
