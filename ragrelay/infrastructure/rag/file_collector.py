"""File Collector - enumerates source files and splits them into chunks for RAG indexing.

- Recursive folder walk with an ignored-directory set
- Extension allow-list
- Binary detection (NUL byte heuristic)
- PDF routing through a text extractor
- Fixed-window overlapping chunking
"""

import logging
import stat
from collections.abc import Iterable
from pathlib import Path

from ragrelay.domain.errors import CollectionError
from ragrelay.domain.ports.rag import RagSource, TextExtractorPort

logger = logging.getLogger(__name__)

DEFAULT_CHUNK_SIZE = 1000
DEFAULT_CHUNK_OVERLAP = 200
DEFAULT_MAX_FILE_BYTES = 2 * 1024 * 1024

# Supported file extensions for indexing
SUPPORTED_EXTENSIONS = {
    # Text / docs
    ".txt",
    ".md",
    ".mdx",
    ".pdf",
    # Config / data
    ".json",
    ".yaml",
    ".yml",
    ".toml",
    ".ini",
    ".xml",
    # Web
    ".html",
    ".css",
    ".js",
    ".jsx",
    ".ts",
    ".tsx",
    # Code
    ".py",
    ".java",
    ".cs",
    ".cpp",
    ".c",
    ".go",
    ".rs",
    ".sql",
}

# Directories never descended into (matched on base name)
IGNORED_DIRS = {
    "node_modules",
    ".git",
    ".hg",
    ".svn",
    "dist",
    "build",
    "out",
    ".vite",
}


def is_supported_file(path: Path) -> bool:
    """Check the lower-cased extension against the allow-list."""
    return path.suffix.lower() in SUPPORTED_EXTENSIONS


def is_binary_bytes(data: bytes) -> bool:
    """Any NUL byte marks the content as binary. A heuristic, not a MIME check."""
    return b"\x00" in data


def _walk(path: Path, results: list[str], seen: set[str], follow_symlinks: bool) -> None:
    """Append eligible files under *path* to *results*.

    Raises CollectionError for *path* itself; failures below it are logged and skipped.
    """
    try:
        st = path.stat()
    except OSError as e:
        raise CollectionError(str(path), e.strerror or str(e)) from e

    if stat.S_ISDIR(st.st_mode):
        if path.name in IGNORED_DIRS:
            return
        try:
            children = sorted(path.iterdir(), key=lambda p: p.name)
        except OSError as e:
            raise CollectionError(str(path), e.strerror or str(e)) from e
        for child in children:
            if child.is_symlink() and not follow_symlinks:
                continue
            try:
                _walk(child, results, seen, follow_symlinks)
            except CollectionError as e:
                logger.warning("RAG collect skipped path: %s", e)
        return

    if stat.S_ISREG(st.st_mode) and is_supported_file(path):
        resolved = str(path.resolve())
        if resolved not in seen:
            seen.add(resolved)
            results.append(resolved)


def collect_files(
    sources: Iterable[RagSource | str | Path],
    follow_symlinks: bool = False,
) -> list[str]:
    """Collect absolute paths of supported files from ordered file/folder roots.

    Order follows the sources, then sorted directory listing order. Duplicates
    (a file reachable from two roots) are kept at their first position. A root
    that cannot be read is logged and skipped; collection never aborts.
    """
    results: list[str] = []
    seen: set[str] = set()

    for source in sources:
        raw = source.path if isinstance(source, RagSource) else str(source)
        if not raw:
            continue
        root = Path(raw).expanduser()
        if not root.is_absolute():
            root = Path.cwd() / root
        try:
            _walk(root, results, seen, follow_symlinks)
        except CollectionError as e:
            logger.warning("RAG collect skipped source: %s", e)

    logger.debug("Collected %d files from sources", len(results))
    return results


def normalize_text(text: str) -> str:
    """CRLF to LF, then trim."""
    return text.replace("\r\n", "\n").strip()


def chunk_text(
    text: str,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
    overlap: int = DEFAULT_CHUNK_OVERLAP,
    max_chunks: int | None = None,
) -> list[str]:
    """Split text into overlapping fixed-size windows.

    Each window starts ``chunk_size - overlap`` characters after the previous
    one, so consecutive windows share exactly ``overlap`` characters. Windows
    are trimmed and empty ones dropped. At most ``max_chunks`` are returned.

    Raises:
        ValueError: If parameters are invalid

    """
    if chunk_size <= 0:
        raise ValueError("chunk_size must be positive")
    if overlap < 0:
        raise ValueError("overlap must be non-negative")
    if overlap >= chunk_size:
        raise ValueError("overlap must be less than chunk_size")

    cleaned = normalize_text(text)
    chunks: list[str] = []
    if not cleaned or (max_chunks is not None and max_chunks <= 0):
        return chunks

    text_len = len(cleaned)
    start = 0
    while start < text_len:
        end = min(start + chunk_size, text_len)
        chunk = cleaned[start:end].strip()
        if chunk:
            chunks.append(chunk)
            if max_chunks is not None and len(chunks) >= max_chunks:
                break
        if end >= text_len:
            break
        start = end - overlap

    return chunks


def load_text(
    path: Path,
    extractor: TextExtractorPort | None = None,
    max_file_bytes: int = DEFAULT_MAX_FILE_BYTES,
) -> str | None:
    """Read a collected file as text.

    Returns None when the file is not eligible (too large, binary, or a PDF
    with no extractor configured). Raises CollectionError when the file cannot
    be read and ExtractionError when PDF extraction fails; both are local.
    """
    try:
        size = path.stat().st_size
        if size > max_file_bytes:
            logger.debug("Skipping large file %s (%d bytes)", path, size)
            return None
        data = path.read_bytes()
    except OSError as e:
        raise CollectionError(str(path), e.strerror or str(e)) from e

    if path.suffix.lower() == ".pdf":
        if extractor is None:
            logger.debug("No PDF extractor configured, skipping %s", path)
            return None
        return extractor.extract(path, data)

    if is_binary_bytes(data):
        logger.debug("Skipping binary file %s", path)
        return None
    return data.decode("utf-8", errors="replace")
