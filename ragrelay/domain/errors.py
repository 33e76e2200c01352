"""Error taxonomy for indexing, retrieval and streaming.

Every error carries a ``fatal`` flag. Local errors (``fatal = False``) mean
"skip this item and keep going"; fatal errors abort the current build, query
or stream and are surfaced to the caller.
"""


class RagRelayError(Exception):
    """Base class for all ragrelay errors."""

    fatal: bool = True


class CollectionError(RagRelayError):
    """A source path could not be listed or stat'ed. The path is skipped."""

    fatal = False

    def __init__(self, path: str, reason: str) -> None:
        super().__init__(f"Cannot collect {path}: {reason}")
        self.path = path
        self.reason = reason


class ExtractionError(RagRelayError):
    """Text could not be extracted from a document (e.g. a broken PDF). The file is skipped."""

    fatal = False

    def __init__(self, path: str, reason: str) -> None:
        super().__init__(f"Cannot extract text from {path}: {reason}")
        self.path = path
        self.reason = reason


class EmbeddingError(RagRelayError):
    """Embedding endpoint unreachable, non-2xx, or returned no vector."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class ModelMismatchError(RagRelayError):
    """Query model differs from the model the index was built with."""

    def __init__(self, requested: str | None, indexed: str | None) -> None:
        if requested and indexed:
            message = f"Embedding model mismatch (index: {indexed}, requested: {requested})."
        else:
            message = "No embedding model available."
        super().__init__(message)
        self.requested = requested
        self.indexed = indexed


class BuildInProgressError(RagRelayError):
    """A build was requested while another one is still running."""

    def __init__(self) -> None:
        super().__init__("An index build is already running.")


class TransportError(RagRelayError):
    """Chat stream could not be started or the connection failed mid-stream."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class FramingError(RagRelayError):
    """A stream line grew past the size limit without a newline. Ends the stream."""

    def __init__(self, max_line_bytes: int) -> None:
        super().__init__(f"Stream line exceeds {max_line_bytes} bytes without a newline")
        self.max_line_bytes = max_line_bytes


class MalformedFrameError(RagRelayError):
    """A single line inside an active stream is not valid JSON. Swallowed by the stream."""

    fatal = False

    def __init__(self, line: str, reason: str) -> None:
        super().__init__(f"Malformed frame ({reason}): {line[:100]}")
        self.line = line
        self.reason = reason
