"""Stream event types relayed to the chat client."""

from enum import Enum

from pydantic import BaseModel


class StreamEventType(str, Enum):
    """Event types streamed to client."""

    DELTA = "delta"  # text fragment
    SOURCES = "sources"  # JSON list of RAG results used as context
    END = "end"
    ERROR = "error"


class StreamState(str, Enum):
    """Lifecycle of one stream session. END and ERRORED are terminal."""

    IDLE = "idle"
    STREAMING = "streaming"
    ENDED = "ended"
    ERRORED = "errored"

    @property
    def is_terminal(self) -> bool:
        return self in (StreamState.ENDED, StreamState.ERRORED)


class StreamEvent(BaseModel):
    """One event of the unified stream."""

    kind: StreamEventType
    data: str = ""

    @classmethod
    def delta(cls, text: str) -> "StreamEvent":
        return cls(kind=StreamEventType.DELTA, data=text)

    @classmethod
    def end(cls) -> "StreamEvent":
        return cls(kind=StreamEventType.END)

    @classmethod
    def error(cls, message: str) -> "StreamEvent":
        return cls(kind=StreamEventType.ERROR, data=message)

    @property
    def is_terminal(self) -> bool:
        return self.kind in (StreamEventType.END, StreamEventType.ERROR)
