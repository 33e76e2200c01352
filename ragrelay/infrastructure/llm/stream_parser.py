"""Incremental stream parsing for the two chat wire formats.

Network reads never align to line boundaries, so bytes are buffered until a
newline arrives and only complete lines are decoded. Each provider format has
its own line decoder returning a tagged ``Frame``; ``StreamSession`` drives the
shared IDLE -> STREAMING -> ENDED | ERRORED state machine on top of it.
"""

import json
import logging
from collections.abc import AsyncIterator, Callable
from dataclasses import dataclass
from enum import Enum
from typing import Any

import httpx

from ragrelay.domain.entities.stream_events import StreamEvent, StreamState
from ragrelay.domain.errors import FramingError, MalformedFrameError, TransportError

logger = logging.getLogger(__name__)

DEFAULT_MAX_LINE_BYTES = 1024 * 1024
SSE_DONE = "[DONE]"


class FrameKind(str, Enum):
    """What a single decoded line means for the stream."""

    NONE = "none"  # valid line, nothing to relay
    DELTA = "delta"
    DONE = "done"  # explicit terminal marker
    ERROR = "error"  # provider reported an error in-band


@dataclass(frozen=True)
class Frame:
    kind: FrameKind
    text: str = ""


NO_DELTA = Frame(FrameKind.NONE)


class LineBuffer:
    """Accumulates raw bytes and hands out complete lines.

    Decoding happens per complete line, so a multi-byte UTF-8 character split
    across two reads is reassembled before it is decoded.
    """

    def __init__(self, max_line_bytes: int = DEFAULT_MAX_LINE_BYTES) -> None:
        self._buf = bytearray()
        self._max_line_bytes = max_line_bytes

    def feed(self, data: bytes) -> list[str]:
        """Append *data*; return every line it completed (without the newline).

        Raises:
            FramingError: the pending partial line exceeds max_line_bytes.

        """
        self._buf.extend(data)
        lines: list[str] = []
        while True:
            idx = self._buf.find(b"\n")
            if idx == -1:
                break
            raw = bytes(self._buf[:idx])
            del self._buf[: idx + 1]
            lines.append(raw.decode("utf-8", errors="replace").rstrip("\r"))
        if len(self._buf) > self._max_line_bytes:
            raise FramingError(self._max_line_bytes)
        return lines

    def flush(self) -> str | None:
        """Return the trailing partial line (if any) and empty the buffer."""
        if not self._buf:
            return None
        raw = bytes(self._buf)
        self._buf.clear()
        return raw.decode("utf-8", errors="replace").rstrip("\r")


def _loads_object(line: str) -> dict[str, Any]:
    try:
        data = json.loads(line)
    except json.JSONDecodeError as e:
        raise MalformedFrameError(line, str(e)) from e
    if not isinstance(data, dict):
        raise MalformedFrameError(line, "not a JSON object")
    return data


def _error_text(error: Any) -> str:
    if isinstance(error, dict):
        return str(error.get("message") or error)
    return str(error)


def decode_ndjson_line(line: str) -> Frame:
    """Ollama /api/chat line: ``{"message": {"content": "..."}, "done": bool}``.

    ``done`` does not end the stream; connection close does.
    """
    if not line.strip():
        return NO_DELTA
    data = _loads_object(line)
    if data.get("error"):
        return Frame(FrameKind.ERROR, _error_text(data["error"]))
    message = data.get("message")
    if isinstance(message, dict):
        content = message.get("content")
        if isinstance(content, str) and content:
            return Frame(FrameKind.DELTA, content)
    return NO_DELTA


def decode_sse_line(line: str) -> Frame:
    """OpenAI-compatible line: ``data: {"choices": [{"delta": {"content": "..."}}]}`` or ``data: [DONE]``.

    Blank lines, ``event:`` lines and ``:`` comments carry nothing.
    """
    stripped = line.strip()
    if not stripped.startswith("data:"):
        return NO_DELTA
    payload = stripped[5:].strip()
    if payload == SSE_DONE:
        return Frame(FrameKind.DONE)
    if not payload:
        return NO_DELTA
    data = _loads_object(payload)
    if data.get("error"):
        return Frame(FrameKind.ERROR, _error_text(data["error"]))
    choices = data.get("choices")
    if not isinstance(choices, list) or not choices or not isinstance(choices[0], dict):
        return NO_DELTA
    delta = choices[0].get("delta")
    if not isinstance(delta, dict):
        return NO_DELTA
    content = delta.get("content")
    if isinstance(content, str) and content:
        return Frame(FrameKind.DELTA, content)
    return NO_DELTA


class StreamSession:
    """One outgoing message's stream: private buffer plus the lifecycle state.

    Once ENDED or ERRORED, every further call returns no events.
    """

    def __init__(
        self,
        decode_line: Callable[[str], Frame],
        max_line_bytes: int = DEFAULT_MAX_LINE_BYTES,
        name: str = "stream",
    ) -> None:
        self._decode_line = decode_line
        self._buffer = LineBuffer(max_line_bytes)
        self._name = name
        self.state = StreamState.IDLE

    @classmethod
    def ndjson(cls, max_line_bytes: int = DEFAULT_MAX_LINE_BYTES) -> "StreamSession":
        return cls(decode_ndjson_line, max_line_bytes, name="ndjson")

    @classmethod
    def sse(cls, max_line_bytes: int = DEFAULT_MAX_LINE_BYTES) -> "StreamSession":
        return cls(decode_sse_line, max_line_bytes, name="sse")

    @property
    def finished(self) -> bool:
        return self.state.is_terminal

    def feed(self, data: bytes) -> list[StreamEvent]:
        """Consume one network read."""
        if self.finished or not data:
            return []
        self.state = StreamState.STREAMING
        try:
            lines = self._buffer.feed(data)
        except FramingError as e:
            return self.fail(str(e))
        events: list[StreamEvent] = []
        for line in lines:
            events.extend(self._handle_line(line))
            if self.finished:
                break
        return events

    def close(self) -> list[StreamEvent]:
        """Connection closed: parse any trailing partial line, then end."""
        if self.finished:
            return []
        events: list[StreamEvent] = []
        tail = self._buffer.flush()
        if tail is not None:
            events.extend(self._handle_line(tail))
        if not self.finished:
            self.state = StreamState.ENDED
            events.append(StreamEvent.end())
        return events

    def fail(self, message: str) -> list[StreamEvent]:
        """Transport failure or non-2xx response."""
        if self.finished:
            return []
        self.state = StreamState.ERRORED
        self._buffer.flush()
        return [StreamEvent.error(message)]

    def _handle_line(self, line: str) -> list[StreamEvent]:
        try:
            frame = self._decode_line(line)
        except MalformedFrameError as e:
            logger.debug("Skipping malformed %s line: %s", self._name, e)
            return []
        if frame.kind is FrameKind.DELTA:
            return [StreamEvent.delta(frame.text)]
        if frame.kind is FrameKind.DONE:
            self.state = StreamState.ENDED
            self._buffer.flush()
            return [StreamEvent.end()]
        if frame.kind is FrameKind.ERROR:
            return self.fail(frame.text)
        return []


def status_error(label: str, status_code: int, body: str) -> TransportError:
    """TransportError for a non-2xx reply to a streaming request."""
    return TransportError(f"{label} error ({status_code}): {body[:200]}", status_code=status_code)


async def read_error_body(resp: httpx.Response, limit: int = 500) -> str:
    """Best-effort text of a non-2xx streaming response."""
    try:
        body = await resp.aread()
    except httpx.HTTPError:
        return ""
    return body.decode("utf-8", errors="replace")[:limit]


async def relay_response(
    session: StreamSession,
    resp: httpx.Response,
    label: str,
) -> AsyncIterator[StreamEvent]:
    """Drive *session* from an open streaming response until a terminal event.

    A non-2xx status errors the session before any content is read.
    """
    if not resp.is_success:
        err = status_error(label, resp.status_code, await read_error_body(resp))
        logger.error("%s rejected stream with status %s: %s", label, err.status_code, err)
        for event in session.fail(str(err)):
            yield event
        return

    try:
        async for data in resp.aiter_bytes():
            for event in session.feed(data):
                yield event
            if session.finished:
                return
    except httpx.HTTPError as e:
        logger.warning("%s stream interrupted: %s", label, e)
        for event in session.fail(f"{label} connection failed: {e}"):
            yield event
        return

    for event in session.close():
        yield event
