"""Ollama adapter - relays /api/chat NDJSON streams as unified events."""

import logging
from typing import Any, AsyncIterator

import httpx
from ollama import AsyncClient

from ragrelay.domain.entities.stream_events import StreamEvent
from ragrelay.domain.ports.config import OllamaConfig
from ragrelay.domain.ports.llm import ChatOptions, LLMMessage
from ragrelay.infrastructure.llm.stream_parser import (
    DEFAULT_MAX_LINE_BYTES,
    StreamSession,
    relay_response,
)

logger = logging.getLogger(__name__)

# Таймаут подключения: при недоступности быстрый фейл
DEFAULT_CONNECT_TIMEOUT = 5.0


class OllamaAdapter:
    """Ollama implementation of ChatStreamPort.

    The stream body is parsed here byte by byte (not via the ollama client) so
    framing is under our control; the ollama client is used for model listing.
    """

    def __init__(
        self,
        config: OllamaConfig,
        max_line_bytes: int = DEFAULT_MAX_LINE_BYTES,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._config = config
        self._host = config.host.rstrip("/")
        self._max_line_bytes = max_line_bytes
        self._transport = transport
        # connect: быстрый фейл при недоступности хоста; read: полный таймаут на ответ
        read_timeout = float(config.timeout) if config.timeout else 120.0
        self._timeout = httpx.Timeout(
            connect=DEFAULT_CONNECT_TIMEOUT,
            read=read_timeout,
            write=read_timeout,
            pool=30.0,
        )
        self._client: httpx.AsyncClient | None = None
        self._ollama = AsyncClient(host=config.host, timeout=self._timeout)

    def _get_client(self) -> httpx.AsyncClient:
        """Get or create persistent async HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(timeout=self._timeout, transport=self._transport)
        return self._client

    async def close(self) -> None:
        """Close the underlying HTTP client (call during app shutdown)."""
        if self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    @staticmethod
    def _chat_body(
        model: str,
        messages: list[LLMMessage],
        options: ChatOptions | None,
    ) -> dict[str, Any]:
        """Build request body; ``options`` only when at least one is set."""
        body: dict[str, Any] = {
            "model": model,
            "messages": [m.model_dump(exclude_none=True) for m in messages],
            "stream": True,
        }
        ollama_options = options.to_ollama_options() if options else {}
        if ollama_options:
            body["options"] = ollama_options
        return body

    async def stream_chat(
        self,
        messages: list[LLMMessage],
        model: str,
        options: ChatOptions | None = None,
    ) -> AsyncIterator[StreamEvent]:
        """Stream one chat turn. Yields deltas then exactly one end or error."""
        session = StreamSession.ndjson(self._max_line_bytes)
        if not model:
            for event in session.fail("Missing Ollama model."):
                yield event
            return
        body = self._chat_body(model, messages, options)
        client = self._get_client()
        try:
            async with client.stream("POST", f"{self._host}/api/chat", json=body) as resp:
                async for event in relay_response(session, resp, "Ollama API"):
                    yield event
        except httpx.HTTPError as e:
            logger.warning("Ollama chat request failed: %s", e)
            for event in session.fail(f"Ollama API unreachable: {e}"):
                yield event

    async def is_available(self) -> bool:
        """Check if Ollama server is available."""
        try:
            async with httpx.AsyncClient(timeout=5.0, transport=self._transport) as client:
                resp = await client.get(f"{self._host}/api/tags")
                return resp.status_code == 200
        except httpx.HTTPError as e:
            logger.debug("Ollama availability check failed: %s", e)
            return False

    async def list_models(self) -> list[str]:
        """List available models from Ollama."""
        try:
            resp = await self._ollama.list()
            if not resp.models:
                return []
            # ollama package: Model has 'model' attr (newer) or 'name' (legacy)
            names = [getattr(m, "model", None) or getattr(m, "name", None) for m in resp.models]
            return [n for n in names if n]
        except (httpx.ConnectTimeout, httpx.ConnectError, ConnectionError) as e:
            logger.debug("Ollama list_models failed (unreachable): %s", e)
            return []
        except Exception as e:
            logger.warning("Ollama list_models failed: %s", e, exc_info=True)
            return []
