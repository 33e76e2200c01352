"""OpenAI-compatible adapter - Groq, OpenRouter, LM Studio, vLLM and friends."""

import logging
from typing import Any, AsyncIterator

import httpx

from ragrelay.domain.entities.stream_events import StreamEvent
from ragrelay.domain.ports.llm import ApiProviderConfig, ChatOptions, LLMMessage
from ragrelay.infrastructure.llm.stream_parser import (
    DEFAULT_MAX_LINE_BYTES,
    StreamSession,
    relay_response,
)

logger = logging.getLogger(__name__)


def models_url_for(base_url: str) -> str:
    """Derive the models endpoint from a chat-completions URL.

    https://api.groq.com/openai/v1/chat/completions -> https://api.groq.com/openai/v1/models
    """
    url = base_url.replace("/chat/completions", "/models")
    if not url.endswith("/models"):
        url = url + ("models" if url.endswith("/") else "/models")
    return url


def _to_openai_message(message: LLMMessage) -> dict[str, Any]:
    """Images become content parts: text first, then one image_url per image."""
    if not message.images:
        return {"role": message.role, "content": message.content}
    parts: list[dict[str, Any]] = []
    if message.content.strip():
        parts.append({"type": "text", "text": message.content})
    for image in message.images:
        url = image if image.startswith("data:") else f"data:image/png;base64,{image}"
        parts.append({"type": "image_url", "image_url": {"url": url}})
    return {"role": message.role, "content": parts}


class OpenAICompatibleAdapter:
    """Implements ChatStreamPort by POSTing to the provider's chat-completions URL.

    One adapter per provider config; the URL is used as given.
    """

    def __init__(
        self,
        provider: ApiProviderConfig,
        timeout: float = 120.0,
        max_line_bytes: int = DEFAULT_MAX_LINE_BYTES,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize with provider config."""
        self._provider = provider
        self._timeout = timeout
        self._max_line_bytes = max_line_bytes
        self._transport = transport
        self._headers = {"Content-Type": "application/json"}
        if provider.api_key:
            self._headers["Authorization"] = f"Bearer {provider.api_key}"

    def _chat_body(
        self,
        model: str,
        messages: list[LLMMessage],
        options: ChatOptions | None,
    ) -> dict[str, Any]:
        """Build request body; sampling fields only when set."""
        body: dict[str, Any] = {
            "model": model,
            "messages": [_to_openai_message(m) for m in messages],
            "stream": True,
        }
        if options:
            body.update(options.to_openai_fields())
        return body

    async def stream_chat(
        self,
        messages: list[LLMMessage],
        model: str | None = None,
        options: ChatOptions | None = None,
    ) -> AsyncIterator[StreamEvent]:
        """Stream one chat turn. Yields deltas then exactly one end or error."""
        session = StreamSession.sse(self._max_line_bytes)
        body = self._chat_body(model or self._provider.model, messages, options)
        try:
            async with httpx.AsyncClient(
                timeout=self._timeout,
                headers=self._headers,
                transport=self._transport,
            ) as client:
                async with client.stream("POST", self._provider.base_url, json=body) as resp:
                    async for event in relay_response(session, resp, "API"):
                        yield event
        except httpx.HTTPError as e:
            logger.warning("API chat request failed: %s", e)
            for event in session.fail(f"API unreachable: {e}"):
                yield event

    async def list_models(self) -> list[str]:
        """List model IDs from the provider's /models endpoint."""
        url = models_url_for(self._provider.base_url)
        try:
            async with httpx.AsyncClient(
                timeout=10.0,
                headers=self._headers,
                transport=self._transport,
            ) as client:
                resp = await client.get(url)
                resp.raise_for_status()
                data = resp.json()
        except (httpx.ConnectTimeout, httpx.ConnectError, httpx.ReadTimeout, OSError) as e:
            logger.debug("API list_models failed (connection): %s", e)
            return []
        except httpx.HTTPError as e:
            logger.debug("API list_models failed (HTTP): %s", e)
            return []
        except ValueError as e:
            logger.debug("API list_models returned invalid JSON: %s", e)
            return []
        models = data.get("data", []) if isinstance(data, dict) else []
        return [m.get("id", "") for m in models if isinstance(m, dict) and m.get("id")]
