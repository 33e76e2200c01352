"""LLM Port - chat messages, request options and the streaming interface."""

from typing import Any, AsyncIterator, Protocol

from pydantic import BaseModel, Field

from ragrelay.domain.entities.stream_events import StreamEvent


class LLMMessage(BaseModel):
    """Single message in a conversation."""

    role: str  # "system" | "user" | "assistant"
    content: str
    images: list[str] | None = None  # base64 payloads (Ollama style)


class ChatOptions(BaseModel):
    """Sampling options. None = provider default, omitted from the request."""

    temperature: float | None = Field(None, ge=0.0, le=2.0)
    max_tokens: int | None = Field(None, ge=1)
    top_p: float | None = Field(None, ge=0.0, le=1.0)
    seed: int | None = None
    stop_sequences: list[str] | None = None

    def to_ollama_options(self) -> dict[str, Any]:
        """Map to Ollama's ``options`` object (num_predict, top_p, stop)."""
        opts: dict[str, Any] = {}
        if self.temperature is not None:
            opts["temperature"] = self.temperature
        if self.max_tokens is not None:
            opts["num_predict"] = self.max_tokens
        if self.top_p is not None:
            opts["top_p"] = self.top_p
        if self.seed is not None:
            opts["seed"] = self.seed
        if self.stop_sequences:
            opts["stop"] = list(self.stop_sequences)
        return opts

    def to_openai_fields(self) -> dict[str, Any]:
        """Map to top-level OpenAI chat-completions fields."""
        fields: dict[str, Any] = {}
        if self.temperature is not None:
            fields["temperature"] = self.temperature
        if self.max_tokens is not None:
            fields["max_tokens"] = self.max_tokens
        if self.top_p is not None:
            fields["top_p"] = self.top_p
        if self.seed is not None:
            fields["seed"] = self.seed
        if self.stop_sequences:
            fields["stop"] = list(self.stop_sequences)
        return fields


class ApiProviderConfig(BaseModel):
    """An OpenAI-compatible provider chosen by the caller for one turn."""

    base_url: str = Field(..., min_length=1)  # full chat-completions URL
    api_key: str = ""
    model: str = Field(..., min_length=1)


class ChatStreamPort(Protocol):
    """A provider that relays one chat turn as a unified event stream."""

    def stream_chat(
        self,
        messages: list[LLMMessage],
        model: str,
        options: ChatOptions | None = None,
    ) -> AsyncIterator[StreamEvent]:
        """Yield delta events then exactly one end or error event."""
        ...

    async def list_models(self) -> list[str]:
        """List available models."""
        ...
