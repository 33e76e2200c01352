"""Chat DTOs."""

from pydantic import BaseModel, Field

from ragrelay.domain.ports.llm import ApiProviderConfig, ChatOptions, LLMMessage


class RagChatSettings(BaseModel):
    """Retrieve context for this turn from the RAG index."""

    top_k: int | None = Field(None, ge=1, le=20)
    embedding_model: str | None = Field(None, max_length=255)


class ChatRequest(BaseModel):
    """Request for one streamed chat turn.

    Contract: history = previous turns only. The current user message is in
    ``message``; the relay appends it when building provider messages.
    ``provider`` set = OpenAI-compatible API; unset = local Ollama with ``model``.
    """

    message: str = Field(..., min_length=1, max_length=100_000)
    history: list[LLMMessage] | None = None
    images: list[str] | None = Field(None, max_length=16)  # base64 images attached to this message
    conversation_id: str | None = Field(None, max_length=100)
    model: str | None = Field(None, max_length=255)
    provider: ApiProviderConfig | None = None
    system_prompt: str | None = Field(None, max_length=20_000)
    options: ChatOptions | None = None
    rag: RagChatSettings | None = None
