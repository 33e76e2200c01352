"""Chat use case - relays one chat turn from the chosen provider as unified events."""

import asyncio
import json
import logging
from collections.abc import AsyncIterator, Callable
from contextlib import suppress
from typing import TYPE_CHECKING

from ragrelay.application.chat.dto import ChatRequest
from ragrelay.domain.entities.stream_events import StreamEvent, StreamEventType
from ragrelay.domain.errors import RagRelayError
from ragrelay.domain.ports.llm import ApiProviderConfig, ChatStreamPort, LLMMessage
from ragrelay.domain.ports.rag import RagResult

if TYPE_CHECKING:
    from ragrelay.application.rag.use_case import RagUseCase

logger = logging.getLogger(__name__)

RAG_CONTEXT_HEADER = (
    "Use the following context snippets when answering. If relevant, cite the source paths."
)
SUPERSEDED_MESSAGE = "superseded"

ApiAdapterFactory = Callable[[ApiProviderConfig], ChatStreamPort]


def format_rag_context(results: list[RagResult]) -> str:
    """System message text listing retrieved snippets as numbered sources."""
    snippets = "\n\n".join(
        f"Source {i}: {r.source_path}\n{r.content}" for i, r in enumerate(results, start=1)
    )
    return f"{RAG_CONTEXT_HEADER}\n\n{snippets}"


async def _until_cancelled(
    events: AsyncIterator[StreamEvent],
    cancel: asyncio.Event,
) -> AsyncIterator[StreamEvent]:
    """Relay *events* until a terminal event, or until *cancel* is set.

    Cancellation interrupts a pending network read, closes the provider
    stream and ends with an ``error("superseded")`` event. If the consumer
    itself is cancelled (client disconnect), the pending read is cancelled
    before the provider stream is closed.
    """
    cancel_wait = asyncio.ensure_future(cancel.wait())
    next_event: asyncio.Future | None = None
    try:
        while True:
            next_event = asyncio.ensure_future(events.__anext__())
            done, _ = await asyncio.wait(
                {next_event, cancel_wait},
                return_when=asyncio.FIRST_COMPLETED,
            )
            if next_event not in done:
                await _discard(next_event)
                yield StreamEvent.error(SUPERSEDED_MESSAGE)
                return
            try:
                event = next_event.result()
            except StopAsyncIteration:
                return
            yield event
            if event.is_terminal:
                return
    finally:
        cancel_wait.cancel()
        if next_event is not None and not next_event.done():
            # aclose() on a generator still running in another task raises RuntimeError
            await _discard(next_event)
        aclose = getattr(events, "aclose", None)
        if aclose is not None:
            await aclose()


async def _discard(pending: asyncio.Future) -> None:
    """Cancel a pending provider read and wait until it has unwound."""
    pending.cancel()
    with suppress(asyncio.CancelledError, StopAsyncIteration):
        await pending


class ChatUseCase:
    """Orchestrates one chat turn: optional RAG context + provider stream.

    At most one stream per conversation id: a new turn for the same
    conversation supersedes (cancels) the one in flight.
    """

    def __init__(
        self,
        ollama: ChatStreamPort,
        api_adapter_factory: ApiAdapterFactory,
        rag: "RagUseCase | None" = None,
    ) -> None:
        self._ollama = ollama
        self._api_adapter_factory = api_adapter_factory
        self._rag = rag
        self._active: dict[str, asyncio.Event] = {}

    def active_conversations(self) -> list[str]:
        return list(self._active)

    async def execute_stream(self, request: ChatRequest) -> AsyncIterator[StreamEvent]:
        """Stream one turn: optional ``sources`` event, deltas, then one end or error."""
        cancel = asyncio.Event()
        conv_id = request.conversation_id
        if conv_id:
            previous = self._active.get(conv_id)
            if previous is not None:
                logger.info("Superseding active stream for conversation=%s", conv_id)
                previous.set()
            self._active[conv_id] = cancel

        try:
            rag_results = await self._retrieve_context(request)
            if rag_results:
                payload = json.dumps([r.model_dump() for r in rag_results])
                yield StreamEvent(kind=StreamEventType.SOURCES, data=payload)

            messages = self._build_messages(request, rag_results)
            if request.provider is not None:
                adapter = self._api_adapter_factory(request.provider)
                stream = adapter.stream_chat(messages, request.provider.model, request.options)
            else:
                stream = self._ollama.stream_chat(messages, request.model or "", request.options)

            async for event in _until_cancelled(stream, cancel):
                yield event
        finally:
            if conv_id and self._active.get(conv_id) is cancel:
                del self._active[conv_id]

    async def _retrieve_context(self, request: ChatRequest) -> list[RagResult]:
        """Query the RAG index for this turn. Failures drop the context, never the turn."""
        if request.rag is None or self._rag is None:
            return []
        try:
            return await self._rag.query(
                request.message,
                top_k=request.rag.top_k,
                embedding_model=request.rag.embedding_model,
            )
        except RagRelayError as e:
            logger.warning("RAG query failed, continuing without context: %s", e)
            return []

    @staticmethod
    def _build_messages(request: ChatRequest, rag_results: list[RagResult]) -> list[LLMMessage]:
        """System prompt, RAG context, history, then the current user message."""
        messages: list[LLMMessage] = []
        system_prompt = (request.system_prompt or "").strip()
        if system_prompt:
            messages.append(LLMMessage(role="system", content=system_prompt))
        if rag_results:
            messages.append(LLMMessage(role="system", content=format_rag_context(rag_results)))
        messages.extend(request.history or [])
        messages.append(LLMMessage(role="user", content=request.message, images=request.images or None))
        return messages
