"""Chat API routes."""

import logging

from fastapi import APIRouter, Depends, Request
from sse_starlette.sse import EventSourceResponse

from ragrelay.api.dependencies import default_rate_limit, get_chat_use_case, limiter
from ragrelay.application.chat.dto import ChatRequest
from ragrelay.application.chat.use_case import ChatUseCase

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/chat", tags=["chat"])


@router.post("/stream")
@limiter.limit(default_rate_limit)
async def chat_stream(
    request: Request,
    chat_request: ChatRequest,
    use_case: ChatUseCase = Depends(get_chat_use_case),
) -> EventSourceResponse:
    """Relay one chat turn via SSE: ``sources``?, ``delta``*, then ``end`` or ``error``."""

    async def event_generator():
        try:
            async for event in use_case.execute_stream(chat_request):
                yield {"event": event.kind.value, "data": event.data}
        except Exception:
            logger.exception("Chat stream failed for conversation=%s", chat_request.conversation_id)
            yield {"event": "error", "data": "Stream failed"}

    return EventSourceResponse(event_generator())
