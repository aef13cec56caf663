"""
Message Endpoints - HTTP endpoints for chat message operations.

Endpoints:
    POST /chat/send - Send a chat message, streamed back as SSE
"""

import structlog
from fastapi import APIRouter, Depends
from sse_starlette.sse import EventSourceResponse

from ....core.auth import get_user_id
from ....core.config import Settings, get_settings
from ....schemas.chat import SendMessageRequest
from ....services.conversation_store import ConversationStore, get_conversation_store
from ..handlers import StreamingHandler

logger = structlog.get_logger(__name__)
router = APIRouter()

NO_STORE_HEADERS = {
    "Cache-Control": "no-store, no-cache, must-revalidate, max-age=0",
    "Pragma": "no-cache",
    "Expires": "0",
    "X-Accel-Buffering": "no",
}


@router.post("/chat/send", tags=["chat"])
async def send_message(
    request: SendMessageRequest,
    user_id: str = Depends(get_user_id),
    settings: Settings = Depends(get_settings),
    store: ConversationStore = Depends(get_conversation_store),
) -> EventSourceResponse:
    """
    Send a message and stream the assistant response.

    Each SSE ``data`` field is a JSON event ``{type, content?, messageId?,
    toolName?}``; the stream always ends with one ``done`` event.
    """
    logger.info(
        "Chat send request",
        conversation_id=request.conversation_id,
        user_id=user_id,
        message_chars=len(request.content),
    )

    handler = StreamingHandler(settings, store)
    return EventSourceResponse(
        handler.handle_send(request, user_id),
        headers=NO_STORE_HEADERS,
    )
