"""
Conversation Endpoints - conversation CRUD.

Endpoints:
    POST   /chat/conversations       - Create conversation
    GET    /chat/conversations       - List conversations
    GET    /chat/conversations/{id}  - Conversation with messages and media
    DELETE /chat/conversations/{id}  - Delete conversation
"""

import structlog
from fastapi import APIRouter, Depends, Query, Response, status

from ....core.auth import get_user_id
from ....core.exceptions import NotFoundError
from ....schemas.chat import (
    ConversationCreate,
    ConversationDetailResponse,
    ConversationListResponse,
    ConversationResponse,
    MediaResponse,
    MessageResponse,
)
from ....services.conversation_store import ConversationStore, get_conversation_store

logger = structlog.get_logger(__name__)
router = APIRouter()


@router.post(
    "/chat/conversations",
    response_model=ConversationResponse,
    status_code=status.HTTP_201_CREATED,
    tags=["conversations"],
)
async def create_conversation(
    body: ConversationCreate,
    user_id: str = Depends(get_user_id),
    store: ConversationStore = Depends(get_conversation_store),
) -> ConversationResponse:
    record = await store.create_conversation(user_id, body.title)
    return ConversationResponse.from_record(record)


@router.get("/chat/conversations", response_model=ConversationListResponse, tags=["conversations"])
async def list_conversations(
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    user_id: str = Depends(get_user_id),
    store: ConversationStore = Depends(get_conversation_store),
) -> ConversationListResponse:
    records = await store.list_conversations(user_id, limit=limit, offset=offset)
    return ConversationListResponse(conversations=[ConversationResponse.from_record(r) for r in records])


@router.get(
    "/chat/conversations/{conversation_id}",
    response_model=ConversationDetailResponse,
    tags=["conversations"],
)
async def get_conversation(
    conversation_id: str,
    user_id: str = Depends(get_user_id),
    store: ConversationStore = Depends(get_conversation_store),
) -> ConversationDetailResponse:
    record = await store.find_conversation(conversation_id, user_id)
    if record is None:
        raise NotFoundError("Conversation not found")

    messages = await store.list_messages(conversation_id)
    media = await store.list_media_for_conversation(conversation_id)

    return ConversationDetailResponse(
        **ConversationResponse.from_record(record).model_dump(),
        messages=[MessageResponse.from_record(m) for m in messages],
        media=[MediaResponse.from_ref(m) for m in media],
    )


@router.delete(
    "/chat/conversations/{conversation_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    tags=["conversations"],
)
async def delete_conversation(
    conversation_id: str,
    user_id: str = Depends(get_user_id),
    store: ConversationStore = Depends(get_conversation_store),
) -> Response:
    deleted = await store.delete_conversation(conversation_id, user_id)
    if not deleted:
        raise NotFoundError("Conversation not found")
    return Response(status_code=status.HTTP_204_NO_CONTENT)
