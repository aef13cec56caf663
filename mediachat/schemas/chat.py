"""
Chat API schemas
"""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..domain.chat import ConversationRecord, MediaKind, MediaRef, MediaState, MessageRecord, MessageRole


class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class SendMessageRequest(_CamelModel):
    """Body of ``POST /api/chat/send``"""

    conversation_id: str = Field(..., alias="conversationId", min_length=1, description="Target conversation ID")
    content: str = Field(..., min_length=1, max_length=10000, description="User message")

    @field_validator("content")
    @classmethod
    def content_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Message content cannot be empty")
        return v


class ConversationCreate(BaseModel):
    """Conversation creation request"""
    title: Optional[str] = Field(None, max_length=200, description="Optional title")


class ConversationResponse(_CamelModel):
    """Conversation summary"""

    id: str
    title: str
    created_at: datetime = Field(..., alias="createdAt")
    updated_at: datetime = Field(..., alias="updatedAt")

    @classmethod
    def from_record(cls, record: ConversationRecord) -> "ConversationResponse":
        return cls(
            id=record.id,
            title=record.title,
            created_at=record.created_at,
            updated_at=record.updated_at,
        )


class MessageResponse(_CamelModel):
    """Persisted chat message"""

    id: str
    role: MessageRole
    content: str
    created_at: datetime = Field(..., alias="createdAt")

    @classmethod
    def from_record(cls, record: MessageRecord) -> "MessageResponse":
        return cls(id=record.id, role=record.role, content=record.content, created_at=record.created_at)


class MediaResponse(_CamelModel):
    """Media item registered to a conversation"""

    id: str
    media_id: str = Field(..., alias="mediaId")
    name: str
    state: MediaState
    kind: MediaKind
    url: Optional[str] = None

    @classmethod
    def from_ref(cls, ref: MediaRef) -> "MediaResponse":
        return cls(id=ref.id, media_id=ref.media_id, name=ref.name, state=ref.state, kind=ref.kind, url=ref.url)


class ConversationDetailResponse(ConversationResponse):
    """Conversation with its full history"""

    messages: List[MessageResponse] = Field(default_factory=list)
    media: List[MediaResponse] = Field(default_factory=list)


class ConversationListResponse(BaseModel):
    """Conversations of the current user, most recently updated first"""
    conversations: List[ConversationResponse] = Field(default_factory=list)


class MediaCallbackRequest(_CamelModel):
    """Parse-status notification sent by the video-understanding provider"""

    video_no: str = Field(..., alias="videoNo", min_length=1)
    status: str = Field(..., description="Provider status (PARSE, UNPARSE, FAIL...)")
