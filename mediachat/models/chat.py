"""
Chat document models
"""

from datetime import datetime, timezone
from typing import Optional
from uuid import uuid4

from beanie import Document, Indexed
from pydantic import Field

from ..domain.chat import MediaKind, MediaState, MessageRole


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Conversation(Document):
    """Conversation document model"""

    id: str = Field(default_factory=lambda: str(uuid4()), alias="_id")
    user_id: Indexed(str) = Field(..., description="Owner user ID")
    title: str = Field(default="New Chat", max_length=200, description="Conversation title")
    created_at: datetime = Field(default_factory=_utcnow, description="Creation timestamp")
    updated_at: datetime = Field(default_factory=_utcnow, description="Last activity timestamp")

    class Settings:
        name = "conversations"
        indexes = [
            "user_id",
            "updated_at",
            [("user_id", 1), ("updated_at", -1)],  # Conversation list, newest first
        ]

    def __str__(self) -> str:
        return f"Conversation(id={self.id}, user_id={self.user_id})"


class ChatMessage(Document):
    """Chat message document model"""

    id: str = Field(default_factory=lambda: str(uuid4()), alias="_id")
    conversation_id: Indexed(str) = Field(..., description="Conversation ID")
    role: MessageRole = Field(..., description="Message role")
    content: str = Field(..., description="Message content")
    created_at: datetime = Field(default_factory=_utcnow, description="Creation timestamp")

    class Settings:
        name = "messages"
        indexes = [
            "conversation_id",
            "created_at",
            [("conversation_id", 1), ("created_at", 1)],  # Compound index for chat history
        ]

    def __str__(self) -> str:
        return f"ChatMessage(id={self.id}, role={self.role}, conversation_id={self.conversation_id})"


class ConversationMedia(Document):
    """Media item uploaded to a video-understanding provider within a conversation"""

    id: str = Field(default_factory=lambda: str(uuid4()), alias="_id")
    conversation_id: Indexed(str) = Field(..., description="Conversation ID")
    media_id: Indexed(str) = Field(..., description="Provider media identifier (videoNo)")
    name: str = Field(default="", description="Display name")
    state: MediaState = Field(default=MediaState.PENDING, description="Processing state")
    kind: MediaKind = Field(default=MediaKind.VIDEO, description="Media kind")
    url: Optional[str] = Field(None, description="Source URL, when uploaded by URL")
    created_at: datetime = Field(default_factory=_utcnow, description="Registration timestamp")

    class Settings:
        name = "conversation_media"
        indexes = [
            [("conversation_id", 1), ("created_at", -1)],
        ]
