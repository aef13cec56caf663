"""
Conversation Store - persistence boundary for conversations, messages and media.

The chat pipeline depends on the abstract ``ConversationStore``; the Beanie
implementation is the production backend.
"""

from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import List, Optional

import structlog

from ..core.exceptions import DatabaseError
from ..domain.chat import (
    ConversationRecord,
    MediaKind,
    MediaRef,
    MediaState,
    MessageRecord,
    MessageRole,
)
from ..models.chat import ChatMessage, Conversation, ConversationMedia

logger = structlog.get_logger(__name__)


class ConversationStore(ABC):
    """Persistence contract used by the chat pipeline."""

    # ------------------------------------------------------------------
    # Conversations
    # ------------------------------------------------------------------

    @abstractmethod
    async def create_conversation(self, user_id: str, title: Optional[str] = None) -> ConversationRecord:
        ...

    @abstractmethod
    async def list_conversations(self, user_id: str, limit: int = 50, offset: int = 0) -> List[ConversationRecord]:
        ...

    @abstractmethod
    async def find_conversation(self, conversation_id: str, user_id: str) -> Optional[ConversationRecord]:
        """Return the conversation only when it exists and is owned by ``user_id``."""

    @abstractmethod
    async def delete_conversation(self, conversation_id: str, user_id: str) -> bool:
        ...

    @abstractmethod
    async def touch_conversation(self, conversation_id: str) -> None:
        """Bump ``updated_at`` to now."""

    @abstractmethod
    async def set_title(self, conversation_id: str, title: str) -> None:
        ...

    # ------------------------------------------------------------------
    # Messages
    # ------------------------------------------------------------------

    @abstractmethod
    async def insert_message(self, conversation_id: str, role: MessageRole, content: str) -> MessageRecord:
        ...

    @abstractmethod
    async def list_messages(self, conversation_id: str) -> List[MessageRecord]:
        """All messages of a conversation, ascending by creation time."""

    # ------------------------------------------------------------------
    # Media
    # ------------------------------------------------------------------

    @abstractmethod
    async def list_media_for_conversation(self, conversation_id: str) -> List[MediaRef]:
        """Media of a conversation, most recent first."""

    @abstractmethod
    async def add_media(
        self,
        conversation_id: str,
        media_id: str,
        name: str,
        state: MediaState = MediaState.PENDING,
        kind: MediaKind = MediaKind.VIDEO,
        url: Optional[str] = None,
    ) -> MediaRef:
        ...

    @abstractmethod
    async def update_media_state(self, media_id: str, state: MediaState) -> int:
        """Update every media row carrying ``media_id``; returns the number updated."""


# ============================================================================
# Beanie implementation
# ============================================================================

def _conversation_record(doc: Conversation) -> ConversationRecord:
    return ConversationRecord(
        id=doc.id,
        user_id=doc.user_id,
        title=doc.title,
        created_at=doc.created_at,
        updated_at=doc.updated_at,
    )


def _message_record(doc: ChatMessage) -> MessageRecord:
    return MessageRecord(
        id=doc.id,
        conversation_id=doc.conversation_id,
        role=doc.role,
        content=doc.content,
        created_at=doc.created_at,
    )


def _media_ref(doc: ConversationMedia) -> MediaRef:
    return MediaRef(
        id=doc.id,
        media_id=doc.media_id,
        name=doc.name,
        state=doc.state,
        kind=doc.kind,
        url=doc.url,
        created_at=doc.created_at,
    )


class BeanieConversationStore(ConversationStore):
    """MongoDB-backed store using the Beanie document models."""

    async def create_conversation(self, user_id: str, title: Optional[str] = None) -> ConversationRecord:
        conversation = Conversation(user_id=user_id, title=title or "New Chat")
        try:
            await conversation.insert()
        except Exception as e:
            logger.error("Failed to create conversation", user_id=user_id, error=str(e))
            raise DatabaseError("Failed to create conversation") from e

        logger.info("Created conversation", conversation_id=conversation.id, user_id=user_id)
        return _conversation_record(conversation)

    async def list_conversations(self, user_id: str, limit: int = 50, offset: int = 0) -> List[ConversationRecord]:
        docs = await Conversation.find(
            Conversation.user_id == user_id
        ).sort(-Conversation.updated_at).skip(offset).limit(limit).to_list()
        return [_conversation_record(doc) for doc in docs]

    async def find_conversation(self, conversation_id: str, user_id: str) -> Optional[ConversationRecord]:
        doc = await Conversation.find_one(
            Conversation.id == conversation_id,
            Conversation.user_id == user_id,
        )
        return _conversation_record(doc) if doc else None

    async def delete_conversation(self, conversation_id: str, user_id: str) -> bool:
        doc = await Conversation.find_one(
            Conversation.id == conversation_id,
            Conversation.user_id == user_id,
        )
        if not doc:
            return False

        await ChatMessage.find(ChatMessage.conversation_id == conversation_id).delete()
        await ConversationMedia.find(ConversationMedia.conversation_id == conversation_id).delete()
        await doc.delete()

        logger.info("Deleted conversation", conversation_id=conversation_id, user_id=user_id)
        return True

    async def touch_conversation(self, conversation_id: str) -> None:
        await Conversation.find_one(Conversation.id == conversation_id).update(
            {"$set": {"updated_at": datetime.now(timezone.utc)}}
        )

    async def set_title(self, conversation_id: str, title: str) -> None:
        await Conversation.find_one(Conversation.id == conversation_id).update(
            {"$set": {"title": title}}
        )

    async def insert_message(self, conversation_id: str, role: MessageRole, content: str) -> MessageRecord:
        message = ChatMessage(conversation_id=conversation_id, role=role, content=content)
        await message.insert()
        return _message_record(message)

    async def list_messages(self, conversation_id: str) -> List[MessageRecord]:
        docs = await ChatMessage.find(
            ChatMessage.conversation_id == conversation_id
        ).sort(ChatMessage.created_at).to_list()
        return [_message_record(doc) for doc in docs]

    async def list_media_for_conversation(self, conversation_id: str) -> List[MediaRef]:
        docs = await ConversationMedia.find(
            ConversationMedia.conversation_id == conversation_id
        ).sort(-ConversationMedia.created_at).to_list()
        return [_media_ref(doc) for doc in docs]

    async def add_media(
        self,
        conversation_id: str,
        media_id: str,
        name: str,
        state: MediaState = MediaState.PENDING,
        kind: MediaKind = MediaKind.VIDEO,
        url: Optional[str] = None,
    ) -> MediaRef:
        media = ConversationMedia(
            conversation_id=conversation_id,
            media_id=media_id,
            name=name,
            state=state,
            kind=kind,
            url=url,
        )
        await media.insert()
        logger.info(
            "Registered conversation media",
            conversation_id=conversation_id,
            media_id=media_id,
            state=state.value,
        )
        return _media_ref(media)

    async def update_media_state(self, media_id: str, state: MediaState) -> int:
        result = await ConversationMedia.find(
            ConversationMedia.media_id == media_id
        ).update({"$set": {"state": state.value}})
        modified = getattr(result, "modified_count", 0) if result is not None else 0
        logger.info("Updated media state", media_id=media_id, state=state.value, modified=modified)
        return modified


def get_conversation_store() -> ConversationStore:
    """FastAPI dependency returning the production store."""
    return BeanieConversationStore()
