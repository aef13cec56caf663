"""
Chat Domain Models - Dataclasses for internal data flow.

Immutable records handed across the persistence boundary so the pipeline
never touches ODM documents directly.
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional


class MessageRole(str, Enum):
    """Message role enumeration"""
    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"


class MediaState(str, Enum):
    """Processing state of an uploaded media item"""
    PENDING = "pending"
    READY = "ready"
    FAILED = "failed"

    @classmethod
    def from_provider_status(cls, status: Optional[str]) -> "MediaState":
        """Normalize provider status strings (PARSE, UNPARSE, FAIL...)."""
        normalized = (status or "").strip().upper()
        if normalized in ("PARSE", "PARSED", "READY", "SUCCESS"):
            return cls.READY
        if normalized in ("FAIL", "FAILED", "PARSE_ERROR", "ERROR"):
            return cls.FAILED
        return cls.PENDING


class MediaKind(str, Enum):
    VIDEO = "video"
    IMAGE = "image"


@dataclass(frozen=True)
class ConversationRecord:
    """Read view of a conversation."""
    id: str
    user_id: str
    title: str
    created_at: datetime
    updated_at: datetime


@dataclass(frozen=True)
class MessageRecord:
    """Read view of a persisted message."""
    id: str
    conversation_id: str
    role: MessageRole
    content: str
    created_at: datetime


@dataclass(frozen=True)
class MediaRef:
    """
    A media item previously uploaded to a conversation.

    `media_id` is the provider's stable identifier (video number) and is what
    analysis tools receive as an implicit argument.
    """
    id: str
    media_id: str
    name: str
    state: MediaState
    kind: MediaKind = MediaKind.VIDEO
    url: Optional[str] = None
    created_at: Optional[datetime] = None

    @property
    def is_ready(self) -> bool:
        return self.state == MediaState.READY
