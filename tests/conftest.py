"""
Pytest configuration and shared fixtures.

Environment defaults are set before any ``mediachat`` import so the cached
settings and the module-level app can be constructed without a .env file.
"""

import os

os.environ.setdefault("MONGODB_URL", "mongodb://localhost:27017/mediachat_test")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key-minimum-32-characters")
os.environ.setdefault("OPENROUTER_API_KEY", "sk-or-test-key")
os.environ.setdefault("RUNWARE_API_KEY", "runware-test-key")
os.environ.setdefault("MEMORIES_API_KEY", "memories-test-key")

import itertools
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional
from uuid import uuid4

import pytest

from mediachat.core.config import Settings
from mediachat.domain.chat import (
    ConversationRecord,
    MediaKind,
    MediaRef,
    MediaState,
    MessageRecord,
    MessageRole,
)
from mediachat.services.conversation_store import ConversationStore


class InMemoryConversationStore(ConversationStore):
    """ConversationStore fake that records every write."""

    def __init__(self):
        self.conversations: Dict[str, ConversationRecord] = {}
        self.messages: List[MessageRecord] = []
        self.media: List[MediaRef] = []
        self.media_owner: Dict[str, str] = {}
        self.touch_count = 0
        self.titles: List[str] = []
        self._clock = itertools.count()
        self._epoch = datetime(2024, 1, 1, tzinfo=timezone.utc)

    def _now(self) -> datetime:
        # strictly increasing timestamps keep ordering deterministic
        return self._epoch + timedelta(milliseconds=next(self._clock))

    def seed_conversation(self, user_id: str, conversation_id: Optional[str] = None, title: str = "New Chat") -> ConversationRecord:
        now = self._now()
        record = ConversationRecord(
            id=conversation_id or str(uuid4()),
            user_id=user_id,
            title=title,
            created_at=now,
            updated_at=now,
        )
        self.conversations[record.id] = record
        return record

    def seed_message(self, conversation_id: str, role: MessageRole, content: str) -> MessageRecord:
        record = MessageRecord(
            id=str(uuid4()),
            conversation_id=conversation_id,
            role=role,
            content=content,
            created_at=self._now(),
        )
        self.messages.append(record)
        return record

    def messages_for(self, conversation_id: str, role: Optional[MessageRole] = None) -> List[MessageRecord]:
        return [
            m for m in self.messages
            if m.conversation_id == conversation_id and (role is None or m.role == role)
        ]

    # ConversationStore -----------------------------------------------------

    async def create_conversation(self, user_id: str, title: Optional[str] = None) -> ConversationRecord:
        return self.seed_conversation(user_id, title=title or "New Chat")

    async def list_conversations(self, user_id: str, limit: int = 50, offset: int = 0) -> List[ConversationRecord]:
        owned = [c for c in self.conversations.values() if c.user_id == user_id]
        owned.sort(key=lambda c: c.updated_at, reverse=True)
        return owned[offset:offset + limit]

    async def find_conversation(self, conversation_id: str, user_id: str) -> Optional[ConversationRecord]:
        record = self.conversations.get(conversation_id)
        if record is None or record.user_id != user_id:
            return None
        return record

    async def delete_conversation(self, conversation_id: str, user_id: str) -> bool:
        if await self.find_conversation(conversation_id, user_id) is None:
            return False
        del self.conversations[conversation_id]
        self.messages = [m for m in self.messages if m.conversation_id != conversation_id]
        return True

    async def touch_conversation(self, conversation_id: str) -> None:
        self.touch_count += 1
        record = self.conversations[conversation_id]
        self.conversations[conversation_id] = ConversationRecord(
            id=record.id,
            user_id=record.user_id,
            title=record.title,
            created_at=record.created_at,
            updated_at=self._now(),
        )

    async def set_title(self, conversation_id: str, title: str) -> None:
        self.titles.append(title)
        record = self.conversations[conversation_id]
        self.conversations[conversation_id] = ConversationRecord(
            id=record.id,
            user_id=record.user_id,
            title=title,
            created_at=record.created_at,
            updated_at=record.updated_at,
        )

    async def insert_message(self, conversation_id: str, role: MessageRole, content: str) -> MessageRecord:
        return self.seed_message(conversation_id, role, content)

    async def list_messages(self, conversation_id: str) -> List[MessageRecord]:
        return sorted(self.messages_for(conversation_id), key=lambda m: m.created_at)

    async def list_media_for_conversation(self, conversation_id: str) -> List[MediaRef]:
        items = [m for m in self.media if self.media_owner.get(m.id) == conversation_id]
        return sorted(items, key=lambda m: m.created_at, reverse=True)

    async def add_media(
        self,
        conversation_id: str,
        media_id: str,
        name: str,
        state: MediaState = MediaState.PENDING,
        kind: MediaKind = MediaKind.VIDEO,
        url: Optional[str] = None,
    ) -> MediaRef:
        return self.seed_media(conversation_id, media_id, name, state=state, kind=kind, url=url)

    def seed_media(
        self,
        conversation_id: str,
        media_id: str,
        name: str,
        state: MediaState = MediaState.PENDING,
        kind: MediaKind = MediaKind.VIDEO,
        url: Optional[str] = None,
    ) -> MediaRef:
        ref = MediaRef(
            id=str(uuid4()),
            media_id=media_id,
            name=name,
            state=state,
            kind=kind,
            url=url,
            created_at=self._now(),
        )
        self.media.append(ref)
        self.media_owner[ref.id] = conversation_id
        return ref

    async def update_media_state(self, media_id: str, state: MediaState) -> int:
        updated = 0
        for index, ref in enumerate(self.media):
            if ref.media_id == media_id:
                self.media[index] = MediaRef(
                    id=ref.id,
                    media_id=ref.media_id,
                    name=ref.name,
                    state=state,
                    kind=ref.kind,
                    url=ref.url,
                    created_at=ref.created_at,
                )
                updated += 1
        return updated


@pytest.fixture
def settings() -> Settings:
    """Settings with instant polling and fixed provider URLs."""
    return Settings(
        _env_file=None,
        mongodb_url="mongodb://localhost:27017/mediachat_test",
        jwt_secret_key="test-secret-key-minimum-32-characters",
        openrouter_api_key="sk-or-test-key",
        openrouter_base_url="https://openrouter.test/api/v1",
        runware_api_key="runware-test-key",
        runware_base_url="https://runware.test/v1",
        runware_poll_interval=0,
        runware_poll_max_attempts=3,
        memories_api_key="memories-test-key",
        memories_base_url="https://memories.test/serve/api/v1",
    )


@pytest.fixture
def store() -> InMemoryConversationStore:
    return InMemoryConversationStore()


def _make_media(
    media_id: str,
    state: MediaState = MediaState.READY,
    name: str = "clip.mp4",
    minutes_ago: int = 0,
) -> MediaRef:
    """Build a MediaRef without a store."""
    return MediaRef(
        id=str(uuid4()),
        media_id=media_id,
        name=name,
        state=state,
        created_at=datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc) - timedelta(minutes=minutes_ago),
    )


@pytest.fixture
def make_media():
    """Factory for MediaRef values (newer items use smaller minutes_ago)."""
    return _make_media

