"""
Context Assembler - builds the message history sent to the completion model.
"""

from typing import Dict, List, Sequence

import structlog

from ..domain.chat import MediaRef, MediaState
from .conversation_store import ConversationStore

logger = structlog.get_logger(__name__)

SYSTEM_PROMPT = (
    "You are a helpful assistant in a media-aware chat. "
    "Stay on the topic of the user's request and answer concisely."
)


def describe_media(media: Sequence[MediaRef]) -> str:
    """Enumerated listing of known media appended to the system prompt."""
    lines = ["", "", "Media uploaded to this conversation:"]
    for index, item in enumerate(media, start=1):
        lines.append(f"{index}. {item.name or 'Untitled'} (id: {item.media_id}, status: {item.state.value})")
    return "\n".join(lines)


class ContextAssembler:
    """Reads history and media for a conversation and renders the prompt."""

    def __init__(self, store: ConversationStore, system_prompt: str = SYSTEM_PROMPT):
        self.store = store
        self.system_prompt = system_prompt

    async def build(self, conversation_id: str) -> List[Dict[str, str]]:
        """
        Assemble ``[system, *history]`` for ``conversation_id``.

        Failed media are left out of the listing; messages keep their
        ascending creation order.
        """
        media = [
            m for m in await self.store.list_media_for_conversation(conversation_id)
            if m.state != MediaState.FAILED
        ]
        messages = await self.store.list_messages(conversation_id)

        system_content = self.system_prompt
        if media:
            system_content += describe_media(media)

        history = [{"role": "system", "content": system_content}]
        history.extend({"role": m.role.value, "content": m.content} for m in messages)

        logger.debug(
            "Assembled completion context",
            conversation_id=conversation_id,
            message_count=len(messages),
            media_count=len(media),
        )
        return history
