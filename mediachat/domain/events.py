"""
Outbound stream events.

Every chat-send request produces an ordered sequence of these, terminated by
exactly one ``done`` event.
"""

from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field


class StreamEventType(str, Enum):
    CHUNK = "chunk"
    TOOL_CALL = "tool_call"
    DONE = "done"


class StreamEvent(BaseModel):
    """Wire-level unit of the chat event stream"""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    type: StreamEventType
    content: Optional[str] = None
    message_id: Optional[str] = Field(default=None, alias="messageId")
    tool_name: Optional[str] = Field(default=None, alias="toolName")

    @classmethod
    def chunk(cls, content: str) -> "StreamEvent":
        return cls(type=StreamEventType.CHUNK, content=content)

    @classmethod
    def tool_call(cls, tool_name: str) -> "StreamEvent":
        return cls(type=StreamEventType.TOOL_CALL, tool_name=tool_name)

    @classmethod
    def done(cls, message_id: Optional[str] = None) -> "StreamEvent":
        return cls(type=StreamEventType.DONE, message_id=message_id)

    def to_sse(self) -> Dict[str, Any]:
        """Render as an ``EventSourceResponse`` item (JSON in the data field)."""
        return {
            "event": "message",
            "data": self.model_dump_json(by_alias=True, exclude_none=True),
        }
