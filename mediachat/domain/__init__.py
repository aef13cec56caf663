"""
Domain layer - immutable records passed between pipeline stages.
"""

from .chat import ConversationRecord, MediaKind, MediaRef, MediaState, MessageRecord, MessageRole
from .events import StreamEvent, StreamEventType
from .tool_selection import ToolArgs, ToolBackend, ToolSelection, parse_tool_args

__all__ = [
    "ConversationRecord",
    "MediaKind",
    "MediaRef",
    "MediaState",
    "MessageRecord",
    "MessageRole",
    "StreamEvent",
    "StreamEventType",
    "ToolArgs",
    "ToolBackend",
    "ToolSelection",
    "parse_tool_args",
]
