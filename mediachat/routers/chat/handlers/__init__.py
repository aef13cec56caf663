"""Chat handlers - streaming logic behind the chat endpoints."""

from .streaming_handler import StreamingHandler, StreamState, derive_title

__all__ = ["StreamingHandler", "StreamState", "derive_title"]
